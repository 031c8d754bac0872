"""Rake computation and the mutable fee schedule.

    fee     = deposit_value * rake_basis_points // 10000
    deposit = deposit_value - fee

Floor division: any fractional remainder stays with the escrowed deposit,
so fee + deposit == deposit_value always holds. The rate applied is the one
in force when the commitment is created; later rate changes never reach
existing commitments.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from daysinarow.accounts import normalize_address
from daysinarow.config import MAX_BASIS_POINTS
from daysinarow.errors import ValidationError


def compute_fee(deposit_value: int, rake_basis_points: int) -> Tuple[int, int]:
    """Split a deposit into (fee, escrowed remainder)."""
    if deposit_value < 0:
        raise ValueError("Deposit value must be non-negative")
    if not 0 <= rake_basis_points <= MAX_BASIS_POINTS:
        raise ValueError(f"Rake out of range: {rake_basis_points}")
    fee = deposit_value * rake_basis_points // MAX_BASIS_POINTS
    return fee, deposit_value - fee


@dataclass
class FeeSchedule:
    """Current rake rate and treasury address, changed only by the owner."""

    rake_basis_points: int
    treasury: str

    def __post_init__(self) -> None:
        self.set_rate(self.rake_basis_points)
        self.set_treasury(self.treasury)

    def set_rate(self, rake_basis_points: int) -> None:
        if (
            not isinstance(rake_basis_points, int)
            or isinstance(rake_basis_points, bool)
            or not 0 <= rake_basis_points <= MAX_BASIS_POINTS
        ):
            raise ValidationError(
                "rake_basis_points",
                f"must be an integer within [0, {MAX_BASIS_POINTS}]",
            )
        self.rake_basis_points = rake_basis_points

    def set_treasury(self, treasury: str) -> None:
        self.treasury = normalize_address(treasury, "treasury")

    def split(self, deposit_value: int) -> Tuple[int, int]:
        return compute_fee(deposit_value, self.rake_basis_points)
