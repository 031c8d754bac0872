"""Escrow parameters loaded from config/escrow_params.json.

The JSON file is the deployment description: who owns the escrow, where the
rake goes, which loss accounts exist at launch, and the policy switches the
engine consults. Values are validated on load; `violations()` reports
anything that would make the escrow unsafe to run.
"""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Mapping, Optional, Tuple

from daysinarow.clock import SECONDS_PER_DAY
from daysinarow.accounts import normalize_address

MAX_BASIS_POINTS = 10_000

DEFAULT_PARAMS_PATH = (
    Path(__file__).resolve().parents[2] / "config" / "escrow_params.json"
)


class SameDayPolicy(str, enum.Enum):
    """What a second check-in on the same day does."""
    REJECT = "reject"  # AlreadyCheckedInError
    IGNORE = "ignore"  # accepted as a no-op


class SettlementMode(str, enum.Enum):
    """When a failed commitment's deposit leaves custody."""
    EAGER = "eager"  # at the failing check-in / finalize
    DEFERRED = "deferred"  # only in a claim batch


class ClaimPolicy(str, enum.Enum):
    """Who may trigger a claim for a loss account."""
    LOSS_ACCOUNT_ONLY = "loss_account_only"
    ANYONE = "anyone"


@dataclass(frozen=True)
class EscrowParams:
    """Deployment parameters for one escrow instance."""

    rake_basis_points: int = 0
    seconds_per_day: int = SECONDS_PER_DAY
    same_day_policy: SameDayPolicy = SameDayPolicy.REJECT
    settlement_mode: SettlementMode = SettlementMode.EAGER
    claim_policy: ClaimPolicy = ClaimPolicy.LOSS_ACCOUNT_ONLY
    owner: Optional[str] = None
    treasury: Optional[str] = None
    loss_accounts: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> EscrowParams:
        """Build params from a decoded JSON object, rejecting unknown keys."""
        known = {
            "rake_basis_points",
            "seconds_per_day",
            "same_day_policy",
            "settlement_mode",
            "claim_policy",
            "owner",
            "treasury",
            "loss_accounts",
        }
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown escrow parameter(s): {', '.join(unknown)}")

        params = cls(
            rake_basis_points=int(data.get("rake_basis_points", 0)),
            seconds_per_day=int(data.get("seconds_per_day", SECONDS_PER_DAY)),
            same_day_policy=SameDayPolicy(
                data.get("same_day_policy", SameDayPolicy.REJECT.value)
            ),
            settlement_mode=SettlementMode(
                data.get("settlement_mode", SettlementMode.EAGER.value)
            ),
            claim_policy=ClaimPolicy(
                data.get("claim_policy", ClaimPolicy.LOSS_ACCOUNT_ONLY.value)
            ),
            owner=data.get("owner"),
            treasury=data.get("treasury"),
            loss_accounts=tuple(data.get("loss_accounts", ())),
        )
        errors = params.violations()
        if errors:
            raise ValueError("Invalid escrow parameters: " + "; ".join(errors))
        return params

    @classmethod
    def from_file(cls, path: Optional[Path] = None) -> EscrowParams:
        config_path = path or DEFAULT_PARAMS_PATH
        return cls.from_mapping(json.loads(config_path.read_text(encoding="utf-8")))

    def with_overrides(self, overrides: Mapping[str, Any]) -> EscrowParams:
        """Return a copy with some keys replaced, re-validated."""
        merged = self.to_dict()
        merged.update(overrides)
        return EscrowParams.from_mapping(merged)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rake_basis_points": self.rake_basis_points,
            "seconds_per_day": self.seconds_per_day,
            "same_day_policy": self.same_day_policy.value,
            "settlement_mode": self.settlement_mode.value,
            "claim_policy": self.claim_policy.value,
            "owner": self.owner,
            "treasury": self.treasury,
            "loss_accounts": list(self.loss_accounts),
        }

    def violations(self) -> List[str]:
        """Return a list of invariant violations; empty means usable."""
        errors: List[str] = []
        if not 0 <= self.rake_basis_points <= MAX_BASIS_POINTS:
            errors.append(
                f"rake_basis_points must be within [0, {MAX_BASIS_POINTS}], "
                f"got {self.rake_basis_points}"
            )
        if self.seconds_per_day <= 0:
            errors.append("seconds_per_day must be positive")

        for label, value in (("owner", self.owner), ("treasury", self.treasury)):
            if value is None:
                continue
            try:
                normalize_address(value, label)
            except ValueError as e:
                errors.append(str(e))

        seen: set[str] = set()
        for value in self.loss_accounts:
            try:
                address = normalize_address(value, "loss_accounts")
            except ValueError as e:
                errors.append(str(e))
                continue
            if address in seen:
                errors.append(f"loss_accounts: duplicate entry {address}")
            seen.add(address)
        return errors


def check_params_file(path: Optional[Path] = None) -> List[str]:
    """Load a parameter file and list every reason it cannot be deployed."""
    config_path = path or DEFAULT_PARAMS_PATH
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        return [f"Cannot read {config_path}: {e}"]
    if not isinstance(data, dict):
        return [f"{config_path} must contain a JSON object"]
    try:
        params = EscrowParams.from_mapping(data)
    except (TypeError, ValueError) as e:
        return [str(e)]

    errors: List[str] = []
    if params.owner is None:
        errors.append("owner is required")
    if not params.loss_accounts:
        errors.append("loss_accounts must name at least one account")
    if params.treasury is not None:
        treasury = normalize_address(params.treasury, "treasury")
        if treasury in {normalize_address(a) for a in params.loss_accounts}:
            errors.append("treasury must not also be a loss account")
    return errors


__all__ = [
    "ClaimPolicy",
    "DEFAULT_PARAMS_PATH",
    "MAX_BASIS_POINTS",
    "EscrowParams",
    "SameDayPolicy",
    "SettlementMode",
    "check_params_file",
]
