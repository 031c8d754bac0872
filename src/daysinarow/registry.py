"""Loss account registry: the set of authorised payout destinations.

Membership is only consulted when a commitment is created. Removing an
account later does not touch commitments that already name it; their
forfeited deposits still go there and the account can still claim them.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from daysinarow.accounts import normalize_address
from daysinarow.errors import ValidationError
from daysinarow.models.commitment import LossAccount


class LossAccountRegistry:
    """Ordered registry of loss accounts.

    Accounts keep their registration order, so callers that refer to a
    loss account by position see a stable list.

    Usage:
        registry = LossAccountRegistry(["0x1111...", "0x2222..."])
        registry.add("0x3333...", label="charity")
        registry.is_registered("0x3333...")  # True
        registry.at(0)                      # "0x1111..."
    """

    def __init__(self, accounts: Iterable[str] = ()) -> None:
        self._accounts: Dict[str, LossAccount] = {}
        for address in accounts:
            self.add(address)

    def add(
        self,
        address: str,
        label: str = "",
        now: Optional[int] = None,
    ) -> LossAccount:
        """Register a loss account. Duplicates are rejected."""
        normalized = normalize_address(address, "loss_account")
        if normalized in self._accounts:
            raise ValidationError(
                "loss_account", f"Loss account already registered: {normalized}"
            )
        entry = LossAccount(account_address=normalized, label=label, added_at=now)
        self._accounts[normalized] = entry
        return entry

    def remove(self, address: str) -> LossAccount:
        """Deregister a loss account and return its entry."""
        normalized = normalize_address(address, "loss_account")
        entry = self._accounts.pop(normalized, None)
        if entry is None:
            raise ValidationError(
                "loss_account", f"Unknown loss account: {normalized}"
            )
        return entry

    def is_registered(self, address: str) -> bool:
        try:
            return normalize_address(address, "loss_account") in self._accounts
        except ValidationError:
            return False

    def at(self, index: int) -> str:
        """Return the address registered at a position."""
        addresses = list(self._accounts)
        if not 0 <= index < len(addresses):
            raise ValidationError("loss_account", "Invalid loss account index")
        return addresses[index]

    def list_accounts(self) -> List[LossAccount]:
        return list(self._accounts.values())

    def __len__(self) -> int:
        return len(self._accounts)

    def __contains__(self, address: object) -> bool:
        return isinstance(address, str) and self.is_registered(address)
