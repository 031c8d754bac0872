"""Fund rails: how value enters and leaves escrow custody.

The lifecycle and claim engines never move funds themselves. They talk to
a `FundsRail`, and every operation performs at most one outbound transfer,
always as the last step before the ledger is written. If the transfer
fails, the operation raises and nothing is committed. `atomic()` lets a
rail undo the inbound side of an operation (the deposit received at
creation) when a later step in the same operation fails.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import ContextManager, Dict, Iterator, List, Optional, Protocol, runtime_checkable

from daysinarow.errors import TransferError


@runtime_checkable
class FundsRail(Protocol):
    """Abstract contract for moving value in and out of custody."""

    def receive(self, sender: str, amount: int) -> None:
        """Take `amount` from `sender` into custody."""
        ...

    def transfer(self, recipient: str, amount: int) -> None:
        """Pay `amount` out of custody. Raises TransferError on failure."""
        ...

    def atomic(self) -> ContextManager[None]:
        """Scope within which a raised error undoes every movement."""
        ...


@dataclass(frozen=True)
class TransferRecord:
    """One movement of funds across the custody boundary."""
    direction: str  # "in" | "out"
    counterparty: str
    amount: int


class InMemoryRail:
    """Balance sheet held in process.

    Usage:
        rail = InMemoryRail()
        rail.fund(user, 10**18)
        rail.receive(user, 10**18)     # into custody
        rail.transfer(treasury, 25 * 10**15)
        rail.balance_of(treasury)      # 25000000000000000
    """

    def __init__(
        self,
        custody_address: str = "escrow",
        balances: Optional[Dict[str, int]] = None,
    ) -> None:
        self._custody_address = custody_address
        self._balances: Dict[str, int] = dict(balances or {})
        self._rejecting: set[str] = set()
        self._history: List[TransferRecord] = []

    @property
    def custody_address(self) -> str:
        return self._custody_address

    @property
    def custody_balance(self) -> int:
        return self.balance_of(self._custody_address)

    @property
    def history(self) -> List[TransferRecord]:
        return list(self._history)

    def outbound(self) -> List[TransferRecord]:
        return [r for r in self._history if r.direction == "out"]

    def balance_of(self, address: str) -> int:
        return self._balances.get(address, 0)

    def balances(self) -> Dict[str, int]:
        return {k: v for k, v in self._balances.items() if v}

    def total_supply(self) -> int:
        """Sum of every balance, custody included. Constant across transfers."""
        return sum(self._balances.values())

    def fund(self, address: str, amount: int) -> None:
        """Mint test funds to an external account."""
        _check_amount(amount)
        self._balances[address] = self.balance_of(address) + amount

    def reject_transfers_to(self, address: str) -> None:
        """Simulate a recipient that refuses incoming value."""
        self._rejecting.add(address)

    def accept_transfers_to(self, address: str) -> None:
        self._rejecting.discard(address)

    def receive(self, sender: str, amount: int) -> None:
        _check_amount(amount)
        if self.balance_of(sender) < amount:
            raise TransferError(f"Insufficient balance for {sender}: needs {amount}")
        self._move(sender, self._custody_address, amount)
        self._history.append(TransferRecord("in", sender, amount))

    def transfer(self, recipient: str, amount: int) -> None:
        _check_amount(amount)
        if recipient in self._rejecting:
            raise TransferError(f"Recipient rejected transfer: {recipient}")
        if self.custody_balance < amount:
            raise TransferError(
                f"Insufficient custody balance: has {self.custody_balance}, needs {amount}"
            )
        self._move(self._custody_address, recipient, amount)
        self._history.append(TransferRecord("out", recipient, amount))

    @contextmanager
    def atomic(self) -> Iterator[None]:
        balances = dict(self._balances)
        history_len = len(self._history)
        try:
            yield
        except BaseException:
            self._balances = balances
            del self._history[history_len:]
            raise

    def _move(self, source: str, target: str, amount: int) -> None:
        self._balances[source] = self.balance_of(source) - amount
        self._balances[target] = self.balance_of(target) + amount


def _check_amount(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise ValueError(f"Transfer amount must be a positive integer, got {amount!r}")
