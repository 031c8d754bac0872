"""Commitment ledger: durable storage of every commitment and its indices.

Storage is in-memory. Records are never deleted; terminal commitments stay
as the audit history. Reads hand out copies so that nothing outside the
ledger can change a stored record without going through `replace`.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Dict, Iterator, List

from daysinarow.errors import UnknownCommitmentError
from daysinarow.models.commitment import Commitment


class CommitmentLedger:
    """Append-only list of commitments plus per-user and per-loss-account indices.

    Usage:
        ledger = CommitmentLedger()
        commitment_id = ledger.next_id
        ledger.append(Commitment(commitment_id=commitment_id, ...))
        record = ledger.get(commitment_id)
        record.checked_in_days += 1
        ledger.replace(record)
    """

    def __init__(self) -> None:
        self._commitments: List[Commitment] = []
        self._by_user: Dict[str, List[int]] = {}
        self._by_loss_account: Dict[str, List[int]] = {}

    @property
    def next_id(self) -> int:
        """Identifier the next appended commitment must carry."""
        return len(self._commitments)

    def append(self, commitment: Commitment) -> None:
        if commitment.commitment_id != self.next_id:
            raise ValueError(
                f"Commitment id {commitment.commitment_id} out of sequence; "
                f"expected {self.next_id}"
            )
        self._commitments.append(commitment.copy())
        self._by_user.setdefault(commitment.user, []).append(commitment.commitment_id)
        self._by_loss_account.setdefault(commitment.loss_account, []).append(
            commitment.commitment_id
        )

    def get(self, commitment_id: int) -> Commitment:
        return self._stored(commitment_id).copy()

    def replace(self, commitment: Commitment) -> None:
        """Write back a modified copy. Identity fields must not change."""
        stored = self._stored(commitment.commitment_id)
        if (
            commitment.user != stored.user
            or commitment.loss_account != stored.loss_account
            or commitment.deposit_amount != stored.deposit_amount
            or commitment.fee_amount != stored.fee_amount
        ):
            raise ValueError(
                f"Immutable fields changed for commitment {commitment.commitment_id}"
            )
        if commitment.checked_in_days < stored.checked_in_days:
            raise ValueError("checked_in_days cannot decrease")
        if stored.settled and not commitment.settled:
            raise ValueError("A settled deposit cannot be unsettled")
        self._commitments[commitment.commitment_id] = commitment.copy()

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Undo every append and replace made in the block if it raises."""
        commitments = list(self._commitments)
        by_user = {k: list(v) for k, v in self._by_user.items()}
        by_loss_account = {k: list(v) for k, v in self._by_loss_account.items()}
        try:
            yield
        except BaseException:
            self._commitments = commitments
            self._by_user = by_user
            self._by_loss_account = by_loss_account
            raise

    def ids_for_user(self, user: str) -> List[int]:
        return list(self._by_user.get(user, []))

    def ids_for_loss_account(self, loss_account: str) -> List[int]:
        return list(self._by_loss_account.get(loss_account, []))

    def pending_for_loss_account(self, loss_account: str) -> List[Commitment]:
        """Copies of the loss account's commitments whose deposit is still held."""
        return [
            self._commitments[cid].copy()
            for cid in self._by_loss_account.get(loss_account, [])
            if not self._commitments[cid].settled
        ]

    def __len__(self) -> int:
        return len(self._commitments)

    def __iter__(self) -> Iterator[Commitment]:
        return (c.copy() for c in self._commitments)

    def _stored(self, commitment_id: int) -> Commitment:
        if (
            not isinstance(commitment_id, int)
            or isinstance(commitment_id, bool)
            or not 0 <= commitment_id < len(self._commitments)
        ):
            raise UnknownCommitmentError(f"Unknown commitment ID: {commitment_id}")
        return self._commitments[commitment_id]
