"""Commitment models: the pledge record, loss accounts, and call results.

All amounts are integers in the asset's smallest unit (wei). No floats in
custody math.

Invariants enforced here:
- A commitment is in exactly one of ACTIVE, COMPLETED, FAILED.
- ACTIVE -> COMPLETED and ACTIVE -> FAILED are the only transitions.
  Both are one-way; terminal states have no exits.
- checked_in_days never exceeds target_days.
- A deposit is marked settled at most once.
"""

from __future__ import annotations

import enum
import dataclasses
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple


class CommitmentState(str, enum.Enum):
    """Lifecycle state of a commitment.

    State machine:
        ACTIVE -> COMPLETED   (target reached, deposit refunded)
        ACTIVE -> FAILED      (a day was missed, deposit forfeited)
    """
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


COMMITMENT_TRANSITIONS: Dict[CommitmentState, frozenset] = {
    CommitmentState.ACTIVE: frozenset({
        CommitmentState.COMPLETED,
        CommitmentState.FAILED,
    }),
    CommitmentState.COMPLETED: frozenset(),
    CommitmentState.FAILED: frozenset(),
}


class CheckInOutcome(str, enum.Enum):
    """What a check-in call did."""
    CHECKED_IN = "checked_in"
    COMPLETED = "completed"
    FAILED = "failed"
    IGNORED = "ignored"


@dataclass
class Commitment:
    """One user's pledge against a daily check-in streak.

    Mutable: check-in and finalize advance it toward a terminal state.
    The ledger only ever hands out copies, so a record in hand can be
    changed freely and written back once the operation has succeeded.
    """
    commitment_id: int
    user: str
    deposit_amount: int
    fee_amount: int
    target_days: int
    start_date: int
    loss_account: str
    title: str
    created_at: int
    checked_in_days: int = 0
    last_check_in_day: Optional[int] = None
    state: CommitmentState = CommitmentState.ACTIVE
    settled: bool = False
    resolved_at: Optional[int] = None
    claimed_at: Optional[int] = None

    @property
    def deposit_value(self) -> int:
        """The gross amount the user sent at creation."""
        return self.deposit_amount + self.fee_amount

    @property
    def is_terminal(self) -> bool:
        return not COMMITMENT_TRANSITIONS[self.state]

    def transition_to(self, new_state: CommitmentState) -> None:
        """Transition to a new state, validating the transition is legal."""
        allowed = COMMITMENT_TRANSITIONS.get(self.state, frozenset())
        if new_state not in allowed:
            raise ValueError(
                f"Invalid commitment transition: {self.state.value} -> {new_state.value}"
            )
        self.state = new_state

    def record_check_in(self, day: int) -> None:
        if self.checked_in_days >= self.target_days:
            raise ValueError("Check-in beyond target_days")
        self.checked_in_days += 1
        self.last_check_in_day = day

    def mark_settled(self) -> None:
        if self.settled:
            raise ValueError(f"Deposit already settled for commitment {self.commitment_id}")
        self.settled = True

    def copy(self) -> Commitment:
        return dataclasses.replace(self)

    def to_dict(self) -> Dict[str, Any]:
        data = dataclasses.asdict(self)
        data["state"] = self.state.value
        return data


@dataclass(frozen=True)
class LossAccount:
    """An authorised destination for forfeited deposits."""
    account_address: str
    label: str = ""
    added_at: Optional[int] = None


@dataclass(frozen=True)
class CheckInResult:
    """Outcome of a single check-in call."""
    commitment_id: int
    outcome: CheckInOutcome
    state: CommitmentState
    checked_in_days: int
    day_index: int


@dataclass(frozen=True)
class ClaimReceipt:
    """One aggregate settlement for a loss account."""
    loss_account: str
    total_amount: int
    commitment_ids: Tuple[int, ...]
    claimed_at: int
