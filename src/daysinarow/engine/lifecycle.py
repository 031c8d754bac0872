"""Commitment lifecycle engine: create, check in, finalize.

Each operation follows the same order:
1. The pause guard, before anything is read.
2. Load a copy of the commitment and resolve its true state as of `now`.
3. Validate. Any failure raises and leaves the ledger and balances alone.
4. Inside `all_or_nothing`, mutate the copy, perform at most one
   outbound transfer, write the copy back and emit the event. A raise
   anywhere in that block undoes the transfer, the ledger write and the
   queued events together.

Failure is lazy. Nothing marks a commitment failed on a timer; the next
check-in, finalize or claim that touches it discovers the missed day and
resolves it then.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, ContextManager, Dict, Iterator

from daysinarow.accounts import normalize_address
from daysinarow.clock import Clock
from daysinarow.config import EscrowParams, SameDayPolicy, SettlementMode
from daysinarow.controls import PauseGuard, require_not_paused
from daysinarow.custody.rail import FundsRail
from daysinarow.engine.day_window import day_index, expected_day, has_missed_day
from daysinarow.engine.fees import FeeSchedule
from daysinarow.errors import (
    AlreadyCheckedInError,
    AlreadyCompletedError,
    AlreadyFailedError,
    AuthorizationError,
    StillActiveError,
    TooEarlyError,
    ValidationError,
)
from daysinarow.ledger import CommitmentLedger
from daysinarow.models.commitment import (
    CheckInOutcome,
    CheckInResult,
    Commitment,
    CommitmentState,
)
from daysinarow.persistence.event_log import EventKind, EventLog
from daysinarow.registry import LossAccountRegistry


def is_account(caller: object, address: str) -> bool:
    """True when `caller` names the same account as `address`."""
    try:
        return normalize_address(caller, "caller") == address
    except ValidationError:
        return False


def require_active(commitment: Commitment) -> None:
    if commitment.state is CommitmentState.COMPLETED:
        raise AlreadyCompletedError(
            f"Commitment {commitment.commitment_id} already completed"
        )
    if commitment.state is CommitmentState.FAILED:
        raise AlreadyFailedError(f"Commitment {commitment.commitment_id} already failed")


def failure_payload(commitment: Commitment) -> Dict[str, Any]:
    return {
        "user": commitment.user,
        "commitment_id": commitment.commitment_id,
        "loss_account": commitment.loss_account,
        "deposit_amount": commitment.deposit_amount,
        "settled": commitment.settled,
    }


@contextmanager
def all_or_nothing(
    rail: FundsRail,
    ledger: CommitmentLedger,
    events: EventLog,
) -> Iterator[None]:
    """Funds, ledger writes and events in the block commit together or not at all."""
    with rail.atomic(), ledger.atomic(), events.batch():
        yield


def _require_positive_int(value: object, field: str, message: str) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise ValidationError(field, message)


class CommitmentLifecycle:
    """Drives commitments from creation to a terminal state.

    Usage:
        lifecycle = CommitmentLifecycle(ledger, registry, controls, clock,
                                        rail, events, fees, params)
        cid = lifecycle.create_commitment(user, 7, loss, start, "Run", 10**18)
        result = lifecycle.check_in(user, cid)
        result.outcome  # CheckInOutcome.CHECKED_IN
    """

    def __init__(
        self,
        ledger: CommitmentLedger,
        registry: LossAccountRegistry,
        guard: PauseGuard,
        clock: Clock,
        rail: FundsRail,
        events: EventLog,
        fees: FeeSchedule,
        params: EscrowParams,
    ) -> None:
        self._ledger = ledger
        self._registry = registry
        self._guard = guard
        self._clock = clock
        self._rail = rail
        self._events = events
        self._fees = fees
        self._params = params

    @property
    def seconds_per_day(self) -> int:
        return self._params.seconds_per_day

    def create_commitment(
        self,
        caller: str,
        target_days: int,
        loss_account: str,
        start_date: int,
        title: str,
        deposit_value: int,
    ) -> int:
        """Open a commitment and route the rake to the treasury.

        The caller sends `deposit_value`. The fee, computed with the rate
        in force now, leaves custody before this returns; the remainder is
        held until the commitment resolves.

        Returns:
            The new commitment's identifier.
        """
        require_not_paused(self._guard)
        user = normalize_address(caller, "caller")
        _require_positive_int(deposit_value, "deposit_value", "Deposit is required")
        _require_positive_int(
            target_days, "target_days", "Target days must be greater than 0"
        )
        if not isinstance(title, str) or not title.strip():
            raise ValidationError("title", "Title cannot be empty")
        if (
            not isinstance(start_date, int)
            or isinstance(start_date, bool)
            or start_date < 0
        ):
            raise ValidationError(
                "start_date", "Start date must be a non-negative unix timestamp"
            )
        if not self._registry.is_registered(loss_account):
            raise ValidationError("loss_account", "Invalid loss account")

        now = self._clock.now()
        fee, deposit = self._fees.split(deposit_value)
        commitment = Commitment(
            commitment_id=self._ledger.next_id,
            user=user,
            deposit_amount=deposit,
            fee_amount=fee,
            target_days=target_days,
            start_date=start_date,
            loss_account=normalize_address(loss_account, "loss_account"),
            title=title,
            created_at=now,
        )

        with self._committing():
            self._rail.receive(user, deposit_value)
            if fee:
                self._rail.transfer(self._fees.treasury, fee)
            self._ledger.append(commitment)
            self._events.emit(
                EventKind.COMMITMENT_CREATED,
                actor_id=user,
                payload={
                    "user": user,
                    "commitment_id": commitment.commitment_id,
                    "deposit_value": deposit_value,
                    "deposit_amount": deposit,
                    "fee_amount": fee,
                    "treasury": self._fees.treasury,
                    "target_days": target_days,
                    "start_date": start_date,
                    "loss_account": commitment.loss_account,
                    "title": title,
                },
                timestamp=now,
            )
        return commitment.commitment_id

    def check_in(self, caller: str, commitment_id: int) -> CheckInResult:
        """Record today's check-in for the caller's commitment.

        A missed day is not an error: the commitment fails, the failure is
        recorded, and the call returns with outcome FAILED. A check-in
        uses up the calendar day it lands in, so one landing exactly on
        the previous day's deadline leaves nothing more to do until the
        next day.
        """
        require_not_paused(self._guard)
        commitment = self._ledger.get(commitment_id)
        if not is_account(caller, commitment.user):
            raise AuthorizationError("Only the commitment owner can check in")
        require_active(commitment)

        now = self._clock.now()
        if now < commitment.start_date:
            raise TooEarlyError(
                f"Commitment {commitment_id} starts at {commitment.start_date}"
            )
        current_day = day_index(commitment.start_date, now, self.seconds_per_day)

        if has_missed_day(commitment, now, self.seconds_per_day):
            self._fail(commitment, now, actor=commitment.user)
            return self._result(commitment, CheckInOutcome.FAILED, current_day)

        if current_day < expected_day(commitment):
            if self._params.same_day_policy is SameDayPolicy.IGNORE:
                return self._result(commitment, CheckInOutcome.IGNORED, current_day)
            raise AlreadyCheckedInError("Already checked in today")

        commitment.record_check_in(current_day)
        if commitment.checked_in_days < commitment.target_days:
            with self._committing():
                self._ledger.replace(commitment)
                self._events.emit(
                    EventKind.CHECK_IN,
                    actor_id=commitment.user,
                    payload={
                        "user": commitment.user,
                        "commitment_id": commitment.commitment_id,
                        "day": current_day,
                        "checked_in_days": commitment.checked_in_days,
                    },
                    timestamp=now,
                )
            return self._result(commitment, CheckInOutcome.CHECKED_IN, current_day)

        commitment.transition_to(CommitmentState.COMPLETED)
        commitment.resolved_at = now
        commitment.mark_settled()
        with self._committing():
            if commitment.deposit_amount:
                self._rail.transfer(commitment.user, commitment.deposit_amount)
            self._ledger.replace(commitment)
            self._events.emit(
                EventKind.COMMITMENT_COMPLETED,
                actor_id=commitment.user,
                payload={
                    "user": commitment.user,
                    "commitment_id": commitment.commitment_id,
                    "refund_amount": commitment.deposit_amount,
                },
                timestamp=now,
            )
        return self._result(commitment, CheckInOutcome.COMPLETED, current_day)

    def finalize(self, caller: str, commitment_id: int) -> Commitment:
        """Crystallise the failure of an abandoned commitment. Permissionless."""
        require_not_paused(self._guard)
        actor = normalize_address(caller, "caller")
        commitment = self._ledger.get(commitment_id)
        require_active(commitment)

        now = self._clock.now()
        if not has_missed_day(commitment, now, self.seconds_per_day):
            raise StillActiveError(f"Commitment {commitment_id} is still active")

        self._fail(commitment, now, actor=actor)
        return commitment.copy()

    def _committing(self) -> ContextManager[None]:
        return all_or_nothing(self._rail, self._ledger, self._events)

    def _fail(self, commitment: Commitment, now: int, actor: str) -> None:
        commitment.transition_to(CommitmentState.FAILED)
        commitment.resolved_at = now
        eager = self._params.settlement_mode is SettlementMode.EAGER
        if eager:
            commitment.mark_settled()
        with self._committing():
            if eager and commitment.deposit_amount:
                self._rail.transfer(commitment.loss_account, commitment.deposit_amount)
            self._ledger.replace(commitment)
            self._events.emit(
                EventKind.COMMITMENT_FAILED,
                actor_id=actor,
                payload=failure_payload(commitment),
                timestamp=now,
            )

    @staticmethod
    def _result(
        commitment: Commitment,
        outcome: CheckInOutcome,
        current_day: int,
    ) -> CheckInResult:
        return CheckInResult(
            commitment_id=commitment.commitment_id,
            outcome=outcome,
            state=commitment.state,
            checked_in_days=commitment.checked_in_days,
            day_index=current_day,
        )
