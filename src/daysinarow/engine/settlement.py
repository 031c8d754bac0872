"""Settlement engine: batched claims of forfeited deposits.

A loss account pulls everything it is owed in one call. The claim scans the
account's unsettled commitments, resolves any whose owner has missed a day,
and moves the sum of every failed deposit in a single transfer. Each
deposit leaves custody exactly once, whether that happened at the failing
check-in (eager settlement) or here.
"""

from __future__ import annotations

from typing import List, Optional

from daysinarow.accounts import normalize_address
from daysinarow.clock import Clock
from daysinarow.config import ClaimPolicy, EscrowParams
from daysinarow.controls import PauseGuard, require_not_paused
from daysinarow.custody.rail import FundsRail
from daysinarow.engine.day_window import has_missed_day, resolve_state
from daysinarow.engine.lifecycle import all_or_nothing, failure_payload
from daysinarow.errors import AuthorizationError, NothingToClaimError
from daysinarow.ledger import CommitmentLedger
from daysinarow.models.commitment import ClaimReceipt, Commitment, CommitmentState
from daysinarow.persistence.event_log import EventKind, EventLog
from daysinarow.registry import LossAccountRegistry


class ClaimEngine:
    """Aggregates and pays out failed deposits per loss account.

    Usage:
        claims = ClaimEngine(ledger, registry, controls, clock, rail, events, params)
        claims.claimable_amount(loss)   # 975000000000000000
        receipt = claims.claim_all(loss)
        receipt.total_amount            # 975000000000000000
    """

    def __init__(
        self,
        ledger: CommitmentLedger,
        registry: LossAccountRegistry,
        guard: PauseGuard,
        clock: Clock,
        rail: FundsRail,
        events: EventLog,
        params: EscrowParams,
    ) -> None:
        self._ledger = ledger
        self._registry = registry
        self._guard = guard
        self._clock = clock
        self._rail = rail
        self._events = events
        self._params = params

    def claim_all(
        self,
        caller: str,
        loss_account: Optional[str] = None,
    ) -> ClaimReceipt:
        """Settle every failed, unsettled deposit owed to a loss account.

        `loss_account` defaults to the caller. Raises NothingToClaimError
        when there is nothing to move.
        """
        require_not_paused(self._guard)
        claimer = normalize_address(caller, "caller")
        account = (
            claimer
            if loss_account is None
            else normalize_address(loss_account, "loss_account")
        )
        if (
            self._params.claim_policy is ClaimPolicy.LOSS_ACCOUNT_ONLY
            and account != claimer
        ):
            raise AuthorizationError("Only the loss account can claim its funds")
        if not (
            self._registry.is_registered(account)
            or self._ledger.ids_for_loss_account(account)
        ):
            raise AuthorizationError(f"Not a loss account: {account}")

        now = self._clock.now()
        spd = self._params.seconds_per_day
        crystallised: List[Commitment] = []
        selected: List[Commitment] = []
        for commitment in self._ledger.pending_for_loss_account(account):
            if has_missed_day(commitment, now, spd):
                commitment.transition_to(CommitmentState.FAILED)
                commitment.resolved_at = now
                crystallised.append(commitment)
            if commitment.state is CommitmentState.FAILED:
                selected.append(commitment)

        if not selected:
            raise NothingToClaimError("No commitments to claim")

        total = sum(c.deposit_amount for c in selected)
        receipt = ClaimReceipt(
            loss_account=account,
            total_amount=total,
            commitment_ids=tuple(c.commitment_id for c in selected),
            claimed_at=now,
        )
        with all_or_nothing(self._rail, self._ledger, self._events):
            if total:
                self._rail.transfer(account, total)
            for commitment in selected:
                commitment.mark_settled()
                commitment.claimed_at = now
                self._ledger.replace(commitment)
            for commitment in crystallised:
                self._events.emit(
                    EventKind.COMMITMENT_FAILED,
                    actor_id=claimer,
                    payload=failure_payload(commitment),
                    timestamp=now,
                )
            self._events.emit(
                EventKind.CLAIMED,
                actor_id=claimer,
                payload={
                    "loss_account": account,
                    "total_amount": total,
                    "commitment_ids": list(receipt.commitment_ids),
                },
                timestamp=now,
            )
        return receipt

    def claimable_amount(self, loss_account: str) -> int:
        """What `claim_all` would move right now, without moving it."""
        account = normalize_address(loss_account, "loss_account")
        now = self._clock.now()
        return sum(
            c.deposit_amount
            for c in self._ledger.pending_for_loss_account(account)
            if resolve_state(c, now, self._params.seconds_per_day)
            is CommitmentState.FAILED
        )
