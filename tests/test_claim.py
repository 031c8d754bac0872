"""Tests for batched claims: proves each forfeited deposit moves exactly once."""

import shutil
from pathlib import Path
from typing import Optional

import pytest

from daysinarow.clock import ManualClock
from daysinarow.config import ClaimPolicy, EscrowParams, SettlementMode
from daysinarow.custody.rail import InMemoryRail
from daysinarow.errors import (
    AuthorizationError,
    NothingToClaimError,
    PausedError,
    TransferError,
)
from daysinarow.escrow import DaysInARow
from daysinarow.models.commitment import CommitmentState
from daysinarow.persistence.event_log import EventKind, EventLog

OWNER = "0x" + "1" * 40
TREASURY = "0x" + "2" * 40
LOSS = "0x" + "3" * 40
LOSS_2 = "0x" + "4" * 40
USER = "0x" + "5" * 40
OTHER = "0x" + "6" * 40
START = 1_700_006_400
DAY = 86_400
ETHER = 10**18
DEPOSIT = 975 * 10**15


def _deploy(
    event_log: Optional[EventLog] = None, **params
) -> tuple[DaysInARow, ManualClock, InMemoryRail]:
    clock = ManualClock(START - 3600)
    rail = InMemoryRail()
    rail.fund(USER, 10 * ETHER)
    rail.fund(OTHER, 10 * ETHER)
    escrow = DaysInARow(
        OWNER,
        loss_accounts=[LOSS, LOSS_2],
        treasury=TREASURY,
        rake_basis_points=250,
        clock=clock,
        rail=rail,
        event_log=event_log,
        params=EscrowParams(**params),
    )
    return escrow, clock, rail


def _create(escrow: DaysInARow, user: str = USER, loss: str = LOSS) -> int:
    return escrow.create_commitment(user, 7, loss, START, "Journal", ETHER)


class TestDeferredClaim:
    def test_one_transfer_for_all_failed_deposits(self) -> None:
        escrow, clock, rail = _deploy(settlement_mode=SettlementMode.DEFERRED)
        first = _create(escrow)
        second = _create(escrow, user=OTHER)
        clock.set(START + 2 * DAY)
        escrow.finalize_commitment(OTHER, first)
        escrow.finalize_commitment(USER, second)
        outbound_before = len(rail.outbound())

        receipt = escrow.claim_all(LOSS)

        assert receipt.loss_account == LOSS
        assert receipt.total_amount == 2 * DEPOSIT
        assert receipt.commitment_ids == (first, second)
        assert receipt.claimed_at == START + 2 * DAY
        payouts = rail.outbound()[outbound_before:]
        assert len(payouts) == 1
        assert payouts[0].counterparty == LOSS
        assert payouts[0].amount == 2 * DEPOSIT
        assert rail.balance_of(LOSS) == 2 * DEPOSIT

    def test_second_claim_has_nothing(self) -> None:
        escrow, clock, _ = _deploy(settlement_mode=SettlementMode.DEFERRED)
        _create(escrow)
        clock.set(START + 2 * DAY)
        escrow.claim_all(LOSS)
        with pytest.raises(NothingToClaimError, match="No commitments to claim"):
            escrow.claim_all(LOSS)

    def test_claimed_commitments_marked_settled(self) -> None:
        escrow, clock, _ = _deploy(settlement_mode=SettlementMode.DEFERRED)
        cid = _create(escrow)
        clock.set(START + 2 * DAY)
        escrow.claim_all(LOSS)
        commitment = escrow.get_commitment(cid)
        assert commitment.settled
        assert commitment.claimed_at == START + 2 * DAY
        assert escrow.claimable_amount(LOSS) == 0

    def test_active_commitments_are_left_alone(self) -> None:
        escrow, clock, rail = _deploy(settlement_mode=SettlementMode.DEFERRED)
        kept = _create(escrow)
        lost = _create(escrow, user=OTHER)
        clock.set(START)
        escrow.check_in(USER, kept)
        clock.set(START + DAY + 1)

        receipt = escrow.claim_all(LOSS)

        assert receipt.commitment_ids == (lost,)
        assert escrow.get_commitment(kept).state == CommitmentState.ACTIVE
        assert rail.custody_balance == DEPOSIT

    def test_only_own_loss_account_commitments(self) -> None:
        escrow, clock, rail = _deploy(settlement_mode=SettlementMode.DEFERRED)
        _create(escrow, loss=LOSS)
        _create(escrow, user=OTHER, loss=LOSS_2)
        clock.set(START + 2 * DAY)
        assert escrow.claim_all(LOSS).total_amount == DEPOSIT
        assert escrow.claimable_amount(LOSS_2) == DEPOSIT


class TestEagerClaim:
    def test_claim_crystallises_abandoned_commitments(self) -> None:
        escrow, clock, rail = _deploy()
        cid = _create(escrow)
        clock.set(START + 3 * DAY)
        assert escrow.claimable_amount(LOSS) == DEPOSIT

        receipt = escrow.claim_all(LOSS)

        assert receipt.commitment_ids == (cid,)
        commitment = escrow.get_commitment(cid)
        assert commitment.state == CommitmentState.FAILED
        assert commitment.settled
        assert rail.balance_of(LOSS) == DEPOSIT
        assert len(escrow.events(EventKind.COMMITMENT_FAILED)) == 1
        [claimed] = escrow.events(EventKind.CLAIMED)
        assert claimed.payload["total_amount"] == DEPOSIT
        assert claimed.payload["commitment_ids"] == [cid]

    def test_already_paid_failures_are_not_paid_twice(self) -> None:
        escrow, clock, rail = _deploy()
        cid = _create(escrow)
        clock.set(START + 3 * DAY)
        escrow.finalize_commitment(USER, cid)
        assert rail.balance_of(LOSS) == DEPOSIT
        with pytest.raises(NothingToClaimError):
            escrow.claim_all(LOSS)
        assert rail.balance_of(LOSS) == DEPOSIT


class TestClaimAuthorization:
    def test_other_caller_rejected_by_default(self) -> None:
        escrow, clock, _ = _deploy()
        _create(escrow)
        clock.set(START + 3 * DAY)
        with pytest.raises(AuthorizationError):
            escrow.claim_all(USER, LOSS)

    def test_unknown_account_rejected(self) -> None:
        escrow, _, _ = _deploy()
        with pytest.raises(AuthorizationError, match="Not a loss account"):
            escrow.claim_all(OTHER)

    def test_anyone_policy_pays_the_loss_account(self) -> None:
        escrow, clock, rail = _deploy(claim_policy=ClaimPolicy.ANYONE)
        _create(escrow)
        clock.set(START + 3 * DAY)
        receipt = escrow.claim_all(OTHER, LOSS)
        assert receipt.loss_account == LOSS
        assert rail.balance_of(LOSS) == DEPOSIT
        assert rail.balance_of(OTHER) == 10 * ETHER

    def test_removed_account_can_still_claim(self) -> None:
        escrow, clock, rail = _deploy()
        _create(escrow)
        escrow.remove_loss_account(OWNER, LOSS)
        clock.set(START + 3 * DAY)
        assert escrow.claim_all(LOSS).total_amount == DEPOSIT

    def test_registered_account_with_nothing(self) -> None:
        escrow, _, _ = _deploy()
        with pytest.raises(NothingToClaimError):
            escrow.claim_all(LOSS_2)


class TestClaimAtomicity:
    def test_rejected_transfer_settles_nothing(self) -> None:
        escrow, clock, rail = _deploy(settlement_mode=SettlementMode.DEFERRED)
        cid = _create(escrow)
        clock.set(START + 2 * DAY)
        rail.reject_transfers_to(LOSS)
        with pytest.raises(TransferError):
            escrow.claim_all(LOSS)
        commitment = escrow.get_commitment(cid)
        assert commitment.state == CommitmentState.ACTIVE
        assert not commitment.settled
        assert escrow.events(EventKind.CLAIMED) == []
        assert escrow.claimable_amount(LOSS) == DEPOSIT

    def test_unwritable_event_log_settles_nothing(self, tmp_path: Path) -> None:
        log_dir = tmp_path / "logs"
        log_dir.mkdir()
        escrow, clock, rail = _deploy(
            event_log=EventLog(storage_path=log_dir / "events.jsonl"),
            settlement_mode=SettlementMode.DEFERRED,
        )
        first = _create(escrow)
        second = _create(escrow, user=OTHER)
        clock.set(START + 2 * DAY)
        escrow.finalize_commitment(OTHER, first)
        events_before = len(escrow.events())
        shutil.rmtree(log_dir)

        with pytest.raises(OSError):
            escrow.claim_all(LOSS)

        assert not escrow.get_commitment(first).settled
        assert escrow.get_commitment(second).state == CommitmentState.ACTIVE
        assert rail.balance_of(LOSS) == 0
        assert escrow.claimable_amount(LOSS) == 2 * DEPOSIT
        assert len(escrow.events()) == events_before

    def test_paused_blocks_claim(self) -> None:
        escrow, clock, _ = _deploy()
        _create(escrow)
        clock.set(START + 3 * DAY)
        escrow.pause(OWNER)
        with pytest.raises(PausedError):
            escrow.claim_all(LOSS)
