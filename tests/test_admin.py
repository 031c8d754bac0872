"""Tests for owner administration, the pause switch, and read-only views."""

import pytest

from daysinarow.clock import ManualClock
from daysinarow.config import EscrowParams
from daysinarow.custody.rail import InMemoryRail
from daysinarow.errors import (
    AuthorizationError,
    PausedError,
    UnknownCommitmentError,
    ValidationError,
)
from daysinarow.escrow import DaysInARow
from daysinarow.models.commitment import CommitmentState
from daysinarow.persistence.event_log import EventKind

OWNER = "0x" + "1" * 40
TREASURY = "0x" + "2" * 40
LOSS = "0x" + "3" * 40
LOSS_2 = "0x" + "4" * 40
USER = "0x" + "5" * 40
OTHER = "0x" + "6" * 40
START = 1_700_006_400
DAY = 86_400
ETHER = 10**18


def _deploy() -> tuple[DaysInARow, ManualClock, InMemoryRail]:
    clock = ManualClock(START - 3600)
    rail = InMemoryRail()
    rail.fund(USER, 10 * ETHER)
    escrow = DaysInARow(
        OWNER,
        loss_accounts=[LOSS],
        treasury=TREASURY,
        rake_basis_points=250,
        clock=clock,
        rail=rail,
    )
    return escrow, clock, rail


class TestRakeAndTreasury:
    def test_set_rake(self) -> None:
        escrow, _, _ = _deploy()
        escrow.set_rake_basis_points(OWNER, 1000)
        assert escrow.rake_basis_points == 1000
        [event] = escrow.events(EventKind.RAKE_UPDATED)
        assert event.payload == {"previous": 250, "rake_basis_points": 1000}

    @pytest.mark.parametrize("bps", [-1, 10_001, True])
    def test_rake_out_of_range(self, bps) -> None:
        escrow, _, _ = _deploy()
        with pytest.raises(ValidationError):
            escrow.set_rake_basis_points(OWNER, bps)
        assert escrow.rake_basis_points == 250

    def test_full_rake_allowed(self) -> None:
        escrow, _, rail = _deploy()
        escrow.set_rake_basis_points(OWNER, 10_000)
        cid = escrow.create_commitment(USER, 1, LOSS, START, "All in", ETHER)
        assert escrow.get_commitment(cid).deposit_amount == 0
        assert rail.balance_of(TREASURY) == ETHER

    def test_non_owner_cannot_set_rake(self) -> None:
        escrow, _, _ = _deploy()
        with pytest.raises(AuthorizationError, match="caller is not the owner"):
            escrow.set_rake_basis_points(USER, 0)

    def test_set_treasury_redirects_fees(self) -> None:
        escrow, _, rail = _deploy()
        escrow.set_treasury(OWNER, OTHER)
        assert escrow.treasury == OTHER
        escrow.create_commitment(USER, 1, LOSS, START, "Walk", ETHER)
        assert rail.balance_of(OTHER) == 25 * 10**15
        assert rail.balance_of(TREASURY) == 0

    def test_treasury_defaults_to_owner(self) -> None:
        escrow = DaysInARow(OWNER, clock=ManualClock(START))
        assert escrow.treasury == OWNER

    def test_invalid_treasury(self) -> None:
        escrow, _, _ = _deploy()
        with pytest.raises(ValidationError) as exc:
            escrow.set_treasury(OWNER, "0x1234")
        assert exc.value.field == "treasury"


class TestLossAccounts:
    def test_add_and_list(self) -> None:
        escrow, _, _ = _deploy()
        entry = escrow.add_loss_account(OWNER, LOSS_2, label="Charity")
        assert entry.label == "Charity"
        assert entry.added_at == START - 3600
        assert [a.account_address for a in escrow.get_loss_accounts()] == [LOSS, LOSS_2]
        assert escrow.loss_account_at(1) == LOSS_2
        assert escrow.is_loss_account(LOSS_2)
        assert len(escrow.events(EventKind.LOSS_ACCOUNT_ADDED)) == 1

    def test_duplicate_rejected(self) -> None:
        escrow, _, _ = _deploy()
        with pytest.raises(ValidationError, match="already registered"):
            escrow.add_loss_account(OWNER, LOSS)

    def test_remove_unknown_rejected(self) -> None:
        escrow, _, _ = _deploy()
        with pytest.raises(ValidationError, match="Unknown loss account"):
            escrow.remove_loss_account(OWNER, LOSS_2)

    def test_remove_keeps_existing_commitments(self) -> None:
        escrow, _, _ = _deploy()
        cid = escrow.create_commitment(USER, 3, LOSS, START, "Swim", ETHER)
        escrow.remove_loss_account(OWNER, LOSS)
        assert not escrow.is_loss_account(LOSS)
        assert escrow.get_commitment(cid).loss_account == LOSS
        assert len(escrow.events(EventKind.LOSS_ACCOUNT_REMOVED)) == 1

    def test_index_out_of_range(self) -> None:
        escrow, _, _ = _deploy()
        with pytest.raises(ValidationError, match="Invalid loss account index"):
            escrow.loss_account_at(5)

    def test_non_owner_cannot_manage(self) -> None:
        escrow, _, _ = _deploy()
        with pytest.raises(AuthorizationError):
            escrow.add_loss_account(USER, LOSS_2)
        with pytest.raises(AuthorizationError):
            escrow.remove_loss_account(USER, LOSS)


class TestPause:
    def test_pause_blocks_core_operations(self) -> None:
        escrow, clock, _ = _deploy()
        cid = escrow.create_commitment(USER, 3, LOSS, START, "Swim", ETHER)
        escrow.pause(OWNER)
        assert escrow.paused
        clock.set(START)
        with pytest.raises(PausedError):
            escrow.create_commitment(USER, 3, LOSS, START, "Swim", ETHER)
        with pytest.raises(PausedError):
            escrow.check_in(USER, cid)
        with pytest.raises(PausedError):
            escrow.finalize_commitment(USER, cid)
        with pytest.raises(PausedError):
            escrow.claim_all(LOSS)

    def test_pause_checked_before_state_is_read(self) -> None:
        escrow, _, _ = _deploy()
        escrow.pause(OWNER)
        with pytest.raises(PausedError):
            escrow.check_in(USER, 99)
        with pytest.raises(PausedError):
            escrow.create_commitment(USER, 0, "bad", -1, "", 0)

    def test_admin_works_while_paused(self) -> None:
        escrow, _, _ = _deploy()
        escrow.pause(OWNER)
        escrow.set_rake_basis_points(OWNER, 100)
        escrow.add_loss_account(OWNER, LOSS_2)
        escrow.unpause(OWNER)
        assert not escrow.paused
        assert escrow.rake_basis_points == 100

    def test_views_work_while_paused(self) -> None:
        escrow, _, _ = _deploy()
        cid = escrow.create_commitment(USER, 3, LOSS, START, "Swim", ETHER)
        escrow.pause(OWNER)
        assert escrow.commitment_state(cid) == CommitmentState.ACTIVE
        assert escrow.get_user_commitments(USER) == [cid]

    def test_double_pause_and_unpause_rejected(self) -> None:
        escrow, _, _ = _deploy()
        with pytest.raises(ValidationError):
            escrow.unpause(OWNER)
        escrow.pause(OWNER)
        with pytest.raises(PausedError):
            escrow.pause(OWNER)

    def test_only_owner_pauses(self) -> None:
        escrow, _, _ = _deploy()
        with pytest.raises(AuthorizationError):
            escrow.pause(USER)
        assert not escrow.paused

    def test_pause_events(self) -> None:
        escrow, _, _ = _deploy()
        escrow.pause(OWNER)
        escrow.unpause(OWNER)
        kinds = [e.event_kind for e in escrow.events()]
        assert kinds == [EventKind.PAUSED, EventKind.UNPAUSED]


class TestOwnership:
    def test_transfer_ownership(self) -> None:
        escrow, _, _ = _deploy()
        escrow.transfer_ownership(OWNER, OTHER)
        assert escrow.owner == OTHER
        with pytest.raises(AuthorizationError):
            escrow.set_rake_basis_points(OWNER, 0)
        escrow.set_rake_basis_points(OTHER, 0)
        [event] = escrow.events(EventKind.OWNERSHIP_TRANSFERRED)
        assert event.actor_id == OWNER
        assert event.payload == {"previous": OWNER, "owner": OTHER}

    def test_invalid_new_owner(self) -> None:
        escrow, _, _ = _deploy()
        with pytest.raises(ValidationError):
            escrow.transfer_ownership(OWNER, "nobody")
        assert escrow.owner == OWNER


class TestViews:
    def test_get_commitment_returns_a_copy(self) -> None:
        escrow, _, _ = _deploy()
        cid = escrow.create_commitment(USER, 3, LOSS, START, "Swim", ETHER)
        copy = escrow.get_commitment(cid)
        copy.checked_in_days = 3
        assert escrow.get_commitment(cid).checked_in_days == 0

    def test_unknown_commitment(self) -> None:
        escrow, _, _ = _deploy()
        with pytest.raises(UnknownCommitmentError):
            escrow.get_commitment(0)
        with pytest.raises(UnknownCommitmentError):
            escrow.commitment_state(-1)

    def test_user_without_commitments(self) -> None:
        escrow, _, _ = _deploy()
        assert escrow.get_user_commitments(OTHER) == []

    def test_from_params(self) -> None:
        params = EscrowParams(
            rake_basis_points=100,
            owner=OWNER,
            treasury=TREASURY,
            loss_accounts=(LOSS, LOSS_2),
        )
        escrow = DaysInARow.from_params(params, clock=ManualClock(START))
        assert escrow.owner == OWNER
        assert escrow.rake_basis_points == 100
        assert escrow.loss_account_at(1) == LOSS_2
        assert escrow.params is params

    def test_from_params_requires_owner(self) -> None:
        with pytest.raises(ValidationError):
            DaysInARow.from_params(EscrowParams(), clock=ManualClock(START))
