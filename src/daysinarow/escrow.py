"""DaysInARow escrow facade.

Wires the ledger, registry, guards, rails and engines together and exposes
the whole contract surface in one object: the core commitment operations,
owner administration, and read-only views. Views never mutate; where a
commitment's stored state is stale (its owner has missed a day but nobody
has touched it yet) they report the lazily resolved state.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from daysinarow.accounts import normalize_address
from daysinarow.clock import Clock, SystemClock
from daysinarow.config import EscrowParams
from daysinarow.controls import Controls, require_owner
from daysinarow.custody.rail import FundsRail, InMemoryRail
from daysinarow.engine.day_window import resolve_state
from daysinarow.engine.fees import FeeSchedule
from daysinarow.engine.lifecycle import CommitmentLifecycle
from daysinarow.engine.settlement import ClaimEngine
from daysinarow.errors import ValidationError
from daysinarow.ledger import CommitmentLedger
from daysinarow.models.commitment import (
    CheckInResult,
    ClaimReceipt,
    Commitment,
    CommitmentState,
    LossAccount,
)
from daysinarow.persistence.event_log import EventKind, EventLog, EventRecord
from daysinarow.registry import LossAccountRegistry


class DaysInARow:
    """A time-gated commitment escrow.

    Usage:
        clock = ManualClock(start)
        escrow = DaysInARow(owner, loss_accounts=[charity], rake_basis_points=250,
                            clock=clock, rail=rail)
        cid = escrow.create_commitment(user, 7, charity, start, "Run", 10**18)
        clock.advance_days(1)
        escrow.check_in(user, cid)
    """

    def __init__(
        self,
        owner: str,
        loss_accounts: Iterable[str] = (),
        treasury: Optional[str] = None,
        rake_basis_points: int = 0,
        clock: Optional[Clock] = None,
        rail: Optional[FundsRail] = None,
        event_log: Optional[EventLog] = None,
        params: Optional[EscrowParams] = None,
        controls: Optional[Controls] = None,
    ) -> None:
        self._params = params or EscrowParams()
        self._controls = controls or Controls(owner)
        self._clock = clock or SystemClock()
        self._rail = rail if rail is not None else InMemoryRail()
        self._events = event_log if event_log is not None else EventLog()
        self._registry = LossAccountRegistry()
        now = self._clock.now()
        for address in loss_accounts:
            self._registry.add(address, now=now)
        self._fees = FeeSchedule(
            rake_basis_points,
            treasury if treasury is not None else self._controls.owner,
        )
        self._ledger = CommitmentLedger()
        self._lifecycle = CommitmentLifecycle(
            self._ledger,
            self._registry,
            self._controls,
            self._clock,
            self._rail,
            self._events,
            self._fees,
            self._params,
        )
        self._claims = ClaimEngine(
            self._ledger,
            self._registry,
            self._controls,
            self._clock,
            self._rail,
            self._events,
            self._params,
        )

    @classmethod
    def from_params(
        cls,
        params: EscrowParams,
        clock: Optional[Clock] = None,
        rail: Optional[FundsRail] = None,
        event_log: Optional[EventLog] = None,
        owner: Optional[str] = None,
    ) -> DaysInARow:
        """Deploy an escrow described by a parameter file."""
        deployer = owner or params.owner
        if deployer is None:
            raise ValidationError("owner", "An owner is required")
        return cls(
            owner=deployer,
            loss_accounts=params.loss_accounts,
            treasury=params.treasury,
            rake_basis_points=params.rake_basis_points,
            clock=clock,
            rail=rail,
            event_log=event_log,
            params=params,
        )

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    def create_commitment(
        self,
        caller: str,
        target_days: int,
        loss_account: str,
        start_date: int,
        title: str,
        deposit_value: int,
    ) -> int:
        return self._lifecycle.create_commitment(
            caller, target_days, loss_account, start_date, title, deposit_value
        )

    def check_in(self, caller: str, commitment_id: int) -> CheckInResult:
        return self._lifecycle.check_in(caller, commitment_id)

    def finalize_commitment(self, caller: str, commitment_id: int) -> Commitment:
        return self._lifecycle.finalize(caller, commitment_id)

    def claim_all(self, caller: str, loss_account: Optional[str] = None) -> ClaimReceipt:
        return self._claims.claim_all(caller, loss_account)

    # ------------------------------------------------------------------
    # Administration (owner only, allowed while paused)
    # ------------------------------------------------------------------

    def set_rake_basis_points(self, caller: str, rake_basis_points: int) -> None:
        """Change the rake for commitments created from now on."""
        require_owner(self._controls, caller)
        previous = self._fees.rake_basis_points
        self._fees.set_rate(rake_basis_points)
        self._emit_admin(
            EventKind.RAKE_UPDATED,
            {"previous": previous, "rake_basis_points": rake_basis_points},
        )

    def set_treasury(self, caller: str, treasury: str) -> None:
        require_owner(self._controls, caller)
        previous = self._fees.treasury
        self._fees.set_treasury(treasury)
        self._emit_admin(
            EventKind.TREASURY_UPDATED,
            {"previous": previous, "treasury": self._fees.treasury},
        )

    def add_loss_account(self, caller: str, address: str, label: str = "") -> LossAccount:
        require_owner(self._controls, caller)
        entry = self._registry.add(address, label=label, now=self._clock.now())
        self._emit_admin(
            EventKind.LOSS_ACCOUNT_ADDED,
            {"loss_account": entry.account_address, "label": label},
        )
        return entry

    def remove_loss_account(self, caller: str, address: str) -> LossAccount:
        """Deregister a loss account. Commitments already naming it keep it."""
        require_owner(self._controls, caller)
        entry = self._registry.remove(address)
        self._emit_admin(
            EventKind.LOSS_ACCOUNT_REMOVED, {"loss_account": entry.account_address}
        )
        return entry

    def pause(self, caller: str) -> None:
        self._controls.pause(caller)
        self._emit_admin(EventKind.PAUSED, {})

    def unpause(self, caller: str) -> None:
        self._controls.unpause(caller)
        self._emit_admin(EventKind.UNPAUSED, {})

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        previous = self._controls.owner
        owner = self._controls.transfer_ownership(caller, new_owner)
        self._events.emit(
            EventKind.OWNERSHIP_TRANSFERRED,
            actor_id=previous,
            payload={"previous": previous, "owner": owner},
            timestamp=self._clock.now(),
        )

    def _emit_admin(self, kind: EventKind, payload: dict) -> None:
        self._events.emit(
            kind,
            actor_id=self._controls.owner,
            payload=payload,
            timestamp=self._clock.now(),
        )

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def get_commitment(self, commitment_id: int) -> Commitment:
        """A copy of the stored record, exactly as last written."""
        return self._ledger.get(commitment_id)

    def commitment_state(self, commitment_id: int) -> CommitmentState:
        """The commitment's state as of now, with missed days applied."""
        commitment = self._ledger.get(commitment_id)
        return resolve_state(commitment, self._clock.now(), self._params.seconds_per_day)

    def get_user_commitments(self, user: str) -> List[int]:
        return self._ledger.ids_for_user(normalize_address(user, "user"))

    def commitments(self) -> List[Commitment]:
        return list(self._ledger)

    def get_loss_accounts(self) -> List[LossAccount]:
        return self._registry.list_accounts()

    def loss_account_at(self, index: int) -> str:
        return self._registry.at(index)

    def is_loss_account(self, address: str) -> bool:
        return self._registry.is_registered(address)

    def claimable_amount(self, loss_account: str) -> int:
        return self._claims.claimable_amount(loss_account)

    @property
    def rake_basis_points(self) -> int:
        return self._fees.rake_basis_points

    @property
    def treasury(self) -> str:
        return self._fees.treasury

    @property
    def owner(self) -> str:
        return self._controls.owner

    @property
    def paused(self) -> bool:
        return self._controls.is_paused()

    @property
    def params(self) -> EscrowParams:
        return self._params

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def rail(self) -> FundsRail:
        return self._rail

    @property
    def event_log(self) -> EventLog:
        return self._events

    def events(self, kind: Optional[EventKind] = None) -> List[EventRecord]:
        return self._events.events(kind)
