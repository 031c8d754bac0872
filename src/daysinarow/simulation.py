"""Scenario runner: replay a scripted sequence of escrow calls.

A scenario is a JSON document describing a deployment and a list of steps.
It runs against an in-memory rail and a manual clock, so whole multi-week
streaks play out instantly. A step that raises is recorded as failed, the
way a reverted transaction would be, and the run carries on.

    {
      "params": {"owner": "0x...", "loss_accounts": ["0x..."], "rake_basis_points": 250},
      "start_time": 1700006400,
      "balances": {"0x...": "5"},
      "steps": [
        {"action": "create", "caller": "0x...", "target_days": 7,
         "loss_account": "0x...", "title": "Run", "value": "1"},
        {"action": "advance", "days": 1},
        {"action": "check_in", "caller": "0x...", "commitment_id": 0}
      ]
    }

Amounts in `balances` and `value` are ether; everything inside the escrow
is wei. `start_date` defaults to the first midnight after the clock.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from web3 import Web3

from daysinarow.clock import ManualClock
from daysinarow.config import EscrowParams
from daysinarow.custody.rail import InMemoryRail
from daysinarow.engine.day_window import next_midnight
from daysinarow.errors import DaysInARowError
from daysinarow.escrow import DaysInARow
from daysinarow.persistence.event_log import EventLog


@dataclass
class StepResult:
    """Result of one scenario step."""
    index: int
    action: str
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class SimulationReport:
    steps: List[StepResult]
    commitments: List[dict[str, Any]]
    balances: Dict[str, str]
    events: List[dict[str, Any]]

    @property
    def failed_steps(self) -> List[StepResult]:
        return [s for s in self.steps if not s.success]

    def to_dict(self) -> dict[str, Any]:
        return {
            "steps": [
                {
                    "index": s.index,
                    "action": s.action,
                    "success": s.success,
                    "errors": s.errors,
                    "data": s.data,
                }
                for s in self.steps
            ],
            "commitments": self.commitments,
            "balances": self.balances,
            "events": self.events,
        }


def load_scenario(path: Path) -> dict[str, Any]:
    return json.loads(path.read_text(encoding="utf-8"))


def to_ether(wei: int) -> str:
    return str(Web3.from_wei(wei, "ether"))


class ScenarioRunner:
    """Deploys an escrow from a scenario and executes its steps."""

    def __init__(
        self,
        scenario: Mapping[str, Any],
        event_log: Optional[EventLog] = None,
    ) -> None:
        params = EscrowParams.from_mapping(scenario.get("params", {}))
        self.clock = ManualClock(int(scenario.get("start_time", 0)))
        self.rail = InMemoryRail()
        for address, amount in scenario.get("balances", {}).items():
            self.rail.fund(Web3.to_checksum_address(address), Web3.to_wei(amount, "ether"))
        self.escrow = DaysInARow.from_params(
            params, clock=self.clock, rail=self.rail, event_log=event_log
        )
        self._steps = list(scenario.get("steps", []))
        self._actions: Dict[str, Callable[[Mapping[str, Any]], dict[str, Any]]] = {
            "create": self._create,
            "check_in": self._check_in,
            "finalize": self._finalize,
            "claim": self._claim,
            "advance": self._advance,
            "set_rake": self._set_rake,
            "pause": self._pause,
            "unpause": self._unpause,
        }

    def run(self) -> SimulationReport:
        results = [self._run_step(i, step) for i, step in enumerate(self._steps)]
        return SimulationReport(
            steps=results,
            commitments=[c.to_dict() for c in self.escrow.commitments()],
            balances={k: to_ether(v) for k, v in self.rail.balances().items()},
            events=[e.to_dict() for e in self.escrow.events()],
        )

    def _run_step(self, index: int, step: Mapping[str, Any]) -> StepResult:
        action = str(step.get("action", ""))
        handler = self._actions.get(action)
        if handler is None:
            return StepResult(index, action, False, errors=[f"Unknown action: {action!r}"])
        try:
            data = handler(step)
        except KeyError as e:
            return StepResult(index, action, False, errors=[f"Missing field: {e.args[0]}"])
        except (DaysInARowError, ValueError) as e:
            return StepResult(index, action, False, errors=[f"{type(e).__name__}: {e}"])
        return StepResult(index, action, True, data=data)

    def _create(self, step: Mapping[str, Any]) -> dict[str, Any]:
        start_date = step.get("start_date")
        if start_date is None:
            start_date = next_midnight(self.clock.now())
        commitment_id = self.escrow.create_commitment(
            step["caller"],
            step["target_days"],
            step["loss_account"],
            start_date,
            step["title"],
            Web3.to_wei(step["value"], "ether"),
        )
        return {"commitment_id": commitment_id, "start_date": start_date}

    def _check_in(self, step: Mapping[str, Any]) -> dict[str, Any]:
        result = self.escrow.check_in(step["caller"], step["commitment_id"])
        return {
            "outcome": result.outcome.value,
            "state": result.state.value,
            "checked_in_days": result.checked_in_days,
            "day_index": result.day_index,
        }

    def _finalize(self, step: Mapping[str, Any]) -> dict[str, Any]:
        commitment = self.escrow.finalize_commitment(step["caller"], step["commitment_id"])
        return {"state": commitment.state.value}

    def _claim(self, step: Mapping[str, Any]) -> dict[str, Any]:
        receipt = self.escrow.claim_all(step["caller"], step.get("loss_account"))
        return {
            "loss_account": receipt.loss_account,
            "total": to_ether(receipt.total_amount),
            "commitment_ids": list(receipt.commitment_ids),
        }

    def _advance(self, step: Mapping[str, Any]) -> dict[str, Any]:
        days = int(step.get("days", 0))
        seconds = int(step.get("seconds", 0))
        self.clock.advance(days * self.escrow.params.seconds_per_day + seconds)
        return {"now": self.clock.now()}

    def _set_rake(self, step: Mapping[str, Any]) -> dict[str, Any]:
        self.escrow.set_rake_basis_points(step["caller"], step["rake_basis_points"])
        return {"rake_basis_points": self.escrow.rake_basis_points}

    def _pause(self, step: Mapping[str, Any]) -> dict[str, Any]:
        self.escrow.pause(step["caller"])
        return {"paused": True}

    def _unpause(self, step: Mapping[str, Any]) -> dict[str, Any]:
        self.escrow.unpause(step["caller"])
        return {"paused": False}


def run_scenario(
    scenario: Mapping[str, Any],
    event_log: Optional[EventLog] = None,
) -> SimulationReport:
    return ScenarioRunner(scenario, event_log=event_log).run()
