"""Tests for the scenario runner."""

from pathlib import Path

from daysinarow.persistence.event_log import EventLog
from daysinarow.simulation import load_scenario, run_scenario

SCENARIO = Path(__file__).resolve().parents[1] / "scenarios" / "seven_day_streak.json"

OWNER = "0x" + "1" * 40
TREASURY = "0x" + "2" * 40
LOSS = "0x" + "3" * 40
USER = "0x" + "5" * 40
OTHER = "0x" + "6" * 40
START_TIME = 1_700_000_000


def _scenario(steps: list[dict], **params) -> dict:
    base = {"owner": OWNER, "treasury": TREASURY, "loss_accounts": [LOSS]}
    base.update(params)
    return {
        "params": base,
        "start_time": START_TIME,
        "balances": {USER: "2"},
        "steps": steps,
    }


def _create_step(**overrides) -> dict:
    step = {
        "action": "create",
        "caller": USER,
        "target_days": 2,
        "loss_account": LOSS,
        "title": "Stretch",
        "value": "1",
    }
    step.update(overrides)
    return step


class TestShippedScenario:
    def test_seven_day_streak(self) -> None:
        report = run_scenario(load_scenario(SCENARIO))
        assert [s.index for s in report.failed_steps] == [5]
        assert report.failed_steps[0].errors[0].startswith("AlreadyCheckedInError")
        assert report.balances == {
            USER: "0.975",
            TREASURY: "0.05",
            LOSS: "0.975",
        }
        states = [c["state"] for c in report.commitments]
        assert states == ["completed", "failed"]

    def test_claim_step_reports_total(self) -> None:
        report = run_scenario(load_scenario(SCENARIO))
        claim = report.steps[-1]
        assert claim.success
        assert claim.data == {"loss_account": LOSS, "total": "0.975", "commitment_ids": [1]}


class TestRunner:
    def test_start_date_defaults_to_next_midnight(self) -> None:
        report = run_scenario(_scenario([_create_step()]))
        assert report.steps[0].data == {"commitment_id": 0, "start_date": 1_700_006_400}

    def test_failed_step_does_not_stop_the_run(self) -> None:
        report = run_scenario(_scenario([
            _create_step(title=""),
            _create_step(),
        ]))
        assert not report.steps[0].success
        assert report.steps[0].errors == ["ValidationError: title: Title cannot be empty"]
        assert report.steps[1].success

    def test_unknown_action(self) -> None:
        report = run_scenario(_scenario([{"action": "withdraw"}]))
        assert report.steps[0].errors == ["Unknown action: 'withdraw'"]

    def test_missing_field(self) -> None:
        report = run_scenario(_scenario([{"action": "check_in", "caller": USER}]))
        assert report.steps[0].errors == ["Missing field: commitment_id"]

    def test_pause_blocks_steps(self) -> None:
        report = run_scenario(_scenario([
            {"action": "pause", "caller": OWNER},
            _create_step(),
            {"action": "unpause", "caller": OWNER},
            _create_step(),
        ]))
        assert [s.success for s in report.steps] == [True, False, True, True]
        assert report.steps[1].errors[0].startswith("PausedError")

    def test_deferred_claim_and_rake_change(self) -> None:
        report = run_scenario(_scenario(
            [
                {"action": "set_rake", "caller": OWNER, "rake_basis_points": 1000},
                _create_step(),
                {"action": "advance", "days": 3},
                {"action": "finalize", "caller": OTHER, "commitment_id": 0},
                {"action": "claim", "caller": LOSS},
            ],
            settlement_mode="deferred",
        ))
        assert all(s.success for s in report.steps)
        assert report.steps[4].data["total"] == "0.9"
        assert report.balances == {USER: "1", TREASURY: "0.1", LOSS: "0.9"}

    def test_events_are_written_to_the_given_log(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        report = run_scenario(_scenario([_create_step()]), event_log=EventLog(storage_path=path))
        assert len(report.events) == 1
        assert EventLog(storage_path=path).count == 1
