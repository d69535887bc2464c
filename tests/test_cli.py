from __future__ import annotations

from pathlib import Path

import allure
from click.testing import CliRunner

from gather_pilot.contracts import write_json
from gather_pilot.main import gather_pilot

pytestmark = [
    allure.epic("CLI"),
    allure.feature("Plan, Run, History"),
]


def _plan(tmp_path: Path, **overrides: object) -> Path:
    payload: dict[str, object] = {
        "name": "Test plan",
        "materials": [
            {
                "item_id": 5111,
                "item_name": "Iron Ore",
                "quantity_needed": 3,
                "gather_type": "miner",
                "zone_id": 1,
            },
            {
                "item_id": 5380,
                "item_name": "Maple Log",
                "quantity_needed": 2,
                "gather_type": "botanist",
                "zone_id": 2,
            },
        ],
    }
    payload.update(overrides)
    path = tmp_path / "plan.json"
    write_json(path, payload)
    return path


def test_plan_command_prints_queue_and_route(tmp_path: Path, clean_env) -> None:
    result = CliRunner().invoke(gather_pilot, ["plan", "--plan-file", str(_plan(tmp_path))])

    assert result.exit_code == 0, result.output
    assert "Plan: Test plan" in result.output
    assert "Tasks: 2" in result.output
    assert "Iron Ore x3 (miner, zone 1) [Always available]" in result.output
    assert "Zone 1: 1 items" in result.output
    assert "Estimated teleport cost: 500 gil" in result.output


def test_plan_command_applies_owned_inventory_and_level_filter(tmp_path: Path, clean_env) -> None:
    plan_path = _plan(
        tmp_path,
        materials=[
            {
                "item_id": 5111,
                "item_name": "Iron Ore",
                "quantity_needed": 3,
                "gather_type": "miner",
                "node_level": 20,
            },
        ],
        proficiency={"miner": 10},
        inventory={"5111": 1},
    )

    result = CliRunner().invoke(gather_pilot, ["plan", "--plan-file", str(plan_path)])

    assert result.exit_code == 0, result.output
    assert "Iron Ore x2" in result.output
    assert "SKIP: Requires a level 20 node but miner level 10 only reaches level 10 nodes." in result.output


def test_plan_command_reports_nothing_to_gather(tmp_path: Path, clean_env) -> None:
    plan_path = _plan(tmp_path, inventory={"5111": 3, "5380": 2})

    result = CliRunner().invoke(gather_pilot, ["plan", "--plan-file", str(plan_path)])

    assert result.exit_code == 0, result.output
    assert "Nothing to gather." in result.output


def test_invalid_plan_is_a_click_error(tmp_path: Path, clean_env) -> None:
    path = tmp_path / "broken.json"
    write_json(path, {"materials": {}})

    result = CliRunner().invoke(gather_pilot, ["plan", "--plan-file", str(path)])

    assert result.exit_code == 1
    assert "plan.materials must be an array" in result.output


def test_run_then_inspect_history(tmp_path: Path, clean_env) -> None:
    db_path = tmp_path / "history.db"
    runner = CliRunner()

    run_result = runner.invoke(
        gather_pilot,
        ["run", "--plan-file", str(_plan(tmp_path)), "--db-path", str(db_path)],
    )

    assert run_result.exit_code == 0, run_result.output
    assert "State: completed" in run_result.output
    assert "tasks=2 completed=2 failed=0 skipped=0 pending=0 items=5" in run_result.output
    saved = [line for line in run_result.output.splitlines() if line.startswith("Session saved: ")]
    assert len(saved) == 1
    session_id = saved[0].removeprefix("Session saved: ")

    list_result = runner.invoke(gather_pilot, ["history", "list", "--db-path", str(db_path)])
    assert list_result.exit_code == 0, list_result.output
    assert "Sessions: 1" in list_result.output
    assert session_id in list_result.output

    inspect_result = runner.invoke(
        gather_pilot,
        ["history", "inspect", "--db-path", str(db_path), "--session-id", session_id],
    )
    assert inspect_result.exit_code == 0, inspect_result.output
    assert "Plan: Test plan" in inspect_result.output
    assert "Tasks: 2" in inspect_result.output
    assert "session_completed" in inspect_result.output


def test_run_with_full_inventory_fails_first_task(tmp_path: Path, clean_env) -> None:
    plan_path = _plan(
        tmp_path,
        simulation={"items": {"5111": {"disable_status": "Inventory is full"}}},
    )

    result = CliRunner().invoke(
        gather_pilot,
        ["run", "--plan-file", str(plan_path), "--no-save-history"],
    )

    assert result.exit_code == 0, result.output
    assert "completed=1 failed=1" in result.output
    assert "Session saved" not in result.output


def test_inspect_unknown_session(tmp_path: Path, clean_env) -> None:
    result = CliRunner().invoke(
        gather_pilot,
        ["history", "inspect", "--db-path", str(tmp_path / "history.db"), "--session-id", "missing"],
    )

    assert result.exit_code == 0, result.output
    assert "Session not found: missing" in result.output
