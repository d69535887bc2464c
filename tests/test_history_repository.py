from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path

import allure

from gather_pilot.gathering.models import (
    GatherTask,
    GatherType,
    OrchestratorEvent,
    OrchestratorState,
    SessionSummary,
    TaskStatus,
)
from gather_pilot.history.models import SessionReport
from gather_pilot.history.repository import SessionHistoryRepository

pytestmark = [
    allure.epic("History"),
    allure.feature("Session Repository"),
]


def _report(plan_name: str, started_at: datetime) -> SessionReport:
    task = GatherTask(
        item_id=5111,
        item_name="Iron Ore",
        quantity_needed=5,
        quantity_observed=5,
        status=TaskStatus.COMPLETED,
        gather_type=GatherType.MINER,
    )
    failed = GatherTask(
        item_id=5380,
        item_name="Maple Log",
        quantity_needed=3,
        status=TaskStatus.FAILED,
        retry_count=4,
        error_message="Gave up after 3 retries.",
        gather_type=GatherType.BOTANIST,
    )
    return SessionReport(
        plan_name=plan_name,
        state=OrchestratorState.COMPLETED,
        status_message="All gathering tasks complete (1 failed, 0 skipped).",
        started_at=started_at,
        finished_at=started_at + timedelta(minutes=5),
        summary=SessionSummary(
            total_tasks=2,
            completed=1,
            failed=1,
            total_items_gathered=5,
            total_retries=4,
            elapsed_seconds=300.0,
        ),
        tasks=[task, failed],
        events=[
            OrchestratorEvent(event_type="session_started", at=100.0, details={"tasks": 2}),
            OrchestratorEvent(
                event_type="task_completed",
                at=112.0,
                item_id=5111,
                status_from=TaskStatus.IN_PROGRESS,
                status_to=TaskStatus.COMPLETED,
            ),
        ],
    )


def _repository(tmp_path: Path) -> SessionHistoryRepository:
    repository = SessionHistoryRepository(db_path=tmp_path / "history.db")
    repository.init_schema()
    return repository


def test_save_and_inspect_session(tmp_path: Path) -> None:
    repository = _repository(tmp_path)
    try:
        session_id = repository.save_session(_report("Weekly ores", datetime(2026, 1, 2, 3, 4, tzinfo=UTC)))
        details = repository.get_session_details(session_id=session_id)
    finally:
        repository.close()

    assert details is not None
    assert details.session.plan_name == "Weekly ores"
    assert details.session.state is OrchestratorState.COMPLETED
    assert details.session.summary.failed == 1
    assert details.session.started_at == datetime(2026, 1, 2, 3, 4, tzinfo=UTC)
    assert [task.item_name for task in details.tasks] == ["Iron Ore", "Maple Log"]
    assert details.tasks[1].status is TaskStatus.FAILED
    assert details.tasks[1].error_message == "Gave up after 3 retries."
    assert [event.offset_seconds for event in details.events] == [0.0, 12.0]
    assert details.events[0].details == {"tasks": 2}
    assert details.events[1].status_to is TaskStatus.COMPLETED


def test_list_sessions_newest_first_with_limit(tmp_path: Path) -> None:
    repository = _repository(tmp_path)
    base = datetime(2026, 3, 1, tzinfo=UTC)
    try:
        for offset, name in enumerate(["first", "second", "third"]):
            repository.save_session(_report(name, base + timedelta(hours=offset)))
        sessions = repository.list_sessions(limit=2)
    finally:
        repository.close()

    assert [session.plan_name for session in sessions] == ["third", "second"]


def test_missing_session_returns_none(tmp_path: Path) -> None:
    repository = _repository(tmp_path)
    try:
        assert repository.get_session_details(session_id="nope") is None
    finally:
        repository.close()
