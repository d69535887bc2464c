"""Session history repository backed by SQLModel + SQLite."""

from __future__ import annotations

import json
from pathlib import Path

from sqlmodel import Session, SQLModel, col, select

from gather_pilot.gathering.models import OrchestratorState, SessionSummary, TaskStatus
from gather_pilot.history.common import build_sqlite_engine, to_utc_aware
from gather_pilot.history.models import (
    GatherEventView,
    GatherSessionDetails,
    GatherSessionView,
    GatherTaskView,
    SessionReport,
)
from gather_pilot.history.sqlmodel_models import GatherEventRow, GatherSessionRow, GatherTaskRow


class SessionHistoryRepository:
    """Persistence facade for finished gathering sessions."""

    def __init__(self, db_path: Path, *, busy_timeout_ms: int = 5_000) -> None:
        self.db_path = db_path
        self.engine = build_sqlite_engine(db_path=db_path, busy_timeout_ms=busy_timeout_ms)

    def close(self) -> None:
        """Close underlying DB resources."""

        self.engine.dispose()

    def init_schema(self) -> None:
        """Create history tables if missing."""

        SQLModel.metadata.create_all(
            self.engine,
            tables=[
                GatherSessionRow.__table__,  # type: ignore[attr-defined]
                GatherTaskRow.__table__,  # type: ignore[attr-defined]
                GatherEventRow.__table__,  # type: ignore[attr-defined]
            ],
        )

    def save_session(self, report: SessionReport) -> str:
        """Store a finished run with its tasks and events; returns the session id."""

        summary = report.summary
        first_event_at = report.events[0].at if report.events else 0.0
        with Session(self.engine) as session:
            session.add(
                GatherSessionRow(
                    session_id=report.session_id,
                    plan_name=report.plan_name,
                    state=report.state.value,
                    status_message=report.status_message,
                    started_at=report.started_at,
                    finished_at=report.finished_at,
                    total_tasks=summary.total_tasks,
                    completed=summary.completed,
                    failed=summary.failed,
                    skipped=summary.skipped,
                    pending=summary.pending,
                    total_items_gathered=summary.total_items_gathered,
                    total_retries=summary.total_retries,
                    elapsed_seconds=summary.elapsed_seconds,
                ),
            )
            # Parent row must exist before children under foreign_keys = ON.
            session.flush()
            for position, task in enumerate(report.tasks):
                session.add(
                    GatherTaskRow(
                        session_id=report.session_id,
                        position=position,
                        item_id=task.item_id,
                        item_name=task.item_name,
                        gather_type=task.gather_type.value,
                        status=task.status.value,
                        quantity_needed=task.quantity_needed,
                        quantity_observed=task.quantity_observed,
                        retry_count=task.retry_count,
                        error_message=task.error_message,
                    ),
                )
            for sequence, event in enumerate(report.events):
                session.add(
                    GatherEventRow(
                        session_id=report.session_id,
                        sequence=sequence,
                        event_type=event.event_type,
                        offset_seconds=event.at - first_event_at,
                        item_id=event.item_id,
                        status_from=event.status_from.value if event.status_from is not None else None,
                        status_to=event.status_to.value if event.status_to is not None else None,
                        details_json=json.dumps(event.details, ensure_ascii=False, sort_keys=True, default=str)
                        if event.details
                        else None,
                    ),
                )
            session.commit()
        return report.session_id

    def list_sessions(self, *, limit: int = 20) -> list[GatherSessionView]:
        """Most recent sessions first."""

        with Session(self.engine) as session:
            rows = session.exec(
                select(GatherSessionRow)
                .order_by(col(GatherSessionRow.started_at).desc())
                .limit(limit),
            ).all()
        return [_to_session_view(row) for row in rows]

    def get_session_details(self, *, session_id: str) -> GatherSessionDetails | None:
        """Return one session with its tasks and event stream."""

        with Session(self.engine) as session:
            row = session.exec(
                select(GatherSessionRow).where(GatherSessionRow.session_id == session_id),
            ).one_or_none()
            if row is None:
                return None
            task_rows = session.exec(
                select(GatherTaskRow)
                .where(GatherTaskRow.session_id == session_id)
                .order_by(col(GatherTaskRow.position).asc()),
            ).all()
            event_rows = session.exec(
                select(GatherEventRow)
                .where(GatherEventRow.session_id == session_id)
                .order_by(col(GatherEventRow.sequence).asc()),
            ).all()
            view = _to_session_view(row)

        tasks = [
            GatherTaskView(
                position=task.position,
                item_id=task.item_id,
                item_name=task.item_name,
                gather_type=task.gather_type,
                status=TaskStatus(task.status),
                quantity_needed=task.quantity_needed,
                quantity_observed=task.quantity_observed,
                retry_count=task.retry_count,
                error_message=task.error_message,
            )
            for task in task_rows
        ]
        events: list[GatherEventView] = []
        for event in event_rows:
            details = {}
            if event.details_json:
                parsed = json.loads(event.details_json)
                if isinstance(parsed, dict):
                    details = parsed
            events.append(
                GatherEventView(
                    sequence=event.sequence,
                    event_type=event.event_type,
                    offset_seconds=event.offset_seconds,
                    item_id=event.item_id,
                    status_from=TaskStatus(event.status_from) if event.status_from is not None else None,
                    status_to=TaskStatus(event.status_to) if event.status_to is not None else None,
                    details=details,
                ),
            )
        return GatherSessionDetails(session=view, tasks=tasks, events=events)


def _to_session_view(row: GatherSessionRow) -> GatherSessionView:
    return GatherSessionView(
        session_id=row.session_id,
        plan_name=row.plan_name,
        state=OrchestratorState(row.state),
        status_message=row.status_message,
        started_at=to_utc_aware(row.started_at),
        finished_at=to_utc_aware(row.finished_at),
        summary=SessionSummary(
            total_tasks=row.total_tasks,
            completed=row.completed,
            failed=row.failed,
            skipped=row.skipped,
            pending=row.pending,
            total_items_gathered=row.total_items_gathered,
            total_retries=row.total_retries,
            elapsed_seconds=row.elapsed_seconds,
        ),
    )
