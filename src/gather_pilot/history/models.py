"""Typed records written to and read from the history store."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from gather_pilot.gathering.models import (
    GatherTask,
    OrchestratorEvent,
    OrchestratorState,
    SessionSummary,
    TaskStatus,
)


@dataclass(slots=True)
class SessionReport:
    """Everything persisted about one finished run."""

    plan_name: str
    state: OrchestratorState
    status_message: str
    started_at: datetime
    finished_at: datetime
    summary: SessionSummary
    tasks: list[GatherTask]
    events: list[OrchestratorEvent]
    session_id: str = field(default_factory=lambda: uuid4().hex)


@dataclass(slots=True)
class GatherSessionView:
    """Read model for one stored session."""

    session_id: str
    plan_name: str
    state: OrchestratorState
    status_message: str
    started_at: datetime
    finished_at: datetime
    summary: SessionSummary


@dataclass(slots=True)
class GatherTaskView:
    position: int
    item_id: int
    item_name: str
    gather_type: str
    status: TaskStatus
    quantity_needed: int
    quantity_observed: int
    retry_count: int
    error_message: str | None


@dataclass(slots=True)
class GatherEventView:
    sequence: int
    event_type: str
    offset_seconds: float
    item_id: int | None
    status_from: TaskStatus | None
    status_to: TaskStatus | None
    details: dict[str, Any]


@dataclass(slots=True)
class GatherSessionDetails:
    """Session with its task rows and event stream."""

    session: GatherSessionView
    tasks: list[GatherTaskView]
    events: list[GatherEventView]
