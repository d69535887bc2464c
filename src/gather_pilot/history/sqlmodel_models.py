"""SQLModel ORM tables for session history."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Text
from sqlmodel import Field, SQLModel


class GatherSessionRow(SQLModel, table=True):
    __tablename__ = "gather_sessions"  # type: ignore[bad-override]

    session_id: str = Field(primary_key=True)
    plan_name: str = Field(index=True)
    state: str = Field(index=True)
    status_message: str = ""
    started_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False, index=True))
    finished_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    total_tasks: int = 0
    completed: int = 0
    failed: int = 0
    skipped: int = 0
    pending: int = 0
    total_items_gathered: int = 0
    total_retries: int = 0
    elapsed_seconds: float = 0.0


class GatherTaskRow(SQLModel, table=True):
    __tablename__ = "gather_tasks"  # type: ignore[bad-override]
    __table_args__ = (Index("idx_gather_tasks_session_position", "session_id", "position"),)

    id: int | None = Field(default=None, primary_key=True)
    session_id: str = Field(
        sa_column=Column(
            ForeignKey("gather_sessions.session_id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    position: int
    item_id: int = Field(index=True)
    item_name: str
    gather_type: str
    status: str = Field(index=True)
    quantity_needed: int
    quantity_observed: int
    retry_count: int = 0
    error_message: str | None = Field(default=None, sa_column=Column(Text))


class GatherEventRow(SQLModel, table=True):
    __tablename__ = "gather_events"  # type: ignore[bad-override]
    __table_args__ = (Index("idx_gather_events_session_seq", "session_id", "sequence"),)

    id: int | None = Field(default=None, primary_key=True)
    session_id: str = Field(
        sa_column=Column(
            ForeignKey("gather_sessions.session_id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    sequence: int
    event_type: str = Field(index=True)
    offset_seconds: float = 0.0
    item_id: int | None = Field(default=None, index=True)
    status_from: str | None = None
    status_to: str | None = None
    details_json: str | None = Field(default=None, sa_column=Column(Text))
