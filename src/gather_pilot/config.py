"""Runtime configuration for the gathering orchestrator and its collaborators."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(slots=True)
class GatheringSettings:
    """Per-task lifecycle settings."""

    retry_limit: int = 3
    quantity_buffer: int = 0
    poll_interval_seconds: float = 1.0
    soft_no_delta_timeout_seconds: float = 30.0
    hard_no_delta_timeout_seconds: float = 60.0
    stall_timeout_seconds: float = 300.0
    finish_node_timeout_seconds: float = 30.0
    inter_task_delay_seconds: float = 2.0
    include_auxiliary_storage: bool = True
    optimize_route: bool = True
    prioritize_timed_nodes: bool = True
    node_level_step: int = 5


@dataclass(slots=True)
class EscalationSettings:
    """Recovery ladder thresholds and intervals."""

    reenable_cooldown_seconds: float = 10.0
    max_reenable_failures: int = 3
    max_reset_cycles: int = 3
    command_reissue_interval_seconds: float = 30.0
    max_command_refusals: int = 3


@dataclass(slots=True)
class DependencySettings:
    """Dependency readiness monitoring."""

    monitor_enabled: bool = True
    poll_interval_seconds: float = 5.0
    wait_timeout_seconds: float = 120.0


@dataclass(slots=True)
class HistorySettings:
    """Session history storage."""

    db_path: Path = Path(".gather_pilot.db")
    busy_timeout_ms: int = 5_000


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    gathering: GatheringSettings = field(default_factory=GatheringSettings)
    escalation: EscalationSettings = field(default_factory=EscalationSettings)
    dependency: DependencySettings = field(default_factory=DependencySettings)
    history: HistorySettings = field(default_factory=HistorySettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with defaults matching the stock client."""

        return cls(
            gathering=GatheringSettings(
                retry_limit=int(os.getenv("GATHER_PILOT_RETRY_LIMIT", "3")),
                quantity_buffer=int(os.getenv("GATHER_PILOT_QUANTITY_BUFFER", "0")),
                poll_interval_seconds=float(
                    os.getenv("GATHER_PILOT_POLL_INTERVAL_SECONDS", "1.0"),
                ),
                soft_no_delta_timeout_seconds=float(
                    os.getenv("GATHER_PILOT_SOFT_NO_DELTA_TIMEOUT_SECONDS", "30"),
                ),
                hard_no_delta_timeout_seconds=float(
                    os.getenv("GATHER_PILOT_HARD_NO_DELTA_TIMEOUT_SECONDS", "60"),
                ),
                stall_timeout_seconds=float(
                    os.getenv("GATHER_PILOT_STALL_TIMEOUT_SECONDS", "300"),
                ),
                finish_node_timeout_seconds=float(
                    os.getenv("GATHER_PILOT_FINISH_NODE_TIMEOUT_SECONDS", "30"),
                ),
                inter_task_delay_seconds=float(
                    os.getenv("GATHER_PILOT_INTER_TASK_DELAY_SECONDS", "2.0"),
                ),
                include_auxiliary_storage=_env_bool(
                    "GATHER_PILOT_INCLUDE_AUXILIARY_STORAGE",
                    default=True,
                ),
                optimize_route=_env_bool("GATHER_PILOT_OPTIMIZE_ROUTE", default=True),
                prioritize_timed_nodes=_env_bool(
                    "GATHER_PILOT_PRIORITIZE_TIMED_NODES",
                    default=True,
                ),
                node_level_step=int(os.getenv("GATHER_PILOT_NODE_LEVEL_STEP", "5")),
            ),
            escalation=EscalationSettings(
                reenable_cooldown_seconds=float(
                    os.getenv("GATHER_PILOT_REENABLE_COOLDOWN_SECONDS", "10"),
                ),
                max_reenable_failures=int(os.getenv("GATHER_PILOT_MAX_REENABLE_FAILURES", "3")),
                max_reset_cycles=int(os.getenv("GATHER_PILOT_MAX_RESET_CYCLES", "3")),
                command_reissue_interval_seconds=float(
                    os.getenv("GATHER_PILOT_COMMAND_REISSUE_INTERVAL_SECONDS", "30"),
                ),
                max_command_refusals=int(os.getenv("GATHER_PILOT_MAX_COMMAND_REFUSALS", "3")),
            ),
            dependency=DependencySettings(
                monitor_enabled=_env_bool("GATHER_PILOT_MONITOR_DEPENDENCIES", default=True),
                poll_interval_seconds=float(
                    os.getenv("GATHER_PILOT_DEPENDENCY_POLL_INTERVAL_SECONDS", "5"),
                ),
                wait_timeout_seconds=float(
                    os.getenv("GATHER_PILOT_DEPENDENCY_WAIT_TIMEOUT_SECONDS", "120"),
                ),
            ),
            history=HistorySettings(
                db_path=db_path or Path(os.getenv("GATHER_PILOT_DB_PATH", ".gather_pilot.db")),
                busy_timeout_ms=int(os.getenv("GATHER_PILOT_DB_BUSY_TIMEOUT_MS", "5000")),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error if any threshold is out of range."""

        gathering = self.gathering
        if gathering.retry_limit < 0:
            raise ValueError("GATHER_PILOT_RETRY_LIMIT must be >= 0.")
        if gathering.quantity_buffer < 0:
            raise ValueError("GATHER_PILOT_QUANTITY_BUFFER must be >= 0.")
        if gathering.poll_interval_seconds <= 0:
            raise ValueError("GATHER_PILOT_POLL_INTERVAL_SECONDS must be > 0.")
        if gathering.soft_no_delta_timeout_seconds <= 0:
            raise ValueError("GATHER_PILOT_SOFT_NO_DELTA_TIMEOUT_SECONDS must be > 0.")
        if gathering.hard_no_delta_timeout_seconds <= gathering.soft_no_delta_timeout_seconds:
            raise ValueError(
                "GATHER_PILOT_HARD_NO_DELTA_TIMEOUT_SECONDS must be greater than "
                "GATHER_PILOT_SOFT_NO_DELTA_TIMEOUT_SECONDS.",
            )
        if gathering.stall_timeout_seconds <= 0:
            raise ValueError("GATHER_PILOT_STALL_TIMEOUT_SECONDS must be > 0.")
        if gathering.finish_node_timeout_seconds < 0:
            raise ValueError("GATHER_PILOT_FINISH_NODE_TIMEOUT_SECONDS must be >= 0.")
        if gathering.inter_task_delay_seconds < 0:
            raise ValueError("GATHER_PILOT_INTER_TASK_DELAY_SECONDS must be >= 0.")
        if gathering.node_level_step <= 0:
            raise ValueError("GATHER_PILOT_NODE_LEVEL_STEP must be a positive integer.")

        escalation = self.escalation
        if escalation.reenable_cooldown_seconds < 0:
            raise ValueError("GATHER_PILOT_REENABLE_COOLDOWN_SECONDS must be >= 0.")
        if escalation.max_reenable_failures < 0:
            raise ValueError("GATHER_PILOT_MAX_REENABLE_FAILURES must be >= 0.")
        if escalation.max_reset_cycles < 0:
            raise ValueError("GATHER_PILOT_MAX_RESET_CYCLES must be >= 0.")
        if escalation.command_reissue_interval_seconds <= 0:
            raise ValueError("GATHER_PILOT_COMMAND_REISSUE_INTERVAL_SECONDS must be > 0.")
        if escalation.max_command_refusals < 0:
            raise ValueError("GATHER_PILOT_MAX_COMMAND_REFUSALS must be >= 0.")

        if self.dependency.poll_interval_seconds < 0:
            raise ValueError("GATHER_PILOT_DEPENDENCY_POLL_INTERVAL_SECONDS must be >= 0.")
        if self.dependency.wait_timeout_seconds < 0:
            raise ValueError("GATHER_PILOT_DEPENDENCY_WAIT_TIMEOUT_SECONDS must be >= 0.")
        if self.history.busy_timeout_ms <= 0:
            raise ValueError("GATHER_PILOT_DB_BUSY_TIMEOUT_MS must be > 0.")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
