"""Domain models for the gathering task queue and orchestrator session."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class GatherType(str, Enum):
    """Gathering class required for a material."""

    NONE = "none"
    MINER = "miner"
    BOTANIST = "botanist"
    FISHER = "fisher"
    UNKNOWN = "unknown"


class TaskStatus(str, Enum):
    """Per-task lifecycle states."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


TERMINAL_TASK_STATUSES = frozenset(
    {TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.SKIPPED},
)


class OrchestratorState(str, Enum):
    """Queue-level orchestrator states."""

    IDLE = "idle"
    READY = "ready"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


class GatherMode(str, Enum):
    """How the engine is being driven for the active task."""

    LIST_DRIVEN = "list_driven"
    COMMAND_ONLY = "command_only"


class DisableReason(str, Enum):
    """Best-effort classification of why the engine disabled itself."""

    UNKNOWN = "unknown"
    OPERATOR_STOP = "operator_stop"
    CONTAINER_FULL = "container_full"
    MISSING_PREREQUISITE = "missing_prerequisite"
    REPEATED_TARGET_FAILURE = "repeated_target_failure"
    NOTHING_TO_DO = "nothing_to_do"
    NO_VALID_TARGETS = "no_valid_targets"
    PATHING_FAILURE = "pathing_failure"
    TIMEOUT = "timeout"
    TELEPORT_FAILED = "teleport_failed"
    INTERNAL_ERROR = "internal_error"


class FailureClass(str, Enum):
    """Handled failure categories reported in task events."""

    OPERATOR_STOP = "operator_stop"
    TERMINAL_UNRECOVERABLE = "terminal_unrecoverable"
    OPAQUE_DISABLE = "opaque_disable"
    STALL = "stall"
    LIST_INJECTION = "list_injection"


class HintKind(str, Enum):
    """Fire-and-forget nudges understood by the engine."""

    GATHER = "gather"
    GATHER_MINER = "gather_miner"
    GATHER_BOTANIST = "gather_botanist"
    COLLECTABLE_START = "collectable_start"
    COLLECTABLE_STOP = "collectable_stop"


@dataclass(slots=True)
class MaterialRequirement:
    """One resolved material with its owned/needed counts."""

    item_id: int
    item_name: str
    quantity_needed: int
    quantity_owned: int = 0
    gather_type: GatherType = GatherType.NONE
    is_collectable: bool = False
    node_level: int | None = None
    zone_id: int = 0
    is_timed_node: bool = False
    spawn_hours: tuple[int, ...] = ()
    is_reduction_source: bool = False

    @property
    def quantity_remaining(self) -> int:
        return max(0, self.quantity_needed - self.quantity_owned)


@dataclass(slots=True)
class GatherTask:
    """A single acquisition goal driven through the engine."""

    item_id: int
    item_name: str
    quantity_needed: int
    quantity_observed: int = 0
    status: TaskStatus = TaskStatus.PENDING
    retry_count: int = 0
    error_message: str | None = None
    gather_type: GatherType = GatherType.NONE
    is_collectable: bool = False
    node_level: int | None = None
    zone_id: int = 0
    is_timed_node: bool = False
    spawn_hours: tuple[int, ...] = ()
    is_reduction_source: bool = False

    @property
    def quantity_remaining(self) -> int:
        return max(0, self.quantity_needed - self.quantity_observed)

    @property
    def is_complete(self) -> bool:
        return self.quantity_remaining == 0

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_TASK_STATUSES

    @classmethod
    def from_material(cls, material: MaterialRequirement, *, buffer: int = 0) -> GatherTask:
        """Create a task for the material's remaining quantity plus a flat buffer."""

        return cls(
            item_id=material.item_id,
            item_name=material.item_name,
            quantity_needed=material.quantity_remaining + buffer,
            gather_type=material.gather_type,
            is_collectable=material.is_collectable,
            node_level=material.node_level,
            zone_id=material.zone_id,
            is_timed_node=material.is_timed_node,
            spawn_hours=material.spawn_hours,
            is_reduction_source=material.is_reduction_source,
        )


@dataclass(slots=True, frozen=True)
class DisableSnapshot:
    """What the engine reported at the moment it disabled itself."""

    reason: DisableReason
    status_text: str = ""
    diagnostics: dict[str, Any] = field(default_factory=dict)
    at: float = 0.0

    def describe(self) -> str:
        """One-line summary for logs and status messages."""

        status = self.status_text.strip()
        if len(status) > 80:
            status = status[:77] + "..."
        return f"reason={self.reason.value} status={status!r}"


class DependencyFailure(str, Enum):
    """Coarse category for why gathering cannot proceed."""

    NONE = "none"
    ENGINE_UNAVAILABLE = "engine_unavailable"
    PATHING_NOT_READY = "pathing_not_ready"
    PATHING_UNAVAILABLE = "pathing_unavailable"


@dataclass(slots=True, frozen=True)
class ReadinessSnapshot:
    """Immutable dependency readiness state at a point in time."""

    engine_available: bool
    pathing_available: bool
    pathing_ready: bool
    build_progress: float = 1.0
    engine_status_text: str = ""
    at: float = 0.0

    @property
    def is_fully_ready(self) -> bool:
        return self.engine_available and self.pathing_ready

    @property
    def block_reason(self) -> str | None:
        """Human-readable reason gathering is blocked, or None when ready."""

        if not self.engine_available:
            return "Automation engine is not available."
        if not self.pathing_available:
            return "Pathing subsystem is not available."
        if not self.pathing_ready:
            if self.build_progress < 1.0:
                return f"Pathing mesh is building ({self.build_progress:.0%})..."
            return "Pathing mesh is not ready."
        return None


@dataclass(slots=True, frozen=True)
class EngineCapabilities:
    """Optional engine features probed once when the orchestrator is created."""

    target_list: bool = True
    force_reset: bool = True
    disable_reasons: bool = True

    def describe(self) -> str:
        names = [
            name
            for name, enabled in (
                ("TargetList", self.target_list),
                ("ForceReset", self.force_reset),
                ("DisableReasons", self.disable_reasons),
            )
            if enabled
        ]
        return ", ".join(names) or "none"


@dataclass(slots=True)
class OrchestratorEvent:
    """Audit-trail entry emitted by the orchestrator."""

    event_type: str
    at: float
    item_id: int | None = None
    status_from: TaskStatus | None = None
    status_to: TaskStatus | None = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class SessionSummary:
    """Aggregate counters for CLI reporting and history."""

    total_tasks: int = 0
    completed: int = 0
    failed: int = 0
    skipped: int = 0
    pending: int = 0
    total_items_gathered: int = 0
    total_retries: int = 0
    elapsed_seconds: float = 0.0
