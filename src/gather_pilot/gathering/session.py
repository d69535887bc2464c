"""Mutable state owned by one running gathering queue."""

from __future__ import annotations

from dataclasses import dataclass

from gather_pilot.gathering.command_fallback import CommandOnlyFallback
from gather_pilot.gathering.escalation import EscalationLadder
from gather_pilot.gathering.models import DisableSnapshot, GatherMode


@dataclass(slots=True)
class GatherSession:
    """Created by ``start``, advanced by ``update``, dropped by ``stop`` or completion.

    Engine callbacks only ever assign ``disable_snapshot`` or set
    ``inventory_dirty``; everything else is touched inside the tick.
    """

    started_at: float
    ladder: EscalationLadder
    fallback: CommandOnlyFallback
    task_index: int = 0
    baseline_count: int = 0
    last_known_count: int = 0
    task_started_at: float = 0.0
    last_progress_at: float = 0.0
    last_delta_at: float = 0.0
    mode: GatherMode = GatherMode.LIST_DRIVEN
    list_injected: bool = False
    list_released: bool = False
    rejected_item_ids: frozenset[int] = frozenset()
    disable_snapshot: DisableSnapshot | None = None
    inventory_dirty: bool = False
    soft_rescan_done: bool = False
    finishing_since: float | None = None
    next_task_at: float | None = None
    last_tick_at: float | None = None
    dependency_wait_logged: bool = False
    engine_waiting: bool = False

    def mark_progress(self, now: float) -> None:
        self.last_progress_at = now
        self.last_delta_at = now
        self.soft_rescan_done = False
        self.disable_snapshot = None
        self.ladder.record_progress()
        self.fallback.record_progress()
