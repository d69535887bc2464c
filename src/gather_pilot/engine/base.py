"""Collaborator interfaces consumed by the gathering orchestrator."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Protocol

from gather_pilot.gathering.models import (
    DependencyFailure,
    DisableSnapshot,
    EngineCapabilities,
    GatherType,
    HintKind,
    ReadinessSnapshot,
)

DisableCallback = Callable[[DisableSnapshot], None]
Clock = Callable[[], float]


class AutomationEngine(Protocol):
    """Narrow adapter over the external automation engine.

    Quantities passed to ``set_target_list`` are absolute inventory targets:
    the engine treats ``current count >= quantity`` as done.
    """

    def capabilities(self) -> EngineCapabilities:
        """Report optional features; called once per orchestrator."""

    def set_enabled(self, enabled: bool) -> None:
        """Toggle the engine's automatic mode."""

    def is_enabled(self) -> bool:
        """Return whether automatic mode is currently on."""

    def is_waiting(self) -> bool:
        """Return whether the engine is idling with nothing to act on."""

    def set_target_list(self, items: Sequence[tuple[int, int]]) -> bool:
        """Replace the injected target list. False when nothing could be added."""

    @property
    def rejected_item_ids(self) -> frozenset[int]:
        """Items the engine refused during the last ``set_target_list`` call."""

    def remove_target_list(self) -> None:
        """Drop the injected target list."""

    def force_reset(self) -> bool:
        """Clear the engine's internal queues and counters."""

    def on_disabled_changed(self, callback: DisableCallback) -> None:
        """Register a callback fired with a snapshot whenever the engine disables."""

    def send_hint_command(self, kind: HintKind, item_name: str) -> None:
        """Fire-and-forget nudge toward an item."""

    def status_text(self) -> str:
        """Last-known free-text status."""


class InventoryObserver(Protocol):
    """Ground-truth item counts."""

    def get_count(self, item_id: int, include_auxiliary: bool) -> int:
        """Full scan across all containers."""

    def initialize_fast_path(self, item_id: int, include_auxiliary: bool) -> None:
        """Cache the slots holding ``item_id`` for cheap polling."""

    def get_cached_count(self) -> int | None:
        """Count from the cached slots, or None when the cache is stale."""


class DependencyStatus(Protocol):
    """Readiness of the engine and its pathing subsystem."""

    def poll(self) -> None:
        """Time-throttled refresh."""

    def get_snapshot(self) -> ReadinessSnapshot:
        """Return the cached snapshot without refreshing."""

    def diagnose_failure(self) -> DependencyFailure:
        """Category of the first blocking dependency."""


class HostConditions(Protocol):
    """Operator state read from the host application."""

    def is_interacting(self) -> bool:
        """Operator is mid-interaction with a source node."""

    def is_occupied(self) -> bool:
        """Operator is in a state that blocks travel or gathering."""

    def in_operating_context(self) -> bool:
        """The environmental precondition for gathering still holds."""

    def proficiency_level(self, gather_type: GatherType) -> int | None:
        """Current level for a gathering class, or None when unknown."""
