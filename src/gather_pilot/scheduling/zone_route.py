"""Zone-grouped task ordering to keep teleports down."""

from __future__ import annotations

from collections.abc import Sequence

from gather_pilot.gathering.models import GatherTask
from gather_pilot.scheduling import eorzean_time
from gather_pilot.scheduling.node_scheduler import classify_node, spawn_hours_for, window_hours

TELEPORT_COST_ESTIMATE = 500


def optimize_route(tasks: Sequence[GatherTask], now: float | None = None) -> list[GatherTask]:
    """Active timed nodes first, then normal nodes grouped by zone, then other timed nodes."""

    timed = [task for task in tasks if task.is_timed_node or task.is_reduction_source]
    normal = sorted(
        (task for task in tasks if not (task.is_timed_node or task.is_reduction_source)),
        key=lambda task: task.zone_id,
    )

    active: list[GatherTask] = []
    waiting: list[GatherTask] = []
    for task in timed:
        duration = window_hours(classify_node(task))
        if any(eorzean_time.is_within_window(hour, duration, now) for hour in spawn_hours_for(task)):
            active.append(task)
        else:
            waiting.append(task)
    return [*active, *normal, *waiting]


def count_zone_transitions(tasks: Sequence[GatherTask]) -> int:
    transitions = 0
    last_zone = 0
    for task in tasks:
        if last_zone and task.zone_id != last_zone:
            transitions += 1
        last_zone = task.zone_id
    return transitions


def estimate_teleport_cost(tasks: Sequence[GatherTask]) -> int:
    """Rough gil estimate for the zone transitions in an ordered route."""

    return count_zone_transitions(tasks) * TELEPORT_COST_ESTIMATE


def describe_route(tasks: Sequence[GatherTask]) -> list[str]:
    """One line per consecutive zone run, e.g. ``Zone 134: 3 items``."""

    lines: list[str] = []
    current_zone = 0
    items_in_zone = 0
    for task in tasks:
        if task.zone_id != current_zone:
            if current_zone:
                lines.append(f"Zone {current_zone}: {items_in_zone} items")
            current_zone = task.zone_id
            items_in_zone = 0
        items_in_zone += 1
    if current_zone:
        lines.append(f"Zone {current_zone}: {items_in_zone} items")
    return lines
