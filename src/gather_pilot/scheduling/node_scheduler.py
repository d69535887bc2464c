"""Timed-node classification and spawn-window ordering."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

from gather_pilot.gathering.models import GatherTask
from gather_pilot.scheduling import eorzean_time

EPHEMERAL_SPAWN_HOURS: tuple[int, ...] = (0, 4, 8, 12, 16, 20)


class NodeType(str, Enum):
    """Spawn behaviour of the node an item comes from."""

    NORMAL = "normal"
    UNSPOILED = "unspoiled"
    EPHEMERAL = "ephemeral"
    LEGENDARY = "legendary"


_WINDOW_HOURS = {
    NodeType.UNSPOILED: 2,
    NodeType.LEGENDARY: 2,
    NodeType.EPHEMERAL: 4,
}


def classify_node(task: GatherTask) -> NodeType:
    if task.is_reduction_source:
        return NodeType.EPHEMERAL
    if task.is_timed_node:
        return NodeType.UNSPOILED
    return NodeType.NORMAL


def spawn_hours_for(task: GatherTask) -> tuple[int, ...]:
    if task.spawn_hours:
        return task.spawn_hours
    if task.is_reduction_source:
        return EPHEMERAL_SPAWN_HOURS
    return ()


def window_hours(node_type: NodeType) -> int:
    """Eorzean hours a node stays up once spawned; normal nodes never despawn."""

    return _WINDOW_HOURS.get(node_type, 24)


@dataclass(slots=True)
class ScheduledTask:
    """A task annotated with its node's spawn schedule."""

    task: GatherTask
    node_type: NodeType
    spawn_hours: tuple[int, ...] = ()

    @classmethod
    def from_task(cls, task: GatherTask) -> ScheduledTask:
        return cls(task=task, node_type=classify_node(task), spawn_hours=spawn_hours_for(task))

    @property
    def is_timed(self) -> bool:
        return self.node_type is not NodeType.NORMAL

    def is_active(self, now: float | None = None) -> bool:
        if not self.is_timed:
            return True
        duration = window_hours(self.node_type)
        return any(
            eorzean_time.is_within_window(hour, duration, now) for hour in self.spawn_hours
        )

    def seconds_until_spawn(self, now: float | None = None) -> float:
        """Real seconds until the next window opens; zero while active."""

        if not self.spawn_hours or self.is_active(now):
            return 0.0
        return min(eorzean_time.seconds_until_hour(hour, now) for hour in self.spawn_hours)

    def schedule_status(self, now: float | None = None) -> str:
        if not self.is_timed:
            return "Always available"
        if self.is_active(now):
            return "ACTIVE NOW"
        return f"Spawns in {eorzean_time.format_real_duration(self.seconds_until_spawn(now))}"


def build_scheduled_queue(
    tasks: Iterable[GatherTask],
    now: float | None = None,
) -> list[ScheduledTask]:
    """Order tasks: active timed nodes, upcoming timed nodes by soonest spawn, then normal.

    Normal nodes keep their relative order so an earlier zone grouping survives.
    """

    scheduled = [ScheduledTask.from_task(task) for task in tasks]

    def sort_key(item: ScheduledTask) -> tuple[int, float]:
        if not item.is_timed:
            return (2, 0.0)
        if item.is_active(now):
            return (0, 0.0)
        return (1, item.seconds_until_spawn(now))

    return sorted(scheduled, key=sort_key)


def pick_next_task(
    queue: Sequence[ScheduledTask],
    now: float | None = None,
) -> ScheduledTask | None:
    """Active timed node first, then any normal node, else the shortest wait."""

    open_items = [item for item in queue if not item.task.is_complete and not item.task.is_terminal]
    for item in open_items:
        if item.is_timed and item.is_active(now):
            return item
    for item in open_items:
        if not item.is_timed:
            return item
    if not open_items:
        return None
    return min(open_items, key=lambda item: item.seconds_until_spawn(now))
