"""Task queue construction and the pre-flight proficiency filter."""

from __future__ import annotations

from collections.abc import Callable, Iterable

from gather_pilot.gathering.models import GatherTask, GatherType, MaterialRequirement, TaskStatus

ProficiencyLookup = Callable[[GatherType], int | None]


def build_task_queue(
    materials: Iterable[MaterialRequirement],
    *,
    buffer: int = 0,
) -> list[GatherTask]:
    """Produce one task per material that still has something left to gather."""

    if buffer < 0:
        raise ValueError("Quantity buffer must be >= 0.")
    return [
        GatherTask.from_material(material, buffer=buffer)
        for material in materials
        if material.quantity_remaining > 0
    ]


def max_node_level(proficiency: int, *, step: int = 5) -> int:
    """Highest node level reachable at ``proficiency``.

    Nodes come in steps of ``step`` levels; the threshold is the highest step
    not above the proficiency level, and never below level 1.
    """

    if step <= 0:
        raise ValueError("Node level step must be a positive integer.")
    return max(1, proficiency - proficiency % step)


def skip_reason(
    task: GatherTask,
    proficiency: ProficiencyLookup,
    *,
    step: int = 5,
) -> str | None:
    if task.node_level is None:
        return None
    level = proficiency(task.gather_type)
    if level is None:
        return None
    threshold = max_node_level(level, step=step)
    if task.node_level <= threshold:
        return None
    return (
        f"Requires a level {task.node_level} node but {task.gather_type.value} "
        f"level {level} only reaches level {threshold} nodes."
    )


def apply_level_filter(
    tasks: Iterable[GatherTask],
    proficiency: ProficiencyLookup,
    *,
    step: int = 5,
) -> list[GatherTask]:
    """Mark pending tasks above the operator's reach as SKIPPED; return them."""

    skipped: list[GatherTask] = []
    for task in tasks:
        if task.status is not TaskStatus.PENDING:
            continue
        reason = skip_reason(task, proficiency, step=step)
        if reason is None:
            continue
        task.status = TaskStatus.SKIPPED
        task.error_message = reason
        skipped.append(task)
    return skipped
