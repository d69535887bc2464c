from __future__ import annotations

import allure
import pytest
from conftest import IRON_ORE, MAPLE_LOG, material

from gather_pilot.gathering.models import GatherTask, GatherType, TaskStatus
from gather_pilot.gathering.queue_builder import (
    apply_level_filter,
    build_task_queue,
    max_node_level,
    skip_reason,
)

pytestmark = [
    allure.epic("Gathering"),
    allure.feature("Task Queue"),
]


def test_queue_skips_materials_already_owned() -> None:
    tasks = build_task_queue(
        [
            material(IRON_ORE, "Iron Ore", 10, owned=4),
            material(MAPLE_LOG, "Maple Log", 3, owned=3, gather_type=GatherType.BOTANIST),
        ],
    )

    assert [(task.item_id, task.quantity_needed) for task in tasks] == [(IRON_ORE, 6)]
    assert tasks[0].status is TaskStatus.PENDING
    assert tasks[0].gather_type is GatherType.MINER


def test_buffer_is_added_to_remaining_quantity() -> None:
    tasks = build_task_queue([material(IRON_ORE, "Iron Ore", 10, owned=4)], buffer=3)

    assert tasks[0].quantity_needed == 9


def test_negative_buffer_is_rejected() -> None:
    with pytest.raises(ValueError, match="buffer"):
        build_task_queue([], buffer=-1)


@pytest.mark.parametrize(
    ("proficiency", "expected"),
    [(1, 1), (4, 1), (5, 5), (37, 35), (90, 90)],
)
def test_max_node_level_steps_down(proficiency: int, expected: int) -> None:
    assert max_node_level(proficiency) == expected


def test_max_node_level_rejects_bad_step() -> None:
    with pytest.raises(ValueError, match="positive"):
        max_node_level(10, step=0)


def test_skip_reason_needs_known_level_and_proficiency() -> None:
    task = GatherTask(item_id=IRON_ORE, item_name="Iron Ore", quantity_needed=1, gather_type=GatherType.MINER)

    assert skip_reason(task, lambda _: 10) is None

    task.node_level = 40
    assert skip_reason(task, lambda _: None) is None
    assert skip_reason(task, lambda _: 40) is None
    assert skip_reason(task, lambda _: 37) == (
        "Requires a level 40 node but miner level 37 only reaches level 35 nodes."
    )


def test_level_filter_marks_only_pending_tasks() -> None:
    too_high = GatherTask(item_id=1, item_name="Mythrite Ore", quantity_needed=1, node_level=50)
    started = GatherTask(
        item_id=2,
        item_name="Cobalt Ore",
        quantity_needed=1,
        node_level=50,
        status=TaskStatus.IN_PROGRESS,
    )
    reachable = GatherTask(item_id=3, item_name="Iron Ore", quantity_needed=1, node_level=20)

    skipped = apply_level_filter([too_high, started, reachable], lambda _: 30)

    assert skipped == [too_high]
    assert too_high.status is TaskStatus.SKIPPED
    assert too_high.error_message is not None
    assert started.status is TaskStatus.IN_PROGRESS
    assert reachable.status is TaskStatus.PENDING
