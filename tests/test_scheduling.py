from __future__ import annotations

import allure
import pytest

from gather_pilot.gathering.models import GatherTask, TaskStatus
from gather_pilot.scheduling import eorzean_time
from gather_pilot.scheduling.node_scheduler import (
    NodeType,
    ScheduledTask,
    build_scheduled_queue,
    classify_node,
    pick_next_task,
)
from gather_pilot.scheduling.zone_route import (
    count_zone_transitions,
    describe_route,
    estimate_teleport_cost,
    optimize_route,
)

pytestmark = [
    allure.epic("Scheduling"),
    allure.feature("Eorzean Time, Timed Nodes, Routes"),
]


def _half_past(hour: int) -> float:
    """Real timestamp at HH:30 Eorzean time on day zero."""

    return hour * eorzean_time.SECONDS_PER_EORZEAN_HOUR + eorzean_time.SECONDS_PER_EORZEAN_HOUR / 2


def _task(name: str, *, zone: int = 0, timed: bool = False, hours: tuple[int, ...] = ()) -> GatherTask:
    return GatherTask(
        item_id=len(name),
        item_name=name,
        quantity_needed=1,
        zone_id=zone,
        is_timed_node=timed,
        spawn_hours=hours,
    )


def test_eorzean_clock_reading() -> None:
    now = _half_past(6)

    assert eorzean_time.current_hour(now) == 6
    assert eorzean_time.current_minute(now) == 30
    assert eorzean_time.format_current_time(now) == "06:30 ET"


def test_seconds_until_later_hour() -> None:
    assert eorzean_time.seconds_until_hour(8, _half_past(6)) == pytest.approx(262.5)


def test_seconds_until_hour_already_passed_waits_a_day() -> None:
    assert eorzean_time.seconds_until_hour(6, _half_past(6)) == pytest.approx(4112.5)


def test_seconds_until_hour_in_first_minute_is_zero() -> None:
    now = 6 * eorzean_time.SECONDS_PER_EORZEAN_HOUR + 1.0

    assert eorzean_time.seconds_until_hour(6, now) == 0.0


def test_seconds_until_hour_rejects_out_of_range() -> None:
    with pytest.raises(ValueError, match="0..23"):
        eorzean_time.seconds_until_hour(24, 0.0)


def test_window_wraps_midnight() -> None:
    assert eorzean_time.is_within_window(22, 4, _half_past(23))
    assert eorzean_time.is_within_window(22, 4, _half_past(1))
    assert not eorzean_time.is_within_window(22, 4, _half_past(2))
    assert eorzean_time.is_within_window(5, 24, _half_past(2))


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [(45, "45s"), (90, "1.5m"), (5400, "1.5h")],
)
def test_format_real_duration(seconds: float, expected: str) -> None:
    assert eorzean_time.format_real_duration(seconds) == expected


def test_classify_node() -> None:
    assert classify_node(_task("Iron Ore")) is NodeType.NORMAL
    assert classify_node(_task("Rarefied Ore", timed=True, hours=(6,))) is NodeType.UNSPOILED
    reduction = _task("Aethersand")
    reduction.is_reduction_source = True
    assert classify_node(reduction) is NodeType.EPHEMERAL


def test_scheduled_queue_orders_active_then_soonest_then_normal() -> None:
    normal = _task("Iron Ore")
    active = _task("Dawn Ore", timed=True, hours=(6,))
    later = _task("Dusk Ore", timed=True, hours=(10,))
    sooner = _task("Noon Ore", timed=True, hours=(8,))

    queue = build_scheduled_queue([normal, active, later, sooner], _half_past(6))

    assert [item.task.item_name for item in queue] == ["Dawn Ore", "Noon Ore", "Dusk Ore", "Iron Ore"]
    assert queue[0].schedule_status(_half_past(6)) == "ACTIVE NOW"
    assert queue[1].schedule_status(_half_past(6)).startswith("Spawns in ")
    assert queue[3].schedule_status(_half_past(6)) == "Always available"


def test_pick_next_task_prefers_active_then_normal_then_soonest() -> None:
    now = _half_past(6)
    active = ScheduledTask.from_task(_task("Dawn Ore", timed=True, hours=(6,)))
    normal = ScheduledTask.from_task(_task("Iron Ore"))
    later = ScheduledTask.from_task(_task("Dusk Ore", timed=True, hours=(10,)))
    sooner = ScheduledTask.from_task(_task("Noon Ore", timed=True, hours=(8,)))

    assert pick_next_task([normal, later, active], now) is active

    active.task.status = TaskStatus.COMPLETED
    assert pick_next_task([normal, later, active], now) is normal

    normal.task.status = TaskStatus.SKIPPED
    assert pick_next_task([normal, later, sooner, active], now) is sooner
    assert pick_next_task([normal, active], now) is None


def test_route_groups_normal_nodes_by_zone() -> None:
    tasks = [
        _task("Copper Ore", zone=3),
        _task("Iron Ore", zone=1),
        _task("Dusk Ore", zone=5, timed=True, hours=(10,)),
        _task("Dawn Ore", zone=7, timed=True, hours=(6,)),
        _task("Tin Ore", zone=3),
    ]

    route = optimize_route(tasks, _half_past(6))

    assert [task.item_name for task in route] == ["Dawn Ore", "Iron Ore", "Copper Ore", "Tin Ore", "Dusk Ore"]
    assert count_zone_transitions(route) == 3
    assert estimate_teleport_cost(route) == 1500
    assert describe_route(route) == [
        "Zone 7: 1 items",
        "Zone 1: 1 items",
        "Zone 3: 2 items",
        "Zone 5: 1 items",
    ]
