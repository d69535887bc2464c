from __future__ import annotations

import allure

from gather_pilot.config import DependencySettings
from gather_pilot.dependency import DependencyFailure, DependencyMonitor
from gather_pilot.engine.simulated import ManualClock, SimulatedEngine, SimulatedPathing

pytestmark = [
    allure.epic("Dependencies"),
    allure.feature("Readiness Monitor"),
]


def _monitor(
    *,
    engine: SimulatedEngine | None = None,
    pathing: SimulatedPathing | None = None,
    settings: DependencySettings | None = None,
) -> tuple[DependencyMonitor, ManualClock]:
    clock = ManualClock()
    monitor = DependencyMonitor(
        engine=engine or SimulatedEngine(),
        pathing=pathing or SimulatedPathing(),
        settings=settings,
        clock=clock,
    )
    return monitor, clock


def test_initial_snapshot_assumes_pathing_ready() -> None:
    monitor, _ = _monitor(pathing=SimulatedPathing(ready_after_steps=5))

    snapshot = monitor.get_snapshot()

    assert snapshot.is_fully_ready
    assert snapshot.block_reason is None
    assert monitor.diagnose_failure() is DependencyFailure.NONE


def test_refresh_reports_mesh_build_progress() -> None:
    pathing = SimulatedPathing(ready_after_steps=4)
    pathing.steps = 1
    monitor, _ = _monitor(pathing=pathing)

    snapshot = monitor.refresh()

    assert not snapshot.is_fully_ready
    assert snapshot.block_reason == "Pathing mesh is building (25%)..."
    assert monitor.diagnose_failure() is DependencyFailure.PATHING_NOT_READY


def test_unavailable_engine_blocks_first() -> None:
    monitor, _ = _monitor(
        engine=SimulatedEngine(available=False),
        pathing=SimulatedPathing(available=False),
    )

    snapshot = monitor.refresh()

    assert snapshot.block_reason == "Automation engine is not available."
    assert monitor.diagnose_failure() is DependencyFailure.ENGINE_UNAVAILABLE


def test_unavailable_pathing_is_reported() -> None:
    monitor, _ = _monitor(pathing=SimulatedPathing(available=False))

    snapshot = monitor.refresh()

    assert snapshot.block_reason == "Pathing subsystem is not available."
    assert monitor.diagnose_failure() is DependencyFailure.PATHING_UNAVAILABLE


def test_poll_is_throttled() -> None:
    pathing = SimulatedPathing(ready_after_steps=1)
    monitor, clock = _monitor(pathing=pathing)

    monitor.poll()
    assert monitor.get_snapshot().block_reason is not None

    pathing.steps = 1
    clock.advance(4)
    monitor.poll()
    assert monitor.get_snapshot().block_reason is not None

    clock.advance(1)
    monitor.poll()
    assert monitor.get_snapshot().block_reason is None


def test_poll_is_noop_when_monitoring_disabled() -> None:
    monitor, _ = _monitor(
        pathing=SimulatedPathing(ready_after_steps=5),
        settings=DependencySettings(monitor_enabled=False),
    )

    monitor.poll()

    assert monitor.get_snapshot().block_reason is None
