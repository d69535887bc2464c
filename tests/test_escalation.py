from __future__ import annotations

import allure
import pytest

from gather_pilot.config import DependencySettings, EscalationSettings
from gather_pilot.gathering.escalation import (
    EscalationAction,
    EscalationLadder,
    RecoveryStep,
    decide_escalation,
)
from gather_pilot.gathering.models import DisableReason, FailureClass, ReadinessSnapshot

pytestmark = [
    allure.epic("Gathering"),
    allure.feature("Escalation Ladder"),
]

_READY = ReadinessSnapshot(engine_available=True, pathing_available=True, pathing_ready=True)
_MESH_BUILDING = ReadinessSnapshot(
    engine_available=True,
    pathing_available=True,
    pathing_ready=False,
    build_progress=0.4,
)


def _ladder(**overrides: object) -> EscalationLadder:
    return EscalationLadder(
        settings=EscalationSettings(**overrides),  # type: ignore[arg-type]
        dependency=DependencySettings(),
    )


@pytest.mark.parametrize(
    ("reason", "action"),
    [
        (DisableReason.OPERATOR_STOP, EscalationAction.STOP_SESSION),
        (DisableReason.CONTAINER_FULL, EscalationAction.FAIL_TASK),
        (DisableReason.MISSING_PREREQUISITE, EscalationAction.FAIL_TASK),
        (DisableReason.REPEATED_TARGET_FAILURE, EscalationAction.ENTER_COMMAND_ONLY),
        (DisableReason.NOTHING_TO_DO, EscalationAction.ENTER_COMMAND_ONLY),
        (DisableReason.NO_VALID_TARGETS, EscalationAction.ENTER_COMMAND_ONLY),
        (DisableReason.PATHING_FAILURE, EscalationAction.RECOVER),
        (DisableReason.TIMEOUT, EscalationAction.RECOVER),
        (DisableReason.UNKNOWN, EscalationAction.RECOVER),
    ],
)
def test_decision_table(reason: DisableReason, action: EscalationAction) -> None:
    assert decide_escalation(reason).action is action


def test_container_full_is_terminal() -> None:
    rule = decide_escalation(DisableReason.CONTAINER_FULL)

    assert rule.failure_class is FailureClass.TERMINAL_UNRECOVERABLE
    assert "Inventory is full" in rule.message


def test_reenable_respects_cooldown() -> None:
    ladder = _ladder()

    assert ladder.next_recovery_step(now=0.0, readiness=_READY) is RecoveryStep.REENABLE
    assert ladder.next_recovery_step(now=5.0, readiness=_READY) is RecoveryStep.COOLDOWN
    assert ladder.next_recovery_step(now=10.0, readiness=_READY) is RecoveryStep.REENABLE
    assert ladder.reenable_failures == 2


def test_fourth_failure_triggers_reset_cycle_and_clears_counter() -> None:
    ladder = _ladder()
    steps = [ladder.next_recovery_step(now=float(t), readiness=_READY) for t in (0, 10, 20, 30)]

    assert steps == [RecoveryStep.REENABLE] * 3 + [RecoveryStep.RESET_CYCLE]
    assert ladder.reenable_failures == 0
    assert ladder.reset_cycles == 1


def test_exhausted_reset_cycles_enter_command_only() -> None:
    ladder = _ladder(reenable_cooldown_seconds=0, max_reenable_failures=0, max_reset_cycles=2)

    assert ladder.next_recovery_step(now=0.0, readiness=_READY) is RecoveryStep.RESET_CYCLE
    assert ladder.next_recovery_step(now=1.0, readiness=_READY) is RecoveryStep.RESET_CYCLE
    assert ladder.next_recovery_step(now=2.0, readiness=_READY) is RecoveryStep.ENTER_COMMAND_ONLY


def test_blocked_dependency_waits_without_counting_failures() -> None:
    ladder = _ladder()

    assert ladder.next_recovery_step(now=0.0, readiness=_MESH_BUILDING) is RecoveryStep.WAIT_FOR_DEPENDENCY
    assert ladder.next_recovery_step(now=50.0, readiness=_MESH_BUILDING) is RecoveryStep.WAIT_FOR_DEPENDENCY
    assert ladder.reenable_failures == 0
    assert not ladder.dependency_wait_expired(119.0)
    assert ladder.dependency_wait_expired(120.0)

    assert ladder.next_recovery_step(now=121.0, readiness=_READY) is RecoveryStep.REENABLE
    assert ladder.dependency_wait_since is None


def test_dependency_wait_skipped_when_monitoring_disabled() -> None:
    ladder = EscalationLadder(
        settings=EscalationSettings(),
        dependency=DependencySettings(monitor_enabled=False),
    )

    assert ladder.next_recovery_step(now=0.0, readiness=_MESH_BUILDING) is RecoveryStep.REENABLE


def test_engine_running_reports_and_clears_failures() -> None:
    ladder = _ladder()
    ladder.next_recovery_step(now=0.0, readiness=_READY)
    ladder.next_recovery_step(now=10.0, readiness=_READY)

    assert ladder.record_engine_running() == 2
    assert ladder.reenable_failures == 0


def test_restart_keeps_reset_cycles_but_progress_clears_them() -> None:
    ladder = _ladder()
    ladder.reset_cycles = 2
    ladder.reenable_failures = 1
    ladder.last_attempt_at = 5.0

    ladder.reset_for_restart()
    assert ladder.reset_cycles == 2
    assert ladder.reenable_failures == 0
    assert ladder.last_attempt_at is None

    ladder.record_progress()
    assert ladder.reset_cycles == 0


def test_command_only_gets_a_fresh_reset_budget_then_gives_up() -> None:
    ladder = _ladder(reenable_cooldown_seconds=0, max_reenable_failures=0, max_reset_cycles=2)
    ladder.reset_cycles = 2
    ladder.enter_command_only()

    assert ladder.cycles_spent == 0
    assert ladder.next_recovery_step(now=0.0, readiness=_READY) is RecoveryStep.RESET_CYCLE
    assert ladder.next_recovery_step(now=1.0, readiness=_READY) is RecoveryStep.RESET_CYCLE
    assert ladder.next_recovery_step(now=2.0, readiness=_READY) is RecoveryStep.GIVE_UP
    assert ladder.reset_cycles == 4

    ladder.reset_for_task()
    assert not ladder.command_only
    assert ladder.cycles_spent == 0
