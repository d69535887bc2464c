"""Reason-aware escalation ladder for a stalled automation engine.

The ladder reads the latest disable snapshot and picks the cheapest, most
specific remedy first. Reasons with a known remedy short-circuit through
``ESCALATION_TABLE``; everything else falls through to timed recovery
(dependency wait, re-enable, full reset cycle, command-only mode). Command-only
mode gets a fresh budget of reset cycles; spending it gives up on the task
attempt.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from gather_pilot.config import DependencySettings, EscalationSettings
from gather_pilot.gathering.models import DisableReason, FailureClass, ReadinessSnapshot


class EscalationAction(str, Enum):
    """What the orchestrator should do with a disable reason."""

    STOP_SESSION = "stop_session"
    FAIL_TASK = "fail_task"
    ENTER_COMMAND_ONLY = "enter_command_only"
    RECOVER = "recover"


class RecoveryStep(str, Enum):
    """Next timed recovery step for an opaque disable."""

    WAIT_FOR_DEPENDENCY = "wait_for_dependency"
    COOLDOWN = "cooldown"
    REENABLE = "reenable"
    RESET_CYCLE = "reset_cycle"
    ENTER_COMMAND_ONLY = "enter_command_only"
    GIVE_UP = "give_up"


@dataclass(slots=True, frozen=True)
class EscalationRule:
    """One row of the reason → action decision table."""

    reasons: frozenset[DisableReason]
    action: EscalationAction
    failure_class: FailureClass
    message: str


ESCALATION_TABLE: tuple[EscalationRule, ...] = (
    EscalationRule(
        reasons=frozenset({DisableReason.OPERATOR_STOP}),
        action=EscalationAction.STOP_SESSION,
        failure_class=FailureClass.OPERATOR_STOP,
        message="Engine was stopped by the operator.",
    ),
    EscalationRule(
        reasons=frozenset({DisableReason.CONTAINER_FULL}),
        action=EscalationAction.FAIL_TASK,
        failure_class=FailureClass.TERMINAL_UNRECOVERABLE,
        message="Inventory is full; free some space and run again.",
    ),
    EscalationRule(
        reasons=frozenset({DisableReason.MISSING_PREREQUISITE}),
        action=EscalationAction.FAIL_TASK,
        failure_class=FailureClass.TERMINAL_UNRECOVERABLE,
        message="Engine reports a missing dependency or unmet prerequisite.",
    ),
    EscalationRule(
        reasons=frozenset(
            {
                DisableReason.REPEATED_TARGET_FAILURE,
                DisableReason.NOTHING_TO_DO,
                DisableReason.NO_VALID_TARGETS,
            },
        ),
        action=EscalationAction.ENTER_COMMAND_ONLY,
        failure_class=FailureClass.OPAQUE_DISABLE,
        message="Target list cannot drive this item; switching to hint commands.",
    ),
)

_RECOVER_RULE = EscalationRule(
    reasons=frozenset(),
    action=EscalationAction.RECOVER,
    failure_class=FailureClass.OPAQUE_DISABLE,
    message="Engine disabled without an actionable reason.",
)


def decide_escalation(reason: DisableReason) -> EscalationRule:
    """Return the first table row matching ``reason``, or the timed-recovery row."""

    for rule in ESCALATION_TABLE:
        if reason in rule.reasons:
            return rule
    return _RECOVER_RULE


@dataclass(slots=True)
class EscalationLadder:
    """Counters and timers for timed recovery of one task."""

    settings: EscalationSettings
    dependency: DependencySettings
    reenable_failures: int = 0
    reset_cycles: int = 0
    command_only: bool = False
    command_only_base: int = 0
    last_attempt_at: float | None = None
    dependency_wait_since: float | None = None

    def next_recovery_step(self, *, now: float, readiness: ReadinessSnapshot) -> RecoveryStep:
        """Advance the ladder by one tick while the engine sits disabled."""

        if self.dependency.monitor_enabled and readiness.block_reason is not None:
            if self.dependency_wait_since is None:
                self.dependency_wait_since = now
            return RecoveryStep.WAIT_FOR_DEPENDENCY
        self.dependency_wait_since = None

        if (
            self.last_attempt_at is not None
            and now - self.last_attempt_at < self.settings.reenable_cooldown_seconds
        ):
            return RecoveryStep.COOLDOWN
        self.last_attempt_at = now

        self.reenable_failures += 1
        if self.reenable_failures <= self.settings.max_reenable_failures:
            return RecoveryStep.REENABLE

        self.reenable_failures = 0
        if self.cycles_spent >= self.settings.max_reset_cycles:
            return RecoveryStep.GIVE_UP if self.command_only else RecoveryStep.ENTER_COMMAND_ONLY
        self.reset_cycles += 1
        return RecoveryStep.RESET_CYCLE

    @property
    def cycles_spent(self) -> int:
        """Reset cycles counted against the current mode's budget."""

        return self.reset_cycles - self.command_only_base

    def enter_command_only(self) -> None:
        self.command_only = True
        self.command_only_base = self.reset_cycles

    def dependency_wait_expired(self, now: float) -> bool:
        """True once a dependency wait outlasts the configured timeout."""

        if self.dependency_wait_since is None:
            return False
        return now - self.dependency_wait_since >= self.dependency.wait_timeout_seconds

    def record_engine_running(self) -> int:
        """Engine is enabled again; returns how many failures preceded it."""

        failures = self.reenable_failures
        self.reenable_failures = 0
        self.dependency_wait_since = None
        return failures

    def record_progress(self) -> None:
        self.reenable_failures = 0
        self.reset_cycles = 0
        self.command_only_base = 0
        self.dependency_wait_since = None

    def reset_for_restart(self) -> None:
        """Restarting a task keeps the reset-cycle count; progress is what clears it."""

        self.reenable_failures = 0
        self.last_attempt_at = None
        self.dependency_wait_since = None

    def reset_for_task(self) -> None:
        self.reset_for_restart()
        self.reset_cycles = 0
        self.command_only = False
        self.command_only_base = 0
