"""Tick-driven orchestrator that steers the automation engine through a task queue."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Sequence

from gather_pilot.config import DependencySettings, EscalationSettings, GatheringSettings
from gather_pilot.engine.base import (
    AutomationEngine,
    Clock,
    DependencyStatus,
    HostConditions,
    InventoryObserver,
)
from gather_pilot.gathering.command_fallback import (
    CommandOnlyFallback,
    FallbackOutcome,
    hint_kind_for,
)
from gather_pilot.gathering.escalation import (
    EscalationAction,
    EscalationLadder,
    EscalationRule,
    RecoveryStep,
    decide_escalation,
)
from gather_pilot.gathering.models import (
    DisableReason,
    DisableSnapshot,
    FailureClass,
    GatherMode,
    GatherTask,
    HintKind,
    MaterialRequirement,
    OrchestratorEvent,
    OrchestratorState,
    SessionSummary,
    TaskStatus,
)
from gather_pilot.gathering.queue_builder import apply_level_filter, build_task_queue
from gather_pilot.gathering.session import GatherSession
from gather_pilot.scheduling import eorzean_time
from gather_pilot.scheduling.node_scheduler import ScheduledTask, build_scheduled_queue
from gather_pilot.scheduling.zone_route import optimize_route

logger = logging.getLogger(__name__)


class GatheringOrchestrator:
    """Drives one queue of gathering tasks to completion.

    The host calls ``update`` frequently; the orchestrator throttles itself to
    one tick per poll interval. All session state is mutated inside the tick;
    engine callbacks only record a disable snapshot or an inventory hint.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        engine: AutomationEngine,
        inventory: InventoryObserver,
        dependencies: DependencyStatus,
        host: HostConditions,
        settings: GatheringSettings | None = None,
        escalation: EscalationSettings | None = None,
        dependency_settings: DependencySettings | None = None,
        clock: Clock = time.monotonic,
        wall_clock: Clock = time.time,
    ) -> None:
        self.engine = engine
        self.inventory = inventory
        self.dependencies = dependencies
        self.host = host
        self.settings = settings or GatheringSettings()
        self.escalation = escalation or EscalationSettings()
        self.dependency_settings = dependency_settings or DependencySettings()
        self._clock = clock
        self._wall_clock = wall_clock
        self._tasks: list[GatherTask] = []
        self._events: list[OrchestratorEvent] = []
        self._session: GatherSession | None = None
        self._state = OrchestratorState.IDLE
        self._status_message = ""
        self._last_summary: SessionSummary | None = None

        self.capabilities = engine.capabilities()
        logger.info("Engine capabilities: [%s]", self.capabilities.describe())
        engine.on_disabled_changed(self._on_engine_disabled)

    # -- read-only view ---------------------------------------------------

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def status_message(self) -> str:
        return self._status_message

    @property
    def tasks(self) -> tuple[GatherTask, ...]:
        return tuple(self._tasks)

    @property
    def events(self) -> tuple[OrchestratorEvent, ...]:
        return tuple(self._events)

    @property
    def mode(self) -> GatherMode | None:
        return self._session.mode if self._session is not None else None

    @property
    def current_task(self) -> GatherTask | None:
        if self._session is None:
            return None
        index = self._session.task_index
        if 0 <= index < len(self._tasks):
            return self._tasks[index]
        return None

    @property
    def is_complete(self) -> bool:
        if self._state is OrchestratorState.COMPLETED:
            return True
        return self._state is not OrchestratorState.RUNNING and not self._tasks

    @property
    def has_failures(self) -> bool:
        return any(task.status is TaskStatus.FAILED for task in self._tasks)

    @property
    def has_skipped_tasks(self) -> bool:
        return any(task.status is TaskStatus.SKIPPED for task in self._tasks)

    @property
    def total_items_gathered(self) -> int:
        return sum(task.quantity_observed for task in self._tasks)

    def summary(self) -> SessionSummary:
        """Counters for the current or most recently finished queue."""

        counts = {status: 0 for status in TaskStatus}
        for task in self._tasks:
            counts[task.status] += 1
        if self._session is not None:
            elapsed = self._clock() - self._session.started_at
        elif self._last_summary is not None:
            elapsed = self._last_summary.elapsed_seconds
        else:
            elapsed = 0.0
        return SessionSummary(
            total_tasks=len(self._tasks),
            completed=counts[TaskStatus.COMPLETED],
            failed=counts[TaskStatus.FAILED],
            skipped=counts[TaskStatus.SKIPPED],
            pending=counts[TaskStatus.PENDING] + counts[TaskStatus.IN_PROGRESS],
            total_items_gathered=self.total_items_gathered,
            total_retries=sum(task.retry_count for task in self._tasks),
            elapsed_seconds=elapsed,
        )

    # -- queue management ---------------------------------------------------

    def build_queue(
        self,
        materials: Iterable[MaterialRequirement],
        *,
        buffer: int | None = None,
    ) -> list[GatherTask]:
        """Replace the queue with tasks for every material still short."""

        self._ensure_not_running("build a queue")
        quantity_buffer = self.settings.quantity_buffer if buffer is None else buffer
        self._tasks = build_task_queue(materials, buffer=quantity_buffer)
        self._session = None
        self._last_summary = None
        if self._tasks:
            self._state = OrchestratorState.READY
            self._status_message = f"{len(self._tasks)} gathering tasks queued."
        else:
            self._state = OrchestratorState.IDLE
            self._status_message = "Nothing to gather."
        logger.info("Built gathering queue with %d tasks.", len(self._tasks))
        return list(self._tasks)

    def optimize_queue(self, *, prioritize_timed: bool | None = None) -> list[ScheduledTask]:
        """Group the queue by zone and, optionally, pull timed nodes forward."""

        self._ensure_not_running("reorder the queue")
        now = self._wall_clock()
        ordered = optimize_route(self._tasks, now)
        prioritize = self.settings.prioritize_timed_nodes if prioritize_timed is None else prioritize_timed
        if prioritize:
            scheduled = build_scheduled_queue(ordered, now)
        else:
            scheduled = [ScheduledTask.from_task(task) for task in ordered]
        self._tasks = [item.task for item in scheduled]
        return scheduled

    # -- lifecycle ------------------------------------------------------------

    def start(self) -> None:
        """Begin driving the queue; an empty queue finishes immediately as IDLE."""

        self._ensure_not_running("start")
        self._events = []
        self._last_summary = None
        if not self._tasks:
            self._state = OrchestratorState.IDLE
            self._status_message = "Nothing to gather."
            logger.info("Gathering queue is empty; nothing to start.")
            return

        now = self._clock()
        for task in apply_level_filter(
            self._tasks,
            self.host.proficiency_level,
            step=self.settings.node_level_step,
        ):
            logger.info("Skipping %s: %s", task.item_name, task.error_message)
            self._emit(
                "task_skipped",
                now,
                task=task,
                status_from=TaskStatus.PENDING,
                status_to=TaskStatus.SKIPPED,
                details={"message": task.error_message},
            )

        self._session = GatherSession(
            started_at=now,
            ladder=EscalationLadder(settings=self.escalation, dependency=self.dependency_settings),
            fallback=CommandOnlyFallback(engine=self.engine, settings=self.escalation),
        )
        self._state = OrchestratorState.RUNNING
        self._emit("session_started", now, details={"tasks": len(self._tasks)})
        logger.info("Starting gathering session with %d tasks.", len(self._tasks))

        self._inject_target_list(now)
        self._session.task_index = self._next_open_index(0)
        if self.current_task is None:
            self._finish_session(now)
            return
        self._start_current_task(now)

    def stop(self, message: str = "Gathering stopped.") -> None:
        """Cancel from any state: disable the engine, release its list, go IDLE."""

        now = self._clock()
        was_running = self._state is OrchestratorState.RUNNING
        try:
            if was_running:
                self.engine.set_enabled(False)
        finally:
            self._release_target_list(now)
        if self._session is not None:
            self._last_summary = self.summary()
        self._session = None
        self._state = OrchestratorState.IDLE
        self._status_message = message
        if was_running:
            self._emit("session_stopped", now, details={"message": message})
            logger.info("Gathering session stopped: %s", message)

    def notify_inventory_changed(self) -> None:
        """Inventory-change hint; forces one full recount on the next tick."""

        session = self._session
        if session is not None:
            session.inventory_dirty = True

    def update(self) -> None:
        """Run one tick if the poll interval has elapsed."""

        if self._state is not OrchestratorState.RUNNING or self._session is None:
            return
        now = self._clock()
        session = self._session
        if (
            session.last_tick_at is not None
            and now - session.last_tick_at < self.settings.poll_interval_seconds
        ):
            return
        session.last_tick_at = now
        try:
            self._tick(now)
        except Exception as error:  # noqa: BLE001
            logger.exception("Gathering tick failed")
            self._fault(now, error)

    # -- tick ---------------------------------------------------------------------

    def _tick(self, now: float) -> None:
        session = self._require_session()
        self.dependencies.poll()

        if not self.host.in_operating_context():
            self._emit("operating_context_lost", now)
            self.stop("Left the gathering area; gathering stopped.")
            return

        if session.next_task_at is not None:
            if now < session.next_task_at:
                return
            session.next_task_at = None
            self._start_current_task(now)
            return

        task = self.current_task
        if task is None:
            self._finish_session(now)
            return

        self._observe_count(task, self._read_count(task), now)
        if task.is_complete:
            self._handle_target_met(task, now)
            return

        enabled = self.engine.is_enabled()
        waiting = self.engine.is_waiting()
        if waiting != session.engine_waiting:
            session.engine_waiting = waiting
            logger.debug("Engine %s while gathering %s.", "waiting" if waiting else "working", task.item_name)
        if self._check_no_delta(task, now, enabled=enabled, waiting=waiting):
            return
        if self._check_liveness(task, now, enabled=enabled, waiting=waiting):
            return
        if now - max(session.task_started_at, session.last_progress_at) > self.settings.stall_timeout_seconds:
            minutes = self.settings.stall_timeout_seconds / 60
            self._handle_stall(task, now, reason=f"No gathering progress for {minutes:.0f} minutes.")
            return
        self._refresh_status(task, enabled=enabled)

    def _read_count(self, task: GatherTask) -> int:
        session = self._require_session()
        if session.inventory_dirty:
            session.inventory_dirty = False
            return self._full_count(task)
        cached = self.inventory.get_cached_count()
        if cached is None:
            logger.debug("Slot cache stale for %s; rescanning.", task.item_name)
            return self._full_count(task)
        return cached

    def _full_count(self, task: GatherTask) -> int:
        include_auxiliary = self.settings.include_auxiliary_storage
        count = self.inventory.get_count(task.item_id, include_auxiliary)
        self.inventory.initialize_fast_path(task.item_id, include_auxiliary)
        return count

    def _observe_count(self, task: GatherTask, count: int, now: float) -> None:
        session = self._require_session()
        if count != session.last_known_count:
            session.last_delta_at = now
        if count > session.last_known_count:
            logger.debug(
                "Gathering progress for %s: %d -> %d",
                task.item_name,
                session.last_known_count,
                count,
            )
            session.mark_progress(now)
        session.last_known_count = count
        task.quantity_observed = max(task.quantity_observed, count - session.baseline_count)

    def _handle_target_met(self, task: GatherTask, now: float) -> None:
        session = self._require_session()
        if self.host.is_interacting():
            if session.finishing_since is None:
                session.finishing_since = now
                logger.info("Target met for %s; finishing current node before advancing.", task.item_name)
            if now - session.finishing_since < self.settings.finish_node_timeout_seconds:
                self._status_message = f"Finishing node for {task.item_name}..."
                return
            logger.info("Node finish wait timed out for %s; advancing anyway.", task.item_name)
        session.finishing_since = None
        self._set_status(task, TaskStatus.COMPLETED, now, event_type="task_completed")
        self._status_message = f"Gathered enough {task.item_name}."
        logger.info("Completed %s (%d/%d).", task.item_name, task.quantity_observed, task.quantity_needed)
        self._advance(now)

    def _check_no_delta(self, task: GatherTask, now: float, *, enabled: bool, waiting: bool) -> bool:
        session = self._require_session()
        if enabled and not waiting:
            return False
        since_delta = now - session.last_delta_at

        if not session.soft_rescan_done and since_delta >= self.settings.soft_no_delta_timeout_seconds:
            session.soft_rescan_done = True
            logger.info(
                "No inventory change for %.0fs while the engine is idle; rescanning %s.",
                since_delta,
                task.item_name,
            )
            self._emit("soft_rescan", now, task=task, details={"since_delta_seconds": since_delta})
            self._observe_count(task, self._full_count(task), now)
            if task.is_complete:
                self._handle_target_met(task, now)
            return True

        if enabled and waiting and since_delta >= self.settings.hard_no_delta_timeout_seconds:
            self._handle_stall(
                task,
                now,
                reason=f"No inventory change for {since_delta:.0f}s while the engine sat idle.",
            )
            return True
        return False

    def _check_liveness(self, task: GatherTask, now: float, *, enabled: bool, waiting: bool) -> bool:
        session = self._require_session()
        if session.mode is GatherMode.COMMAND_ONLY:
            return self._check_command_only(task, now, enabled=enabled, waiting=waiting)

        if enabled:
            session.disable_snapshot = None
            failures = session.ladder.record_engine_running()
            if failures:
                logger.info("Engine running again for %s after %d re-enable attempts.", task.item_name, failures)
            return False

        snapshot = session.disable_snapshot
        session.disable_snapshot = None
        if snapshot is None:
            snapshot = DisableSnapshot(
                reason=DisableReason.UNKNOWN,
                status_text=self.engine.status_text(),
                at=now,
            )
        rule = decide_escalation(snapshot.reason)
        if rule.action in {EscalationAction.STOP_SESSION, EscalationAction.FAIL_TASK}:
            self._apply_terminal(rule, task, snapshot, now)
            return True
        if rule.action is EscalationAction.ENTER_COMMAND_ONLY:
            self._enter_command_only(task, now, reason=f"{rule.message} ({snapshot.describe()})")
            return True

        if self.host.is_occupied():
            self._status_message = f"Waiting to gather {task.item_name} (player busy)..."
            return True

        step = session.ladder.next_recovery_step(now=now, readiness=self.dependencies.get_snapshot())
        if step is RecoveryStep.WAIT_FOR_DEPENDENCY:
            return self._wait_for_dependency(task, now)
        session.dependency_wait_logged = False
        if step is RecoveryStep.REENABLE:
            logger.warning(
                "Engine disabled while gathering %s (%s); re-enabling (attempt %d/%d).",
                task.item_name,
                snapshot.describe(),
                session.ladder.reenable_failures,
                self.escalation.max_reenable_failures,
            )
            self._emit(
                "engine_reenabled",
                now,
                task=task,
                details={
                    "reason": snapshot.reason.value,
                    "attempt": session.ladder.reenable_failures,
                },
            )
            self.engine.send_hint_command(hint_kind_for(task), task.item_name)
            self.engine.set_enabled(True)
        elif step is RecoveryStep.RESET_CYCLE:
            self._reset_cycle(task, now)
        elif step is RecoveryStep.ENTER_COMMAND_ONLY:
            self._enter_command_only(
                task,
                now,
                reason=f"{session.ladder.reset_cycles} reset cycles made no progress.",
            )
            return True
        return False

    def _check_command_only(self, task: GatherTask, now: float, *, enabled: bool, waiting: bool) -> bool:
        session = self._require_session()
        snapshot = session.disable_snapshot
        session.disable_snapshot = None
        if not enabled and snapshot is not None:
            rule = decide_escalation(snapshot.reason)
            if rule.action in {EscalationAction.STOP_SESSION, EscalationAction.FAIL_TASK}:
                self._apply_terminal(rule, task, snapshot, now)
                return True

        outcome = session.fallback.tick(
            task,
            now,
            enabled=enabled,
            waiting=waiting,
            occupied=self.host.is_occupied(),
        )
        if outcome is FallbackOutcome.ABANDONED:
            self._emit(
                "command_only_abandoned",
                now,
                task=task,
                details={"refusals": session.fallback.refusals},
            )
            self._handle_stall(
                task,
                now,
                reason=f"Engine refused {session.fallback.refusals} hint commands in a row.",
            )
            return True
        if outcome is FallbackOutcome.WAITING:
            self._status_message = f"Waiting to gather {task.item_name} (player busy)..."
            return True
        if enabled:
            session.ladder.record_engine_running()
            return False

        step = session.ladder.next_recovery_step(now=now, readiness=self.dependencies.get_snapshot())
        if step is RecoveryStep.WAIT_FOR_DEPENDENCY:
            return self._wait_for_dependency(task, now)
        session.dependency_wait_logged = False
        if step is RecoveryStep.RESET_CYCLE:
            self._reset_cycle(task, now)
            return True
        if step is RecoveryStep.GIVE_UP:
            self._handle_stall(
                task,
                now,
                reason=f"{session.ladder.cycles_spent} reset cycles in command-only mode made no progress.",
            )
            return True
        return False

    def _wait_for_dependency(self, task: GatherTask, now: float) -> bool:
        session = self._require_session()
        block_reason = self.dependencies.get_snapshot().block_reason or "Dependencies not ready."
        failure = self.dependencies.diagnose_failure()
        if session.ladder.dependency_wait_expired(now):
            if not session.dependency_wait_logged:
                logger.warning(
                    "Dependency wait for %s exceeded %.0fs (%s): %s",
                    task.item_name,
                    self.dependency_settings.wait_timeout_seconds,
                    failure.value,
                    block_reason,
                )
                session.dependency_wait_logged = True
            return False
        if not session.dependency_wait_logged:
            logger.info("Waiting on dependencies before re-enabling for %s: %s", task.item_name, block_reason)
            self._emit(
                "dependency_wait",
                now,
                task=task,
                details={"block_reason": block_reason, "failure": failure.value},
            )
            session.dependency_wait_logged = True
        session.last_progress_at = now
        session.last_delta_at = now
        self._status_message = f"Waiting: {block_reason}"
        return True

    def _apply_terminal(
        self,
        rule: EscalationRule,
        task: GatherTask,
        snapshot: DisableSnapshot,
        now: float,
    ) -> None:
        details = {"reason": snapshot.reason.value, "status_text": snapshot.status_text}
        if rule.action is EscalationAction.STOP_SESSION:
            self._emit("operator_stop", now, task=task, details=details)
            logger.info("Engine stopped by operator; ending session.")
            self.stop(f"Gathering stopped: {rule.message}")
            return
        self._fail_task(
            task,
            now,
            failure_class=rule.failure_class,
            message=f"{rule.message} Engine status: {snapshot.status_text or 'n/a'}",
        )
        self._advance(now)

    # -- task transitions --------------------------------------------------------

    def _start_current_task(self, now: float, *, restart: bool = False) -> None:
        session = self._require_session()
        task = self.current_task
        if task is None:
            self._finish_session(now)
            return

        if task.status is TaskStatus.PENDING:
            self._set_status(task, TaskStatus.IN_PROGRESS, now, event_type="task_started")

        count = self._full_count(task)
        if not restart:
            session.baseline_count = count - task.quantity_observed
            session.last_known_count = count
            session.mode = GatherMode.LIST_DRIVEN
            session.ladder.reset_for_task()
        else:
            self._observe_count(task, count, now)
            session.ladder.reset_for_restart()
        session.task_started_at = now
        session.last_progress_at = now
        session.last_delta_at = now
        session.soft_rescan_done = False
        session.finishing_since = None
        session.disable_snapshot = None
        session.dependency_wait_logged = False

        if session.mode is GatherMode.LIST_DRIVEN:
            if session.list_released and self.capabilities.target_list:
                self._inject_target_list(now)
            if task.item_id in session.rejected_item_ids:
                session.mode = GatherMode.COMMAND_ONLY
                logger.info("%s is not in the engine target list; using hint commands only.", task.item_name)
                self._emit("mode_changed", now, task=task, details={"mode": GatherMode.COMMAND_ONLY.value})
        if session.mode is GatherMode.COMMAND_ONLY:
            session.ladder.enter_command_only()
            self._release_target_list(now)

        occupied = self.host.is_occupied()
        if occupied:
            logger.info("Player busy; deferring commands for %s.", task.item_name)
            self._status_message = f"Waiting to gather {task.item_name} (player busy)..."
        if session.mode is GatherMode.COMMAND_ONLY:
            session.fallback.enter(task, now, send=not occupied)
        elif not occupied:
            self.engine.send_hint_command(hint_kind_for(task), task.item_name)
        if task.is_collectable and not occupied:
            self.engine.send_hint_command(HintKind.COLLECTABLE_START, task.item_name)
        if session.mode is GatherMode.LIST_DRIVEN and not occupied:
            self.engine.set_enabled(True)

        if not occupied:
            self._status_message = f"Gathering {task.item_name} (need {task.quantity_remaining} more)..."
        logger.info(
            "%s %s: need %d, have %d (mode=%s).",
            "Restarting" if restart else "Starting",
            task.item_name,
            task.quantity_needed,
            count,
            session.mode.value,
        )

    def _handle_stall(self, task: GatherTask, now: float, *, reason: str) -> None:
        task.retry_count += 1
        if task.retry_count > self.settings.retry_limit:
            self._fail_task(
                task,
                now,
                failure_class=FailureClass.STALL,
                message=f"{reason} Gave up after {task.retry_count - 1} retries.",
            )
            self._advance(now)
            return
        logger.warning(
            "Gathering stalled for %s: %s Retrying (%d/%d).",
            task.item_name,
            reason,
            task.retry_count,
            self.settings.retry_limit,
        )
        self._emit(
            "task_retried",
            now,
            task=task,
            details={"reason": reason, "retry_count": task.retry_count},
        )
        self._start_current_task(now, restart=True)

    def _fail_task(self, task: GatherTask, now: float, *, failure_class: FailureClass, message: str) -> None:
        task.error_message = message
        self._set_status(
            task,
            TaskStatus.FAILED,
            now,
            event_type="task_failed",
            details={"failure_class": failure_class.value, "message": message},
        )
        self._status_message = f"Failed to gather {task.item_name}: {message}"
        logger.warning("Gathering failed for %s (%s): %s", task.item_name, failure_class.value, message)

    def _advance(self, now: float) -> None:
        session = self._require_session()
        finished = self.current_task
        if finished is not None and finished.is_collectable:
            self.engine.send_hint_command(HintKind.COLLECTABLE_STOP, finished.item_name)
        session.task_index = self._next_open_index(session.task_index + 1)
        if self.current_task is None:
            self._finish_session(now)
            return
        self._disable_engine()
        session.next_task_at = now + self.settings.inter_task_delay_seconds

    def _finish_session(self, now: float) -> None:
        self._disable_engine()
        self._release_target_list(now)
        summary = self.summary()
        self._last_summary = summary
        self._session = None
        self._state = OrchestratorState.COMPLETED
        if summary.failed or summary.skipped:
            self._status_message = (
                "All gathering tasks complete "
                f"({summary.failed} failed, {summary.skipped} skipped)."
            )
        else:
            self._status_message = "All gathering tasks complete."
        self._emit(
            "session_completed",
            now,
            details={
                "completed": summary.completed,
                "failed": summary.failed,
                "skipped": summary.skipped,
                "items_gathered": summary.total_items_gathered,
            },
        )
        logger.info(
            "Gathering session finished: %d completed, %d failed, %d skipped, %d items.",
            summary.completed,
            summary.failed,
            summary.skipped,
            summary.total_items_gathered,
        )

    def _fault(self, now: float, error: Exception) -> None:
        try:
            self.engine.set_enabled(False)
            self._release_target_list(now)
        except Exception:  # noqa: BLE001
            logger.warning("Teardown after tick failure also failed.", exc_info=True)
        if self._session is not None:
            self._last_summary = self.summary()
        self._session = None
        self._state = OrchestratorState.ERROR
        self._status_message = f"Gathering error: {error}"
        self._emit("session_error", now, details={"error": str(error)})

    # -- engine list & modes -----------------------------------------------------

    def _inject_target_list(self, now: float) -> None:
        session = self._require_session()
        session.list_released = False
        if not self.capabilities.target_list:
            session.rejected_item_ids = frozenset(task.item_id for task in self._tasks)
            logger.info("Engine has no target-list support; every task runs on hint commands.")
            return
        include_auxiliary = self.settings.include_auxiliary_storage
        items = [
            (task.item_id, self.inventory.get_count(task.item_id, include_auxiliary) + task.quantity_remaining)
            for task in self._tasks
            if not task.is_terminal
        ]
        if not items:
            return
        accepted = self.engine.set_target_list(items)
        if accepted:
            session.list_injected = True
            session.rejected_item_ids = frozenset(self.engine.rejected_item_ids)
            logger.info(
                "Injected %d items into the engine target list (%d rejected).",
                len(items),
                len(session.rejected_item_ids),
            )
            self._emit(
                "list_injected",
                now,
                details={
                    "items": [{"item_id": item_id, "target": target} for item_id, target in items],
                    "rejected": sorted(session.rejected_item_ids),
                },
            )
            return
        session.rejected_item_ids = frozenset(item_id for item_id, _ in items)
        logger.warning("Engine accepted none of %d target-list items; falling back to hint commands.", len(items))
        self._emit(
            "list_injection_failed",
            now,
            details={"failure_class": FailureClass.LIST_INJECTION.value, "items": len(items)},
        )

    def _release_target_list(self, now: float) -> None:
        session = self._session
        if session is None or not session.list_injected:
            return
        self.engine.remove_target_list()
        session.list_injected = False
        session.list_released = True
        self._emit("list_removed", now)
        logger.debug("Removed engine target list.")

    def _enter_command_only(self, task: GatherTask, now: float, *, reason: str) -> None:
        session = self._require_session()
        session.mode = GatherMode.COMMAND_ONLY
        logger.warning("Switching %s to command-only mode: %s", task.item_name, reason)
        self._emit(
            "mode_changed",
            now,
            task=task,
            details={"mode": GatherMode.COMMAND_ONLY.value, "reason": reason},
        )
        session.ladder.enter_command_only()
        self._release_target_list(now)
        session.fallback.enter(task, now, send=not self.host.is_occupied())

    def _reset_cycle(self, task: GatherTask, now: float) -> None:
        """Force-reset the engine and start it again; command-only mode skips the list."""

        session = self._require_session()
        logger.warning(
            "Engine failed %d consecutive re-enables for %s; full reset cycle %d/%d (mode=%s).",
            self.escalation.max_reenable_failures + 1,
            task.item_name,
            session.ladder.cycles_spent,
            self.escalation.max_reset_cycles,
            session.mode.value,
        )
        self._emit(
            "reset_cycle",
            now,
            task=task,
            details={"cycle": session.ladder.cycles_spent, "mode": session.mode.value},
        )
        self._disable_engine()
        if self.capabilities.force_reset and not self.engine.force_reset():
            logger.warning("Engine force reset reported failure; continuing anyway.")
        if session.mode is GatherMode.LIST_DRIVEN:
            self._release_target_list(now)
            self._inject_target_list(now)
            if task.item_id in session.rejected_item_ids:
                self._enter_command_only(task, now, reason="Item rejected after target-list re-injection.")
                return
        self.engine.send_hint_command(hint_kind_for(task), task.item_name)
        self.engine.set_enabled(True)

    def _disable_engine(self) -> None:
        """Disable without treating the resulting callback as an engine-side stop."""

        self.engine.set_enabled(False)
        if self._session is not None:
            self._session.disable_snapshot = None

    def _on_engine_disabled(self, snapshot: DisableSnapshot) -> None:
        session = self._session
        if session is None:
            return
        session.disable_snapshot = snapshot
        logger.debug("Engine disabled: %s", snapshot.describe())

    # -- helpers ----------------------------------------------------------------

    def _refresh_status(self, task: GatherTask, *, enabled: bool) -> None:
        session = self._require_session()
        parts = [f"Gathering {task.item_name}: {task.quantity_observed}/{task.quantity_needed}"]
        if session.mode is GatherMode.COMMAND_ONLY:
            parts.append("[command-only]")
        if not enabled:
            parts.append("[engine disabled]")
        if task.is_timed_node or task.is_reduction_source:
            scheduled = ScheduledTask.from_task(task)
            now = self._wall_clock()
            parts.append(
                f"[{scheduled.schedule_status(now)} | {eorzean_time.format_current_time(now)}]",
            )
        self._status_message = " ".join(parts)

    def _set_status(
        self,
        task: GatherTask,
        status: TaskStatus,
        now: float,
        *,
        event_type: str,
        details: dict[str, object] | None = None,
    ) -> None:
        previous = task.status
        task.status = status
        self._emit(event_type, now, task=task, status_from=previous, status_to=status, details=details)

    def _emit(
        self,
        event_type: str,
        now: float,
        *,
        task: GatherTask | None = None,
        status_from: TaskStatus | None = None,
        status_to: TaskStatus | None = None,
        details: dict[str, object] | None = None,
    ) -> None:
        self._events.append(
            OrchestratorEvent(
                event_type=event_type,
                at=now,
                item_id=task.item_id if task is not None else None,
                status_from=status_from,
                status_to=status_to,
                details=dict(details or {}),
            ),
        )

    def _next_open_index(self, start: int) -> int:
        index = start
        while index < len(self._tasks) and self._tasks[index].is_terminal:
            index += 1
        return index

    def _require_session(self) -> GatherSession:
        if self._session is None:
            raise RuntimeError("Gathering session is not active.")
        return self._session

    def _ensure_not_running(self, action: str) -> None:
        if self._state is OrchestratorState.RUNNING:
            raise RuntimeError(f"Cannot {action} while gathering is running; call stop() first.")


def format_task_table(tasks: Sequence[GatherTask]) -> list[str]:
    """Plain-text task lines for CLI output."""

    lines = []
    for index, task in enumerate(tasks, start=1):
        line = (
            f"{index:>2}. {task.item_name} (id={task.item_id}) "
            f"{task.quantity_observed}/{task.quantity_needed} {task.status.value}"
        )
        if task.retry_count:
            line += f" retries={task.retry_count}"
        if task.error_message:
            line += f" - {task.error_message}"
        lines.append(line)
    return lines
