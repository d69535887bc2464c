"""Controllers for gathering CLI commands."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from gather_pilot.config import Settings
from gather_pilot.contracts import GatherPlan, read_plan
from gather_pilot.dependency import DependencyMonitor
from gather_pilot.engine.simulated import (
    ManualClock,
    SimulatedBags,
    SimulatedEngine,
    SimulatedHost,
    SimulatedPathing,
    SimulatedWorld,
    run_simulation,
)
from gather_pilot.gathering.models import EngineCapabilities, OrchestratorState
from gather_pilot.gathering.orchestrator import GatheringOrchestrator, format_task_table
from gather_pilot.gathering.queue_builder import skip_reason
from gather_pilot.history.common import utc_now
from gather_pilot.history.models import SessionReport
from gather_pilot.history.repository import SessionHistoryRepository
from gather_pilot.inventory import SlotCachedInventory
from gather_pilot.scheduling import eorzean_time
from gather_pilot.scheduling.zone_route import describe_route, estimate_teleport_cost


@dataclass(slots=True)
class GatherPlanCommand:
    """CLI input for previewing a plan's queue and route."""

    plan_file: Path
    buffer: int | None = None


@dataclass(slots=True)
class GatherRunCommand:
    """CLI input for running a plan against the simulated engine."""

    plan_file: Path
    db_path: Path | None
    max_ticks: int
    buffer: int | None = None
    save_history: bool = True


@dataclass(slots=True)
class HistoryListCommand:
    """CLI input for session listing."""

    db_path: Path | None
    limit: int


@dataclass(slots=True)
class HistoryInspectCommand:
    """CLI input for session inspection."""

    db_path: Path | None
    session_id: str


@dataclass(slots=True)
class SimulationRig:
    """Orchestrator wired to simulated collaborators."""

    orchestrator: GatheringOrchestrator
    world: SimulatedWorld
    clock: ManualClock
    engine: SimulatedEngine
    inventory: SlotCachedInventory


class GatherCliController:
    """Coordinates plan preview, simulated runs and history inspection."""

    def plan(self, command: GatherPlanCommand) -> list[str]:
        settings = _settings()
        plan = read_plan(command.plan_file)
        rig = build_simulation(plan, settings)
        orchestrator = rig.orchestrator
        orchestrator.build_queue(plan.materials, buffer=command.buffer)
        scheduled = orchestrator.optimize_queue() if settings.gathering.optimize_route else []
        tasks = orchestrator.tasks
        if not tasks:
            return [f"Plan: {plan.name}", "Nothing to gather."]

        lines = [
            f"Plan: {plan.name}",
            f"Eorzean time: {eorzean_time.format_current_time()}",
            f"Tasks: {len(tasks)}",
        ]
        for index, task in enumerate(tasks, start=1):
            line = f"  {index:>2}. {task.item_name} x{task.quantity_needed} ({task.gather_type.value}, zone {task.zone_id})"
            if scheduled:
                line += f" [{scheduled[index - 1].schedule_status()}]"
            reason = skip_reason(task, plan.proficiency.get, step=settings.gathering.node_level_step)
            if reason is not None:
                line += f" SKIP: {reason}"
            lines.append(line)
        lines.append("Route:")
        lines.extend(f"  {line}" for line in describe_route(tasks))
        lines.append(f"Estimated teleport cost: {estimate_teleport_cost(tasks)} gil")
        return lines

    def run(self, command: GatherRunCommand) -> list[str]:
        settings = _settings(db_path=command.db_path)
        plan = read_plan(command.plan_file)
        rig = build_simulation(plan, settings)
        orchestrator = rig.orchestrator

        started_at = utc_now()
        orchestrator.build_queue(plan.materials, buffer=command.buffer)
        if settings.gathering.optimize_route:
            orchestrator.optimize_queue()
        orchestrator.start()
        ticks = run_simulation(
            orchestrator=orchestrator,
            world=rig.world,
            clock=rig.clock,
            max_ticks=command.max_ticks,
            tick_seconds=settings.gathering.poll_interval_seconds,
        )
        if orchestrator.state is OrchestratorState.RUNNING:
            orchestrator.stop(f"Simulation stopped after {ticks} ticks.")
        finished_at = utc_now()

        summary = orchestrator.summary()
        lines = [
            f"Plan: {plan.name}",
            f"State: {orchestrator.state.value}",
            f"Status: {orchestrator.status_message}",
            f"Ticks: {ticks} (simulated {rig.clock.now:.0f}s)",
            "Summary: "
            f"tasks={summary.total_tasks} completed={summary.completed} "
            f"failed={summary.failed} skipped={summary.skipped} pending={summary.pending} "
            f"items={summary.total_items_gathered} retries={summary.total_retries}",
        ]
        lines.extend(f"  {line}" for line in format_task_table(orchestrator.tasks))

        if command.save_history and orchestrator.tasks:
            report = SessionReport(
                plan_name=plan.name,
                state=orchestrator.state,
                status_message=orchestrator.status_message,
                started_at=started_at,
                finished_at=finished_at,
                summary=summary,
                tasks=list(orchestrator.tasks),
                events=list(orchestrator.events),
            )
            with _repository(settings) as repository:
                session_id = repository.save_session(report)
            lines.append(f"Session saved: {session_id}")
        return lines

    def list_sessions(self, command: HistoryListCommand) -> list[str]:
        settings = _settings(db_path=command.db_path)
        with _repository(settings) as repository:
            sessions = repository.list_sessions(limit=command.limit)

        lines = [f"Sessions: {len(sessions)}"]
        for session in sessions:
            summary = session.summary
            lines.append(
                f"  {session.session_id} plan={session.plan_name} state={session.state.value} "
                f"completed={summary.completed}/{summary.total_tasks} failed={summary.failed} "
                f"items={summary.total_items_gathered} started_at={session.started_at.isoformat()}",
            )
        return lines

    def inspect_session(self, command: HistoryInspectCommand) -> list[str]:
        settings = _settings(db_path=command.db_path)
        with _repository(settings) as repository:
            details = repository.get_session_details(session_id=command.session_id)
        if details is None:
            return [f"Session not found: {command.session_id}"]

        session = details.session
        summary = session.summary
        lines = [
            f"Session: {session.session_id}",
            f"Plan: {session.plan_name}",
            f"State: {session.state.value}",
            f"Status: {session.status_message}",
            f"Started: {session.started_at.isoformat()}",
            f"Elapsed: {eorzean_time.format_real_duration(summary.elapsed_seconds)}",
            f"Items gathered: {summary.total_items_gathered}",
            f"Tasks: {len(details.tasks)}",
        ]
        for task in details.tasks:
            lines.append(
                f"  {task.position + 1:>2}. {task.item_name} {task.quantity_observed}/{task.quantity_needed} "
                f"{task.status.value} retries={task.retry_count} error={task.error_message or '-'}",
            )
        lines.append(f"Events: {len(details.events)}")
        for event in details.events:
            lines.append(
                f"  +{event.offset_seconds:.0f}s {event.event_type} "
                f"{event.status_from.value if event.status_from else '-'} -> "
                f"{event.status_to.value if event.status_to else '-'}",
            )
        return lines


def build_simulation(plan: GatherPlan, settings: Settings) -> SimulationRig:
    """Wire an orchestrator to simulated collaborators seeded from the plan."""

    simulation = plan.simulation
    clock = ManualClock()
    engine = SimulatedEngine(
        capabilities=EngineCapabilities(
            target_list=simulation.target_list_capability,
            force_reset=simulation.force_reset_capability,
        ),
        reject_item_ids=simulation.reject_item_ids,
        accept_list=simulation.accept_list,
        accept_enable=simulation.accept_enable,
        clock=clock,
    )
    engine.refuse_enables = simulation.refuse_enables
    bags = SimulatedBags()
    for item_id, quantity in plan.inventory.items():
        bags.add(item_id, quantity)
    pathing = SimulatedPathing(ready_after_steps=simulation.pathing_ready_after_steps)
    world = SimulatedWorld(
        engine=engine,
        bags=bags,
        pathing=pathing,
        item_ids={material.item_name: material.item_id for material in plan.materials},
        behaviours=simulation.items,
    )
    inventory = SlotCachedInventory(bags)
    if plan.inventory:
        inventory.update_owned(plan.materials, settings.gathering.include_auxiliary_storage)
    orchestrator = GatheringOrchestrator(
        engine=engine,
        inventory=inventory,
        dependencies=DependencyMonitor(
            engine=engine,
            pathing=pathing,
            settings=settings.dependency,
            clock=clock,
        ),
        host=SimulatedHost(proficiency=dict(plan.proficiency)),
        settings=settings.gathering,
        escalation=settings.escalation,
        dependency_settings=settings.dependency,
        clock=clock,
    )
    world.on_inventory_changed(orchestrator.notify_inventory_changed)
    return SimulationRig(
        orchestrator=orchestrator,
        world=world,
        clock=clock,
        engine=engine,
        inventory=inventory,
    )


def _settings(db_path: Path | None = None) -> Settings:
    settings = Settings.from_env(db_path=db_path)
    settings.validate()
    return settings


@contextmanager
def _repository(settings: Settings) -> Iterator[SessionHistoryRepository]:
    repository = SessionHistoryRepository(
        db_path=settings.history.db_path,
        busy_timeout_ms=settings.history.busy_timeout_ms,
    )
    repository.init_schema()
    try:
        yield repository
    finally:
        repository.close()
