"""Shared test fixtures."""

from __future__ import annotations

import os
from dataclasses import dataclass

import pytest

from gather_pilot.config import DependencySettings, EscalationSettings, GatheringSettings
from gather_pilot.dependency import DependencyMonitor
from gather_pilot.engine.simulated import (
    ManualClock,
    SimulatedBags,
    SimulatedEngine,
    SimulatedHost,
    SimulatedPathing,
)
from gather_pilot.gathering.models import GatherType, MaterialRequirement
from gather_pilot.gathering.orchestrator import GatheringOrchestrator
from gather_pilot.inventory import SlotCachedInventory

IRON_ORE = 5111
MAPLE_LOG = 5380


@dataclass(slots=True)
class Rig:
    clock: ManualClock
    engine: SimulatedEngine
    bags: SimulatedBags
    inventory: SlotCachedInventory
    host: SimulatedHost
    pathing: SimulatedPathing
    orchestrator: GatheringOrchestrator

    def tick(self, seconds: float = 1.0) -> None:
        self.clock.advance(seconds)
        self.orchestrator.update()

    def run_for(self, seconds: int) -> None:
        for _ in range(seconds):
            self.tick()


def make_rig(
    *,
    engine: SimulatedEngine | None = None,
    gathering: GatheringSettings | None = None,
    escalation: EscalationSettings | None = None,
    dependency: DependencySettings | None = None,
    pathing: SimulatedPathing | None = None,
    proficiency: dict[GatherType, int] | None = None,
) -> Rig:
    clock = ManualClock()
    engine = engine or SimulatedEngine()
    bags = SimulatedBags()
    inventory = SlotCachedInventory(bags)
    host = SimulatedHost(proficiency=dict(proficiency or {}))
    pathing = pathing or SimulatedPathing()
    dependency = dependency or DependencySettings()
    orchestrator = GatheringOrchestrator(
        engine=engine,
        inventory=inventory,
        dependencies=DependencyMonitor(engine=engine, pathing=pathing, settings=dependency, clock=clock),
        host=host,
        settings=gathering or GatheringSettings(),
        escalation=escalation or EscalationSettings(),
        dependency_settings=dependency,
        clock=clock,
        wall_clock=lambda: 0.0,
    )
    return Rig(
        clock=clock,
        engine=engine,
        bags=bags,
        inventory=inventory,
        host=host,
        pathing=pathing,
        orchestrator=orchestrator,
    )


def material(
    item_id: int,
    name: str,
    needed: int,
    *,
    owned: int = 0,
    gather_type: GatherType = GatherType.MINER,
    **extra: object,
) -> MaterialRequirement:
    return MaterialRequirement(
        item_id=item_id,
        item_name=name,
        quantity_needed=needed,
        quantity_owned=owned,
        gather_type=gather_type,
        **extra,  # type: ignore[arg-type]
    )


@pytest.fixture()
def rig() -> Rig:
    return make_rig()


@pytest.fixture()
def clean_env(monkeypatch):
    """Drop every GATHER_PILOT_* variable so settings come from defaults."""

    for key in list(os.environ):
        if key.startswith("GATHER_PILOT_"):
            monkeypatch.delenv(key, raising=False)
    return monkeypatch
