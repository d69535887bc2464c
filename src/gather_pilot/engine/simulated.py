"""Deterministic in-process stand-ins for the engine, bags, pathing and host.

Used by the ``run`` command and by tests. Time only moves when the caller
advances ``ManualClock``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from gather_pilot.engine.base import DisableCallback
from gather_pilot.gathering.disable_classifier import snapshot_from_status
from gather_pilot.gathering.models import EngineCapabilities, GatherType, HintKind, OrchestratorState
from gather_pilot.gathering.orchestrator import GatheringOrchestrator
from gather_pilot.inventory import PRIMARY_CONTAINERS, InventorySlot

logger = logging.getLogger(__name__)

_GATHER_HINTS = frozenset({HintKind.GATHER, HintKind.GATHER_MINER, HintKind.GATHER_BOTANIST})


class ManualClock:
    """Monotonic clock that only advances on request."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class SimulatedBags:
    """Container storage with stack limits."""

    def __init__(self, *, slots_per_container: int = 35, stack_size: int = 999) -> None:
        self.slots_per_container = slots_per_container
        self.stack_size = stack_size
        self._containers: dict[str, dict[int, InventorySlot]] = {}

    def slots(self, container: str) -> Sequence[InventorySlot]:
        return [slot for _, slot in sorted(self._containers.get(container, {}).items())]

    def read_slot(self, container: str, index: int) -> InventorySlot | None:
        return self._containers.get(container, {}).get(index)

    def put(self, container: str, index: int, item_id: int, quantity: int) -> None:
        """Place an exact stack, replacing whatever the slot held."""

        slots = self._containers.setdefault(container, {})
        if quantity <= 0:
            slots.pop(index, None)
            return
        slots[index] = InventorySlot(
            container=container,
            index=index,
            item_id=item_id,
            quantity=quantity,
            stack_size=self.stack_size,
        )

    def add(self, item_id: int, quantity: int) -> None:
        """Top up existing stacks first, then fill the first free slots."""

        remaining = quantity
        for container in PRIMARY_CONTAINERS:
            for slot in self.slots(container):
                if remaining == 0:
                    return
                if slot.item_id != item_id or slot.is_full:
                    continue
                added = min(remaining, slot.stack_size - slot.quantity)
                self.put(container, slot.index, item_id, slot.quantity + added)
                remaining -= added
        for container in PRIMARY_CONTAINERS:
            occupied = self._containers.get(container, {})
            for index in range(self.slots_per_container):
                if remaining == 0:
                    return
                if index in occupied:
                    continue
                added = min(remaining, self.stack_size)
                self.put(container, index, item_id, added)
                remaining -= added
        if remaining:
            raise ValueError(f"No room for {remaining} more of item {item_id}")


class SimulatedEngine:
    """Scriptable automation engine.

    ``accept_enable=False`` makes every enable bounce straight back to
    disabled; ``refuse_enables`` does the same for a limited number of calls.
    """

    def __init__(
        self,
        *,
        capabilities: EngineCapabilities | None = None,
        reject_item_ids: Sequence[int] = (),
        accept_list: bool = True,
        accept_enable: bool = True,
        available: bool = True,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._capabilities = capabilities or EngineCapabilities()
        self.reject_item_ids = frozenset(reject_item_ids)
        self.accept_list = accept_list
        self.accept_enable = accept_enable
        self.refuse_enables = 0
        self.refusal_status = ""
        self.available = available
        self._clock = clock or (lambda: 0.0)
        self._enabled = False
        self._callbacks: list[DisableCallback] = []
        self._rejected: frozenset[int] = frozenset()
        self._status = "Idle"
        self.waiting = False
        self.diagnostics: dict[str, Any] = {}
        self.target_list: dict[int, int] | None = None
        self.list_calls: list[list[tuple[int, int]]] = []
        self.remove_calls = 0
        self.force_reset_calls = 0
        self.enable_calls = 0
        self.hints: list[tuple[HintKind, str]] = []

    def capabilities(self) -> EngineCapabilities:
        return self._capabilities

    def is_available(self) -> bool:
        return self.available

    def set_enabled(self, enabled: bool) -> None:
        if not enabled:
            if self._enabled:
                self.disable("Disabled by request.")
            return
        self.enable_calls += 1
        if not self.accept_enable or self.refuse_enables > 0:
            self.refuse_enables = max(0, self.refuse_enables - 1)
            self._enabled = True
            self.disable(self.refusal_status)
            return
        self._enabled = True
        self.waiting = False
        self._status = "Gathering"

    def is_enabled(self) -> bool:
        return self._enabled

    def is_waiting(self) -> bool:
        return self._enabled and self.waiting

    def set_target_list(self, items: Sequence[tuple[int, int]]) -> bool:
        self.list_calls.append(list(items))
        if not self.accept_list:
            self._rejected = frozenset(item_id for item_id, _ in items)
            self.target_list = None
            return False
        self._rejected = frozenset(item_id for item_id, _ in items if item_id in self.reject_item_ids)
        accepted = {item_id: quantity for item_id, quantity in items if item_id not in self._rejected}
        self.target_list = accepted or None
        return bool(accepted)

    @property
    def rejected_item_ids(self) -> frozenset[int]:
        return self._rejected

    def remove_target_list(self) -> None:
        self.remove_calls += 1
        self.target_list = None

    def force_reset(self) -> bool:
        self.force_reset_calls += 1
        self.waiting = False
        return True

    def on_disabled_changed(self, callback: DisableCallback) -> None:
        self._callbacks.append(callback)

    def send_hint_command(self, kind: HintKind, item_name: str) -> None:
        self.hints.append((kind, item_name))

    def status_text(self) -> str:
        return self._status

    def disable(self, status_text: str, diagnostics: Mapping[str, Any] | None = None) -> None:
        """Disable from the engine side and notify listeners."""

        self._enabled = False
        self.waiting = False
        self._status = status_text
        snapshot = snapshot_from_status(
            status_text=status_text,
            diagnostics=diagnostics if diagnostics is not None else self.diagnostics,
            at=self._clock(),
        )
        for callback in self._callbacks:
            callback(snapshot)

    @property
    def last_gather_hint(self) -> str | None:
        for kind, item_name in reversed(self.hints):
            if kind in _GATHER_HINTS:
                return item_name
        return None


class SimulatedPathing:
    """Pathing subsystem whose mesh becomes ready after a number of steps."""

    def __init__(self, *, available: bool = True, ready_after_steps: int = 0) -> None:
        self.available = available
        self.ready_after_steps = ready_after_steps
        self.steps = 0

    def is_available(self) -> bool:
        return self.available

    def is_ready(self) -> bool:
        return self.steps >= self.ready_after_steps

    def build_progress(self) -> float:
        if self.ready_after_steps <= 0:
            return 1.0
        return min(1.0, self.steps / self.ready_after_steps)


@dataclass(slots=True)
class SimulatedHost:
    """Operator state flags."""

    proficiency: dict[GatherType, int] = field(default_factory=dict)
    interacting: bool = False
    occupied: bool = False
    in_context: bool = True

    def is_interacting(self) -> bool:
        return self.interacting

    def is_occupied(self) -> bool:
        return self.occupied

    def in_operating_context(self) -> bool:
        return self.in_context

    def proficiency_level(self, gather_type: GatherType) -> int | None:
        return self.proficiency.get(gather_type)


@dataclass(slots=True)
class ItemBehaviour:
    """How the simulated world reacts while the engine works one item."""

    ticks_per_yield: int = 2
    yield_amount: int = 1
    disable_status: str | None = None
    disable_after_ticks: int = 0
    stall: bool = False


class SimulatedWorld:
    """Moves items into the bags while the engine is enabled on a target."""

    def __init__(
        self,
        *,
        engine: SimulatedEngine,
        bags: SimulatedBags,
        pathing: SimulatedPathing,
        item_ids: Mapping[str, int],
        behaviours: Mapping[int, ItemBehaviour] | None = None,
    ) -> None:
        self.engine = engine
        self.bags = bags
        self.pathing = pathing
        self.item_ids = dict(item_ids)
        self.behaviours = dict(behaviours or {})
        self._work_ticks: dict[int, int] = {}
        self._disabled_once: set[int] = set()
        self._listeners: list[Callable[[], None]] = []

    def on_inventory_changed(self, callback: Callable[[], None]) -> None:
        self._listeners.append(callback)

    def count(self, item_id: int) -> int:
        return sum(
            slot.quantity
            for container in PRIMARY_CONTAINERS
            for slot in self.bags.slots(container)
            if slot.item_id == item_id
        )

    def active_item(self) -> int | None:
        """The hinted item unless the list says it is done, else the first open list entry."""

        targets = self.engine.target_list or {}
        hinted_name = self.engine.last_gather_hint
        hinted = self.item_ids.get(hinted_name) if hinted_name else None
        if hinted is not None and (hinted not in targets or self.count(hinted) < targets[hinted]):
            return hinted
        for item_id, target in targets.items():
            if self.count(item_id) < target:
                return item_id
        return None

    def step(self) -> None:
        self.pathing.steps += 1
        if not self.engine.is_enabled():
            return
        item_id = self.active_item()
        if item_id is None:
            self.engine.waiting = True
            return
        behaviour = self.behaviours.get(item_id, ItemBehaviour())
        ticks = self._work_ticks.get(item_id, 0) + 1
        self._work_ticks[item_id] = ticks
        if (
            behaviour.disable_status is not None
            and item_id not in self._disabled_once
            and ticks > behaviour.disable_after_ticks
        ):
            self._disabled_once.add(item_id)
            logger.debug("Simulated engine disabling on item %d: %s", item_id, behaviour.disable_status)
            self.engine.disable(behaviour.disable_status)
            return
        if behaviour.stall:
            self.engine.waiting = True
            return
        self.engine.waiting = False
        if ticks % max(1, behaviour.ticks_per_yield) == 0:
            self.bags.add(item_id, behaviour.yield_amount)
            for listener in self._listeners:
                listener()


def run_simulation(
    *,
    orchestrator: GatheringOrchestrator,
    world: SimulatedWorld,
    clock: ManualClock,
    max_ticks: int,
    tick_seconds: float = 1.0,
) -> int:
    """Alternate world steps and orchestrator ticks until the queue stops running."""

    ticks = 0
    while ticks < max_ticks and orchestrator.state is OrchestratorState.RUNNING:
        world.step()
        orchestrator.update()
        clock.advance(tick_seconds)
        ticks += 1
    return ticks
