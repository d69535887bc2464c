"""File-based gathering plan contract consumed by the CLI."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from gather_pilot.engine.simulated import ItemBehaviour
from gather_pilot.gathering.models import GatherType, MaterialRequirement

PLAN_CONTRACT_VERSION = 1


@dataclass(slots=True)
class SimulationPlan:
    """Scripted engine and world behaviour for a local run."""

    items: dict[int, ItemBehaviour] = field(default_factory=dict)
    reject_item_ids: list[int] = field(default_factory=list)
    accept_list: bool = True
    accept_enable: bool = True
    refuse_enables: int = 0
    target_list_capability: bool = True
    force_reset_capability: bool = True
    pathing_ready_after_steps: int = 0


@dataclass(slots=True)
class GatherPlan:
    """Materials to gather, operator proficiency and the starting inventory."""

    name: str
    materials: list[MaterialRequirement]
    proficiency: dict[GatherType, int] = field(default_factory=dict)
    inventory: dict[int, int] = field(default_factory=dict)
    simulation: SimulationPlan = field(default_factory=SimulationPlan)
    contract_version: int = PLAN_CONTRACT_VERSION


def write_json(path: Path, payload: dict[str, Any]) -> None:
    """Persist JSON payload using deterministic formatting."""

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True), "utf-8")


def load_json(path: Path) -> dict[str, Any]:
    """Load JSON document and validate top-level object type."""

    payload = json.loads(path.read_text("utf-8"))
    if not isinstance(payload, dict):
        raise TypeError(f"Expected JSON object in {path}")
    return payload


def read_plan(path: Path) -> GatherPlan:
    """Deserialize and validate a gathering plan."""

    raw = load_json(path)
    version = raw.get("contract_version", PLAN_CONTRACT_VERSION)
    if not isinstance(version, int) or version < 1:
        raise ValueError("plan.contract_version must be an integer >= 1")
    if version > PLAN_CONTRACT_VERSION:
        raise ValueError(f"Unsupported plan contract_version {version}")

    name = raw.get("name", path.stem)
    if not isinstance(name, str) or not name.strip():
        raise ValueError("plan.name must be a non-empty string")

    materials_raw = raw.get("materials")
    if not isinstance(materials_raw, list):
        raise TypeError("plan.materials must be an array")
    materials = [_read_material(entry) for entry in materials_raw]

    proficiency_raw = raw.get("proficiency", {})
    if not isinstance(proficiency_raw, dict):
        raise TypeError("plan.proficiency must be an object")
    proficiency: dict[GatherType, int] = {}
    for key, value in proficiency_raw.items():
        gather_type = _parse_gather_type(key, field_name="plan.proficiency key")
        proficiency[gather_type] = _require_int(value, field_name=f"plan.proficiency.{key}", minimum=0)

    inventory_raw = raw.get("inventory", {})
    if not isinstance(inventory_raw, dict):
        raise TypeError("plan.inventory must be an object")
    inventory = {
        _parse_item_key(key, field_name="plan.inventory key"): _require_int(
            value,
            field_name=f"plan.inventory.{key}",
            minimum=0,
        )
        for key, value in inventory_raw.items()
    }

    return GatherPlan(
        name=name,
        materials=materials,
        proficiency=proficiency,
        inventory=inventory,
        simulation=_read_simulation(raw.get("simulation", {})),
        contract_version=version,
    )


def _read_material(entry: Any) -> MaterialRequirement:
    if not isinstance(entry, dict):
        raise TypeError("plan.materials entry must be an object")
    item_name = entry.get("item_name")
    if not isinstance(item_name, str) or not item_name.strip():
        raise ValueError("plan.materials.item_name must be a non-empty string")
    node_level = entry.get("node_level")
    if node_level is not None:
        node_level = _require_int(node_level, field_name="plan.materials.node_level", minimum=1)
    spawn_hours_raw = entry.get("spawn_hours", [])
    if not isinstance(spawn_hours_raw, list):
        raise TypeError("plan.materials.spawn_hours must be an array")
    spawn_hours = tuple(
        _require_int(hour, field_name="plan.materials.spawn_hours", minimum=0, maximum=23)
        for hour in spawn_hours_raw
    )
    return MaterialRequirement(
        item_id=_require_int(entry.get("item_id"), field_name="plan.materials.item_id", minimum=1),
        item_name=item_name,
        quantity_needed=_require_int(
            entry.get("quantity_needed"),
            field_name="plan.materials.quantity_needed",
            minimum=0,
        ),
        quantity_owned=_require_int(
            entry.get("quantity_owned", 0),
            field_name="plan.materials.quantity_owned",
            minimum=0,
        ),
        gather_type=_parse_gather_type(entry.get("gather_type", "none"), field_name="plan.materials.gather_type"),
        is_collectable=_require_bool(entry.get("is_collectable", False), field_name="plan.materials.is_collectable"),
        node_level=node_level,
        zone_id=_require_int(entry.get("zone_id", 0), field_name="plan.materials.zone_id", minimum=0),
        is_timed_node=_require_bool(entry.get("is_timed_node", False), field_name="plan.materials.is_timed_node"),
        spawn_hours=spawn_hours,
        is_reduction_source=_require_bool(
            entry.get("is_reduction_source", False),
            field_name="plan.materials.is_reduction_source",
        ),
    )


def _read_simulation(raw: Any) -> SimulationPlan:
    if not isinstance(raw, dict):
        raise TypeError("plan.simulation must be an object")
    items_raw = raw.get("items", {})
    if not isinstance(items_raw, dict):
        raise TypeError("plan.simulation.items must be an object")
    items: dict[int, ItemBehaviour] = {}
    for key, value in items_raw.items():
        if not isinstance(value, dict):
            raise TypeError("plan.simulation.items entry must be an object")
        disable_status = value.get("disable_status")
        if disable_status is not None and not isinstance(disable_status, str):
            raise TypeError("plan.simulation.items.disable_status must be a string when provided")
        items[_parse_item_key(key, field_name="plan.simulation.items key")] = ItemBehaviour(
            ticks_per_yield=_require_int(
                value.get("ticks_per_yield", 2),
                field_name="plan.simulation.items.ticks_per_yield",
                minimum=1,
            ),
            yield_amount=_require_int(
                value.get("yield_amount", 1),
                field_name="plan.simulation.items.yield_amount",
                minimum=1,
            ),
            disable_status=disable_status,
            disable_after_ticks=_require_int(
                value.get("disable_after_ticks", 0),
                field_name="plan.simulation.items.disable_after_ticks",
                minimum=0,
            ),
            stall=_require_bool(value.get("stall", False), field_name="plan.simulation.items.stall"),
        )
    reject_raw = raw.get("reject_item_ids", [])
    if not isinstance(reject_raw, list):
        raise TypeError("plan.simulation.reject_item_ids must be an array")
    return SimulationPlan(
        items=items,
        reject_item_ids=[
            _require_int(item_id, field_name="plan.simulation.reject_item_ids", minimum=1)
            for item_id in reject_raw
        ],
        accept_list=_require_bool(raw.get("accept_list", True), field_name="plan.simulation.accept_list"),
        accept_enable=_require_bool(raw.get("accept_enable", True), field_name="plan.simulation.accept_enable"),
        refuse_enables=_require_int(
            raw.get("refuse_enables", 0),
            field_name="plan.simulation.refuse_enables",
            minimum=0,
        ),
        target_list_capability=_require_bool(
            raw.get("target_list_capability", True),
            field_name="plan.simulation.target_list_capability",
        ),
        force_reset_capability=_require_bool(
            raw.get("force_reset_capability", True),
            field_name="plan.simulation.force_reset_capability",
        ),
        pathing_ready_after_steps=_require_int(
            raw.get("pathing_ready_after_steps", 0),
            field_name="plan.simulation.pathing_ready_after_steps",
            minimum=0,
        ),
    )


def _parse_gather_type(value: Any, *, field_name: str) -> GatherType:
    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string")
    try:
        return GatherType(value.strip().lower())
    except ValueError as error:
        allowed = ", ".join(member.value for member in GatherType)
        raise ValueError(f"{field_name} must be one of: {allowed}") from error


def _parse_item_key(key: str, *, field_name: str) -> int:
    try:
        item_id = int(key)
    except ValueError as error:
        raise ValueError(f"{field_name} must be a numeric item id, got {key!r}") from error
    if item_id < 1:
        raise ValueError(f"{field_name} must be >= 1")
    return item_id


def _require_int(
    value: Any,
    *,
    field_name: str,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{field_name} must be an integer")
    if minimum is not None and value < minimum:
        raise ValueError(f"{field_name} must be >= {minimum}")
    if maximum is not None and value > maximum:
        raise ValueError(f"{field_name} must be <= {maximum}")
    return value


def _require_bool(value: Any, *, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise TypeError(f"{field_name} must be a boolean")
    return value
