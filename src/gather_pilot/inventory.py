"""Slot-cached inventory counting.

A full scan walks every container; the fast path re-reads only the slots that
held the tracked item when the cache was built. The cache reports itself stale
when a cached slot now holds something else, or when every cached stack is
full (new items would land in a slot the cache does not know about).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Protocol

from gather_pilot.gathering.models import MaterialRequirement

logger = logging.getLogger(__name__)

HQ_ITEM_OFFSET = 1_000_000

PRIMARY_CONTAINERS: tuple[str, ...] = ("bag1", "bag2", "bag3", "bag4", "crystals")
AUXILIARY_CONTAINERS: tuple[str, ...] = ("saddlebag1", "saddlebag2")


@dataclass(slots=True, frozen=True)
class InventorySlot:
    """One occupied container slot."""

    container: str
    index: int
    item_id: int
    quantity: int
    stack_size: int = 999

    @property
    def is_full(self) -> bool:
        return self.quantity >= self.stack_size


class InventorySource(Protocol):
    """Raw container access provided by the host."""

    def slots(self, container: str) -> Sequence[InventorySlot]:
        """Occupied slots of one container."""

    def read_slot(self, container: str, index: int) -> InventorySlot | None:
        """Current content of a single slot, or None when empty."""


class SlotCachedInventory:
    """Inventory observer with an HQ-aware full scan and a slot-cache fast path."""

    def __init__(
        self,
        source: InventorySource,
        *,
        include_hq: bool = True,
    ) -> None:
        self.source = source
        self.include_hq = include_hq
        self._cached_item_id: int | None = None
        self._cached_slots: list[tuple[str, int]] = []

    def containers(self, include_auxiliary: bool) -> tuple[str, ...]:
        if include_auxiliary:
            return PRIMARY_CONTAINERS + AUXILIARY_CONTAINERS
        return PRIMARY_CONTAINERS

    def get_count(self, item_id: int, include_auxiliary: bool) -> int:
        matches = self._matching_ids(item_id)
        return sum(
            slot.quantity
            for container in self.containers(include_auxiliary)
            for slot in self.source.slots(container)
            if slot.item_id in matches
        )

    def count_many(self, item_ids: Iterable[int], include_auxiliary: bool) -> dict[int, int]:
        """Count several items in a single pass over the containers."""

        wanted = set(item_ids)
        counts = dict.fromkeys(wanted, 0)
        for container in self.containers(include_auxiliary):
            for slot in self.source.slots(container):
                base_id = self._base_id(slot.item_id)
                if base_id in wanted:
                    counts[base_id] += slot.quantity
        return counts

    def update_owned(self, materials: Iterable[MaterialRequirement], include_auxiliary: bool) -> None:
        """Refresh ``quantity_owned`` on each material from one scan."""

        materials = list(materials)
        counts = self.count_many((material.item_id for material in materials), include_auxiliary)
        for material in materials:
            material.quantity_owned = counts.get(material.item_id, 0)

    def initialize_fast_path(self, item_id: int, include_auxiliary: bool) -> None:
        """Remember which slots hold the item, scanning the same containers as ``get_count``."""

        matches = self._matching_ids(item_id)
        self._cached_item_id = item_id
        self._cached_slots = [
            (slot.container, slot.index)
            for container in self.containers(include_auxiliary)
            for slot in self.source.slots(container)
            if slot.item_id in matches
        ]
        logger.debug("Cached %d slots for item %d.", len(self._cached_slots), item_id)

    def get_cached_count(self) -> int | None:
        if self._cached_item_id is None or not self._cached_slots:
            return None
        matches = self._matching_ids(self._cached_item_id)
        total = 0
        all_full = True
        for container, index in self._cached_slots:
            slot = self.source.read_slot(container, index)
            if slot is None or slot.item_id not in matches:
                return None
            total += slot.quantity
            all_full = all_full and slot.is_full
        if all_full:
            return None
        return total

    def _matching_ids(self, item_id: int) -> frozenset[int]:
        if self.include_hq:
            return frozenset({item_id, item_id + HQ_ITEM_OFFSET})
        return frozenset({item_id})

    def _base_id(self, item_id: int) -> int:
        if self.include_hq and item_id > HQ_ITEM_OFFSET:
            return item_id - HQ_ITEM_OFFSET
        return item_id
