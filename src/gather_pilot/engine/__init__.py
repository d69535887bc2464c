"""Engine adapters: the collaborator protocols and a deterministic simulation."""

from gather_pilot.engine.base import (
    AutomationEngine,
    Clock,
    DependencyStatus,
    DisableCallback,
    HostConditions,
    InventoryObserver,
)

__all__ = [
    "AutomationEngine",
    "Clock",
    "DependencyStatus",
    "DisableCallback",
    "HostConditions",
    "InventoryObserver",
]
