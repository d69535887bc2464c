"""Readiness monitoring for the automation engine and its pathing subsystem."""

from __future__ import annotations

import logging
import time
from typing import Protocol

from gather_pilot.config import DependencySettings
from gather_pilot.engine.base import Clock
from gather_pilot.gathering.models import DependencyFailure, ReadinessSnapshot

logger = logging.getLogger(__name__)


class EngineProbe(Protocol):
    """Availability checks for the automation engine."""

    def is_available(self) -> bool: ...

    def status_text(self) -> str: ...


class PathingProbe(Protocol):
    """Availability and mesh state of the pathing subsystem."""

    def is_available(self) -> bool: ...

    def is_ready(self) -> bool: ...

    def build_progress(self) -> float: ...


class DependencyMonitor:
    """Caches a readiness snapshot and refreshes it at most once per poll interval."""

    def __init__(
        self,
        *,
        engine: EngineProbe,
        pathing: PathingProbe,
        settings: DependencySettings | None = None,
        clock: Clock = time.monotonic,
    ) -> None:
        self.engine = engine
        self.pathing = pathing
        self.settings = settings or DependencySettings()
        self._clock = clock
        self._last_poll_at: float | None = None
        self._snapshot = ReadinessSnapshot(
            engine_available=engine.is_available(),
            pathing_available=pathing.is_available(),
            pathing_ready=True,
            build_progress=1.0,
            at=clock(),
        )

    def get_snapshot(self) -> ReadinessSnapshot:
        return self._snapshot

    def refresh(self) -> ReadinessSnapshot:
        """Probe every dependency now, bypassing the throttle."""

        now = self._clock()
        engine_available = self.engine.is_available()
        pathing_available = self.pathing.is_available()
        snapshot = ReadinessSnapshot(
            engine_available=engine_available,
            pathing_available=pathing_available,
            pathing_ready=pathing_available and self.pathing.is_ready(),
            build_progress=self.pathing.build_progress() if pathing_available else 0.0,
            engine_status_text=self.engine.status_text() if engine_available else "",
            at=now,
        )
        if snapshot.block_reason != self._snapshot.block_reason:
            logger.info("Dependency readiness changed: %s", snapshot.block_reason or "ready")
        self._snapshot = snapshot
        self._last_poll_at = now
        return snapshot

    def poll(self) -> None:
        if not self.settings.monitor_enabled:
            return
        now = self._clock()
        if self._last_poll_at is not None and now - self._last_poll_at < self.settings.poll_interval_seconds:
            return
        self.refresh()

    def diagnose_failure(self) -> DependencyFailure:
        """Category of the first blocking dependency in the cached snapshot."""

        snapshot = self._snapshot
        if not snapshot.engine_available:
            return DependencyFailure.ENGINE_UNAVAILABLE
        if not snapshot.pathing_available:
            return DependencyFailure.PATHING_UNAVAILABLE
        if not snapshot.pathing_ready:
            return DependencyFailure.PATHING_NOT_READY
        return DependencyFailure.NONE
