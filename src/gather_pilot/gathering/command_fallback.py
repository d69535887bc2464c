"""Command-only driving for items the target list cannot handle."""

from __future__ import annotations

import logging
from enum import Enum

from gather_pilot.config import EscalationSettings
from gather_pilot.engine.base import AutomationEngine
from gather_pilot.gathering.models import GatherTask, GatherType, HintKind

logger = logging.getLogger(__name__)


class FallbackOutcome(str, Enum):
    """Result of one command-only tick."""

    CONTINUE = "continue"
    REISSUED = "reissued"
    WAITING = "waiting"
    ABANDONED = "abandoned"


def hint_kind_for(task: GatherTask) -> HintKind:
    """Class-specific gather hint, generic when the class is unknown."""

    if task.gather_type is GatherType.MINER:
        return HintKind.GATHER_MINER
    if task.gather_type is GatherType.BOTANIST:
        return HintKind.GATHER_BOTANIST
    return HintKind.GATHER


class CommandOnlyFallback:
    """Re-issues hint commands on a fixed interval and counts refusals.

    A refusal is a command after which the engine is found disabled again on
    the next tick. The engine staying enabled clears the count.
    """

    def __init__(self, *, engine: AutomationEngine, settings: EscalationSettings) -> None:
        self.engine = engine
        self.settings = settings
        self.refusals = 0
        self.last_command_at: float | None = None
        self.awaiting_ack = False

    def enter(self, task: GatherTask, now: float, *, send: bool = True) -> None:
        """Reset counters and, unless deferred, issue the first command."""

        self.refusals = 0
        self.last_command_at = None
        self.awaiting_ack = False
        if send:
            self._issue(task, now, enable=True)

    def record_progress(self) -> None:
        self.refusals = 0

    def tick(
        self,
        task: GatherTask,
        now: float,
        *,
        enabled: bool,
        waiting: bool,
        occupied: bool,
    ) -> FallbackOutcome:
        if self.awaiting_ack:
            self.awaiting_ack = False
            if enabled:
                if self.refusals:
                    logger.info("Engine accepted hint for %s after %d refusals.", task.item_name, self.refusals)
                self.refusals = 0
            else:
                self.refusals += 1
                logger.info(
                    "Engine disabled again after hint for %s (refusal %d/%d).",
                    task.item_name,
                    self.refusals,
                    self.settings.max_command_refusals,
                )
                if self.refusals > self.settings.max_command_refusals:
                    logger.warning(
                        "Giving up on command-only mode for %s after %d refusals.",
                        task.item_name,
                        self.refusals,
                    )
                    return FallbackOutcome.ABANDONED

        if occupied:
            return FallbackOutcome.WAITING

        if self.last_command_at is None:
            due = True
        else:
            due = now - self.last_command_at >= self.settings.command_reissue_interval_seconds
        if not due:
            return FallbackOutcome.CONTINUE
        if not enabled:
            self._issue(task, now, enable=True)
            return FallbackOutcome.REISSUED
        if waiting:
            self._issue(task, now, enable=False)
            return FallbackOutcome.REISSUED
        return FallbackOutcome.CONTINUE

    def _issue(self, task: GatherTask, now: float, *, enable: bool) -> None:
        logger.debug("Command-only hint for %s (enable=%s).", task.item_name, enable)
        self.engine.send_hint_command(hint_kind_for(task), task.item_name)
        if enable:
            self.engine.set_enabled(True)
            self.awaiting_ack = True
        self.last_command_at = now
