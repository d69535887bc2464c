"""Deterministic classification of engine disable reasons for the escalation ladder."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from gather_pilot.gathering.models import DisableReason, DisableSnapshot

DISABLE_CLASSIFIER_VERSION = 1

_OPERATOR_STOP_PATTERNS: tuple[str, ...] = (
    "user disabled",
    "stopped by user",
    "manually disabled",
)
_PATHING_PATTERNS: tuple[str, ...] = (
    "navmesh",
    "could not find valid adjustment position",
    "no path",
)
_CONTAINER_FULL_PATTERNS: tuple[str, ...] = (
    "inventory full",
    "inventory is full",
    "bag is full",
    "container full",
)
_MISSING_PREREQUISITE_PATTERNS: tuple[str, ...] = (
    "not installed",
    "not enabled",
    "quest has not been completed",
    "missing prerequisite",
)
_NO_VALID_TARGET_PATTERNS: tuple[str, ...] = (
    "cannot add",
    "cannot enable",
    "no valid targets",
)
_TIMEOUT_PATTERNS: tuple[str, ...] = (
    "timeout",
    "timer expired",
)
_TELEPORT_PATTERNS: tuple[str, ...] = (
    "teleport home",
    "teleport failed",
    "lifestream",
)

_TEXT_RULES: tuple[tuple[str, tuple[str, ...], DisableReason], ...] = (
    ("operator_stop", _OPERATOR_STOP_PATTERNS, DisableReason.OPERATOR_STOP),
    ("pathing_failure", _PATHING_PATTERNS, DisableReason.PATHING_FAILURE),
    ("container_full", _CONTAINER_FULL_PATTERNS, DisableReason.CONTAINER_FULL),
    ("missing_prerequisite", _MISSING_PREREQUISITE_PATTERNS, DisableReason.MISSING_PREREQUISITE),
    ("no_valid_targets", _NO_VALID_TARGET_PATTERNS, DisableReason.NO_VALID_TARGETS),
    ("timeout", _TIMEOUT_PATTERNS, DisableReason.TIMEOUT),
    ("teleport_failed", _TELEPORT_PATTERNS, DisableReason.TELEPORT_FAILED),
)

_AMISS_THRESHOLD = 3


@dataclass(slots=True)
class DisableClassification:
    """Normalized disable classification result."""

    reason: DisableReason
    matched_rule: str
    matched_pattern: str | None

    def to_event_details(self) -> dict[str, object]:
        """Serialize classifier diagnostics for orchestrator events."""

        return {
            "classifier_version": DISABLE_CLASSIFIER_VERSION,
            "reason": self.reason.value,
            "matched_rule": self.matched_rule,
            "matched_pattern": self.matched_pattern,
        }


def classify_disable(
    *,
    status_text: str,
    diagnostics: Mapping[str, Any] | None = None,
) -> DisableClassification:
    """Classify a disable from the engine's status text, then its structural state.

    Known ``diagnostics`` keys: ``has_items`` (bool), ``has_target`` (bool),
    ``amiss_count`` (int), ``task_queue_count`` (int, -1 when unknown) and
    ``task_manager_busy`` (bool).
    """

    haystack = status_text.strip().lower()
    if haystack:
        for rule, patterns, reason in _TEXT_RULES:
            pattern = _first_match(haystack, patterns)
            if pattern is not None:
                return DisableClassification(
                    reason=reason,
                    matched_rule=rule,
                    matched_pattern=pattern,
                )

    state = diagnostics or {}
    has_items = bool(state.get("has_items", True))
    has_target = bool(state.get("has_target", False))
    amiss_count = int(state.get("amiss_count", 0))
    task_queue_count = int(state.get("task_queue_count", -1))
    task_manager_busy = bool(state.get("task_manager_busy", False))

    if not has_items and not has_target:
        return DisableClassification(
            reason=DisableReason.NOTHING_TO_DO,
            matched_rule="list_exhausted",
            matched_pattern=None,
        )
    if amiss_count > _AMISS_THRESHOLD:
        return DisableClassification(
            reason=DisableReason.REPEATED_TARGET_FAILURE,
            matched_rule="amiss_at_target",
            matched_pattern=None,
        )
    if task_queue_count == 0 and not task_manager_busy and has_items:
        return DisableClassification(
            reason=DisableReason.INTERNAL_ERROR,
            matched_rule="idle_with_items",
            matched_pattern=None,
        )
    return DisableClassification(
        reason=DisableReason.UNKNOWN,
        matched_rule="fallback_unknown",
        matched_pattern=None,
    )


def snapshot_from_status(
    *,
    status_text: str,
    diagnostics: Mapping[str, Any] | None = None,
    at: float = 0.0,
) -> DisableSnapshot:
    """Build a classified snapshot for adapters that only expose raw status."""

    classification = classify_disable(status_text=status_text, diagnostics=diagnostics)
    details = dict(diagnostics or {})
    details.update(classification.to_event_details())
    return DisableSnapshot(
        reason=classification.reason,
        status_text=status_text,
        diagnostics=details,
        at=at,
    )


def _first_match(haystack: str, patterns: tuple[str, ...]) -> str | None:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None
