"""Eorzean Time conversions.

One Eorzean hour lasts 175 real seconds, so an Eorzean day is 70 real
minutes. Every helper takes an optional real Unix timestamp ``now``; when it
is omitted the current wall clock is used.
"""

from __future__ import annotations

import time

SECONDS_PER_EORZEAN_HOUR = 175.0
EORZEA_MULTIPLIER = 3600.0 / SECONDS_PER_EORZEAN_HOUR


def eorzean_seconds(now: float | None = None) -> float:
    """Total Eorzean seconds elapsed since the Unix epoch."""

    real = time.time() if now is None else now
    return real * EORZEA_MULTIPLIER


def current_hour(now: float | None = None) -> int:
    return int(eorzean_seconds(now) // 3600 % 24)


def current_minute(now: float | None = None) -> int:
    return int(eorzean_seconds(now) // 60 % 60)


def seconds_until_hour(target_hour: int, now: float | None = None) -> float:
    """Real seconds until Eorzean ``target_hour`` next begins.

    If the hour has just begun (minute zero) the answer is zero; any later
    minute in the same hour waits for the next day's occurrence.
    """

    if not 0 <= target_hour < 24:
        raise ValueError(f"Eorzean hour must be in 0..23, got {target_hour}")
    seconds_into_day = eorzean_seconds(now) % 86_400
    target = target_hour * 3600
    delta = target - seconds_into_day
    if delta < 0 and seconds_into_day - target >= 60:
        delta += 86_400
    elif delta < 0:
        delta = 0.0
    return delta / EORZEA_MULTIPLIER


def is_within_window(start_hour: int, duration_hours: int, now: float | None = None) -> bool:
    """True when the current Eorzean hour lies in ``[start, start + duration)``."""

    if duration_hours >= 24:
        return True
    hour = current_hour(now)
    end_hour = (start_hour + duration_hours) % 24
    if start_hour < end_hour:
        return start_hour <= hour < end_hour
    return hour >= start_hour or hour < end_hour


def format_current_time(now: float | None = None) -> str:
    return f"{current_hour(now):02d}:{current_minute(now):02d} ET"


def format_real_duration(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:.0f}s"
    if seconds < 3600:
        return f"{seconds / 60:.1f}m"
    return f"{seconds / 3600:.1f}h"
