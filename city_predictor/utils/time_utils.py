"""
Time helpers.

Simulation records carry their timestamp as integer epoch **milliseconds**
(UTC).  Use these helpers instead of ad-hoc ``time.time() * 1000`` math so the
unit stays consistent between the store and its callers.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone

MS_PER_HOUR = 3_600_000

# Largest value SQLite can store in an INTEGER column.
MAX_EPOCH_MS = 2**63 - 1


def utcnow() -> datetime:
    """Return the current UTC datetime with timezone info.

    Prefer this over ``datetime.utcnow()`` (which returns naive datetimes).
    """
    return datetime.now(tz=timezone.utc)


def now_ms() -> int:
    """Return the current time as integer epoch milliseconds."""
    return to_epoch_ms(utcnow())


def to_epoch_ms(dt: datetime) -> int:
    """Convert an aware datetime to epoch milliseconds.

    Naive datetimes are interpreted as UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def from_epoch_ms(ms: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def window_cutoff_ms(window_hours: float, now: int | None = None) -> int:
    """Return the inclusive lower bound for a trailing ``window_hours`` window.

    Args:
        window_hours: Window length in hours (fractional hours allowed).
        now:          Reference time in epoch ms; defaults to the current time.

    Returns:
        ``now - window_hours * 3_600_000``, rounded up so that integer
        timestamps compare exactly against a fractional cutoff.
    """
    if now is None:
        now = now_ms()
    return math.ceil(now - window_hours * MS_PER_HOUR)
