"""Normalization of unit-ambiguous device timestamps."""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

YEAR_2000_MS = 946_684_800_000
YEAR_2000_SECONDS = 946_684_800
COUNTER_LIMIT = 1_000_000
# 9999-12-31T23:59:59.999Z, the last instant `datetime` can render
MAX_CANONICAL_MS = 253_402_300_799_999

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def normalize_timestamp(raw: Any) -> Optional[int]:
    """Return ``raw`` as canonical epoch milliseconds, or ``None`` when it is not wall-clock time.

    Values below ``COUNTER_LIMIT`` are device counters. Values in the
    seconds range before 2000 are scaled to milliseconds and accepted only
    if the result lands after 2000. Anything at or after 2000 in
    milliseconds is already canonical, up to the end of year 9999.
    Never raises.
    """
    if raw is None or isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return None
    if not math.isfinite(raw) or not raw:
        return None
    if raw < COUNTER_LIMIT:
        return None
    if raw < YEAR_2000_SECONDS:
        converted = raw * 1000
        if converted >= YEAR_2000_MS:
            return int(converted)
        return None
    if YEAR_2000_MS <= raw <= MAX_CANONICAL_MS:
        return int(raw)
    return None


def to_iso(timestamp_ms: int) -> str:
    """ISO-8601 UTC string with millisecond precision and a ``Z`` suffix."""
    moment = _EPOCH + timedelta(milliseconds=timestamp_ms)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def now_ms(clock_seconds: float) -> int:
    return int(clock_seconds * 1000)
