"""Read side of the history store: normalization, date filtering and ordering."""

from __future__ import annotations

import logging
import time
from datetime import date, datetime, time as clock_time, timedelta
from functools import cmp_to_key, lru_cache
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from app.schemas import HistoryEntry
from datastore.history_store import HistoryStore, build_default_store, history_path
from models.records import Number, as_number
from services.timestamps import (
    COUNTER_LIMIT,
    YEAR_2000_MS,
    normalize_timestamp,
    now_ms,
    to_iso,
)

logger = logging.getLogger(__name__)

DateBound = Union[date, datetime, str]
_Ranked = Tuple[HistoryEntry, Number]

_END_OF_DAY = clock_time(23, 59, 59)


def _as_date(value: Union[date, str]) -> date:
    if isinstance(value, str):
        return date.fromisoformat(value.strip())
    return value


def start_bound_ms(value: DateBound) -> int:
    """Local-time start of ``value``; datetimes are taken as-is."""
    if isinstance(value, datetime):
        return int(value.timestamp() * 1000)
    return int(datetime.combine(_as_date(value), clock_time.min).timestamp() * 1000)


def end_bound_ms(value: DateBound) -> int:
    """Local 23:59:59 on ``value``; datetimes extend a full day forward."""
    if isinstance(value, datetime):
        return int((value + timedelta(days=1)).timestamp() * 1000)
    return int(datetime.combine(_as_date(value), _END_OF_DAY).timestamp() * 1000)


def _compare(left: _Ranked, right: _Ranked) -> int:
    left_entry, left_key = left
    right_entry, right_key = right
    if left_key and right_key and left_key < COUNTER_LIMIT and right_key < COUNTER_LIMIT:
        difference = right_key - left_key
    else:
        difference = right_entry.timestamp - left_entry.timestamp
    return (difference > 0) - (difference < 0)


class HistoryQueryEngine:
    """Fetches a device's history and returns it filtered and newest first."""

    def __init__(self, store: HistoryStore, clock: Callable[[], float] = time.time) -> None:
        self.store = store
        self._clock = clock

    def fetch_raw(self, device_id: str, device_type: str) -> List[Dict[str, Any]]:
        """Stored records without normalization or filtering; empty on any read error."""
        try:
            records = self.store.children(history_path(device_type, device_id))
        except Exception as exc:  # noqa: BLE001 - reads degrade to an empty history
            logger.exception(
                "Error fetching raw history",
                extra={"device_type": device_type, "device_id": device_id, "reason": str(exc)},
            )
            return []
        return [record for record in records if isinstance(record, Mapping)]

    def query(
        self,
        device_id: str,
        device_type: str,
        start_date: Optional[DateBound] = None,
        end_date: Optional[DateBound] = None,
    ) -> List[HistoryEntry]:
        context = {"device_type": device_type, "device_id": device_id}
        records = self.fetch_raw(device_id, device_type)
        if not records:
            logger.info("No history found", extra=context)
            return []

        try:
            current_ms = now_ms(self._clock())
            ranked = [
                item
                for item in (self._rank(record, current_ms) for record in records)
                if item is not None
            ]

            if any(entry.timestamp > YEAR_2000_MS for entry, _ in ranked):
                if start_date is not None:
                    lower = start_bound_ms(start_date)
                    ranked = [item for item in ranked if item[0].timestamp >= lower]
                if end_date is not None:
                    upper = end_bound_ms(end_date)
                    ranked = [item for item in ranked if item[0].timestamp <= upper]
            elif start_date is not None or end_date is not None:
                logger.info(
                    "History uses relative timestamps; date filter skipped", extra=context
                )

            ranked.sort(key=cmp_to_key(_compare))
        except Exception as exc:  # noqa: BLE001 - reads degrade to an empty history
            logger.exception("Error querying history", extra={**context, "reason": str(exc)})
            return []

        logger.info("Returning history", extra={**context, "entry_count": len(ranked)})
        return [entry for entry, _ in ranked]

    @staticmethod
    def _rank(record: Mapping[str, Any], current_ms: int) -> Optional[_Ranked]:
        stored = as_number(record.get("timestamp"))
        original = as_number(record.get("originalTimestamp"))
        device = as_number(record.get("deviceTimestamp"))

        # stored data may predate the repair logic, so normalize again
        effective = normalize_timestamp(stored or original or device)
        if effective is None:
            effective = int(stored) if stored else current_ms

        payload = dict(record)
        payload["timestamp"] = effective
        try:
            if not isinstance(payload.get("date"), str):
                payload["date"] = to_iso(effective)
            entry = HistoryEntry.model_validate(payload)
        except (ValidationError, OverflowError, ValueError, OSError) as exc:
            logger.warning("Skipping unreadable history record", extra={"reason": str(exc)})
            return None
        return entry, original or device or stored or 0


@lru_cache
def build_default_query_engine() -> HistoryQueryEngine:
    return HistoryQueryEngine(store=build_default_store())
