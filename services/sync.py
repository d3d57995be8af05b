"""Idempotent ingestion of device readings into the history store."""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum
from functools import lru_cache
from typing import Any, Callable, Iterable, List, Mapping, Optional, Union

from app.schemas import HistoryEntry, SyncResult
from datastore.history_store import HistoryStore, build_default_store, history_path
from models.records import RawReading, Tank, as_number
from services import geometry
from services.keys import build_key, format_number
from services.timestamps import YEAR_2000_MS, normalize_timestamp, now_ms, to_iso
from settings import get_settings

logger = logging.getLogger(__name__)

ReadingLike = Union[RawReading, Mapping[str, Any]]


class WriteOutcome(str, Enum):
    written = "written"
    exists = "exists"
    failed = "failed"


def existing_key(record: Mapping[str, Any]) -> str:
    """Dedup key of an already stored record."""
    timestamp = (
        record.get("originalTimestamp")
        or record.get("deviceTimestamp")
        or record.get("timestamp")
    )
    return build_key(timestamp, record.get("distance"))


def build_entry(reading: RawReading, timestamp: int, tank: Optional[Tank] = None) -> HistoryEntry:
    """Assemble the persisted form of ``reading`` with derived distance and tank metrics."""

    distance = reading.distance
    entry = HistoryEntry(
        timestamp=timestamp,
        date=to_iso(timestamp),
        original_timestamp=reading.timestamp,
        device_timestamp=reading.timestamp,
        distance=distance,
        distance_meters=distance,
        distance_cm=f"{distance * 100:.1f}" if distance else None,
        extensions=dict(reading.extra),
    )

    if tank is not None and distance is not None:
        # point-in-time geometry snapshot
        level = geometry.water_level_from_distance(tank, distance)
        entry.water_level = level
        entry.current_volume = geometry.round_liters(geometry.volume(tank, level))
        entry.capacity = tank.effective_capacity
        entry.shape = tank.shape.value
        entry.diameter = tank.diameter
        entry.length = tank.length
        entry.breadth = tank.breadth
        entry.height = tank.height
        entry.sensor_height = tank.effective_sensor_height

    return entry


class HistorySyncEngine:
    """Deduplicates, repairs and enriches reading batches before writing them."""

    def __init__(
        self,
        store: HistoryStore,
        workers: int = 4,
        interval_minutes: float = 5.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.interval_ms = int(interval_minutes * 60 * 1000)
        self.executor = ThreadPoolExecutor(max_workers=workers)
        self._clock = clock

    def sync(
        self,
        device_id: str,
        device_type: str,
        readings: Optional[Iterable[ReadingLike]],
        tank: Optional[Tank] = None,
    ) -> SyncResult:
        """Write every reading not already in history and report the counts.

        Readings without a trustworthy timestamp get one synthesized: the
        batch is assumed to end now and to be spaced ``interval_minutes``
        apart. This is a best-effort ordering for devices without clocks,
        not a true time of measurement.
        """
        batch = list(readings or ())
        context = {"device_type": device_type, "device_id": device_id}
        if not batch:
            logger.info("No readings to sync", extra=context)
            return SyncResult(synced=0, skipped=0)

        try:
            batch = [self._coerce(reading) for reading in batch]
            logger.info("Starting history sync", extra={**context, "entry_count": len(batch)})
            existing = self.store.children(history_path(device_type, device_id))
            known_keys = {
                existing_key(record) for record in existing if isinstance(record, Mapping)
            }
            logger.debug(
                "Loaded existing history keys", extra={**context, "entry_count": len(known_keys)}
            )

            ordered = sorted(batch, key=lambda reading: reading.timestamp or 0)
            current_ms = now_ms(self._clock())
            last_index = len(ordered) - 1

            skipped = 0
            pending: List[Future[WriteOutcome]] = []
            for index, reading in enumerate(ordered):
                if not reading.timestamp:
                    skipped += 1
                    continue

                key = build_key(reading.timestamp, reading.distance)
                if key in known_keys:
                    skipped += 1
                    continue
                known_keys.add(key)

                timestamp = normalize_timestamp(reading.timestamp)
                if timestamp is None or timestamp < YEAR_2000_MS:
                    timestamp = current_ms - (last_index - index) * self.interval_ms

                entry = build_entry(reading, timestamp, tank)
                path = history_path(device_type, device_id, key)
                pending.append(self.executor.submit(self._write_entry, path, entry))

            outcomes = [future.result() for future in pending]
        except Exception as exc:  # noqa: BLE001 - surfaced through the result
            logger.exception("History sync failed", extra={**context, "reason": str(exc)})
            return SyncResult(synced=0, skipped=0, error=str(exc))

        synced = outcomes.count(WriteOutcome.written)
        skipped += outcomes.count(WriteOutcome.exists)
        failed = outcomes.count(WriteOutcome.failed)
        logger.info(
            "History sync complete",
            extra={**context, "synced": synced, "skipped": skipped, "failed": failed},
        )
        if synced:
            self._log_verification(device_id, device_type)
        return SyncResult(synced=synced, skipped=skipped, failed=failed)

    def save_reading(self, device_id: str, device_type: str, reading: ReadingLike) -> bool:
        """Store one reading keyed by its own timestamp, overwriting any previous value."""

        reading = self._coerce(reading)
        timestamp = (
            reading.timestamp
            or as_number(reading.extra.get("deviceTimestamp"))
            or now_ms(self._clock())
        )
        key = format_number(timestamp).replace(".", "_")
        try:
            record = {"timestamp": timestamp, "date": to_iso(int(timestamp)), **reading.extra}
            if reading.distance is not None:
                record["distance"] = reading.distance
            self.store.set(history_path(device_type, device_id, key), record)
        except Exception as exc:  # noqa: BLE001 - reported as a boolean
            logger.exception(
                "Error saving history reading",
                extra={
                    "device_type": device_type,
                    "device_id": device_id,
                    "history_key": key,
                    "reason": str(exc),
                },
            )
            return False
        return True

    def shutdown(self) -> None:
        """Release worker threads during application shutdown."""
        self.executor.shutdown(wait=False, cancel_futures=True)

    def _write_entry(self, path: str, entry: HistoryEntry) -> WriteOutcome:
        try:
            written = self.store.put_if_absent(path, entry.to_record())
        except Exception as exc:  # noqa: BLE001 - one bad write must not sink the batch
            logger.exception(
                "Error saving history entry", extra={"history_key": path, "reason": str(exc)}
            )
            return WriteOutcome.failed
        return WriteOutcome.written if written else WriteOutcome.exists

    def _log_verification(self, device_id: str, device_type: str) -> None:
        total = len(self.store.children(history_path(device_type, device_id)))
        logger.debug(
            "Verified history after sync",
            extra={"device_type": device_type, "device_id": device_id, "entry_count": total},
        )

    @staticmethod
    def _coerce(reading: ReadingLike) -> RawReading:
        if isinstance(reading, RawReading):
            return reading
        return RawReading.from_mapping(reading)


@lru_cache
def build_default_sync_engine(workers: Optional[int] = None) -> HistorySyncEngine:
    """Factory that wires the sync engine with the default store and settings."""
    settings = get_settings()
    return HistorySyncEngine(
        store=build_default_store(),
        workers=workers or settings.sync_workers,
        interval_minutes=settings.synthetic_interval_minutes,
    )
