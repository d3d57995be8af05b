"""CSV rendering of device history."""

from __future__ import annotations

import csv
import io
import logging
import math
import re
import time
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Any, Callable, List, Optional, Sequence

from app.schemas import HistoryEntry
from services.timestamps import now_ms
from storage.export_bucket import ExportBucket, build_default_bucket

logger = logging.getLogger(__name__)

TANK_DEVICE_TYPE = "tanks"
CSV_CONTENT_TYPE = "text/csv;charset=utf-8"

TANK_HEADERS = [
    "Date",
    "Time",
    "Distance (m)",
    "Distance (cm)",
    "Water Level (m)",
    "Volume (L)",
    "Main Flow Rate (L/min)",
    "Household Supply (count)",
    "Pressure (PSI)",
    "Valve States",
]

VALVE_HEADERS = [
    "Timestamp",
    "Date",
    "Valve State",
    "Control Status",
    "Supply Flow (L/min)",
    "Avg Supply/HH (L/min)",
    "Total Households",
    "Households Served",
    "Battery (%)",
    "Pressure (PSI)",
    "Changes",
]


def safe_number(value: Any, decimals: int = 0) -> str:
    """Fixed-decimal string, or ``""`` for missing, non-numeric or non-finite values."""
    if value is None or isinstance(value, bool):
        return ""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return ""
    if not math.isfinite(number):
        return ""
    return f"{number:.{decimals}f}"


def _local_moment(entry: HistoryEntry) -> datetime:
    return datetime.fromtimestamp(entry.timestamp / 1000)


def _valve_states(value: Any) -> str:
    if not value or not isinstance(value, list):
        return "No data"
    joined = "; ".join(
        f"{state.get('name')}:{state.get('state')}"
        for state in value
        if isinstance(state, dict)
    )
    return joined or "No data"


def tank_row(entry: HistoryEntry) -> List[str]:
    moment = _local_moment(entry)
    return [
        moment.strftime("%d/%m/%Y"),
        moment.strftime("%H:%M:%S"),
        safe_number(entry.value("distance"), 3),
        safe_number(entry.value("distance_cm"), 1),
        safe_number(entry.value("waterLevel"), 2),
        safe_number(entry.value("currentVolume"), 0),
        safe_number(entry.value("mainFlowRate"), 2),
        str(entry.value("householdSupply") or 0),
        safe_number(entry.value("pressureChange"), 1),
        _valve_states(entry.value("valveStates")),
    ]


def valve_row(entry: HistoryEntry) -> List[str]:
    return [
        str(entry.timestamp or ""),
        entry.date or _local_moment(entry).strftime("%d/%m/%Y, %H:%M:%S"),
        str(entry.value("valveState") or "unknown"),
        "CLOSED" if entry.value("active") else "OPEN",
        safe_number(entry.value("supplyFlow"), 2),
        safe_number(entry.value("avgSupplyPerHousehold"), 2),
        str(entry.value("households") or ""),
        str(entry.value("householdsServed") or 0),
        safe_number(entry.value("battery"), 0),
        safe_number(entry.value("pressure"), 1),
        str(entry.value("changes") or "No changes"),
    ]


def to_rows(entries: Sequence[HistoryEntry], device_type: str) -> List[List[str]]:
    """Header plus one row per entry, in the schema for ``device_type``."""
    if device_type == TANK_DEVICE_TYPE:
        headers, row = TANK_HEADERS, tank_row
    else:
        headers, row = VALVE_HEADERS, valve_row
    return [list(headers), *(row(entry) for entry in entries)]


def render_csv(entries: Sequence[HistoryEntry], device_type: str) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerows(to_rows(entries, device_type))
    return buffer.getvalue().rstrip("\n")


def export_filename(device_name: str, timestamp_ms: int) -> str:
    safe_name = re.sub(r"[^a-z0-9]", "_", device_name, flags=re.IGNORECASE)
    return f"{safe_name}-history-{timestamp_ms}.csv"


@dataclass(frozen=True)
class ExportedFile:
    filename: str
    content_type: str
    data: bytes


class CsvExporter:
    """Renders history to CSV and drops the file into the export bucket."""

    def __init__(self, bucket: ExportBucket, clock: Callable[[], float] = time.time) -> None:
        self.bucket = bucket
        self._clock = clock

    def export(
        self,
        entries: Sequence[HistoryEntry],
        device_name: str,
        device_type: str,
    ) -> Optional[ExportedFile]:
        if not entries:
            logger.warning(
                "No history data to export", extra={"device_type": device_type}
            )
            return None

        filename = export_filename(device_name, now_ms(self._clock()))
        data = render_csv(entries, device_type).encode("utf-8")
        self.bucket.put_object(filename, data)
        logger.info(
            "History exported to CSV",
            extra={"export_name": filename, "entry_count": len(entries)},
        )
        return ExportedFile(filename=filename, content_type=CSV_CONTENT_TYPE, data=data)


@lru_cache
def build_default_exporter() -> CsvExporter:
    return CsvExporter(bucket=build_default_bucket())
