"""Pydantic schemas for persisted history entries and the HTTP API layer."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from models.records import RawReading, Tank

Number = Union[int, float]


class HistoryEntry(BaseModel):
    """A reading as persisted in the history store.

    Known fields are explicit; any other field reported by the device is kept
    verbatim in ``extensions``. Records written by older versions stored
    those fields flat, so unknown top-level keys are folded into
    ``extensions`` on load.
    """

    model_config = ConfigDict(populate_by_name=True)

    timestamp: int
    date: str
    original_timestamp: Optional[Number] = Field(default=None, alias="originalTimestamp")
    device_timestamp: Optional[Number] = Field(default=None, alias="deviceTimestamp")
    distance: Optional[Number] = None
    distance_meters: Optional[Number] = None
    distance_cm: Optional[str] = None
    water_level: Optional[float] = Field(default=None, alias="waterLevel")
    current_volume: Optional[Number] = Field(default=None, alias="currentVolume")
    capacity: Optional[float] = None
    shape: Optional[str] = None
    diameter: Optional[float] = None
    length: Optional[float] = None
    breadth: Optional[float] = None
    height: Optional[float] = None
    sensor_height: Optional[float] = Field(default=None, alias="sensorHeight")
    extensions: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _fold_unknown_fields(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        known = _field_names()
        extensions = dict(data.get("extensions") or {})
        folded: Dict[str, Any] = {}
        for key, value in data.items():
            if key == "extensions":
                continue
            if key in known:
                folded[key] = value
            else:
                extensions.setdefault(key, value)
        folded["extensions"] = extensions
        return folded

    def value(self, name: str, default: Any = None) -> Any:
        """Look a field up by storage name, falling back to ``extensions``."""
        attribute = _field_names().get(name)
        if attribute is not None and attribute != "extensions":
            found = getattr(self, attribute)
            if found is not None:
                return found
        return self.extensions.get(name, default)

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def _field_names() -> Dict[str, str]:
    names: Dict[str, str] = {}
    for attribute, info in HistoryEntry.model_fields.items():
        names[attribute] = attribute
        if info.alias:
            names[info.alias] = attribute
    return names


class SyncResult(BaseModel):
    """Outcome of a batch sync; callers check ``error`` instead of catching."""

    synced: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0, description="Writes that raised and were not persisted.")
    error: Optional[str] = None


class ReadingPayload(BaseModel):
    """Raw device reading; arbitrary extra fields are accepted and preserved."""

    model_config = ConfigDict(extra="allow")

    timestamp: Optional[Number] = None
    distance: Optional[Number] = None

    def to_reading(self) -> RawReading:
        return RawReading.from_mapping(self.model_dump(exclude_none=True))


class TankGeometry(BaseModel):
    """Tank geometry snapshot supplied alongside a sync request."""

    model_config = ConfigDict(populate_by_name=True)

    shape: str = "other"
    diameter: Optional[float] = None
    length: Optional[float] = None
    breadth: Optional[float] = None
    height: Optional[float] = None
    sensor_height: Optional[float] = Field(default=None, alias="sensorHeight")
    capacity: Optional[float] = None

    def to_tank(self) -> Tank:
        return Tank.from_mapping(self.model_dump(by_alias=True))


class SyncRequest(BaseModel):
    readings: List[ReadingPayload] = Field(default_factory=list)
    tank: Optional[TankGeometry] = None


class SaveResponse(BaseModel):
    saved: bool


class ExportNotice(BaseModel):
    """Returned instead of a file when there is nothing to export."""

    detail: str = "No history data to export."

