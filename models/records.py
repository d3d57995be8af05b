"""Domain values consumed by the history services."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

Number = Union[int, float]

DEFAULT_SENSOR_HEIGHT_M = 10.0
DEFAULT_CAPACITY_L = 20000.0


def as_number(value: Any) -> Optional[Number]:
    """Coerce a loosely typed payload value into a finite number, or ``None``."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        candidate = value.strip()
        if not candidate:
            return None
        try:
            parsed = float(candidate)
        except ValueError:
            return None
        if not math.isfinite(parsed):
            return None
        return int(parsed) if parsed.is_integer() else parsed
    return None


@dataclass(slots=True)
class RawReading:
    """A reading as reported by a device collector.

    ``timestamp`` and ``distance`` are the only fields the history core
    interprets; everything else travels untouched in ``extra``.
    """

    timestamp: Optional[Number] = None
    distance: Optional[Number] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "RawReading":
        extra = {
            key: value
            for key, value in payload.items()
            if key not in ("timestamp", "distance")
        }
        return cls(
            timestamp=as_number(payload.get("timestamp")),
            distance=as_number(payload.get("distance")),
            extra=extra,
        )


class TankShape(str, Enum):
    cylinder = "cylinder"
    cuboid = "cuboid"
    other = "other"

    @classmethod
    def parse(cls, value: Any) -> "TankShape":
        """Map any configured shape onto the closed set; unknown shapes become ``other``."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.other


@dataclass(frozen=True, slots=True)
class Tank:
    """Geometry of a tank, read-only from the point of view of history."""

    shape: TankShape = TankShape.other
    diameter: Optional[float] = None
    length: Optional[float] = None
    breadth: Optional[float] = None
    height: Optional[float] = None
    sensor_height: Optional[float] = None
    capacity: Optional[float] = None

    @property
    def effective_sensor_height(self) -> float:
        return self.sensor_height or self.height or DEFAULT_SENSOR_HEIGHT_M

    @property
    def effective_capacity(self) -> float:
        return self.capacity or DEFAULT_CAPACITY_L

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "Tank":
        return cls(
            shape=TankShape.parse(payload.get("shape")),
            diameter=as_number(payload.get("diameter")),
            length=as_number(payload.get("length")),
            breadth=as_number(payload.get("breadth")),
            height=as_number(payload.get("height")),
            sensor_height=as_number(
                payload.get("sensorHeight", payload.get("sensor_height"))
            ),
            capacity=as_number(payload.get("capacity")),
        )
