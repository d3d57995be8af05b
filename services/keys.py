"""Identity keys for history entries."""

from __future__ import annotations

from typing import Any


def format_number(value: Any) -> str:
    """Render integral floats without a trailing ``.0`` so keys stay stable across JSON round trips."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def build_key(original_timestamp: Any, distance: Any) -> str:
    """Key a reading by what the sensor reported and when the device claims it did.

    Doubles as the storage key, so ``.`` in either part is replaced with ``_``.
    """
    timestamp_part = format_number(original_timestamp or 0).replace(".", "_")
    distance_part = format_number(distance or 0).replace(".", "_")
    return f"{timestamp_part}_{distance_part}"
