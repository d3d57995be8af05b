"""Tank geometry: water level from sensor distance and volume from water level."""

from __future__ import annotations

import math

from models.records import Tank, TankShape

LITERS_PER_CUBIC_METER = 1000


def water_level_from_distance(tank: Tank, distance: float) -> float:
    """Level above the floor in meters, clamped to ``[0, sensor height]``."""
    sensor_height = tank.effective_sensor_height
    return max(0.0, min(sensor_height, sensor_height - distance))


def volume(tank: Tank, water_level: float) -> float:
    """Volume in liters held at ``water_level`` meters.

    Missing or zero dimensions yield zero rather than raising.
    """
    if tank.shape is TankShape.cylinder:
        radius = (tank.diameter or 0) / 2
        return math.pi * radius**2 * water_level * LITERS_PER_CUBIC_METER
    if tank.shape is TankShape.cuboid:
        return (tank.length or 0) * (tank.breadth or 0) * water_level * LITERS_PER_CUBIC_METER
    if not tank.height:
        return 0.0
    return (water_level / tank.height) * tank.effective_capacity


def max_capacity(tank: Tank) -> float:
    """Full volume in liters; shapes without usable dimensions report the configured capacity."""
    if tank.shape is TankShape.cylinder:
        radius = (tank.diameter or 0) / 2
        return math.pi * radius**2 * (tank.height or 0) * LITERS_PER_CUBIC_METER
    if tank.shape is TankShape.cuboid:
        return (tank.length or 0) * (tank.breadth or 0) * (tank.height or 0) * LITERS_PER_CUBIC_METER
    return tank.effective_capacity


def round_liters(value: float) -> int:
    # half-up
    return int(math.floor(value + 0.5))
