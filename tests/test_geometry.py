"""Unit tests for tank geometry."""

from __future__ import annotations

import math

import pytest

from models.records import Tank, TankShape
from services import geometry


def test_cylinder_volume_in_liters() -> None:
    tank = Tank(shape=TankShape.cylinder, diameter=2, height=5, sensor_height=5)

    assert geometry.volume(tank, 2.5) == pytest.approx(math.pi * 2.5 * 1000)


def test_cuboid_volume_in_liters() -> None:
    tank = Tank(shape=TankShape.cuboid, length=2, breadth=3, height=4)

    assert geometry.volume(tank, 1.5) == pytest.approx(9000)


def test_unknown_shape_interpolates_capacity() -> None:
    tank = Tank(shape=TankShape.parse("hexagonal"), height=4, capacity=8000)

    assert tank.shape is TankShape.other
    assert geometry.volume(tank, 1) == pytest.approx(2000)


def test_missing_dimensions_yield_zero_volume() -> None:
    assert geometry.volume(Tank(shape=TankShape.cylinder), 3) == 0
    assert geometry.volume(Tank(shape=TankShape.cuboid, length=2), 3) == 0
    assert geometry.volume(Tank(shape=TankShape.other, height=0, capacity=1000), 3) == 0


def test_cylinder_volume_is_monotonic_in_level() -> None:
    tank = Tank(shape=TankShape.cylinder, diameter=3)
    levels = [0, 0.1, 0.5, 1, 2.75, 4]
    volumes = [geometry.volume(tank, level) for level in levels]

    assert volumes == sorted(volumes)


@pytest.mark.parametrize("distance", [-100, -1, 0, 0.3, 4.99, 5, 7, 1e9])
def test_water_level_is_clamped_to_sensor_height(distance) -> None:
    tank = Tank(shape=TankShape.cylinder, diameter=2, height=6, sensor_height=5)

    level = geometry.water_level_from_distance(tank, distance)

    assert 0 <= level <= 5


def test_sensor_height_falls_back_to_tank_height_then_default() -> None:
    assert geometry.water_level_from_distance(Tank(height=4), 1) == 3
    assert geometry.water_level_from_distance(Tank(), 1) == 9


def test_max_capacity_per_shape() -> None:
    cylinder = Tank(shape=TankShape.cylinder, diameter=2, height=5)
    cuboid = Tank(shape=TankShape.cuboid, length=1, breadth=2, height=3)

    assert geometry.max_capacity(cylinder) == pytest.approx(math.pi * 5 * 1000)
    assert geometry.max_capacity(cuboid) == pytest.approx(6000)
    assert geometry.max_capacity(Tank()) == 20000


def test_round_liters_rounds_half_up() -> None:
    assert geometry.round_liters(7853.98) == 7854
    assert geometry.round_liters(2.5) == 3
    assert geometry.round_liters(2.49) == 2
