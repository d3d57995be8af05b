from __future__ import annotations

from services.keys import build_key


def test_key_replaces_dots_in_distance() -> None:
    assert build_key(1_700_000_000_000, 2.5) == "1700000000000_2_5"


def test_missing_parts_default_to_zero() -> None:
    assert build_key(None, None) == "0_0"
    assert build_key(42, None) == "42_0"


def test_integral_floats_match_their_integer_form() -> None:
    # stored JSON may round-trip 1700000000000 as 1700000000000.0
    assert build_key(1_700_000_000_000.0, 3.0) == build_key(1_700_000_000_000, 3)


def test_key_ignores_other_fields() -> None:
    assert build_key(5, 1.25) == build_key(5, 1.25)
    assert build_key(5, 1.25) != build_key(5, 1.2)


def test_key_replaces_dots_in_fractional_timestamp() -> None:
    assert build_key(1_700_000_000_000.5, 2.5) == "1700000000000_5_2_5"
