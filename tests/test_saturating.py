from __future__ import annotations

import pytest

from tokenlaunch.ledger.constants import U64_MAX
from tokenlaunch.ledger.saturating import clamp_u64, sat_add, sat_div, sat_isqrt, sat_mul, sat_sub


def test_add_and_mul_clamp_at_u64_max() -> None:
    assert sat_add(U64_MAX, 1) == U64_MAX
    assert sat_mul(U64_MAX, 2) == U64_MAX
    assert sat_mul(2**40, 2**40) == U64_MAX


def test_sub_clamps_at_zero() -> None:
    assert sat_sub(5, 7) == 0
    assert sat_sub(7, 5) == 2


def test_div_floors_and_rejects_zero_denominator() -> None:
    assert sat_div(7, 2) == 3
    with pytest.raises(ZeroDivisionError):
        sat_div(1, 0)


def test_clamp_and_isqrt() -> None:
    assert clamp_u64(-1) == 0
    assert clamp_u64(U64_MAX + 10) == U64_MAX
    assert sat_isqrt(99) == 9
    assert sat_isqrt(-4) == 0
