# src/tokenlaunch/ledger/saturating.py
"""Saturating unsigned 64-bit arithmetic.

Every helper clamps its result into [0, U64_MAX] instead of wrapping or raising.
Division by zero is the one arithmetic failure that is never clamped: callers get
ZeroDivisionError and are expected to promote it to a typed domain error.
"""

from __future__ import annotations

import math

from tokenlaunch.ledger.constants import U64_MAX


def clamp_u64(v: int) -> int:
    if v < 0:
        return 0
    if v > U64_MAX:
        return U64_MAX
    return int(v)


def sat_add(a: int, b: int) -> int:
    return clamp_u64(int(a) + int(b))


def sat_sub(a: int, b: int) -> int:
    return clamp_u64(int(a) - int(b))


def sat_mul(a: int, b: int) -> int:
    return clamp_u64(int(a) * int(b))


def sat_div(a: int, b: int) -> int:
    b = int(b)
    if b == 0:
        raise ZeroDivisionError("u64 division by zero")
    return clamp_u64(int(a) // b)


def sat_isqrt(a: int) -> int:
    return math.isqrt(clamp_u64(a))


__all__ = ["clamp_u64", "sat_add", "sat_sub", "sat_mul", "sat_div", "sat_isqrt"]
