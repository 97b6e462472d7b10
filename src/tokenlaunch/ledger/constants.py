# src/tokenlaunch/ledger/constants.py
"""Launchpad fixed-point and policy constants.

Anchors:
- All on-ledger quantities are unsigned 64-bit integers
- Price-function curves use a 1e6 fixed-point denominator
- Rate-function curves (linear/quadratic/exponential) use a 1e3 denominator
- Token amounts carry 6 decimals
"""

from __future__ import annotations

# Unsigned 64-bit range; all arithmetic saturates into it.
U64_MAX: int = 2**64 - 1

# Price fixed point (SOL units per token, scaled)
SCALE: int = 1_000_000

# Rate fixed point (tokens per RATE_SCALE SOL units)
RATE_SCALE: int = 1_000

# Quadratic boost denominator and sell haircut (keep 95%)
QUAD_SCALE: int = 10_000
QUAD_SELL_RETAIN: int = 950

# Fees are expressed in basis points.
BPS_DENOMINATOR: int = 10_000

# Minimum lock / vesting amount: 1 whole token.
MINIMUM_AMOUNT: int = 1_000_000

# Lock and vesting windows
MIN_PERIOD_SECONDS: int = 24 * 60 * 60  # 1 day
MAX_PERIOD_SECONDS: int = 365 * 24 * 60 * 60  # 1 year

# AMM launch defaults
DEFAULT_VIRTUAL_SOL_RESERVES: int = 1_000_000
DEFAULT_VIRTUAL_TOKEN_RESERVES: int = 1_000_000_000

# Asset tag for the native currency in custody AccountRefs
SOL_ASSET: str = "SOL"
