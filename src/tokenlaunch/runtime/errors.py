from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# Error kinds. `code` on every ApplyError is one of these.
INVALID_ARGUMENT = "invalid_argument"
INSUFFICIENT_RESERVE = "insufficient_reserve"
SLIPPAGE_EXCEEDED = "slippage_exceeded"
CURVE_COMPLETE = "curve_complete"
TOKENS_STILL_LOCKED = "tokens_still_locked"
AMOUNT_TOO_LOW = "amount_too_low"
INVALID_DURATION = "invalid_duration"
INVALID_START_TIME = "invalid_start_time"
INVALID_END_TIME = "invalid_end_time"
MARKET_CAP_NOT_REACHED = "market_cap_not_reached"
NOT_UNLOCKED = "not_unlocked"
ALREADY_UNLOCKED = "already_unlocked"
UNAUTHORIZED = "unauthorized"
NOTHING_TO_CLAIM = "nothing_to_claim"
INVALID_STATE = "invalid_state"
NOT_FOUND = "not_found"
CONFLICT = "conflict"
TRANSFER_FAILED = "transfer_failed"

ERROR_CODES = frozenset(
    {
        INVALID_ARGUMENT,
        INSUFFICIENT_RESERVE,
        SLIPPAGE_EXCEEDED,
        CURVE_COMPLETE,
        TOKENS_STILL_LOCKED,
        AMOUNT_TOO_LOW,
        INVALID_DURATION,
        INVALID_START_TIME,
        INVALID_END_TIME,
        MARKET_CAP_NOT_REACHED,
        NOT_UNLOCKED,
        ALREADY_UNLOCKED,
        UNAUTHORIZED,
        NOTHING_TO_CLAIM,
        INVALID_STATE,
        NOT_FOUND,
        CONFLICT,
        TRANSFER_FAILED,
    }
)


@dataclass
class ApplyError(Exception):
    """Canonical error type for launchpad operation failures."""

    code: str
    reason: str
    details: Any | None = None

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"
