# src/tokenlaunch/runtime/vesting.py
"""Market-cap gated linear vesting.

States advance created -> deposited -> unlocked and never go back.

  initialize:   amount >= minimum, start in the future (configurable),
                end > start, min_period <= end - start <= max_period
  deposit:      created only; exact schedule amount moves into custody
  check_unlock: deposited only; observed market cap >= target; records unlock time
  claim:        unlocked only; pays claimable_amount(now) - claimed_amount

claimable_amount() is 0 until unlock, then grows linearly from start to end and
is capped at the schedule amount. claimed_amount is the running total already
paid, so repeated claims never pay the same window twice.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from tokenlaunch.ledger.constants import MAX_PERIOD_SECONDS, MIN_PERIOD_SECONDS, MINIMUM_AMOUNT
from tokenlaunch.ledger.saturating import sat_add, sat_div, sat_mul, sat_sub
from tokenlaunch.ledger.types import VESTING_CREATED, VESTING_DEPOSITED, VESTING_UNLOCKED, VestingSchedule
from tokenlaunch.runtime.collaborators import TransferGateway, token_account
from tokenlaunch.runtime.errors import (
    ALREADY_UNLOCKED,
    AMOUNT_TOO_LOW,
    ApplyError,
    INVALID_ARGUMENT,
    INVALID_DURATION,
    INVALID_END_TIME,
    INVALID_START_TIME,
    INVALID_STATE,
    MARKET_CAP_NOT_REACHED,
    NOT_UNLOCKED,
    NOTHING_TO_CLAIM,
    UNAUTHORIZED,
)

Json = Dict[str, Any]


@dataclass
class VestingApplyError(ApplyError):
    code: str
    reason: str
    details: Optional[Json] = None


def _as_id(v: Any, what: str) -> str:
    s = str(v or "").strip()
    if not s:
        raise VestingApplyError(INVALID_ARGUMENT, f"missing_{what}", {})
    return s


def initialize(
    *,
    creator: str,
    beneficiary: str,
    mint: str,
    amount: int,
    start: int,
    end: int,
    market_cap_target: int,
    now: int,
    minimum_amount: int = MINIMUM_AMOUNT,
    min_period: int = MIN_PERIOD_SECONDS,
    max_period: int = MAX_PERIOD_SECONDS,
    require_future_start: bool = True,
    bump: int = 0,
) -> VestingSchedule:
    creator = _as_id(creator, "creator")
    beneficiary = _as_id(beneficiary, "beneficiary")
    mint = _as_id(mint, "mint")

    start = int(start)
    end = int(end)
    if require_future_start and start <= int(now):
        raise VestingApplyError(INVALID_START_TIME, "start_not_in_future", {"start": start, "now": int(now)})
    if end <= start:
        raise VestingApplyError(INVALID_END_TIME, "end_not_after_start", {"start": start, "end": end})
    duration = end - start
    if not (int(min_period) <= duration <= int(max_period)):
        raise VestingApplyError(
            INVALID_DURATION,
            "vesting_duration_out_of_range",
            {"duration": duration, "min": min_period, "max": max_period},
        )
    if isinstance(amount, bool) or int(amount) < int(minimum_amount):
        raise VestingApplyError(AMOUNT_TOO_LOW, "below_minimum_amount", {"amount": amount, "minimum": minimum_amount})
    if isinstance(market_cap_target, bool) or int(market_cap_target) < 0:
        raise VestingApplyError(INVALID_ARGUMENT, "bad_market_cap_target", {"market_cap_target": market_cap_target})

    return VestingSchedule(
        beneficiary=beneficiary,
        mint=mint,
        amount=int(amount),
        start_timestamp=start,
        end_timestamp=end,
        market_cap_target=int(market_cap_target),
        creator=creator,
        state=VESTING_CREATED,
        unlock_timestamp=0,
        claimed_amount=0,
        bump=int(bump),
    )


def custody_account(schedule: VestingSchedule):
    return token_account(schedule.record_id, schedule.mint)


def deposit(schedule: VestingSchedule, *, signer: str, amount: int, gateway: TransferGateway) -> None:
    if str(signer or "").strip() != schedule.creator:
        raise VestingApplyError(UNAUTHORIZED, "not_vesting_creator", {"vesting": schedule.record_id})
    if schedule.state != VESTING_CREATED:
        raise VestingApplyError(INVALID_STATE, "already_deposited", {"state": schedule.state})
    if isinstance(amount, bool) or int(amount) != schedule.amount:
        # partial funding is not supported
        raise VestingApplyError(
            INVALID_ARGUMENT,
            "invalid_vesting_amount",
            {"amount": amount, "expected": schedule.amount},
        )

    gateway.transfer(token_account(schedule.creator, schedule.mint), custody_account(schedule), schedule.amount)

    schedule.state = VESTING_DEPOSITED


def check_unlock(schedule: VestingSchedule, *, signer: str, observed_market_cap: int, now: int) -> None:
    if str(signer or "").strip() != schedule.beneficiary:
        raise VestingApplyError(UNAUTHORIZED, "not_beneficiary", {"vesting": schedule.record_id})
    if schedule.state == VESTING_UNLOCKED:
        raise VestingApplyError(ALREADY_UNLOCKED, "already_unlocked", {"unlock_timestamp": schedule.unlock_timestamp})
    if schedule.state != VESTING_DEPOSITED:
        raise VestingApplyError(INVALID_STATE, "not_deposited", {"state": schedule.state})
    if int(observed_market_cap) < schedule.market_cap_target:
        raise VestingApplyError(
            MARKET_CAP_NOT_REACHED,
            "market_cap_below_target",
            {"market_cap": int(observed_market_cap), "target": schedule.market_cap_target},
        )

    schedule.state = VESTING_UNLOCKED
    schedule.unlock_timestamp = int(now)


def claimable_amount(schedule: VestingSchedule, now: int) -> int:
    """Total vested so far (ignores what was already claimed)."""
    if not schedule.is_unlocked:
        return 0
    now = int(now)
    if now >= schedule.end_timestamp:
        return schedule.amount
    if now <= schedule.start_timestamp:
        return 0
    period = schedule.end_timestamp - schedule.start_timestamp
    elapsed = now - schedule.start_timestamp
    return min(schedule.amount, sat_div(sat_mul(schedule.amount, elapsed), period))


def outstanding(schedule: VestingSchedule, now: int) -> int:
    """Vested but not yet claimed."""
    return sat_sub(claimable_amount(schedule, now), schedule.claimed_amount)


def claim(schedule: VestingSchedule, *, signer: str, now: int, gateway: TransferGateway) -> int:
    if str(signer or "").strip() != schedule.beneficiary:
        raise VestingApplyError(UNAUTHORIZED, "not_beneficiary", {"vesting": schedule.record_id})
    if not schedule.is_unlocked:
        raise VestingApplyError(NOT_UNLOCKED, "vesting_locked", {"state": schedule.state})

    due = outstanding(schedule, now)
    if due <= 0:
        raise VestingApplyError(
            NOTHING_TO_CLAIM,
            "nothing_vested",
            {"claimed_amount": schedule.claimed_amount, "now": int(now)},
        )

    gateway.transfer(custody_account(schedule), token_account(schedule.beneficiary, schedule.mint), due)

    schedule.claimed_amount = sat_add(schedule.claimed_amount, due)
    return due


__all__ = [
    "VestingApplyError",
    "check_unlock",
    "claim",
    "claimable_amount",
    "custody_account",
    "deposit",
    "initialize",
    "outstanding",
]
