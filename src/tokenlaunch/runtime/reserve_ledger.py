# src/tokenlaunch/runtime/reserve_ledger.py
"""Apply curve quotes to a Curve record.

Ordering rules for every trade:
  1. validate (completion, amounts, reserves, slippage) -> raise before any effect
  2. run every custody transfer the trade needs
  3. only then mutate the curve record

A failed transfer therefore leaves the curve untouched. Rolling back transfers
that already succeeded in the same invocation is the caller's job
(LaunchOrchestrator wraps the call in gateway.atomic()).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from tokenlaunch.ledger.constants import BPS_DENOMINATOR
from tokenlaunch.ledger.saturating import sat_add, sat_div, sat_mul, sat_sub
from tokenlaunch.ledger.types import Curve
from tokenlaunch.runtime import curve_engine
from tokenlaunch.runtime.collaborators import TransferGateway, sol_account, token_account
from tokenlaunch.runtime.curve_engine import CurveApplyError, Quote
from tokenlaunch.runtime.errors import (
    CURVE_COMPLETE,
    INSUFFICIENT_RESERVE,
    INVALID_ARGUMENT,
    SLIPPAGE_EXCEEDED,
    UNAUTHORIZED,
)

Json = Dict[str, Any]

BUY = "buy"
SELL = "sell"


@dataclass(frozen=True, slots=True)
class FeePolicy:
    basis_points: int = 0
    recipient: str = ""

    def fee_for(self, amount: int) -> int:
        if self.basis_points <= 0:
            return 0
        return sat_div(sat_mul(amount, self.basis_points), BPS_DENOMINATOR)


NO_FEES = FeePolicy()


@dataclass(frozen=True, slots=True)
class TradeResult:
    direction: str
    trader: str
    mint: str
    token_amount: int
    sol_amount: int
    fee: int

    def to_json(self) -> Json:
        return {
            "direction": self.direction,
            "trader": self.trader,
            "mint": self.mint,
            "token_amount": int(self.token_amount),
            "sol_amount": int(self.sol_amount),
            "fee": int(self.fee),
            "is_buy": self.direction == BUY,
        }


def curve_custody(curve: Curve) -> str:
    """Custody owner id for the curve's SOL and token vaults."""
    return curve.record_id


def _deny_if_complete(curve: Curve) -> None:
    if curve.is_complete:
        raise CurveApplyError(CURVE_COMPLETE, "curve_complete", {"mint": curve.mint})


def _require_trader(trader: str) -> str:
    t = str(trader or "").strip()
    if not t:
        raise CurveApplyError(INVALID_ARGUMENT, "missing_trader", {})
    return t


def _commit_buy(curve: Curve, quote: Quote) -> None:
    curve.reserve_token = sat_sub(curve.reserve_token, quote.token_amount)
    curve.reserve_sol = sat_add(curve.reserve_sol, quote.sol_amount)
    curve.virtual_sol_reserves = quote.virtual_sol_reserves
    curve.virtual_token_reserves = quote.virtual_token_reserves


def _execute_buy(
    curve: Curve,
    quote: Quote,
    *,
    buyer: str,
    max_sol_cost: int,
    gateway: TransferGateway,
    fees: FeePolicy,
) -> TradeResult:
    if quote.token_amount <= 0:
        raise CurveApplyError(INVALID_ARGUMENT, "zero_tokens_out", {"sol_amount": quote.sol_amount})

    fee = fees.fee_for(quote.sol_amount)
    total_cost = sat_add(quote.sol_amount, fee)
    if total_cost > int(max_sol_cost):
        raise CurveApplyError(
            SLIPPAGE_EXCEEDED,
            "max_sol_cost_exceeded",
            {"cost": total_cost, "max_sol_cost": int(max_sol_cost)},
        )

    custody = curve_custody(curve)
    gateway.transfer(sol_account(buyer), sol_account(custody), quote.sol_amount)
    gateway.transfer(token_account(custody, curve.mint), token_account(buyer, curve.mint), quote.token_amount)
    if fee > 0:
        gateway.transfer(sol_account(buyer), sol_account(fees.recipient), fee)

    _commit_buy(curve, quote)
    return TradeResult(BUY, buyer, curve.mint, quote.token_amount, quote.sol_amount, fee)


def buy(
    curve: Curve,
    *,
    buyer: str,
    sol_in: int,
    max_sol_cost: int,
    gateway: TransferGateway,
    fees: FeePolicy = NO_FEES,
) -> TradeResult:
    """Spend up to sol_in SOL units on the curve.

    Raises CurveApplyError with code curve_complete / invalid_argument /
    insufficient_reserve / slippage_exceeded. The charged amount is the quote's
    sol_amount (equal to sol_in outside the AMM) plus the fee.
    """
    buyer = _require_trader(buyer)
    _deny_if_complete(curve)
    quote = curve_engine.quote_buy(curve, sol_in)
    return _execute_buy(curve, quote, buyer=buyer, max_sol_cost=max_sol_cost, gateway=gateway, fees=fees)


def buy_exact_tokens(
    curve: Curve,
    *,
    buyer: str,
    token_amount: int,
    max_sol_cost: int,
    gateway: TransferGateway,
    fees: FeePolicy = NO_FEES,
) -> TradeResult:
    """AMM-only buy of a requested token amount (clamped to the real token reserve)."""
    buyer = _require_trader(buyer)
    _deny_if_complete(curve)
    quote = curve_engine.quote_buy_exact_tokens(curve, token_amount)
    return _execute_buy(curve, quote, buyer=buyer, max_sol_cost=max_sol_cost, gateway=gateway, fees=fees)


def sell(
    curve: Curve,
    *,
    seller: str,
    tokens_in: int,
    min_sol_out: int,
    gateway: TransferGateway,
    fees: FeePolicy = NO_FEES,
) -> TradeResult:
    """Sell tokens back into the curve; the fee is withheld from the proceeds."""
    seller = _require_trader(seller)
    _deny_if_complete(curve)
    quote = curve_engine.quote_sell(curve, tokens_in)

    fee = fees.fee_for(quote.sol_amount)
    proceeds = sat_sub(quote.sol_amount, fee)
    if proceeds <= 0:
        raise CurveApplyError(INVALID_ARGUMENT, "zero_sol_out", {"tokens_in": tokens_in})
    if proceeds < int(min_sol_out):
        raise CurveApplyError(
            SLIPPAGE_EXCEEDED,
            "min_sol_out_not_met",
            {"sol_out": proceeds, "min_sol_out": int(min_sol_out)},
        )

    custody = curve_custody(curve)
    gateway.transfer(token_account(seller, curve.mint), token_account(custody, curve.mint), quote.token_amount)
    gateway.transfer(sol_account(custody), sol_account(seller), proceeds)
    if fee > 0:
        gateway.transfer(sol_account(custody), sol_account(fees.recipient), fee)

    curve.reserve_token = sat_add(curve.reserve_token, quote.token_amount)
    curve.reserve_sol = sat_sub(curve.reserve_sol, quote.sol_amount)
    curve.virtual_sol_reserves = quote.virtual_sol_reserves
    curve.virtual_token_reserves = quote.virtual_token_reserves
    return TradeResult(SELL, seller, curve.mint, quote.token_amount, proceeds, fee)


def complete(curve: Curve, *, authority: str) -> bool:
    """Mark the curve complete. Returns False when it already was (idempotent no-op)."""
    if str(authority or "").strip() != curve.authority:
        raise CurveApplyError(UNAUTHORIZED, "not_curve_authority", {"mint": curve.mint})
    if curve.is_complete:
        return False
    curve.is_complete = True
    return True


def check_reserves(curve: Curve) -> None:
    """Fail closed if a curve record violates its reserve invariants."""
    if curve.reserve_token > curve.total_supply:
        raise CurveApplyError(
            INSUFFICIENT_RESERVE,
            "reserve_token_exceeds_supply",
            {"reserve_token": curve.reserve_token, "total_supply": curve.total_supply},
        )


__all__ = [
    "BUY",
    "SELL",
    "FeePolicy",
    "NO_FEES",
    "TradeResult",
    "buy",
    "buy_exact_tokens",
    "check_reserves",
    "complete",
    "curve_custody",
    "sell",
]
