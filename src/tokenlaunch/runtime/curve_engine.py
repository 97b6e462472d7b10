# src/tokenlaunch/runtime/curve_engine.py
"""Bonding-curve pricing engine.

Pure functions over a Curve record. Nothing here mutates the curve or touches
custody; ReserveLedger applies the returned quotes.

Curve-type tags map to exactly one formula set:

  0 LINEAR           rate family
  1 QUADRATIC        rate family
  2 EXPONENTIAL      rate family
  3 LOGARITHMIC      price family
  4 SIGMOID          price family
  5 CONSTANT_PRODUCT virtual-reserve AMM

Rate family: price() is a rate in tokens per RATE_SCALE SOL units,
  rate = initial_price + custom_params[0] + total_supply * slope / SCALE
Price family: price() is SOL units per token scaled by SCALE.
AMM: price() is virtual_sol * SCALE / virtual_token.

Arithmetic saturates to u64. A zero denominator or a zero price/rate where a
strictly positive one is required is reported as invalid_argument rather than
clamped.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

from tokenlaunch.ledger.constants import QUAD_SCALE, QUAD_SELL_RETAIN, RATE_SCALE, SCALE
from tokenlaunch.ledger.saturating import sat_add, sat_div, sat_isqrt, sat_mul, sat_sub
from tokenlaunch.ledger.types import Curve
from tokenlaunch.runtime.errors import ApplyError, INSUFFICIENT_RESERVE, INVALID_ARGUMENT

Json = Dict[str, Any]

LINEAR = 0
QUADRATIC = 1
EXPONENTIAL = 2
LOGARITHMIC = 3
SIGMOID = 4
CONSTANT_PRODUCT = 5

CURVE_TYPE_NAMES: Dict[int, str] = {
    LINEAR: "linear",
    QUADRATIC: "quadratic",
    EXPONENTIAL: "exponential",
    LOGARITHMIC: "logarithmic",
    SIGMOID: "sigmoid",
    CONSTANT_PRODUCT: "constant_product",
}


@dataclass
class CurveApplyError(ApplyError):
    """Pricing and reserve failures on a bonding curve."""

    code: str
    reason: str
    details: Optional[Json] = None


@dataclass(frozen=True, slots=True)
class Quote:
    """Result of pricing one trade against a curve snapshot.

    virtual_* hold the post-trade virtual reserves (unchanged outside the AMM).
    """

    token_amount: int
    sol_amount: int
    virtual_sol_reserves: int
    virtual_token_reserves: int


def parse_curve_type(v: Any) -> int:
    """Accept a numeric tag or a case-insensitive name."""
    if isinstance(v, bool):
        raise CurveApplyError(INVALID_ARGUMENT, "invalid_curve_type", {"curve_type": v})
    if isinstance(v, int):
        tag = v
    else:
        s = str(v).strip().lower()
        by_name = {name: tag for tag, name in CURVE_TYPE_NAMES.items()}
        if s in by_name:
            return by_name[s]
        try:
            tag = int(s)
        except ValueError:
            raise CurveApplyError(INVALID_ARGUMENT, "invalid_curve_type", {"curve_type": v}) from None
    if tag not in CURVE_TYPE_NAMES:
        raise CurveApplyError(INVALID_ARGUMENT, "invalid_curve_type", {"curve_type": v})
    return tag


def _div(a: int, b: int, term: str) -> int:
    if int(b) == 0:
        raise CurveApplyError(INVALID_ARGUMENT, "zero_denominator", {"term": term})
    return sat_div(a, b)


def _require_positive(v: int, what: str) -> int:
    if int(v) <= 0:
        raise CurveApplyError(INVALID_ARGUMENT, "non_positive_price", {"term": what})
    return int(v)


class PricingStrategy:
    """One curve type's pricing rules.

    Subclasses implement the raw conversions; reserve checks live in the
    module-level quote_* functions so every strategy shares them.
    """

    tag: int = -1
    name: str = ""

    def price(self, curve: Curve) -> int:
        raise NotImplementedError

    def tokens_for_sol(self, curve: Curve, sol_in: int) -> int:
        raise NotImplementedError

    def sol_for_tokens(self, curve: Curve, tokens_in: int) -> int:
        raise NotImplementedError


class _RateStrategy(PricingStrategy):
    def price(self, curve: Curve) -> int:
        supply_term = sat_div(sat_mul(curve.total_supply, curve.slope), SCALE)
        return sat_add(sat_add(curve.initial_price, curve.custom_params[0]), supply_term)

    def _rate(self, curve: Curve) -> int:
        return _require_positive(self.price(curve), "rate")


class LinearStrategy(_RateStrategy):
    tag = LINEAR
    name = "linear"

    def tokens_for_sol(self, curve: Curve, sol_in: int) -> int:
        return sat_div(sat_mul(sol_in, self._rate(curve)), RATE_SCALE)

    def sol_for_tokens(self, curve: Curve, tokens_in: int) -> int:
        return _div(sat_mul(tokens_in, RATE_SCALE), self._rate(curve), "rate")


class QuadraticStrategy(_RateStrategy):
    """Linear rate boosted by custom_params[1] * sol / QUAD_SCALE.

    Selling inverts the boosted buy price and keeps QUAD_SELL_RETAIN / 1000 of
    it, so a buy followed by a sell of the same tokens never returns more SOL.
    """

    tag = QUADRATIC
    name = "quadratic"

    def tokens_for_sol(self, curve: Curve, sol_in: int) -> int:
        boost = sat_div(sat_mul(sol_in, curve.custom_params[1]), QUAD_SCALE)
        return sat_div(sat_mul(sol_in, sat_add(self._rate(curve), boost)), RATE_SCALE)

    def _unboosted_sol(self, curve: Curve, tokens_in: int) -> int:
        rate = self._rate(curve)
        c1 = curve.custom_params[1]
        if c1 == 0:
            return sat_div(sat_mul(tokens_in, RATE_SCALE), rate)
        # c1*s^2 + QUAD_SCALE*rate*s - RATE_SCALE*QUAD_SCALE*tokens = 0, positive root
        lin = sat_mul(QUAD_SCALE, rate)
        disc = sat_add(sat_mul(lin, lin), sat_mul(sat_mul(4, c1), sat_mul(RATE_SCALE * QUAD_SCALE, tokens_in)))
        return sat_div(sat_sub(sat_isqrt(disc), lin), sat_mul(2, c1))

    def sol_for_tokens(self, curve: Curve, tokens_in: int) -> int:
        return sat_div(sat_mul(self._unboosted_sol(curve, tokens_in), QUAD_SELL_RETAIN), RATE_SCALE)


class ExponentialStrategy(_RateStrategy):
    """Rate scaled by (RATE_SCALE + reserve_token * custom_params[1] / total_supply) / RATE_SCALE."""

    tag = EXPONENTIAL
    name = "exponential"

    def _supply_factor(self, curve: Curve) -> int:
        return _div(sat_mul(curve.reserve_token, curve.custom_params[1]), curve.total_supply, "total_supply")

    def tokens_for_sol(self, curve: Curve, sol_in: int) -> int:
        base = sat_div(sat_mul(sol_in, self._rate(curve)), RATE_SCALE)
        return sat_div(sat_mul(base, sat_add(RATE_SCALE, self._supply_factor(curve))), RATE_SCALE)

    def sol_for_tokens(self, curve: Curve, tokens_in: int) -> int:
        adjusted = sat_div(sat_mul(tokens_in, RATE_SCALE), sat_add(RATE_SCALE, self._supply_factor(curve)))
        return sat_div(sat_mul(adjusted, RATE_SCALE), self._rate(curve))


class _PriceStrategy(PricingStrategy):
    def tokens_for_sol(self, curve: Curve, sol_in: int) -> int:
        price = _require_positive(self.price(curve), "price")
        return sat_div(sat_mul(sol_in, SCALE), price)

    def sol_for_tokens(self, curve: Curve, tokens_in: int) -> int:
        price = _require_positive(self.price(curve), "price")
        return sat_div(sat_mul(tokens_in, price), SCALE)


class LogarithmicStrategy(_PriceStrategy):
    tag = LOGARITHMIC
    name = "logarithmic"

    def price(self, curve: Curve) -> int:
        if curve.total_supply <= 0:
            raise CurveApplyError(INVALID_ARGUMENT, "log_of_zero_supply", {"total_supply": curve.total_supply})
        ln_supply = int(math.log(curve.total_supply))
        return sat_add(curve.initial_price, sat_div(sat_mul(ln_supply, curve.slope), SCALE))


class SigmoidStrategy(_PriceStrategy):
    tag = SIGMOID
    name = "sigmoid"

    def price(self, curve: Curve) -> int:
        x = sat_div(sat_mul(curve.total_supply, curve.slope), SCALE)
        sigmoid = sat_div(sat_mul(SCALE, SCALE), sat_add(SCALE, sat_mul(x, x)))
        return sat_div(sat_mul(curve.initial_price, sigmoid), SCALE)


class ConstantProductStrategy(PricingStrategy):
    """Virtual-reserve AMM; virtual_sol * virtual_token is conserved (rounded in the pool's favor)."""

    tag = CONSTANT_PRODUCT
    name = "constant_product"

    def price(self, curve: Curve) -> int:
        return _div(sat_mul(curve.virtual_sol_reserves, SCALE), curve.virtual_token_reserves, "virtual_token_reserves")

    @staticmethod
    def _product(curve: Curve) -> int:
        return sat_mul(curve.virtual_sol_reserves, curve.virtual_token_reserves)

    def cost_of_tokens(self, curve: Curve, token_amount: int) -> int:
        new_vtok = sat_sub(curve.virtual_token_reserves, token_amount)
        new_vsol = sat_add(_div(self._product(curve), new_vtok, "virtual_token_reserves"), 1)
        return sat_sub(new_vsol, curve.virtual_sol_reserves)

    def tokens_for_sol(self, curve: Curve, sol_in: int) -> int:
        new_vsol = sat_add(curve.virtual_sol_reserves, sol_in)
        floor_vtok = sat_add(_div(self._product(curve), new_vsol, "virtual_sol_reserves"), 1)
        return sat_sub(curve.virtual_token_reserves, floor_vtok)

    def sol_for_tokens(self, curve: Curve, tokens_in: int) -> int:
        new_vtok = sat_add(curve.virtual_token_reserves, tokens_in)
        new_vsol = sat_add(_div(self._product(curve), new_vtok, "virtual_token_reserves"), 1)
        return sat_sub(curve.virtual_sol_reserves, new_vsol)


_STRATEGIES: Dict[int, PricingStrategy] = {
    s.tag: s
    for s in (
        LinearStrategy(),
        QuadraticStrategy(),
        ExponentialStrategy(),
        LogarithmicStrategy(),
        SigmoidStrategy(),
        ConstantProductStrategy(),
    )
}


def get_strategy(curve_type: int) -> PricingStrategy:
    s = _STRATEGIES.get(curve_type) if isinstance(curve_type, int) and not isinstance(curve_type, bool) else None
    if s is None:
        raise CurveApplyError(INVALID_ARGUMENT, "invalid_curve_type", {"curve_type": curve_type})
    return s


def price(curve: Curve) -> int:
    return get_strategy(curve.curve_type).price(curve)


def market_cap(curve: Curve) -> int:
    return sat_mul(price(curve), curve.total_supply)


def _require_amount(amount: int, what: str) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise CurveApplyError(INVALID_ARGUMENT, "bad_amount", {what: amount})
    return amount


def quote_buy(curve: Curve, sol_in: int) -> Quote:
    """Price spending sol_in SOL units. AMM buys are charged their exact-token cost (<= sol_in)."""
    sol_in = _require_amount(sol_in, "sol_in")
    strategy = get_strategy(curve.curve_type)
    tokens = strategy.tokens_for_sol(curve, sol_in)
    if tokens > curve.reserve_token:
        raise CurveApplyError(
            INSUFFICIENT_RESERVE,
            "token_reserve_exceeded",
            {"tokens_out": tokens, "reserve_token": curve.reserve_token},
        )
    if isinstance(strategy, ConstantProductStrategy):
        cost = strategy.cost_of_tokens(curve, tokens)
        return Quote(
            token_amount=tokens,
            sol_amount=cost,
            virtual_sol_reserves=sat_add(curve.virtual_sol_reserves, cost),
            virtual_token_reserves=sat_sub(curve.virtual_token_reserves, tokens),
        )
    return Quote(tokens, sol_in, curve.virtual_sol_reserves, curve.virtual_token_reserves)


def quote_buy_exact_tokens(curve: Curve, token_amount: int) -> Quote:
    """AMM buy of a requested token amount, clamped to the real token reserve."""
    token_amount = _require_amount(token_amount, "token_amount")
    strategy = get_strategy(curve.curve_type)
    if not isinstance(strategy, ConstantProductStrategy):
        raise CurveApplyError(INVALID_ARGUMENT, "exact_token_buy_requires_amm", {"curve_type": curve.curve_type})
    tokens = min(token_amount, curve.real_token_reserves)
    cost = strategy.cost_of_tokens(curve, tokens)
    return Quote(
        token_amount=tokens,
        sol_amount=cost,
        virtual_sol_reserves=sat_add(curve.virtual_sol_reserves, cost),
        virtual_token_reserves=sat_sub(curve.virtual_token_reserves, tokens),
    )


def quote_sell(curve: Curve, tokens_in: int) -> Quote:
    tokens_in = _require_amount(tokens_in, "tokens_in")
    strategy = get_strategy(curve.curve_type)
    if curve.reserve_token + tokens_in > curve.total_supply:
        raise CurveApplyError(
            INSUFFICIENT_RESERVE,
            "token_reserve_overflow",
            {"tokens_in": tokens_in, "reserve_token": curve.reserve_token, "total_supply": curve.total_supply},
        )
    sol = strategy.sol_for_tokens(curve, tokens_in)
    if sol > curve.reserve_sol:
        raise CurveApplyError(
            INSUFFICIENT_RESERVE,
            "sol_reserve_exceeded",
            {"sol_out": sol, "reserve_sol": curve.reserve_sol},
        )
    if isinstance(strategy, ConstantProductStrategy):
        return Quote(
            token_amount=tokens_in,
            sol_amount=sol,
            virtual_sol_reserves=sat_sub(curve.virtual_sol_reserves, sol),
            virtual_token_reserves=sat_add(curve.virtual_token_reserves, tokens_in),
        )
    return Quote(tokens_in, sol, curve.virtual_sol_reserves, curve.virtual_token_reserves)


def tokens_out(curve: Curve, sol_in: int) -> int:
    return quote_buy(curve, sol_in).token_amount


def sol_out(curve: Curve, tokens_in: int) -> int:
    return quote_sell(curve, tokens_in).sol_amount


__all__ = [
    "LINEAR",
    "QUADRATIC",
    "EXPONENTIAL",
    "LOGARITHMIC",
    "SIGMOID",
    "CONSTANT_PRODUCT",
    "CURVE_TYPE_NAMES",
    "CurveApplyError",
    "PricingStrategy",
    "Quote",
    "get_strategy",
    "market_cap",
    "parse_curve_type",
    "price",
    "quote_buy",
    "quote_buy_exact_tokens",
    "quote_sell",
    "sol_out",
    "tokens_out",
]
