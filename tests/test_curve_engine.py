from __future__ import annotations

import dataclasses

import pytest

from tokenlaunch.ledger.types import Curve
from tokenlaunch.runtime import curve_engine
from tokenlaunch.runtime.curve_engine import (
    CONSTANT_PRODUCT,
    EXPONENTIAL,
    LINEAR,
    LOGARITHMIC,
    QUADRATIC,
    SIGMOID,
    CurveApplyError,
)

SUPPLY = 10_000_000


def _curve(curve_type: int, **kw) -> Curve:
    base = dict(
        mint="MINT",
        authority="creator",
        curve_type=curve_type,
        total_supply=SUPPLY,
        reserve_token=SUPPLY,
    )
    base.update(kw)
    return Curve(**base)


def _all_curves() -> list[Curve]:
    return [
        _curve(LINEAR, custom_params=(500, 0, 0)),
        _curve(QUADRATIC, custom_params=(500, 10, 0)),
        _curve(EXPONENTIAL, custom_params=(500, 2_000, 0)),
        _curve(LOGARITHMIC, initial_price=1_000, slope=1_000_000),
        _curve(SIGMOID, initial_price=1_000, slope=1),
        _curve(
            CONSTANT_PRODUCT,
            total_supply=1_000_000_000,
            reserve_token=1_000_000_000,
            virtual_sol_reserves=1_000_000,
            virtual_token_reserves=1_000_000_000,
        ),
    ]


def test_linear_example_tokens_out() -> None:
    c = _curve(LINEAR, total_supply=1_000_000, reserve_token=1_000_000, custom_params=(500, 0, 0))
    assert curve_engine.price(c) == 500
    assert curve_engine.tokens_out(c, 1_000) == 500


def test_constant_product_regression_vector() -> None:
    c = _curve(
        CONSTANT_PRODUCT,
        total_supply=1_000_000_000,
        reserve_token=1_000_000_000,
        virtual_sol_reserves=1_000_000,
        virtual_token_reserves=1_000_000_000,
    )
    q = curve_engine.quote_buy_exact_tokens(c, 1_000_000)
    assert q.token_amount == 1_000_000
    assert q.sol_amount == 1_002
    assert q.virtual_sol_reserves == 1_001_002
    assert q.virtual_token_reserves == 999_000_000

    assert curve_engine.price(c) == 1_000
    assert curve_engine.market_cap(c) == 1_000 * 1_000_000_000


def test_constant_product_exact_buy_is_clamped_to_real_reserve() -> None:
    c = _curve(
        CONSTANT_PRODUCT,
        total_supply=1_000_000_000,
        reserve_token=5_000,
        virtual_sol_reserves=1_000_000,
        virtual_token_reserves=1_000_000_000,
    )
    q = curve_engine.quote_buy_exact_tokens(c, 1_000_000)
    assert q.token_amount == 5_000


def test_constant_product_sol_buy_charges_at_most_sol_in() -> None:
    c = _all_curves()[-1]
    q = curve_engine.quote_buy(c, 1_000)
    assert q.token_amount == 999_000
    assert 0 < q.sol_amount <= 1_000


@pytest.mark.parametrize("curve", _all_curves(), ids=lambda c: curve_engine.CURVE_TYPE_NAMES[c.curve_type])
def test_tokens_out_is_monotonic_in_sol_in(curve: Curve) -> None:
    outs = [curve_engine.tokens_out(curve, s) for s in (1, 10, 100, 1_000)]
    assert outs == sorted(outs)
    assert outs[-1] > 0


@pytest.mark.parametrize("curve", _all_curves(), ids=lambda c: curve_engine.CURVE_TYPE_NAMES[c.curve_type])
def test_sol_out_is_monotonic_in_tokens_in(curve: Curve) -> None:
    c = dataclasses.replace(curve, reserve_token=curve.total_supply // 2, reserve_sol=10**12)
    outs = [curve_engine.sol_out(c, t) for t in (1, 1_000, 100_000, 1_000_000)]
    assert outs == sorted(outs)


@pytest.mark.parametrize("c1", [0, 1, 50, 10_000])
@pytest.mark.parametrize("sol_in", [1, 999, 1_000_000])
def test_quadratic_buy_then_sell_never_returns_more_sol(c1: int, sol_in: int) -> None:
    c = _curve(
        QUADRATIC,
        total_supply=10**12,
        reserve_token=10**12 // 2,
        reserve_sol=10**12,
        custom_params=(500, c1, 0),
    )
    tokens = curve_engine.tokens_out(c, sol_in)
    if tokens == 0:
        return
    back = curve_engine.sol_out(c, tokens)
    assert back <= sol_in * 950 // 1000


def test_buy_beyond_token_reserve_is_rejected() -> None:
    c = _curve(LINEAR, reserve_token=100, custom_params=(500, 0, 0))
    with pytest.raises(CurveApplyError) as e:
        curve_engine.quote_buy(c, 1_000)
    assert e.value.code == "insufficient_reserve"


def test_sell_beyond_sol_reserve_is_rejected() -> None:
    c = _curve(LINEAR, reserve_token=SUPPLY - 1_000, reserve_sol=10, custom_params=(500, 0, 0))
    with pytest.raises(CurveApplyError) as e:
        curve_engine.quote_sell(c, 1_000)
    assert e.value.code == "insufficient_reserve"
    assert e.value.reason == "sol_reserve_exceeded"


def test_sell_cannot_push_reserve_above_total_supply() -> None:
    c = _curve(LINEAR, custom_params=(500, 0, 0), reserve_sol=10**9)
    with pytest.raises(CurveApplyError) as e:
        curve_engine.quote_sell(c, 1)
    assert e.value.reason == "token_reserve_overflow"


def test_logarithmic_price_at_zero_supply_is_invalid_argument() -> None:
    c = _curve(LOGARITHMIC, total_supply=0, reserve_token=0, initial_price=1_000, slope=1)
    with pytest.raises(CurveApplyError) as e:
        curve_engine.price(c)
    assert e.value.code == "invalid_argument"
    assert e.value.reason == "log_of_zero_supply"


def test_exponential_zero_supply_is_a_zero_denominator() -> None:
    c = _curve(EXPONENTIAL, total_supply=0, reserve_token=0, custom_params=(500, 1, 0))
    with pytest.raises(CurveApplyError) as e:
        curve_engine.quote_buy(c, 100)
    assert e.value.code == "invalid_argument"
    assert e.value.reason == "zero_denominator"


def test_zero_price_is_rejected_instead_of_clamped() -> None:
    c = _curve(SIGMOID, initial_price=0, slope=1)
    with pytest.raises(CurveApplyError) as e:
        curve_engine.quote_buy(c, 100)
    assert e.value.reason == "non_positive_price"


def test_unknown_curve_type() -> None:
    with pytest.raises(CurveApplyError) as e:
        curve_engine.price(_curve(9))
    assert e.value.code == "invalid_argument"
    assert e.value.reason == "invalid_curve_type"


def test_parse_curve_type_accepts_tags_and_names() -> None:
    assert curve_engine.parse_curve_type(0) == LINEAR
    assert curve_engine.parse_curve_type("Sigmoid") == SIGMOID
    assert curve_engine.parse_curve_type("5") == CONSTANT_PRODUCT
    for bad in ("bogus", 6, True):
        with pytest.raises(CurveApplyError):
            curve_engine.parse_curve_type(bad)


def test_non_positive_amounts_are_rejected() -> None:
    c = _all_curves()[0]
    for bad in (0, -5, True):
        with pytest.raises(CurveApplyError) as e:
            curve_engine.quote_buy(c, bad)
        assert e.value.reason == "bad_amount"


def test_exact_token_buy_requires_constant_product() -> None:
    with pytest.raises(CurveApplyError) as e:
        curve_engine.quote_buy_exact_tokens(_all_curves()[0], 10)
    assert e.value.reason == "exact_token_buy_requires_amm"
