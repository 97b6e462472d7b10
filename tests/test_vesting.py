from __future__ import annotations

import pytest

from tokenlaunch.ledger.types import VESTING_CREATED, VESTING_DEPOSITED, VESTING_UNLOCKED, VestingSchedule
from tokenlaunch.runtime import vesting
from tokenlaunch.runtime.collaborators import InMemoryTransferGateway, token_account
from tokenlaunch.runtime.vesting import VestingApplyError

AMOUNT = 1_000_000


def _schedule(state: str = VESTING_CREATED) -> VestingSchedule:
    return VestingSchedule(
        beneficiary="bob",
        mint="MINT",
        amount=AMOUNT,
        start_timestamp=1_000,
        end_timestamp=2_000,
        market_cap_target=5_000,
        creator="carol",
        state=state,
    )


def _initialized(**kw) -> VestingSchedule:
    args = dict(
        creator="carol",
        beneficiary="bob",
        mint="MINT",
        amount=AMOUNT,
        start=1_000,
        end=2_000,
        market_cap_target=5_000,
        now=0,
        min_period=1,
    )
    args.update(kw)
    return vesting.initialize(**args)


def _deposited():
    gw = InMemoryTransferGateway()
    gw.credit(token_account("carol", "MINT"), AMOUNT)
    s = _initialized()
    vesting.deposit(s, signer="carol", amount=AMOUNT, gateway=gw)
    return s, gw


def test_claimable_amount_reference_points() -> None:
    s = _schedule(VESTING_UNLOCKED)
    assert vesting.claimable_amount(s, 1_500) == 500_000
    assert vesting.claimable_amount(s, 999) == 0
    assert vesting.claimable_amount(s, 1_000) == 0
    assert vesting.claimable_amount(s, 2_000) == AMOUNT
    assert vesting.claimable_amount(s, 2_001) == AMOUNT


def test_claimable_is_zero_until_unlocked() -> None:
    for state in (VESTING_CREATED, VESTING_DEPOSITED):
        s = _schedule(state)
        for now in (0, 1_500, 10**9):
            assert vesting.claimable_amount(s, now) == 0


def test_claimable_is_non_decreasing_and_bounded() -> None:
    s = _schedule(VESTING_UNLOCKED)
    prev = 0
    for now in range(900, 2_200, 37):
        cur = vesting.claimable_amount(s, now)
        assert prev <= cur <= AMOUNT
        prev = cur


def test_initialize_validation() -> None:
    s = _initialized()
    assert s.state == VESTING_CREATED
    assert s.record_id == "vesting:MINT:bob"

    with pytest.raises(VestingApplyError) as e:
        _initialized(now=1_000)
    assert e.value.code == "invalid_start_time"
    assert _initialized(now=1_000, require_future_start=False).start_timestamp == 1_000

    with pytest.raises(VestingApplyError) as e:
        _initialized(end=1_000)
    assert e.value.code == "invalid_end_time"

    with pytest.raises(VestingApplyError) as e:
        _initialized(min_period=86_400)
    assert e.value.code == "invalid_duration"

    with pytest.raises(VestingApplyError) as e:
        _initialized(max_period=999)
    assert e.value.code == "invalid_duration"

    with pytest.raises(VestingApplyError) as e:
        _initialized(amount=999_999)
    assert e.value.code == "amount_too_low"


def test_deposit_requires_creator_and_exact_amount() -> None:
    gw = InMemoryTransferGateway()
    gw.credit(token_account("carol", "MINT"), 2 * AMOUNT)
    s = _initialized()

    with pytest.raises(VestingApplyError) as e:
        vesting.deposit(s, signer="bob", amount=AMOUNT, gateway=gw)
    assert e.value.code == "unauthorized"

    with pytest.raises(VestingApplyError) as e:
        vesting.deposit(s, signer="carol", amount=AMOUNT - 1, gateway=gw)
    assert e.value.code == "invalid_argument"
    assert s.state == VESTING_CREATED

    vesting.deposit(s, signer="carol", amount=AMOUNT, gateway=gw)
    assert s.state == VESTING_DEPOSITED
    assert gw.balance(vesting.custody_account(s)) == AMOUNT

    with pytest.raises(VestingApplyError) as e:
        vesting.deposit(s, signer="carol", amount=AMOUNT, gateway=gw)
    assert e.value.code == "invalid_state"
    assert gw.balance(vesting.custody_account(s)) == AMOUNT


def test_check_unlock_transitions_once() -> None:
    s = _initialized()
    with pytest.raises(VestingApplyError) as e:
        vesting.check_unlock(s, signer="bob", observed_market_cap=10**9, now=10)
    assert e.value.code == "invalid_state"

    s, _gw = _deposited()
    with pytest.raises(VestingApplyError) as e:
        vesting.check_unlock(s, signer="bob", observed_market_cap=4_999, now=10)
    assert e.value.code == "market_cap_not_reached"
    assert s.is_unlocked is False

    with pytest.raises(VestingApplyError) as e:
        vesting.check_unlock(s, signer="carol", observed_market_cap=5_000, now=10)
    assert e.value.code == "unauthorized"

    vesting.check_unlock(s, signer="bob", observed_market_cap=5_000, now=1_200)
    assert s.is_unlocked is True
    assert s.unlock_timestamp == 1_200

    with pytest.raises(VestingApplyError) as e:
        vesting.check_unlock(s, signer="bob", observed_market_cap=10**9, now=1_300)
    assert e.value.code == "already_unlocked"
    assert s.unlock_timestamp == 1_200


def test_claims_are_cumulative_and_never_double_pay() -> None:
    s, gw = _deposited()

    with pytest.raises(VestingApplyError) as e:
        vesting.claim(s, signer="bob", now=1_500, gateway=gw)
    assert e.value.code == "not_unlocked"

    vesting.check_unlock(s, signer="bob", observed_market_cap=5_000, now=1_200)

    assert vesting.claim(s, signer="bob", now=1_500, gateway=gw) == 500_000
    with pytest.raises(VestingApplyError) as e:
        vesting.claim(s, signer="bob", now=1_500, gateway=gw)
    assert e.value.code == "nothing_to_claim"

    assert vesting.claim(s, signer="bob", now=1_750, gateway=gw) == 250_000
    assert vesting.claim(s, signer="bob", now=2_001, gateway=gw) == 250_000

    assert s.claimed_amount == AMOUNT
    assert gw.balance(token_account("bob", "MINT")) == AMOUNT
    assert gw.balance(vesting.custody_account(s)) == 0


def test_unlock_before_start_vests_nothing_yet() -> None:
    s, gw = _deposited()
    vesting.check_unlock(s, signer="bob", observed_market_cap=5_000, now=500)
    assert vesting.claimable_amount(s, 500) == 0
    with pytest.raises(VestingApplyError) as e:
        vesting.claim(s, signer="bob", now=500, gateway=gw)
    assert e.value.code == "nothing_to_claim"


def test_only_beneficiary_claims() -> None:
    s, gw = _deposited()
    vesting.check_unlock(s, signer="bob", observed_market_cap=5_000, now=1_200)
    with pytest.raises(VestingApplyError) as e:
        vesting.claim(s, signer="mallory", now=2_000, gateway=gw)
    assert e.value.code == "unauthorized"
