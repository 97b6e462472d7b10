from __future__ import annotations

import pytest

from tokenlaunch.ledger.constants import MAX_PERIOD_SECONDS, MIN_PERIOD_SECONDS, U64_MAX
from tokenlaunch.ledger.types import VAULT_EMPTY, VAULT_LOCKED
from tokenlaunch.runtime import vault_lock
from tokenlaunch.runtime.collaborators import InMemoryTransferGateway, TransferError, token_account
from tokenlaunch.runtime.vault_lock import VaultApplyError


def _setup(balance: int = 5_000_000):
    gw = InMemoryTransferGateway()
    gw.credit(token_account("alice", "MINT"), balance)
    return vault_lock.initialize("alice", "MINT"), gw


def test_lock_then_unlock_cycle() -> None:
    vault, gw = _setup()
    assert vault.state == VAULT_EMPTY

    until = vault_lock.lock(vault, signer="alice", amount=2_000_000, duration=MIN_PERIOD_SECONDS, now=1_000, gateway=gw)
    assert until == 1_000 + MIN_PERIOD_SECONDS
    assert vault.state == VAULT_LOCKED
    assert gw.balance(token_account(vault.record_id, "MINT")) == 2_000_000
    assert gw.balance(token_account("alice", "MINT")) == 3_000_000

    with pytest.raises(VaultApplyError) as e:
        vault_lock.unlock(vault, signer="alice", now=until - 1, gateway=gw)
    assert e.value.code == "tokens_still_locked"
    assert vault.locked_amount == 2_000_000

    assert vault_lock.unlock(vault, signer="alice", now=until, gateway=gw) == 2_000_000
    assert vault.locked_amount == 0
    assert vault.state == VAULT_EMPTY
    assert gw.balance(token_account("alice", "MINT")) == 5_000_000


def test_relock_after_unlock_is_allowed() -> None:
    vault, gw = _setup()
    until = vault_lock.lock(vault, signer="alice", amount=1_000_000, duration=MIN_PERIOD_SECONDS, now=0, gateway=gw)
    vault_lock.unlock(vault, signer="alice", now=until, gateway=gw)

    until2 = vault_lock.lock(vault, signer="alice", amount=1_500_000, duration=MAX_PERIOD_SECONDS, now=until, gateway=gw)
    assert until2 == until + MAX_PERIOD_SECONDS
    assert vault.locked_amount == 1_500_000


def test_lock_rejects_second_lock() -> None:
    vault, gw = _setup()
    vault_lock.lock(vault, signer="alice", amount=1_000_000, duration=MIN_PERIOD_SECONDS, now=0, gateway=gw)
    with pytest.raises(VaultApplyError) as e:
        vault_lock.lock(vault, signer="alice", amount=1_000_000, duration=MIN_PERIOD_SECONDS, now=0, gateway=gw)
    assert e.value.code == "invalid_state"


def test_lock_amount_and_duration_bounds() -> None:
    vault, gw = _setup()
    with pytest.raises(VaultApplyError) as e:
        vault_lock.lock(vault, signer="alice", amount=999_999, duration=MIN_PERIOD_SECONDS, now=0, gateway=gw)
    assert e.value.code == "amount_too_low"

    for bad in (MIN_PERIOD_SECONDS - 1, MAX_PERIOD_SECONDS + 1):
        with pytest.raises(VaultApplyError) as e:
            vault_lock.lock(vault, signer="alice", amount=1_000_000, duration=bad, now=0, gateway=gw)
        assert e.value.code == "invalid_duration"

    assert vault.state == VAULT_EMPTY
    assert gw.transfers() == []


def test_only_owner_can_lock_or_unlock() -> None:
    vault, gw = _setup()
    with pytest.raises(VaultApplyError) as e:
        vault_lock.lock(vault, signer="mallory", amount=1_000_000, duration=MIN_PERIOD_SECONDS, now=0, gateway=gw)
    assert e.value.code == "unauthorized"

    until = vault_lock.lock(vault, signer="alice", amount=1_000_000, duration=MIN_PERIOD_SECONDS, now=0, gateway=gw)
    with pytest.raises(VaultApplyError) as e:
        vault_lock.unlock(vault, signer="mallory", now=until, gateway=gw)
    assert e.value.code == "unauthorized"


def test_unlock_requires_locked_state() -> None:
    vault, gw = _setup()
    with pytest.raises(VaultApplyError) as e:
        vault_lock.unlock(vault, signer="alice", now=10**9, gateway=gw)
    assert e.value.code == "invalid_state"


def test_lock_transfer_failure_leaves_vault_empty() -> None:
    vault, gw = _setup(balance=0)
    with pytest.raises(TransferError):
        vault_lock.lock(vault, signer="alice", amount=1_000_000, duration=MIN_PERIOD_SECONDS, now=0, gateway=gw)
    assert vault.locked_amount == 0
    assert vault.locked_until == 0


@pytest.mark.parametrize("offset", [-MIN_PERIOD_SECONDS, -1, 0, 1, 10**6])
def test_unlock_boundary(offset: int) -> None:
    vault, gw = _setup()
    until = vault_lock.lock(vault, signer="alice", amount=1_000_000, duration=MIN_PERIOD_SECONDS, now=0, gateway=gw)
    now = until + offset
    if now < until:
        with pytest.raises(VaultApplyError) as e:
            vault_lock.unlock(vault, signer="alice", now=now, gateway=gw)
        assert e.value.code == "tokens_still_locked"
    else:
        vault_lock.unlock(vault, signer="alice", now=now, gateway=gw)
        assert vault.locked_amount == 0


def test_initialize_requires_ids() -> None:
    with pytest.raises(VaultApplyError):
        vault_lock.initialize("", "MINT")
    with pytest.raises(VaultApplyError):
        vault_lock.initialize("alice", " ")


def test_locked_until_saturates_near_u64_max() -> None:
    vault, gw = _setup()
    now = U64_MAX - 10
    until = vault_lock.lock(vault, signer="alice", amount=1_000_000, duration=MIN_PERIOD_SECONDS, now=now, gateway=gw)
    assert until == U64_MAX
    assert vault.locked_until == U64_MAX

    with pytest.raises(VaultApplyError) as e:
        vault_lock.unlock(vault, signer="alice", now=now, gateway=gw)
    assert e.value.code == "tokens_still_locked"
    assert vault_lock.unlock(vault, signer="alice", now=U64_MAX, gateway=gw) == 1_000_000
