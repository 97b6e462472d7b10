# src/tokenlaunch/runtime/vault_lock.py
"""Time-locked vault state machine.

States: empty -> locked -> empty -> ...

  lock:   empty only; amount >= minimum, min_period <= duration <= max_period
  unlock: locked only; now >= locked_until

Custody transfer happens before the record changes; a failed transfer leaves
the vault as it was.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from tokenlaunch.ledger.constants import MAX_PERIOD_SECONDS, MIN_PERIOD_SECONDS, MINIMUM_AMOUNT
from tokenlaunch.ledger.saturating import sat_add
from tokenlaunch.ledger.types import VAULT_EMPTY, VAULT_LOCKED, VaultLock
from tokenlaunch.runtime.collaborators import TransferGateway, token_account
from tokenlaunch.runtime.errors import (
    AMOUNT_TOO_LOW,
    ApplyError,
    INVALID_ARGUMENT,
    INVALID_DURATION,
    INVALID_STATE,
    TOKENS_STILL_LOCKED,
    UNAUTHORIZED,
)

Json = Dict[str, Any]


@dataclass
class VaultApplyError(ApplyError):
    code: str
    reason: str
    details: Optional[Json] = None


def initialize(owner: str, mint: str, *, bump: int = 0) -> VaultLock:
    o = str(owner or "").strip()
    m = str(mint or "").strip()
    if not o:
        raise VaultApplyError(INVALID_ARGUMENT, "missing_owner", {})
    if not m:
        raise VaultApplyError(INVALID_ARGUMENT, "missing_mint", {})
    return VaultLock(owner=o, mint=m, locked_amount=0, locked_until=0, bump=int(bump))


def _require_owner(vault: VaultLock, signer: str) -> None:
    if str(signer or "").strip() != vault.owner:
        raise VaultApplyError(UNAUTHORIZED, "not_vault_owner", {"vault": vault.record_id})


def lock(
    vault: VaultLock,
    *,
    signer: str,
    amount: int,
    duration: int,
    now: int,
    gateway: TransferGateway,
    minimum_amount: int = MINIMUM_AMOUNT,
    min_period: int = MIN_PERIOD_SECONDS,
    max_period: int = MAX_PERIOD_SECONDS,
) -> int:
    """Move `amount` into custody until now + duration. Returns locked_until."""
    _require_owner(vault, signer)
    if vault.state != VAULT_EMPTY:
        raise VaultApplyError(
            INVALID_STATE,
            "vault_already_locked",
            {"locked_amount": vault.locked_amount, "locked_until": vault.locked_until},
        )
    if isinstance(amount, bool) or int(amount) < int(minimum_amount):
        raise VaultApplyError(AMOUNT_TOO_LOW, "below_minimum_amount", {"amount": amount, "minimum": minimum_amount})
    if isinstance(duration, bool) or not (int(min_period) <= int(duration) <= int(max_period)):
        raise VaultApplyError(
            INVALID_DURATION,
            "lock_duration_out_of_range",
            {"duration": duration, "min": min_period, "max": max_period},
        )

    gateway.transfer(
        token_account(vault.owner, vault.mint),
        token_account(vault.record_id, vault.mint),
        int(amount),
    )

    vault.locked_amount = int(amount)
    vault.locked_until = sat_add(now, duration)
    return vault.locked_until


def unlock(vault: VaultLock, *, signer: str, now: int, gateway: TransferGateway) -> int:
    """Release the whole locked amount back to the owner. Returns the released amount."""
    _require_owner(vault, signer)
    if vault.state != VAULT_LOCKED:
        raise VaultApplyError(INVALID_STATE, "vault_not_locked", {"vault": vault.record_id})
    if int(now) < vault.locked_until:
        raise VaultApplyError(
            TOKENS_STILL_LOCKED,
            "lock_not_expired",
            {"now": int(now), "locked_until": vault.locked_until},
        )

    amount = vault.locked_amount
    gateway.transfer(
        token_account(vault.record_id, vault.mint),
        token_account(vault.owner, vault.mint),
        amount,
    )

    vault.locked_amount = 0
    return amount


__all__ = ["VaultApplyError", "initialize", "lock", "unlock"]
