"""tokenlaunch.ledger.types

Launchpad record model: bonding curves, vault locks and vesting schedules.

Each record is a mutable dataclass with a stable JSON shape:
  - to_json(): plain dict, safe for canonical JSON persistence
  - from_json(): strict coercion; malformed records fail closed with ValueError
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from tokenlaunch.ledger.constants import U64_MAX

Json = Dict[str, Any]

CURVE_KIND = "curve"
VAULT_KIND = "vault"
VESTING_KIND = "vesting"

VAULT_EMPTY = "empty"
VAULT_LOCKED = "locked"

VESTING_CREATED = "created"
VESTING_DEPOSITED = "deposited"
VESTING_UNLOCKED = "unlocked"

_VESTING_STATES = (VESTING_CREATED, VESTING_DEPOSITED, VESTING_UNLOCKED)


def _coerce_int(v: Any, *, field: str) -> int:
    try:
        # bool is an int subclass; disallow it explicitly
        if isinstance(v, bool):
            raise ValueError("bool is not a valid int")
        return int(v)
    except Exception as e:
        raise ValueError(f"record schema error: field '{field}' must be int-coercible (got {type(v).__name__})") from e


def _coerce_u64(v: Any, *, field: str) -> int:
    n = _coerce_int(v, field=field)
    if n < 0 or n > U64_MAX:
        raise ValueError(f"record schema error: field '{field}' out of u64 range ({n})")
    return n


def _coerce_str(v: Any, *, field: str) -> str:
    if v is None:
        return ""
    if not isinstance(v, (str, int)):
        raise ValueError(f"record schema error: field '{field}' must be str (got {type(v).__name__})")
    return str(v).strip()


def _require_boolish(v: Any, *, field: str) -> bool:
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)) and v in (0, 1):
        return bool(v)
    if isinstance(v, str):
        s = v.strip().lower()
        if s in {"1", "true", "yes", "y", "on"}:
            return True
        if s in {"0", "false", "no", "n", "off"}:
            return False
    raise ValueError(f"record schema error: field '{field}' must be bool-ish (got {type(v).__name__})")


def _coerce_params(v: Any) -> Tuple[int, int, int]:
    if v is None:
        return (0, 0, 0)
    if not isinstance(v, (list, tuple)) or len(v) > 3:
        raise ValueError("record schema error: field 'custom_params' must be a list of at most 3 ints")
    out = [_coerce_u64(x, field="custom_params") for x in v]
    while len(out) < 3:
        out.append(0)
    return (out[0], out[1], out[2])


def curve_id(mint: str) -> str:
    return f"curve:{mint}"


def vault_id(owner: str, mint: str) -> str:
    return f"vault:{owner}:{mint}"


def vesting_id(mint: str, beneficiary: str) -> str:
    return f"vesting:{mint}:{beneficiary}"


@dataclass(slots=True)
class Curve:
    """One launch's pricing configuration and live reserves.

    reserve_token / reserve_sol are the real custodied balances for every curve type.
    virtual_* reserves only feed constant-product pricing.
    """

    mint: str
    authority: str
    curve_type: int
    total_supply: int
    initial_price: int = 0
    slope: int = 0
    custom_params: Tuple[int, int, int] = (0, 0, 0)
    reserve_token: int = 0
    reserve_sol: int = 0
    virtual_sol_reserves: int = 0
    virtual_token_reserves: int = 0
    is_complete: bool = False
    launch_timestamp: int = 0

    @property
    def real_token_reserves(self) -> int:
        return self.reserve_token

    @property
    def real_sol_reserves(self) -> int:
        return self.reserve_sol

    @property
    def record_id(self) -> str:
        return curve_id(self.mint)

    def to_json(self) -> Json:
        return {
            "mint": self.mint,
            "authority": self.authority,
            "curve_type": int(self.curve_type),
            "total_supply": int(self.total_supply),
            "initial_price": int(self.initial_price),
            "slope": int(self.slope),
            "custom_params": [int(x) for x in self.custom_params],
            "reserve_token": int(self.reserve_token),
            "reserve_sol": int(self.reserve_sol),
            "virtual_sol_reserves": int(self.virtual_sol_reserves),
            "virtual_token_reserves": int(self.virtual_token_reserves),
            "is_complete": bool(self.is_complete),
            "launch_timestamp": int(self.launch_timestamp),
        }

    @classmethod
    def from_json(cls, d: Json) -> "Curve":
        if not isinstance(d, dict):
            raise ValueError("curve record must be a JSON object")
        c = cls(
            mint=_coerce_str(d.get("mint"), field="mint"),
            authority=_coerce_str(d.get("authority"), field="authority"),
            curve_type=_coerce_int(d.get("curve_type", 0), field="curve_type"),
            total_supply=_coerce_u64(d.get("total_supply", 0), field="total_supply"),
            initial_price=_coerce_u64(d.get("initial_price", 0), field="initial_price"),
            slope=_coerce_u64(d.get("slope", 0), field="slope"),
            custom_params=_coerce_params(d.get("custom_params")),
            reserve_token=_coerce_u64(d.get("reserve_token", 0), field="reserve_token"),
            reserve_sol=_coerce_u64(d.get("reserve_sol", 0), field="reserve_sol"),
            virtual_sol_reserves=_coerce_u64(d.get("virtual_sol_reserves", 0), field="virtual_sol_reserves"),
            virtual_token_reserves=_coerce_u64(d.get("virtual_token_reserves", 0), field="virtual_token_reserves"),
            is_complete=_require_boolish(d.get("is_complete", False), field="is_complete"),
            launch_timestamp=_coerce_int(d.get("launch_timestamp", 0), field="launch_timestamp"),
        )
        if not c.mint:
            raise ValueError("record schema error: field 'mint' must be non-empty")
        if c.reserve_token > c.total_supply:
            raise ValueError("record schema error: reserve_token exceeds total_supply")
        return c


@dataclass(slots=True)
class VaultLock:
    """A single owner's time-locked deposit of one token."""

    owner: str
    mint: str
    locked_amount: int = 0
    locked_until: int = 0
    bump: int = 0

    @property
    def state(self) -> str:
        return VAULT_LOCKED if self.locked_amount > 0 else VAULT_EMPTY

    @property
    def record_id(self) -> str:
        return vault_id(self.owner, self.mint)

    def to_json(self) -> Json:
        return {
            "owner": self.owner,
            "mint": self.mint,
            "locked_amount": int(self.locked_amount),
            "locked_until": int(self.locked_until),
            "bump": int(self.bump),
        }

    @classmethod
    def from_json(cls, d: Json) -> "VaultLock":
        if not isinstance(d, dict):
            raise ValueError("vault record must be a JSON object")
        return cls(
            owner=_coerce_str(d.get("owner"), field="owner"),
            mint=_coerce_str(d.get("mint"), field="mint"),
            locked_amount=_coerce_u64(d.get("locked_amount", 0), field="locked_amount"),
            locked_until=_coerce_int(d.get("locked_until", 0), field="locked_until"),
            bump=_coerce_int(d.get("bump", 0), field="bump"),
        )


@dataclass(slots=True)
class VestingSchedule:
    """A beneficiary's market-cap gated, time-proportional release.

    States advance created -> deposited -> unlocked, never backwards.
    claimed_amount is the running total already paid out.
    """

    beneficiary: str
    mint: str
    amount: int
    start_timestamp: int
    end_timestamp: int
    market_cap_target: int
    creator: str
    state: str = VESTING_CREATED
    unlock_timestamp: int = 0
    claimed_amount: int = 0
    bump: int = 0

    @property
    def is_deposited(self) -> bool:
        return self.state in (VESTING_DEPOSITED, VESTING_UNLOCKED)

    @property
    def is_unlocked(self) -> bool:
        return self.state == VESTING_UNLOCKED

    @property
    def record_id(self) -> str:
        return vesting_id(self.mint, self.beneficiary)

    def to_json(self) -> Json:
        return {
            "beneficiary": self.beneficiary,
            "mint": self.mint,
            "amount": int(self.amount),
            "start_timestamp": int(self.start_timestamp),
            "end_timestamp": int(self.end_timestamp),
            "market_cap_target": int(self.market_cap_target),
            "creator": self.creator,
            "state": self.state,
            "is_unlocked": bool(self.is_unlocked),
            "unlock_timestamp": int(self.unlock_timestamp),
            "claimed_amount": int(self.claimed_amount),
            "bump": int(self.bump),
        }

    @classmethod
    def from_json(cls, d: Json) -> "VestingSchedule":
        if not isinstance(d, dict):
            raise ValueError("vesting record must be a JSON object")
        state = _coerce_str(d.get("state", VESTING_CREATED), field="state").lower()
        if state not in _VESTING_STATES:
            raise ValueError(f"record schema error: unknown vesting state {state!r}")
        v = cls(
            beneficiary=_coerce_str(d.get("beneficiary"), field="beneficiary"),
            mint=_coerce_str(d.get("mint"), field="mint"),
            amount=_coerce_u64(d.get("amount", 0), field="amount"),
            start_timestamp=_coerce_int(d.get("start_timestamp", 0), field="start_timestamp"),
            end_timestamp=_coerce_int(d.get("end_timestamp", 0), field="end_timestamp"),
            market_cap_target=_coerce_u64(d.get("market_cap_target", 0), field="market_cap_target"),
            creator=_coerce_str(d.get("creator"), field="creator"),
            state=state,
            unlock_timestamp=_coerce_int(d.get("unlock_timestamp", 0), field="unlock_timestamp"),
            claimed_amount=_coerce_u64(d.get("claimed_amount", 0), field="claimed_amount"),
            bump=_coerce_int(d.get("bump", 0), field="bump"),
        )
        if v.claimed_amount > v.amount:
            raise ValueError("record schema error: claimed_amount exceeds amount")
        return v


__all__ = [
    "Json",
    "CURVE_KIND",
    "VAULT_KIND",
    "VESTING_KIND",
    "VAULT_EMPTY",
    "VAULT_LOCKED",
    "VESTING_CREATED",
    "VESTING_DEPOSITED",
    "VESTING_UNLOCKED",
    "Curve",
    "VaultLock",
    "VestingSchedule",
    "curve_id",
    "vault_id",
    "vesting_id",
]
