# src/tokenlaunch/runtime/orchestrator.py
"""LaunchOrchestrator: one public method per launchpad operation.

Every mutating call is one invocation:
  1. take the lock of the record it mutates (one RLock per record id)
  2. enter gateway.atomic()
  3. read the clock once and load fresh copies of the records (not_found if missing)
  4. run the component operation and its transfers
  5. store the records before leaving the atomic block
  6. release, then emit the outcome event and bump counters

Any ApplyError (or transfer/store failure) unwinds the atomic block, so no
transfer and no record change from that invocation survives. Two invocations
on the same record never interleave inside one orchestrator; across processes
the SQLite gateway's atomic() (BEGIN IMMEDIATE) serializes them instead.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, Optional, Tuple

from tokenlaunch.ledger.constants import U64_MAX
from tokenlaunch.ledger.types import (
    CURVE_KIND,
    VAULT_KIND,
    VESTING_KIND,
    Curve,
    VaultLock,
    VestingSchedule,
    curve_id,
    vault_id,
    vesting_id,
)
from tokenlaunch.runtime import curve_engine, events, metrics, reserve_ledger, vault_lock, vesting
from tokenlaunch.runtime.collaborators import Clock, RecordStore, TransferGateway, token_account
from tokenlaunch.runtime.curve_engine import CONSTANT_PRODUCT, Quote
from tokenlaunch.runtime.errors import ApplyError, CONFLICT, INVALID_ARGUMENT, NOT_FOUND
from tokenlaunch.runtime.events import EventSink, LoggingEventSink
from tokenlaunch.runtime.launch_config import LaunchConfig, default_launch_config
from tokenlaunch.runtime.reserve_ledger import TradeResult

Json = Dict[str, Any]


@dataclass
class LaunchApplyError(ApplyError):
    code: str
    reason: str
    details: Optional[Json] = None


def _u64(v: Any, what: str, *, positive: bool = False) -> int:
    if isinstance(v, bool) or not isinstance(v, int) or v < 0 or v > U64_MAX or (positive and v == 0):
        raise LaunchApplyError(INVALID_ARGUMENT, f"bad_{what}", {what: v})
    return v


def _id(v: Any, what: str) -> str:
    s = str(v or "").strip()
    if not s:
        raise LaunchApplyError(INVALID_ARGUMENT, f"missing_{what}", {})
    return s


class LaunchOrchestrator:
    def __init__(
        self,
        *,
        store: RecordStore,
        gateway: TransferGateway,
        clock: Clock,
        config: Optional[LaunchConfig] = None,
        sink: Optional[EventSink] = None,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.clock = clock
        self.config = config or default_launch_config()
        self.sink: EventSink = sink or LoggingEventSink()
        self._locks_guard = threading.Lock()
        self._record_locks: Dict[Tuple[str, str], threading.RLock] = {}

    # ------------------------------------------------------------------
    # record access
    # ------------------------------------------------------------------

    def _record_lock(self, kind: str, record_id: str) -> threading.RLock:
        key = (str(kind), str(record_id))
        with self._locks_guard:
            lk = self._record_locks.get(key)
            if lk is None:
                lk = threading.RLock()
                self._record_locks[key] = lk
            return lk

    @contextmanager
    def _mutating(self, kind: str, record_id: str) -> Iterator[None]:
        """Exclusive access to one record for a whole load -> apply -> transfer -> store."""
        with self._record_lock(kind, record_id):
            with self.gateway.atomic():
                yield

    def _load(self, kind: str, record_id: str) -> Json:
        raw = self.store.load(kind, record_id)
        if raw is None:
            raise LaunchApplyError(NOT_FOUND, f"{kind}_not_found", {"id": record_id})
        return raw

    def _load_curve(self, cid: str) -> Curve:
        return Curve.from_json(self._load(CURVE_KIND, cid))

    def _load_vault(self, vid: str) -> VaultLock:
        return VaultLock.from_json(self._load(VAULT_KIND, vid))

    def _load_vesting(self, sid: str) -> VestingSchedule:
        return VestingSchedule.from_json(self._load(VESTING_KIND, sid))

    def _require_absent(self, kind: str, record_id: str) -> None:
        if self.store.exists(kind, record_id):
            raise LaunchApplyError(CONFLICT, f"{kind}_exists", {"id": record_id})

    def _emit(self, event: str, **fields: Any) -> None:
        metrics.inc_counter(f"{event}_total")
        self.sink.emit(event, **fields)

    # ------------------------------------------------------------------
    # curve
    # ------------------------------------------------------------------

    def init_launch(
        self,
        *,
        creator: str,
        mint: str,
        total_supply: int,
        curve_type: Any,
        initial_price: int = 0,
        slope: int = 0,
        custom_params: Iterable[int] = (),
    ) -> str:
        """Create a curve and move its tradable supply from the creator into curve custody."""
        creator = _id(creator, "creator")
        mint = _id(mint, "mint")
        total_supply = _u64(total_supply, "total_supply", positive=True)
        tag = curve_engine.parse_curve_type(curve_type)
        initial_price = _u64(initial_price, "initial_price")
        slope = _u64(slope, "slope")
        params = [_u64(p, "custom_params") for p in custom_params]
        if len(params) > 3:
            raise LaunchApplyError(INVALID_ARGUMENT, "too_many_custom_params", {"count": len(params)})
        while len(params) < 3:
            params.append(0)

        cfg = self.config
        reserve = total_supply
        vsol = vtok = 0
        if tag == CONSTANT_PRODUCT:
            if cfg.initial_real_token_reserves > 0:
                reserve = min(total_supply, cfg.initial_real_token_reserves)
            vsol = cfg.initial_virtual_sol_reserves
            vtok = cfg.initial_virtual_token_reserves

        cid = curve_id(mint)
        with self._mutating(CURVE_KIND, cid):
            now = self.clock.now()
            self._require_absent(CURVE_KIND, cid)
            curve = Curve(
                mint=mint,
                authority=creator,
                curve_type=tag,
                total_supply=total_supply,
                initial_price=initial_price,
                slope=slope,
                custom_params=(params[0], params[1], params[2]),
                reserve_token=reserve,
                reserve_sol=0,
                virtual_sol_reserves=vsol,
                virtual_token_reserves=vtok,
                is_complete=False,
                launch_timestamp=now,
            )
            self.gateway.transfer(
                token_account(creator, mint),
                token_account(reserve_ledger.curve_custody(curve), mint),
                reserve,
            )
            self.store.store(CURVE_KIND, cid, curve.to_json())

        self._emit(
            events.LAUNCH_INITIALIZED,
            curve_id=cid,
            mint=mint,
            creator=creator,
            curve_type=curve_engine.CURVE_TYPE_NAMES[tag],
            total_supply=total_supply,
            reserve_token=reserve,
            timestamp=now,
        )
        return cid

    def _trade(self, cid: str, fn, **kwargs: Any) -> TradeResult:
        with self._mutating(CURVE_KIND, cid):
            now = self.clock.now()
            curve = self._load_curve(cid)
            result = fn(curve, gateway=self.gateway, fees=self.config.fee_policy(), **kwargs)
            reserve_ledger.check_reserves(curve)
            self.store.store(CURVE_KIND, cid, curve.to_json())

        metrics.inc_counter(f"{result.direction}s_total")
        self._emit(events.TRADE_EXECUTED, curve_id=cid, timestamp=now, **result.to_json())
        return result

    def buy(self, cid: str, *, buyer: str, sol_amount: int, max_sol_cost: int) -> TradeResult:
        return self._trade(cid, reserve_ledger.buy, buyer=buyer, sol_in=sol_amount, max_sol_cost=max_sol_cost)

    def buy_exact_tokens(self, cid: str, *, buyer: str, token_amount: int, max_sol_cost: int) -> TradeResult:
        return self._trade(
            cid,
            reserve_ledger.buy_exact_tokens,
            buyer=buyer,
            token_amount=token_amount,
            max_sol_cost=max_sol_cost,
        )

    def sell(self, cid: str, *, seller: str, token_amount: int, min_sol_out: int) -> TradeResult:
        return self._trade(cid, reserve_ledger.sell, seller=seller, tokens_in=token_amount, min_sol_out=min_sol_out)

    def complete_curve(self, cid: str, *, authority: str) -> bool:
        """Returns True on the first completion, False when the curve was already complete."""
        with self._mutating(CURVE_KIND, cid):
            now = self.clock.now()
            curve = self._load_curve(cid)
            changed = reserve_ledger.complete(curve, authority=authority)
            if changed:
                self.store.store(CURVE_KIND, cid, curve.to_json())

        if changed:
            self._emit(events.CURVE_COMPLETED, curve_id=cid, mint=curve.mint, timestamp=now)
        return changed

    # ------------------------------------------------------------------
    # vault
    # ------------------------------------------------------------------

    def init_vault(self, *, owner: str, mint: str) -> str:
        vault = vault_lock.initialize(owner, mint)
        vid = vault.record_id
        with self._mutating(VAULT_KIND, vid):
            self._require_absent(VAULT_KIND, vid)
            self.store.store(VAULT_KIND, vid, vault.to_json())
        self._emit(events.VAULT_INITIALIZED, vault_id=vid, owner=vault.owner, mint=vault.mint)
        return vid

    def lock(self, vid: str, *, signer: str, amount: int, duration: int) -> int:
        cfg = self.config
        with self._mutating(VAULT_KIND, vid):
            now = self.clock.now()
            vault = self._load_vault(vid)
            locked_until = vault_lock.lock(
                vault,
                signer=signer,
                amount=amount,
                duration=duration,
                now=now,
                gateway=self.gateway,
                minimum_amount=cfg.minimum_amount,
                min_period=cfg.min_period_seconds,
                max_period=cfg.max_period_seconds,
            )
            self.store.store(VAULT_KIND, vid, vault.to_json())

        self._emit(
            events.TOKENS_LOCKED,
            vault_id=vid,
            owner=vault.owner,
            mint=vault.mint,
            amount=vault.locked_amount,
            locked_until=locked_until,
            timestamp=now,
        )
        return locked_until

    def unlock(self, vid: str, *, signer: str) -> int:
        with self._mutating(VAULT_KIND, vid):
            now = self.clock.now()
            vault = self._load_vault(vid)
            amount = vault_lock.unlock(vault, signer=signer, now=now, gateway=self.gateway)
            self.store.store(VAULT_KIND, vid, vault.to_json())

        self._emit(events.TOKENS_UNLOCKED, vault_id=vid, owner=vault.owner, mint=vault.mint, amount=amount, timestamp=now)
        return amount

    # ------------------------------------------------------------------
    # vesting
    # ------------------------------------------------------------------

    def init_vesting(
        self,
        *,
        creator: str,
        beneficiary: str,
        mint: str,
        amount: int,
        start: int,
        end: int,
        market_cap_target: int,
    ) -> str:
        cfg = self.config
        sid = vesting_id(_id(mint, "mint"), _id(beneficiary, "beneficiary"))
        with self._mutating(VESTING_KIND, sid):
            now = self.clock.now()
            schedule = vesting.initialize(
                creator=creator,
                beneficiary=beneficiary,
                mint=mint,
                amount=amount,
                start=start,
                end=end,
                market_cap_target=market_cap_target,
                now=now,
                minimum_amount=cfg.minimum_amount,
                min_period=cfg.min_period_seconds,
                max_period=cfg.max_period_seconds,
                require_future_start=cfg.require_future_vesting_start,
            )
            self._require_absent(VESTING_KIND, sid)
            self.store.store(VESTING_KIND, sid, schedule.to_json())

        self._emit(
            events.VESTING_INITIALIZED,
            vesting_id=sid,
            beneficiary=schedule.beneficiary,
            mint=schedule.mint,
            amount=schedule.amount,
            start_timestamp=schedule.start_timestamp,
            end_timestamp=schedule.end_timestamp,
            market_cap_target=schedule.market_cap_target,
            timestamp=now,
        )
        return sid

    def deposit_vesting(self, sid: str, *, signer: str, amount: Optional[int] = None) -> None:
        """Fund the schedule. amount defaults to the schedule amount."""
        with self._mutating(VESTING_KIND, sid):
            now = self.clock.now()
            schedule = self._load_vesting(sid)
            vesting.deposit(
                schedule,
                signer=signer,
                amount=schedule.amount if amount is None else amount,
                gateway=self.gateway,
            )
            self.store.store(VESTING_KIND, sid, schedule.to_json())

        self._emit(events.VESTING_DEPOSITED, vesting_id=sid, amount=schedule.amount, timestamp=now)

    def check_market_cap_unlock(self, sid: str, *, signer: str, observed_market_cap: int) -> None:
        with self._mutating(VESTING_KIND, sid):
            now = self.clock.now()
            schedule = self._load_vesting(sid)
            self._unlock_vesting(schedule, signer=signer, observed_market_cap=observed_market_cap, now=now)
        self._emit_unlocked(schedule, observed_market_cap, now)

    def unlock_vesting_from_curve(self, sid: str, *, signer: str) -> int:
        """Unlock using the market cap of the vesting token's own curve. Returns that market cap."""
        with self._mutating(VESTING_KIND, sid):
            now = self.clock.now()
            schedule = self._load_vesting(sid)
            # Curve is only read; its own writers hold the curve lock.
            cap = curve_engine.market_cap(self._load_curve(curve_id(schedule.mint)))
            self._unlock_vesting(schedule, signer=signer, observed_market_cap=cap, now=now)
        self._emit_unlocked(schedule, cap, now)
        return cap

    def _unlock_vesting(self, schedule: VestingSchedule, *, signer: str, observed_market_cap: int, now: int) -> None:
        vesting.check_unlock(schedule, signer=signer, observed_market_cap=observed_market_cap, now=now)
        self.store.store(VESTING_KIND, schedule.record_id, schedule.to_json())

    def _emit_unlocked(self, schedule: VestingSchedule, observed_market_cap: int, now: int) -> None:
        self._emit(
            events.VESTING_UNLOCKED,
            vesting_id=schedule.record_id,
            market_cap=int(observed_market_cap),
            unlock_timestamp=schedule.unlock_timestamp,
            timestamp=now,
        )

    def claim(self, sid: str, *, signer: str) -> int:
        with self._mutating(VESTING_KIND, sid):
            now = self.clock.now()
            schedule = self._load_vesting(sid)
            paid = vesting.claim(schedule, signer=signer, now=now, gateway=self.gateway)
            self.store.store(VESTING_KIND, sid, schedule.to_json())

        self._emit(
            events.VESTING_CLAIMED,
            vesting_id=sid,
            beneficiary=schedule.beneficiary,
            amount=paid,
            claimed_amount=schedule.claimed_amount,
            timestamp=now,
        )
        return paid

    # ------------------------------------------------------------------
    # queries (no clock-dependent mutation, no events)
    # ------------------------------------------------------------------

    def get_curve(self, cid: str) -> Json:
        curve = self._load_curve(cid)
        out = curve.to_json()
        out["curve_type_name"] = curve_engine.CURVE_TYPE_NAMES.get(curve.curve_type, "")
        out["price"] = curve_engine.price(curve)
        out["market_cap"] = curve_engine.market_cap(curve)
        return out

    def quote_buy(self, cid: str, sol_amount: int) -> Quote:
        return curve_engine.quote_buy(self._load_curve(cid), sol_amount)

    def quote_buy_exact_tokens(self, cid: str, token_amount: int) -> Quote:
        return curve_engine.quote_buy_exact_tokens(self._load_curve(cid), token_amount)

    def quote_sell(self, cid: str, token_amount: int) -> Quote:
        return curve_engine.quote_sell(self._load_curve(cid), token_amount)

    def get_vault(self, vid: str) -> Json:
        vault = self._load_vault(vid)
        out = vault.to_json()
        out["state"] = vault.state
        return out

    def get_vesting(self, sid: str) -> Json:
        return self._load_vesting(sid).to_json()

    def claimable(self, sid: str) -> Json:
        now = self.clock.now()
        schedule = self._load_vesting(sid)
        return {
            "vesting_id": sid,
            "now": now,
            "vested": vesting.claimable_amount(schedule, now),
            "claimed_amount": schedule.claimed_amount,
            "claimable": vesting.outstanding(schedule, now),
        }


__all__ = ["LaunchApplyError", "LaunchOrchestrator", "curve_id", "vault_id", "vesting_id"]
