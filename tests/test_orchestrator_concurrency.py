from __future__ import annotations

import multiprocessing as mp
import threading
from pathlib import Path
from typing import Any, Callable, List

from tokenlaunch.ledger.constants import MIN_PERIOD_SECONDS
from tokenlaunch.runtime.collaborators import (
    InMemoryRecordStore,
    InMemoryTransferGateway,
    ManualClock,
    sol_account,
    token_account,
)
from tokenlaunch.runtime.errors import ApplyError
from tokenlaunch.runtime.events import LoggingEventSink
from tokenlaunch.runtime.orchestrator import LaunchOrchestrator
from tokenlaunch.runtime.sqlite_db import SqliteDB, SqliteRecordStore, SqliteTransferGateway

SUPPLY = 1_000_000


class _RendezvousStore(InMemoryRecordStore):
    """Slow store: once armed, each load() waits for a second caller before reading.

    Two invocations that both reach load() read the same snapshot. When access
    is serialized the barrier times out and the load proceeds alone.
    """

    def __init__(self) -> None:
        super().__init__()
        self.barrier: threading.Barrier | None = None

    def load(self, kind, record_id):
        if self.barrier is not None:
            try:
                self.barrier.wait(timeout=0.5)
            except threading.BrokenBarrierError:
                pass
        return super().load(kind, record_id)


def _orch() -> LaunchOrchestrator:
    return LaunchOrchestrator(
        store=_RendezvousStore(),
        gateway=InMemoryTransferGateway(),
        clock=ManualClock(1_000),
        sink=LoggingEventSink(),
    )


def _launch(orch: LaunchOrchestrator) -> str:
    orch.gateway.credit(token_account("creator", "MINT"), SUPPLY)
    return orch.init_launch(creator="creator", mint="MINT", total_supply=SUPPLY, curve_type="linear", custom_params=[500])


def _race(orch: LaunchOrchestrator, *calls: Callable[[], Any]) -> tuple[List[Any], List[ApplyError]]:
    orch.store.barrier = threading.Barrier(len(calls))
    results: List[Any] = []
    errors: List[ApplyError] = []
    lock = threading.Lock()

    def run(fn: Callable[[], Any]) -> None:
        try:
            out = fn()
            with lock:
                results.append(out)
        except ApplyError as e:
            with lock:
                errors.append(e)

    threads = [threading.Thread(target=run, args=(fn,)) for fn in calls]
    for t in threads:
        t.start()
    for t in threads:
        t.join(10)
        assert not t.is_alive()
    orch.store.barrier = None
    return results, errors


def _custody_tokens(orch: LaunchOrchestrator, cid: str) -> int:
    return orch.gateway.balance(token_account(cid, "MINT"))


def test_concurrent_buys_on_one_curve_both_land() -> None:
    orch = _orch()
    cid = _launch(orch)
    orch.gateway.credit(sol_account("alice"), 1_000)
    orch.gateway.credit(sol_account("bob"), 1_000)

    results, errors = _race(
        orch,
        lambda: orch.buy(cid, buyer="alice", sol_amount=1_000, max_sol_cost=1_000),
        lambda: orch.buy(cid, buyer="bob", sol_amount=1_000, max_sol_cost=1_000),
    )

    assert errors == []
    assert len(results) == 2
    curve = orch.get_curve(cid)
    assert curve["reserve_token"] == 999_000
    assert curve["reserve_sol"] == 2_000
    assert curve["reserve_token"] == _custody_tokens(orch, cid)


def test_concurrent_buy_and_complete_keep_completion() -> None:
    orch = _orch()
    cid = _launch(orch)
    orch.gateway.credit(sol_account("alice"), 1_000)

    results, errors = _race(
        orch,
        lambda: orch.buy(cid, buyer="alice", sol_amount=1_000, max_sol_cost=1_000),
        lambda: orch.complete_curve(cid, authority="creator"),
    )

    # complete may win the race, in which case the buy is refused.
    assert all(e.code == "curve_complete" for e in errors)
    assert len(results) + len(errors) == 2
    curve = orch.get_curve(cid)
    assert curve["is_complete"] is True
    assert curve["reserve_token"] == _custody_tokens(orch, cid)


def test_concurrent_claims_never_pay_more_than_vested() -> None:
    orch = _orch()
    amount = 10_000_000
    orch.gateway.credit(token_account("creator", "MINT"), amount)
    start = 2_000
    sid = orch.init_vesting(
        creator="creator",
        beneficiary="bob",
        mint="MINT",
        amount=amount,
        start=start,
        end=start + MIN_PERIOD_SECONDS,
        market_cap_target=0,
    )
    orch.deposit_vesting(sid, signer="creator")
    orch.check_market_cap_unlock(sid, signer="bob", observed_market_cap=0)
    orch.clock.set(start + MIN_PERIOD_SECONDS // 2)

    results, errors = _race(
        orch,
        lambda: orch.claim(sid, signer="bob"),
        lambda: orch.claim(sid, signer="bob"),
    )

    assert results == [amount // 2]
    assert [e.code for e in errors] == ["nothing_to_claim"]
    assert orch.gateway.balance(token_account("bob", "MINT")) == amount // 2
    assert orch.get_vesting(sid)["claimed_amount"] == amount // 2


def _buy_worker(db_path: str, n: int) -> None:
    db = SqliteDB(path=db_path)
    orch = LaunchOrchestrator(
        store=SqliteRecordStore(db=db),
        gateway=SqliteTransferGateway(db=db),
        clock=ManualClock(1_000),
        sink=LoggingEventSink(),
    )
    for _ in range(int(n)):
        orch.buy("curve:MINT", buyer="alice", sol_amount=1_000, max_sol_cost=1_000)


def test_sqlite_buys_are_cross_process_safe(tmp_path: Path) -> None:
    """Several processes trade one curve over one SQLite file; no update is lost."""
    db_path = str(tmp_path / "tokenlaunch_test.db")
    db = SqliteDB(path=db_path)
    gw = SqliteTransferGateway(db=db)
    orch = LaunchOrchestrator(store=SqliteRecordStore(db=db), gateway=gw, clock=ManualClock(1_000), sink=LoggingEventSink())

    workers = 4
    per = 25
    gw.credit(token_account("creator", "MINT"), SUPPLY)
    gw.credit(sol_account("alice"), workers * per * 1_000)
    cid = orch.init_launch(creator="creator", mint="MINT", total_supply=SUPPLY, curve_type="linear", custom_params=[500])

    procs: list[mp.Process] = []
    for _ in range(workers):
        pr = mp.Process(target=_buy_worker, args=(db_path, per))
        pr.start()
        procs.append(pr)

    for pr in procs:
        pr.join(60)
        assert pr.exitcode == 0

    curve = orch.get_curve(cid)
    assert curve["reserve_token"] == SUPPLY - workers * per * 500
    assert curve["reserve_sol"] == workers * per * 1_000
    assert gw.balance(token_account(cid, "MINT")) == curve["reserve_token"]
    assert gw.balance(sol_account("alice")) == 0
    assert gw.balance(token_account("alice", "MINT")) == workers * per * 500
