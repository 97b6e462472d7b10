# src/tokenlaunch/runtime/collaborators.py
"""Host collaborators consumed by the launchpad core.

The core never moves assets, reads wall time or persists records by itself.
It talks to three narrow capabilities:

  - Clock: now() -> unix seconds, read once per invocation
  - TransferGateway: transfer(src, dst, amount), all-or-nothing per call,
    plus atomic() to scope a multi-transfer invocation
  - RecordStore: load/store named JSON records, one exclusive writer per record

In-memory implementations live here for tests and single-process hosts.
SQLite persistence lives in tokenlaunch.runtime.sqlite_db.
"""

from __future__ import annotations

import copy
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Protocol, Tuple

from tokenlaunch.ledger.constants import SOL_ASSET
from tokenlaunch.runtime.errors import ApplyError, INVALID_ARGUMENT, TRANSFER_FAILED

Json = Dict[str, Any]


@dataclass
class TransferError(ApplyError):
    code: str
    reason: str
    details: Optional[Json] = None


@dataclass(frozen=True, slots=True)
class AccountRef:
    """Opaque custody account handle: who holds it and which asset it holds.

    How the host derives or signs for the underlying account is not the core's
    concern; refs are only ever handed back to the TransferGateway.
    """

    owner: str
    asset: str

    def __str__(self) -> str:
        return f"{self.owner}/{self.asset}"


def sol_account(owner: str) -> AccountRef:
    return AccountRef(owner=str(owner), asset=SOL_ASSET)


def token_account(owner: str, mint: str) -> AccountRef:
    return AccountRef(owner=str(owner), asset=str(mint))


class Clock(Protocol):
    def now(self) -> int: ...


class TransferGateway(Protocol):
    def transfer(self, src: AccountRef, dst: AccountRef, amount: int) -> None: ...

    def atomic(self) -> Any: ...


class RecordStore(Protocol):
    def exists(self, kind: str, record_id: str) -> bool: ...

    def load(self, kind: str, record_id: str) -> Optional[Json]: ...

    def store(self, kind: str, record_id: str, record: Json) -> None: ...


class SystemClock:
    """Wall clock in whole unix seconds."""

    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """Deterministic clock for tests and replays. Never moves backwards."""

    def __init__(self, start: int = 0) -> None:
        self._now = int(start)

    def now(self) -> int:
        return self._now

    def set(self, ts: int) -> None:
        ts = int(ts)
        if ts < self._now:
            raise ValueError(f"clock must be monotonic: {ts} < {self._now}")
        self._now = ts

    def advance(self, seconds: int) -> int:
        self.set(self._now + int(seconds))
        return self._now


class InMemoryTransferGateway:
    """Balance book keyed by AccountRef.

    - transfer() validates before moving anything (all-or-nothing per call)
    - atomic() snapshots balances and restores them if the block raises
    - credit() is a host-side helper for funding accounts (mints, airdrops, tests)
    """

    def __init__(self) -> None:
        self._balances: Dict[AccountRef, int] = {}
        self._log: List[Tuple[AccountRef, AccountRef, int]] = []
        self._lock = threading.RLock()

    def balance(self, ref: AccountRef) -> int:
        with self._lock:
            return int(self._balances.get(ref, 0))

    def credit(self, ref: AccountRef, amount: int) -> None:
        if int(amount) < 0:
            raise TransferError(INVALID_ARGUMENT, "bad_amount", {"amount": amount})
        with self._lock:
            self._balances[ref] = int(self._balances.get(ref, 0)) + int(amount)

    def transfer(self, src: AccountRef, dst: AccountRef, amount: int) -> None:
        amt = int(amount)
        if amt < 0:
            raise TransferError(INVALID_ARGUMENT, "bad_amount", {"amount": amount})
        if src.asset != dst.asset:
            raise TransferError(TRANSFER_FAILED, "asset_mismatch", {"src": str(src), "dst": str(dst)})
        if amt == 0:
            return
        with self._lock:
            have = int(self._balances.get(src, 0))
            if have < amt:
                raise TransferError(
                    TRANSFER_FAILED,
                    "insufficient_funds",
                    {"account": str(src), "balance": have, "amount": amt},
                )
            self._balances[src] = have - amt
            self._balances[dst] = int(self._balances.get(dst, 0)) + amt
            self._log.append((src, dst, amt))

    def transfers(self) -> List[Tuple[AccountRef, AccountRef, int]]:
        with self._lock:
            return list(self._log)

    @contextmanager
    def atomic(self) -> Iterator["InMemoryTransferGateway"]:
        with self._lock:
            balances = dict(self._balances)
            log_len = len(self._log)
            try:
                yield self
            except BaseException:
                self._balances = balances
                del self._log[log_len:]
                raise


class InMemoryRecordStore:
    """Dict-backed RecordStore. Records are deep-copied on the way in and out."""

    def __init__(self) -> None:
        self._records: Dict[Tuple[str, str], Json] = {}
        self._lock = threading.Lock()

    def exists(self, kind: str, record_id: str) -> bool:
        with self._lock:
            return (str(kind), str(record_id)) in self._records

    def load(self, kind: str, record_id: str) -> Optional[Json]:
        with self._lock:
            rec = self._records.get((str(kind), str(record_id)))
            return copy.deepcopy(rec) if rec is not None else None

    def store(self, kind: str, record_id: str, record: Json) -> None:
        if not isinstance(record, dict):
            raise ValueError("record store expects dict")
        with self._lock:
            self._records[(str(kind), str(record_id))] = copy.deepcopy(record)

    def ids(self, kind: str) -> List[str]:
        with self._lock:
            return sorted(rid for (k, rid) in self._records.keys() if k == str(kind))


__all__ = [
    "AccountRef",
    "Clock",
    "InMemoryRecordStore",
    "InMemoryTransferGateway",
    "ManualClock",
    "RecordStore",
    "SystemClock",
    "TransferError",
    "TransferGateway",
    "sol_account",
    "token_account",
]
