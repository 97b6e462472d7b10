# src/tokenlaunch/runtime/sqlite_db.py
from __future__ import annotations

import json
import os
import random
import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from tokenlaunch.runtime.collaborators import AccountRef, TransferError
from tokenlaunch.runtime.errors import INVALID_ARGUMENT, TRANSFER_FAILED

Json = Dict[str, Any]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _canon_json(obj: Any) -> str:
    """Canonical JSON encoding for persisted records."""
    # Do not coerce unknown types (default=str); non-JSON values must fail here.
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _env_int(name: str, default: int) -> int:
    try:
        raw = str(os.environ.get(name, "")).strip()
        return int(raw) if raw else int(default)
    except Exception:
        return int(default)


class SqliteDB:
    """SQLite manager for launchpad records and custody balances.

    Design goals:
      - single durable DB file for curve, vault and vesting records and balances
      - cross-process safe (SQLite locks)
      - cross-thread safe by never sharing connections between threads

    SQLite allows only one writer at a time, so BEGIN IMMEDIATE can fail
    transiently with "database is locked". write_tx() retries with a deadline.

    write_tx() nests per thread: an inner write_tx() or connection() joins the
    outer transaction, so records and balances written inside one outer block
    commit or roll back together.
    """

    SCHEMA_VERSION = 1

    def __init__(self, *, path: str) -> None:
        self.path = str(path)
        self._local = threading.local()

    @staticmethod
    def _sqlite_synchronous_pragma() -> str:
        """PRAGMA synchronous value.

        Defaults:
          - prod        -> FULL
          - dev/testnet -> NORMAL

        Override with TOKENLAUNCH_SQLITE_SYNCHRONOUS in {OFF,NORMAL,FULL,EXTRA}.
        """
        mode = (os.environ.get("TOKENLAUNCH_MODE") or "prod").strip().lower()
        default = "FULL" if mode == "prod" else "NORMAL"
        raw = (os.environ.get("TOKENLAUNCH_SQLITE_SYNCHRONOUS") or default).strip().upper()

        if raw not in {"OFF", "NORMAL", "FULL", "EXTRA"}:
            raw = default
        return raw

    def ensure_parent_dir(self) -> None:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        self.ensure_parent_dir()

        connect_timeout_s = float(_env_int("TOKENLAUNCH_SQLITE_CONNECT_TIMEOUT_MS", 30_000)) / 1000.0

        con = sqlite3.connect(
            self.path,
            timeout=connect_timeout_s,
            isolation_level=None,  # we manage BEGIN/COMMIT ourselves
            check_same_thread=False,
        )
        con.row_factory = sqlite3.Row

        # WAL is required unless explicitly waived.
        allow_non_wal = (os.environ.get("TOKENLAUNCH_SQLITE_ALLOW_NON_WAL") or "").strip() in {"1", "true", "TRUE"}
        try:
            row = con.execute("PRAGMA journal_mode=WAL;").fetchone()
            mode = str(row[0]).strip().lower() if row is not None else ""
            if mode and mode != "wal" and not allow_non_wal:
                raise RuntimeError(f"sqlite journal_mode is '{mode}', expected 'wal'")
        except Exception:
            if not allow_non_wal:
                con.close()
                raise

        con.execute(f"PRAGMA synchronous={self._sqlite_synchronous_pragma()};")
        con.execute("PRAGMA foreign_keys=ON;")
        con.execute("PRAGMA temp_store=MEMORY;")

        wal_ckpt = max(1, _env_int("TOKENLAUNCH_SQLITE_WAL_AUTOCHECKPOINT", 1000))
        con.execute(f"PRAGMA wal_autocheckpoint={wal_ckpt};")

        busy_ms = max(0, _env_int("TOKENLAUNCH_SQLITE_BUSY_TIMEOUT_MS", int(connect_timeout_s * 1000)))
        con.execute(f"PRAGMA busy_timeout={busy_ms};")

        return con

    def init_schema(self) -> None:
        with self.write_tx() as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS meta (
                  key TEXT PRIMARY KEY,
                  value TEXT NOT NULL
                );
                """
            )

            con.execute(
                """
                CREATE TABLE IF NOT EXISTS records (
                  kind TEXT NOT NULL,
                  record_id TEXT NOT NULL,
                  record_json TEXT NOT NULL,
                  updated_ts_ms INTEGER NOT NULL,
                  PRIMARY KEY (kind, record_id)
                );
                """
            )

            # Amounts are u64; stored as decimal text because SQLite INTEGER is signed 64-bit.
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS balances (
                  owner TEXT NOT NULL,
                  asset TEXT NOT NULL,
                  amount TEXT NOT NULL,
                  updated_ts_ms INTEGER NOT NULL,
                  PRIMARY KEY (owner, asset)
                );
                """
            )

            con.execute(
                """
                CREATE TABLE IF NOT EXISTS transfers (
                  seq INTEGER PRIMARY KEY AUTOINCREMENT,
                  src_owner TEXT NOT NULL,
                  src_asset TEXT NOT NULL,
                  dst_owner TEXT NOT NULL,
                  dst_asset TEXT NOT NULL,
                  amount TEXT NOT NULL,
                  ts_ms INTEGER NOT NULL
                );
                """
            )

            row = con.execute("SELECT value FROM meta WHERE key='schema_version' LIMIT 1;").fetchone()
            if row is None:
                con.execute("INSERT INTO meta(key, value) VALUES('schema_version', ?);", (str(self.SCHEMA_VERSION),))
            else:
                try:
                    v = int(str(row["value"]))
                except Exception:
                    v = 0
                if v != self.SCHEMA_VERSION:
                    raise RuntimeError(
                        f"sqlite schema_version mismatch: have={v} want={self.SCHEMA_VERSION}. "
                        "Refuse to start to avoid corrupting data."
                    )

    def _active_tx(self) -> Optional[sqlite3.Connection]:
        return getattr(self._local, "con", None)

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Read connection. Inside this thread's write_tx() it is the transaction's connection."""
        active = self._active_tx()
        if active is not None:
            yield active
            return
        con = self._connect()
        try:
            yield con
        finally:
            con.close()

    @staticmethod
    def _is_locked_error(e: Exception) -> bool:
        msg = str(e).lower()
        return ("database is locked" in msg) or ("database is busy" in msg)

    @contextmanager
    def write_tx(self) -> Iterator[sqlite3.Connection]:
        """Open a write transaction with bounded retry on writer-lock contention.

        Policy:
          - retry BEGIN IMMEDIATE until a deadline
          - exponential backoff with jitter
          - then raise if the lock cannot be acquired within the deadline
          - nested calls on the same thread join the outer transaction
        """
        active = self._active_tx()
        if active is not None:
            yield active
            return

        deadline_ms = max(250, _env_int("TOKENLAUNCH_SQLITE_WRITE_DEADLINE_MS", 30_000))
        deadline_ts = _now_ms() + deadline_ms

        base_sleep = max(0.001, float(_env_int("TOKENLAUNCH_SQLITE_WRITE_BACKOFF_BASE_MS", 5)) / 1000.0)
        max_sleep = max(base_sleep, float(_env_int("TOKENLAUNCH_SQLITE_WRITE_BACKOFF_MAX_MS", 250)) / 1000.0)

        with self.connection() as con:
            attempt = 0
            while True:
                try:
                    con.execute("BEGIN IMMEDIATE;")
                    break
                except sqlite3.OperationalError as e:
                    if not self._is_locked_error(e) or _now_ms() >= deadline_ts:
                        raise
                    sleep_s = min(max_sleep, base_sleep * (2.0 ** min(attempt, 8)))
                    time.sleep(sleep_s * (0.5 + random.random()))
                    attempt += 1

            self._local.con = con
            try:
                yield con
                con.execute("COMMIT;")
            except BaseException:
                con.execute("ROLLBACK;")
                raise
            finally:
                self._local.con = None


class SqliteRecordStore:
    """RecordStore persisted in SQLite, one row per (kind, record_id)."""

    def __init__(self, *, db: SqliteDB) -> None:
        self._db = db
        self._db.init_schema()

    def exists(self, kind: str, record_id: str) -> bool:
        with self._db.connection() as con:
            row = con.execute(
                "SELECT 1 FROM records WHERE kind=? AND record_id=?;",
                (str(kind), str(record_id)),
            ).fetchone()
            return row is not None

    def load(self, kind: str, record_id: str) -> Optional[Json]:
        with self._db.connection() as con:
            row = con.execute(
                "SELECT record_json FROM records WHERE kind=? AND record_id=?;",
                (str(kind), str(record_id)),
            ).fetchone()
        if row is None:
            return None
        rec = json.loads(str(row["record_json"]))
        if not isinstance(rec, dict):
            raise ValueError(f"record {kind}:{record_id} is not a JSON object")
        return rec

    def store(self, kind: str, record_id: str, record: Json) -> None:
        if not isinstance(record, dict):
            raise ValueError("record store expects dict")
        payload = _canon_json(record)
        with self._db.write_tx() as con:
            con.execute(
                """
                INSERT INTO records(kind, record_id, record_json, updated_ts_ms)
                VALUES(?, ?, ?, ?)
                ON CONFLICT(kind, record_id) DO UPDATE SET
                  record_json=excluded.record_json,
                  updated_ts_ms=excluded.updated_ts_ms;
                """,
                (str(kind), str(record_id), payload, _now_ms()),
            )

    def ids(self, kind: str) -> List[str]:
        with self._db.connection() as con:
            rows = con.execute(
                "SELECT record_id FROM records WHERE kind=? ORDER BY record_id;",
                (str(kind),),
            ).fetchall()
        return [str(r["record_id"]) for r in rows]


class SqliteTransferGateway:
    """TransferGateway whose balance book lives in the same SQLite file as the records.

    - transfer() validates before moving anything (all-or-nothing per call)
    - atomic() is one write_tx(); records stored through a SqliteRecordStore on
      the same SqliteDB inside the block commit with the balances
    - credit() funds an account (host-side: mints, deposits, dev funding)
    """

    def __init__(self, *, db: SqliteDB) -> None:
        self._db = db
        self._db.init_schema()

    @staticmethod
    def _read(con: sqlite3.Connection, ref: AccountRef) -> int:
        row = con.execute(
            "SELECT amount FROM balances WHERE owner=? AND asset=?;",
            (ref.owner, ref.asset),
        ).fetchone()
        return int(str(row["amount"])) if row is not None else 0

    @staticmethod
    def _write(con: sqlite3.Connection, ref: AccountRef, amount: int) -> None:
        con.execute(
            """
            INSERT INTO balances(owner, asset, amount, updated_ts_ms)
            VALUES(?, ?, ?, ?)
            ON CONFLICT(owner, asset) DO UPDATE SET
              amount=excluded.amount,
              updated_ts_ms=excluded.updated_ts_ms;
            """,
            (ref.owner, ref.asset, str(int(amount)), _now_ms()),
        )

    def balance(self, ref: AccountRef) -> int:
        with self._db.connection() as con:
            return self._read(con, ref)

    def credit(self, ref: AccountRef, amount: int) -> None:
        if int(amount) < 0:
            raise TransferError(INVALID_ARGUMENT, "bad_amount", {"amount": amount})
        with self._db.write_tx() as con:
            self._write(con, ref, self._read(con, ref) + int(amount))

    def transfer(self, src: AccountRef, dst: AccountRef, amount: int) -> None:
        amt = int(amount)
        if amt < 0:
            raise TransferError(INVALID_ARGUMENT, "bad_amount", {"amount": amount})
        if src.asset != dst.asset:
            raise TransferError(TRANSFER_FAILED, "asset_mismatch", {"src": str(src), "dst": str(dst)})
        if amt == 0:
            return
        with self._db.write_tx() as con:
            have = self._read(con, src)
            if have < amt:
                raise TransferError(
                    TRANSFER_FAILED,
                    "insufficient_funds",
                    {"account": str(src), "balance": have, "amount": amt},
                )
            self._write(con, src, have - amt)
            self._write(con, dst, self._read(con, dst) + amt)
            con.execute(
                """
                INSERT INTO transfers(src_owner, src_asset, dst_owner, dst_asset, amount, ts_ms)
                VALUES(?, ?, ?, ?, ?, ?);
                """,
                (src.owner, src.asset, dst.owner, dst.asset, str(amt), _now_ms()),
            )

    def transfers(self) -> List[Tuple[AccountRef, AccountRef, int]]:
        with self._db.connection() as con:
            rows = con.execute(
                "SELECT src_owner, src_asset, dst_owner, dst_asset, amount FROM transfers ORDER BY seq;"
            ).fetchall()
        return [
            (
                AccountRef(owner=str(r["src_owner"]), asset=str(r["src_asset"])),
                AccountRef(owner=str(r["dst_owner"]), asset=str(r["dst_asset"])),
                int(str(r["amount"])),
            )
            for r in rows
        ]

    @contextmanager
    def atomic(self) -> Iterator["SqliteTransferGateway"]:
        with self._db.write_tx():
            yield self


__all__ = ["SqliteDB", "SqliteRecordStore", "SqliteTransferGateway"]
