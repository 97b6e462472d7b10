from __future__ import annotations

import json
import logging
import threading
import time
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Protocol


Json = Dict[str, Any]

# Outcome event names.
LAUNCH_INITIALIZED = "launch_initialized"
TRADE_EXECUTED = "trade_executed"
CURVE_COMPLETED = "curve_completed"
VAULT_INITIALIZED = "vault_initialized"
TOKENS_LOCKED = "tokens_locked"
TOKENS_UNLOCKED = "tokens_unlocked"
VESTING_INITIALIZED = "vesting_initialized"
VESTING_DEPOSITED = "vesting_deposited"
VESTING_UNLOCKED = "vesting_unlocked"
VESTING_CLAIMED = "vesting_claimed"


def _now_ms() -> int:
    return int(time.time() * 1000)


def log_event(logger: logging.Logger, event: str, **fields: Any) -> None:
    """Emit a single JSONL log event."""
    payload: Json = {"ts_ms": _now_ms(), "event": str(event)}
    payload.update(fields)
    try:
        logger.info(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))
    except Exception:
        parts = [f"event={event}"] + [f"{k}={fields.get(k)!r}" for k in sorted(fields.keys())]
        logger.info(" ".join(parts))


class EventSink(Protocol):
    def emit(self, event: str, **fields: Any) -> None: ...


class LoggingEventSink:
    """Logs outcome events as JSONL and keeps the most recent ones in memory.

    Events are informational; emit() never raises into the caller.
    """

    def __init__(self, *, logger: Optional[logging.Logger] = None, history: int = 1000) -> None:
        self._logger = logger or logging.getLogger("tokenlaunch.events")
        self._history: Deque[Json] = deque(maxlen=max(0, int(history)))
        self._lock = threading.Lock()

    def emit(self, event: str, **fields: Any) -> None:
        with self._lock:
            self._history.append({"event": str(event), **fields})
        log_event(self._logger, event, **fields)

    def recent(self, event: Optional[str] = None) -> List[Json]:
        with self._lock:
            items = list(self._history)
        if event is None:
            return items
        return [e for e in items if e.get("event") == event]


__all__ = [
    "CURVE_COMPLETED",
    "EventSink",
    "LAUNCH_INITIALIZED",
    "LoggingEventSink",
    "TOKENS_LOCKED",
    "TOKENS_UNLOCKED",
    "TRADE_EXECUTED",
    "VAULT_INITIALIZED",
    "VESTING_CLAIMED",
    "VESTING_DEPOSITED",
    "VESTING_INITIALIZED",
    "VESTING_UNLOCKED",
    "log_event",
]
