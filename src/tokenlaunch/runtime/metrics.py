from __future__ import annotations

import os
import threading
import time
from typing import Dict


_lock = threading.Lock()
_counters: Dict[str, int] = {}
_started_ms = int(time.time() * 1000)


def metrics_enabled() -> bool:
    v = (os.environ.get("TOKENLAUNCH_METRICS_ENABLED") or "").strip().lower()
    if not v:
        return False
    return v in {"1", "true", "yes", "y", "on"}


def inc_counter(name: str, value: int = 1) -> None:
    n = str(name or "").strip()
    if not n:
        return
    try:
        v = int(value)
    except Exception:
        v = 1
    with _lock:
        _counters[n] = int(_counters.get(n, 0)) + int(v)


def reset() -> None:
    with _lock:
        _counters.clear()


def snapshot() -> dict:
    with _lock:
        now = int(time.time() * 1000)
        return {
            "ts_ms": now,
            "started_ms": int(_started_ms),
            "uptime_ms": now - int(_started_ms),
            "counters": dict(_counters),
        }


def format_prometheus(prefix: str = "tokenlaunch_") -> str:
    """Prometheus exposition text; integer counters only."""
    pre = str(prefix or "").strip() or "tokenlaunch_"
    snap = snapshot()
    lines: list[str] = [f"{pre}uptime_ms {int(snap['uptime_ms'])}"]

    for name in sorted(snap["counters"]):
        lines.append(f"{pre}{name} {int(snap['counters'][name])}")

    return "\n".join(lines) + "\n"
