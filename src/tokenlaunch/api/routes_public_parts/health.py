from __future__ import annotations

import time

from fastapi import APIRouter, Request

router = APIRouter()


def _now_ms() -> int:
    return int(time.time() * 1000)


def _health_payload(request: Request) -> dict[str, object]:
    orch = getattr(request.app.state, "orchestrator", None)
    cfg = getattr(orch, "config", None)
    return {
        "ok": True,
        "service": "tokenlaunch",
        "version": "v1",
        "ts_ms": _now_ms(),
        "ready": orch is not None,
        "mode": getattr(cfg, "mode", None),
        "clock_now": orch.clock.now() if orch is not None else None,
    }


@router.get("/health")
def health(request: Request) -> dict[str, object]:
    return _health_payload(request)
