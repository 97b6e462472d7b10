from __future__ import annotations

from typing import Any, Dict

from fastapi import Request

from tokenlaunch.api.errors import ApiError
from tokenlaunch.runtime.orchestrator import LaunchOrchestrator
from tokenlaunch.runtime.reserve_ledger import TradeResult

Json = Dict[str, Any]


def _orchestrator(request: Request) -> LaunchOrchestrator:
    orch = getattr(request.app.state, "orchestrator", None)
    if orch is None:
        raise ApiError.internal("not_ready", "orchestrator not attached to app.state", {})
    return orch


def _trade_response(result: TradeResult) -> Json:
    return {"ok": True, "trade": result.to_json()}
