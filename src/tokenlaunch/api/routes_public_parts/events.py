from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Query, Request

from tokenlaunch.api.errors import ApiError
from tokenlaunch.api.routes_public_parts.common import _orchestrator

router = APIRouter()

Json = Dict[str, Any]


@router.get("/events")
def recent_events(
    request: Request,
    event: Optional[str] = Query(default=None, description="Filter by event name, e.g. trade_executed"),
    limit: int = Query(default=100, ge=1, le=1000),
) -> Json:
    """Most recent outcome events held by the orchestrator's event sink, oldest first."""
    orch = _orchestrator(request)
    recent = getattr(orch.sink, "recent", None)
    if not callable(recent):
        raise ApiError.not_found("events_unavailable", "event sink keeps no history", {})
    items = recent(event)
    return {"ok": True, "events": items[-limit:]}
