from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from tokenlaunch.api.errors import ApiError
from tokenlaunch.api.routes_public_parts.common import _orchestrator
from tokenlaunch.api.schemas import CreditRequest
from tokenlaunch.runtime.collaborators import AccountRef

router = APIRouter()

Json = Dict[str, Any]


@router.post("/dev/credit")
def credit(body: CreditRequest, request: Request) -> Json:
    """Fund an account on the local custody gateway. Refused in prod mode."""
    orch = _orchestrator(request)
    if orch.config.mode == "prod":
        raise ApiError.forbidden("dev_only", "account funding is disabled in prod mode", {})
    credit_fn = getattr(orch.gateway, "credit", None)
    if not callable(credit_fn):
        raise ApiError.bad_request("unsupported_gateway", "transfer gateway does not support funding", {})
    ref = AccountRef(owner=body.owner, asset=body.asset)
    credit_fn(ref, body.amount)
    return {"ok": True, "account": str(ref), "balance": orch.gateway.balance(ref)}
