from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from tokenlaunch.api.routes_public_parts.common import _orchestrator
from tokenlaunch.api.schemas import InitVaultRequest, LockRequest, SignerRequest
from tokenlaunch.ledger.types import vault_id

router = APIRouter()

Json = Dict[str, Any]


@router.post("/vaults")
def init_vault(body: InitVaultRequest, request: Request) -> Json:
    vid = _orchestrator(request).init_vault(owner=body.owner, mint=body.mint)
    return {"ok": True, "vault_id": vid}


@router.get("/vaults/{owner}/{mint}")
def get_vault(owner: str, mint: str, request: Request) -> Json:
    return {"ok": True, "vault": _orchestrator(request).get_vault(vault_id(owner, mint))}


@router.post("/vaults/{owner}/{mint}/lock")
def lock(owner: str, mint: str, body: LockRequest, request: Request) -> Json:
    locked_until = _orchestrator(request).lock(
        vault_id(owner, mint),
        signer=body.signer,
        amount=body.amount,
        duration=body.duration,
    )
    return {"ok": True, "locked_until": locked_until}


@router.post("/vaults/{owner}/{mint}/unlock")
def unlock(owner: str, mint: str, body: SignerRequest, request: Request) -> Json:
    amount = _orchestrator(request).unlock(vault_id(owner, mint), signer=body.signer)
    return {"ok": True, "amount": amount}
