from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from tokenlaunch.api.routes_public_parts.common import _orchestrator
from tokenlaunch.api.schemas import DepositRequest, InitVestingRequest, SignerRequest, VestingUnlockRequest
from tokenlaunch.ledger.types import vesting_id

router = APIRouter()

Json = Dict[str, Any]


@router.post("/vesting")
def init_vesting(body: InitVestingRequest, request: Request) -> Json:
    sid = _orchestrator(request).init_vesting(
        creator=body.creator,
        beneficiary=body.beneficiary,
        mint=body.mint,
        amount=body.amount,
        start=body.start,
        end=body.end,
        market_cap_target=body.market_cap_target,
    )
    return {"ok": True, "vesting_id": sid}


@router.get("/vesting/{mint}/{beneficiary}")
def get_vesting(mint: str, beneficiary: str, request: Request) -> Json:
    return {"ok": True, "vesting": _orchestrator(request).get_vesting(vesting_id(mint, beneficiary))}


@router.get("/vesting/{mint}/{beneficiary}/claimable")
def claimable(mint: str, beneficiary: str, request: Request) -> Json:
    return {"ok": True, **_orchestrator(request).claimable(vesting_id(mint, beneficiary))}


@router.post("/vesting/{mint}/{beneficiary}/deposit")
def deposit(mint: str, beneficiary: str, body: DepositRequest, request: Request) -> Json:
    _orchestrator(request).deposit_vesting(vesting_id(mint, beneficiary), signer=body.signer, amount=body.amount)
    return {"ok": True}


@router.post("/vesting/{mint}/{beneficiary}/unlock")
def unlock(mint: str, beneficiary: str, body: VestingUnlockRequest, request: Request) -> Json:
    orch = _orchestrator(request)
    sid = vesting_id(mint, beneficiary)
    if body.observed_market_cap is None:
        cap = orch.unlock_vesting_from_curve(sid, signer=body.signer)
    else:
        cap = body.observed_market_cap
        orch.check_market_cap_unlock(sid, signer=body.signer, observed_market_cap=cap)
    return {"ok": True, "market_cap": cap}


@router.post("/vesting/{mint}/{beneficiary}/claim")
def claim(mint: str, beneficiary: str, body: SignerRequest, request: Request) -> Json:
    amount = _orchestrator(request).claim(vesting_id(mint, beneficiary), signer=body.signer)
    return {"ok": True, "amount": amount}
