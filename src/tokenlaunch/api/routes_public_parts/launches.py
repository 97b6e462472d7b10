from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Query, Request

from tokenlaunch.api.routes_public_parts.common import _orchestrator, _trade_response
from tokenlaunch.api.schemas import BuyExactRequest, BuyRequest, CompleteRequest, InitLaunchRequest, SellRequest
from tokenlaunch.ledger.types import curve_id
from tokenlaunch.runtime.curve_engine import Quote

router = APIRouter()

Json = Dict[str, Any]


def _quote_json(q: Quote) -> Json:
    return {
        "token_amount": q.token_amount,
        "sol_amount": q.sol_amount,
        "virtual_sol_reserves": q.virtual_sol_reserves,
        "virtual_token_reserves": q.virtual_token_reserves,
    }


@router.post("/launches")
def init_launch(body: InitLaunchRequest, request: Request) -> Json:
    cid = _orchestrator(request).init_launch(
        creator=body.creator,
        mint=body.mint,
        total_supply=body.total_supply,
        curve_type=body.curve_type,
        initial_price=body.initial_price,
        slope=body.slope,
        custom_params=body.custom_params,
    )
    return {"ok": True, "curve_id": cid}


@router.get("/launches/{mint}")
def get_launch(mint: str, request: Request) -> Json:
    return {"ok": True, "curve": _orchestrator(request).get_curve(curve_id(mint))}


@router.get("/launches/{mint}/quote/buy")
def quote_buy(mint: str, request: Request, sol_amount: int = Query(..., ge=1)) -> Json:
    q = _orchestrator(request).quote_buy(curve_id(mint), sol_amount)
    return {"ok": True, "quote": _quote_json(q)}


@router.get("/launches/{mint}/quote/buy_exact")
def quote_buy_exact(mint: str, request: Request, token_amount: int = Query(..., ge=1)) -> Json:
    q = _orchestrator(request).quote_buy_exact_tokens(curve_id(mint), token_amount)
    return {"ok": True, "quote": _quote_json(q)}


@router.get("/launches/{mint}/quote/sell")
def quote_sell(mint: str, request: Request, token_amount: int = Query(..., ge=1)) -> Json:
    q = _orchestrator(request).quote_sell(curve_id(mint), token_amount)
    return {"ok": True, "quote": _quote_json(q)}


@router.post("/launches/{mint}/buy")
def buy(mint: str, body: BuyRequest, request: Request) -> Json:
    result = _orchestrator(request).buy(
        curve_id(mint),
        buyer=body.buyer,
        sol_amount=body.sol_amount,
        max_sol_cost=body.max_sol_cost,
    )
    return _trade_response(result)


@router.post("/launches/{mint}/buy_exact")
def buy_exact(mint: str, body: BuyExactRequest, request: Request) -> Json:
    result = _orchestrator(request).buy_exact_tokens(
        curve_id(mint),
        buyer=body.buyer,
        token_amount=body.token_amount,
        max_sol_cost=body.max_sol_cost,
    )
    return _trade_response(result)


@router.post("/launches/{mint}/sell")
def sell(mint: str, body: SellRequest, request: Request) -> Json:
    result = _orchestrator(request).sell(
        curve_id(mint),
        seller=body.seller,
        token_amount=body.token_amount,
        min_sol_out=body.min_sol_out,
    )
    return _trade_response(result)


@router.post("/launches/{mint}/complete")
def complete(mint: str, body: CompleteRequest, request: Request) -> Json:
    changed = _orchestrator(request).complete_curve(curve_id(mint), authority=body.authority)
    return {"ok": True, "changed": changed}
