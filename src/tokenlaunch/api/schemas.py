"""Pydantic request schemas for the HTTP API.

These validate HTTP input only. Range and state rules live in the runtime
components, which report violations as ApplyError.
"""

from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel, Field


class InitLaunchRequest(BaseModel):
    creator: str = Field(..., description="Creator / curve authority id")
    mint: str = Field(..., description="Token mint id")
    total_supply: int = Field(..., ge=1)
    curve_type: Union[int, str] = Field(..., description="Tag 0-5 or name, e.g. linear, constant_product")
    initial_price: int = Field(default=0, ge=0)
    slope: int = Field(default=0, ge=0)
    custom_params: List[int] = Field(default_factory=list, max_length=3)


class BuyRequest(BaseModel):
    buyer: str
    sol_amount: int = Field(..., ge=1)
    max_sol_cost: int = Field(..., ge=0)


class BuyExactRequest(BaseModel):
    buyer: str
    token_amount: int = Field(..., ge=1)
    max_sol_cost: int = Field(..., ge=0)


class SellRequest(BaseModel):
    seller: str
    token_amount: int = Field(..., ge=1)
    min_sol_out: int = Field(default=0, ge=0)


class CompleteRequest(BaseModel):
    authority: str


class InitVaultRequest(BaseModel):
    owner: str
    mint: str


class LockRequest(BaseModel):
    signer: str
    amount: int = Field(..., ge=0)
    duration: int = Field(..., ge=0, description="Lock duration in seconds")


class SignerRequest(BaseModel):
    signer: str


class InitVestingRequest(BaseModel):
    creator: str
    beneficiary: str
    mint: str
    amount: int = Field(..., ge=0)
    start: int = Field(..., description="Unix seconds")
    end: int = Field(..., description="Unix seconds")
    market_cap_target: int = Field(..., ge=0)


class DepositRequest(BaseModel):
    signer: str
    amount: Optional[int] = Field(default=None, ge=0, description="Defaults to the schedule amount")


class VestingUnlockRequest(BaseModel):
    signer: str
    # None -> observe the market cap of the vesting token's own curve
    observed_market_cap: Optional[int] = Field(default=None, ge=0)


class CreditRequest(BaseModel):
    owner: str
    asset: str = Field(..., description="SOL or a token mint id")
    amount: int = Field(..., ge=1)
