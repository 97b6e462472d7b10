# src/tokenlaunch/api/routes_public.py
from __future__ import annotations

from fastapi import APIRouter

from tokenlaunch.api.routes_public_parts.dev import router as dev_router
from tokenlaunch.api.routes_public_parts.events import router as events_router
from tokenlaunch.api.routes_public_parts.health import router as health_router
from tokenlaunch.api.routes_public_parts.launches import router as launches_router
from tokenlaunch.api.routes_public_parts.metrics import router as metrics_router
from tokenlaunch.api.routes_public_parts.vaults import router as vaults_router
from tokenlaunch.api.routes_public_parts.vesting import router as vesting_router

public_router = APIRouter()

# Versioned API surface
public_router.include_router(health_router, prefix="/v1", tags=["health"])
public_router.include_router(launches_router, prefix="/v1", tags=["launches"])
public_router.include_router(vaults_router, prefix="/v1", tags=["vaults"])
public_router.include_router(vesting_router, prefix="/v1", tags=["vesting"])

# Ops
public_router.include_router(metrics_router, prefix="/v1", tags=["metrics"])
public_router.include_router(events_router, prefix="/v1", tags=["events"])

# Local funding (dev/testnet only)
public_router.include_router(dev_router, prefix="/v1", tags=["dev"])
