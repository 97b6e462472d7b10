# src/tokenlaunch/api/app.py
from __future__ import annotations

import os
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tokenlaunch.api.errors import ApiError
from tokenlaunch.api.routes_public import public_router
from tokenlaunch.api.structured_logging import RequestLogMiddleware, configure_structured_logging
from tokenlaunch.runtime.collaborators import SystemClock, TransferGateway
from tokenlaunch.runtime.errors import ApplyError
from tokenlaunch.runtime.launch_config import LaunchConfig, load_launch_config
from tokenlaunch.runtime.orchestrator import LaunchOrchestrator
from tokenlaunch.runtime.sqlite_db import SqliteDB, SqliteRecordStore, SqliteTransferGateway


def build_orchestrator(cfg: LaunchConfig, *, gateway: Optional[TransferGateway] = None) -> LaunchOrchestrator:
    """Build the orchestrator for API runtime.

    Records persist in SQLite at cfg.db_path. Custody defaults to a
    SqliteTransferGateway on the same database, so balances and records commit
    in one transaction and survive restarts.

    Prod mode has no way to fund that local balance book (/dev/credit is
    refused), so it requires a host-supplied gateway.
    """
    db = SqliteDB(path=cfg.db_path)
    if gateway is None:
        if cfg.mode == "prod":
            raise RuntimeError(
                "prod mode requires a host-supplied transfer gateway; "
                "pass gateway= to create_app() or run with mode dev/testnet"
            )
        gateway = SqliteTransferGateway(db=db)
    return LaunchOrchestrator(
        store=SqliteRecordStore(db=db),
        gateway=gateway,
        clock=SystemClock(),
        config=cfg,
    )


def create_app(
    *,
    boot_runtime: bool = True,
    orchestrator: Optional[LaunchOrchestrator] = None,
    gateway: Optional[TransferGateway] = None,
) -> FastAPI:
    """Create the FastAPI application.

    orchestrator:
      - given: attached as-is (tests, embedding hosts)
      - None and boot_runtime=True: load config + build_orchestrator(cfg, gateway=gateway)
      - None and boot_runtime=False: no runtime; operation routes answer 500 not_ready
    """
    if orchestrator is None and boot_runtime:
        cfg = load_launch_config()
        configure_structured_logging(cfg.log_level)
        orchestrator = build_orchestrator(cfg, gateway=gateway)

    mode = orchestrator.config.mode if orchestrator is not None else os.environ.get("TOKENLAUNCH_MODE", "prod")
    mode = str(mode).strip().lower()

    # Disable docs in production.
    if mode == "prod":
        app = FastAPI(title="tokenlaunch API", docs_url=None, redoc_url=None, openapi_url=None)
    else:
        app = FastAPI(title="tokenlaunch API")

    app.state.orchestrator = orchestrator

    @app.exception_handler(ApiError)
    async def _api_error(request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_json())

    @app.exception_handler(ApplyError)
    async def _apply_error(request: Request, exc: ApplyError) -> JSONResponse:
        err = ApiError.from_apply_error(exc)
        return JSONResponse(status_code=err.status_code, content=err.to_json())

    app.add_middleware(RequestLogMiddleware)
    app.include_router(public_router)

    return app
