from __future__ import annotations

import os
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from celerpay.api.config import GatewayConfig, load_gateway_config
from celerpay.api.errors import INVALID_PARAMS, ApiError
from celerpay.api.queries import CelerPayQueries
from celerpay.api.routes_public import public_router
from celerpay.api.security import RequestSizeLimitMiddleware
from celerpay.api.structured_logging import RequestLogMiddleware
from celerpay.runtime.accessor import LedgerStateAccessor
from celerpay.runtime.snapshots import SnapshotResolver
from celerpay.runtime.sqlite_db import SqliteDB, SqliteSnapshotStore


def build_queries(cfg: GatewayConfig) -> CelerPayQueries:
    """Build the query facade over the SQLite snapshot store.

    This wrapper exists so tests can monkeypatch `celerpay.api.app.build_queries`
    without touching a database.
    """
    store = SqliteSnapshotStore(db=SqliteDB(path=cfg.db_path))
    return CelerPayQueries(resolver=SnapshotResolver(store), accessor=LedgerStateAccessor())


def _parse_cors_origins(mode: str) -> List[str]:
    """Parse CORS origins.

    Policy:
      - If CELER_CORS_ORIGINS is unset/empty -> CORS disabled
      - Wildcard "*" is rejected in prod mode
    """
    raw = os.environ.get("CELER_CORS_ORIGINS", "").strip()
    if not raw:
        return []

    origins = [o.strip() for o in raw.split(",") if o.strip()]
    if "*" in origins:
        if mode == "prod":
            raise RuntimeError(
                "Unsafe CORS configuration: wildcard '*' not allowed in production. "
                "Set explicit origins in CELER_CORS_ORIGINS."
            )
        return ["*"]
    return origins


async def _api_error_handler(_request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"ok": False, "error": exc.envelope()})


async def _validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    err = ApiError.bad_request(INVALID_PARAMS, "Invalid params", str(exc.errors()))
    return JSONResponse(status_code=err.status_code, content={"ok": False, "error": err.envelope()})


def create_app(*, boot_runtime: bool = True, cfg: Optional[GatewayConfig] = None) -> FastAPI:
    """Create the FastAPI application.

    boot_runtime:
      - True (default): open the snapshot store and attach app.state.queries
      - False: no backend; tests attach app.state.queries themselves
    """
    cfg = cfg or load_gateway_config()

    # Disable docs in production.
    if cfg.mode == "prod":
        app = FastAPI(title="Celer Pay Query Gateway", docs_url=None, redoc_url=None, openapi_url=None)
    else:
        app = FastAPI(title="Celer Pay Query Gateway")

    app.state.cfg = cfg
    app.state.queries = build_queries(cfg) if boot_runtime else None

    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)

    # --- Middleware ---
    # Size limit sits inside request logging so rejected requests are still logged.
    app.add_middleware(RequestSizeLimitMiddleware, max_bytes=cfg.max_request_bytes)
    app.add_middleware(RequestLogMiddleware)

    cors_origins = _parse_cors_origins(cfg.mode)
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=False,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type"],
        )

    # --- Routers ---
    app.include_router(public_router)

    return app
