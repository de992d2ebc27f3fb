from __future__ import annotations

import time
from typing import Any, Optional

from fastapi import APIRouter, Request

from celerpay.api.errors import ApiError
from celerpay.api.routes_public_parts.common import Json, _queries
from celerpay.runtime.snapshots import Snapshot

router = APIRouter()


def _now_ms() -> int:
    return int(time.time() * 1000)


def _try_head(app_state: Any) -> Optional[Snapshot]:
    q = getattr(app_state, "queries", None)
    if q is None:
        return None
    try:
        return q.head()
    except ApiError:
        return None


def _mode(request: Request) -> Optional[str]:
    cfg = getattr(request.app.state, "cfg", None)
    return getattr(cfg, "mode", None)


@router.get("/v1/health")
def v1_health(request: Request) -> Json:
    """Liveness: the process serves HTTP. Never fails."""
    return {
        "ok": True,
        "service": "celerpay-gateway",
        "version": "v1",
        "ts_ms": _now_ms(),
        "mode": _mode(request),
    }


@router.get("/readyz")
def readyz(request: Request) -> Json:
    """Readiness: a queries backend is attached and has a head snapshot."""
    head = _try_head(request.app.state)
    return {
        "ok": head is not None,
        "service": "celerpay-gateway",
        "ts_ms": _now_ms(),
        "height": head.height if head is not None else None,
    }


@router.get("/v1/status")
def v1_status(request: Request) -> Json:
    """Current head snapshot summary."""
    head = _queries(request).head()
    return {
        "ok": True,
        "height": head.height,
        "block_hash": head.block_hash,
        "api_version": head.api_version,
        "mode": _mode(request),
    }
