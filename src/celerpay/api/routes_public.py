# src/celerpay/api/routes_public.py
from __future__ import annotations

from fastapi import APIRouter

from celerpay.api.routes_public_parts.channels import router as channels_router
from celerpay.api.routes_public_parts.health import router as health_router
from celerpay.api.routes_public_parts.metrics import router as metrics_router
from celerpay.api.routes_public_parts.system import router as system_router
from celerpay.api.routes_public_parts.wallets import router as wallets_router
from celerpay.api.rpc import router as rpc_router

public_router = APIRouter()

# JSON-RPC surface (method names shared with node RPC clients)
public_router.include_router(rpc_router, prefix="", tags=["rpc"])

# Versioned REST surface
public_router.include_router(health_router, prefix="", tags=["health"])
public_router.include_router(system_router, prefix="/v1", tags=["system"])
public_router.include_router(channels_router, prefix="/v1", tags=["channels"])
public_router.include_router(wallets_router, prefix="/v1", tags=["wallets"])

# Ops
public_router.include_router(metrics_router, prefix="/v1", tags=["metrics"])
