from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request

from celerpay.api.routes_public_parts.common import Json, _at, _key, _ok, _queries

router = APIRouter()


@router.get("/system/ledger-id")
def v1_ledger_id(request: Request, at: Optional[str] = None) -> Json:
    return _ok(_queries(request).get_celer_ledger_id(at=_at(at)))


@router.get("/system/wallet-id")
def v1_wallet_registry_id(request: Request, at: Optional[str] = None) -> Json:
    return _ok(_queries(request).get_celer_wallet_id(at=_at(at)))


@router.get("/system/pool-id")
def v1_pool_id(request: Request, at: Optional[str] = None) -> Json:
    return _ok(_queries(request).get_pool_id(at=_at(at)))


@router.get("/system/pay-resolver-id")
def v1_pay_resolver_id(request: Request, at: Optional[str] = None) -> Json:
    return _ok(_queries(request).get_pay_resolver_id(at=_at(at)))


@router.get("/pay-id/{pay_hash}")
def v1_pay_id(pay_hash: str, request: Request, at: Optional[str] = None) -> Json:
    """Derive the payment id for a pay hash using the pay resolver at the snapshot."""
    return _ok(_queries(request).calculate_pay_id(_key("pay_hash", pay_hash), at=_at(at)))
