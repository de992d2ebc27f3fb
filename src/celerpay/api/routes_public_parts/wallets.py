from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request

from celerpay.api.routes_public_parts.common import Json, _at, _key, _ok, _queries

router = APIRouter()


@router.get("/wallets/{wallet_id}/owners")
def v1_wallet_owners(wallet_id: str, request: Request, at: Optional[str] = None) -> Json:
    return _ok(_queries(request).get_wallet_owners(_key("wallet_id", wallet_id), at=_at(at)))


@router.get("/wallets/{wallet_id}/balance")
def v1_wallet_balance(wallet_id: str, request: Request, at: Optional[str] = None) -> Json:
    return _ok(_queries(request).get_wallet_balance(_key("wallet_id", wallet_id), at=_at(at)))


@router.get("/pool/{owner}/balance")
def v1_pool_balance(owner: str, request: Request, at: Optional[str] = None) -> Json:
    return _ok(_queries(request).get_pool_balance(_key("owner", owner), at=_at(at)))


@router.get("/pool/{owner}/allowance/{spender}")
def v1_pool_allowance(owner: str, spender: str, request: Request, at: Optional[str] = None) -> Json:
    """Amount `spender` may still draw from `owner`'s pool balance; null when never approved."""
    q = _queries(request)
    return _ok(q.get_allowance(_key("owner", owner), _key("spender", spender), at=_at(at)))
