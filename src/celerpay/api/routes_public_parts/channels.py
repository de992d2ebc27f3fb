from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request

from celerpay.api.routes_public_parts.common import Json, _at, _key, _ok, _queries

router = APIRouter()


def _ch(channel_id: str) -> str:
    return _key("channel_id", channel_id)


@router.get("/channels/{channel_id}/settle-finalized-time")
def v1_settle_finalized_time(channel_id: str, request: Request, at: Optional[str] = None) -> Json:
    return _ok(_queries(request).get_settle_finalized_time(_ch(channel_id), at=_at(at)))


@router.get("/channels/{channel_id}/status")
def v1_channel_status(channel_id: str, request: Request, at: Optional[str] = None) -> Json:
    """Channel status code; 0 (uninitialized) for a channel the ledger has never seen."""
    return _ok(_queries(request).get_channel_status(_ch(channel_id), at=_at(at)))


@router.get("/channels/{channel_id}/cooperative-withdraw-seq-num")
def v1_cooperative_withdraw_seq_num(channel_id: str, request: Request, at: Optional[str] = None) -> Json:
    return _ok(_queries(request).get_cooperative_withdraw_seq_num(_ch(channel_id), at=_at(at)))


@router.get("/channels/{channel_id}/balance-map")
def v1_balance_map(channel_id: str, request: Request, at: Optional[str] = None) -> Json:
    """[accounts, deposits, withdrawals], index-aligned; null for an unknown channel."""
    return _ok(_queries(request).get_balance_map(_ch(channel_id), at=_at(at)))


@router.get("/channels/{channel_id}/state-seq-num-map")
def v1_state_seq_num_map(channel_id: str, request: Request, at: Optional[str] = None) -> Json:
    return _ok(_queries(request).get_state_seq_num_map(_ch(channel_id), at=_at(at)))


@router.get("/channels/{channel_id}/transfer-out-map")
def v1_transfer_out_map(channel_id: str, request: Request, at: Optional[str] = None) -> Json:
    return _ok(_queries(request).get_transfer_out_map(_ch(channel_id), at=_at(at)))


@router.get("/channels/{channel_id}/next-pay-id-list-hash-map")
def v1_next_pay_id_list_hash_map(channel_id: str, request: Request, at: Optional[str] = None) -> Json:
    return _ok(_queries(request).get_next_pay_id_list_hash_map(_ch(channel_id), at=_at(at)))


@router.get("/channels/{channel_id}/last-pay-resolve-deadline-map")
def v1_last_pay_resolve_deadline_map(channel_id: str, request: Request, at: Optional[str] = None) -> Json:
    return _ok(_queries(request).get_last_pay_resolve_deadline_map(_ch(channel_id), at=_at(at)))


@router.get("/channels/{channel_id}/pending-pay-out-map")
def v1_pending_pay_out_map(channel_id: str, request: Request, at: Optional[str] = None) -> Json:
    return _ok(_queries(request).get_pending_pay_out_map(_ch(channel_id), at=_at(at)))


@router.get("/channels/{channel_id}/withdraw-intent")
def v1_withdraw_intent(channel_id: str, request: Request, at: Optional[str] = None) -> Json:
    """[receiver, amount, request_time, recipient_channel_id] or null."""
    return _ok(_queries(request).get_withdraw_intent(_ch(channel_id), at=_at(at)))


@router.get("/channels/{channel_id}/balance-limit")
def v1_balance_limit(channel_id: str, request: Request, at: Optional[str] = None) -> Json:
    return _ok(_queries(request).get_balance_limit(_ch(channel_id), at=_at(at)))


@router.get("/channels/{channel_id}/balance-limits-enabled")
def v1_balance_limits_enabled(channel_id: str, request: Request, at: Optional[str] = None) -> Json:
    return _ok(_queries(request).get_balance_limits_enabled(_ch(channel_id), at=_at(at)))


@router.get("/channels/{channel_id}/migration-info")
def v1_migration_info(channel_id: str, request: Request, at: Optional[str] = None) -> Json:
    """[accounts, deposits, withdrawals, seq_nums, transfer_outs, pending_pay_outs] or null."""
    return _ok(_queries(request).get_peers_migration_info(_ch(channel_id), at=_at(at)))


@router.get("/channel-status/{status}/num")
def v1_channel_status_num(status: str, request: Request, at: Optional[str] = None) -> Json:
    """Number of channels in a status; null for an undefined status code."""
    return _ok(_queries(request).get_channel_status_num(_key("channel_status", status), at=_at(at)))
