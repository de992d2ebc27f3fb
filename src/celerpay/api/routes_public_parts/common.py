from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Request

from celerpay.api.errors import INVALID_PARAMS, ApiError
from celerpay.api.queries import KEY_PARSERS, CelerPayQueries
from celerpay.ledger.types import SnapshotRef, parse_snapshot_ref

Json = Dict[str, Any]


def _queries(request: Request) -> CelerPayQueries:
    q = getattr(request.app.state, "queries", None)
    if q is None:
        raise ApiError.not_ready("queries backend not attached to app.state")
    return q


def _key(name: str, v: Any) -> Any:
    """Parse one operation key; malformed input is an invalid-params error."""
    try:
        return KEY_PARSERS[name](v)
    except ValueError as e:
        raise ApiError.bad_request(INVALID_PARAMS, "Invalid params", str(e)) from e


def _at(v: Any) -> Optional[SnapshotRef]:
    try:
        return parse_snapshot_ref(v)
    except ValueError as e:
        raise ApiError.bad_request(INVALID_PARAMS, "Invalid params", str(e)) from e


def _ok(result: Any) -> Json:
    return {"ok": True, "result": result}
