# src/celerpay/api/rpc.py
"""JSON-RPC 2.0 endpoint.

Method names, positional parameter order ([keys..., at?]) and the error
object follow the Celer Pay node RPC. Named parameters are accepted too:
{"channel_id": "0x..", "at": 12}.

Errors:
  - query failures: code 9876, the operation's fixed message, data = diagnostic
  - malformed input: the JSON-RPC transport codes (-32700 .. -32602)
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from celerpay.api.errors import (
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    ApiError,
    ErrorKind,
)
from celerpay.api.queries import RPC_METHODS, CelerPayQueries, Operation
from celerpay.api.routes_public_parts.common import _at, _key, _queries
from celerpay.api.schemas import RpcError, RpcRequest, RpcResponse
from celerpay.api.structured_logging import log_event
from celerpay.ledger.types import SnapshotRef

router = APIRouter()

log = logging.getLogger("celerpay.rpc")

Json = Dict[str, Any]

LIST_METHODS = "rpc_methods"


def _error(req_id: Any, err: ApiError) -> Json:
    return RpcResponse(
        id=req_id,
        error=RpcError(code=err.code, message=err.message, data=err.diagnostic),
    ).to_wire()


def _bind_params(op: Operation, params: Any) -> Tuple[List[Any], Optional[SnapshotRef]]:
    n = len(op.keys)

    if params is None:
        params = []

    if isinstance(params, list):
        if len(params) not in (n, n + 1):
            raise ApiError.bad_request(
                INVALID_PARAMS,
                "Invalid params",
                f"{op.rpc_method} expects {n} key(s) and an optional block reference, got {len(params)} param(s)",
            )
        raw_keys = params[:n]
        raw_at = params[n] if len(params) > n else None
    else:
        unknown = sorted(set(params) - set(op.keys) - {"at"})
        if unknown:
            raise ApiError.bad_request(INVALID_PARAMS, "Invalid params", f"unknown param(s): {', '.join(unknown)}")
        missing = [k for k in op.keys if k not in params]
        if missing:
            raise ApiError.bad_request(INVALID_PARAMS, "Invalid params", f"missing param(s): {', '.join(missing)}")
        raw_keys = [params[k] for k in op.keys]
        raw_at = params.get("at")

    keys = [_key(name, v) for name, v in zip(op.keys, raw_keys)]
    return keys, _at(raw_at)


def _handle_one(queries: CelerPayQueries, obj: Any) -> Optional[Json]:
    """Execute one request object. Returns None for notifications."""
    try:
        req = RpcRequest.model_validate(obj)
    except ValidationError as e:
        return _error(None, ApiError.bad_request(INVALID_REQUEST, "Invalid request", str(e)))

    try:
        if req.method == LIST_METHODS:
            result: Any = sorted([*RPC_METHODS, LIST_METHODS])
        else:
            op = RPC_METHODS.get(req.method)
            if op is None:
                raise ApiError.bad_request(METHOD_NOT_FOUND, "Method not found", req.method)
            keys, at = _bind_params(op, req.params)
            result = queries.run(op.name, *keys, at=at)
    except ApiError as e:
        log_event(log, "rpc_error", level=logging.DEBUG, method=req.method, code=e.code)
        return None if req.is_notification else _error(req.id, e)
    except Exception as e:
        # One failing item never sinks the rest of a batch.
        err = ApiError.application(ErrorKind.INTERNAL, "Internal error", repr(e))
        log_event(log, "rpc_internal_error", level=logging.ERROR, method=req.method, diagnostic=err.diagnostic)
        return None if req.is_notification else _error(req.id, err)

    if req.is_notification:
        return None
    return RpcResponse(id=req.id, result=result).to_wire()


def _handle_batch(queries: CelerPayQueries, items: List[Any]) -> List[Json]:
    out: List[Json] = []
    for obj in items:
        resp = _handle_one(queries, obj)
        if resp is not None:
            out.append(resp)
    return out


@router.post("/rpc")
async def rpc(request: Request) -> Response:
    try:
        queries = _queries(request)
    except ApiError as e:
        return JSONResponse(_error(None, e))

    body = await request.body()
    try:
        payload = json.loads(body)
    except ValueError as e:
        return JSONResponse(_error(None, ApiError.bad_request(PARSE_ERROR, "Parse error", str(e))))

    if isinstance(payload, list):
        if not payload:
            return JSONResponse(_error(None, ApiError.bad_request(INVALID_REQUEST, "Invalid request", "empty batch")))
        max_batch = int(request.app.state.cfg.max_batch)
        if len(payload) > max_batch:
            return JSONResponse(
                _error(
                    None,
                    ApiError.bad_request(INVALID_REQUEST, "Invalid request", f"batch of {len(payload)} exceeds {max_batch}"),
                )
            )
        responses = await run_in_threadpool(_handle_batch, queries, payload)
        if not responses:
            return Response(status_code=204)
        return JSONResponse(responses)

    resp = await run_in_threadpool(_handle_one, queries, payload)
    if resp is None:
        return Response(status_code=204)
    return JSONResponse(resp)
