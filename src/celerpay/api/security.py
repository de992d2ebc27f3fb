from __future__ import annotations

from typing import FrozenSet

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from celerpay.api.errors import ApiError

_BODY_METHODS: FrozenSet[str] = frozenset({"POST", "PUT", "PATCH"})


def _declared_length(request: Request) -> int:
    raw = (request.headers.get("content-length") or "").strip()
    return int(raw) if raw.isdigit() else -1


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject oversized request bodies with 413 before they reach a route.

    Only body-carrying methods are checked: the REST surface is GET-only and
    JSON-RPC arrives as POST. A declared Content-Length over the limit is
    refused without reading; otherwise the buffered body is measured, which
    also covers chunked uploads.
    """

    def __init__(self, app, *, max_bytes: int) -> None:
        super().__init__(app)
        self._max_bytes = int(max_bytes)

    def _reject(self) -> JSONResponse:
        err = ApiError.too_large(f"Request body exceeds {self._max_bytes} bytes")
        return JSONResponse(status_code=err.status_code, content={"ok": False, "error": err.envelope()})

    async def dispatch(self, request: Request, call_next):
        if request.method.upper() not in _BODY_METHODS:
            return await call_next(request)

        if _declared_length(request) > self._max_bytes:
            return self._reject()
        if len(await request.body()) > self._max_bytes:
            return self._reject()

        return await call_next(request)
