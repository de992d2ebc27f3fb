# src/celerpay/api/structured_logging.py
from __future__ import annotations

import json
import logging
import os
import time
import uuid
from typing import Any, Dict, Optional, Tuple

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

Json = Dict[str, Any]

# Set on records produced by log_event(); their message is already a JSON object.
_EVENT_ATTR = "celer_event"

# Probe endpoints polled by orchestrators; logged only when CELER_LOG_PROBES=1.
_PROBE_PATHS: Tuple[str, ...] = ("/v1/health", "/readyz")


def _now_ms() -> int:
    return int(time.time() * 1000)


def _truthy(v: str | None) -> bool:
    if v is None:
        return False
    return v.strip().lower() in {"1", "true", "yes", "y", "on"}


def _dumps(payload: Json) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


class JsonLineFormatter(logging.Formatter):
    """One JSON object per line.

    Records from log_event() pass through unchanged. Anything else (uvicorn,
    starlette, plain logger.info calls) is wrapped as a "log" event so the
    stream stays machine-readable.
    """

    def format(self, record: logging.LogRecord) -> str:
        if getattr(record, _EVENT_ATTR, False):
            return record.getMessage()
        payload: Json = {
            "ts_ms": int(record.created * 1000),
            "event": "log",
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return _dumps(payload)


def configure_structured_logging(level_name: Optional[str] = None) -> None:
    """Route the root logger to stdout as JSON lines.

    Level comes from the argument, else CELER_LOG_LEVEL, else INFO.
    Calling it again only changes the level.
    """
    name = (level_name or os.environ.get("CELER_LOG_LEVEL") or "INFO").strip().upper()
    level = getattr(logging, name, logging.INFO)

    root = logging.getLogger()
    if getattr(root, "_celerpay_configured", False):  # type: ignore[attr-defined]
        root.setLevel(level)
        return

    handler = logging.StreamHandler()
    handler.setFormatter(JsonLineFormatter())

    root.handlers = [handler]
    root.setLevel(level)
    setattr(root, "_celerpay_configured", True)  # type: ignore[attr-defined]


def log_event(logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    if not logger.isEnabledFor(level):
        return
    payload: Json = {"ts_ms": _now_ms(), "event": event, "level": logging.getLevelName(level)}
    payload.update(fields)
    logger.log(level, _dumps(payload), extra={_EVENT_ATTR: True})


class RequestLogMiddleware(BaseHTTPMiddleware):
    """One http_request event per request, tagged with a request id.

    Controls:
      - CELER_LOG_REQUESTS=0 disables it (default on)
      - CELER_LOG_REQUEST_HEADERS=1 adds a small header subset
      - CELER_LOG_PROBES=1 also logs liveness/readiness probes
    """

    def __init__(self, app) -> None:
        super().__init__(app)
        raw = (os.environ.get("CELER_LOG_REQUESTS") or "1").strip().lower()
        self._enabled = raw not in {"0", "false", "no", "n", "off"}
        self._log_headers = _truthy(os.environ.get("CELER_LOG_REQUEST_HEADERS"))
        self._log_probes = _truthy(os.environ.get("CELER_LOG_PROBES"))
        self._logger = logging.getLogger("celerpay.http")

    def _header_subset(self, request: Request) -> Json:
        if not self._log_headers:
            return {}
        keep = ("user-agent", "content-type", "content-length", "x-forwarded-for")
        return {k: request.headers[k] for k in keep if request.headers.get(k)}

    def _quiet(self, path: str) -> bool:
        return not self._log_probes and path in _PROBE_PATHS

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id

        path = str(request.url.path or "")
        if not self._enabled or self._quiet(path):
            response = await call_next(request)
            response.headers.setdefault("x-request-id", request_id)
            return response

        started = time.monotonic()
        status = 500
        err: Optional[str] = None
        response: Optional[Response] = None

        try:
            response = await call_next(request)
            status = int(response.status_code)
            return response
        except Exception as e:
            err = repr(e)
            raise
        finally:
            log_event(
                self._logger,
                "http_request",
                level=logging.WARNING if status >= 500 else logging.INFO,
                request_id=request_id,
                method=request.method,
                path=path,
                at=request.query_params.get("at"),
                status=status,
                duration_ms=int((time.monotonic() - started) * 1000),
                client=str(request.client.host) if request.client else "",
                headers=self._header_subset(request),
                error=err,
            )
            if response is not None:
                response.headers.setdefault("x-request-id", request_id)
