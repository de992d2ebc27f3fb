from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from celerpay.api.schemas import ErrorEnvelope
from celerpay.api.structured_logging import log_event
from celerpay.runtime.errors import AccessorError, SnapshotNotFound

Json = Dict[str, Any]

log = logging.getLogger("celerpay.query")

# Reserved application error code shared by every query operation.
APP_ERROR_CODE = 9876

# JSON-RPC 2.0 transport / malformed-request codes.
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    SNAPSHOT_UNAVAILABLE = "snapshot_unavailable"
    INTERNAL = "internal"


_KIND_STATUS = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.SNAPSHOT_UNAVAILABLE: 409,
    ErrorKind.INTERNAL: 500,
}


@dataclass
class ApiError(Exception):
    """Error envelope {code, message, diagnostic} raised through the API layer."""

    status_code: int
    code: int
    message: str
    diagnostic: str
    kind: Optional[ErrorKind] = None

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.code}:{self.message}"

    def envelope(self) -> Json:
        return ErrorEnvelope(code=int(self.code), message=self.message, diagnostic=self.diagnostic).model_dump()

    @staticmethod
    def bad_request(code: int, message: str, diagnostic: str = "") -> "ApiError":
        return ApiError(400, code, message, diagnostic or message)

    @staticmethod
    def too_large(message: str = "Request body too large") -> "ApiError":
        return ApiError(413, INVALID_REQUEST, message, message)

    @staticmethod
    def not_ready(message: str) -> "ApiError":
        return ApiError(503, APP_ERROR_CODE, message, message, ErrorKind.INTERNAL)

    @staticmethod
    def application(kind: ErrorKind, message: str, diagnostic: str) -> "ApiError":
        return ApiError(_KIND_STATUS[kind], APP_ERROR_CODE, message, diagnostic or message, kind)


def error_kind(exc: BaseException) -> ErrorKind:
    if isinstance(exc, SnapshotNotFound):
        return ErrorKind.NOT_FOUND
    if isinstance(exc, AccessorError) and exc.code in {"unsupported", "version_mismatch"}:
        return ErrorKind.SNAPSHOT_UNAVAILABLE
    return ErrorKind.INTERNAL


def normalize_resolution_error(exc: SnapshotNotFound, *, op: str) -> ApiError:
    """Snapshot could not be resolved; the accessor was never invoked."""
    err = ApiError.application(ErrorKind.NOT_FOUND, "Snapshot not found", repr(exc))
    log_event(log, "snapshot_not_found", level=logging.INFO, op=op, at=exc.at)
    return err


def normalize_accessor_error(exc: BaseException, *, op: str, message: str) -> ApiError:
    """Convert any accessor failure into the fixed envelope.

    The message is the operation's fixed text; the diagnostic is a debug
    rendering of the failure and is opaque to callers.
    """
    kind = error_kind(exc)
    err = ApiError.application(kind, message, repr(exc))
    log_event(log, "query_failed", level=logging.WARNING, op=op, kind=kind.value, diagnostic=err.diagnostic)
    return err
