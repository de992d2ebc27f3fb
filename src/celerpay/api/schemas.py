from __future__ import annotations

"""Pydantic schemas for the JSON-RPC surface and the error envelope.

Keep this module intentionally small and stable.
"""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ErrorEnvelope(BaseModel):
    code: int = Field(..., description="9876 for every query failure; JSON-RPC codes for malformed requests")
    message: str = Field(..., description="Fixed per-operation text; do not branch on it")
    diagnostic: str = Field(..., description="Debug rendering of the underlying failure")


class RpcRequest(BaseModel):
    jsonrpc: Literal["2.0"]
    method: str = Field(..., min_length=1)
    params: Optional[Union[List[Any], Dict[str, Any]]] = None
    id: Optional[Union[int, str]] = None

    model_config = ConfigDict(extra="forbid")

    @property
    def is_notification(self) -> bool:
        return "id" not in self.model_fields_set


class RpcError(BaseModel):
    code: int
    message: str
    data: Optional[str] = None


class RpcResponse(BaseModel):
    jsonrpc: Literal["2.0"] = "2.0"
    result: Any = None
    error: Optional[RpcError] = None
    id: Optional[Union[int, str]] = None

    def to_wire(self) -> Dict[str, Any]:
        # Exactly one of result / error appears on the wire.
        out: Dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            out["error"] = self.error.model_dump(exclude_none=True)
        else:
            out["result"] = self.result
        return out
