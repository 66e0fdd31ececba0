"""JSON-RPC 2.0 wire models and the one-shot request/response codec."""
from __future__ import annotations

import json
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, ValidationError

from .errors import InvalidRequest, ParseError

JSONRPC_VERSION = "2.0"


class Request(BaseModel):
    """A decoded JSON-RPC request. ``id`` is opaque and echoed verbatim."""

    model_config = ConfigDict(extra="ignore")

    jsonrpc: StrictStr = Field(JSONRPC_VERSION, description="Protocol version tag.")
    method: StrictStr = Field(..., min_length=1, description="Method name to dispatch.")
    params: Any = Field(default=None, description="Method-specific parameters.")
    id: Any = Field(default=None, description="Caller correlator (scalar or null).")


class ErrorObject(BaseModel):
    code: StrictInt
    message: str
    data: Any = None


class SuccessResponse(BaseModel):
    jsonrpc: StrictStr = JSONRPC_VERSION
    result: Any = None
    id: Any = None


class ErrorResponse(BaseModel):
    jsonrpc: StrictStr = JSONRPC_VERSION
    error: ErrorObject
    id: Any = None


Response = Union[SuccessResponse, ErrorResponse]


def is_valid_id(value: Any) -> bool:
    """JSON-RPC ids are strings, numbers, booleans or null; never containers."""
    return value is None or isinstance(value, (str, int, float, bool))


def _load_document(raw: Union[str, bytes]) -> Any:
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError("Parse error: Invalid JSON") from exc
    if not raw or not raw.strip():
        raise ParseError("Parse error: Invalid JSON")
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ParseError("Parse error: Invalid JSON") from exc


def decode_request(raw: Union[str, bytes]) -> Request:
    """Decode one request document, raising ``ParseError`` or ``InvalidRequest``."""
    document = _load_document(raw)
    if not isinstance(document, dict):
        raise InvalidRequest("Invalid Request: expected a single JSON object")

    request_id = document.get("id")
    if not is_valid_id(request_id):
        raise InvalidRequest("Invalid Request: id must be a string, number or null")
    if document.get("jsonrpc") != JSONRPC_VERSION:
        raise InvalidRequest("Invalid JSON-RPC version", request_id=request_id)
    method = document.get("method")
    if not isinstance(method, str) or not method:
        raise InvalidRequest("Missing method", request_id=request_id)

    try:
        return Request.model_validate(document)
    except ValidationError as exc:
        raise InvalidRequest("Invalid Request", request_id=request_id) from exc


def success_payload(request_id: Any, result: Any) -> Dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "result": result, "id": request_id}


def error_payload(request_id: Any, code: int, message: str, data: Any | None = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": JSONRPC_VERSION, "error": error, "id": request_id}


def encode_success(request_id: Any, result: Any) -> str:
    return json.dumps(success_payload(request_id, result), ensure_ascii=False)


def encode_error(request_id: Any, code: int, message: str, data: Any | None = None) -> str:
    return json.dumps(error_payload(request_id, code, message, data), ensure_ascii=False)


def decode_response(raw: Union[str, bytes]) -> Response:
    """Decode a response document (client side of the protocol)."""
    document = _load_document(raw)
    if not isinstance(document, dict) or document.get("jsonrpc") != JSONRPC_VERSION:
        raise InvalidRequest("Invalid Response: expected a JSON-RPC 2.0 object")
    try:
        if "error" in document:
            return ErrorResponse.model_validate(document)
        return SuccessResponse.model_validate(document)
    except ValidationError as exc:
        raise InvalidRequest("Invalid Response") from exc


def build_request(method: str, params: Optional[Dict[str, Any]] = None, request_id: Any = 1) -> str:
    """Serialise a request document, as a conductor would send it."""
    payload: Dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "method": method, "id": request_id}
    if params is not None:
        payload["params"] = params
    return json.dumps(payload, ensure_ascii=False)


__all__ = [
    "JSONRPC_VERSION",
    "ErrorObject",
    "ErrorResponse",
    "Request",
    "Response",
    "SuccessResponse",
    "build_request",
    "decode_request",
    "decode_response",
    "encode_error",
    "encode_success",
    "error_payload",
    "is_valid_id",
    "success_payload",
]
