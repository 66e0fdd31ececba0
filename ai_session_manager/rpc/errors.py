"""JSON-RPC error codes and the exceptions that carry them onto the wire."""
from __future__ import annotations

from typing import Any, Dict, Optional, Type

from ai_session_manager.providers.completion.base import CompletionError
from ai_session_manager.session.errors import (
    InvalidSessionNameError,
    LockTimeoutError,
    SessionExistsError,
    SessionNotFoundError,
    UnknownPresetError,
)

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
SESSION_NOT_FOUND = -32000
SESSION_EXISTS = -32001
LOCK_TIMEOUT = -32002
INVALID_SESSION_NAME = -32003
EXECUTION_FAILED = -32004


class RPCError(RuntimeError):
    """An error that is reported to the caller as a JSON-RPC error object."""

    code: int = INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        data: Any | None = None,
        *,
        code: Optional[int] = None,
        request_id: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.data = data
        # Id recovered from a request that failed validation, echoed in the reply.
        self.request_id = request_id
        if code is not None:
            self.code = code

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            payload["data"] = self.data
        return payload


class ParseError(RPCError):
    code = PARSE_ERROR


class InvalidRequest(RPCError):
    code = INVALID_REQUEST


class MethodNotFound(RPCError):
    code = METHOD_NOT_FOUND


class InvalidParams(RPCError):
    code = INVALID_PARAMS


class InternalError(RPCError):
    code = INTERNAL_ERROR


# Order matters: the first matching base class wins.
_DOMAIN_CODES: tuple[tuple[Type[BaseException], int], ...] = (
    (SessionNotFoundError, SESSION_NOT_FOUND),
    (SessionExistsError, SESSION_EXISTS),
    (LockTimeoutError, LOCK_TIMEOUT),
    (InvalidSessionNameError, INVALID_SESSION_NAME),
    (CompletionError, EXECUTION_FAILED),
    (UnknownPresetError, INVALID_PARAMS),
)


def error_code_for(exc: BaseException) -> Optional[int]:
    """Return the wire code for a domain exception, or ``None`` if unmapped."""
    if isinstance(exc, RPCError):
        return exc.code
    for exc_type, code in _DOMAIN_CODES:
        if isinstance(exc, exc_type):
            return code
    return None


def to_rpc_error(exc: BaseException) -> RPCError:
    """Translate any exception into an ``RPCError`` suitable for encoding."""
    if isinstance(exc, RPCError):
        return exc
    code = error_code_for(exc)
    if code is None:
        return InternalError(f"Internal error: {exc}")
    return RPCError(str(exc), getattr(exc, "data", None), code=code)


__all__ = [
    "EXECUTION_FAILED",
    "INTERNAL_ERROR",
    "INVALID_PARAMS",
    "INVALID_REQUEST",
    "INVALID_SESSION_NAME",
    "LOCK_TIMEOUT",
    "METHOD_NOT_FOUND",
    "PARSE_ERROR",
    "SESSION_EXISTS",
    "SESSION_NOT_FOUND",
    "InternalError",
    "InvalidParams",
    "InvalidRequest",
    "MethodNotFound",
    "ParseError",
    "RPCError",
    "error_code_for",
    "to_rpc_error",
]
