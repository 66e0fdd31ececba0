"""JSON-RPC 2.0 surface: codec, parameter models and method dispatch."""
from .dispatcher import MethodDispatcher
from .errors import (
    EXECUTION_FAILED,
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    INVALID_SESSION_NAME,
    LOCK_TIMEOUT,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    SESSION_EXISTS,
    SESSION_NOT_FOUND,
    RPCError,
    to_rpc_error,
)
from .protocol import (
    ErrorResponse,
    Request,
    SuccessResponse,
    build_request,
    decode_request,
    decode_response,
    encode_error,
    encode_success,
)

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
    "ErrorResponse",
    "MethodDispatcher",
    "RPCError",
    "Request",
    "SuccessResponse",
    "build_request",
    "decode_request",
    "decode_response",
    "encode_error",
    "encode_success",
    "to_rpc_error",
]
