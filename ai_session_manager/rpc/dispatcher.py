"""Route decoded JSON-RPC requests to session operations."""
from __future__ import annotations

import uuid
from typing import Any, Callable, Dict, Mapping, Optional, Type, Union

from pydantic import ValidationError

from ai_session_manager.core.utils.logger import get_logger, set_correlation_id
from ai_session_manager.session.broadcast import BroadcastCoordinator
from ai_session_manager.session.manager import SessionService

from .errors import INTERNAL_ERROR, InvalidParams, MethodNotFound, RPCError, error_code_for, to_rpc_error
from .params import (
    BroadcastMessageParams,
    CreateSessionParams,
    DeleteSessionParams,
    GetStatusParams,
    ListSessionsParams,
    MethodParams,
    ResetSessionParams,
    SendMessageParams,
    SystemStatusParams,
    describe_errors,
)
from .protocol import Request, decode_request, encode_error, encode_success

LOGGER = get_logger(__name__)

Handler = Callable[[Any], Dict[str, Any]]


class MethodDispatcher:
    """Validate parameters, call the matching handler and shape the reply."""

    def __init__(
        self,
        service: SessionService,
        status_provider: Any,
        *,
        broadcaster: Optional[BroadcastCoordinator] = None,
    ) -> None:
        self.service = service
        self.status_provider = status_provider
        self.broadcaster = broadcaster or BroadcastCoordinator(service)
        self._methods: Dict[str, tuple[Type[MethodParams], Handler]] = {
            "create_session": (CreateSessionParams, self._create_session),
            "delete_session": (DeleteSessionParams, self._delete_session),
            "list_sessions": (ListSessionsParams, self._list_sessions),
            "get_status": (GetStatusParams, self._get_status),
            "send_message": (SendMessageParams, self._send_message),
            "reset_session": (ResetSessionParams, self._reset_session),
            "broadcast_message": (BroadcastMessageParams, self._broadcast_message),
            "get_system_status": (SystemStatusParams, self._get_system_status),
        }

    @property
    def methods(self) -> list[str]:
        return sorted(self._methods)

    def handle(self, raw: Union[str, bytes]) -> str:
        """Answer one raw request document with exactly one response document."""
        set_correlation_id(uuid.uuid4().hex[:8])
        try:
            request = decode_request(raw)
        except RPCError as exc:
            LOGGER.info("Rejected request: %s", exc.message)
            return encode_error(exc.request_id, exc.code, exc.message, exc.data)

        set_correlation_id(request.id if request.id is not None else uuid.uuid4().hex[:8])
        try:
            result = self.dispatch(request)
        except Exception as exc:  # noqa: BLE001
            error = to_rpc_error(exc)
            if error_code_for(exc) is None:
                LOGGER.exception("Method %s failed unexpectedly", request.method)
            else:
                LOGGER.info("Method %s returned error %s: %s", request.method, error.code, error.message)
            return encode_error(request.id, error.code, error.message, error.data)

        try:
            return encode_success(request.id, result)
        except (TypeError, ValueError) as exc:
            LOGGER.exception("Result of %s is not serialisable", request.method)
            return encode_error(request.id, INTERNAL_ERROR, f"Internal error: {exc}")

    def dispatch(self, request: Request) -> Dict[str, Any]:
        """Run the handler for ``request`` and return its result object."""
        entry = self._methods.get(request.method)
        if entry is None:
            raise MethodNotFound(f"Method not found: {request.method}")
        model, handler = entry
        params = self._validate(model, request.params)
        LOGGER.debug("Dispatching %s", request.method)
        return handler(params)

    @staticmethod
    def _validate(model: Type[MethodParams], params: Any) -> MethodParams:
        if params is None:
            params = {}
        if not isinstance(params, Mapping):
            raise InvalidParams("Invalid params: expected an object")
        try:
            return model.model_validate(dict(params))
        except ValidationError as exc:
            errors = exc.errors()
            details = describe_errors(errors)
            missing = [detail["loc"] for detail, error in zip(details, errors) if error.get("type") == "missing"]
            if missing:
                raise InvalidParams(f"Missing required parameter: {missing[0]}", details) from exc
            first = details[0] if details else {"loc": "", "msg": "invalid value"}
            raise InvalidParams(f"Invalid params: {first['loc']}: {first['msg']}", details) from exc

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _create_session(self, params: CreateSessionParams) -> Dict[str, Any]:
        session = self.service.create_session(
            params.name,
            role=params.role,
            system_prompt=params.system_prompt,
            preset=params.preset,
            connection=params.connection(),
            tags=params.all_tags(),
            workspace=params.resolved_workspace(),
        )
        return {"session": session.summary()}

    def _delete_session(self, params: DeleteSessionParams) -> Dict[str, Any]:
        self.service.delete_session(params.name, lock_timeout=params.lock_timeout)
        return {"deleted": True, "name": params.name}

    def _list_sessions(self, params: ListSessionsParams) -> Dict[str, Any]:
        sessions = self.service.list_sessions(tag=params.tag, min_messages=params.min_messages)
        return {"sessions": [session.summary() for session in sessions], "total": len(sessions)}

    def _get_status(self, params: GetStatusParams) -> Dict[str, Any]:
        return self.service.get_status(params.name, include_context=params.include_context)

    def _send_message(self, params: SendMessageParams) -> Dict[str, Any]:
        reply = self.service.send_message(
            params.session,
            params.message,
            timeout=params.timeout,
            lock_timeout=params.lock_timeout,
        )
        return reply.to_dict()

    def _reset_session(self, params: ResetSessionParams) -> Dict[str, Any]:
        session = self.service.reset_session(params.name, lock_timeout=params.lock_timeout)
        return {"reset": True, "name": session.name, "message_count": session.message_count}

    def _broadcast_message(self, params: BroadcastMessageParams) -> Dict[str, Any]:
        return self.broadcaster.broadcast(
            params.sessions,
            params.message,
            timeout=params.timeout,
            lock_timeout=params.lock_timeout,
        )

    def _get_system_status(self, params: SystemStatusParams) -> Dict[str, Any]:
        return self.status_provider.snapshot()


__all__ = ["MethodDispatcher"]
