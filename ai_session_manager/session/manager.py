"""Session lifecycle management: the operations behind every RPC method."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ai_session_manager.core.utils.config import Settings
from ai_session_manager.core.utils.constants import FAILURE_OUTPUT_TAIL_CHARS
from ai_session_manager.core.utils.logger import get_logger
from ai_session_manager.providers.completion.base import CompletionFailedError, CompletionRunner

from .context import ContextAccumulator
from .errors import UnknownPresetError
from .locks import LockManager
from .models import ConnectionParams, Session, utc_timestamp
from .presets import BUILTIN_PRESETS, RolePreset
from .store import SessionStore

LOGGER = get_logger(__name__)


@dataclass
class MessageReply:
    """Outcome of one successful ``send_message`` turn."""

    session: str
    response: str
    timestamp: str
    message_index: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session": self.session,
            "response": self.response,
            "timestamp": self.timestamp,
            "message_index": self.message_index,
        }


class SessionService:
    """Coordinates the store, the lock manager and the completion primitive."""

    def __init__(
        self,
        store: SessionStore,
        locks: LockManager,
        runner: CompletionRunner,
        *,
        accumulator: Optional[ContextAccumulator] = None,
        presets: Optional[Mapping[str, RolePreset]] = None,
        default_timeout: float = 120.0,
    ) -> None:
        self.store = store
        self.locks = locks
        self.runner = runner
        self.accumulator = accumulator or store.accumulator
        self.presets = dict(presets) if presets is not None else dict(BUILTIN_PRESETS)
        self.default_timeout = default_timeout

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        runner: CompletionRunner,
        *,
        presets: Optional[Mapping[str, RolePreset]] = None,
    ) -> "SessionService":
        accumulator = ContextAccumulator(settings.context_preview_chars)
        defaults = ConnectionParams(settings.default_project, settings.default_config)
        store = SessionStore(settings.sessions_dir, defaults, accumulator)
        locks = LockManager(
            settings.sessions_dir,
            default_timeout=settings.lock_timeout,
            poll_interval=settings.lock_poll_interval,
            stale_grace=settings.lock_stale_grace,
        )
        return cls(
            store,
            locks,
            runner,
            accumulator=accumulator,
            presets=presets,
            default_timeout=settings.default_timeout,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create_session(
        self,
        name: str,
        *,
        role: Optional[str] = None,
        system_prompt: Optional[str] = None,
        preset: Optional[str] = None,
        connection: Optional[Mapping[str, Any]] = None,
        tags: Optional[Iterable[str]] = None,
        workspace: Optional[str] = None,
    ) -> Session:
        tags = list(tags or ())
        selected = self._resolve_preset(preset, role)
        if selected is not None:
            if not system_prompt:
                system_prompt = selected.system_prompt
            tags = [selected.name, *selected.tags, *tags]
            role = role or selected.name
        return self.store.create(
            name,
            role=role,
            system_prompt=system_prompt,
            connection=connection,
            tags=tags,
            workspace=workspace,
        )

    def delete_session(self, name: str, *, lock_timeout: Optional[float] = None) -> None:
        self.store.get(name)
        with self.locks.hold(name, lock_timeout):
            self.store.delete(name)

    def list_sessions(self, *, tag: Optional[str] = None, min_messages: Optional[int] = None) -> List[Session]:
        return self.store.list(tag=tag, min_messages=min_messages)

    def get_status(self, name: str, *, include_context: bool = False) -> Dict[str, Any]:
        session, context = self.store.snapshot(name)
        status: Dict[str, Any] = {
            "session": session.to_dict(),
            "locked": self.locks.is_locked(name),
            "context_preview": self.accumulator.preview(context),
        }
        if include_context:
            status["context"] = context
        return status

    def reset_session(self, name: str, *, lock_timeout: Optional[float] = None) -> Session:
        self.store.get(name)
        with self.locks.hold(name, lock_timeout):
            return self.store.clear_context(name)

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------

    def send_message(
        self,
        name: str,
        message: str,
        *,
        timeout: Optional[float] = None,
        lock_timeout: Optional[float] = None,
    ) -> MessageReply:
        """Run one conversational turn against ``name``.

        The context is only extended when the completion succeeds; timeouts
        and non-zero exits leave the session exactly as it was.
        """
        if not message:
            raise ValueError("message must not be empty")
        session = self.store.get(name)
        timeout = self.default_timeout if timeout is None else timeout

        with self.locks.hold(name, lock_timeout):
            self.store.recover(name)
            context = self.store.read_context(name)
            prompt = self.accumulator.build_prompt(context, message)
            result = self.runner.invoke(
                prompt,
                timeout=timeout,
                connection=session.connection,
                system_prompt=session.system_prompt,
            )
            if result.exit_code != 0:
                LOGGER.warning("Completion for session %s exited with %s", name, result.exit_code)
                raise CompletionFailedError(result.exit_code, result.output[-FAILURE_OUTPUT_TAIL_CHARS:])
            updated = self.store.append_turn(name, message, result.output)

        return MessageReply(
            session=name,
            response=result.output,
            timestamp=utc_timestamp(),
            message_index=updated.message_count,
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def session_counts(self) -> Dict[str, int]:
        """Return total sessions split into active (live lock) and idle."""
        names = [session.name for session in self.store.list()]
        active = sum(1 for name in names if self.locks.is_locked(name))
        return {"total": len(names), "active": active, "idle": len(names) - active}

    def _resolve_preset(self, preset: Optional[str], role: Optional[str]) -> Optional[RolePreset]:
        if preset:
            try:
                return self.presets[preset]
            except KeyError as exc:
                raise UnknownPresetError(preset) from exc
        if role and role in self.presets:
            return self.presets[role]
        return None


__all__ = ["MessageReply", "SessionService"]
