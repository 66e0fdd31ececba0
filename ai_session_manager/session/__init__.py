"""Session management: persistence, locking, context and fan-out."""
from .broadcast import BroadcastCoordinator
from .context import ContextAccumulator
from .errors import (
    InvalidSessionNameError,
    LockTimeoutError,
    SessionError,
    SessionExistsError,
    SessionNotFoundError,
    UnknownPresetError,
)
from .locks import LockManager
from .manager import MessageReply, SessionService
from .models import ConnectionParams, Session
from .presets import BUILTIN_PRESETS, RolePreset, load_presets_yaml
from .store import SessionStore

__all__ = [
    "BUILTIN_PRESETS",
    "BroadcastCoordinator",
    "ConnectionParams",
    "ContextAccumulator",
    "InvalidSessionNameError",
    "LockManager",
    "LockTimeoutError",
    "MessageReply",
    "RolePreset",
    "Session",
    "SessionError",
    "SessionExistsError",
    "SessionNotFoundError",
    "SessionService",
    "SessionStore",
    "UnknownPresetError",
    "load_presets_yaml",
]
