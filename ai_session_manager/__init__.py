"""Public package interface for the AI session manager."""
from __future__ import annotations

from importlib import metadata as _metadata

try:
    __version__ = _metadata.version("ai-session-manager")
except _metadata.PackageNotFoundError:  # pragma: no cover - fallback when not installed
    __version__ = "0.1.0"

from . import core, providers, rpc, session, system
from .core import Settings, configure_logging, get_logger, load_settings
from .providers import CLICompletionRunner, CompletionResult, create_runner
from .rpc import MethodDispatcher
from .session import (
    BroadcastCoordinator,
    ContextAccumulator,
    LockManager,
    Session,
    SessionService,
    SessionStore,
)
from .system import SystemStatusProvider

__all__ = [
    "BroadcastCoordinator",
    "CLICompletionRunner",
    "CompletionResult",
    "ContextAccumulator",
    "LockManager",
    "MethodDispatcher",
    "Session",
    "SessionService",
    "SessionStore",
    "Settings",
    "SystemStatusProvider",
    "__version__",
    "configure_logging",
    "core",
    "create_runner",
    "get_logger",
    "load_settings",
    "providers",
    "rpc",
    "session",
    "system",
]
