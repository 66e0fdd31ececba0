"""CLI package exposing the session manager command entry points."""
from __future__ import annotations

from .commands import call, cli, main, serve
from .utils import build_dispatcher, get_dispatcher
from ai_session_manager.core.utils.config import Settings, load_settings

__all__ = [
    "Settings",
    "build_dispatcher",
    "call",
    "cli",
    "get_dispatcher",
    "load_settings",
    "main",
    "serve",
]
