"""Core configuration and logging helpers."""
from __future__ import annotations

from .utils import (
    Settings,
    configure_logging,
    get_correlation_id,
    get_logger,
    load_settings,
    set_correlation_id,
)

__all__ = [
    "Settings",
    "configure_logging",
    "get_correlation_id",
    "get_logger",
    "load_settings",
    "set_correlation_id",
]
