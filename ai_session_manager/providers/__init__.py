"""Provider exports for external collaborators."""
from __future__ import annotations

from .completion import (
    CLICompletionRunner,
    CompletionResult,
    CompletionRunner,
    create_runner,
    create_secret_provider,
)

__all__ = [
    "CLICompletionRunner",
    "CompletionResult",
    "CompletionRunner",
    "create_runner",
    "create_secret_provider",
]
