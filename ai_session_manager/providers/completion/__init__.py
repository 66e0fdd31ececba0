"""Completion primitive and secret provider implementations."""
from __future__ import annotations

from .base import (
    CompletionError,
    CompletionFailedError,
    CompletionResult,
    CompletionRunner,
    CompletionTimeoutError,
    SecretProvider,
    SecretProviderError,
)
from .cli_runner import CLICompletionRunner
from .secrets import DopplerSecretProvider, EnvSecretProvider, create_secret_provider


def create_runner(settings) -> CLICompletionRunner:
    """Build the completion runner described by ``settings``."""
    return CLICompletionRunner(
        settings.completion_command,
        secrets=create_secret_provider(settings.secret_provider),
        system_prompt_flag=settings.system_prompt_flag,
    )


__all__ = [
    "CLICompletionRunner",
    "CompletionError",
    "CompletionFailedError",
    "CompletionResult",
    "CompletionRunner",
    "CompletionTimeoutError",
    "DopplerSecretProvider",
    "EnvSecretProvider",
    "SecretProvider",
    "SecretProviderError",
    "create_runner",
    "create_secret_provider",
]
