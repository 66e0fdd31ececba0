"""Abstractions for the external completion primitive."""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Protocol

if TYPE_CHECKING:
    from ai_session_manager.session.models import ConnectionParams


@dataclass
class CompletionResult:
    """Captured output and exit status of one completion call."""

    output: str
    exit_code: int
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class CompletionError(RuntimeError):
    """Raised when the completion primitive does not produce a usable answer."""

    def __init__(self, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.data = data


class CompletionTimeoutError(CompletionError):
    """Raised when a completion call exceeds its timeout."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Execution timeout after {_format_seconds(timeout)}s", {"timeout": timeout})
        self.timeout = timeout


class CompletionFailedError(CompletionError):
    """Raised when a completion call exits with a non-zero status."""

    def __init__(self, exit_code: int, output: str = "") -> None:
        super().__init__(
            f"Completion execution failed with exit code {exit_code}",
            {"exit_code": exit_code, "output": output},
        )
        self.exit_code = exit_code
        self.output = output


class SecretProviderError(CompletionError):
    """Raised when connection parameters cannot be resolved to an environment."""


def _format_seconds(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


class SecretProvider(Protocol):
    """Resolve connection parameters into environment overrides."""

    def resolve(self, connection: ConnectionParams) -> Mapping[str, str]:
        ...


class CompletionRunner(Protocol):
    """Protocol for anything able to turn a prompt into generated text."""

    def invoke(
        self,
        prompt: str,
        *,
        timeout: float,
        connection: ConnectionParams,
        system_prompt: Optional[str] = None,
    ) -> CompletionResult:
        """Run one completion; raise ``CompletionTimeoutError`` on timeout."""
        ...


__all__ = [
    "CompletionError",
    "CompletionFailedError",
    "CompletionResult",
    "CompletionRunner",
    "CompletionTimeoutError",
    "SecretProvider",
    "SecretProviderError",
]
