"""Domain exceptions raised by the session store and lock manager."""
from __future__ import annotations


class SessionError(RuntimeError):
    """Base class for session domain failures."""

    def __init__(self, name: str, message: str) -> None:
        super().__init__(message)
        self.name = name


class SessionNotFoundError(SessionError):
    """Raised when a named session does not exist."""

    def __init__(self, name: str) -> None:
        super().__init__(name, f"Session not found: {name}")


class SessionExistsError(SessionError):
    """Raised when creating a session whose name is already taken."""

    def __init__(self, name: str) -> None:
        super().__init__(name, f"Session already exists: {name}")


class InvalidSessionNameError(SessionError):
    """Raised when a name falls outside the identifier-safe charset."""

    def __init__(self, name: str) -> None:
        super().__init__(
            name,
            "Invalid session name: must contain only alphanumeric characters, dashes, and underscores",
        )


class LockTimeoutError(SessionError):
    """Raised when a session lock cannot be acquired in time."""

    def __init__(self, name: str, timeout: float) -> None:
        super().__init__(name, f"Lock timeout: failed to acquire lock for session {name}")
        self.timeout = timeout


class UnknownPresetError(ValueError):
    """Raised when ``create_session`` names a preset that is not defined."""

    def __init__(self, preset: str) -> None:
        super().__init__(f"Unknown preset: {preset}")
        self.preset = preset


__all__ = [
    "InvalidSessionNameError",
    "LockTimeoutError",
    "SessionError",
    "SessionExistsError",
    "SessionNotFoundError",
    "UnknownPresetError",
]
