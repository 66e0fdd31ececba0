"""Secret providers that turn connection parameters into an environment."""
from __future__ import annotations

import json
import subprocess
from threading import Lock
from typing import TYPE_CHECKING, Dict, Mapping, Sequence, Tuple

from ai_session_manager.core.utils.logger import get_logger

from .base import SecretProvider, SecretProviderError

if TYPE_CHECKING:
    from ai_session_manager.session.models import ConnectionParams

LOGGER = get_logger(__name__)


class EnvSecretProvider:
    """Use the process environment as-is."""

    def resolve(self, connection: ConnectionParams) -> Mapping[str, str]:
        return {}


class DopplerSecretProvider:
    """Download secrets for a Doppler project/config pair.

    Results are cached for the lifetime of the process so a broadcast to many
    sessions sharing one configuration downloads it once.
    """

    def __init__(self, executable: str = "doppler", *, timeout: float = 30.0) -> None:
        self.executable = executable
        self.timeout = timeout
        self._cache: Dict[Tuple[str, str], Dict[str, str]] = {}
        self._lock = Lock()

    def command(self, connection: ConnectionParams) -> Sequence[str]:
        return [
            self.executable,
            "secrets",
            "download",
            "--no-file",
            "--format",
            "json",
            "--project",
            connection.project,
            "--config",
            connection.config,
        ]

    def resolve(self, connection: ConnectionParams) -> Mapping[str, str]:
        key = (connection.project, connection.config)
        with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                return cached
            secrets = self._download(connection)
            self._cache[key] = secrets
            return secrets

    def _download(self, connection: ConnectionParams) -> Dict[str, str]:
        try:
            process = subprocess.run(
                list(self.command(connection)),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise SecretProviderError(f"Secret provider executable not found: {self.executable}") from exc
        except subprocess.TimeoutExpired as exc:
            raise SecretProviderError(
                f"Secret provider timed out resolving {connection.project}/{connection.config}"
            ) from exc

        if process.returncode != 0:
            LOGGER.error("doppler exited with %s: %s", process.returncode, process.stderr.strip())
            raise SecretProviderError(
                f"Secret provider failed for {connection.project}/{connection.config}",
                {"exit_code": process.returncode},
            )
        try:
            payload = json.loads(process.stdout or "{}")
        except json.JSONDecodeError as exc:
            raise SecretProviderError("Secret provider returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise SecretProviderError("Secret provider returned a non-object payload")
        return {str(key): str(value) for key, value in payload.items()}


_PROVIDER_MAP = {
    "doppler": DopplerSecretProvider,
    "env": EnvSecretProvider,
    "none": EnvSecretProvider,
}


def create_secret_provider(name: str) -> SecretProvider:
    try:
        provider_cls = _PROVIDER_MAP[name.lower()]
    except KeyError as exc:
        raise ValueError(f"Unsupported secret provider: {name}") from exc
    return provider_cls()


__all__ = ["DopplerSecretProvider", "EnvSecretProvider", "create_secret_provider"]
