"""Configuration loading utilities for the session manager."""
from __future__ import annotations

import os
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover - fallback for <3.11
    import tomli as tomllib  # type: ignore

from .constants import (
    DEFAULT_BACKEND_NAME,
    DEFAULT_BACKEND_URL,
    DEFAULT_BROADCAST_MAX_WORKERS,
    DEFAULT_COMPLETION_COMMAND,
    DEFAULT_CONFIG,
    DEFAULT_CONTEXT_PREVIEW_CHARS,
    DEFAULT_EXECUTION_TIMEOUT,
    DEFAULT_LOCK_POLL_INTERVAL,
    DEFAULT_LOCK_STALE_GRACE,
    DEFAULT_LOCK_TIMEOUT,
    DEFAULT_PROBE_TIMEOUT,
    DEFAULT_PROJECT,
    DEFAULT_SESSIONS_DIR,
    DEFAULT_SYSTEM_PROMPT_FLAG,
)

CONFIG_FILENAMES: tuple[str, ...] = (".session-manager.toml", "session-manager.toml")
DEFAULT_CONFIG_PATHS = (
    Path.home() / ".config" / "ai-session-manager" / "config.toml",
    Path.home() / ".session-manager.toml",
)
ENV_PREFIX = "SESSION_MANAGER_"

# Variables shared with the conductor shell scripts, applied beneath file values.
LEGACY_ENV_FIELDS: Dict[str, str] = {
    "DOPPLER_PROJECT": "default_project",
    "DOPPLER_CONFIG": "default_config",
    "LOCK_TIMEOUT": "lock_timeout",
    "ANTHROPIC_BASE_URL": "backend_url",
    "DEFAULT_AI_ASSISTANT": "backend_name",
    "AI_ASSISTANT": "backend_name",
}

_BOOL_FIELDS = {"probe_backend", "structured_logging"}
_INT_FIELDS = {"broadcast_max_workers", "context_preview_chars"}
_FLOAT_FIELDS = {
    "lock_timeout",
    "lock_poll_interval",
    "lock_stale_grace",
    "default_timeout",
    "probe_timeout",
}
_PATH_FIELDS = {"sessions_dir", "presets_file"}


def find_config_in_parents(
    start_path: Path, config_name: str | Sequence[str] = ".session-manager.toml"
) -> Optional[Path]:
    """Search parent directories starting from ``start_path`` for configuration files."""

    if isinstance(config_name, str):
        candidate_names: tuple[str, ...] = (config_name,)
    else:
        candidate_names = tuple(config_name)

    current = start_path.resolve()
    if current.is_file():
        current = current.parent

    while True:
        for name in candidate_names:
            candidate = current / name
            if candidate.is_file():
                return candidate.resolve()
        if current.parent == current:
            break
        current = current.parent
    return None


@dataclass
class Settings:
    """Runtime configuration for the session manager."""

    sessions_dir: Path = Path(DEFAULT_SESSIONS_DIR)
    default_project: str = DEFAULT_PROJECT
    default_config: str = DEFAULT_CONFIG
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT
    lock_poll_interval: float = DEFAULT_LOCK_POLL_INTERVAL
    lock_stale_grace: float = DEFAULT_LOCK_STALE_GRACE
    default_timeout: float = DEFAULT_EXECUTION_TIMEOUT
    completion_command: tuple[str, ...] = DEFAULT_COMPLETION_COMMAND
    system_prompt_flag: Optional[str] = DEFAULT_SYSTEM_PROMPT_FLAG
    secret_provider: str = "doppler"
    backend_name: str = DEFAULT_BACKEND_NAME
    backend_url: Optional[str] = DEFAULT_BACKEND_URL
    probe_backend: bool = True
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT
    broadcast_max_workers: int = DEFAULT_BROADCAST_MAX_WORKERS
    context_preview_chars: int = DEFAULT_CONTEXT_PREVIEW_CHARS
    presets_file: Path = Path("~/.claude/session-presets.yaml")
    log_level: str = "WARNING"
    structured_logging: bool = False

    def __post_init__(self) -> None:
        self.sessions_dir = Path(self.sessions_dir).expanduser()
        self.presets_file = Path(self.presets_file).expanduser()
        self.completion_command = _as_command(self.completion_command)

    def ensure_sessions_dir(self) -> None:
        """Ensure the sessions root directory exists."""
        self.sessions_dir.mkdir(parents=True, exist_ok=True)


def _cast_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.lower() in {"1", "true", "on", "yes", "y"}
    return bool(value)


def _as_command(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        return tuple(shlex.split(value))
    return tuple(str(part) for part in value)


def _coerce(field: str, value: Any) -> Any:
    if field in _BOOL_FIELDS:
        return _cast_bool(value)
    if field in _INT_FIELDS:
        return int(value)
    if field in _FLOAT_FIELDS:
        return float(value)
    if field in _PATH_FIELDS:
        return Path(value)
    if field == "completion_command":
        return _as_command(value)
    if field in {"backend_url", "system_prompt_flag"} and value == "":
        return None
    return value


def _load_from_file(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        return {}
    with path.open("rb") as handle:
        try:
            data = tomllib.load(handle)
        except tomllib.TOMLDecodeError as exc:
            raise ValueError(f"Malformed config file {path}: {exc}") from exc
    return {k.replace("-", "_"): v for k, v in data.items()}


def _load_legacy_env() -> Dict[str, Any]:
    env: Dict[str, Any] = {}
    for key, field in LEGACY_ENV_FIELDS.items():
        value = os.environ.get(key)
        if value:
            env[field] = value
    if _cast_bool(os.environ.get("DEBUG", "false")):
        env["log_level"] = "DEBUG"
    return env


def _load_from_env(prefix: str = ENV_PREFIX) -> Dict[str, Any]:
    env: Dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue
        env[key[len(prefix) :].lower()] = value
    return env


def load_settings(explicit_path: Optional[Path] = None) -> Settings:
    """Load configuration, merging legacy environment, file and environment sources.

    Raises ``ValueError`` naming the offending file or field when a source
    cannot be parsed.
    """

    file_data: Dict[str, Any] = {}
    if explicit_path:
        file_data.update(_load_from_file(Path(explicit_path)))
    else:
        search_paths = []
        cwd = Path.cwd()
        project_config = find_config_in_parents(cwd, CONFIG_FILENAMES)
        if project_config:
            search_paths.append(project_config)
        search_paths.extend(DEFAULT_CONFIG_PATHS)
        seen_paths = set()
        for candidate in search_paths:
            if candidate in seen_paths:
                continue
            seen_paths.add(candidate)
            file_data = _load_from_file(candidate)
            if file_data:
                break

    merged: Dict[str, Any] = {**_load_legacy_env(), **file_data, **_load_from_env()}

    known_fields = set(Settings.__dataclass_fields__)
    init_kwargs: Dict[str, Any] = {}
    for key, value in merged.items():
        if key not in known_fields:
            continue
        try:
            init_kwargs[key] = _coerce(key, value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid value for {key}: {value!r}") from exc
    return Settings(**init_kwargs)


__all__ = ["Settings", "find_config_in_parents", "load_settings"]
