"""Helper utilities shared across CLI commands."""
from __future__ import annotations

import json
import shlex
import subprocess
from typing import Any, Dict, Optional

import click

from ai_session_manager.core.utils.config import Settings
from ai_session_manager.core.utils.logger import get_logger
from ai_session_manager.providers.completion import CompletionRunner, create_runner
from ai_session_manager.rpc import MethodDispatcher
from ai_session_manager.session import BroadcastCoordinator, SessionService, load_presets_yaml
from ai_session_manager.system import SystemStatusProvider

LOGGER = get_logger(__name__)

DEFAULT_REMOTE_COMMAND = "ai-session-manager serve"


def build_dispatcher(settings: Settings, runner: Optional[CompletionRunner] = None) -> MethodDispatcher:
    """Wire the store, locks, completion runner and status provider together."""
    settings.ensure_sessions_dir()
    runner = runner if runner is not None else create_runner(settings)
    presets = load_presets_yaml(settings.presets_file)
    service = SessionService.from_settings(settings, runner, presets=presets)
    broadcaster = BroadcastCoordinator(service, max_workers=settings.broadcast_max_workers)
    return MethodDispatcher(service, SystemStatusProvider(settings, service), broadcaster=broadcaster)


def _build_context(settings: Settings) -> Dict[str, Any]:
    return {"settings": settings, "dispatcher": None}


def get_dispatcher(ctx: click.Context) -> MethodDispatcher:
    dispatcher = ctx.obj.get("dispatcher")
    if dispatcher is not None:
        return dispatcher
    settings: Settings = ctx.obj["settings"]
    dispatcher = build_dispatcher(settings)
    ctx.obj["dispatcher"] = dispatcher
    return dispatcher


def parse_request_id(value: Optional[str]) -> Any:
    """Interpret ``--id`` as a JSON scalar when possible, otherwise as a string."""
    if value is None:
        return 1
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        return value
    if isinstance(parsed, (dict, list)):
        raise click.BadParameter("request id must be a scalar", param_hint="--id")
    return parsed


def parse_params(value: Optional[str]) -> Optional[Dict[str, Any]]:
    if not value:
        return None
    try:
        params = json.loads(value)
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"invalid JSON: {exc.msg}", param_hint="--params") from exc
    if not isinstance(params, dict):
        raise click.BadParameter("params must be a JSON object", param_hint="--params")
    return params


def remote_command(remote_dir: Optional[str], command: str = DEFAULT_REMOTE_COMMAND) -> str:
    if remote_dir:
        return f"cd {shlex.quote(remote_dir)} && {command}"
    return command


def run_remote(request: str, host: str, *, user: Optional[str] = None, remote_dir: Optional[str] = None,
               timeout: Optional[float] = None) -> str:
    """Pipe ``request`` to the session manager on ``host`` over ssh."""
    target = f"{user}@{host}" if user else host
    command = ["ssh", target, remote_command(remote_dir)]
    LOGGER.debug("Running remote request via %s", " ".join(shlex.quote(part) for part in command))
    try:
        completed = subprocess.run(
            command,
            input=request,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError as exc:
        raise click.ClickException("ssh executable not found") from exc
    except subprocess.TimeoutExpired as exc:
        raise click.ClickException(f"Remote call to {target} timed out") from exc
    if completed.returncode != 0 and not completed.stdout.strip():
        message = completed.stderr.strip() or f"ssh exited with code {completed.returncode}"
        raise click.ClickException(message)
    return completed.stdout


__all__ = [
    "DEFAULT_REMOTE_COMMAND",
    "build_dispatcher",
    "get_dispatcher",
    "parse_params",
    "parse_request_id",
    "remote_command",
    "run_remote",
]
