"""Command line entry points: one JSON-RPC request per invocation."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import click

from ai_session_manager.core.utils.config import load_settings
from ai_session_manager.core.utils.logger import configure_logging, get_logger
from ai_session_manager.rpc import (
    INTERNAL_ERROR,
    ErrorResponse,
    RPCError,
    build_request,
    decode_request,
    decode_response,
    encode_error,
)

from .utils import _build_context, get_dispatcher, parse_params, parse_request_id, run_remote

LOGGER = get_logger(__name__)


@click.group(invoke_without_command=True)
@click.option("--config", "config_path", type=click.Path(path_type=Path), help="Path to config file.")
@click.option("--verbose", is_flag=True, help="Enable verbose logging output (stderr).")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """Manage persistent AI conversation sessions over JSON-RPC 2.0.

    Without a sub-command a single request is read from stdin and the
    response is written to stdout.
    """
    try:
        settings = load_settings(config_path)
    except (OSError, ValueError) as exc:
        _reject_configuration(ctx, exc)
        return
    if verbose:
        settings.log_level = "DEBUG"
    configure_logging(settings.log_level, structured=settings.structured_logging)
    ctx.obj = _build_context(settings)

    if ctx.invoked_subcommand is None:
        ctx.invoke(serve)


def _request_id_of(raw: bytes) -> Any:
    try:
        return decode_request(raw).id
    except RPCError as exc:
        return exc.request_id


def _reject_configuration(ctx: click.Context, exc: Exception) -> None:
    """Report unusable settings as a JSON-RPC error when a request is expected on stdin."""
    if ctx.invoked_subcommand not in (None, "serve"):
        raise click.ClickException(f"Invalid configuration: {exc}") from exc
    configure_logging()
    LOGGER.error("Invalid configuration: %s", exc)
    request_id = _request_id_of(click.get_binary_stream("stdin").read())
    click.echo(encode_error(request_id, INTERNAL_ERROR, f"Internal error: invalid configuration: {exc}"))
    ctx.exit(0)


@cli.command()
@click.pass_context
def serve(ctx: click.Context) -> None:
    """Answer the JSON-RPC request on stdin with one response on stdout."""
    try:
        raw = click.get_binary_stream("stdin").read()
        response = get_dispatcher(ctx).handle(raw)
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Request handling failed before dispatch")
        response = encode_error(None, INTERNAL_ERROR, f"Internal error: {exc}")
    click.echo(response)


@cli.command()
@click.argument("method")
@click.option("--params", "params_json", help="Method parameters as a JSON object.")
@click.option("--id", "request_id", help="Request id (JSON scalar; defaults to 1).")
@click.option("--host", help="Run the request on a remote host over ssh.")
@click.option("--user", help="Remote user for --host.")
@click.option("--remote-dir", help="Directory to change into on the remote host.")
@click.option("--ssh-timeout", type=float, default=None, help="Seconds to wait for the remote call.")
@click.pass_context
def call(
    ctx: click.Context,
    method: str,
    params_json: Optional[str],
    request_id: Optional[str],
    host: Optional[str],
    user: Optional[str],
    remote_dir: Optional[str],
    ssh_timeout: Optional[float],
) -> None:
    """Send METHOD as a JSON-RPC request and pretty-print the response."""
    request = build_request(method, parse_params(params_json), parse_request_id(request_id))
    if host:
        raw = run_remote(request, host, user=user, remote_dir=remote_dir, timeout=ssh_timeout)
    else:
        raw = get_dispatcher(ctx).handle(request)

    try:
        response = decode_response(raw)
    except Exception as exc:  # noqa: BLE001
        raise click.ClickException(f"Malformed response: {exc}") from exc

    click.echo(json.dumps(response.model_dump(), indent=2, ensure_ascii=False))
    if isinstance(response, ErrorResponse):
        ctx.exit(1)


def main() -> None:
    cli(prog_name="ai-session-manager")


if __name__ == "__main__":  # pragma: no cover
    main()
