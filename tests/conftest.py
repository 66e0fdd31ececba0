from __future__ import annotations

import json
import logging
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

from ai_session_manager.core.utils.config import Settings
from ai_session_manager.providers.completion.base import CompletionResult
from ai_session_manager.rpc import MethodDispatcher, build_request
from ai_session_manager.session import SessionService
from ai_session_manager.system import SystemStatusProvider


class StubRunner:
    """In-process completion primitive that records every prompt it receives."""

    def __init__(
        self,
        reply: Optional[Callable[[str], str]] = None,
        *,
        exit_code: int = 0,
        delay: float = 0.0,
        error: Optional[BaseException] = None,
    ) -> None:
        self.reply = reply or (lambda prompt: "hello")
        self.exit_code = exit_code
        self.delay = delay
        self.error = error
        self.calls: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def invoke(self, prompt, *, timeout, connection, system_prompt=None):
        with self._lock:
            self.calls.append(
                {
                    "prompt": prompt,
                    "timeout": timeout,
                    "connection": connection,
                    "system_prompt": system_prompt,
                }
            )
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return CompletionResult(output=self.reply(prompt), exit_code=self.exit_code)


@pytest.fixture(autouse=True)
def _restore_root_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        sessions_dir=tmp_path / "sessions",
        lock_timeout=2.0,
        lock_poll_interval=0.01,
        secret_provider="env",
        probe_backend=False,
        completion_command=("ai-session-manager-missing-cli",),
        presets_file=tmp_path / "presets.yaml",
    )


@pytest.fixture
def runner() -> StubRunner:
    return StubRunner()


@pytest.fixture
def service(settings: Settings, runner: StubRunner) -> SessionService:
    settings.ensure_sessions_dir()
    return SessionService.from_settings(settings, runner)


@pytest.fixture
def dispatcher(settings: Settings, service: SessionService) -> MethodDispatcher:
    return MethodDispatcher(service, SystemStatusProvider(settings, service))


@pytest.fixture
def rpc(dispatcher: MethodDispatcher) -> Callable[..., Dict[str, Any]]:
    def _call(method: str, params: Optional[Dict[str, Any]] = None, request_id: Any = 1) -> Dict[str, Any]:
        return json.loads(dispatcher.handle(build_request(method, params, request_id)))

    return _call
