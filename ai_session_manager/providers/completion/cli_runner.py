"""Run the language-model CLI as a subprocess with hard timeout enforcement."""
from __future__ import annotations

import os
import signal
import subprocess
import time
from typing import TYPE_CHECKING, List, Optional, Sequence

from ai_session_manager.core.utils.constants import (
    DEFAULT_COMPLETION_COMMAND,
    DEFAULT_SYSTEM_PROMPT_FLAG,
    MISSING_EXECUTABLE_EXIT_CODE,
)
from ai_session_manager.core.utils.logger import get_logger

from .base import CompletionResult, CompletionTimeoutError, SecretProvider
from .secrets import EnvSecretProvider

if TYPE_CHECKING:
    from ai_session_manager.session.models import ConnectionParams

LOGGER = get_logger(__name__)


class CLICompletionRunner:
    """Invoke ``command + [prompt]`` with the secret provider's environment.

    The child runs in its own process group so a timeout kills the CLI and
    anything it spawned instead of leaving orphans holding resources.
    """

    def __init__(
        self,
        command: Sequence[str] = DEFAULT_COMPLETION_COMMAND,
        *,
        secrets: Optional[SecretProvider] = None,
        system_prompt_flag: Optional[str] = DEFAULT_SYSTEM_PROMPT_FLAG,
    ) -> None:
        if not command:
            raise ValueError("Completion command must not be empty.")
        self.command = tuple(command)
        self.secrets = secrets or EnvSecretProvider()
        self.system_prompt_flag = system_prompt_flag

    def build_command(self, prompt: str, system_prompt: Optional[str] = None) -> List[str]:
        argv = list(self.command)
        if system_prompt and self.system_prompt_flag:
            argv.extend([self.system_prompt_flag, system_prompt])
        argv.append(prompt)
        return argv

    def invoke(
        self,
        prompt: str,
        *,
        timeout: float,
        connection: ConnectionParams,
        system_prompt: Optional[str] = None,
    ) -> CompletionResult:
        env = os.environ.copy()
        env.update(self.secrets.resolve(connection))
        argv = self.build_command(prompt, system_prompt)

        LOGGER.debug("Running completion command %s (timeout %ss)", argv[0], timeout)
        start = time.perf_counter()
        try:
            process = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                env=env,
                text=True,
                start_new_session=True,
            )
        except FileNotFoundError:
            LOGGER.error("Completion executable not found: %s", argv[0])
            return CompletionResult(
                output=f"{argv[0]}: command not found",
                exit_code=MISSING_EXECUTABLE_EXIT_CODE,
            )

        try:
            output, _ = process.communicate(timeout=timeout)
        except subprocess.TimeoutExpired as exc:
            self._terminate(process)
            LOGGER.error("Completion command timed out after %ss", timeout)
            raise CompletionTimeoutError(timeout) from exc

        duration_ms = int((time.perf_counter() - start) * 1000)
        return CompletionResult(
            output=(output or "").rstrip("\n"),
            exit_code=process.returncode,
            duration_ms=duration_ms,
        )

    @staticmethod
    def _terminate(process: subprocess.Popen) -> None:
        try:
            if hasattr(os, "killpg"):
                os.killpg(process.pid, signal.SIGKILL)
            else:  # pragma: no cover - Windows
                process.kill()
        except ProcessLookupError:
            pass
        process.communicate()


__all__ = ["CLICompletionRunner"]
