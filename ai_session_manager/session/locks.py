"""Per-session advisory locks shared across independent process invocations.

A lock is a ``.lock`` directory inside the session directory. ``mkdir`` is the
atomic create-if-absent primitive; the holder records its pid and host in
``lock_info.json`` so later acquirers can reclaim a lock whose process died.
"""
from __future__ import annotations

import json
import os
import shutil
import socket
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from ai_session_manager.core.utils.constants import (
    DEFAULT_LOCK_POLL_INTERVAL,
    DEFAULT_LOCK_STALE_GRACE,
    DEFAULT_LOCK_TIMEOUT,
    LOCK_DIRNAME,
    LOCK_INFO_FILENAME,
)
from ai_session_manager.core.utils.logger import get_logger

from .errors import LockTimeoutError, SessionNotFoundError

LOGGER = get_logger(__name__)


def process_alive(pid: int) -> bool:
    """Return whether ``pid`` denotes a running process on this host."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    else:
        return True


class LockManager:
    """Serialize access to a single session across concurrent invocations."""

    def __init__(
        self,
        root: Path,
        *,
        default_timeout: float = DEFAULT_LOCK_TIMEOUT,
        poll_interval: float = DEFAULT_LOCK_POLL_INTERVAL,
        stale_grace: float = DEFAULT_LOCK_STALE_GRACE,
    ) -> None:
        self.root = Path(root)
        self.default_timeout = default_timeout
        self.poll_interval = poll_interval
        self.stale_grace = stale_grace
        self._host = socket.gethostname()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def lock_path(self, name: str) -> Path:
        return self.root / name / LOCK_DIRNAME

    def acquire(self, name: str, timeout: Optional[float] = None) -> None:
        """Create the lock marker for ``name`` or raise ``LockTimeoutError``."""
        timeout = self.default_timeout if timeout is None else timeout
        lock_dir = self.lock_path(name)
        deadline = time.monotonic() + timeout
        while True:
            try:
                lock_dir.mkdir()
            except FileExistsError:
                pass
            except FileNotFoundError as exc:
                raise SessionNotFoundError(name) from exc
            else:
                self._write_info(lock_dir)
                LOGGER.debug("Acquired lock for session %s", name)
                return

            if self._reclaim_if_abandoned(name, lock_dir):
                continue
            if time.monotonic() >= deadline:
                raise LockTimeoutError(name, timeout)
            time.sleep(self.poll_interval)

    def release(self, name: str) -> None:
        """Remove the lock marker for ``name`` if present."""
        shutil.rmtree(self.lock_path(name), ignore_errors=True)
        LOGGER.debug("Released lock for session %s", name)

    @contextmanager
    def hold(self, name: str, timeout: Optional[float] = None) -> Iterator[None]:
        """Hold the session lock for the duration of the ``with`` block."""
        self.acquire(name, timeout)
        try:
            yield
        finally:
            self.release(name)

    def holder(self, name: str) -> Optional[Dict[str, Any]]:
        """Return the recorded holder info, or ``None`` when unlocked or unreadable."""
        info_path = self.lock_path(name) / LOCK_INFO_FILENAME
        try:
            data = json.loads(info_path.read_text(encoding="utf-8"))
        except (FileNotFoundError, NotADirectoryError, json.JSONDecodeError):
            return None
        return data if isinstance(data, dict) else None

    def is_locked(self, name: str) -> bool:
        """Return whether a live holder currently owns the lock for ``name``."""
        lock_dir = self.lock_path(name)
        if not lock_dir.is_dir():
            return False
        return not self._is_abandoned(lock_dir, self.holder(name))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _write_info(self, lock_dir: Path) -> None:
        info = {
            "pid": os.getpid(),
            "host": self._host,
            "timestamp": time.time(),
        }
        (lock_dir / LOCK_INFO_FILENAME).write_text(json.dumps(info), encoding="utf-8")

    def _reclaim_if_abandoned(self, name: str, lock_dir: Path) -> bool:
        info = self.holder(name)
        if not self._is_abandoned(lock_dir, info):
            return False
        shutil.rmtree(lock_dir, ignore_errors=True)
        LOGGER.warning(
            "Removed stale lock for session %s (pid %s)",
            name,
            (info or {}).get("pid", "unknown"),
        )
        return True

    def _is_abandoned(self, lock_dir: Path, info: Optional[Dict[str, Any]]) -> bool:
        if info is None:
            # Holder may be between mkdir and writing its info file.
            return self._lock_dir_age(lock_dir) > self.stale_grace
        host = info.get("host")
        if host and host != self._host:
            return False
        try:
            pid = int(info.get("pid"))
        except (TypeError, ValueError):
            return self._lock_dir_age(lock_dir) > self.stale_grace
        return not process_alive(pid)

    @staticmethod
    def _lock_dir_age(lock_dir: Path) -> float:
        try:
            return time.time() - lock_dir.stat().st_mtime
        except FileNotFoundError:
            return 0.0


__all__ = ["LockManager", "process_alive"]
