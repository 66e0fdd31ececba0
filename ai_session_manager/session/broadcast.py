"""Fan one message out to several sessions and aggregate the outcomes."""
from __future__ import annotations

import contextvars
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Sequence

from ai_session_manager.core.utils.constants import DEFAULT_BROADCAST_MAX_WORKERS
from ai_session_manager.core.utils.logger import get_logger

from .manager import SessionService

LOGGER = get_logger(__name__)


class BroadcastCoordinator:
    """Apply ``send_message`` to many sessions concurrently.

    Every leg runs the in-process ``SessionService.send_message`` on a worker
    thread; per-session locks still serialise legs that target the same name.
    There is no overall deadline: the call returns once the slowest leg has
    finished or hit its own lock/execution timeout.
    """

    def __init__(self, service: SessionService, *, max_workers: int = DEFAULT_BROADCAST_MAX_WORKERS) -> None:
        self.service = service
        self.max_workers = max(1, max_workers)

    def broadcast(
        self,
        sessions: Sequence[str],
        message: str,
        *,
        timeout: Optional[float] = None,
        lock_timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        results: List[Optional[Dict[str, Any]]] = [None] * len(sessions)
        pending: Dict[int, str] = {}

        for index, name in enumerate(sessions):
            if self.service.store.exists(name):
                pending[index] = name
            else:
                results[index] = _failure(name, "Session not found")

        if pending:
            with ThreadPoolExecutor(max_workers=min(len(pending), self.max_workers)) as executor:
                # One context copy per leg: a copy cannot be entered by two threads at once.
                futures: Dict[int, Future] = {
                    index: executor.submit(
                        contextvars.copy_context().run,
                        self.service.send_message,
                        name,
                        message,
                        timeout=timeout,
                        lock_timeout=lock_timeout,
                    )
                    for index, name in pending.items()
                }
                for index, future in futures.items():
                    results[index] = self._collect(pending[index], future)

        entries = [entry for entry in results if entry is not None]
        successful = sum(1 for entry in entries if entry["success"])
        failed = len(entries) - successful
        return {
            "results": entries,
            "summary": {
                "total": successful + failed,
                "successful": successful,
                "failed": failed,
            },
        }

    @staticmethod
    def _collect(name: str, future: Future) -> Dict[str, Any]:
        try:
            reply = future.result()
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Broadcast leg for session %s failed: %s", name, exc)
            return _failure(name, str(exc))
        entry = reply.to_dict()
        entry["success"] = True
        return entry


def _failure(name: str, error: str) -> Dict[str, Any]:
    return {"session": name, "success": False, "error": error}


__all__ = ["BroadcastCoordinator"]
