"""Host, session and backend health snapshot for ``get_system_status``."""
from __future__ import annotations

import os
import socket
import subprocess
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import psutil
import requests

from ai_session_manager.core.utils.config import Settings
from ai_session_manager.core.utils.constants import REACHABLE_STATUS_CODES, VERSION_PROBE_TIMEOUT
from ai_session_manager.core.utils.logger import get_logger
from ai_session_manager.session.manager import SessionService
from ai_session_manager.session.models import utc_timestamp

LOGGER = get_logger(__name__)

NOT_INSTALLED = "not installed"


class SystemStatusProvider:
    """Collect a best-effort status snapshot.

    Every probe degrades to a neutral value instead of raising, so a broken
    backend or an unreadable ``/proc`` never fails the whole call.
    """

    def __init__(self, settings: Settings, service: SessionService) -> None:
        self.settings = settings
        self.service = service

    def snapshot(self) -> Dict[str, Any]:
        return {
            "system": {
                "hostname": self._hostname(),
                "load_average": self._load_average(),
                "uptime": self._uptime(),
                "timestamp": utc_timestamp(),
            },
            "sessions": self._session_counts(),
            "resources": {
                "memory_percent": self._memory_percent(),
                "disk_percent": self._disk_percent(),
            },
            "backend": {
                "name": self.settings.backend_name,
                "version": self.backend_version(),
                "api_reachable": self.api_reachable(),
            },
        }

    # ------------------------------------------------------------------
    # Backend probes
    # ------------------------------------------------------------------

    def backend_version(self) -> str:
        executable = self.settings.completion_command[0]
        try:
            completed = subprocess.run(
                [executable, "--version"],
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                timeout=VERSION_PROBE_TIMEOUT,
                check=False,
            )
        except FileNotFoundError:
            return NOT_INSTALLED
        except (OSError, subprocess.SubprocessError) as exc:
            LOGGER.debug("Version probe for %s failed: %s", executable, exc)
            return "installed"
        lines = completed.stdout.strip().splitlines()
        return lines[0] if lines else "installed"

    def api_reachable(self) -> Optional[bool]:
        url = self.settings.backend_url
        if not self.settings.probe_backend or not url:
            return None
        try:
            response = requests.get(url, timeout=self.settings.probe_timeout)
        except requests.RequestException as exc:
            LOGGER.debug("Backend probe to %s failed: %s", url, exc)
            return False
        return response.status_code in REACHABLE_STATUS_CODES

    # ------------------------------------------------------------------
    # Host probes
    # ------------------------------------------------------------------

    def _session_counts(self) -> Dict[str, int]:
        try:
            return self.service.session_counts()
        except OSError as exc:
            LOGGER.warning("Unable to count sessions: %s", exc)
            return {"total": 0, "active": 0, "idle": 0}

    @staticmethod
    def _hostname() -> str:
        try:
            return socket.gethostname() or "unknown"
        except OSError:
            return "unknown"

    @staticmethod
    def _load_average() -> List[float]:
        try:
            return [round(value, 2) for value in os.getloadavg()]
        except (AttributeError, OSError):
            return [0.0, 0.0, 0.0]

    @staticmethod
    def _uptime() -> float:
        try:
            return round(time.time() - psutil.boot_time(), 2)
        except Exception:  # noqa: BLE001
            return 0.0

    @staticmethod
    def _memory_percent() -> float:
        try:
            return float(psutil.virtual_memory().percent)
        except Exception:  # noqa: BLE001
            return 0.0

    def _disk_percent(self) -> float:
        target = self.settings.sessions_dir if self.settings.sessions_dir.exists() else Path.home()
        try:
            return float(psutil.disk_usage(str(target)).percent)
        except Exception:  # noqa: BLE001
            return 0.0


__all__ = ["NOT_INSTALLED", "SystemStatusProvider"]
