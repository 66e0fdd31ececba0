"""Filesystem-backed persistence of session metadata and conversation context."""
from __future__ import annotations

import json
import os
import re
import shutil
import tempfile
import time
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from jsonschema import Draft7Validator

from ai_session_manager.core.utils.constants import (
    COMMIT_DIRNAME,
    CONTEXT_FILENAME,
    METADATA_FILENAME,
    SESSION_NAME_PATTERN,
    SNAPSHOT_ATTEMPTS,
    SNAPSHOT_RETRY_INTERVAL,
)
from ai_session_manager.core.utils.logger import get_logger

from .context import ContextAccumulator
from .errors import InvalidSessionNameError, SessionExistsError, SessionNotFoundError
from .models import ConnectionParams, Session, normalize_tags

LOGGER = get_logger(__name__)

_NAME_RE = re.compile(SESSION_NAME_PATTERN)
_METADATA_SCHEMA = Path(__file__).with_name("schemas") / "session_metadata.schema.json"


def is_valid_session_name(name: Any) -> bool:
    return isinstance(name, str) and bool(_NAME_RE.match(name))


@lru_cache(maxsize=1)
def _metadata_validator() -> Draft7Validator:
    with _METADATA_SCHEMA.open("r", encoding="utf-8") as handle:
        return Draft7Validator(json.load(handle))


def _stage(path: Path, text: str) -> Path:
    """Write ``text`` to a temporary sibling of ``path`` and return its location."""
    fd, temp_name = tempfile.mkstemp(dir=str(path.parent), prefix=".tmp_", suffix=path.suffix, text=True)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
    except Exception:
        try:
            os.unlink(temp_name)
        except OSError:
            pass
        raise
    return Path(temp_name)


def _atomic_write_text(path: Path, text: str) -> None:
    os.replace(_stage(path, text), path)


def _metadata_text(payload: Mapping[str, Any]) -> str:
    return json.dumps(payload, indent=2) + "\n"


def _discard(paths: Sequence[Path]) -> None:
    for path in paths:
        path.unlink(missing_ok=True)


def _file_key(path: Path) -> Optional[Tuple[int, int, int]]:
    try:
        stat = path.stat()
    except (FileNotFoundError, NotADirectoryError):
        return None
    return stat.st_ino, stat.st_mtime_ns, stat.st_size


def _save_pair(session_dir: Path) -> Path:
    """Keep the current metadata/context pair under ``COMMIT_DIRNAME``.

    The copy is assembled in a scratch directory and renamed into place, so
    the saved pair is either complete or absent.
    """
    pending = session_dir / f"{COMMIT_DIRNAME}.tmp"
    shutil.rmtree(pending, ignore_errors=True)
    pending.mkdir()
    for filename in (METADATA_FILENAME, CONTEXT_FILENAME):
        source = session_dir / filename
        target = pending / filename
        if filename == CONTEXT_FILENAME and not source.exists():
            target.write_text("", encoding="utf-8")
            continue
        try:
            os.link(source, target)
        except OSError:
            shutil.copy2(source, target)
    saved = session_dir / COMMIT_DIRNAME
    os.replace(pending, saved)
    return saved


def _restore_pair(session_dir: Path) -> bool:
    saved = session_dir / COMMIT_DIRNAME
    if not saved.is_dir():
        return False
    # Metadata first: a pass cut short here is finished by the next one.
    for filename in (METADATA_FILENAME, CONTEXT_FILENAME):
        if (saved / filename).exists():
            os.replace(saved / filename, session_dir / filename)
    shutil.rmtree(saved)
    return True


def _retire_pair(saved: Path) -> None:
    retired = saved.with_name(f"{COMMIT_DIRNAME}.done")
    shutil.rmtree(retired, ignore_errors=True)
    os.replace(saved, retired)
    shutil.rmtree(retired, ignore_errors=True)


class SessionStore:
    """Durable CRUD over sessions, one directory per session name.

    Mutating operations other than ``create`` are expected to run while the
    caller holds the session lock (see ``LockManager``).
    """

    def __init__(
        self,
        root: Path,
        defaults: ConnectionParams,
        accumulator: Optional[ContextAccumulator] = None,
    ) -> None:
        self.root = Path(root)
        self.defaults = defaults
        self.accumulator = accumulator or ContextAccumulator()

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def session_dir(self, name: str) -> Path:
        if not is_valid_session_name(name):
            raise InvalidSessionNameError(str(name))
        return self.root / name

    def _existing_dir(self, name: str) -> Path:
        # A name outside the charset can never have been created.
        if not is_valid_session_name(name):
            raise SessionNotFoundError(str(name))
        return self.root / name

    def _metadata_path(self, name: str) -> Path:
        return self._existing_dir(name) / METADATA_FILENAME

    def ensure_root(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def exists(self, name: str) -> bool:
        if not is_valid_session_name(name):
            return False
        return (self.root / name).is_dir()

    def create(
        self,
        name: str,
        *,
        role: Optional[str] = None,
        system_prompt: Optional[str] = None,
        connection: Optional[Mapping[str, Any]] = None,
        tags: Optional[Iterable[str]] = None,
        workspace: Optional[str] = None,
    ) -> Session:
        """Persist a new session with an empty context."""
        session_dir = self.session_dir(name)
        self.ensure_root()
        try:
            session_dir.mkdir()
        except FileExistsError as exc:
            raise SessionExistsError(name) from exc

        session = Session(
            name=name,
            connection=ConnectionParams.from_dict(dict(connection or {}), self.defaults),
            role=role,
            system_prompt=system_prompt,
            tags=normalize_tags(tags),
            workspace=workspace,
        )
        session.last_active = session.created_at
        try:
            (session_dir / CONTEXT_FILENAME).write_text("", encoding="utf-8")
            _atomic_write_text(session_dir / METADATA_FILENAME, _metadata_text(session.to_dict()))
        except Exception:
            shutil.rmtree(session_dir, ignore_errors=True)
            raise
        LOGGER.info("Created session %s", name)
        return session

    def get(self, name: str) -> Session:
        """Load a session or raise ``SessionNotFoundError``."""
        return self._load(self._metadata_path(name), name)

    def _load(self, path: Path, name: str) -> Session:
        try:
            with path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (FileNotFoundError, NotADirectoryError) as exc:
            raise SessionNotFoundError(name) from exc
        errors = sorted(_metadata_validator().iter_errors(data), key=lambda exc: [str(part) for part in exc.path])
        if errors:
            raise ValueError(f"Invalid session metadata in {path}: {errors[0].message}")
        data.setdefault("name", name)
        return Session.from_dict(data, self.defaults)

    def list(self, *, tag: Optional[str] = None, min_messages: Optional[int] = None) -> List[Session]:
        """Return sessions matching the filters, sorted by name."""
        if not self.root.is_dir():
            return []
        sessions: List[Session] = []
        for entry in sorted(self.root.iterdir(), key=lambda item: item.name):
            if not entry.is_dir() or not is_valid_session_name(entry.name):
                continue
            try:
                session = self.get(entry.name)
            except SessionNotFoundError:
                continue
            except (ValueError, KeyError) as exc:
                LOGGER.warning("Skipping session %s with unreadable metadata: %s", entry.name, exc)
                continue
            if tag is not None and tag not in session.tags:
                continue
            if min_messages is not None and session.message_count < min_messages:
                continue
            sessions.append(session)
        return sessions

    def delete(self, name: str) -> None:
        """Irreversibly remove every persisted file of the session, lock included."""
        session_dir = self._existing_dir(name)
        if not session_dir.is_dir():
            raise SessionNotFoundError(name)
        shutil.rmtree(session_dir)
        LOGGER.info("Deleted session %s", name)

    # ------------------------------------------------------------------
    # Context
    # ------------------------------------------------------------------

    def read_context(self, name: str) -> str:
        session_dir = self._existing_dir(name)
        if not session_dir.is_dir():
            raise SessionNotFoundError(name)
        try:
            return (session_dir / CONTEXT_FILENAME).read_text(encoding="utf-8")
        except FileNotFoundError:
            return ""

    def snapshot(self, name: str) -> Tuple[Session, str]:
        """Read metadata and context as one consistent pair without the lock.

        A pair is accepted only if no commit started or finished while it was
        read. When a commit stays unfinished, the pair saved before it is the
        one returned, which is also what ``recover`` would restore.
        """
        session_dir = self._existing_dir(name)
        metadata_path = session_dir / METADATA_FILENAME
        saved = session_dir / COMMIT_DIRNAME
        for _ in range(SNAPSHOT_ATTEMPTS):
            before = _file_key(metadata_path)
            if before is None:
                raise SessionNotFoundError(name)
            if not saved.exists():
                session = self.get(name)
                context = self.read_context(name)
                if _file_key(metadata_path) == before and not saved.exists():
                    return session, context
            time.sleep(SNAPSHOT_RETRY_INTERVAL)
        try:
            context = (saved / CONTEXT_FILENAME).read_text(encoding="utf-8")
            return self._load(saved / METADATA_FILENAME, name), context
        except (FileNotFoundError, NotADirectoryError, SessionNotFoundError):
            return self.get(name), self.read_context(name)

    def recover(self, name: str) -> bool:
        """Roll back a commit that was cut short. Requires the session lock."""
        session_dir = self._existing_dir(name)
        for scratch in (f"{COMMIT_DIRNAME}.tmp", f"{COMMIT_DIRNAME}.done"):
            shutil.rmtree(session_dir / scratch, ignore_errors=True)
        for staged in session_dir.glob(".tmp_*"):
            staged.unlink(missing_ok=True)
        if not _restore_pair(session_dir):
            return False
        LOGGER.warning("Rolled back an unfinished commit of session %s", name)
        return True

    def append_turn(self, name: str, user_text: str, assistant_text: str) -> Session:
        """Append one turn and record the activity as a single unit."""
        self.recover(name)
        session = self.get(name)
        context = self.read_context(name)
        session.message_count += 1
        session.touch()
        self._commit(name, session, self.accumulator.render_turn(context, user_text, assistant_text))
        return session

    def clear_context(self, name: str) -> Session:
        """Empty the context and zero the message counter; identity is kept."""
        self.recover(name)
        session = self.get(name)
        session.message_count = 0
        session.touch()
        self._commit(name, session, "")
        return session

    def _commit(self, name: str, session: Session, context: str) -> None:
        """Swap in a new context/metadata pair.

        Both files are staged before anything is swapped, and the current
        pair is saved first. If either swap fails the saved pair is put back;
        after a crash ``recover`` does the same.
        """
        session_dir = self._existing_dir(name)
        context_path = session_dir / CONTEXT_FILENAME
        metadata_path = session_dir / METADATA_FILENAME
        staged = [_stage(context_path, context)]
        try:
            staged.append(_stage(metadata_path, _metadata_text(session.to_dict())))
            saved = _save_pair(session_dir)
        except Exception:
            _discard(staged)
            raise
        try:
            os.replace(staged[0], context_path)
            os.replace(staged[1], metadata_path)
        except Exception:
            _discard(staged)
            _restore_pair(session_dir)
            LOGGER.warning("Commit of session %s failed; previous state restored", name)
            raise
        _retire_pair(saved)


__all__ = ["SessionStore", "is_valid_session_name"]
