"""Core data structures for named conversational sessions."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional


def utc_timestamp() -> str:
    """Return the current UTC time in ISO-8601 second precision."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class ConnectionParams:
    """Identifies which backend configuration the secret provider resolves."""

    project: str
    config: str

    def to_dict(self) -> Dict[str, str]:
        return {"project": self.project, "config": self.config}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], defaults: "ConnectionParams") -> "ConnectionParams":
        data = data or {}
        return cls(
            project=data.get("project") or defaults.project,
            config=data.get("config") or defaults.config,
        )


def normalize_tags(tags: Optional[Iterable[str]]) -> List[str]:
    """Drop blanks and duplicates while keeping first-seen order."""
    seen: List[str] = []
    for tag in tags or ():
        value = str(tag).strip()
        if value and value not in seen:
            seen.append(value)
    return seen


@dataclass
class Session:
    """A named conversation whose metadata lives in ``metadata.json``."""

    name: str
    connection: ConnectionParams
    role: Optional[str] = None
    system_prompt: Optional[str] = None
    created_at: str = field(default_factory=utc_timestamp)
    last_active: str = field(default_factory=utc_timestamp)
    message_count: int = 0
    tags: List[str] = field(default_factory=list)
    workspace: Optional[str] = None

    def touch(self) -> None:
        self.last_active = utc_timestamp()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "role": self.role,
            "system_prompt": self.system_prompt,
            "created_at": self.created_at,
            "last_active": self.last_active,
            "message_count": self.message_count,
            "config": self.connection.to_dict(),
            "metadata": {
                "tags": list(self.tags),
                "workspace": self.workspace,
            },
        }

    def summary(self) -> Dict[str, Any]:
        """Wire representation used by create/list responses."""
        payload = self.to_dict()
        payload.pop("system_prompt")
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any], defaults: ConnectionParams) -> "Session":
        metadata = data.get("metadata") or {}
        now = utc_timestamp()
        return cls(
            name=data["name"],
            connection=ConnectionParams.from_dict(data.get("config"), defaults),
            role=data.get("role"),
            system_prompt=data.get("system_prompt"),
            created_at=data.get("created_at") or now,
            last_active=data.get("last_active") or data.get("created_at") or now,
            message_count=int(data.get("message_count") or 0),
            tags=normalize_tags(metadata.get("tags")),
            workspace=metadata.get("workspace"),
        )


__all__ = ["ConnectionParams", "Session", "normalize_tags", "utc_timestamp"]
