"""Per-method parameter models for the JSON-RPC surface."""
from __future__ import annotations

from typing import Annotated, Any, Dict, List, Optional

from pydantic import AfterValidator, AliasChoices, BaseModel, ConfigDict, Field, StrictStr
from pydantic_core import PydanticCustomError


def _required_text(value: str) -> str:
    # An empty string is reported the same way as an absent field.
    if not value:
        raise PydanticCustomError("missing", "Field required")
    return value


RequiredText = Annotated[StrictStr, AfterValidator(_required_text)]


class MethodParams(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ConnectionConfig(MethodParams):
    project: Optional[StrictStr] = None
    config: Optional[StrictStr] = None

    def to_dict(self) -> Dict[str, str]:
        return {key: value for key, value in self.model_dump().items() if value}


class SessionMetadata(MethodParams):
    tags: List[StrictStr] = Field(default_factory=list)
    workspace: Optional[StrictStr] = None


class NameParams(MethodParams):
    name: RequiredText


class CreateSessionParams(NameParams):
    role: Optional[StrictStr] = None
    system_prompt: Optional[StrictStr] = Field(
        default=None, validation_alias=AliasChoices("system_prompt", "systemPrompt")
    )
    preset: Optional[StrictStr] = None
    config: Optional[ConnectionConfig] = None
    tags: List[StrictStr] = Field(default_factory=list)
    workspace: Optional[StrictStr] = None
    metadata: Optional[SessionMetadata] = None

    def all_tags(self) -> List[str]:
        extra = self.metadata.tags if self.metadata else []
        return [*self.tags, *extra]

    def resolved_workspace(self) -> Optional[str]:
        if self.workspace:
            return self.workspace
        return self.metadata.workspace if self.metadata else None

    def connection(self) -> Optional[Dict[str, str]]:
        return self.config.to_dict() if self.config else None


class DeleteSessionParams(NameParams):
    lock_timeout: Optional[float] = Field(
        default=None, ge=0, validation_alias=AliasChoices("lock_timeout", "lockTimeout")
    )


class ResetSessionParams(DeleteSessionParams):
    pass


class ListSessionsParams(MethodParams):
    tag: Optional[StrictStr] = None
    min_messages: Optional[int] = Field(
        default=None, ge=0, validation_alias=AliasChoices("min_messages", "minMessages")
    )


class GetStatusParams(NameParams):
    include_context: bool = Field(
        default=False, validation_alias=AliasChoices("include_context", "includeContext")
    )


class _MessageParams(MethodParams):
    message: RequiredText
    timeout: Optional[float] = Field(default=None, gt=0)
    lock_timeout: Optional[float] = Field(
        default=None, ge=0, validation_alias=AliasChoices("lock_timeout", "lockTimeout")
    )


class SendMessageParams(_MessageParams):
    session: RequiredText


class BroadcastMessageParams(_MessageParams):
    sessions: List[StrictStr] = Field(..., min_length=1)


class SystemStatusParams(MethodParams):
    pass


def describe_errors(errors: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Reduce pydantic error dicts to the ``loc``/``msg`` pairs sent to callers."""
    described = []
    for error in errors:
        loc = ".".join(str(part) for part in error.get("loc", ()))
        described.append({"loc": loc, "msg": error.get("msg", "")})
    return described


__all__ = [
    "BroadcastMessageParams",
    "ConnectionConfig",
    "CreateSessionParams",
    "DeleteSessionParams",
    "GetStatusParams",
    "ListSessionsParams",
    "MethodParams",
    "NameParams",
    "ResetSessionParams",
    "SendMessageParams",
    "SessionMetadata",
    "SystemStatusParams",
    "describe_errors",
]
