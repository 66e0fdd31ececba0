"""Prompt framing and turn accumulation for the flat text context log."""
from __future__ import annotations

from typing import Optional

from ai_session_manager.core.utils.constants import (
    ASSISTANT_PREFIX,
    CONVERSATION_START_MARKER,
    DEFAULT_CONTEXT_PREVIEW_CHARS,
    HISTORY_HEADER,
    NEW_MESSAGE_LABEL,
    TURN_SEPARATOR,
    USER_PREFIX,
)


class ContextAccumulator:
    """Build outbound prompts from prior turns and append completed turns.

    The context is a plain text log, one role-tagged entry per line group::

        Starting new conversation.
        User: hi
        Assistant: hello
        <blank separator>
    """

    def __init__(self, preview_chars: int = DEFAULT_CONTEXT_PREVIEW_CHARS) -> None:
        self.preview_chars = preview_chars

    @staticmethod
    def has_history(context: str) -> bool:
        return bool(context.strip())

    def build_prompt(self, context: str, message: str) -> str:
        """Return the prompt sent to the completion primitive for ``message``."""
        if not self.has_history(context):
            return message
        history = context.rstrip("\n")
        return f"{HISTORY_HEADER}\n{history}\n\n{TURN_SEPARATOR}\n\n{NEW_MESSAGE_LABEL} {message}"

    def render_turn(self, context: str, user_text: str, assistant_text: str) -> str:
        """Return ``context`` with one completed user/assistant turn appended."""
        if not self.has_history(context):
            context = f"{CONVERSATION_START_MARKER}\n"
        elif not context.endswith("\n"):
            context += "\n"
        return f"{context}{USER_PREFIX}{user_text}\n{ASSISTANT_PREFIX}{assistant_text}\n\n"

    def preview(self, context: str, limit: Optional[int] = None) -> Optional[str]:
        """Return the head of the context, or ``None`` when nothing was recorded."""
        if not context:
            return None
        return context[: limit if limit is not None else self.preview_chars]


__all__ = ["ContextAccumulator"]
