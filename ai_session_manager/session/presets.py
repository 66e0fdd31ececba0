"""Role presets: default system prompts for common conductor agent types.

Built-in presets can be extended or overridden with a YAML file::

    presets:
      architect:
        system_prompt: "You are a software architect..."
        tags: [design]
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from ai_session_manager.core.utils.logger import get_logger

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class RolePreset:
    name: str
    system_prompt: str
    tags: Tuple[str, ...] = field(default_factory=tuple)


BUILTIN_PRESETS: Dict[str, RolePreset] = {
    preset.name: preset
    for preset in (
        RolePreset(
            "code-reviewer",
            "You are a code reviewer. Focus on readability, maintainability, and adherence to best practices.",
        ),
        RolePreset(
            "test-writer",
            "You are a test writer. Focus on coverage, edge cases, and clear test descriptions.",
        ),
        RolePreset(
            "doc-generator",
            "You are a documentation writer. Focus on clarity, completeness, and examples.",
        ),
        RolePreset(
            "refactor-agent",
            "You are a code refactoring specialist. Focus on improving structure while preserving behavior.",
        ),
        RolePreset(
            "debugger",
            "You are a debugging specialist. Focus on root cause analysis and minimal fixes.",
        ),
        RolePreset(
            "security-auditor",
            "You are a security auditor. Focus on OWASP Top 10, input validation, and secure coding practices.",
        ),
    )
}


def load_presets_yaml(path: Optional[Path] = None) -> Dict[str, RolePreset]:
    """Return built-in presets merged with the entries of ``path`` when it exists."""
    presets = dict(BUILTIN_PRESETS)
    if path is None or not Path(path).is_file():
        return presets
    try:
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        LOGGER.warning("Ignoring unreadable presets file %s: %s", path, exc)
        return presets
    if not isinstance(data, dict):
        LOGGER.warning("Presets file %s must contain a mapping", path)
        return presets

    entries = data.get("presets") or {}
    if not isinstance(entries, dict):
        return presets
    for name, entry in entries.items():
        parsed = _parse_entry(str(name), entry)
        if parsed is not None:
            presets[parsed.name] = parsed
    return presets


def _parse_entry(name: str, entry: Any) -> Optional[RolePreset]:
    if isinstance(entry, str):
        return RolePreset(name, entry)
    if not isinstance(entry, dict) or not entry.get("system_prompt"):
        LOGGER.warning("Preset %s has no system_prompt; skipped", name)
        return None
    tags = entry.get("tags") or ()
    if not isinstance(tags, (list, tuple)):
        tags = (tags,)
    return RolePreset(name, str(entry["system_prompt"]), tuple(str(tag) for tag in tags))


__all__ = ["BUILTIN_PRESETS", "RolePreset", "load_presets_yaml"]
