"""Tool catalogue loaded from ``config/tools.yaml``.

The YAML file carries what the agent sees in ``tools/list``: each tool's
Dutch description and its tags.  Input schemas live with the handlers in
``hypotheek_mcp.tools``; the registry only checks that every entry names
one of the mortgage tools this server implements.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

KNOWN_TOOLS: tuple[str, ...] = (
    "bereken_hypotheek_starter",
    "bereken_hypotheek_doorstromer",
    "bereken_hypotheek_uitgebreid",
    "opzet_hypotheek_starter",
    "opzet_hypotheek_doorstromer",
    "opzet_hypotheek_uitgebreid",
    "haal_actuele_rentes_op",
)


@dataclass(frozen=True)
class ToolDefinition:
    """One ``tools:`` entry: name, agent-facing description and tags."""

    name: str
    description: str
    tags: list[str] = field(default_factory=list)


# ── YAML parsing ────────────────────────────────────────────────────────


def _read_entries(path: Path) -> list[dict[str, Any]]:
    if not path.is_file():
        raise FileNotFoundError(f"Tool config not found: {path}")
    try:
        document = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"{path}: not valid YAML ({exc})") from exc

    entries = document.get("tools") if isinstance(document, dict) else None
    if entries is None:
        raise ValueError(f"{path}: expected a mapping with a 'tools' list")
    if not entries:
        raise ValueError(f"{path}: the 'tools' list is empty")
    return entries


def _to_definition(entry: dict[str, Any], path: Path) -> ToolDefinition:
    name = entry.get("name")
    if not name:
        raise ValueError(f"{path}: tool entry without a name")
    if name not in KNOWN_TOOLS:
        raise ValueError(f"{path}: '{name}' is not a mortgage tool (expected one of {', '.join(KNOWN_TOOLS)})")

    description = (entry.get("description") or "").strip()
    if not description:
        raise ValueError(f"{path}: tool '{name}' has no description")
    return ToolDefinition(name=name, description=description, tags=list(entry.get("tags") or []))


# ── Registry ────────────────────────────────────────────────────────────


class ToolRegistry:
    """Tool definitions in config order, keyed by name.

    Raises:
        FileNotFoundError: *config_path* does not exist.
        ValueError: The YAML is malformed, names an unknown tool, repeats
            a tool, or leaves out a name or description.
    """

    def __init__(self, config_path: str | Path) -> None:
        path = Path(config_path)
        self._tools: dict[str, ToolDefinition] = {}
        for entry in _read_entries(path):
            definition = _to_definition(entry, path)
            if definition.name in self._tools:
                raise ValueError(f"{path}: tool '{definition.name}' is defined twice")
            self._tools[definition.name] = definition

    def get(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def list_all(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def with_tag(self, tag: str) -> list[ToolDefinition]:
        """Definitions carrying *tag*, in config order."""
        return [tool for tool in self._tools.values() if tag in tool.tags]

    @property
    def tool_count(self) -> int:
        return len(self._tools)

    def tool_names(self) -> set[str]:
        return set(self._tools)
