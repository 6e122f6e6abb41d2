from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .errors import ConfigError, IoError
from .inventory.models import Agent

PLACEHOLDER_AGENT_ID = "{{agent_id}}"
PLACEHOLDER_AGENT_NAME = "{{agent_name}}"


@dataclass(frozen=True)
class QueryTemplate:
    name: str  # file stem, used in result file names
    path: Path
    text: str

    def render(self, agent: Agent) -> str:
        return self.text.replace(PLACEHOLDER_AGENT_ID, agent.id).replace(PLACEHOLDER_AGENT_NAME, agent.name)


def load_query_templates(directory: Path) -> list[QueryTemplate]:
    """Load every ``*.json`` query template in ``directory``, sorted by file name.

    The template text is opaque; it is only read here and rendered per agent.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise IoError(f"Query directory not found: {directory}")
    templates = []
    for p in sorted(directory.glob("*.json")):
        if not p.is_file():
            continue
        try:
            text = p.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise IoError(f"Failed to read query template {p}: {e}") from e
        templates.append(QueryTemplate(name=p.stem, path=p, text=text))
    if not templates:
        raise ConfigError(f"No WQL query files found in {directory} directory")
    return templates


__all__ = ["QueryTemplate", "load_query_templates", "PLACEHOLDER_AGENT_ID", "PLACEHOLDER_AGENT_NAME"]
