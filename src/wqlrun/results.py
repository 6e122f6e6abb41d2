from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable

from .errors import IoError
from .inventory.models import Agent, Group


def _safe_component(name: str) -> str:
    """Make an inventory-supplied name usable as a single path component."""
    for ch in (" ", "/", "\\", "\0"):
        name = name.replace(ch, "_")
    if name.startswith(".."):
        name = "_" + name[2:]
    if name in ("", "."):
        return "_"
    return name


class ResultWriter:
    """Writes query results as ``<output>/<group>/<query>_<agent>_<epoch>.json``."""

    def __init__(self, output_dir: Path, clock: Callable[[], float] = time.time):
        self.output_dir = Path(output_dir)
        self.clock = clock

    def group_dir(self, group: Group) -> Path:
        d = self.output_dir / _safe_component(group.name)
        try:
            d.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise IoError(f"Failed to create result directory {d}: {e}") from e
        return d

    def write(self, group: Group, query_name: str, agent: Agent, data: str) -> Path:
        out = self.group_dir(group) / f"{query_name}_{_safe_component(agent.name)}_{int(self.clock())}.json"
        try:
            out.write_text(data, encoding="utf-8")
        except OSError as e:
            raise IoError(f"Failed to write query result {out}: {e}") from e
        logging.info("Query result saved to: %s", out)
        return out


__all__ = ["ResultWriter"]
