"""
Session persistence across process runs.

A single continuity record is kept under one key of a small key-value
backend. Loading never fails: a missing, unreadable, malformed, expired or
foreign record all read as "no session". Saving does fail loudly.

Concurrent processes sharing one backend location are not synchronized;
a single client process per location is assumed.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Callable, Dict, Optional

from pydantic import ValidationError

from ..errors import IoError
from .models import Session

DEFAULT_SESSION_KEY = "session.json"
DEFAULT_TTL_SECONDS = 3600


class SessionBackend:
    """Minimal key-value persistence used by ``SessionStore``."""

    def read(self, key: str) -> Optional[str]:  # pragma: no cover - interface
        """Return the stored text, or None if the key is absent."""
        raise NotImplementedError

    def write(self, key: str, value: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def delete(self, key: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError


class FileSessionBackend(SessionBackend):
    """Stores each key as a file under ``base_dir``."""

    def __init__(self, base_dir: Path = Path(".")):
        self.base_dir = Path(base_dir)

    def _path(self, key: str) -> Path:
        return self.base_dir / key

    def read(self, key: str) -> Optional[str]:
        p = self._path(key)
        if not p.exists():
            return None
        return p.read_text(encoding="utf-8")

    def write(self, key: str, value: str) -> None:
        p = self._path(key)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(value, encoding="utf-8")

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class MemorySessionBackend(SessionBackend):
    """In-process backend for tests and one-off runs."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def read(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def write(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class SessionStore:
    """
    Loads and saves the persisted session.

    Args:
        backend: Where the record lives
        key: Backend key of the record
        ttl_seconds: Sessions this old (or older) are discarded
        clock: Returns current epoch seconds
    """

    def __init__(
        self,
        backend: SessionBackend,
        key: str = DEFAULT_SESSION_KEY,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.backend = backend
        self.key = key
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    @classmethod
    def from_path(cls, path: Path, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> "SessionStore":
        path = Path(path)
        return cls(FileSessionBackend(path.parent), key=path.name, ttl_seconds=ttl_seconds)

    def load(self, client_id: str) -> Optional[Session]:
        """Return the persisted session if it is still valid for ``client_id``."""
        try:
            raw = self.backend.read(self.key)
        except (OSError, UnicodeDecodeError) as e:
            logging.debug("Session record %s unreadable: %s", self.key, e)
            return None
        if raw is None:
            return None
        try:
            session = Session.model_validate_json(raw)
        except ValidationError as e:
            logging.debug("Discarding malformed session record %s: %s", self.key, e.error_count())
            return None
        age = session.age(int(self.clock()))
        if age < 0 or age >= self.ttl_seconds:
            logging.debug("Discarding session %s (age %ss)", session.session_id, age)
            return None
        if session.client_id != client_id:
            logging.debug("Discarding session %s owned by another client", session.session_id)
            return None
        logging.info("Loaded existing session: %s", session.session_id)
        return session

    def save(self, session: Session) -> None:
        """Overwrite the persisted record; I/O failures raise ``IoError``."""
        content = json.dumps(session.model_dump(), indent=2)
        try:
            self.backend.write(self.key, content)
        except OSError as e:
            raise IoError(f"Failed to save session {session.session_id}: {e}") from e
        logging.info("Session saved: %s", session.session_id)

    def clear(self) -> None:
        try:
            self.backend.delete(self.key)
        except OSError as e:
            raise IoError(f"Failed to remove session record {self.key}: {e}") from e


__all__ = [
    "SessionBackend",
    "FileSessionBackend",
    "MemorySessionBackend",
    "SessionStore",
    "DEFAULT_SESSION_KEY",
    "DEFAULT_TTL_SECONDS",
]
