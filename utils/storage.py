"""JSON persistence for sessions and preferences.

Reads never raise on bad stored state: a missing, unreadable or malformed
file is treated as absent and the caller's fallback is returned. Writes to
the preference store log and continue on OS errors so that in-memory work is
never lost to a storage hiccup.
"""
import json
import logging
from pathlib import Path

from pydantic import ValidationError

from models.library import LibrarySession

logger = logging.getLogger(__name__)


class JsonStore:
    """Flat key-value store backed by a single JSON object on disk."""

    def __init__(self, path: Path):
        self.path = path

    def read_json(self, key: str, fallback):
        data = self._load()
        if key not in data:
            return fallback
        return data[key]

    def write_json(self, key: str, value) -> None:
        data = self._load()
        data[key] = value
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not write preference %r to %s: %s", key, self.path, exc)

    def read_flag(self, key: str, fallback: bool) -> bool:
        value = self.read_json(key, fallback)
        if isinstance(value, bool):
            return value
        logger.debug("Ignoring non-boolean value for %r: %r", key, value)
        return fallback

    def write_flag(self, key: str, value: bool) -> None:
        self.write_json(key, bool(value))

    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Preference file %s unreadable, using defaults: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Preference file %s is not a JSON object, using defaults", self.path)
            return {}
        return data


def save_session(session: LibrarySession, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(session.model_dump_json(indent=2), encoding="utf-8")


def load_session(path: Path) -> LibrarySession | None:
    """Load a stored session, or None when it is missing or corrupt."""
    if not path.exists():
        return None
    try:
        return LibrarySession.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, ValueError, ValidationError) as exc:
        logger.warning("Stored session %s is unusable, treating it as absent: %s", path, exc)
        return None
