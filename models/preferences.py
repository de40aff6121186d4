"""User preferences persisted next to the session.

Stored values come from a loosely-typed JSON file that other tools (or older
versions) may have written. Each key has a fixed schema; wrong-typed or
unknown values are dropped and the documented default is used instead.
"""
import logging
from typing import Literal, get_args

from pydantic import BaseModel, Field

from utils.storage import JsonStore

logger = logging.getLogger(__name__)

ExportFormat = Literal["png", "webp", "jpg"]

EXPORT_FORMATS_KEY = "export-formats"
EXPORT_LEAVE_AFTER_KEY = "export-leave-after"
SKIP_RESET_CONFIRMATION_KEY = "skip-reset-confirmation"

_VALID_FORMATS: tuple[str, ...] = get_args(ExportFormat)


class UserPreferences(BaseModel):
    export_formats: list[ExportFormat] = Field(default_factory=lambda: ["png"])
    leave_after_export: bool = True
    skip_reset_confirmation: bool = False

    @classmethod
    def from_store(cls, store: JsonStore) -> "UserPreferences":
        """Read every key from `store`, falling back to defaults per key."""
        defaults = cls()
        return cls(
            export_formats=sanitize_export_formats(
                store.read_json(EXPORT_FORMATS_KEY, None), defaults.export_formats
            ),
            leave_after_export=store.read_flag(EXPORT_LEAVE_AFTER_KEY, defaults.leave_after_export),
            skip_reset_confirmation=store.read_flag(
                SKIP_RESET_CONFIRMATION_KEY, defaults.skip_reset_confirmation
            ),
        )

    def save(self, store: JsonStore) -> None:
        store.write_json(EXPORT_FORMATS_KEY, list(self.export_formats))
        store.write_flag(EXPORT_LEAVE_AFTER_KEY, self.leave_after_export)
        store.write_flag(SKIP_RESET_CONFIRMATION_KEY, self.skip_reset_confirmation)


def sanitize_export_formats(raw: object, default: list[str]) -> list[str]:
    """Keep only known format strings; an empty or non-list value yields `default`."""
    if not isinstance(raw, list) or not raw:
        return list(default)
    valid = [value for value in raw if isinstance(value, str) and value in _VALID_FORMATS]
    if len(valid) != len(raw):
        logger.debug("Dropped %d unknown export format(s)", len(raw) - len(valid))
    # De-duplicate while keeping the stored order
    return list(dict.fromkeys(valid)) or list(default)
