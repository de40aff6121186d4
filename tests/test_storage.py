"""Tests for JSON persistence and user preferences."""
import json

import pytest

from models.library import LibrarySession
from models.preferences import (
    EXPORT_FORMATS_KEY,
    EXPORT_LEAVE_AFTER_KEY,
    SKIP_RESET_CONFIRMATION_KEY,
    UserPreferences,
    sanitize_export_formats,
)
from utils.storage import JsonStore, load_session, save_session


@pytest.fixture
def store(tmp_path) -> JsonStore:
    return JsonStore(tmp_path / ".cache" / "preferences.json")


# ---------------------------------------------------------------------------
# JsonStore
# ---------------------------------------------------------------------------

class TestJsonStore:
    def test_missing_file_returns_fallback(self, store):
        assert store.read_json("anything", "fallback") == "fallback"

    def test_write_then_read(self, store):
        store.write_json("formats", ["png", "jpg"])
        assert store.read_json("formats", None) == ["png", "jpg"]
        assert store.path.exists()

    def test_write_keeps_other_keys(self, store):
        store.write_json("a", 1)
        store.write_json("b", 2)
        assert json.loads(store.path.read_text()) == {"a": 1, "b": 2}

    def test_malformed_file_returns_fallback(self, store, caplog):
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{broken", encoding="utf-8")
        with caplog.at_level("WARNING"):
            assert store.read_json("a", 42) == 42
        assert "unreadable" in caplog.text

    def test_non_object_file_returns_fallback(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text("[1, 2, 3]", encoding="utf-8")
        assert store.read_json("a", None) is None

    def test_malformed_file_is_replaced_on_write(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{broken", encoding="utf-8")
        store.write_flag("flag", True)
        assert store.read_flag("flag", False) is True

    def test_flag_rejects_non_bool(self, store):
        store.write_json("flag", "yes")
        assert store.read_flag("flag", False) is False
        store.write_json("flag", 1)
        assert store.read_flag("flag", True) is True

    def test_write_failure_is_logged(self, tmp_path, caplog):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        store = JsonStore(blocker / "preferences.json")
        with caplog.at_level("WARNING"):
            store.write_json("a", 1)
        assert "Could not write preference" in caplog.text


# ---------------------------------------------------------------------------
# Session files
# ---------------------------------------------------------------------------

class TestSessionFiles:
    def test_round_trip(self, tmp_path):
        path = tmp_path / ".cache" / "session.json"
        save_session(LibrarySession(), path)
        assert load_session(path) == LibrarySession()

    def test_missing_is_none(self, tmp_path):
        assert load_session(tmp_path / "session.json") is None

    def test_invalid_partition_is_none(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text(json.dumps({"unmatched_image_ids": ["ghost"]}), encoding="utf-8")
        assert load_session(path) is None


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------

class TestPreferences:
    def test_defaults_when_empty(self, store):
        prefs = UserPreferences.from_store(store)
        assert prefs.export_formats == ["png"]
        assert prefs.leave_after_export is True
        assert prefs.skip_reset_confirmation is False

    def test_save_and_reload(self, store):
        UserPreferences(
            export_formats=["webp", "png"], leave_after_export=False, skip_reset_confirmation=True
        ).save(store)
        prefs = UserPreferences.from_store(store)
        assert prefs.export_formats == ["webp", "png"]
        assert prefs.leave_after_export is False
        assert prefs.skip_reset_confirmation is True

    def test_stored_keys(self, store):
        UserPreferences().save(store)
        data = json.loads(store.path.read_text())
        assert set(data) == {EXPORT_FORMATS_KEY, EXPORT_LEAVE_AFTER_KEY, SKIP_RESET_CONFIRMATION_KEY}

    def test_wrong_typed_values_fall_back_per_key(self, store):
        store.write_json(EXPORT_FORMATS_KEY, "png")
        store.write_json(EXPORT_LEAVE_AFTER_KEY, "no")
        store.write_flag(SKIP_RESET_CONFIRMATION_KEY, True)
        prefs = UserPreferences.from_store(store)
        assert prefs.export_formats == ["png"]
        assert prefs.leave_after_export is True
        assert prefs.skip_reset_confirmation is True


class TestSanitizeExportFormats:
    def test_filters_unknown(self):
        assert sanitize_export_formats(["jpg", "gif", 3, "png"], ["png"]) == ["jpg", "png"]

    def test_deduplicates_in_order(self):
        assert sanitize_export_formats(["webp", "png", "webp"], ["png"]) == ["webp", "png"]

    @pytest.mark.parametrize("raw", [None, [], "png", {"png": True}, ["gif"]])
    def test_falls_back_to_default(self, raw):
        assert sanitize_export_formats(raw, ["png"]) == ["png"]
