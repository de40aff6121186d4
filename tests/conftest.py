import os
from pathlib import Path

import pytest

from settings import Settings


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path_factory):
    """Keep a developer's .env and SPL_* variables out of the tests."""
    for key in list(os.environ):
        if key.startswith("SPL_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path_factory.mktemp("cwd"))


@pytest.fixture
def settings() -> Settings:
    """Settings with defaults only. Nothing is read from or written to disk."""
    return Settings()


@pytest.fixture
def tmp_settings(tmp_path: Path) -> Settings:
    """Settings instance pointing at a fresh temp library for tests that write output.

    Directory layout mirrors a real library:
        screenshots/    source screenshots
        .cache/         session.json, preferences.json (created on write)
    """
    (tmp_path / "screenshots").mkdir()
    return Settings(library_dir=tmp_path, extraction_workers=1)
