import pytest

from utils.export_naming import (
    derive_single_export_name,
    derive_split_export_name,
    strip_file_extension,
)


@pytest.mark.parametrize(
    ("file_name", "expected"),
    [
        ("shot.png", "shot"),
        ("archive.tar.gz", "archive.tar"),
        (".hidden", ".hidden"),
        ("noext", "noext"),
        ("  padded.png  ", "padded"),
        ("", ""),
    ],
)
def test_strip_file_extension(file_name, expected):
    assert strip_file_extension(file_name) == expected


def test_single_name_trims_trailing_separators():
    assert derive_single_export_name("settings_-.png") == "settings"
    assert derive_single_export_name(None) is None
    assert derive_single_export_name("---.png") is None


class TestSplitName:
    def test_common_prefix(self):
        assert derive_split_export_name("settings-light.png", "settings-dark.png") == "settings"

    def test_prefix_with_space_separator(self):
        assert derive_split_export_name("Home screen light.png", "Home screen dark.png") == "Home screen"

    def test_nothing_shared_uses_first(self):
        assert derive_split_export_name("alpha.png", "beta.png") == "alpha"

    def test_one_missing(self):
        assert derive_split_export_name(None, "dark.png") == "dark"
        assert derive_split_export_name("light.png", "") == "light"

    def test_both_missing(self):
        assert derive_split_export_name(None, None) is None
