"""File-name helpers for exporting a finished pair."""
import re

_TRAILING_SEPARATORS = re.compile(r"[_\-. ]+$")


def strip_file_extension(file_name: str) -> str:
    trimmed = file_name.strip()
    if not trimmed:
        return ""
    dot = trimmed.rfind(".")
    # A leading dot is a hidden file, not an extension
    if dot <= 0:
        return trimmed
    return trimmed[:dot]


def derive_single_export_name(file_name: str | None) -> str | None:
    if not file_name:
        return None
    base = _trim_trailing_separators(strip_file_extension(file_name))
    return base or None


def derive_split_export_name(first_file_name: str | None, second_file_name: str | None) -> str | None:
    """Common prefix of both stems, e.g. `settings-dark.png` + `settings-light.png` -> `settings`.

    Falls back to the first stem when the names share nothing, and to
    whichever stem exists when only one name is usable.
    """
    first = derive_single_export_name(first_file_name)
    second = derive_single_export_name(second_file_name)

    if not first and not second:
        return None
    if not first:
        return second
    if not second:
        return first

    index = 0
    for a, b in zip(first, second):
        if a != b:
            break
        index += 1

    if index == 0:
        return first
    return _trim_trailing_separators(first[:index]) or first


def _trim_trailing_separators(value: str) -> str:
    return _TRAILING_SEPARATORS.sub("", value).strip()
