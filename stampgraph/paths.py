"""Path normalisation helpers for portable, forward-slash entry ids."""

from __future__ import annotations

import posixpath
import re
from pathlib import Path, PurePath

_DRIVE_PATTERN = re.compile(r"^([A-Za-z]):")
_SOURCE_SUFFIX = re.compile(r"\.(tsx?|jsx?|vue)$")


def normalize_entry_id(entry_id: str) -> str:
    """Return a forward-slash, dot-free form of ``entry_id``.

    The result is idempotent: normalising an already-normalised id returns it
    unchanged. Drive letters are lowercased so ids match across input styles.
    """
    text = entry_id.replace("\\", "/")
    if not text:
        return text
    normalized = posixpath.normpath(text)
    normalized = _DRIVE_PATTERN.sub(lambda match: f"{match.group(1).lower()}:", normalized)
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


def relative_entry_id(path: Path | str, root: Path | str) -> str:
    """Return the project-relative entry id for ``path`` under ``root``."""
    path_obj = Path(path)
    root_obj = Path(root)
    try:
        relative: PurePath = path_obj.resolve().relative_to(root_obj.resolve())
    except ValueError:
        try:
            relative = path_obj.relative_to(root_obj)
        except ValueError:
            return normalize_entry_id(path_obj.as_posix())
    return normalize_entry_id(relative.as_posix())


def folder_of(entry_id: str) -> str:
    """Return the folder part of an entry id, ``.`` for top-level files."""
    normalized = normalize_entry_id(entry_id)
    folder = posixpath.dirname(normalized)
    return folder or "."


def file_name(entry_id: str) -> str:
    return posixpath.basename(normalize_entry_id(entry_id))


def stem_of(entry_id: str) -> str:
    """Return the file name without its source suffix (``Button`` for ``ui/Button.tsx``)."""
    return _SOURCE_SUFFIX.sub("", file_name(entry_id))


def display_path(path: Path | str) -> str:
    return str(path).replace("\\", "/")


__all__ = [
    "display_path",
    "file_name",
    "folder_of",
    "normalize_entry_id",
    "relative_entry_id",
    "stem_of",
]
