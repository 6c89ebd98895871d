"""Exception hierarchy for stampgraph operations."""

from __future__ import annotations

import errno
from pathlib import Path
from typing import Iterable, Sequence


class StampGraphError(RuntimeError):
    """Base class for all stampgraph failures."""


class ParseError(StampGraphError):
    """A single source file could not be parsed; the file is skipped."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Failed to parse {path}: {reason}")
        self.path = path
        self.reason = reason


class ContractBuildError(StampGraphError):
    """A contract could not be derived from extracted facts."""

    def __init__(self, entry_id: str, reason: str) -> None:
        super().__init__(f"Failed to build contract for {entry_id}: {reason}")
        self.entry_id = entry_id
        self.reason = reason


class EntryNotFoundError(StampGraphError):
    """The requested bundle entry is not part of the dependency graph."""

    def __init__(self, entry_id: str, suggestions: Sequence[str] = ()) -> None:
        message = f"Component not found: {entry_id}"
        if suggestions:
            listed = "\n".join(f"  - {item}" for item in suggestions)
            message = f"{message}\nAvailable components:\n{listed}"
        super().__init__(message)
        self.entry_id = entry_id
        self.suggestions = list(suggestions)


class MissingDependencyError(StampGraphError):
    """Raised in strict mode when a bundle references unresolved dependencies."""

    def __init__(self, entry_id: str, missing: Iterable[str]) -> None:
        names = sorted(set(missing))
        super().__init__(
            f"Missing dependencies for {entry_id} (strict mode enabled): {', '.join(names)}"
        )
        self.entry_id = entry_id
        self.missing = names


class HashLockError(StampGraphError):
    """The source file changed since its contract was generated."""

    def __init__(self, entry_id: str) -> None:
        super().__init__(
            f"Hash lock validation failed for {entry_id}. "
            "The file has been modified since the contract was generated."
        )
        self.entry_id = entry_id


class ManifestSchemaError(StampGraphError):
    """A loaded index has an unexpected discriminator or schema version."""

    def __init__(self, path: str, field: str, expected: str, actual: object) -> None:
        super().__init__(
            f"Invalid index {path}: expected {field} {expected}, got {actual!r}"
        )
        self.path = path
        self.field = field
        self.expected = expected
        self.actual = actual


class ArtifactIOError(StampGraphError):
    """Reading or writing an artifact failed."""

    def __init__(self, path: Path | str, purpose: str, reason: str, *, not_found: bool = False) -> None:
        super().__init__(f"Failed to access {purpose} {path}: {reason}")
        self.path = str(path)
        self.purpose = purpose
        self.reason = reason
        self.not_found = not_found

    @classmethod
    def from_os_error(cls, path: Path | str, purpose: str, exc: OSError) -> "ArtifactIOError":
        if isinstance(exc, FileNotFoundError) or exc.errno == errno.ENOENT:
            return cls(path, purpose, "file not found", not_found=True)
        if isinstance(exc, PermissionError):
            return cls(path, purpose, f"permission denied ({exc.strerror or exc})")
        if isinstance(exc, IsADirectoryError):
            return cls(path, purpose, "path is a directory")
        return cls(path, purpose, exc.strerror or str(exc))


__all__ = [
    "ArtifactIOError",
    "ContractBuildError",
    "EntryNotFoundError",
    "HashLockError",
    "ManifestSchemaError",
    "MissingDependencyError",
    "ParseError",
    "StampGraphError",
]
