"""Repository scanning: the ordered, filtered list of candidate source files."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

from .config import CONFIG_FILENAME, ConfigError, StampGraphConfig, load_config
from .logging import get_logger

_LOGGER = get_logger("scanner")

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "node_modules",
    ".next",
    ".nuxt",
    "dist",
    "build",
    "coverage",
    ".turbo",
    ".idea",
    ".stampgraph",
}

_EXCLUDED_FILES = {
    ".DS_Store",
    "Thumbs.db",
}

# Test and declaration files never become contracts.
_EXCLUDED_SUFFIXES = (
    ".d.ts",
    ".test.ts",
    ".test.tsx",
    ".test.js",
    ".test.jsx",
    ".spec.ts",
    ".spec.tsx",
    ".spec.js",
    ".spec.jsx",
)


@dataclass
class IgnoreRule:
    """Represents an ignore rule parsed from .gitignore or .stampgraph.yml."""

    pattern: str
    directory_only: bool
    anchored: bool
    negate: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False

        if self.anchored or self.has_slash:
            if fnmatchcase(rel_path, self.pattern):
                return True
            return self.directory_only and rel_path.startswith(f"{self.pattern}/")

        return any(fnmatchcase(part, self.pattern) for part in rel_path.split("/"))


@dataclass
class SourceManifest:
    """Scanned project root plus its candidate files, sorted by relative path."""

    root: Path
    files: List[Path] = field(default_factory=list)

    def relative(self) -> List[str]:
        return [path.relative_to(self.root).as_posix() for path in self.files]


def build_ignore_rule(pattern: str, negate: bool = False) -> IgnoreRule | None:
    pattern = pattern.strip()
    if not pattern:
        return None

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern[:-1]

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern[1:]

    return IgnoreRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        negate=negate,
        has_slash="/" in pattern,
    )


def _parse_gitignore(path: Path) -> List[IgnoreRule]:
    if not path.exists():
        return []

    rules: List[IgnoreRule] = []
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        negate = line.startswith("!")
        if negate:
            line = line[1:]
        rule = build_ignore_rule(line, negate=negate)
        if rule is not None:
            rules.append(rule)
    return rules


def _config_rules(patterns: Sequence[str]) -> List[IgnoreRule]:
    rules: List[IgnoreRule] = []
    for pattern in patterns:
        rule = build_ignore_rule(pattern)
        if rule is not None:
            rules.append(rule)
    return rules


def _should_ignore(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


def _iter_files(
    root: Path, rules: Sequence[IgnoreRule], extensions: Sequence[str]
) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(root):
        current_dir = Path(dirpath)
        rel_dir = current_dir.relative_to(root).as_posix() if current_dir != root else ""

        filtered_dirs = []
        for name in dirnames:
            if name in _EXCLUDED_DIRS:
                continue
            rel_path = f"{rel_dir}/{name}" if rel_dir else name
            if _should_ignore(rel_path, True, rules):
                continue
            filtered_dirs.append(name)
        dirnames[:] = sorted(filtered_dirs)

        for filename in sorted(filenames):
            if filename in _EXCLUDED_FILES or filename.endswith(_EXCLUDED_SUFFIXES):
                continue
            if not filename.endswith(tuple(extensions)):
                continue
            rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
            if _should_ignore(rel_path, False, rules):
                continue
            yield current_dir / filename


class RepoScanner:
    """Walks the project to produce the ordered list of files to analyse."""

    def __init__(self, config: Optional[StampGraphConfig] = None) -> None:
        self.config = config

    def scan(self, root: str | Path, target: str | Path | None = None) -> SourceManifest:
        """Return the files under ``target`` (default: ``root``) honouring ignore rules."""
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            raise FileNotFoundError(f"Project path not found: {root}")
        if not root_path.is_dir():
            raise NotADirectoryError(f"Project path is not a directory: {root}")

        config = self.config
        if config is None:
            try:
                config = load_config(root_path / CONFIG_FILENAME)
            except ConfigError as exc:
                _LOGGER.warning("Ignoring unreadable %s: %s", CONFIG_FILENAME, exc)
                config = StampGraphConfig(root=root_path)

        rules = _parse_gitignore(root_path / ".gitignore")
        rules.extend(_config_rules(config.exclude_paths))

        start = root_path
        if target is not None:
            start = (root_path / target).resolve() if not Path(target).is_absolute() else Path(target)
            if start.is_file():
                return SourceManifest(root=root_path, files=[start])

        files = [
            path
            for path in _iter_files(root_path, rules, config.extensions)
            if start == root_path or start in path.parents
        ]
        files.sort(key=lambda path: path.relative_to(root_path).as_posix())
        _LOGGER.debug("Scanned %d source files under %s", len(files), root_path)
        return SourceManifest(root=root_path, files=files)
