"""Replace secrets reported by a secret scan with a fixed placeholder.

The report is produced elsewhere and is consumed read-only. Two layouts are
accepted: ``{"matches": [{"file": ..., "line": ...}, ...]}`` and a mapping of
relative file path to its list of matches.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .logging import get_logger
from .paths import normalize_entry_id

PLACEHOLDER = "PRIVATE_DATA"

LOGGER = get_logger("sanitizer")

_DB_URL_SNIPPET = re.compile(r"((?:postgres|mysql|mongodb)://[^:]+:)([^@]+)(@)", re.IGNORECASE)
_DB_URL_LINE = re.compile(
    r"(['\"`])((?:postgres|mysql|mongodb)://[^:]+:)([^@]+)(@[^'\"`]+)\1", re.IGNORECASE
)
_QUOTED_VALUE = re.compile(r"[=:]\s*(['\"`])([^'\"`]+)\1")
_UNQUOTED_VALUE = re.compile(r"[=:]\s+([a-zA-Z0-9_\-]{16,})")
_LONG_TOKEN = re.compile(r"([a-zA-Z0-9_\-]{20,})")
_PRIVATE_KEY = re.compile(
    r"(-----BEGIN\s+(?:RSA\s+)?PRIVATE\s+KEY-----)[\s\S]*?(-----END\s+(?:RSA\s+)?PRIVATE\s+KEY-----)"
)


@dataclass(frozen=True)
class SecretMatch:
    file: str
    line: int
    column: int = 0
    type: str = ""
    snippet: str = ""
    severity: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], file: Optional[str] = None) -> "SecretMatch":
        return cls(
            file=normalize_entry_id(str(file if file is not None else data.get("file", ""))),
            line=int(data.get("line") or 0),
            column=int(data.get("column") or 0),
            type=str(data.get("type") or ""),
            snippet=str(data.get("snippet") or ""),
            severity=str(data.get("severity") or ""),
        )


@dataclass
class SecretReport:
    matches: Dict[str, List[SecretMatch]] = field(default_factory=dict)

    def for_file(self, entry_id: str) -> List[SecretMatch]:
        return self.matches.get(normalize_entry_id(entry_id).lower(), [])

    def __len__(self) -> int:
        return sum(len(items) for items in self.matches.values())


@dataclass(frozen=True)
class SanitizeResult:
    sanitized: str
    secrets_replaced: bool = False
    match_count: int = 0


def parse_security_report(data: Any, project_root: Optional[Path] = None) -> SecretReport:
    """Build a :class:`SecretReport` from either supported JSON layout."""
    report = SecretReport()
    items: List[SecretMatch] = []
    if isinstance(data, Mapping) and isinstance(data.get("matches"), list):
        for entry in data["matches"]:
            if isinstance(entry, Mapping):
                items.append(SecretMatch.from_dict(entry))
    elif isinstance(data, Mapping):
        for file, entries in data.items():
            if not isinstance(entries, list):
                continue
            for entry in entries:
                if isinstance(entry, Mapping):
                    items.append(SecretMatch.from_dict(entry, file=str(file)))
    else:
        raise ValueError("security report must be a JSON object")

    root = str(project_root.resolve()).replace("\\", "/") if project_root else None
    for item in items:
        key = item.file
        if root and key.startswith(root + "/"):
            key = key[len(root) + 1 :]
        report.matches.setdefault(key.lower(), []).append(item)
    return report


def load_security_report(path: Path, project_root: Optional[Path] = None) -> Optional[SecretReport]:
    """Load the report at ``path``; an absent or unreadable report yields ``None``."""
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return parse_security_report(data, project_root)
    except (OSError, ValueError) as exc:
        LOGGER.warning("Ignoring security report %s: %s", path, exc)
        return None


def _sanitize_line(line: str, matches: List[SecretMatch]) -> str:
    sanitized = line
    for match in sorted(matches, key=lambda item: item.column, reverse=True):
        if match.type == "Database URL with Credentials":
            snippet_url = _DB_URL_SNIPPET.search(match.snippet)
            if not snippet_url:
                continue
            line_url = _DB_URL_LINE.search(sanitized)
            if line_url:
                quote, prefix, _, suffix = line_url.groups()
                sanitized = sanitized.replace(
                    line_url.group(0), f"{quote}{prefix}{PLACEHOLDER}{suffix}{quote}", 1
                )
            elif snippet_url.group(2) in sanitized:
                sanitized = sanitized.replace(snippet_url.group(2), PLACEHOLDER, 1)
            continue

        quoted = _QUOTED_VALUE.search(match.snippet)
        if quoted:
            quote, secret = quoted.groups()
            if f"{quote}{secret}{quote}" in sanitized:
                sanitized = sanitized.replace(f"{quote}{secret}{quote}", f"{quote}{PLACEHOLDER}{quote}")
            elif secret in sanitized:
                sanitized = sanitized.replace(secret, PLACEHOLDER)
            continue

        unquoted = _UNQUOTED_VALUE.search(match.snippet)
        if unquoted:
            secret = unquoted.group(1)
            sanitized = re.sub(rf"\b{re.escape(secret)}\b", PLACEHOLDER, sanitized)
            continue

        if match.type == "Private Key" and "BEGIN" in sanitized:
            sanitized = _PRIVATE_KEY.sub(rf"\1\n{PLACEHOLDER}\n\2", sanitized)
            continue

        token = _LONG_TOKEN.search(match.snippet)
        if token and token.group(1) in sanitized and PLACEHOLDER not in sanitized:
            sanitized = sanitized.replace(token.group(1), PLACEHOLDER)
    return sanitized


def sanitize(code: str, entry_id: str, report: Optional[SecretReport]) -> SanitizeResult:
    """Replace every reported secret in ``code``; a no-op without a report."""
    if report is None:
        return SanitizeResult(sanitized=code)
    matches = report.for_file(entry_id)
    if not matches:
        return SanitizeResult(sanitized=code)

    by_line: Dict[int, List[SecretMatch]] = {}
    for match in matches:
        by_line.setdefault(match.line, []).append(match)

    lines = code.split("\n")
    replaced = False
    for index, line in enumerate(lines):
        line_matches = by_line.get(index + 1)
        if not line_matches:
            continue
        updated = _sanitize_line(line, line_matches)
        if updated != line:
            lines[index] = updated
            replaced = True
    return SanitizeResult(sanitized="\n".join(lines), secrets_replaced=replaced, match_count=len(matches))


__all__ = [
    "PLACEHOLDER",
    "SanitizeResult",
    "SecretMatch",
    "SecretReport",
    "load_security_report",
    "parse_security_report",
    "sanitize",
]
