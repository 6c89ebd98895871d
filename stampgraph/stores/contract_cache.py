"""Persistent cache of built contracts."""

from __future__ import annotations

from datetime import UTC, datetime
import json
from pathlib import Path
from typing import Dict, Iterable, Optional

from ..hashing import SCHEMA_VERSION
from ..models import Contract

_CACHE_VERSION = 1

CACHE_RELATIVE_PATH = Path(".stampgraph") / "contracts.json"


def cache_signature(preset: str) -> str:
    return f"{SCHEMA_VERSION}:{preset}"


class ContractCache:
    """Stores contracts keyed by entry id and fingerprinted by file hash."""

    def __init__(self, path: Path | None) -> None:
        self._path = path
        self._entries: Dict[str, Dict[str, object]] = {}
        self._dirty = False
        if self._path is not None:
            self._load(self._path)

    @classmethod
    def for_root(cls, root: Path) -> "ContractCache":
        return cls(root / CACHE_RELATIVE_PATH)

    def get(self, entry_id: str, *, signature: str, fingerprint: str) -> Optional[Contract]:
        entry = self._entries.get(entry_id)
        if not entry:
            return None
        if entry.get("signature") != signature:
            return None
        if entry.get("fingerprint") != fingerprint:
            return None
        payload = entry.get("contract")
        if not isinstance(payload, dict):
            return None
        try:
            return Contract.from_dict(payload)
        except (KeyError, TypeError, ValueError):
            return None

    def store(self, contract: Contract, *, signature: str) -> None:
        self._entries[contract.entry_id] = {
            "signature": signature,
            "fingerprint": contract.file_hash,
            "contract": contract.to_dict(),
            "updated_at": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        }
        self._dirty = True

    def prune(self, keys_to_keep: Iterable[str]) -> None:
        keep = set(keys_to_keep)
        removed = [key for key in self._entries if key not in keep]
        if removed:
            for key in removed:
                self._entries.pop(key, None)
            self._dirty = True

    def persist(self) -> None:
        if not self._dirty or self._path is None:
            return
        payload = {"version": _CACHE_VERSION, "entries": self._entries}
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        self._dirty = False

    def clear(self) -> None:
        self._entries.clear()
        self._dirty = True

    def __len__(self) -> int:
        return len(self._entries)

    def _load(self, path: Path) -> None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return
        if not isinstance(data, dict) or data.get("version") != _CACHE_VERSION:
            return
        entries = data.get("entries")
        if not isinstance(entries, dict):
            return
        self._entries = {
            key: raw
            for key, raw in entries.items()
            if isinstance(key, str)
            and isinstance(raw, dict)
            and {"signature", "fingerprint", "contract"} <= raw.keys()
        }
        self._dirty = False


__all__ = ["CACHE_RELATIVE_PATH", "ContractCache", "cache_signature"]
