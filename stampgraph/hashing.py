"""Content and semantic hashing for contracts and bundles.

All hashes are ``sha256`` digests truncated to 24 hex characters and carry a
namespace prefix: ``uif:`` for file and semantic hashes, ``uifb:`` for bundle
hashes. Payloads go through :func:`stable_stringify`, which sorts mapping keys
and array elements so logically equal payloads always hash identically.
"""

from __future__ import annotations

import hashlib
import json
import math
import re
from typing import Any, Iterable, Mapping, Optional, Sequence, Tuple

SCHEMA_VERSION = "0.4"
BUNDLE_SCHEMA_VERSION = "0.1"

FILE_HASH_PREFIX = "uif:"
BUNDLE_HASH_PREFIX = "uifb:"
_HASH_LENGTH = 24

_HASH_PATTERN = re.compile(r"^uif:[a-f0-9]{24}$")
_BUNDLE_HASH_PATTERN = re.compile(r"^uifb:[a-f0-9]{24}$")
_HEADER_PATTERN = re.compile(r"/\*\*[\s\S]*?@uif[\s\S]*?\*/\n*")


def stable_stringify(value: Any) -> str:
    """Serialise ``value`` to compact JSON with sorted keys and sorted arrays."""
    return json.dumps(_canonical(value), separators=(",", ":"), ensure_ascii=False)


def _canonical(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(key): _canonical(value[key]) for key in sorted(value, key=str)}
    if isinstance(value, (list, tuple, set, frozenset)):
        items = [_canonical(item) for item in value]
        return sorted(items, key=_sort_key)
    return value


def _sort_key(value: Any) -> str:
    # Arrays order by their string form, the way JavaScript's default sort does.
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isfinite(value) and value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, list):
        return ",".join(_sort_key(item) for item in value)
    return "[object Object]"


def _digest(payload: str) -> str:
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:_HASH_LENGTH]


def strip_header(content: str) -> str:
    """Remove the first ``@uif`` doc-comment header block from ``content``."""
    return _HEADER_PATTERN.sub("", content, count=1)


def file_hash(content: str) -> str:
    """Hash the raw file text, ignoring the generated header and line-ending style."""
    normalized = strip_header(content).replace("\r\n", "\n")
    return FILE_HASH_PREFIX + _digest(normalized)


def structure_hash(composition: Mapping[str, Any]) -> str:
    """Hash the structural composition (variables, hooks, components, functions)."""
    payload = {
        "variables": sorted(composition.get("variables") or []),
        "hooks": sorted(composition.get("hooks") or []),
        "components": sorted(composition.get("components") or []),
        "functions": sorted(composition.get("functions") or []),
    }
    return FILE_HASH_PREFIX + _digest(stable_stringify(payload))


def signature_hash(interface: Mapping[str, Any]) -> str:
    """Hash the public interface (props, emits, state)."""
    payload: dict[str, Any] = {
        "props": dict(interface.get("props") or {}),
        "events": dict(interface.get("emits") or {}),
    }
    state = interface.get("state")
    if state:
        payload["state"] = dict(state)
    return FILE_HASH_PREFIX + _digest(stable_stringify(payload))


def semantic_hash(
    composition: Mapping[str, Any],
    interface: Mapping[str, Any],
    exports: Optional[Any],
) -> str:
    """Hash the logic-relevant shape of a contract.

    Only composition, interface and export shape participate, so whitespace
    and comment edits leave the hash untouched.
    """
    payload: dict[str, Any] = {
        "schemaVersion": SCHEMA_VERSION,
        "composition": dict(composition),
        "interface": dict(interface),
    }
    if exports is not None:
        payload["exports"] = exports
    return FILE_HASH_PREFIX + _digest(stable_stringify(payload))


def bundle_hash(
    nodes: Iterable[Tuple[str, str]],
    edges: Sequence[Tuple[str, str]],
    depth: int,
    schema_version: str = BUNDLE_SCHEMA_VERSION,
) -> str:
    """Hash the sorted ``(entryId, semanticHash)`` nodes and edges of a bundle."""
    ordered_nodes = sorted(nodes)
    payload = {
        "schemaVersion": schema_version,
        "depth": depth,
        "nodes": [
            {"entryId": entry_id, "semanticHash": semantic}
            for entry_id, semantic in ordered_nodes
        ],
        "edges": [f"{source}->{target}" for source, target in sorted(edges)],
    }
    return BUNDLE_HASH_PREFIX + _digest(stable_stringify(payload))


def is_valid_hash(value: str) -> bool:
    return bool(_HASH_PATTERN.match(value))


def is_valid_bundle_hash(value: str) -> bool:
    return bool(_BUNDLE_HASH_PATTERN.match(value))


__all__ = [
    "BUNDLE_HASH_PREFIX",
    "BUNDLE_SCHEMA_VERSION",
    "FILE_HASH_PREFIX",
    "SCHEMA_VERSION",
    "bundle_hash",
    "file_hash",
    "is_valid_bundle_hash",
    "is_valid_hash",
    "semantic_hash",
    "signature_hash",
    "stable_stringify",
    "strip_header",
    "structure_hash",
]
