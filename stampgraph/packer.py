"""Bundle packer: bounded breadth-first subgraphs with a content hash."""

from __future__ import annotations

import re
from collections import deque
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Deque, Dict, List, Mapping, Optional, Set, Tuple

from . import __version__
from .errors import ArtifactIOError, EntryNotFoundError, HashLockError, MissingDependencyError
from .graph import suggest_entries
from .hashing import bundle_hash, file_hash
from .logging import Diagnostics, ensure_diagnostics
from .models import Bundle, BundleNode, CodeInclusion, DependencyGraph, MissingDependency
from .paths import normalize_entry_id
from .sanitizer import SecretReport, sanitize

_CODE_HEADER = re.compile(r"/\*\*[\s\S]*?@uif[\s\S]*?\*/")

SOURCE_TAG = f"stampgraph@{__version__}"


@dataclass(frozen=True)
class PackOptions:
    depth: int = 1
    max_nodes: int = 100
    include_code: CodeInclusion = CodeInclusion.HEADER
    strict_missing: bool = False
    allow_missing: bool = True
    hash_lock: bool = False

    def __post_init__(self) -> None:
        if self.depth < 0:
            raise ValueError("depth must be >= 0")
        if self.max_nodes < 1:
            raise ValueError("max_nodes must be >= 1")


def extract_code_header(source: str) -> Optional[str]:
    """Return the ``@uif`` doc-comment block of ``source``, if any."""
    match = _CODE_HEADER.search(source)
    return match.group(0) if match else None


def resolve_entry(graph: DependencyGraph, entry_id: str) -> str:
    """Find the graph key for ``entry_id``, tolerating case and separator differences."""
    normalized = normalize_entry_id(entry_id)
    if normalized in graph:
        return normalized
    lowered = normalized.lower()
    for candidate in graph.components:
        if candidate.lower() == lowered:
            return candidate
    raise EntryNotFoundError(entry_id, suggest_entries(graph, normalized))


class _SourceReader:
    def __init__(self, root: Optional[Path], sources: Optional[Mapping[str, str]]) -> None:
        self._root = root
        self._sources = sources or {}
        self._cache: Dict[str, str] = {}

    def read(self, entry_id: str) -> str:
        if entry_id in self._sources:
            return self._sources[entry_id]
        if entry_id in self._cache:
            return self._cache[entry_id]
        if self._root is None:
            raise ArtifactIOError(entry_id, "source file", "no project root to read from", not_found=True)
        path = self._root / entry_id
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ArtifactIOError.from_os_error(path, "source file", exc) from exc
        self._cache[entry_id] = text
        return text


def collect(
    graph: DependencyGraph, entry_id: str, depth: int, max_nodes: int
) -> Tuple[List[str], List[MissingDependency], List[str]]:
    """Breadth-first collection from ``entry_id``.

    Returns ``(included, missing, truncated)``. A node counts toward
    ``max_nodes`` when it is enqueued, so the included set never exceeds the
    budget and larger budgets always include a superset.
    """
    included: List[str] = [entry_id]
    seen: Set[str] = {entry_id}
    missing: Dict[str, MissingDependency] = {}
    truncated: Set[str] = set()
    queue: Deque[Tuple[str, int]] = deque([(entry_id, 0)])

    while queue:
        current, level = queue.popleft()
        if level >= depth:
            continue
        node = graph.components[current]
        for name in node.unresolved:
            missing.setdefault(
                name,
                MissingDependency(
                    name=name,
                    reason="No contract found (third-party or not scanned)",
                    referenced_by=current,
                ),
            )
        for target in node.targets:
            if target in seen:
                continue
            if len(included) >= max_nodes:
                truncated.add(target)
                continue
            seen.add(target)
            included.append(target)
            queue.append((target, level + 1))

    truncated.difference_update(seen)
    ordered_missing = [missing[name] for name in sorted(missing)]
    return included, ordered_missing, sorted(truncated)


def pack(
    entry_id: str,
    graph: DependencyGraph,
    options: Optional[PackOptions] = None,
    *,
    root: Optional[Path] = None,
    sources: Optional[Mapping[str, str]] = None,
    report: Optional[SecretReport] = None,
    diagnostics: Optional[Diagnostics] = None,
    created_at: Optional[str] = None,
) -> Bundle:
    """Pack the bundle rooted at ``entry_id``.

    Raises :class:`EntryNotFoundError` for unknown entries,
    :class:`MissingDependencyError` in strict mode and :class:`HashLockError`
    when hash locking detects a modified source file.
    """
    options = options or PackOptions()
    diagnostics = ensure_diagnostics(diagnostics, "packer")
    entry = resolve_entry(graph, entry_id)
    included, missing, truncated = collect(graph, entry, options.depth, options.max_nodes)

    if missing and options.strict_missing:
        raise MissingDependencyError(entry, [item.name for item in missing])
    for name in truncated:
        diagnostics.debug("packer", entry, f"node budget reached, omitted {name}")

    reader = _SourceReader(root, sources)
    nodes: List[BundleNode] = []
    for node_id in sorted(included):
        contract = graph.components[node_id].contract
        needs_source = options.hash_lock or options.include_code is not CodeInclusion.NONE
        text: Optional[str] = None
        if needs_source:
            try:
                text = reader.read(node_id)
            except ArtifactIOError:
                if options.hash_lock or not options.allow_missing:
                    raise
                diagnostics.warn("packer", node_id, "source unavailable, code omitted")
        if options.hash_lock and text is not None and file_hash(text) != contract.file_hash:
            raise HashLockError(node_id)

        header: Optional[str] = None
        code: Optional[str] = None
        if text is not None and options.include_code is not CodeInclusion.NONE:
            # Report lines refer to the whole file, so sanitize before slicing.
            result = sanitize(text, node_id, report)
            if result.secrets_replaced:
                diagnostics.debug("packer", node_id, f"replaced {result.match_count} secrets")
            header = extract_code_header(result.sanitized)
            if options.include_code is CodeInclusion.FULL:
                code = result.sanitized
        nodes.append(
            BundleNode(
                entry_id=node_id,
                contract=contract,
                code_mode=options.include_code,
                code_header=header,
                code=code,
            )
        )

    members = set(included)
    edges = sorted(
        (node_id, target)
        for node_id in members
        for target in graph.components[node_id].targets
        if target in members
    )
    digest = bundle_hash(
        [(node.entry_id, node.contract.semantic_hash) for node in nodes], edges, options.depth
    )
    return Bundle(
        entry_id=entry,
        depth=options.depth,
        created_at=created_at or datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        bundle_hash=digest,
        nodes=tuple(nodes),
        edges=tuple(edges),
        missing=tuple(missing),
        truncated=tuple(truncated),
        source=SOURCE_TAG,
    )


def pack_all(
    graph: DependencyGraph,
    entries: Optional[List[str]] = None,
    options: Optional[PackOptions] = None,
    *,
    root: Optional[Path] = None,
    sources: Optional[Mapping[str, str]] = None,
    report: Optional[SecretReport] = None,
    diagnostics: Optional[Diagnostics] = None,
    created_at: Optional[str] = None,
) -> List[Bundle]:
    """Pack one bundle per entry, defaulting to the graph roots."""
    diagnostics = ensure_diagnostics(diagnostics, "packer")
    stamp = created_at or datetime.now(UTC).isoformat().replace("+00:00", "Z")
    targets = entries if entries is not None else list(graph.roots)
    return [
        pack(
            entry,
            graph,
            options,
            root=root,
            sources=sources,
            report=report,
            diagnostics=diagnostics,
            created_at=stamp,
        )
        for entry in sorted(targets)
    ]


__all__ = [
    "PackOptions",
    "SOURCE_TAG",
    "collect",
    "extract_code_header",
    "pack",
    "pack_all",
    "resolve_entry",
]
