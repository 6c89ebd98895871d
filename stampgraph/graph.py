"""Dependency graph builder.

Contracts become nodes in an arena keyed by entry id. Each node lists the
symbol names it composes (``dependencies``), the entry ids those names resolve
to (``targets``) and the reverse adjacency (``used_by``). The graph may contain
cycles; roots and leaves are computed, never assumed.
"""

from __future__ import annotations

import posixpath
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Union

from .hashing import signature_hash, structure_hash
from .logging import Diagnostics, ensure_diagnostics
from .models import Contract, DependencyGraph, GraphNode, NamedExports
from .paths import folder_of, normalize_entry_id, stem_of

_RESOLVE_SUFFIXES = (".tsx", ".ts", ".jsx", ".js", ".vue")

ContractLike = Union[Contract, Mapping[str, Any]]


def candidate_names(contract: Contract) -> List[str]:
    """Raw dependency candidates: composed components, in sorted order."""
    return sorted(set(contract.composition.components))


def filter_internal(candidates: Sequence[str], contract: Contract) -> List[str]:
    """Drop locally defined helpers that the file does not export.

    Filtering only applies when the exported names are enumerable. Files with
    a default export, no exports or an opaque named export keep every candidate.
    """
    exports = contract.exports
    if not isinstance(exports, NamedExports):
        return list(candidates)
    local = set(contract.composition.functions)
    exported = set(exports.names)
    return [name for name in candidates if not (name in local and name not in exported)]


class NameResolver:
    """Resolves composed symbol names to entry ids of other contracts."""

    def __init__(self, contracts: Mapping[str, Contract]) -> None:
        self._ids: Set[str] = set(contracts)
        self._by_export: Dict[str, List[str]] = defaultdict(list)
        self._by_stem: Dict[str, List[str]] = defaultdict(list)
        for entry_id in sorted(contracts):
            contract = contracts[entry_id]
            if isinstance(contract.exports, NamedExports):
                for name in contract.exports.names:
                    self._by_export[name].append(entry_id)
            stem = stem_of(entry_id)
            self._by_stem[stem].append(entry_id)
            if stem == "index":
                self._by_stem[posixpath.basename(folder_of(entry_id))].append(entry_id)

    def resolve_import(self, importer: str, specifier: str) -> Optional[str]:
        """Map a relative import specifier to an entry id, if it names a known file."""
        if not specifier.startswith("."):
            return None
        folder = folder_of(importer)
        base = normalize_entry_id(posixpath.join("" if folder == "." else folder, specifier))
        candidates = [base]
        candidates.extend(f"{base}{suffix}" for suffix in _RESOLVE_SUFFIXES)
        candidates.extend(f"{base}/index{suffix}" for suffix in _RESOLVE_SUFFIXES)
        for candidate in candidates:
            if candidate in self._ids:
                return candidate
        return None

    def resolve(self, name: str, importer: Contract) -> Optional[str]:
        """Resolve ``name`` as seen from ``importer``; ties go to the smallest entry id.

        Lookup order: files the importer imports relatively, a same-folder file
        named after the symbol, any file exporting the name, any file whose
        stem matches.
        """
        own = importer.entry_id
        head = name.split(".")[0]
        imported = {
            target
            for target in (
                self.resolve_import(own, specifier) for specifier in importer.composition.imports
            )
            if target is not None and target != own
        }
        if imported:
            local = [
                entry_id
                for entry_id in imported
                if entry_id in self._by_export.get(head, ()) or stem_of(entry_id) == head
                or (stem_of(entry_id) == "index" and posixpath.basename(folder_of(entry_id)) == head)
            ]
            if local:
                return min(local)

        folder = folder_of(own)
        sibling = [
            entry_id
            for entry_id in self._by_stem.get(head, ())
            if folder_of(entry_id) == folder and entry_id != own
        ]
        if sibling:
            return min(sibling)

        exporters = [entry_id for entry_id in self._by_export.get(head, ()) if entry_id != own]
        if exporters:
            return min(exporters)

        stems = [entry_id for entry_id in self._by_stem.get(head, ()) if entry_id != own]
        if stems:
            return min(stems)
        return None

    def exports_name(self, entry_id: str, name: str) -> bool:
        return entry_id in self._by_export.get(name, ())


def _coerce(
    item: ContractLike, diagnostics: Diagnostics
) -> Optional[Contract]:
    if isinstance(item, Contract):
        return item
    try:
        return Contract.from_dict(item)
    except (KeyError, TypeError, ValueError) as exc:
        label = item.get("entryId", "<unknown>") if isinstance(item, Mapping) else "<unknown>"
        diagnostics.warn("graph", str(label), f"skipping malformed contract: {exc}")
        return None


def build_graph(
    contracts: Iterable[ContractLike],
    *,
    diagnostics: Optional[Diagnostics] = None,
    hash_indices: bool = False,
) -> DependencyGraph:
    """Build the dependency graph for a full contract collection."""
    diagnostics = ensure_diagnostics(diagnostics, "graph")
    by_id: Dict[str, Contract] = {}
    for item in contracts:
        contract = _coerce(item, diagnostics)
        if contract is None:
            continue
        entry_id = normalize_entry_id(contract.entry_id)
        if not entry_id:
            diagnostics.warn("graph", "<unknown>", "skipping contract without entryId")
            continue
        if entry_id in by_id:
            diagnostics.warn("graph", entry_id, "duplicate contract ignored")
            continue
        by_id[entry_id] = contract

    resolver = NameResolver(by_id)
    graph = DependencyGraph()
    for entry_id in sorted(by_id):
        graph.components[entry_id] = GraphNode(entry_id=entry_id, contract=by_id[entry_id])

    for entry_id, node in graph.components.items():
        contract = node.contract
        names = filter_internal(candidate_names(contract), contract)
        # Custom hooks count only when they resolve to a project file.
        for hook in sorted(set(contract.composition.hooks)):
            target = resolver.resolve(hook, contract)
            if target is not None and hook not in names:
                names.append(hook)
        dependencies: List[str] = []
        targets: List[str] = []
        unresolved: List[str] = []
        for name in names:
            target = resolver.resolve(name, contract)
            if target == entry_id:
                continue
            dependencies.append(name)
            if target is None:
                unresolved.append(name)
            elif target not in targets:
                targets.append(target)
        node.dependencies = dependencies
        node.targets = sorted(targets)
        node.unresolved = unresolved

    used_by: Dict[str, Set[str]] = defaultdict(set)
    for entry_id, node in graph.components.items():
        for target in node.targets:
            used_by[target].add(entry_id)
    for entry_id, node in graph.components.items():
        node.used_by = sorted(used_by.get(entry_id, ()))

    graph.roots = [entry_id for entry_id, node in graph.components.items() if not node.used_by]
    graph.leaves = [entry_id for entry_id, node in graph.components.items() if not node.dependencies]
    if hash_indices:
        graph.hash_index = build_hash_index(graph)
    return graph


def build_hash_index(graph: DependencyGraph) -> Dict[str, Dict[str, List[str]]]:
    """Group entry ids sharing a structure or signature hash."""
    structure: Dict[str, List[str]] = defaultdict(list)
    signature: Dict[str, List[str]] = defaultdict(list)
    for entry_id, node in graph.components.items():
        contract = node.contract
        structure[structure_hash(contract.composition.to_dict())].append(entry_id)
        signature[signature_hash(contract.interface.to_dict())].append(entry_id)
    return {
        "structure": {key: sorted(value) for key, value in sorted(structure.items())},
        "signature": {key: sorted(value) for key, value in sorted(signature.items())},
    }


@dataclass
class GraphStats:
    total_nodes: int = 0
    total_edges: int = 0
    roots: int = 0
    leaves: int = 0
    most_used: List[tuple[str, int]] = field(default_factory=list)
    most_complex: List[tuple[str, int]] = field(default_factory=list)
    isolated: List[str] = field(default_factory=list)


def graph_stats(graph: DependencyGraph, top: int = 5) -> GraphStats:
    nodes = graph.components
    most_used = sorted(
        ((entry_id, len(node.used_by)) for entry_id, node in nodes.items() if node.used_by),
        key=lambda item: (-item[1], item[0]),
    )
    most_complex = sorted(
        ((entry_id, len(node.dependencies)) for entry_id, node in nodes.items() if node.dependencies),
        key=lambda item: (-item[1], item[0]),
    )
    return GraphStats(
        total_nodes=len(nodes),
        total_edges=sum(len(node.targets) for node in nodes.values()),
        roots=len(graph.roots),
        leaves=len(graph.leaves),
        most_used=most_used[:top],
        most_complex=most_complex[:top],
        isolated=[
            entry_id for entry_id, node in nodes.items() if not node.used_by and not node.dependencies
        ],
    )


def suggest_entries(graph: DependencyGraph, entry_id: str, limit: int = 5) -> List[str]:
    """Entry ids sharing the requested file name, used for not-found messages."""
    wanted = stem_of(entry_id).lower()
    matches = [candidate for candidate in graph.components if stem_of(candidate).lower() == wanted]
    if not matches:
        matches = sorted(graph.components)
    return sorted(matches)[:limit]


__all__ = [
    "GraphStats",
    "NameResolver",
    "build_graph",
    "build_hash_index",
    "candidate_names",
    "filter_internal",
    "graph_stats",
    "suggest_entries",
]
