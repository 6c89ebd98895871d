"""Core data models shared across stampgraph components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .hashing import BUNDLE_SCHEMA_VERSION, SCHEMA_VERSION

CONTRACT_TYPE = "UIFContract"
BUNDLE_TYPE = "LogicStampBundle"
INDEX_TYPE = "LogicStampIndex"
INDEX_SCHEMA_VERSION = "0.1"


class ContractKind(str, Enum):
    """Closed set of file kinds assigned by the classifier."""

    REACT_COMPONENT = "react:component"
    REACT_HOOK = "react:hook"
    VUE_COMPONENT = "vue:component"
    VUE_COMPOSABLE = "vue:composable"
    MODULE = "ts:module"
    CLI = "node:cli"
    API = "node:api"


class CodeInclusion(str, Enum):
    NONE = "none"
    HEADER = "header"
    FULL = "full"


# ---------------------------------------------------------------------------
# Export shape: a tagged variant
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NoExports:
    """The file exports nothing."""


@dataclass(frozen=True)
class DefaultExport:
    """The file has a default export."""


@dataclass(frozen=True)
class NamedExports:
    """The file exports an enumerable, ordered list of names."""

    names: Tuple[str, ...]


@dataclass(frozen=True)
class OpaqueNamedExport:
    """The file has a named export whose name could not be determined."""


ExportShape = Union[NoExports, DefaultExport, NamedExports, OpaqueNamedExport]


def named_exports(names: Sequence[str]) -> ExportShape:
    """Build a ``NamedExports`` with duplicates removed, first occurrence wins."""
    seen: Dict[str, None] = {}
    for name in names:
        seen.setdefault(name, None)
    if not seen:
        return NoExports()
    return NamedExports(tuple(seen))


def export_kind(shape: ExportShape) -> str:
    """Collapse an export shape to ``default`` / ``named`` / ``none``."""
    if isinstance(shape, DefaultExport):
        return "default"
    if isinstance(shape, (NamedExports, OpaqueNamedExport)):
        return "named"
    if isinstance(shape, NoExports):
        return "none"
    raise TypeError(f"Unknown export shape: {shape!r}")


def export_shape_to_json(shape: ExportShape) -> Optional[Any]:
    if isinstance(shape, NoExports):
        return None
    if isinstance(shape, DefaultExport):
        return "default"
    if isinstance(shape, OpaqueNamedExport):
        return "named"
    if isinstance(shape, NamedExports):
        return {"named": list(shape.names)}
    raise TypeError(f"Unknown export shape: {shape!r}")


def export_shape_from_json(value: Any) -> ExportShape:
    if value is None:
        return NoExports()
    if value == "default":
        return DefaultExport()
    if value == "named":
        return OpaqueNamedExport()
    if isinstance(value, Mapping):
        names = value.get("named")
        if isinstance(names, list):
            return named_exports([str(name) for name in names])
    return NoExports()


# ---------------------------------------------------------------------------
# Extraction facts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ApiSignature:
    """Typed surface of a backend handler."""

    parameters: Dict[str, str] = field(default_factory=dict)
    return_type: Optional[str] = None
    request_type: Optional[str] = None
    response_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.parameters:
            data["parameters"] = dict(self.parameters)
        if self.return_type:
            data["returnType"] = self.return_type
        if self.request_type:
            data["requestType"] = self.request_type
        if self.response_type:
            data["responseType"] = self.response_type
        return data


@dataclass(frozen=True)
class Route:
    """A backend route declaration found in a source file."""

    method: str
    path: str
    handler: str
    params: Tuple[str, ...] = ()
    api_signature: Optional[ApiSignature] = None
    line: Optional[int] = None


@dataclass(frozen=True)
class BackendFacts:
    """Routes and framework markers of an API file."""

    framework: str
    routes: Tuple[Route, ...] = ()
    controller: Optional[str] = None
    base_path: Optional[str] = None
    language_specific: Dict[str, List[str]] = field(default_factory=dict)


@dataclass(frozen=True)
class NextMeta:
    """App-router annotations for files under an ``app/`` directory."""

    is_in_app_dir: bool = False
    directive: Optional[str] = None
    route_role: Optional[str] = None
    segment_path: Optional[str] = None
    static_metadata: Optional[Dict[str, Any]] = None
    dynamic_metadata: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.is_in_app_dir:
            data["isInAppDir"] = True
        if self.directive:
            data["directive"] = self.directive
        if self.route_role:
            data["routeRole"] = self.route_role
        if self.segment_path:
            data["segmentPath"] = self.segment_path
        metadata: Dict[str, Any] = {}
        if self.static_metadata is not None:
            metadata["static"] = dict(self.static_metadata)
        if self.dynamic_metadata:
            metadata["dynamic"] = True
        if metadata:
            data["metadata"] = metadata
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NextMeta":
        metadata = data.get("metadata") or {}
        static = metadata.get("static") if isinstance(metadata, Mapping) else None
        return cls(
            is_in_app_dir=bool(data.get("isInAppDir")),
            directive=data.get("directive"),
            route_role=data.get("routeRole"),
            segment_path=data.get("segmentPath"),
            static_metadata=dict(static) if isinstance(static, Mapping) else None,
            dynamic_metadata=bool(metadata.get("dynamic")) if isinstance(metadata, Mapping) else False,
        )


@dataclass(frozen=True)
class SourceFact:
    """Raw, normalised facts extracted from one file. Never persisted."""

    path: str
    imports: Tuple[str, ...] = ()
    hooks: Tuple[str, ...] = ()
    components: Tuple[str, ...] = ()
    functions: Tuple[str, ...] = ()
    variables: Tuple[str, ...] = ()
    props: Dict[str, Any] = field(default_factory=dict)
    emits: Dict[str, Any] = field(default_factory=dict)
    state: Dict[str, str] = field(default_factory=dict)
    jsx_routes: Tuple[str, ...] = ()
    exports: ExportShape = field(default_factory=NoExports)
    main_export: Optional[str] = None
    main_export_is_function: bool = False
    has_markup: bool = False
    creates_elements: bool = False
    component_annotations: bool = False
    reads_argv: bool = False
    vue_state_primitives: bool = False
    vue_registration: bool = False
    backend: Optional[BackendFacts] = None
    nextjs: Optional[NextMeta] = None
    kind: Optional[ContractKind] = None


# ---------------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Composition:
    variables: Tuple[str, ...] = ()
    hooks: Tuple[str, ...] = ()
    components: Tuple[str, ...] = ()
    functions: Tuple[str, ...] = ()
    imports: Tuple[str, ...] = ()
    language_specific: Optional[Dict[str, List[str]]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "variables": list(self.variables),
            "hooks": list(self.hooks),
            "components": list(self.components),
            "functions": list(self.functions),
            "imports": list(self.imports),
        }
        if self.language_specific:
            data["languageSpecific"] = {
                key: list(values) for key, values in self.language_specific.items()
            }
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Composition":
        language_specific = data.get("languageSpecific")
        return cls(
            variables=_str_tuple(data.get("variables")),
            hooks=_str_tuple(data.get("hooks")),
            components=_str_tuple(data.get("components")),
            functions=_str_tuple(data.get("functions")),
            imports=_str_tuple(data.get("imports")),
            language_specific=dict(language_specific) if isinstance(language_specific, Mapping) else None,
        )


@dataclass(frozen=True)
class Interface:
    props: Dict[str, Any] = field(default_factory=dict)
    emits: Dict[str, Any] = field(default_factory=dict)
    state: Optional[Dict[str, str]] = None
    api_signature: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"props": dict(self.props), "emits": dict(self.emits)}
        if self.state:
            data["state"] = dict(self.state)
        if self.api_signature:
            data["apiSignature"] = dict(self.api_signature)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Interface":
        state = data.get("state")
        api_signature = data.get("apiSignature")
        return cls(
            props=dict(data.get("props") or {}),
            emits=dict(data.get("emits") or {}),
            state=dict(state) if isinstance(state, Mapping) else None,
            api_signature=dict(api_signature) if isinstance(api_signature, Mapping) else None,
        )


@dataclass(frozen=True)
class Contract:
    """Normalised, hashable description of one source file."""

    kind: str
    entry_id: str
    description: str
    composition: Composition
    interface: Interface
    exports: ExportShape
    semantic_hash: str
    file_hash: str
    prediction: Tuple[str, ...] = ()
    nextjs: Optional[NextMeta] = None
    type: str = CONTRACT_TYPE
    schema_version: str = SCHEMA_VERSION

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "type": self.type,
            "schemaVersion": self.schema_version,
            "kind": self.kind,
            "entryId": self.entry_id,
            "description": self.description,
            "composition": self.composition.to_dict(),
            "interface": self.interface.to_dict(),
        }
        exports = export_shape_to_json(self.exports)
        if exports is not None:
            data["exports"] = exports
        if self.prediction:
            data["prediction"] = list(self.prediction)
        if self.nextjs is not None:
            nextjs = self.nextjs.to_dict()
            if nextjs:
                data["nextjs"] = nextjs
        data["semanticHash"] = self.semantic_hash
        data["fileHash"] = self.file_hash
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Contract":
        """Rebuild a contract; raises ``KeyError``/``TypeError`` on malformed input."""
        composition = data["composition"]
        interface = data["interface"]
        if not isinstance(composition, Mapping) or not isinstance(interface, Mapping):
            raise TypeError("composition and interface must be objects")
        nextjs = data.get("nextjs")
        return cls(
            kind=str(data["kind"]),
            entry_id=str(data["entryId"]),
            description=str(data.get("description") or ""),
            composition=Composition.from_dict(composition),
            interface=Interface.from_dict(interface),
            exports=export_shape_from_json(data.get("exports")),
            semantic_hash=str(data["semanticHash"]),
            file_hash=str(data.get("fileHash") or ""),
            prediction=_str_tuple(data.get("prediction")),
            nextjs=NextMeta.from_dict(nextjs) if isinstance(nextjs, Mapping) else None,
            type=str(data.get("type") or CONTRACT_TYPE),
            schema_version=str(data.get("schemaVersion") or SCHEMA_VERSION),
        )


# ---------------------------------------------------------------------------
# Dependency graph
# ---------------------------------------------------------------------------


@dataclass
class GraphNode:
    """One contract in the graph arena plus its adjacency in both directions."""

    entry_id: str
    contract: Contract
    dependencies: List[str] = field(default_factory=list)
    targets: List[str] = field(default_factory=list)
    unresolved: List[str] = field(default_factory=list)
    used_by: List[str] = field(default_factory=list)


@dataclass
class DependencyGraph:
    components: Dict[str, GraphNode] = field(default_factory=dict)
    roots: List[str] = field(default_factory=list)
    leaves: List[str] = field(default_factory=list)
    hash_index: Optional[Dict[str, Dict[str, List[str]]]] = None

    def get(self, entry_id: str) -> Optional[GraphNode]:
        return self.components.get(entry_id)

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self.components

    def __len__(self) -> int:
        return len(self.components)


# ---------------------------------------------------------------------------
# Bundles
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MissingDependency:
    name: str
    reason: str
    referenced_by: Optional[str] = None


@dataclass(frozen=True)
class BundleNode:
    entry_id: str
    contract: Contract
    code_mode: CodeInclusion = CodeInclusion.NONE
    code_header: Optional[str] = None
    code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"entryId": self.entry_id, "contract": self.contract.to_dict()}
        if self.code_mode is not CodeInclusion.NONE:
            data["codeHeader"] = self.code_header
        if self.code_mode is CodeInclusion.FULL:
            data["code"] = self.code
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BundleNode":
        contract = Contract.from_dict(data["contract"])
        mode = CodeInclusion.NONE
        if "code" in data:
            mode = CodeInclusion.FULL
        elif "codeHeader" in data:
            mode = CodeInclusion.HEADER
        return cls(
            entry_id=str(data.get("entryId") or contract.entry_id),
            contract=contract,
            code_mode=mode,
            code_header=data.get("codeHeader"),
            code=data.get("code"),
        )


@dataclass(frozen=True)
class Bundle:
    """Depth and size bounded subgraph rooted at one entry file."""

    entry_id: str
    depth: int
    created_at: str
    bundle_hash: str
    nodes: Tuple[BundleNode, ...]
    edges: Tuple[Tuple[str, str], ...]
    missing: Tuple[MissingDependency, ...] = ()
    truncated: Tuple[str, ...] = ()
    source: str = ""
    type: str = BUNDLE_TYPE
    schema_version: str = BUNDLE_SCHEMA_VERSION

    @property
    def missing_names(self) -> List[str]:
        return sorted({item.name for item in self.missing})

    def to_dict(self) -> Dict[str, Any]:
        meta: Dict[str, Any] = {"missing": self.missing_names, "source": self.source}
        if self.truncated:
            meta["truncated"] = list(self.truncated)
        return {
            "type": self.type,
            "schemaVersion": self.schema_version,
            "entryId": self.entry_id,
            "depth": self.depth,
            "createdAt": self.created_at,
            "bundleHash": self.bundle_hash,
            "graph": {
                "nodes": [node.to_dict() for node in self.nodes],
                "edges": [[source, target] for source, target in self.edges],
            },
            "meta": meta,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Bundle":
        graph = data.get("graph") or {}
        meta = data.get("meta") or {}
        missing: List[MissingDependency] = []
        for item in meta.get("missing") or []:
            if isinstance(item, str):
                missing.append(MissingDependency(name=item, reason="unresolved"))
            elif isinstance(item, Mapping) and isinstance(item.get("name"), str):
                missing.append(
                    MissingDependency(
                        name=item["name"],
                        reason=str(item.get("reason") or "unresolved"),
                        referenced_by=item.get("referencedBy"),
                    )
                )
        return cls(
            entry_id=str(data.get("entryId") or ""),
            depth=int(data.get("depth") or 0),
            created_at=str(data.get("createdAt") or ""),
            bundle_hash=str(data.get("bundleHash") or ""),
            nodes=tuple(BundleNode.from_dict(node) for node in graph.get("nodes") or []),
            edges=tuple((str(edge[0]), str(edge[1])) for edge in graph.get("edges") or []),
            missing=tuple(missing),
            truncated=_str_tuple(meta.get("truncated")),
            source=str(meta.get("source") or ""),
            type=str(data.get("type") or BUNDLE_TYPE),
            schema_version=str(data.get("schemaVersion") or BUNDLE_SCHEMA_VERSION),
        )


# ---------------------------------------------------------------------------
# Index / manifest
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FolderInfo:
    path: str
    context_file: str
    bundles: int
    components: Tuple[str, ...] = ()
    is_root: bool = False
    root_label: Optional[str] = None
    token_estimate: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "path": self.path,
            "contextFile": self.context_file,
            "bundles": self.bundles,
            "components": list(self.components),
            "isRoot": self.is_root,
        }
        if self.root_label:
            data["rootLabel"] = self.root_label
        data["tokenEstimate"] = self.token_estimate
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FolderInfo":
        return cls(
            path=str(data["path"]),
            context_file=str(data["contextFile"]),
            bundles=int(data.get("bundles") or 0),
            components=_str_tuple(data.get("components")),
            is_root=bool(data.get("isRoot")),
            root_label=data.get("rootLabel"),
            token_estimate=int(data.get("tokenEstimate") or 0),
        )


@dataclass(frozen=True)
class ContextIndex:
    """Folder to context-file map for one generation run."""

    folders: Tuple[FolderInfo, ...]
    total_components: int = 0
    total_bundles: int = 0
    total_token_estimate: int = 0
    project_root: str = "."
    created_at: str = ""
    source: str = ""
    type: str = INDEX_TYPE
    schema_version: str = INDEX_SCHEMA_VERSION

    @property
    def total_folders(self) -> int:
        return len(self.folders)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "schemaVersion": self.schema_version,
            "projectRoot": self.project_root,
            "createdAt": self.created_at,
            "summary": {
                "totalComponents": self.total_components,
                "totalBundles": self.total_bundles,
                "totalFolders": self.total_folders,
                "totalTokenEstimate": self.total_token_estimate,
            },
            "folders": [folder.to_dict() for folder in self.folders],
            "meta": {"source": self.source},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ContextIndex":
        summary = data.get("summary") or {}
        meta = data.get("meta") or {}
        folders = tuple(FolderInfo.from_dict(item) for item in data.get("folders") or [])
        return cls(
            folders=folders,
            total_components=int(summary.get("totalComponents") or 0),
            total_bundles=int(summary.get("totalBundles") or 0),
            total_token_estimate=int(summary.get("totalTokenEstimate") or 0),
            project_root=str(data.get("projectRoot") or "."),
            created_at=str(data.get("createdAt") or ""),
            source=str(meta.get("source") or "") if isinstance(meta, Mapping) else "",
            type=str(data.get("type")),
            schema_version=str(data.get("schemaVersion")),
        )


# ---------------------------------------------------------------------------
# Drift results
# ---------------------------------------------------------------------------


class DiffStatus(str, Enum):
    PASS = "PASS"
    DRIFT = "DRIFT"


class FolderStatus(str, Enum):
    PASS = "PASS"
    DRIFT = "DRIFT"
    ADDED = "ADDED"
    ORPHANED = "ORPHANED"


@dataclass(frozen=True)
class Delta:
    type: str
    old: Any
    new: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "old": self.old, "new": self.new}


@dataclass(frozen=True)
class ChangedEntry:
    id: str
    deltas: Tuple[Delta, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "deltas": [delta.to_dict() for delta in self.deltas]}


@dataclass(frozen=True)
class DiffResult:
    status: DiffStatus
    added: Tuple[str, ...] = ()
    removed: Tuple[str, ...] = ()
    changed: Tuple[ChangedEntry, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "added": list(self.added),
            "removed": list(self.removed),
            "changed": [entry.to_dict() for entry in self.changed],
        }


@dataclass(frozen=True)
class TokenDelta:
    old: int
    new: int

    @property
    def delta(self) -> int:
        return self.new - self.old


@dataclass(frozen=True)
class FolderCompareResult:
    folder_path: str
    context_file: str
    status: FolderStatus
    component_result: Optional[DiffResult] = None
    token_delta: Optional[TokenDelta] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "folderPath": self.folder_path,
            "contextFile": self.context_file,
            "status": self.status.value,
        }
        if self.component_result is not None:
            data["componentResult"] = self.component_result.to_dict()
        if self.token_delta is not None:
            data["tokenDelta"] = self.token_delta.delta
        return data


@dataclass(frozen=True)
class CompareSummary:
    total_folders: int = 0
    added_folders: int = 0
    orphaned_folders: int = 0
    drift_folders: int = 0
    pass_folders: int = 0
    total_components_added: int = 0
    total_components_removed: int = 0
    total_components_changed: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "totalFolders": self.total_folders,
            "addedFolders": self.added_folders,
            "orphanedFolders": self.orphaned_folders,
            "driftFolders": self.drift_folders,
            "passFolders": self.pass_folders,
            "totalComponentsAdded": self.total_components_added,
            "totalComponentsRemoved": self.total_components_removed,
            "totalComponentsChanged": self.total_components_changed,
        }


@dataclass(frozen=True)
class MultiFileCompareResult:
    status: DiffStatus
    folders: Tuple[FolderCompareResult, ...]
    summary: CompareSummary
    orphaned_files: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "status": self.status.value,
            "folders": [folder.to_dict() for folder in self.folders],
            "summary": self.summary.to_dict(),
        }
        if self.orphaned_files:
            data["orphanedFiles"] = list(self.orphaned_files)
        return data


def _str_tuple(value: Any) -> Tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(str(item) for item in value)


__all__ = [
    "ApiSignature",
    "BackendFacts",
    "Bundle",
    "BundleNode",
    "ChangedEntry",
    "CodeInclusion",
    "CompareSummary",
    "Composition",
    "ContextIndex",
    "Contract",
    "ContractKind",
    "Delta",
    "DefaultExport",
    "DependencyGraph",
    "DiffResult",
    "DiffStatus",
    "ExportShape",
    "FolderCompareResult",
    "FolderInfo",
    "FolderStatus",
    "GraphNode",
    "Interface",
    "MissingDependency",
    "MultiFileCompareResult",
    "NamedExports",
    "NextMeta",
    "NoExports",
    "OpaqueNamedExport",
    "Route",
    "SourceFact",
    "TokenDelta",
    "export_kind",
    "export_shape_from_json",
    "export_shape_to_json",
    "named_exports",
]
