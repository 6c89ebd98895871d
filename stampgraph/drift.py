"""Drift detection between two generations of bundles or context indexes.

A single-collection diff compares per-component signatures (``LiteSig``)
keyed by lowercased entry id. The multi-file diff walks two index files,
compares every folder present in both and reports folders that appeared
(``ADDED``) or disappeared (``ORPHANED``). Context files that the old index
lists but the new one does not, yet still exist on disk, are reported
separately so they can be cleaned up.
"""

from __future__ import annotations

import json
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import ArtifactIOError
from .logging import Diagnostics, ensure_diagnostics, get_logger
from .models import (
    Bundle,
    ChangedEntry,
    CompareSummary,
    ContextIndex,
    Delta,
    DiffResult,
    DiffStatus,
    FolderCompareResult,
    FolderStatus,
    MultiFileCompareResult,
    TokenDelta,
    export_kind,
)
from .stores.context_store import (
    INDEX_FILENAME,
    estimate_tokens,
    find_orphaned_files,
    load_bundles,
    load_index,
)

LOGGER = get_logger("drift")

# Field order of the emitted deltas.
TRACKED_FIELDS = ("hash", "imports", "hooks", "functions", "components", "props", "emits", "exports")


@dataclass(frozen=True)
class LiteSig:
    hash: str
    imports: Tuple[str, ...]
    hooks: Tuple[str, ...]
    functions: Tuple[str, ...]
    components: Tuple[str, ...]
    props: Tuple[str, ...]
    emits: Tuple[str, ...]
    exports: str

    def value(self, name: str):
        value = getattr(self, name)
        return list(value) if isinstance(value, tuple) else value


def lite_signatures(bundles: Iterable[Bundle]) -> Dict[str, LiteSig]:
    """Index every node of ``bundles`` by lowercased entry id; later nodes win."""
    index: Dict[str, LiteSig] = {}
    for bundle in bundles:
        for node in bundle.nodes:
            contract = node.contract
            composition = contract.composition
            index[contract.entry_id.lower()] = LiteSig(
                hash=contract.semantic_hash,
                imports=tuple(composition.imports),
                hooks=tuple(composition.hooks),
                functions=tuple(composition.functions),
                components=tuple(composition.components),
                props=tuple(contract.interface.props),
                emits=tuple(contract.interface.emits),
                exports=export_kind(contract.exports),
            )
    return index


def diff_signatures(old: Dict[str, LiteSig], new: Dict[str, LiteSig]) -> DiffResult:
    added = sorted(key for key in new if key not in old)
    removed = sorted(key for key in old if key not in new)
    changed: List[ChangedEntry] = []
    for key in sorted(set(old) & set(new)):
        before, after = old[key], new[key]
        deltas = tuple(
            Delta(type=name, old=before.value(name), new=after.value(name))
            for name in TRACKED_FIELDS
            if before.value(name) != after.value(name)
        )
        if deltas:
            changed.append(ChangedEntry(id=key, deltas=deltas))
    status = DiffStatus.PASS if not (added or removed or changed) else DiffStatus.DRIFT
    return DiffResult(status=status, added=tuple(added), removed=tuple(removed), changed=tuple(changed))


def diff_bundles(old: Iterable[Bundle], new: Iterable[Bundle]) -> DiffResult:
    """Compare two bundle collections component by component."""
    return diff_signatures(lite_signatures(old), lite_signatures(new))


def bundle_tokens(bundles: Iterable[Bundle]) -> int:
    return estimate_tokens(json.dumps([bundle.to_dict() for bundle in bundles]))


def compare_files(old_path: Path, new_path: Path, *, stats: bool = False) -> Tuple[DiffResult, Optional[TokenDelta]]:
    """Diff two folder context files; load failures raise :class:`ArtifactIOError`."""
    old_bundles = load_bundles(old_path, purpose="old file")
    new_bundles = load_bundles(new_path, purpose="new file")
    token_delta = None
    if stats:
        token_delta = TokenDelta(old=bundle_tokens(old_bundles), new=bundle_tokens(new_bundles))
    return diff_bundles(old_bundles, new_bundles), token_delta


def compare_indexes(
    old_index_path: Path,
    new_index_path: Path,
    *,
    stats: bool = False,
    diagnostics: Optional[Diagnostics] = None,
) -> MultiFileCompareResult:
    """Compare every folder referenced by two ``context_main.json`` files.

    Any load failure aborts the whole comparison.
    """
    diagnostics = ensure_diagnostics(diagnostics, "drift")
    old_index = load_index(old_index_path, purpose="old file", diagnostics=diagnostics)
    new_index = load_index(new_index_path, purpose="new file", diagnostics=diagnostics)
    return compare_loaded(
        old_index,
        new_index,
        old_base=old_index_path.parent,
        new_base=new_index_path.parent,
        stats=stats,
    )


def compare_loaded(
    old_index: ContextIndex,
    new_index: ContextIndex,
    *,
    old_base: Path,
    new_base: Path,
    stats: bool = False,
) -> MultiFileCompareResult:
    old_folders = {folder.context_file: folder for folder in old_index.folders}
    new_folders = {folder.context_file: folder for folder in new_index.folders}

    results: List[FolderCompareResult] = []
    added_total = removed_total = changed_total = 0
    for context_file in sorted(set(old_folders) | set(new_folders)):
        before = old_folders.get(context_file)
        after = new_folders.get(context_file)
        if before is not None and after is not None:
            diff, token_delta = compare_files(
                old_base / before.context_file, new_base / after.context_file, stats=stats
            )
            added_total += len(diff.added)
            removed_total += len(diff.removed)
            changed_total += len(diff.changed)
            results.append(
                FolderCompareResult(
                    folder_path=after.path,
                    context_file=context_file,
                    status=FolderStatus(diff.status.value),
                    component_result=diff,
                    token_delta=token_delta,
                )
            )
        elif after is not None:
            added_total += after.bundles
            results.append(
                FolderCompareResult(folder_path=after.path, context_file=context_file, status=FolderStatus.ADDED)
            )
        elif before is not None:
            removed_total += before.bundles
            results.append(
                FolderCompareResult(folder_path=before.path, context_file=context_file, status=FolderStatus.ORPHANED)
            )

    results.sort(key=lambda item: item.folder_path)
    counts = {status: sum(1 for item in results if item.status is status) for status in FolderStatus}
    summary = CompareSummary(
        total_folders=len(results),
        added_folders=counts[FolderStatus.ADDED],
        orphaned_folders=counts[FolderStatus.ORPHANED],
        drift_folders=counts[FolderStatus.DRIFT],
        pass_folders=counts[FolderStatus.PASS],
        total_components_added=added_total,
        total_components_removed=removed_total,
        total_components_changed=changed_total,
    )
    drifted = summary.added_folders or summary.orphaned_folders or summary.drift_folders
    return MultiFileCompareResult(
        status=DiffStatus.DRIFT if drifted else DiffStatus.PASS,
        folders=tuple(results),
        summary=summary,
        orphaned_files=tuple(find_orphaned_files(old_index, new_index, old_base)),
    )


def approve(new_dir: Path, old_dir: Path, result: MultiFileCompareResult) -> List[str]:
    """Copy the new generation's context files and index over the old ones."""
    copied: List[str] = []
    for folder in result.folders:
        if folder.status is FolderStatus.ORPHANED:
            continue
        source = new_dir / folder.context_file
        target = old_dir / folder.context_file
        if source.resolve() == target.resolve():
            continue
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, target)
        except OSError as exc:
            raise ArtifactIOError.from_os_error(target, "context file", exc) from exc
        copied.append(folder.context_file)
    index_source = new_dir / INDEX_FILENAME
    index_target = old_dir / INDEX_FILENAME
    if index_source.resolve() != index_target.resolve():
        try:
            shutil.copyfile(index_source, index_target)
        except OSError as exc:
            raise ArtifactIOError.from_os_error(index_target, "index", exc) from exc
    LOGGER.info("Approved drift: updated %d context files", len(copied))
    return copied


def render_diff(result: DiffResult) -> List[str]:
    """Human-readable lines for a single-collection diff."""
    lines = [result.status.value]
    for entry_id in result.added:
        lines.append(f"  + {entry_id}")
    for entry_id in result.removed:
        lines.append(f"  - {entry_id}")
    for entry in result.changed:
        lines.append(f"  ~ {entry.id}")
        for delta in entry.deltas:
            lines.append(f"      {delta.type}: {delta.old!r} -> {delta.new!r}")
    return lines


def render_multi(result: MultiFileCompareResult, *, stats: bool = False) -> List[str]:
    summary = result.summary
    lines = [
        result.status.value,
        f"Folders: {summary.total_folders} total, {summary.pass_folders} pass, "
        f"{summary.drift_folders} drift, {summary.added_folders} added, "
        f"{summary.orphaned_folders} orphaned",
        f"Components: +{summary.total_components_added} "
        f"-{summary.total_components_removed} ~{summary.total_components_changed}",
    ]
    for folder in result.folders:
        lines.append(f"[{folder.status.value}] {folder.context_file}")
        if folder.component_result is not None and folder.status is FolderStatus.DRIFT:
            lines.extend(f"  {line}" for line in render_diff(folder.component_result)[1:])
        if stats and folder.token_delta is not None:
            lines.append(f"  tokens: {folder.token_delta.delta:+d}")
    for name in result.orphaned_files:
        lines.append(f"Orphaned on disk: {name}")
    return lines


__all__ = [
    "LiteSig",
    "TRACKED_FIELDS",
    "approve",
    "bundle_tokens",
    "compare_files",
    "compare_indexes",
    "compare_loaded",
    "diff_bundles",
    "diff_signatures",
    "lite_signatures",
    "render_diff",
    "render_multi",
]
