"""Pipeline orchestration for the context, compare and clean flows."""

from __future__ import annotations

import tempfile
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, List, Optional

from .config import (
    CONFIG_FILENAME,
    ConfigError,
    ContextConfig,
    StampGraphConfig,
    apply_profile,
    load_config,
)
from .contracts import build_contracts, contract_summary
from .drift import approve, compare_files, compare_indexes
from .errors import ArtifactIOError
from .extractors import read_source, try_extract
from .graph import build_graph, graph_stats
from .hashing import file_hash
from .logging import Diagnostics, get_logger
from .models import (
    Bundle,
    CodeInclusion,
    ContextIndex,
    Contract,
    DependencyGraph,
    DiffResult,
    MultiFileCompareResult,
    SourceFact,
)
from .packer import PackOptions, pack_all
from .paths import display_path, normalize_entry_id
from .repo_scanner import RepoScanner, SourceManifest
from .sanitizer import load_security_report
from .stores.context_store import INDEX_FILENAME, ContextStore, clean_orphaned_files, load_index
from .stores.contract_cache import ContractCache, cache_signature


@dataclass
class ContextRun:
    """Result of a context generation run."""

    output_dir: Path
    index: ContextIndex
    bundles: List[Bundle]
    contracts: List[Contract]
    graph: DependencyGraph
    warnings: List[str] = field(default_factory=list)


@dataclass
class CompareOutcome:
    """Result of a compare run; exactly one of ``single``/``multi`` is set."""

    single: Optional[DiffResult] = None
    multi: Optional[MultiFileCompareResult] = None
    approved: bool = False
    cleaned: int = 0

    @property
    def drift(self) -> bool:
        result = self.multi if self.multi is not None else self.single
        return result is not None and result.status.value == "DRIFT"


class Pipeline:
    """Coordinates scanning, extraction, graph building, packing and output."""

    def __init__(self, scanner: RepoScanner | None = None, *, use_cache: bool = True) -> None:
        self._scanner = scanner
        self.use_cache = use_cache
        self.logger = get_logger("pipeline")

    def load_config(self, root: Path) -> StampGraphConfig:
        try:
            return load_config(root / CONFIG_FILENAME)
        except ConfigError as exc:
            self.logger.warning("Ignoring unreadable %s: %s", CONFIG_FILENAME, exc)
            return StampGraphConfig(root=root)

    def run_context(
        self,
        path: str | Path,
        *,
        target: str | None = None,
        overrides: Optional[Dict[str, object]] = None,
        output_dir: Path | None = None,
        created_at: str | None = None,
    ) -> ContextRun:
        """Generate context files for the project at ``path``."""
        root = Path(path).expanduser().resolve()
        self.logger.info("Starting context run for %s", root)
        config = self.load_config(root)
        context = self._effective_context(config.context, overrides or {})
        diagnostics = Diagnostics(self.logger)

        scanner = self._scanner or RepoScanner(config)
        manifest = scanner.scan(root, target)
        self.logger.debug("Scanner discovered %d files", len(manifest.files))

        contracts, sources = self._build_contracts(manifest, context.preset, diagnostics)
        graph = build_graph(contracts, diagnostics=diagnostics.child("graph"), hash_indices=context.hash_indices)
        stats = graph_stats(graph)
        self.logger.debug(
            "Graph: %d nodes, %d edges, %d roots", stats.total_nodes, stats.total_edges, stats.roots
        )

        report = None
        if context.include_code != CodeInclusion.NONE.value:
            report = load_security_report(root / config.security_report, root)
        options = PackOptions(
            depth=context.depth,
            max_nodes=context.max_nodes,
            include_code=CodeInclusion(context.include_code),
            strict_missing=context.strict_missing,
            hash_lock=context.hash_lock,
        )
        bundles = pack_all(
            graph,
            options=options,
            root=root,
            sources=sources,
            report=report,
            diagnostics=diagnostics.child("packer"),
            created_at=created_at,
        )

        destination = output_dir or (root / context.output_dir)
        store = ContextStore(destination)
        index = store.write(bundles, total_components=len(contracts), created_at=created_at)
        self.logger.info(
            "Wrote %d bundles across %d folders to %s",
            len(bundles),
            index.total_folders,
            display_path(store.index_path),
        )
        return ContextRun(
            output_dir=destination,
            index=index,
            bundles=bundles,
            contracts=contracts,
            graph=graph,
            warnings=diagnostics.warnings,
        )

    def run_compare(
        self,
        path: str | Path,
        *,
        overrides: Optional[Dict[str, object]] = None,
        stats: bool = False,
        approve_changes: bool = False,
        clean_orphaned: bool = False,
    ) -> CompareOutcome:
        """Regenerate into a scratch directory and compare it with the stored context."""
        root = Path(path).expanduser().resolve()
        config = self.load_config(root)
        context = self._effective_context(config.context, overrides or {})
        baseline_dir = root / context.output_dir
        baseline = baseline_dir / INDEX_FILENAME
        if not baseline.exists():
            raise ArtifactIOError(baseline, "old file", "file not found; run 'stampgraph context' first", not_found=True)

        with tempfile.TemporaryDirectory(prefix="stampgraph-") as scratch:
            scratch_dir = Path(scratch)
            self.run_context(root, overrides=overrides, output_dir=scratch_dir)
            result = compare_indexes(baseline, scratch_dir / INDEX_FILENAME, stats=stats)
            outcome = CompareOutcome(multi=result)
            if approve_changes and result.status.value == "DRIFT":
                approve(scratch_dir, baseline_dir, result)
                outcome.approved = True
                if clean_orphaned and result.orphaned_files:
                    outcome.cleaned = clean_orphaned_files(result.orphaned_files, baseline_dir)
        return outcome

    def run_compare_paths(self, old: Path, new: Path, *, stats: bool = False) -> CompareOutcome:
        """Compare two explicit artifacts: index files or folder context files."""
        if old.name == INDEX_FILENAME and new.name == INDEX_FILENAME:
            return CompareOutcome(multi=compare_indexes(old, new, stats=stats))
        result, _ = compare_files(old, new, stats=stats)
        return CompareOutcome(single=result)

    def run_clean(self, path: str | Path, *, output_dir: str | None = None, purge_cache: bool = False) -> List[str]:
        """Delete generated context files listed by the stored index."""
        root = Path(path).expanduser().resolve()
        config = self.load_config(root)
        base = root / (output_dir or config.context.output_dir)
        index_path = base / INDEX_FILENAME
        removed: List[str] = []
        if index_path.exists():
            index = load_index(index_path)
            files = [folder.context_file for folder in index.folders if (base / folder.context_file).is_file()]
            clean_orphaned_files(files, base)
            removed.extend(files)
            clean_orphaned_files([INDEX_FILENAME], base)
            removed.append(INDEX_FILENAME)
        if purge_cache:
            cache = ContractCache.for_root(root)
            cache.clear()
            cache.persist()
        return removed

    # ------------------------------------------------------------------
    # Internal helpers

    def _effective_context(self, base: ContextConfig, overrides: Dict[str, object]) -> ContextConfig:
        context = apply_profile(replace(base), overrides.get("profile") or base.profile)  # type: ignore[arg-type]
        for key, value in overrides.items():
            if key == "profile" or value is None:
                continue
            if not hasattr(context, key):
                raise ConfigError(f"Unknown context option '{key}'")
            setattr(context, key, value)
        return context

    def _build_contracts(
        self, manifest: SourceManifest, preset: str, diagnostics: Diagnostics
    ) -> tuple[List[Contract], Dict[str, str]]:
        cache = ContractCache.for_root(manifest.root) if self.use_cache else ContractCache(None)
        signature = cache_signature(preset)
        extract_diag = diagnostics.child("extract")
        by_id: Dict[str, Contract] = {}
        sources: Dict[str, str] = {}
        pending: List[tuple[SourceFact, str]] = []
        order = [normalize_entry_id(entry_id) for entry_id in manifest.relative()]
        for path, entry_id in zip(manifest.files, order):
            text = read_source(path, entry_id, extract_diag)
            if text is None:
                continue
            sources[entry_id] = text
            cached = cache.get(entry_id, signature=signature, fingerprint=file_hash(text))
            if cached is not None:
                by_id[entry_id] = cached
                continue
            fact = try_extract(entry_id, text, diagnostics=extract_diag)
            if fact is not None:
                pending.append((fact, text))
        for contract in build_contracts(pending, preset=preset, diagnostics=diagnostics):
            self.logger.debug("Built %s: %s", contract.entry_id, contract_summary(contract))
            cache.store(contract, signature=signature)
            by_id[contract.entry_id] = contract
        contracts = [by_id[entry_id] for entry_id in order if entry_id in by_id]
        cache.prune(contract.entry_id for contract in contracts)
        cache.persist()
        return contracts, sources


__all__ = ["CompareOutcome", "ContextRun", "Pipeline"]
