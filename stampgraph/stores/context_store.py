"""On-disk context artifacts: per-folder bundle files and the main index."""

from __future__ import annotations

import json
import math
from collections import defaultdict
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ..errors import ArtifactIOError, ManifestSchemaError
from ..logging import Diagnostics, ensure_diagnostics, get_logger
from ..models import INDEX_SCHEMA_VERSION, INDEX_TYPE, Bundle, ContextIndex, FolderInfo
from ..packer import SOURCE_TAG
from ..paths import display_path, file_name, folder_of

CONTEXT_FILENAME = "context.json"
INDEX_FILENAME = "context_main.json"
CONTEXT_SCHEMA = "https://stampgraph.dev/schemas/context/v0.1.json"

TokenEstimator = Callable[[str], int]

LOGGER = get_logger("stores.context")


def estimate_tokens(text: str) -> int:
    """Rough token count: one token per four characters, rounded up."""
    return math.ceil(len(text) / 4)


def detect_root_folder(relative_path: str, components: Sequence[str]) -> Tuple[bool, Optional[str]]:
    """Label folders that look like application entry points."""
    if relative_path == ".":
        return True, "Project Root"
    lowered = relative_path.lower()
    if "/app" in f"/{lowered}" and any(name in {"page.tsx", "layout.tsx"} for name in components):
        return True, "Next.js App"
    if lowered.startswith("examples/") and lowered.endswith("/src"):
        return True, f"Example: {relative_path.split('/')[1]}"
    if "tests/fixtures/" in lowered and lowered.endswith("/src"):
        return True, "Test Fixture"
    if relative_path == "src":
        return True, "Main Source"
    if lowered.startswith("apps/"):
        return True, f"App: {relative_path.split('/')[1]}"
    return False, None


def group_by_folder(bundles: Iterable[Bundle]) -> Dict[str, List[Bundle]]:
    grouped: Dict[str, List[Bundle]] = defaultdict(list)
    for bundle in bundles:
        grouped[folder_of(bundle.entry_id)].append(bundle)
    return {
        folder: sorted(items, key=lambda item: item.entry_id)
        for folder, items in sorted(grouped.items())
    }


def context_file_for(folder: str) -> str:
    return CONTEXT_FILENAME if folder == "." else f"{folder}/{CONTEXT_FILENAME}"


def format_bundles(bundles: Sequence[Bundle]) -> str:
    """Serialise a folder's bundles, each tagged with ``$schema`` and ``position``."""
    total = len(bundles)
    payload = []
    for position, bundle in enumerate(bundles, start=1):
        item: Dict[str, Any] = {"$schema": CONTEXT_SCHEMA, "position": f"{position}/{total}"}
        item.update(bundle.to_dict())
        payload.append(item)
    return json.dumps(payload, indent=2, ensure_ascii=False)


def check_index_schema(
    data: Any, path: Path | str, diagnostics: Optional[Diagnostics] = None
) -> None:
    """Reject foreign or newer index files; older versions only warn."""
    location = display_path(path)
    if not isinstance(data, dict):
        raise ManifestSchemaError(location, "type", INDEX_TYPE, type(data).__name__)
    if data.get("type") != INDEX_TYPE:
        raise ManifestSchemaError(location, "type", INDEX_TYPE, data.get("type"))
    version = data.get("schemaVersion")
    current = _parse_version(INDEX_SCHEMA_VERSION)
    parsed = _parse_version(version) if isinstance(version, str) else None
    if parsed is None or parsed > current:
        raise ManifestSchemaError(
            location, "schemaVersion", f"<= {INDEX_SCHEMA_VERSION}", version
        )
    if parsed < current:
        ensure_diagnostics(diagnostics, "stores.context").warn(
            "index",
            location,
            f"schemaVersion {version} is older than {INDEX_SCHEMA_VERSION}; reading in compatibility mode",
        )


def _parse_version(value: str) -> Optional[Tuple[int, ...]]:
    try:
        return tuple(int(part) for part in value.split("."))
    except ValueError:
        return None


def _read_json(path: Path, purpose: str) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ArtifactIOError.from_os_error(path, purpose, exc) from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ArtifactIOError(path, purpose, f"invalid JSON ({exc.msg} at line {exc.lineno})") from exc


def load_index(
    path: Path, *, purpose: str = "index", diagnostics: Optional[Diagnostics] = None
) -> ContextIndex:
    """Load and schema-check a ``context_main.json`` file."""
    data = _read_json(path, purpose)
    check_index_schema(data, path, diagnostics)
    try:
        return ContextIndex.from_dict(data)
    except (KeyError, TypeError, ValueError) as exc:
        raise ArtifactIOError(path, purpose, f"malformed index ({exc})") from exc


def load_bundles(path: Path, *, purpose: str) -> List[Bundle]:
    """Load every bundle stored in one folder context file."""
    data = _read_json(path, purpose)
    if not isinstance(data, list):
        raise ArtifactIOError(path, purpose, "expected a JSON array of bundles")
    try:
        return [Bundle.from_dict(item) for item in data]
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise ArtifactIOError(path, purpose, f"malformed bundle ({exc})") from exc


def find_orphaned_files(old: ContextIndex, new: ContextIndex, base_dir: Path) -> List[str]:
    """Context files listed only by ``old`` that still exist under ``base_dir``."""
    current = {folder.context_file for folder in new.folders}
    orphaned = [
        folder.context_file
        for folder in old.folders
        if folder.context_file not in current and (base_dir / folder.context_file).is_file()
    ]
    return sorted(set(orphaned))


def clean_orphaned_files(files: Iterable[str], base_dir: Path) -> int:
    """Delete orphaned context files; failures are logged and skipped."""
    deleted = 0
    for name in files:
        target = base_dir / name
        try:
            target.unlink()
        except OSError as exc:
            LOGGER.warning("Failed to delete %s: %s", display_path(target), exc)
            continue
        LOGGER.info("Deleted orphaned context file %s", name)
        deleted += 1
    return deleted


class ContextStore:
    """Writes folder context files and the main index below ``output_dir``."""

    def __init__(self, output_dir: Path, *, estimator: TokenEstimator = estimate_tokens) -> None:
        self.output_dir = output_dir
        self._estimator = estimator

    @property
    def index_path(self) -> Path:
        return self.output_dir / INDEX_FILENAME

    def write_folders(self, bundles: Sequence[Bundle]) -> List[FolderInfo]:
        infos: List[FolderInfo] = []
        for folder, items in group_by_folder(bundles).items():
            components = tuple(sorted(file_name(bundle.entry_id) for bundle in items))
            is_root, label = detect_root_folder(folder, components)
            output = format_bundles(items)
            context_file = context_file_for(folder)
            target = self.output_dir / context_file
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(output, encoding="utf-8")
            except OSError as exc:
                raise ArtifactIOError.from_os_error(target, "context file", exc) from exc
            LOGGER.debug("Wrote %s (%d bundles)", display_path(target), len(items))
            infos.append(
                FolderInfo(
                    path=folder,
                    context_file=context_file,
                    bundles=len(items),
                    components=components,
                    is_root=is_root,
                    root_label=label,
                    token_estimate=self._estimator(output),
                )
            )
        return infos

    def write_index(
        self,
        folders: Sequence[FolderInfo],
        *,
        total_components: int,
        total_bundles: int,
        created_at: Optional[str] = None,
    ) -> ContextIndex:
        index = ContextIndex(
            folders=tuple(sorted(folders, key=lambda folder: folder.path)),
            total_components=total_components,
            total_bundles=total_bundles,
            total_token_estimate=sum(folder.token_estimate for folder in folders),
            project_root=".",
            created_at=created_at or datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            source=SOURCE_TAG,
        )
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            self.index_path.write_text(json.dumps(index.to_dict(), indent=2), encoding="utf-8")
        except OSError as exc:
            raise ArtifactIOError.from_os_error(self.index_path, "index", exc) from exc
        return index

    def write(
        self,
        bundles: Sequence[Bundle],
        *,
        total_components: int,
        created_at: Optional[str] = None,
    ) -> ContextIndex:
        folders = self.write_folders(bundles)
        return self.write_index(
            folders,
            total_components=total_components,
            total_bundles=len(bundles),
            created_at=created_at,
        )


__all__ = [
    "CONTEXT_FILENAME",
    "CONTEXT_SCHEMA",
    "ContextStore",
    "INDEX_FILENAME",
    "check_index_schema",
    "clean_orphaned_files",
    "context_file_for",
    "detect_root_folder",
    "estimate_tokens",
    "find_orphaned_files",
    "format_bundles",
    "group_by_folder",
    "load_bundles",
    "load_index",
]
