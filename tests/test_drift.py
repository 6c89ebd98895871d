"""Tests for drift detection between context generations."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

import pytest

from stampgraph.drift import (
    approve,
    compare_files,
    compare_indexes,
    diff_bundles,
    render_diff,
    render_multi,
)
from stampgraph.errors import ArtifactIOError, ManifestSchemaError
from stampgraph.graph import build_graph
from stampgraph.models import (
    Bundle,
    CodeInclusion,
    Contract,
    DiffStatus,
    FolderStatus,
    NamedExports,
    OpaqueNamedExport,
    export_kind,
)
from stampgraph.packer import PackOptions, pack_all
from stampgraph.stores.context_store import INDEX_FILENAME, ContextStore
from tests._fixtures.contracts import make_contract

CREATED_AT = "2024-01-01T00:00:00Z"


def _baseline() -> list[Contract]:
    return [
        make_contract("src/App.tsx", components=["Button"], hooks=["useState"]),
        make_contract("src/ui/Button.tsx", props={"label": "string"}),
        make_contract("src/ui/Card.tsx"),
        make_contract("src/lib/format.ts", kind="ts:module"),
    ]


def _bundles(contracts: Sequence[Contract], created_at: str = CREATED_AT) -> list[Bundle]:
    graph = build_graph(contracts)
    return pack_all(graph, options=PackOptions(depth=2, include_code=CodeInclusion.NONE), created_at=created_at)


def _generation(directory: Path, contracts: Sequence[Contract], created_at: str = CREATED_AT) -> Path:
    ContextStore(directory).write(
        _bundles(contracts, created_at), total_components=len(contracts), created_at=created_at
    )
    return directory / INDEX_FILENAME


def test_diff_is_idempotent() -> None:
    bundles = _bundles(_baseline())

    result = diff_bundles(bundles, bundles)

    assert result.status is DiffStatus.PASS
    assert result.added == result.removed == result.changed == ()


def test_diff_ignores_timestamps() -> None:
    result = diff_bundles(_bundles(_baseline()), _bundles(_baseline(), "2031-01-01T00:00:00Z"))

    assert result.status is DiffStatus.PASS


def test_added_and_removed_are_symmetric() -> None:
    old = _bundles(_baseline())
    new = _bundles(_baseline() + [make_contract("src/ui/Modal.tsx")])

    forward = diff_bundles(old, new)
    backward = diff_bundles(new, old)

    assert forward.added == ("src/ui/modal.tsx",)
    assert forward.removed == ()
    assert backward.removed == forward.added
    assert backward.added == forward.removed


def test_changed_component_reports_one_hash_delta() -> None:
    changed = _baseline()
    changed[0] = make_contract("src/App.tsx", components=["Button"], hooks=["useEffect", "useState"])

    result = diff_bundles(_bundles(_baseline()), _bundles(changed))

    assert result.status is DiffStatus.DRIFT
    assert [entry.id for entry in result.changed] == ["src/app.tsx"]
    deltas = result.changed[0].deltas
    assert [delta.type for delta in deltas] == ["hash", "hooks"]
    assert sum(1 for delta in deltas if delta.type == "hash") == 1
    assert deltas[1].old == ["useState"]
    assert deltas[1].new == ["useEffect", "useState"]


def test_export_kind_change_is_reported() -> None:
    changed = _baseline()
    changed[3] = make_contract("src/lib/format.ts", kind="ts:module", exports=NamedExports(("format",)))

    result = diff_bundles(_bundles(_baseline()), _bundles(changed))

    deltas = {delta.type: delta for delta in result.changed[0].deltas}
    assert deltas["exports"].old == "default"
    assert deltas["exports"].new == "named"


def test_opaque_named_export_counts_as_named() -> None:
    changed = _baseline()
    changed[3] = make_contract("src/lib/format.ts", kind="ts:module", exports=OpaqueNamedExport())
    before = _baseline()
    before[3] = make_contract("src/lib/format.ts", kind="ts:module", exports=NamedExports(("format",)))

    result = diff_bundles(_bundles(before), _bundles(changed))

    assert export_kind(OpaqueNamedExport()) == "named"
    assert [delta.type for delta in result.changed[0].deltas] == ["hash"]


def test_compare_files_with_token_stats(tmp_path: Path) -> None:
    _generation(tmp_path / "old", _baseline())
    changed = _baseline()
    changed[1] = make_contract("src/ui/Button.tsx", props={"label": "string", "size": "number"})
    _generation(tmp_path / "new", changed)

    result, tokens = compare_files(
        tmp_path / "old" / "src" / "context.json",
        tmp_path / "new" / "src" / "context.json",
        stats=True,
    )

    assert result.status is DiffStatus.DRIFT
    assert [entry.id for entry in result.changed] == ["src/ui/button.tsx"]
    assert tokens is not None
    assert tokens.delta > 0


def test_multi_compare_pass(tmp_path: Path) -> None:
    old = _generation(tmp_path / "old", _baseline())
    new = _generation(tmp_path / "new", _baseline(), created_at="2031-01-01T00:00:00Z")

    result = compare_indexes(old, new)

    assert result.status is DiffStatus.PASS
    assert all(folder.status is FolderStatus.PASS for folder in result.folders)
    assert result.summary.pass_folders == result.summary.total_folders == 3
    assert result.orphaned_files == ()


def test_multi_compare_added_and_orphaned_folders(tmp_path: Path) -> None:
    old = _generation(tmp_path / "old", _baseline())
    changed = [contract for contract in _baseline() if contract.entry_id != "src/lib/format.ts"]
    changed += [make_contract("src/pages/Home.tsx"), make_contract("src/pages/About.tsx")]
    new = _generation(tmp_path / "new", changed)

    result = compare_indexes(old, new)

    statuses = {folder.context_file: folder.status for folder in result.folders}
    assert statuses["src/lib/context.json"] is FolderStatus.ORPHANED
    assert statuses["src/pages/context.json"] is FolderStatus.ADDED
    assert result.status is DiffStatus.DRIFT
    assert result.summary.added_folders == 1
    assert result.summary.orphaned_folders == 1
    assert result.summary.total_components_added == 2
    assert result.summary.total_components_removed == 1
    assert result.orphaned_files == ("src/lib/context.json",)


def test_orphaned_files_require_presence_on_disk(tmp_path: Path) -> None:
    old = _generation(tmp_path / "old", _baseline())
    (tmp_path / "old" / "src" / "lib" / "context.json").unlink()
    changed = [contract for contract in _baseline() if contract.entry_id != "src/lib/format.ts"]
    new = _generation(tmp_path / "new", changed)

    result = compare_indexes(old, new)

    assert result.orphaned_files == ()


def test_multi_compare_counts_changes_in_drifted_folders(tmp_path: Path) -> None:
    old = _generation(tmp_path / "old", _baseline())
    changed = _baseline()
    changed[2] = make_contract("src/ui/Card.tsx", components=["Badge"])
    new = _generation(tmp_path / "new", changed)

    result = compare_indexes(old, new)

    drifted = [folder for folder in result.folders if folder.status is FolderStatus.DRIFT]
    assert [folder.context_file for folder in drifted] == ["src/ui/context.json"]
    assert result.summary.total_components_changed == 1
    assert result.to_dict()["summary"]["driftFolders"] == 1


def test_multi_compare_single_hash_change_drifts_one_folder(tmp_path: Path) -> None:
    old_card = make_contract("src/ui/Card.tsx", props={"title": "string"})
    new_card = make_contract("src/ui/Card.tsx", props={"title": "number"})
    old_contracts = _baseline()
    old_contracts[2] = old_card
    new_contracts = _baseline()
    new_contracts[2] = new_card
    old = _generation(tmp_path / "old", old_contracts)
    new = _generation(tmp_path / "new", new_contracts)

    result = compare_indexes(old, new)

    assert result.status is DiffStatus.DRIFT
    statuses = {folder.context_file: folder.status for folder in result.folders}
    assert statuses == {
        "src/context.json": FolderStatus.PASS,
        "src/lib/context.json": FolderStatus.PASS,
        "src/ui/context.json": FolderStatus.DRIFT,
    }
    drifted = next(folder for folder in result.folders if folder.status is FolderStatus.DRIFT)
    assert drifted.component_result is not None
    (changed,) = drifted.component_result.changed
    assert changed.id == "src/ui/card.tsx"
    assert [(delta.type, delta.old, delta.new) for delta in changed.deltas] == [
        ("hash", old_card.semantic_hash, new_card.semantic_hash)
    ]
    assert old_card.semantic_hash != new_card.semantic_hash


def test_missing_context_file_aborts_compare(tmp_path: Path) -> None:
    old = _generation(tmp_path / "old", _baseline())
    new = _generation(tmp_path / "new", _baseline())
    (tmp_path / "new" / "src" / "ui" / "context.json").unlink()

    with pytest.raises(ArtifactIOError) as excinfo:
        compare_indexes(old, new)

    assert excinfo.value.purpose == "new file"
    assert excinfo.value.not_found is True


def test_foreign_index_aborts_compare(tmp_path: Path) -> None:
    old = _generation(tmp_path / "old", _baseline())
    new = tmp_path / "new" / INDEX_FILENAME
    new.parent.mkdir()
    new.write_text('{"type": "SomethingElse", "schemaVersion": "0.1"}', encoding="utf-8")

    with pytest.raises(ManifestSchemaError):
        compare_indexes(old, new)


def test_approve_copies_new_generation(tmp_path: Path) -> None:
    old = _generation(tmp_path / "old", _baseline())
    changed = _baseline()
    changed[2] = make_contract("src/ui/Card.tsx", components=["Badge"])
    new = _generation(tmp_path / "new", changed)
    result = compare_indexes(old, new)

    copied = approve(tmp_path / "new", tmp_path / "old", result)

    assert "src/ui/context.json" in copied
    assert compare_indexes(old, new).status is DiffStatus.PASS


def test_render_helpers() -> None:
    changed = _baseline()
    changed[0] = make_contract("src/App.tsx", components=["Button"], hooks=["useEffect"])
    result = diff_bundles(_bundles(_baseline()), _bundles(changed))

    lines = render_diff(result)

    assert lines[0] == "DRIFT"
    assert "  ~ src/app.tsx" in lines
    assert any(line.strip().startswith("hooks:") for line in lines)


def test_render_multi_lists_orphans(tmp_path: Path) -> None:
    old = _generation(tmp_path / "old", _baseline())
    changed = [contract for contract in _baseline() if contract.entry_id != "src/lib/format.ts"]
    new = _generation(tmp_path / "new", changed)

    lines = render_multi(compare_indexes(old, new, stats=True), stats=True)

    assert lines[0] == "DRIFT"
    assert "[ORPHANED] src/lib/context.json" in lines
    assert "Orphaned on disk: src/lib/context.json" in lines
