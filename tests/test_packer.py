"""Tests for the bundle packer."""

from __future__ import annotations

from pathlib import Path

import pytest

from stampgraph.errors import (
    ArtifactIOError,
    EntryNotFoundError,
    HashLockError,
    MissingDependencyError,
)
from stampgraph.graph import build_graph
from stampgraph.hashing import file_hash, is_valid_bundle_hash
from stampgraph.logging import Diagnostics
from stampgraph.models import CodeInclusion, DependencyGraph
from stampgraph.packer import PackOptions, SOURCE_TAG, collect, extract_code_header, pack, pack_all
from stampgraph.sanitizer import PLACEHOLDER, parse_security_report
from tests._fixtures.contracts import make_contract

CREATED_AT = "2024-01-01T00:00:00Z"

APP_SOURCE = """/**
 * @uif Contract 0.4
 * Description: App - Presentational component
 */
const apiKey = "sk_live_1234567890abcdef";

export default function App() {
  return <Header />;
}
"""


def _graph(**overrides: str) -> DependencyGraph:
    return build_graph(
        [
            make_contract(
                "src/App.tsx",
                components=["Footer", "Header"],
                file_hash=overrides.get("app_hash", file_hash(APP_SOURCE)),
            ),
            make_contract("src/Header.tsx", components=["Logo"]),
            make_contract("src/Footer.tsx", components=["ThirdParty"]),
            make_contract("src/Logo.tsx"),
        ]
    )


def _options(**kwargs: object) -> PackOptions:
    kwargs.setdefault("include_code", CodeInclusion.NONE)
    return PackOptions(**kwargs)  # type: ignore[arg-type]


def test_pack_is_deterministic() -> None:
    graph = _graph()

    first = pack("src/App.tsx", graph, _options(depth=2), created_at=CREATED_AT)
    second = pack("src/App.tsx", _graph(), _options(depth=2), created_at=CREATED_AT)

    assert first.to_dict() == second.to_dict()
    assert is_valid_bundle_hash(first.bundle_hash)
    assert first.source == SOURCE_TAG


def test_bundle_hash_ignores_timestamp() -> None:
    graph = _graph()

    early = pack("src/App.tsx", graph, _options(), created_at=CREATED_AT)
    late = pack("src/App.tsx", graph, _options(), created_at="2030-06-01T12:00:00Z")

    assert early.bundle_hash == late.bundle_hash


def test_nodes_and_edges_are_sorted() -> None:
    bundle = pack("src/App.tsx", _graph(), _options(depth=2), created_at=CREATED_AT)

    ids = [node.entry_id for node in bundle.nodes]
    assert ids == sorted(ids)
    assert ids == ["src/App.tsx", "src/Footer.tsx", "src/Header.tsx", "src/Logo.tsx"]
    assert list(bundle.edges) == sorted(bundle.edges)
    assert bundle.edges == (
        ("src/App.tsx", "src/Footer.tsx"),
        ("src/App.tsx", "src/Header.tsx"),
        ("src/Header.tsx", "src/Logo.tsx"),
    )


def test_missing_only_reports_expanded_nodes() -> None:
    graph = _graph()

    shallow = pack("src/App.tsx", graph, _options(depth=1), created_at=CREATED_AT)
    deep = pack("src/App.tsx", graph, _options(depth=2), created_at=CREATED_AT)

    assert shallow.missing_names == []
    assert deep.missing_names == ["ThirdParty"]
    assert deep.missing[0].referenced_by == "src/Footer.tsx"
    assert deep.to_dict()["meta"]["missing"] == ["ThirdParty"]


def test_depth_zero_packs_only_the_entry() -> None:
    bundle = pack("src/App.tsx", _graph(), _options(depth=0), created_at=CREATED_AT)

    assert [node.entry_id for node in bundle.nodes] == ["src/App.tsx"]
    assert bundle.edges == ()


def test_node_budget_is_never_exceeded() -> None:
    graph = _graph()

    bundle = pack("src/App.tsx", graph, _options(depth=2, max_nodes=2), created_at=CREATED_AT)

    assert len(bundle.nodes) == 2
    assert bundle.truncated == ("src/Header.tsx",)
    assert bundle.to_dict()["meta"]["truncated"] == ["src/Header.tsx"]


def test_larger_budgets_include_superset() -> None:
    graph = _graph()
    previous: set[str] = set()
    for depth in range(0, 4):
        for max_nodes in range(1, 6):
            included, _, _ = collect(graph, "src/App.tsx", depth, max_nodes)
            assert len(included) <= max_nodes
            smaller_depth, _, _ = collect(graph, "src/App.tsx", max(depth - 1, 0), max_nodes)
            smaller_budget, _, _ = collect(graph, "src/App.tsx", depth, max(max_nodes - 1, 1))
            assert set(smaller_depth) <= set(included)
            assert set(smaller_budget) <= set(included)
        assert previous <= set(included)
        previous = set(included)


def test_strict_missing_raises() -> None:
    with pytest.raises(MissingDependencyError) as excinfo:
        pack("src/App.tsx", _graph(), _options(depth=2, strict_missing=True), created_at=CREATED_AT)

    assert excinfo.value.missing == ["ThirdParty"]


def test_unknown_entry_lists_suggestions() -> None:
    with pytest.raises(EntryNotFoundError) as excinfo:
        pack("lib/logo.tsx", _graph(), _options())

    assert excinfo.value.suggestions == ["src/Logo.tsx"]


def test_entry_lookup_tolerates_case_and_separators() -> None:
    bundle = pack("src\\app.tsx", _graph(), _options(), created_at=CREATED_AT)

    assert bundle.entry_id == "src/App.tsx"


def test_header_mode_attaches_sanitized_header() -> None:
    bundle = pack(
        "src/App.tsx",
        _graph(),
        _options(depth=0, include_code=CodeInclusion.HEADER),
        sources={"src/App.tsx": APP_SOURCE},
        created_at=CREATED_AT,
    )

    node = bundle.nodes[0]
    assert node.code_header is not None
    assert node.code_header.startswith("/**")
    assert "@uif Contract 0.4" in node.code_header
    assert node.code is None
    assert "code" not in node.to_dict()


def test_full_mode_replaces_reported_secrets() -> None:
    report = parse_security_report(
        {
            "matches": [
                {
                    "file": "src/App.tsx",
                    "line": 5,
                    "type": "API Key",
                    "snippet": 'apiKey = "sk_live_1234567890abcdef"',
                }
            ]
        }
    )

    bundle = pack(
        "src/App.tsx",
        _graph(),
        _options(depth=0, include_code=CodeInclusion.FULL),
        sources={"src/App.tsx": APP_SOURCE},
        report=report,
        created_at=CREATED_AT,
    )

    code = bundle.nodes[0].code
    assert code is not None
    assert "sk_live_1234567890abcdef" not in code
    assert f'const apiKey = "{PLACEHOLDER}";' in code


def test_missing_source_is_tolerated_by_default(diagnostics: Diagnostics) -> None:
    bundle = pack(
        "src/Logo.tsx",
        _graph(),
        _options(include_code=CodeInclusion.HEADER),
        root=Path("/nonexistent-project"),
        diagnostics=diagnostics,
        created_at=CREATED_AT,
    )

    assert bundle.nodes[0].code_header is None
    assert diagnostics.warnings == ["packer: src/Logo.tsx: source unavailable, code omitted"]


def test_missing_source_raises_when_not_allowed(tmp_path: Path) -> None:
    with pytest.raises(ArtifactIOError) as excinfo:
        pack(
            "src/Logo.tsx",
            _graph(),
            _options(include_code=CodeInclusion.HEADER, allow_missing=False),
            root=tmp_path,
        )

    assert excinfo.value.not_found is True


def test_hash_lock_accepts_unchanged_sources() -> None:
    bundle = pack(
        "src/App.tsx",
        _graph(),
        _options(depth=0, hash_lock=True),
        sources={"src/App.tsx": APP_SOURCE},
        created_at=CREATED_AT,
    )

    assert bundle.entry_id == "src/App.tsx"


def test_hash_lock_rejects_modified_sources() -> None:
    with pytest.raises(HashLockError):
        pack(
            "src/App.tsx",
            _graph(),
            _options(depth=0, hash_lock=True),
            sources={"src/App.tsx": APP_SOURCE + "\nexport const extra = 1;\n"},
        )


def test_invalid_options_are_rejected() -> None:
    with pytest.raises(ValueError):
        PackOptions(depth=-1)
    with pytest.raises(ValueError):
        PackOptions(max_nodes=0)


def test_extract_code_header() -> None:
    assert extract_code_header("const a = 1;\n") is None
    assert extract_code_header(APP_SOURCE).endswith("*/")


def test_pack_all_defaults_to_roots_with_shared_timestamp() -> None:
    graph = _graph()
    graph_with_extra = build_graph(
        [node.contract for node in graph.components.values()] + [make_contract("src/Other.tsx")]
    )

    bundles = pack_all(graph_with_extra, options=_options())

    assert [bundle.entry_id for bundle in bundles] == ["src/App.tsx", "src/Other.tsx"]
    assert len({bundle.created_at for bundle in bundles}) == 1
