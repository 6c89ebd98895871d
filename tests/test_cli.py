"""CLI parser and exit code tests."""

from __future__ import annotations

import json

import pytest

from stampgraph.cli import EXIT_DRIFT, EXIT_ERROR, _build_parser, main
from tests._fixtures.repo_builder import RepoBuilder


def test_cli_accepts_verbose_before_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["--verbose", "context"])
    assert args.verbose is True
    assert args.command == "context"


def test_cli_accepts_verbose_after_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["compare", "--verbose"])
    assert args.verbose is True
    assert args.command == "compare"


def test_cli_parses_budget_options() -> None:
    parser = _build_parser()
    args = parser.parse_args(
        ["context", "app", "--depth", "2", "--max-nodes", "10", "--include-code", "full", "--profile", "llm-safe"]
    )
    assert args.path == "app"
    assert args.depth == 2
    assert args.max_nodes == 10
    assert args.include_code == "full"
    assert args.profile == "llm-safe"
    assert args.strict_missing is None


def test_cli_rejects_unknown_include_code() -> None:
    parser = _build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["context", "--include-code", "everything"])


def test_context_command_reports_summary(sample_project: RepoBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    main(["context", str(sample_project.path())])

    out = capsys.readouterr().out
    assert "2 bundles in 2 folders written" in out
    assert (sample_project.path() / "context_main.json").is_file()


def test_compare_passes_with_exit_zero(sample_project: RepoBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    root = str(sample_project.path())
    main(["context", root])
    capsys.readouterr()

    main(["compare", "--path", root])

    assert capsys.readouterr().out.splitlines()[0] == "PASS"


def test_compare_exits_with_drift_code(sample_project: RepoBuilder) -> None:
    root = str(sample_project.path())
    main(["context", root])
    sample_project.write({"src/utils/format.ts": "export function formatDate(value: Date, locale: string) {}\nexport const x = 1;\n"})

    with pytest.raises(SystemExit) as excinfo:
        main(["compare", "--path", root])

    assert excinfo.value.code == EXIT_DRIFT


def test_compare_approve_exits_zero(sample_project: RepoBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    root = str(sample_project.path())
    main(["context", root])
    sample_project.write({"src/utils/format.ts": "export const VERSION = '2';\n"})

    main(["compare", "--path", root, "--approve"])

    assert "Drift approved" in capsys.readouterr().out
    main(["compare", "--path", root])


def test_compare_json_output(sample_project: RepoBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    root = str(sample_project.path())
    main(["context", root])
    capsys.readouterr()

    main(["compare", "--path", root, "--json"])

    payload = json.loads(capsys.readouterr().out)
    assert payload["status"] == "PASS"
    assert payload["summary"]["totalFolders"] == 2


def test_compare_without_baseline_is_an_error(sample_project: RepoBuilder) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["compare", "--path", str(sample_project.path())])

    assert excinfo.value.code == EXIT_ERROR


def test_compare_requires_two_files(sample_project: RepoBuilder) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["compare", str(sample_project.path() / "context_main.json")])

    assert excinfo.value.code == EXIT_ERROR


def test_compare_explicit_index_files(sample_project: RepoBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    root = sample_project.path()
    main(["context", str(root)])
    capsys.readouterr()
    index = str(root / "context_main.json")

    main(["compare", index, index])

    assert capsys.readouterr().out.splitlines()[0] == "PASS"


def test_clean_command(sample_project: RepoBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    root = sample_project.path()
    main(["context", str(root)])

    main(["clean", str(root)])

    assert "Removed 3 generated files" in capsys.readouterr().out
    assert not (root / "context_main.json").exists()
