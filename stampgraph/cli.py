"""CLI entrypoints for stampgraph commands."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from .config import INCLUDE_CODE_MODES, PRESETS, PROFILES, ConfigError
from .drift import render_diff, render_multi
from .errors import StampGraphError
from .logging import configure_logging
from .pipeline import CompareOutcome, Pipeline

EXIT_OK = 0
EXIT_DRIFT = 1
EXIT_ERROR = 2


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_budget_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--depth", type=int, help="Dependency hops to follow from each entry.")
    parser.add_argument("--max-nodes", type=int, help="Upper bound on nodes per bundle.")
    parser.add_argument(
        "--include-code",
        choices=INCLUDE_CODE_MODES,
        help="Attach no code, the @uif header, or the full sanitized source.",
    )
    parser.add_argument("--profile", choices=sorted(PROFILES), help="Apply a named budget profile.")
    parser.add_argument("--preset", choices=PRESETS, help="Filter emitted events through a contract preset.")
    parser.add_argument(
        "--strict-missing",
        action="store_true",
        default=None,
        help="Fail when a bundle references dependencies without contracts.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stampgraph",
        description="Generate contract bundles for TypeScript projects and detect drift.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    context_parser = subparsers.add_parser(
        "context",
        help="Scan a project and write per-folder context files.",
    )
    _add_verbose_option(context_parser, suppress_default=True)
    context_parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the project root (defaults to current directory).",
    )
    context_parser.add_argument("--target", help="Restrict the scan to a sub-path of the project.")
    context_parser.add_argument("--out", help="Directory for generated context files.")
    _add_budget_options(context_parser)
    context_parser.add_argument(
        "--hash-lock",
        action="store_true",
        default=None,
        help="Fail when a source file changed after its contract was built.",
    )
    context_parser.add_argument(
        "--hash-indices",
        action="store_true",
        default=None,
        help="Compute structure and signature hash indices for the graph.",
    )
    context_parser.add_argument("--no-cache", action="store_true", help="Ignore the contract cache.")

    compare_parser = subparsers.add_parser(
        "compare",
        help="Compare two generations of context files.",
    )
    _add_verbose_option(compare_parser, suppress_default=True)
    compare_parser.add_argument(
        "files",
        nargs="*",
        help="Old and new context files. Without them the project is regenerated and compared.",
    )
    compare_parser.add_argument("--path", default=".", help="Project root for auto mode.")
    compare_parser.add_argument("--stats", action="store_true", help="Report token deltas per folder.")
    compare_parser.add_argument("--approve", action="store_true", help="Accept drift and update stored files.")
    compare_parser.add_argument(
        "--clean-orphaned",
        action="store_true",
        help="With --approve, delete context files no longer referenced by the index.",
    )
    compare_parser.add_argument("--json", action="store_true", help="Print the result as JSON.")
    _add_budget_options(compare_parser)

    clean_parser = subparsers.add_parser(
        "clean",
        help="Delete generated context files.",
    )
    _add_verbose_option(clean_parser, suppress_default=True)
    clean_parser.add_argument("path", nargs="?", default=".", help="Path to the project root.")
    clean_parser.add_argument("--out", help="Directory holding generated context files.")
    clean_parser.add_argument("--all", action="store_true", help="Also clear the contract cache.")

    return parser


def _overrides(args: argparse.Namespace) -> dict[str, object]:
    return {
        "depth": getattr(args, "depth", None),
        "max_nodes": getattr(args, "max_nodes", None),
        "include_code": getattr(args, "include_code", None),
        "profile": getattr(args, "profile", None),
        "preset": getattr(args, "preset", None),
        "strict_missing": getattr(args, "strict_missing", None),
        "hash_lock": getattr(args, "hash_lock", None),
        "hash_indices": getattr(args, "hash_indices", None),
        "output_dir": getattr(args, "out", None),
    }


def _report_compare(outcome: CompareOutcome, *, stats: bool, as_json: bool) -> None:
    result = outcome.multi if outcome.multi is not None else outcome.single
    if result is None:  # pragma: no cover - pipeline always sets one
        return
    if as_json:
        print(json.dumps(result.to_dict(), indent=2))
        return
    if outcome.multi is not None:
        lines = render_multi(outcome.multi, stats=stats)
    else:
        lines = render_diff(outcome.single)
    for line in lines:
        print(line)


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for stampgraph commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose))

    if args.command == "context":
        pipeline = Pipeline(use_cache=not args.no_cache)
        try:
            run = pipeline.run_context(args.path, target=args.target, overrides=_overrides(args))
        except (StampGraphError, ConfigError, OSError, ValueError) as exc:
            parser.exit(EXIT_ERROR, f"stampgraph context failed: {exc}\nRun with --verbose for more details.\n")
        for warning in run.warnings:
            print(f"warning: {warning}", file=sys.stderr)
        index_path = _relativize(run.output_dir / "context_main.json")
        print(
            f"{run.index.total_bundles} bundles in {run.index.total_folders} folders written; index at {index_path}"
        )
    elif args.command == "compare":
        pipeline = Pipeline()
        try:
            if args.files:
                if len(args.files) != 2:
                    parser.exit(EXIT_ERROR, "compare expects exactly two files: OLD NEW\n")
                outcome = pipeline.run_compare_paths(
                    Path(args.files[0]), Path(args.files[1]), stats=args.stats
                )
            else:
                outcome = pipeline.run_compare(
                    args.path,
                    overrides=_overrides(args),
                    stats=args.stats,
                    approve_changes=args.approve,
                    clean_orphaned=args.clean_orphaned,
                )
        except (StampGraphError, ConfigError, OSError, ValueError) as exc:
            parser.exit(EXIT_ERROR, f"stampgraph compare failed: {exc}\n")
        _report_compare(outcome, stats=args.stats, as_json=args.json)
        if outcome.approved:
            print(f"Drift approved; context files updated ({outcome.cleaned} orphaned files removed)")
        elif outcome.drift:
            parser.exit(EXIT_DRIFT, "Drift detected; rerun with --approve to accept it.\n")
    elif args.command == "clean":
        try:
            removed = Pipeline().run_clean(args.path, output_dir=args.out, purge_cache=args.all)
        except (StampGraphError, ConfigError, OSError) as exc:
            parser.exit(EXIT_ERROR, f"stampgraph clean failed: {exc}\n")
        print(f"Removed {len(removed)} generated files")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(EXIT_ERROR, "Unknown command\n")


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
