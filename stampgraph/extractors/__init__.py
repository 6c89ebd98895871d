"""Source extraction: file text to :class:`~stampgraph.models.SourceFact` plus kind."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Callable, Optional, Sequence, TypeVar

from ..errors import ParseError
from ..logging import Diagnostics, ensure_diagnostics
from ..models import SourceFact
from ..paths import normalize_entry_id
from . import react, vue
from .classifier import RULES, Rule, classify
from .nextjs import extract_nextjs
from .parser import SourceTree, parse_source
from .routes import DEFAULT_DETECTORS, RouteDetector, detect_backend

T = TypeVar("T")


def _checked(
    name: str,
    check: Callable[[], T],
    fallback: T,
    entry_id: str,
    diagnostics: Diagnostics,
) -> T:
    try:
        return check()
    except Exception as exc:  # noqa: BLE001 - a failing sub-check degrades to its fallback
        diagnostics.debug("extract", entry_id, f"{name} check failed: {exc}")
        return fallback


def extract_source(
    entry_id: str,
    text: str,
    *,
    diagnostics: Optional[Diagnostics] = None,
    detectors: Sequence[RouteDetector] = DEFAULT_DETECTORS,
    rules: Sequence[Rule] = RULES,
) -> SourceFact:
    """Parse ``text`` and return its classified facts.

    Raises :class:`ParseError` when the source cannot be parsed.
    """
    diagnostics = ensure_diagnostics(diagnostics, "extract")
    entry_id = normalize_entry_id(entry_id)

    grammar: Optional[str] = None
    template = ""
    script = text
    if entry_id.endswith(".vue"):
        script, grammar, template = vue.split_sfc(text)
    tree = parse_source(script, entry_id, grammar)

    imports = react.extract_imports(tree)
    functions = react.extract_functions(tree)
    function_set = set(functions)
    summary = react.extract_exports(tree, function_set)
    main_name, main_is_function = react.main_export(summary, function_set)

    backend = _checked(
        "backend", lambda: detect_backend(tree, imports, detectors), None, entry_id, diagnostics
    )
    fact = SourceFact(
        path=entry_id,
        imports=tuple(imports),
        functions=tuple(functions),
        variables=tuple(react.extract_variables(tree)),
        exports=summary.shape,
        main_export=main_name,
        main_export_is_function=main_is_function,
        reads_argv=_checked("argv", lambda: react.reads_argv(tree), False, entry_id, diagnostics),
        backend=backend,
        nextjs=extract_nextjs(tree, entry_id, diagnostics),
    )
    if backend is None:
        if entry_id.endswith(".vue") or vue.is_vue_import(imports):
            fact = _with_vue_facts(fact, tree, template, diagnostics)
        else:
            fact = _with_react_facts(fact, tree, diagnostics)

    return replace(fact, kind=classify(fact, rules, diagnostics))


def _with_react_facts(fact: SourceFact, tree: SourceTree, diagnostics: Diagnostics) -> SourceFact:
    props = react.extract_props(tree)
    return replace(
        fact,
        hooks=tuple(react.extract_hooks(tree)),
        components=tuple(react.extract_components(tree)),
        props=props,
        emits=react.extract_events(tree, props),
        state=react.extract_state(tree),
        jsx_routes=tuple(react.extract_jsx_routes(tree)),
        has_markup=_checked("markup", lambda: react.has_markup(tree), False, fact.path, diagnostics),
        creates_elements=_checked(
            "createElement", lambda: react.creates_elements(tree), False, fact.path, diagnostics
        ),
        component_annotations=_checked(
            "annotations", lambda: react.has_component_annotations(tree), False, fact.path, diagnostics
        ),
    )


def _with_vue_facts(
    fact: SourceFact, tree: SourceTree, template: str, diagnostics: Diagnostics
) -> SourceFact:
    components = set(react.extract_components(tree))
    components.update(vue.extract_registered_components(tree, template))
    return replace(
        fact,
        hooks=tuple(vue.extract_composables(tree)),
        components=tuple(sorted(components)),
        props=vue.extract_props(tree),
        emits=vue.extract_emits(tree),
        state=vue.extract_state(tree),
        has_markup=_checked(
            "markup", lambda: react.has_markup(tree) or bool(template.strip()), False, fact.path, diagnostics
        ),
        vue_state_primitives=_checked(
            "state primitives", lambda: vue.has_state_primitives(tree), False, fact.path, diagnostics
        ),
        vue_registration=_checked(
            "registration", lambda: vue.has_component_registration(tree), False, fact.path, diagnostics
        ),
    )


def read_source(path: Path, entry_id: str, diagnostics: Optional[Diagnostics] = None) -> Optional[str]:
    """Read a source file as UTF-8; unreadable files are recorded and yield ``None``."""
    diagnostics = ensure_diagnostics(diagnostics, "extract")
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        diagnostics.warn("extract", entry_id, f"unreadable: {exc}")
        return None


def try_extract(
    entry_id: str,
    text: str,
    *,
    diagnostics: Optional[Diagnostics] = None,
    detectors: Sequence[RouteDetector] = DEFAULT_DETECTORS,
) -> Optional[SourceFact]:
    """Like :func:`extract_source`, but failures are recorded and yield ``None``."""
    diagnostics = ensure_diagnostics(diagnostics, "extract")
    try:
        return extract_source(entry_id, text, diagnostics=diagnostics, detectors=detectors)
    except ParseError as exc:
        diagnostics.warn("extract", entry_id, exc.reason)
    except Exception as exc:  # pragma: no cover - one bad file must not abort the scan
        diagnostics.warn("extract", entry_id, f"extraction failed: {exc}")
    return None


__all__ = [
    "classify",
    "extract_source",
    "read_source",
    "try_extract",
]
