"""Ordered classification rules mapping extracted facts to a contract kind.

Rules are evaluated top-down and the first predicate that holds decides the
kind. Each rule is a plain ``(name, predicate, kind)`` entry so it can be
tested on its own; a predicate that raises counts as ``False``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from ..logging import Diagnostics
from ..models import ContractKind, DefaultExport, NamedExports, SourceFact
from .react import HOOK_PATTERN

Predicate = Callable[[SourceFact], bool]

_CLI_DIR = re.compile(r"(?:^|/)cli/")


@dataclass(frozen=True)
class Rule:
    name: str
    predicate: Predicate
    kind: ContractKind


def uses_vue(fact: SourceFact) -> bool:
    return fact.path.endswith(".vue") or any(
        item == "vue" or item.startswith("vue/") for item in fact.imports
    )


def uses_react(fact: SourceFact) -> bool:
    return any(item == "react" or item.startswith("react/") for item in fact.imports)


def _main_export_is_hook(fact: SourceFact) -> bool:
    return (
        fact.main_export is not None
        and bool(HOOK_PATTERN.match(fact.main_export))
        and fact.main_export_is_function
    )


def _single_main_export(fact: SourceFact) -> bool:
    if isinstance(fact.exports, DefaultExport):
        return True
    return isinstance(fact.exports, NamedExports) and len(fact.exports.names) == 1


def is_backend(fact: SourceFact) -> bool:
    return fact.backend is not None


def is_vue_composable(fact: SourceFact) -> bool:
    return (
        uses_vue(fact)
        and _single_main_export(fact)
        and _main_export_is_hook(fact)
        and not fact.has_markup
        and not fact.components
    )


def is_vue_component(fact: SourceFact) -> bool:
    if fact.path.endswith(".vue"):
        return True
    return uses_vue(fact) and (
        fact.vue_state_primitives or fact.vue_registration or bool(fact.components)
    )


def is_react_hook(fact: SourceFact) -> bool:
    return _main_export_is_hook(fact) and not fact.has_markup


def composes_hooks_or_components(fact: SourceFact) -> bool:
    return bool(fact.hooks) or bool(fact.components)


def renders_react_markup(fact: SourceFact) -> bool:
    return uses_react(fact) and (
        fact.has_markup or fact.creates_elements or fact.component_annotations
    )


def is_cli(fact: SourceFact) -> bool:
    return bool(_CLI_DIR.search(fact.path)) or fact.reads_argv


RULES: Sequence[Rule] = (
    Rule("backend-routes", is_backend, ContractKind.API),
    Rule("vue-composable", is_vue_composable, ContractKind.VUE_COMPOSABLE),
    Rule("vue-component", is_vue_component, ContractKind.VUE_COMPONENT),
    Rule("react-hook", is_react_hook, ContractKind.REACT_HOOK),
    Rule("react-composition", composes_hooks_or_components, ContractKind.REACT_COMPONENT),
    Rule("react-markup", renders_react_markup, ContractKind.REACT_COMPONENT),
    Rule("cli", is_cli, ContractKind.CLI),
)

FALLBACK_KIND = ContractKind.MODULE


def classify(
    fact: SourceFact,
    rules: Sequence[Rule] = RULES,
    diagnostics: Optional[Diagnostics] = None,
) -> ContractKind:
    """Return the kind chosen by the first matching rule, else ``ts:module``."""
    for rule in rules:
        try:
            matched = rule.predicate(fact)
        except Exception as exc:  # noqa: BLE001 - a failing check counts as no match
            if diagnostics is not None:
                diagnostics.debug("classifier", fact.path, f"rule {rule.name} failed: {exc}")
            matched = False
        if matched:
            return rule.kind
    return FALLBACK_KIND


__all__ = [
    "FALLBACK_KIND",
    "RULES",
    "Rule",
    "classify",
    "composes_hooks_or_components",
    "is_backend",
    "is_cli",
    "is_react_hook",
    "is_vue_component",
    "is_vue_composable",
    "renders_react_markup",
    "uses_react",
    "uses_vue",
]
