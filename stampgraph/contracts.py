"""Contract builder: classified facts to hashable, normalised contracts."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .errors import ContractBuildError
from .hashing import file_hash, semantic_hash
from .logging import Diagnostics, ensure_diagnostics
from .models import (
    BackendFacts,
    Composition,
    Contract,
    ContractKind,
    Interface,
    SourceFact,
    export_shape_to_json,
)
from .paths import normalize_entry_id, stem_of

PRESETS = ("submit-only", "nav-only", "display-only", "none")

_ALLOWED_EVENTS: Dict[str, Tuple[str, ...]] = {
    "submit-only": ("onSubmit",),
    "nav-only": ("onClick",),
    "display-only": (),
}

_BODY_METHODS = {"POST", "PUT", "PATCH"}


@dataclass
class PresetResult:
    emits: Dict[str, Any]
    prediction: List[str] = field(default_factory=list)
    violations: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ContractBuildResult:
    contract: Contract
    violations: Tuple[str, ...] = ()


def apply_preset(fact: SourceFact, preset: str) -> PresetResult:
    """Filter emitted events through ``preset`` and report what it rejected."""
    if preset not in PRESETS:
        raise ValueError(f"Unknown preset '{preset}'")
    emits = dict(fact.emits)
    result = PresetResult(emits=emits)
    if preset == "none":
        return result

    allowed = _ALLOWED_EVENTS[preset]
    forbidden = [name for name in emits if name not in allowed]
    result.emits = {name: value for name, value in emits.items() if name in allowed}
    result.prediction.append(f"Contract preset: {preset}")

    if preset == "submit-only":
        if forbidden:
            result.violations.append(
                f"Submit-only contract violated: remove events [{', '.join(forbidden)}]"
            )
        if "onSubmit" in emits:
            result.prediction.append("When loading=true, submit button should be disabled")
            result.prediction.append("onSubmit is the only permitted action handler")
        if any(key in fact.state for key in ("loading", "busy", "isLoading")):
            result.prediction.append("Loading state controls button disabled state")
    elif preset == "nav-only":
        if forbidden:
            result.violations.append(
                f"Nav-only contract violated: remove events [{', '.join(forbidden)}]"
            )
        if "onClick" not in emits:
            result.violations.append("Nav-only contract expects an onClick navigation handler")
        result.prediction.append(
            "Component handles navigation only, no form submission or data mutation"
        )
        if "href" in fact.props or "to" in fact.props:
            result.prediction.append("Navigation target specified via href/to prop")
    elif preset == "display-only":
        if forbidden:
            result.violations.append(
                f"Display-only contract violated: no events permitted, found [{', '.join(forbidden)}]"
            )
        result.prediction.append("Component is purely presentational with no event handlers")
        result.prediction.append("All behavior driven by props only")
        if fact.state:
            result.violations.append(
                "Display-only contract should minimize internal state, "
                f"found [{', '.join(fact.state)}]"
            )
    return result


def behavioral_predictions(fact: SourceFact) -> List[str]:
    hooks = set(fact.hooks)
    predictions: List[str] = []
    if "useForm" in hooks or any("validate" in name for name in fact.functions):
        predictions.append("Includes form validation logic")
    if "useEffect" in hooks:
        predictions.append("Has side effects managed by useEffect")
    if any("Query" in hook or "Mutation" in hook for hook in hooks) or any(
        "fetch" in name or "load" in name for name in fact.functions
    ):
        predictions.append("Fetches or mutates external data")
    if "useMemo" in hooks or "useCallback" in hooks:
        predictions.append("Uses memoization for performance optimization")
    if "useContext" in hooks:
        predictions.append("Consumes React Context for shared state")
    if "useRef" in hooks:
        predictions.append("Uses refs for DOM access or mutable values")
    if any("loading" in key or "pending" in key for key in fact.state):
        predictions.append("Manages loading/pending UI states")
    if any("error" in key for key in fact.state):
        predictions.append("Handles and displays error states")
    if fact.jsx_routes:
        predictions.append(f"Links to routes: {', '.join(fact.jsx_routes)}")
    return predictions


_DESCRIPTION_HINTS: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("button",), "Interactive button component"),
    (("form",), "Form component with validation"),
    (("modal", "dialog"), "Modal/dialog component"),
    (("input", "field"), "Form input field"),
    (("card",), "Card display component"),
    (("nav", "menu"), "Navigation component"),
)


def infer_description(fact: SourceFact) -> str:
    """Guess a one-line description from the file name and kind."""
    name = stem_of(fact.path) or "Component"
    lowered = name.lower()
    kind = fact.kind

    if kind is ContractKind.CLI:
        return f"{name} - CLI entry point"
    if kind is ContractKind.API:
        framework = fact.backend.framework if fact.backend else "backend"
        return f"{name} - {framework} API routes"
    if kind is ContractKind.MODULE:
        if "util" in lowered or "helper" in lowered:
            return f"{name} - Utility module"
        if "config" in lowered:
            return f"{name} - Configuration module"
        if "type" in lowered or "interface" in lowered:
            return f"{name} - Type definitions"
        return f"{name} - TypeScript module"
    if kind is ContractKind.REACT_HOOK:
        return f"{name} - Custom React hook"
    if kind is ContractKind.VUE_COMPOSABLE:
        return f"{name} - Vue composable"

    for needles, label in _DESCRIPTION_HINTS:
        if any(needle in lowered for needle in needles):
            return f"{name} - {label}"

    if fact.state and fact.emits:
        return f"{name} - Interactive component with internal state"
    if fact.state:
        return f"{name} - Stateful component"
    if fact.emits:
        return f"{name} - Interactive component"
    return f"{name} - Presentational component"


def aggregate_api_signature(backend: Optional[BackendFacts]) -> Optional[Dict[str, Any]]:
    """Fold per-route signatures into one file-level ``apiSignature``."""
    if backend is None or not backend.routes:
        return None
    parameters: Dict[str, str] = {}
    return_type: Optional[str] = None
    request_type: Optional[str] = None
    response_type: Optional[str] = None
    for route in backend.routes:
        signature = route.api_signature
        typed = signature.parameters if signature else {}
        for param in route.params:
            if param in typed:
                parameters[param] = typed[param]
            else:
                parameters.setdefault(param, "string")
        for name, value in typed.items():
            if name not in parameters or parameters[name] == "string":
                parameters[name] = value
        if signature is None:
            continue
        return_type = return_type or signature.return_type
        if route.method in _BODY_METHODS:
            request_type = request_type or signature.request_type
        response_type = response_type or signature.response_type

    aggregated: Dict[str, Any] = {}
    if parameters:
        aggregated["parameters"] = parameters
    if return_type:
        aggregated["returnType"] = return_type
    if request_type:
        aggregated["requestType"] = request_type
    if response_type:
        aggregated["responseType"] = response_type
    return aggregated or None


def _language_specific(backend: Optional[BackendFacts]) -> Optional[Dict[str, List[str]]]:
    if backend is None:
        return None
    data = {key: list(values) for key, values in backend.language_specific.items() if values}
    return data or None


def build_contract(
    fact: SourceFact,
    source_text: str,
    *,
    preset: str = "none",
    description: Optional[str] = None,
) -> ContractBuildResult:
    """Derive the contract for one classified file.

    Raises :class:`ContractBuildError` when the fact is incomplete.
    """
    entry_id = normalize_entry_id(fact.path)
    if not entry_id:
        raise ContractBuildError(fact.path, "empty entry id")
    if fact.kind is None:
        raise ContractBuildError(entry_id, "file was not classified")
    try:
        preset_result = apply_preset(fact, preset)
    except ValueError as exc:
        raise ContractBuildError(entry_id, str(exc)) from exc

    composition = Composition(
        variables=tuple(sorted(fact.variables)),
        hooks=tuple(sorted(fact.hooks)),
        components=tuple(sorted(fact.components)),
        functions=tuple(sorted(fact.functions)),
        imports=tuple(sorted(fact.imports)),
        language_specific=_language_specific(fact.backend),
    )
    interface = Interface(
        props=dict(fact.props),
        emits=preset_result.emits,
        state=dict(fact.state) or None,
        api_signature=aggregate_api_signature(fact.backend),
    )
    prediction = preset_result.prediction + behavioral_predictions(fact)
    fact_for_description = replace(fact, emits=preset_result.emits)

    contract = Contract(
        kind=fact.kind.value,
        entry_id=entry_id,
        description=description or infer_description(fact_for_description),
        composition=composition,
        interface=interface,
        exports=fact.exports,
        semantic_hash=semantic_hash(
            composition.to_dict(), interface.to_dict(), export_shape_to_json(fact.exports)
        ),
        file_hash=file_hash(source_text),
        prediction=tuple(prediction),
        nextjs=fact.nextjs,
    )
    return ContractBuildResult(contract=contract, violations=tuple(preset_result.violations))


def build_contracts(
    items: Iterable[Tuple[SourceFact, str]],
    *,
    preset: str = "none",
    diagnostics: Optional[Diagnostics] = None,
) -> List[Contract]:
    """Build contracts for every fact; failing files are recorded and skipped."""
    diagnostics = ensure_diagnostics(diagnostics, "contracts")
    contracts: List[Contract] = []
    for fact, text in items:
        try:
            result = build_contract(fact, text, preset=preset)
        except ContractBuildError as exc:
            diagnostics.warn("contracts", fact.path, exc.reason)
            continue
        for violation in result.violations:
            diagnostics.warn("preset", result.contract.entry_id, violation)
        contracts.append(result.contract)
    return contracts


def contract_summary(contract: Contract) -> str:
    """A short human-readable summary used in log output."""
    composition = contract.composition
    parts = [contract.kind]
    if composition.components:
        parts.append(f"{len(composition.components)} components")
    if composition.hooks:
        parts.append(f"{len(composition.hooks)} hooks")
    props = len(contract.interface.props)
    if props:
        parts.append(f"{props} props")
    return ", ".join(parts)


__all__ = [
    "ContractBuildResult",
    "PRESETS",
    "PresetResult",
    "aggregate_api_signature",
    "apply_preset",
    "behavioral_predictions",
    "build_contract",
    "build_contracts",
    "contract_summary",
    "infer_description",
]
