"""Shared route detection helpers."""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from tree_sitter import Node

from ...models import ApiSignature, BackendFacts
from ..parser import SourceTree, type_annotation_text

HTTP_VERBS = ("get", "post", "put", "delete", "patch", "all")

_PARAM_PATTERNS: List[re.Pattern[str]] = [
    re.compile(r":([A-Za-z_][A-Za-z0-9_]*)"),
    re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}"),
]


class RouteDetector(Protocol):
    """Contract for detectors that recognise one backend framework."""

    framework: str

    def supports(self, tree: SourceTree, imports: Sequence[str]) -> bool:
        ...

    def extract(self, tree: SourceTree) -> Optional[BackendFacts]:
        ...


def normalize_path(path: str) -> str:
    """Return a canonical, ``/``-rooted route path with parameters left intact."""
    if not path:
        return "/"
    result = path.strip()
    if not result.startswith("/"):
        result = "/" + result
    result = re.sub(r"/{2,}", "/", result)
    if len(result) > 1 and result.endswith("/"):
        result = result[:-1]
    return result or "/"


def join_paths(prefix: str, route: str) -> str:
    """Combine controller-level and method-level paths."""
    prefix_norm = normalize_path(prefix) if prefix else ""
    route_norm = normalize_path(route)
    if not prefix_norm or prefix_norm == "/":
        return route_norm
    if route_norm == "/":
        return prefix_norm
    return normalize_path(f"{prefix_norm}{route_norm}")


def path_params(path: str) -> Tuple[str, ...]:
    params: List[str] = []
    for pattern in _PARAM_PATTERNS:
        for name in pattern.findall(path):
            if name not in params:
                params.append(name)
    return tuple(params)


def method_upper(value: str) -> str:
    """Normalize HTTP verbs to uppercase."""
    return (value or "").strip().upper()


def line_of(node: Node) -> int:
    """Return the 1-based line number of ``node``."""
    return node.start_point[0] + 1


def signature_of(tree: SourceTree, function: Node) -> Optional[ApiSignature]:
    """Build an :class:`ApiSignature` from a function or method node."""
    parameters: Dict[str, str] = {}
    request_type: Optional[str] = None
    params_node = function.child_by_field_name("parameters")
    if params_node is None:
        single = function.child_by_field_name("parameter")
        if single is not None:
            parameters[tree.node_text(single)] = "any"
    else:
        for param in params_node.named_children:
            if param.type not in {"required_parameter", "optional_parameter"}:
                continue
            pattern = param.child_by_field_name("pattern")
            if pattern is None:
                continue
            name = tree.node_text(pattern)
            annotated = type_annotation_text(param.child_by_field_name("type"), tree.source) or "any"
            parameters[name] = annotated
            decorators = [tree.node_text(child) for child in param.named_children if child.type == "decorator"]
            if request_type is None and any(text.startswith("@Body") for text in decorators):
                request_type = annotated
    return_type = type_annotation_text(function.child_by_field_name("return_type"), tree.source)
    if not parameters and not return_type:
        return None
    response_type = None
    if return_type:
        match = re.match(r"^Promise<(.+)>$", return_type)
        response_type = match.group(1).strip() if match else return_type
    return ApiSignature(
        parameters=parameters,
        return_type=return_type,
        request_type=request_type,
        response_type=response_type,
    )


def detect_backend(
    tree: SourceTree, imports: Sequence[str], detectors: Sequence[RouteDetector]
) -> Optional[BackendFacts]:
    """Return the facts of the first detector that recognises the file."""
    for detector in detectors:
        if not detector.supports(tree, imports):
            continue
        facts = detector.extract(tree)
        if facts is not None and (facts.routes or facts.controller):
            return facts
    return None


__all__ = [
    "HTTP_VERBS",
    "RouteDetector",
    "detect_backend",
    "join_paths",
    "line_of",
    "method_upper",
    "normalize_path",
    "path_params",
    "signature_of",
]
