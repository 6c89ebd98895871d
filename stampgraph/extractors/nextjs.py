"""Next.js app-router annotations: directives, route roles, segments and metadata."""

from __future__ import annotations

import posixpath
import re
from typing import Any, Dict, Optional, Tuple

from ..logging import Diagnostics
from ..models import NextMeta
from .parser import SourceTree, has_child_token, string_value

ROUTE_ROLES = frozenset(
    {"page", "layout", "loading", "error", "not-found", "template", "default", "route"}
)

_APP_DIR = re.compile(r"(?:^|/)app/")
_APP_SUFFIX = re.compile(r"(?:^|/)(?:src/)?app(/.*)$")
_DIRECTIVE = re.compile(r"""^['"]use (client|server)['"];?$""")
_ANY_DIRECTIVE = re.compile(r"""^(['"])[^'"]*\1;?$""")
_ROUTE_GROUP = re.compile(r"/\([^)]+\)")
_DIRECTIVE_WINDOW = 5


def is_in_app_dir(entry_id: str) -> bool:
    return bool(_APP_DIR.search(entry_id.replace("\\", "/")))


def detect_directive(text: str) -> Optional[str]:
    """Return ``client``/``server`` when the file opens with a ``'use ...'`` directive.

    Only the first five non-blank, non-comment lines are inspected and the
    directive must precede any other statement.
    """
    inspected = 0
    in_block_comment = False
    for line in text.splitlines():
        stripped = line.strip()
        if in_block_comment:
            if "*/" in stripped:
                in_block_comment = False
            continue
        if not stripped or stripped.startswith("//"):
            continue
        if stripped.startswith("/*"):
            in_block_comment = "*/" not in stripped
            continue
        inspected += 1
        match = _DIRECTIVE.match(stripped)
        if match:
            return match.group(1)
        if inspected >= _DIRECTIVE_WINDOW or not _ANY_DIRECTIVE.match(stripped):
            break
    return None


def route_role(entry_id: str) -> Optional[str]:
    stem = posixpath.basename(entry_id)
    stem = re.sub(r"\.(tsx?|jsx?)$", "", stem)
    return stem if stem in ROUTE_ROLES else None


def segment_path(entry_id: str) -> Optional[str]:
    """Derive the URL segment for a file below ``app/``, dropping route groups."""
    match = _APP_SUFFIX.search(entry_id.replace("\\", "/"))
    if not match:
        return None
    directory = posixpath.dirname(match.group(1))
    segment = "" if directory in {".", "/"} else directory
    segment = _ROUTE_GROUP.sub("", segment).strip("/")
    return f"/{segment}" if segment else "/"


def _static_value(tree: SourceTree, node: Any) -> Any:
    literal = string_value(node, tree.source)
    if literal is not None:
        return literal
    if node.type == "number":
        text = tree.node_text(node)
        try:
            number = float(text)
        except ValueError:
            return f"[{node.type}]"
        return int(number) if number.is_integer() else number
    if node.type in {"true", "false"}:
        return node.type == "true"
    if node.type == "null":
        return None
    return f"[{node.type}]"


def extract_metadata_exports(tree: SourceTree) -> Tuple[Optional[Dict[str, Any]], bool]:
    """Return ``(static metadata, has generateMetadata)`` for top-level exports."""
    static: Optional[Dict[str, Any]] = None
    dynamic = False
    for statement in tree.root.named_children:
        if statement.type != "export_statement" or has_child_token(statement, "default"):
            continue
        declaration = statement.child_by_field_name("declaration")
        if declaration is None:
            continue
        if declaration.type == "function_declaration":
            if tree.node_text(declaration.child_by_field_name("name")) == "generateMetadata":
                dynamic = True
            continue
        if declaration.type not in {"lexical_declaration", "variable_declaration"}:
            continue
        for declarator in declaration.named_children:
            if declarator.type != "variable_declarator":
                continue
            if tree.node_text(declarator.child_by_field_name("name")) != "metadata":
                continue
            value = declarator.child_by_field_name("value")
            while value is not None and value.type in {"satisfies_expression", "as_expression"}:
                value = value.named_children[0] if value.named_children else None
            if value is None:
                continue
            captured: Dict[str, Any] = {}
            if value.type == "object":
                for member in value.named_children:
                    if member.type != "pair":
                        continue
                    key = member.child_by_field_name("key")
                    if key is None or key.type not in {"property_identifier", "string"}:
                        continue
                    name = string_value(key, tree.source) if key.type == "string" else tree.node_text(key)
                    member_value = member.child_by_field_name("value")
                    if name and member_value is not None:
                        captured[name] = _static_value(tree, member_value)
            static = captured or {"_hasMetadata": True}
    return static, dynamic


def extract_nextjs(
    tree: SourceTree, entry_id: str, diagnostics: Optional[Diagnostics] = None
) -> Optional[NextMeta]:
    """Collect app-router annotations; files outside ``app/`` only report a directive."""
    try:
        directive = detect_directive(tree.text)
        in_app = is_in_app_dir(entry_id)
        if not in_app:
            return NextMeta(directive=directive) if directive else None
        static, dynamic = extract_metadata_exports(tree)
        return NextMeta(
            is_in_app_dir=True,
            directive=directive,
            route_role=route_role(entry_id),
            segment_path=segment_path(entry_id),
            static_metadata=static,
            dynamic_metadata=dynamic,
        )
    except (ValueError, AttributeError, TypeError) as exc:
        if diagnostics is not None:
            diagnostics.debug("nextjs", entry_id, f"annotation extraction failed: {exc}")
        return None


__all__ = [
    "ROUTE_ROLES",
    "detect_directive",
    "extract_metadata_exports",
    "extract_nextjs",
    "is_in_app_dir",
    "route_role",
    "segment_path",
]
