"""Tree-sitter parsing helpers for TypeScript, TSX and JavaScript sources."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

import tree_sitter_typescript as ts_typescript
from tree_sitter import Language, Node, Parser

from ..errors import ParseError

_LANGUAGES: Dict[str, Language] = {}
_PARSERS: Dict[str, Parser] = {}

_STRING_TYPES = {"string", "template_string"}


@dataclass
class SourceTree:
    """A parsed file: its path, raw bytes and syntax tree root."""

    path: str
    source: bytes
    root: Node

    @property
    def text(self) -> str:
        return self.source.decode("utf-8", errors="replace")

    def node_text(self, node: Optional[Node]) -> str:
        if node is None:
            return ""
        return node_text(node, self.source)

    def type_text(self, node: Optional[Node]) -> str:
        return type_text(node, self.source)


def grammar_for(path: str) -> str:
    """Pick the grammar for ``path``: plain TypeScript for ``.ts``, TSX otherwise."""
    lower = path.lower()
    if lower.endswith((".ts", ".mts", ".cts")) and not lower.endswith(".d.ts"):
        return "typescript"
    return "tsx"


def get_parser(grammar: str) -> Parser:
    parser = _PARSERS.get(grammar)
    if parser is not None:
        return parser
    language = _LANGUAGES.get(grammar)
    if language is None:
        if grammar == "typescript":
            language = Language(ts_typescript.language_typescript())
        else:
            language = Language(ts_typescript.language_tsx())
        _LANGUAGES[grammar] = language
    parser = Parser(language)
    _PARSERS[grammar] = parser
    return parser


def parse_source(text: str, path: str, grammar: Optional[str] = None) -> SourceTree:
    """Parse ``text`` and raise :class:`ParseError` when the tree contains syntax errors."""
    source = text.encode("utf-8")
    tree = get_parser(grammar or grammar_for(path)).parse(source)
    root = tree.root_node
    if root.has_error:
        error = first_error(root)
        if error is not None:
            line, column = error.start_point
            raise ParseError(path, f"syntax error at line {line + 1}, column {column + 1}")
        raise ParseError(path, "syntax error")
    return SourceTree(path=path, source=source, root=root)


def first_error(node: Node) -> Optional[Node]:
    for child in walk(node):
        if child.type == "ERROR" or child.is_missing:
            return child
    return None


def node_text(node: Node, source: bytes) -> str:
    return source[node.start_byte : node.end_byte].decode("utf-8", errors="ignore")


_TYPE_SPACING = (
    (re.compile(r"\s+"), " "),
    (re.compile(r"\s*=>\s*"), " => "),
    (re.compile(r"\s*([|&])\s*"), r" \1 "),
    (re.compile(r"\s*([,;])\s*"), r"\1 "),
    (re.compile(r"\s*(\??:)\s*"), r"\1 "),
    (re.compile(r"\{\s*"), "{ "),
    (re.compile(r"\s*\}"), " }"),
    (re.compile(r"\{ \}"), "{}"),
    (re.compile(r"([(\[<])\s+"), r"\1"),
    (re.compile(r"\s+([)\]>])"), r"\1"),
    (re.compile(r"(\w)\s+([<\[])"), r"\1\2"),
    (re.compile(r" {2,}"), " "),
)


def normalize_type_text(text: str) -> str:
    """Canonical spacing for a type or signature, so layout edits do not change it."""
    for pattern, replacement in _TYPE_SPACING:
        text = pattern.sub(replacement, text)
    return text.strip()


def type_text(node: Optional[Node], source: bytes) -> str:
    """Text of a type-like node with comments removed and spacing normalised."""
    if node is None:
        return ""
    pieces: List[bytes] = []
    cursor = node.start_byte
    for comment in descendants_of_type(node, "comment"):
        pieces.append(source[cursor : comment.start_byte])
        pieces.append(b" ")
        cursor = comment.end_byte
    pieces.append(source[cursor : node.end_byte])
    return normalize_type_text(b"".join(pieces).decode("utf-8", errors="ignore"))


def walk(node: Node) -> Iterator[Node]:
    """Yield ``node`` and all of its descendants in document order."""
    stack: List[Node] = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def descendants_of_type(node: Node, *types: str) -> Iterator[Node]:
    wanted = set(types)
    return (child for child in walk(node) if child.type in wanted)


def top_level_statements(root: Node) -> Iterator[Node]:
    """Yield top-level statements, unwrapping ``export`` wrappers to their declaration."""
    for child in root.named_children:
        if child.type == "export_statement":
            declaration = child.child_by_field_name("declaration")
            if declaration is not None:
                yield declaration
                continue
        yield child


def has_child_token(node: Node, token: str) -> bool:
    return any(child.type == token for child in node.children)


def string_value(node: Optional[Node], source: bytes) -> Optional[str]:
    """Return the literal value of a string node, ``None`` for anything else."""
    if node is None or node.type not in _STRING_TYPES:
        return None
    if node.type == "template_string" and any(
        child.type == "template_substitution" for child in node.named_children
    ):
        return None
    raw = node_text(node, source)
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in {"'", '"', "`"}:
        return raw[1:-1]
    return raw


def call_arguments(call: Node) -> List[Node]:
    arguments = call.child_by_field_name("arguments")
    if arguments is None:
        return []
    return [child for child in arguments.named_children if child.type != "comment"]


def type_annotation_text(node: Optional[Node], source: bytes) -> Optional[str]:
    """Normalised type text, without the leading colon of a ``type_annotation`` node."""
    if node is None:
        return None
    if node.type == "type_annotation":
        inner = [child for child in node.named_children if child.type != "comment"]
        if inner:
            return type_text(inner[0], source) or None
        return type_text(node, source).lstrip(":").strip() or None
    return type_text(node, source) or None


__all__ = [
    "SourceTree",
    "call_arguments",
    "descendants_of_type",
    "first_error",
    "get_parser",
    "grammar_for",
    "has_child_token",
    "node_text",
    "normalize_type_text",
    "parse_source",
    "string_value",
    "top_level_statements",
    "type_annotation_text",
    "type_text",
    "walk",
]
