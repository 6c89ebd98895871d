"""Vue composition-API facts: composables, registered components, state, props and emits."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Set

from tree_sitter import Node

from .parser import (
    SourceTree,
    call_arguments,
    descendants_of_type,
    has_child_token,
    string_value,
    top_level_statements,
    type_annotation_text,
)
from .react import HOOK_PATTERN, normalize_prop_type

VUE_BUILTINS = frozenset(
    {
        "ref",
        "reactive",
        "computed",
        "watch",
        "watchEffect",
        "shallowRef",
        "shallowReactive",
        "readonly",
        "toRef",
        "toRefs",
        "provide",
        "inject",
        "nextTick",
        "onMounted",
        "onUnmounted",
        "onBeforeMount",
        "onBeforeUnmount",
        "onUpdated",
    }
)
STATE_PRIMITIVES = frozenset({"ref", "reactive", "computed", "shallowRef", "shallowReactive"})

_SCRIPT_BLOCK = re.compile(r"<script\b(?P<attrs>[^>]*)>(?P<body>[\s\S]*?)</script>", re.IGNORECASE)
_TEMPLATE_BLOCK = re.compile(r"<template\b[^>]*>(?P<body>[\s\S]*)</template>", re.IGNORECASE)
_TEMPLATE_TAG = re.compile(r"<([A-Z][\w.]*)")
_RUNTIME_TYPES = {
    "String": "string",
    "Number": "number",
    "Boolean": "boolean",
    "Array": "array",
    "Object": "object",
    "Function": "function",
    "Date": "Date",
}


def is_vue_import(imports: List[str]) -> bool:
    return any(item == "vue" or item.startswith("vue/") for item in imports)


def split_sfc(text: str) -> tuple[str, str, str]:
    """Return ``(script, grammar, template)`` for a single-file component.

    ``<script setup>`` wins over a plain ``<script>`` block.
    """
    scripts = list(_SCRIPT_BLOCK.finditer(text))
    chosen = None
    for match in scripts:
        if "setup" in match.group("attrs"):
            chosen = match
            break
    if chosen is None and scripts:
        chosen = scripts[0]
    template_match = _TEMPLATE_BLOCK.search(text)
    template = template_match.group("body") if template_match else ""
    if chosen is None:
        return "", "tsx", template
    attrs = chosen.group("attrs")
    grammar = "typescript" if re.search(r"""lang\s*=\s*["']ts["']""", attrs) else "tsx"
    return chosen.group("body"), grammar, template


def _callee(tree: SourceTree, call: Node) -> str:
    return tree.node_text(call.child_by_field_name("function"))


def extract_composables(tree: SourceTree) -> List[str]:
    found: Set[str] = set()
    for call in descendants_of_type(tree.root, "call_expression"):
        function = call.child_by_field_name("function")
        if function is None or function.type != "identifier":
            continue
        name = tree.node_text(function)
        if HOOK_PATTERN.match(name) or name in VUE_BUILTINS:
            found.add(name)
    return sorted(found)


def extract_registered_components(tree: SourceTree, template: str = "") -> List[str]:
    components: Set[str] = set()
    for pair in descendants_of_type(tree.root, "pair"):
        if tree.node_text(pair.child_by_field_name("key")).strip("'\"") != "components":
            continue
        value = pair.child_by_field_name("value")
        if value is None or value.type != "object":
            continue
        for member in value.named_children:
            if member.type == "shorthand_property_identifier":
                components.add(tree.node_text(member))
            elif member.type == "pair":
                components.add(tree.node_text(member.child_by_field_name("key")).strip("'\""))
    components.update(_TEMPLATE_TAG.findall(template))
    return sorted(components)


def _literal_type(node: Node) -> str:
    return {
        "true": "boolean",
        "false": "boolean",
        "number": "number",
        "string": "string",
        "template_string": "string",
        "null": "null",
        "array": "array",
        "object": "object",
    }.get(node.type, "unknown")


def extract_state(tree: SourceTree) -> Dict[str, str]:
    """Map reactive bindings to ``primitive<type>``."""
    state: Dict[str, str] = {}
    for declarator in descendants_of_type(tree.root, "variable_declarator"):
        name = declarator.child_by_field_name("name")
        value = declarator.child_by_field_name("value")
        if name is None or value is None or name.type != "identifier":
            continue
        if value.type != "call_expression":
            continue
        primitive = _callee(tree, value)
        if primitive not in STATE_PRIMITIVES:
            continue
        type_arguments = value.child_by_field_name("type_arguments")
        if type_arguments is not None:
            inner = tree.type_text(type_arguments)[1:-1].strip() or "unknown"
        else:
            arguments = call_arguments(value)
            inner = _literal_type(arguments[0]) if arguments else "unknown"
        state[tree.node_text(name)] = f"{primitive}<{inner}>"
    return state


def _find_call(tree: SourceTree, name: str) -> Optional[Node]:
    for call in descendants_of_type(tree.root, "call_expression"):
        if _callee(tree, call) == name:
            return call
    return None


def _named_type_body(tree: SourceTree, type_name: str) -> Optional[Node]:
    for statement in top_level_statements(tree.root):
        if statement.type == "interface_declaration":
            if tree.node_text(statement.child_by_field_name("name")) == type_name:
                return statement.child_by_field_name("body")
        elif statement.type == "type_alias_declaration":
            if tree.node_text(statement.child_by_field_name("name")) == type_name:
                value = statement.child_by_field_name("value")
                if value is not None and value.type == "object_type":
                    return value
    return None


def _type_argument_body(tree: SourceTree, call: Node) -> Optional[Node]:
    type_arguments = call.child_by_field_name("type_arguments")
    if type_arguments is None or not type_arguments.named_children:
        return None
    argument = type_arguments.named_children[0]
    if argument.type == "object_type":
        return argument
    if argument.type == "type_identifier":
        return _named_type_body(tree, tree.node_text(argument))
    return None


def extract_props(tree: SourceTree) -> Dict[str, Any]:
    """Props declared through ``defineProps`` (typed or runtime form)."""
    call = _find_call(tree, "defineProps")
    if call is None:
        return {}
    props: Dict[str, Any] = {}
    body = _type_argument_body(tree, call)
    if body is not None:
        for member in body.named_children:
            if member.type != "property_signature":
                continue
            name = tree.node_text(member.child_by_field_name("name")).strip("'\"")
            type_text = type_annotation_text(member.child_by_field_name("type"), tree.source) or "any"
            props[name] = normalize_prop_type(type_text, has_child_token(member, "?"))
        return props

    arguments = call_arguments(call)
    if not arguments:
        return props
    runtime = arguments[0]
    if runtime.type == "array":
        for element in runtime.named_children:
            name = string_value(element, tree.source)
            if name:
                props[name] = "any"
    elif runtime.type == "object":
        for member in runtime.named_children:
            if member.type != "pair":
                continue
            name = tree.node_text(member.child_by_field_name("key")).strip("'\"")
            props[name] = _runtime_prop(tree, member.child_by_field_name("value"))
    return props


def _runtime_prop(tree: SourceTree, value: Optional[Node]) -> Any:
    if value is None:
        return "any"
    if value.type == "identifier":
        return _RUNTIME_TYPES.get(tree.node_text(value), tree.node_text(value))
    if value.type != "object":
        return "any"
    type_name = "any"
    required = False
    for member in value.named_children:
        if member.type != "pair":
            continue
        key = tree.node_text(member.child_by_field_name("key"))
        member_value = member.child_by_field_name("value")
        if key == "type" and member_value is not None:
            text = tree.node_text(member_value)
            type_name = _RUNTIME_TYPES.get(text, text)
        elif key == "required" and member_value is not None:
            required = member_value.type == "true"
    return normalize_prop_type(type_name, not required)


def extract_emits(tree: SourceTree) -> Dict[str, Dict[str, str]]:
    """Events declared through ``defineEmits`` (call signatures, tuple members or an array)."""
    call = _find_call(tree, "defineEmits")
    if call is None:
        return {}
    emits: Dict[str, Dict[str, str]] = {}
    body = _type_argument_body(tree, call)
    if body is not None:
        for member in body.named_children:
            if member.type == "call_signature":
                parameters = member.child_by_field_name("parameters")
                params = [p for p in (parameters.named_children if parameters else []) if p.type != "comment"]
                if not params:
                    continue
                event_type = type_annotation_text(params[0].child_by_field_name("type"), tree.source) or ""
                event = event_type.strip("'\"")
                if not event:
                    continue
                rest = ", ".join(tree.type_text(param) for param in params[1:])
                emits[event] = {"type": "function", "signature": f"({rest}) => void"}
            elif member.type == "property_signature":
                event = tree.node_text(member.child_by_field_name("name")).strip("'\"")
                tuple_text = type_annotation_text(member.child_by_field_name("type"), tree.source) or "[]"
                inner = tuple_text[1:-1].strip() if tuple_text.startswith("[") else ""
                emits[event] = {"type": "function", "signature": f"({inner}) => void"}
        return dict(sorted(emits.items()))

    arguments = call_arguments(call)
    if arguments and arguments[0].type == "array":
        for element in arguments[0].named_children:
            event = string_value(element, tree.source)
            if event:
                emits[event] = {"type": "function", "signature": "(...args: any[]) => void"}
    return dict(sorted(emits.items()))


def has_state_primitives(tree: SourceTree) -> bool:
    return any(
        _callee(tree, call) in STATE_PRIMITIVES
        for call in descendants_of_type(tree.root, "call_expression")
    )


def has_component_registration(tree: SourceTree) -> bool:
    for call in descendants_of_type(tree.root, "call_expression"):
        if _callee(tree, call) in {"defineComponent", "defineProps", "defineEmits"}:
            return True
    return any(
        tree.node_text(pair.child_by_field_name("key")) == "components"
        for pair in descendants_of_type(tree.root, "pair")
    )


__all__ = [
    "STATE_PRIMITIVES",
    "VUE_BUILTINS",
    "extract_composables",
    "extract_emits",
    "extract_props",
    "extract_registered_components",
    "extract_state",
    "has_component_registration",
    "has_state_primitives",
    "is_vue_import",
    "split_sfc",
]
