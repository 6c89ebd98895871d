"""Structural facts for TypeScript and React modules."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

from tree_sitter import Node

from ..models import (
    DefaultExport,
    ExportShape,
    NamedExports,
    NoExports,
    OpaqueNamedExport,
    named_exports,
)
from .parser import (
    SourceTree,
    call_arguments,
    descendants_of_type,
    has_child_token,
    normalize_type_text,
    string_value,
    top_level_statements,
    type_annotation_text,
    walk,
)

HOOK_PATTERN = re.compile(r"^use[A-Z]\w*$")
_EVENT_PATTERN = re.compile(r"^on[A-Z]")
_PROPS_NAME = re.compile(r"Props$", re.IGNORECASE)
_ROUTE_LITERAL = re.compile(r"^/[a-z0-9\-_/:.\[\]]*$", re.IGNORECASE)
_ROUTE_ATTRIBUTES = {"path", "to", "href", "as", "route", "src"}
_LITERAL_UNION = re.compile(r"""^(["'][\w-]+["'](\s*\|\s*["'][\w-]+["'])+)$""")

_FUNCTION_VALUES = {"arrow_function", "function_expression", "function", "generator_function"}
_FUNCTION_DECLARATIONS = {"function_declaration", "generator_function_declaration"}
_MARKUP_NODES = {"jsx_element", "jsx_self_closing_element"}
_TYPE_ONLY_DECLARATIONS = {"interface_declaration", "type_alias_declaration"}

_CREATE_ELEMENT = re.compile(r"\bReact\.createElement\b")
_COMPONENT_ANNOTATION = re.compile(r"React\.(FC|FunctionComponent|ReactElement)\b|:\s*JSX\.Element\b")
_PROCESS_ARGV = re.compile(r"\bprocess\.argv\b")


def extract_imports(tree: SourceTree) -> List[str]:
    """Return the sorted, de-duplicated module specifiers imported by the file."""
    imports: Set[str] = set()
    for node in descendants_of_type(tree.root, "import_statement"):
        value = string_value(node.child_by_field_name("source"), tree.source)
        if value:
            imports.add(value)
    for call in descendants_of_type(tree.root, "call_expression"):
        function = call.child_by_field_name("function")
        if function is None or tree.node_text(function) != "require":
            continue
        arguments = call_arguments(call)
        if arguments:
            value = string_value(arguments[0], tree.source)
            if value:
                imports.add(value)
    return sorted(imports)


def extract_hooks(tree: SourceTree) -> List[str]:
    hooks: Set[str] = set()
    for call in descendants_of_type(tree.root, "call_expression"):
        function = call.child_by_field_name("function")
        if function is not None and function.type == "identifier":
            name = tree.node_text(function)
            if HOOK_PATTERN.match(name):
                hooks.add(name)
    return sorted(hooks)


def extract_components(tree: SourceTree) -> List[str]:
    """Return capitalised JSX tag names used anywhere in the file."""
    components: Set[str] = set()
    for node in descendants_of_type(tree.root, "jsx_opening_element", "jsx_self_closing_element"):
        name = tree.node_text(node.child_by_field_name("name"))
        if name[:1].isupper():
            components.add(name)
    return sorted(components)


def extract_functions(tree: SourceTree) -> List[str]:
    """Top-level function declarations, function-valued variables and all methods."""
    functions: Set[str] = set()
    for statement in top_level_statements(tree.root):
        if statement.type in _FUNCTION_DECLARATIONS:
            name = statement.child_by_field_name("name")
            if name is not None:
                functions.add(tree.node_text(name))
        elif statement.type in {"lexical_declaration", "variable_declaration"}:
            for declarator in statement.named_children:
                if declarator.type != "variable_declarator":
                    continue
                name = declarator.child_by_field_name("name")
                value = declarator.child_by_field_name("value")
                if name is not None and name.type == "identifier" and value is not None:
                    if value.type in _FUNCTION_VALUES:
                        functions.add(tree.node_text(name))
    for method in descendants_of_type(tree.root, "method_definition"):
        name = method.child_by_field_name("name")
        if name is not None:
            functions.add(tree.node_text(name).strip("'\""))
    return sorted(functions)


def extract_variables(tree: SourceTree) -> List[str]:
    """Top-level variable names, skipping ``useState`` setters."""
    variables: Set[str] = set()
    for statement in top_level_statements(tree.root):
        if statement.type not in {"lexical_declaration", "variable_declaration"}:
            continue
        for declarator in statement.named_children:
            if declarator.type != "variable_declarator":
                continue
            name = declarator.child_by_field_name("name")
            if name is None:
                continue
            value = declarator.child_by_field_name("value")
            from_state = value is not None and _is_use_state(tree, value)
            for identifier in _binding_identifiers(name):
                text = tree.node_text(identifier)
                if from_state and text.startswith("set"):
                    continue
                variables.add(text)
    return sorted(variables)


def _binding_identifiers(pattern: Node) -> List[Node]:
    if pattern.type in {"identifier", "shorthand_property_identifier_pattern"}:
        return [pattern]
    found: List[Node] = []
    for child in pattern.named_children:
        if child.type == "pair_pattern":
            value = child.child_by_field_name("value")
            if value is not None:
                found.extend(_binding_identifiers(value))
        elif child.type in {"assignment_pattern", "object_assignment_pattern"}:
            left = child.child_by_field_name("left")
            if left is not None:
                found.extend(_binding_identifiers(left))
        else:
            found.extend(_binding_identifiers(child))
    return found


def _is_use_state(tree: SourceTree, value: Node) -> bool:
    if value.type != "call_expression":
        return False
    function = value.child_by_field_name("function")
    return function is not None and tree.node_text(function) in {"useState", "React.useState"}


# ---------------------------------------------------------------------------
# Props, state and events
# ---------------------------------------------------------------------------


def normalize_prop_type(type_text: str, optional: bool) -> Any:
    """Fold a declared prop type into the contract's prop representation."""
    clean = re.sub(r"\s*\|\s*undefined\b", "", normalize_type_text(type_text)).strip()

    if _LITERAL_UNION.match(clean):
        literals = [part.strip().strip("'\"") for part in clean.split("|")]
        result: Dict[str, Any] = {"type": "literal-union", "literals": literals}
        if optional:
            result["optional"] = True
        return result

    if "=>" in clean or (clean.startswith("(") and ")" in clean):
        result = {"type": "function", "signature": clean}
        if optional:
            result["optional"] = True
        return result

    if optional and clean not in {"string", "number", "boolean"}:
        return {"type": clean, "optional": True}

    return clean


def extract_props(tree: SourceTree) -> Dict[str, Any]:
    """Collect members of ``*Props`` interfaces and object type aliases."""
    props: Dict[str, Any] = {}
    for statement in top_level_statements(tree.root):
        body: Optional[Node] = None
        if statement.type == "interface_declaration":
            name = tree.node_text(statement.child_by_field_name("name"))
            if _PROPS_NAME.search(name):
                body = statement.child_by_field_name("body")
        elif statement.type == "type_alias_declaration":
            name = tree.node_text(statement.child_by_field_name("name"))
            value = statement.child_by_field_name("value")
            if _PROPS_NAME.search(name) and value is not None and value.type == "object_type":
                body = value
        if body is None:
            continue
        for member in body.named_children:
            if member.type != "property_signature":
                continue
            prop_name = tree.node_text(member.child_by_field_name("name")).strip("'\"")
            type_text = type_annotation_text(member.child_by_field_name("type"), tree.source) or "any"
            props[prop_name] = normalize_prop_type(type_text, has_child_token(member, "?"))
    return props


def _infer_state_type(tree: SourceTree, call: Node) -> str:
    type_arguments = call.child_by_field_name("type_arguments")
    if type_arguments is not None:
        return tree.type_text(type_arguments)[1:-1].strip() or "unknown"
    arguments = call_arguments(call)
    if not arguments:
        return "unknown"
    initial = arguments[0]
    if initial.type in {"true", "false"}:
        return "boolean"
    if initial.type == "number":
        return "number"
    if initial.type in {"string", "template_string"}:
        return "string"
    if initial.type == "null":
        return "null"
    if initial.type == "array":
        return "array"
    if initial.type == "object":
        return "object"
    return "unknown"


def extract_state(tree: SourceTree) -> Dict[str, str]:
    """Map ``useState`` value bindings to their inferred type."""
    state: Dict[str, str] = {}
    for declarator in descendants_of_type(tree.root, "variable_declarator"):
        name = declarator.child_by_field_name("name")
        value = declarator.child_by_field_name("value")
        if name is None or value is None or name.type != "array_pattern":
            continue
        if not _is_use_state(tree, value):
            continue
        elements = [child for child in name.named_children if child.type == "identifier"]
        if elements:
            state[tree.node_text(elements[0])] = _infer_state_type(tree, value)
    return state


def _jsx_attribute_parts(tree: SourceTree, attribute: Node) -> Tuple[str, Optional[Node]]:
    children = attribute.named_children
    if not children:
        return "", None
    name = tree.node_text(children[0])
    value = children[1] if len(children) > 1 else None
    if value is not None and value.type == "jsx_expression":
        inner = value.named_children
        value = inner[0] if inner else None
    return name, value


def extract_events(tree: SourceTree, props: Dict[str, Any]) -> Dict[str, Dict[str, str]]:
    """Return ``on*`` handlers passed in JSX that the component also declares as props.

    Files without any declared props keep every handler they wire up.
    """
    events: Dict[str, Dict[str, str]] = {}
    for attribute in descendants_of_type(tree.root, "jsx_attribute"):
        name, value = _jsx_attribute_parts(tree, attribute)
        if not _EVENT_PATTERN.match(name) or value is None:
            continue
        if props and name not in props:
            continue
        events[name] = {"type": "function", "signature": _event_signature(tree, value, props.get(name))}
    for name, declared in props.items():
        if _EVENT_PATTERN.match(name) and name not in events and isinstance(declared, dict):
            if declared.get("type") == "function":
                events[name] = {"type": "function", "signature": declared["signature"]}
    return dict(sorted(events.items()))


def _event_signature(tree: SourceTree, value: Node, declared: Any) -> str:
    if isinstance(declared, dict) and declared.get("type") == "function":
        return str(declared["signature"])
    if value.type in {"arrow_function", "function_expression", "function"}:
        parameters = value.child_by_field_name("parameters")
        if parameters is not None:
            return f"{tree.type_text(parameters)} => void"
        parameter = value.child_by_field_name("parameter")
        if parameter is not None:
            return f"({tree.type_text(parameter)}) => void"
    return "() => void"


def extract_jsx_routes(tree: SourceTree) -> List[str]:
    """Route-like string literals passed to navigation attributes."""
    routes: Set[str] = set()
    for attribute in descendants_of_type(tree.root, "jsx_attribute"):
        name, value = _jsx_attribute_parts(tree, attribute)
        if name not in _ROUTE_ATTRIBUTES:
            continue
        literal = string_value(value, tree.source)
        if literal and _ROUTE_LITERAL.match(literal):
            routes.add(literal)
    return sorted(routes)


# ---------------------------------------------------------------------------
# Exports
# ---------------------------------------------------------------------------


@dataclass
class ExportSummary:
    """Export shape plus the name and nature of the file's main export."""

    shape: ExportShape = field(default_factory=NoExports)
    default_name: Optional[str] = None
    default_is_function: bool = False
    names: List[str] = field(default_factory=list)


def extract_exports(tree: SourceTree, functions: Optional[Set[str]] = None) -> ExportSummary:
    """Determine the file's export shape.

    A default export wins. Otherwise every enumerable named export is kept in
    declaration order; a single export whose name cannot be read (``export *``,
    destructured declarations, ``export =``) makes the whole shape opaque.
    """
    local_functions = functions if functions is not None else set(extract_functions(tree))
    summary = ExportSummary()
    names: List[str] = []
    opaque = False
    has_default = False

    for statement in tree.root.named_children:
        if statement.type == "export_statement":
            if has_child_token(statement, "default"):
                has_default = True
                name, is_function = _default_target(tree, statement, local_functions)
                summary.default_name = name
                summary.default_is_function = is_function
                continue
            declaration = statement.child_by_field_name("declaration")
            if declaration is not None:
                declared, unknown = _declared_names(tree, declaration)
                names.extend(declared)
                opaque = opaque or unknown
                continue
            clause = next((c for c in statement.named_children if c.type == "export_clause"), None)
            if clause is not None:
                for specifier in clause.named_children:
                    if specifier.type != "export_specifier":
                        continue
                    exported = specifier.child_by_field_name("alias") or specifier.child_by_field_name("name")
                    exported_name = tree.node_text(exported)
                    if exported_name == "default":
                        has_default = True
                        local = tree.node_text(specifier.child_by_field_name("name"))
                        summary.default_name = local
                        summary.default_is_function = local in local_functions
                    else:
                        names.append(exported_name)
                continue
            namespace = next((c for c in statement.named_children if c.type == "namespace_export"), None)
            if namespace is not None and namespace.named_children:
                names.append(tree.node_text(namespace.named_children[-1]))
                continue
            opaque = True
        elif statement.type == "expression_statement":
            target = _commonjs_export(tree, statement)
            if target == "default":
                has_default = True
            elif target:
                names.append(target)

    summary.names = list(dict.fromkeys(names))
    if has_default:
        summary.shape = DefaultExport()
    elif opaque:
        summary.shape = OpaqueNamedExport()
    else:
        summary.shape = named_exports(summary.names)
    return summary


def _default_target(tree: SourceTree, statement: Node, functions: Set[str]) -> Tuple[Optional[str], bool]:
    declaration = statement.child_by_field_name("declaration")
    value = statement.child_by_field_name("value")
    target = declaration or value
    if target is None:
        return None, False
    if target.type in _FUNCTION_DECLARATIONS or target.type in _FUNCTION_VALUES:
        name = target.child_by_field_name("name")
        return (tree.node_text(name) if name is not None else None), True
    if target.type == "class_declaration":
        return tree.node_text(target.child_by_field_name("name")) or None, False
    if target.type == "identifier":
        name = tree.node_text(target)
        return name, name in functions
    if target.type == "call_expression":
        # memo(Component), forwardRef(...), defineComponent({...})
        arguments = call_arguments(target)
        if arguments and arguments[0].type == "identifier":
            name = tree.node_text(arguments[0])
            return name, name in functions
    return None, False


def _declared_names(tree: SourceTree, declaration: Node) -> Tuple[List[str], bool]:
    if declaration.type in _TYPE_ONLY_DECLARATIONS:
        return [], False
    if declaration.type in {"lexical_declaration", "variable_declaration"}:
        names: List[str] = []
        unknown = False
        for declarator in declaration.named_children:
            if declarator.type != "variable_declarator":
                continue
            name = declarator.child_by_field_name("name")
            if name is not None and name.type == "identifier":
                names.append(tree.node_text(name))
            else:
                unknown = True
        return names, unknown
    name = declaration.child_by_field_name("name")
    if name is not None:
        return [tree.node_text(name)], False
    return [], True


def _commonjs_export(tree: SourceTree, statement: Node) -> Optional[str]:
    expression = statement.named_children[0] if statement.named_children else None
    if expression is None or expression.type != "assignment_expression":
        return None
    left = tree.node_text(expression.child_by_field_name("left"))
    if left == "module.exports":
        return "default"
    for prefix in ("module.exports.", "exports."):
        if left.startswith(prefix):
            return left[len(prefix):] or None
    return None


# ---------------------------------------------------------------------------
# Classification signals
# ---------------------------------------------------------------------------


def has_markup(tree: SourceTree) -> bool:
    return any(node.type in _MARKUP_NODES for node in walk(tree.root))


def creates_elements(tree: SourceTree) -> bool:
    return bool(_CREATE_ELEMENT.search(tree.text))


def has_component_annotations(tree: SourceTree) -> bool:
    return bool(_COMPONENT_ANNOTATION.search(tree.text))


def reads_argv(tree: SourceTree) -> bool:
    return bool(_PROCESS_ARGV.search(tree.text))


def main_export(summary: ExportSummary, functions: Set[str]) -> Tuple[Optional[str], bool]:
    """Return the default export, else the first named export, and whether it is a function."""
    if isinstance(summary.shape, DefaultExport):
        return summary.default_name, summary.default_is_function
    if isinstance(summary.shape, NamedExports) and summary.shape.names:
        name = summary.shape.names[0]
        return name, name in functions
    return None, False


__all__ = [
    "ExportSummary",
    "HOOK_PATTERN",
    "creates_elements",
    "extract_components",
    "extract_events",
    "extract_exports",
    "extract_functions",
    "extract_hooks",
    "extract_imports",
    "extract_jsx_routes",
    "extract_props",
    "extract_state",
    "extract_variables",
    "has_component_annotations",
    "has_markup",
    "main_export",
    "normalize_prop_type",
    "reads_argv",
]
