"""Built-in backend route detectors."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from tree_sitter import Node

from ...models import ApiSignature, BackendFacts, Route
from ..parser import (
    SourceTree,
    call_arguments,
    descendants_of_type,
    string_value,
    top_level_statements,
)
from .core import (
    HTTP_VERBS,
    RouteDetector,
    join_paths,
    line_of,
    method_upper,
    normalize_path,
    path_params,
    signature_of,
)

_FUNCTION_VALUES = {"arrow_function", "function_expression", "function"}


def _literal_or_text(tree: SourceTree, node: Node) -> str:
    value = string_value(node, tree.source)
    if value is not None:
        return value
    return tree.node_text(node).replace("'", "").replace('"', "")


# ---------------------------------------------------------------------------
# Express detector
# ---------------------------------------------------------------------------

_EXPRESS_OBJECTS = {"app", "router"}


class ExpressDetector(RouteDetector):
    """Detect Express-style ``app.<verb>(path, handler)`` registrations."""

    framework = "express"

    def supports(self, tree: SourceTree, imports: Sequence[str]) -> bool:
        return any(item == "express" or item.startswith("express/") for item in imports)

    def extract(self, tree: SourceTree) -> Optional[BackendFacts]:
        handlers = self._named_functions(tree)
        routes: List[Route] = []
        decorators: List[str] = []
        for call in descendants_of_type(tree.root, "call_expression"):
            function = call.child_by_field_name("function")
            if function is None or function.type != "member_expression":
                continue
            owner = tree.node_text(function.child_by_field_name("object"))
            verb = tree.node_text(function.child_by_field_name("property"))
            if owner not in _EXPRESS_OBJECTS or verb.lower() not in HTTP_VERBS:
                continue
            arguments = call_arguments(call)
            if len(arguments) < 2:
                continue
            raw_path = _literal_or_text(tree, arguments[0])
            handler_node = arguments[-1]
            handler = "anonymous"
            if handler_node.type in {"identifier", "member_expression"}:
                handler = tree.node_text(handler_node)
            signature: Optional[ApiSignature] = None
            if handler in handlers:
                signature = signature_of(tree, handlers[handler])
            routes.append(
                Route(
                    method=method_upper(verb),
                    path=normalize_path(raw_path),
                    handler=handler,
                    params=path_params(raw_path),
                    api_signature=signature,
                    line=line_of(call),
                )
            )
            decorators.append(f"@{owner}.{verb.lower()}")
        if not routes:
            return None
        language_specific: Dict[str, List[str]] = {}
        if decorators:
            language_specific["decorators"] = decorators
        return BackendFacts(
            framework=self.framework,
            routes=tuple(routes),
            language_specific=language_specific,
        )

    @staticmethod
    def _named_functions(tree: SourceTree) -> Dict[str, Node]:
        found: Dict[str, Node] = {}
        for statement in top_level_statements(tree.root):
            if statement.type == "function_declaration":
                name = statement.child_by_field_name("name")
                if name is not None:
                    found[tree.node_text(name)] = statement
            elif statement.type in {"lexical_declaration", "variable_declaration"}:
                for declarator in statement.named_children:
                    if declarator.type != "variable_declarator":
                        continue
                    name = declarator.child_by_field_name("name")
                    value = declarator.child_by_field_name("value")
                    if name is not None and value is not None and value.type in _FUNCTION_VALUES:
                        found[tree.node_text(name)] = value
        return found


# ---------------------------------------------------------------------------
# NestJS detector
# ---------------------------------------------------------------------------

_NEST_VERBS = {"get", "post", "put", "delete", "patch"}


def _decorator_call(tree: SourceTree, decorator: Node) -> Tuple[str, List[Node]]:
    """Return the decorator name and its call arguments."""
    target = decorator.named_children[0] if decorator.named_children else None
    if target is None:
        return "", []
    if target.type == "call_expression":
        function = target.child_by_field_name("function")
        name = tree.node_text(function).split(".")[-1]
        return name, call_arguments(target)
    return tree.node_text(target).split(".")[-1], []


class NestDetector(RouteDetector):
    """Detect ``@Controller`` classes and their ``@Get``/``@Post``/... handlers."""

    framework = "nestjs"

    def supports(self, tree: SourceTree, imports: Sequence[str]) -> bool:
        return any(item.startswith("@nestjs/") for item in imports)

    def extract(self, tree: SourceTree) -> Optional[BackendFacts]:
        controller = self._find_controller(tree)
        if controller is None:
            return None
        class_node, decorators = controller
        name = tree.node_text(class_node.child_by_field_name("name")) or "UnknownController"
        base_path: Optional[str] = None
        for decorator in decorators:
            decorator_name, arguments = _decorator_call(tree, decorator)
            if decorator_name == "Controller" and arguments:
                base_path = _literal_or_text(tree, arguments[0])

        routes: List[Route] = []
        methods: List[str] = []
        body = class_node.child_by_field_name("body")
        pending: List[Node] = []
        for member in body.named_children if body is not None else []:
            if member.type == "decorator":
                pending.append(member)
                continue
            if member.type != "method_definition":
                pending = []
                continue
            method_decorators = pending + [c for c in member.named_children if c.type == "decorator"]
            pending = []
            method_name = tree.node_text(member.child_by_field_name("name"))
            methods.append(method_name)
            for decorator in method_decorators:
                decorator_name, arguments = _decorator_call(tree, decorator)
                if decorator_name.lower() not in _NEST_VERBS:
                    continue
                raw_path = _literal_or_text(tree, arguments[0]) if arguments else ""
                full_path = join_paths(base_path or "", raw_path)
                routes.append(
                    Route(
                        method=method_upper(decorator_name),
                        path=full_path,
                        handler=method_name,
                        params=path_params(full_path),
                        api_signature=signature_of(tree, member),
                        line=line_of(member),
                    )
                )

        annotations: List[str] = []
        for decorator in descendants_of_type(tree.root, "decorator"):
            decorator_name, _ = _decorator_call(tree, decorator)
            label = f"@{decorator_name}"
            if decorator_name and label not in annotations:
                annotations.append(label)
        language_specific: Dict[str, List[str]] = {"classes": [name]}
        if annotations:
            language_specific["annotations"] = annotations
        if methods:
            language_specific["methods"] = methods
        return BackendFacts(
            framework=self.framework,
            routes=tuple(routes),
            controller=name,
            base_path=normalize_path(base_path) if base_path else None,
            language_specific=language_specific,
        )

    @staticmethod
    def _find_controller(tree: SourceTree) -> Optional[Tuple[Node, List[Node]]]:
        for statement in tree.root.named_children:
            wrapper_decorators: List[Node] = []
            class_node = statement
            if statement.type == "export_statement":
                wrapper_decorators = [c for c in statement.named_children if c.type == "decorator"]
                declaration = statement.child_by_field_name("declaration")
                if declaration is None:
                    continue
                class_node = declaration
            if class_node.type not in {"class_declaration", "abstract_class_declaration"}:
                continue
            decorators = wrapper_decorators + [c for c in class_node.named_children if c.type == "decorator"]
            if any(_decorator_call(tree, d)[0] == "Controller" for d in decorators):
                return class_node, decorators
        return None


DEFAULT_DETECTORS = (ExpressDetector(), NestDetector())


__all__ = ["DEFAULT_DETECTORS", "ExpressDetector", "NestDetector"]
