from __future__ import annotations

import importlib
import inspect
from collections.abc import Callable, Iterator
from types import ModuleType
from typing import Any, get_origin

from commandsite.core.logging import logger
from commandsite.models.routes import (
    CommandNode,
    DeclaredType,
    Link,
    ModuleNode,
    ParameterDefinition,
    RouteNode,
)
from commandsite.services.commands import docs
from commandsite.services.commands.namespace import Namespace, as_namespace, namespace_key

CONSOLE_PARAMETER = "console"

_ANNOTATION_KINDS: dict[Any, str] = {
    int: "number",
    float: "number",
    bool: "boolean",
    list: "list",
    tuple: "list",
    str: "string",
}
_ANNOTATION_NAMES: dict[str, type] = {kind.__name__: kind for kind in _ANNOTATION_KINDS}


class DiscoveryError(RuntimeError):
    def __init__(self, code: str, message: str, *, payload: dict | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.payload = payload or {}


def resolve_root(target: str | Namespace | ModuleType) -> Namespace | ModuleType:
    """Accept a namespace, a module, or a ``package.module[:attribute]`` import string."""
    if isinstance(target, (Namespace, ModuleType)):
        return target

    module_name, _, attribute = str(target).partition(":")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise DiscoveryError(
            "UNRESOLVABLE_NAMESPACE",
            f"cannot import namespace module: {module_name}",
            payload={"target": str(target)},
        ) from exc

    if not attribute:
        return module
    resolved = getattr(module, attribute, None)
    if not isinstance(resolved, (Namespace, ModuleType)):
        raise DiscoveryError(
            "UNRESOLVABLE_NAMESPACE",
            f"{target} does not name a namespace",
            payload={"target": str(target)},
        )
    return resolved


def discover(
    root: str | Namespace | ModuleType,
    prefix: str = "/",
    *,
    _visiting: set[tuple[str, Any]] | None = None,
) -> ModuleNode:
    """Walk a namespace tree once and build its immutable route nodes."""
    source = resolve_root(root)
    visiting = _visiting if _visiting is not None else set()
    key = namespace_key(source)
    namespace = as_namespace(source)
    if key in visiting:
        raise DiscoveryError(
            "NAMESPACE_CYCLE",
            f"namespace {namespace.name} includes itself",
            payload={"namespace": namespace.name, "prefix": prefix},
        )

    route_path = f"{prefix.rstrip('/')}/{namespace.name}"
    visiting.add(key)
    try:
        children: list[CommandNode | ModuleNode] = []
        for member_name, member in namespace.members():
            if isinstance(member, (Namespace, ModuleType)):
                children.append(discover(member, route_path, _visiting=visiting))
            else:
                children.append(build_command(member, member_name, route_path))
    finally:
        visiting.discard(key)

    node = ModuleNode(
        path=route_path,
        name=namespace.name,
        display_name=namespace.name,
        doc=docs.module_doc(namespace.doc),
        children=tuple(children),
    )
    if _visiting is None:
        logger.info("namespace_discovered", root=route_path, routes=sum(1 for _ in walk(node)))
    return node


def build_command(handler: Callable[..., Any], name: str, prefix: str) -> CommandNode:
    try:
        signature = inspect.signature(handler)
    except (TypeError, ValueError) as exc:
        raise DiscoveryError(
            "UNSUPPORTED_COMMAND",
            f"cannot read the signature of {name}",
            payload={"command": name, "prefix": prefix},
        ) from exc

    listed = [
        param
        for param in signature.parameters.values()
        if param.kind is not inspect.Parameter.VAR_KEYWORD and param.name != CONSOLE_PARAMETER
    ]
    command_doc = docs.parse(inspect.getdoc(handler), [param.name for param in listed])

    parameters: list[ParameterDefinition] = []
    for position, param in enumerate(listed):
        param_doc = command_doc.param(param.name)
        variadic = param.kind is inspect.Parameter.VAR_POSITIONAL
        has_default = param.default is not inspect.Parameter.empty
        parameters.append(
            ParameterDefinition(
                name=param.name,
                position=position,
                required=not has_default and not variadic,
                default=param.default if has_default else None,
                declared_type=_declared_type(param, param_doc.type, variadic),
                description=param_doc.text,
                variadic=variadic,
                keyword_only=param.kind is inspect.Parameter.KEYWORD_ONLY,
            )
        )

    return CommandNode(
        path=f"{prefix.rstrip('/')}/{name}",
        name=name,
        display_name=" ".join(word.capitalize() for word in name.split("_") if word),
        doc="\n".join(command_doc.summary),
        parameters=tuple(parameters),
        returns=tuple(command_doc.returns),
        accepts_extra=any(
            param.kind is inspect.Parameter.VAR_KEYWORD for param in signature.parameters.values()
        ),
        wants_console=_wants_console(signature),
        handler=handler,
    )


def _wants_console(signature: inspect.Signature) -> bool:
    param = signature.parameters.get(CONSOLE_PARAMETER)
    return param is not None and param.kind is inspect.Parameter.KEYWORD_ONLY


def _declared_type(param: inspect.Parameter, documented: str, variadic: bool) -> DeclaredType:
    """Documented type wins; otherwise fall back to the annotation, then the default's type."""
    if documented:
        return docs.declared_type(documented)
    if variadic:
        return DeclaredType(raw="", kind="list", widget="array")

    hint: Any = param.annotation
    if hint is inspect.Parameter.empty and param.default is not inspect.Parameter.empty and param.default is not None:
        hint = type(param.default)
    if isinstance(hint, str):
        hint = _ANNOTATION_NAMES.get(hint.strip(), hint)
    kind = _ANNOTATION_KINDS.get(get_origin(hint) or hint)
    if kind is None:
        return DeclaredType()
    widget = {"number": "number", "boolean": "checkbox", "list": "array"}.get(kind, "text")
    return DeclaredType(raw="", kind=kind, widget=widget)


def walk(node: RouteNode) -> Iterator[RouteNode]:
    yield node
    if isinstance(node, ModuleNode):
        for child in node.children:
            yield from walk(child)


class RouteTable:
    """Path index over a discovered tree. Built once, read-only afterwards."""

    def __init__(self, root: ModuleNode) -> None:
        self._root = root
        self._nodes: dict[str, RouteNode] = {}
        self._parents: dict[str, str] = {}
        for node in walk(root):
            if node.path in self._nodes:
                raise DiscoveryError(
                    "DUPLICATE_ROUTE",
                    f"route defined twice: {node.path}",
                    payload={"path": node.path},
                )
            self._nodes[node.path] = node
            if isinstance(node, ModuleNode):
                for child in node.children:
                    self._parents[child.path] = node.path

    @classmethod
    def build(cls, root: str | Namespace | ModuleType) -> RouteTable:
        return cls(discover(root))

    @property
    def root(self) -> ModuleNode:
        return self._root

    def get(self, path: str) -> RouteNode | None:
        normalized = "/" + path.strip("/")
        return self._nodes.get(normalized)

    def parent_path(self, path: str) -> str:
        return self._parents.get(path, "/")

    def commands(self) -> list[CommandNode]:
        return [node for node in self._nodes.values() if isinstance(node, CommandNode)]

    def links(self) -> list[Link]:
        return [node.to_link() for node in self._nodes.values()]

    def __contains__(self, path: str) -> bool:
        return self.get(path) is not None

    def __len__(self) -> int:
        return len(self._nodes)
