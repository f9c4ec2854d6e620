from __future__ import annotations

import inspect
from collections.abc import Callable
from types import ModuleType
from typing import Any

_INTEGRATION_PACKAGE = "commandsite"


class Namespace:
    """Named group of commands and sub-namespaces, kept in declaration order."""

    def __init__(self, name: str, doc: str = "") -> None:
        if not name or "/" in name:
            raise ValueError(f"invalid namespace name: {name!r}")
        self._name = name
        self._doc = doc
        self._members: dict[str, Any] = {}

    @property
    def name(self) -> str:
        return self._name

    @property
    def doc(self) -> str:
        return self._doc

    def command(
        self,
        func: Callable[..., Any] | None = None,
        *,
        name: str | None = None,
    ) -> Any:
        """Register ``func`` as a command; usable bare or as ``@ns.command(name=...)``."""

        def _register(target: Callable[..., Any]) -> Callable[..., Any]:
            self._add(name or target.__name__, target)
            return target

        if func is None:
            return _register
        return _register(func)

    def include(self, member: Namespace | ModuleType | Callable[..., Any], *, name: str | None = None) -> Namespace:
        if isinstance(member, Namespace):
            self._add(name or member.name, member)
        elif isinstance(member, ModuleType):
            self._add(name or member.__name__.rsplit(".", 1)[-1], member)
        elif callable(member):
            self._add(name or member.__name__, member)
        else:
            raise TypeError(f"cannot include {type(member).__name__} in namespace {self._name}")
        return self

    def members(self) -> list[tuple[str, Any]]:
        return list(self._members.items())

    @classmethod
    def from_module(cls, module: ModuleType, name: str | None = None) -> Namespace:
        """Adapt a Python module: its own public functions, in-package submodules and namespaces."""
        namespace = cls(name or module.__name__.rsplit(".", 1)[-1], doc=module.__doc__ or "")
        exported = getattr(module, "__all__", None)
        names = list(exported) if exported is not None else list(vars(module))

        for member_name in names:
            if member_name.startswith("_"):
                continue
            member = getattr(module, member_name, None)
            if isinstance(member, Namespace):
                namespace._add(member_name, member)
            elif is_integration_member(member):
                continue
            elif isinstance(member, ModuleType):
                if member.__name__.startswith(f"{module.__name__}."):
                    namespace._add(member_name, member)
            elif inspect.isfunction(member) and member.__module__ == module.__name__:
                namespace._add(member_name, member)
        return namespace

    def _add(self, member_name: str, member: Any) -> None:
        if not member_name or member_name.startswith("_"):
            raise ValueError(f"members must have a public name, got {member_name!r}")
        if member_name in self._members:
            raise ValueError(f"member already registered in {self._name}: {member_name}")
        self._members[member_name] = member

    def __repr__(self) -> str:
        return f"Namespace({self._name!r}, members={list(self._members)!r})"


def is_integration_member(member: Any) -> bool:
    if isinstance(member, ModuleType):
        module_name = member.__name__
    else:
        module_name = getattr(member, "__module__", None) or ""
    return module_name == _INTEGRATION_PACKAGE or module_name.startswith(f"{_INTEGRATION_PACKAGE}.")


def as_namespace(member: Any) -> Namespace | None:
    if isinstance(member, Namespace):
        return member
    if isinstance(member, ModuleType):
        return Namespace.from_module(member)
    return None


def namespace_key(member: Namespace | ModuleType) -> tuple[str, Any]:
    """Identity of a namespace source; modules are identified by import name."""
    if isinstance(member, ModuleType):
        return ("module", member.__name__)
    return ("namespace", id(member))
