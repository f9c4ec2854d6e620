from __future__ import annotations

from collections.abc import Callable
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

RouteKind = Literal["module", "command"]
ValueKind = Literal["string", "number", "boolean", "list", "absent", "passthrough"]


class DeclaredType(BaseModel):
    """Documented parameter type narrowed to the closed set of value kinds."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    raw: str = ""
    kind: ValueKind = "absent"
    widget: str = "text"


class ParamDoc(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    type: str = ""
    text: str = ""


class CommandDoc(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    summary: list[str] = Field(default_factory=list)
    params: dict[str, ParamDoc] = Field(default_factory=dict)
    returns: list[str] = Field(default_factory=list)

    def param(self, name: str) -> ParamDoc:
        return self.params.get(name) or ParamDoc()


class ParameterDefinition(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    position: int = Field(ge=0)
    required: bool
    default: Any = None
    declared_type: DeclaredType = Field(default_factory=DeclaredType)
    description: str = ""
    variadic: bool = False
    keyword_only: bool = False


class Link(BaseModel):
    model_config = ConfigDict(extra="forbid")

    link: str
    name: str
    doc: str = ""
    type: RouteKind | None = None


class RouteNode(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str
    name: str
    display_name: str
    kind: RouteKind
    doc: str = ""

    def to_link(self) -> Link:
        return Link(link=self.path, name=self.name, doc=self.doc, type=self.kind)


class CommandNode(RouteNode):
    kind: Literal["command"] = "command"
    parameters: tuple[ParameterDefinition, ...] = ()
    returns: tuple[str, ...] = ()
    accepts_extra: bool = False
    wants_console: bool = False
    handler: Callable[..., Any] = Field(exclude=True, repr=False)

    def parameter(self, name: str) -> ParameterDefinition | None:
        for param in self.parameters:
            if param.name == name:
                return param
        return None


class ModuleNode(RouteNode):
    kind: Literal["module"] = "module"
    children: tuple[CommandNode | ModuleNode, ...] = ()

    def commands(self) -> list[CommandNode]:
        return [child for child in self.children if isinstance(child, CommandNode)]

    def modules(self) -> list[ModuleNode]:
        return [child for child in self.children if isinstance(child, ModuleNode)]


ModuleNode.model_rebuild()


class FormField(BaseModel):
    model_config = ConfigDict(extra="forbid")

    label: str
    name: str
    type: str
    declared_type: str = ""
    doc_name: str = ""
    value: Any = None
    doc: str = ""
    required: bool = False


class FormSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    command_name: str
    docs: str = ""
    name: str
    action: str
    method: Literal["post"] = "post"
    fields: list[FormField] = Field(default_factory=list)
