from __future__ import annotations

import os
import platform
import socket
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from pathlib import Path
from types import ModuleType
from typing import Any

from commandsite.core.config import Settings
from commandsite.core.contracts import ContractValidator
from commandsite.models.routes import CommandNode, FormField, FormSchema, Link, ModuleNode, RouteNode
from commandsite.models.runs import ExecutionResult, RetentionPolicy
from commandsite.services.commands.arguments import coerce
from commandsite.services.commands.introspector import RouteTable, walk
from commandsite.services.commands.namespace import Namespace
from commandsite.services.commands.sandbox import execute
from commandsite.services.runs.store import RunHistoryStore

DEFAULT_LINKS = [
    Link(link="/server", name="Server Info", doc="Information about the server this console is running on."),
    Link(link="/help", name="Help", doc="Interface documentation"),
]


def breadcrumbs(route_path: str) -> list[Link]:
    parts = [part for part in route_path.split("/") if part]
    return [
        Link(link="/" + "/".join(parts[: index + 1]), name=part)
        for index, part in enumerate(parts)
    ]


def field_label(name: str) -> str:
    return " ".join(word.capitalize() for word in name.split("_") if word) + ":"


class CommandSite:
    """Route table, sandbox and run history wired together for one command tree."""

    def __init__(
        self,
        routes: RouteTable,
        store: RunHistoryStore,
        *,
        app_name: str = "commandsite",
        log_commands: bool = True,
        retention: RetentionPolicy | None = None,
        readme: str | None = None,
    ) -> None:
        self._routes = routes
        self._store = store
        self._app_name = app_name
        self._log_commands = log_commands
        self._retention = retention or RetentionPolicy()
        self._readme = readme
        self._started_at = datetime.now(UTC)

    @classmethod
    def from_settings(
        cls,
        root: str | Namespace | ModuleType,
        settings: Settings,
        *,
        validator: ContractValidator | None = None,
    ) -> CommandSite:
        return cls(
            RouteTable.build(root),
            RunHistoryStore(settings.log_dir, settings.log_ext, validator=validator),
            app_name=settings.app_name,
            log_commands=settings.log_commands,
            retention=RetentionPolicy(logs_to_keep=settings.logs_to_keep),
            readme=settings.readme,
        )

    @property
    def routes(self) -> RouteTable:
        return self._routes

    @property
    def store(self) -> RunHistoryStore:
        return self._store

    @property
    def retention(self) -> RetentionPolicy:
        return self._retention

    @property
    def app_name(self) -> str:
        return self._app_name

    def node(self, path: str) -> RouteNode | None:
        return self._routes.get(path)

    def require_command(self, path: str) -> CommandNode:
        node = self._routes.get(path)
        if not isinstance(node, CommandNode):
            raise KeyError(f"command not found: {path}")
        return node

    def index(self) -> dict[str, Any]:
        return {
            "service": self._app_name,
            "routes": [link.model_dump() for link in [self._routes.root.to_link(), *DEFAULT_LINKS]],
            "readme": self._read_readme(),
        }

    def site_map(self) -> list[dict[str, Any]]:
        return [link.model_dump() for link in [*self._routes.links(), *DEFAULT_LINKS]]

    def server_info(self) -> dict[str, Any]:
        return {
            "name": self._app_name,
            "hostname": socket.gethostname(),
            "pid": os.getpid(),
            "python": platform.python_version(),
            "platform": platform.platform(),
            "started_at": self._started_at.isoformat(),
            "routes": len(self._routes),
            "log_dir": str(self._store.log_dir),
            "logs_to_keep": self._retention.logs_to_keep,
            "log_commands": self._log_commands,
        }

    def module_listing(self, node: ModuleNode) -> dict[str, Any]:
        sidebar = [
            child.to_link()
            for child in walk(node)
            if isinstance(child, ModuleNode) and child.path != node.path
        ]
        sidebar.append(Link(link=self._routes.parent_path(node.path), name="Back"))
        return {
            "name": node.name,
            "doc": node.doc,
            "command_list": [command.to_link().model_dump() for command in node.commands()],
            "module_list": [module.to_link().model_dump() for module in node.modules()],
            "sidebar": [link.model_dump() for link in sidebar],
            "breadcrumbs": [link.model_dump() for link in breadcrumbs(node.path)],
        }

    def form(self, node: CommandNode) -> FormSchema:
        return FormSchema(
            command_name=node.display_name,
            docs=node.doc,
            name=f"{node.path.replace('/', '_')}_form",
            action=node.path,
            fields=[
                FormField(
                    label=field_label(param.name),
                    name=param.name,
                    type=param.declared_type.widget,
                    declared_type=param.declared_type.raw,
                    doc_name=param.name if param.description or param.declared_type.raw else "",
                    value=_field_value(param.default),
                    doc=param.description,
                    required=param.required,
                )
                for param in node.parameters
            ],
        )

    def command_page(self, node: CommandNode) -> dict[str, Any]:
        sidebar = [
            Link(link=f"{node.path}/runs", name="Runs"),
            Link(link=self._routes.parent_path(node.path), name="Back"),
        ]
        return {
            "form": self.form(node).model_dump(),
            "returns": list(node.returns),
            "sidebar": [link.model_dump() for link in sidebar],
            "breadcrumbs": [link.model_dump() for link in breadcrumbs(node.path)],
        }

    def run(self, node: CommandNode, submitted: Mapping[str, Any]) -> ExecutionResult:
        """Execute a form or JSON submission and record it in the run history."""
        return self._finish(node, execute(node, coerce(node.parameters, submitted), submitted))

    def run_tokens(self, node: CommandNode, tokens: Sequence[str]) -> ExecutionResult:
        """Execute command-line tokens through the same binding path as web submissions."""
        return self._finish(node, execute(node, tokens))

    def runs(self, node: CommandNode) -> dict[str, Any]:
        return {
            "doc": "",
            "links": [
                {"link": entry.link, "name": entry.timestamp.isoformat(), "run_id": entry.run_id, "doc": ""}
                for entry in self._store.list_runs(node.path)
            ],
            "sidebar": [Link(link=node.path, name="Back").model_dump()],
            "breadcrumbs": [link.model_dump() for link in breadcrumbs(f"{node.path}/runs")],
        }

    def run_detail(self, node: CommandNode, run_id: str) -> ExecutionResult | None:
        return self._store.read_run(node.path, run_id)

    def _finish(self, node: CommandNode, result: ExecutionResult) -> ExecutionResult:
        if self._log_commands:
            self._store.record(node.path, result, self._retention)
        return result

    def _read_readme(self) -> str:
        if not self._readme:
            return ""
        path = Path(self._readme)
        if not path.is_file():
            return ""
        return path.read_text(encoding="utf-8")


def _field_value(default: Any) -> Any:
    if default is None or isinstance(default, (str, int, float, bool)):
        return default
    if isinstance(default, (list, tuple)):
        return [_field_value(item) for item in default]
    if isinstance(default, dict):
        return {str(key): _field_value(value) for key, value in default.items()}
    return repr(default)
