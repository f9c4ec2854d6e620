from __future__ import annotations

import argparse
import importlib.util
import json
import sys
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from commandsite.core.config import Settings, load_settings, write_settings
from commandsite.core.logging import configure_logging
from commandsite.models.routes import CommandNode
from commandsite.services.commands.introspector import DiscoveryError
from commandsite.services.runs.store import RunHistoryError
from commandsite.services.site import CommandSite


@dataclass
class Runtime:
    settings: Settings
    site: CommandSite | None = None


REQUIRED_DEPENDENCIES = [
    "fastapi",
    "uvicorn",
    "socketio",
    "multipart",
    "pydantic",
    "pydantic_settings",
    "structlog",
    "orjson",
    "jsonschema",
]


def _settings_from_args(args: argparse.Namespace) -> Settings:
    return load_settings(
        args.config_file,
        log_dir=args.log_dir,
        log_ext=args.log_ext,
        logs_to_keep=args.logs_to_keep,
        log_level=args.log_level,
        log_commands=False if args.no_log_commands else None,
    )


def _create_runtime(args: argparse.Namespace) -> Runtime:
    from commandsite.core.contracts import ContractValidator

    settings = _settings_from_args(args)
    configure_logging(settings.log_level)
    runtime = Runtime(settings=settings)
    root = getattr(args, "root", None)
    if root is not None:
        runtime.site = CommandSite.from_settings(root, settings, validator=ContractValidator())
    return runtime


def _emit(payload: dict[str, Any], *, as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, indent=2, default=str))
        return
    for key, value in payload.items():
        print(f"{key}: {value}")


def _resolve_command(site: CommandSite, route: str) -> CommandNode | None:
    for candidate in (route, f"{site.routes.root.path}/{route.strip('/')}"):
        node = site.node(candidate)
        if isinstance(node, CommandNode):
            return node
    return None


def _command_not_found(args: argparse.Namespace) -> int:
    _emit(
        {"status": "error", "error_code": "ROUTE_NOT_FOUND", "route": args.route},
        as_json=args.output_json,
    )
    return 2


def _run_health(args: argparse.Namespace, runtime: Runtime) -> int:
    del runtime
    _emit(
        {
            "status": "ok",
            "component": "commandsite-cli",
            "timestamp_utc": datetime.now(UTC).isoformat(),
        },
        as_json=args.output_json,
    )
    return 0


def _run_deps_check(args: argparse.Namespace, runtime: Runtime) -> int:
    del runtime
    checks = [
        {"module": module, "installed": importlib.util.find_spec(module) is not None}
        for module in REQUIRED_DEPENDENCIES
    ]
    missing = [row["module"] for row in checks if not row["installed"]]
    payload = {
        "status": "ok" if not missing else "error",
        "checked": len(checks),
        "missing_count": len(missing),
        "checks": checks,
        "missing_modules": missing,
        "fix": ["pip install -e ."] if missing else [],
    }
    _emit(payload, as_json=args.output_json)
    return 0 if not missing else 2


def _run_routes(args: argparse.Namespace, runtime: Runtime) -> int:
    site_map = runtime.site.site_map()
    if args.output_json:
        _emit({"count": len(site_map), "routes": site_map}, as_json=True)
        return 0
    for link in site_map:
        kind = link["type"] or "page"
        print(f"{kind:<8} {link['link']}")
    return 0


def _run_command(args: argparse.Namespace, runtime: Runtime) -> int:
    node = _resolve_command(runtime.site, args.route)
    if node is None:
        return _command_not_found(args)

    tokens = [token for token in args.tokens if token != "--"]
    result = runtime.site.run_tokens(node, tokens)
    if args.output_json:
        _emit(result.model_dump(mode="json"), as_json=True)
    else:
        sys.stdout.write(result.stdout)
        sys.stderr.write(result.stderr)
        if result.has_error:
            sys.stderr.write(f"{result.error_message}\n")
    return 1 if result.has_error else 0


def _run_runs_list(args: argparse.Namespace, runtime: Runtime) -> int:
    node = _resolve_command(runtime.site, args.route)
    if node is None:
        return _command_not_found(args)
    entries = runtime.site.store.list_runs(node.path)
    _emit(
        {
            "route_path": node.path,
            "count": len(entries),
            "run_ids": [entry.run_id for entry in entries],
        },
        as_json=args.output_json,
    )
    return 0


def _run_runs_show(args: argparse.Namespace, runtime: Runtime) -> int:
    node = _resolve_command(runtime.site, args.route)
    if node is None:
        return _command_not_found(args)
    try:
        result = runtime.site.run_detail(node, args.run_id)
    except RunHistoryError as error:
        _emit({"status": "error", "error_code": error.code, **error.payload}, as_json=args.output_json)
        return 2
    if result is None:
        _emit(
            {"status": "error", "error_code": "RUN_NOT_FOUND", "run_id": args.run_id},
            as_json=args.output_json,
        )
        return 2
    _emit(result.model_dump(mode="json"), as_json=args.output_json)
    return 0


def _run_serve(args: argparse.Namespace, runtime: Runtime) -> int:
    import uvicorn

    from commandsite.main import create_application

    _, _, asgi_app = create_application(args.root, settings=runtime.settings)
    uvicorn.run(
        asgi_app,
        host=args.host or runtime.settings.host,
        port=args.port or runtime.settings.port,
        log_level=runtime.settings.log_level.lower(),
    )
    return 0


def _run_config_write(args: argparse.Namespace, runtime: Runtime) -> int:
    target = write_settings(runtime.settings, args.path)
    _emit({"written": True, "path": str(target)}, as_json=args.output_json)
    return 0


def _add_output_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--output-json", action="store_true")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="commandsite", description="Serve a command tree as a web interface.")
    parser.add_argument("--config-file", default=None)
    parser.add_argument("--log-dir", default=None)
    parser.add_argument("--log-ext", default=None)
    parser.add_argument("--logs-to-keep", type=int, default=None)
    parser.add_argument("--log-level", default=None)
    parser.add_argument("--no-log-commands", action="store_true")
    subparsers = parser.add_subparsers(dest="command", required=True)

    health = subparsers.add_parser("health")
    _add_output_flag(health)
    health.set_defaults(handler=_run_health)

    deps = subparsers.add_parser("deps")
    deps_sub = deps.add_subparsers(dest="deps_command", required=True)
    deps_check = deps_sub.add_parser("check")
    _add_output_flag(deps_check)
    deps_check.set_defaults(handler=_run_deps_check)

    routes = subparsers.add_parser("routes")
    routes.add_argument("root", help="namespace to serve, as package.module[:attribute]")
    _add_output_flag(routes)
    routes.set_defaults(handler=_run_routes)

    run_cmd = subparsers.add_parser("run")
    _add_output_flag(run_cmd)
    run_cmd.add_argument("root")
    run_cmd.add_argument("route", help="full route path or a path relative to the root namespace")
    run_cmd.add_argument("tokens", nargs=argparse.REMAINDER)
    run_cmd.set_defaults(handler=_run_command)

    runs = subparsers.add_parser("runs")
    runs_sub = runs.add_subparsers(dest="runs_command", required=True)
    runs_list = runs_sub.add_parser("list")
    runs_list.add_argument("root")
    runs_list.add_argument("route")
    _add_output_flag(runs_list)
    runs_list.set_defaults(handler=_run_runs_list)
    runs_show = runs_sub.add_parser("show")
    runs_show.add_argument("root")
    runs_show.add_argument("route")
    runs_show.add_argument("run_id")
    _add_output_flag(runs_show)
    runs_show.set_defaults(handler=_run_runs_show)

    serve = subparsers.add_parser("serve")
    serve.add_argument("root")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    _add_output_flag(serve)
    serve.set_defaults(handler=_run_serve)

    config = subparsers.add_parser("config")
    config_sub = config.add_subparsers(dest="config_command", required=True)
    config_write = config_sub.add_parser("write")
    config_write.add_argument("path")
    _add_output_flag(config_write)
    config_write.set_defaults(handler=_run_config_write)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        runtime = _create_runtime(args)
    except DiscoveryError as error:
        _emit(
            {"status": "error", "error_code": error.code, "message": str(error), **error.payload},
            as_json=args.output_json,
        )
        return 2
    except ValidationError as error:
        _emit(
            {
                "status": "error",
                "error_code": "INVALID_SETTINGS",
                "errors": [
                    {"field": ".".join(str(part) for part in row["loc"]), "message": row["msg"]}
                    for row in error.errors()
                ],
            },
            as_json=args.output_json,
        )
        return 2
    return args.handler(args, runtime)


def run() -> None:
    raise SystemExit(main())


if __name__ == "__main__":
    raise SystemExit(main())
