from __future__ import annotations

import os
from types import ModuleType

from fastapi import FastAPI
from socketio import ASGIApp, AsyncServer

from commandsite.api.commands import router as commands_router
from commandsite.api.health import router as health_router
from commandsite.api.site import router as site_router
from commandsite.core.config import Settings, settings as default_settings
from commandsite.core.contracts import ContractValidator
from commandsite.core.logging import configure_logging
from commandsite.services.commands.namespace import Namespace
from commandsite.services.site import CommandSite

ROOT_ENV_VAR = "COMMANDSITE_ROOT"


def create_application(
    root: str | Namespace | ModuleType,
    *,
    settings: Settings | None = None,
    log_dir: str | None = None,
) -> tuple[FastAPI, AsyncServer, ASGIApp]:
    resolved_settings = settings or default_settings
    if log_dir is not None:
        resolved_settings = resolved_settings.model_copy(update={"log_dir": log_dir})
    configure_logging(resolved_settings.log_level)

    app = FastAPI(title=resolved_settings.app_name)
    sio = AsyncServer(async_mode="asgi", cors_allowed_origins="*")

    contracts = ContractValidator()
    site = CommandSite.from_settings(root, resolved_settings, validator=contracts)

    app.state.sio = sio
    app.state.settings = resolved_settings
    app.state.contracts = contracts
    app.state.site = site

    app.include_router(health_router)
    app.include_router(site_router)
    # Catch-all command routes must stay last.
    app.include_router(commands_router)

    @sio.event
    async def connect(sid: str, environ: dict, auth: dict | None) -> None:
        del sid, environ, auth

    @sio.event
    async def disconnect(sid: str) -> None:
        del sid

    asgi_app = ASGIApp(socketio_server=sio, other_asgi_app=app)
    return app, sio, asgi_app


def asgi_from_env() -> ASGIApp:
    """Factory for ``uvicorn --factory commandsite.main:asgi_from_env``."""
    root = os.environ.get(ROOT_ENV_VAR)
    if not root:
        raise RuntimeError(f"{ROOT_ENV_VAR} must name the command namespace to serve")
    _, _, asgi_app = create_application(root)
    return asgi_app
