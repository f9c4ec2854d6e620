from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request, status
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from commandsite.core.logging import logger
from commandsite.models.routes import CommandNode, ModuleNode
from commandsite.models.runs import ExecutionResult
from commandsite.services.runs.store import RunHistoryError
from commandsite.services.site import CommandSite

router = APIRouter(tags=["commands"])


def _site(request: Request) -> CommandSite:
    return request.app.state.site


def _not_found(route_path: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"code": "ROUTE_NOT_FOUND", "route_path": route_path},
    )


async def _safe_emit(request: Request, event_name: str, payload: dict[str, Any]) -> None:
    try:
        await request.app.state.sio.emit(event_name, payload)
    except Exception as exc:  # pragma: no cover
        logger.warning(
            "socket_emit_failed",
            event_name=event_name,
            error_type=type(exc).__name__,
            error_message=str(exc),
        )


async def _submission(request: Request) -> dict[str, Any]:
    """Flat key/value map from a JSON or form body.

    Repeated and ``name[]`` keys become lists. Uploaded files are submitted by filename.
    """
    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        body = await request.json()
        if not isinstance(body, dict):
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
                detail={"code": "INVALID_SUBMISSION", "expected": "object"},
            )
        return body

    form = await request.form()
    submitted: dict[str, Any] = {}
    for key, item in form.multi_items():
        if isinstance(item, UploadFile):
            await item.close()
            value = item.filename or ""
        else:
            value = item
        name = key[:-2] if key.endswith("[]") else key
        if name in submitted or key.endswith("[]"):
            current = submitted.get(name, [])
            submitted[name] = [*current, value] if isinstance(current, list) else [current, value]
        else:
            submitted[name] = value
    return submitted


@router.get("/{route_path:path}")
async def show_route(route_path: str, request: Request) -> dict:
    site = _site(request)
    node = site.node(route_path)
    if isinstance(node, ModuleNode):
        return site.module_listing(node)
    if isinstance(node, CommandNode):
        return site.command_page(node)

    parts = [part for part in route_path.split("/") if part]
    if len(parts) >= 2 and parts[-1] == "runs":
        command = site.node("/".join(parts[:-1]))
        if isinstance(command, CommandNode):
            return site.runs(command)
    if len(parts) >= 3 and parts[-2] == "runs":
        command = site.node("/".join(parts[:-2]))
        if isinstance(command, CommandNode):
            return _run_detail(site, command, parts[-1])
    raise _not_found(route_path)


def _run_detail(site: CommandSite, command: CommandNode, run_id: str) -> dict:
    try:
        result = site.run_detail(command, run_id)
    except RunHistoryError as error:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"code": error.code, **error.payload},
        ) from error
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "RUN_NOT_FOUND", "route_path": command.path, "run_id": run_id},
        )
    return result.model_dump(mode="json")


@router.post("/{route_path:path}", response_model=ExecutionResult)
async def execute_command(route_path: str, request: Request) -> ExecutionResult:
    site = _site(request)
    node = site.node(route_path)
    if not isinstance(node, CommandNode):
        raise _not_found(route_path)

    submitted = await _submission(request)
    result = await run_in_threadpool(site.run, node, submitted)
    await _safe_emit(
        request,
        "command_executed",
        {
            "route_path": result.route_path,
            "has_error": result.has_error,
            "timestamp": result.timestamp.isoformat(),
        },
    )
    return result
