from __future__ import annotations

from fastapi import APIRouter, Request

from commandsite.services.site import CommandSite

router = APIRouter(tags=["site"])


def _site(request: Request) -> CommandSite:
    return request.app.state.site


@router.get("/")
async def index(request: Request) -> dict:
    return _site(request).index()


@router.get("/help")
async def help_page(request: Request) -> list[dict]:
    return _site(request).site_map()


@router.get("/server")
async def server_info(request: Request) -> dict:
    return _site(request).server_info()
