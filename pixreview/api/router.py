"""Aggregate all API sub-routers."""

from fastapi import APIRouter

from . import auth, files, metadata, convert, download, settings, ws

api_router = APIRouter()

api_router.include_router(auth.router)
api_router.include_router(files.router)
api_router.include_router(metadata.router)
api_router.include_router(convert.router)
api_router.include_router(download.router)
api_router.include_router(settings.router)
api_router.include_router(ws.router)
