"""
FastAPI application implementing the container volume plugin protocol.

Each endpoint decodes the orchestrator request, calls the VolumeManager and
encodes the result. Errors are reported in the ``Err`` field with status 500.
"""

import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from local_btrfs.api.models import (
    ActivateResponse,
    PluginCreateRequest,
    PluginMountRequest,
    PluginRequest,
    PluginResponse,
    format_validation_errors,
)
from local_btrfs.api.services.volume_service import Volume, VolumeManager
from local_btrfs.exceptions import LocalBtrfsError

logger = logging.getLogger(__name__)

PLUGIN_MEDIA_TYPE = "application/vnd.docker.plugins.v1.2+json"


def _volume(volume: Volume) -> Dict[str, Any]:
    return {"Name": volume.name, "Mountpoint": volume.mountpoint, "Status": {}}


def _error(message: str) -> JSONResponse:
    return JSONResponse(status_code=500, content={"Err": message}, media_type=PLUGIN_MEDIA_TYPE)


def create_plugin_app(manager: VolumeManager) -> FastAPI:
    """
    Build the plugin API application around a VolumeManager.
    """
    app = FastAPI(title="local-btrfs volume plugin", version="0.1.0")
    app.state.manager = manager

    @app.exception_handler(LocalBtrfsError)
    async def volume_error_handler(request: Request, exc: LocalBtrfsError) -> JSONResponse:
        logger.info("%s failed: %s", request.url.path, exc.message)
        return _error(exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        message = f"Invalid request: {format_validation_errors(exc.errors())}"
        logger.info("%s failed: %s", request.url.path, message)
        return _error(message)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler."""
        request_id = str(uuid.uuid4())
        logger.exception("Unhandled error (request_id=%s, path=%s)", request_id, request.url.path)
        return _error(f"Internal error (request_id={request_id})")

    @app.post("/Plugin.Activate", response_model=ActivateResponse)
    def activate() -> Dict[str, Any]:
        return {"Implements": ["VolumeDriver"]}

    @app.post("/VolumeDriver.Create", response_model=PluginResponse, response_model_exclude_none=True)
    def create(req: PluginCreateRequest) -> Dict[str, Any]:
        """
        Create a volume. Requires the ``mountpoint`` option.
        """
        manager.create(req.name, req.opts)
        return {"Err": ""}

    @app.post("/VolumeDriver.Remove", response_model=PluginResponse, response_model_exclude_none=True)
    def remove(req: PluginRequest) -> Dict[str, Any]:
        """
        Stop tracking a volume. Data on disk is kept.
        """
        manager.remove(req.name, purge=False)
        return {"Err": ""}

    @app.post("/VolumeDriver.Get", response_model=PluginResponse, response_model_exclude_none=True)
    def get(req: PluginRequest) -> Dict[str, Any]:
        return {"Volume": _volume(manager.get(req.name)), "Err": ""}

    @app.post("/VolumeDriver.List", response_model=PluginResponse, response_model_exclude_none=True)
    def list_volumes(req: Optional[PluginRequest] = None) -> Dict[str, Any]:
        return {"Volumes": [_volume(v) for v in manager.list()], "Err": ""}

    @app.post("/VolumeDriver.Path", response_model=PluginResponse, response_model_exclude_none=True)
    def path(req: PluginRequest) -> Dict[str, Any]:
        return {"Mountpoint": manager.path(req.name), "Err": ""}

    @app.post("/VolumeDriver.Mount", response_model=PluginResponse, response_model_exclude_none=True)
    def mount(req: PluginMountRequest) -> Dict[str, Any]:
        return {"Mountpoint": manager.mount(req.name), "Err": ""}

    @app.post("/VolumeDriver.Unmount", response_model=PluginResponse, response_model_exclude_none=True)
    def unmount(req: PluginMountRequest) -> Dict[str, Any]:
        return {"Mountpoint": manager.unmount(req.name), "Err": ""}

    @app.post("/VolumeDriver.Capabilities", response_model=PluginResponse, response_model_exclude_none=True)
    def capabilities() -> Dict[str, Any]:
        return {"Capabilities": {"Scope": manager.capabilities()["scope"]}}

    return app
