"""
FastAPI application for the administrative control channel.

Calls arrive as ``POST /rpc`` with a method name and positional string
arguments, are decoded into typed requests and dispatched to the volume
manager or snapshot engine.
"""

import logging
import uuid
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from local_btrfs.api.models import (
    ControlRequest,
    ControlResponse,
    CreateSnapRequest,
    CreateVolumeRequest,
    ListSnapshotsRequest,
    RemoveSnapRequest,
    RemoveVolumeRequest,
    RestoreSnapRequest,
    RpcCall,
    decode_call,
    format_validation_errors,
)
from local_btrfs.api.services.snapshot_service import SnapshotEngine
from local_btrfs.api.services.volume_service import VolumeManager
from local_btrfs.exceptions import (
    AlreadyExists,
    HostIOError,
    InvalidArgument,
    LocalBtrfsError,
    NotFound,
    RestoreIncomplete,
    ToolFailure,
)

logger = logging.getLogger(__name__)

# Most specific first: RestoreIncomplete is also a ToolFailure
_ERROR_CODES = (
    (InvalidArgument, 400, "INVALID_ARGUMENT"),
    (NotFound, 404, "NOT_FOUND"),
    (AlreadyExists, 409, "ALREADY_EXISTS"),
    (RestoreIncomplete, 500, "VOLUME_UNUSABLE"),
    (ToolFailure, 500, "TOOL_FAILURE"),
    (HostIOError, 500, "HOST_IO_FAILURE"),
)


def _error_response(request_id: str, status_code: int, code: str, message: str, details: Dict[str, Any]) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "request_id": request_id,
            "status": "error",
            "error": {"code": code, "message": message, "details": details},
        },
    )


def _error_details(exc: LocalBtrfsError) -> Dict[str, Any]:
    if isinstance(exc, RestoreIncomplete):
        return {"volume": exc.volume, "snapshot": exc.snapshot, "output": exc.output}
    if isinstance(exc, ToolFailure):
        return {"verb": exc.verb, "args": exc.args_list, "output": exc.output}
    if isinstance(exc, HostIOError):
        return {"path": exc.path}
    return {}


class ControlApi:
    """Dispatches decoded control requests to the services."""

    def __init__(self, manager: VolumeManager, snapshots: SnapshotEngine):
        self.manager = manager
        self.snapshots = snapshots

        self._handlers = {
            CreateVolumeRequest: self.create_volume,
            RemoveVolumeRequest: self.remove_volume,
            CreateSnapRequest: self.create_snap,
            ListSnapshotsRequest: self.list_snapshots,
            RemoveSnapRequest: self.remove_snap,
            RestoreSnapRequest: self.restore_snap,
        }

    def dispatch(self, req: ControlRequest) -> str:
        handler = self._handlers.get(type(req))
        if handler is None:
            raise InvalidArgument(f"Unsupported request: {type(req).__name__}")
        return handler(req)

    def create_volume(self, req: CreateVolumeRequest) -> str:
        self.manager.create(req.volume, {"mountpoint": req.path})
        return ""

    def remove_volume(self, req: RemoveVolumeRequest) -> str:
        self.manager.remove(req.volume, purge=req.purge)
        return ""

    def create_snap(self, req: CreateSnapRequest) -> str:
        self.snapshots.create(req.volume, req.name)
        return ""

    def list_snapshots(self, req: ListSnapshotsRequest) -> str:
        names = self.snapshots.list(req.volume)
        if not names:
            return ""
        return "\n".join(names) + "\n"

    def remove_snap(self, req: RemoveSnapRequest) -> str:
        self.snapshots.remove(req.volume, req.snapshot)
        return ""

    def restore_snap(self, req: RestoreSnapRequest) -> str:
        self.snapshots.restore(req.volume, req.snapshot)
        return ""


def create_control_app(manager: VolumeManager, snapshots: SnapshotEngine) -> FastAPI:
    """
    Build the control API application.
    """
    api = ControlApi(manager, snapshots)
    app = FastAPI(title="local-btrfs control API", version="0.1.0")
    app.state.control = api

    @app.exception_handler(LocalBtrfsError)
    async def volume_error_handler(request: Request, exc: LocalBtrfsError) -> JSONResponse:
        request_id = str(uuid.uuid4())
        for exc_type, status_code, code in _ERROR_CODES:
            if isinstance(exc, exc_type):
                break
        else:
            status_code, code = 500, "INTERNAL_ERROR"
        logger.info("Control call failed (request_id=%s, code=%s): %s", request_id, code, exc.message)
        return _error_response(request_id, status_code, code, exc.message, _error_details(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        request_id = str(uuid.uuid4())
        message = f"Invalid request: {format_validation_errors(exc.errors())}"
        logger.info("Control call rejected (request_id=%s): %s", request_id, message)
        return _error_response(request_id, 400, "INVALID_ARGUMENT", message, {})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler."""
        request_id = str(uuid.uuid4())
        logger.exception("Unhandled error (request_id=%s, path=%s)", request_id, request.url.path)
        return _error_response(request_id, 500, "INTERNAL_ERROR", "Internal server error", {})

    @app.post("/rpc", response_model=ControlResponse)
    def rpc(call: RpcCall) -> Dict[str, Any]:
        """
        Execute one control call.
        """
        request_id = str(uuid.uuid4())
        req = decode_call(call)
        logger.debug("Control call %s (request_id=%s)", req.method, request_id)
        result = api.dispatch(req)
        return {"request_id": request_id, "status": "ok", "data": {"result": result}}

    return app
