"""
Pydantic models for the plugin and control APIs.
"""

from typing import Any, Dict, List, Literal, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from local_btrfs.cli.lib.validators import parse_bool
from local_btrfs.exceptions import InvalidArgument

# Plugin API Models


class PluginRequest(BaseModel):
    """Request body shared by the volume plugin endpoints."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field("", alias="Name", description="Volume name")


class PluginCreateRequest(PluginRequest):
    """Request model for VolumeDriver.Create."""

    opts: Optional[Dict[str, str]] = Field(None, alias="Opts", description="Driver options")


class PluginMountRequest(PluginRequest):
    """Request model for VolumeDriver.Mount and VolumeDriver.Unmount."""

    id: str = Field("", alias="ID", description="Caller-generated mount id")


class PluginVolume(BaseModel):
    """Volume as reported to the orchestrator."""

    Name: str
    Mountpoint: str
    Status: Dict[str, str] = Field(default_factory=dict)


class PluginCapabilities(BaseModel):
    """Capabilities reported to the orchestrator."""

    Scope: str


class PluginResponse(BaseModel):
    """Response model for volume plugin endpoints."""

    Err: str = ""
    Volume: Optional[PluginVolume] = None
    Volumes: Optional[List[PluginVolume]] = None
    Mountpoint: Optional[str] = None
    Capabilities: Optional[PluginCapabilities] = None


class ActivateResponse(BaseModel):
    """Response model for Plugin.Activate."""

    Implements: List[str]


# Control API Models


class RpcCall(BaseModel):
    """Raw control call: method name plus positional string arguments."""

    method: str = Field(..., description="Method name, optionally prefixed with 'RpcApi.'", min_length=1)
    args: List[str] = Field(default_factory=list, description="Positional arguments")


class CreateVolumeRequest(BaseModel):
    method: Literal["CreateVolume"] = "CreateVolume"
    volume: str
    path: str


class RemoveVolumeRequest(BaseModel):
    method: Literal["RemoveVolume"] = "RemoveVolume"
    volume: str
    purge: bool

    @field_validator("purge", mode="before")
    def validate_purge(cls, v: str) -> bool:
        return parse_bool(v)


class CreateSnapRequest(BaseModel):
    method: Literal["CreateSnap"] = "CreateSnap"
    volume: str
    name: str


class ListSnapshotsRequest(BaseModel):
    method: Literal["ListSnapshots"] = "ListSnapshots"
    volume: str


class RemoveSnapRequest(BaseModel):
    method: Literal["RemoveSnap"] = "RemoveSnap"
    volume: str
    snapshot: str


class RestoreSnapRequest(BaseModel):
    method: Literal["RestoreSnap"] = "RestoreSnap"
    volume: str
    snapshot: str


ControlRequest = Union[
    CreateVolumeRequest,
    RemoveVolumeRequest,
    CreateSnapRequest,
    ListSnapshotsRequest,
    RemoveSnapRequest,
    RestoreSnapRequest,
]

CONTROL_METHODS = {
    cls.model_fields["method"].default: cls
    for cls in (
        CreateVolumeRequest,
        RemoveVolumeRequest,
        CreateSnapRequest,
        ListSnapshotsRequest,
        RemoveSnapRequest,
        RestoreSnapRequest,
    )
}

RPC_PREFIX = "RpcApi."


def decode_call(call: RpcCall) -> ControlRequest:
    """
    Turn a raw control call into its typed request.

    Args:
        call: Method name and positional arguments

    Returns:
        One of the control request models

    Raises:
        InvalidArgument: Unknown method, wrong argument count or malformed value
    """
    method = call.method
    if method.startswith(RPC_PREFIX):
        method = method[len(RPC_PREFIX):]

    request_cls = CONTROL_METHODS.get(method)
    if request_cls is None:
        raise InvalidArgument(f"Unknown method: {call.method}")

    fields = [f for f in request_cls.model_fields if f != "method"]
    if len(call.args) != len(fields):
        raise InvalidArgument(f"{method} expects {len(fields)} arguments ({', '.join(fields)}), got {len(call.args)}")

    try:
        return request_cls(**dict(zip(fields, call.args)))
    except ValidationError as e:
        errors = e.errors()
        detail = errors[0]["msg"] if errors else str(e)
        raise InvalidArgument(f"Invalid arguments for {method}: {detail}") from e


class ControlResponse(BaseModel):
    """Response model for successful control calls."""

    request_id: str
    status: str
    data: dict


class ErrorResponse(BaseModel):
    """Generic error response."""

    request_id: str
    status: str
    error: dict


def format_validation_errors(errors: Sequence[Dict[str, Any]]) -> str:
    """
    Render request validation errors as one line, e.g. ``Opts.size: Input should be a valid string``.
    """
    parts = []
    for error in errors:
        loc = [str(p) for p in error.get("loc", ()) if p != "body"]
        msg = error.get("msg", "invalid value")
        parts.append(f"{'.'.join(loc)}: {msg}" if loc else msg)
    return "; ".join(parts) or "invalid request body"
