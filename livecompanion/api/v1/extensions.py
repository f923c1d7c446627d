# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Extension management API endpoints."""

import logging
import shutil
import tempfile
from pathlib import Path

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status

from livecompanion.api.deps import get_runtime, get_settings_store
from livecompanion.errors import (
    DuplicateExtensionError,
    ExtensionLoadError,
    ExtensionNotFoundError,
    ReloadThrottledError,
    SettingsDecodeError,
    UploadValidationError,
)
from livecompanion.extensions.api import config_key
from livecompanion.extensions.base import ExtensionInstance, ExtensionState
from livecompanion.extensions.runtime import ExtensionRuntime
from livecompanion.schemas.common import MessageResponse
from livecompanion.schemas.extension import (
    ExtensionActionResponse,
    ExtensionConfigResponse,
    ExtensionInstallResponse,
    ExtensionListResponse,
    ExtensionSummary,
    LogListResponse,
    ReloadAllResponse,
)
from livecompanion.services.settings_store import SettingsStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/extensions", tags=["extensions"])


def _require(runtime: ExtensionRuntime, extension_id: str) -> ExtensionInstance:
    try:
        return runtime.require(extension_id)
    except ExtensionNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Extension {extension_id} not found",
        ) from e


def _action_response(instance: ExtensionInstance, verb: str) -> ExtensionActionResponse:
    ok = instance.state in (ExtensionState.ACTIVE, ExtensionState.DISABLED)
    return ExtensionActionResponse(
        success=ok,
        extension_id=instance.id,
        state=instance.state,
        error=instance.error,
        message=(
            f"Extension {instance.id} {verb}"
            if ok
            else f"Extension {instance.id} failed: {instance.error}"
        ),
    )


@router.get("", response_model=ExtensionListResponse)
async def list_extensions(
    runtime: ExtensionRuntime = Depends(get_runtime),
) -> ExtensionListResponse:
    """List all installed extensions with their state."""
    return ExtensionListResponse(
        extensions=[
            ExtensionSummary(**runtime.describe(instance)) for instance in runtime.instances()
        ]
    )


@router.get("/logs", response_model=LogListResponse)
async def get_all_logs(
    limit: int = Query(100, ge=1, le=1000),
    runtime: ExtensionRuntime = Depends(get_runtime),
) -> LogListResponse:
    """Recent application log records, newest first."""
    return LogListResponse(logs=runtime.get_logs(limit=limit))


@router.post("/upload", response_model=ExtensionInstallResponse)
async def upload_extension(
    file: UploadFile = File(...),
    runtime: ExtensionRuntime = Depends(get_runtime),
) -> ExtensionInstallResponse:
    """Install an extension from a ZIP file and load it.

    The package is validated before anything is written to the extensions
    directory.
    """
    if not file.filename or not file.filename.lower().endswith(".zip"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="File must be a ZIP archive",
        )

    # Save to temp file
    with tempfile.NamedTemporaryFile(delete=False, suffix=".zip") as tmp:
        shutil.copyfileobj(file.file, tmp)
        tmp_path = Path(tmp.name)

    try:
        instance = await runtime.install(tmp_path)
    except UploadValidationError as e:
        logger.warning(f"Rejected extension upload {file.filename}: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e
    except DuplicateExtensionError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        ) from e
    finally:
        tmp_path.unlink(missing_ok=True)

    active = instance.state == ExtensionState.ACTIVE
    return ExtensionInstallResponse(
        success=active,
        extension_id=instance.id,
        name=instance.manifest.name,
        version=instance.manifest.version,
        state=instance.state,
        error=instance.error,
        message=(
            f"Extension {instance.manifest.name} installed successfully"
            if active
            else f"Extension installed but failed to load: {instance.error}"
        ),
    )


@router.post("/reload-all", response_model=ReloadAllResponse)
async def reload_all_extensions(
    runtime: ExtensionRuntime = Depends(get_runtime),
) -> ReloadAllResponse:
    states = await runtime.reload_all()
    failed = [eid for eid, state in states.items() if state == ExtensionState.ERROR]
    return ReloadAllResponse(
        success=not failed,
        states=states,
        message=f"Failed: {', '.join(failed)}" if failed else "All extensions reloaded",
    )


@router.get("/{extension_id}", response_model=ExtensionSummary)
async def get_extension(
    extension_id: str,
    runtime: ExtensionRuntime = Depends(get_runtime),
) -> ExtensionSummary:
    """Get details of one extension."""
    return ExtensionSummary(**runtime.describe(_require(runtime, extension_id)))


@router.post("/{extension_id}/enable", response_model=ExtensionActionResponse)
async def enable_extension(
    extension_id: str,
    runtime: ExtensionRuntime = Depends(get_runtime),
) -> ExtensionActionResponse:
    _require(runtime, extension_id)
    instance = await runtime.enable(extension_id)
    return _action_response(instance, "enabled")


@router.post("/{extension_id}/disable", response_model=ExtensionActionResponse)
async def disable_extension(
    extension_id: str,
    runtime: ExtensionRuntime = Depends(get_runtime),
) -> ExtensionActionResponse:
    _require(runtime, extension_id)
    instance = await runtime.disable(extension_id)
    return _action_response(instance, "disabled")


@router.post("/{extension_id}/reload", response_model=ExtensionActionResponse)
async def reload_extension(
    extension_id: str,
    runtime: ExtensionRuntime = Depends(get_runtime),
) -> ExtensionActionResponse:
    """Unload and load an extension again."""
    _require(runtime, extension_id)
    try:
        instance = await runtime.reload(extension_id)
    except ReloadThrottledError as e:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=str(e),
        ) from e
    except ExtensionLoadError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        ) from e
    return _action_response(instance, "reloaded")


@router.delete("/{extension_id}", response_model=MessageResponse)
async def delete_extension(
    extension_id: str,
    runtime: ExtensionRuntime = Depends(get_runtime),
) -> MessageResponse:
    """Unload an extension and remove it from disk."""
    _require(runtime, extension_id)
    await runtime.delete(extension_id)
    return MessageResponse(message=f"Extension {extension_id} deleted")


@router.get("/{extension_id}/logs", response_model=LogListResponse)
async def get_extension_logs(
    extension_id: str,
    limit: int = Query(100, ge=1, le=1000),
    runtime: ExtensionRuntime = Depends(get_runtime),
) -> LogListResponse:
    _require(runtime, extension_id)
    return LogListResponse(logs=runtime.get_logs(extension_id=extension_id, limit=limit))


@router.get("/{extension_id}/config", response_model=ExtensionConfigResponse)
async def get_extension_config(
    extension_id: str,
    runtime: ExtensionRuntime = Depends(get_runtime),
    store: SettingsStore = Depends(get_settings_store),
) -> ExtensionConfigResponse:
    """Manifest defaults overlaid with stored values."""
    instance = _require(runtime, extension_id)
    prefix = config_key(extension_id, "")
    config = dict(instance.manifest.config)
    try:
        for key in store.keys(prefix):
            config[key[len(prefix):]] = store.get(key)
    except SettingsDecodeError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        ) from e
    return ExtensionConfigResponse(extension_id=extension_id, config=config)
