"""Dashboard settings routes: the caller's own dashboard preferences."""

from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ...auth.rbac import PERM_VIEW_DASHBOARD, require_permission
from ...dependencies import get_dashboard_settings_service
from ..responses import ok

router = APIRouter(prefix="/dashboard-settings", tags=["dashboard-settings"])


class UpdateSettingsRequest(BaseModel):
    layout_mode: Optional[str] = None
    theme: Optional[str] = None
    widgets: Optional[dict[str, Any]] = None
    layout: Optional[dict[str, Any]] = None
    appearance: Optional[dict[str, Any]] = None
    data: Optional[dict[str, Any]] = None
    grid_layout: Optional[Any] = None


class GridLayoutRequest(BaseModel):
    grid_layout: Any


@router.get("/")
async def get_settings(current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD))):
    """Current settings, created from defaults on first read."""
    return ok(await get_dashboard_settings_service().get_or_create_settings(current_user["sub"]))


@router.put("/")
async def update_settings(
    body: UpdateSettingsRequest,
    current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    settings = await get_dashboard_settings_service().create_or_update_settings(
        current_user["sub"], body.model_dump(exclude_unset=True)
    )
    return ok(settings, "Dashboard settings updated successfully")


@router.put("/grid-layout")
async def update_grid_layout(
    body: GridLayoutRequest,
    current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    settings = await get_dashboard_settings_service().update_grid_layout(current_user["sub"], body.grid_layout)
    return ok(settings, "Grid layout updated successfully")


@router.post("/reset")
async def reset_settings(current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD))):
    settings = await get_dashboard_settings_service().reset_settings(current_user["sub"])
    return ok(settings, "Dashboard settings reset to defaults")


@router.delete("/")
async def delete_settings(current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD))):
    await get_dashboard_settings_service().delete_settings(current_user["sub"])
    return ok(None, "Dashboard settings deleted")
