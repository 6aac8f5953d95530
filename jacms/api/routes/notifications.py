"""Notification routes: the caller's notifications plus system-wide ones."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ...auth.rbac import PERM_MANAGE_USERS, PERM_VIEW_DASHBOARD, require_permission
from ...dependencies import Pagination, get_notification_service, get_pagination
from ..responses import ok

router = APIRouter(prefix="/notifications", tags=["notifications"])


class CreateNotificationRequest(BaseModel):
    user_id: Optional[str] = None
    title: str = Field(min_length=1, max_length=255)
    message: str = Field(min_length=1)
    type: str = "info"


@router.get("/")
async def list_notifications(
    paging: Pagination = Depends(get_pagination),
    is_read: Optional[bool] = None,
    current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    return ok(await get_notification_service().get_user_notifications(
        current_user["sub"], page=paging.page, limit=paging.limit, is_read=is_read,
    ))


@router.post("/", status_code=201)
async def create_notification(
    body: CreateNotificationRequest,
    current_user: dict = Depends(require_permission(PERM_MANAGE_USERS)),
):
    return ok(await get_notification_service().create_notification(body.model_dump()))


@router.put("/read-all")
async def mark_all_read(current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD))):
    updated = await get_notification_service().mark_all_as_read(current_user["sub"])
    return ok({"updated": updated})


@router.get("/{notification_id}")
async def get_notification(
    notification_id: str,
    current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    notification = await get_notification_service().get_notification_by_id(notification_id, current_user["sub"])
    if notification is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    return ok(notification)


@router.put("/{notification_id}/read")
async def mark_read(
    notification_id: str,
    current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    return ok(await get_notification_service().mark_as_read(notification_id, current_user["sub"]))


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    if not await get_notification_service().delete_notification(notification_id, current_user["sub"]):
        raise HTTPException(status_code=404, detail="Notification not found")
    return ok(None, "Notification deleted")
