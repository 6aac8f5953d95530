"""Post routes: CRUD, listing, and status transitions."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from ...auth.rbac import PERM_MANAGE_CONTENT, PERM_VIEW_DASHBOARD, require_permission
from ...dependencies import Pagination, get_pagination, get_post_service
from ..responses import ok

router = APIRouter(prefix="/posts", tags=["posts"])


class CreatePostRequest(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    slug: Optional[str] = None
    content: str = ""
    excerpt: Optional[str] = None
    status: str = "DRAFT"
    category_id: Optional[str] = None
    tag_ids: list[str] = []
    published_at: Optional[datetime] = None
    is_hidden: bool = False


class UpdatePostRequest(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=500)
    slug: Optional[str] = None
    content: Optional[str] = None
    excerpt: Optional[str] = None
    status: Optional[str] = None
    category_id: Optional[str] = None
    tag_ids: Optional[list[str]] = None
    published_at: Optional[datetime] = None
    is_hidden: Optional[bool] = None


class ScheduleRequest(BaseModel):
    scheduled_at: datetime


def _split(value: Optional[str]) -> Optional[list[str]]:
    if not value:
        return None
    return [v.strip() for v in value.split(",") if v.strip()]


@router.get("/")
async def list_posts(
    status: Optional[str] = None,
    q: Optional[str] = None,
    category_ids: Optional[str] = Query(None, description="Comma-separated category ids"),
    tag_ids: Optional[str] = Query(None, description="Comma-separated tag ids"),
    paging: Pagination = Depends(get_pagination),
    sort_by: str = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    service = get_post_service()
    return ok(await service.get_posts(
        status=status,
        query=q,
        category_ids=_split(category_ids),
        tag_ids=_split(tag_ids),
        page=paging.page,
        limit=paging.limit,
        sort_by=sort_by,
        sort_order=sort_order,
    ))


@router.get("/stats")
async def post_stats(current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD))):
    return ok(await get_post_service().get_post_stats())


@router.get("/recent")
async def recent_posts(
    limit: int = Query(10, ge=1, le=100),
    current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    return ok(await get_post_service().get_recent_posts(limit))


@router.get("/{post_id}")
async def get_post(
    post_id: str,
    current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    post = await get_post_service().get_post_by_id(post_id)
    if post is None:
        raise HTTPException(status_code=404, detail="Post not found")
    return ok(post)


@router.post("/", status_code=201)
async def create_post(
    body: CreatePostRequest,
    current_user: dict = Depends(require_permission(PERM_MANAGE_CONTENT)),
):
    post = await get_post_service().create_post(body.model_dump(), author_id=current_user["sub"])
    return ok(post, "Post created successfully")


@router.put("/{post_id}")
async def update_post(
    post_id: str,
    body: UpdatePostRequest,
    current_user: dict = Depends(require_permission(PERM_MANAGE_CONTENT)),
):
    post = await get_post_service().update_post(post_id, body.model_dump(exclude_unset=True))
    return ok(post, "Post updated successfully")


@router.delete("/{post_id}")
async def delete_post(
    post_id: str,
    current_user: dict = Depends(require_permission(PERM_MANAGE_CONTENT)),
):
    if not await get_post_service().delete_post(post_id):
        raise HTTPException(status_code=404, detail="Post not found")
    return ok(None, "Post deleted successfully")


@router.patch("/{post_id}/publish")
async def publish_post(post_id: str, current_user: dict = Depends(require_permission(PERM_MANAGE_CONTENT))):
    return ok(await get_post_service().publish_post(post_id), "Post published successfully")


@router.patch("/{post_id}/unpublish")
async def unpublish_post(post_id: str, current_user: dict = Depends(require_permission(PERM_MANAGE_CONTENT))):
    return ok(await get_post_service().unpublish_post(post_id), "Post unpublished successfully")


@router.patch("/{post_id}/archive")
async def archive_post(post_id: str, current_user: dict = Depends(require_permission(PERM_MANAGE_CONTENT))):
    return ok(await get_post_service().archive_post(post_id), "Post archived successfully")


@router.patch("/{post_id}/restore")
async def restore_post(post_id: str, current_user: dict = Depends(require_permission(PERM_MANAGE_CONTENT))):
    return ok(await get_post_service().restore_post(post_id), "Post restored successfully")


@router.patch("/{post_id}/schedule")
async def schedule_post(
    post_id: str,
    body: ScheduleRequest,
    current_user: dict = Depends(require_permission(PERM_MANAGE_CONTENT)),
):
    return ok(await get_post_service().schedule_post(post_id, body.scheduled_at), "Post scheduled successfully")


@router.patch("/{post_id}/unschedule")
async def unschedule_post(post_id: str, current_user: dict = Depends(require_permission(PERM_MANAGE_CONTENT))):
    return ok(await get_post_service().unschedule_post(post_id), "Post unscheduled successfully")
