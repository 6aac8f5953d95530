"""Tag routes."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from ...auth.rbac import PERM_MANAGE_TAXONOMY, PERM_VIEW_DASHBOARD, require_permission
from ...config import JaCmsConfig
from ...dependencies import get_app_config, get_tags_service
from ..responses import ok

router = APIRouter(prefix="/tags", tags=["tags"])


class CreateTagRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    slug: Optional[str] = None
    color: Optional[str] = None
    description: Optional[str] = None


class UpdateTagRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    slug: Optional[str] = None
    color: Optional[str] = None
    description: Optional[str] = None


@router.get("/")
async def list_tags(
    search: Optional[str] = None,
    limit: Optional[int] = Query(None, ge=1),
    config: JaCmsConfig = Depends(get_app_config),
    current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    return ok(await get_tags_service().get_all_tags(search, limit or config.default_tag_limit))


@router.get("/stats")
async def tag_stats(current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD))):
    return ok(await get_tags_service().get_tag_stats())


@router.get("/{tag_id}")
async def get_tag(tag_id: str, current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD))):
    tag = await get_tags_service().get_tag_by_id(tag_id)
    if tag is None:
        raise HTTPException(status_code=404, detail="Tag not found")
    return ok(tag)


@router.post("/", status_code=201)
async def create_tag(
    body: CreateTagRequest,
    current_user: dict = Depends(require_permission(PERM_MANAGE_TAXONOMY)),
):
    return ok(await get_tags_service().create_tag(body.model_dump()), "Tag created successfully")


@router.put("/{tag_id}")
async def update_tag(
    tag_id: str,
    body: UpdateTagRequest,
    current_user: dict = Depends(require_permission(PERM_MANAGE_TAXONOMY)),
):
    tag = await get_tags_service().update_tag(tag_id, body.model_dump(exclude_unset=True))
    return ok(tag, "Tag updated successfully")


@router.delete("/{tag_id}")
async def delete_tag(tag_id: str, current_user: dict = Depends(require_permission(PERM_MANAGE_TAXONOMY))):
    return ok(await get_tags_service().delete_tag(tag_id), "Tag deleted successfully")
