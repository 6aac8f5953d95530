"""Category routes: CRUD, hierarchy, slugs and drag-and-drop reordering."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from ...auth.rbac import PERM_MANAGE_TAXONOMY, PERM_VIEW_DASHBOARD, require_permission
from ...dependencies import Pagination, get_category_service, get_pagination
from ..responses import ok

router = APIRouter(prefix="/categories", tags=["categories"])


class CategoryRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    slug: Optional[str] = None
    description: Optional[str] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    meta_keywords: Optional[str] = None
    is_active: Optional[bool] = None
    parent_id: Optional[str] = None
    sort_order: Optional[int] = None
    icon: Optional[str] = None
    color: Optional[str] = None


class UpdateCategoryRequest(CategoryRequest):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)


class CategoryMove(BaseModel):
    id: str
    parent_id: Optional[str] = None
    sort_order: Optional[int] = None


class ReorderRequest(BaseModel):
    moves: list[CategoryMove]


@router.get("/")
async def list_categories(
    q: Optional[str] = None,
    parent_id: Optional[str] = None,
    paging: Pagination = Depends(get_pagination),
    sort_by: str = "name",
    sort_order: str = Query("asc", pattern="^(asc|desc)$"),
    current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    return ok(await get_category_service().get_categories(
        query=q,
        parent_id=parent_id,
        page=paging.page,
        limit=paging.limit,
        sort_by=sort_by,
        sort_order=sort_order,
    ))


@router.get("/hierarchy")
async def category_hierarchy(current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD))):
    return ok(await get_category_service().get_hierarchy())


@router.get("/root")
async def root_categories(current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD))):
    return ok(await get_category_service().get_root_categories())


@router.get("/stats")
async def category_stats(current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD))):
    return ok(await get_category_service().get_category_stats())


@router.get("/generate-slug")
async def generate_slug(
    name: str = Query(..., min_length=1),
    exclude_id: Optional[str] = None,
    current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    return ok({"slug": await get_category_service().generate_slug(name, exclude_id)})


@router.get("/slug/{slug}")
async def get_category_by_slug(
    slug: str,
    current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    category = await get_category_service().get_category_by_slug(slug)
    if category is None:
        raise HTTPException(status_code=404, detail="Category not found")
    return ok(category)


@router.put("/reorder")
async def reorder_categories(
    body: ReorderRequest,
    current_user: dict = Depends(require_permission(PERM_MANAGE_TAXONOMY)),
):
    moves = [m.model_dump(exclude_unset=True) for m in body.moves]
    return ok(await get_category_service().reorder_categories(moves), "Categories reordered successfully")


@router.get("/{category_id}")
async def get_category(
    category_id: str,
    current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    category = await get_category_service().get_category_by_id(category_id)
    if category is None:
        raise HTTPException(status_code=404, detail="Category not found")
    return ok(category)


@router.post("/", status_code=201)
async def create_category(
    body: CategoryRequest,
    current_user: dict = Depends(require_permission(PERM_MANAGE_TAXONOMY)),
):
    return ok(await get_category_service().create_category(body.model_dump()), "Category created successfully")


@router.put("/{category_id}")
async def update_category(
    category_id: str,
    body: UpdateCategoryRequest,
    current_user: dict = Depends(require_permission(PERM_MANAGE_TAXONOMY)),
):
    category = await get_category_service().update_category(category_id, body.model_dump(exclude_unset=True))
    return ok(category, "Category updated successfully")


@router.delete("/{category_id}")
async def delete_category(
    category_id: str,
    current_user: dict = Depends(require_permission(PERM_MANAGE_TAXONOMY)),
):
    return ok(await get_category_service().delete_category(category_id), "Category deleted successfully")
