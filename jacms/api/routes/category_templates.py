"""Category template routes: templates, bulk category operations, CSV import/export."""

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import Response
from pydantic import BaseModel, Field

from ...auth.rbac import PERM_MANAGE_TAXONOMY, PERM_VIEW_DASHBOARD, require_permission
from ...dependencies import get_category_template_service
from ..responses import ok
from .categories import CategoryRequest

router = APIRouter(prefix="/category-templates", tags=["category-templates"])


class TemplateRequest(CategoryRequest):
    settings: dict[str, Any] = {}


class UpdateTemplateRequest(TemplateRequest):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    settings: Optional[dict[str, Any]] = None


class TemplateCategoryRow(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    parent_id: Optional[str] = None
    sort_order: Optional[int] = None


class CreateFromTemplateRequest(BaseModel):
    categories: list[TemplateCategoryRow]


class BulkUpdateEntry(BaseModel):
    id: str
    updates: dict[str, Any]


class BulkUpdateRequest(BaseModel):
    updates: list[BulkUpdateEntry]


class BulkIdsRequest(BaseModel):
    category_ids: list[str]


class BulkToggleRequest(BulkIdsRequest):
    is_active: bool


# --- Templates ---

@router.get("/")
async def list_templates(current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD))):
    return ok(await get_category_template_service().get_templates())


@router.post("/", status_code=201)
async def create_template(
    body: TemplateRequest,
    current_user: dict = Depends(require_permission(PERM_MANAGE_TAXONOMY)),
):
    template = await get_category_template_service().create_template(body.model_dump())
    return ok(template, "Template created successfully")


@router.get("/stats/overview")
async def category_stats(current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD))):
    return ok(await get_category_template_service().get_category_stats())


# --- CSV ---

@router.post("/import/csv")
async def import_csv(
    request: Request,
    template_id: Optional[str] = None,
    current_user: dict = Depends(require_permission(PERM_MANAGE_TAXONOMY)),
):
    """Import categories from a ``text/csv`` request body."""
    raw = await request.body()
    try:
        csv_data = raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="CSV body must be UTF-8 text")
    if not csv_data.strip():
        raise HTTPException(status_code=400, detail="CSV body is empty")

    result = await get_category_template_service().import_from_csv(csv_data, template_id)
    return ok(result.to_dict(), f"Imported {result.success} categories, {result.failed} failed")


@router.get("/export/csv")
async def export_csv(
    category_ids: Optional[str] = Query(None, description="Comma-separated category ids"),
    current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    ids = [c.strip() for c in category_ids.split(",") if c.strip()] if category_ids else None
    csv_text = await get_category_template_service().export_to_csv(ids)
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="categories.csv"'},
    )


# --- Bulk ---

@router.post("/bulk/update")
async def bulk_update(
    body: BulkUpdateRequest,
    current_user: dict = Depends(require_permission(PERM_MANAGE_TAXONOMY)),
):
    result = await get_category_template_service().bulk_update_categories(
        [entry.model_dump() for entry in body.updates]
    )
    return ok(result.to_dict())


@router.post("/bulk/delete")
async def bulk_delete(
    body: BulkIdsRequest,
    current_user: dict = Depends(require_permission(PERM_MANAGE_TAXONOMY)),
):
    result = await get_category_template_service().bulk_delete_categories(body.category_ids)
    return ok(result.to_dict())


@router.post("/bulk/toggle")
async def bulk_toggle(
    body: BulkToggleRequest,
    current_user: dict = Depends(require_permission(PERM_MANAGE_TAXONOMY)),
):
    result = await get_category_template_service().bulk_toggle_categories(body.category_ids, body.is_active)
    return ok(result.to_dict())


# --- Single template ---

@router.get("/{template_id}")
async def get_template(
    template_id: str,
    current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    template = await get_category_template_service().get_template_by_id(template_id)
    if template is None:
        raise HTTPException(status_code=404, detail="Template not found")
    return ok(template)


@router.put("/{template_id}")
async def update_template(
    template_id: str,
    body: UpdateTemplateRequest,
    current_user: dict = Depends(require_permission(PERM_MANAGE_TAXONOMY)),
):
    template = await get_category_template_service().update_template(
        template_id, body.model_dump(exclude_unset=True)
    )
    return ok(template, "Template updated successfully")


@router.delete("/{template_id}")
async def delete_template(
    template_id: str,
    current_user: dict = Depends(require_permission(PERM_MANAGE_TAXONOMY)),
):
    await get_category_template_service().delete_template(template_id)
    return ok(None, "Template deleted successfully")


@router.post("/{template_id}/create-categories")
async def create_from_template(
    template_id: str,
    body: CreateFromTemplateRequest,
    current_user: dict = Depends(require_permission(PERM_MANAGE_TAXONOMY)),
):
    result = await get_category_template_service().create_from_template(
        template_id, [row.model_dump() for row in body.categories]
    )
    return ok(result.to_dict())
