"""Menu routes: navigation menus and their items."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ...auth.rbac import PERM_MANAGE_MENUS, PERM_VIEW_DASHBOARD, require_permission
from ...dependencies import get_menu_service
from ..responses import ok

router = APIRouter(prefix="/menus", tags=["menus"])


class MenuItemBody(BaseModel):
    id: Optional[str] = None
    title: str = Field(min_length=1, max_length=255)
    url: Optional[str] = None
    target: Optional[str] = None
    order: Optional[int] = None
    is_active: Optional[bool] = None
    parent_id: Optional[str] = None
    css_class: Optional[str] = None


class CreateMenuRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    slug: Optional[str] = None
    location: str = Field(min_length=1, max_length=100)
    items: list[MenuItemBody] = []


class UpdateMenuRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    slug: Optional[str] = None
    location: Optional[str] = None
    items: Optional[list[MenuItemBody]] = None


@router.get("/")
async def list_menus(
    location: Optional[str] = None,
    current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    return ok(await get_menu_service().get_all_menus(location))


@router.get("/location/{location}")
async def get_menu_by_location(
    location: str,
    current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    menu = await get_menu_service().get_menu_by_location(location)
    if menu is None:
        raise HTTPException(status_code=404, detail="Menu not found")
    return ok(menu)


@router.get("/{menu_id}")
async def get_menu(menu_id: str, current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD))):
    menu = await get_menu_service().get_menu_by_id(menu_id)
    if menu is None:
        raise HTTPException(status_code=404, detail="Menu not found")
    return ok(menu)


@router.post("/", status_code=201)
async def create_menu(
    body: CreateMenuRequest,
    current_user: dict = Depends(require_permission(PERM_MANAGE_MENUS)),
):
    return ok(await get_menu_service().create_menu(body.model_dump()), "Menu created successfully")


@router.put("/{menu_id}")
async def update_menu(
    menu_id: str,
    body: UpdateMenuRequest,
    current_user: dict = Depends(require_permission(PERM_MANAGE_MENUS)),
):
    menu = await get_menu_service().update_menu(menu_id, body.model_dump(exclude_unset=True))
    return ok(menu, "Menu updated successfully")


@router.delete("/{menu_id}")
async def delete_menu(menu_id: str, current_user: dict = Depends(require_permission(PERM_MANAGE_MENUS))):
    return ok(await get_menu_service().delete_menu(menu_id), "Menu deleted successfully")
