"""User management routes for administrators."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from ...auth.rbac import PERM_MANAGE_USERS, require_permission
from ...dependencies import Pagination, get_pagination, get_user_service
from ..responses import ok

router = APIRouter(prefix="/users", tags=["users"])

manage_users = require_permission(PERM_MANAGE_USERS)


class CreateUserRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=8)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    username: Optional[str] = Field(default=None, min_length=1, max_length=100)
    role: str = "USER"
    is_active: bool = True


class UpdateUserRequest(BaseModel):
    email: Optional[str] = Field(default=None, min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: Optional[str] = Field(default=None, min_length=8)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    username: Optional[str] = Field(default=None, min_length=1, max_length=100)
    role: Optional[str] = None
    is_active: Optional[bool] = None


class RoleRequest(BaseModel):
    role: str


def _guard_super_admin_grant(role: Optional[str], current_user: dict) -> None:
    """Only a SUPER_ADMIN may hand out SUPER_ADMIN."""
    if role == "SUPER_ADMIN" and current_user.get("role") != "SUPER_ADMIN":
        raise HTTPException(status_code=403, detail="Only a super admin can grant the SUPER_ADMIN role")


@router.get("/")
async def list_users(
    q: Optional[str] = None,
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
    paging: Pagination = Depends(get_pagination),
    current_user: dict = Depends(manage_users),
):
    return ok(await get_user_service().get_users(
        query=q, role=role, is_active=is_active, page=paging.page, limit=paging.limit,
    ))


@router.get("/stats/overview")
async def user_stats(current_user: dict = Depends(manage_users)):
    return ok(await get_user_service().get_user_stats())


@router.get("/search")
async def search_users(
    q: str = Query(min_length=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: dict = Depends(manage_users),
):
    return ok(await get_user_service().search_users(q, limit))


@router.get("/recent")
async def recent_users(
    limit: int = Query(10, ge=1, le=100),
    current_user: dict = Depends(manage_users),
):
    return ok(await get_user_service().get_recent_users(limit))


@router.get("/role/{role}")
async def users_by_role(
    role: str,
    paging: Pagination = Depends(get_pagination),
    current_user: dict = Depends(manage_users),
):
    return ok(await get_user_service().get_users_by_role(role, paging.page, paging.limit))


@router.get("/{user_id}")
async def get_user(user_id: str, current_user: dict = Depends(manage_users)):
    user = await get_user_service().get_user_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return ok(user)


@router.post("/", status_code=201)
async def create_user(body: CreateUserRequest, current_user: dict = Depends(manage_users)):
    _guard_super_admin_grant(body.role, current_user)
    return ok(await get_user_service().create_user(body.model_dump()), "User created successfully")


@router.put("/{user_id}")
async def update_user(user_id: str, body: UpdateUserRequest, current_user: dict = Depends(manage_users)):
    _guard_super_admin_grant(body.role, current_user)
    user = await get_user_service().update_user(user_id, body.model_dump(exclude_unset=True))
    return ok(user, "User updated successfully")


@router.put("/{user_id}/role")
async def update_user_role(user_id: str, body: RoleRequest, current_user: dict = Depends(manage_users)):
    _guard_super_admin_grant(body.role, current_user)
    return ok(await get_user_service().update_user_role(user_id, body.role), "User role updated successfully")


@router.patch("/{user_id}/toggle-status")
async def toggle_user_status(user_id: str, current_user: dict = Depends(manage_users)):
    user = await get_user_service().toggle_user_status(user_id, current_user["sub"])
    return ok(user, "User activated" if user["is_active"] else "User deactivated")


@router.delete("/{user_id}")
async def delete_user(user_id: str, current_user: dict = Depends(manage_users)):
    return ok(await get_user_service().delete_user(user_id, current_user["sub"]), "User deleted successfully")
