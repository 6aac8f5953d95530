"""Authentication routes: bearer token login, current user and own password."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ...auth.rbac import get_role_permissions
from ...config import JaCmsConfig
from ...dependencies import get_app_config, get_current_user, get_db, get_user_service
from ...models.base import utcnow
from ...models.user import User
from ...services.users import user_to_dict
from ...utils.logging import get_logger
from ...utils.security import create_access_token, verify_password
from ..responses import ok

logger = get_logger("api.auth")

router = APIRouter(prefix="/auth", tags=["auth"])


class LoginRequest(BaseModel):
    email: Optional[str] = None
    username: Optional[str] = None
    password: str


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(min_length=8)


def _user_dict(user: User) -> dict:
    return {**user_to_dict(user), "permissions": get_role_permissions(user.role)}


@router.post("/login")
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
    config: JaCmsConfig = Depends(get_app_config),
):
    """Authenticate by email or username and return a bearer token."""
    identifier = body.email or body.username
    if not identifier:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email or username is required",
        )

    result = await db.execute(
        select(User).where(or_(User.email == identifier, User.username == identifier))
    )
    user = result.scalar_one_or_none()

    # Disabled accounts get the same answer as a wrong password
    if not user or not user.is_active or not verify_password(body.password, user.password_hash):
        logger.warning("login_failed", identifier=identifier)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user.last_login = utcnow()
    await db.commit()

    token = create_access_token(user.id, user.username, user.role, config)
    logger.info("login_succeeded", user_id=user.id)
    return ok({"token": token, "token_type": "bearer", "user": _user_dict(user)})


@router.get("/me")
async def me(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await db.get(User, current_user["sub"])
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User no longer exists",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return ok(_user_dict(user))


@router.put("/password")
async def change_password(
    body: ChangePasswordRequest,
    current_user: dict = Depends(get_current_user),
):
    await get_user_service().change_password(
        current_user["sub"], body.current_password, body.new_password,
    )
    return ok(None, "Password changed successfully")
