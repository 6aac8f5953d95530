"""Role-Based Access Control."""

from fastapi import Depends, HTTPException, status

from ..dependencies import get_current_user
from ..utils.logging import get_logger

logger = get_logger("auth.rbac")

# Permission constants
PERM_VIEW_DASHBOARD = "view_dashboard"
PERM_MANAGE_CONTENT = "manage_content"
PERM_MANAGE_TAXONOMY = "manage_taxonomy"
PERM_MANAGE_MENUS = "manage_menus"
PERM_MANAGE_USERS = "manage_users"

ALL_PERMISSIONS = [
    PERM_VIEW_DASHBOARD, PERM_MANAGE_CONTENT, PERM_MANAGE_TAXONOMY,
    PERM_MANAGE_MENUS, PERM_MANAGE_USERS,
]

ROLE_PERMISSIONS = {
    "SUPER_ADMIN": ALL_PERMISSIONS,
    "ADMIN": ALL_PERMISSIONS,
    "EDITOR": [
        PERM_VIEW_DASHBOARD, PERM_MANAGE_CONTENT, PERM_MANAGE_TAXONOMY, PERM_MANAGE_MENUS,
    ],
    "USER": [PERM_VIEW_DASHBOARD],
}


def get_role_permissions(role: str) -> list[str]:
    """Permissions granted to ``role``; unknown roles get the USER set."""
    return list(ROLE_PERMISSIONS.get(role, ROLE_PERMISSIONS["USER"]))


def require_permission(*required_perms: str):
    """FastAPI dependency factory that checks the caller's role grants every permission."""
    async def _check(current_user: dict = Depends(get_current_user)) -> dict:
        user_perms = get_role_permissions(current_user.get("role", "USER"))

        for perm in required_perms:
            if perm not in user_perms:
                logger.warning("permission_denied", user=current_user.get("sub"), permission=perm)
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=f"Permission required: {perm}",
                )

        current_user["permissions"] = user_perms
        return current_user

    return _check
