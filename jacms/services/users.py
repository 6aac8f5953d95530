"""User service: admin user management, account status and passwords."""

import math
from datetime import timedelta
from typing import Optional

from sqlalchemy import delete, func, or_, select, update

from ..models.base import utcnow
from ..models.dashboard_settings import DashboardSettings
from ..models.notification import Notification
from ..models.post import Post
from ..models.user import USER_ROLES, User
from ..utils.logging import get_logger
from ..utils.security import hash_password, verify_password
from .base import BaseService, ConflictError, NotFoundError, ValidationError, db_errors, iso

logger = get_logger("services.users")

USER_FIELDS = ("email", "username", "first_name", "last_name", "role", "is_active")
RECENT_SIGNUP_DAYS = 30


def _check_role(role: Optional[str]) -> None:
    if role is not None and role not in USER_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(USER_ROLES)}")


class UserService(BaseService):
    """Users as seen by administrators. Password hashes never leave this module."""

    async def get_users(
        self,
        query: Optional[str] = None,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
        page: int = 1,
        limit: int = 10,
    ) -> dict:
        _check_role(role)
        page = max(page, 1)

        stmt = select(User)
        if query:
            stmt = stmt.where(self._matches(query))
        if role:
            stmt = stmt.where(User.role == role)
        if is_active is not None:
            stmt = stmt.where(User.is_active == is_active)

        with db_errors("get users"):
            async with self._db_session_factory() as session:
                total = (await session.execute(
                    select(func.count()).select_from(stmt.subquery())
                )).scalar() or 0
                users = (await session.execute(
                    stmt.order_by(User.created_at.desc())
                    .offset((page - 1) * limit)
                    .limit(limit)
                )).scalars().all()

        return {
            "users": [user_to_dict(u) for u in users],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": math.ceil(total / limit) if limit else 0,
            },
        }

    async def get_users_by_role(self, role: str, page: int = 1, limit: int = 10) -> dict:
        return await self.get_users(role=role, page=page, limit=limit)

    async def search_users(self, query: str, limit: int = 10) -> list[dict]:
        with db_errors("search users"):
            async with self._db_session_factory() as session:
                users = (await session.execute(
                    select(User)
                    .where(self._matches(query))
                    .order_by(User.username.asc())
                    .limit(limit)
                )).scalars().all()
                return [user_to_dict(u) for u in users]

    async def get_recent_users(self, limit: int = 10) -> list[dict]:
        with db_errors("get recent users"):
            async with self._db_session_factory() as session:
                users = (await session.execute(
                    select(User).order_by(User.created_at.desc()).limit(limit)
                )).scalars().all()
                return [user_to_dict(u) for u in users]

    async def get_user_by_id(self, user_id: str) -> Optional[dict]:
        with db_errors("get user", user_id=user_id):
            async with self._db_session_factory() as session:
                user = await session.get(User, user_id)
                return user_to_dict(user) if user else None

    async def create_user(self, data: dict) -> dict:
        """Create an account with a bcrypt-hashed password.

        ``username`` defaults to the local part of the email address.
        """
        _check_role(data.get("role"))
        email = data["email"].strip().lower()
        username = data.get("username") or email.split("@", 1)[0]

        with db_errors("create user"):
            async with self._db_session_factory() as session:
                await self._check_unique(session, email, username)
                user = User(
                    email=email,
                    username=username,
                    password_hash=hash_password(data["password"]),
                    first_name=data.get("first_name"),
                    last_name=data.get("last_name"),
                    role=data.get("role") or "USER",
                    is_active=True if data.get("is_active") is None else data["is_active"],
                )
                session.add(user)
                await session.commit()
                result = user_to_dict(user)

        logger.info("user_created", id=result["id"], role=result["role"])
        return result

    async def update_user(self, user_id: str, data: dict) -> dict:
        """Apply profile changes; a ``password`` key replaces the stored hash."""
        _check_role(data.get("role"))
        with db_errors("update user", user_id=user_id):
            async with self._db_session_factory() as session:
                user = await session.get(User, user_id)
                if user is None:
                    raise NotFoundError("User not found")

                email = data["email"].strip().lower() if data.get("email") else None
                await self._check_unique(session, email, data.get("username"), exclude_id=user_id)

                for key in USER_FIELDS:
                    if data.get(key) is not None:
                        setattr(user, key, data[key])
                if email:
                    user.email = email
                if data.get("password"):
                    user.password_hash = hash_password(data["password"])
                await session.commit()
                result = user_to_dict(user)

        logger.info("user_updated", id=user_id, fields=sorted(k for k in data if k != "password"))
        return result

    async def delete_user(self, user_id: str, acting_user_id: Optional[str] = None) -> dict:
        """Delete an account with its settings and personal notifications.

        Authored posts are kept and lose their author.
        """
        if user_id == acting_user_id:
            raise ValidationError("You cannot delete your own account")

        with db_errors("delete user", user_id=user_id):
            async with self._db_session_factory() as session:
                user = await session.get(User, user_id)
                if user is None:
                    raise NotFoundError("User not found")
                await session.execute(
                    update(Post).where(Post.author_id == user_id).values(author_id=None)
                )
                await session.execute(delete(DashboardSettings).where(DashboardSettings.user_id == user_id))
                await session.execute(delete(Notification).where(Notification.user_id == user_id))
                await session.delete(user)
                await session.commit()

        logger.info("user_deleted", id=user_id, by=acting_user_id)
        return {"id": user_id}

    async def change_password(self, user_id: str, current_password: str, new_password: str) -> bool:
        with db_errors("change password", user_id=user_id):
            async with self._db_session_factory() as session:
                user = await session.get(User, user_id)
                if user is None:
                    raise NotFoundError("User not found")
                if not verify_password(current_password, user.password_hash):
                    raise ValidationError("Current password is incorrect")
                user.password_hash = hash_password(new_password)
                await session.commit()

        logger.info("password_changed", user_id=user_id)
        return True

    async def toggle_user_status(self, user_id: str, acting_user_id: Optional[str] = None) -> dict:
        if user_id == acting_user_id:
            raise ValidationError("You cannot deactivate your own account")

        with db_errors("toggle user status", user_id=user_id):
            async with self._db_session_factory() as session:
                user = await session.get(User, user_id)
                if user is None:
                    raise NotFoundError("User not found")
                user.is_active = not user.is_active
                await session.commit()
                result = user_to_dict(user)

        logger.info("user_status_toggled", id=user_id, is_active=result["is_active"])
        return result

    async def update_user_role(self, user_id: str, role: str) -> dict:
        if role is None:
            raise ValidationError("role is required")
        return await self.update_user(user_id, {"role": role})

    async def get_user_stats(self) -> dict:
        since = utcnow() - timedelta(days=RECENT_SIGNUP_DAYS)
        with db_errors("get user stats"):
            async with self._db_session_factory() as session:
                total = (await session.execute(select(func.count(User.id)))).scalar() or 0
                active = (await session.execute(
                    select(func.count(User.id)).where(User.is_active == True)  # noqa: E712
                )).scalar() or 0
                by_role = dict((await session.execute(
                    select(User.role, func.count(User.id)).group_by(User.role)
                )).all())
                recent = (await session.execute(
                    select(func.count(User.id)).where(User.created_at >= since)
                )).scalar() or 0

        return {
            "total": total,
            "active": active,
            "inactive": total - active,
            "by_role": {role: by_role.get(role, 0) for role in USER_ROLES},
            "recent_signups": recent,
        }

    @staticmethod
    def _matches(query: str):
        pattern = f"%{query}%"
        return or_(
            User.email.ilike(pattern),
            User.username.ilike(pattern),
            User.first_name.ilike(pattern),
            User.last_name.ilike(pattern),
        )

    @staticmethod
    async def _check_unique(session, email: Optional[str], username: Optional[str], exclude_id: Optional[str] = None):
        for column, value, label in ((User.email, email, "Email"), (User.username, username, "Username")):
            if not value:
                continue
            stmt = select(User.id).where(column == value)
            if exclude_id:
                stmt = stmt.where(User.id != exclude_id)
            if (await session.execute(stmt)).first() is not None:
                raise ConflictError(f"{label} already in use")


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "username": user.username,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "role": user.role,
        "is_active": user.is_active,
        "created_at": iso(user.created_at),
        "updated_at": iso(user.updated_at),
        "last_login": iso(user.last_login),
    }
