"""Notification service: per-user and system-wide notifications."""

import math
from typing import Optional

from sqlalchemy import func, or_, select, update

from ..models.base import utcnow
from ..models.notification import Notification
from ..utils.logging import get_logger
from .base import BaseService, NotFoundError, ValidationError, db_errors, iso

logger = get_logger("services.notifications")

NOTIFICATION_TYPES = ("info", "success", "warning", "error")


def visible_to(user_id: Optional[str]):
    # System-wide notifications have no owner
    return or_(Notification.user_id.is_(None), Notification.user_id == user_id)


class NotificationService(BaseService):

    async def get_user_notifications(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 10,
        is_read: Optional[bool] = None,
    ) -> dict:
        page = max(page, 1)
        stmt = select(Notification).where(visible_to(user_id))
        if is_read is not None:
            stmt = stmt.where(Notification.is_read == is_read)

        with db_errors("get notifications", user_id=user_id):
            async with self._db_session_factory() as session:
                total = (await session.execute(
                    select(func.count()).select_from(stmt.subquery())
                )).scalar() or 0
                rows = (await session.execute(
                    stmt.order_by(Notification.created_at.desc())
                    .offset((page - 1) * limit)
                    .limit(limit)
                )).scalars().all()

        return {
            "notifications": [notification_to_dict(n) for n in rows],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": math.ceil(total / limit) if limit else 0,
            },
        }

    async def get_notification_by_id(self, notification_id: str, user_id: str) -> Optional[dict]:
        with db_errors("get notification", notification_id=notification_id):
            async with self._db_session_factory() as session:
                notification = await session.get(Notification, notification_id)
                if notification is None or notification.user_id not in (None, user_id):
                    return None
                return notification_to_dict(notification)

    async def create_notification(self, data: dict) -> dict:
        kind = data.get("type") or "info"
        if kind not in NOTIFICATION_TYPES:
            raise ValidationError(f"type must be one of: {', '.join(NOTIFICATION_TYPES)}")

        with db_errors("create notification"):
            async with self._db_session_factory() as session:
                notification = Notification(
                    user_id=data.get("user_id"),
                    title=data["title"],
                    message=data["message"],
                    type=kind,
                )
                session.add(notification)
                await session.commit()
                result = notification_to_dict(notification)

        logger.info("notification_created", id=result["id"], user_id=result["user_id"], type=kind)
        return result

    async def mark_as_read(self, notification_id: str, user_id: str) -> dict:
        """Mark one of the user's own notifications read.

        System notifications carry a single read flag shared by every user, so
        they are not markable here and report as not found.
        """
        with db_errors("mark notification read", notification_id=notification_id):
            async with self._db_session_factory() as session:
                notification = await session.get(Notification, notification_id)
                if notification is None or notification.user_id != user_id:
                    raise NotFoundError("Notification not found")
                notification.is_read = True
                await session.commit()
                return notification_to_dict(notification)

    async def mark_all_as_read(self, user_id: str) -> int:
        with db_errors("mark all notifications read", user_id=user_id):
            async with self._db_session_factory() as session:
                result = await session.execute(
                    update(Notification)
                    .where(Notification.user_id == user_id, Notification.is_read == False)  # noqa: E712
                    .values(is_read=True, updated_at=utcnow())
                )
                await session.commit()
        logger.info("notifications_marked_read", user_id=user_id, count=result.rowcount)
        return result.rowcount

    async def delete_notification(self, notification_id: str, user_id: str) -> bool:
        """Delete one of the user's notifications. System notifications cannot be deleted here."""
        with db_errors("delete notification", notification_id=notification_id):
            async with self._db_session_factory() as session:
                notification = await session.get(Notification, notification_id)
                if notification is None or notification.user_id != user_id:
                    return False
                await session.delete(notification)
                await session.commit()
        logger.info("notification_deleted", id=notification_id, user_id=user_id)
        return True


def notification_to_dict(notification: Notification) -> dict:
    return {
        "id": notification.id,
        "user_id": notification.user_id,
        "title": notification.title,
        "message": notification.message,
        "type": notification.type,
        "is_read": notification.is_read,
        "created_at": iso(notification.created_at),
        "updated_at": iso(notification.updated_at),
    }
