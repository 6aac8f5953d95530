"""Dashboard service: aggregate counts, health and security summaries.

Analytics endpoints (charts, traffic, widgets) return fixed sample data
until an analytics store exists; values are derived from dates and ids so
repeated calls agree.
"""

import zlib
from datetime import timedelta
from typing import Optional

from sqlalchemy import func, select

from ..models.base import utcnow
from ..models.category import Category
from ..models.monitoring import SecurityEvent, SystemHealthMetric
from ..models.notification import Notification
from ..models.post import Post
from ..models.tag import Tag
from ..models.user import User
from ..utils.logging import get_logger
from .base import BaseService, db_errors, iso
from .notifications import NotificationService, notification_to_dict, visible_to

logger = get_logger("services.dashboard")

HEALTH_CRITICAL_BELOW = 50
HEALTH_WARNING_BELOW = 70
SECURITY_WARNING_ABOVE = 10
SECURITY_CRITICAL_ABOVE = 50
ALERT_SEVERITIES = ("HIGH", "CRITICAL")

DEFAULT_HEALTH = {
    "status": "healthy",
    "overall_score": 85,
    "performance_score": 90,
    "security_score": 95,
    "stability_score": 88,
    "active_issues_count": 0,
    "critical_issues_count": 0,
}

CHART_RANGES = {"7d": 7, "30d": 30, "90d": 90}

SAMPLE_WIDGETS = [
    {
        "id": "analytics-chart",
        "name": "Analytics Chart",
        "title": "Analytics Overview",
        "description": "Interactive area chart with multiple data sources",
        "is_enabled": True,
        "position": {"x": 0, "y": 0, "w": 8, "h": 4},
    },
    {
        "id": "quick-actions",
        "name": "Quick Actions",
        "title": "Quick Actions",
        "description": "Frequently used actions and shortcuts",
        "is_enabled": True,
        "position": {"x": 8, "y": 0, "w": 4, "h": 4},
    },
    {
        "id": "recent-activity",
        "name": "Recent Activity",
        "title": "Recent Activity",
        "description": "Latest activities and updates",
        "is_enabled": True,
        "position": {"x": 0, "y": 4, "w": 6, "h": 4},
    },
]

QUICK_ACTIONS = [
    {"id": "create-post", "name": "Create Post", "description": "Create a new blog post",
     "icon": "file-text", "color": "blue"},
    {"id": "create-category", "name": "Create Category", "description": "Add a content category",
     "icon": "folder", "color": "green"},
    {"id": "manage-users", "name": "Manage Users", "description": "Manage user accounts",
     "icon": "users", "color": "purple"},
]

TRAFFIC_SOURCES = [
    {"source": "Direct", "count": 450, "percentage": 36.0},
    {"source": "Google", "count": 320, "percentage": 25.6},
    {"source": "Social Media", "count": 280, "percentage": 22.4},
    {"source": "Referral", "count": 200, "percentage": 16.0},
]


def health_status(overall_score: int) -> str:
    if overall_score < HEALTH_CRITICAL_BELOW:
        return "critical"
    if overall_score < HEALTH_WARNING_BELOW:
        return "warning"
    return "healthy"


def security_status(recent_events: int) -> str:
    if recent_events > SECURITY_CRITICAL_ABOVE:
        return "critical"
    if recent_events > SECURITY_WARNING_ABOVE:
        return "warning"
    return "secure"


def _sample_value(seed: str, low: int, high: int) -> int:
    return low + zlib.crc32(seed.encode()) % (high - low)


class DashboardService(BaseService):

    @property
    def _notifications(self) -> NotificationService:
        return NotificationService(self._db_session_factory)

    async def get_overview(self, user_id: str) -> dict:
        stats = await self.get_stats()
        activity = await self.get_recent_activity(5)
        notifications = await self.get_notifications(user_id, limit=5)
        return {
            "stats": stats,
            "recent_activity": activity,
            "notifications": notifications,
            "last_updated": iso(utcnow()),
        }

    async def get_stats(self) -> dict:
        with db_errors("get dashboard stats"):
            async with self._db_session_factory() as session:
                users = (await session.execute(select(func.count(User.id)))).scalar() or 0
                posts = (await session.execute(select(func.count(Post.id)))).scalar() or 0
                categories = (await session.execute(select(func.count(Category.id)))).scalar() or 0
                tags = (await session.execute(select(func.count(Tag.id)))).scalar() or 0

        return {
            "total_users": users,
            "total_posts": posts,
            "total_categories": categories,
            "total_tags": tags,
        }

    async def get_recent_activity(self, limit: int = 10, page: int = 1) -> list[dict]:
        """Newest user registrations, shaped as activity entries."""
        with db_errors("get recent activity"):
            async with self._db_session_factory() as session:
                users = (await session.execute(
                    select(User)
                    .order_by(User.created_at.desc())
                    .offset((max(page, 1) - 1) * limit)
                    .limit(limit)
                )).scalars().all()

        return [
            {
                "id": user.id,
                "action": "USER_REGISTERED",
                "description": f"New user registered: {user.email}",
                "user": {
                    "name": " ".join(p for p in (user.first_name, user.last_name) if p) or user.username,
                    "email": user.email,
                },
                "timestamp": iso(user.created_at),
            }
            for user in users
        ]

    async def get_notifications(self, user_id: str, limit: int = 10, page: int = 1) -> list[dict]:
        with db_errors("get notifications", user_id=user_id):
            async with self._db_session_factory() as session:
                rows = (await session.execute(
                    select(Notification)
                    .where(visible_to(user_id))
                    .order_by(Notification.created_at.desc())
                    .offset((max(page, 1) - 1) * limit)
                    .limit(limit)
                )).scalars().all()
                return [notification_to_dict(n) for n in rows]

    async def get_unread_notifications(self, user_id: str) -> int:
        with db_errors("get unread notifications", user_id=user_id):
            async with self._db_session_factory() as session:
                return (await session.execute(
                    select(func.count(Notification.id))
                    .where(visible_to(user_id), Notification.is_read == False)  # noqa: E712
                )).scalar() or 0

    async def mark_notification_read(self, user_id: str, notification_id: str) -> dict:
        return await self._notifications.mark_as_read(notification_id, user_id)

    async def mark_all_notifications_read(self, user_id: str) -> int:
        """Mark the user's own unread notifications read; system ones stay as they are."""
        return await self._notifications.mark_all_as_read(user_id)

    async def get_system_health(self) -> dict:
        with db_errors("get system health"):
            async with self._db_session_factory() as session:
                latest = (await session.execute(
                    select(SystemHealthMetric).order_by(SystemHealthMetric.timestamp.desc()).limit(1)
                )).scalar_one_or_none()

        if latest is None:
            return dict(DEFAULT_HEALTH)
        return {
            "status": health_status(latest.overall_score),
            "overall_score": latest.overall_score,
            "performance_score": latest.performance_score,
            "security_score": latest.security_score,
            "stability_score": latest.stability_score,
            "active_issues_count": latest.active_issues_count,
            "critical_issues_count": latest.critical_issues_count,
        }

    async def get_system_metrics(self) -> list[dict]:
        with db_errors("get system metrics"):
            async with self._db_session_factory() as session:
                rows = (await session.execute(
                    select(SystemHealthMetric).order_by(SystemHealthMetric.timestamp.desc()).limit(24)
                )).scalars().all()

        return [
            {
                "timestamp": iso(m.timestamp),
                "overall_score": m.overall_score,
                "performance_score": m.performance_score,
                "security_score": m.security_score,
                "stability_score": m.stability_score,
            }
            for m in rows
        ]

    async def get_security_status(self) -> dict:
        now = utcnow()
        with db_errors("get security status"):
            async with self._db_session_factory() as session:
                recent = (await session.execute(
                    select(func.count(SecurityEvent.id))
                    .where(SecurityEvent.created_at >= now - timedelta(hours=24))
                )).scalar() or 0
                unresolved = (await session.execute(
                    select(func.count(SecurityEvent.id))
                    .where(
                        SecurityEvent.is_resolved == False,  # noqa: E712
                        SecurityEvent.severity.in_(ALERT_SEVERITIES),
                    )
                )).scalar() or 0

        return {
            "status": security_status(recent),
            "recent_events": recent,
            "active_incidents": unresolved,
            "pending_updates": 0,
            "firewall_status": "active",
            "ssl_status": "valid",
        }

    async def get_security_alerts(self, limit: int = 10) -> list[dict]:
        with db_errors("get security alerts"):
            async with self._db_session_factory() as session:
                rows = (await session.execute(
                    select(SecurityEvent)
                    .where(
                        SecurityEvent.severity.in_(ALERT_SEVERITIES),
                        SecurityEvent.created_at >= utcnow() - timedelta(hours=24),
                    )
                    .order_by(SecurityEvent.created_at.desc())
                    .limit(limit)
                )).scalars().all()

        return [
            {
                "id": e.id,
                "type": e.type,
                "severity": e.severity,
                "source": e.source,
                "description": e.description,
                "ip_address": e.ip_address,
                "user_id": e.user_id,
                "is_resolved": e.is_resolved,
                "created_at": iso(e.created_at),
            }
            for e in rows
        ]

    async def get_content_performance(self, limit: int = 10) -> list[dict]:
        """Latest published posts with sample engagement figures."""
        with db_errors("get content performance"):
            async with self._db_session_factory() as session:
                posts = (await session.execute(
                    select(Post)
                    .where(Post.status == "PUBLISHED")
                    .order_by(Post.created_at.desc())
                    .limit(limit)
                )).scalars().all()

        return [
            {
                "id": p.id,
                "title": p.title,
                "slug": p.slug,
                "views": _sample_value(f"views:{p.id}", 0, 1000),
                "likes": _sample_value(f"likes:{p.id}", 0, 100),
                "comments": _sample_value(f"comments:{p.id}", 0, 50),
                "engagement": _sample_value(f"engagement:{p.id}", 0, 100),
            }
            for p in posts
        ]

    @staticmethod
    def get_chart_data(chart_type: str = "line", time_range: str = "7d", metric: str = "views") -> list[dict]:
        days = CHART_RANGES.get(time_range, 7)
        today = utcnow().date()
        points = []
        for offset in range(days - 1, -1, -1):
            day = today - timedelta(days=offset)
            points.append({
                "name": day.strftime("%b %d"),
                "date": day.isoformat(),
                "value": _sample_value(f"{chart_type}:{metric}:{day.isoformat()}", 100, 1100),
            })
        return points

    @staticmethod
    def get_real_time_analytics() -> dict:
        return {
            "total_sessions": 1250,
            "active_users": 45,
            "page_views": 3200,
            "bounce_rate": 35.2,
            "avg_session_duration": 180,
        }

    @staticmethod
    def get_traffic_sources() -> list[dict]:
        return [dict(s) for s in TRAFFIC_SOURCES]

    @staticmethod
    def get_widgets() -> list[dict]:
        return [dict(w, position=dict(w["position"])) for w in SAMPLE_WIDGETS]

    def get_widget(self, widget_id: str) -> Optional[dict]:
        return next((w for w in self.get_widgets() if w["id"] == widget_id), None)

    @staticmethod
    def get_quick_actions() -> list[dict]:
        return [dict(a) for a in QUICK_ACTIONS]
