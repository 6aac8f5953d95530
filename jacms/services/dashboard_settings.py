"""Dashboard settings service: per-user dashboard preferences, upserted on user_id."""

import copy
from typing import Any, Optional

from sqlalchemy import select

from ..models.dashboard_settings import DashboardSettings
from ..utils.logging import get_logger
from .base import BaseService, NotFoundError, db_errors, iso

logger = get_logger("services.dashboard_settings")

SETTINGS_FIELDS = ("layout_mode", "theme", "widgets", "layout", "appearance", "data", "grid_layout")

DEFAULT_DASHBOARD_SETTINGS: dict[str, Any] = {
    "layout_mode": "default",
    "theme": "neutral",
    "widgets": {
        "quick_actions": {
            "enabled": True,
            "max_actions": 8,
            "show_icons": True,
        },
        "recent_activity": {
            "enabled": True,
            "max_items": 8,
            "show_user_avatars": True,
            "show_timestamps": True,
        },
        "analytics_chart": {
            "enabled": True,
            "default_metric": "overview",
            "time_range": "30d",
            "chart_type": "area",
        },
        "stats_cards": {
            "enabled": True,
            "show_system_health": True,
            "show_security_status": True,
            "layout": "grid",
        },
    },
    "layout": {
        "grid_columns": 3,
        "widget_spacing": "normal",
    },
    "appearance": {
        "theme": "system",
        "card_style": "flat",
    },
    "data": {
        "retention_period": 24,
        "cache_enabled": True,
    },
    "grid_layout": None,
}


def default_settings() -> dict[str, Any]:
    """Fresh deep copy of the defaults, safe to mutate."""
    return copy.deepcopy(DEFAULT_DASHBOARD_SETTINGS)


class DashboardSettingsService(BaseService):
    """Reads and upserts the single DashboardSettings row of each user.

    The JSON blobs (widgets, layout, appearance, data, grid_layout) are
    stored as given; their shape is owned by the frontend.
    """

    async def get_settings(self, user_id: str) -> Optional[dict]:
        with db_errors("get dashboard settings", user_id=user_id):
            async with self._db_session_factory() as session:
                row = await self._find(session, user_id)
                return self._to_dict(row) if row else None

    async def create_or_update_settings(self, user_id: str, data: dict) -> dict:
        """Upsert: provided fields overwrite, missing fields fall back to defaults on create."""
        changes = {k: v for k, v in data.items() if k in SETTINGS_FIELDS}
        with db_errors("create/update dashboard settings", user_id=user_id):
            async with self._db_session_factory() as session:
                row = await self._find(session, user_id)
                if row is None:
                    values = default_settings()
                    values.update({k: v for k, v in changes.items() if v is not None})
                    row = DashboardSettings(user_id=user_id, **values)
                    session.add(row)
                else:
                    for key, value in changes.items():
                        # grid_layout is the only nullable blob
                        if value is None and key != "grid_layout":
                            continue
                        setattr(row, key, value)
                await session.commit()
                result = self._to_dict(row)

        logger.info("dashboard_settings_saved", user_id=user_id, fields=sorted(changes))
        return result

    async def update_grid_layout(self, user_id: str, grid_layout: Any) -> dict:
        with db_errors("update grid layout", user_id=user_id):
            async with self._db_session_factory() as session:
                row = await self._find(session, user_id)
                if row is None:
                    values = default_settings()
                    values["layout_mode"] = "custom"
                    values["grid_layout"] = grid_layout
                    row = DashboardSettings(user_id=user_id, **values)
                    session.add(row)
                else:
                    row.grid_layout = grid_layout
                await session.commit()
                return self._to_dict(row)

    async def delete_settings(self, user_id: str) -> None:
        with db_errors("delete dashboard settings", user_id=user_id):
            async with self._db_session_factory() as session:
                row = await self._find(session, user_id)
                if row is None:
                    raise NotFoundError("Dashboard settings not found")
                await session.delete(row)
                await session.commit()
        logger.info("dashboard_settings_deleted", user_id=user_id)

    async def reset_settings(self, user_id: str) -> dict:
        """Overwrite every field with the defaults, creating the row if needed."""
        with db_errors("reset dashboard settings", user_id=user_id):
            async with self._db_session_factory() as session:
                row = await self._find(session, user_id)
                values = default_settings()
                if row is None:
                    row = DashboardSettings(user_id=user_id, **values)
                    session.add(row)
                else:
                    for key, value in values.items():
                        setattr(row, key, value)
                await session.commit()
                result = self._to_dict(row)

        logger.info("dashboard_settings_reset", user_id=user_id)
        return result

    async def get_or_create_settings(self, user_id: str) -> dict:
        settings = await self.get_settings(user_id)
        if settings is None:
            settings = await self.reset_settings(user_id)
        return settings

    @staticmethod
    async def _find(session, user_id: str) -> Optional[DashboardSettings]:
        result = await session.execute(
            select(DashboardSettings).where(DashboardSettings.user_id == user_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _to_dict(row: DashboardSettings) -> dict:
        return {
            "id": row.id,
            "user_id": row.user_id,
            "layout_mode": row.layout_mode,
            "theme": row.theme,
            "widgets": row.widgets,
            "layout": row.layout,
            "appearance": row.appearance,
            "data": row.data,
            "grid_layout": row.grid_layout,
            "created_at": iso(row.created_at),
            "updated_at": iso(row.updated_at),
        }
