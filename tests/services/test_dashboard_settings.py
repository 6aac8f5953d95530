"""Tests for DashboardSettingsService: per-user upsert, reset and grid layout."""

import pytest

from jacms.services.base import NotFoundError
from jacms.services.dashboard_settings import DashboardSettingsService, default_settings


def _without_timestamps(settings: dict) -> dict:
    return {k: v for k, v in settings.items() if k not in ("created_at", "updated_at")}


class TestGetOrCreate:
    @pytest.mark.asyncio
    async def test_missing_settings_return_none(self, session_factory):
        service = DashboardSettingsService(session_factory)
        assert await service.get_settings("user-1") is None

    @pytest.mark.asyncio
    async def test_get_or_create_returns_defaults_then_same_row(self, session_factory):
        """First call creates the defaults; the second returns the same row."""
        service = DashboardSettingsService(session_factory)

        first = await service.get_or_create_settings("user-1")
        second = await service.get_or_create_settings("user-1")

        assert first["id"] == second["id"]
        assert first["widgets"] == default_settings()["widgets"]
        assert first["grid_layout"] is None


class TestCreateOrUpdate:
    @pytest.mark.asyncio
    async def test_create_fills_missing_fields_with_defaults(self, session_factory):
        service = DashboardSettingsService(session_factory)

        settings = await service.create_or_update_settings("user-1", {"theme": "dark"})

        assert settings["theme"] == "dark"
        assert settings["layout"] == default_settings()["layout"]
        assert settings["appearance"] == default_settings()["appearance"]

    @pytest.mark.asyncio
    async def test_identical_input_is_idempotent(self, session_factory):
        """Applying the same update twice leaves one row with the same content."""
        service = DashboardSettingsService(session_factory)
        update = {"theme": "dark", "widgets": {"stats_cards": {"enabled": False}}}

        first = await service.create_or_update_settings("user-1", update)
        second = await service.create_or_update_settings("user-1", update)

        assert _without_timestamps(first) == _without_timestamps(second)

    @pytest.mark.asyncio
    async def test_update_keeps_untouched_fields(self, session_factory):
        service = DashboardSettingsService(session_factory)
        await service.create_or_update_settings("user-1", {"theme": "dark"})

        settings = await service.create_or_update_settings("user-1", {"layout_mode": "compact"})

        assert settings["theme"] == "dark"
        assert settings["layout_mode"] == "compact"

    @pytest.mark.asyncio
    async def test_shape_of_blobs_is_not_validated(self, session_factory):
        service = DashboardSettingsService(session_factory)

        settings = await service.create_or_update_settings("user-1", {"data": {"anything": [1, 2, 3]}})

        assert settings["data"] == {"anything": [1, 2, 3]}

    @pytest.mark.asyncio
    async def test_users_are_isolated(self, session_factory):
        service = DashboardSettingsService(session_factory)
        await service.create_or_update_settings("user-1", {"theme": "dark"})

        other = await service.get_or_create_settings("user-2")

        assert other["theme"] == default_settings()["theme"]


class TestGridLayoutAndReset:
    @pytest.mark.asyncio
    async def test_grid_layout_creates_custom_row(self, session_factory):
        service = DashboardSettingsService(session_factory)
        layout = [{"i": "analytics-chart", "x": 0, "y": 0, "w": 8, "h": 4}]

        settings = await service.update_grid_layout("user-1", layout)

        assert settings["grid_layout"] == layout
        assert settings["layout_mode"] == "custom"

    @pytest.mark.asyncio
    async def test_reset_restores_defaults(self, session_factory):
        service = DashboardSettingsService(session_factory)
        created = await service.create_or_update_settings(
            "user-1", {"theme": "dark", "grid_layout": [{"i": "a"}]}
        )

        reset = await service.reset_settings("user-1")

        assert reset["id"] == created["id"]
        assert reset["theme"] == default_settings()["theme"]
        assert reset["grid_layout"] is None

    @pytest.mark.asyncio
    async def test_delete_missing_settings_raises(self, session_factory):
        service = DashboardSettingsService(session_factory)
        with pytest.raises(NotFoundError):
            await service.delete_settings("nobody")

    @pytest.mark.asyncio
    async def test_delete_then_get_returns_none(self, session_factory):
        service = DashboardSettingsService(session_factory)
        await service.get_or_create_settings("user-1")

        await service.delete_settings("user-1")

        assert await service.get_settings("user-1") is None
