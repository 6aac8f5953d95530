"""Tests for MenuService: item lists merged by id inside one transaction."""

import pytest

from jacms.services.base import NotFoundError
from jacms.services.menus import MenuService


def _items(*titles):
    return [{"title": t, "url": f"/{t.lower()}"} for t in titles]


class TestCreateMenu:
    @pytest.mark.asyncio
    async def test_create_with_items_defaults(self, session_factory):
        service = MenuService(session_factory)

        menu = await service.create_menu({"name": "Main Nav", "location": "HEADER", "items": _items("Home", "Blog")})

        assert menu["slug"] == "main-nav"
        assert [i["title"] for i in menu["items"]] == ["Home", "Blog"]
        assert [i["order"] for i in menu["items"]] == [1, 2]
        assert all(i["target"] == "_self" and i["is_active"] for i in menu["items"])

    @pytest.mark.asyncio
    async def test_filter_by_location(self, session_factory):
        service = MenuService(session_factory)
        await service.create_menu({"name": "Header", "location": "HEADER"})
        await service.create_menu({"name": "Footer", "location": "FOOTER"})

        menus = await service.get_all_menus("FOOTER")

        assert [m["name"] for m in menus] == ["Footer"]


class TestUpdateMenuItems:
    @pytest.mark.asyncio
    async def test_three_items_replaced_by_one(self, session_factory):
        """Updating with one item leaves exactly that item."""
        service = MenuService(session_factory)
        menu = await service.create_menu({"name": "Main", "location": "HEADER", "items": _items("A", "B", "C")})

        updated = await service.update_menu(menu["id"], {"items": _items("Only")})

        assert [i["title"] for i in updated["items"]] == ["Only"]
        fetched = await service.get_menu_by_id(menu["id"])
        assert len(fetched["items"]) == 1

    @pytest.mark.asyncio
    async def test_matching_ids_keep_identity(self, session_factory):
        service = MenuService(session_factory)
        menu = await service.create_menu({"name": "Main", "location": "HEADER", "items": _items("A", "B", "C")})
        keep = menu["items"][1]

        updated = await service.update_menu(menu["id"], {
            "items": [
                {"id": keep["id"], "title": "B renamed", "url": keep["url"], "order": 1},
                {"title": "New", "url": "/new", "order": 2},
            ],
        })

        assert [i["title"] for i in updated["items"]] == ["B renamed", "New"]
        assert updated["items"][0]["id"] == keep["id"]
        assert updated["items"][1]["id"] not in {i["id"] for i in menu["items"]}

    @pytest.mark.asyncio
    async def test_omitting_items_leaves_them_alone(self, session_factory):
        service = MenuService(session_factory)
        menu = await service.create_menu({"name": "Main", "location": "HEADER", "items": _items("A", "B")})

        updated = await service.update_menu(menu["id"], {"name": "Primary"})

        assert updated["slug"] == "primary"
        assert len(updated["items"]) == 2

    @pytest.mark.asyncio
    async def test_update_missing_menu_raises(self, session_factory):
        service = MenuService(session_factory)
        with pytest.raises(NotFoundError):
            await service.update_menu("missing", {"name": "x"})


class TestLocationAndDelete:
    @pytest.mark.asyncio
    async def test_location_lookup_hides_inactive_items(self, session_factory):
        service = MenuService(session_factory)
        await service.create_menu({
            "name": "Footer",
            "location": "FOOTER",
            "items": [{"title": "Shown"}, {"title": "Hidden", "is_active": False}],
        })

        menu = await service.get_menu_by_location("FOOTER")

        assert [i["title"] for i in menu["items"]] == ["Shown"]

    @pytest.mark.asyncio
    async def test_unknown_location_returns_none(self, session_factory):
        service = MenuService(session_factory)
        assert await service.get_menu_by_location("SIDEBAR") is None

    @pytest.mark.asyncio
    async def test_delete_removes_menu(self, session_factory):
        service = MenuService(session_factory)
        menu = await service.create_menu({"name": "Main", "location": "HEADER", "items": _items("A")})

        await service.delete_menu(menu["id"])

        assert await service.get_menu_by_id(menu["id"]) is None
