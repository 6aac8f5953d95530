"""Menu service: navigation menus and their ordered items."""

from typing import Optional

from sqlalchemy import delete, select

from ..models.menu import Menu, MenuItem
from ..utils.logging import get_logger
from ..utils.text import slugify
from .base import BaseService, NotFoundError, db_errors, iso

logger = get_logger("services.menus")

MENU_FIELDS = ("name", "slug", "location")


class MenuService(BaseService):
    """CRUD for menus. Item lists are merged by item id on update."""

    async def get_all_menus(self, location: Optional[str] = None) -> list[dict]:
        with db_errors("get menus"):
            async with self._db_session_factory() as session:
                query = select(Menu).order_by(Menu.created_at.desc())
                if location:
                    query = query.where(Menu.location == location)
                menus = (await session.execute(query)).scalars().all()
                return [
                    self._to_dict(menu, await self._items(session, menu.id))
                    for menu in menus
                ]

    async def get_menu_by_id(self, menu_id: str) -> Optional[dict]:
        with db_errors("get menu", menu_id=menu_id):
            async with self._db_session_factory() as session:
                menu = await session.get(Menu, menu_id)
                if menu is None:
                    return None
                return self._to_dict(menu, await self._items(session, menu.id))

    async def get_menu_by_location(self, location: str) -> Optional[dict]:
        """First menu at ``location`` with only its active items."""
        with db_errors("get menu by location", location=location):
            async with self._db_session_factory() as session:
                menu = (await session.execute(
                    select(Menu).where(Menu.location == location).order_by(Menu.created_at.asc()).limit(1)
                )).scalar_one_or_none()
                if menu is None:
                    return None
                return self._to_dict(menu, await self._items(session, menu.id, active_only=True))

    async def create_menu(self, data: dict) -> dict:
        with db_errors("create menu"):
            async with self._db_session_factory() as session:
                menu = Menu(
                    name=data["name"],
                    slug=data.get("slug") or slugify(data["name"], "menu"),
                    location=data["location"],
                )
                session.add(menu)
                await session.flush()

                for index, item_data in enumerate(data.get("items") or []):
                    item = MenuItem(menu_id=menu.id)
                    self._apply_item(item, item_data, index)
                    session.add(item)

                await session.commit()
                result = self._to_dict(menu, await self._items(session, menu.id))

        logger.info("menu_created", id=result["id"], location=result["location"], items=len(result["items"]))
        return result

    async def update_menu(self, menu_id: str, data: dict) -> dict:
        """Update menu fields and, when ``items`` is given, make the item list exactly ``items``.

        Items whose ``id`` matches an existing item of this menu are updated in
        place; the rest are created. Existing items missing from ``items`` are
        deleted. The whole update is one transaction.
        """
        with db_errors("update menu", menu_id=menu_id):
            async with self._db_session_factory() as session:
                menu = await session.get(Menu, menu_id)
                if menu is None:
                    raise NotFoundError("Menu not found")

                for key in MENU_FIELDS:
                    if data.get(key) is not None:
                        setattr(menu, key, data[key])
                if data.get("name") and not data.get("slug"):
                    menu.slug = slugify(data["name"], "menu")

                items = data.get("items")
                if items is not None:
                    await self._merge_items(session, menu.id, items)

                await session.commit()
                result = self._to_dict(menu, await self._items(session, menu.id))

        logger.info("menu_updated", id=menu_id, items=len(result["items"]))
        return result

    async def delete_menu(self, menu_id: str) -> dict:
        with db_errors("delete menu", menu_id=menu_id):
            async with self._db_session_factory() as session:
                menu = await session.get(Menu, menu_id)
                if menu is None:
                    raise NotFoundError("Menu not found")
                result = self._to_dict(menu, [])
                await session.execute(delete(MenuItem).where(MenuItem.menu_id == menu_id))
                await session.delete(menu)
                await session.commit()

        logger.info("menu_deleted", id=menu_id)
        return result

    async def _merge_items(self, session, menu_id: str, items: list[dict]) -> None:
        existing = {
            item.id: item
            for item in (await session.execute(
                select(MenuItem).where(MenuItem.menu_id == menu_id)
            )).scalars().all()
        }
        kept: set[str] = set()

        for index, item_data in enumerate(items):
            item = existing.get(item_data.get("id"))
            if item is None or item.id in kept:
                item = MenuItem(menu_id=menu_id)
                session.add(item)
            else:
                kept.add(item.id)
            self._apply_item(item, item_data, index)

        for item_id, item in existing.items():
            if item_id not in kept:
                await session.delete(item)
        await session.flush()

    @staticmethod
    def _apply_item(item: MenuItem, data: dict, index: int) -> None:
        item.title = data["title"]
        item.url = data.get("url")
        item.target = data.get("target") or "_self"
        item.order = data.get("order") or index + 1
        item.is_active = True if data.get("is_active") is None else bool(data["is_active"])
        item.parent_id = data.get("parent_id") or None
        item.css_class = data.get("css_class")

    @staticmethod
    async def _items(session, menu_id: str, active_only: bool = False) -> list[MenuItem]:
        query = select(MenuItem).where(MenuItem.menu_id == menu_id)
        if active_only:
            query = query.where(MenuItem.is_active == True)  # noqa: E712
        query = query.order_by(MenuItem.order.asc())
        return list((await session.execute(query)).scalars().all())

    @staticmethod
    def _to_dict(menu: Menu, items: list[MenuItem]) -> dict:
        return {
            "id": menu.id,
            "name": menu.name,
            "slug": menu.slug,
            "location": menu.location,
            "created_at": iso(menu.created_at),
            "updated_at": iso(menu.updated_at),
            "items": [
                {
                    "id": item.id,
                    "menu_id": item.menu_id,
                    "title": item.title,
                    "url": item.url,
                    "target": item.target,
                    "order": item.order,
                    "is_active": item.is_active,
                    "parent_id": item.parent_id,
                    "css_class": item.css_class,
                }
                for item in items
            ],
        }
