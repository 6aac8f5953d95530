"""Category service: CRUD, hierarchy tree, and drag-and-drop reordering."""

import math
from typing import Optional

from sqlalchemy import delete, func, or_, select

from ..models.category import Category
from ..models.category_rule import CategoryRule
from ..models.post import Post
from ..utils.logging import get_logger
from ..utils.text import slugify
from .base import BaseService, NotFoundError, ValidationError, db_errors, iso

logger = get_logger("services.categories")

CATEGORY_FIELDS = (
    "name", "slug", "description", "meta_title", "meta_description", "meta_keywords",
    "is_active", "parent_id", "sort_order", "icon", "color",
)
SORTABLE_FIELDS = {"name", "slug", "sort_order", "created_at", "updated_at"}
CYCLE_ERROR = "A category cannot be moved under itself or its descendants"


def would_create_cycle(parents: dict[str, Optional[str]], category_id: str, new_parent_id: Optional[str]) -> bool:
    """True if making ``new_parent_id`` the parent of ``category_id`` closes a loop.

    ``parents`` maps every category id to its current parent id.
    """
    seen = set()
    node = new_parent_id
    while node is not None and node not in seen:
        if node == category_id:
            return True
        seen.add(node)
        node = parents.get(node)
    return False


async def parent_map(session) -> dict[str, Optional[str]]:
    """Every category id mapped to its current parent id."""
    rows = (await session.execute(select(Category.id, Category.parent_id))).all()
    return {cid: parent for cid, parent in rows}


class CategoryService(BaseService):

    async def get_categories(
        self,
        query: Optional[str] = None,
        parent_id: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "name",
        sort_order: str = "asc",
    ) -> dict:
        page = max(page, 1)
        column = getattr(Category, sort_by if sort_by in SORTABLE_FIELDS else "name")
        order = column.desc() if sort_order == "desc" else column.asc()

        stmt = select(Category)
        if query:
            pattern = f"%{query}%"
            stmt = stmt.where(or_(Category.name.ilike(pattern), Category.description.ilike(pattern)))
        if parent_id:
            stmt = stmt.where(Category.parent_id == parent_id)

        with db_errors("get categories"):
            async with self._db_session_factory() as session:
                total = (await session.execute(
                    select(func.count()).select_from(stmt.subquery())
                )).scalar() or 0
                rows = (await session.execute(
                    stmt.order_by(order).offset((page - 1) * limit).limit(limit)
                )).scalars().all()
                post_counts = await self._post_counts(session)
                child_counts = await self._child_counts(session)

        return {
            "categories": [
                self._to_dict(c, post_counts.get(c.id, 0), child_counts.get(c.id, 0))
                for c in rows
            ],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": math.ceil(total / limit) if limit else 0,
            },
        }

    async def get_category_by_id(self, category_id: str) -> Optional[dict]:
        with db_errors("get category", category_id=category_id):
            async with self._db_session_factory() as session:
                category = await session.get(Category, category_id)
                if category is None:
                    return None
                return await self._with_counts(session, category)

    async def get_category_by_slug(self, slug: str) -> Optional[dict]:
        with db_errors("get category", slug=slug):
            async with self._db_session_factory() as session:
                category = (await session.execute(
                    select(Category).where(Category.slug == slug)
                )).scalar_one_or_none()
                if category is None:
                    return None
                return await self._with_counts(session, category)

    async def create_category(self, data: dict) -> dict:
        with db_errors("create category"):
            async with self._db_session_factory() as session:
                parent_id = data.get("parent_id") or None
                if parent_id and await session.get(Category, parent_id) is None:
                    raise ValidationError("Parent category not found")

                category = Category(
                    name=data["name"],
                    slug=data.get("slug") or await self._unique_slug(session, data["name"]),
                    description=data.get("description"),
                    meta_title=data.get("meta_title"),
                    meta_description=data.get("meta_description"),
                    meta_keywords=data.get("meta_keywords"),
                    is_active=True if data.get("is_active") is None else data["is_active"],
                    parent_id=parent_id,
                    sort_order=data.get("sort_order") or 0,
                    icon=data.get("icon"),
                    color=data.get("color") or "#6b7280",
                )
                session.add(category)
                await session.commit()
                result = self._to_dict(category, 0, 0)

        logger.info("category_created", id=result["id"], slug=result["slug"])
        return result

    async def update_category(self, category_id: str, data: dict) -> dict:
        with db_errors("update category", category_id=category_id):
            async with self._db_session_factory() as session:
                category = await session.get(Category, category_id)
                if category is None:
                    raise NotFoundError("Category not found")

                if "parent_id" in data:
                    new_parent = data["parent_id"] or None
                    if new_parent is not None:
                        parents = await parent_map(session)
                        if new_parent not in parents:
                            raise ValidationError("Parent category not found")
                        if would_create_cycle(parents, category_id, new_parent):
                            raise ValidationError(CYCLE_ERROR)
                    category.parent_id = new_parent

                for key in CATEGORY_FIELDS:
                    if key != "parent_id" and data.get(key) is not None:
                        setattr(category, key, data[key])
                if data.get("name") and not data.get("slug"):
                    category.slug = await self._unique_slug(session, data["name"], exclude_id=category_id)

                await session.commit()
                return await self._with_counts(session, category)

    async def delete_category(self, category_id: str) -> dict:
        """Delete a category that has neither posts nor subcategories."""
        with db_errors("delete category", category_id=category_id):
            async with self._db_session_factory() as session:
                category = await session.get(Category, category_id)
                if category is None:
                    raise NotFoundError("Category not found")
                result = await self._with_counts(session, category)
                if result["post_count"]:
                    raise ValidationError(f"Cannot delete category with {result['post_count']} posts")
                if result["children_count"]:
                    raise ValidationError(
                        f"Cannot delete category with {result['children_count']} subcategories"
                    )
                await session.execute(delete(CategoryRule).where(CategoryRule.category_id == category_id))
                await session.delete(category)
                await session.commit()

        logger.info("category_deleted", id=category_id)
        return result

    async def generate_slug(self, name: str, exclude_id: Optional[str] = None) -> str:
        with db_errors("generate slug"):
            async with self._db_session_factory() as session:
                return await self._unique_slug(session, name, exclude_id)

    async def get_hierarchy(self) -> list[dict]:
        """All categories as a nested tree, siblings by sort_order then name."""
        with db_errors("get category hierarchy"):
            async with self._db_session_factory() as session:
                return await self._tree(session)

    async def get_root_categories(self) -> list[dict]:
        with db_errors("get root categories"):
            async with self._db_session_factory() as session:
                rows = (await session.execute(
                    select(Category).order_by(Category.sort_order.asc(), Category.name.asc())
                )).scalars().all()
                post_counts = await self._post_counts(session)
                child_counts = await self._child_counts(session)

        roots = []
        for category in rows:
            if category.parent_id is not None:
                continue
            node = self._to_dict(category, post_counts.get(category.id, 0), child_counts.get(category.id, 0))
            node["children"] = [
                self._to_dict(c, post_counts.get(c.id, 0), child_counts.get(c.id, 0))
                for c in rows
                if c.parent_id == category.id
            ]
            roots.append(node)
        return roots

    async def reorder_categories(self, moves: list[dict]) -> list[dict]:
        """Apply drag-and-drop moves ``[{id, parent_id, sort_order}]`` atomically.

        Moves are validated against the hierarchy as it will be after every
        move is applied; any cycle rejects the whole batch.
        """
        with db_errors("reorder categories"):
            async with self._db_session_factory() as session:
                categories = {
                    c.id: c for c in (await session.execute(select(Category))).scalars().all()
                }
                parents = {cid: c.parent_id for cid, c in categories.items()}

                for move in moves:
                    if move["id"] not in categories:
                        raise NotFoundError(f"Category {move['id']} not found")
                    if "parent_id" in move:
                        new_parent = move["parent_id"] or None
                        if new_parent is not None and new_parent not in categories:
                            raise ValidationError(f"Parent category {new_parent} not found")
                        parents[move["id"]] = new_parent

                for move in moves:
                    if would_create_cycle(parents, move["id"], parents[move["id"]]):
                        raise ValidationError(CYCLE_ERROR)

                for move in moves:
                    category = categories[move["id"]]
                    category.parent_id = parents[move["id"]]
                    if move.get("sort_order") is not None:
                        category.sort_order = move["sort_order"]

                await session.commit()
                tree = await self._tree(session)

        logger.info("categories_reordered", moved=len(moves))
        return tree

    async def get_category_stats(self) -> dict:
        with db_errors("get category statistics"):
            async with self._db_session_factory() as session:
                total = (await session.execute(select(func.count(Category.id)))).scalar() or 0
                active = (await session.execute(
                    select(func.count(Category.id)).where(Category.is_active == True)  # noqa: E712
                )).scalar() or 0
                with_posts = (await session.execute(
                    select(func.count(func.distinct(Post.category_id))).where(Post.category_id.is_not(None))
                )).scalar() or 0
                with_children = (await session.execute(
                    select(func.count(func.distinct(Category.parent_id))).where(Category.parent_id.is_not(None))
                )).scalar() or 0

        return {
            "total": total,
            "active": active,
            "inactive": total - active,
            "with_posts": with_posts,
            "with_children": with_children,
        }

    async def _tree(self, session) -> list[dict]:
        rows = (await session.execute(
            select(Category).order_by(Category.sort_order.asc(), Category.name.asc())
        )).scalars().all()
        post_counts = await self._post_counts(session)
        child_counts = await self._child_counts(session)

        nodes = {}
        for category in rows:
            node = self._to_dict(category, post_counts.get(category.id, 0), child_counts.get(category.id, 0))
            node["children"] = []
            nodes[category.id] = node

        roots = []
        for category in rows:
            parent = nodes.get(category.parent_id) if category.parent_id else None
            if parent is None:
                # Orphans (dangling parent_id) surface at the top level
                roots.append(nodes[category.id])
            else:
                parent["children"].append(nodes[category.id])
        return roots

    async def _with_counts(self, session, category: Category) -> dict:
        posts = (await session.execute(
            select(func.count(Post.id)).where(Post.category_id == category.id)
        )).scalar() or 0
        children = (await session.execute(
            select(func.count(Category.id)).where(Category.parent_id == category.id)
        )).scalar() or 0
        return self._to_dict(category, posts, children)

    @staticmethod
    async def _unique_slug(session, name: str, exclude_id: Optional[str] = None) -> str:
        base = slugify(name, "category")
        candidate = base
        counter = 1
        while True:
            stmt = select(Category.id).where(Category.slug == candidate)
            if exclude_id:
                stmt = stmt.where(Category.id != exclude_id)
            if (await session.execute(stmt)).first() is None:
                return candidate
            candidate = f"{base}-{counter}"
            counter += 1

    @staticmethod
    async def _post_counts(session) -> dict[str, int]:
        rows = (await session.execute(
            select(Post.category_id, func.count(Post.id))
            .where(Post.category_id.is_not(None))
            .group_by(Post.category_id)
        )).all()
        return dict(rows)

    @staticmethod
    async def _child_counts(session) -> dict[str, int]:
        rows = (await session.execute(
            select(Category.parent_id, func.count(Category.id))
            .where(Category.parent_id.is_not(None))
            .group_by(Category.parent_id)
        )).all()
        return dict(rows)

    @staticmethod
    def _to_dict(category: Category, post_count: int, children_count: int) -> dict:
        return {
            "id": category.id,
            "name": category.name,
            "slug": category.slug,
            "description": category.description,
            "meta_title": category.meta_title,
            "meta_description": category.meta_description,
            "meta_keywords": category.meta_keywords,
            "is_active": category.is_active,
            "parent_id": category.parent_id,
            "sort_order": category.sort_order,
            "icon": category.icon,
            "color": category.color,
            "post_count": post_count,
            "children_count": children_count,
            "created_at": iso(category.created_at),
            "updated_at": iso(category.updated_at),
        }
