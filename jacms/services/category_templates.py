"""Category template service: templates, bulk category operations, CSV import/export.

Bulk operations run item by item, each in its own transaction: an item
that fails is rolled back and reported in the BulkOperationResult while
the remaining items still commit.
"""

import csv
import io
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError

from ..models.category import Category, CategoryTemplate
from ..models.category_rule import CategoryRule
from ..models.post import Post
from ..utils.logging import get_logger
from ..utils.text import slugify
from .base import BaseService, BulkOperationResult, NotFoundError, ServiceError, ValidationError, db_errors, iso
from .categories import CATEGORY_FIELDS, CYCLE_ERROR, parent_map, would_create_cycle

logger = get_logger("services.category_templates")

TEMPLATE_FIELDS = CATEGORY_FIELDS + ("settings",)

CSV_COLUMNS = [
    "id",
    "name",
    "description",
    "slug",
    "meta_title",
    "meta_description",
    "meta_keywords",
    "is_active",
    "parent_id",
    "sort_order",
    "icon",
    "color",
    "created_at",
    "updated_at",
]

_TRUE_VALUES = {"true", "1", "yes", "y"}


def _fill(pattern: Optional[str], name: str) -> Optional[str]:
    """Substitute ``{name}`` in a template meta field."""
    return pattern.replace("{name}", name) if pattern else pattern


def _csv_value(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def _checked_updates(updates: dict) -> dict:
    """Category fields from a bulk-update entry, rejecting values of the wrong type."""
    values = {}
    for key, value in updates.items():
        if key not in CATEGORY_FIELDS:
            continue
        if key == "is_active":
            if not isinstance(value, bool):
                raise ValidationError("is_active must be true or false")
        elif key == "sort_order":
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError("sort_order must be an integer")
        elif key in ("name", "slug"):
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(f"{key} must be a non-empty string")
        elif value is not None and not isinstance(value, str):
            raise ValidationError(f"{key} must be a string")
        values[key] = value
    return values


def _item_error(exc: Exception) -> str:
    if isinstance(exc, ServiceError):
        return str(exc)
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


class CategoryTemplateService(BaseService):

    # --- Templates ---

    async def create_template(self, data: dict) -> dict:
        with db_errors("create category template"):
            async with self._db_session_factory() as session:
                template = CategoryTemplate(
                    name=data["name"],
                    slug=data.get("slug") or slugify(data["name"], "template"),
                    description=data.get("description"),
                    meta_title=data.get("meta_title"),
                    meta_description=data.get("meta_description"),
                    meta_keywords=data.get("meta_keywords"),
                    is_active=True if data.get("is_active") is None else data["is_active"],
                    parent_id=data.get("parent_id") or None,
                    sort_order=data.get("sort_order") or 0,
                    icon=data.get("icon"),
                    color=data.get("color") or "#6b7280",
                    settings=data.get("settings") or {},
                )
                session.add(template)
                await session.commit()
                result = self._template_to_dict(template)

        logger.info("category_template_created", id=result["id"], name=result["name"])
        return result

    async def get_templates(self) -> list[dict]:
        with db_errors("fetch category templates"):
            async with self._db_session_factory() as session:
                rows = (await session.execute(
                    select(CategoryTemplate).order_by(CategoryTemplate.sort_order.asc(), CategoryTemplate.name.asc())
                )).scalars().all()
                return [self._template_to_dict(t) for t in rows]

    async def get_template_by_id(self, template_id: str) -> Optional[dict]:
        with db_errors("fetch category template", template_id=template_id):
            async with self._db_session_factory() as session:
                template = await session.get(CategoryTemplate, template_id)
                return self._template_to_dict(template) if template else None

    async def update_template(self, template_id: str, data: dict) -> dict:
        with db_errors("update category template", template_id=template_id):
            async with self._db_session_factory() as session:
                template = await session.get(CategoryTemplate, template_id)
                if template is None:
                    raise NotFoundError("Category template not found")
                for key in TEMPLATE_FIELDS:
                    if key in data and (data[key] is not None or key == "parent_id"):
                        setattr(template, key, data[key])
                await session.commit()
                return self._template_to_dict(template)

    async def delete_template(self, template_id: str) -> None:
        with db_errors("delete category template", template_id=template_id):
            async with self._db_session_factory() as session:
                template = await session.get(CategoryTemplate, template_id)
                if template is None:
                    raise NotFoundError("Category template not found")
                await session.delete(template)
                await session.commit()
        logger.info("category_template_deleted", id=template_id)

    # --- Bulk category operations ---

    async def create_from_template(self, template_id: str, rows: list[dict]) -> BulkOperationResult:
        """Create one category per row, filling blanks and ``{name}`` from the template."""
        template = await self.get_template_by_id(template_id)
        if template is None:
            raise NotFoundError("Template not found")

        result = BulkOperationResult()
        for row in rows:
            name = row["name"]
            try:
                async with self._db_session_factory() as session:
                    session.add(Category(
                        name=name,
                        description=row.get("description") or template["description"],
                        slug=slugify(name, "category"),
                        meta_title=_fill(template["meta_title"], name),
                        meta_description=_fill(template["meta_description"], name),
                        meta_keywords=template["meta_keywords"],
                        is_active=template["is_active"],
                        parent_id=row.get("parent_id") or template["parent_id"],
                        sort_order=row.get("sort_order") or template["sort_order"],
                        icon=template["icon"],
                        color=template["color"],
                    ))
                    await session.commit()
                result.ok("created")
            except SQLAlchemyError as exc:
                result.fail(name, _item_error(exc))

        logger.info("categories_created_from_template", template_id=template_id,
                    success=result.success, failed=result.failed)
        return result

    async def bulk_update_categories(self, updates: list[dict]) -> BulkOperationResult:
        """``updates`` is a list of ``{"id": ..., "updates": {...}}``."""
        result = BulkOperationResult()
        for entry in updates:
            category_id = entry["id"]
            try:
                async with self._db_session_factory() as session:
                    category = await session.get(Category, category_id)
                    if category is None:
                        raise NotFoundError("Category not found")
                    values = _checked_updates(entry.get("updates") or {})
                    if "parent_id" in values:
                        values["parent_id"] = values["parent_id"] or None
                        if values["parent_id"] is not None:
                            parents = await parent_map(session)
                            if values["parent_id"] not in parents:
                                raise ValidationError("Parent category not found")
                            if would_create_cycle(parents, category_id, values["parent_id"]):
                                raise ValidationError(CYCLE_ERROR)
                    for key, value in values.items():
                        setattr(category, key, value)
                    await session.commit()
                result.ok("updated")
            except (SQLAlchemyError, ServiceError) as exc:
                result.fail(category_id, _item_error(exc))

        logger.info("categories_bulk_updated", success=result.success, failed=result.failed)
        return result

    async def bulk_delete_categories(self, category_ids: list[str]) -> BulkOperationResult:
        """Delete each category unless it still has posts or subcategories."""
        result = BulkOperationResult()
        for category_id in category_ids:
            try:
                async with self._db_session_factory() as session:
                    posts_count = (await session.execute(
                        select(func.count(Post.id)).where(Post.category_id == category_id)
                    )).scalar() or 0
                    if posts_count > 0:
                        result.fail(category_id, f"Cannot delete category with {posts_count} posts")
                        continue

                    subcategories_count = (await session.execute(
                        select(func.count(Category.id)).where(Category.parent_id == category_id)
                    )).scalar() or 0
                    if subcategories_count > 0:
                        result.fail(
                            category_id,
                            f"Cannot delete category with {subcategories_count} subcategories",
                        )
                        continue

                    category = await session.get(Category, category_id)
                    if category is None:
                        raise NotFoundError("Category not found")
                    await session.execute(delete(CategoryRule).where(CategoryRule.category_id == category_id))
                    await session.delete(category)
                    await session.commit()
                result.ok("deleted")
            except (SQLAlchemyError, ServiceError) as exc:
                result.fail(category_id, _item_error(exc))

        logger.info("categories_bulk_deleted", success=result.success, failed=result.failed)
        return result

    async def bulk_toggle_categories(self, category_ids: list[str], is_active: bool) -> BulkOperationResult:
        result = BulkOperationResult()
        for category_id in category_ids:
            try:
                async with self._db_session_factory() as session:
                    category = await session.get(Category, category_id)
                    if category is None:
                        raise NotFoundError("Category not found")
                    category.is_active = is_active
                    await session.commit()
                result.ok("activated" if is_active else "deactivated")
            except (SQLAlchemyError, ServiceError) as exc:
                result.fail(category_id, _item_error(exc))

        logger.info("categories_bulk_toggled", is_active=is_active,
                    success=result.success, failed=result.failed)
        return result

    # --- CSV ---

    async def import_from_csv(self, csv_data: str, template_id: Optional[str] = None) -> BulkOperationResult:
        """Create categories from CSV text, mapping columns by header name.

        ``name`` (or ``title``) is required. Blank cells fall back to the
        template when one is given. An ``id`` column is only used to
        re-link ``parent_id`` references between rows of the same file, so an
        export re-imports with its hierarchy intact.
        """
        template = None
        if template_id:
            template = await self.get_template_by_id(template_id)
            if template is None:
                raise NotFoundError("Template not found")

        reader = csv.DictReader(io.StringIO(csv_data.strip()))
        if not reader.fieldnames:
            raise ServiceError("Failed to import categories from CSV: missing header row")
        rows = [
            (line_no, {k.strip(): (v or "").strip() for k, v in raw.items() if isinstance(k, str)})
            for line_no, raw in enumerate(reader, start=2)
            if any((v or "").strip() for v in raw.values() if isinstance(v, str))
        ]

        result = BulkOperationResult()
        file_ids = {row["id"] for _, row in rows if row.get("id")}
        id_map: dict[str, str] = {}

        for line_no, row in self._parents_first(rows):
            try:
                values = self._category_values(row, template)
                raw_parent = values["parent_id"]
                if raw_parent in file_ids:
                    if raw_parent not in id_map:
                        raise ServiceError("Parent category was not imported")
                    values["parent_id"] = id_map[raw_parent]

                async with self._db_session_factory() as session:
                    category = Category(**values)
                    session.add(category)
                    await session.commit()
                    if row.get("id"):
                        id_map[row["id"]] = category.id
                result.ok("created")
            except (SQLAlchemyError, ServiceError, ValueError) as exc:
                result.fail(f"Row {line_no}", _item_error(exc))

        logger.info("categories_imported", template_id=template_id,
                    success=result.success, failed=result.failed)
        return result

    async def export_to_csv(self, category_ids: Optional[list[str]] = None) -> str:
        stmt = select(Category).order_by(Category.sort_order.asc(), Category.name.asc())
        if category_ids:
            stmt = stmt.where(Category.id.in_(category_ids))

        with db_errors("export categories to CSV"):
            async with self._db_session_factory() as session:
                categories = (await session.execute(stmt)).scalars().all()

        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_COLUMNS)
        for category in categories:
            writer.writerow([_csv_value(getattr(category, column)) for column in CSV_COLUMNS])

        logger.info("categories_exported", count=len(categories))
        return buffer.getvalue()

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
                with_subcategories = (await session.execute(
                    select(func.count(func.distinct(Category.parent_id))).where(Category.parent_id.is_not(None))
                )).scalar() or 0
                templates = (await session.execute(select(func.count(CategoryTemplate.id)))).scalar() or 0

        return {
            "total": total,
            "active": active,
            "inactive": total - active,
            "with_posts": with_posts,
            "with_subcategories": with_subcategories,
            "templates": templates,
        }

    # --- Helpers ---

    @staticmethod
    def _parents_first(rows: list[tuple[int, dict]]) -> list[tuple[int, dict]]:
        """Order rows so a row whose parent is in the same file comes after that parent."""
        by_id = {row["id"]: (line_no, row) for line_no, row in rows if row.get("id")}
        ordered: list[tuple[int, dict]] = []
        placed: set[int] = set()

        for entry in rows:
            # Walk up to the first placed ancestor; a loop in the file stops the walk
            chain: list[tuple[int, dict]] = []
            on_chain: set[int] = set()
            node = entry
            while node is not None and node[0] not in placed and node[0] not in on_chain:
                chain.append(node)
                on_chain.add(node[0])
                node = by_id.get(node[1].get("parent_id", ""))
            for line_no, row in reversed(chain):
                placed.add(line_no)
                ordered.append((line_no, row))
        return ordered

    @staticmethod
    def _category_values(row: dict, template: Optional[dict]) -> dict:
        name = row.get("name") or row.get("title") or ""
        if not name:
            raise ServiceError("Missing name")
        template = template or {}

        is_active_cell = row.get("is_active", "")
        if is_active_cell:
            is_active = is_active_cell.lower() in _TRUE_VALUES
        else:
            is_active = template.get("is_active", True)

        sort_order_cell = row.get("sort_order", "")
        sort_order = int(sort_order_cell) if sort_order_cell else template.get("sort_order", 0)

        return {
            "name": name,
            "slug": row.get("slug") or slugify(name, "category"),
            "description": row.get("description") or template.get("description"),
            "meta_title": row.get("meta_title") or _fill(template.get("meta_title") or "{name}", name),
            "meta_description": row.get("meta_description") or _fill(template.get("meta_description"), name),
            "meta_keywords": row.get("meta_keywords") or template.get("meta_keywords"),
            "is_active": is_active,
            "parent_id": row.get("parent_id") or template.get("parent_id"),
            "sort_order": sort_order,
            "icon": row.get("icon") or template.get("icon"),
            "color": row.get("color") or template.get("color") or "#6b7280",
        }

    @staticmethod
    def _template_to_dict(template: CategoryTemplate) -> dict:
        return {
            "id": template.id,
            "name": template.name,
            "slug": template.slug,
            "description": template.description,
            "meta_title": template.meta_title,
            "meta_description": template.meta_description,
            "meta_keywords": template.meta_keywords,
            "is_active": template.is_active,
            "parent_id": template.parent_id,
            "sort_order": template.sort_order,
            "icon": template.icon,
            "color": template.color,
            "settings": template.settings or {},
            "created_at": iso(template.created_at),
            "updated_at": iso(template.updated_at),
        }
