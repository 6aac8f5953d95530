"""Tests for CategoryTemplateService: bulk operations and CSV import/export."""

import csv
import io

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from jacms.models.base import Base
from jacms.services.base import NotFoundError
from jacms.services.categories import CYCLE_ERROR, CategoryService
from jacms.services.category_templates import CSV_COLUMNS, CategoryTemplateService
from jacms.services.posts import PostService


async def _fresh_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine, async_sessionmaker(engine, expire_on_commit=False)


def _rows(csv_text: str) -> list[dict]:
    return list(csv.DictReader(io.StringIO(csv_text)))


class TestTemplates:
    @pytest.mark.asyncio
    async def test_template_crud(self, session_factory):
        service = CategoryTemplateService(session_factory)

        template = await service.create_template({"name": "Blog Section", "settings": {"layout": "grid"}})
        updated = await service.update_template(template["id"], {"color": "#ff0000"})

        assert template["slug"] == "blog-section"
        assert updated["color"] == "#ff0000"
        assert updated["settings"] == {"layout": "grid"}
        assert [t["id"] for t in await service.get_templates()] == [template["id"]]

        await service.delete_template(template["id"])
        assert await service.get_template_by_id(template["id"]) is None

    @pytest.mark.asyncio
    async def test_create_from_template_fills_placeholders(self, session_factory):
        service = CategoryTemplateService(session_factory)
        template = await service.create_template({
            "name": "Product line",
            "meta_title": "{name} | Shop",
            "icon": "box",
            "color": "#123456",
        })

        result = await service.create_from_template(template["id"], [{"name": "Shoes"}, {"name": "Hats"}])

        assert result.success == 2
        assert result.details["created"] == 2
        shoes = await CategoryService(session_factory).get_category_by_slug("shoes")
        assert shoes["meta_title"] == "Shoes | Shop"
        assert shoes["icon"] == "box"
        assert shoes["color"] == "#123456"

    @pytest.mark.asyncio
    async def test_create_from_missing_template_raises(self, session_factory):
        service = CategoryTemplateService(session_factory)
        with pytest.raises(NotFoundError):
            await service.create_from_template("missing", [{"name": "X"}])

    @pytest.mark.asyncio
    async def test_duplicate_row_fails_alone(self, session_factory):
        service = CategoryTemplateService(session_factory)
        template = await service.create_template({"name": "T"})

        result = await service.create_from_template(template["id"], [{"name": "Same"}, {"name": "Same"}])

        assert result.success == 1
        assert result.failed == 1
        assert result.errors[0]["category_id"] == "Same"


class TestBulkOperations:
    @pytest.mark.asyncio
    async def test_bulk_delete_mixed_batch(self, session_factory):
        """Deletable categories go; ones with posts or children are reported."""
        categories = CategoryService(session_factory)
        empty = await categories.create_category({"name": "Empty"})
        with_posts = await categories.create_category({"name": "With posts"})
        parent = await categories.create_category({"name": "Parent"})
        await categories.create_category({"name": "Kid", "parent_id": parent["id"]})
        await PostService(session_factory).create_post(
            {"title": "P", "category_id": with_posts["id"]}, author_id=None
        )

        result = await CategoryTemplateService(session_factory).bulk_delete_categories(
            [empty["id"], with_posts["id"], parent["id"], "missing"]
        )

        assert result.success == 1
        assert result.failed == 3
        assert result.details["deleted"] == 1
        errors = {e["category_id"]: e["error"] for e in result.errors}
        assert errors[with_posts["id"]] == "Cannot delete category with 1 posts"
        assert errors[parent["id"]] == "Cannot delete category with 1 subcategories"
        assert errors["missing"] == "Category not found"
        assert await categories.get_category_by_id(empty["id"]) is None
        assert await categories.get_category_by_id(with_posts["id"]) is not None

    @pytest.mark.asyncio
    async def test_bulk_toggle_counts_deactivated(self, session_factory):
        categories = CategoryService(session_factory)
        a = await categories.create_category({"name": "A"})
        b = await categories.create_category({"name": "B"})

        result = await CategoryTemplateService(session_factory).bulk_toggle_categories([a["id"], b["id"]], False)

        assert result.to_dict()["details"]["deactivated"] == 2
        assert (await categories.get_category_by_id(a["id"]))["is_active"] is False

    @pytest.mark.asyncio
    async def test_bulk_update_applies_per_item(self, session_factory):
        categories = CategoryService(session_factory)
        a = await categories.create_category({"name": "A"})

        result = await CategoryTemplateService(session_factory).bulk_update_categories([
            {"id": a["id"], "updates": {"description": "changed", "unknown_field": 1}},
            {"id": "missing", "updates": {"description": "x"}},
        ])

        assert result.success == 1
        assert result.failed == 1
        assert (await categories.get_category_by_id(a["id"]))["description"] == "changed"

    @pytest.mark.asyncio
    async def test_bulk_update_rejects_cycle(self, session_factory):
        categories = CategoryService(session_factory)
        a = await categories.create_category({"name": "A"})
        b = await categories.create_category({"name": "B", "parent_id": a["id"]})

        result = await CategoryTemplateService(session_factory).bulk_update_categories([
            {"id": a["id"], "updates": {"parent_id": b["id"]}},
            {"id": b["id"], "updates": {"parent_id": "missing"}},
        ])

        assert (result.success, result.failed) == (0, 2)
        assert [e["error"] for e in result.errors] == [CYCLE_ERROR, "Parent category not found"]
        roots = await categories.get_hierarchy()
        assert [r["id"] for r in roots] == [a["id"]]
        assert roots[0]["children"][0]["id"] == b["id"]

    @pytest.mark.asyncio
    async def test_bulk_update_can_move_to_root(self, session_factory):
        categories = CategoryService(session_factory)
        a = await categories.create_category({"name": "A"})
        b = await categories.create_category({"name": "B", "parent_id": a["id"]})

        result = await CategoryTemplateService(session_factory).bulk_update_categories([
            {"id": b["id"], "updates": {"parent_id": None}},
        ])

        assert result.success == 1
        assert (await categories.get_category_by_id(b["id"]))["parent_id"] is None

    @pytest.mark.asyncio
    async def test_bulk_update_reports_bad_types_per_item(self, session_factory):
        categories = CategoryService(session_factory)
        a = await categories.create_category({"name": "A"})
        b = await categories.create_category({"name": "B"})

        result = await CategoryTemplateService(session_factory).bulk_update_categories([
            {"id": a["id"], "updates": {"is_active": "yes"}},
            {"id": b["id"], "updates": {"sort_order": "first"}},
            {"id": b["id"], "updates": {"is_active": False, "sort_order": 3}},
        ])

        assert (result.success, result.failed) == (1, 2)
        assert result.errors[0] == {"category_id": a["id"], "error": "is_active must be true or false"}
        assert (await categories.get_category_by_id(a["id"]))["is_active"] is True
        updated_b = await categories.get_category_by_id(b["id"])
        assert (updated_b["is_active"], updated_b["sort_order"]) == (False, 3)


class TestCsv:
    @pytest.mark.asyncio
    async def test_import_links_parents_within_file(self, session_factory, sample_csv):
        service = CategoryTemplateService(session_factory)

        result = await service.import_from_csv(sample_csv)

        assert result.success == 3
        categories = CategoryService(session_factory)
        tech = await categories.get_category_by_slug("technology")
        python = await categories.get_category_by_slug("python")
        archive = await categories.get_category_by_slug("archive")
        assert python["parent_id"] == tech["id"]
        assert tech["id"] != "c-1"
        assert archive["is_active"] is False

    @pytest.mark.asyncio
    async def test_import_child_before_parent(self, session_factory):
        csv_text = "id,name,parent_id\nk,Kid,p\np,Parent,\n"

        result = await CategoryTemplateService(session_factory).import_from_csv(csv_text)

        assert result.success == 2
        categories = CategoryService(session_factory)
        kid = await categories.get_category_by_slug("kid")
        parent = await categories.get_category_by_slug("parent")
        assert kid["parent_id"] == parent["id"]

    def test_import_deep_parent_chain(self):
        depth = 3000
        lines = ["id,name,parent_id"]
        # Deepest row first so every row precedes its parent
        for i in reversed(range(depth)):
            lines.append(f"n{i},Node {i},{f'n{i - 1}' if i else ''}")

        ordered = CategoryTemplateService._parents_first(
            [(n, row) for n, row in enumerate(csv.DictReader(io.StringIO("\n".join(lines))), start=2)]
        )

        assert len(ordered) == depth
        assert [row["id"] for _, row in ordered[:3]] == ["n0", "n1", "n2"]

    @pytest.mark.asyncio
    async def test_import_parent_loop_reported(self, session_factory):
        csv_text = "id,name,parent_id\na,Loop A,b\nb,Loop B,a\n"

        result = await CategoryTemplateService(session_factory).import_from_csv(csv_text)

        assert (result.success, result.failed) == (0, 2)

    @pytest.mark.asyncio
    async def test_import_reports_bad_rows(self, session_factory):
        csv_text = "name,sort_order\nGood,1\n,2\nBad number,abc\n"

        result = await CategoryTemplateService(session_factory).import_from_csv(csv_text)

        assert result.success == 1
        assert result.failed == 2
        assert {e["category_id"] for e in result.errors} == {"Row 3", "Row 4"}

    @pytest.mark.asyncio
    async def test_import_uses_template_for_blanks(self, session_factory):
        service = CategoryTemplateService(session_factory)
        template = await service.create_template({"name": "T", "icon": "star", "meta_title": "{name} - Blog"})

        await service.import_from_csv("name,icon\nRecipes,\n", template["id"])

        recipes = await CategoryService(session_factory).get_category_by_slug("recipes")
        assert recipes["icon"] == "star"
        assert recipes["meta_title"] == "Recipes - Blog"

    @pytest.mark.asyncio
    async def test_export_then_import_reproduces_rows(self, session_factory, sample_csv):
        """Exporting and re-importing into an empty database keeps every field but ids and timestamps."""
        await CategoryTemplateService(session_factory).import_from_csv(sample_csv)
        exported = await CategoryTemplateService(session_factory).export_to_csv()

        engine, other_factory = await _fresh_factory()
        try:
            target = CategoryTemplateService(other_factory)
            result = await target.import_from_csv(exported)
            reexported = await target.export_to_csv()
        finally:
            await engine.dispose()

        assert result.success == 3
        assert list(_rows(exported)[0].keys()) == CSV_COLUMNS

        stable = [c for c in CSV_COLUMNS if c not in ("id", "parent_id", "created_at", "updated_at")]
        before = [{c: r[c] for c in stable} for r in _rows(exported)]
        after = [{c: r[c] for c in stable} for r in _rows(reexported)]
        assert before == after

        by_id = {r["id"]: r["slug"] for r in _rows(reexported)}
        python = next(r for r in _rows(reexported) if r["slug"] == "python")
        assert by_id[python["parent_id"]] == "technology"

    @pytest.mark.asyncio
    async def test_export_selected_ids(self, session_factory):
        categories = CategoryService(session_factory)
        a = await categories.create_category({"name": "A"})
        await categories.create_category({"name": "B"})

        exported = await CategoryTemplateService(session_factory).export_to_csv([a["id"]])

        assert [r["name"] for r in _rows(exported)] == ["A"]

    @pytest.mark.asyncio
    async def test_stats_include_templates(self, session_factory):
        service = CategoryTemplateService(session_factory)
        await service.create_template({"name": "T"})
        await CategoryService(session_factory).create_category({"name": "A", "is_active": False})

        stats = await service.get_category_stats()

        assert stats["total"] == 1
        assert stats["inactive"] == 1
        assert stats["templates"] == 1
