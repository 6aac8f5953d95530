"""Tests for CategoryService: hierarchy, slugs and reordering."""

import pytest

from jacms.services.base import NotFoundError, ValidationError
from jacms.services.categories import CategoryService, would_create_cycle
from jacms.services.posts import PostService


async def _tree(service):
    """Create root -> child -> grandchild plus a second root."""
    root = await service.create_category({"name": "Root", "sort_order": 1})
    child = await service.create_category({"name": "Child", "parent_id": root["id"]})
    grandchild = await service.create_category({"name": "Grandchild", "parent_id": child["id"]})
    other = await service.create_category({"name": "Other", "sort_order": 2})
    return root, child, grandchild, other


class TestWouldCreateCycle:
    def test_detects_self_parent(self):
        assert would_create_cycle({"a": None}, "a", "a")

    def test_detects_descendant_parent(self):
        parents = {"a": None, "b": "a", "c": "b"}
        assert would_create_cycle(parents, "a", "c")

    def test_allows_sibling_move(self):
        parents = {"a": None, "b": "a", "c": None}
        assert not would_create_cycle(parents, "b", "c")

    def test_terminates_on_existing_loop(self):
        parents = {"x": "y", "y": "x", "a": None}
        assert not would_create_cycle(parents, "a", "x")


class TestCrud:
    @pytest.mark.asyncio
    async def test_create_generates_unique_slugs(self, session_factory):
        service = CategoryService(session_factory)

        first = await service.create_category({"name": "News & Events"})
        second = await service.create_category({"name": "News & Events"})

        assert first["slug"] == "news-events"
        assert second["slug"] == "news-events-1"

    @pytest.mark.asyncio
    async def test_non_ascii_name_gets_reachable_slug(self, session_factory):
        service = CategoryService(session_factory)

        first = await service.create_category({"name": "日本語"})
        second = await service.create_category({"name": "中文"})

        assert first["slug"] == "category"
        assert second["slug"] == "category-1"
        assert (await service.get_category_by_slug("category"))["id"] == first["id"]

    @pytest.mark.asyncio
    async def test_create_with_missing_parent_rejected(self, session_factory):
        service = CategoryService(session_factory)
        with pytest.raises(ValidationError):
            await service.create_category({"name": "Orphan", "parent_id": "nope"})

    @pytest.mark.asyncio
    async def test_list_paginates(self, session_factory):
        service = CategoryService(session_factory)
        for name in ("A", "B", "C"):
            await service.create_category({"name": name})

        page = await service.get_categories(page=2, limit=2)

        assert [c["name"] for c in page["categories"]] == ["C"]
        assert page["pagination"] == {"page": 2, "limit": 2, "total": 3, "total_pages": 2}

    @pytest.mark.asyncio
    async def test_update_missing_raises(self, session_factory):
        service = CategoryService(session_factory)
        with pytest.raises(NotFoundError):
            await service.update_category("missing", {"name": "x"})

    @pytest.mark.asyncio
    async def test_update_into_own_subtree_rejected(self, session_factory):
        service = CategoryService(session_factory)
        root, _, grandchild, _ = await _tree(service)

        with pytest.raises(ValidationError):
            await service.update_category(root["id"], {"parent_id": grandchild["id"]})

    @pytest.mark.asyncio
    async def test_delete_with_children_rejected(self, session_factory):
        service = CategoryService(session_factory)
        root, *_ = await _tree(service)

        with pytest.raises(ValidationError, match="subcategories"):
            await service.delete_category(root["id"])

    @pytest.mark.asyncio
    async def test_delete_with_posts_rejected(self, session_factory):
        service = CategoryService(session_factory)
        category = await service.create_category({"name": "Busy"})
        await PostService(session_factory).create_post(
            {"title": "Hello", "category_id": category["id"]}, author_id=None
        )

        with pytest.raises(ValidationError, match="1 posts"):
            await service.delete_category(category["id"])

    @pytest.mark.asyncio
    async def test_get_by_slug_includes_counts(self, session_factory):
        service = CategoryService(session_factory)
        root, *_ = await _tree(service)

        found = await service.get_category_by_slug("root")

        assert found["id"] == root["id"]
        assert found["children_count"] == 1
        assert found["post_count"] == 0


class TestHierarchy:
    @pytest.mark.asyncio
    async def test_hierarchy_nests_children(self, session_factory):
        service = CategoryService(session_factory)
        await _tree(service)

        tree = await service.get_hierarchy()

        assert [n["name"] for n in tree] == ["Root", "Other"]
        assert tree[0]["children"][0]["name"] == "Child"
        assert tree[0]["children"][0]["children"][0]["name"] == "Grandchild"

    @pytest.mark.asyncio
    async def test_root_categories_list_direct_children(self, session_factory):
        service = CategoryService(session_factory)
        await _tree(service)

        roots = await service.get_root_categories()

        assert [r["name"] for r in roots] == ["Root", "Other"]
        assert [c["name"] for c in roots[0]["children"]] == ["Child"]

    @pytest.mark.asyncio
    async def test_generate_slug_skips_taken(self, session_factory):
        service = CategoryService(session_factory)
        existing = await service.create_category({"name": "Guides"})

        assert await service.generate_slug("Guides") == "guides-1"
        assert await service.generate_slug("Guides", exclude_id=existing["id"]) == "guides"


class TestReorder:
    @pytest.mark.asyncio
    async def test_reorder_moves_subtree(self, session_factory):
        service = CategoryService(session_factory)
        root, child, _, other = await _tree(service)

        tree = await service.reorder_categories([
            {"id": child["id"], "parent_id": other["id"], "sort_order": 5},
        ])

        by_name = {n["name"]: n for n in tree}
        assert by_name["Root"]["children"] == []
        assert by_name["Other"]["children"][0]["name"] == "Child"
        assert by_name["Other"]["children"][0]["children"][0]["name"] == "Grandchild"

    @pytest.mark.asyncio
    async def test_cyclic_batch_rejected_and_nothing_applied(self, session_factory):
        service = CategoryService(session_factory)
        root, child, grandchild, other = await _tree(service)

        with pytest.raises(ValidationError):
            await service.reorder_categories([
                {"id": other["id"], "parent_id": None, "sort_order": 9},
                {"id": root["id"], "parent_id": grandchild["id"]},
            ])

        unchanged = await service.get_category_by_id(other["id"])
        assert unchanged["sort_order"] == 2
        assert (await service.get_category_by_id(root["id"]))["parent_id"] is None

    @pytest.mark.asyncio
    async def test_swap_checked_against_final_state(self, session_factory):
        """Moving child to root and root under child in one batch is accepted."""
        service = CategoryService(session_factory)
        root, child, _, _ = await _tree(service)

        tree = await service.reorder_categories([
            {"id": child["id"], "parent_id": None},
            {"id": root["id"], "parent_id": child["id"]},
        ])

        child_node = next(n for n in tree if n["id"] == child["id"])
        assert root["id"] in {c["id"] for c in child_node["children"]}

    @pytest.mark.asyncio
    async def test_unknown_category_rejected(self, session_factory):
        service = CategoryService(session_factory)
        with pytest.raises(NotFoundError):
            await service.reorder_categories([{"id": "missing", "parent_id": None}])
