"""Tests for TagsService."""

import pytest

from jacms.services.base import ConflictError, NotFoundError
from jacms.services.posts import PostService
from jacms.services.tags import DEFAULT_TAG_COLOR, TagsService


class TestTags:
    @pytest.mark.asyncio
    async def test_create_defaults(self, session_factory):
        tag = await TagsService(session_factory).create_tag({"name": "Machine Learning"})

        assert tag["slug"] == "machine-learning"
        assert tag["color"] == DEFAULT_TAG_COLOR
        assert tag["post_count"] == 0

    @pytest.mark.asyncio
    async def test_non_ascii_name_never_stores_empty_slug(self, session_factory):
        tag = await TagsService(session_factory).create_tag({"name": "日本語"})

        assert tag["slug"] == "tag"

    @pytest.mark.asyncio
    async def test_duplicate_slug_conflicts(self, session_factory):
        service = TagsService(session_factory)
        await service.create_tag({"name": "Python"})

        with pytest.raises(ConflictError):
            await service.create_tag({"name": "python"})

    @pytest.mark.asyncio
    async def test_search_and_limit(self, session_factory):
        service = TagsService(session_factory)
        for name in ("Alpha", "Beta", "Alphabet"):
            await service.create_tag({"name": name})

        assert [t["name"] for t in await service.get_all_tags(search="alpha")] == ["Alpha", "Alphabet"]
        assert len(await service.get_all_tags(limit=1)) == 1

    @pytest.mark.asyncio
    async def test_post_counts_and_detail(self, session_factory):
        service = TagsService(session_factory)
        used = await service.create_tag({"name": "Used"})
        await service.create_tag({"name": "Unused"})
        await PostService(session_factory).create_post({"title": "Tagged", "tag_ids": [used["id"]]}, author_id=None)

        detail = await service.get_tag_by_id(used["id"])
        stats = await service.get_tag_stats()

        assert detail["post_count"] == 1
        assert detail["posts"][0]["title"] == "Tagged"
        assert stats["total_tags"] == 2
        assert stats["tags_with_posts"] == 1
        assert stats["tags_without_posts"] == 1
        assert stats["top_tags"][0]["name"] == "Used"

    @pytest.mark.asyncio
    async def test_delete_detaches_posts(self, session_factory):
        service = TagsService(session_factory)
        posts = PostService(session_factory)
        tag = await service.create_tag({"name": "Temp"})
        post = await posts.create_post({"title": "Tagged", "tag_ids": [tag["id"]]}, author_id=None)

        await service.delete_tag(tag["id"])

        assert (await posts.get_post_by_id(post["id"]))["tags"] == []
        assert await service.get_tag_by_id(tag["id"]) is None

    @pytest.mark.asyncio
    async def test_update_missing_raises(self, session_factory):
        with pytest.raises(NotFoundError):
            await TagsService(session_factory).update_tag("missing", {"name": "x"})
