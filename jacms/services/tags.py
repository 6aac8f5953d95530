"""Tags service."""

from typing import Optional

from sqlalchemy import delete, func, or_, select

from ..models.post import Post, post_tags
from ..models.tag import Tag
from ..utils.logging import get_logger
from ..utils.text import slugify
from .base import BaseService, NotFoundError, db_errors, iso

logger = get_logger("services.tags")

DEFAULT_TAG_COLOR = "#6B7280"
TAG_FIELDS = ("name", "slug", "color", "description")


class TagsService(BaseService):

    async def get_all_tags(self, search: Optional[str] = None, limit: int = 50) -> list[dict]:
        post_count = func.count(post_tags.c.post_id).label("post_count")
        query = (
            select(Tag, post_count)
            .outerjoin(post_tags, post_tags.c.tag_id == Tag.id)
            .group_by(Tag.id)
            .order_by(Tag.name.asc())
            .limit(limit)
        )
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(Tag.name.ilike(pattern), Tag.slug.ilike(pattern)))

        with db_errors("get tags"):
            async with self._db_session_factory() as session:
                rows = (await session.execute(query)).all()
                return [self._to_dict(tag, count) for tag, count in rows]

    async def get_tag_by_id(self, tag_id: str) -> Optional[dict]:
        """Tag with its post count and a summary of the tagged posts."""
        with db_errors("get tag", tag_id=tag_id):
            async with self._db_session_factory() as session:
                tag = await session.get(Tag, tag_id)
                if tag is None:
                    return None
                posts = (await session.execute(
                    select(Post)
                    .join(post_tags, post_tags.c.post_id == Post.id)
                    .where(post_tags.c.tag_id == tag_id)
                    .order_by(Post.created_at.desc())
                )).scalars().all()

                result = self._to_dict(tag, len(posts))
                result["posts"] = [
                    {
                        "id": p.id,
                        "title": p.title,
                        "slug": p.slug,
                        "status": p.status,
                        "created_at": iso(p.created_at),
                    }
                    for p in posts
                ]
                return result

    async def create_tag(self, data: dict) -> dict:
        with db_errors("create tag"):
            async with self._db_session_factory() as session:
                tag = Tag(
                    name=data["name"],
                    slug=data.get("slug") or slugify(data["name"], "tag"),
                    color=data.get("color") or DEFAULT_TAG_COLOR,
                    description=data.get("description"),
                )
                session.add(tag)
                await session.commit()
                result = self._to_dict(tag, 0)

        logger.info("tag_created", id=result["id"], slug=result["slug"])
        return result

    async def update_tag(self, tag_id: str, data: dict) -> dict:
        with db_errors("update tag", tag_id=tag_id):
            async with self._db_session_factory() as session:
                tag = await session.get(Tag, tag_id)
                if tag is None:
                    raise NotFoundError("Tag not found")
                for key in TAG_FIELDS:
                    if key in data and data[key] is not None:
                        setattr(tag, key, data[key])
                await session.commit()
                count = await self._post_count(session, tag_id)
                return self._to_dict(tag, count)

    async def delete_tag(self, tag_id: str) -> dict:
        with db_errors("delete tag", tag_id=tag_id):
            async with self._db_session_factory() as session:
                tag = await session.get(Tag, tag_id)
                if tag is None:
                    raise NotFoundError("Tag not found")
                result = self._to_dict(tag, await self._post_count(session, tag_id))
                await session.execute(delete(post_tags).where(post_tags.c.tag_id == tag_id))
                await session.delete(tag)
                await session.commit()

        logger.info("tag_deleted", id=tag_id)
        return result

    async def get_tag_stats(self) -> dict:
        post_count = func.count(post_tags.c.post_id).label("post_count")
        with db_errors("get tag statistics"):
            async with self._db_session_factory() as session:
                total = (await session.execute(select(func.count(Tag.id)))).scalar() or 0
                with_posts = (await session.execute(
                    select(func.count(func.distinct(post_tags.c.tag_id)))
                )).scalar() or 0
                top = (await session.execute(
                    select(Tag, post_count)
                    .outerjoin(post_tags, post_tags.c.tag_id == Tag.id)
                    .group_by(Tag.id)
                    .order_by(post_count.desc(), Tag.name.asc())
                    .limit(10)
                )).all()

        return {
            "total_tags": total,
            "tags_with_posts": with_posts,
            "tags_without_posts": total - with_posts,
            "top_tags": [
                {
                    "id": tag.id,
                    "name": tag.name,
                    "slug": tag.slug,
                    "color": tag.color,
                    "post_count": count,
                }
                for tag, count in top
            ],
        }

    @staticmethod
    async def _post_count(session, tag_id: str) -> int:
        return (await session.execute(
            select(func.count()).select_from(post_tags).where(post_tags.c.tag_id == tag_id)
        )).scalar() or 0

    @staticmethod
    def _to_dict(tag: Tag, post_count: int) -> dict:
        return {
            "id": tag.id,
            "name": tag.name,
            "slug": tag.slug,
            "color": tag.color,
            "description": tag.description,
            "post_count": post_count,
            "created_at": iso(tag.created_at),
            "updated_at": iso(tag.updated_at),
        }
