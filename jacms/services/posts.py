"""Post service: post CRUD, tag links, and status changes."""

import math
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, insert, or_, select

from ..models.base import utcnow
from ..models.category import Category
from ..models.post import POST_STATUSES, Post, post_tags
from ..models.tag import Tag
from ..utils.logging import get_logger
from ..utils.text import slugify
from .base import BaseService, NotFoundError, ValidationError, db_errors, iso

logger = get_logger("services.posts")

UNCATEGORIZED_SLUG = "uncategorized"
POST_FIELDS = ("title", "slug", "content", "excerpt", "status", "category_id", "published_at", "is_hidden")
SORTABLE_FIELDS = {"title", "status", "created_at", "updated_at", "published_at"}


def _check_status(status: Optional[str]) -> None:
    if status is not None and status not in POST_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(POST_STATUSES)}")


class PostService(BaseService):
    """Posts. ``status`` is a plain enum; any status may follow any other."""

    async def get_posts(
        self,
        status: Optional[str] = None,
        query: Optional[str] = None,
        category_ids: Optional[list[str]] = None,
        tag_ids: Optional[list[str]] = None,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> dict:
        _check_status(status)
        page = max(page, 1)
        column = getattr(Post, sort_by if sort_by in SORTABLE_FIELDS else "created_at")
        order = column.asc() if sort_order == "asc" else column.desc()

        stmt = select(Post)
        if status:
            stmt = stmt.where(Post.status == status)
        if query:
            pattern = f"%{query}%"
            stmt = stmt.where(or_(
                Post.title.ilike(pattern), Post.content.ilike(pattern), Post.excerpt.ilike(pattern),
            ))
        if category_ids:
            stmt = stmt.where(Post.category_id.in_(category_ids))
        if tag_ids:
            stmt = stmt.where(Post.id.in_(
                select(post_tags.c.post_id).where(post_tags.c.tag_id.in_(tag_ids))
            ))

        with db_errors("get posts"):
            async with self._db_session_factory() as session:
                total = (await session.execute(
                    select(func.count()).select_from(stmt.subquery())
                )).scalar() or 0
                posts = (await session.execute(
                    stmt.order_by(order).offset((page - 1) * limit).limit(limit)
                )).scalars().all()
                tags = await self._tags_for(session, [p.id for p in posts])

        return {
            "posts": [self._to_dict(p, tags.get(p.id, [])) for p in posts],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": math.ceil(total / limit) if limit else 0,
            },
        }

    async def get_post_by_id(self, post_id: str) -> Optional[dict]:
        with db_errors("get post", post_id=post_id):
            async with self._db_session_factory() as session:
                post = await session.get(Post, post_id)
                if post is None:
                    return None
                tags = await self._tags_for(session, [post.id])
                return self._to_dict(post, tags.get(post.id, []))

    async def create_post(self, data: dict, author_id: Optional[str]) -> dict:
        """Create a post; without a category it lands in ``uncategorized`` when that exists."""
        _check_status(data.get("status"))
        with db_errors("create post"):
            async with self._db_session_factory() as session:
                category_id = data.get("category_id")
                if not category_id:
                    category_id = (await session.execute(
                        select(Category.id).where(Category.slug == UNCATEGORIZED_SLUG)
                    )).scalar_one_or_none()

                post = Post(
                    title=data["title"],
                    slug=data.get("slug") or await self._unique_slug(session, data["title"]),
                    content=data.get("content") or "",
                    excerpt=data.get("excerpt"),
                    status=data.get("status") or "DRAFT",
                    author_id=author_id,
                    category_id=category_id,
                    published_at=data.get("published_at"),
                    is_hidden=bool(data.get("is_hidden", False)),
                )
                if post.status == "PUBLISHED" and post.published_at is None:
                    post.published_at = utcnow()
                session.add(post)
                await session.flush()
                await self._set_tags(session, post.id, data.get("tag_ids") or [])
                await session.commit()
                tags = await self._tags_for(session, [post.id])
                result = self._to_dict(post, tags.get(post.id, []))

        logger.info("post_created", id=result["id"], status=result["status"], author_id=author_id)
        return result

    async def update_post(self, post_id: str, data: dict) -> dict:
        _check_status(data.get("status"))
        with db_errors("update post", post_id=post_id):
            async with self._db_session_factory() as session:
                post = await session.get(Post, post_id)
                if post is None:
                    raise NotFoundError("Post not found")
                for key in POST_FIELDS:
                    if key in data and (data[key] is not None or key in ("category_id", "published_at")):
                        setattr(post, key, data[key])
                if post.status == "PUBLISHED" and post.published_at is None:
                    post.published_at = utcnow()
                if data.get("tag_ids") is not None:
                    await self._set_tags(session, post.id, data["tag_ids"])
                await session.commit()
                tags = await self._tags_for(session, [post.id])
                return self._to_dict(post, tags.get(post.id, []))

    async def delete_post(self, post_id: str) -> bool:
        with db_errors("delete post", post_id=post_id):
            async with self._db_session_factory() as session:
                post = await session.get(Post, post_id)
                if post is None:
                    return False
                await session.execute(delete(post_tags).where(post_tags.c.post_id == post_id))
                await session.delete(post)
                await session.commit()
        logger.info("post_deleted", id=post_id)
        return True

    async def publish_post(self, post_id: str) -> dict:
        return await self.update_post(post_id, {"status": "PUBLISHED", "published_at": utcnow()})

    async def unpublish_post(self, post_id: str) -> dict:
        return await self.update_post(post_id, {"status": "DRAFT", "published_at": None})

    async def archive_post(self, post_id: str) -> dict:
        return await self.update_post(post_id, {"status": "ARCHIVED"})

    async def restore_post(self, post_id: str) -> dict:
        return await self.update_post(post_id, {"status": "DRAFT"})

    async def schedule_post(self, post_id: str, scheduled_at: datetime) -> dict:
        return await self.update_post(post_id, {"status": "SCHEDULED", "published_at": scheduled_at})

    async def unschedule_post(self, post_id: str) -> dict:
        return await self.update_post(post_id, {"status": "DRAFT"})

    async def get_recent_posts(self, limit: int = 10) -> list[dict]:
        with db_errors("get recent posts"):
            async with self._db_session_factory() as session:
                posts = (await session.execute(
                    select(Post).order_by(Post.created_at.desc()).limit(limit)
                )).scalars().all()
                tags = await self._tags_for(session, [p.id for p in posts])
                return [self._to_dict(p, tags.get(p.id, [])) for p in posts]

    async def get_post_stats(self) -> dict:
        with db_errors("get post statistics"):
            async with self._db_session_factory() as session:
                by_status = dict((await session.execute(
                    select(Post.status, func.count(Post.id)).group_by(Post.status)
                )).all())
                by_category = dict((await session.execute(
                    select(Post.category_id, func.count(Post.id))
                    .where(Post.category_id.is_not(None))
                    .group_by(Post.category_id)
                )).all())

        recent = await self.get_recent_posts(5)
        return {
            "total": sum(by_status.values()),
            "published": by_status.get("PUBLISHED", 0),
            "draft": by_status.get("DRAFT", 0),
            "scheduled": by_status.get("SCHEDULED", 0),
            "archived": by_status.get("ARCHIVED", 0),
            "by_category": by_category,
            "recent_posts": recent,
        }

    @staticmethod
    async def _set_tags(session, post_id: str, tag_ids: list[str]) -> None:
        tag_ids = list(dict.fromkeys(tag_ids))
        if tag_ids:
            known = set((await session.execute(select(Tag.id).where(Tag.id.in_(tag_ids)))).scalars().all())
            missing = [t for t in tag_ids if t not in known]
            if missing:
                raise ValidationError(f"Unknown tag ids: {', '.join(missing)}")
        await session.execute(delete(post_tags).where(post_tags.c.post_id == post_id))
        if tag_ids:
            await session.execute(
                insert(post_tags),
                [{"post_id": post_id, "tag_id": tag_id} for tag_id in tag_ids],
            )

    @staticmethod
    async def _tags_for(session, post_ids: list[str]) -> dict[str, list[dict]]:
        if not post_ids:
            return {}
        rows = (await session.execute(
            select(post_tags.c.post_id, Tag)
            .join(Tag, Tag.id == post_tags.c.tag_id)
            .where(post_tags.c.post_id.in_(post_ids))
            .order_by(Tag.name.asc())
        )).all()
        tags: dict[str, list[dict]] = {}
        for post_id, tag in rows:
            tags.setdefault(post_id, []).append({"id": tag.id, "name": tag.name, "slug": tag.slug})
        return tags

    @staticmethod
    async def _unique_slug(session, title: str) -> str:
        base = slugify(title, "post")
        candidate = base
        counter = 1
        while (await session.execute(select(Post.id).where(Post.slug == candidate))).first() is not None:
            candidate = f"{base}-{counter}"
            counter += 1
        return candidate

    @staticmethod
    def _to_dict(post: Post, tags: list[dict]) -> dict:
        return {
            "id": post.id,
            "title": post.title,
            "slug": post.slug,
            "content": post.content,
            "excerpt": post.excerpt,
            "status": post.status,
            "author_id": post.author_id,
            "category_id": post.category_id,
            "published_at": iso(post.published_at),
            "is_hidden": post.is_hidden,
            "tags": tags,
            "created_at": iso(post.created_at),
            "updated_at": iso(post.updated_at),
        }
