"""Tests for UserService."""

import pytest
from sqlalchemy import select

from jacms.models.notification import Notification
from jacms.models.user import User
from jacms.services.base import ConflictError, NotFoundError, ValidationError
from jacms.services.notifications import NotificationService
from jacms.services.posts import PostService
from jacms.services.users import UserService
from jacms.utils.security import verify_password


def _user(email, role="USER", **extra):
    return {
        "email": email,
        "password": "correct-horse",
        "first_name": "Test",
        "last_name": "User",
        "role": role,
        **extra,
    }


class TestCreateAndUpdate:
    @pytest.mark.asyncio
    async def test_create_hashes_password(self, session_factory):
        user = await UserService(session_factory).create_user(_user("Ann@Example.com"))

        assert user["email"] == "ann@example.com"
        assert user["username"] == "ann"
        assert user["is_active"] is True
        assert "password_hash" not in user

        async with session_factory() as session:
            stored = await session.get(User, user["id"])
        assert stored.password_hash != "correct-horse"
        assert verify_password("correct-horse", stored.password_hash)

    @pytest.mark.asyncio
    async def test_duplicate_email_conflicts(self, session_factory):
        service = UserService(session_factory)
        await service.create_user(_user("dup@example.com"))

        with pytest.raises(ConflictError, match="Email"):
            await service.create_user(_user("DUP@example.com", username="other"))

    @pytest.mark.asyncio
    async def test_unknown_role_rejected(self, session_factory):
        with pytest.raises(ValidationError):
            await UserService(session_factory).create_user(_user("r@example.com", role="ROOT"))

    @pytest.mark.asyncio
    async def test_update_fields_and_password(self, session_factory):
        service = UserService(session_factory)
        user = await service.create_user(_user("bob@example.com"))

        updated = await service.update_user(user["id"], {"first_name": "Robert", "password": "new-secret-1"})

        assert updated["first_name"] == "Robert"
        async with session_factory() as session:
            stored = await session.get(User, user["id"])
        assert verify_password("new-secret-1", stored.password_hash)

    @pytest.mark.asyncio
    async def test_update_to_taken_username_conflicts(self, session_factory):
        service = UserService(session_factory)
        await service.create_user(_user("a@example.com"))
        b = await service.create_user(_user("b@example.com"))

        with pytest.raises(ConflictError, match="Username"):
            await service.update_user(b["id"], {"username": "a"})

    @pytest.mark.asyncio
    async def test_update_missing_user(self, session_factory):
        with pytest.raises(NotFoundError):
            await UserService(session_factory).update_user("missing", {"first_name": "x"})

    @pytest.mark.asyncio
    async def test_update_role(self, session_factory):
        service = UserService(session_factory)
        user = await service.create_user(_user("e@example.com"))

        assert (await service.update_user_role(user["id"], "EDITOR"))["role"] == "EDITOR"
        with pytest.raises(ValidationError):
            await service.update_user_role(user["id"], "OWNER")


class TestQueries:
    @pytest.mark.asyncio
    async def test_filters_and_pagination(self, session_factory):
        service = UserService(session_factory)
        await service.create_user(_user("ed1@example.com", role="EDITOR"))
        await service.create_user(_user("ed2@example.com", role="EDITOR", is_active=False))
        await service.create_user(_user("plain@example.com"))

        editors = await service.get_users(role="EDITOR")
        active_editors = await service.get_users(role="EDITOR", is_active=True)
        first_page = await service.get_users(limit=2)

        assert editors["pagination"]["total"] == 2
        assert [u["email"] for u in active_editors["users"]] == ["ed1@example.com"]
        assert len(first_page["users"]) == 2
        assert first_page["pagination"]["total_pages"] == 2
        assert (await service.get_users_by_role("EDITOR"))["pagination"]["total"] == 2

    @pytest.mark.asyncio
    async def test_search_matches_names_and_email(self, session_factory):
        service = UserService(session_factory)
        await service.create_user(_user("zoe@example.com", first_name="Zoe"))
        await service.create_user(_user("max@example.com", last_name="Zander"))
        await service.create_user(_user("amy@example.com"))

        found = await service.search_users("z")

        assert sorted(u["email"] for u in found) == ["max@example.com", "zoe@example.com"]

    @pytest.mark.asyncio
    async def test_stats(self, session_factory):
        service = UserService(session_factory)
        await service.create_user(_user("s1@example.com", role="ADMIN"))
        await service.create_user(_user("s2@example.com", is_active=False))

        stats = await service.get_user_stats()

        assert stats["total"] == 2
        assert stats["active"] == 1
        assert stats["inactive"] == 1
        assert stats["by_role"] == {"USER": 1, "EDITOR": 0, "ADMIN": 1, "SUPER_ADMIN": 0}
        assert stats["recent_signups"] == 2

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, session_factory):
        assert await UserService(session_factory).get_user_by_id("nope") is None


class TestAccountChanges:
    @pytest.mark.asyncio
    async def test_change_password_requires_current(self, session_factory):
        service = UserService(session_factory)
        user = await service.create_user(_user("pw@example.com"))

        with pytest.raises(ValidationError, match="Current password"):
            await service.change_password(user["id"], "wrong", "brand-new-pass")
        assert await service.change_password(user["id"], "correct-horse", "brand-new-pass") is True

        async with session_factory() as session:
            stored = await session.get(User, user["id"])
        assert verify_password("brand-new-pass", stored.password_hash)

    @pytest.mark.asyncio
    async def test_toggle_status(self, session_factory):
        service = UserService(session_factory)
        admin = await service.create_user(_user("boss@example.com", role="ADMIN"))
        user = await service.create_user(_user("t@example.com"))

        assert (await service.toggle_user_status(user["id"], admin["id"]))["is_active"] is False
        assert (await service.toggle_user_status(user["id"], admin["id"]))["is_active"] is True

    @pytest.mark.asyncio
    async def test_cannot_deactivate_or_delete_self(self, session_factory):
        service = UserService(session_factory)
        admin = await service.create_user(_user("self@example.com", role="ADMIN"))

        with pytest.raises(ValidationError):
            await service.toggle_user_status(admin["id"], admin["id"])
        with pytest.raises(ValidationError):
            await service.delete_user(admin["id"], admin["id"])

    @pytest.mark.asyncio
    async def test_delete_keeps_posts_and_drops_personal_rows(self, session_factory):
        service = UserService(session_factory)
        user = await service.create_user(_user("gone@example.com"))
        post = await PostService(session_factory).create_post({"title": "Orphan"}, author_id=user["id"])
        notifications = NotificationService(session_factory)
        await notifications.create_notification({"user_id": user["id"], "title": "Hi", "message": "m"})
        await notifications.create_notification({"title": "Everyone", "message": "m"})

        await service.delete_user(user["id"], acting_user_id="someone-else")

        assert await service.get_user_by_id(user["id"]) is None
        assert (await PostService(session_factory).get_post_by_id(post["id"]))["author_id"] is None
        async with session_factory() as session:
            remaining = (await session.execute(select(Notification.title))).scalars().all()
        assert remaining == ["Everyone"]

    @pytest.mark.asyncio
    async def test_delete_missing_user(self, session_factory):
        with pytest.raises(NotFoundError):
            await UserService(session_factory).delete_user("missing")
