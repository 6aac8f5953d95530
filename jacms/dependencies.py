"""FastAPI dependency injection providers."""

from typing import NamedTuple, Optional

from fastapi import Depends, HTTPException, Query, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import JaCmsConfig, get_config
from .database import get_session, get_session_factory
from .utils.security import decode_access_token

security_scheme = HTTPBearer(auto_error=False)

_config_instance: JaCmsConfig | None = None

# Service singletons, bound to the shared session factory on first use
_post_service = None
_category_service = None
_category_template_service = None
_tags_service = None
_menu_service = None
_dashboard_service = None
_dashboard_settings_service = None
_notification_service = None
_user_service = None
_category_rules_service = None


def get_app_config() -> JaCmsConfig:
    """Get the application config singleton."""
    global _config_instance
    if _config_instance is None:
        _config_instance = get_config()
    return _config_instance


async def get_db(config: JaCmsConfig = Depends(get_app_config)):
    """Get an async database session."""
    async for session in get_session(config):
        yield session


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    config: JaCmsConfig = Depends(get_app_config),
) -> dict:
    """Validate the bearer token and return its claims (``sub`` is the user id)."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_access_token(credentials.credentials, config)
    if payload is None or not payload["sub"]:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return payload


class Pagination(NamedTuple):
    page: int
    limit: int


def get_pagination(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    config: JaCmsConfig = Depends(get_app_config),
) -> Pagination:
    """Page and limit query params; limit defaults to and is capped by config."""
    return Pagination(page, min(limit or config.default_page_size, config.max_page_size))


def _session_factory():
    return get_session_factory(get_app_config())


def get_post_service():
    """Get the Post service singleton."""
    global _post_service
    if _post_service is None:
        from .services.posts import PostService
        _post_service = PostService(_session_factory())
    return _post_service


def get_category_service():
    """Get the Category service singleton."""
    global _category_service
    if _category_service is None:
        from .services.categories import CategoryService
        _category_service = CategoryService(_session_factory())
    return _category_service


def get_category_template_service():
    """Get the Category Template service singleton."""
    global _category_template_service
    if _category_template_service is None:
        from .services.category_templates import CategoryTemplateService
        _category_template_service = CategoryTemplateService(_session_factory())
    return _category_template_service


def get_tags_service():
    """Get the Tags service singleton."""
    global _tags_service
    if _tags_service is None:
        from .services.tags import TagsService
        _tags_service = TagsService(_session_factory())
    return _tags_service


def get_menu_service():
    """Get the Menu service singleton."""
    global _menu_service
    if _menu_service is None:
        from .services.menus import MenuService
        _menu_service = MenuService(_session_factory())
    return _menu_service


def get_dashboard_service():
    """Get the Dashboard service singleton."""
    global _dashboard_service
    if _dashboard_service is None:
        from .services.dashboard import DashboardService
        _dashboard_service = DashboardService(_session_factory())
    return _dashboard_service


def get_dashboard_settings_service():
    """Get the Dashboard Settings service singleton."""
    global _dashboard_settings_service
    if _dashboard_settings_service is None:
        from .services.dashboard_settings import DashboardSettingsService
        _dashboard_settings_service = DashboardSettingsService(_session_factory())
    return _dashboard_settings_service


def get_notification_service():
    """Get the Notification service singleton."""
    global _notification_service
    if _notification_service is None:
        from .services.notifications import NotificationService
        _notification_service = NotificationService(_session_factory())
    return _notification_service


def get_user_service():
    """Get the User service singleton."""
    global _user_service
    if _user_service is None:
        from .services.users import UserService
        _user_service = UserService(_session_factory())
    return _user_service


def get_category_rules_service():
    """Get the Category Rules service singleton."""
    global _category_rules_service
    if _category_rules_service is None:
        from .services.category_rules import CategoryRulesService
        _category_rules_service = CategoryRulesService(_session_factory())
    return _category_rules_service
