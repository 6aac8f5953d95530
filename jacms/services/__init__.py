"""Domain services: one class per content area, each bound to a session factory."""

from .base import BulkOperationResult, ConflictError, NotFoundError, ServiceError, ValidationError
from .categories import CategoryService
from .category_templates import CategoryTemplateService
from .dashboard import DashboardService
from .dashboard_settings import DashboardSettingsService
from .menus import MenuService
from .notifications import NotificationService
from .posts import PostService
from .tags import TagsService

__all__ = [
    "BulkOperationResult",
    "CategoryService",
    "CategoryTemplateService",
    "ConflictError",
    "DashboardService",
    "DashboardSettingsService",
    "MenuService",
    "NotFoundError",
    "NotificationService",
    "PostService",
    "ServiceError",
    "TagsService",
    "ValidationError",
]
