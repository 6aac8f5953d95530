"""SQLAlchemy models package."""

from .base import Base
from .user import User
from .dashboard_settings import DashboardSettings
from .menu import Menu, MenuItem
from .tag import Tag
from .category import Category, CategoryTemplate
from .category_rule import CategoryRule, CategoryRuleExecution
from .post import Post, post_tags
from .notification import Notification
from .monitoring import SecurityEvent, SystemHealthMetric

__all__ = [
    "Base",
    "User",
    "DashboardSettings",
    "Menu",
    "MenuItem",
    "Tag",
    "Category",
    "CategoryTemplate",
    "CategoryRule",
    "CategoryRuleExecution",
    "Post",
    "post_tags",
    "Notification",
    "SecurityEvent",
    "SystemHealthMetric",
]
