"""Master API router: includes all sub-routers."""

from fastapi import APIRouter

from .routes.auth import router as auth_router
from .routes.categories import router as categories_router
from .routes.category_rules import router as category_rules_router
from .routes.category_templates import router as category_templates_router
from .routes.dashboard import router as dashboard_router
from .routes.dashboard_settings import router as dashboard_settings_router
from .routes.menus import router as menus_router
from .routes.notifications import router as notifications_router
from .routes.posts import router as posts_router
from .routes.tags import router as tags_router
from .routes.users import router as users_router

api_router = APIRouter(prefix="/api")

api_router.include_router(auth_router)
api_router.include_router(posts_router)
api_router.include_router(categories_router)
api_router.include_router(category_templates_router)
api_router.include_router(category_rules_router)
api_router.include_router(tags_router)
api_router.include_router(menus_router)
api_router.include_router(dashboard_router)
api_router.include_router(dashboard_settings_router)
api_router.include_router(notifications_router)
api_router.include_router(users_router)
