"""JA-CMS: content management admin API.

FastAPI entry point with lifespan management, seeding, and CORS.
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import or_, select

from .api.router import api_router
from .config import get_config
from .database import close_engine, create_tables, get_session_factory
from .dependencies import get_category_rules_service
from .middleware.error_handler import register_error_handlers
from .middleware.request_id import RequestIDMiddleware
from .models.category import Category
from .models.user import User
from .services.category_rules import RuleScheduler
from .services.posts import UNCATEGORIZED_SLUG
from .utils.logging import get_logger, setup_logging
from .utils.security import hash_password

VERSION = "1.0.0"

config = get_config()
setup_logging(
    debug=config.debug,
    log_dir=config.log_dir,
    log_max_bytes=config.log_max_bytes,
    log_backup_count=config.log_backup_count,
)
logger = get_logger("main")


async def _seed_admin_user(factory) -> None:
    """Create the configured admin account if no user holds its email or username."""
    async with factory() as session:
        existing = (await session.execute(
            select(User.id).where(or_(User.email == config.admin_email, User.username == config.admin_username))
        )).first()
        if existing is not None:
            return
        session.add(User(
            email=config.admin_email,
            username=config.admin_username,
            password_hash=hash_password(config.admin_password),
            role="SUPER_ADMIN",
        ))
        await session.commit()
    logger.info("admin_user_seeded", username=config.admin_username)


async def _seed_uncategorized(factory) -> None:
    async with factory() as session:
        existing = (await session.execute(
            select(Category.id).where(Category.slug == UNCATEGORIZED_SLUG)
        )).first()
        if existing is not None:
            return
        session.add(Category(
            name="Uncategorized",
            slug=UNCATEGORIZED_SLUG,
            description="Posts without a category",
            sort_order=0,
        ))
        await session.commit()
    logger.info("default_category_seeded", slug=UNCATEGORIZED_SLUG)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    logger.info("jacms_starting", host=config.host, port=config.port)

    if config.secret_key == "CHANGE_ME_IN_PRODUCTION":
        if not config.debug:
            raise RuntimeError(
                "INSECURE_SECRET_KEY: default secret_key detected in production mode. "
                "Set a strong, unique SECRET_KEY in .env before deploying."
            )
        logger.warning("insecure_secret_key", detail="default secret_key in use; set SECRET_KEY in .env")

    await create_tables(config)
    factory = get_session_factory(config)
    await _seed_admin_user(factory)
    await _seed_uncategorized(factory)

    scheduler = None
    if config.rules_interval_minutes > 0:
        scheduler = RuleScheduler(
            get_category_rules_service(),
            config.rules_interval_minutes,
            min_confidence=config.rules_min_confidence,
            log_retention_days=config.rules_log_retention_days,
        )
        scheduler.start()

    logger.info("jacms_started")
    yield

    logger.info("jacms_stopping")
    if scheduler is not None:
        await scheduler.stop()
    await close_engine()


app = FastAPI(
    title="JA-CMS",
    description="Content management admin API",
    version=VERSION,
    lifespan=lifespan,
)

register_error_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in config.cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
)

# Added last so it runs first
app.add_middleware(RequestIDMiddleware)

app.include_router(api_router)


@app.get("/")
async def root():
    return {"name": config.app_name, "version": VERSION, "status": "operational"}


@app.get("/health")
async def health():
    return {"success": True, "data": {"status": "healthy", "version": VERSION}}


def main():
    """Run the JA-CMS server."""
    uvicorn.run(
        "jacms.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level="debug" if config.debug else "info",
    )


if __name__ == "__main__":
    main()
