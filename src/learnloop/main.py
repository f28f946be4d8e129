"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from learnloop.attempts.router import router as attempts_router
from learnloop.cache.coordinator import CacheCoordinator
from learnloop.clock import SystemClock
from learnloop.config import get_settings
from learnloop.database import close_db, get_session_factory, init_db
from learnloop.dependencies import build_services
from learnloop.gamification.router import router as gamification_router
from learnloop.gamification.seed import seed_achievements
from learnloop.health.router import router as health_router
from learnloop.middleware import setup_middleware
from learnloop.progress.router import router as progress_router
from learnloop.workers.retry import ArqRetryScheduler, NullRetryScheduler, RetryScheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)

    cache = CacheCoordinator(settings.redis_url, enabled=settings.cache_enabled)
    await cache.connect()

    retry: RetryScheduler = NullRetryScheduler()
    if settings.retry_queue_enabled:
        retry = await ArqRetryScheduler.connect(settings.arq_redis_url)

    if settings.seed_achievements_on_startup:
        try:
            await seed_achievements(get_session_factory())
        except Exception:
            logger.warning("Achievement seeding failed (tables may not exist yet)", exc_info=True)

    app.state.cache = cache
    app.state.services = build_services(settings, get_session_factory(), cache, SystemClock(), retry)

    yield

    await retry.close()
    await cache.disconnect()
    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="learnloop API",
        description="Attempt submission, progress, and achievements for the learning platform",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(attempts_router)
    app.include_router(progress_router)
    app.include_router(gamification_router)

    return app


app = create_app()
