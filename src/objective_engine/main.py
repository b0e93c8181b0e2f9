"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from objective_engine.config import get_settings
from objective_engine.database import close_db, get_session_factory, init_db
from objective_engine.middleware import setup_middleware
from objective_engine.objectives.catalog import SqlDefinitionCatalog
from objective_engine.objectives.metrics import SqlMetricSource
from objective_engine.objectives.router import router as objectives_router
from objective_engine.objectives.seed import seed_season_one
from objective_engine.objectives.service import ObjectiveService
from objective_engine.redis_client import close_redis, get_redis, init_redis

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings)

    session_factory = get_session_factory()

    # Seed the season catalog (idempotent)
    try:
        async with session_factory() as db:
            await seed_season_one(db)
    except Exception:
        logger.warning("Objective seeding failed (tables may not exist yet)", exc_info=True)

    app.state.objective_service = ObjectiveService(
        session_factory=session_factory,
        catalog=SqlDefinitionCatalog(session_factory),
        metrics=SqlMetricSource(session_factory, settings.rare_rarities),
        redis=get_redis(),
        season_code=settings.season_code,
    )

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Objective Engine",
        description="Objective progress and reward claims",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(objectives_router)

    return app


app = create_app()
