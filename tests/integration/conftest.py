"""HTTP fixtures: the app wired to the per-test database."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from objective_engine.dependencies import get_current_user_id
from objective_engine.main import create_app
from objective_engine.objectives.catalog import SqlDefinitionCatalog
from objective_engine.objectives.metrics import SqlMetricSource
from objective_engine.objectives.seed import seed_season_one
from objective_engine.objectives.service import ObjectiveService


@pytest_asyncio.fixture
async def app(session_factory, user_id):
    """App with a seeded catalog, acting as ``user_id``."""
    async with session_factory() as db:
        await seed_season_one(db)

    application = create_app()
    application.state.objective_service = ObjectiveService(
        session_factory=session_factory,
        catalog=SqlDefinitionCatalog(session_factory),
        metrics=SqlMetricSource(session_factory),
        redis=AsyncMock(),
        season_code="S1",
    )
    application.dependency_overrides[get_current_user_id] = lambda: user_id
    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
