"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from objective_engine.database import build_engine
from objective_engine.db.base import Base
from objective_engine.db.models import ObjectiveProgress, User, UserObjectiveSetProgress
from objective_engine.objectives.catalog import StaticDefinitionCatalog
from objective_engine.objectives.types import (
    ObjectiveDefinition,
    ObjectiveSetDefinition,
    RewardKind,
    resolve_reward,
)


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh SQLite database per test, schema created from the ORM metadata."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'objectives.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Direct session for test setup and assertions."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def user_id(session_factory) -> int:
    """A committed user with an empty coin balance."""
    async with session_factory() as db:
        user = User(email="manager@example.com", username="manager", coins=0)
        db.add(user)
        await db.commit()
        return user.id


def make_objective(
    code: str,
    objective_type: str = "OPEN_PACKS_ANY",
    target: int = 5,
    reward: RewardKind | None = None,
    season_code: str | None = "S1",
    is_active: bool = True,
) -> ObjectiveDefinition:
    reward = reward or resolve_reward("coins", "100")
    return ObjectiveDefinition(
        id=f"obj-{code.lower()}",
        code=code,
        type=objective_type,
        target_value=target,
        reward=reward,
        name=code.title(),
        season_code=season_code,
        is_active=is_active,
    )


def make_set(code: str, members: list[ObjectiveDefinition], reward: RewardKind | None = None) -> ObjectiveSetDefinition:
    reward = reward or resolve_reward("coins", "1000")
    return ObjectiveSetDefinition(
        id=f"set-{code.lower()}",
        code=code,
        objective_ids=tuple(m.id for m in members),
        reward=reward,
        title=code.title(),
        season_code="S1",
    )


@pytest.fixture
def static_catalog():
    """Build a fixed in-memory catalog."""

    def _build(objectives=(), sets=()) -> StaticDefinitionCatalog:
        return StaticDefinitionCatalog(objectives, sets)

    return _build


async def load_progress(session_factory, user_id: int, objective_id: str) -> ObjectiveProgress | None:
    """Read a progress row through a fresh session (committed state only)."""
    async with session_factory() as db:
        result = await db.execute(
            select(ObjectiveProgress).where(
                ObjectiveProgress.user_id == user_id,
                ObjectiveProgress.objective_id == objective_id,
            )
        )
        return result.scalar_one_or_none()


async def load_set_progress(session_factory, user_id: int, set_id: str) -> UserObjectiveSetProgress | None:
    async with session_factory() as db:
        result = await db.execute(
            select(UserObjectiveSetProgress).where(
                UserObjectiveSetProgress.user_id == user_id,
                UserObjectiveSetProgress.objective_set_id == set_id,
            )
        )
        return result.scalar_one_or_none()


async def load_coins(session_factory, user_id: int) -> int:
    async with session_factory() as db:
        return (await db.execute(select(User.coins).where(User.id == user_id))).scalar_one()


class FakeMetricSource:
    """MetricSource with fixed values; metrics named in ``failing`` raise."""

    def __init__(self, values: dict[str, int] | None = None, failing: set[str] | None = None) -> None:
        self.values = dict(values or {})
        self.failing = set(failing or ())
        self.calls: list[str] = []

    async def _get(self, name: str) -> int:
        self.calls.append(name)
        if name in self.failing:
            raise RuntimeError(f"{name} backend unavailable")
        return self.values.get(name, 0)

    async def packs_opened(self, user_id: int) -> int:
        return await self._get("packs_opened")

    async def collection_size(self, user_id: int) -> int:
        return await self._get("collection_size")

    async def rare_or_better(self, user_id: int) -> int:
        return await self._get("rare_or_better")

    async def fantasy_points(self, user_id: int) -> int:
        return await self._get("fantasy_points")

    async def gameweeks_entered(self, user_id: int) -> int:
        return await self._get("gameweeks_entered")

    async def market_buys(self, user_id: int) -> int:
        return await self._get("market_buys")

    async def market_sells(self, user_id: int) -> int:
        return await self._get("market_sells")
