"""Canonical metrics: authoritative counts read from other domain tables."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from enum import Enum
from typing import Protocol

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from objective_engine.db.models import (
    GameweekEntry,
    MarketTransaction,
    PackOpen,
    UserGameweekScore,
    UserMonster,
)


class CanonicalMetric(str, Enum):
    PACKS_OPENED = "packs_opened"
    COLLECTION_SIZE = "collection_size"
    RARE_OR_BETTER = "rare_or_better"
    FANTASY_POINTS = "fantasy_points"
    GAMEWEEKS_ENTERED = "gameweeks_entered"
    MARKET_BUYS = "market_buys"
    MARKET_SELLS = "market_sells"


# Objective type -> metrics whose sum is the objective's absolute value.
# USE_MARKETPLACE_BUY counts every marketplace transaction (buys and sells),
# matching the MARKET_SELL event advancing it on the recorder path.
TYPE_METRICS: dict[str, tuple[CanonicalMetric, ...]] = {
    "OPEN_PACKS_ANY": (CanonicalMetric.PACKS_OPENED,),
    "OWN_MONSTERS_TOTAL": (CanonicalMetric.COLLECTION_SIZE,),
    "OWN_MONSTERS_RARE_OR_BETTER": (CanonicalMetric.RARE_OR_BETTER,),
    "EARN_FANTASY_POINTS": (CanonicalMetric.FANTASY_POINTS,),
    "SUBMIT_FANTASY_SQUAD": (CanonicalMetric.GAMEWEEKS_ENTERED,),
    "USE_MARKETPLACE_BUY": (CanonicalMetric.MARKET_BUYS, CanonicalMetric.MARKET_SELLS),
    "USE_MARKETPLACE_SELL": (CanonicalMetric.MARKET_SELLS,),
}


class MetricSource(Protocol):
    """Read-only aggregate queries against the collaborating domain stores."""

    async def packs_opened(self, user_id: int) -> int: ...

    async def collection_size(self, user_id: int) -> int: ...

    async def rare_or_better(self, user_id: int) -> int: ...

    async def fantasy_points(self, user_id: int) -> int: ...

    async def gameweeks_entered(self, user_id: int) -> int: ...

    async def market_buys(self, user_id: int) -> int: ...

    async def market_sells(self, user_id: int) -> int: ...


def metric_reader(source: MetricSource, metric: CanonicalMetric) -> Callable[[int], Awaitable[int]]:
    """Resolve the coroutine function computing ``metric`` on ``source``."""
    return getattr(source, metric.value)


class SqlMetricSource:
    """Metric queries against the game database.

    Each query runs in its own short-lived session so the resync read phase
    can run them concurrently.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        rare_rarities: Sequence[str] = ("RARE", "EPIC", "LEGENDARY"),
    ) -> None:
        self._session_factory = session_factory
        self._rare_rarities = list(rare_rarities)

    async def _scalar(self, stmt) -> int:
        async with self._session_factory() as db:
            value = (await db.execute(stmt)).scalar()
        return int(value or 0)

    async def packs_opened(self, user_id: int) -> int:
        return await self._scalar(
            select(func.count()).select_from(PackOpen).where(PackOpen.user_id == user_id)
        )

    async def collection_size(self, user_id: int) -> int:
        return await self._scalar(
            select(func.count()).select_from(UserMonster).where(
                UserMonster.user_id == user_id,
                UserMonster.is_consumed.is_(False),
            )
        )

    async def rare_or_better(self, user_id: int) -> int:
        return await self._scalar(
            select(func.count()).select_from(UserMonster).where(
                UserMonster.user_id == user_id,
                UserMonster.is_consumed.is_(False),
                UserMonster.rarity.in_(self._rare_rarities),
            )
        )

    async def fantasy_points(self, user_id: int) -> int:
        return await self._scalar(
            select(func.coalesce(func.sum(UserGameweekScore.points), 0)).where(
                UserGameweekScore.user_id == user_id
            )
        )

    async def gameweeks_entered(self, user_id: int) -> int:
        return await self._scalar(
            select(func.count(distinct(GameweekEntry.gameweek_id))).where(GameweekEntry.user_id == user_id)
        )

    async def market_buys(self, user_id: int) -> int:
        return await self._scalar(
            select(func.count()).select_from(MarketTransaction).where(MarketTransaction.buyer_id == user_id)
        )

    async def market_sells(self, user_id: int) -> int:
        return await self._scalar(
            select(func.count()).select_from(MarketTransaction).where(MarketTransaction.seller_id == user_id)
        )
