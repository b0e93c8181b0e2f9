"""Definition catalog: read-only access to objective and set definitions."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from objective_engine.db.models import ObjectiveSet, ObjectiveTemplate
from objective_engine.objectives.types import (
    ObjectiveDefinition,
    ObjectiveSetDefinition,
    resolve_reward,
)

logger = logging.getLogger(__name__)


class DefinitionCatalog(Protocol):
    """Source of objective and set definitions."""

    async def active_objectives(self, season_code: str | None = None) -> list[ObjectiveDefinition]: ...

    async def objectives_of_type(self, objective_type: str) -> list[ObjectiveDefinition]: ...

    async def get_objective(self, ref: str) -> ObjectiveDefinition | None: ...

    async def active_sets(self) -> list[ObjectiveSetDefinition]: ...

    async def get_set(self, ref: str) -> ObjectiveSetDefinition | None: ...


def objective_from_row(row: ObjectiveTemplate) -> ObjectiveDefinition:
    return ObjectiveDefinition(
        id=row.id,
        code=row.code,
        type=row.type,
        target_value=max(row.target_value or 1, 1),
        reward=resolve_reward(row.reward_type, row.reward_value),
        name=row.name,
        description=row.description,
        category=row.category,
        period=row.period,
        season_code=row.season_code,
        sort_order=row.sort_order,
        is_active=row.is_active,
        reward_value=row.reward_value,
    )


def set_from_row(row: ObjectiveSet) -> ObjectiveSetDefinition:
    return ObjectiveSetDefinition(
        id=row.id,
        code=row.code,
        objective_ids=tuple(link.objective_id for link in row.objectives),
        reward=resolve_reward(row.reward_type, row.reward_value),
        title=row.title,
        description=row.description,
        season_code=row.season_code,
        sort_order=row.sort_order,
        is_active=row.is_active,
        reward_value=row.reward_value,
    )


class StaticDefinitionCatalog:
    """Fixed in-memory catalog."""

    def __init__(
        self,
        objectives: Iterable[ObjectiveDefinition] = (),
        sets: Iterable[ObjectiveSetDefinition] = (),
    ) -> None:
        self._objectives = list(objectives)
        self._sets = list(sets)

    async def active_objectives(self, season_code: str | None = None) -> list[ObjectiveDefinition]:
        return [
            o for o in self._objectives
            if o.is_active and (season_code is None or o.season_code == season_code)
        ]

    async def objectives_of_type(self, objective_type: str) -> list[ObjectiveDefinition]:
        return [o for o in self._objectives if o.is_active and o.type == objective_type]

    async def get_objective(self, ref: str) -> ObjectiveDefinition | None:
        return next((o for o in self._objectives if ref in (o.id, o.code)), None)

    async def active_sets(self) -> list[ObjectiveSetDefinition]:
        return [s for s in self._sets if s.is_active]

    async def get_set(self, ref: str) -> ObjectiveSetDefinition | None:
        return next((s for s in self._sets if ref in (s.id, s.code)), None)


class SqlDefinitionCatalog(StaticDefinitionCatalog):
    """Catalog backed by the objective tables, loaded once and cached.

    Definitions are immutable within a season; call ``refresh()`` after
    reseeding to pick up changes.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        super().__init__()
        self._session_factory = session_factory
        self._loaded = False

    async def _load(self) -> None:
        if self._loaded:
            return
        async with self._session_factory() as db:
            templates = await db.execute(
                select(ObjectiveTemplate).order_by(
                    ObjectiveTemplate.category.asc(),
                    ObjectiveTemplate.sort_order.asc(),
                    ObjectiveTemplate.created_at.asc(),
                )
            )
            sets = await db.execute(
                select(ObjectiveSet).order_by(ObjectiveSet.sort_order.asc(), ObjectiveSet.created_at.asc())
            )
            self._objectives = [objective_from_row(t) for t in templates.scalars()]
            self._sets = [set_from_row(s) for s in sets.scalars()]
        self._loaded = True
        logger.info("Loaded %d objectives and %d sets", len(self._objectives), len(self._sets))

    def refresh(self) -> None:
        """Drop cached definitions; the next read reloads them."""
        self._loaded = False

    async def active_objectives(self, season_code: str | None = None) -> list[ObjectiveDefinition]:
        await self._load()
        return await super().active_objectives(season_code)

    async def objectives_of_type(self, objective_type: str) -> list[ObjectiveDefinition]:
        await self._load()
        return await super().objectives_of_type(objective_type)

    async def get_objective(self, ref: str) -> ObjectiveDefinition | None:
        await self._load()
        return await super().get_objective(ref)

    async def active_sets(self) -> list[ObjectiveSetDefinition]:
        await self._load()
        return await super().active_sets()

    async def get_set(self, ref: str) -> ObjectiveSetDefinition | None:
        await self._load()
        return await super().get_set(ref)
