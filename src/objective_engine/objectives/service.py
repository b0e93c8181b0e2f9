"""Objective service: the in-process entry point used by request handlers."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from objective_engine.objectives import recorder, rewards, sets
from objective_engine.objectives.catalog import DefinitionCatalog
from objective_engine.objectives.metrics import MetricSource
from objective_engine.objectives.progress_store import progress_for_user, set_progress_for_user
from objective_engine.objectives.resync import ResyncReport, resync
from objective_engine.objectives.results import Ok, Result, run_in_transaction, run_write_retrying
from objective_engine.objectives.rewards import RewardGateway, SqlRewardGateway, emit_reward_claimed
from objective_engine.objectives.schemas import ObjectiveBoardResponse, ObjectiveResponse, ObjectiveSetResponse
from objective_engine.objectives.types import ClaimedReward, ObjectiveEvent, reward_type_name

logger = logging.getLogger(__name__)


class ObjectiveService:
    """Progress recording, resync, set aggregation and claims for one deployment.

    Every public method runs in its own transaction. Progress writes are
    replayed a bounded number of times when a concurrent writer wins the
    insert of a fresh row; claims are never replayed. Handlers that want the
    delta to commit together with their own write should call
    ``recorder.record_progress`` with their session instead.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        catalog: DefinitionCatalog,
        metrics: MetricSource,
        gateway: RewardGateway | None = None,
        redis: object = None,
        season_code: str | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.catalog = catalog
        self.metrics = metrics
        self.gateway = gateway or SqlRewardGateway()
        self.redis = redis
        self.season_code = season_code

    # ── Progress ──

    async def record_progress(self, user_id: int, objective_type: str, amount: int = 1) -> list[str]:
        """Apply an incremental delta. Returns codes of newly completed objectives."""
        if amount <= 0:
            return []

        async def _work(db: AsyncSession) -> list[str]:
            return await recorder.record_progress(db, self.catalog, user_id, objective_type, amount)

        return await run_write_retrying(self.session_factory, _work)

    async def record_events(self, user_id: int, events: Iterable[ObjectiveEvent]) -> list[str]:
        events = list(events)
        if not events:
            return []

        async def _work(db: AsyncSession) -> list[str]:
            return await recorder.record_events(db, self.catalog, user_id, events)

        return await run_write_retrying(self.session_factory, _work)

    async def resync(self, user_id: int) -> ResyncReport:
        return await resync(self.session_factory, self.catalog, self.metrics, user_id, self.season_code)

    async def recompute_set_progress(self, user_id: int) -> list[str]:
        async def _work(db: AsyncSession) -> list[str]:
            return await sets.recompute_set_progress(db, self.catalog, user_id)

        return await run_write_retrying(self.session_factory, _work)

    # ── Claims ──

    async def claim(self, user_id: int, objective_ref: str, *, sync: bool = True) -> Result[ClaimedReward]:
        """Claim an objective reward, resyncing first so the check sees fresh data."""
        if sync:
            await self.resync(user_id)

        async def _work(db: AsyncSession) -> Result[ClaimedReward]:
            return await rewards.claim_objective(db, self.catalog, self.gateway, user_id, objective_ref)

        result = await run_in_transaction(self.session_factory, _work)
        await self._after_claim(user_id, result)
        return result

    async def claim_set(self, user_id: int, set_ref: str, *, sync: bool = True) -> Result[ClaimedReward]:
        """Claim an objective-set reward."""
        if sync:
            await self.resync(user_id)

        async def _work(db: AsyncSession) -> Result[ClaimedReward]:
            return await rewards.claim_objective_set(db, self.catalog, self.gateway, user_id, set_ref)

        result = await run_in_transaction(self.session_factory, _work)
        await self._after_claim(user_id, result)
        return result

    async def _after_claim(self, user_id: int, result: Result[ClaimedReward]) -> None:
        if isinstance(result, Ok):
            await emit_reward_claimed(self.redis, user_id, result.value)
        else:
            logger.info("Claim rejected: user=%s reason=%s", user_id, result.kind.value)

    # ── Listing ──

    async def list_objectives(self, user_id: int, *, sync: bool = True) -> ObjectiveBoardResponse:
        """All active objectives and sets with the user's progress."""
        if sync:
            await self.resync(user_id)

        objectives = await self.catalog.active_objectives()
        objective_sets = await self.catalog.active_sets()

        async with self.session_factory() as db:
            progress = await progress_for_user(db, user_id)
            set_progress = await set_progress_for_user(db, user_id)

        items: dict[str, ObjectiveResponse] = {}
        for definition in objectives:
            p = progress.get(definition.id)
            items[definition.id] = ObjectiveResponse(
                id=definition.id,
                code=definition.code,
                name=definition.name,
                description=definition.description,
                category=definition.category,
                season_code=definition.season_code,
                period=definition.period,
                type=definition.type,
                sort_order=definition.sort_order,
                target_value=definition.target_value,
                reward_type=reward_type_name(definition.reward),
                reward_value=definition.reward_value,
                current_value=p.current_value if p else 0,
                completed_at=p.completed_at if p else None,
                reward_claimed_at=p.reward_claimed_at if p else None,
            )

        set_items = []
        for objective_set in objective_sets:
            sp = set_progress.get(objective_set.id)
            set_items.append(ObjectiveSetResponse(
                id=objective_set.id,
                code=objective_set.code,
                title=objective_set.title,
                description=objective_set.description,
                season_code=objective_set.season_code,
                sort_order=objective_set.sort_order,
                reward_type=reward_type_name(objective_set.reward),
                reward_value=objective_set.reward_value,
                is_active=objective_set.is_active,
                is_completed=sp.is_completed if sp else False,
                completed_at=sp.completed_at if sp else None,
                reward_claimed_at=sp.reward_claimed_at if sp else None,
                objectives=[items[oid] for oid in objective_set.objective_ids if oid in items],
            ))

        return ObjectiveBoardResponse(objectives=list(items.values()), sets=set_items)
