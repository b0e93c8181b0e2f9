"""Reward issuer: at-most-once claims, reward dispatch, rollback."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from objective_engine.db.models import RewardPack
from objective_engine.objectives.results import Err, ErrorKind, Ok, PersistenceFailure
from objective_engine.objectives.rewards import SOURCE_OBJECTIVE, SOURCE_OBJECTIVE_SET, SqlRewardGateway
from objective_engine.objectives.service import ObjectiveService
from objective_engine.objectives.types import Coins, Pack, Special
from tests.conftest import (
    FakeMetricSource,
    load_coins,
    load_progress,
    load_set_progress,
    make_objective,
    make_set,
)


def _service(session_factory, catalog, **kwargs) -> ObjectiveService:
    kwargs.setdefault("metrics", FakeMetricSource())
    return ObjectiveService(session_factory=session_factory, catalog=catalog, **kwargs)


async def _pack_count(session_factory, user_id: int) -> int:
    async with session_factory() as db:
        return (await db.execute(
            select(func.count()).select_from(RewardPack).where(RewardPack.user_id == user_id)
        )).scalar_one()


class FailingGateway(SqlRewardGateway):
    async def increment_balance(self, db, user_id, amount):
        raise OperationalError("UPDATE users", {}, Exception("disk I/O error"))


class TestClaimObjective:
    async def test_claim_once_then_already_claimed(self, session_factory, static_catalog, user_id):
        o1 = make_objective("O1", "OPEN_PACKS_ANY", target=5, reward=Coins(250))
        service = _service(session_factory, static_catalog([o1]))
        await service.record_progress(user_id, "OPEN_PACKS_ANY", 3)
        await service.record_progress(user_id, "OPEN_PACKS_ANY", 3)

        result = await service.claim(user_id, "O1", sync=False)

        assert isinstance(result, Ok)
        assert result.value.source_type == SOURCE_OBJECTIVE
        assert result.value.coins_delta == 250
        assert await load_coins(session_factory, user_id) == 250
        assert (await load_progress(session_factory, user_id, o1.id)).reward_claimed_at is not None

        again = await service.claim(user_id, "O1", sync=False)

        assert isinstance(again, Err)
        assert again.kind == ErrorKind.ALREADY_CLAIMED
        assert await load_coins(session_factory, user_id) == 250

    async def test_claim_by_id(self, session_factory, static_catalog, user_id):
        o1 = make_objective("O1", "WIN_BATTLES", target=1)
        service = _service(session_factory, static_catalog([o1]))
        await service.record_progress(user_id, "WIN_BATTLES")

        result = await service.claim(user_id, o1.id, sync=False)

        assert result.is_ok
        assert result.value.code == "O1"

    async def test_unknown_objective(self, session_factory, static_catalog, user_id):
        service = _service(session_factory, static_catalog([]))

        result = await service.claim(user_id, "NOPE", sync=False)

        assert result == Err(ErrorKind.DEFINITION_NOT_FOUND, "Objective not found.")

    async def test_not_completed_without_progress(self, session_factory, static_catalog, user_id):
        o1 = make_objective("O1", "WIN_BATTLES", target=2)
        service = _service(session_factory, static_catalog([o1]))

        result = await service.claim(user_id, "O1", sync=False)

        assert result.kind == ErrorKind.NOT_COMPLETED_YET

    async def test_not_completed_with_partial_progress(self, session_factory, static_catalog, user_id):
        o1 = make_objective("O1", "WIN_BATTLES", target=2)
        service = _service(session_factory, static_catalog([o1]))
        await service.record_progress(user_id, "WIN_BATTLES")

        result = await service.claim(user_id, "O1", sync=False)

        assert result.kind == ErrorKind.NOT_COMPLETED_YET
        assert await load_coins(session_factory, user_id) == 0
        assert (await load_progress(session_factory, user_id, o1.id)).reward_claimed_at is None

    async def test_pack_reward_creates_reward_pack(self, session_factory, static_catalog, user_id):
        o1 = make_objective("O1", "WIN_BATTLES", target=1, reward=Pack("gold"))
        service = _service(session_factory, static_catalog([o1]))
        await service.record_progress(user_id, "WIN_BATTLES")

        result = await service.claim(user_id, "O1", sync=False)

        assert result.value.coins_delta == 0
        assert result.value.reward_pack_id is not None
        async with session_factory() as db:
            pack = await db.get(RewardPack, result.value.reward_pack_id)
        assert pack.user_id == user_id
        assert pack.pack_id == "gold"
        assert pack.source_type == SOURCE_OBJECTIVE
        assert pack.source_ref == "O1"
        assert pack.is_opened is False

    async def test_special_reward_only_stamps_claim(self, session_factory, static_catalog, user_id):
        o1 = make_objective("O1", "WIN_BATTLES", target=1, reward=Special("champion_frame"))
        service = _service(session_factory, static_catalog([o1]))
        await service.record_progress(user_id, "WIN_BATTLES")

        result = await service.claim(user_id, "O1", sync=False)

        assert result.is_ok
        assert result.value.reward_type == "special"
        assert await load_coins(session_factory, user_id) == 0
        assert await _pack_count(session_factory, user_id) == 0
        assert (await load_progress(session_factory, user_id, o1.id)).reward_claimed_at is not None

    async def test_zero_coin_reward_still_claims(self, session_factory, static_catalog, user_id):
        o1 = make_objective("O1", "WIN_BATTLES", target=1, reward=Coins(0))
        service = _service(session_factory, static_catalog([o1]))
        await service.record_progress(user_id, "WIN_BATTLES")

        result = await service.claim(user_id, "O1", sync=False)

        assert result.is_ok
        assert result.value.coins_delta == 0
        assert await load_coins(session_factory, user_id) == 0

    async def test_grant_failure_rolls_back_claim(self, session_factory, static_catalog, user_id):
        o1 = make_objective("O1", "WIN_BATTLES", target=1, reward=Coins(100))
        service = _service(session_factory, static_catalog([o1]), gateway=FailingGateway())
        await service.record_progress(user_id, "WIN_BATTLES")

        with pytest.raises(PersistenceFailure):
            await service.claim(user_id, "O1", sync=False)

        assert (await load_progress(session_factory, user_id, o1.id)).reward_claimed_at is None

        service.gateway = SqlRewardGateway()
        assert (await service.claim(user_id, "O1", sync=False)).is_ok
        assert await load_coins(session_factory, user_id) == 100

    async def test_concurrent_claims_grant_once(self, session_factory, static_catalog, user_id):
        o1 = make_objective("O1", "WIN_BATTLES", target=1, reward=Coins(250))
        service = _service(session_factory, static_catalog([o1]))
        await service.record_progress(user_id, "WIN_BATTLES")

        results = await asyncio.gather(*(service.claim(user_id, "O1", sync=False) for _ in range(4)))

        assert sum(1 for r in results if r.is_ok) == 1
        assert all(r.kind == ErrorKind.ALREADY_CLAIMED for r in results if not r.is_ok)
        assert await load_coins(session_factory, user_id) == 250

    async def test_claim_resyncs_first(self, session_factory, static_catalog, user_id):
        o1 = make_objective("PACKS_01", "OPEN_PACKS_ANY", target=5, reward=Coins(250))
        service = _service(session_factory, static_catalog([o1]), metrics=FakeMetricSource({"packs_opened": 6}))

        result = await service.claim(user_id, "PACKS_01")

        assert result.is_ok
        assert await load_coins(session_factory, user_id) == 250

    async def test_claim_proceeds_when_resync_metric_fails(self, session_factory, static_catalog, user_id):
        """A failed metric leaves stored progress in place; the claim reads it."""
        o1 = make_objective("PACKS_01", "OPEN_PACKS_ANY", target=1, reward=Coins(50))
        metrics = FakeMetricSource(failing={"packs_opened"})
        service = _service(session_factory, static_catalog([o1]), metrics=metrics)
        await service.record_progress(user_id, "OPEN_PACKS_ANY")

        result = await service.claim(user_id, "PACKS_01")

        assert result.is_ok
        assert "packs_opened" in metrics.calls

    async def test_publishes_notification(self, session_factory, static_catalog, user_id):
        o1 = make_objective("O1", "WIN_BATTLES", target=1, reward=Coins(75))
        redis = AsyncMock()
        service = _service(session_factory, static_catalog([o1]), redis=redis)
        await service.record_progress(user_id, "WIN_BATTLES")

        await service.claim(user_id, "O1", sync=False)

        redis.publish.assert_awaited_once()
        channel, payload = redis.publish.await_args.args
        assert channel == "pubsub:objective_reward_claimed"
        assert json.loads(payload)["coins"] == 75

    async def test_publish_failure_does_not_fail_claim(self, session_factory, static_catalog, user_id):
        o1 = make_objective("O1", "WIN_BATTLES", target=1)
        redis = AsyncMock()
        redis.publish.side_effect = ConnectionError("redis down")
        service = _service(session_factory, static_catalog([o1]), redis=redis)
        await service.record_progress(user_id, "WIN_BATTLES")

        assert (await service.claim(user_id, "O1", sync=False)).is_ok

    async def test_rejected_claim_publishes_nothing(self, session_factory, static_catalog, user_id):
        redis = AsyncMock()
        service = _service(session_factory, static_catalog([]), redis=redis)

        await service.claim(user_id, "O1", sync=False)

        redis.publish.assert_not_awaited()


class TestClaimObjectiveSet:
    async def test_set_claim_once(self, session_factory, static_catalog, user_id):
        o1 = make_objective("O1", "PLAY_BATTLES", target=1)
        o2 = make_objective("O2", "WIN_BATTLES", target=1)
        s1 = make_set("S1", [o1, o2], reward=Coins(1000))
        service = _service(session_factory, static_catalog([o1, o2], [s1]))
        await service.record_progress(user_id, "PLAY_BATTLES")

        early = await service.claim_set(user_id, "S1", sync=False)
        assert early.kind == ErrorKind.SET_NOT_COMPLETED

        await service.record_progress(user_id, "WIN_BATTLES")
        result = await service.claim_set(user_id, "S1", sync=False)

        assert result.is_ok
        assert result.value.source_type == SOURCE_OBJECTIVE_SET
        assert await load_coins(session_factory, user_id) == 1000
        assert (await load_set_progress(session_factory, user_id, s1.id)).reward_claimed_at is not None

        again = await service.claim_set(user_id, "S1", sync=False)
        assert again.kind == ErrorKind.ALREADY_CLAIMED
        assert await load_coins(session_factory, user_id) == 1000

    async def test_concurrent_set_claims_grant_once(self, session_factory, static_catalog, user_id):
        o1 = make_objective("O1", "PLAY_BATTLES", target=1)
        s1 = make_set("S1", [o1], reward=Coins(1000))
        service = _service(session_factory, static_catalog([o1], [s1]))
        await service.record_progress(user_id, "PLAY_BATTLES")

        results = await asyncio.gather(*(service.claim_set(user_id, "S1", sync=False) for _ in range(4)))

        assert sum(1 for r in results if r.is_ok) == 1
        assert all(r.kind == ErrorKind.ALREADY_CLAIMED for r in results if not r.is_ok)
        assert await load_coins(session_factory, user_id) == 1000

    async def test_set_claim_is_independent_of_member_claims(self, session_factory, static_catalog, user_id):
        o1 = make_objective("O1", "PLAY_BATTLES", target=1, reward=Coins(10))
        s1 = make_set("S1", [o1], reward=Pack("gold"))
        service = _service(session_factory, static_catalog([o1], [s1]))
        await service.record_progress(user_id, "PLAY_BATTLES")

        set_result = await service.claim_set(user_id, "S1", sync=False)
        objective_result = await service.claim(user_id, "O1", sync=False)

        assert set_result.is_ok and objective_result.is_ok
        assert set_result.value.reward_pack_id is not None
        assert await load_coins(session_factory, user_id) == 10
        assert await _pack_count(session_factory, user_id) == 1

    async def test_unknown_set(self, session_factory, static_catalog, user_id):
        service = _service(session_factory, static_catalog([]))

        result = await service.claim_set(user_id, "S404", sync=False)

        assert result.kind == ErrorKind.DEFINITION_NOT_FOUND
