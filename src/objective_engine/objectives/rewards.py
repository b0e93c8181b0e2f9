"""Reward issuer: claim completed objectives and sets exactly once."""

from __future__ import annotations

import json
import logging
from typing import Protocol

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from objective_engine.db.models import RewardPack, User
from objective_engine.objectives.catalog import DefinitionCatalog
from objective_engine.objectives.progress_store import (
    get_progress,
    get_set_progress,
    stamp_objective_claimed,
    stamp_set_claimed,
    utcnow,
)
from objective_engine.objectives.results import Err, ErrorKind, Ok, Result
from objective_engine.objectives.types import ClaimedReward, Coins, Pack, RewardKind, Special
from objective_engine.redis_client import CLAIM_CHANNEL

logger = logging.getLogger(__name__)

SOURCE_OBJECTIVE = "objective"
SOURCE_OBJECTIVE_SET = "objective_set"


class RewardGateway(Protocol):
    """Currency ledger and pack inventory, written inside the claim transaction."""

    async def increment_balance(self, db: AsyncSession, user_id: int, amount: int) -> None: ...

    async def create_reward_pack(
        self,
        db: AsyncSession,
        user_id: int,
        pack_id: str,
        source_type: str,
        source_ref: str,
    ) -> str: ...


class SqlRewardGateway:
    """Writes to the users and reward_packs tables of the game database."""

    async def increment_balance(self, db: AsyncSession, user_id: int, amount: int) -> None:
        await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(coins=User.coins + amount)
            .execution_options(synchronize_session=False)
        )

    async def create_reward_pack(
        self,
        db: AsyncSession,
        user_id: int,
        pack_id: str,
        source_type: str,
        source_ref: str,
    ) -> str:
        pack = RewardPack(user_id=user_id, pack_id=pack_id, source_type=source_type, source_ref=source_ref)
        db.add(pack)
        await db.flush()
        return pack.id


async def grant_reward(
    db: AsyncSession,
    gateway: RewardGateway,
    user_id: int,
    reward: RewardKind,
    source_type: str,
    source_ref: str,
) -> tuple[int, str | None]:
    """Apply a reward. Returns (coins granted, created reward pack id)."""
    if isinstance(reward, Coins):
        if reward.amount <= 0:
            return 0, None
        await gateway.increment_balance(db, user_id, reward.amount)
        return reward.amount, None
    if isinstance(reward, Pack):
        if not reward.pack_id:
            return 0, None
        pack_row_id = await gateway.create_reward_pack(db, user_id, reward.pack_id, source_type, source_ref)
        return 0, pack_row_id
    if isinstance(reward, Special):
        # Fulfilled manually
        return 0, None
    raise TypeError(f"Unknown reward kind: {reward!r}")


async def claim_objective(
    db: AsyncSession,
    catalog: DefinitionCatalog,
    gateway: RewardGateway,
    user_id: int,
    objective_ref: str,
) -> Result[ClaimedReward]:
    """Claim the reward of a completed objective.

    The caller runs this inside one transaction (see run_in_transaction) so
    the completion check, the claim stamp and the grant commit together.
    """
    definition = await catalog.get_objective(objective_ref)
    if definition is None:
        return Err(ErrorKind.DEFINITION_NOT_FOUND, "Objective not found.")

    progress = await get_progress(db, user_id, definition.id, for_update=True)
    if progress is None or progress.completed_at is None:
        return Err(ErrorKind.NOT_COMPLETED_YET, "Objective not completed yet.")
    if progress.reward_claimed_at is not None:
        return Err(ErrorKind.ALREADY_CLAIMED, "Reward already claimed.")

    if not await stamp_objective_claimed(db, user_id, definition.id, utcnow()):
        return Err(ErrorKind.ALREADY_CLAIMED, "Reward already claimed.")

    coins, pack_row_id = await grant_reward(
        db, gateway, user_id, definition.reward, SOURCE_OBJECTIVE, definition.code,
    )
    logger.info("Objective reward claimed: user=%s objective=%s", user_id, definition.code)
    return Ok(ClaimedReward(
        source_type=SOURCE_OBJECTIVE,
        definition_id=definition.id,
        code=definition.code,
        reward=definition.reward,
        coins_delta=coins,
        reward_pack_id=pack_row_id,
    ))


async def claim_objective_set(
    db: AsyncSession,
    catalog: DefinitionCatalog,
    gateway: RewardGateway,
    user_id: int,
    set_ref: str,
) -> Result[ClaimedReward]:
    """Claim the reward of a completed objective set."""
    objective_set = await catalog.get_set(set_ref)
    if objective_set is None:
        return Err(ErrorKind.DEFINITION_NOT_FOUND, "Objective set not found.")

    progress = await get_set_progress(db, user_id, objective_set.id, for_update=True)
    if progress is None or not progress.is_completed:
        return Err(ErrorKind.SET_NOT_COMPLETED, "Set is not completed yet.")
    if progress.reward_claimed_at is not None:
        return Err(ErrorKind.ALREADY_CLAIMED, "Set reward already claimed.")

    if not await stamp_set_claimed(db, user_id, objective_set.id, utcnow()):
        return Err(ErrorKind.ALREADY_CLAIMED, "Set reward already claimed.")

    coins, pack_row_id = await grant_reward(
        db, gateway, user_id, objective_set.reward, SOURCE_OBJECTIVE_SET, objective_set.code,
    )
    logger.info("Objective set reward claimed: user=%s set=%s", user_id, objective_set.code)
    return Ok(ClaimedReward(
        source_type=SOURCE_OBJECTIVE_SET,
        definition_id=objective_set.id,
        code=objective_set.code,
        reward=objective_set.reward,
        coins_delta=coins,
        reward_pack_id=pack_row_id,
    ))


async def emit_reward_claimed(redis: object, user_id: int, claimed: ClaimedReward) -> None:
    """Publish a reward-claimed message for WebSocket fan-out. Best effort."""
    if redis is None:
        return
    try:
        await redis.publish(  # type: ignore[union-attr]
            CLAIM_CHANNEL,
            json.dumps({
                "user_id": user_id,
                "source_type": claimed.source_type,
                "code": claimed.code,
                "reward_type": claimed.reward_type,
                "coins": claimed.coins_delta,
                "reward_pack_id": claimed.reward_pack_id,
            }),
        )
    except Exception:
        logger.warning("Failed to publish objective_reward_claimed notification", exc_info=True)
