"""Progress store: data access for objective and set progress rows."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from objective_engine.db.models import ObjectiveProgress, UserObjectiveSetProgress


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def get_progress(
    db: AsyncSession,
    user_id: int,
    objective_id: str,
    *,
    for_update: bool = False,
) -> ObjectiveProgress | None:
    """Fetch one progress row, optionally locking it for the current transaction."""
    stmt = select(ObjectiveProgress).where(
        ObjectiveProgress.user_id == user_id,
        ObjectiveProgress.objective_id == objective_id,
    )
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_or_create_progress(db: AsyncSession, user_id: int, objective_id: str) -> ObjectiveProgress:
    """Get the locked progress row, creating it at zero if missing.

    A concurrent insert of the same (user, objective) surfaces as an
    IntegrityError on flush and rolls back the whole transaction; callers
    replay it through ``run_write_retrying``.
    """
    progress = await get_progress(db, user_id, objective_id, for_update=True)
    if progress is None:
        progress = ObjectiveProgress(
            user_id=user_id,
            objective_id=objective_id,
            current_value=0,
            last_updated_at=utcnow(),
        )
        db.add(progress)
        await db.flush()
    return progress


async def progress_for_user(
    db: AsyncSession,
    user_id: int,
    objective_ids: Iterable[str] | None = None,
    *,
    for_update: bool = False,
) -> dict[str, ObjectiveProgress]:
    """Map objective_id -> progress row for a user."""
    stmt = select(ObjectiveProgress).where(ObjectiveProgress.user_id == user_id)
    if objective_ids is not None:
        stmt = stmt.where(ObjectiveProgress.objective_id.in_(list(objective_ids)))
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    return {p.objective_id: p for p in result.scalars()}


async def stamp_objective_claimed(db: AsyncSession, user_id: int, objective_id: str, now: datetime) -> bool:
    """Set reward_claimed_at if the row is completed and unclaimed. Returns True if stamped.

    The WHERE clause is the at-most-once guard: of two racing claims only one
    UPDATE can match.
    """
    result = await db.execute(
        update(ObjectiveProgress)
        .where(
            ObjectiveProgress.user_id == user_id,
            ObjectiveProgress.objective_id == objective_id,
            ObjectiveProgress.completed_at.is_not(None),
            ObjectiveProgress.reward_claimed_at.is_(None),
        )
        .values(reward_claimed_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


# ---------------------------------------------------------------------------
# Set progress
# ---------------------------------------------------------------------------


async def get_set_progress(
    db: AsyncSession,
    user_id: int,
    set_id: str,
    *,
    for_update: bool = False,
) -> UserObjectiveSetProgress | None:
    stmt = select(UserObjectiveSetProgress).where(
        UserObjectiveSetProgress.user_id == user_id,
        UserObjectiveSetProgress.objective_set_id == set_id,
    )
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def set_progress_for_user(db: AsyncSession, user_id: int) -> dict[str, UserObjectiveSetProgress]:
    result = await db.execute(
        select(UserObjectiveSetProgress).where(UserObjectiveSetProgress.user_id == user_id)
    )
    return {p.objective_set_id: p for p in result.scalars()}


async def stamp_set_claimed(db: AsyncSession, user_id: int, set_id: str, now: datetime) -> bool:
    """Set reward_claimed_at on a completed, unclaimed set row. Returns True if stamped."""
    result = await db.execute(
        update(UserObjectiveSetProgress)
        .where(
            UserObjectiveSetProgress.user_id == user_id,
            UserObjectiveSetProgress.objective_set_id == set_id,
            UserObjectiveSetProgress.is_completed.is_(True),
            UserObjectiveSetProgress.reward_claimed_at.is_(None),
        )
        .values(reward_claimed_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
