"""Set aggregation: derive per-set completion from member objective completion."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from objective_engine.db.models import UserObjectiveSetProgress
from objective_engine.objectives.catalog import DefinitionCatalog
from objective_engine.objectives.progress_store import progress_for_user, set_progress_for_user, utcnow

logger = logging.getLogger(__name__)


async def recompute_set_progress(db: AsyncSession, catalog: DefinitionCatalog, user_id: int) -> list[str]:
    """Recompute completion of every active set for a user.

    A set is completed when every member objective has completed_at set.
    Completion is sticky: an already completed set is never reopened. Rewards
    are not granted here; sets only become claimable.

    Returns codes of sets that became completed during this call.
    """
    sets = await catalog.active_sets()
    if not sets:
        return []

    member_ids = {oid for s in sets for oid in s.objective_ids}
    progress = await progress_for_user(db, user_id, member_ids)
    existing = await set_progress_for_user(db, user_id)
    now = utcnow()
    newly_completed: list[str] = []

    for objective_set in sets:
        if not objective_set.objective_ids:
            continue

        all_completed = all(
            oid in progress and progress[oid].completed_at is not None
            for oid in objective_set.objective_ids
        )
        row = existing.get(objective_set.id)

        if row is None:
            row = UserObjectiveSetProgress(
                user_id=user_id,
                objective_set_id=objective_set.id,
                is_completed=all_completed,
                completed_at=now if all_completed else None,
            )
            db.add(row)
            existing[objective_set.id] = row
            if all_completed:
                newly_completed.append(objective_set.code)
        elif all_completed and not row.is_completed:
            row.is_completed = True
            row.completed_at = row.completed_at or now
            newly_completed.append(objective_set.code)

    await db.flush()
    for code in newly_completed:
        logger.info("Objective set completed: user=%s set=%s", user_id, code)
    return newly_completed
