"""Event recorder: apply incremental deltas from domain events to objectives."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from objective_engine.objectives.catalog import DefinitionCatalog
from objective_engine.objectives.progress_store import get_or_create_progress, utcnow
from objective_engine.objectives.sets import recompute_set_progress
from objective_engine.objectives.types import REQUIREMENT_MAP, ObjectiveEvent

logger = logging.getLogger(__name__)


async def apply_delta(
    db: AsyncSession,
    catalog: DefinitionCatalog,
    user_id: int,
    objective_type: str,
    amount: int,
) -> list[str]:
    """Add ``amount`` to every active objective of ``objective_type``.

    Completed objectives are skipped. Values are clamped at the target and
    completed_at is stamped the first time the target is reached. Does not
    aggregate sets. Returns codes of objectives completed by this delta.
    """
    if amount <= 0:
        return []

    definitions = await catalog.objectives_of_type(objective_type)
    completed: list[str] = []

    for definition in definitions:
        progress = await get_or_create_progress(db, user_id, definition.id)
        if progress.completed_at is not None:
            continue

        now = utcnow()
        progress.current_value = min(definition.target_value, max(progress.current_value, 0) + amount)
        progress.last_updated_at = now
        if progress.current_value >= definition.target_value:
            progress.completed_at = now
            completed.append(definition.code)

    await db.flush()
    for code in completed:
        logger.info("Objective completed: user=%s objective=%s", user_id, code)
    return completed


async def record_progress(
    db: AsyncSession,
    catalog: DefinitionCatalog,
    user_id: int,
    objective_type: str,
    amount: int = 1,
) -> list[str]:
    """Apply one delta, then recompute set completion for the user.

    No rewards are granted here; completed objectives become claimable.
    Unknown types and non-positive amounts are silent no-ops.
    """
    if amount <= 0:
        return []
    completed = await apply_delta(db, catalog, user_id, objective_type, amount)
    await recompute_set_progress(db, catalog, user_id)
    return completed


async def record_events(
    db: AsyncSession,
    catalog: DefinitionCatalog,
    user_id: int,
    events: Iterable[ObjectiveEvent],
) -> list[str]:
    """Map domain events to objective types and apply them in order.

    Sets are recomputed once at the end.
    """
    completed: list[str] = []
    applied = False
    for event in events:
        for objective_type in REQUIREMENT_MAP.get(event.type, ()):
            if event.amount <= 0:
                continue
            completed += await apply_delta(db, catalog, user_id, objective_type, event.amount)
            applied = True

    if applied:
        await recompute_set_progress(db, catalog, user_id)
    return completed
