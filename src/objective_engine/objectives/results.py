"""Typed claim results, engine exceptions and the transaction wrapper.

Precondition failures (unknown definition, not completed, already claimed) are
returned as ``Err`` values rather than raised. ``run_in_transaction`` commits
on ``Ok`` and rolls back on ``Err``, so a rejected claim can never leave a
partial write behind. Storage errors are the only thing raised, as
``PersistenceFailure``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeAlias, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)

T = TypeVar("T")

WRITE_ATTEMPTS = 3


class ErrorKind(str, Enum):
    DEFINITION_NOT_FOUND = "definition_not_found"
    NOT_COMPLETED_YET = "not_completed_yet"
    ALREADY_CLAIMED = "already_claimed"
    SET_NOT_COMPLETED = "set_not_completed"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def is_ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    message: str

    @property
    def is_ok(self) -> bool:
        return False


Result: TypeAlias = Ok[T] | Err


class ObjectiveEngineError(Exception):
    """Base class for infrastructure failures inside the engine."""


class PersistenceFailure(ObjectiveEngineError):
    """A transaction failed and was rolled back. Safe to retry."""

    retryable = True


class MetricComputationFailed(ObjectiveEngineError):
    """A canonical metric query failed during resync."""

    def __init__(self, metric: str, cause: BaseException | None = None) -> None:
        super().__init__(f"Metric {metric} could not be computed: {cause!r}")
        self.metric = metric
        self.cause = cause


async def run_in_transaction(
    session_factory: async_sessionmaker[AsyncSession],
    work: Callable[[AsyncSession], Awaitable[Result[T]]],
) -> Result[T]:
    """Run ``work`` in a fresh session; commit on Ok, roll back on Err."""
    async with session_factory() as session:
        try:
            result = await work(session)
            if result.is_ok:
                await session.commit()
            else:
                await session.rollback()
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.warning("Transaction rolled back: %s", exc)
            raise PersistenceFailure(str(exc)) from exc
        return result


async def run_write(
    session_factory: async_sessionmaker[AsyncSession],
    work: Callable[[AsyncSession], Awaitable[T]],
) -> T:
    """Run a write that has no precondition failures; commit or raise PersistenceFailure."""

    async def _wrapped(session: AsyncSession) -> Ok[T]:
        return Ok(await work(session))

    result = await run_in_transaction(session_factory, _wrapped)
    return result.value  # type: ignore[union-attr]


async def run_write_retrying(
    session_factory: async_sessionmaker[AsyncSession],
    work: Callable[[AsyncSession], Awaitable[T]],
    attempts: int = WRITE_ATTEMPTS,
) -> T:
    """``run_write`` with a bounded retry on PersistenceFailure.

    Two writers creating the same first progress row collide on the unique
    key; the loser's transaction is rolled back whole and replayed against
    the committed row.
    """
    for attempt in range(1, attempts):
        try:
            return await run_write(session_factory, work)
        except PersistenceFailure:
            logger.info("Write retry %d/%d after rollback", attempt, attempts)
    return await run_write(session_factory, work)
