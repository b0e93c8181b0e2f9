"""Resynchronizer: reconcile stored progress against canonical counts.

The read phase computes every needed metric concurrently and isolates
failures per metric. The write phase runs in one transaction: it overwrites
current_value with the (clamped) absolute value, stamps completed_at the
first time the target is met, never clears an existing completed_at, and
finally recomputes set completion.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from objective_engine.db.models import ObjectiveProgress
from objective_engine.objectives.catalog import DefinitionCatalog
from objective_engine.objectives.metrics import TYPE_METRICS, CanonicalMetric, MetricSource, metric_reader
from objective_engine.objectives.progress_store import progress_for_user, utcnow
from objective_engine.objectives.results import MetricComputationFailed, run_write_retrying
from objective_engine.objectives.sets import recompute_set_progress
from objective_engine.objectives.types import ObjectiveDefinition

logger = structlog.get_logger()


@dataclass
class ResyncReport:
    """Outcome of one resync pass, by objective code."""

    user_id: int
    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    completed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed_metrics: list[str] = field(default_factory=list)
    failed_objectives: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed_metrics


async def compute_metrics(
    source: MetricSource,
    user_id: int,
    metrics: set[CanonicalMetric],
) -> tuple[dict[CanonicalMetric, int], dict[CanonicalMetric, MetricComputationFailed]]:
    """Run the metric queries concurrently. A failing query never aborts the others."""
    ordered = sorted(metrics, key=lambda m: m.value)
    results = await asyncio.gather(
        *(metric_reader(source, m)(user_id) for m in ordered),
        return_exceptions=True,
    )

    values: dict[CanonicalMetric, int] = {}
    failures: dict[CanonicalMetric, MetricComputationFailed] = {}
    for metric, result in zip(ordered, results):
        if isinstance(result, Exception):
            failures[metric] = MetricComputationFailed(metric.value, result)
            logger.warning(
                "metric_computation_failed",
                user_id=user_id,
                metric=metric.value,
                exc_info=result,
            )
        elif isinstance(result, BaseException):
            raise result
        else:
            values[metric] = int(result)
    return values, failures


def clamp(value: int, target: int) -> int:
    return min(max(value, 0), target)


async def apply_absolute_values(
    db: AsyncSession,
    catalog: DefinitionCatalog,
    user_id: int,
    targets: list[tuple[ObjectiveDefinition, int]],
    report: ResyncReport,
) -> None:
    """Write phase: overwrite current_value per definition, sticky completed_at."""
    existing = await progress_for_user(db, user_id, [d.id for d, _ in targets], for_update=True)
    now = utcnow()

    for definition, raw_value in targets:
        value = clamp(raw_value, definition.target_value)
        reached = value >= definition.target_value
        progress = existing.get(definition.id)

        if progress is None:
            db.add(ObjectiveProgress(
                user_id=user_id,
                objective_id=definition.id,
                current_value=value,
                completed_at=now if reached else None,
                last_updated_at=now,
            ))
            report.created.append(definition.code)
            if reached:
                report.completed.append(definition.code)
            continue

        stamp = progress.completed_at is None and reached
        if progress.current_value == value and not stamp:
            report.unchanged.append(definition.code)
            continue

        progress.current_value = value
        progress.last_updated_at = now
        if stamp:
            progress.completed_at = now
            report.completed.append(definition.code)
        report.updated.append(definition.code)

    await db.flush()
    await recompute_set_progress(db, catalog, user_id)


async def resync(
    session_factory: async_sessionmaker[AsyncSession],
    catalog: DefinitionCatalog,
    source: MetricSource,
    user_id: int,
    season_code: str | None = None,
) -> ResyncReport:
    """Reconcile a user's progress for the season against canonical counts.

    Definitions without a canonical metric are left to the event recorder.
    Definitions whose metric failed are skipped for this pass.
    """
    report = ResyncReport(user_id=user_id)
    definitions = await catalog.active_objectives(season_code)

    backed: list[ObjectiveDefinition] = []
    for definition in definitions:
        if definition.type in TYPE_METRICS:
            backed.append(definition)
        else:
            report.skipped.append(definition.code)

    needed = {m for d in backed for m in TYPE_METRICS[d.type]}
    values, failures = await compute_metrics(source, user_id, needed) if needed else ({}, {})
    report.failed_metrics = sorted(m.value for m in failures)

    targets: list[tuple[ObjectiveDefinition, int]] = []
    for definition in backed:
        metrics = TYPE_METRICS[definition.type]
        if any(m in failures for m in metrics):
            report.failed_objectives.append(definition.code)
            continue
        targets.append((definition, sum(values[m] for m in metrics)))

    async def _write(db: AsyncSession) -> None:
        for bucket in (report.created, report.updated, report.unchanged, report.completed):
            bucket.clear()
        await apply_absolute_values(db, catalog, user_id, targets, report)

    # A concurrent resync may have inserted the same fresh progress rows
    await run_write_retrying(session_factory, _write)

    logger.info(
        "objectives_resynced",
        user_id=user_id,
        created=len(report.created),
        updated=len(report.updated),
        completed=report.completed,
        failed_metrics=report.failed_metrics,
    )
    return report
