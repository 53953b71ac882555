"""
app/scheduler/jobs.py

APScheduler-based scheduler for periodic metric polling.

Schedule (all times UTC)
--------------------------
  poll_metrics  every POLL_INTERVAL_MINUTES (default 15)
  metric_sync   00:00 every day

A poll only touches metrics whose ``next_poll_at`` has passed. Each one
gets a soft refresh: fetch with the stored ingestion transformer, re-run
its chart transformers, then record a snapshot of the latest value.
Nothing here generates code.

Lifecycle
----------
Call ``build_scheduler()`` once to get a configured ``BackgroundScheduler``.
Start it on app boot when ``ENABLE_CRON_JOBS`` is true; shut it down on
app shutdown. The scheduler is wired into FastAPI via the ``lifespan``
context in main.py.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session

from app.config import get_scheduler_settings
from app.repositories.metric_data_repository import MetricDataRepository
from app.repositories.metric_repository import MetricRepository
from app.services import data_pipeline
from app.services.cache import invalidate_dashboard_cache
from db.models.metric import Metric, PollFrequency
from db.session import session_scope

logger = logging.getLogger(__name__)

POLL_INTERVALS: dict[str, timedelta] = {
    PollFrequency.FREQUENT: timedelta(minutes=15),
    PollFrequency.HOURLY: timedelta(hours=1),
    PollFrequency.DAILY: timedelta(hours=24),
    PollFrequency.WEEKLY: timedelta(days=7),
}


def next_poll_time(poll_frequency: str | None, now: datetime) -> datetime:
    """Unknown frequencies poll daily."""
    return now + POLL_INTERVALS.get(poll_frequency or "", POLL_INTERVALS[PollFrequency.DAILY])


# ---------------------------------------------------------------------------
# Single metric
# ---------------------------------------------------------------------------


def _team_key(metric: Metric) -> str | None:
    return str(metric.team_id) if metric.team_id else None


def poll_metric(session: Session, metric: Metric, now: datetime) -> tuple[bool, str | None]:
    """
    Soft-refresh one metric and reschedule it.

    Returns (succeeded, error). ``next_poll_at`` advances whatever the
    outcome so a failing metric is not retried on every tick.
    """

    error: str | None = None
    try:
        result = data_pipeline.execute_transformer_for_polling(session, metric)
        if result.success:
            data_pipeline.execute_chart_transformers(session, metric)
        else:
            error = result.error or "Transformer execution failed"
    except Exception as exc:  # noqa: BLE001
        session.rollback()
        error = str(exc)

    if error is None:
        repository = MetricDataRepository(session)
        summary = repository.summarize(metric.id)
        metric.last_fetched_at = now
        metric.last_error = None
        repository.add_snapshot(
            metric_id=metric.id,
            value=summary.latest_value,
            payload={"dataPointCount": summary.count},
        )
    else:
        metric.last_error = error

    metric.next_poll_at = next_poll_time(metric.poll_frequency, now)
    session.commit()

    if error is None:
        invalidate_dashboard_cache(metric.organization_id, _team_key(metric))
    return error is None, error


# ---------------------------------------------------------------------------
# Job: metric polling
# ---------------------------------------------------------------------------


def poll_due_metrics(session: Session, now: datetime, batch_size: int) -> dict[str, Any]:
    summary: dict[str, Any] = {"processed": 0, "succeeded": 0, "failed": 0, "skipped": 0, "errors": []}

    for metric in MetricRepository(session).list_due_for_poll(now, batch_size):
        summary["processed"] += 1
        if metric.integration is None:
            summary["skipped"] += 1
            metric.next_poll_at = next_poll_time(metric.poll_frequency, now)
            session.commit()
            continue

        succeeded, error = poll_metric(session, metric, now)
        if succeeded:
            summary["succeeded"] += 1
        else:
            summary["failed"] += 1
            summary["errors"].append({"metricId": str(metric.id), "error": error})
            logger.warning("Scheduler: poll_metrics failed metric_id=%s error=%s", metric.id, error)

    return summary


def run_poll_metrics(now: datetime | None = None) -> dict[str, Any]:
    """
    Poll every due metric in one batch and return the run summary.
    """
    settings = get_scheduler_settings()
    started = now or datetime.now(timezone.utc)
    logger.info("Scheduler: poll_metrics starting batch_size=%s", settings.poll_batch_size)

    with session_scope() as db:
        summary = poll_due_metrics(db, started, settings.poll_batch_size)

    logger.info(
        "Scheduler: poll_metrics complete processed=%s succeeded=%s failed=%s skipped=%s",
        summary["processed"],
        summary["succeeded"],
        summary["failed"],
        summary["skipped"],
    )
    return summary


# ---------------------------------------------------------------------------
# Job: daily sync
# ---------------------------------------------------------------------------


def run_metric_sync() -> dict[str, int]:
    """
    Soft-refresh every integration metric, one organization at a time.
    """
    logger.info("Scheduler: metric_sync starting")
    now = datetime.now(timezone.utc)
    totals = {"organizations": 0, "succeeded": 0, "failed": 0}

    with session_scope() as db:
        by_organization: dict[str, list[Metric]] = defaultdict(list)
        for metric in MetricRepository(db).list_integration_metrics():
            by_organization[metric.organization_id].append(metric)

        for organization_id, metrics in by_organization.items():
            totals["organizations"] += 1
            for metric in metrics:
                succeeded, _ = poll_metric(db, metric, now)
                totals["succeeded" if succeeded else "failed"] += 1
            logger.info("Scheduler: metric_sync organization=%s metrics=%s", organization_id, len(metrics))

    logger.info(
        "Scheduler: metric_sync complete organizations=%s succeeded=%s failed=%s",
        totals["organizations"],
        totals["succeeded"],
        totals["failed"],
    )
    return totals


# ---------------------------------------------------------------------------
# Scheduler factory
# ---------------------------------------------------------------------------


def build_scheduler() -> BackgroundScheduler:
    """
    Build and register all periodic jobs.

    Returns a configured but *not yet started* ``BackgroundScheduler``.
    """
    settings = get_scheduler_settings()
    scheduler = BackgroundScheduler(timezone="UTC")

    scheduler.add_job(
        run_poll_metrics,
        trigger="interval",
        minutes=settings.poll_interval_minutes,
        id="poll_metrics",
        name="Metric polling",
        replace_existing=True,
        misfire_grace_time=3600,
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        run_metric_sync,
        trigger="cron",
        hour=0,
        minute=0,
        id="metric_sync",
        name="Daily metric sync",
        replace_existing=True,
        misfire_grace_time=3600,
    )

    return scheduler
