"""
app/services/background.py

Run pipeline work after the response has been sent.

Each task opens its own session; request sessions are closed by then.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from typing import Any

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from app.services.cache import invalidate_dashboard_cache
from db.models.metric import Metric
from db.session import session_scope

logger = logging.getLogger(__name__)


def _record_failure(metric_id: uuid.UUID, error: str) -> None:
    with session_scope() as session:
        metric = session.get(Metric, metric_id)
        if metric is None:
            return
        metric.refresh_status = None
        metric.last_error = error
        session.commit()


def run_background_task(
    metric_id: uuid.UUID,
    organization_id: str,
    team_id: str | None,
    task: Callable[..., Any],
    *args: Any,
    **kwargs: Any,
) -> None:
    """
    Run ``task(session, metric_id, *args, **kwargs)``.

    A result with ``success`` false, or any exception, is stored on the
    metric as ``last_error``. Dashboard cache tags are always invalidated.
    """

    error: str | None = None
    try:
        with session_scope() as session:
            result = task(session, metric_id, *args, **kwargs)
        if result is not None and getattr(result, "success", True) is False:
            error = getattr(result, "error", None) or "Pipeline failed"
    except Exception as exc:
        logger.exception("Background task failed metric_id=%s task=%s", metric_id, getattr(task, "__name__", task))
        error = str(exc) or "Unknown error"

    if error is not None:
        logger.warning("Background task error metric_id=%s error=%s", metric_id, error)
        try:
            _record_failure(metric_id, error)
        except Exception:
            logger.exception("Failed to record background error metric_id=%s", metric_id)

    invalidate_dashboard_cache(organization_id, team_id)


def mark_refresh_started(session: Session, metric: Metric, step: str) -> None:
    metric.refresh_status = step
    metric.last_error = None
    session.commit()


def start_pipeline(
    session: Session,
    background_tasks: BackgroundTasks,
    metric: Metric,
    initial_step: str,
    task: Callable[..., Any],
    *args: Any,
    **kwargs: Any,
) -> None:
    """
    Record the first pipeline step and queue ``task`` to run after the response.
    """

    mark_refresh_started(session, metric, initial_step)
    background_tasks.add_task(
        run_background_task,
        metric.id,
        metric.organization_id,
        str(metric.team_id) if metric.team_id else None,
        task,
        *args,
        **kwargs,
    )
