"""
app/services/pipeline_runner.py

Step runner that publishes pipeline progress through ``Metric.refresh_status``.

Each step commits the status before it runs, so clients polling the status
endpoint see the current step and prior step work is durable. Every step
outcome is recorded as a MetricApiLog row with endpoint ``pipeline:{step}``.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, TypeVar

from sqlalchemy.orm import Session

from app.domain.pipeline_steps import detect_pipeline_type, get_pipeline_step_count, get_step_display_name
from app.repositories.metric_data_repository import MetricDataRepository
from db.models.metric import Metric

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class StepResult:
    step: str
    status: str
    duration_ms: int
    error: str | None = None


class PipelineRunner:
    def __init__(self, session: Session, metric_id: uuid.UUID, pipeline_type: str) -> None:
        self._session = session
        self._metric_id = metric_id
        self.pipeline_type = pipeline_type
        self.run_id = str(uuid.uuid4())
        self._completed: list[StepResult] = []

    @property
    def completed_steps(self) -> list[StepResult]:
        return list(self._completed)

    def _metric(self) -> Metric | None:
        return self._session.get(Metric, self._metric_id)

    def set_status(self, step: str | None) -> None:
        metric = self._metric()
        if metric is None:
            return
        metric.refresh_status = step
        self._session.commit()

    def run(self, step: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """
        Run ``fn`` as pipeline step ``step``. Failures are logged and re-raised.
        """

        self.set_status(step)
        started = time.monotonic()
        try:
            result = fn(*args, **kwargs)
        except Exception as exc:
            duration_ms = int((time.monotonic() - started) * 1000)
            self._session.rollback()
            logger.warning(
                "Pipeline step failed metric_id=%s step=%s error=%s",
                self._metric_id,
                step,
                exc,
            )
            self._log_step(step, "failed", duration_ms, str(exc))
            raise

        duration_ms = int((time.monotonic() - started) * 1000)
        self._log_step(step, "completed", duration_ms)
        return result

    def complete(self) -> None:
        metric = self._metric()
        if metric is None:
            return
        metric.refresh_status = None
        metric.last_fetched_at = datetime.now(timezone.utc)
        metric.last_error = None
        self._session.commit()
        logger.info(
            "Pipeline completed metric_id=%s type=%s steps=%s",
            self._metric_id,
            self.pipeline_type,
            len(self._completed),
        )

    def fail(self, error: str) -> None:
        self._session.rollback()
        metric = self._metric()
        if metric is None:
            return
        metric.refresh_status = None
        metric.last_error = error
        self._session.commit()
        logger.warning("Pipeline failed metric_id=%s type=%s error=%s", self._metric_id, self.pipeline_type, error)

    def _log_step(self, step: str, status: str, duration_ms: int, error: str | None = None) -> None:
        self._completed.append(StepResult(step=step, status=status, duration_ms=duration_ms, error=error))
        MetricDataRepository(self._session).add_api_log(
            metric_id=self._metric_id,
            endpoint=f"pipeline:{step}",
            success=status == "completed",
            raw_response={
                "runId": self.run_id,
                "pipelineType": self.pipeline_type,
                "step": step,
                "displayName": get_step_display_name(step),
                "status": status,
                "durationMs": duration_ms,
                "error": error,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
            error=error,
        )
        self._session.commit()


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PipelineProgress:
    is_processing: bool
    pipeline_type: str | None
    current_step: str | None
    completed_steps: list[StepResult]
    total_steps: int
    progress_percent: int


def pipeline_progress(current_step: str | None, completed_steps: list[StepResult]) -> PipelineProgress:
    """
    Progress of the latest run. The pipeline type is inferred from the
    step names seen; percent stays below 100 until the run finishes.
    """

    if current_step is None:
        return PipelineProgress(
            is_processing=False,
            pipeline_type=None,
            current_step=None,
            completed_steps=completed_steps,
            total_steps=0,
            progress_percent=100 if completed_steps else 0,
        )

    pipeline_type = detect_pipeline_type([step.step for step in completed_steps] + [current_step])
    total = get_pipeline_step_count(pipeline_type)
    return PipelineProgress(
        is_processing=True,
        pipeline_type=pipeline_type,
        current_step=current_step,
        completed_steps=completed_steps,
        total_steps=total,
        progress_percent=min(round(len(completed_steps) / total * 100), 95),
    )


def load_latest_run_steps(session: Session, metric_id: uuid.UUID) -> list[StepResult]:
    """
    Steps logged by the most recent runner, oldest first.
    """

    logs = MetricDataRepository(session).recent_pipeline_logs(metric_id)
    if not logs:
        return []
    run_id = (logs[0].raw_response or {}).get("runId")
    steps: list[StepResult] = []
    for log in logs:
        payload = log.raw_response or {}
        if payload.get("runId") != run_id:
            break
        steps.append(
            StepResult(
                step=payload.get("step") or log.endpoint.removeprefix("pipeline:"),
                status=payload.get("status") or ("completed" if log.success else "failed"),
                duration_ms=int(payload.get("durationMs") or 0),
                error=log.error,
            )
        )
    steps.reverse()
    return steps
