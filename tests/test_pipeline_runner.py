"""
tests/test_pipeline_runner.py

Pytest unit tests for pipeline step metadata and PipelineRunner.

PipelineRunner is exercised against an in-memory fake session; no
database is needed.
"""

from __future__ import annotations

import uuid
from types import SimpleNamespace
from typing import Any

import pytest

from app.domain.pipeline_steps import (
    PIPELINE_CONFIGS,
    PipelineStep,
    PipelineType,
    detect_pipeline_type,
    get_pipeline_step_count,
    get_step_display_name,
)
from app.services import pipeline_runner
from app.services.pipeline_runner import PipelineRunner, StepResult, load_latest_run_steps, pipeline_progress


class FakeSession:
    """Records status values at each commit."""

    def __init__(self, metric: Any) -> None:
        self.metric = metric
        self.added: list[Any] = []
        self.commits: list[str | None] = []
        self.rollbacks = 0

    def get(self, model: Any, key: Any) -> Any:
        return self.metric if self.metric is not None and key == self.metric.id else None

    def add(self, obj: Any) -> None:
        self.added.append(obj)

    def flush(self) -> None:
        pass

    def commit(self) -> None:
        self.commits.append(self.metric.refresh_status if self.metric is not None else None)

    def rollback(self) -> None:
        self.rollbacks += 1


@pytest.fixture()
def metric() -> SimpleNamespace:
    return SimpleNamespace(id=uuid.uuid4(), refresh_status=None, last_error=None, last_fetched_at=None)


@pytest.fixture()
def session(metric: SimpleNamespace) -> FakeSession:
    return FakeSession(metric)


# ---------------------------------------------------------------------------
# Step metadata
# ---------------------------------------------------------------------------


class TestPipelineSteps:
    def test_display_names(self) -> None:
        assert get_step_display_name(PipelineStep.FETCHING_API_DATA) == "Fetching data from API..."
        assert get_step_display_name(PipelineStep.SAVING_CHART_CONFIG) == "Finalizing..."

    def test_unknown_step_falls_back_to_name(self) -> None:
        assert get_step_display_name("custom-step") == "custom-step"

    def test_step_counts(self) -> None:
        assert get_pipeline_step_count(PipelineType.CREATE) == 7
        assert get_pipeline_step_count(PipelineType.SOFT_REFRESH) == 5
        assert get_pipeline_step_count(PipelineType.HARD_REFRESH) == 9
        assert get_pipeline_step_count(PipelineType.CHART_ONLY) == 4

    def test_every_pipeline_ends_saving_chart_config(self) -> None:
        for steps in PIPELINE_CONFIGS.values():
            assert steps[-1].step == PipelineStep.SAVING_CHART_CONFIG

    @pytest.mark.parametrize(
        "steps, expected",
        [
            ([PipelineStep.GENERATING_CHART_TRANSFORMER], PipelineType.CHART_ONLY),
            ([PipelineStep.FETCHING_API_DATA, PipelineStep.DELETING_OLD_DATA], PipelineType.HARD_REFRESH),
            (
                [
                    PipelineStep.FETCHING_API_DATA,
                    PipelineStep.DELETING_OLD_TRANSFORMER,
                    PipelineStep.GENERATING_INGESTION_TRANSFORMER,
                ],
                PipelineType.INGESTION_ONLY,
            ),
            (
                [PipelineStep.FETCHING_API_DATA, PipelineStep.GENERATING_INGESTION_TRANSFORMER],
                PipelineType.CREATE,
            ),
            (
                [PipelineStep.FETCHING_API_DATA, PipelineStep.EXECUTING_INGESTION_TRANSFORMER],
                PipelineType.SOFT_REFRESH,
            ),
        ],
    )
    def test_detect_pipeline_type(self, steps: list[str], expected: str) -> None:
        assert detect_pipeline_type(steps) == expected


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


class TestPipelineRunner:
    def test_status_committed_before_step_runs(self, session: FakeSession, metric: SimpleNamespace) -> None:
        seen: list[str | None] = []
        runner = PipelineRunner(session, metric.id, PipelineType.SOFT_REFRESH)

        result = runner.run(PipelineStep.FETCHING_API_DATA, lambda: seen.append(metric.refresh_status) or 42)

        assert result == 42
        assert seen == [PipelineStep.FETCHING_API_DATA]
        assert session.commits[0] == PipelineStep.FETCHING_API_DATA

    def test_step_logged_as_api_log(self, session: FakeSession, metric: SimpleNamespace) -> None:
        runner = PipelineRunner(session, metric.id, PipelineType.CREATE)
        runner.run(PipelineStep.SAVING_TIMESERIES_DATA, lambda: None)

        log = session.added[-1]
        assert log.endpoint == "pipeline:saving-timeseries-data"
        assert log.success is True
        assert log.raw_response["pipelineType"] == PipelineType.CREATE
        assert log.raw_response["displayName"] == "Saving metric data..."
        assert runner.completed_steps[0].status == "completed"

    def test_failure_rolls_back_logs_and_reraises(self, session: FakeSession, metric: SimpleNamespace) -> None:
        runner = PipelineRunner(session, metric.id, PipelineType.CREATE)

        def boom() -> None:
            raise RuntimeError("provider unavailable")

        with pytest.raises(RuntimeError, match="provider unavailable"):
            runner.run(PipelineStep.FETCHING_API_DATA, boom)

        assert session.rollbacks == 1
        assert session.added[-1].success is False
        assert session.added[-1].error == "provider unavailable"
        assert runner.completed_steps[0].status == "failed"

    def test_complete_clears_status(self, session: FakeSession, metric: SimpleNamespace) -> None:
        metric.last_error = "old"
        runner = PipelineRunner(session, metric.id, PipelineType.SOFT_REFRESH)
        runner.run(PipelineStep.FETCHING_API_DATA, lambda: None)

        runner.complete()

        assert metric.refresh_status is None
        assert metric.last_error is None
        assert metric.last_fetched_at is not None

    def test_fail_records_error(self, session: FakeSession, metric: SimpleNamespace) -> None:
        metric.refresh_status = PipelineStep.GENERATING_CHART_TRANSFORMER
        runner = PipelineRunner(session, metric.id, PipelineType.CHART_ONLY)

        runner.fail("LLM timed out")

        assert metric.refresh_status is None
        assert metric.last_error == "LLM timed out"

    def test_missing_metric_is_tolerated(self) -> None:
        session = FakeSession(None)
        runner = PipelineRunner(session, uuid.uuid4(), PipelineType.SOFT_REFRESH)
        runner.set_status(PipelineStep.FETCHING_API_DATA)
        runner.complete()
        assert session.commits == []

    def test_steps_tagged_with_run_id(self, session: FakeSession, metric: SimpleNamespace) -> None:
        runner = PipelineRunner(session, metric.id, PipelineType.SOFT_REFRESH)
        runner.run(PipelineStep.FETCHING_API_DATA, lambda: None)
        runner.run(PipelineStep.SAVING_TIMESERIES_DATA, lambda: None)

        run_ids = {log.raw_response["runId"] for log in session.added}
        assert run_ids == {runner.run_id}
        assert PipelineRunner(session, metric.id, PipelineType.SOFT_REFRESH).run_id != runner.run_id


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


def _log(step: str, run_id: str, status: str = "completed") -> SimpleNamespace:
    return SimpleNamespace(
        endpoint=f"pipeline:{step}",
        success=status == "completed",
        error=None,
        raw_response={"runId": run_id, "step": step, "status": status, "durationMs": 12},
    )


class TestPipelineProgress:
    def test_idle_without_history(self) -> None:
        progress = pipeline_progress(None, [])
        assert progress.is_processing is False
        assert progress.progress_percent == 0

    def test_idle_after_run_is_complete(self) -> None:
        progress = pipeline_progress(None, [StepResult(PipelineStep.FETCHING_API_DATA, "completed", 5)])
        assert progress.progress_percent == 100

    def test_type_detected_from_steps(self) -> None:
        done = [
            StepResult(PipelineStep.FETCHING_API_DATA, "completed", 5),
            StepResult(PipelineStep.DELETING_OLD_DATA, "completed", 5),
        ]
        progress = pipeline_progress(PipelineStep.DELETING_OLD_TRANSFORMER, done)

        assert progress.pipeline_type == PipelineType.HARD_REFRESH
        assert progress.total_steps == 9
        assert progress.progress_percent == 22

    def test_percent_capped_while_processing(self) -> None:
        done = [StepResult(step.step, "completed", 1) for step in PIPELINE_CONFIGS[PipelineType.SOFT_REFRESH]]
        progress = pipeline_progress(PipelineStep.SAVING_CHART_CONFIG, done)
        assert progress.progress_percent == 95

    def test_latest_run_steps_stop_at_previous_run(self, monkeypatch: pytest.MonkeyPatch) -> None:
        logs = [
            _log(PipelineStep.SAVING_TIMESERIES_DATA, "run-2"),
            _log(PipelineStep.FETCHING_API_DATA, "run-2"),
            _log(PipelineStep.SAVING_CHART_CONFIG, "run-1"),
        ]
        monkeypatch.setattr(
            pipeline_runner,
            "MetricDataRepository",
            lambda session: SimpleNamespace(recent_pipeline_logs=lambda metric_id: logs),
        )

        steps = load_latest_run_steps(object(), uuid.uuid4())

        assert [step.step for step in steps] == [PipelineStep.FETCHING_API_DATA, PipelineStep.SAVING_TIMESERIES_DATA]
        assert steps[0].duration_ms == 12
