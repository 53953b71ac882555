"""
app/domain/pipeline_steps.py

Pipeline step names, display names and per-pipeline step sequences.

Step names are stored in ``Metric.refresh_status`` while a pipeline runs,
so clients polling the status endpoint can render progress.
"""

from __future__ import annotations

from dataclasses import dataclass


class PipelineStep:
    ADDING_METRIC = "adding-metric"
    FETCHING_API_DATA = "fetching-api-data"
    DELETING_OLD_DATA = "deleting-old-data"
    DELETING_OLD_TRANSFORMER = "deleting-old-transformer"
    GENERATING_INGESTION_TRANSFORMER = "generating-ingestion-transformer"
    EXECUTING_INGESTION_TRANSFORMER = "executing-ingestion-transformer"
    SAVING_TIMESERIES_DATA = "saving-timeseries-data"
    GENERATING_CHART_TRANSFORMER = "generating-chart-transformer"
    EXECUTING_CHART_TRANSFORMER = "executing-chart-transformer"
    SAVING_CHART_CONFIG = "saving-chart-config"


class PipelineType:
    CREATE = "create"
    SOFT_REFRESH = "soft-refresh"
    HARD_REFRESH = "hard-refresh"
    INGESTION_ONLY = "ingestion-only"
    CHART_ONLY = "chart-only"


PIPELINE_STEPS: dict[str, str] = {
    PipelineStep.ADDING_METRIC: "Adding metric...",
    PipelineStep.FETCHING_API_DATA: "Fetching data from API...",
    PipelineStep.DELETING_OLD_DATA: "Clearing old data points...",
    PipelineStep.DELETING_OLD_TRANSFORMER: "Removing old transformer...",
    PipelineStep.GENERATING_INGESTION_TRANSFORMER: "Generating data transformer...",
    PipelineStep.EXECUTING_INGESTION_TRANSFORMER: "Processing API response...",
    PipelineStep.SAVING_TIMESERIES_DATA: "Saving metric data...",
    PipelineStep.GENERATING_CHART_TRANSFORMER: "Generating chart configuration...",
    PipelineStep.EXECUTING_CHART_TRANSFORMER: "Creating visualization...",
    PipelineStep.SAVING_CHART_CONFIG: "Finalizing...",
}


@dataclass(frozen=True)
class StepConfig:
    step: str
    display_name: str


def _steps(*names: str) -> tuple[StepConfig, ...]:
    return tuple(StepConfig(step=name, display_name=PIPELINE_STEPS[name]) for name in names)


PIPELINE_CONFIGS: dict[str, tuple[StepConfig, ...]] = {
    PipelineType.CREATE: _steps(
        PipelineStep.FETCHING_API_DATA,
        PipelineStep.GENERATING_INGESTION_TRANSFORMER,
        PipelineStep.EXECUTING_INGESTION_TRANSFORMER,
        PipelineStep.SAVING_TIMESERIES_DATA,
        PipelineStep.GENERATING_CHART_TRANSFORMER,
        PipelineStep.EXECUTING_CHART_TRANSFORMER,
        PipelineStep.SAVING_CHART_CONFIG,
    ),
    PipelineType.SOFT_REFRESH: _steps(
        PipelineStep.FETCHING_API_DATA,
        PipelineStep.EXECUTING_INGESTION_TRANSFORMER,
        PipelineStep.SAVING_TIMESERIES_DATA,
        PipelineStep.EXECUTING_CHART_TRANSFORMER,
        PipelineStep.SAVING_CHART_CONFIG,
    ),
    PipelineType.HARD_REFRESH: _steps(
        PipelineStep.FETCHING_API_DATA,
        PipelineStep.DELETING_OLD_DATA,
        PipelineStep.DELETING_OLD_TRANSFORMER,
        PipelineStep.GENERATING_INGESTION_TRANSFORMER,
        PipelineStep.EXECUTING_INGESTION_TRANSFORMER,
        PipelineStep.SAVING_TIMESERIES_DATA,
        PipelineStep.GENERATING_CHART_TRANSFORMER,
        PipelineStep.EXECUTING_CHART_TRANSFORMER,
        PipelineStep.SAVING_CHART_CONFIG,
    ),
    PipelineType.INGESTION_ONLY: _steps(
        PipelineStep.FETCHING_API_DATA,
        PipelineStep.DELETING_OLD_TRANSFORMER,
        PipelineStep.GENERATING_INGESTION_TRANSFORMER,
        PipelineStep.EXECUTING_INGESTION_TRANSFORMER,
        PipelineStep.SAVING_TIMESERIES_DATA,
        PipelineStep.EXECUTING_CHART_TRANSFORMER,
        PipelineStep.SAVING_CHART_CONFIG,
    ),
    PipelineType.CHART_ONLY: _steps(
        PipelineStep.DELETING_OLD_TRANSFORMER,
        PipelineStep.GENERATING_CHART_TRANSFORMER,
        PipelineStep.EXECUTING_CHART_TRANSFORMER,
        PipelineStep.SAVING_CHART_CONFIG,
    ),
}


def get_step_display_name(step: str) -> str:
    return PIPELINE_STEPS.get(step, step)


def get_pipeline_step_count(pipeline_type: str) -> int:
    return len(PIPELINE_CONFIGS[pipeline_type])


def detect_pipeline_type(completed_steps: list[str]) -> str:
    """
    Infer the pipeline type from the step names seen so far.

    - no fetch step: chart-only
    - data deletion: hard-refresh
    - transformer deletion plus ingestion generation: ingestion-only
    - ingestion generation without deletion: create
    - otherwise: soft-refresh
    """

    steps = set(completed_steps)

    if PipelineStep.FETCHING_API_DATA not in steps:
        return PipelineType.CHART_ONLY
    if PipelineStep.DELETING_OLD_DATA in steps:
        return PipelineType.HARD_REFRESH
    if PipelineStep.GENERATING_INGESTION_TRANSFORMER in steps:
        if PipelineStep.DELETING_OLD_TRANSFORMER in steps:
            return PipelineType.INGESTION_ONLY
        return PipelineType.CREATE
    return PipelineType.SOFT_REFRESH
