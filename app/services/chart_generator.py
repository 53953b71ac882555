"""
app/services/chart_generator.py

Chart transformer creation, execution and regeneration.

A chart transformer turns the metric's stored data points into a Recharts
config. Executed configs are stored on ``DashboardChart.chart_config``.
"""

from __future__ import annotations

import logging
import math
import uuid
from datetime import timezone
from typing import Any, Sequence

from sqlalchemy.orm import Session

from app.errors import BadRequestError, NotFoundError, PipelineError
from app.repositories.metric_data_repository import MetricDataRepository
from app.repositories.transformer_repository import TransformerRepository
from db.models.dashboard_chart import DashboardChart
from db.models.transformer import ChartTransformer
from llm_codegen.adapter import BaseLLMAdapter
from llm_codegen.generator import generate_chart_transformer_code
from llm_codegen.prompts import ChartPromptInput, DataStats
from sandbox import executor
from sandbox.executor import DataPoint, ExecutionResult

logger = logging.getLogger(__name__)

MAX_CHART_POINTS = 1000
SECONDS_PER_DAY = 86400

# Keys set by users on the stored config; kept across re-execution.
PRESERVED_CONFIG_KEYS = ("valueLabelOverride",)


def load_data_points(session: Session, metric_id: uuid.UUID, limit: int = MAX_CHART_POINTS) -> list[DataPoint]:
    """
    Newest ``limit`` points of a metric, oldest first.
    """

    rows = MetricDataRepository(session).latest_points(metric_id, limit)
    return [
        DataPoint(
            timestamp=row.timestamp if row.timestamp.tzinfo else row.timestamp.replace(tzinfo=timezone.utc),
            value=row.value,
            dimensions=row.dimensions if isinstance(row.dimensions, dict) else None,
        )
        for row in rows
    ]


def calculate_data_stats(points: Sequence[DataPoint]) -> DataStats:
    """
    Summary statistics handed to the model alongside the point sample.

    Granularity is read from the average gap between points: 25+ days is
    monthly, 5+ days weekly, anything shorter daily.
    """

    if not points:
        return DataStats(
            total_count=0,
            date_from=None,
            date_to=None,
            days_covered=0,
            detected_granularity="daily",
            dimension_keys=[],
        )

    oldest = min(point.timestamp for point in points)
    newest = max(point.timestamp for point in points)
    span_seconds = (newest - oldest).total_seconds()

    granularity = "daily"
    if len(points) > 1:
        avg_gap_days = span_seconds / (len(points) - 1) / SECONDS_PER_DAY
        if avg_gap_days >= 25:
            granularity = "monthly"
        elif avg_gap_days >= 5:
            granularity = "weekly"

    dimension_keys: list[str] = []
    for point in points:
        for key in (point.dimensions or {}).keys():
            if key not in dimension_keys:
                dimension_keys.append(key)

    return DataStats(
        total_count=len(points),
        date_from=oldest.astimezone(timezone.utc).date().isoformat(),
        date_to=newest.astimezone(timezone.utc).date().isoformat(),
        days_covered=math.ceil(span_seconds / SECONDS_PER_DAY),
        detected_granularity=granularity,
        dimension_keys=dimension_keys,
    )


def _preferences(
    chart_type: str,
    date_range: str,
    aggregation: str,
    cadence: str | None = None,
    selected_dimension: str | None = None,
) -> dict[str, Any]:
    preferences: dict[str, Any] = {
        "chartType": chart_type,
        "dateRange": date_range,
        "aggregation": aggregation,
    }
    if cadence:
        preferences["cadence"] = cadence
    if selected_dimension:
        preferences["selectedDimension"] = selected_dimension
    return preferences


def _store_chart_config(chart: DashboardChart, config: dict[str, Any], chart_type: str | None = None) -> None:
    previous = chart.chart_config or {}
    merged = dict(config)
    for key in PRESERVED_CONFIG_KEYS:
        if key in previous and key not in merged:
            merged[key] = previous[key]
    chart.chart_config = merged
    if chart_type is not None:
        chart.chart_type = chart_type


def _get_chart(session: Session, dashboard_chart_id: uuid.UUID) -> DashboardChart | None:
    return session.get(DashboardChart, dashboard_chart_id)


def _generate_and_test(
    *,
    metric_name: str,
    metric_description: str,
    points: list[DataPoint],
    chart_type: str,
    date_range: str,
    aggregation: str,
    cadence: str | None,
    selected_dimension: str | None,
    user_prompt: str | None,
    adapter: BaseLLMAdapter | None,
) -> tuple[str, ExecutionResult]:
    generated = generate_chart_transformer_code(
        ChartPromptInput(
            metric_name=metric_name,
            metric_description=metric_description,
            sample_data_points=[point.to_json() for point in points],
            chart_type=chart_type,
            date_range=date_range,
            aggregation=aggregation,
            user_prompt=user_prompt,
            data_stats=calculate_data_stats(points),
            cadence=cadence,
            selected_dimension=selected_dimension,
        ),
        adapter=adapter,
    )
    result = executor.test_chart_transformer(
        generated.code,
        points,
        _preferences(chart_type, date_range, aggregation, cadence, selected_dimension),
    )
    return generated.code, result


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


def create_chart_transformer(
    session: Session,
    *,
    dashboard_chart_id: uuid.UUID,
    metric_name: str,
    metric_description: str,
    chart_type: str = "line",
    cadence: str = "DAILY",
    date_range: str = "all",
    aggregation: str = "none",
    user_prompt: str | None = None,
    selected_dimension: str | None = None,
    adapter: BaseLLMAdapter | None = None,
) -> ChartTransformer:
    """
    Generate a chart transformer from the metric's stored data points.

    Raises
    ------
    NotFoundError
        When the dashboard chart does not exist.
    BadRequestError
        When the metric has no data points.
    PipelineError
        When the generated transformer fails its test run.
    """

    chart = _get_chart(session, dashboard_chart_id)
    if chart is None:
        raise NotFoundError("DashboardChart not found")

    points = load_data_points(session, chart.metric_id)
    if not points:
        raise BadRequestError("No data points available to generate chart")

    code, result = _generate_and_test(
        metric_name=metric_name,
        metric_description=metric_description,
        points=points,
        chart_type=chart_type,
        date_range=date_range,
        aggregation=aggregation,
        cadence=cadence,
        selected_dimension=selected_dimension,
        user_prompt=user_prompt,
        adapter=adapter,
    )
    if not result.success:
        raise PipelineError(f"Failed to generate working chart transformer: {result.error}")

    transformer = TransformerRepository(session).save_chart(
        dashboard_chart_id=dashboard_chart_id,
        transformer_code=code,
        chart_type=chart_type,
        cadence=cadence,
        date_range=date_range,
        aggregation=aggregation,
        user_prompt=user_prompt,
        selected_dimension=selected_dimension,
    )
    _store_chart_config(chart, result.data, chart_type)
    session.commit()
    logger.info(
        "Created chart transformer dashboard_chart_id=%s chart_type=%s version=%s",
        dashboard_chart_id,
        chart_type,
        transformer.version,
    )
    return transformer


def execute_chart_transformer_with_data(
    session: Session,
    *,
    dashboard_chart_id: uuid.UUID,
    transformer_code: str,
    chart_type: str,
    cadence: str | None,
    data_points: list[DataPoint],
    date_range: str = "all",
    aggregation: str = "none",
    selected_dimension: str | None = None,
) -> ExecutionResult:
    """
    Run existing chart code on already-loaded points and store the config.
    """

    result = executor.execute_chart_transformer(
        transformer_code,
        data_points,
        _preferences(chart_type, date_range, aggregation, cadence, selected_dimension),
    )
    if not result.success:
        return result

    chart = _get_chart(session, dashboard_chart_id)
    if chart is None:
        return ExecutionResult(success=False, error="DashboardChart not found")
    _store_chart_config(chart, result.data)
    session.commit()
    return result


def execute_chart_transformer_for_dashboard_chart(
    session: Session,
    dashboard_chart_id: uuid.UUID,
    data_points: list[DataPoint] | None = None,
) -> ExecutionResult:
    """
    Re-run a chart's stored transformer with its saved preferences.

    Callers refreshing several charts of one metric pass ``data_points`` so
    the points are loaded once.
    """

    chart = _get_chart(session, dashboard_chart_id)
    if chart is None:
        return ExecutionResult(success=False, error="DashboardChart not found")

    transformer = chart.chart_transformer
    if transformer is None:
        return ExecutionResult(success=False, error="No chart transformer found for this chart")

    return execute_chart_transformer_with_data(
        session,
        dashboard_chart_id=chart.id,
        transformer_code=transformer.transformer_code,
        chart_type=transformer.chart_type,
        cadence=transformer.cadence,
        data_points=data_points if data_points is not None else load_data_points(session, chart.metric_id),
        date_range=transformer.date_range or "all",
        aggregation=transformer.aggregation or "none",
        selected_dimension=transformer.selected_dimension,
    )


def regenerate_chart_transformer(
    session: Session,
    *,
    dashboard_chart_id: uuid.UUID,
    chart_type: str | None = None,
    date_range: str | None = None,
    aggregation: str | None = None,
    cadence: str | None = None,
    selected_dimension: str | None = None,
    user_prompt: str | None = None,
    adapter: BaseLLMAdapter | None = None,
) -> ExecutionResult:
    """
    Regenerate chart code with new preferences, falling back to the
    current transformer's settings for anything not given.
    """

    chart = _get_chart(session, dashboard_chart_id)
    if chart is None:
        return ExecutionResult(success=False, error="DashboardChart not found")

    current = chart.chart_transformer
    chart_type = chart_type or (current.chart_type if current else None) or "line"
    date_range = date_range or (current.date_range if current else None) or "all"
    aggregation = aggregation or (current.aggregation if current else None) or "none"
    cadence = cadence or (current.cadence if current else None) or "DAILY"
    if selected_dimension is None and current is not None:
        selected_dimension = current.selected_dimension

    metric = chart.metric
    points = load_data_points(session, chart.metric_id)
    code, result = _generate_and_test(
        metric_name=metric.name,
        metric_description=metric.description or "",
        points=points,
        chart_type=chart_type,
        date_range=date_range,
        aggregation=aggregation,
        cadence=cadence,
        selected_dimension=selected_dimension,
        user_prompt=user_prompt,
        adapter=adapter,
    )
    if not result.success:
        return ExecutionResult(success=False, error=f"Failed to generate chart: {result.error}")

    TransformerRepository(session).save_chart(
        dashboard_chart_id=dashboard_chart_id,
        transformer_code=code,
        chart_type=chart_type,
        cadence=cadence,
        date_range=date_range,
        aggregation=aggregation,
        user_prompt=user_prompt,
        selected_dimension=selected_dimension,
    )
    _store_chart_config(chart, result.data, chart_type)
    session.commit()
    logger.info("Regenerated chart transformer dashboard_chart_id=%s chart_type=%s", dashboard_chart_id, chart_type)
    return result
