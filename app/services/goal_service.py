"""
app/services/goal_service.py

Goal reads and writes plus dashboard enrichment with goal progress.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.errors import NotFoundError
from app.services.cache import invalidate_dashboard_cache
from db.models.dashboard_chart import DashboardChart
from db.models.metric import Metric
from db.models.metric_goal import MetricGoal
from db.models.transformer import ChartTransformer, DataIngestionTransformer
from goals.extraction import (
    calculate_suggested_range,
    chart_from_config,
    extract_all_values,
    extract_current_value,
    get_primary_key,
)
from goals.progress import calculate_goal_progress
from goals.types import GoalInput, GoalProgress, SuggestedRange

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnrichedChart:
    chart: DashboardChart
    goal_progress: GoalProgress | None
    value_label: str | None
    data_description: str | None


@dataclass(frozen=True)
class GoalOverview:
    goal: MetricGoal | None
    goal_progress: GoalProgress | None
    cadence: str | None
    current_value: float | None
    current_value_label: str | None
    value_label: str | None
    suggested_range: SuggestedRange


def resolve_cadence(metric: Metric, chart_transformer: ChartTransformer | None) -> str | None:
    """
    Manual metrics carry their cadence in ``endpoint_config``; integration
    metrics use the chart transformer's cadence.
    """

    if metric.is_manual:
        config = metric.endpoint_config or {}
        cadence = config.get("cadence")
        return cadence.upper() if isinstance(cadence, str) and cadence else None
    if chart_transformer is not None and chart_transformer.cadence:
        return chart_transformer.cadence.upper()
    return None


def goal_input_from_model(goal: MetricGoal) -> GoalInput:
    # Stored threshold is a percentage; the engine expects a fraction.
    threshold = goal.on_track_threshold / 100 if goal.on_track_threshold is not None else None
    return GoalInput(
        goal_type=goal.goal_type,
        target_value=goal.target_value,
        baseline_value=goal.baseline_value,
        baseline_timestamp=goal.baseline_timestamp,
        on_track_threshold=threshold,
    )


def compute_goal_progress(
    goal: MetricGoal | None,
    cadence: str | None,
    chart_config: dict[str, Any] | None,
    selected_dimension: str | None = None,
    now: datetime | None = None,
) -> GoalProgress | None:
    if goal is None or not cadence:
        return None
    chart = chart_from_config(chart_config, selected_dimension)
    return calculate_goal_progress(goal_input_from_model(goal), cadence, chart, now=now)


def resolve_value_label(chart_config: dict[str, Any] | None, fallback: str | None) -> str | None:
    config = chart_config or {}
    return config.get("valueLabelOverride") or config.get("valueLabel") or fallback


def _ingestion_transformers(session: Session, metric_ids: Sequence[uuid.UUID]) -> dict[str, DataIngestionTransformer]:
    if not metric_ids:
        return {}
    keys = sorted({str(metric_id) for metric_id in metric_ids})
    stmt = select(DataIngestionTransformer).where(DataIngestionTransformer.template_id.in_(keys))
    return {row.template_id: row for row in session.execute(stmt).scalars().all()}


def enrich_charts_with_goal_progress(
    session: Session,
    charts: Sequence[DashboardChart],
    now: datetime | None = None,
) -> list[EnrichedChart]:
    """
    Attach value label, data description and goal progress to each chart.

    Labels prefer the chart config and fall back to the metric's ingestion
    transformer.
    """

    transformers = _ingestion_transformers(session, [chart.metric_id for chart in charts])
    enriched: list[EnrichedChart] = []
    for chart in charts:
        config = chart.chart_config or {}
        ingestion = transformers.get(str(chart.metric_id))
        value_label = resolve_value_label(config, ingestion.value_label if ingestion else None)
        data_description = config.get("description") or (ingestion.data_description if ingestion else None)

        transformer = chart.chart_transformer
        cadence = resolve_cadence(chart.metric, transformer)
        progress = compute_goal_progress(
            chart.metric.goal,
            cadence,
            config,
            transformer.selected_dimension if transformer else None,
            now=now,
        )
        enriched.append(
            EnrichedChart(
                chart=chart,
                goal_progress=progress,
                value_label=value_label,
                data_description=data_description,
            )
        )
    return enriched


# ---------------------------------------------------------------------------
# Goal CRUD
# ---------------------------------------------------------------------------


def _first_chart(metric: Metric) -> DashboardChart | None:
    return metric.dashboard_charts[0] if metric.dashboard_charts else None


def get_goal_overview(session: Session, metric: Metric, now: datetime | None = None) -> GoalOverview:
    chart = _first_chart(metric)
    config = chart.chart_config if chart is not None else None
    transformer = chart.chart_transformer if chart is not None else None
    selected_dimension = transformer.selected_dimension if transformer else None
    cadence = resolve_cadence(metric, transformer)

    ingestion = session.execute(
        select(DataIngestionTransformer).where(DataIngestionTransformer.template_id == str(metric.id))
    ).scalars().first()
    value_label = resolve_value_label(config, ingestion.value_label if ingestion else None)

    chart_data = chart_from_config(config, selected_dimension)
    current_value = extract_current_value(chart_data)
    current_value_label = None
    if current_value is not None:
        primary_key = get_primary_key(chart_data)
        series_config = (config or {}).get("chartConfig") or {}
        series = series_config.get(primary_key) if isinstance(series_config, dict) else None
        series_label = series.get("label") if isinstance(series, dict) else None
        current_value_label = series_label or value_label or primary_key

    goal = metric.goal
    goal_type = goal.goal_type if goal is not None else "ABSOLUTE"
    suggested_range = calculate_suggested_range(goal_type, current_value, extract_all_values(chart_data))

    return GoalOverview(
        goal=goal,
        goal_progress=compute_goal_progress(goal, cadence, config, selected_dimension, now=now),
        cadence=cadence,
        current_value=current_value,
        current_value_label=current_value_label,
        value_label=value_label,
        suggested_range=suggested_range,
    )


def upsert_goal(
    session: Session,
    metric: Metric,
    *,
    goal_type: str,
    target_value: float,
    on_track_threshold: float | None = None,
) -> tuple[MetricGoal, GoalProgress | None]:
    """
    Create or update the metric's goal.

    The baseline is captured from the last chart point on create only, so
    later edits keep measuring growth from the original starting value.
    """

    chart = _first_chart(metric)
    config = chart.chart_config if chart is not None else None
    goal = metric.goal

    if goal is None:
        baseline = extract_current_value(chart_from_config(config))
        goal = MetricGoal(
            metric_id=metric.id,
            goal_type=goal_type,
            target_value=target_value,
            baseline_value=baseline,
            baseline_timestamp=datetime.now(timezone.utc) if baseline is not None else None,
        )
        if on_track_threshold is not None:
            goal.on_track_threshold = on_track_threshold
        session.add(goal)
        metric.goal = goal
    else:
        goal.goal_type = goal_type
        goal.target_value = target_value
        if on_track_threshold is not None:
            goal.on_track_threshold = on_track_threshold

    session.commit()
    session.refresh(goal)
    logger.info("Saved goal metric_id=%s goal_type=%s target=%s", metric.id, goal_type, target_value)

    transformer = chart.chart_transformer if chart is not None else None
    progress = compute_goal_progress(
        goal,
        resolve_cadence(metric, transformer),
        config,
        transformer.selected_dimension if transformer else None,
    )
    invalidate_dashboard_cache(metric.organization_id, str(metric.team_id) if metric.team_id else None)
    return goal, progress


def delete_goal(session: Session, metric: Metric) -> None:
    goal = metric.goal
    if goal is None:
        raise NotFoundError("Goal not found")
    session.delete(goal)
    session.commit()
    invalidate_dashboard_cache(metric.organization_id, str(metric.team_id) if metric.team_id else None)
