"""
app/api/routers/manual_metrics.py

Manual metrics: user-entered metrics with no integration behind them.

No data is fetched at creation. Check-ins upsert data points by timestamp
and the chart is rebuilt on request.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.api.dependencies import get_workspace, http_error
from app.domain.workspace import WorkspaceContext
from app.errors import OrgPulseError
from app.repositories.metric_data_repository import DataPointInput, MetricDataRepository
from app.repositories.metric_repository import MetricRepository
from app.schemas.metrics import (
    AddDataPointsRequest,
    AddDataPointsResponse,
    DashboardChartResponse,
    DataPointResponse,
    ManualMetricCreateRequest,
    ManualMetricResponse,
    ManualMetricRoleResponse,
    ManualMetricsByCadenceResponse,
    MetricResponse,
)
from app.schemas.transformers import TransformRunResponse
from app.services import data_pipeline
from app.services.authorization import get_metric_and_verify_access, get_team_and_verify_access
from app.services.cache import invalidate_dashboard_cache
from db.models.dashboard_chart import DashboardChart
from db.models.metric import Metric, PollFrequency
from db.models.role import Role
from db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/manual-metrics", tags=["manual-metrics"])

RECENT_POINTS = 10
DEFAULT_CHECK_IN_CADENCE = "weekly"


def _manual_metric_response(db: Session, metric: Metric, roles: list[Role] | None = None) -> ManualMetricResponse:
    points = MetricDataRepository(db).list_points(metric.id, limit=RECENT_POINTS, descending=True)
    role_rows = roles if roles is not None else metric.roles
    return ManualMetricResponse(
        metric=MetricResponse.model_validate(metric),
        recent_data_points=[DataPointResponse.model_validate(point) for point in points],
        dashboard_chart_id=metric.dashboard_charts[0].id if metric.dashboard_charts else None,
        roles=[
            ManualMetricRoleResponse(id=role.id, title=role.title, team_id=role.team.id, team_name=role.team.name)
            for role in role_rows
        ],
    )


@router.post("", response_model=DashboardChartResponse, status_code=status.HTTP_201_CREATED)
def create_manual_metric(
    body: ManualMetricCreateRequest,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> DashboardChartResponse:
    try:
        get_team_and_verify_access(db, body.team_id, workspace)
    except OrgPulseError as exc:
        raise http_error(exc) from exc

    endpoint_config: dict[str, str] = {
        "type": "manual",
        "unitType": body.unit_type,
        "cadence": body.cadence,
    }
    if body.start_date is not None:
        endpoint_config["startDate"] = body.start_date.isoformat()
    if body.end_date is not None:
        endpoint_config["endDate"] = body.end_date.isoformat()

    position = MetricRepository(db).count_charts(workspace.organization_id)
    metric = Metric(
        organization_id=workspace.organization_id,
        team_id=body.team_id,
        integration_id=None,
        template_id=None,
        name=body.name,
        description=body.description,
        endpoint_config=endpoint_config,
        poll_frequency=PollFrequency.MANUAL,
        next_poll_at=None,
    )
    chart = DashboardChart(
        organization_id=workspace.organization_id,
        metric=metric,
        chart_type="line",
        chart_config={},
        size="medium",
        position=position,
    )
    db.add_all([metric, chart])
    db.commit()
    db.refresh(chart)
    logger.info("Manual metric created metric_id=%s cadence=%s", metric.id, body.cadence)

    invalidate_dashboard_cache(workspace.organization_id, str(body.team_id))
    return DashboardChartResponse.model_validate(chart)


@router.post("/{metric_id}/data-points", response_model=AddDataPointsResponse)
def add_data_points(
    metric_id: uuid.UUID,
    body: AddDataPointsRequest,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> AddDataPointsResponse:
    """
    Upsert check-in values by timestamp.

    Raises HTTP 400 for integration-backed metrics.
    """
    try:
        metric = get_metric_and_verify_access(db, metric_id, workspace)
    except OrgPulseError as exc:
        raise http_error(exc) from exc

    if not metric.is_manual:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Can only add data points to manual metrics",
        )

    rows = [DataPointInput(timestamp=point.timestamp, value=point.value) for point in body.data_points]
    saved = MetricDataRepository(db).upsert_points(metric.id, rows)
    metric.last_fetched_at = datetime.now(timezone.utc)
    db.commit()
    logger.info("Manual data points saved metric_id=%s count=%s", metric_id, saved)
    return AddDataPointsResponse(success=True, saved_count=saved)


@router.post("/{metric_id}/update-chart", response_model=TransformRunResponse)
def update_chart(
    metric_id: uuid.UUID,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> TransformRunResponse:
    """
    Re-run the chart transformer on stored check-ins, generating one the
    first time.
    """
    try:
        metric = get_metric_and_verify_access(db, metric_id, workspace)
        result = data_pipeline.update_manual_metric_chart(db, metric.id)
    except OrgPulseError as exc:
        raise http_error(exc) from exc

    invalidate_dashboard_cache(workspace.organization_id, str(metric.team_id) if metric.team_id else None)
    return TransformRunResponse(
        success=result.success,
        data_point_count=result.data_point_count,
        error=result.error,
    )


@router.get("/for-user/{user_id}", response_model=ManualMetricsByCadenceResponse)
def get_manual_metrics_for_user(
    user_id: str,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> ManualMetricsByCadenceResponse:
    """
    Manual metrics reachable through the user's roles, grouped by check-in
    cadence. Unknown cadences are treated as weekly.
    """
    stmt = (
        select(Role)
        .join(Metric, Metric.id == Role.metric_id)
        .where(
            Role.assigned_user_id == user_id,
            Metric.organization_id == workspace.organization_id,
            Metric.integration_id.is_(None),
        )
        .options(selectinload(Role.metric), selectinload(Role.team))
    )

    grouped = ManualMetricsByCadenceResponse()
    for role in db.execute(stmt).scalars().all():
        metric = role.metric
        if metric is None:
            continue
        cadence = (metric.endpoint_config or {}).get("cadence") or DEFAULT_CHECK_IN_CADENCE
        bucket = grouped.daily if cadence == "daily" else grouped.monthly if cadence == "monthly" else grouped.weekly
        bucket.append(_manual_metric_response(db, metric, roles=[role]))
    return grouped


@router.get("/{metric_id}", response_model=ManualMetricResponse)
def get_manual_metric(
    metric_id: uuid.UUID,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> ManualMetricResponse:
    stmt = select(Metric).where(
        Metric.id == metric_id,
        Metric.organization_id == workspace.organization_id,
        Metric.integration_id.is_(None),
    )
    metric = db.execute(stmt).scalars().first()
    if metric is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Manual metric not found")
    return _manual_metric_response(db, metric)
