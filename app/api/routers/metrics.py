"""
app/api/routers/metrics.py

Integration metric endpoints.

Creating a metric stores the metric and its first dashboard chart in one
transaction, then runs the first ingestion and chart generation as a
background task. Clients poll ``/metrics/{id}/status`` for progress.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.api.dependencies import get_workspace, http_error
from app.domain.metric_templates import get_template
from app.domain.pipeline_steps import PipelineStep, get_step_display_name
from app.domain.workspace import WorkspaceContext
from app.errors import OrgPulseError
from app.repositories.metric_repository import MetricRepository
from app.schemas.metrics import (
    DashboardChartResponse,
    IntegrationDataPreviewResponse,
    MetricCreateRequest,
    MetricResponse,
    MetricStatusResponse,
    MetricUpdateRequest,
    PipelineStepResponse,
)
from app.services import data_pipeline
from app.services.authorization import (
    get_integration_and_verify_access,
    get_metric_and_verify_access,
    get_team_and_verify_access,
)
from app.services.background import run_background_task
from app.services.cache import invalidate_dashboard_cache
from app.services.data_fetching import DataFetchError, fetch_data
from app.services.pipeline_runner import load_latest_run_steps, pipeline_progress
from db.models.dashboard_chart import DashboardChart
from db.models.metric import Metric
from db.models.role import Role
from db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/metrics", tags=["metrics"])


def _team_key(metric: Metric) -> str | None:
    return str(metric.team_id) if metric.team_id else None


def _load_metric(db: Session, metric_id: uuid.UUID, workspace: WorkspaceContext) -> Metric:
    try:
        return get_metric_and_verify_access(db, metric_id, workspace)
    except OrgPulseError as exc:
        raise http_error(exc) from exc


@router.get("", response_model=list[MetricResponse])
def list_metrics(
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> list[MetricResponse]:
    stmt = select(Metric).where(Metric.organization_id == workspace.organization_id).order_by(Metric.name.asc())
    return [MetricResponse.model_validate(metric) for metric in db.execute(stmt).scalars().all()]


@router.get("/by-team/{team_id}", response_model=list[MetricResponse])
def list_metrics_by_team(
    team_id: uuid.UUID,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> list[MetricResponse]:
    metrics = MetricRepository(db).list_for_organization(workspace.organization_id, team_id=team_id)
    return [MetricResponse.model_validate(metric) for metric in sorted(metrics, key=lambda m: m.name)]


@router.get("/{metric_id}", response_model=MetricResponse)
def get_metric(
    metric_id: uuid.UUID,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> MetricResponse:
    return MetricResponse.model_validate(_load_metric(db, metric_id, workspace))


@router.post("", response_model=DashboardChartResponse, status_code=status.HTTP_201_CREATED)
def create_metric(
    body: MetricCreateRequest,
    background_tasks: BackgroundTasks,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> DashboardChartResponse:
    """
    Create an integration metric and start its first ingestion.

    Raises HTTP 404 when the template or integration does not exist and
    HTTP 403 when the integration or team belongs to another organization.
    """
    try:
        integration = get_integration_and_verify_access(db, body.connection_id, workspace)
        if body.team_id is not None:
            get_team_and_verify_access(db, body.team_id, workspace)
    except OrgPulseError as exc:
        raise http_error(exc) from exc

    template = get_template(body.template_id)
    if template is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Template not found: {body.template_id}",
        )

    position = MetricRepository(db).count_charts(workspace.organization_id)
    metric = Metric(
        organization_id=workspace.organization_id,
        team_id=body.team_id,
        integration_id=integration.id,
        template_id=body.template_id,
        name=body.name,
        description=body.description,
        endpoint_config=dict(body.endpoint_params),
        poll_frequency=template.default_poll_frequency,
        next_poll_at=datetime.now(timezone.utc),
        refresh_status=PipelineStep.FETCHING_API_DATA,
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
    logger.info(
        "Metric created metric_id=%s template_id=%s connection_id=%s",
        metric.id,
        body.template_id,
        body.connection_id,
    )

    team_key = _team_key(metric)
    invalidate_dashboard_cache(workspace.organization_id, team_key)
    background_tasks.add_task(
        run_background_task,
        metric.id,
        workspace.organization_id,
        team_key,
        data_pipeline.run_metric_creation,
    )
    return DashboardChartResponse.model_validate(chart)


@router.patch("/{metric_id}", response_model=MetricResponse)
def update_metric(
    metric_id: uuid.UUID,
    body: MetricUpdateRequest,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> MetricResponse:
    metric = _load_metric(db, metric_id, workspace)
    for field_name, value in body.model_dump(exclude_unset=True).items():
        setattr(metric, field_name, value)
    db.commit()
    db.refresh(metric)
    invalidate_dashboard_cache(workspace.organization_id, _team_key(metric))
    return MetricResponse.model_validate(metric)


@router.get("/{metric_id}/status", response_model=MetricStatusResponse)
def get_metric_status(
    metric_id: uuid.UUID,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> MetricStatusResponse:
    """
    Current pipeline step plus progress of the latest run.
    """
    metric = _load_metric(db, metric_id, workspace)
    progress = pipeline_progress(metric.refresh_status, load_latest_run_steps(db, metric.id))
    return MetricStatusResponse(
        metric_id=metric.id,
        refresh_status=metric.refresh_status,
        display_name=get_step_display_name(metric.refresh_status) if metric.refresh_status else None,
        last_error=metric.last_error,
        last_fetched_at=metric.last_fetched_at,
        is_processing=progress.is_processing,
        pipeline_type=progress.pipeline_type,
        completed_steps=[
            PipelineStepResponse(
                step=step.step,
                display_name=get_step_display_name(step.step),
                status=step.status,
                duration_ms=step.duration_ms,
            )
            for step in progress.completed_steps
        ],
        total_steps=progress.total_steps,
        progress_percent=progress.progress_percent,
    )


@router.delete("/{metric_id}")
def delete_metric(
    metric_id: uuid.UUID,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> dict[str, bool]:
    """
    Delete a metric that no role references.

    Raises HTTP 400 while roles still point at the metric.
    """
    metric = _load_metric(db, metric_id, workspace)
    role_count = db.execute(select(func.count(Role.id)).where(Role.metric_id == metric_id)).scalar_one()
    if role_count > 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot delete metric. It is used by {role_count} role(s).",
        )

    team_key = _team_key(metric)
    db.delete(metric)
    db.commit()
    invalidate_dashboard_cache(workspace.organization_id, team_key)
    logger.info("Metric deleted metric_id=%s", metric_id)
    return {"success": True}


@router.post("/{metric_id}/fetch-integration-data", response_model=IntegrationDataPreviewResponse)
def fetch_integration_data(
    metric_id: uuid.UUID,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> IntegrationDataPreviewResponse:
    """
    Fetch the provider payload for a metric without storing anything.
    """
    metric = _load_metric(db, metric_id, workspace)
    if metric.template_id is None or metric.integration is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This metric is not integration-backed",
        )

    template = get_template(metric.template_id)
    if template is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Metric template not found")

    params = {str(key): str(value) for key, value in (metric.endpoint_config or {}).items()}
    try:
        result = fetch_data(
            metric.integration.provider_id,
            metric.integration.connection_id,
            template.metric_endpoint,
            method=template.method,
            params=params,
            body=template.request_body,
        )
    except DataFetchError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    return IntegrationDataPreviewResponse(
        metric_id=metric.id,
        template_id=template.template_id,
        provider_id=metric.integration.provider_id,
        data=result.data,
    )
