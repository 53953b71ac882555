"""
app/api/routers/pipeline.py

Pipeline triggers and pipeline state for a metric.

Every trigger records its first step in ``refresh_status`` before
returning, so a client polling the status endpoint sees progress at once.
The work itself runs as a background task.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.dependencies import get_workspace, http_error
from app.domain.pipeline_steps import PipelineStep
from app.domain.workspace import WorkspaceContext
from app.errors import OrgPulseError
from app.repositories.metric_data_repository import MetricDataRepository
from app.repositories.transformer_repository import TransformerRepository
from app.schemas.transformers import (
    DimensionsResponse,
    PipelineStartedResponse,
    RegenerateChartRequest,
    TransformerInfoResponse,
)
from app.services import data_pipeline
from app.services.authorization import get_metric_and_verify_access
from app.services.background import start_pipeline
from db.models.metric import Metric
from db.session import get_db

router = APIRouter(prefix="/pipeline/{metric_id}", tags=["pipeline"])


def _load_metric(db: Session, metric_id: uuid.UUID, workspace: WorkspaceContext) -> Metric:
    try:
        return get_metric_and_verify_access(db, metric_id, workspace)
    except OrgPulseError as exc:
        raise http_error(exc) from exc


def _require_integration(metric: Metric, detail: str) -> None:
    if metric.template_id is None or metric.integration_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)
    if metric.integration is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Integration not found")


@router.post("/refresh", response_model=PipelineStartedResponse)
def refresh(
    metric_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> PipelineStartedResponse:
    """
    Soft refresh: fetch new data and re-run existing transformers.
    """
    metric = _load_metric(db, metric_id, workspace)
    _require_integration(metric, "Manual metrics cannot be refreshed from an API")
    start_pipeline(
        db,
        background_tasks,
        metric,
        PipelineStep.FETCHING_API_DATA,
        data_pipeline.refresh_metric_and_charts,
        False,
    )
    return PipelineStartedResponse()


@router.post("/regenerate", response_model=PipelineStartedResponse)
def regenerate(
    metric_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> PipelineStartedResponse:
    """
    Hard refresh: delete data and transformers, then regenerate everything.
    """
    metric = _load_metric(db, metric_id, workspace)
    _require_integration(metric, "Manual metrics cannot be refreshed from an API")
    start_pipeline(
        db,
        background_tasks,
        metric,
        PipelineStep.DELETING_OLD_DATA,
        data_pipeline.refresh_metric_and_charts,
        True,
    )
    return PipelineStartedResponse()


@router.post("/regenerate-ingestion", response_model=PipelineStartedResponse)
def regenerate_ingestion(
    metric_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> PipelineStartedResponse:
    metric = _load_metric(db, metric_id, workspace)
    _require_integration(metric, "Manual metrics don't have ingestion transformers")
    start_pipeline(
        db,
        background_tasks,
        metric,
        PipelineStep.DELETING_OLD_TRANSFORMER,
        data_pipeline.regenerate_ingestion_only,
    )
    return PipelineStartedResponse()


@router.post("/regenerate-chart", response_model=PipelineStartedResponse)
def regenerate_chart(
    metric_id: uuid.UUID,
    body: RegenerateChartRequest,
    background_tasks: BackgroundTasks,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> PipelineStartedResponse:
    """
    Regenerate the chart transformer from stored points.

    Raises HTTP 400 when the metric has no data points yet.
    """
    metric = _load_metric(db, metric_id, workspace)
    if not metric.dashboard_charts:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Dashboard chart not found")
    if MetricDataRepository(db).count_points(metric.id) == 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No data points to chart - run a data refresh first",
        )

    start_pipeline(
        db,
        background_tasks,
        metric,
        PipelineStep.DELETING_OLD_TRANSFORMER,
        data_pipeline.regenerate_chart_only,
        chart_type=body.chart_type,
        cadence=body.cadence,
        selected_dimension=body.selected_dimension,
    )
    return PipelineStartedResponse()


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


@router.get("/dimensions", response_model=DimensionsResponse)
def get_available_dimensions(
    metric_id: uuid.UUID,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> DimensionsResponse:
    metric = _load_metric(db, metric_id, workspace)
    return DimensionsResponse(dimensions=MetricDataRepository(db).dimension_keys(metric.id))


@router.get("/info", response_model=TransformerInfoResponse)
def get_transformer_info(
    metric_id: uuid.UUID,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> TransformerInfoResponse:
    metric = _load_metric(db, metric_id, workspace)
    transformers = TransformerRepository(db)
    ingestion = None if metric.is_manual else transformers.get_ingestion(metric.id)
    chart_transformers = transformers.list_charts_for_metric(metric.id)
    chart = chart_transformers[0] if chart_transformers else None
    summary = MetricDataRepository(db).summarize(metric.id)
    return TransformerInfoResponse(
        metric_id=metric.id,
        is_manual=metric.is_manual,
        has_ingestion_transformer=ingestion is not None,
        has_chart_transformer=chart is not None,
        ingestion_updated_at=ingestion.updated_at if ingestion is not None else None,
        chart_updated_at=chart.updated_at if chart is not None else None,
        data_point_count=summary.count,
        first_data_point_at=summary.first_timestamp,
        last_data_point_at=summary.last_timestamp,
        refresh_status=metric.refresh_status,
        last_error=metric.last_error,
    )
