"""
app/api/routers/transformers.py

Transformer inspection and execution, plus raw data point reads.

Ingestion transformers are addressed by metric, chart transformers by
dashboard chart.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.dependencies import get_workspace, http_error
from app.domain.metric_templates import get_template
from app.domain.workspace import WorkspaceContext
from app.errors import OrgPulseError
from app.repositories.metric_data_repository import MetricDataRepository
from app.repositories.transformer_repository import TransformerRepository
from app.schemas.metrics import DataPointResponse
from app.schemas.transformers import (
    ChartTransformerCreateRequest,
    ChartTransformerRegenerateRequest,
    ChartTransformerResponse,
    DataPointPageResponse,
    DataPointSummaryResponse,
    ExecutionResultResponse,
    IngestionTransformerResponse,
    TransformRunResponse,
)
from app.services import chart_generator, data_pipeline
from app.services.authorization import get_metric_and_verify_access, verify_resource_access
from app.services.cache import invalidate_dashboard_cache
from db.models.dashboard_chart import DashboardChart
from db.models.metric import Metric
from db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/transformers", tags=["transformers"])

PREVIEW_POINTS = 10
MAX_PAGE_SIZE = 100


def _load_metric(db: Session, metric_id: uuid.UUID, workspace: WorkspaceContext) -> Metric:
    try:
        return get_metric_and_verify_access(db, metric_id, workspace)
    except OrgPulseError as exc:
        raise http_error(exc) from exc


def _load_chart(db: Session, dashboard_chart_id: uuid.UUID, workspace: WorkspaceContext) -> DashboardChart:
    chart = db.get(DashboardChart, dashboard_chart_id)
    if chart is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Dashboard chart not found")
    try:
        verify_resource_access(workspace, chart.organization_id, "dashboard chart")
    except OrgPulseError as exc:
        raise http_error(exc) from exc
    return chart


def _run_response(result: data_pipeline.TransformResult) -> TransformRunResponse:
    return TransformRunResponse(
        success=result.success,
        data_point_count=len(result.data_points),
        data_points=[point.to_json() for point in result.data_points[:PREVIEW_POINTS]],
        error=result.error,
    )


def _invalidate_for(chart: DashboardChart) -> None:
    metric = chart.metric
    invalidate_dashboard_cache(chart.organization_id, str(metric.team_id) if metric.team_id else None)


# ---------------------------------------------------------------------------
# Ingestion transformers
# ---------------------------------------------------------------------------


@router.get("/metrics/{metric_id}/ingestion", response_model=IngestionTransformerResponse)
def get_ingestion_transformer(
    metric_id: uuid.UUID,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> IngestionTransformerResponse:
    metric = _load_metric(db, metric_id, workspace)
    transformer = TransformerRepository(db).get_ingestion(metric.id)
    if transformer is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transformer not found")
    return IngestionTransformerResponse.model_validate(transformer)


@router.post("/metrics/{metric_id}/execute", response_model=TransformRunResponse)
def execute_ingestion_transformer(
    metric_id: uuid.UUID,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> TransformRunResponse:
    """
    Fetch and transform with the existing ingestion transformer.
    """
    metric = _load_metric(db, metric_id, workspace)
    result = data_pipeline.execute_transformer_for_polling(db, metric)
    if result.success:
        metric.last_fetched_at = datetime.now(timezone.utc)
        metric.last_error = None
        db.commit()
    return _run_response(result)


@router.post("/metrics/{metric_id}/refresh-data", response_model=TransformRunResponse)
def refresh_metric_data(
    metric_id: uuid.UUID,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> TransformRunResponse:
    """
    Fetch and transform, generating the ingestion transformer if missing.
    """
    metric = _load_metric(db, metric_id, workspace)
    if metric.template_id is None or metric.integration is None:
        return TransformRunResponse(success=False, error="Metric not found or not configured")

    template = get_template(metric.template_id)
    try:
        result = data_pipeline.ingest_metric_data(
            db,
            metric_id=metric.id,
            template_id=metric.template_id,
            integration_id=metric.integration.provider_id,
            connection_id=metric.integration.connection_id,
            endpoint_config={str(k): str(v) for k, v in (metric.endpoint_config or {}).items() if v is not None},
            is_time_series=template.is_time_series if template is not None else True,
        )
    except OrgPulseError as exc:
        raise http_error(exc) from exc

    if result.success:
        metric.last_fetched_at = datetime.now(timezone.utc)
        metric.last_error = None
        db.commit()
    return _run_response(result)


# ---------------------------------------------------------------------------
# Chart transformers
# ---------------------------------------------------------------------------


@router.get("/metrics/{metric_id}/charts", response_model=list[ChartTransformerResponse])
def list_chart_transformers(
    metric_id: uuid.UUID,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> list[ChartTransformerResponse]:
    metric = _load_metric(db, metric_id, workspace)
    return [
        ChartTransformerResponse.model_validate(transformer)
        for transformer in TransformerRepository(db).list_charts_for_metric(metric.id)
    ]


@router.post(
    "/charts/{dashboard_chart_id}",
    response_model=ChartTransformerResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_chart_transformer(
    dashboard_chart_id: uuid.UUID,
    body: ChartTransformerCreateRequest,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> ChartTransformerResponse:
    chart = _load_chart(db, dashboard_chart_id, workspace)
    try:
        transformer = chart_generator.create_chart_transformer(
            db,
            dashboard_chart_id=chart.id,
            metric_name=chart.metric.name,
            metric_description=chart.metric.description or "",
            chart_type=body.chart_type,
            cadence=body.cadence,
            date_range=body.date_range,
            aggregation=body.aggregation,
            user_prompt=body.user_prompt,
            selected_dimension=body.selected_dimension,
        )
    except OrgPulseError as exc:
        raise http_error(exc) from exc

    _invalidate_for(chart)
    return ChartTransformerResponse.model_validate(transformer)


@router.get("/charts/{dashboard_chart_id}", response_model=ChartTransformerResponse)
def get_chart_transformer(
    dashboard_chart_id: uuid.UUID,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> ChartTransformerResponse:
    chart = _load_chart(db, dashboard_chart_id, workspace)
    if chart.chart_transformer is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chart transformer not found")
    return ChartTransformerResponse.model_validate(chart.chart_transformer)


@router.post("/charts/{dashboard_chart_id}/execute", response_model=ExecutionResultResponse)
def execute_chart_transformer(
    dashboard_chart_id: uuid.UUID,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> ExecutionResultResponse:
    chart = _load_chart(db, dashboard_chart_id, workspace)
    result = chart_generator.execute_chart_transformer_for_dashboard_chart(db, chart.id)
    if result.success:
        _invalidate_for(chart)
    return ExecutionResultResponse(success=result.success, data=result.data, error=result.error)


@router.post("/charts/{dashboard_chart_id}/regenerate", response_model=ExecutionResultResponse)
def regenerate_chart_transformer(
    dashboard_chart_id: uuid.UUID,
    body: ChartTransformerRegenerateRequest,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> ExecutionResultResponse:
    """
    Regenerate with new preferences or a user prompt; unset fields keep
    the current transformer's values.
    """
    chart = _load_chart(db, dashboard_chart_id, workspace)
    result = chart_generator.regenerate_chart_transformer(
        db,
        dashboard_chart_id=chart.id,
        chart_type=body.chart_type,
        date_range=body.date_range,
        aggregation=body.aggregation,
        cadence=body.cadence,
        selected_dimension=body.selected_dimension,
        user_prompt=body.user_prompt,
    )
    if result.success:
        _invalidate_for(chart)
    return ExecutionResultResponse(success=result.success, data=result.data, error=result.error)


# ---------------------------------------------------------------------------
# Data points
# ---------------------------------------------------------------------------


@router.get("/metrics/{metric_id}/data-points", response_model=DataPointPageResponse)
def get_data_points(
    metric_id: uuid.UUID,
    limit: int = Query(default=MAX_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(default=0, ge=0),
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> DataPointPageResponse:
    """
    Newest points first.
    """
    metric = _load_metric(db, metric_id, workspace)
    repository = MetricDataRepository(db)
    points = repository.list_points(metric.id, limit=limit, offset=offset, descending=True)
    total = repository.count_points(metric.id)
    return DataPointPageResponse(
        data_points=[DataPointResponse.model_validate(point) for point in points],
        total=total,
        has_more=offset + limit < total,
    )


@router.get("/metrics/{metric_id}/data-points/summary", response_model=DataPointSummaryResponse)
def get_data_points_summary(
    metric_id: uuid.UUID,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> DataPointSummaryResponse:
    metric = _load_metric(db, metric_id, workspace)
    summary = MetricDataRepository(db).summarize(metric.id)
    return DataPointSummaryResponse(
        count=summary.count,
        first_timestamp=summary.first_timestamp,
        last_timestamp=summary.last_timestamp,
        min_value=summary.min_value,
        max_value=summary.max_value,
        avg_value=summary.avg_value,
        latest_value=summary.latest_value,
    )
