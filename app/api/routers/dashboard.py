"""
app/api/routers/dashboard.py

Organization and team dashboards.

Charts are served enriched with value labels and goal progress and cached
under the dashboard tags that pipeline and goal writes invalidate.
"""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.api.dependencies import get_workspace, http_error
from app.domain.workspace import WorkspaceContext
from app.errors import OrgPulseError
from app.schemas.metrics import (
    DashboardChartResponse,
    DashboardChartUpdateRequest,
    EnrichedDashboardChartResponse,
)
from app.services.authorization import verify_resource_access
from app.services.cache import DASHBOARD_CACHE, dashboard_tags, get_cache, invalidate_dashboard_cache
from app.services.goal_service import enrich_charts_with_goal_progress
from db.models.dashboard_chart import DashboardChart
from db.models.metric import Metric
from db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


def load_enriched_dashboard(
    db: Session,
    organization_id: str,
    team_id: uuid.UUID | None = None,
) -> list[EnrichedDashboardChartResponse]:
    """
    Dashboard charts ordered by position, from cache when fresh.
    """

    def _load() -> list[EnrichedDashboardChartResponse]:
        stmt = (
            select(DashboardChart)
            .join(Metric, Metric.id == DashboardChart.metric_id)
            .where(DashboardChart.organization_id == organization_id)
            .options(
                selectinload(DashboardChart.metric).selectinload(Metric.goal),
                selectinload(DashboardChart.metric).selectinload(Metric.integration),
                selectinload(DashboardChart.chart_transformer),
            )
            .order_by(DashboardChart.position.asc())
        )
        if team_id is not None:
            stmt = stmt.where(Metric.team_id == team_id)
        charts = list(db.execute(stmt).scalars().all())

        responses: list[EnrichedDashboardChartResponse] = []
        for enriched in enrich_charts_with_goal_progress(db, charts):
            base = DashboardChartResponse.model_validate(enriched.chart)
            responses.append(
                EnrichedDashboardChartResponse(
                    **base.model_dump(),
                    goal_progress=enriched.goal_progress.to_dict() if enriched.goal_progress else None,
                    value_label=enriched.value_label,
                    data_description=enriched.data_description,
                )
            )
        return responses

    team_key = str(team_id) if team_id is not None else None
    return get_cache().get_or_load(
        f"dashboard:{organization_id}:{team_key or 'all'}",
        DASHBOARD_CACHE,
        _load,
        dashboard_tags(organization_id, team_key),
    )


def _load_chart(db: Session, dashboard_chart_id: uuid.UUID, workspace: WorkspaceContext) -> DashboardChart:
    chart = db.get(DashboardChart, dashboard_chart_id)
    if chart is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Dashboard chart not found")
    try:
        verify_resource_access(workspace, chart.organization_id, "dashboard chart")
    except OrgPulseError as exc:
        raise http_error(exc) from exc
    return chart


def _team_key(chart: DashboardChart) -> str | None:
    return str(chart.metric.team_id) if chart.metric.team_id else None


@router.get("/charts", response_model=list[EnrichedDashboardChartResponse])
def get_dashboard_charts(
    team_id: uuid.UUID | None = None,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> list[EnrichedDashboardChartResponse]:
    return load_enriched_dashboard(db, workspace.organization_id, team_id)


@router.patch("/charts/{dashboard_chart_id}", response_model=DashboardChartResponse)
def update_dashboard_chart(
    dashboard_chart_id: uuid.UUID,
    body: DashboardChartUpdateRequest,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> DashboardChartResponse:
    """
    Update layout fields. An empty ``value_label_override`` clears it.
    """
    chart = _load_chart(db, dashboard_chart_id, workspace)
    changes = body.model_dump(exclude_unset=True)

    if "size" in changes and changes["size"] is not None:
        chart.size = changes["size"]
    if "position" in changes and changes["position"] is not None:
        chart.position = changes["position"]
    if "value_label_override" in changes:
        config = dict(chart.chart_config or {})
        override = (changes["value_label_override"] or "").strip()
        if override:
            config["valueLabelOverride"] = override
        else:
            config.pop("valueLabelOverride", None)
        chart.chart_config = config

    db.commit()
    db.refresh(chart)
    invalidate_dashboard_cache(chart.organization_id, _team_key(chart))
    return DashboardChartResponse.model_validate(chart)


@router.delete("/charts/{dashboard_chart_id}")
def remove_dashboard_chart(
    dashboard_chart_id: uuid.UUID,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> dict[str, bool]:
    chart = _load_chart(db, dashboard_chart_id, workspace)
    team_key = _team_key(chart)
    db.delete(chart)
    db.commit()
    invalidate_dashboard_cache(workspace.organization_id, team_key)
    logger.info("Dashboard chart removed dashboard_chart_id=%s", dashboard_chart_id)
    return {"success": True}
