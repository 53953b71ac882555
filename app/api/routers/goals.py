"""
app/api/routers/goals.py

Metric goal endpoints.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.dependencies import get_workspace, http_error
from app.domain.workspace import WorkspaceContext
from app.errors import OrgPulseError
from app.schemas.metrics import (
    GoalDeleteResponse,
    GoalOverviewResponse,
    GoalResponse,
    GoalUpsertRequest,
    GoalUpsertResponse,
    SuggestedRangeResponse,
)
from app.services import goal_service
from app.services.authorization import get_metric_and_verify_access
from db.models.metric import Metric
from db.session import get_db

router = APIRouter(prefix="/metrics/{metric_id}/goal", tags=["goals"])


def _load_metric(db: Session, metric_id: uuid.UUID, workspace: WorkspaceContext) -> Metric:
    try:
        return get_metric_and_verify_access(db, metric_id, workspace)
    except OrgPulseError as exc:
        raise http_error(exc) from exc


@router.get("", response_model=GoalOverviewResponse)
def get_goal(
    metric_id: uuid.UUID,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> GoalOverviewResponse:
    """
    Goal, live progress and a suggested target range for the goal editor.
    """
    metric = _load_metric(db, metric_id, workspace)
    overview = goal_service.get_goal_overview(db, metric)
    return GoalOverviewResponse(
        goal=GoalResponse.model_validate(overview.goal) if overview.goal is not None else None,
        goal_progress=overview.goal_progress.to_dict() if overview.goal_progress is not None else None,
        cadence=overview.cadence,
        current_value=overview.current_value,
        current_value_label=overview.current_value_label,
        value_label=overview.value_label,
        suggested_range=SuggestedRangeResponse(
            suggested_min=overview.suggested_range.suggested_min,
            suggested_max=overview.suggested_range.suggested_max,
        ),
    )


@router.put("", response_model=GoalUpsertResponse)
def upsert_goal(
    metric_id: uuid.UUID,
    body: GoalUpsertRequest,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> GoalUpsertResponse:
    metric = _load_metric(db, metric_id, workspace)
    goal, progress = goal_service.upsert_goal(
        db,
        metric,
        goal_type=body.goal_type,
        target_value=body.target_value,
        on_track_threshold=body.on_track_threshold,
    )
    return GoalUpsertResponse(
        goal=GoalResponse.model_validate(goal),
        goal_progress=progress.to_dict() if progress is not None else None,
    )


@router.delete("", response_model=GoalDeleteResponse)
def delete_goal(
    metric_id: uuid.UUID,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> GoalDeleteResponse:
    metric = _load_metric(db, metric_id, workspace)
    try:
        goal_service.delete_goal(db, metric)
    except OrgPulseError as exc:
        raise http_error(exc) from exc
    return GoalDeleteResponse(success=True, metric_id=metric_id)
