"""
app/api/routers/teams.py

Team CRUD, canvas persistence and public share links.
"""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.api.dependencies import CurrentUser, get_current_user, get_workspace, http_error
from app.domain.workspace import WorkspaceContext
from app.errors import OrgPulseError
from app.schemas.teams import (
    ShareStateResponse,
    TeamCreateRequest,
    TeamResponse,
    TeamSummaryResponse,
    TeamUpdateRequest,
)
from app.services.authorization import get_team_and_verify_access
from app.services.cache import SINGLE_ITEM_CACHE, get_cache, invalidate_cache_by_tags, team_tags
from db.models.metric import Metric
from db.models.role import Role
from db.models.team import Team
from db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/teams", tags=["teams"])


def _load_team(db: Session, team_id: uuid.UUID, workspace: WorkspaceContext) -> Team:
    try:
        return get_team_and_verify_access(db, team_id, workspace)
    except OrgPulseError as exc:
        raise http_error(exc) from exc


@router.get("", response_model=list[TeamSummaryResponse])
def list_teams(
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> list[TeamSummaryResponse]:
    """
    Teams of the workspace, most recently updated first, with role and
    metric counts.
    """
    role_counts = (
        select(Role.team_id, func.count(Role.id).label("role_count")).group_by(Role.team_id).subquery()
    )
    metric_counts = (
        select(Metric.team_id, func.count(Metric.id).label("metric_count")).group_by(Metric.team_id).subquery()
    )
    stmt = (
        select(
            Team,
            func.coalesce(role_counts.c.role_count, 0),
            func.coalesce(metric_counts.c.metric_count, 0),
        )
        .outerjoin(role_counts, role_counts.c.team_id == Team.id)
        .outerjoin(metric_counts, metric_counts.c.team_id == Team.id)
        .where(Team.organization_id == workspace.organization_id)
        .order_by(Team.updated_at.desc())
    )
    return [
        TeamSummaryResponse(
            id=team.id,
            organization_id=team.organization_id,
            name=team.name,
            description=team.description,
            created_by=team.created_by,
            is_publicly_shared=team.is_publicly_shared,
            role_count=int(role_count),
            metric_count=int(metric_count),
            created_at=team.created_at,
            updated_at=team.updated_at,
        )
        for team, role_count, metric_count in db.execute(stmt).all()
    ]


@router.get("/{team_id}", response_model=TeamResponse)
def get_team(
    team_id: uuid.UUID,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> TeamResponse:
    team = _load_team(db, team_id, workspace)
    return get_cache().get_or_load(
        f"team:{team_id}",
        SINGLE_ITEM_CACHE,
        lambda: TeamResponse.model_validate(team),
        team_tags(str(team_id)),
    )


@router.post("", response_model=TeamResponse, status_code=status.HTTP_201_CREATED)
def create_team(
    body: TeamCreateRequest,
    workspace: WorkspaceContext = Depends(get_workspace),
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TeamResponse:
    team = Team(
        organization_id=workspace.organization_id,
        name=body.name,
        description=body.description,
        created_by=user.id,
        react_flow_nodes=[],
        react_flow_edges=[],
    )
    db.add(team)
    db.commit()
    db.refresh(team)
    logger.info("Team created team_id=%s organization_id=%s", team.id, team.organization_id)
    return TeamResponse.model_validate(team)


@router.patch("/{team_id}", response_model=TeamResponse)
def update_team(
    team_id: uuid.UUID,
    body: TeamUpdateRequest,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> TeamResponse:
    team = _load_team(db, team_id, workspace)
    for field_name, value in body.model_dump(exclude_unset=True).items():
        setattr(team, field_name, value)
    db.commit()
    db.refresh(team)
    invalidate_cache_by_tags(team_tags(str(team_id)))
    return TeamResponse.model_validate(team)


@router.delete("/{team_id}")
def delete_team(
    team_id: uuid.UUID,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> dict[str, bool]:
    team = _load_team(db, team_id, workspace)
    db.delete(team)
    db.commit()
    invalidate_cache_by_tags(team_tags(str(team_id)))
    logger.info("Team deleted team_id=%s", team_id)
    return {"success": True}


# ---------------------------------------------------------------------------
# Sharing
# ---------------------------------------------------------------------------


def _save_share_state(db: Session, team: Team) -> ShareStateResponse:
    db.commit()
    db.refresh(team)
    invalidate_cache_by_tags(team_tags(str(team.id)))
    return ShareStateResponse.model_validate(team)


@router.post("/{team_id}/share", response_model=ShareStateResponse)
def generate_share_token(
    team_id: uuid.UUID,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> ShareStateResponse:
    """
    Issue a fresh share token, invalidating any previous link.
    """
    team = _load_team(db, team_id, workspace)
    team.share_token = str(uuid.uuid4())
    team.is_publicly_shared = True
    return _save_share_state(db, team)


@router.post("/{team_id}/share/disable", response_model=ShareStateResponse)
def disable_sharing(
    team_id: uuid.UUID,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> ShareStateResponse:
    team = _load_team(db, team_id, workspace)
    team.is_publicly_shared = False
    return _save_share_state(db, team)


@router.post("/{team_id}/share/enable", response_model=ShareStateResponse)
def enable_sharing(
    team_id: uuid.UUID,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> ShareStateResponse:
    """
    Re-enable sharing, keeping the existing token so old links work again.
    """
    team = _load_team(db, team_id, workspace)
    if not team.share_token:
        team.share_token = str(uuid.uuid4())
    team.is_publicly_shared = True
    return _save_share_state(db, team)
