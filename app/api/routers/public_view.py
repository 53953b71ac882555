"""
app/api/routers/public_view.py

Read-only team and dashboard views behind a share token. No auth.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.api.routers.dashboard import load_enriched_dashboard
from app.schemas.metrics import EnrichedDashboardChartResponse
from app.schemas.teams import TeamResponse
from db.models.team import Team
from db.session import get_db

router = APIRouter(prefix="/public", tags=["public"])


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class PublicTeamBrief(BaseModel):
    id: uuid.UUID
    name: str


class PublicDashboardResponse(BaseModel):
    team: PublicTeamBrief
    dashboard_charts: list[EnrichedDashboardChartResponse]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


def _shared_team(db: Session, team_id: uuid.UUID, token: str) -> Team:
    team = db.get(Team, team_id)
    if team is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Team not found")
    if not team.is_publicly_shared or team.share_token != token:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or expired share link")
    return team


@router.get("/teams/{team_id}", response_model=TeamResponse)
def get_team_by_share_token(
    team_id: uuid.UUID,
    token: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
) -> TeamResponse:
    return TeamResponse.model_validate(_shared_team(db, team_id, token))


@router.get("/teams/{team_id}/dashboard", response_model=PublicDashboardResponse)
def get_dashboard_by_share_token(
    team_id: uuid.UUID,
    token: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
) -> PublicDashboardResponse:
    team = _shared_team(db, team_id, token)
    return PublicDashboardResponse(
        team=PublicTeamBrief(id=team.id, name=team.name),
        dashboard_charts=load_enriched_dashboard(db, team.organization_id, team.id),
    )
