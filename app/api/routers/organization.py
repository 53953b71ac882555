"""
app/api/routers/organization.py

Organization member directory and per-member role statistics.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.dependencies import get_workspace, http_error
from app.domain.workspace import WorkspaceContext
from app.errors import OrgPulseError
from app.schemas.organization import MemberResponse, MemberStatsResponse
from app.services.organization_service import fetch_organization_members, get_member_stats
from db.session import get_db

router = APIRouter(prefix="/organization", tags=["organization"])


@router.get("/members", response_model=list[MemberResponse])
def list_members(workspace: WorkspaceContext = Depends(get_workspace)) -> list[MemberResponse]:
    try:
        members = fetch_organization_members(workspace)
    except OrgPulseError as exc:
        raise http_error(exc) from exc
    return [MemberResponse.model_validate(member) for member in members]


@router.get("/member-stats", response_model=dict[str, MemberStatsResponse])
def member_stats(
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> dict[str, MemberStatsResponse]:
    """
    Stats keyed by assigned user id; users without roles are absent.
    """
    stats = get_member_stats(db, workspace.organization_id)
    return {user_id: MemberStatsResponse.model_validate(entry) for user_id, entry in stats.items()}
