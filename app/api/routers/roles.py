"""
app/api/routers/roles.py

Role CRUD and user assignment.

Assigned users must be assignable within the caller's workspace, and a
role may only point at a metric of the same organization.
"""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.api.dependencies import get_workspace, http_error
from app.domain.workspace import WorkspaceContext
from app.errors import BadRequestError, OrgPulseError
from app.schemas.teams import (
    RoleAssignRequest,
    RoleCreateRequest,
    RoleResponse,
    RoleUpdateRequest,
    UserRoleResponse,
)
from app.services.authorization import (
    get_metric_and_verify_access,
    get_role_and_verify_access,
    get_team_and_verify_access,
)
from app.services.cache import invalidate_cache_by_tags, team_tags
from db.models.role import Role
from db.models.team import Team
from db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/roles", tags=["roles"])

DEFAULT_ROLE_COLOR = "#3B82F6"


def _verify_assignable(workspace: WorkspaceContext, user_id: str | None) -> None:
    if user_id is not None and not workspace.can_assign(user_id):
        raise BadRequestError("User is not a member of this organization")


def _verify_metric(db: Session, metric_id: uuid.UUID | None, workspace: WorkspaceContext) -> None:
    if metric_id is not None:
        get_metric_and_verify_access(db, metric_id, workspace)


@router.post("", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
def create_role(
    body: RoleCreateRequest,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> RoleResponse:
    try:
        get_team_and_verify_access(db, body.team_id, workspace)
        _verify_assignable(workspace, body.assigned_user_id)
        _verify_metric(db, body.metric_id, workspace)
    except OrgPulseError as exc:
        raise http_error(exc) from exc

    role = Role(
        team_id=body.team_id,
        title=body.title,
        purpose=body.purpose,
        metric_id=body.metric_id,
        node_id=body.node_id,
        assigned_user_id=body.assigned_user_id,
        assigned_user_name=body.assigned_user_name,
        color=body.color or DEFAULT_ROLE_COLOR,
        effort_points=body.effort_points,
    )
    db.add(role)
    db.commit()
    db.refresh(role)
    invalidate_cache_by_tags(team_tags(str(body.team_id)))
    logger.info("Role created role_id=%s team_id=%s", role.id, role.team_id)
    return RoleResponse.model_validate(role)


@router.patch("/{role_id}", response_model=RoleResponse)
def update_role(
    role_id: uuid.UUID,
    body: RoleUpdateRequest,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> RoleResponse:
    changes = body.model_dump(exclude_unset=True)
    try:
        role = get_role_and_verify_access(db, role_id, workspace)
        _verify_assignable(workspace, changes.get("assigned_user_id"))
        _verify_metric(db, changes.get("metric_id"), workspace)
    except OrgPulseError as exc:
        raise http_error(exc) from exc

    for field_name, value in changes.items():
        setattr(role, field_name, value)
    db.commit()
    db.refresh(role)
    invalidate_cache_by_tags(team_tags(str(role.team_id)))
    return RoleResponse.model_validate(role)


@router.delete("/{role_id}")
def delete_role(
    role_id: uuid.UUID,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> dict[str, bool]:
    try:
        role = get_role_and_verify_access(db, role_id, workspace)
    except OrgPulseError as exc:
        raise http_error(exc) from exc

    team_id = role.team_id
    db.delete(role)
    db.commit()
    invalidate_cache_by_tags(team_tags(str(team_id)))
    return {"success": True}


@router.post("/{role_id}/assign", response_model=RoleResponse)
def assign_user(
    role_id: uuid.UUID,
    body: RoleAssignRequest,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> RoleResponse:
    try:
        role = get_role_and_verify_access(db, role_id, workspace)
        _verify_assignable(workspace, body.user_id)
    except OrgPulseError as exc:
        raise http_error(exc) from exc

    role.assigned_user_id = body.user_id
    if body.user_name is not None:
        role.assigned_user_name = body.user_name
    db.commit()
    db.refresh(role)
    invalidate_cache_by_tags(team_tags(str(role.team_id)))
    logger.info("Role assigned role_id=%s user_id=%s", role_id, body.user_id)
    return RoleResponse.model_validate(role)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


@router.get("/by-team/{team_id}", response_model=list[RoleResponse])
def list_roles_by_team(
    team_id: uuid.UUID,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> list[RoleResponse]:
    try:
        get_team_and_verify_access(db, team_id, workspace)
    except OrgPulseError as exc:
        raise http_error(exc) from exc

    stmt = (
        select(Role)
        .where(Role.team_id == team_id)
        .options(selectinload(Role.metric))
        .order_by(Role.created_at.asc())
    )
    return [RoleResponse.model_validate(role) for role in db.execute(stmt).scalars().all()]


@router.get("/by-user/{user_id}", response_model=list[UserRoleResponse])
def list_roles_by_user(
    user_id: str,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> list[UserRoleResponse]:
    """
    Roles assigned to a user across the workspace's teams.

    Raises HTTP 403 when the user is outside the caller's workspace.
    """
    if user_id != workspace.user_id and not workspace.can_assign(user_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Target user is not in your organization",
        )

    stmt = (
        select(Role)
        .join(Team, Team.id == Role.team_id)
        .where(Role.assigned_user_id == user_id, Team.organization_id == workspace.organization_id)
        .options(selectinload(Role.metric), selectinload(Role.team))
        .order_by(Team.name.asc(), Role.created_at.asc())
    )
    return [UserRoleResponse.model_validate(role) for role in db.execute(stmt).scalars().all()]
