"""
app/schemas/teams.py

Request and response schemas for teams, roles and public share links.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"


class MetricBriefResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: str | None = None
    template_id: str | None = None
    integration_id: uuid.UUID | None = None

    model_config = {"from_attributes": True}


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------


class TeamCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None


class TeamUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    react_flow_nodes: list[dict[str, Any]] | None = None
    react_flow_edges: list[dict[str, Any]] | None = None
    viewport: dict[str, Any] | None = None


class TeamSummaryResponse(BaseModel):
    id: uuid.UUID
    organization_id: str
    name: str
    description: str | None
    created_by: str
    is_publicly_shared: bool
    role_count: int
    metric_count: int
    created_at: datetime
    updated_at: datetime


class RoleResponse(BaseModel):
    id: uuid.UUID
    team_id: uuid.UUID
    title: str
    purpose: str | None
    metric_id: uuid.UUID | None
    node_id: str | None
    assigned_user_id: str | None
    assigned_user_name: str | None
    color: str
    effort_points: int | None = None
    metric: MetricBriefResponse | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class TeamResponse(BaseModel):
    id: uuid.UUID
    organization_id: str
    name: str
    description: str | None
    created_by: str
    react_flow_nodes: list[dict[str, Any]] | None
    react_flow_edges: list[dict[str, Any]] | None
    viewport: dict[str, Any] | None
    share_token: str | None
    is_publicly_shared: bool
    roles: list[RoleResponse] = []
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ShareStateResponse(BaseModel):
    id: uuid.UUID
    share_token: str | None
    is_publicly_shared: bool

    model_config = {"from_attributes": True}


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------


class RoleCreateRequest(BaseModel):
    team_id: uuid.UUID
    title: str = Field(..., min_length=1, max_length=100)
    purpose: str = Field(..., min_length=1)
    metric_id: uuid.UUID | None = None
    node_id: str
    assigned_user_id: str | None = None
    assigned_user_name: str | None = None
    color: str | None = Field(default=None, pattern=COLOR_PATTERN)
    effort_points: int | None = Field(default=None, ge=0)


class RoleUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=100)
    purpose: str | None = Field(default=None, min_length=1)
    metric_id: uuid.UUID | None = None
    assigned_user_id: str | None = None
    assigned_user_name: str | None = None
    color: str | None = Field(default=None, pattern=COLOR_PATTERN)
    effort_points: int | None = Field(default=None, ge=0)


class RoleAssignRequest(BaseModel):
    user_id: str
    user_name: str | None = None


class TeamBriefResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: str | None

    model_config = {"from_attributes": True}


class UserRoleResponse(RoleResponse):
    team: TeamBriefResponse
