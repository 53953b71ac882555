"""
app/schemas/organization.py

Response models for organization members and member statistics.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class MemberResponse(BaseModel):
    id: str
    email: str | None
    first_name: str | None
    last_name: str | None
    display_name: str
    profile_picture_url: str | None = None
    job_title: str | None = None
    groups: list[dict[str, Any]] = Field(default_factory=list)
    source: str
    can_login: bool

    model_config = {"from_attributes": True}


class MemberStatsResponse(BaseModel):
    role_count: int
    total_effort: int
    goals_on_track: int
    goals_total: int

    model_config = {"from_attributes": True}
