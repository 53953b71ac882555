"""
app/schemas/integrations.py

Response schemas for connected integrations and their metric templates.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class IntegrationResponse(BaseModel):
    id: uuid.UUID
    connection_id: str
    provider_id: str
    organization_id: str
    connected_by: str
    status: str
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="metadata_json")
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True, "populate_by_name": True}


class IntegrationStats(BaseModel):
    total: int
    active: int
    by_provider: dict[str, int]


class IntegrationListWithStatsResponse(BaseModel):
    integrations: list[IntegrationResponse]
    stats: IntegrationStats


class ConnectSessionRequest(BaseModel):
    allowed_integrations: list[str] | None = None


class ConnectSessionResponse(BaseModel):
    token: str


class RevokeResponse(BaseModel):
    success: bool
