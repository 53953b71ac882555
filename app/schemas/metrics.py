"""
app/schemas/metrics.py

Request and response schemas for metrics, manual metrics, goals and
dashboard charts.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class IntegrationBriefResponse(BaseModel):
    id: uuid.UUID
    connection_id: str
    provider_id: str
    status: str

    model_config = {"from_attributes": True}


class MetricResponse(BaseModel):
    id: uuid.UUID
    organization_id: str
    team_id: uuid.UUID | None
    integration_id: uuid.UUID | None
    template_id: str | None
    name: str
    description: str | None
    endpoint_config: dict[str, Any] | None
    poll_frequency: str
    next_poll_at: datetime | None
    last_fetched_at: datetime | None
    last_error: str | None
    refresh_status: str | None
    integration: IntegrationBriefResponse | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ---------------------------------------------------------------------------
# Integration metrics
# ---------------------------------------------------------------------------


class MetricCreateRequest(BaseModel):
    template_id: str
    connection_id: str
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    endpoint_params: dict[str, str] = Field(default_factory=dict)
    team_id: uuid.UUID | None = None


class MetricUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None


class PipelineStepResponse(BaseModel):
    step: str
    display_name: str
    status: str
    duration_ms: int


class MetricStatusResponse(BaseModel):
    metric_id: uuid.UUID
    refresh_status: str | None
    display_name: str | None
    last_error: str | None
    last_fetched_at: datetime | None
    is_processing: bool = False
    pipeline_type: str | None = None
    completed_steps: list[PipelineStepResponse] = Field(default_factory=list)
    total_steps: int = 0
    progress_percent: int = 0


class IntegrationDataPreviewResponse(BaseModel):
    metric_id: uuid.UUID
    template_id: str
    provider_id: str
    data: Any


# ---------------------------------------------------------------------------
# Manual metrics
# ---------------------------------------------------------------------------


class ManualMetricCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    unit_type: Literal["number", "percentage"]
    cadence: Literal["daily", "weekly", "monthly"]
    team_id: uuid.UUID
    start_date: datetime | None = None
    end_date: datetime | None = None


class ManualDataPointRequest(BaseModel):
    timestamp: datetime
    value: float


class AddDataPointsRequest(BaseModel):
    data_points: list[ManualDataPointRequest] = Field(..., min_length=1)


class AddDataPointsResponse(BaseModel):
    success: bool
    saved_count: int


class DataPointResponse(BaseModel):
    id: uuid.UUID
    timestamp: datetime
    value: float
    dimensions: dict[str, Any] | None = None

    model_config = {"from_attributes": True}


class ManualMetricRoleResponse(BaseModel):
    id: uuid.UUID
    title: str
    team_id: uuid.UUID
    team_name: str


class ManualMetricResponse(BaseModel):
    metric: MetricResponse
    recent_data_points: list[DataPointResponse]
    dashboard_chart_id: uuid.UUID | None
    roles: list[ManualMetricRoleResponse] = []


class ManualMetricsByCadenceResponse(BaseModel):
    daily: list[ManualMetricResponse] = []
    weekly: list[ManualMetricResponse] = []
    monthly: list[ManualMetricResponse] = []


# ---------------------------------------------------------------------------
# Goals
# ---------------------------------------------------------------------------


class GoalUpsertRequest(BaseModel):
    goal_type: Literal["ABSOLUTE", "RELATIVE"]
    target_value: float = Field(..., gt=0)
    on_track_threshold: float | None = Field(default=None, ge=0, le=100)


class GoalResponse(BaseModel):
    id: uuid.UUID
    metric_id: uuid.UUID
    goal_type: str
    target_value: float
    baseline_value: float | None
    baseline_timestamp: datetime | None
    on_track_threshold: float
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class SuggestedRangeResponse(BaseModel):
    suggested_min: float
    suggested_max: float


class GoalOverviewResponse(BaseModel):
    goal: GoalResponse | None
    goal_progress: dict[str, Any] | None
    cadence: str | None
    current_value: float | None
    current_value_label: str | None
    value_label: str | None
    suggested_range: SuggestedRangeResponse


class GoalUpsertResponse(BaseModel):
    goal: GoalResponse
    goal_progress: dict[str, Any] | None


class GoalDeleteResponse(BaseModel):
    success: bool
    metric_id: uuid.UUID


# ---------------------------------------------------------------------------
# Dashboard charts
# ---------------------------------------------------------------------------


class ChartTransformerBriefResponse(BaseModel):
    chart_type: str
    cadence: str
    date_range: str
    aggregation: str
    user_prompt: str | None
    selected_dimension: str | None
    version: int

    model_config = {"from_attributes": True}


class DashboardChartResponse(BaseModel):
    id: uuid.UUID
    organization_id: str
    metric_id: uuid.UUID
    chart_type: str
    chart_config: dict[str, Any]
    size: str
    position: int
    metric: MetricResponse
    chart_transformer: ChartTransformerBriefResponse | None = None

    model_config = {"from_attributes": True}


class EnrichedDashboardChartResponse(DashboardChartResponse):
    goal_progress: dict[str, Any] | None = None
    value_label: str | None = None
    data_description: str | None = None


class DashboardChartUpdateRequest(BaseModel):
    size: Literal["small", "medium", "large"] | None = None
    position: int | None = Field(default=None, ge=0)
    value_label_override: str | None = Field(default=None, max_length=100)
