"""
app/schemas/transformers.py

Schemas for transformer inspection, pipeline triggers and data point reads.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from app.schemas.metrics import DataPointResponse

CadenceLiteral = Literal["DAILY", "WEEKLY", "MONTHLY"]


class IngestionTransformerResponse(BaseModel):
    id: uuid.UUID
    template_id: str
    transformer_code: str
    value_label: str | None
    data_description: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ChartTransformerResponse(BaseModel):
    id: uuid.UUID
    dashboard_chart_id: uuid.UUID
    transformer_code: str
    chart_type: str
    cadence: str
    date_range: str
    aggregation: str
    user_prompt: str | None
    selected_dimension: str | None
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ChartTransformerCreateRequest(BaseModel):
    chart_type: str = "line"
    cadence: CadenceLiteral = "DAILY"
    date_range: str = "all"
    aggregation: str = "none"
    user_prompt: str | None = None
    selected_dimension: str | None = None


class ChartTransformerRegenerateRequest(BaseModel):
    chart_type: str | None = None
    cadence: CadenceLiteral | None = None
    date_range: str | None = None
    aggregation: str | None = None
    user_prompt: str | None = None
    selected_dimension: str | None = None


class ExecutionResultResponse(BaseModel):
    success: bool
    data: Any = None
    error: str | None = None


class TransformRunResponse(BaseModel):
    success: bool
    data_point_count: int = 0
    data_points: list[dict[str, Any]] = []
    error: str | None = None


class DataPointPageResponse(BaseModel):
    data_points: list[DataPointResponse]
    total: int
    has_more: bool


class DataPointSummaryResponse(BaseModel):
    count: int
    first_timestamp: datetime | None
    last_timestamp: datetime | None
    min_value: float | None
    max_value: float | None
    avg_value: float | None
    latest_value: float | None


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class PipelineStartedResponse(BaseModel):
    success: bool = True
    started: bool = True


class RegenerateChartRequest(BaseModel):
    chart_type: str | None = None
    cadence: CadenceLiteral | None = None
    selected_dimension: str | None = None


class DimensionsResponse(BaseModel):
    dimensions: list[str]


class TransformerInfoResponse(BaseModel):
    metric_id: uuid.UUID
    is_manual: bool
    has_ingestion_transformer: bool
    has_chart_transformer: bool
    ingestion_updated_at: datetime | None
    chart_updated_at: datetime | None
    data_point_count: int
    first_data_point_at: datetime | None
    last_data_point_at: datetime | None
    refresh_status: str | None = Field(default=None)
    last_error: str | None = None
