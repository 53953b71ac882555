"""
app/schemas package marker.
"""

from app.schemas.integrations import IntegrationResponse, IntegrationStats
from app.schemas.metrics import (
    DashboardChartResponse,
    EnrichedDashboardChartResponse,
    GoalOverviewResponse,
    GoalResponse,
    MetricResponse,
)
from app.schemas.teams import RoleResponse, TeamResponse, TeamSummaryResponse
from app.schemas.transformers import ChartTransformerResponse, IngestionTransformerResponse

__all__ = [
    "ChartTransformerResponse",
    "DashboardChartResponse",
    "EnrichedDashboardChartResponse",
    "GoalOverviewResponse",
    "GoalResponse",
    "IngestionTransformerResponse",
    "IntegrationResponse",
    "IntegrationStats",
    "MetricResponse",
    "RoleResponse",
    "TeamResponse",
    "TeamSummaryResponse",
]
