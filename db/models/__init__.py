"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.dashboard_chart import DashboardChart
from db.models.integration import Integration, IntegrationStatus
from db.models.metric import Metric, PollFrequency
from db.models.metric_data import MetricApiLog, MetricDataPoint, MetricSnapshot
from db.models.metric_goal import GoalType, MetricGoal
from db.models.role import Role
from db.models.team import Team
from db.models.transformer import ChartTransformer, DataIngestionTransformer

__all__ = [
    "ChartTransformer",
    "DashboardChart",
    "DataIngestionTransformer",
    "GoalType",
    "Integration",
    "IntegrationStatus",
    "Metric",
    "MetricApiLog",
    "MetricDataPoint",
    "MetricGoal",
    "MetricSnapshot",
    "PollFrequency",
    "Role",
    "Team",
]
