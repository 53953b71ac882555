"""
app/repositories package marker.
"""

from app.repositories.metric_data_repository import DataPointInput, DataPointSummary, MetricDataRepository
from app.repositories.metric_repository import MetricRepository
from app.repositories.transformer_repository import TransformerRepository

__all__ = [
    "DataPointInput",
    "DataPointSummary",
    "MetricDataRepository",
    "MetricRepository",
    "TransformerRepository",
]
