"""
db/models/transformer.py

Persisted AI-generated transformer code.

DataIngestionTransformer: raw provider payload -> data points (one per metric).
ChartTransformer: data points -> chart config (one per dashboard chart).
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from db.models.dashboard_chart import DashboardChart


class DataIngestionTransformer(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "data_ingestion_transformers"

    template_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
        comment="Keyed by metric id so each metric owns its transformer",
    )
    transformer_code: Mapped[str] = mapped_column(Text, nullable=False)
    value_label: Mapped[str | None] = mapped_column(String(100), nullable=True)
    data_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    extraction_prompt_used: Mapped[str | None] = mapped_column(Text, nullable=True)


class ChartTransformer(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "chart_transformers"

    dashboard_chart_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("dashboard_charts.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    transformer_code: Mapped[str] = mapped_column(Text, nullable=False)
    chart_type: Mapped[str] = mapped_column(String(16), nullable=False)
    cadence: Mapped[str] = mapped_column(String(16), nullable=False, default="DAILY")
    date_range: Mapped[str] = mapped_column(String(16), nullable=False, default="all")
    aggregation: Mapped[str] = mapped_column(String(16), nullable=False, default="none")
    user_prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    selected_dimension: Mapped[str | None] = mapped_column(String(100), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    dashboard_chart: Mapped["DashboardChart"] = relationship(
        "DashboardChart",
        back_populates="chart_transformer",
    )
