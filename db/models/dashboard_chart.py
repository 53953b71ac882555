"""
db/models/dashboard_chart.py

A metric placed on an organization dashboard, with its rendered chart config.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from db.models.metric import Metric
    from db.models.transformer import ChartTransformer


class DashboardChart(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "dashboard_charts"

    organization_id: Mapped[str] = mapped_column(String(255), nullable=False)
    metric_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("metrics.id", ondelete="CASCADE"),
        nullable=False,
    )
    chart_type: Mapped[str] = mapped_column(String(16), nullable=False, default="line")
    chart_config: Mapped[dict[str, Any]] = mapped_column(
        JSONB,
        nullable=False,
        default=dict,
        comment="Output of the chart transformer plus user overrides",
    )
    size: Mapped[str] = mapped_column(String(16), nullable=False, default="medium")
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    metric: Mapped["Metric"] = relationship("Metric", back_populates="dashboard_charts")
    chart_transformer: Mapped["ChartTransformer | None"] = relationship(
        "ChartTransformer",
        back_populates="dashboard_chart",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_dashboard_charts_organization_id", "organization_id"),
        Index("ix_dashboard_charts_metric_id", "metric_id"),
    )
