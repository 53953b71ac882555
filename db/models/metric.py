"""
db/models/metric.py

Metric model: a KPI fed either by an integration template or by manual check-ins.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from db.models.dashboard_chart import DashboardChart
    from db.models.integration import Integration
    from db.models.metric_goal import MetricGoal
    from db.models.role import Role
    from db.models.team import Team


class PollFrequency:
    FREQUENT = "frequent"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MANUAL = "manual"


class Metric(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """
    integration_id is NULL for manual metrics; endpoint_config then carries
    {"type": "manual", "unitType": ..., "cadence": ...}.

    refresh_status holds the pipeline step currently running, or NULL when idle.
    """

    __tablename__ = "metrics"

    organization_id: Mapped[str] = mapped_column(String(255), nullable=False)
    team_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("teams.id", ondelete="SET NULL"),
        nullable=True,
    )
    integration_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("integrations.id", ondelete="SET NULL"),
        nullable=True,
    )
    template_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    endpoint_config: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)

    poll_frequency: Mapped[str] = mapped_column(String(16), nullable=False, default=PollFrequency.DAILY)
    next_poll_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_fetched_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    refresh_status: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # ── Relationships ──────────────────────────────────────────────────────────

    team: Mapped["Team | None"] = relationship("Team", back_populates="metrics")
    integration: Mapped["Integration | None"] = relationship("Integration", back_populates="metrics")
    roles: Mapped[list["Role"]] = relationship("Role", back_populates="metric")
    goal: Mapped["MetricGoal | None"] = relationship(
        "MetricGoal",
        back_populates="metric",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    dashboard_charts: Mapped[list["DashboardChart"]] = relationship(
        "DashboardChart",
        back_populates="metric",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="DashboardChart.position",
    )

    __table_args__ = (
        Index("ix_metrics_organization_id", "organization_id"),
        Index("ix_metrics_team_id", "team_id"),
        Index("ix_metrics_next_poll_at", "next_poll_at"),
    )

    @property
    def is_manual(self) -> bool:
        return self.integration_id is None

    def __repr__(self) -> str:
        return f"<Metric id={self.id} name={self.name!r} template={self.template_id!r}>"
