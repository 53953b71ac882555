"""
db/models/metric_goal.py

Goal attached to a metric: an absolute target or a relative growth percentage.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Float, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from db.models.metric import Metric


class GoalType:
    ABSOLUTE = "ABSOLUTE"
    RELATIVE = "RELATIVE"


class MetricGoal(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "metric_goals"

    metric_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("metrics.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    goal_type: Mapped[str] = mapped_column(String(16), nullable=False)
    target_value: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        comment="Absolute target, or growth percent for RELATIVE goals",
    )
    baseline_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    baseline_timestamp: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    on_track_threshold: Mapped[float] = mapped_column(Float, nullable=False, default=80.0)

    metric: Mapped["Metric"] = relationship("Metric", back_populates="goal")
