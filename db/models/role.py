"""
db/models/role.py

Role model: a seat on a team, optionally bound to a metric and a user.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from db.models.metric import Metric
    from db.models.team import Team


class Role(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "roles"

    team_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    purpose: Mapped[str | None] = mapped_column(Text, nullable=True)
    metric_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("metrics.id", ondelete="SET NULL"),
        nullable=True,
    )
    node_id: Mapped[str | None] = mapped_column(String(100), nullable=True, comment="Canvas node id")
    assigned_user_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    assigned_user_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    color: Mapped[str] = mapped_column(String(7), nullable=False, default="#3B82F6")
    effort_points: Mapped[int | None] = mapped_column(Integer, nullable=True)

    team: Mapped["Team"] = relationship("Team", back_populates="roles")
    metric: Mapped["Metric | None"] = relationship("Metric", back_populates="roles")

    __table_args__ = (
        Index("ix_roles_team_id", "team_id"),
        Index("ix_roles_metric_id", "metric_id"),
        Index("ix_roles_assigned_user_id", "assigned_user_id"),
    )

    def __repr__(self) -> str:
        return f"<Role id={self.id} title={self.title!r} team_id={self.team_id}>"
