"""
db/models/team.py

Team model: the organizational unit users lay out on the canvas.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import Boolean, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from db.models.metric import Metric
    from db.models.role import Role


class Team(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """
    A team belongs to one organization (or personal workspace) and owns roles.

    react_flow_nodes / react_flow_edges / viewport persist the canvas layout
    exactly as the client sends it.
    """

    __tablename__ = "teams"

    organization_id: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)

    react_flow_nodes: Mapped[list[Any] | None] = mapped_column(JSONB, nullable=True)
    react_flow_edges: Mapped[list[Any] | None] = mapped_column(JSONB, nullable=True)
    viewport: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)

    share_token: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)
    is_publicly_shared: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # ── Relationships ──────────────────────────────────────────────────────────

    roles: Mapped[list["Role"]] = relationship(
        "Role",
        back_populates="team",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    metrics: Mapped[list["Metric"]] = relationship("Metric", back_populates="team")

    __table_args__ = (Index("ix_teams_organization_id", "organization_id"),)

    def __repr__(self) -> str:
        return f"<Team id={self.id} name={self.name!r} org={self.organization_id!r}>"
