"""
db/models/integration.py

Integration model: one Nango connection owned by an organization.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import Index, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from db.models.metric import Metric


class IntegrationStatus:
    ACTIVE = "active"
    REVOKED = "revoked"
    ERROR = "error"


class Integration(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """
    Created and updated by the Nango auth webhook.

    provider_id is the Nango provider config key (github, posthog, google-sheet, ...).
    """

    __tablename__ = "integrations"

    connection_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    provider_id: Mapped[str] = mapped_column(String(100), nullable=False)
    organization_id: Mapped[str] = mapped_column(String(255), nullable=False)
    connected_by: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=IntegrationStatus.ACTIVE)
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata",
        JSONB,
        nullable=True,
        comment="End-user email/display name captured at connection time",
    )

    metrics: Mapped[list["Metric"]] = relationship("Metric", back_populates="integration")

    __table_args__ = (
        Index("ix_integrations_organization_id", "organization_id"),
        Index("ix_integrations_provider_id", "provider_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Integration id={self.id} provider={self.provider_id!r} "
            f"connection_id={self.connection_id!r} status={self.status!r}>"
        )
