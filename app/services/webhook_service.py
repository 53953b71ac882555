"""
app/services/webhook_service.py

Nango auth webhook handling: connection creation and deletion.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.integration import Integration, IntegrationStatus

logger = logging.getLogger(__name__)


class WebhookPayloadError(ValueError):
    pass


@dataclass(frozen=True)
class EndUser:
    end_user_id: str | None
    email: str | None = None
    display_name: str | None = None
    tags: dict[str, Any] = field(default_factory=dict)

    @property
    def organization_id(self) -> str | None:
        value = self.tags.get("organizationId")
        return str(value) if value else None


@dataclass(frozen=True)
class WebhookEvent:
    type: str
    operation: str | None
    connection_id: str
    provider_config_key: str
    success: bool = False
    environment: str | None = None
    end_user: EndUser | None = None
    error: str | None = None


def _get_integration(session: Session, connection_id: str) -> Integration | None:
    stmt = select(Integration).where(Integration.connection_id == connection_id)
    return session.execute(stmt).scalars().first()


def handle_connection_creation(session: Session, event: WebhookEvent) -> Integration:
    end_user = event.end_user
    if end_user is None or not end_user.end_user_id:
        raise WebhookPayloadError("Missing endUser.endUserId in webhook payload")

    organization_id = end_user.organization_id
    if not organization_id:
        raise WebhookPayloadError(
            f"Missing organizationId for user {end_user.end_user_id}. "
            "Ensure organizationId is passed in tags during session creation."
        )

    metadata = {"email": end_user.email, "displayName": end_user.display_name}
    integration = _get_integration(session, event.connection_id)
    if integration is None:
        integration = Integration(
            connection_id=event.connection_id,
            provider_id=event.provider_config_key,
            organization_id=organization_id,
            connected_by=end_user.end_user_id,
            status=IntegrationStatus.ACTIVE,
            metadata_json=metadata,
        )
        session.add(integration)
    else:
        integration.status = IntegrationStatus.ACTIVE
        integration.metadata_json = metadata
        integration.connected_by = end_user.end_user_id

    session.commit()
    return integration


def handle_connection_deletion(session: Session, event: WebhookEvent) -> Integration | None:
    integration = _get_integration(session, event.connection_id)
    if integration is None:
        logger.error("Webhook connection not found connection_id=%s", event.connection_id)
        return None

    integration.status = IntegrationStatus.REVOKED
    session.commit()
    logger.info("Integration revoked connection_id=%s", event.connection_id)
    return integration


def process_webhook(session: Session, event: WebhookEvent) -> str:
    """
    Apply an auth webhook and return the response message.
    """

    logger.info(
        "Nango webhook type=%s operation=%s connection_id=%s provider=%s success=%s",
        event.type,
        event.operation,
        event.connection_id,
        event.provider_config_key,
        event.success,
    )

    if event.type != "auth":
        return "Webhook type not supported"

    if event.operation == "creation" and event.success:
        handle_connection_creation(session, event)
        return "Connection created"

    if event.operation == "deletion":
        handle_connection_deletion(session, event)
        return "Connection deleted"

    return "Webhook processed"
