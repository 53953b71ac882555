"""
app/api/routers/integrations.py

Connected integrations, their metric templates and Nango connect sessions.

Integration rows are created by the Nango webhook; this router only reads
them, opens connect sessions and revokes connections.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.dependencies import CurrentUser, get_current_user, get_workspace, http_error
from app.connectors.base import ConnectorRequestError
from app.connectors.nango_client import NangoConfigurationError, get_nango_client
from app.domain.metric_templates import get_templates_for_integration
from app.domain.workspace import WorkspaceContext
from app.errors import OrgPulseError
from app.schemas.integrations import (
    ConnectSessionRequest,
    ConnectSessionResponse,
    IntegrationListWithStatsResponse,
    IntegrationResponse,
    IntegrationStats,
    RevokeResponse,
)
from app.services.authorization import get_integration_and_verify_access
from db.models.integration import Integration, IntegrationStatus
from db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/integrations", tags=["integrations"])

_MISSING_CONNECTION_MARKERS = ("not found", "does not exist", "404")


def _list_integrations(db: Session, organization_id: str) -> list[Integration]:
    stmt = (
        select(Integration)
        .where(Integration.organization_id == organization_id)
        .order_by(Integration.created_at.desc())
    )
    return list(db.execute(stmt).scalars().all())


def _is_missing_connection(exc: ConnectorRequestError) -> bool:
    if exc.status_code == 404:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in _MISSING_CONNECTION_MARKERS)


@router.get("", response_model=list[IntegrationResponse])
def list_integrations(
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> list[IntegrationResponse]:
    return [IntegrationResponse.model_validate(row) for row in _list_integrations(db, workspace.organization_id)]


@router.get("/stats", response_model=IntegrationListWithStatsResponse)
def list_integrations_with_stats(
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> IntegrationListWithStatsResponse:
    rows = _list_integrations(db, workspace.organization_id)
    by_provider = Counter(row.provider_id for row in rows)
    return IntegrationListWithStatsResponse(
        integrations=[IntegrationResponse.model_validate(row) for row in rows],
        stats=IntegrationStats(
            total=len(rows),
            active=sum(1 for row in rows if row.status == IntegrationStatus.ACTIVE),
            by_provider=dict(by_provider),
        ),
    )


@router.get("/providers/{provider_id}/templates")
def list_templates(provider_id: str, workspace: WorkspaceContext = Depends(get_workspace)) -> list[dict[str, Any]]:
    return [template.to_dict() for template in get_templates_for_integration(provider_id)]


@router.post("/connect-session", response_model=ConnectSessionResponse)
def create_connect_session(
    body: ConnectSessionRequest,
    workspace: WorkspaceContext = Depends(get_workspace),
    user: CurrentUser = Depends(get_current_user),
) -> ConnectSessionResponse:
    """
    Open a Nango connect session tagged with the caller's organization so
    the auth webhook can attribute the new connection.
    """
    end_user = {
        "id": user.id,
        "email": user.email,
        "display_name": user.display_name,
        "tags": {"organizationId": workspace.organization_id},
    }
    try:
        token = get_nango_client().create_connect_session(
            end_user=end_user,
            organization={"id": workspace.organization_id},
            allowed_integrations=body.allowed_integrations,
        )
    except NangoConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    except ConnectorRequestError as exc:
        logger.error("Connect session failed user_id=%s error=%s", user.id, exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to create connect session",
        ) from exc
    return ConnectSessionResponse(token=token)


@router.get("/{connection_id}", response_model=IntegrationResponse)
def get_integration(
    connection_id: str,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> IntegrationResponse:
    try:
        integration = get_integration_and_verify_access(db, connection_id, workspace)
    except OrgPulseError as exc:
        raise http_error(exc) from exc
    return IntegrationResponse.model_validate(integration)


@router.delete("/{connection_id}", response_model=RevokeResponse)
def revoke_integration(
    connection_id: str,
    workspace: WorkspaceContext = Depends(get_workspace),
    db: Session = Depends(get_db),
) -> RevokeResponse:
    """
    Delete the connection in Nango, then the local row.

    A connection Nango no longer knows about is removed locally; any other
    Nango failure is a 500 and the row is kept.
    """
    try:
        integration = get_integration_and_verify_access(db, connection_id, workspace)
    except OrgPulseError as exc:
        raise http_error(exc) from exc

    try:
        get_nango_client().delete_connection(
            provider_config_key=integration.provider_id,
            connection_id=connection_id,
        )
    except NangoConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    except ConnectorRequestError as exc:
        logger.error("Nango connection delete failed connection_id=%s error=%s", connection_id, exc)
        if not _is_missing_connection(exc):
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=str(exc) or "Failed to delete integration from Nango",
            ) from exc

    db.delete(integration)
    db.commit()
    logger.info("Integration revoked connection_id=%s", connection_id)
    return RevokeResponse(success=True)
