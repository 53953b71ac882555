"""
app/services/authorization.py

Workspace resolution and organization-scoped access checks.

A user acts within exactly one workspace, resolved in order:

1. directory   - the configured WorkOS directory contains the user
2. organization - the user's first WorkOS organization membership
3. personal    - fallback, organization id ``user:{user_id}``

Every tenant-owned row carries an ``organization_id`` that must equal the
workspace's before it is returned or mutated.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections.abc import Callable
from functools import lru_cache
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config import WorkOSSettings, get_workos_settings
from app.connectors.base import ConnectorRequestError
from app.connectors.workos_client import WorkOSClient, get_workos_client
from app.domain.workspace import WorkspaceContext, WorkspaceType
from app.errors import AccessDeniedError, NotFoundError, OrgPulseError
from db.models.integration import Integration
from db.models.metric import Metric
from db.models.role import Role
from db.models.team import Team

logger = logging.getLogger(__name__)

DIRECTORY_USER_PREFIX = "directory_user_"


class _TimedValue:
    """
    Single-slot cache holding one value for ``ttl`` seconds.
    """

    def __init__(self, ttl: float, clock: Callable[[], float]) -> None:
        self._ttl = ttl
        self._clock = clock
        self._value: Any = None
        self._stored_at: float | None = None
        self._lock = threading.Lock()

    def get_or_load(self, loader: Callable[[], Any]) -> Any:
        with self._lock:
            if self._stored_at is not None and self._clock() - self._stored_at < self._ttl:
                return self._value
        value = loader()
        with self._lock:
            self._value = value
            self._stored_at = self._clock()
        return value


class WorkspaceResolver:
    def __init__(
        self,
        *,
        settings: WorkOSSettings,
        client_factory: Callable[[], WorkOSClient] = get_workos_client,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings
        self._client_factory = client_factory
        self._client: WorkOSClient | None = None
        self._directory_users = _TimedValue(settings.directory_cache_seconds, clock)
        self._directory = _TimedValue(settings.directory_cache_seconds, clock)

    @property
    def client(self) -> WorkOSClient:
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    # ------------------------------------------------------------------
    # Directory
    # ------------------------------------------------------------------

    def get_directory_users(self) -> list[dict[str, Any]]:
        directory_id = self._require_directory_id()
        return self._directory_users.get_or_load(lambda: self.client.list_directory_users(directory_id))

    def get_directory(self) -> dict[str, Any]:
        directory_id = self._require_directory_id()
        return self._directory.get_or_load(lambda: self.client.get_directory(directory_id))

    def _require_directory_id(self) -> str:
        if not self._settings.directory_id:
            raise OrgPulseError("WORKOS_DIR_ID not configured")
        return self._settings.directory_id

    def _is_directory_member(self, user_id: str) -> bool:
        try:
            users = self.get_directory_users()
            if user_id.startswith(DIRECTORY_USER_PREFIX):
                return any(user.get("id") == user_id for user in users)

            email = str(self.client.get_user(user_id).get("email") or "").lower()
            if not email:
                return False
            return any(directory_user_email(user) == email for user in users)
        except ConnectorRequestError as exc:
            logger.warning("Directory membership check failed user_id=%s error=%s", user_id, exc)
            return False

    def _directory_workspace(self, user_id: str) -> WorkspaceContext:
        try:
            directory = self.get_directory()
            users = self.get_directory_users()
        except ConnectorRequestError as exc:
            logger.error("Failed to load directory context user_id=%s error=%s", user_id, exc)
            raise OrgPulseError("Failed to load workspace") from exc

        organization_id = directory.get("organization_id")
        if not organization_id:
            logger.error("Directory missing organization_id directory_id=%s", self._settings.directory_id)
            raise OrgPulseError("Service configuration error")

        return WorkspaceContext(
            type=WorkspaceType.DIRECTORY,
            organization_id=str(organization_id),
            user_id=user_id,
            assignable_user_ids=[str(user["id"]) for user in users if user.get("id")],
            directory_id=self._settings.directory_id,
        )

    # ------------------------------------------------------------------
    # Organization
    # ------------------------------------------------------------------

    def _organization_workspace(self, user_id: str) -> WorkspaceContext | None:
        try:
            memberships = self.client.list_organization_memberships(user_id=user_id, limit=1)
            if not memberships:
                return None
            organization_id = str(memberships[0]["organization_id"])
            members = self.client.list_organization_memberships(organization_id=organization_id)
        except (ConnectorRequestError, KeyError) as exc:
            logger.warning("Organization membership check failed user_id=%s error=%s", user_id, exc)
            return None

        member_ids = [str(member["user_id"]) for member in members if member.get("user_id")]
        return WorkspaceContext(
            type=WorkspaceType.ORGANIZATION,
            organization_id=organization_id,
            user_id=user_id,
            assignable_user_ids=member_ids or [user_id],
        )

    def resolve(self, user_id: str) -> WorkspaceContext:
        if self._settings.api_key:
            if self._settings.directory_id and self._is_directory_member(user_id):
                return self._directory_workspace(user_id)

            workspace = self._organization_workspace(user_id)
            if workspace is not None:
                return workspace

        return personal_workspace(user_id)


def directory_user_email(user: dict[str, Any]) -> str:
    email = user.get("email")
    if not email:
        emails = user.get("emails") or []
        primary = next((item for item in emails if item.get("primary")), emails[0] if emails else None)
        email = primary.get("value") if primary else None
    return str(email or "").lower()


def personal_workspace(user_id: str) -> WorkspaceContext:
    return WorkspaceContext(
        type=WorkspaceType.PERSONAL,
        organization_id=f"user:{user_id}",
        user_id=user_id,
        assignable_user_ids=[user_id],
    )


@lru_cache(maxsize=1)
def get_workspace_resolver() -> WorkspaceResolver:
    return WorkspaceResolver(settings=get_workos_settings())


def get_workspace_context(user_id: str) -> WorkspaceContext:
    return get_workspace_resolver().resolve(user_id)


# ---------------------------------------------------------------------------
# Access checks
# ---------------------------------------------------------------------------


def verify_resource_access(workspace: WorkspaceContext, resource_organization_id: str, resource_type: str) -> None:
    if workspace.organization_id != resource_organization_id:
        raise AccessDeniedError(f"Access denied to {resource_type}")


def get_team_and_verify_access(session: Session, team_id: uuid.UUID, workspace: WorkspaceContext) -> Team:
    team = session.get(Team, team_id)
    if team is None:
        raise NotFoundError("Team not found")
    verify_resource_access(workspace, team.organization_id, "team")
    return team


def get_role_and_verify_access(session: Session, role_id: uuid.UUID, workspace: WorkspaceContext) -> Role:
    role = session.get(Role, role_id)
    if role is None:
        raise NotFoundError("Role not found")
    verify_resource_access(workspace, role.team.organization_id, "role")
    return role


def get_metric_and_verify_access(session: Session, metric_id: uuid.UUID, workspace: WorkspaceContext) -> Metric:
    metric = session.get(Metric, metric_id)
    if metric is None:
        raise NotFoundError("Metric not found")
    verify_resource_access(workspace, metric.organization_id, "metric")
    return metric


def get_integration_and_verify_access(
    session: Session,
    connection_id: str,
    workspace: WorkspaceContext,
) -> Integration:
    stmt = select(Integration).where(Integration.connection_id == connection_id)
    integration = session.execute(stmt).scalars().first()
    if integration is None:
        raise NotFoundError("Integration not found")
    verify_resource_access(workspace, integration.organization_id, "integration")
    return integration
