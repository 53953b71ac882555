"""
tests/test_authorization.py

Pytest unit tests for workspace resolution and organization-scoped access
checks. WorkOS is replaced by a MagicMock client.
"""

from __future__ import annotations

import uuid
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from app.config import WorkOSSettings
from app.connectors.base import ConnectorRequestError
from app.domain.workspace import WorkspaceContext, WorkspaceType
from app.errors import AccessDeniedError, NotFoundError
from app.services.authorization import (
    WorkspaceResolver,
    get_metric_and_verify_access,
    personal_workspace,
    verify_resource_access,
)


def _resolver(client: MagicMock, **settings: object) -> WorkspaceResolver:
    return WorkspaceResolver(
        settings=WorkOSSettings(**{"api_key": "sk_test", **settings}),
        client_factory=lambda: client,
        clock=lambda: 0.0,
    )


# ---------------------------------------------------------------------------
# Workspace resolution
# ---------------------------------------------------------------------------


class TestWorkspaceResolver:
    def test_personal_when_workos_unconfigured(self) -> None:
        client = MagicMock()
        resolver = WorkspaceResolver(settings=WorkOSSettings(), client_factory=lambda: client)

        workspace = resolver.resolve("user_1")

        assert workspace.type == WorkspaceType.PERSONAL
        assert workspace.organization_id == "user:user_1"
        assert workspace.assignable_user_ids == ["user_1"]
        client.list_organization_memberships.assert_not_called()

    def test_directory_member_by_email(self) -> None:
        client = MagicMock()
        client.list_directory_users.return_value = [
            {"id": "directory_user_a", "emails": [{"value": "Ann@Example.com", "primary": True}]},
            {"id": "directory_user_b", "email": "bob@example.com"},
        ]
        client.get_user.return_value = {"email": "ann@example.com"}
        client.get_directory.return_value = {"organization_id": "org_dir"}

        workspace = _resolver(client, directory_id="directory_1").resolve("user_ann")

        assert workspace.type == WorkspaceType.DIRECTORY
        assert workspace.organization_id == "org_dir"
        assert workspace.directory_id == "directory_1"
        assert workspace.assignable_user_ids == ["directory_user_a", "directory_user_b"]

    def test_directory_user_id_matched_directly(self) -> None:
        client = MagicMock()
        client.list_directory_users.return_value = [{"id": "directory_user_a"}]
        client.get_directory.return_value = {"organization_id": "org_dir"}

        workspace = _resolver(client, directory_id="directory_1").resolve("directory_user_a")

        assert workspace.type == WorkspaceType.DIRECTORY
        client.get_user.assert_not_called()

    def test_organization_membership(self) -> None:
        client = MagicMock()
        client.list_organization_memberships.side_effect = [
            [{"organization_id": "org_1", "user_id": "user_1"}],
            [{"user_id": "user_1"}, {"user_id": "user_2"}],
        ]

        workspace = _resolver(client).resolve("user_1")

        assert workspace.type == WorkspaceType.ORGANIZATION
        assert workspace.organization_id == "org_1"
        assert workspace.can_assign("user_2")
        assert not workspace.can_assign("user_3")

    def test_workos_failure_falls_back_to_personal(self) -> None:
        client = MagicMock()
        client.list_organization_memberships.side_effect = ConnectorRequestError("workos: down", status_code=503)

        workspace = _resolver(client).resolve("user_1")

        assert workspace == personal_workspace("user_1")

    def test_directory_list_is_cached(self) -> None:
        client = MagicMock()
        client.list_directory_users.return_value = [{"id": "directory_user_a"}]
        client.get_directory.return_value = {"organization_id": "org_dir"}
        resolver = _resolver(client, directory_id="directory_1")

        resolver.resolve("directory_user_a")
        resolver.resolve("directory_user_a")

        assert client.list_directory_users.call_count == 1


# ---------------------------------------------------------------------------
# Access checks
# ---------------------------------------------------------------------------


class TestAccessChecks:
    WORKSPACE = WorkspaceContext(type=WorkspaceType.ORGANIZATION, organization_id="org_1", user_id="user_1")

    def test_same_organization_passes(self) -> None:
        verify_resource_access(self.WORKSPACE, "org_1", "team")

    def test_other_organization_denied(self) -> None:
        with pytest.raises(AccessDeniedError, match="Access denied to team") as excinfo:
            verify_resource_access(self.WORKSPACE, "org_2", "team")
        assert excinfo.value.status_code == 403

    def test_missing_metric_is_not_found(self) -> None:
        session = MagicMock()
        session.get.return_value = None

        with pytest.raises(NotFoundError) as excinfo:
            get_metric_and_verify_access(session, uuid.uuid4(), self.WORKSPACE)
        assert excinfo.value.status_code == 404

    def test_metric_in_other_organization(self) -> None:
        session = MagicMock()
        session.get.return_value = SimpleNamespace(organization_id="org_2")

        with pytest.raises(AccessDeniedError):
            get_metric_and_verify_access(session, uuid.uuid4(), self.WORKSPACE)
