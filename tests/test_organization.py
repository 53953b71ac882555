"""
tests/test_organization.py

Pytest tests for the organization member directory and member statistics:
the service functions with a mocked WorkOS resolver, and the endpoints
through FastAPI's TestClient with ``get_workspace`` and ``get_db``
overridden.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.dependencies import get_workspace
from app.api.routers import organization
from app.connectors.base import ConnectorRequestError
from app.domain.workspace import WorkspaceContext, WorkspaceType
from app.errors import OrgPulseError
from app.services.organization_service import (
    AssignedRole,
    Member,
    MemberSource,
    MemberStats,
    aggregate_member_stats,
    fetch_organization_members,
)
from db.session import get_db

ORG_WORKSPACE = WorkspaceContext(
    type=WorkspaceType.ORGANIZATION,
    organization_id="org_1",
    user_id="user_1",
    assignable_user_ids=["user_1"],
    directory_id="dir_1",
)


def _resolver() -> MagicMock:
    resolver = MagicMock()
    resolver.client.list_organization_memberships.return_value = [{"user_id": "user_1"}, {"user_id": "user_2"}]
    resolver.client.get_user.side_effect = lambda user_id: {
        "user_1": {"id": "user_1", "email": "Ann@Example.com", "first_name": "Ann", "last_name": "Lee"},
        "user_2": {"id": "user_2", "email": "bo@example.com", "first_name": "Bo"},
    }[user_id]
    resolver.get_directory_users.return_value = [
        {"id": "directory_user_1", "emails": [{"value": "ann@example.com", "primary": True}], "job_title": "CTO"},
        {"id": "directory_user_9", "email": "cy@example.com", "first_name": "Cy", "groups": [{"name": "Eng"}]},
    ]
    return resolver


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------


class TestFetchOrganizationMembers:
    def test_personal_workspace_is_just_the_user(self) -> None:
        workspace = WorkspaceContext(type=WorkspaceType.PERSONAL, organization_id="user:u", user_id="u")
        resolver = MagicMock()

        members = fetch_organization_members(workspace, resolver)

        assert [member.id for member in members] == ["u"]
        resolver.client.list_organization_memberships.assert_not_called()

    def test_directory_users_merged_by_email(self) -> None:
        members = {member.email: member for member in fetch_organization_members(ORG_WORKSPACE, _resolver())}

        assert set(members) == {"ann@example.com", "bo@example.com", "cy@example.com"}
        ann = members["ann@example.com"]
        assert ann.id == "directory_user_1"
        assert ann.source == MemberSource.BOTH
        assert ann.can_login is True
        assert ann.job_title == "CTO"

        cy = members["cy@example.com"]
        assert cy.source == MemberSource.DIRECTORY
        assert cy.can_login is False
        assert cy.groups == [{"name": "Eng"}]

        assert members["bo@example.com"].source == MemberSource.MEMBERSHIP

    def test_no_directory_skips_directory_users(self) -> None:
        workspace = WorkspaceContext(type=WorkspaceType.ORGANIZATION, organization_id="org_1", user_id="user_1")
        resolver = _resolver()

        members = fetch_organization_members(workspace, resolver)

        assert len(members) == 2
        resolver.get_directory_users.assert_not_called()

    def test_workos_failure_raises(self) -> None:
        resolver = _resolver()
        resolver.client.list_organization_memberships.side_effect = ConnectorRequestError("timeout")

        with pytest.raises(OrgPulseError, match="Failed to load organization members"):
            fetch_organization_members(ORG_WORKSPACE, resolver)

    def test_display_name_falls_back_to_email(self) -> None:
        assert Member(id="u", email="x@example.com").display_name == "x@example.com"
        assert Member(id="u", email=None, first_name="Ann").display_name == "Ann"


# ---------------------------------------------------------------------------
# Member stats
# ---------------------------------------------------------------------------


class TestAggregateMemberStats:
    def test_totals_per_user(self) -> None:
        stats = aggregate_member_stats(
            [
                AssignedRole(user_id="a", effort_points=3, goal_target=10.0, latest_value=12.0),
                AssignedRole(user_id="a", effort_points=None, goal_target=10.0, latest_value=4.0),
                AssignedRole(user_id="a", effort_points=2, goal_target=None, latest_value=None),
                AssignedRole(user_id="b", effort_points=5, goal_target=1.0, latest_value=None),
            ]
        )

        assert stats["a"] == MemberStats(role_count=3, total_effort=5, goals_on_track=1, goals_total=2)
        assert stats["b"] == MemberStats(role_count=1, total_effort=5, goals_on_track=0, goals_total=1)

    def test_no_roles(self) -> None:
        assert aggregate_member_stats([]) == {}


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@pytest.fixture()
def client() -> TestClient:
    app = FastAPI()
    app.include_router(organization.router)
    app.dependency_overrides[get_workspace] = lambda: ORG_WORKSPACE
    app.dependency_overrides[get_db] = lambda: MagicMock()
    return TestClient(app)


class TestOrganizationEndpoints:
    def test_members(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(
            organization,
            "fetch_organization_members",
            lambda workspace: [Member(id="user_1", email="ann@example.com", first_name="Ann")],
        )

        response = client.get("/organization/members")

        assert response.status_code == 200
        body = response.json()
        assert body[0]["id"] == "user_1"
        assert body[0]["display_name"] == "Ann"
        assert body[0]["source"] == MemberSource.MEMBERSHIP

    def test_members_failure_is_500(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        def fail(workspace: WorkspaceContext) -> list[Member]:
            raise OrgPulseError("Failed to load organization members")

        monkeypatch.setattr(organization, "fetch_organization_members", fail)

        response = client.get("/organization/members")

        assert response.status_code == 500
        assert response.json() == {"detail": "Failed to load organization members"}

    def test_member_stats_scoped_to_organization(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        seen: list[str] = []

        def fake_stats(session: object, organization_id: str) -> dict[str, MemberStats]:
            seen.append(organization_id)
            return {"user_1": MemberStats(role_count=2, total_effort=8, goals_on_track=1, goals_total=2)}

        monkeypatch.setattr(organization, "get_member_stats", fake_stats)

        response = client.get("/organization/member-stats")

        assert response.status_code == 200
        assert response.json() == {
            "user_1": {"role_count": 2, "total_effort": 8, "goals_on_track": 1, "goals_total": 2}
        }
        assert seen == ["org_1"]
