"""
tests/test_routers.py

Pytest tests for the metric, goal and pipeline endpoints through FastAPI's
TestClient. ``get_workspace`` and ``get_db`` are overridden; the session is
a MagicMock whose ``get`` serves SimpleNamespace rows by primary key.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api import dependencies
from app.api.dependencies import CurrentUser, get_current_user, get_workspace
from app.api.routers import metrics, organization, pipeline
from app.domain.workspace import WorkspaceContext, WorkspaceType
from app.errors import OrgPulseError
from app.services import goal_service
from app.services.cache import DASHBOARD_CACHE, dashboard_tags, get_cache
from db.session import get_db

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)

WORKSPACE = WorkspaceContext(
    type=WorkspaceType.ORGANIZATION,
    organization_id="org_1",
    user_id="user_1",
    assignable_user_ids=["user_1"],
)


def _metric(organization_id: str = "org_1", team_id: uuid.UUID | None = None, **overrides: Any) -> SimpleNamespace:
    fields: dict[str, Any] = {
        "id": uuid.uuid4(),
        "organization_id": organization_id,
        "team_id": team_id,
        "integration_id": uuid.uuid4(),
        "template_id": "github-commits",
        "name": "Commits",
        "description": None,
        "endpoint_config": {},
        "poll_frequency": "daily",
        "next_poll_at": None,
        "last_fetched_at": None,
        "last_error": None,
        "refresh_status": None,
        "integration": None,
        "dashboard_charts": [],
        "goal": None,
        "is_manual": False,
        "created_at": NOW,
        "updated_at": NOW,
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


class FakeDB:
    """Rows by id plus a fixed scalar for count queries."""

    def __init__(self) -> None:
        self.rows: dict[Any, Any] = {}
        self.session = MagicMock()
        self.session.get.side_effect = lambda model, key: self.rows.get(key)
        self.session.execute.return_value.scalar_one.return_value = 0

    def add(self, row: Any) -> Any:
        self.rows[row.id] = row
        return row

    def count(self, value: int) -> None:
        self.session.execute.return_value.scalar_one.return_value = value


@pytest.fixture()
def db() -> FakeDB:
    return FakeDB()


@pytest.fixture()
def invalidations(monkeypatch: pytest.MonkeyPatch) -> list[tuple[str, str | None]]:
    calls: list[tuple[str, str | None]] = []
    monkeypatch.setattr(metrics, "invalidate_dashboard_cache", lambda org, team=None: calls.append((org, team)))
    return calls


@pytest.fixture()
def client(db: FakeDB) -> TestClient:
    app = FastAPI()
    app.include_router(metrics.router)
    app.include_router(pipeline.router)
    app.dependency_overrides[get_workspace] = lambda: WORKSPACE
    app.dependency_overrides[get_db] = lambda: db.session
    return TestClient(app)


# ---------------------------------------------------------------------------
# Access mapping
# ---------------------------------------------------------------------------


class TestMetricAccess:
    def test_missing_metric_is_404(self, client: TestClient) -> None:
        response = client.get(f"/metrics/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json() == {"detail": "Metric not found"}

    def test_other_organization_is_403(self, client: TestClient, db: FakeDB) -> None:
        metric = db.add(_metric(organization_id="org_2"))

        response = client.get(f"/metrics/{metric.id}")

        assert response.status_code == 403
        assert response.json() == {"detail": "Access denied to metric"}

    def test_other_organization_cannot_delete(self, client: TestClient, db: FakeDB) -> None:
        metric = db.add(_metric(organization_id="org_2"))

        response = client.delete(f"/metrics/{metric.id}")

        assert response.status_code == 403
        db.session.delete.assert_not_called()

    def test_own_metric_returned(self, client: TestClient, db: FakeDB) -> None:
        metric = db.add(_metric())

        response = client.get(f"/metrics/{metric.id}")

        assert response.status_code == 200
        assert response.json()["name"] == "Commits"


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


class TestCreateMetric:
    def test_team_from_other_organization_rejected(self, client: TestClient, db: FakeDB) -> None:
        integration = SimpleNamespace(id=uuid.uuid4(), organization_id="org_1")
        db.session.execute.return_value.scalars.return_value.first.return_value = integration
        team = db.add(SimpleNamespace(id=uuid.uuid4(), organization_id="org_2"))

        response = client.post(
            "/metrics",
            json={"template_id": "github-commits", "connection_id": "conn-1", "name": "Commits", "team_id": str(team.id)},
        )

        assert response.status_code == 403
        assert response.json() == {"detail": "Access denied to team"}
        db.session.add_all.assert_not_called()

    def test_missing_team_is_404(self, client: TestClient, db: FakeDB) -> None:
        integration = SimpleNamespace(id=uuid.uuid4(), organization_id="org_1")
        db.session.execute.return_value.scalars.return_value.first.return_value = integration

        response = client.post(
            "/metrics",
            json={"template_id": "github-commits", "connection_id": "conn-1", "name": "C", "team_id": str(uuid.uuid4())},
        )

        assert response.status_code == 404
        assert response.json() == {"detail": "Team not found"}

    def test_integration_from_other_organization_rejected(self, client: TestClient, db: FakeDB) -> None:
        integration = SimpleNamespace(id=uuid.uuid4(), organization_id="org_2")
        db.session.execute.return_value.scalars.return_value.first.return_value = integration

        response = client.post("/metrics", json={"template_id": "github-commits", "connection_id": "conn-1", "name": "C"})

        assert response.status_code == 403
        assert response.json() == {"detail": "Access denied to integration"}


# ---------------------------------------------------------------------------
# Update and delete
# ---------------------------------------------------------------------------


class TestUpdateAndDeleteMetric:
    def test_update_invalidates_dashboard(
        self, client: TestClient, db: FakeDB, invalidations: list[tuple[str, str | None]]
    ) -> None:
        team_id = uuid.uuid4()
        metric = db.add(_metric(team_id=team_id))

        response = client.patch(f"/metrics/{metric.id}", json={"name": "Merged PRs"})

        assert response.status_code == 200
        assert metric.name == "Merged PRs"
        assert invalidations == [("org_1", str(team_id))]

    def test_delete_blocked_while_roles_reference_metric(
        self, client: TestClient, db: FakeDB, invalidations: list[tuple[str, str | None]]
    ) -> None:
        metric = db.add(_metric())
        db.count(2)

        response = client.delete(f"/metrics/{metric.id}")

        assert response.status_code == 400
        assert response.json() == {"detail": "Cannot delete metric. It is used by 2 role(s)."}
        db.session.delete.assert_not_called()
        assert invalidations == []

    def test_delete_invalidates_dashboard(
        self, client: TestClient, db: FakeDB, invalidations: list[tuple[str, str | None]]
    ) -> None:
        metric = db.add(_metric())

        response = client.delete(f"/metrics/{metric.id}")

        assert response.status_code == 200
        assert response.json() == {"success": True}
        db.session.delete.assert_called_once_with(metric)
        assert invalidations == [("org_1", None)]


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class TestRegenerateChart:
    def test_no_data_points_rejected(self, client: TestClient, db: FakeDB, monkeypatch: pytest.MonkeyPatch) -> None:
        started: list[Any] = []
        monkeypatch.setattr(pipeline, "start_pipeline", lambda *args, **kwargs: started.append(args))
        metric = db.add(_metric(dashboard_charts=[SimpleNamespace(id=uuid.uuid4())]))

        response = client.post(f"/pipeline/{metric.id}/regenerate-chart", json={})

        assert response.status_code == 400
        assert response.json() == {"detail": "No data points to chart - run a data refresh first"}
        assert started == []

    def test_points_present_starts_pipeline(
        self, client: TestClient, db: FakeDB, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        started: list[Any] = []
        monkeypatch.setattr(pipeline, "start_pipeline", lambda *args, **kwargs: started.append(kwargs))
        metric = db.add(_metric(dashboard_charts=[SimpleNamespace(id=uuid.uuid4())]))
        db.count(5)

        response = client.post(f"/pipeline/{metric.id}/regenerate-chart", json={"chart_type": "bar"})

        assert response.status_code == 200
        assert started[0]["chart_type"] == "bar"

    def test_metric_without_chart_is_404(self, client: TestClient, db: FakeDB) -> None:
        metric = db.add(_metric())

        response = client.post(f"/pipeline/{metric.id}/regenerate-chart", json={})

        assert response.status_code == 404


# ---------------------------------------------------------------------------
# Goals
# ---------------------------------------------------------------------------


class TestUpsertGoalInvalidation:
    @pytest.fixture(autouse=True)
    def _clean_cache(self):
        get_cache().clear()
        yield
        get_cache().clear()

    def test_organization_dashboard_refreshed_without_team(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(goal_service, "compute_goal_progress", lambda *args, **kwargs: None)
        cache = get_cache()
        cache.set("dashboard:org_1:all", "stale", DASHBOARD_CACHE, dashboard_tags("org_1"))
        goal = SimpleNamespace(goal_type="ABSOLUTE", target_value=5.0, on_track_threshold=80.0)
        metric = _metric(goal=goal)

        goal_service.upsert_goal(MagicMock(), metric, goal_type="ABSOLUTE", target_value=10.0)

        assert goal.target_value == 10.0
        value = cache.get_or_load("dashboard:org_1:all", DASHBOARD_CACHE, lambda: "fresh", dashboard_tags("org_1"))
        assert value == "fresh"


# ---------------------------------------------------------------------------
# Workspace dependency
# ---------------------------------------------------------------------------


class TestWorkspaceDependency:
    def test_resolution_failure_mapped_to_http(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def fail(user_id: str) -> WorkspaceContext:
            raise OrgPulseError("Failed to load workspace")

        monkeypatch.setattr(dependencies, "get_workspace_context", fail)
        app = FastAPI()
        app.include_router(organization.router)
        app.dependency_overrides[get_current_user] = lambda: CurrentUser(id="user_1")
        app.dependency_overrides[get_db] = lambda: MagicMock()

        response = TestClient(app).get("/organization/members")

        assert response.status_code == 500
        assert response.json() == {"detail": "Failed to load workspace"}
