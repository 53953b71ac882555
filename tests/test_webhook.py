"""
tests/test_webhook.py

Pytest tests for Nango auth webhook handling: the service functions with a
mocked session, and the HTTP endpoint through FastAPI's TestClient with
``get_db`` overridden.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.routers.nango_webhook import router
from app.services.webhook_service import EndUser, WebhookEvent, WebhookPayloadError, process_webhook
from db.models.integration import Integration, IntegrationStatus
from db.session import get_db


def _session(existing: object | None = None) -> MagicMock:
    session = MagicMock()
    session.execute.return_value.scalars.return_value.first.return_value = existing
    return session


def _creation_event(**overrides: object) -> WebhookEvent:
    fields: dict[str, object] = {
        "type": "auth",
        "operation": "creation",
        "connection_id": "conn-1",
        "provider_config_key": "github",
        "success": True,
        "end_user": EndUser(
            end_user_id="user_1",
            email="ann@example.com",
            display_name="Ann",
            tags={"organizationId": "org_1"},
        ),
    }
    fields.update(overrides)
    return WebhookEvent(**fields)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class TestProcessWebhook:
    def test_creation_inserts_integration(self) -> None:
        session = _session()

        assert process_webhook(session, _creation_event()) == "Connection created"

        added = session.add.call_args.args[0]
        assert isinstance(added, Integration)
        assert added.organization_id == "org_1"
        assert added.provider_id == "github"
        assert added.connected_by == "user_1"
        assert added.metadata_json == {"email": "ann@example.com", "displayName": "Ann"}
        session.commit.assert_called_once()

    def test_creation_reactivates_existing(self) -> None:
        existing = SimpleNamespace(status=IntegrationStatus.REVOKED, metadata_json=None, connected_by="old")
        session = _session(existing)

        process_webhook(session, _creation_event())

        assert existing.status == IntegrationStatus.ACTIVE
        assert existing.connected_by == "user_1"
        session.add.assert_not_called()

    def test_creation_without_organization_fails(self) -> None:
        event = _creation_event(end_user=EndUser(end_user_id="user_1", tags={}))
        with pytest.raises(WebhookPayloadError, match="Missing organizationId"):
            process_webhook(_session(), event)

    def test_creation_without_end_user_fails(self) -> None:
        with pytest.raises(WebhookPayloadError, match="endUserId"):
            process_webhook(_session(), _creation_event(end_user=None))

    def test_deletion_revokes(self) -> None:
        existing = SimpleNamespace(status=IntegrationStatus.ACTIVE)
        session = _session(existing)

        assert process_webhook(session, _creation_event(operation="deletion")) == "Connection deleted"
        assert existing.status == IntegrationStatus.REVOKED

    def test_deletion_of_unknown_connection_is_not_fatal(self) -> None:
        assert process_webhook(_session(), _creation_event(operation="deletion")) == "Connection deleted"

    def test_non_auth_type_ignored(self) -> None:
        session = _session()
        assert process_webhook(session, _creation_event(type="sync")) == "Webhook type not supported"
        session.execute.assert_not_called()

    def test_failed_creation_is_processed_without_changes(self) -> None:
        session = _session()
        assert process_webhook(session, _creation_event(success=False)) == "Webhook processed"
        session.add.assert_not_called()


# ---------------------------------------------------------------------------
# Endpoint
# ---------------------------------------------------------------------------


@pytest.fixture()
def db_session() -> MagicMock:
    return _session()


@pytest.fixture()
def client(db_session: MagicMock) -> TestClient:
    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[get_db] = lambda: db_session
    return TestClient(app)


PAYLOAD = {
    "type": "auth",
    "operation": "creation",
    "connectionId": "conn-1",
    "providerConfigKey": "posthog",
    "environment": "prod",
    "success": True,
    "endUser": {
        "endUserId": "user_1",
        "email": "ann@example.com",
        "displayName": "Ann",
        "tags": {"organizationId": "org_1"},
    },
}


class TestWebhookEndpoint:
    def test_creation(self, client: TestClient, db_session: MagicMock) -> None:
        response = client.post("/api/nango/webhook", json=PAYLOAD)

        assert response.status_code == 200
        assert response.json() == {"message": "Connection created"}
        assert db_session.add.call_args.args[0].provider_id == "posthog"

    def test_unsupported_type(self, client: TestClient) -> None:
        response = client.post("/api/nango/webhook", json={**PAYLOAD, "type": "sync"})
        assert response.json() == {"message": "Webhook type not supported"}

    def test_failure_returns_500_with_details(self, client: TestClient, db_session: MagicMock) -> None:
        payload = {**PAYLOAD, "endUser": {"endUserId": "user_1", "tags": {}}}

        response = client.post("/api/nango/webhook", json=payload)

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "Failed to process webhook"
        assert "Missing organizationId" in body["details"]
        db_session.rollback.assert_called_once()
