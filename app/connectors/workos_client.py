"""
app/connectors/workos_client.py

WorkOS REST client for organization memberships, users and directory sync.
"""

from __future__ import annotations

from typing import Any

import requests

from app.config import ExternalHTTPSettings, WorkOSSettings, get_external_http_settings, get_workos_settings
from app.connectors.base import BaseHTTPClient, ConnectorRequestError

_DIRECTORY_PAGE_SIZE = 100


class WorkOSClient(BaseHTTPClient):
    def __init__(
        self,
        *,
        settings: WorkOSSettings,
        http_settings: ExternalHTTPSettings,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(source="workos", http_settings=http_settings, session=session)
        if not settings.api_key:
            raise ConnectorRequestError("WORKOS_API_KEY not configured")
        self._api_key = settings.api_key
        self._base_url = settings.base_url

    def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        payload = self._request_json(
            method="GET",
            url=f"{self._base_url}{path}",
            params={key: value for key, value in (params or {}).items() if value is not None},
            headers={"Authorization": f"Bearer {self._api_key}"},
        )
        return payload or {}

    def list_organization_memberships(
        self,
        *,
        user_id: str | None = None,
        organization_id: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        payload = self._get(
            "/user_management/organization_memberships",
            {"user_id": user_id, "organization_id": organization_id, "limit": limit},
        )
        return list(payload.get("data") or [])

    def get_user(self, user_id: str) -> dict[str, Any]:
        return self._get(f"/user_management/users/{user_id}")

    def get_directory(self, directory_id: str) -> dict[str, Any]:
        return self._get(f"/directories/{directory_id}")

    def list_directory_users(self, directory_id: str) -> list[dict[str, Any]]:
        """
        Return every user in a directory, following ``list_metadata.after``.
        """

        users: list[dict[str, Any]] = []
        after: str | None = None
        while True:
            payload = self._get(
                "/directory_users",
                {"directory": directory_id, "limit": _DIRECTORY_PAGE_SIZE, "after": after},
            )
            users.extend(payload.get("data") or [])
            after = (payload.get("list_metadata") or {}).get("after")
            if not after:
                return users


def get_workos_client() -> WorkOSClient:
    return WorkOSClient(settings=get_workos_settings(), http_settings=get_external_http_settings())
