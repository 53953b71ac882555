"""
app/connectors/nango_client.py

Nango REST client: authenticated proxy, token lookup, connection removal and
connect sessions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import requests

from app.config import ExternalHTTPSettings, NangoSettings, get_external_http_settings, get_nango_settings
from app.connectors.base import BaseHTTPClient, ConnectorRequestError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProxyResponse:
    status: int
    data: Any


class NangoConfigurationError(RuntimeError):
    """
    Raised when NANGO_SECRET_KEY is not configured.
    """


class NangoClient(BaseHTTPClient):
    """
    Thin wrapper over the Nango HTTP API.
    """

    def __init__(
        self,
        *,
        settings: NangoSettings,
        http_settings: ExternalHTTPSettings,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(source="nango", http_settings=http_settings, session=session)
        if not settings.secret_key:
            raise NangoConfigurationError("Nango secret key not configured")
        self._secret_key = settings.secret_key
        self._base_url = settings.base_url

    def _auth_headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {self._secret_key}"}
        if extra:
            headers.update(extra)
        return headers

    def proxy(
        self,
        *,
        method: str,
        endpoint: str,
        provider_config_key: str,
        connection_id: str,
        data: Any = None,
        headers: dict[str, str] | None = None,
    ) -> ProxyResponse:
        """
        Forward a request to the provider API through Nango.

        ``endpoint`` is the provider-relative path, e.g. ``/repos/x/y``.
        """

        path = endpoint if endpoint.startswith("/") else f"/{endpoint}"
        request_headers = self._auth_headers(
            {
                "Connection-Id": connection_id,
                "Provider-Config-Key": provider_config_key,
                **(headers or {}),
            }
        )
        response = self._request(
            method=method.upper(),
            url=f"{self._base_url}/proxy{path}",
            headers=request_headers,
            json_body=data,
        )
        if not response.content:
            return ProxyResponse(status=response.status_code, data=None)
        try:
            payload = response.json()
        except ValueError:
            payload = response.text
        return ProxyResponse(status=response.status_code, data=payload)

    def get_token(self, *, provider_config_key: str, connection_id: str) -> str:
        """
        Return the current OAuth access token for a connection.
        """

        payload = self._request_json(
            method="GET",
            url=f"{self._base_url}/connection/{connection_id}",
            params={"provider_config_key": provider_config_key},
            headers=self._auth_headers(),
        )
        credentials = (payload or {}).get("credentials") or {}
        token = credentials.get("access_token") or credentials.get("api_key")
        if not token:
            raise ConnectorRequestError("Failed to retrieve access token from Nango")
        return str(token)

    def delete_connection(self, *, provider_config_key: str, connection_id: str) -> None:
        self._request(
            method="DELETE",
            url=f"{self._base_url}/connection/{connection_id}",
            params={"provider_config_key": provider_config_key},
            headers=self._auth_headers(),
        )
        logger.info(
            "Nango connection deleted connection_id=%s provider=%s",
            connection_id,
            provider_config_key,
        )

    def create_connect_session(
        self,
        *,
        end_user: dict[str, Any],
        organization: dict[str, Any] | None = None,
        allowed_integrations: list[str] | None = None,
    ) -> str:
        """
        Create a short-lived connect session and return its token.
        """

        body: dict[str, Any] = {"end_user": end_user}
        if organization:
            body["organization"] = organization
        if allowed_integrations:
            body["allowed_integrations"] = allowed_integrations

        payload = self._request_json(
            method="POST",
            url=f"{self._base_url}/connect/sessions",
            headers=self._auth_headers({"Content-Type": "application/json"}),
            json_body=body,
        )
        token = ((payload or {}).get("data") or {}).get("token")
        if not token:
            raise ConnectorRequestError("Nango did not return a connect session token")
        return str(token)


def get_nango_client() -> NangoClient:
    return NangoClient(settings=get_nango_settings(), http_settings=get_external_http_settings())
