"""
app/services/data_fetching.py

Single entry point for reading third-party API data through Nango.

Endpoints may carry two kinds of placeholders:

- ``28daysAgo`` / ``today`` become ``YYYY-MM-DD`` dates
- ``{PARAM}`` segments are filled from the metric's endpoint params

Full ``http(s)://`` URLs are called directly with the connection's OAuth
token; provider-relative paths go through the Nango proxy.
"""

from __future__ import annotations

import json
import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any

import requests

from app.config import get_external_http_settings
from app.connectors.base import ConnectorRequestError
from app.connectors.nango_client import NangoClient, NangoConfigurationError, get_nango_client

logger = logging.getLogger(__name__)

GITHUB_STATS_RETRY_DELAYS = (2.0, 4.0, 6.0)


class DataFetchError(RuntimeError):
    """
    Raised when provider data cannot be fetched.
    """


@dataclass(frozen=True)
class FetchResult:
    data: Any
    status: int


def get_date_string(days_ago: int, today: date | None = None) -> str:
    current = today or datetime.now(timezone.utc).date()
    return (current - timedelta(days=days_ago)).isoformat()


def substitute_endpoint(endpoint: str, params: dict[str, str] | None, today: date | None = None) -> str:
    resolved = endpoint.replace("28daysAgo", get_date_string(28, today)).replace("today", get_date_string(0, today))
    for key, value in (params or {}).items():
        resolved = resolved.replace(f"{{{key}}}", str(value))
    return resolved


def substitute_body(body: Any, params: dict[str, str] | None) -> Any:
    """
    Fill ``{PARAM}`` placeholders in a string body, then parse it as JSON
    when possible. Non-string bodies pass through untouched.
    """

    if not isinstance(body, str) or params is None:
        return body
    resolved = body
    for key, value in params.items():
        resolved = re.sub(r"\{" + re.escape(key) + r"\}", lambda _match, v=str(value): v, resolved)
    try:
        return json.loads(resolved)
    except ValueError:
        return resolved


def _is_empty_stats(status: int, data: Any) -> bool:
    return status == 202 or data is None or (isinstance(data, dict) and not data)


def _fetch_direct(
    client: NangoClient,
    integration_id: str,
    connection_id: str,
    url: str,
    method: str,
    body: Any,
) -> FetchResult:
    token = client.get_token(provider_config_key=integration_id, connection_id=connection_id)
    http_settings = get_external_http_settings()
    response = requests.request(
        method=method,
        url=url,
        headers={"Authorization": f"Bearer {token}", "Content-Type": "application/json"},
        json=body if body else None,
        timeout=http_settings.timeout_seconds,
    )
    response.raise_for_status()
    data = response.json() if response.content else None
    return FetchResult(data=data, status=response.status_code)


def _fetch_proxy(
    client: NangoClient,
    integration_id: str,
    connection_id: str,
    endpoint: str,
    method: str,
    body: Any,
    sleep: Callable[[float], None],
) -> FetchResult:
    headers: dict[str, str] = {}
    if "/graphql" in endpoint:
        headers["Content-Type"] = "application/json"
        headers["apollo-require-preflight"] = "true"

    response = client.proxy(
        method=method,
        endpoint=endpoint,
        provider_config_key=integration_id,
        connection_id=connection_id,
        data=body if body else None,
        headers=headers or None,
    )

    if integration_id == "github" and "/stats/" in endpoint and _is_empty_stats(response.status, response.data):
        # GitHub answers 202 while it computes repository statistics.
        logger.info("GitHub stats not ready endpoint=%s retrying", endpoint)
        for attempt, delay in enumerate(GITHUB_STATS_RETRY_DELAYS, start=1):
            sleep(delay)
            retry = client.proxy(
                method=method,
                endpoint=endpoint,
                provider_config_key=integration_id,
                connection_id=connection_id,
            )
            if not _is_empty_stats(retry.status, retry.data):
                logger.info("GitHub stats ready endpoint=%s attempt=%s", endpoint, attempt)
                return FetchResult(data=retry.data, status=retry.status)
        logger.info("GitHub stats still empty after retries endpoint=%s", endpoint)

    return FetchResult(data=response.data, status=response.status)


def fetch_data(
    integration_id: str,
    connection_id: str,
    endpoint: str,
    method: str = "GET",
    params: dict[str, str] | None = None,
    body: Any = None,
    *,
    client: NangoClient | None = None,
    sleep: Callable[[float], None] = time.sleep,
    today: date | None = None,
) -> FetchResult:
    """
    Fetch provider data for one endpoint.

    Raises
    ------
    DataFetchError
        When Nango is not configured or the request fails.
    """

    try:
        nango = client or get_nango_client()
    except NangoConfigurationError as exc:
        raise DataFetchError(str(exc)) from exc

    final_endpoint = substitute_endpoint(endpoint, params, today)
    final_body = substitute_body(body, params)
    normalized_method = (method or "GET").upper()

    try:
        if final_endpoint.startswith(("http://", "https://")):
            return _fetch_direct(nango, integration_id, connection_id, final_endpoint, normalized_method, final_body)
        return _fetch_proxy(nango, integration_id, connection_id, final_endpoint, normalized_method, final_body, sleep)
    except (ConnectorRequestError, requests.RequestException, ValueError) as exc:
        logger.error(
            "Provider fetch failed integration=%s endpoint=%s error=%s",
            integration_id,
            final_endpoint,
            exc,
        )
        raise DataFetchError(str(exc) or f"Failed to fetch from {integration_id}") from exc
