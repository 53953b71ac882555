"""
app/connectors/linear_client.py

Linear GraphQL client used to file user feedback as issues.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import requests

from app.config import ExternalHTTPSettings, LinearSettings, get_external_http_settings, get_linear_settings
from app.connectors.base import BaseHTTPClient, ConnectorRequestError

logger = logging.getLogger(__name__)

_ISSUE_CREATE_MUTATION = """
mutation IssueCreate($title: String!, $teamId: String!, $description: String, $priority: Int) {
  issueCreate(input: {
    title: $title
    description: $description
    teamId: $teamId
    priority: $priority
  }) {
    success
    issue {
      id
      identifier
      title
      url
    }
  }
}
"""


@dataclass(frozen=True)
class LinearIssue:
    id: str | None
    identifier: str | None
    url: str | None


class LinearClient(BaseHTTPClient):
    def __init__(
        self,
        *,
        settings: LinearSettings,
        http_settings: ExternalHTTPSettings,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(source="linear", http_settings=http_settings, session=session)
        if not settings.api_key or not settings.team_id:
            raise ConnectorRequestError("Linear API credentials not configured")
        self._api_key = settings.api_key
        self._team_id = settings.team_id
        self._api_url = settings.api_url

    def create_issue(self, *, title: str, description: str, priority: int) -> LinearIssue:
        """
        Create an issue in the configured team.

        Raises ConnectorRequestError on HTTP failure, GraphQL errors or
        ``success: false``.
        """

        payload = self._request_json(
            method="POST",
            url=self._api_url,
            headers={"Content-Type": "application/json", "Authorization": self._api_key},
            json_body={
                "query": _ISSUE_CREATE_MUTATION,
                "variables": {
                    "title": title,
                    "teamId": self._team_id,
                    "description": description,
                    "priority": priority,
                },
            },
        ) or {}

        errors = payload.get("errors")
        if errors:
            message = errors[0].get("message") if isinstance(errors[0], dict) else None
            logger.error("Linear GraphQL errors errors=%s", errors)
            raise ConnectorRequestError(f"Failed to submit feedback: {message or 'Unknown error'}")

        result = (payload.get("data") or {}).get("issueCreate") or {}
        if not result.get("success"):
            raise ConnectorRequestError("Failed to submit feedback")

        issue = result.get("issue") or {}
        return LinearIssue(id=issue.get("id"), identifier=issue.get("identifier"), url=issue.get("url"))


def get_linear_client() -> LinearClient:
    return LinearClient(settings=get_linear_settings(), http_settings=get_external_http_settings())
