"""
tests/test_data_fetching.py

Pytest unit tests for endpoint placeholder substitution and the Nango
proxy fetch path. The Nango client is a MagicMock; nothing leaves the
process.
"""

from __future__ import annotations

from datetime import date
from unittest.mock import MagicMock

import pytest

from app.connectors.base import ConnectorRequestError
from app.connectors.nango_client import ProxyResponse
from app.services.data_fetching import (
    DataFetchError,
    fetch_data,
    get_date_string,
    substitute_body,
    substitute_endpoint,
)

TODAY = date(2026, 10, 19)


class TestSubstitution:
    def test_date_string(self) -> None:
        assert get_date_string(28, TODAY) == "2026-09-21"
        assert get_date_string(0, TODAY) == "2026-10-19"

    def test_relative_dates(self) -> None:
        endpoint = "/reports?start=28daysAgo&end=today"
        assert substitute_endpoint(endpoint, None, TODAY) == "/reports?start=2026-09-21&end=2026-10-19"

    def test_params(self) -> None:
        endpoint = "/repos/{OWNER}/{REPO}/commits"
        assert substitute_endpoint(endpoint, {"OWNER": "acme", "REPO": "api"}, TODAY) == "/repos/acme/api/commits"

    def test_unknown_placeholder_left_alone(self) -> None:
        assert substitute_endpoint("/x/{MISSING}", {"OTHER": "1"}, TODAY) == "/x/{MISSING}"

    def test_body_parsed_as_json_after_substitution(self) -> None:
        body = '{"query": "query { team(id: \\"{TEAM_ID}\\") { name } }"}'
        assert substitute_body(body, {"TEAM_ID": "t-1"}) == {"query": 'query { team(id: "t-1") { name } }'}

    def test_non_json_body_stays_string(self) -> None:
        assert substitute_body("id={ID}", {"ID": "7"}) == "id=7"

    def test_dict_body_passes_through(self) -> None:
        body = {"query": "{X}"}
        assert substitute_body(body, {"X": "1"}) is body

    def test_empty_params_still_parse_json_body(self) -> None:
        assert substitute_body('{"query": "{ viewer { id } }"}', {}) == {"query": "{ viewer { id } }"}

    def test_no_params_leaves_body_untouched(self) -> None:
        assert substitute_body('{"a": 1}', None) == '{"a": 1}'


class TestFetchData:
    def test_proxy_path(self) -> None:
        client = MagicMock()
        client.proxy.return_value = ProxyResponse(status=200, data=[{"id": 1}])

        result = fetch_data("posthog", "conn-1", "/api/projects/{PROJECT}/insights", params={"PROJECT": "9"}, client=client)

        assert result.data == [{"id": 1}]
        kwargs = client.proxy.call_args.kwargs
        assert kwargs["endpoint"] == "/api/projects/9/insights"
        assert kwargs["headers"] is None

    def test_graphql_gets_preflight_header(self) -> None:
        client = MagicMock()
        client.proxy.return_value = ProxyResponse(status=200, data={"data": {}})

        fetch_data("linear", "conn-1", "/graphql", method="post", body='{"query": "{ viewer { id } }"}', client=client)

        kwargs = client.proxy.call_args.kwargs
        assert kwargs["method"] == "POST"
        assert kwargs["headers"]["apollo-require-preflight"] == "true"

    def test_github_stats_retries_until_ready(self) -> None:
        client = MagicMock()
        client.proxy.side_effect = [
            ProxyResponse(status=202, data={}),
            ProxyResponse(status=202, data={}),
            ProxyResponse(status=200, data=[{"week": 1}]),
        ]
        delays: list[float] = []

        result = fetch_data(
            "github",
            "conn-1",
            "/repos/a/b/stats/commit_activity",
            client=client,
            sleep=delays.append,
        )

        assert result.data == [{"week": 1}]
        assert delays == [2.0, 4.0]

    def test_connector_error_wrapped(self) -> None:
        client = MagicMock()
        client.proxy.side_effect = ConnectorRequestError("nango: request failed with status 401", status_code=401)

        with pytest.raises(DataFetchError, match="401"):
            fetch_data("github", "conn-1", "/user", client=client)
