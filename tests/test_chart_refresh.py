"""
tests/test_chart_refresh.py

Pytest unit tests for re-executing stored chart transformers during a
soft refresh. The sandbox call and the data point loader are replaced via
monkeypatch.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any
from unittest.mock import MagicMock

import pytest

from app.services import chart_generator, data_pipeline
from sandbox.executor import DataPoint, ExecutionResult

POINTS = [DataPoint(timestamp=datetime(2026, 10, 1, tzinfo=timezone.utc), value=4.0, dimensions={"repo": "api"})]


def _chart(**transformer_fields: Any) -> SimpleNamespace:
    fields: dict[str, Any] = {
        "transformer_code": "function transform(d, p) { return {}; }",
        "chart_type": "bar",
        "cadence": "WEEKLY",
        "date_range": "30d",
        "aggregation": "sum",
        "selected_dimension": "repo",
    }
    fields.update(transformer_fields)
    chart_id = uuid.uuid4()
    return SimpleNamespace(
        id=chart_id,
        metric_id=uuid.uuid4(),
        chart_config={"valueLabelOverride": "Commits"},
        chart_type="bar",
        chart_transformer=SimpleNamespace(**fields),
    )


@pytest.fixture()
def calls(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    recorded: list[dict[str, Any]] = []
    loads: list[uuid.UUID] = []

    def fake_execute(code: str, data_points: list[DataPoint], preferences: dict[str, Any]) -> ExecutionResult:
        recorded.append({"points": data_points, "preferences": preferences})
        return ExecutionResult(success=True, data={"chartType": "bar", "chartData": []})

    def fake_load(session: Any, metric_id: uuid.UUID, limit: int = 1000) -> list[DataPoint]:
        loads.append(metric_id)
        return POINTS

    monkeypatch.setattr(chart_generator.executor, "execute_chart_transformer", fake_execute)
    monkeypatch.setattr(chart_generator, "load_data_points", fake_load)
    recorded.append({"loads": loads})
    return recorded


def _session_for(*charts: SimpleNamespace) -> MagicMock:
    by_id = {chart.id: chart for chart in charts}
    session = MagicMock()
    session.get.side_effect = lambda model, key: by_id.get(key)
    return session


class TestSoftRefreshCharts:
    def test_saved_preferences_passed_through(self, calls: list[dict[str, Any]]) -> None:
        chart = _chart()
        metric = SimpleNamespace(id=chart.metric_id, dashboard_charts=[chart])

        data_pipeline.execute_chart_transformers(_session_for(chart), metric)

        preferences = calls[1]["preferences"]
        assert preferences == {
            "chartType": "bar",
            "dateRange": "30d",
            "aggregation": "sum",
            "cadence": "WEEKLY",
            "selectedDimension": "repo",
        }
        assert chart.chart_config["valueLabelOverride"] == "Commits"

    def test_missing_range_and_aggregation_use_defaults(self, calls: list[dict[str, Any]]) -> None:
        chart = _chart(date_range=None, aggregation=None, selected_dimension=None)
        metric = SimpleNamespace(id=chart.metric_id, dashboard_charts=[chart])

        data_pipeline.execute_chart_transformers(_session_for(chart), metric)

        preferences = calls[1]["preferences"]
        assert preferences["dateRange"] == "all"
        assert preferences["aggregation"] == "none"
        assert "selectedDimension" not in preferences

    def test_points_loaded_once_for_all_charts(self, calls: list[dict[str, Any]]) -> None:
        first, second = _chart(), _chart()
        second.metric_id = first.metric_id
        metric = SimpleNamespace(id=first.metric_id, dashboard_charts=[first, second])

        data_pipeline.execute_chart_transformers(_session_for(first, second), metric)

        assert calls[0]["loads"] == [first.metric_id]
        assert len(calls) == 3

    def test_chart_without_transformer_skipped(self, calls: list[dict[str, Any]]) -> None:
        chart = _chart()
        chart.chart_transformer = None
        metric = SimpleNamespace(id=chart.metric_id, dashboard_charts=[chart])

        data_pipeline.execute_chart_transformers(_session_for(chart), metric)

        assert calls[0]["loads"] == []
        assert len(calls) == 1
