"""
tests/test_sandbox_executor.py

Pytest unit tests for transformer output validation.

The JavaScript runtime is replaced with a stub via monkeypatch, so these
tests run without mini-racer installed.
"""

from __future__ import annotations

import json
import math
from datetime import datetime, timezone
from typing import Any

import pytest

from sandbox import executor, runtime
from sandbox.runtime import SandboxResult, build_script, to_js_literal


def _stub_sandbox(monkeypatch: pytest.MonkeyPatch, result: SandboxResult) -> list[dict[str, Any]]:
    calls: list[dict[str, Any]] = []

    def fake_run(code: str, args: dict[str, Any]) -> SandboxResult:
        calls.append(args)
        return result

    monkeypatch.setattr(executor, "run_in_sandbox", fake_run)
    return calls


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------


class TestParseFloat:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            (3, 3.0),
            (2.5, 2.5),
            ("42", 42.0),
            ("12.5kg", 12.5),
            ("  -7e2 ", -700.0),
            (".5", 0.5),
        ],
    )
    def test_numeric_prefixes(self, raw: Any, expected: float) -> None:
        assert executor.parse_float(raw) == pytest.approx(expected)

    @pytest.mark.parametrize("raw", ["abc", "", None, True, {"a": 1}])
    def test_non_numeric_is_nan(self, raw: Any) -> None:
        assert math.isnan(executor.parse_float(raw))

    def test_infinity(self) -> None:
        assert executor.parse_float("-Infinity") == -math.inf


class TestParseTimestamp:
    def test_epoch_millis(self) -> None:
        assert executor.parse_timestamp(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_iso_with_z(self) -> None:
        assert executor.parse_timestamp("2026-10-19T08:30:00Z") == datetime(
            2026, 10, 19, 8, 30, tzinfo=timezone.utc
        )

    def test_naive_iso_is_utc(self) -> None:
        parsed = executor.parse_timestamp("2026-10-19")
        assert parsed == datetime(2026, 10, 19, tzinfo=timezone.utc)

    @pytest.mark.parametrize("raw", ["not a date", None, True, float("nan")])
    def test_invalid(self, raw: Any) -> None:
        assert executor.parse_timestamp(raw) is None

    def test_format_timestamp_uses_z_suffix(self) -> None:
        value = datetime(2026, 10, 19, 8, 30, tzinfo=timezone.utc)
        assert executor.format_timestamp(value) == "2026-10-19T08:30:00.000Z"


# ---------------------------------------------------------------------------
# Ingestion transformer output
# ---------------------------------------------------------------------------


class TestIngestionExecution:
    def test_valid_points(self, monkeypatch: pytest.MonkeyPatch) -> None:
        calls = _stub_sandbox(
            monkeypatch,
            SandboxResult(
                success=True,
                data=[
                    {"timestamp": "2026-10-18T00:00:00Z", "value": "5"},
                    {"timestamp": "2026-10-19T00:00:00Z", "value": 7, "dimensions": {"repo": "a"}},
                ],
            ),
        )
        result = executor.execute_data_ingestion_transformer("code", {"items": []}, {"owner": "x"})

        assert result.success is True
        assert [point.value for point in result.data] == [5.0, 7.0]
        assert result.data[1].dimensions == {"repo": "a"}
        assert calls[0] == {"apiResponse": {"items": []}, "endpointConfig": {"owner": "x"}}

    def test_duplicate_timestamps_keep_last(self, monkeypatch: pytest.MonkeyPatch) -> None:
        _stub_sandbox(
            monkeypatch,
            SandboxResult(
                success=True,
                data=[
                    {"timestamp": "2026-10-19", "value": 1},
                    {"timestamp": "2026-10-19", "value": 2},
                ],
            ),
        )
        result = executor.execute_data_ingestion_transformer("code", {}, {})
        assert len(result.data) == 1
        assert result.data[0].value == 2.0

    def test_non_array_output(self, monkeypatch: pytest.MonkeyPatch) -> None:
        _stub_sandbox(monkeypatch, SandboxResult(success=True, data={"value": 1}))
        result = executor.execute_data_ingestion_transformer("code", {}, {})
        assert result.success is False
        assert result.error == "Transformer must return an array of DataPoints"

    def test_invalid_value_reports_index(self, monkeypatch: pytest.MonkeyPatch) -> None:
        _stub_sandbox(
            monkeypatch,
            SandboxResult(success=True, data=[{"timestamp": "2026-10-19", "value": "n/a"}]),
        )
        result = executor.execute_data_ingestion_transformer("code", {}, {})
        assert result.success is False
        assert "index 0" in result.error

    def test_invalid_timestamp(self, monkeypatch: pytest.MonkeyPatch) -> None:
        _stub_sandbox(monkeypatch, SandboxResult(success=True, data=[{"timestamp": "soon", "value": 1}]))
        result = executor.execute_data_ingestion_transformer("code", {}, {})
        assert result.success is False
        assert "invalid timestamp" in result.error

    def test_sandbox_failure_propagates_as_result(self, monkeypatch: pytest.MonkeyPatch) -> None:
        _stub_sandbox(monkeypatch, SandboxResult(success=False, error="ReferenceError: foo"))
        result = executor.execute_data_ingestion_transformer("code", {}, {})
        assert result.success is False
        assert result.error == "ReferenceError: foo"


# ---------------------------------------------------------------------------
# Chart transformer output
# ---------------------------------------------------------------------------


class TestChartExecution:
    CONFIG = {
        "chartType": "line",
        "chartData": [{"date": "Oct 19", "value": 3}],
        "chartConfig": {"value": {"label": "Commits"}},
        "xAxisKey": "date",
        "dataKeys": ["value"],
        "title": "Commits",
    }

    def test_valid_config(self, monkeypatch: pytest.MonkeyPatch) -> None:
        calls = _stub_sandbox(monkeypatch, SandboxResult(success=True, data=self.CONFIG))
        points = [executor.DataPoint(timestamp=datetime(2026, 10, 19, tzinfo=timezone.utc), value=3.0)]

        result = executor.execute_chart_transformer("code", points, {"chartType": "line"})

        assert result.success is True
        assert calls[0]["dataPoints"][0]["timestamp"] == "2026-10-19T00:00:00.000Z"

    @pytest.mark.parametrize("missing", executor.CHART_REQUIRED_FIELDS)
    def test_missing_required_field(self, missing: str) -> None:
        config = {key: value for key, value in self.CONFIG.items() if key != missing}
        assert executor.validate_chart_config(config) == f"ChartConfig missing required field: {missing}"

    def test_chart_data_must_be_array(self) -> None:
        assert executor.validate_chart_config({**self.CONFIG, "chartData": {}}) == "chartData must be an array"

    def test_non_object(self) -> None:
        assert executor.validate_chart_config([]) == "ChartTransformer must return a ChartConfig object"


# ---------------------------------------------------------------------------
# Script assembly
# ---------------------------------------------------------------------------


class TestScriptAssembly:
    def test_js_literal_round_trips_through_json(self) -> None:
        literal = to_js_literal({"quote": 'say "hi"', "when": datetime(2026, 10, 19, tzinfo=timezone.utc)})
        assert json.loads(json.loads(literal)) == {"quote": 'say "hi"', "when": "2026-10-19T00:00:00.000Z"}

    def test_build_script_calls_transform_with_args_in_order(self) -> None:
        script = build_script("function transform(a, b) { return a; }", {"apiResponse": 1, "endpointConfig": {}})
        assert "const apiResponse = JSON.parse(" in script
        assert "return JSON.stringify(transform(apiResponse, endpointConfig));" in script

    def test_syntax_errors_short_circuit(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(executor, "check_syntax", lambda code: "Unexpected token")
        result = executor.test_data_ingestion_transformer("function (", {}, {})
        assert result.success is False
        assert result.error == "Syntax error: Unexpected token"


# ---------------------------------------------------------------------------
# Runtime
# ---------------------------------------------------------------------------


class FakeContextError(Exception):
    pass


class FakeContext:
    instances: list["FakeContext"] = []

    def __init__(self) -> None:
        self.closed = False
        self.outcome: Any = '{"ok": true}'
        FakeContext.instances.append(self)

    def eval(self, source: str, timeout: int, max_memory: int) -> Any:
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def fake_engine(monkeypatch: pytest.MonkeyPatch) -> type[FakeContext]:
    FakeContext.instances = []
    monkeypatch.setattr(runtime, "_load_mini_racer", lambda: FakeContext)
    monkeypatch.setattr(runtime, "_sandbox_errors", lambda: (FakeContextError,))
    return FakeContext


class TestRunInSandbox:
    def test_result_parsed_and_context_closed(self, fake_engine: type[FakeContext]) -> None:
        result = runtime.run_in_sandbox("function transform(x) { return x; }", {"x": 1})

        assert result == SandboxResult(success=True, data={"ok": True})
        assert fake_engine.instances[0].closed is True

    def test_engine_error_closes_context(self, fake_engine: type[FakeContext], monkeypatch: pytest.MonkeyPatch) -> None:
        original_init = FakeContext.__init__

        def failing_init(self: FakeContext) -> None:
            original_init(self)
            self.outcome = FakeContextError("JSEvalException: boom")

        monkeypatch.setattr(FakeContext, "__init__", failing_init)

        result = runtime.run_in_sandbox("function transform() {}", {})

        assert result.success is False
        assert "boom" in (result.error or "")
        assert fake_engine.instances[0].closed is True

    def test_unserializable_arguments_reported(self, fake_engine: type[FakeContext]) -> None:
        result = runtime.run_in_sandbox("function transform(x) { return x; }", {"x": object()})

        assert result.success is False
        assert "not JSON serializable" in (result.error or "")
        assert fake_engine.instances == []
