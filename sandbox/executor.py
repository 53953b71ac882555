"""
sandbox/executor.py

Structural validation around transformer execution.

The ingestion executor only checks shape: timestamps parse, values are
numeric, dimensions are objects. Aggregation and timestamp bucketing are
left to the generated transformer.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sandbox.runtime import check_syntax, run_in_sandbox

logger = logging.getLogger(__name__)

CHART_REQUIRED_FIELDS = ("chartType", "chartData", "chartConfig", "xAxisKey", "dataKeys", "title")

_FLOAT_PREFIX = re.compile(r"^\s*([+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?))")


@dataclass(frozen=True)
class DataPoint:
    timestamp: datetime
    value: float
    dimensions: dict[str, Any] | None = None

    def to_json(self) -> dict[str, Any]:
        return {
            "timestamp": format_timestamp(self.timestamp),
            "value": self.value,
            "dimensions": self.dimensions,
        }


@dataclass(frozen=True)
class ExecutionResult:
    success: bool
    data: Any = None
    error: str | None = None


def format_timestamp(value: datetime) -> str:
    aware = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return aware.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class _PointValidationError(ValueError):
    pass


def parse_float(raw: Any) -> float:
    """
    Coerce like JavaScript ``parseFloat``: numbers pass through, strings
    are read up to the first non-numeric character. Returns NaN otherwise.
    """

    if isinstance(raw, bool):
        return math.nan
    if isinstance(raw, (int, float)):
        return float(raw)
    match = _FLOAT_PREFIX.match(str(raw)) if raw is not None else None
    if match is None:
        return math.nan
    token = match.group(1)
    if token.endswith("Infinity"):
        return -math.inf if token.startswith("-") else math.inf
    return float(token)


def parse_timestamp(raw: Any) -> datetime | None:
    """
    Accept epoch milliseconds or an ISO-8601 string. Naive values are UTC.
    """

    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        if math.isnan(raw) or math.isinf(raw):
            return None
        try:
            return datetime.fromtimestamp(raw / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(raw, str):
        text = raw.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    return None


def _validate_points(raw_points: list[Any]) -> list[DataPoint]:
    points: dict[datetime, DataPoint] = {}

    for index, point in enumerate(raw_points):
        if not isinstance(point, dict):
            raise _PointValidationError(f"DataPoint at index {index} is not an object")

        timestamp = parse_timestamp(point.get("timestamp"))
        if timestamp is None:
            raise _PointValidationError(
                f"DataPoint at index {index} has invalid timestamp: {point.get('timestamp')}"
            )

        value = parse_float(point.get("value"))
        if math.isnan(value):
            raise _PointValidationError(f"DataPoint at index {index} has invalid value: {point.get('value')}")

        dimensions = point.get("dimensions")
        if not isinstance(dimensions, dict):
            dimensions = None

        if timestamp in points:
            logger.info("Duplicate timestamp index=%s timestamp=%s using last value", index, timestamp.isoformat())
        points[timestamp] = DataPoint(timestamp=timestamp, value=value, dimensions=dimensions)

    return list(points.values())


def execute_data_ingestion_transformer(
    code: str,
    api_response: Any,
    endpoint_config: dict[str, Any],
) -> ExecutionResult:
    result = run_in_sandbox(code, {"apiResponse": api_response, "endpointConfig": endpoint_config})
    if not result.success:
        return ExecutionResult(success=False, error=result.error)

    if not isinstance(result.data, list):
        return ExecutionResult(success=False, error="Transformer must return an array of DataPoints")

    try:
        return ExecutionResult(success=True, data=_validate_points(result.data))
    except _PointValidationError as exc:
        return ExecutionResult(success=False, error=str(exc))


def validate_chart_config(config: Any) -> str | None:
    if not isinstance(config, dict):
        return "ChartTransformer must return a ChartConfig object"
    for field_name in CHART_REQUIRED_FIELDS:
        if field_name not in config:
            return f"ChartConfig missing required field: {field_name}"
    if not isinstance(config["chartData"], list):
        return "chartData must be an array"
    if not isinstance(config["dataKeys"], list):
        return "dataKeys must be an array"
    return None


def execute_chart_transformer(
    code: str,
    data_points: list[DataPoint],
    preferences: dict[str, Any],
) -> ExecutionResult:
    result = run_in_sandbox(
        code,
        {"dataPoints": [point.to_json() for point in data_points], "preferences": preferences},
    )
    if not result.success:
        return ExecutionResult(success=False, error=result.error)

    error = validate_chart_config(result.data)
    if error is not None:
        return ExecutionResult(success=False, error=error)
    return ExecutionResult(success=True, data=result.data)


def validate_transformer_code(code: str) -> tuple[bool, str | None]:
    error = check_syntax(code)
    return (error is None, error)


def test_data_ingestion_transformer(
    code: str,
    sample_api_response: Any,
    sample_endpoint_config: dict[str, Any],
) -> ExecutionResult:
    valid, error = validate_transformer_code(code)
    if not valid:
        return ExecutionResult(success=False, error=f"Syntax error: {error}")
    return execute_data_ingestion_transformer(code, sample_api_response, sample_endpoint_config)


def test_chart_transformer(
    code: str,
    sample_data_points: list[DataPoint],
    preferences: dict[str, Any],
) -> ExecutionResult:
    valid, error = validate_transformer_code(code)
    if not valid:
        return ExecutionResult(success=False, error=f"Syntax error: {error}")
    return execute_chart_transformer(code, sample_data_points, preferences)

