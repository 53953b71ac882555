"""Prompt construction for transformer code generation.

Two system prompts drive generation: one for ingestion transformers
(raw provider JSON to DataPoints) and one for chart transformers
(DataPoints to a Recharts config). User prompts carry the live sample
data the model must adapt to.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

CHART_SAMPLE_SIZE = 20

INGESTION_SYSTEM_PROMPT = """\
You write JavaScript functions that turn third-party API responses into data points.

Write PLAIN JAVASCRIPT. No TypeScript annotations, casts or generics.

CONTEXT
The function is stored and re-run on a schedule (hourly or daily). Every run
fetches the endpoint again and the resulting points are merged into stored
history, so the same code must handle the first historical fetch and every
later incremental fetch.

You are given the endpoint and a REAL response captured moments ago.

DataPoint shape:
{
  timestamp: Date,            // when the observation happened, taken from the API when available
  value: number,              // primary numeric value, required
  dimensions: object | null   // related numeric or label values, optional
}

RULES
1. Signature: function transform(apiResponse, endpointConfig) { ... }
2. Always return an array, even for a single value.
3. Treat missing or null numbers as 0.
4. Convert numeric strings with parseInt/parseFloat and date strings with new Date(...).
5. Put the primary metric in `value` and related values in `dimensions`.
6. Arrays of observations map to one DataPoint each. A single scalar becomes
   one DataPoint stamped with the current day.
7. Normalize timestamps to midnight UTC of their original date:
     new Date(new Date(s).toISOString().split('T')[0] + 'T00:00:00.000Z')
   Weekly data uses the Monday of its week; monthly data uses the 1st.
   Repeated runs must produce identical timestamps for the same day.

Reply with the function source only. No prose and no code fences.
"""

CHART_SYSTEM_PROMPT = """\
You write JavaScript functions that build Recharts chart configurations from data points.

Write PLAIN JAVASCRIPT. No TypeScript syntax.

CONTEXT
Data points accumulate over time and the same function is re-run as the data
grows, so it must work for a handful of points and for months of history.
Timestamps are ISO strings normalized to midnight UTC.

DataPoint shape:
{ timestamp: string, value: number, dimensions: object | null }

ChartConfig shape:
{
  chartType: "line" | "bar" | "area" | "pie" | "radar" | "radial" | "kpi",
  chartData: array of row objects,
  chartConfig: { [dataKey]: { label: string, color: string } },
  xAxisKey: string,
  dataKeys: string[],
  title: string,
  description?: string,
  xAxisLabel?: string,
  yAxisLabel?: string,
  showLegend?: boolean,
  showTooltip?: boolean,
  stacked?: boolean,
  centerLabel?: { value: string, label: string }
}

CHOOSING A CHART
- line / area: trends over time.
- bar: category comparisons or short time series (fewer than 20 periods).
- pie: share of a whole. Every chartData row needs a `fill` color.
- radar: several attributes compared across groups.
- radial: a single progress-style value.

RULES
1. Signature: function transform(dataPoints, preferences) { ... }
2. preferences.dateRange "all" keeps every point; "7d", "30d" and "90d" filter back from now.
3. Sort time series chronologically and label dates readably ("Jan 15" or "2024-01-15").
4. Colors come from var(--chart-1) .. var(--chart-12).
5. Consider dimensions for multi-series charts.
6. Respect preferences.aggregation. When it is "none" show every point;
   otherwise bucket large series (over 50 line points or 20 bars) by week or month.
7. Always return a complete ChartConfig object.

Reply with the function source only. No prose and no code fences.
"""

FEEDBACK_SYSTEM_PROMPT = """\
You are a concise issue title generator. Given user feedback, produce a short
descriptive title (60 characters at most) and a lightly cleaned description.

Keep the user's own wording. Fix only obvious typos or formatting and do not
add jargon the user did not use.

Reply with ONLY a JSON object:
{"title": "...", "description": "..."}
"""


@dataclass
class IngestionPromptInput:
    """Inputs for generating or repairing an ingestion transformer."""

    template_id: str
    integration_id: str
    endpoint: str
    method: str
    sample_api_response: Any
    metric_description: str
    available_params: List[str] = field(default_factory=list)
    extraction_prompt: Optional[str] = None


@dataclass
class DataStats:
    total_count: int
    date_from: Optional[str]
    date_to: Optional[str]
    days_covered: int
    detected_granularity: str
    dimension_keys: List[str] = field(default_factory=list)


@dataclass
class ChartPromptInput:
    """Inputs for generating a chart transformer."""

    metric_name: str
    metric_description: str
    sample_data_points: List[Dict[str, Any]]
    chart_type: str
    date_range: str
    aggregation: str
    user_prompt: Optional[str] = None
    data_stats: Optional[DataStats] = None
    cadence: Optional[str] = None
    selected_dimension: Optional[str] = None


def _ingestion_context(data: IngestionPromptInput) -> str:
    params = ", ".join(data.available_params) if data.available_params else "none"
    sections = [
        f"Template: {data.template_id}",
        f"Integration: {data.integration_id}",
        f"Endpoint: {data.method} {data.endpoint}",
        "",
        "ACTUAL API response (fetched just now):",
        json.dumps(data.sample_api_response, indent=2, default=str),
        "",
        f"This metric tracks: {data.metric_description}",
        "",
        f"Parameters available in endpointConfig: {params}",
    ]
    if data.extraction_prompt:
        sections.extend(["", "Extraction guidance:", data.extraction_prompt.strip()])
    return "\n".join(sections)


def build_ingestion_prompt(data: IngestionPromptInput) -> str:
    """Build the user prompt for a fresh ingestion transformer.

    Args:
        data: Endpoint details and the live sample response.

    Returns:
        Prompt text ending with the generation instruction.
    """
    return _ingestion_context(data) + "\n\nGenerate the JavaScript transform function."


def build_regeneration_prompt(
    data: IngestionPromptInput,
    previous_code: Optional[str] = None,
    error: Optional[str] = None,
) -> str:
    """Build the user prompt asking the model to repair a failed transformer.

    Args:
        data: Endpoint details and the live sample response.
        previous_code: The code that failed, if any.
        error: The failure message, if any.

    Returns:
        Prompt text ending with the repair instruction.
    """
    prompt = _ingestion_context(data)
    if previous_code:
        prompt += f"\n\nPrevious transformer code that FAILED:\n{previous_code}"
    if error:
        prompt += f"\n\nError message:\n{error}"
    return prompt + "\n\nGenerate a FIXED JavaScript transform function."


def build_chart_prompt(data: ChartPromptInput) -> str:
    """Build the user prompt for a chart transformer.

    Only the first ``CHART_SAMPLE_SIZE`` points are embedded; statistics
    describe the full series.
    """
    sample = data.sample_data_points[:CHART_SAMPLE_SIZE]
    stats = data.data_stats
    total_count = stats.total_count if stats else len(sample)

    lines = [
        f"DataPoint sample (first {len(sample)} of {total_count}):",
        json.dumps(sample, indent=2, default=str),
        "",
        "Data statistics:",
        f"- Total data points: {total_count}",
        f"- Date range: {(stats.date_from if stats else None) or 'unknown'} "
        f"to {(stats.date_to if stats else None) or 'unknown'}",
        f"- Days covered: {stats.days_covered if stats else 'unknown'}",
        f"- Detected granularity: {stats.detected_granularity if stats else 'unknown'}",
        f"- Available dimensions: {', '.join(stats.dimension_keys) if stats and stats.dimension_keys else 'none'}",
        "",
        "Preferences:",
        f"- chartType: {data.chart_type}",
        f"- dateRange: {data.date_range}",
        f"- aggregation: {data.aggregation}",
    ]
    if data.cadence:
        lines.append(f"- cadence: {data.cadence}")
    if data.selected_dimension:
        lines.append(f"- selectedDimension: {data.selected_dimension}")
    lines.extend(
        [
            "",
            f"Metric name: {data.metric_name}",
            f"Metric description: {data.metric_description}",
        ]
    )

    prompt = "\n".join(lines)
    if data.user_prompt:
        prompt += f'\n\nUser request: "{data.user_prompt}"'
    return prompt + "\n\nGenerate the JavaScript transform function."


def build_feedback_prompt(message: str) -> str:
    return f"Generate a title and cleaned description for this user feedback:\n\n{message}"
