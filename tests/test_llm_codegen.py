"""
tests/test_llm_codegen.py

Pytest unit tests for code-generation prompts, fence cleaning and the
adapter factory. No network calls: the mock adapter or a recording stub
stands in for the model.
"""

from __future__ import annotations

from typing import Any, Optional

import pytest

from app.config import LLMSettings
from llm_codegen.adapter import BaseLLMAdapter, LLMConfigurationError, MockLLMAdapter, get_llm_adapter
from llm_codegen.cleaning import clean_generated_code
from llm_codegen.generator import (
    generate_chart_transformer_code,
    generate_data_ingestion_transformer_code,
    regenerate_data_ingestion_transformer_code,
)
from llm_codegen.prompts import (
    CHART_SAMPLE_SIZE,
    CHART_SYSTEM_PROMPT,
    INGESTION_SYSTEM_PROMPT,
    ChartPromptInput,
    DataStats,
    IngestionPromptInput,
    build_chart_prompt,
    build_feedback_prompt,
    build_ingestion_prompt,
    build_regeneration_prompt,
)


class RecordingAdapter(BaseLLMAdapter):
    def __init__(self, response: str) -> None:
        self.response = response
        self.calls: list[dict[str, Any]] = []

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
    ) -> str:
        self.calls.append({"prompt": prompt, "system": system, "temperature": temperature})
        return self.response


@pytest.fixture()
def ingestion_input() -> IngestionPromptInput:
    return IngestionPromptInput(
        template_id="github-commits",
        integration_id="github",
        endpoint="/repos/{OWNER}/{REPO}/commits",
        method="GET",
        sample_api_response=[{"sha": "abc", "commit": {"author": {"date": "2026-10-19T00:00:00Z"}}}],
        metric_description="Commits per day",
        available_params=["OWNER", "REPO"],
    )


# ---------------------------------------------------------------------------
# Fence cleaning
# ---------------------------------------------------------------------------


class TestCleanGeneratedCode:
    @pytest.mark.parametrize(
        "raw",
        [
            "```javascript\nfunction transform() {}\n```",
            "```js\nfunction transform() {}\n```",
            "```\nfunction transform() {}\n```",
            "  ```JavaScript\nfunction transform() {}\n```  ",
        ],
    )
    def test_strips_fences(self, raw: str) -> None:
        assert clean_generated_code(raw) == "function transform() {}"

    def test_unfenced_is_stripped(self) -> None:
        assert clean_generated_code("\n  function transform() {}  \n") == "function transform() {}"

    def test_json_fence(self) -> None:
        assert clean_generated_code('```json\n{"title": "x"}\n```') == '{"title": "x"}'


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------


class TestPrompts:
    def test_ingestion_prompt_carries_sample_and_params(self, ingestion_input: IngestionPromptInput) -> None:
        prompt = build_ingestion_prompt(ingestion_input)
        assert "Endpoint: GET /repos/{OWNER}/{REPO}/commits" in prompt
        assert '"sha": "abc"' in prompt
        assert "Parameters available in endpointConfig: OWNER, REPO" in prompt
        assert prompt.endswith("Generate the JavaScript transform function.")

    def test_ingestion_prompt_extraction_guidance(self, ingestion_input: IngestionPromptInput) -> None:
        ingestion_input.extraction_prompt = "  Count commits per day.  "
        assert "Extraction guidance:\nCount commits per day." in build_ingestion_prompt(ingestion_input)

    def test_regeneration_prompt_includes_failure(self, ingestion_input: IngestionPromptInput) -> None:
        prompt = build_regeneration_prompt(ingestion_input, previous_code="bad()", error="bad is not defined")
        assert "Previous transformer code that FAILED:\nbad()" in prompt
        assert "Error message:\nbad is not defined" in prompt
        assert prompt.endswith("Generate a FIXED JavaScript transform function.")

    def test_chart_prompt_samples_and_stats(self) -> None:
        points = [{"timestamp": f"2026-10-{i % 28 + 1:02d}", "value": i} for i in range(CHART_SAMPLE_SIZE + 5)]
        prompt = build_chart_prompt(
            ChartPromptInput(
                metric_name="Commits",
                metric_description="Commits per day",
                sample_data_points=points,
                chart_type="bar",
                date_range="30d",
                aggregation="sum",
                cadence="WEEKLY",
                selected_dimension="repo",
                user_prompt="make it weekly",
                data_stats=DataStats(
                    total_count=25,
                    date_from="2026-10-01",
                    date_to="2026-10-25",
                    days_covered=25,
                    detected_granularity="daily",
                    dimension_keys=["repo"],
                ),
            )
        )
        assert f"DataPoint sample (first {CHART_SAMPLE_SIZE} of 25):" in prompt
        assert "- Available dimensions: repo" in prompt
        assert "- cadence: WEEKLY" in prompt
        assert "- selectedDimension: repo" in prompt
        assert 'User request: "make it weekly"' in prompt

    def test_chart_prompt_without_stats(self) -> None:
        prompt = build_chart_prompt(
            ChartPromptInput(
                metric_name="Users",
                metric_description="",
                sample_data_points=[],
                chart_type="line",
                date_range="all",
                aggregation="none",
            )
        )
        assert "- Date range: unknown to unknown" in prompt
        assert "- Available dimensions: none" in prompt

    def test_feedback_prompt(self) -> None:
        assert build_feedback_prompt("It broke").endswith("It broke")


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


class TestGenerator:
    def test_ingestion_generation_cleans_code(self, ingestion_input: IngestionPromptInput) -> None:
        adapter = RecordingAdapter("```js\nfunction transform(a, b) { return []; }\n```")
        generated = generate_data_ingestion_transformer_code(ingestion_input, adapter=adapter)

        assert generated.code == "function transform(a, b) { return []; }"
        assert adapter.calls[0]["system"] == INGESTION_SYSTEM_PROMPT
        assert adapter.calls[0]["temperature"] == pytest.approx(0.1)

    def test_regeneration_uses_higher_temperature(self, ingestion_input: IngestionPromptInput) -> None:
        adapter = RecordingAdapter("function transform() {}")
        regenerate_data_ingestion_transformer_code(ingestion_input, "bad()", "oops", adapter=adapter)
        assert adapter.calls[0]["temperature"] == pytest.approx(0.2)

    def test_chart_generation_reasoning_mentions_user_prompt(self) -> None:
        adapter = RecordingAdapter("function transform() {}")
        generated = generate_chart_transformer_code(
            ChartPromptInput(
                metric_name="Stars",
                metric_description="",
                sample_data_points=[],
                chart_type="area",
                date_range="all",
                aggregation="none",
                user_prompt="show stars",
            ),
            adapter=adapter,
        )
        assert adapter.calls[0]["system"] == CHART_SYSTEM_PROMPT
        assert "show stars" in generated.reasoning

    def test_mock_adapter_picks_code_by_system_prompt(self) -> None:
        mock = MockLLMAdapter()
        assert "chartData" in mock.generate("x", system=CHART_SYSTEM_PROMPT)
        assert "dimensions" in mock.generate("x", system=INGESTION_SYSTEM_PROMPT)


class TestAdapterFactory:
    def test_mock_selected(self) -> None:
        assert isinstance(get_llm_adapter(LLMSettings(adapter="mock")), MockLLMAdapter)

    def test_missing_key_raises(self) -> None:
        pytest.importorskip("openai")
        with pytest.raises(LLMConfigurationError):
            get_llm_adapter(LLMSettings(adapter="openai", api_key=None))
