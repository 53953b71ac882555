"""
tests/test_feedback_service.py

Pytest unit tests for feedback submission. The Linear client is a
MagicMock and the model is MockLLMAdapter or a stub returning fixed text.
"""

from __future__ import annotations

from typing import Optional
from unittest.mock import MagicMock

import pytest

from app.config import LinearSettings, LLMSettings
from app.connectors.base import ConnectorRequestError
from app.connectors.linear_client import LinearIssue
from app.errors import PipelineError
from app.services import feedback_service
from app.services.feedback_service import (
    FALLBACK_TITLE,
    FeedbackNotConfiguredError,
    generate_feedback_title,
    submit_feedback,
)
from llm_codegen.adapter import BaseLLMAdapter, LLMGenerationError, MockLLMAdapter


class StubAdapter(BaseLLMAdapter):
    def __init__(self, response: str | Exception) -> None:
        self.response = response

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
    ) -> str:
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


@pytest.fixture()
def linear() -> MagicMock:
    client = MagicMock()
    client.create_issue.return_value = LinearIssue(id="i-1", identifier="ORG-42", url="https://linear.app/x")
    return client


class TestGenerateFeedbackTitle:
    def test_fenced_json_parsed(self) -> None:
        adapter = StubAdapter('```json\n{"title": "Chart fails to load", "description": "Cleaned."}\n```')
        draft = generate_feedback_title("the chart is broken!!", adapter=adapter)
        assert draft.title == "Chart fails to load"
        assert draft.description == "Cleaned."

    def test_invalid_json_falls_back(self) -> None:
        draft = generate_feedback_title("raw message", adapter=StubAdapter("not json"))
        assert draft.title == FALLBACK_TITLE
        assert draft.description == "raw message"

    def test_llm_error_falls_back(self) -> None:
        draft = generate_feedback_title("raw", adapter=StubAdapter(LLMGenerationError("timeout")))
        assert draft.title == FALLBACK_TITLE

    def test_missing_title_uses_fallback(self) -> None:
        draft = generate_feedback_title("raw", adapter=StubAdapter('{"description": "only"}'))
        assert draft.title == FALLBACK_TITLE
        assert draft.description == "only"

    def test_no_api_key_skips_model(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(feedback_service, "get_llm_settings", lambda: LLMSettings(adapter="openai", api_key=None))
        draft = generate_feedback_title("raw")
        assert draft.title == FALLBACK_TITLE


class TestSubmitFeedback:
    def test_creates_issue_with_page_url(self, linear: MagicMock) -> None:
        result = submit_feedback(
            "It broke",
            priority=2,
            page_url="https://app.example.com/dashboard",
            adapter=MockLLMAdapter(),
            client=linear,
        )

        assert result.success is True
        assert result.issue_id == "ORG-42"
        kwargs = linear.create_issue.call_args.kwargs
        assert kwargs["priority"] == 2
        assert kwargs["description"].endswith("**Page:** https://app.example.com/dashboard")

    def test_not_configured(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(feedback_service, "get_linear_settings", lambda: LinearSettings())
        with pytest.raises(FeedbackNotConfiguredError, match="Feedback system is not configured"):
            submit_feedback("It broke", adapter=MockLLMAdapter())

    def test_linear_failure_becomes_pipeline_error(self, linear: MagicMock) -> None:
        linear.create_issue.side_effect = ConnectorRequestError("Failed to submit feedback: team not found")
        with pytest.raises(PipelineError, match="team not found"):
            submit_feedback("It broke", adapter=MockLLMAdapter(), client=linear)

    def test_generic_linear_failure_message(self, linear: MagicMock) -> None:
        linear.create_issue.side_effect = ConnectorRequestError("linear: request failed with status 500")
        with pytest.raises(PipelineError) as excinfo:
            submit_feedback("It broke", adapter=MockLLMAdapter(), client=linear)
        assert excinfo.value.message == "Failed to submit feedback"
