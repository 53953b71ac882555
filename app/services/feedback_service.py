"""
app/services/feedback_service.py

Turn free-form user feedback into a Linear issue.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from app.config import get_linear_settings, get_llm_settings
from app.connectors.base import ConnectorRequestError
from app.connectors.linear_client import LinearClient, get_linear_client
from app.errors import PipelineError
from llm_codegen.adapter import BaseLLMAdapter, LLMConfigurationError, LLMGenerationError, get_llm_adapter
from llm_codegen.cleaning import clean_generated_code
from llm_codegen.prompts import FEEDBACK_SYSTEM_PROMPT, build_feedback_prompt

logger = logging.getLogger(__name__)

FALLBACK_TITLE = "User Feedback"
FEEDBACK_TEMPERATURE = 0.3
FEEDBACK_MAX_TOKENS = 300


class FeedbackNotConfiguredError(PipelineError):
    pass


@dataclass(frozen=True)
class FeedbackDraft:
    title: str
    description: str


@dataclass(frozen=True)
class FeedbackResult:
    success: bool
    issue_id: str | None


def generate_feedback_title(message: str, adapter: BaseLLMAdapter | None = None) -> FeedbackDraft:
    """
    Ask the model for a short title; any failure falls back to the raw message.
    """

    fallback = FeedbackDraft(title=FALLBACK_TITLE, description=message)
    if adapter is None:
        settings = get_llm_settings()
        if settings.adapter != "mock" and not settings.api_key:
            return fallback

    try:
        llm = adapter or get_llm_adapter()
        raw = llm.generate(
            build_feedback_prompt(message),
            system=FEEDBACK_SYSTEM_PROMPT,
            temperature=FEEDBACK_TEMPERATURE,
            max_tokens=FEEDBACK_MAX_TOKENS,
        )
        parsed = json.loads(clean_generated_code(raw))
    except (LLMConfigurationError, LLMGenerationError, ValueError) as exc:
        logger.warning("Feedback title generation failed error=%s", exc)
        return fallback

    if not isinstance(parsed, dict):
        return fallback
    title = parsed.get("title") if isinstance(parsed.get("title"), str) else None
    description = parsed.get("description") if isinstance(parsed.get("description"), str) else None
    return FeedbackDraft(title=title or FALLBACK_TITLE, description=description or message)


def submit_feedback(
    message: str,
    priority: int = 0,
    page_url: str | None = None,
    *,
    adapter: BaseLLMAdapter | None = None,
    client: LinearClient | None = None,
) -> FeedbackResult:
    """
    Raises
    ------
    FeedbackNotConfiguredError
        When Linear credentials are missing.
    PipelineError
        When Linear rejects the issue.
    """

    settings = get_linear_settings()
    if client is None and (not settings.api_key or not settings.team_id):
        logger.error("Linear API credentials not configured")
        raise FeedbackNotConfiguredError("Feedback system is not configured")

    draft = generate_feedback_title(message, adapter=adapter)
    description = draft.description
    if page_url:
        description = f"{description}\n\n---\n**Page:** {page_url}"

    try:
        linear = client or get_linear_client()
        issue = linear.create_issue(title=draft.title, description=description, priority=priority)
    except ConnectorRequestError as exc:
        logger.error("Feedback submission failed error=%s", exc)
        message_text = str(exc) if str(exc).startswith("Failed to submit feedback") else "Failed to submit feedback"
        raise PipelineError(message_text) from exc

    logger.info("Feedback submitted issue=%s", issue.identifier)
    return FeedbackResult(success=True, issue_id=issue.identifier)
