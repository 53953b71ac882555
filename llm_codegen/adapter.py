"""LLM adapters for transformer code generation.

Provides a base interface, an adapter for OpenAI-compatible chat APIs
(used against OpenRouter) and a deterministic mock for testing.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from app.config import LLMSettings, get_llm_settings

logger = logging.getLogger(__name__)


class LLMConfigurationError(RuntimeError):
    """Raised when the code-generation LLM is not configured."""


class LLMGenerationError(RuntimeError):
    """Raised when the LLM call fails or returns no content."""


class BaseLLMAdapter(ABC):
    """Abstract base for all LLM adapters."""

    @abstractmethod
    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Send a prompt to the LLM and return the raw response text.

        Args:
            prompt: The user prompt.
            system: Optional system prompt.
            temperature: Sampling temperature.
            max_tokens: Optional completion limit overriding the default.

        Returns:
            Raw string response from the model.
        """


class OpenAILLMAdapter(BaseLLMAdapter):
    """Adapter for OpenAI-compatible chat completion APIs.

    Pointed at OpenRouter by default so any routed model id
    (e.g. ``anthropic/claude-sonnet-4``) can be used.
    """

    def __init__(
        self,
        model: str = "anthropic/claude-sonnet-4",
        max_tokens: int = 4000,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> None:
        """Initialise the adapter.

        Args:
            model: Model identifier.
            max_tokens: Default maximum tokens in the completion.
            api_key: OpenRouter API key.
            base_url: Base URL of the OpenAI-compatible endpoint.

        Raises:
            LLMConfigurationError: If no API key is provided.
        """
        try:
            from openai import OpenAI, OpenAIError  # type: ignore[import-untyped]
        except ImportError as exc:
            raise ImportError(
                "openai package is required for OpenAILLMAdapter. "
                "Install it with: pip install openai"
            ) from exc

        if not api_key:
            raise LLMConfigurationError("OPENROUTER_API_KEY is not configured")

        client_kwargs: dict = {"api_key": api_key}
        if base_url:
            client_kwargs["base_url"] = base_url

        self._client = OpenAI(**client_kwargs)
        self._error_type = OpenAIError
        self._model = model
        self._max_tokens = max_tokens

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Call the chat completion API.

        Raises:
            LLMGenerationError: If the request fails or the reply is empty.
        """
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        try:
            response = self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens or self._max_tokens,
                stream=False,
            )
        except self._error_type as exc:
            raise LLMGenerationError(f"LLM request failed: {exc}") from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise LLMGenerationError("LLM returned an empty response")
        return content


# ---------------------------------------------------------------------------
# Fixed mock transformers used for local testing.
# ---------------------------------------------------------------------------
_MOCK_INGESTION_CODE = """\
function transform(apiResponse, endpointConfig) {
  var today = new Date(new Date().toISOString().split('T')[0] + 'T00:00:00.000Z');
  var value = 0;
  if (Array.isArray(apiResponse)) {
    value = apiResponse.length;
  } else if (apiResponse && typeof apiResponse === 'object') {
    value = Object.keys(apiResponse).length;
  } else {
    value = parseFloat(apiResponse) || 0;
  }
  return [{ timestamp: today, value: value, dimensions: null }];
}"""

_MOCK_CHART_CODE = """\
function transform(dataPoints, preferences) {
  var sorted = dataPoints.slice().sort(function (a, b) {
    return new Date(a.timestamp) - new Date(b.timestamp);
  });
  return {
    chartType: preferences.chartType || 'line',
    chartData: sorted.map(function (p) {
      return { date: String(p.timestamp).split('T')[0], value: p.value };
    }),
    chartConfig: { value: { label: 'Value', color: 'var(--chart-1)' } },
    xAxisKey: 'date',
    dataKeys: ['value'],
    title: 'Metric',
    showTooltip: true
  };
}"""

_MOCK_FEEDBACK = '{"title": "User Feedback", "description": "Mock feedback description."}'


class MockLLMAdapter(BaseLLMAdapter):
    """Deterministic adapter returning fixed transformer code.

    The chart transformer is returned when the system prompt targets
    chart configs, the ingestion transformer otherwise.
    """

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
    ) -> str:
        system_text = system or ""
        if "Recharts" in system_text:
            return _MOCK_CHART_CODE
        if "issue title" in system_text:
            return _MOCK_FEEDBACK
        return _MOCK_INGESTION_CODE


def get_llm_adapter(settings: Optional[LLMSettings] = None) -> BaseLLMAdapter:
    """Build the adapter selected by ``LLM_ADAPTER``.

    Args:
        settings: Optional settings override; defaults to environment.

    Returns:
        ``MockLLMAdapter`` when ``LLM_ADAPTER=mock``, otherwise
        ``OpenAILLMAdapter``.
    """
    resolved = settings or get_llm_settings()
    if resolved.adapter == "mock":
        logger.info("Using mock LLM adapter")
        return MockLLMAdapter()
    return OpenAILLMAdapter(
        model=resolved.model,
        max_tokens=resolved.max_tokens,
        api_key=resolved.api_key,
        base_url=resolved.base_url,
    )
