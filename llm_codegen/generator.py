"""Transformer code generation.

Wraps the LLM adapter with the prompts for each transformer kind and
cleans the returned code.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from llm_codegen.adapter import BaseLLMAdapter, get_llm_adapter
from llm_codegen.cleaning import clean_generated_code
from llm_codegen.prompts import (
    CHART_SYSTEM_PROMPT,
    INGESTION_SYSTEM_PROMPT,
    ChartPromptInput,
    IngestionPromptInput,
    build_chart_prompt,
    build_ingestion_prompt,
    build_regeneration_prompt,
)

logger = logging.getLogger(__name__)

GENERATE_TEMPERATURE = 0.1
REGENERATE_TEMPERATURE = 0.2


@dataclass(frozen=True)
class GeneratedCode:
    code: str
    reasoning: str


def generate_data_ingestion_transformer_code(
    data: IngestionPromptInput,
    adapter: Optional[BaseLLMAdapter] = None,
) -> GeneratedCode:
    """Generate an ingestion transformer from a live API sample.

    Args:
        data: Endpoint details and the sample response.
        adapter: Optional adapter override.

    Returns:
        The cleaned code and a short reasoning note.
    """
    llm = adapter or get_llm_adapter()
    raw = llm.generate(
        build_ingestion_prompt(data),
        system=INGESTION_SYSTEM_PROMPT,
        temperature=GENERATE_TEMPERATURE,
    )
    logger.info("Generated ingestion transformer template_id=%s", data.template_id)
    return GeneratedCode(
        code=clean_generated_code(raw),
        reasoning=f"Generated transformer for {data.template_id} based on actual API response structure.",
    )


def regenerate_data_ingestion_transformer_code(
    data: IngestionPromptInput,
    previous_code: Optional[str] = None,
    error: Optional[str] = None,
    adapter: Optional[BaseLLMAdapter] = None,
) -> GeneratedCode:
    """Ask the model to repair a transformer that failed its test run."""
    llm = adapter or get_llm_adapter()
    raw = llm.generate(
        build_regeneration_prompt(data, previous_code=previous_code, error=error),
        system=INGESTION_SYSTEM_PROMPT,
        temperature=REGENERATE_TEMPERATURE,
    )
    logger.info("Regenerated ingestion transformer template_id=%s", data.template_id)
    return GeneratedCode(
        code=clean_generated_code(raw),
        reasoning=f"Regenerated transformer for {data.template_id} after failure.",
    )


def generate_chart_transformer_code(
    data: ChartPromptInput,
    adapter: Optional[BaseLLMAdapter] = None,
) -> GeneratedCode:
    llm = adapter or get_llm_adapter()
    raw = llm.generate(
        build_chart_prompt(data),
        system=CHART_SYSTEM_PROMPT,
        temperature=GENERATE_TEMPERATURE,
    )
    if data.user_prompt:
        reasoning = f'Generated chart transformer based on user request: "{data.user_prompt}"'
    else:
        reasoning = f"Generated {data.chart_type} chart transformer for {data.metric_name}."
    return GeneratedCode(code=clean_generated_code(raw), reasoning=reasoning)
