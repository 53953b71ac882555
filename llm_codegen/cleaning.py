"""Post-processing for raw LLM code output."""

import re

_FENCE_PATTERN = re.compile(
    r"^```(?:javascript|js|typescript|ts|json)?[^\n]*\n?(.*?)\n?\s*```$",
    re.DOTALL | re.IGNORECASE,
)


def clean_generated_code(text: str) -> str:
    """Remove markdown code fences wrapping generated code.

    Models sometimes wrap output in ```javascript ... ``` despite
    instructions. Unfenced text is returned stripped.

    Args:
        text: Raw LLM response string.

    Returns:
        The bare code.
    """
    stripped = text.strip()
    match = _FENCE_PATTERN.match(stripped)
    if match:
        return match.group(1).strip()
    return stripped
