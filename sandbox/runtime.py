"""
sandbox/runtime.py

Run generated JavaScript transformers inside a fresh V8 context.

Each call builds a new MiniRacer context, so nothing leaks between
executions. The context has the JS built-ins (Date, Math, JSON, ...) and no
host APIs. Arguments cross the boundary as JSON text and the result comes
back as ``JSON.stringify(transform(...))``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any

from app.config import get_sandbox_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SandboxResult:
    success: bool
    data: Any = None
    error: str | None = None


def _load_mini_racer() -> Any:
    try:
        from py_mini_racer import MiniRacer  # type: ignore[import-untyped]
    except ImportError as exc:
        raise ImportError(
            "mini-racer package is required for transformer execution. "
            "Install it with: pip install mini-racer"
        ) from exc
    return MiniRacer


def _sandbox_errors() -> tuple[type[BaseException], ...]:
    from py_mini_racer import MiniRacerBaseException  # type: ignore[import-untyped]

    return (MiniRacerBaseException,)


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        aware = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return aware.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    if isinstance(value, date):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_js_literal(value: Any) -> str:
    """
    Encode ``value`` as a JS string literal holding its JSON text.
    """

    return json.dumps(json.dumps(value, default=_json_default))


def build_script(code: str, args: dict[str, Any]) -> str:
    parsers = "\n".join(f"const {name} = JSON.parse({to_js_literal(value)});" for name, value in args.items())
    return (
        "(function() {\n"
        f"{parsers}\n"
        f"{code}\n"
        f"return JSON.stringify(transform({', '.join(args)}));\n"
        "})();"
    )


def _eval(source: str) -> Any:
    settings = get_sandbox_settings()
    mini_racer = _load_mini_racer()
    context = mini_racer()
    try:
        return context.eval(
            source,
            timeout=settings.timeout_ms,
            max_memory=settings.memory_limit_mb * 1024 * 1024,
        )
    finally:
        context.close()


def run_in_sandbox(code: str, args: dict[str, Any]) -> SandboxResult:
    """
    Execute ``code`` (which must define ``transform``) with ``args``.

    JS errors, timeouts and memory exhaustion are reported as
    ``success=False``; they never propagate.
    """

    try:
        script = build_script(code, args)
    except (TypeError, ValueError) as exc:
        logger.warning("Sandbox arguments not serializable error=%s", exc)
        return SandboxResult(success=False, error=f"Transformer arguments are not JSON serializable: {exc}")

    try:
        result_json = _eval(script)
    except _sandbox_errors() as exc:
        logger.warning("Sandbox execution error error=%s", exc)
        return SandboxResult(success=False, error=str(exc) or "Sandbox error")

    if not isinstance(result_json, str):
        return SandboxResult(success=False, error="Transformer did not return a valid result")

    try:
        return SandboxResult(success=True, data=json.loads(result_json))
    except ValueError as exc:
        return SandboxResult(success=False, error=f"Transformer returned invalid JSON: {exc}")


def check_syntax(code: str) -> str | None:
    """
    Compile ``code`` as a function body. Return the error message, or None.
    """

    try:
        _eval(f"new Function({json.dumps(code)}); true;")
    except _sandbox_errors() as exc:
        return str(exc) or "Invalid code syntax"
    return None
