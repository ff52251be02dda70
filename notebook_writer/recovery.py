"""Recover structured JSON payloads from free-form model completions."""

import json
import re
from typing import Any, Optional

from loguru import logger

_FENCE_RE = re.compile(r'```(?:json|JSON)?\s*(.*?)\s*```', re.DOTALL)
_LOG_PREVIEW_CHARS = 500


def _matches(value: Any, fallback: Any) -> bool:
    if isinstance(fallback, dict):
        return isinstance(value, dict)
    if isinstance(fallback, list):
        return isinstance(value, list)
    return True


def _try_parse(text: str, fallback: Any) -> tuple[bool, Any]:
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return False, None
    return _matches(value, fallback), value


def _outermost_span(text: str, fallback: Any) -> Optional[str]:
    """Text from the first opening bracket to the last closing one.

    Covers fenced payloads whose string values contain fences of their own.
    """
    if isinstance(fallback, dict):
        pairs = [('{', '}')]
    elif isinstance(fallback, list):
        pairs = [('[', ']')]
    else:
        pairs = [('{', '}'), ('[', ']')]
    for open_ch, close_ch in pairs:
        start = text.find(open_ch)
        end = text.rfind(close_ch)
        if start != -1 and end > start:
            return text[start:end + 1]
    return None


def recover(raw_text: str, fallback: Any) -> Any:
    """Extract a JSON payload from ``raw_text`` or return ``fallback``.

    Attempts, in order: the whole text, the interior of each fenced code
    block, then the outermost bracketed span. A payload whose shape differs
    from ``fallback`` (object vs array) counts as a failed attempt. Never
    raises.
    """
    text = (raw_text or "").strip()
    if text:
        ok, value = _try_parse(text, fallback)
        if ok:
            return value

        for match in _FENCE_RE.finditer(text):
            ok, value = _try_parse(match.group(1), fallback)
            if ok:
                logger.debug("Recovered JSON payload from fenced code block")
                return value

        span = _outermost_span(text, fallback)
        if span is not None:
            ok, value = _try_parse(span, fallback)
            if ok:
                logger.debug("Recovered JSON payload from outermost bracketed span")
                return value

    logger.error(f"Could not recover JSON from model response: {text[:_LOG_PREVIEW_CHARS]!r}")
    return fallback
