"""Small text helpers shared by prompts, the engine and the stream adapter."""

import re

_SENTENCE_ENDS = ['. ', '! ', '? ', '\n']
_PAGES_RE = re.compile(r'(\d+(?:\.\d+)?)\s*-?\s*pages?\b', re.IGNORECASE)


def truncate_text(text: str, max_chars: int) -> str:
    """Truncate text at a sentence boundary close to ``max_chars``.

    Falls back to a hard cut when no boundary lies within the last
    fifth of the window.
    """
    if len(text) <= max_chars:
        return text

    window = text[:max_chars]
    best = -1
    for sep in _SENTENCE_ENDS:
        idx = window.rfind(sep)
        if idx != -1:
            best = max(best, idx + len(sep))
    if best < max_chars * 0.8:
        best = max_chars
    return text[:best].rstrip() + "..."


def parse_page_count(target_length: str | None) -> float | None:
    """Return N for targets phrased as "N pages", else None."""
    if not target_length:
        return None
    m = _PAGES_RE.search(str(target_length))
    if not m:
        return None
    return float(m.group(1))


def chunk_text(text: str, size: int) -> list[str]:
    return [text[i:i + size] for i in range(0, len(text), size)]
