import math
from typing import List, Optional

from .text_metrics import FontSpec, TextMetrics

DEFAULT_MAX_CHARS = 22
ELLIPSIS = "…"


def wrap_text(text: str, max_chars: int) -> List[str]:
    """Greedy word wrap on a character budget. Words longer than the budget get their own line."""
    words = (text or "").split()
    lines: List[str] = []
    cur: List[str] = []
    for w in words:
        candidate = " ".join(cur + [w])
        if len(candidate) <= max_chars:
            cur.append(w)
        else:
            if cur:
                lines.append(" ".join(cur))
            cur = [w]
    if cur:
        lines.append(" ".join(cur))
    return lines


def wrap_text_to_width(
    text: str,
    max_width: Optional[float],
    metrics: Optional[TextMetrics],
    font: Optional[FontSpec],
) -> List[str]:
    """Greedy word wrap against a pixel width using `metrics`.
    Without metrics, font or a usable width this degrades to `wrap_text(text, 22)`."""
    if not text:
        return []
    if (
        metrics is None
        or font is None
        or max_width is None
        or not math.isfinite(max_width)
        or max_width <= 0
    ):
        return wrap_text(text, DEFAULT_MAX_CHARS)

    lines: List[str] = []
    current = ""
    for word in text.split():
        candidate = f"{current} {word}" if current else word
        if metrics.measure(candidate, font) <= max_width:
            current = candidate
            continue
        # never force-split a word; an over-wide word sits alone
        if current:
            lines.append(current)
        current = word
    if current:
        lines.append(current)
    return lines


def truncate_to_width(
    text: str,
    max_width: float,
    metrics: TextMetrics,
    font: FontSpec,
    ellipsis: str = ELLIPSIS,
) -> str:
    """Cut `text` to the longest prefix that still fits `max_width` with `ellipsis` appended.
    Text that already fits is returned unchanged. Binary search keeps this at O(log n) measurements."""
    if not text or metrics is None:
        return text
    if not max_width or max_width <= 0:
        return ""
    if metrics.measure(text, font) <= max_width:
        return text

    trimmed = text.strip()
    low, high = 0, len(trimmed)
    while low < high:
        mid = (low + high + 1) // 2
        candidate = trimmed[:mid].rstrip() + ellipsis
        if metrics.measure(candidate, font) <= max_width:
            low = mid
        else:
            high = mid - 1

    result = trimmed[:low].rstrip() + ellipsis
    if metrics.measure(result, font) > max_width:
        # not even the bare ellipsis fits
        return ""
    return result


def wrap_topic_text(topic: str, max_chars: int = 25, max_lines: int = 3) -> List[str]:
    """Fixed line-count wrap for token templates. The last permitted line takes every
    remaining word, and the result is padded with empty strings to `max_lines`."""
    if not topic:
        return [""] * max_lines

    words = topic.split(" ")
    lines: List[str] = []
    current = ""
    for i, word in enumerate(words):
        if len(current) + len(word) + 1 <= max_chars:
            current = f"{current} {word}" if current else word
            continue
        if current:
            lines.append(current)
        current = word
        if len(lines) >= max_lines - 1:
            lines.append(" ".join(words[i:]))
            current = ""
            break

    if current and len(lines) < max_lines:
        lines.append(current)
    while len(lines) < max_lines:
        lines.append("")
    return lines
