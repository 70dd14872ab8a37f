"""Shrink text to a token budget without breaking paragraphs."""

from __future__ import annotations

import re

from notectx.context.models import TokenEstimator

_PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n")
_JOIN = "\n\n"

# Paragraphs may fill this share of the budget; the rest is kept for the notice
FILL_RATIO = 0.9


def truncation_notice(remaining: int) -> str:
    return f"... ({remaining} more sections truncated for brevity)"


def _assemble(kept: list[str], remaining: int) -> str:
    parts = list(kept)
    if remaining > 0:
        parts.append(truncation_notice(remaining))
    return _JOIN.join(parts)


def truncate_preserving_structure(text: str, token_budget: int) -> str:
    """Keep whole paragraphs while they fit in 90% of ``token_budget``.

    Paragraphs are separated by blank lines. Once a paragraph would cross
    the limit, accumulation stops and a notice naming the number of
    dropped paragraphs is appended. A paragraph is never cut in the middle,
    so one that alone exceeds the budget is dropped entirely.

    The result never estimates above ``token_budget``: if the notice itself
    pushes past the budget, trailing paragraphs are given back, and an
    empty string is returned when not even the notice fits.
    """
    if not text or token_budget <= 0:
        return ""

    paragraphs = _PARAGRAPH_BREAK.split(text)
    limit = int(token_budget * FILL_RATIO)
    join_cost = TokenEstimator.estimate(_JOIN)

    kept: list[str] = []
    used = 0
    for paragraph in paragraphs:
        cost = TokenEstimator.estimate(paragraph) + (join_cost if kept else 0)
        if used + cost > limit:
            break
        kept.append(paragraph)
        used += cost

    remaining = len(paragraphs) - len(kept)
    result = _assemble(kept, remaining)
    while kept and TokenEstimator.estimate(result) > token_budget:
        kept.pop()
        remaining += 1
        result = _assemble(kept, remaining)

    if TokenEstimator.estimate(result) > token_budget:
        return ""
    return result


def truncate_to_chars(text: str, token_budget: int) -> str:
    """Hard-cut ``text`` at the 4-chars-per-token ratio, ending in an ellipsis.

    Only used for short backlink bodies. Returns "" when the budget cannot
    hold anything but the ellipsis.
    """
    max_chars = TokenEstimator.chars_for_tokens(token_budget)
    if len(text) <= max_chars:
        return text
    if max_chars <= 3:
        return ""
    return text[: max_chars - 3].rstrip() + "..."
