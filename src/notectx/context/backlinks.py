"""Backlink selection heuristics.

A page can be referenced from hundreds of blocks, most of them one-word
stubs. These helpers decide which backlinks are worth carrying into the
context and how much of each one to show.
"""

from __future__ import annotations

from dataclasses import dataclass

from notectx.graph.models import Block
from notectx.graph.references import strip_page_references, strip_references_to


@dataclass
class ScoredBacklink:
    block: Block
    score: int  # Characters left after removing page markup
    strong: bool


def substantiveness(text: str) -> int:
    """Length of the text once every ``[[...]]`` marker is removed."""
    return len(strip_page_references(text))


def select_backlinks(
    blocks: list[Block], cap: int, strong_threshold: int = 10
) -> list[ScoredBacklink]:
    """Pick up to ``cap`` backlinks, strong ones first.

    Within each group the most substantive blocks come first; ties keep
    the order the graph returned them in.
    """
    scored = []
    for block in blocks:
        score = substantiveness(block.text)
        scored.append(ScoredBacklink(block=block, score=score, strong=score >= strong_threshold))

    strong = sorted((s for s in scored if s.strong), key=lambda s: -s.score)
    weak = sorted((s for s in scored if not s.strong), key=lambda s: -s.score)
    return (strong + weak)[: max(0, cap)]


def is_circular_backlink(
    text: str,
    page_title: str,
    child_text: str = "",
    min_chars: int = 10,
    meaningful_children_chars: int = 20,
) -> bool:
    """True when a backlink is only a stub pointing back at ``page_title``.

    The block must have fewer than ``min_chars`` left after removing
    references to the page, and its children (if any) must together hold
    fewer than ``meaningful_children_chars``.
    """
    remainder = strip_references_to(text, page_title)
    if len(remainder) >= min_chars:
        return False
    return len(child_text.strip()) < meaningful_children_chars


def should_expand_backlink(
    *,
    text: str,
    has_children: bool,
    selected_count: int,
    expanded_so_far: int,
    always_expand: bool = False,
    short_content_chars: int = 50,
    few_backlinks_threshold: int = 8,
    max_expanded: int = 15,
) -> bool:
    """Decide whether a backlink is shown with its descendant subtree.

    Expansion needs children and a free expansion slot. Given both, any of
    these signals is enough:

    - ``always_expand`` (the caller asked for backlink children);
    - the text is short but says something beyond a bare reference, so
      it likely relies on its children to be meaningful;
    - only a few backlinks were selected, so there is room to be generous.

    Whether the expanded text actually fits is checked separately against
    the backlink token budget.
    """
    if not has_children or expanded_so_far >= max_expanded:
        return False
    if always_expand:
        return True
    stripped = strip_page_references(text)
    if stripped and len(stripped) < short_content_chars:
        return True
    return selected_count <= few_backlinks_threshold
