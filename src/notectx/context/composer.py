"""Compose ranked context items into one token-budgeted string.

The budget is split into sections: one per traversal level present in
the items, plus one per auxiliary source (open sidebar pages, visible
daily notes, ...). Each section starts with a weighted allocation, unused
allocation is handed to the most important sections that need more, and
sections that still don't fit are truncated at paragraph boundaries or
dropped.

The output never estimates above ``effective_budget(options)``: every
emitted piece is charged, including separators.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from notectx.context.models import (
    AuxiliaryContext,
    AuxiliarySource,
    ComposerOptions,
    ContextItem,
    ItemKind,
    Section,
    TokenEstimator,
)
from notectx.context.limits import model_token_limit
from notectx.context.scoring import level_title, level_weight
from notectx.context.truncation import truncate_preserving_structure
from notectx.graph.links import block_url, page_url
from notectx.graph.models import Block

logger = logging.getLogger("notectx.composer")

MIN_CONTEXT_TOKENS = 1000
SMALL_SECTION_RATIO = 0.03
SMALL_SECTION_FLOOR = 20

NO_CONTENT_MESSAGE = "No relevant context content found."
MINIMAL_CONTEXT_NOTICE = (
    "**Context Note:** This is minimal context for tool execution to avoid interference."
)
GUIDELINES = (
    "**IMPORTANT GUIDELINES:**\n"
    "- Only use page references [[Page Name]] that appear in the context above\n"
    "- Do NOT create new page references that are not already mentioned\n"
    "- If you need to mention a concept that doesn't have a page reference in the "
    "context, use regular text instead of [[]]\n"
    "- All [[]] references in your response should be clickable and valid"
)

_JOIN = "\n\n"
_CURATED_PRIORITY = 1  # + level
_AUXILIARY_PRIORITY = 10  # + source index, never ahead of a curated level


def effective_budget(options: ComposerOptions) -> int:
    """Token budget for the composed context.

    A share of the model's context window, lowered to an explicit cap when
    one is set, and never below ``MIN_CONTEXT_TOKENS``.
    """
    window = model_token_limit(options.provider, options.model)
    model_budget = int(window * options.context_token_share)
    requested = options.max_tokens if options.max_tokens is not None else model_budget
    return max(MIN_CONTEXT_TOKENS, min(requested, model_budget))


def rebalance(allocations: Sequence[tuple[int, int, int]]) -> list[int]:
    """Redistribute unused tokens between sections.

    Takes ``(priority, allocated, needed)`` tuples and returns the new
    allocations in input order. Sections needing less than they were given
    return the surplus to a pool; the pool then tops up sections that need
    more, lowest priority number first.
    """
    result = [allocated for _, allocated, _ in allocations]
    pool = 0
    for i, (_, allocated, needed) in enumerate(allocations):
        if needed < allocated:
            pool += allocated - needed
            result[i] = needed

    if pool > 0:
        needy = sorted(
            (i for i, (_, _, needed) in enumerate(allocations) if needed > result[i]),
            key=lambda i: allocations[i][0],
        )
        for i in needy:
            if pool <= 0:
                break
            grant = min(allocations[i][2] - result[i], pool)
            result[i] += grant
            pool -= grant
    return result


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def format_item(item: ContextItem) -> str:
    date = f" [Created: {item.created_date}]" if item.created_date else ""
    origin = f" (from page: {item.owner_page_title})" if item.owner_page_title else ""

    if item.kind == ItemKind.PAGE:
        link = f" [Open]({item.navigation_link})" if item.navigation_link else ""
        return f"**Page: {item.title or 'Untitled'}**{date}{link}\n{item.content}"
    if item.kind == ItemKind.BACKLINK:
        return f"**Backlink**{origin}{date}\n{item.content}"
    return f"**Block Reference**{origin}{date}\n{item.content}"


def format_items(items: Iterable[ContextItem]) -> str:
    return _JOIN.join(format_item(item) for item in items)


def _format_blocks(
    blocks: Iterable[Block], exclude: set[str], graph_name: str | None, indent: int = 0
) -> list[str]:
    """Outline lines with ``((uid))`` handles so the model can cite blocks."""
    lines: list[str] = []
    for block in blocks:
        if block.id in exclude or not block.text.strip():
            continue
        link = block_url(block.id, graph_name)
        suffix = f" {link.markdown()}" if link else ""
        lines.append(f"{'  ' * indent}- {block.text} (({block.id})){suffix}")
        lines.extend(_format_blocks(block.children, exclude, graph_name, indent + 1))
    return lines


def _auxiliary_header(source: AuxiliarySource) -> str:
    count = len(source.pages)
    if source.kind == "sidebar":
        return f"**Sidebar Notes ({count} open):**"
    if source.kind == "daily":
        return f"**Visible Daily Notes ({count} dates):**"
    return f"**{source.label or source.key} ({count} pages):**"


def _auxiliary_content(
    source: AuxiliarySource, exclude: set[str], graph_name: str | None
) -> str:
    parts = []
    for page in source.pages:
        link = page_url(page.id, graph_name)
        handle = link.markdown() if link else f"[[{page.title}]]"
        if source.kind == "sidebar":
            heading = f'**Sidebar: "{page.title}"** {handle}'
        else:
            heading = f"**{page.title}** {handle}"
        lines = [heading, *_format_blocks(page.blocks, exclude, graph_name)]
        parts.append("\n".join(lines))
    return _JOIN.join(parts)


def _wanted(source: AuxiliarySource, options: ComposerOptions) -> bool:
    if not source.pages:
        return False
    if source.kind == "sidebar":
        return options.include_sidebar
    if source.kind == "daily":
        return options.include_daily
    return True


# ---------------------------------------------------------------------------
# Section construction
# ---------------------------------------------------------------------------


def _curated_sections(
    items: Sequence[ContextItem], budget: int, options: ComposerOptions
) -> list[Section]:
    by_level: dict[int, list[ContextItem]] = {}
    for item in items:
        by_level.setdefault(item.level, []).append(item)

    levels = sorted(by_level)
    weights = {lvl: level_weight(lvl, options.level_weights) for lvl in levels}
    weight_sum = sum(weights.values()) or 1

    sections = []
    for lvl in levels:
        sections.append(
            Section(
                key=f"curated-level-{lvl}",
                title=f"=== {level_title(lvl)} ===",
                content=format_items(by_level[lvl]),
                priority=_CURATED_PRIORITY + lvl,
                allocated_tokens=max(0, int(budget * weights[lvl] / weight_sum)),
            )
        )
    return sections


def _auxiliary_sections(
    auxiliary: AuxiliaryContext,
    items: Sequence[ContextItem],
    budget: int,
    options: ComposerOptions,
    first_priority: int = _AUXILIARY_PRIORITY,
) -> list[Section]:
    # Blocks already shown as curated items are not repeated
    exclude = {i.id for i in items if i.kind in (ItemKind.BLOCK, ItemKind.BACKLINK)}

    sections = []
    for index, source in enumerate(auxiliary.sources):
        if not _wanted(source, options):
            continue
        content = _auxiliary_content(source, exclude, options.graph_name)
        sections.append(
            Section(
                key=f"auxiliary-{source.key}",
                title=_auxiliary_header(source),
                content=content,
                priority=first_priority + index,
            )
        )

    if sections and budget > 0:
        share = budget // len(sections)
        for section in sections:
            section.allocated_tokens = share
    return sections


def _header(section: Section) -> str:
    return f"{section.title}\n" if section.title else ""


def _sources_line(items: Sequence[ContextItem]) -> str:
    anchors = []
    for item in items:
        if item.kind != ItemKind.PAGE or item.level != 0:
            continue
        date = f" ({item.created_date})" if item.created_date else ""
        anchors.append(f"[[{item.title or 'Untitled'}]]{date}")
    if not anchors:
        return ""
    return f"**Context Sources:** {', '.join(anchors)}"


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def compose_unified_context(
    items: Sequence[ContextItem],
    auxiliary: AuxiliaryContext | None = None,
    options: ComposerOptions | None = None,
) -> str:
    """Serialize context items and auxiliary sources within the token budget.

    Args:
        items: Ranked items from ``ContextBuilder.build_context``.
        auxiliary: Extra pages outside the traversal (sidebar, daily notes).
        options: Budget and formatting options.

    Returns:
        The context string. Never empty for empty input: a fixed notice is
        returned instead.
    """
    options = options or ComposerOptions()
    items = list(items)
    budget = effective_budget(options)
    curated_budget = int(budget * options.curated_share)

    sections = _curated_sections(items, curated_budget, options)
    if auxiliary is not None:
        first = max([_AUXILIARY_PRIORITY - 1, *(s.priority for s in sections)]) + 1
        sections += _auxiliary_sections(
            auxiliary, items, budget - curated_budget, options, first
        )

    if not sections:
        return MINIMAL_CONTEXT_NOTICE if auxiliary is not None else NO_CONTENT_MESSAGE

    for section in sections:
        section.needed_tokens = TokenEstimator.estimate(_header(section)) + TokenEstimator.estimate(
            section.content
        )
    adjusted = rebalance([(s.priority, s.allocated_tokens, s.needed_tokens) for s in sections])
    for section, allocated in zip(sections, adjusted):
        section.allocated_tokens = allocated

    join_cost = TokenEstimator.estimate(_JOIN)
    out: list[str] = []
    used = 0

    def separator() -> int:
        return join_cost if out else 0

    sources = _sources_line(items)
    if sources:
        cost = TokenEstimator.estimate(sources)
        if cost <= budget:
            out.append(sources)
            used += cost

    floor = max(SMALL_SECTION_FLOOR, int(budget * SMALL_SECTION_RATIO))
    for section in sorted(sections, key=lambda s: s.priority):
        header = _header(section)
        header_tokens = TokenEstimator.estimate(header)
        sep = separator()
        if used + sep + header_tokens >= budget:
            break

        full_tokens = header_tokens + TokenEstimator.estimate(section.content)
        if used + sep + full_tokens <= budget and full_tokens <= section.allocated_tokens:
            out.append(header + section.content)
            used += sep + full_tokens
            continue

        available = max(
            0,
            min(
                section.allocated_tokens - header_tokens,
                budget - used - sep - header_tokens,
            ),
        )
        if available <= floor:
            logger.debug(f"Skipping section {section.key}: only {available} tokens left")
            continue

        truncated = truncate_preserving_structure(section.content, available)
        if truncated.strip():
            out.append(header + truncated)
            used += sep + header_tokens + TokenEstimator.estimate(truncated)
            logger.debug(f"Truncated section {section.key} to {available} tokens")

    if options.include_guidelines:
        cost = separator() + TokenEstimator.estimate(GUIDELINES)
        if used + cost <= budget:
            out.append(GUIDELINES)
            used += cost

    logger.debug(f"Composed context: {used}/{budget} tokens across {len(sections)} section(s)")
    return _JOIN.join(out).strip()
