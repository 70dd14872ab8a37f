"""Tests for the budget composer and model limits."""

from __future__ import annotations

import pytest

from notectx.context.composer import (
    GUIDELINES,
    MINIMAL_CONTEXT_NOTICE,
    NO_CONTENT_MESSAGE,
    compose_unified_context,
    effective_budget,
    format_item,
    rebalance,
)
from notectx.context.limits import DEFAULT_CONTEXT_WINDOW, model_token_limit
from notectx.context.models import (
    AuxiliaryContext,
    AuxiliarySource,
    ComposerOptions,
    ContextItem,
    ItemKind,
    ItemSource,
    TokenEstimator,
)
from notectx.context.scoring import compute_priority
from notectx.context.traversal import ContextBuilder
from notectx.graph.models import Block, Page


def _page_item(n: int, content: str, level: int = 0, created: str | None = None) -> ContextItem:
    source = ItemSource.USER_SPECIFIED if level == 0 else ItemSource.BLOCK_REFERENCE
    return ContextItem(
        kind=ItemKind.PAGE,
        id=f"page-{n}",
        title=f"Topic {n}",
        content=content,
        level=level,
        priority=compute_priority(source, level),
        source=source,
        created_date=created,
    )


def _block_item(item_id: str, content: str, level: int = 1) -> ContextItem:
    return ContextItem(
        kind=ItemKind.BLOCK,
        id=item_id,
        content=content,
        level=level,
        priority=compute_priority(ItemSource.BLOCK_REFERENCE, level),
        source=ItemSource.BLOCK_REFERENCE,
        owner_page_title="Elsewhere",
    )


class TestModelLimits:
    def test_known_models(self):
        assert model_token_limit("openai", "gpt-4o") == 24000
        assert model_token_limit("openai", "gpt-3.5-turbo") == 2000
        assert model_token_limit("anthropic", "claude-3-5-sonnet-20241022") == 180000
        assert model_token_limit("groq", "llama3-groq-8b-8192-tool-use-preview") == 6000
        assert model_token_limit("xai", "grok-beta") == 24000

    def test_unknown_falls_back(self):
        assert model_token_limit("openai", "gpt-99") == DEFAULT_CONTEXT_WINDOW
        assert model_token_limit("nobody", "thing") == DEFAULT_CONTEXT_WINDOW
        assert model_token_limit(None, None) == DEFAULT_CONTEXT_WINDOW

    @pytest.mark.parametrize(
        "model,expected",
        [
            ("llama3.1:70b", 24000),
            ("qwen2.5:14b", 16000),
            ("llama3.1:8b", 12000),
            ("phi3:3b", 8000),
            ("gemma:2b", 4000),
            ("deepseek-coder", 16000),
            ("qwen", 16000),
            ("mistral", 8000),
            ("llama3", 12000),
            ("something-else", 8000),
        ],
    )
    def test_ollama_heuristics(self, model: str, expected: int):
        assert model_token_limit("ollama", model) == expected


class TestEffectiveBudget:
    def test_default(self):
        assert effective_budget(ComposerOptions()) == 4200

    def test_cap_is_floored(self):
        assert effective_budget(ComposerOptions(max_tokens=500)) == 1000

    def test_cap_is_clamped_to_model_budget(self):
        assert effective_budget(ComposerOptions(max_tokens=100_000)) == 4200

    def test_cap_within_range(self):
        assert effective_budget(ComposerOptions(max_tokens=2500)) == 2500

    def test_model_window(self):
        options = ComposerOptions(provider="openai", model="gpt-4o", context_token_share=0.5)
        assert effective_budget(options) == 12000


class TestRebalance:
    def test_surplus_goes_to_needy(self):
        assert rebalance([(1, 100, 50), (2, 100, 180), (3, 100, 300)]) == [50, 150, 100]

    def test_most_important_first(self):
        # Input order differs from priority order
        assert rebalance([(3, 100, 300), (1, 100, 20), (2, 100, 150)]) == [130, 20, 150]

    def test_no_surplus(self):
        assert rebalance([(1, 100, 200), (2, 50, 80)]) == [100, 50]

    def test_everything_fits(self):
        assert rebalance([(1, 100, 10), (2, 100, 20)]) == [10, 20]

    def test_empty(self):
        assert rebalance([]) == []


class TestFormatting:
    def test_page_item(self):
        item = _page_item(1, "- body", created="2024-01-02")
        assert format_item(item) == "**Page: Topic 1** [Created: 2024-01-02]\n- body"

    def test_block_item(self):
        assert format_item(_block_item("b", "text")) == (
            "**Block Reference** (from page: Elsewhere)\ntext"
        )

    def test_backlink_item(self):
        item = _block_item("b", "text").model_copy(update={"kind": ItemKind.BACKLINK})
        assert format_item(item).startswith("**Backlink** (from page: Elsewhere)\n")


class TestComposeUnifiedContext:
    def test_no_content(self):
        assert compose_unified_context([]) == NO_CONTENT_MESSAGE

    def test_minimal_notice_with_empty_auxiliary(self):
        assert compose_unified_context([], AuxiliaryContext()) == MINIMAL_CONTEXT_NOTICE

    def test_sections_in_level_order(self):
        items = [
            _page_item(1, "- anchor body", created="2024-01-02"),
            _block_item("b1", "related block", level=1),
            _block_item("b2", "background block", level=3),
        ]
        output = compose_unified_context(items)

        assert output.startswith("**Context Sources:** [[Topic 1]] (2024-01-02)")
        first = output.index("=== Page Content ===")
        second = output.index("=== Directly Related Content ===")
        third = output.index("=== Background Information ===")
        assert first < second < third
        assert output.endswith(GUIDELINES)

    def test_guidelines_optional(self):
        output = compose_unified_context(
            [_page_item(1, "- body")], options=ComposerOptions(include_guidelines=False)
        )
        assert "IMPORTANT GUIDELINES" not in output

    def test_sources_line_only_for_anchor_pages(self):
        items = [_page_item(1, "- body", level=1)]
        output = compose_unified_context(items)
        assert "**Context Sources:**" not in output

    def test_tight_budget(self):
        paragraph_body = "word " * 640
        items = [_page_item(n, paragraph_body.strip()) for n in range(1, 6)]
        assert sum(TokenEstimator.estimate(i.content) for i in items) >= 3990

        output = compose_unified_context(items, options=ComposerOptions(max_tokens=1200))

        assert TokenEstimator.estimate(output) <= 1200
        assert "=== Page Content ===" in output
        assert "**Page: Topic 1**" in output
        assert "**Page: Topic 2**" not in output
        assert "more sections truncated for brevity" in output
        assert "Directly Related Content" not in output

    def test_auxiliary_sources(self):
        sidebar = AuxiliarySource(
            key="sidebar",
            kind="sidebar",
            pages=[
                Page(
                    id="side",
                    title="Reading List",
                    blocks=[
                        Block(id="r1", text="Designing Data-Intensive Applications"),
                        Block(id="b1", text="already shown above"),
                    ],
                )
            ],
        )
        daily = AuxiliarySource(
            key="daily",
            kind="daily",
            pages=[Page(id="d", title="January 2nd, 2024", blocks=[Block(id="d1", text="Standup")])],
        )
        items = [_page_item(1, "- body"), _block_item("b1", "already shown above")]

        output = compose_unified_context(items, AuxiliaryContext(sources=[sidebar, daily]))

        assert "**Sidebar Notes (1 open):**" in output
        assert '**Sidebar: "Reading List"** [[Reading List]]' in output
        assert "- Designing Data-Intensive Applications ((r1))" in output
        assert "((b1))" not in output
        assert "**Visible Daily Notes (1 dates):**" in output
        assert output.index("Sidebar Notes") < output.index("Visible Daily Notes")

    def test_auxiliary_toggles(self):
        sidebar = AuxiliarySource(
            key="sidebar",
            kind="sidebar",
            pages=[Page(id="side", title="Side", blocks=[Block(id="s1", text="note")])],
        )
        output = compose_unified_context(
            [_page_item(1, "- body")],
            AuxiliaryContext(sources=[sidebar]),
            ComposerOptions(include_sidebar=False),
        )
        assert "Sidebar" not in output

    def test_auxiliary_only(self):
        other = AuxiliarySource(
            key="open",
            label="Open Pages",
            pages=[Page(id="o", title="Open", blocks=[Block(id="o1", text="visible")])],
        )
        output = compose_unified_context([], AuxiliaryContext(sources=[other]))
        assert output.startswith("**Open Pages (1 pages):**")
        assert "- visible ((o1))" in output

    def test_deep_levels_come_before_auxiliary(self):
        other = AuxiliarySource(
            key="open",
            label="Open",
            pages=[Page(id="o", title="Open Page", blocks=[Block(id="o1", text="visible")])],
        )
        items = [_block_item("deep", "a block found twelve hops away", level=12)]

        output = compose_unified_context(items, AuxiliaryContext(sources=[other]))

        assert output.index("=== Background Information ===") < output.index("**Open (1 pages):**")

    def test_auxiliary_links_with_graph_name(self):
        other = AuxiliarySource(
            key="open",
            pages=[Page(id="o", title="Open", blocks=[Block(id="o1", text="visible")])],
        )
        output = compose_unified_context(
            [], AuxiliaryContext(sources=[other]), ComposerOptions(graph_name="g")
        )
        assert "https://roamresearch.com/#/app/g/page/o" in output
        assert "https://roamresearch.com/#/app/g/page/o1" in output

    @pytest.mark.parametrize("max_tokens", [None, 1000, 1500, 3000])
    def test_budget_respected_for_large_input(self, max_tokens):
        items = [
            _page_item(n, "\n\n".join(f"paragraph {n}-{p} " + "lorem " * 50 for p in range(10)), level=n % 4)
            for n in range(12)
        ]
        options = ComposerOptions(max_tokens=max_tokens)
        output = compose_unified_context(items, options=options)
        assert TokenEstimator.estimate(output) <= effective_budget(options)

    @pytest.mark.asyncio
    async def test_end_to_end(self, builder: ContextBuilder):
        items = await builder.build_context(["Scaling"], [])
        output = compose_unified_context(items)

        assert output.startswith("**Context Sources:** [[Scaling]] (2023-11-14)")
        assert "**Backlink** (from page: Journal 2024-01-02)" in output
        assert "Decided to shard the user table by region" in output
        assert TokenEstimator.estimate(output) <= 4200
