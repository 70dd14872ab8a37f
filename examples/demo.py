#!/usr/bin/env python3
"""Demo: Using notectx as a Python library.

This shows how to assemble budgeted context programmatically, not just
through the CLI.
"""

import asyncio

from notectx.context import (
    AuxiliaryContext,
    AuxiliarySource,
    ComposerOptions,
    ContextBuilder,
    TokenEstimator,
    TraversalOptions,
    compose_unified_context,
)
from notectx.graph.builder import GraphBuilder
from notectx.graph.query import GraphQuery

EXPORT = [
    {
        "title": "Scaling",
        "uid": "scaling",
        "create-time": 1700000000000,
        "children": [
            {"uid": "s1", "string": "Horizontal scaling adds machines, see [[Caching]]"},
            {"uid": "s2", "string": "Key fact ((c1))"},
        ],
    },
    {
        "title": "Caching",
        "uid": "caching",
        "children": [
            {"uid": "c1", "string": "Cache invalidation is one of the two hard problems"},
        ],
    },
    {
        "title": "Journal",
        "uid": "journal",
        "children": [
            {
                "uid": "j1",
                "string": "[[Scaling]] review",
                "children": [{"uid": "j1a", "string": "Sharding by region went live"}],
            },
        ],
    },
]


async def main():
    # 1. Build the note graph
    print("Building note graph...")
    builder = GraphBuilder()
    graph = builder.build_from_export(EXPORT)

    stats = builder.get_stats()
    print(f"  Pages: {stats['pages']}")
    print(f"  Blocks: {stats['blocks']}")
    print(f"  References: {stats['references']}")

    # 2. Traverse from an anchor page
    query = GraphQuery(graph)
    context_builder = ContextBuilder(query, TraversalOptions(max_depth=2, graph_name="demo"))
    items = await context_builder.build_context(["Scaling"], [])

    print("\n--- Ranked context items ---")
    for item in items:
        label = item.title or item.content.splitlines()[0]
        print(f"  [{item.level}] {item.source.value:<16} p={item.priority:<3} {label}")

    # 3. Compose within a budget, with an open sidebar page
    sidebar = AuxiliarySource(
        key="sidebar",
        kind="sidebar",
        pages=[await query.get_page_by_title("Caching")],
    )
    options = ComposerOptions(provider="openai", model="gpt-4o", max_tokens=1500)
    text = compose_unified_context(items, AuxiliaryContext(sources=[sidebar]), options)

    print("\n--- Composed context ---")
    print(text)
    print(f"\n~{TokenEstimator.estimate(text)} tokens")


if __name__ == "__main__":
    asyncio.run(main())
