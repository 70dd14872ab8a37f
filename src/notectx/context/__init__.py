"""Context assembly: traversal, budgeting and composition.

Usage:
    from notectx.context import ContextBuilder, compose_unified_context

    builder = ContextBuilder(GraphQuery(graph))
    items = await builder.build_context(["Scaling"], [])
    print(compose_unified_context(items, options=ComposerOptions(max_tokens=4000)))
"""

from notectx.context.composer import compose_unified_context, effective_budget
from notectx.context.models import (
    AuxiliaryContext,
    AuxiliarySource,
    ComposerOptions,
    ContextItem,
    ItemKind,
    ItemSource,
    TokenEstimator,
    TraversalOptions,
)
from notectx.context.traversal import ContextBuilder, build_context
from notectx.context.truncation import truncate_preserving_structure

__all__ = [
    "AuxiliaryContext",
    "AuxiliarySource",
    "ComposerOptions",
    "ContextBuilder",
    "ContextItem",
    "ItemKind",
    "ItemSource",
    "TokenEstimator",
    "TraversalOptions",
    "build_context",
    "compose_unified_context",
    "effective_budget",
    "truncate_preserving_structure",
]
