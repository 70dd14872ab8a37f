"""Priority scoring and ordering shared by traversal and composition."""

from __future__ import annotations

from collections.abc import Iterable

from notectx.context.models import ContextItem, ItemSource

# Base score per inclusion reason; lower = more important
BASE_SCORES: dict[ItemSource, int] = {
    ItemSource.USER_SPECIFIED: 0,
    ItemSource.PAGE_CONTENT: 10,
    ItemSource.BACKLINK: 20,
    ItemSource.BLOCK_REFERENCE: 30,
}

LEVEL_PENALTY = 10

# Share of the curated budget per traversal level; 3 covers everything deeper
DEFAULT_LEVEL_WEIGHTS: dict[int, float] = {
    0: 0.5,
    1: 0.3,
    2: 0.15,
    3: 0.05,
}

_LEVEL_TITLES = {
    0: "Page Content",
    1: "Directly Related Content",
    2: "Extended Related Content",
}


def compute_priority(source: ItemSource, level: int) -> int:
    return BASE_SCORES[source] + level * LEVEL_PENALTY


def sort_items(items: Iterable[ContextItem]) -> list[ContextItem]:
    """Ascending priority, then ascending level, then richer content first."""
    return sorted(items, key=lambda i: (i.priority, i.level, -len(i.content)))


def level_title(level: int) -> str:
    return _LEVEL_TITLES.get(level, "Background Information")


def level_weight(level: int, overrides: dict[int, float] | None = None) -> float:
    if overrides and level in overrides:
        return overrides[level]
    return DEFAULT_LEVEL_WEIGHTS[min(level, 3)]


def level_distribution(items: Iterable[ContextItem]) -> dict[int, int]:
    distribution: dict[int, int] = {}
    for item in items:
        distribution[item.level] = distribution.get(item.level, 0) + 1
    return distribution


def source_distribution(items: Iterable[ContextItem]) -> dict[str, int]:
    distribution: dict[str, int] = {}
    for item in items:
        key = item.source.value
        distribution[key] = distribution.get(key, 0) + 1
    return distribution
