"""Data models for context assembly."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from notectx.graph.models import Page


class ItemKind(str, Enum):
    """What kind of node a context item was rendered from."""

    PAGE = "page"
    BLOCK = "block"
    BACKLINK = "backlink-reference"


class ItemSource(str, Enum):
    """Why an item was included."""

    USER_SPECIFIED = "user-specified"
    PAGE_CONTENT = "page-content"
    BACKLINK = "backlink"
    BLOCK_REFERENCE = "block-reference"


class ContextItem(BaseModel):
    """A single unit of retrieved content."""

    kind: ItemKind
    id: str
    title: str | None = None  # pages only
    content: str
    level: int = Field(default=0, ge=0)  # Distance from the nearest anchor
    priority: int = 0  # Lower = more important
    owner_page_title: str | None = None  # blocks only
    source: ItemSource
    created_date: str | None = None
    navigation_link: str | None = None


class TraversalOptions(BaseModel):
    """Configuration for one traversal run."""

    model_config = ConfigDict(frozen=True)

    max_depth: int = Field(default=3, ge=0)
    max_items: int = Field(default=50, ge=0)

    include_backlinks: bool = True
    include_block_refs: bool = True
    include_page_refs: bool = True
    include_parent_blocks: bool = True
    include_sibling_blocks: bool = True
    include_ancestor_path: bool = True
    include_backlink_children: bool = False  # Always expand backlink subtrees

    # Backlink volume
    max_backlinks: int | None = None  # None -> clamp(max_items * 2, 20, 100)
    few_backlinks_threshold: int = 8
    backlink_child_token_budget: int = 1500
    max_expanded_backlinks: int = 15

    # Cooperative scheduling
    yield_every: int = Field(default=20, ge=1)
    deadline_seconds: float = 30.0

    # Neighbourhood caps
    max_siblings: int = 3
    max_ancestors: int = 3
    reference_chain_limit: int = 20

    # Heuristic thresholds (characters)
    circular_min_chars: int = 10
    meaningful_children_chars: int = 20
    strong_backlink_chars: int = 10
    short_content_chars: int = 50

    graph_name: str | None = None

    @property
    def backlink_cap(self) -> int:
        if self.max_backlinks is not None:
            return self.max_backlinks
        return min(100, max(20, self.max_items * 2))


class ComposerOptions(BaseModel):
    """Configuration for composing the final context string."""

    provider: str | None = None
    model: str | None = None
    max_tokens: int | None = None  # Explicit cap from settings
    context_token_share: float = Field(default=0.7, gt=0, le=1)
    curated_share: float = Field(default=0.85, ge=0, le=1)
    include_guidelines: bool = True
    include_sidebar: bool = True
    include_daily: bool = True
    level_weights: dict[int, float] | None = None
    graph_name: str | None = None


class AuxiliarySource(BaseModel):
    """Pages outside the anchor traversal, e.g. open sidebar or daily notes."""

    key: str
    label: str = ""
    kind: str = "other"  # "sidebar", "daily" or "other"
    pages: list[Page] = Field(default_factory=list)


class AuxiliaryContext(BaseModel):
    """The bundle of auxiliary sources handed to the composer."""

    sources: list[AuxiliarySource] = Field(default_factory=list)


@dataclass
class Section:
    """One named, budgeted slice of the composed output."""

    key: str
    title: str
    content: str
    priority: int  # Lower = more important
    allocated_tokens: int = 0
    needed_tokens: int = 0


class TokenEstimator:
    """Estimate token counts for note text."""

    # Dense scripts (CJK, kana, hangul, full-width forms) pack more meaning
    # per character: ~1 token per 1.5 chars, versus ~1 per 4 elsewhere.
    DENSE_CHARS = re.compile(
        r"[\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uac00-\ud7af\uf900-\ufaff\uff00-\uffef]"
    )
    CHARS_PER_TOKEN = 4

    @classmethod
    def estimate(cls, text: str) -> int:
        """Estimate token count for a string."""
        if not text:
            return 0
        dense = len(cls.DENSE_CHARS.findall(text))
        other = len(text) - dense
        # ceil(dense / 1.5 + other / 4) in integer twelfths
        return -(-(dense * 8 + other * 3) // 12)

    @classmethod
    def chars_for_tokens(cls, tokens: int) -> int:
        """Character allowance for a token budget at the fallback ratio."""
        return max(0, tokens) * cls.CHARS_PER_TOKEN
