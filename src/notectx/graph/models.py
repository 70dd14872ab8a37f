"""Data models for pages and blocks of a note graph."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime, timezone

from pydantic import BaseModel, Field


class Block(BaseModel):
    """The smallest addressable unit of content.

    Blocks handed out by a graph source carry their full descendant
    subtree in ``children``, ordered by ``order``.
    """

    id: str
    text: str = ""
    children: list[Block] = Field(default_factory=list)
    order: int = 0
    created: int | None = None  # epoch milliseconds

    def iter_descendants(self) -> Iterator[Block]:
        """Yield every descendant, depth-first, excluding the block itself."""
        for child in self.children:
            yield child
            yield from child.iter_descendants()

    def descendant_text(self) -> str:
        """Concatenated text of all descendants, used to judge substance."""
        return "".join(child.text.strip() for child in self.iter_descendants())


class Page(BaseModel):
    """A named top-level node containing a tree of blocks."""

    id: str
    title: str
    blocks: list[Block] = Field(default_factory=list)
    created: int | None = None

    def iter_blocks(self) -> Iterator[Block]:
        """Yield every block on the page, depth-first."""
        for block in self.blocks:
            yield block
            yield from block.iter_descendants()

    @property
    def created_date(self) -> str | None:
        if self.created is None:
            return None
        return datetime.fromtimestamp(self.created / 1000, tz=timezone.utc).date().isoformat()


Block.model_rebuild()
