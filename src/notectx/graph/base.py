"""Abstract graph-source interface consumed by the context engine."""

from __future__ import annotations

from abc import ABC, abstractmethod

from notectx.graph.models import Block, Page
from notectx.graph.references import extract_block_references, extract_page_references


class GraphSource(ABC):
    """Read-only async access to a hierarchical note graph.

    Host adapters implement the node lookups. Blocks returned by the
    lookup methods carry their full descendant subtree in ``children``;
    ``get_backlinks`` may return blocks without children.
    """

    @abstractmethod
    async def get_page_by_title(self, title: str) -> Page | None:
        ...

    @abstractmethod
    async def get_block_by_id(self, block_id: str) -> Block | None:
        ...

    @abstractmethod
    async def get_children(self, block_id: str) -> list[Block]:
        ...

    @abstractmethod
    async def get_parent(self, block_id: str) -> Block | None:
        """Parent block, or None when the block sits directly on its page."""
        ...

    @abstractmethod
    async def get_siblings(self, block_id: str) -> list[Block]:
        """Other blocks under the same parent, in order, excluding the block."""
        ...

    @abstractmethod
    async def get_backlinks(self, page_title: str) -> list[Block]:
        """Blocks anywhere in the graph whose text references the page."""
        ...

    @abstractmethod
    async def get_owner_page_title(self, block_id: str) -> str | None:
        ...

    async def get_top_level_ancestor(self, block_id: str) -> Block | None:
        """Walk parent links up to the block that sits directly on the page."""
        block = await self.get_block_by_id(block_id)
        if block is None:
            return None
        seen = {block.id}
        while True:
            parent = await self.get_parent(block.id)
            if parent is None or parent.id in seen:
                return block
            seen.add(parent.id)
            block = parent

    def extract_page_references(self, text: str) -> list[str]:
        return extract_page_references(text)

    def extract_block_references(self, text: str) -> list[str]:
        return extract_block_references(text)

    def render_subtree(self, block: Block, indent_level: int = 0) -> str:
        """Flatten a block and its descendants into indented outline text.

        Blank blocks are skipped together with their subtrees.
        """
        if not block.text.strip():
            return ""
        lines = [f"{'  ' * indent_level}- {block.text}"]
        for child in block.children:
            rendered = self.render_subtree(child, indent_level + 1)
            if rendered:
                lines.append(rendered)
        return "\n".join(lines)

    def render_page(self, page: Page) -> str:
        """Outline text for all blocks of a page."""
        parts = [self.render_subtree(block) for block in page.blocks]
        return "\n".join(part for part in parts if part)
