"""In-memory query interface over a built note graph."""

from __future__ import annotations

import networkx as nx

from notectx.graph.base import GraphSource
from notectx.graph.models import Block, Page


class GraphQuery(GraphSource):
    """Query engine for the note graph built by ``GraphBuilder``.

    Answers the lookups the context engine needs: pages by title,
    blocks by uid, tree navigation and backlinks.
    """

    def __init__(self, graph: nx.DiGraph) -> None:
        self.graph = graph
        self._title_index: dict[str, str] = {}
        self._folded_index: dict[str, str] = {}
        self._build_index()

    def _build_index(self) -> None:
        """Build title -> page uid lookups (exact and case-folded)."""
        for node_id, data in self.graph.nodes(data=True):
            if data.get("type") != "page":
                continue
            title = data.get("title", "")
            if title:
                self._title_index[title] = node_id
                self._folded_index.setdefault(title.casefold(), node_id)

    # -------------------------------------------------------------------
    # Node construction
    # -------------------------------------------------------------------

    def _node_type(self, node_id: str) -> str:
        return self.graph.nodes.get(node_id, {}).get("type", "")

    def _child_ids(self, node_id: str) -> list[str]:
        children = [
            succ for succ in self.graph.successors(node_id)
            if self.graph.edges[node_id, succ].get("kind") == "contains"
        ]
        return sorted(children, key=lambda c: self.graph.edges[node_id, c].get("order", 0))

    def _parent_id(self, node_id: str) -> str | None:
        for pred in self.graph.predecessors(node_id):
            if self.graph.edges[pred, node_id].get("kind") == "contains":
                return pred
        return None

    def _block(self, node_id: str) -> Block:
        data = self.graph.nodes[node_id]
        return Block(
            id=node_id,
            text=data.get("text", ""),
            order=data.get("order", 0),
            created=data.get("created"),
            children=[self._block(c) for c in self._child_ids(node_id)],
        )

    def _page(self, node_id: str) -> Page:
        data = self.graph.nodes[node_id]
        return Page(
            id=node_id,
            title=data.get("title", ""),
            created=data.get("created"),
            blocks=[self._block(c) for c in self._child_ids(node_id)],
        )

    # -------------------------------------------------------------------
    # GraphSource interface
    # -------------------------------------------------------------------

    def find_page_id(self, title: str) -> str | None:
        """Resolve a title to a page uid, falling back to a case-insensitive match."""
        return self._title_index.get(title) or self._folded_index.get(title.casefold())

    async def get_page_by_title(self, title: str) -> Page | None:
        page_id = self.find_page_id(title)
        if page_id is None:
            return None
        return self._page(page_id)

    async def get_block_by_id(self, block_id: str) -> Block | None:
        if self._node_type(block_id) != "block":
            return None
        return self._block(block_id)

    async def get_children(self, block_id: str) -> list[Block]:
        if self._node_type(block_id) != "block":
            return []
        return [self._block(c) for c in self._child_ids(block_id)]

    async def get_parent(self, block_id: str) -> Block | None:
        if self._node_type(block_id) != "block":
            return None
        parent = self._parent_id(block_id)
        if parent is None or self._node_type(parent) != "block":
            return None
        return self._block(parent)

    async def get_siblings(self, block_id: str) -> list[Block]:
        parent = self._parent_id(block_id)
        if parent is None:
            return []
        return [self._block(c) for c in self._child_ids(parent) if c != block_id]

    async def get_backlinks(self, page_title: str) -> list[Block]:
        page_id = self.find_page_id(page_title)
        if page_id is None:
            return []
        return [
            self._block(pred)
            for pred in self.graph.predecessors(page_id)
            if self.graph.edges[pred, page_id].get("kind") == "references"
            and self._node_type(pred) == "block"
        ]

    async def get_owner_page_title(self, block_id: str) -> str | None:
        page_id = self.graph.nodes.get(block_id, {}).get("page")
        if page_id is None:
            return None
        return self.graph.nodes.get(page_id, {}).get("title")
