"""Build a note graph from an outliner JSON export."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import networkx as nx

from notectx.exceptions import GraphLoadError
from notectx.graph.references import extract_block_references, extract_page_references


class GraphBuilder:
    """Builds a note graph from exported pages.

    The graph has two types of nodes:
    - Page nodes: named pages, keyed by page uid
    - Block nodes: outline blocks, keyed by block uid

    Edges are ``contains`` (page/block -> child block, with ``order``) and
    ``references`` (block -> referenced page or block).

    The export format is a JSON list of pages, each with ``title``, ``uid``,
    ``create-time`` and nested ``children`` of ``{string, uid, order,
    create-time, children}``.
    """

    def __init__(self) -> None:
        self.graph = nx.DiGraph()
        self._titles: dict[str, str] = {}
        self._folded_titles: dict[str, str] = {}
        self._pending_refs: list[tuple[str, str]] = []
        self._dangling: list[tuple[str, str]] = []

    def build_from_file(self, path: str | Path) -> nx.DiGraph:
        """Load an export file and build the graph from it."""
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise GraphLoadError(str(path), str(e)) from e
        except json.JSONDecodeError as e:
            raise GraphLoadError(str(path), f"invalid JSON ({e})") from e
        return self.build_from_export(data, source=str(path))

    def build_from_export(self, data: Any, source: str = "<export>") -> nx.DiGraph:
        """Build the full note graph from already-decoded export data."""
        if not isinstance(data, list):
            raise GraphLoadError(source, "expected a list of pages")

        # Reset state so reusing a builder doesn't accumulate stale data
        self.graph = nx.DiGraph()
        self._titles = {}
        self._folded_titles = {}
        self._pending_refs = []
        self._dangling = []

        for page in data:
            self._add_page(page, source)

        # References may point at pages that appear later in the export
        self._resolve_references()
        return self.graph

    def _add_page(self, page: Any, source: str) -> None:
        if not isinstance(page, dict) or not page.get("title"):
            raise GraphLoadError(source, f"page without a title: {page!r:.80}")

        title = page["title"]
        uid = page.get("uid") or f"page::{title}"
        if uid in self.graph:
            raise GraphLoadError(source, f"duplicate uid '{uid}'")

        self.graph.add_node(
            uid,
            type="page",
            title=title,
            created=page.get("create-time"),
        )
        self._titles[title] = uid
        self._folded_titles.setdefault(title.casefold(), uid)

        for index, child in enumerate(page.get("children") or []):
            self._add_block(child, parent=uid, page=uid, index=index, source=source)

    def _add_block(
        self, block: Any, parent: str, page: str, index: int, source: str
    ) -> None:
        if not isinstance(block, dict) or not block.get("uid"):
            raise GraphLoadError(source, f"block without a uid under '{parent}'")

        uid = block["uid"]
        if uid in self.graph:
            raise GraphLoadError(source, f"duplicate uid '{uid}'")

        text = block.get("string", block.get("text", "")) or ""
        order = block.get("order", index)
        self.graph.add_node(
            uid,
            type="block",
            text=text,
            order=order,
            created=block.get("create-time"),
            page=page,
        )
        self.graph.add_edge(parent, uid, kind="contains", order=order)
        self._pending_refs.append((uid, text))

        for child_index, child in enumerate(block.get("children") or []):
            self._add_block(child, parent=uid, page=page, index=child_index, source=source)

    def _resolve_title(self, title: str) -> str | None:
        """Exact title first, then a case-insensitive match, as GraphQuery does."""
        return self._titles.get(title) or self._folded_titles.get(title.casefold())

    def _resolve_references(self) -> None:
        """Turn ``[[Page]]``/``#Tag``/``((uid))`` markers into edges."""
        for uid, text in self._pending_refs:
            targets = [
                (title, self._resolve_title(title))
                for title in extract_page_references(text)
            ]
            targets += [
                (ref, ref if self.graph.has_node(ref) else None)
                for ref in extract_block_references(text)
            ]
            for marker, target in targets:
                if target is None:
                    self._dangling.append((uid, marker))
                    continue
                if target == uid or self.graph.has_edge(uid, target):
                    continue
                self.graph.add_edge(uid, target, kind="references")

    def get_stats(self) -> dict:
        """Get graph statistics."""
        node_types: dict[str, int] = {}
        edge_types: dict[str, int] = {}

        for _, data in self.graph.nodes(data=True):
            kind = data.get("type", "unknown")
            node_types[kind] = node_types.get(kind, 0) + 1

        for _, _, data in self.graph.edges(data=True):
            kind = data.get("kind", "unknown")
            edge_types[kind] = edge_types.get(kind, 0) + 1

        return {
            "total_nodes": self.graph.number_of_nodes(),
            "total_edges": self.graph.number_of_edges(),
            "node_types": node_types,
            "edge_types": edge_types,
            "pages": node_types.get("page", 0),
            "blocks": node_types.get("block", 0),
            "references": edge_types.get("references", 0),
            "dangling_refs": len(self._dangling),
        }
