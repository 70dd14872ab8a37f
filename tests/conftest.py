"""Shared test fixtures for notectx."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import networkx as nx
import pytest

from notectx.context.traversal import ContextBuilder
from notectx.exceptions import GraphQueryError
from notectx.graph.base import GraphSource
from notectx.graph.builder import GraphBuilder
from notectx.graph.models import Block, Page
from notectx.graph.query import GraphQuery


def _block(uid: str, text: str, *children: dict) -> dict:
    return {"uid": uid, "string": text, "children": list(children)}


SAMPLE_EXPORT = [
    {
        "title": "Scaling",
        "uid": "page-scaling",
        "create-time": 1700000000000,
        "children": [
            _block(
                "b-s1",
                "Horizontal scaling adds more machines to the pool",
                _block("b-s1a", "Requires stateless services, see [[Caching]]"),
            ),
            _block("b-s2", "Vertical scaling upgrades a single machine"),
            _block("b-s3", "Key reference ((b-c1))"),
        ],
    },
    {
        "title": "Caching",
        "uid": "page-caching",
        "children": [
            _block("b-c1", "Cache invalidation is one of the two hard problems"),
            _block("b-c2", "Related: [[Databases]]"),
        ],
    },
    {
        "title": "Databases",
        "uid": "page-db",
        "children": [
            _block(
                "b-d1",
                "Indexes speed up reads at the cost of writes",
                _block("b-d1a", "Covering indexes avoid table lookups entirely"),
                _block("b-d1b", "Partial indexes only cover rows matching a predicate"),
                _block("b-d1c", "BRIN indexes suit append-only tables"),
                _block("b-d1d", "Hash indexes only support equality"),
                _block("b-d1e", "GIN indexes handle array containment"),
            ),
        ],
    },
    {
        "title": "Journal 2024-01-02",
        "uid": "page-journal",
        "children": [
            _block("b-j1", "[[Scaling]]"),
            _block("b-j2", "[[Scaling]] - see also my notes on scaling"),
            _block(
                "b-j3",
                "Meeting about [[Scaling]]",
                _block("b-j3a", "Decided to shard the user table by region"),
            ),
            _block(
                "b-j4",
                "[[Scaling]]",
                _block("b-j4a", "Benchmarks show a 3x throughput gain after sharding"),
            ),
        ],
    },
    {
        "title": "Ideas",
        "uid": "page-ideas",
        "children": [
            _block("b-i1", "Look at ((b-d1b)) again"),
        ],
    },
]


@pytest.fixture
def sample_export() -> list[dict]:
    return json.loads(json.dumps(SAMPLE_EXPORT))


@pytest.fixture
def export_file(tmp_path: Path, sample_export: list[dict]) -> Path:
    """Write the sample export to disk, as the CLI expects it."""
    path = tmp_path / "graph.json"
    path.write_text(json.dumps(sample_export))
    return path


@pytest.fixture
def note_graph(sample_export: list[dict]) -> nx.DiGraph:
    return GraphBuilder().build_from_export(sample_export)


@pytest.fixture
def query(note_graph: nx.DiGraph) -> GraphQuery:
    return GraphQuery(note_graph)


@pytest.fixture
def builder(query: GraphQuery) -> ContextBuilder:
    return ContextBuilder(query)


class FailingQuery(GraphQuery):
    """GraphQuery that raises for selected pages and blocks."""

    def __init__(
        self,
        graph: nx.DiGraph,
        fail_titles: set[str] = frozenset(),
        fail_backlinks: set[str] = frozenset(),
        fail_blocks: set[str] = frozenset(),
    ) -> None:
        super().__init__(graph)
        self.fail_titles = set(fail_titles)
        self.fail_backlinks = set(fail_backlinks)
        self.fail_blocks = set(fail_blocks)

    async def get_page_by_title(self, title: str) -> Page | None:
        if title in self.fail_titles:
            raise GraphQueryError(f"page lookup failed: {title}")
        return await super().get_page_by_title(title)

    async def get_backlinks(self, page_title: str) -> list[Block]:
        if page_title in self.fail_backlinks:
            raise GraphQueryError(f"backlink query failed: {page_title}")
        return await super().get_backlinks(page_title)

    async def get_block_by_id(self, block_id: str) -> Block | None:
        if block_id in self.fail_blocks:
            raise GraphQueryError(f"block lookup failed: {block_id}")
        return await super().get_block_by_id(block_id)


class BacklinkFloodSource(GraphSource):
    """A hub page with a huge number of slow backlinks.

    The hub also references a far-away block that is only reached after
    every backlink has been processed.
    """

    def __init__(self, count: int = 10_000, child_delay: float = 0.001) -> None:
        self.count = count
        self.child_delay = child_delay
        self.children_calls = 0
        self.target = Block(id="far-target", text="Only reachable after the backlinks")
        self.hub = Page(
            id="hub",
            title="Hub",
            blocks=[Block(id="hub-1", text="Points at ((far-target))")],
        )
        # Built up front so the deadline is spent on processing, not setup
        self.backlinks = [
            Block(id=f"bl-{i}", text=f"Backlink number {i} talks about [[Hub]] at length")
            for i in range(count)
        ]

    async def get_page_by_title(self, title: str) -> Page | None:
        return self.hub if title == "Hub" else None

    async def get_block_by_id(self, block_id: str) -> Block | None:
        if block_id == self.target.id:
            return self.target
        return None

    async def get_children(self, block_id: str) -> list[Block]:
        self.children_calls += 1
        await asyncio.sleep(self.child_delay)
        return []

    async def get_parent(self, block_id: str) -> Block | None:
        return None

    async def get_siblings(self, block_id: str) -> list[Block]:
        return []

    async def get_backlinks(self, page_title: str) -> list[Block]:
        if page_title != "Hub":
            return []
        return list(self.backlinks)

    async def get_owner_page_title(self, block_id: str) -> str | None:
        return "Elsewhere"


@pytest.fixture
def flood_source() -> BacklinkFloodSource:
    return BacklinkFloodSource()


class EagerBacklinkSource(BacklinkFloodSource):
    """Flood source whose lookups never suspend the running task."""

    def __init__(self, count: int = 200) -> None:
        super().__init__(count=count, child_delay=0)

    async def get_children(self, block_id: str) -> list[Block]:
        self.children_calls += 1
        return []
