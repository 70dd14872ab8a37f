"""Graph traversal that turns anchors into ranked context items.

Starting from the pages and blocks a user picked, the builder walks
outward through backlinks, block references, page references and the
surrounding outline, scoring every node it keeps by why it was reached
and how far it is from an anchor.

Each call owns its state in a ``_TraversalRun``; a builder can serve any
number of concurrent calls.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from notectx.context.backlinks import (
    is_circular_backlink,
    select_backlinks,
    should_expand_backlink,
)
from notectx.context.models import (
    ContextItem,
    ItemKind,
    ItemSource,
    TokenEstimator,
    TraversalOptions,
)
from notectx.context.scoring import (
    compute_priority,
    level_distribution,
    sort_items,
    source_distribution,
)
from notectx.context.truncation import truncate_to_chars
from notectx.graph.base import GraphSource
from notectx.graph.links import page_url
from notectx.graph.models import Block, Page

logger = logging.getLogger("notectx.traversal")


@dataclass
class _TraversalRun:
    """Mutable state of a single ``build_context`` call."""

    options: TraversalOptions
    deadline: float  # time.monotonic() value
    visited_ids: set[str] = field(default_factory=set)
    visited_titles: set[str] = field(default_factory=set)  # case-folded
    expired: bool = False
    backlinks_processed: int = 0
    backlinks_expanded: int = 0
    failures: int = 0

    def past_deadline(self) -> bool:
        if not self.expired and time.monotonic() > self.deadline:
            self.expired = True
            logger.warning(
                f"Traversal deadline of {self.options.deadline_seconds}s reached, "
                f"returning partial context"
            )
        return self.expired


def _make_item(
    kind: ItemKind,
    item_id: str,
    content: str,
    level: int,
    source: ItemSource,
    **extra,
) -> ContextItem:
    return ContextItem(
        kind=kind,
        id=item_id,
        content=content,
        level=level,
        priority=compute_priority(source, level),
        source=source,
        **extra,
    )


class ContextBuilder:
    """Builds a ranked list of context items from user-selected anchors.

    Usage:
        builder = ContextBuilder(GraphQuery(graph))
        items = await builder.build_context(["Scaling"], ["blockUid1"])
    """

    def __init__(self, source: GraphSource, options: TraversalOptions | None = None) -> None:
        self.source = source
        self.options = options or TraversalOptions()

    async def build_context(
        self,
        anchor_page_titles: Iterable[str] = (),
        anchor_block_ids: Iterable[str] = (),
        options: TraversalOptions | None = None,
    ) -> list[ContextItem]:
        """Walk the graph from the anchors and return sorted, capped items.

        Never raises for graph failures: a branch that cannot be read
        contributes nothing. When the deadline passes, whatever was
        collected so far is returned.
        """
        opts = options or self.options
        pages = list(anchor_page_titles)
        blocks = list(anchor_block_ids)
        started = time.monotonic()
        run = _TraversalRun(options=opts, deadline=started + opts.deadline_seconds)

        logger.info(f"Building context from {len(pages)} page(s) and {len(blocks)} block(s)")

        items: list[ContextItem] = []
        for title in pages:
            items += await self._process_page(run, title, 0, ItemSource.USER_SPECIFIED)
        for block_id in blocks:
            items += await self._process_anchor_block(run, block_id)

        result = sort_items(items)[: opts.max_items]

        elapsed = time.monotonic() - started
        logger.info(
            f"Context built: {len(result)} item(s) of {len(items)} collected in {elapsed:.2f}s "
            f"(levels={level_distribution(result)}, sources={source_distribution(result)}, "
            f"backlinks={run.backlinks_processed}, expanded={run.backlinks_expanded}, "
            f"failures={run.failures}, partial={run.expired})"
        )
        return result

    # -------------------------------------------------------------------
    # Pages
    # -------------------------------------------------------------------

    async def _process_page(
        self, run: _TraversalRun, title: str, level: int, source: ItemSource
    ) -> list[ContextItem]:
        opts = run.options
        if run.past_deadline() or level > opts.max_depth:
            return []

        key = title.casefold()
        if key in run.visited_titles:
            logger.debug(f"Skipping already visited page: {title}")
            return []
        run.visited_titles.add(key)

        try:
            page = await self.source.get_page_by_title(title)
        except Exception as e:
            run.failures += 1
            logger.warning(f"Failed to load page '{title}': {e}")
            return []
        if page is None:
            logger.debug(f"Page not found: {title}")
            return []
        if page.id in run.visited_ids:
            return []

        run.visited_ids.add(page.id)
        run.visited_titles.add(page.title.casefold())

        items = [self._page_item(page, level, source, opts.graph_name)]
        if level < opts.max_depth:
            if opts.include_backlinks:
                items += await self._collect_backlinks(run, page.title, level + 1)
            if opts.include_block_refs:
                items += await self._collect_block_refs(run, page, level + 1)
        return items

    def _page_item(
        self, page: Page, level: int, source: ItemSource, graph_name: str | None
    ) -> ContextItem:
        content = self.source.render_page(page) or f'Page "{page.title}" has no content'
        link = page_url(page.id, graph_name)
        return _make_item(
            ItemKind.PAGE,
            page.id,
            content,
            level,
            source,
            title=page.title,
            created_date=page.created_date,
            navigation_link=link.web_url if link else None,
        )

    async def _collect_block_refs(
        self, run: _TraversalRun, page: Page, level: int
    ) -> list[ContextItem]:
        items: list[ContextItem] = []
        for block in page.iter_blocks():
            for ref in self.source.extract_block_references(block.text):
                if ref in run.visited_ids:
                    continue
                items += await self._process_block(run, ref, level, ItemSource.BLOCK_REFERENCE)
        return items

    # -------------------------------------------------------------------
    # Blocks
    # -------------------------------------------------------------------

    async def _fetch_block(self, run: _TraversalRun, block_id: str) -> Block | None:
        try:
            block = await self.source.get_block_by_id(block_id)
        except Exception as e:
            run.failures += 1
            logger.warning(f"Failed to load block {block_id}: {e}")
            return None
        if block is None:
            logger.debug(f"Block not found: {block_id}")
        return block

    async def _owner_title(self, run: _TraversalRun, block_id: str) -> str | None:
        try:
            return await self.source.get_owner_page_title(block_id)
        except Exception as e:
            run.failures += 1
            logger.warning(f"Failed to resolve page of block {block_id}: {e}")
            return None

    async def _process_anchor_block(
        self, run: _TraversalRun, block_id: str
    ) -> list[ContextItem]:
        """Emit the whole top-level subtree around a user-picked block."""
        opts = run.options
        if run.past_deadline() or block_id in run.visited_ids:
            return []

        try:
            root = await self.source.get_top_level_ancestor(block_id)
        except Exception as e:
            run.failures += 1
            logger.warning(f"Failed to resolve ancestors of block {block_id}: {e}")
            return []
        if root is None:
            logger.debug(f"Block not found: {block_id}")
            return []
        if root.id in run.visited_ids:
            return []

        run.visited_ids.add(block_id)
        run.visited_ids.add(root.id)
        run.visited_ids.update(d.id for d in root.iter_descendants())

        content = self.source.render_subtree(root)
        if not content:
            return []

        owner = await self._owner_title(run, root.id)
        items = [
            _make_item(
                ItemKind.BLOCK,
                root.id,
                content,
                0,
                ItemSource.USER_SPECIFIED,
                owner_page_title=owner,
            )
        ]
        if opts.include_page_refs and opts.max_depth > 0:
            titles = self.source.extract_page_references(content)
            items += await self._resolve_reference_chain(run, titles, 1, frozenset())
        return items

    async def _resolve_reference_chain(
        self,
        run: _TraversalRun,
        titles: Sequence[str],
        level: int,
        path: frozenset[str],
    ) -> list[ContextItem]:
        """Follow ``[[Page]]`` references transitively from an anchor block.

        ``path`` holds the case-folded titles on the current chain; a chain
        stops growing once it reaches ``reference_chain_limit`` pages.
        """
        opts = run.options
        if level > opts.max_depth:
            return []

        items: list[ContextItem] = []
        for title in titles:
            if len(path) >= opts.reference_chain_limit:
                logger.debug(f"Reference chain limit reached at '{title}'")
                break
            key = title.casefold()
            if key in path:
                continue

            page_items = await self._process_page(run, title, level, ItemSource.BLOCK_REFERENCE)
            items += page_items
            if page_items and level < opts.max_depth:
                nested = self.source.extract_page_references(page_items[0].content)
                items += await self._resolve_reference_chain(run, nested, level + 1, path | {key})
        return items

    async def _process_block(
        self, run: _TraversalRun, block_id: str, level: int, source: ItemSource
    ) -> list[ContextItem]:
        opts = run.options
        if run.past_deadline() or level > opts.max_depth:
            return []
        if block_id in run.visited_ids:
            logger.debug(f"Skipping already visited block: {block_id}")
            return []
        run.visited_ids.add(block_id)

        block = await self._fetch_block(run, block_id)
        if block is None:
            return []

        owner = await self._owner_title(run, block.id)
        items: list[ContextItem] = []
        if block.text.strip():
            items.append(
                _make_item(ItemKind.BLOCK, block.id, block.text, level, source, owner_page_title=owner)
            )
        if level >= opts.max_depth:
            return items

        items += await self._collect_neighbourhood(run, block, level + 1, owner)

        if opts.include_page_refs:
            for title in self.source.extract_page_references(block.text):
                items += await self._process_page(run, title, level + 1, ItemSource.BLOCK_REFERENCE)

        for child in block.children:
            items += await self._process_block(run, child.id, level + 1, ItemSource.BLOCK_REFERENCE)
        return items

    async def _collect_neighbourhood(
        self, run: _TraversalRun, block: Block, level: int, owner: str | None
    ) -> list[ContextItem]:
        """Parent, further ancestors and a few siblings of ``block``."""
        opts = run.options
        items: list[ContextItem] = []

        if opts.include_parent_blocks or opts.include_ancestor_path:
            limit = 1 + (opts.max_ancestors if opts.include_ancestor_path else 0)
            chain = await self._ancestor_chain(run, block.id, limit)
            if not opts.include_parent_blocks:
                chain = chain[1:]
            for ancestor in chain:
                item = self._neighbour_item(run, ancestor, level, owner)
                if item is not None:
                    items.append(item)

        if opts.include_sibling_blocks and opts.max_siblings > 0:
            try:
                siblings = await self.source.get_siblings(block.id)
            except Exception as e:
                run.failures += 1
                logger.warning(f"Failed to load siblings of block {block.id}: {e}")
                siblings = []
            added = 0
            for sibling in siblings:
                if added >= opts.max_siblings:
                    break
                item = self._neighbour_item(run, sibling, level, owner)
                if item is not None:
                    items.append(item)
                    added += 1
        return items

    async def _ancestor_chain(self, run: _TraversalRun, block_id: str, limit: int) -> list[Block]:
        """Up to ``limit`` ancestors, nearest first."""
        chain: list[Block] = []
        seen = {block_id}
        current = block_id
        while len(chain) < limit:
            try:
                parent = await self.source.get_parent(current)
            except Exception as e:
                run.failures += 1
                logger.warning(f"Failed to load parent of block {current}: {e}")
                break
            if parent is None or parent.id in seen:
                break
            seen.add(parent.id)
            chain.append(parent)
            current = parent.id
        return chain

    def _neighbour_item(
        self, run: _TraversalRun, block: Block, level: int, owner: str | None
    ) -> ContextItem | None:
        if block.id in run.visited_ids or not block.text.strip():
            return None
        run.visited_ids.add(block.id)
        return _make_item(
            ItemKind.BLOCK,
            block.id,
            block.text,
            level,
            ItemSource.PAGE_CONTENT,
            owner_page_title=owner,
        )

    # -------------------------------------------------------------------
    # Backlinks
    # -------------------------------------------------------------------

    async def _collect_backlinks(
        self, run: _TraversalRun, page_title: str, level: int
    ) -> list[ContextItem]:
        """Select, filter and size the blocks that reference ``page_title``.

        All backlinks of one page share ``backlink_child_token_budget``.
        An expanded subtree that does not fit falls back to the block's own
        text, which in turn is hard-truncated and finally skipped.
        """
        opts = run.options
        try:
            blocks = await self.source.get_backlinks(page_title)
        except Exception as e:
            run.failures += 1
            logger.warning(f"Failed to load backlinks of '{page_title}': {e}")
            return []

        selected = select_backlinks(blocks, opts.backlink_cap, opts.strong_backlink_chars)
        budget_left = opts.backlink_child_token_budget
        expanded = 0
        items: list[ContextItem] = []

        for index, scored in enumerate(selected):
            if index and index % opts.yield_every == 0:
                await asyncio.sleep(0)
            if run.past_deadline():
                break

            block = scored.block
            if block.id in run.visited_ids:
                continue
            run.backlinks_processed += 1

            try:
                children = await self.source.get_children(block.id)
            except Exception as e:
                run.failures += 1
                logger.warning(f"Failed to load children of backlink {block.id}: {e}")
                children = []
            full = block.model_copy(update={"children": children})

            if is_circular_backlink(
                block.text,
                page_title,
                full.descendant_text(),
                opts.circular_min_chars,
                opts.meaningful_children_chars,
            ):
                logger.debug(f"Skipping circular backlink {block.id}: {block.text!r}")
                continue

            content = None
            wants_expansion = should_expand_backlink(
                text=block.text,
                has_children=bool(children),
                selected_count=len(selected),
                expanded_so_far=expanded,
                always_expand=opts.include_backlink_children,
                short_content_chars=opts.short_content_chars,
                few_backlinks_threshold=opts.few_backlinks_threshold,
                max_expanded=opts.max_expanded_backlinks,
            )
            if wants_expansion:
                rendered = self.source.render_subtree(full)
                cost = TokenEstimator.estimate(rendered)
                if rendered and cost <= budget_left:
                    content = rendered
                    budget_left -= cost
                    expanded += 1
                    run.visited_ids.update(d.id for d in full.iter_descendants())

            if content is None:
                content = block.text
                cost = TokenEstimator.estimate(content)
                if cost > budget_left:
                    content = truncate_to_chars(content, budget_left)
                    cost = TokenEstimator.estimate(content)
                if not content.strip() or cost > budget_left:
                    logger.debug(f"No backlink budget left for {block.id}")
                    continue
                budget_left -= cost

            run.visited_ids.add(block.id)
            owner = await self._owner_title(run, block.id)
            items.append(
                _make_item(
                    ItemKind.BACKLINK,
                    block.id,
                    content,
                    level,
                    ItemSource.BACKLINK,
                    owner_page_title=owner,
                )
            )

        run.backlinks_expanded += expanded
        return items


async def build_context(
    source: GraphSource,
    anchor_page_titles: Iterable[str] = (),
    anchor_block_ids: Iterable[str] = (),
    options: TraversalOptions | None = None,
) -> list[ContextItem]:
    """One-shot helper around ``ContextBuilder.build_context``."""
    return await ContextBuilder(source, options).build_context(
        anchor_page_titles, anchor_block_ids
    )
