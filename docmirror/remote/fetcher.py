"""Depth- and rate-limited recursive fetch of a remote block tree.

``RecursiveFetcher.execute`` issues one ``get_children`` call per node that
reports ``has_children``, builds every child subtree first and only then
constructs the parent node, so no partially built node is ever shared.

Depth is counted in remote-call hops: the call for the root's direct
children happens at depth 0 and a call at depth ``d`` is only issued while
``d < max_depth``.  Nodes left unfetched by the limit are marked
``TRUNCATED``; nodes whose own fetch raised are marked ``FAILED``.  Only a
failure of the root call aborts the fetch.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Protocol

from docmirror.rag.extractor import TEXT_TYPES, block_plain_text
from docmirror.remote.models import (
    ChildrenStatus,
    FetchOptions,
    FetchResult,
    Node,
    flatten,
)

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """The root ``get_children`` call failed."""


class ChildrenSource(Protocol):
    async def get_children(self, node_id: str) -> list[Node]: ...


@dataclass
class _Counters:
    api_calls: int = 0
    max_depth: int = 0
    truncated: bool = False


def is_non_empty(node: Node) -> bool:
    """Return ``True`` if *node* should survive the empty-node filter."""
    if node.has_children or node.type not in TEXT_TYPES:
        return True
    return bool(block_plain_text(node).strip())


class RecursiveFetcher:
    def __init__(self, client: ChildrenSource) -> None:
        self._client = client

    async def execute(
        self,
        root_id: str,
        options: FetchOptions | None = None,
    ) -> FetchResult:
        """Fetch the full tree under *root_id*.

        Raises:
            ValueError: If *root_id* is empty.
            FetchError: If the root call itself fails.
        """
        if not root_id:
            raise ValueError("root_id is required")
        options = options or FetchOptions()
        counters = _Counters()

        try:
            nodes = await self._fetch_level(root_id, 0, options, counters)
        except Exception as exc:
            raise FetchError(f"Recursive fetch failed: {exc}") from exc

        nodes = nodes or ()
        return FetchResult(
            nodes=nodes,
            total_nodes=len(flatten(nodes)),
            max_depth_reached=counters.max_depth,
            api_calls_count=counters.api_calls,
            truncated=counters.truncated,
        )

    async def execute_flat(
        self,
        root_id: str,
        options: FetchOptions | None = None,
    ) -> list[Node]:
        """Same as :meth:`execute` but flattened depth-first pre-order."""
        result = await self.execute(root_id, options)
        return flatten(result.nodes)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _fetch_level(
        self,
        parent_id: str,
        depth: int,
        options: FetchOptions,
        counters: _Counters,
    ) -> tuple[Node, ...] | None:
        """Fetch and build the children of *parent_id*; ``None`` if truncated."""
        if depth >= options.max_depth:
            logger.warning(
                "Depth limit reached (%d) for node %s", options.max_depth, parent_id
            )
            counters.truncated = True
            return None

        if counters.api_calls and options.delay_between_requests > 0:
            await asyncio.sleep(options.delay_between_requests)

        counters.api_calls += 1
        counters.max_depth = max(counters.max_depth, depth)
        raw_children = await self._client.get_children(parent_id)

        built: list[Node] = []
        for child in raw_children:
            built.append(await self._build(child, depth, options, counters))

        if not options.include_empty_nodes:
            built = [n for n in built if is_non_empty(n)]
        return tuple(built)

    async def _build(
        self,
        node: Node,
        depth: int,
        options: FetchOptions,
        counters: _Counters,
    ) -> Node:
        if not node.has_children:
            return replace(node, children=(), children_status=ChildrenStatus.LEAF)

        try:
            children = await self._fetch_level(node.id, depth + 1, options, counters)
        except Exception as exc:
            logger.error("Failed to fetch children of node %s: %s", node.id, exc)
            return replace(
                node,
                children=(),
                children_status=ChildrenStatus.FAILED,
                fetch_error=str(exc),
            )

        if children is None:
            return replace(node, children=(), children_status=ChildrenStatus.TRUNCATED)
        return replace(node, children=children, children_status=ChildrenStatus.FETCHED)
