"""Data models for the remote content API and the recursive fetch."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator


class ChildrenStatus(str, Enum):
    """How a node's ``children`` tuple came to be what it is."""

    LEAF = "leaf"
    FETCHED = "fetched"
    TRUNCATED = "truncated"
    FAILED = "failed"


@dataclass(frozen=True)
class Node:
    """One block of remote document structure.

    A node owns its children exclusively.  ``children_status`` tells a
    confirmed-empty leaf apart from a node whose children were never fetched
    because of the depth limit or a remote failure.
    """

    id: str
    type: str
    raw_content: dict[str, Any] = field(default_factory=dict)
    created_at: str | None = None
    last_edited_at: str | None = None
    has_children: bool = False
    children: tuple[Node, ...] = ()
    children_status: ChildrenStatus = ChildrenStatus.LEAF
    fetch_error: str | None = None

    def walk(self) -> Iterator[Node]:
        """Yield this node and every descendant, depth-first pre-order."""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass(frozen=True)
class RemoteDocument:
    """Page metadata as returned by the remote API."""

    id: str
    title: str
    parent_ref: str | None = None
    url: str | None = None
    created_at: str | None = None
    last_edited_at: str | None = None
    properties: dict[str, Any] = field(default_factory=dict)
    archived: bool = False


@dataclass(frozen=True)
class FetchOptions:
    max_depth: int = 10
    include_empty_nodes: bool = True
    delay_between_requests: float = 0.0


@dataclass(frozen=True)
class FetchResult:
    nodes: tuple[Node, ...]
    total_nodes: int
    max_depth_reached: int
    api_calls_count: int
    truncated: bool = False


def flatten(nodes: tuple[Node, ...] | list[Node]) -> list[Node]:
    """Return *nodes* and all their descendants, depth-first pre-order."""
    return [n for root in nodes for n in root.walk()]


def rich_text_to_str(items: list[dict[str, Any]] | None) -> str:
    """Concatenate the plain text of a rich-text array."""
    return "".join(
        item.get("plain_text") or (item.get("text") or {}).get("content", "")
        for item in items or []
    )
