"""Content extraction: turns a block tree into a :class:`DocumentContent`.

The tree is walked depth-first pre-order.  Every block with non-blank text
contributes one line to ``full_text`` and a :class:`NodeSpan` recording where
that line sits, so the chunker can map character offsets back to node ids.
Blocks are grouped into sections under the nearest preceding heading; blocks
before the first heading belong to an implicit section whose heading is
``""``.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Any, Sequence

from docmirror.remote.models import Node, flatten, rich_text_to_str

_HEADING_LEVELS = {"heading_1": 1, "heading_2": 2, "heading_3": 3}
# Block types whose emptiness is judged by their text alone.
TEXT_TYPES = frozenset(
    {
        "paragraph",
        "heading_1",
        "heading_2",
        "heading_3",
        "bulleted_list_item",
        "numbered_list_item",
        "quote",
        "toggle",
        "to_do",
        "callout",
        "code",
    }
)
_MEDIA_TYPES = frozenset({"image", "video", "file", "pdf", "audio"})
_LINK_TYPES = frozenset({"bookmark", "link_preview", "embed"})
# Pure layout containers carry no text of their own.
_CONTAINER_TYPES = frozenset(
    {"column_list", "column", "table", "synced_block", "table_of_contents", "breadcrumb"}
)


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Section:
    heading: str
    text: str
    level: int
    node_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class NodeSpan:
    """Half-open ``[start, end)`` range of one node's text in ``full_text``."""

    node_id: str
    start: int
    end: int
    section: str


@dataclass(frozen=True)
class DocumentContent:
    full_text: str
    sections: tuple[Section, ...]
    content_hash: str
    word_count: int
    char_count: int
    spans: tuple[NodeSpan, ...] = ()


@dataclass
class _SectionBuilder:
    heading: str = ""
    level: int = 0
    texts: list[str] = field(default_factory=list)
    node_ids: list[str] = field(default_factory=list)

    def build(self) -> Section:
        return Section(
            heading=self.heading,
            text="\n".join(self.texts),
            level=self.level,
            node_ids=tuple(self.node_ids),
        )


# ---------------------------------------------------------------------------
# Per-block text
# ---------------------------------------------------------------------------

def heading_level(node: Node) -> int | None:
    """Return 1-3 for heading blocks, ``None`` for everything else."""
    return _HEADING_LEVELS.get(node.type)


def _caption(content: dict[str, Any]) -> str:
    return rich_text_to_str(content.get("caption"))


def block_plain_text(node: Node) -> str:
    """Return the plain text a single block contributes to its document."""
    content = node.raw_content or {}
    block_type = node.type

    if block_type == "to_do":
        text = rich_text_to_str(content.get("rich_text"))
        if not text:
            return ""
        return f"{'☑' if content.get('checked') else '☐'} {text}"

    if block_type == "divider":
        return "---"

    if block_type in _MEDIA_TYPES:
        return _caption(content) or f"[{block_type.upper()}]"

    if block_type in _LINK_TYPES:
        return _caption(content) or content.get("url", "")

    if block_type == "equation":
        return content.get("expression", "")

    if block_type == "table_row":
        cells = content.get("cells") or []
        return "\t".join(rich_text_to_str(cell) for cell in cells).strip()

    if block_type == "child_page":
        return content.get("title", "")

    if "rich_text" in content:
        return rich_text_to_str(content.get("rich_text"))

    if isinstance(content.get("title"), list):
        return rich_text_to_str(content["title"])

    if block_type in _CONTAINER_TYPES or block_type in TEXT_TYPES:
        return ""

    return f"[{block_type.upper()}]"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def content_hash(text: str) -> str:
    """Deterministic SHA-256 hex digest of *text*."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def extract(nodes: Sequence[Node]) -> DocumentContent:
    """Flatten *nodes* into a :class:`DocumentContent`.

    ``content_hash``, ``word_count`` and ``char_count`` are recomputed from
    ``full_text`` on every call; the hash is what decides upstream whether a
    document must be re-embedded.
    """
    parts: list[str] = []
    spans: list[NodeSpan] = []
    sections: list[Section] = []
    current = _SectionBuilder()
    offset = 0

    for node in flatten(list(nodes)):
        text = block_plain_text(node)
        level = heading_level(node)

        if level is not None:
            if current.node_ids:
                sections.append(current.build())
            current = _SectionBuilder(heading=text.strip(), level=level)
        elif text.strip():
            current.texts.append(text)
        current.node_ids.append(node.id)

        if not text.strip():
            continue

        start = offset + 1 if parts else offset
        end = start + len(text)
        spans.append(NodeSpan(node_id=node.id, start=start, end=end, section=current.heading))
        parts.append(text)
        offset = end

    if current.node_ids:
        sections.append(current.build())

    full_text = "\n".join(parts)
    return DocumentContent(
        full_text=full_text,
        sections=tuple(sections),
        content_hash=content_hash(full_text),
        word_count=len(full_text.split()),
        char_count=len(full_text),
        spans=tuple(spans),
    )
