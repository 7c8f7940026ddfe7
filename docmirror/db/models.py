"""Dataclass models representing DB rows.

These are plain Python objects, not ORM models.  The DB layer serialises /
deserialises to and from these types.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass
class DocumentRow:
    id: str
    external_id: str
    title: str
    parent_ref: str | None
    url: str | None
    properties: dict[str, Any]
    remote_created: str | None
    remote_edited: str | None
    archived: bool
    content_hash: str | None
    word_count: int
    created_at: int
    updated_at: int

    def properties_json(self) -> str:
        """Serialise the properties dict to JSON text."""
        return json.dumps(self.properties, ensure_ascii=False)


@dataclass
class NodeRow:
    id: str
    document_id: str
    external_id: str
    parent_node_id: str | None
    type: str
    content: dict[str, Any]
    plain_text: str
    position: int
    depth: int
    has_children: bool
    children_status: str


@dataclass
class ChunkHit:
    """One stored chunk matched by a keyword or vector query."""

    document_id: str
    node_id: str | None
    chunk_index: int
    chunk_text: str
    similarity: float
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def section(self) -> str:
        return self.metadata.get("section", "") or ""


@dataclass
class StorageStats:
    total_documents: int = 0
    archived_documents: int = 0
    total_nodes: int = 0
    total_embeddings: int = 0
    total_words: int = 0
    average_words_per_document: int = 0
    top_node_types: list[tuple[str, int]] = field(default_factory=list)
    last_sync: int | None = None
