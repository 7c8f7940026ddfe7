"""Fakes shared by the test modules.

- ``FakeNotionClient`` serves a small block tree from memory.
- ``fake_embed_batch`` / ``fake_embed_text`` return deterministic
  bag-of-words vectors of ``settings.embedding_dim`` floats, so texts that
  share words are close in cosine space.
"""

from __future__ import annotations

import zlib
from typing import Any, Optional

from docmirror.config import settings
from docmirror.remote.models import Node, RemoteDocument


# ---------------------------------------------------------------------------
# Node / document builders
# ---------------------------------------------------------------------------

def block(
    node_id: str,
    block_type: str = "paragraph",
    text: str = "",
    has_children: bool = False,
    **content: Any,
) -> Node:
    """Build a childless :class:`Node` as ``get_children`` would return it."""
    raw: dict[str, Any] = dict(content)
    if text or block_type in {
        "paragraph", "heading_1", "heading_2", "heading_3",
        "bulleted_list_item", "numbered_list_item", "quote", "to_do", "code",
    }:
        raw.setdefault("rich_text", [{"plain_text": text}] if text else [])
    return Node(id=node_id, type=block_type, raw_content=raw, has_children=has_children)


def document(doc_id: str, title: str, archived: bool = False) -> RemoteDocument:
    return RemoteDocument(
        id=doc_id,
        title=title,
        url=f"https://notion.example/{doc_id}",
        properties={"Name": {"type": "title", "title": [{"plain_text": title}]}},
        archived=archived,
    )


# ---------------------------------------------------------------------------
# Fake remote client
# ---------------------------------------------------------------------------

class FakeNotionClient:
    """In-memory stand-in for :class:`~docmirror.remote.client.NotionClient`."""

    def __init__(
        self,
        documents: Optional[dict[str, RemoteDocument]] = None,
        children: Optional[dict[str, list[Node]]] = None,
        databases: Optional[dict[str, list[str]]] = None,
    ) -> None:
        self.documents = documents or {}
        self.children = children or {}
        self.databases = databases or {}
        self.failing_children: dict[str, Exception] = {}
        self.failing_documents: dict[str, Exception] = {}
        self.failing_databases: dict[str, Exception] = {}
        self.children_calls: list[str] = []
        self.closed = False

    async def get_document(self, document_id: str) -> RemoteDocument:
        if document_id in self.failing_documents:
            raise self.failing_documents[document_id]
        try:
            return self.documents[document_id]
        except KeyError:
            raise RuntimeError(f"404 Not Found: page {document_id}") from None

    async def get_children(self, node_id: str) -> list[Node]:
        self.children_calls.append(node_id)
        if node_id in self.failing_children:
            raise self.failing_children[node_id]
        return list(self.children.get(node_id, []))

    async def query_database(self, database_id: str) -> list[RemoteDocument]:
        if database_id in self.failing_databases:
            raise self.failing_databases[database_id]
        return [self.documents[i] for i in self.databases.get(database_id, [])]

    async def aclose(self) -> None:
        self.closed = True


def sample_client() -> FakeNotionClient:
    """Two documents with text, one empty document, one database."""
    return FakeNotionClient(
        documents={
            "page-apollo": document("page-apollo", "Project Apollo"),
            "page-gemini": document("page-gemini", "Gemini notes"),
            "page-empty": document("page-empty", "Blank page"),
        },
        children={
            "page-apollo": [
                block("a-h1", "heading_1", "Overview"),
                block("a-p1", "paragraph", "Apollo was the lunar landing program."),
                block("a-li", "bulleted_list_item", "Saturn V rocket", has_children=True),
                block("a-h2", "heading_2", "Crew"),
                block("a-p2", "paragraph", "Armstrong and Aldrin walked on the moon."),
            ],
            "a-li": [block("a-li-1", "paragraph", "Three stages of liquid fuel.")],
            "page-gemini": [
                block("g-p1", "paragraph", "Gemini tested orbital rendezvous."),
            ],
            "page-empty": [],
        },
        databases={"db-missions": ["page-apollo", "page-gemini"]},
    )


# ---------------------------------------------------------------------------
# Fake embeddings
# ---------------------------------------------------------------------------

def fake_vector(text: str) -> list[float]:
    vector = [0.0] * settings.embedding_dim
    vector[0] = 0.01  # never a zero vector
    for word in text.lower().split():
        vector[1 + zlib.crc32(word.encode()) % (settings.embedding_dim - 1)] += 1.0
    return vector


async def fake_embed_batch(texts: list[str]) -> list[list[float]]:
    return [fake_vector(t) for t in texts]


async def fake_embed_text(text: str) -> list[float]:
    return fake_vector(text)


def unit_vector(index: int) -> list[float]:
    vector = [0.0] * settings.embedding_dim
    vector[index] = 1.0
    return vector
