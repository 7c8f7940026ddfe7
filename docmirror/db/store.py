"""Async document-store contract and its SQLite implementation.

The migration and retrieval layers only talk to :class:`DocumentStore`.
:class:`SqliteDocumentStore` adapts the module-level functions in
``docmirror.db.*`` to that contract.  Each write method completes its
``with conn:`` block without yielding to the event loop, so concurrent
migrations of different documents never interleave inside one document's
delete-then-insert sequence.
"""

from __future__ import annotations

import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Sequence

from docmirror.db import documents as documents_db
from docmirror.db import embeddings as embeddings_db
from docmirror.db import nodes as nodes_db
from docmirror.db.connection import get_connection
from docmirror.db.migrations import init_db
from docmirror.db.models import ChunkHit, DocumentRow, NodeRow, StorageStats
from docmirror.remote.models import Node, RemoteDocument


class DocumentStore(ABC):
    """Backend-agnostic persistence interface used by the migration core."""

    # -- documents -----------------------------------------------------------

    @abstractmethod
    async def upsert_document(
        self, remote: RemoteDocument, word_count: int = 0
    ) -> DocumentRow: ...

    @abstractmethod
    async def mark_indexed(self, document_id: str, content_hash: str) -> None: ...

    @abstractmethod
    async def get_document(self, document_id: str) -> Optional[DocumentRow]: ...

    @abstractmethod
    async def get_document_by_external_id(
        self, external_id: str
    ) -> Optional[DocumentRow]: ...

    @abstractmethod
    async def archive_documents(self, external_ids: list[str]) -> int: ...

    # -- nodes ---------------------------------------------------------------

    @abstractmethod
    async def replace_nodes(
        self, document_id: str, nodes: Sequence[Node]
    ) -> list[NodeRow]: ...

    @abstractmethod
    async def list_nodes(self, document_id: str) -> list[NodeRow]: ...

    # -- embeddings ----------------------------------------------------------

    @abstractmethod
    async def replace_embeddings(self, document_id: str, records: Sequence) -> int: ...

    @abstractmethod
    async def count_embeddings(self, document_id: Optional[str] = None) -> int: ...

    # -- search --------------------------------------------------------------

    @abstractmethod
    async def keyword_search_nodes(self, text: str, limit: int = 20) -> list[NodeRow]: ...

    @abstractmethod
    async def keyword_search_documents(
        self, text: str, limit: int = 10
    ) -> list[DocumentRow]: ...

    @abstractmethod
    async def keyword_search_chunks(self, text: str, limit: int = 20) -> list[ChunkHit]: ...

    @abstractmethod
    async def vector_search(
        self, embedding: list[float], limit: int = 5, threshold: float = 0.0
    ) -> list[ChunkHit]: ...

    # -- housekeeping --------------------------------------------------------

    @abstractmethod
    async def storage_stats(self) -> StorageStats: ...

    async def close(self) -> None:
        """Release backend resources.  No-op by default."""


class SqliteDocumentStore(DocumentStore):
    """:class:`DocumentStore` backed by SQLite + sqlite-vec.

    Usage::

        store = SqliteDocumentStore.open()            # settings.db_path
        store = SqliteDocumentStore.open(":memory:")  # tests
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    @classmethod
    def open(cls, db_path: Optional[Path | str] = None) -> SqliteDocumentStore:
        """Connect, create the schema if needed and return a store."""
        conn = get_connection(db_path)
        init_db(conn)
        return cls(conn)

    async def close(self) -> None:
        self.conn.close()

    async def upsert_document(
        self, remote: RemoteDocument, word_count: int = 0
    ) -> DocumentRow:
        return documents_db.upsert_document(self.conn, remote, word_count)

    async def mark_indexed(self, document_id: str, content_hash: str) -> None:
        documents_db.mark_indexed(self.conn, document_id, content_hash)

    async def get_document(self, document_id: str) -> Optional[DocumentRow]:
        return documents_db.get_document(self.conn, document_id)

    async def get_document_by_external_id(
        self, external_id: str
    ) -> Optional[DocumentRow]:
        return documents_db.get_document_by_external_id(self.conn, external_id)

    async def archive_documents(self, external_ids: list[str]) -> int:
        return documents_db.archive_documents(self.conn, external_ids)

    async def replace_nodes(
        self, document_id: str, nodes: Sequence[Node]
    ) -> list[NodeRow]:
        return nodes_db.replace_nodes(self.conn, document_id, nodes)

    async def list_nodes(self, document_id: str) -> list[NodeRow]:
        return nodes_db.list_nodes(self.conn, document_id)

    async def replace_embeddings(self, document_id: str, records: Sequence) -> int:
        return embeddings_db.replace_embeddings(self.conn, document_id, records)

    async def count_embeddings(self, document_id: Optional[str] = None) -> int:
        return embeddings_db.count_embeddings(self.conn, document_id)

    async def keyword_search_nodes(self, text: str, limit: int = 20) -> list[NodeRow]:
        return nodes_db.keyword_search_nodes(self.conn, text, limit)

    async def keyword_search_documents(
        self, text: str, limit: int = 10
    ) -> list[DocumentRow]:
        return documents_db.keyword_search_documents(self.conn, text, limit)

    async def keyword_search_chunks(self, text: str, limit: int = 20) -> list[ChunkHit]:
        return embeddings_db.keyword_search_chunks(self.conn, text, limit)

    async def vector_search(
        self, embedding: list[float], limit: int = 5, threshold: float = 0.0
    ) -> list[ChunkHit]:
        return embeddings_db.vector_search(self.conn, embedding, limit, threshold)

    async def storage_stats(self) -> StorageStats:
        return documents_db.storage_stats(self.conn)
