"""Embedding pipeline: chunks in, persisted embedding records out.

The pipeline makes exactly one batched call to the embedding function per
document, zips the returned vectors back onto the chunks by position and
validates every vector's dimension before anything is written.  Persistence
goes through :meth:`DocumentStore.replace_embeddings`, which deletes the
document's previous records before inserting the new ones.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Sequence

from docmirror.config import settings
from docmirror.rag.chunker import Chunk
from docmirror.rag.embedder import embed_batch

logger = logging.getLogger(__name__)

EmbedFn = Callable[[list[str]], Awaitable[list[list[float]]]]


class EmbeddingError(Exception):
    """The embedding function returned unusable output for a document."""


@dataclass(frozen=True)
class EmbeddingRecord:
    document_id: str
    node_id: str | None
    vector: list[float]
    content_hash: str
    chunk_index: int
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)


def _to_record(
    document_id: str,
    chunk: Chunk,
    vector: list[float],
    content_hash: str,
) -> EmbeddingRecord:
    return EmbeddingRecord(
        document_id=document_id,
        node_id=chunk.source_node_ids[0] if chunk.source_node_ids else None,
        vector=list(vector),
        content_hash=content_hash,
        chunk_index=chunk.index,
        text=chunk.text,
        metadata={
            "section": chunk.section,
            "node_ids": list(chunk.source_node_ids),
            "start_offset": chunk.start_offset,
            "end_offset": chunk.end_offset,
        },
    )


class EmbeddingPipeline:
    """Batch chunks through an embedding function and persist the result.

    Args:
        store: Any object exposing ``async replace_embeddings(document_id,
            records)``; normally a :class:`~docmirror.db.store.DocumentStore`.
        embed_fn: Batched embedding function.  Defaults to
            :func:`~docmirror.rag.embedder.embed_batch`.
        dimension: Expected vector length.  Defaults to
            ``settings.embedding_dim``.
    """

    def __init__(
        self,
        store: Any,
        embed_fn: EmbedFn | None = None,
        dimension: int | None = None,
    ) -> None:
        self._store = store
        self._embed_fn = embed_fn or embed_batch
        self._dimension = dimension or settings.embedding_dim

    async def embed(
        self,
        document_id: str,
        chunks: Sequence[Chunk],
        content_hash: str,
    ) -> list[EmbeddingRecord]:
        """Embed *chunks* and return one record per chunk, in chunk order.

        Raises:
            EmbeddingError: On a count mismatch or a wrong-sized vector.
        """
        if not chunks:
            return []

        vectors = await self._embed_fn([c.text for c in chunks])
        if len(vectors) != len(chunks):
            raise EmbeddingError(
                f"Embedding count mismatch for document {document_id}: "
                f"sent {len(chunks)} chunk(s), got {len(vectors)} vector(s)"
            )

        for chunk, vector in zip(chunks, vectors):
            if len(vector) != self._dimension:
                raise EmbeddingError(
                    f"Embedding dimension mismatch for chunk {chunk.index} of "
                    f"document {document_id}: expected {self._dimension}, "
                    f"got {len(vector)}"
                )

        return [
            _to_record(document_id, chunk, vector, content_hash)
            for chunk, vector in zip(chunks, vectors)
        ]

    async def embed_and_store(
        self,
        document_id: str,
        chunks: Sequence[Chunk],
        content_hash: str,
    ) -> int:
        """Embed *chunks* and replace the document's stored embeddings.

        Returns the number of records written.  With no chunks the
        embedding function is not called, stale records are cleared and 0
        is returned.
        """
        if not chunks:
            logger.warning(
                "Document %s produced no chunks; clearing stored embeddings",
                document_id,
            )
            await self._store.replace_embeddings(document_id, [])
            return 0

        records = await self.embed(document_id, chunks, content_hash)
        written = await self._store.replace_embeddings(document_id, records)
        logger.info("Stored %d embedding(s) for document %s", written, document_id)
        return written
