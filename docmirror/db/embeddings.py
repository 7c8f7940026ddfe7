"""Chunk embeddings: replace-all writes plus keyword and vector lookup.

Vectors are stored as float32 blobs (``sqlite_vec.serialize_float32``) and
compared with sqlite-vec's ``vec_distance_cosine``; similarity is reported
as ``1 - distance``.
"""

from __future__ import annotations

import json
import sqlite3
from typing import Any, Optional, Sequence

import sqlite_vec

from docmirror.db.documents import like_pattern
from docmirror.db.models import ChunkHit


def _row_to_hit(row: sqlite3.Row, similarity: float) -> ChunkHit:
    return ChunkHit(
        document_id=row["document_id"],
        node_id=row["node_id"],
        chunk_index=row["chunk_index"],
        chunk_text=row["chunk_text"],
        similarity=similarity,
        metadata=json.loads(row["metadata"] or "{}"),
    )


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def replace_embeddings(
    conn: sqlite3.Connection,
    document_id: str,
    records: Sequence[Any],
) -> int:
    """Delete all embeddings of *document_id*, then insert *records*.

    *records* are :class:`~docmirror.rag.pipeline.EmbeddingRecord` objects.
    Both statements run in one transaction; the delete always precedes the
    insert so an interrupted write can only leave embeddings missing.

    Returns:
        The number of records inserted.
    """
    rows = [
        (
            document_id,
            rec.node_id,
            rec.chunk_index,
            rec.text,
            rec.content_hash,
            json.dumps(rec.metadata),
            sqlite_vec.serialize_float32(rec.vector),
        )
        for rec in records
    ]
    with conn:
        conn.execute("DELETE FROM embeddings WHERE document_id = ?", (document_id,))
        conn.executemany(
            """
            INSERT INTO embeddings (
                document_id, node_id, chunk_index, chunk_text,
                content_hash, metadata, embedding
            )
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            rows,
        )
    return len(rows)


def count_embeddings(
    conn: sqlite3.Connection, document_id: Optional[str] = None
) -> int:
    """Count stored embeddings, optionally for one document only."""
    if document_id is None:
        row = conn.execute("SELECT COUNT(*) FROM embeddings").fetchone()
    else:
        row = conn.execute(
            "SELECT COUNT(*) FROM embeddings WHERE document_id = ?", (document_id,)
        ).fetchone()
    return row[0]


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

def vector_search(
    conn: sqlite3.Connection,
    embedding: list[float],
    limit: int = 5,
    threshold: float = 0.0,
) -> list[ChunkHit]:
    """Return chunks with cosine similarity ``>= threshold``, best first.

    Chunks of archived documents are excluded.
    """
    blob = sqlite_vec.serialize_float32(embedding)
    rows = conn.execute(
        """
        SELECT *
        FROM (
            SELECT e.*, 1.0 - vec_distance_cosine(e.embedding, ?) AS similarity
            FROM   embeddings e
            JOIN   documents d ON d.id = e.document_id
            WHERE  d.archived = 0
        )
        WHERE  similarity >= ?
        ORDER  BY similarity DESC
        LIMIT  ?
        """,
        (blob, threshold, limit),
    ).fetchall()
    return [_row_to_hit(r, r["similarity"]) for r in rows]


def keyword_search_chunks(
    conn: sqlite3.Connection, text: str, limit: int = 20
) -> list[ChunkHit]:
    """Case-insensitive substring match on chunk text.

    Matches carry ``similarity=1.0``; callers score them themselves.
    """
    rows = conn.execute(
        """
        SELECT e.*
        FROM   embeddings e
        JOIN   documents d ON d.id = e.document_id
        WHERE  d.archived = 0
          AND  lower(e.chunk_text) LIKE ? ESCAPE '\\'
        ORDER  BY e.document_id, e.chunk_index
        LIMIT  ?
        """,
        (like_pattern(text), limit),
    ).fetchall()
    return [_row_to_hit(r, 1.0) for r in rows]
