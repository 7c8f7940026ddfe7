"""CRUD operations for the ``documents`` table."""

from __future__ import annotations

import json
import sqlite3
import uuid
from time import time
from typing import Optional

from docmirror.db.models import DocumentRow, StorageStats
from docmirror.remote.models import RemoteDocument


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def like_pattern(text: str) -> str:
    """Lowercased substring pattern for ``LIKE ? ESCAPE '\\'``.

    ``%`` and ``_`` in *text* match literally, so ``user_id`` or ``100%``
    never turn into wildcards.
    """
    escaped = (
        text.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    )
    return f"%{escaped}%"


def _properties_json(remote: RemoteDocument) -> str:
    # Unescaped so LIKE matches non-ASCII text.
    return json.dumps(remote.properties, ensure_ascii=False)


def _row_to_document(row: sqlite3.Row) -> DocumentRow:
    return DocumentRow(
        id=row["id"],
        external_id=row["external_id"],
        title=row["title"],
        parent_ref=row["parent_ref"],
        url=row["url"],
        properties=json.loads(row["properties"] or "{}"),
        remote_created=row["remote_created"],
        remote_edited=row["remote_edited"],
        archived=bool(row["archived"]),
        content_hash=row["content_hash"],
        word_count=row["word_count"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def upsert_document(
    conn: sqlite3.Connection,
    remote: RemoteDocument,
    word_count: int = 0,
) -> DocumentRow:
    """Insert or refresh the row for *remote*, keyed by its external id.

    The internal id is assigned once and kept across re-migrations.  The
    ``archived`` flag is taken from the remote metadata, so re-migrating a
    previously archived document restores it.  ``content_hash`` is left
    alone; it only changes through :func:`mark_indexed`.
    """
    now = int(time())
    with conn:
        conn.execute(
            """
            INSERT INTO documents (
                id, external_id, title, parent_ref, url, properties,
                remote_created, remote_edited, archived, word_count,
                created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(external_id) DO UPDATE SET
                title          = excluded.title,
                parent_ref     = excluded.parent_ref,
                url            = excluded.url,
                properties     = excluded.properties,
                remote_created = excluded.remote_created,
                remote_edited  = excluded.remote_edited,
                archived       = excluded.archived,
                word_count     = excluded.word_count,
                updated_at     = excluded.updated_at
            """,
            (
                str(uuid.uuid4()),
                remote.id,
                remote.title,
                remote.parent_ref,
                remote.url,
                _properties_json(remote),
                remote.created_at,
                remote.last_edited_at,
                int(remote.archived),
                word_count,
                now,
                now,
            ),
        )
    return get_document_by_external_id(conn, remote.id)  # type: ignore[return-value]


def mark_indexed(conn: sqlite3.Connection, document_id: str, content_hash: str) -> None:
    """Record the hash of the content whose embeddings are now stored."""
    with conn:
        conn.execute(
            "UPDATE documents SET content_hash = ? WHERE id = ?",
            (content_hash, document_id),
        )


def get_document(conn: sqlite3.Connection, document_id: str) -> Optional[DocumentRow]:
    """Fetch a document by internal id.  Returns ``None`` if not found."""
    row = conn.execute(
        "SELECT * FROM documents WHERE id = ?", (document_id,)
    ).fetchone()
    return _row_to_document(row) if row else None


def get_document_by_external_id(
    conn: sqlite3.Connection, external_id: str
) -> Optional[DocumentRow]:
    """Fetch a document by its remote id.  Returns ``None`` if not found."""
    row = conn.execute(
        "SELECT * FROM documents WHERE external_id = ?", (external_id,)
    ).fetchone()
    return _row_to_document(row) if row else None


def archive_documents(conn: sqlite3.Connection, external_ids: list[str]) -> int:
    """Flag the given documents as archived.  Returns the number of rows changed."""
    if not external_ids:
        return 0
    placeholders = ",".join("?" for _ in external_ids)
    with conn:
        cursor = conn.execute(
            f"UPDATE documents SET archived = 1, updated_at = ? "  # noqa: S608
            f"WHERE external_id IN ({placeholders}) AND archived = 0",
            [int(time()), *external_ids],
        )
    return cursor.rowcount


def keyword_search_documents(
    conn: sqlite3.Connection, text: str, limit: int = 10
) -> list[DocumentRow]:
    """Case-insensitive substring match on title and properties."""
    pattern = like_pattern(text)
    rows = conn.execute(
        """
        SELECT *
        FROM   documents
        WHERE  archived = 0
          AND  (lower(title) LIKE ? ESCAPE '\\'
                OR lower(properties) LIKE ? ESCAPE '\\')
        ORDER  BY updated_at DESC
        LIMIT  ?
        """,
        (pattern, pattern, limit),
    ).fetchall()
    return [_row_to_document(r) for r in rows]


def storage_stats(conn: sqlite3.Connection) -> StorageStats:
    """Aggregate counts across the three tables."""
    doc_row = conn.execute(
        """
        SELECT COUNT(*)                                   AS total,
               COALESCE(SUM(archived), 0)                 AS archived,
               COALESCE(SUM(CASE WHEN archived = 0 THEN word_count END), 0) AS words,
               MAX(updated_at)                            AS last_sync
        FROM   documents
        """
    ).fetchone()
    total_nodes = conn.execute("SELECT COUNT(*) FROM nodes").fetchone()[0]
    total_embeddings = conn.execute("SELECT COUNT(*) FROM embeddings").fetchone()[0]
    type_rows = conn.execute(
        """
        SELECT n.type, COUNT(*) AS cnt
        FROM   nodes n
        JOIN   documents d ON d.id = n.document_id
        WHERE  d.archived = 0
        GROUP  BY n.type
        ORDER  BY cnt DESC, n.type
        LIMIT  10
        """
    ).fetchall()

    active = doc_row["total"] - doc_row["archived"]
    words = doc_row["words"]
    return StorageStats(
        total_documents=doc_row["total"],
        archived_documents=doc_row["archived"],
        total_nodes=total_nodes,
        total_embeddings=total_embeddings,
        total_words=words,
        average_words_per_document=round(words / active) if active else 0,
        top_node_types=[(r["type"], r["cnt"]) for r in type_rows],
        last_sync=doc_row["last_sync"],
    )
