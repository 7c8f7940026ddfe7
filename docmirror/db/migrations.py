"""Database initialisation.

``init_db(conn)`` is idempotent and safe to call on an existing database.

The ``embeddings`` table bakes the vector size into a CHECK constraint when it
is created, so the dimension is also recorded in ``store_meta``.  Opening the
database with a different ``EMBEDDING_DIM`` fails fast with
:class:`EmbeddingDimensionMismatch` instead of rejecting every insert later.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from docmirror.config import settings

logger = logging.getLogger(__name__)


class EmbeddingDimensionMismatch(RuntimeError):
    """The database was created for a different embedding size."""


def _read_schema() -> str:
    """Load schema.sql and inject the configured embedding dimension."""
    template = settings.schema_path.read_text(encoding="utf-8")
    return template.replace("{embedding_dim}", str(settings.embedding_dim))


def stored_embedding_dim(conn: sqlite3.Connection) -> Optional[int]:
    """Return the dimension recorded when the database was created."""
    row = conn.execute(
        "SELECT value FROM store_meta WHERE key = 'embedding_dim'"
    ).fetchone()
    return int(row[0]) if row else None


def _check_embedding_dim(conn: sqlite3.Connection) -> None:
    stored = stored_embedding_dim(conn)
    if stored is None:
        with conn:
            conn.execute(
                "INSERT INTO store_meta(key, value) VALUES ('embedding_dim', ?)",
                (str(settings.embedding_dim),),
            )
        logger.info("Created store for %d-dimensional embeddings", settings.embedding_dim)
    elif stored != settings.embedding_dim:
        raise EmbeddingDimensionMismatch(
            f"Database was created for {stored}-dimensional embeddings but "
            f"EMBEDDING_DIM is {settings.embedding_dim}. Restore the setting "
            "or start from a new database file."
        )


def init_db(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes, then verify the embedding dimension.

    Args:
        conn: An open, configured SQLite connection (sqlite-vec already loaded).

    Raises:
        EmbeddingDimensionMismatch: If the stored dimension differs from
            ``settings.embedding_dim``.
    """
    # executescript() issues an implicit COMMIT first; fine for DDL.
    conn.executescript(_read_schema())
    _check_embedding_dim(conn)
