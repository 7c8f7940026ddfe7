"""Database layer package.

Public re-exports so callers can write::

    from docmirror.db import connection, init_db
    from docmirror.db import SqliteDocumentStore
"""

from docmirror.db.connection import connection, get_connection
from docmirror.db.migrations import EmbeddingDimensionMismatch, init_db
from docmirror.db.store import DocumentStore, SqliteDocumentStore

__all__ = [
    "connection",
    "get_connection",
    "init_db",
    "EmbeddingDimensionMismatch",
    "DocumentStore",
    "SqliteDocumentStore",
]
