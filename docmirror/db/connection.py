"""SQLite connections for the document mirror.

A file database is shared by the API server, the CLI and long-running
migrations, so it runs in WAL mode with a busy timeout.  ``":memory:"``
gives a private throwaway database for tests and dry runs.

Usage::

    from docmirror.db.connection import connection

    with connection() as conn:          # settings.db_path, closed on exit
        init_db(conn)

    conn = get_connection(":memory:")   # caller owns and closes it
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

import sqlite_vec

from docmirror.config import settings

MEMORY = ":memory:"

# Seconds a writer waits on a lock held by another process (CLI vs. server).
BUSY_TIMEOUT = 30.0

DbPath = Union[Path, str]


def get_connection(db_path: Optional[DbPath] = None) -> sqlite3.Connection:
    """Open a SQLite connection configured for the document store.

    The ``sqlite-vec`` extension is loaded for ``vec_distance_cosine`` and
    foreign keys are enforced so deleting a document cascades to its nodes
    and embeddings.

    Args:
        db_path: A file path or ``":memory:"``.  Defaults to
            ``settings.db_path``; parent directories are created.

    Returns:
        A connection with ``row_factory`` set to :class:`sqlite3.Row`.
    """
    path = db_path or settings.db_path
    in_memory = str(path) == MEMORY
    if not in_memory:
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    # The API opens the store in its lifespan and serves requests from
    # another thread, hence check_same_thread=False.
    conn = sqlite3.connect(str(path), timeout=BUSY_TIMEOUT, check_same_thread=False)
    conn.row_factory = sqlite3.Row

    conn.enable_load_extension(True)
    sqlite_vec.load(conn)
    conn.enable_load_extension(False)

    conn.execute("PRAGMA foreign_keys = ON")
    if not in_memory:
        conn.execute("PRAGMA journal_mode = WAL")
    return conn


@contextmanager
def connection(db_path: Optional[DbPath] = None) -> Iterator[sqlite3.Connection]:
    """Yield a configured connection and close it on exit.

    ``with sqlite3.connect(...)`` only scopes a transaction; this closes.
    """
    conn = get_connection(db_path)
    try:
        yield conn
    finally:
        conn.close()
