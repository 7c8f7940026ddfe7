"""Operations for the ``nodes`` table.

A document's nodes are only ever written as a whole: :func:`replace_nodes`
deletes every stored node of the document and inserts the new tree in
depth-first pre-order, inside one transaction.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from typing import Iterator, Optional, Sequence

from docmirror.db.documents import like_pattern
from docmirror.db.models import NodeRow
from docmirror.rag.extractor import block_plain_text
from docmirror.remote.models import Node


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_node(row: sqlite3.Row) -> NodeRow:
    return NodeRow(
        id=row["id"],
        document_id=row["document_id"],
        external_id=row["external_id"],
        parent_node_id=row["parent_node_id"],
        type=row["type"],
        content=json.loads(row["content"] or "{}"),
        plain_text=row["plain_text"],
        position=row["position"],
        depth=row["depth"],
        has_children=bool(row["has_children"]),
        children_status=row["children_status"],
    )


def _walk(
    nodes: Sequence[Node], parent_id: Optional[str] = None, depth: int = 0
) -> Iterator[tuple[Node, Optional[str], int]]:
    """Yield ``(node, parent external id, depth)`` in pre-order."""
    for node in nodes:
        yield node, parent_id, depth
        yield from _walk(node.children, node.id, depth + 1)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def replace_nodes(
    conn: sqlite3.Connection,
    document_id: str,
    nodes: Sequence[Node],
) -> list[NodeRow]:
    """Replace every stored node of *document_id* with the tree *nodes*.

    ``parent_node_id`` holds the remote id of the parent node (``None`` for
    top-level nodes); ``position`` is the pre-order index.
    """
    rows = [
        (
            str(uuid.uuid4()),
            document_id,
            node.id,
            parent_id,
            node.type,
            json.dumps(node.raw_content),
            block_plain_text(node),
            position,
            depth,
            int(node.has_children),
            node.children_status.value,
            node.created_at,
            node.last_edited_at,
        )
        for position, (node, parent_id, depth) in enumerate(_walk(nodes))
    ]
    with conn:
        conn.execute("DELETE FROM nodes WHERE document_id = ?", (document_id,))
        conn.executemany(
            """
            INSERT INTO nodes (
                id, document_id, external_id, parent_node_id, type, content,
                plain_text, position, depth, has_children, children_status,
                remote_created, remote_edited
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            rows,
        )
    return list_nodes(conn, document_id)


def list_nodes(conn: sqlite3.Connection, document_id: str) -> list[NodeRow]:
    """Return the stored nodes of *document_id* in position order."""
    rows = conn.execute(
        "SELECT * FROM nodes WHERE document_id = ? ORDER BY position",
        (document_id,),
    ).fetchall()
    return [_row_to_node(r) for r in rows]


def keyword_search_nodes(
    conn: sqlite3.Connection, text: str, limit: int = 20
) -> list[NodeRow]:
    """Case-insensitive substring match on node plain text."""
    rows = conn.execute(
        """
        SELECT n.*
        FROM   nodes n
        JOIN   documents d ON d.id = n.document_id
        WHERE  d.archived = 0
          AND  lower(n.plain_text) LIKE ? ESCAPE '\\'
        ORDER  BY n.document_id, n.position
        LIMIT  ?
        """,
        (like_pattern(text), limit),
    ).fetchall()
    return [_row_to_node(r) for r in rows]
