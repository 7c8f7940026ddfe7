"""Async HTTP client for the Notion-style content API.

Only the three read calls the migration needs are implemented:

``get_document``    GET  /pages/{id}
``get_children``    GET  /blocks/{id}/children   (cursor-paginated)
``query_database``  POST /databases/{id}/query   (cursor-paginated)

Non-2xx responses raise :class:`httpx.HTTPStatusError`; timeouts raise
:class:`httpx.TimeoutException`.  Callers decide whether those are fatal.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from docmirror.config import settings
from docmirror.remote.models import Node, RemoteDocument, rich_text_to_str

logger = logging.getLogger(__name__)

_PAGE_SIZE = 100


# ---------------------------------------------------------------------------
# Payload parsing
# ---------------------------------------------------------------------------

def _extract_title(properties: dict[str, Any]) -> str:
    """Return the text of the ``title``-typed property, or ``"Untitled"``."""
    for prop in properties.values():
        if isinstance(prop, dict) and prop.get("type") == "title":
            title = rich_text_to_str(prop.get("title"))
            if title:
                return title
    return "Untitled"


def _parent_ref(parent: dict[str, Any] | None) -> str | None:
    if not parent:
        return None
    parent_type = parent.get("type")
    return parent.get(parent_type) if parent_type else None


def parse_document(payload: dict[str, Any]) -> RemoteDocument:
    """Convert a raw page object into a :class:`RemoteDocument`."""
    properties = payload.get("properties") or {}
    return RemoteDocument(
        id=payload["id"],
        title=_extract_title(properties),
        parent_ref=_parent_ref(payload.get("parent")),
        url=payload.get("url"),
        created_at=payload.get("created_time"),
        last_edited_at=payload.get("last_edited_time"),
        properties=properties,
        archived=bool(payload.get("archived", False)),
    )


def parse_node(payload: dict[str, Any]) -> Node:
    """Convert a raw block object into a childless :class:`Node`."""
    block_type = payload.get("type", "unsupported")
    return Node(
        id=payload["id"],
        type=block_type,
        raw_content=payload.get(block_type) or {},
        created_at=payload.get("created_time"),
        last_edited_at=payload.get("last_edited_time"),
        has_children=bool(payload.get("has_children", False)),
    )


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class NotionClient:
    """Thin async wrapper over :class:`httpx.AsyncClient`.

    Usage::

        async with NotionClient() as client:
            doc = await client.get_document(page_id)
            nodes = await client.get_children(page_id)
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        notion_version: str | None = None,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._http = http_client or httpx.AsyncClient(
            base_url=base_url or settings.notion_base_url,
            headers={
                "Authorization": f"Bearer {api_key or settings.notion_api_key}",
                "Notion-Version": notion_version or settings.notion_version,
                "Content-Type": "application/json",
            },
            timeout=timeout or settings.request_timeout,
        )

    async def __aenter__(self) -> NotionClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_document(self, document_id: str) -> RemoteDocument:
        """Fetch one page's metadata."""
        if not document_id:
            raise ValueError("document_id is required")
        response = await self._http.get(f"/pages/{document_id}")
        response.raise_for_status()
        return parse_document(response.json())

    async def get_children(self, node_id: str) -> list[Node]:
        """Return the immediate children of *node_id*, all pages merged."""
        if not node_id:
            raise ValueError("node_id is required")

        nodes: list[Node] = []
        cursor: str | None = None
        while True:
            params: dict[str, Any] = {"page_size": _PAGE_SIZE}
            if cursor:
                params["start_cursor"] = cursor
            response = await self._http.get(f"/blocks/{node_id}/children", params=params)
            response.raise_for_status()
            body = response.json()
            nodes.extend(parse_node(item) for item in body.get("results", []))
            cursor = body.get("next_cursor")
            if not body.get("has_more") or not cursor:
                break
        return nodes

    async def query_database(self, database_id: str) -> list[RemoteDocument]:
        """List every page of a database."""
        if not database_id:
            raise ValueError("database_id is required")

        documents: list[RemoteDocument] = []
        cursor: str | None = None
        while True:
            payload: dict[str, Any] = {"page_size": _PAGE_SIZE}
            if cursor:
                payload["start_cursor"] = cursor
            response = await self._http.post(f"/databases/{database_id}/query", json=payload)
            response.raise_for_status()
            body = response.json()
            documents.extend(parse_document(item) for item in body.get("results", []))
            cursor = body.get("next_cursor")
            if not body.get("has_more") or not cursor:
                break

        logger.info("Database %s lists %d document(s)", database_id, len(documents))
        return documents
