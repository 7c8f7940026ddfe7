"""Read-only endpoints over mirrored documents.

Routes
------
GET /documents/{document_id}/content?format=markdown|plain|html|json
GET /stats
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Literal

from fastapi import APIRouter, HTTPException, Request, Response

router = APIRouter()

_MEDIA_TYPES = {
    "markdown": "text/markdown",
    "plain": "text/plain",
    "html": "text/html",
    "json": "application/json",
}


@router.get("/documents/{document_id}/content")
async def document_content(
    request: Request,
    document_id: str,
    format: Literal["markdown", "plain", "html", "json"] = "markdown",
) -> Response:
    """Render a stored document.  *document_id* may be remote or internal."""
    orchestrator = request.app.state.service.orchestrator
    try:
        body = await orchestrator.content_in_format(document_id, format)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(content=body, media_type=_MEDIA_TYPES[format])


@router.get("/stats")
async def stats(request: Request) -> dict[str, Any]:
    orchestrator = request.app.state.service.orchestrator
    return asdict(await orchestrator.stats())
