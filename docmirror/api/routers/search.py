"""Search endpoints.

Routes
------
GET /search?q=<query>&limit=5&threshold=0.78&embeddings=true&keywords=true
GET /search/nodes?q=<text>&limit=20
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

import httpx
from fastapi import APIRouter, HTTPException, Request

from docmirror.config import settings
from docmirror.retrieval.models import SearchOptions
from docmirror.retrieval.prompt import build_system_prompt

router = APIRouter()


@router.get("")
async def search(
    request: Request,
    q: str,
    limit: int = settings.search_limit,
    threshold: float = settings.search_threshold,
    embeddings: bool = True,
    keywords: bool = True,
    prompt: bool = False,
) -> dict[str, Any]:
    """Hybrid search over the mirrored documents.

    Args:
        q: Search query string.
        limit: Maximum number of documents.
        threshold: Minimum cosine similarity for vector hits.
        embeddings: Use the vector path.
        keywords: Use the keyword path.
        prompt: Also return the system prompt built from the results.
    """
    if not q.strip():
        raise HTTPException(status_code=422, detail="Query must not be empty.")

    options = SearchOptions(
        use_embeddings=embeddings,
        use_keywords=keywords,
        limit=limit,
        threshold=threshold,
    )
    ranker = request.app.state.service.ranker
    # OSError covers EnvironmentError (missing API key) and refused connections.
    try:
        ranked = await ranker.search(q, options)
    except (httpx.HTTPError, OSError) as exc:
        raise HTTPException(
            status_code=503,
            detail=(
                f"Embedding service unavailable ({exc}). "
                "Use embeddings=false or ensure Ollama / OpenAI is reachable."
            ),
        ) from exc

    payload: dict[str, Any] = {"query": q, "results": [asdict(d) for d in ranked]}
    if prompt:
        payload["system_prompt"] = build_system_prompt(q, ranked)
    return payload


@router.get("/nodes")
async def search_nodes(request: Request, q: str, limit: int = 20) -> list[dict[str, Any]]:
    """Plain substring search over stored node text."""
    store = request.app.state.service.store
    nodes = await store.keyword_search_nodes(q, limit)
    return [asdict(n) for n in nodes]
