"""Text embedder for the RAG ingestion pipeline.

Embedding providers
-------------------
``ollama`` (default)
    Calls the local Ollama REST API at ``/api/embed`` with the whole batch as
    ``input``.  Configure via ``OLLAMA_BASE_URL`` and ``OLLAMA_EMBED_MODEL``.

``openai``
    Calls the OpenAI embeddings API.
    Requires ``OPENAI_API_KEY`` to be set.
    Configure via ``OPENAI_EMBED_MODEL``.

Set ``EMBEDDING_PROVIDER=openai`` in your ``.env`` to switch providers.

Both providers take a list of texts and return vectors in input order, one
HTTP request per :func:`embed_batch` call.
"""

from __future__ import annotations

import logging
import os

import httpx

from docmirror.config import settings

logger = logging.getLogger(__name__)

_OPENAI_EMBED_URL = "https://api.openai.com/v1/embeddings"
_TIMEOUT = 60.0


# ---------------------------------------------------------------------------
# Provider implementations
# ---------------------------------------------------------------------------

async def _embed_ollama(texts: list[str]) -> list[list[float]]:
    """Call Ollama ``/api/embed`` and return one vector per input."""
    async with httpx.AsyncClient(timeout=_TIMEOUT) as client:
        response = await client.post(
            f"{settings.ollama_base_url}/api/embed",
            json={"model": settings.ollama_embed_model, "input": texts},
        )
        response.raise_for_status()
        return response.json()["embeddings"]


async def _embed_openai(texts: list[str]) -> list[list[float]]:
    """Call the OpenAI embeddings API and return one vector per input."""
    api_key = os.environ.get("OPENAI_API_KEY", "")
    if not api_key:
        raise EnvironmentError(
            "OPENAI_API_KEY environment variable is not set. "
            "Set it or switch to EMBEDDING_PROVIDER=ollama."
        )

    async with httpx.AsyncClient(timeout=_TIMEOUT) as client:
        response = await client.post(
            _OPENAI_EMBED_URL,
            headers={"Authorization": f"Bearer {api_key}"},
            json={"model": settings.openai_embed_model, "input": texts},
        )
        response.raise_for_status()
        data = sorted(response.json()["data"], key=lambda item: item["index"])
        return [item["embedding"] for item in data]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

async def embed_batch(texts: list[str]) -> list[list[float]]:
    """Return one embedding vector per entry of *texts*, in order.

    The active provider is determined by ``settings.embedding_provider``
    (``"ollama"`` or ``"openai"``).  An empty list returns ``[]`` without
    touching the network.

    Raises:
        httpx.HTTPStatusError: If the embedding API returns a non-2xx status.
        EnvironmentError: If ``OPENAI_API_KEY`` is missing when using the
            OpenAI provider.
    """
    if not texts:
        return []
    logger.debug(
        "Embedding %d text(s) via %s", len(texts), settings.embedding_provider
    )
    if settings.embedding_provider == "openai":
        return await _embed_openai(texts)
    return await _embed_ollama(texts)


async def embed_text(text: str) -> list[float]:
    """Return an embedding vector for a single *text* (e.g. a search query)."""
    vectors = await embed_batch([text])
    return vectors[0]
