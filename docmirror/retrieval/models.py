"""Data models for hybrid retrieval."""

from __future__ import annotations

from dataclasses import dataclass

from docmirror.config import settings


@dataclass(frozen=True)
class RetrievalHit:
    """One scored piece of text attributed to a document.

    ``source`` is ``"vector"`` for similarity hits and ``"keyword"`` for
    substring matches.  Only vector hits are subject to the threshold, and
    keyword scores are never compared against similarities.
    """

    document_id: str
    chunk_text: str
    score: float
    section: str = ""
    source: str = "vector"


@dataclass(frozen=True)
class RankedDocument:
    document_id: str
    title: str
    url: str | None
    max_score: float
    merged_text: str
    hit_count: int


@dataclass(frozen=True)
class SearchOptions:
    use_embeddings: bool = True
    use_keywords: bool = True
    limit: int = settings.search_limit
    threshold: float = settings.search_threshold
