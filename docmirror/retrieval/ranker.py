"""Hybrid retrieval: keyword and vector hits merged per source document.

Search modes
------------
Vector path
    The query is embedded and the nearest chunks with cosine similarity
    ``>= threshold`` are fetched, at most ``limit`` of them.  When this path
    is on it alone decides which documents are returned and in what order;
    a document's ``max_score`` is its best similarity.

Keyword path
    Every extracted keyword is matched as a case-insensitive substring
    against document titles/properties and stored chunk text.  A hit scores
    the fraction of the query's keywords its text contains.  Alongside the
    vector path, keyword hits only add supporting context to documents that
    already have a vector hit.  With embeddings off they rank on their own.

A document's context is every primary hit scoring at least
``threshold * 0.8``, best first, or the single best primary hit when none
clears that relaxed cutoff.  Supporting keyword hits follow.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Iterable

from docmirror.db.store import DocumentStore
from docmirror.rag.embedder import embed_text
from docmirror.retrieval.keywords import extract_keywords, keyword_score
from docmirror.retrieval.models import RankedDocument, RetrievalHit, SearchOptions

logger = logging.getLogger(__name__)

# Secondary cutoff for supporting chunks, relative to the threshold.
RELAXED_FACTOR = 0.8


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def _primary(hits: list[RetrievalHit]) -> list[RetrievalHit]:
    """Hits that rank a document: its vector hits, or all hits if it has none."""
    return [h for h in hits if h.source == "vector"] or hits


def rank_score(hits: list[RetrievalHit]) -> float:
    """Best similarity among *hits*; best keyword score for keyword-only groups."""
    return max(h.score for h in _primary(hits))


def group_hits(
    hits: Iterable[RetrievalHit], threshold: float
) -> list[tuple[str, list[RetrievalHit]]]:
    """Group *hits* by document, best document first.

    Vector hits below *threshold* are discarded.  When *hits* contain any
    vector hit, only documents with a vector hit at or above *threshold* are
    kept and their keyword hits ride along as support.  Documents are
    ordered by :func:`rank_score`, ties keeping first-appearance order.
    """
    hits = list(hits)
    vector_search = any(h.source == "vector" for h in hits)
    anchored = {
        h.document_id for h in hits if h.source == "vector" and h.score >= threshold
    }

    groups: dict[str, list[RetrievalHit]] = {}
    for hit in hits:
        if hit.source == "vector" and hit.score < threshold:
            continue
        if vector_search and hit.document_id not in anchored:
            continue
        groups.setdefault(hit.document_id, []).append(hit)
    return sorted(groups.items(), key=lambda item: rank_score(item[1]), reverse=True)


def _format_hit(hit: RetrievalHit) -> str:
    if hit.section:
        return f"**{hit.section}**\n{hit.chunk_text}"
    return hit.chunk_text


def _best_first(hits: Iterable[RetrievalHit]) -> list[RetrievalHit]:
    return sorted(hits, key=lambda h: h.score, reverse=True)


def assemble_context(hits: list[RetrievalHit], threshold: float) -> str:
    """Merge one document's hits into a single context block."""
    if not hits:
        return ""
    primary = _primary(hits)
    cutoff = threshold * RELAXED_FACTOR
    selected = _best_first(h for h in primary if h.score >= cutoff)
    if not selected:
        return max(primary, key=lambda h: h.score).chunk_text
    selected += _best_first(h for h in hits if h not in primary)

    seen: set[str] = set()
    blocks: list[str] = []
    for hit in selected:
        if hit.chunk_text in seen:
            continue
        seen.add(hit.chunk_text)
        blocks.append(_format_hit(hit))
    return "\n\n".join(blocks)


# ---------------------------------------------------------------------------
# Ranker
# ---------------------------------------------------------------------------

class HybridRanker:
    """Rank stored documents for a query.

    Args:
        store: Store to search.
        embed_fn: Embeds the query.  Defaults to
            :func:`~docmirror.rag.embedder.embed_text`.
    """

    def __init__(
        self,
        store: DocumentStore,
        embed_fn: Callable[[str], Awaitable[list[float]]] | None = None,
    ) -> None:
        self._store = store
        self._embed_fn = embed_fn or embed_text

    async def search(
        self, query: str, options: SearchOptions | None = None
    ) -> list[RankedDocument]:
        options = options or SearchOptions()
        if not query.strip():
            return []

        hits: list[RetrievalHit] = []
        if options.use_embeddings:
            hits.extend(await self.vector_hits(query, options.limit, options.threshold))
        # With embeddings on, keyword hits can only support a vector match.
        if options.use_keywords and (hits or not options.use_embeddings):
            hits.extend(await self.keyword_hits(query, options.limit))

        ranked: list[RankedDocument] = []
        for document_id, doc_hits in group_hits(hits, options.threshold):
            row = await self._store.get_document(document_id)
            if row is None or row.archived:
                logger.debug("Dropping hits for missing/archived document %s", document_id)
                continue
            ranked.append(
                RankedDocument(
                    document_id=document_id,
                    title=row.title,
                    url=row.url,
                    max_score=rank_score(doc_hits),
                    merged_text=assemble_context(doc_hits, options.threshold),
                    hit_count=len(doc_hits),
                )
            )
            if len(ranked) >= options.limit:
                break

        logger.info("Search %r: %d hit(s), %d document(s)", query[:50], len(hits), len(ranked))
        return ranked

    async def keyword_hits(self, query: str, limit: int) -> list[RetrievalHit]:
        keywords = extract_keywords(query)
        if not keywords:
            return []

        hits: dict[tuple[str, str], RetrievalHit] = {}
        for keyword in keywords:
            for row in await self._store.keyword_search_documents(keyword, limit):
                key = (row.id, row.title)
                if key not in hits:
                    score = keyword_score(keywords, f"{row.title} {row.properties_json()}")
                    hits[key] = RetrievalHit(
                        document_id=row.id,
                        chunk_text=row.title,
                        score=score,
                        source="keyword",
                    )
            for chunk in await self._store.keyword_search_chunks(keyword, limit):
                key = (chunk.document_id, chunk.chunk_text)
                if key not in hits:
                    hits[key] = RetrievalHit(
                        document_id=chunk.document_id,
                        chunk_text=chunk.chunk_text,
                        score=keyword_score(keywords, chunk.chunk_text),
                        section=chunk.section,
                        source="keyword",
                    )
        return list(hits.values())

    async def vector_hits(
        self, query: str, limit: int, threshold: float
    ) -> list[RetrievalHit]:
        embedding = await self._embed_fn(query)
        chunks = await self._store.vector_search(embedding, limit, threshold)
        return [
            RetrievalHit(
                document_id=c.document_id,
                chunk_text=c.chunk_text,
                score=c.similarity,
                section=c.section,
            )
            for c in chunks
        ]
