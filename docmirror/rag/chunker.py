"""Text chunker for the RAG ingestion pipeline.

Strategy: a fixed sliding window of *chunk_size* characters advanced by
``chunk_size - overlap`` characters, so adjacent chunks share exactly
*overlap* characters.  The final chunk may be shorter than *chunk_size*; it
is never padded.  Each chunk is tagged with the ids of the nodes whose text
falls inside its ``[start, end)`` range, using the spans recorded by
:func:`docmirror.rag.extractor.extract`.
"""

from __future__ import annotations

from dataclasses import dataclass

from docmirror.rag.extractor import DocumentContent, NodeSpan


@dataclass(frozen=True)
class Chunk:
    text: str
    index: int
    source_node_ids: tuple[str, ...]
    start_offset: int
    end_offset: int
    section: str = ""


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _intersecting(spans: tuple[NodeSpan, ...], start: int, end: int) -> list[NodeSpan]:
    return [s for s in spans if s.start < end and s.end > start]


def _validate(chunk_size: int, overlap: int) -> None:
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if not 0 < overlap < chunk_size:
        raise ValueError(
            f"overlap must satisfy 0 < overlap < chunk_size, got "
            f"overlap={overlap}, chunk_size={chunk_size}"
        )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def chunk(
    content: DocumentContent,
    chunk_size: int = 1000,
    overlap: int = 100,
) -> list[Chunk]:
    """Split ``content.full_text`` into overlapping fixed-size chunks.

    Args:
        content: Output of :func:`~docmirror.rag.extractor.extract`.
        chunk_size: Window width in **characters**.
        overlap: Characters shared by two adjacent chunks.

    Returns:
        Chunks with monotonically increasing ``index`` starting at 0.
        ``[]`` when the document has no text.

    Raises:
        ValueError: Unless ``0 < overlap < chunk_size``.
    """
    _validate(chunk_size, overlap)

    text = content.full_text
    if not text:
        return []

    step = chunk_size - overlap
    chunks: list[Chunk] = []
    start = 0
    while True:
        end = min(start + chunk_size, len(text))
        spans = _intersecting(content.spans, start, end)
        chunks.append(
            Chunk(
                text=text[start:end],
                index=len(chunks),
                source_node_ids=tuple(s.node_id for s in spans),
                start_offset=start,
                end_offset=end,
                section=spans[0].section if spans else "",
            )
        )
        if end == len(text):
            break
        start += step

    return chunks

