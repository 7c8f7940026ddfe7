"""RAG ingestion pipeline package."""

from docmirror.rag.chunker import Chunk, chunk
from docmirror.rag.embedder import embed_batch, embed_text
from docmirror.rag.extractor import DocumentContent, extract
from docmirror.rag.pipeline import EmbeddingError, EmbeddingPipeline, EmbeddingRecord

__all__ = [
    "Chunk",
    "chunk",
    "embed_batch",
    "embed_text",
    "DocumentContent",
    "extract",
    "EmbeddingError",
    "EmbeddingPipeline",
    "EmbeddingRecord",
]
