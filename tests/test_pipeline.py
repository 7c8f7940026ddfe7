"""Tests for docmirror.rag.pipeline and docmirror.rag.embedder."""

from __future__ import annotations

import httpx
import pytest
import respx

from docmirror.config import settings
from docmirror.rag import embedder
from docmirror.rag.chunker import chunk
from docmirror.rag.extractor import extract
from docmirror.rag.pipeline import EmbeddingError, EmbeddingPipeline
from helpers import block, document, fake_embed_batch


def _chunks(n_nodes: int = 6):
    nodes = [block(f"n{i}", "paragraph", f"paragraph {i} " + "z" * 80) for i in range(n_nodes)]
    content = extract(nodes)
    return content, chunk(content, chunk_size=200, overlap=20)


class _RecordingStore:
    def __init__(self):
        self.calls = []

    async def replace_embeddings(self, document_id, records):
        self.calls.append((document_id, list(records)))
        return len(records)


# ---------------------------------------------------------------------------
# EmbeddingPipeline
# ---------------------------------------------------------------------------

class TestEmbeddingPipeline:
    async def test_records_follow_chunk_order(self):
        content, chunks = _chunks()
        store = _RecordingStore()
        pipeline = EmbeddingPipeline(store, embed_fn=fake_embed_batch)

        written = await pipeline.embed_and_store("doc-1", chunks, content.content_hash)

        assert written == len(chunks)
        document_id, records = store.calls[0]
        assert document_id == "doc-1"
        assert [r.chunk_index for r in records] == [c.index for c in chunks]
        assert all(r.content_hash == content.content_hash for r in records)
        assert records[0].node_id == chunks[0].source_node_ids[0]
        assert records[0].metadata["node_ids"] == list(chunks[0].source_node_ids)
        assert len(records[0].vector) == settings.embedding_dim

    async def test_single_batched_call(self):
        _, chunks = _chunks()
        seen = []

        async def embed(texts):
            seen.append(texts)
            return await fake_embed_batch(texts)

        await EmbeddingPipeline(_RecordingStore(), embed_fn=embed).embed("d", chunks, "h")
        assert len(seen) == 1
        assert seen[0] == [c.text for c in chunks]

    async def test_count_mismatch_raises_and_writes_nothing(self):
        _, chunks = _chunks()
        store = _RecordingStore()

        async def short(texts):
            return (await fake_embed_batch(texts))[:-1]

        with pytest.raises(EmbeddingError, match="count mismatch"):
            await EmbeddingPipeline(store, embed_fn=short).embed_and_store("d", chunks, "h")
        assert store.calls == []

    async def test_dimension_mismatch_raises(self):
        _, chunks = _chunks()

        async def tiny(texts):
            return [[0.1, 0.2] for _ in texts]

        with pytest.raises(EmbeddingError, match="dimension"):
            await EmbeddingPipeline(_RecordingStore(), embed_fn=tiny).embed("d", chunks, "h")

    async def test_zero_chunks_clears_without_embedding(self):
        store = _RecordingStore()

        async def never(texts):
            raise AssertionError("embedding function must not be called")

        written = await EmbeddingPipeline(store, embed_fn=never).embed_and_store("d", [], "h")
        assert written == 0
        assert store.calls == [("d", [])]

    async def test_failed_embed_keeps_stored_records(self, store):
        row = await store.upsert_document(document("p1", "Doc"))
        content, chunks = _chunks()
        await EmbeddingPipeline(store, embed_fn=fake_embed_batch).embed_and_store(
            row.id, chunks, content.content_hash
        )
        before = await store.count_embeddings(row.id)

        async def broken(texts):
            raise httpx.ConnectError("model offline")

        with pytest.raises(httpx.ConnectError):
            await EmbeddingPipeline(store, embed_fn=broken).embed_and_store(
                row.id, chunks, content.content_hash
            )
        assert await store.count_embeddings(row.id) == before > 0


# ---------------------------------------------------------------------------
# Embedding providers
# ---------------------------------------------------------------------------

class TestEmbedder:
    async def test_empty_batch_no_request(self):
        with respx.mock:
            assert await embedder.embed_batch([]) == []
            assert len(respx.calls) == 0

    async def test_ollama_batch(self, monkeypatch):
        monkeypatch.setattr(settings, "embedding_provider", "ollama")
        monkeypatch.setattr(settings, "ollama_base_url", "http://ollama.test")
        with respx.mock:
            route = respx.post("http://ollama.test/api/embed").mock(
                return_value=httpx.Response(200, json={"embeddings": [[1.0], [2.0]]})
            )
            vectors = await embedder.embed_batch(["a", "b"])

        assert vectors == [[1.0], [2.0]]
        assert route.call_count == 1
        assert b'"input"' in route.calls.last.request.content

    async def test_openai_sorted_by_index(self, monkeypatch):
        monkeypatch.setattr(settings, "embedding_provider", "openai")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        body = {
            "data": [
                {"index": 1, "embedding": [2.0]},
                {"index": 0, "embedding": [1.0]},
            ]
        }
        with respx.mock:
            respx.post("https://api.openai.com/v1/embeddings").mock(
                return_value=httpx.Response(200, json=body)
            )
            assert await embedder.embed_batch(["a", "b"]) == [[1.0], [2.0]]

    async def test_openai_requires_key(self, monkeypatch):
        monkeypatch.setattr(settings, "embedding_provider", "openai")
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(EnvironmentError):
            await embedder.embed_text("query")
