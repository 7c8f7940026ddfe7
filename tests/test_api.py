"""Integration tests for the FastAPI app.

The app's ``service`` is pre-populated with an in-memory store, the fake
remote client and fake embeddings, so the lifespan never builds a real one.
"""

from __future__ import annotations

import json
import sqlite3

import httpx
import pytest
from fastapi.testclient import TestClient

from docmirror.api.app import create_app
from docmirror.config import settings


@pytest.fixture()
def client(service):
    app = create_app()
    app.state.service = service
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c


def _summary_event(body: str) -> dict:
    lines = body.splitlines()
    index = lines.index("event: summary")
    return json.loads(lines[index + 1].removeprefix("data: "))


# ---------------------------------------------------------------------------
# /migrate
# ---------------------------------------------------------------------------

class TestMigrateEndpoints:
    def test_migrate_one(self, client):
        resp = client.post("/migrate/page-apollo")
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["nodes_processed"] == 6
        assert data["title"] == "Project Apollo"

    def test_migrate_one_failure_is_200(self, client):
        resp = client.post("/migrate/ghost")
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is False
        assert "404" in data["errors"][0]

    def test_migrate_all_streams_progress(self, client):
        resp = client.post(
            "/migrate", json={"document_ids": ["page-apollo", "page-gemini", "ghost"]}
        )
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")

        body = resp.text
        assert "data: Strategy: full-parallel (All documents at once)" in body
        assert "data: Batch 1/1: 3 document(s) in parallel" in body

        summary = _summary_event(body)
        assert summary["strategy"] == "full-parallel"
        assert summary["total"] == 3
        assert summary["successful"] == 2
        assert summary["failed"] == 1
        assert summary["failure_buckets"] == {"not_found": 1}
        assert summary["failures"][0]["category"] == "not_found"

    def test_migrate_all_batch_size(self, client, monkeypatch):
        monkeypatch.setattr(settings, "pause_medium", 0.0)
        resp = client.post(
            "/migrate", json={"document_ids": ["page-apollo", "page-gemini"], "batch_size": 1}
        )
        summary = _summary_event(resp.text)
        assert summary["strategy"] == "fixed-batches"
        assert "data: Batch 2/2: 1 document(s) in parallel" in resp.text

    @pytest.mark.parametrize(
        "payload",
        [{"document_ids": []}, {"document_ids": ["a"], "batch_size": 0}, {}],
    )
    def test_migrate_all_validation(self, client, payload):
        assert client.post("/migrate", json=payload).status_code == 422

    def test_sync(self, client):
        resp = client.post("/migrate/sync", json={"database_ids": ["db-missions"]})
        assert resp.status_code == 200
        assert "data: [DB 1/1] Found 2 document(s)" in resp.text
        report = _summary_event(resp.text)
        assert report["total_processed"] == 2
        assert report["total_errors"] == 0
        assert report["groups"][0]["database_id"] == "db-missions"

    def test_sync_uses_configured_databases(self, client, monkeypatch):
        monkeypatch.setattr(settings, "notion_database_ids", ["db-missions"])
        resp = client.post("/migrate/sync")
        assert _summary_event(resp.text)["total_processed"] == 2

    def test_sync_without_ids(self, client, monkeypatch):
        monkeypatch.setattr(settings, "notion_database_ids", [])
        assert client.post("/migrate/sync").status_code == 422


# ---------------------------------------------------------------------------
# /search
# ---------------------------------------------------------------------------

class TestSearchEndpoints:
    def test_search(self, client):
        client.post("/migrate/page-apollo")
        client.post("/migrate/page-gemini")

        resp = client.get(
            "/search", params={"q": "lunar landing", "embeddings": "false", "prompt": "true"}
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["query"] == "lunar landing"
        assert [r["title"] for r in data["results"]] == ["Project Apollo"]
        assert "USER QUESTION: lunar landing" in data["system_prompt"]

    def test_search_no_results(self, client):
        resp = client.get("/search", params={"q": "zeppelin", "embeddings": "false"})
        assert resp.json()["results"] == []
        assert "system_prompt" not in resp.json()

    def test_empty_query_rejected(self, client):
        assert client.get("/search", params={"q": "  "}).status_code == 422
        assert client.get("/search").status_code == 422

    def test_embedding_failure_is_503(self, client, service, monkeypatch):
        async def offline(text):
            raise ConnectionError("ollama down")

        monkeypatch.setattr(service.ranker, "_embed_fn", offline)
        resp = client.get("/search", params={"q": "apollo", "keywords": "false"})
        assert resp.status_code == 503
        assert "ollama down" in resp.json()["detail"]

    def test_embedding_http_error_is_503(self, client, service, monkeypatch):
        async def refused(text):
            raise httpx.ConnectError("connection refused")

        monkeypatch.setattr(service.ranker, "_embed_fn", refused)
        resp = client.get("/search", params={"q": "apollo"})
        assert resp.status_code == 503

    def test_store_error_is_not_reported_as_embedding_outage(self, client, service, monkeypatch):
        async def broken(*args, **kwargs):
            raise sqlite3.OperationalError("no such table: embeddings")

        monkeypatch.setattr(service.store, "vector_search", broken)
        with pytest.raises(sqlite3.OperationalError):
            client.get("/search", params={"q": "apollo"})

    def test_search_nodes(self, client):
        client.post("/migrate/page-apollo")
        resp = client.get("/search/nodes", params={"q": "saturn"})
        assert resp.status_code == 200
        assert [n["external_id"] for n in resp.json()] == ["a-li"]


# ---------------------------------------------------------------------------
# /documents, /stats
# ---------------------------------------------------------------------------

class TestDocumentEndpoints:
    def test_content_formats(self, client):
        client.post("/migrate/page-gemini")

        md = client.get("/documents/page-gemini/content")
        assert md.status_code == 200
        assert md.headers["content-type"].startswith("text/markdown")
        assert md.text.startswith("# Gemini notes")

        html = client.get("/documents/page-gemini/content", params={"format": "html"})
        assert html.headers["content-type"].startswith("text/html")
        assert "<h1>Gemini notes</h1>" in html.text

        data = client.get("/documents/page-gemini/content", params={"format": "json"}).json()
        assert data["document"]["external_id"] == "page-gemini"

    def test_content_unknown_format(self, client):
        resp = client.get("/documents/page-gemini/content", params={"format": "pdf"})
        assert resp.status_code == 422

    def test_content_missing_document(self, client):
        assert client.get("/documents/ghost/content").status_code == 404

    def test_stats(self, client):
        client.post("/migrate/page-apollo")
        data = client.get("/stats").json()
        assert data["total_documents"] == 1
        assert data["total_nodes"] == 6
        assert data["total_embeddings"] == 1
        assert ["paragraph", 3] in data["top_node_types"]
