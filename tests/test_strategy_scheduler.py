"""Tests for batch strategy selection and the adaptive batch scheduler."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from docmirror.config import settings
from docmirror.migration.errors import FailureCategory
from docmirror.migration.models import MigrationResult, RiskLevel
from docmirror.migration.orchestrator import MigrationOrchestrator
from docmirror.migration.scheduler import AdaptiveBatchScheduler
from docmirror.migration.strategy import (
    fixed_batches,
    full_parallel,
    safe_batches,
    select_strategy,
)
from docmirror.rag.pipeline import EmbeddingPipeline
from helpers import FakeNotionClient, document, fake_embed_batch, sample_client


@pytest.fixture(autouse=True)
def _no_pauses(monkeypatch):
    monkeypatch.setattr(settings, "pause_short", 0.0)
    monkeypatch.setattr(settings, "pause_medium", 0.0)
    monkeypatch.setattr(settings, "pause_long", 0.0)


class _StubOrchestrator:
    """Records start/end events; ids listed in *failing* / *raising* fail."""

    def __init__(self, failing=(), raising=(), yield_control=True):
        self.failing = set(failing)
        self.raising = set(raising)
        self.yield_control = yield_control
        self.events: list[tuple[str, str]] = []
        self.active = 0
        self.peak = 0
        self.store = None

    async def migrate_document(self, document_id, force=False):
        self.events.append(("start", document_id))
        self.active += 1
        self.peak = max(self.peak, self.active)
        if self.yield_control:
            await asyncio.sleep(0)
        self.active -= 1
        self.events.append(("end", document_id))

        if document_id in self.raising:
            raise RuntimeError(f"crash in {document_id}")
        if document_id in self.failing:
            return MigrationResult(
                success=False,
                errors=("429 Too Many Requests",),
                title=f"Title {document_id}",
                source_id=document_id,
            )
        return MigrationResult(
            success=True,
            document_id=f"internal-{document_id}",
            nodes_processed=2,
            chunks_embedded=1,
            title=f"Title {document_id}",
            source_id=document_id,
        )


def _ids(n):
    return [f"doc-{i:03d}" for i in range(n)]


# ---------------------------------------------------------------------------
# Strategy selection
# ---------------------------------------------------------------------------

class TestSelectStrategy:
    @pytest.mark.parametrize(
        "n, name, size, risk",
        [
            (1, "full-parallel", 1, RiskLevel.LOW),
            (5, "full-parallel", 5, RiskLevel.LOW),
            (10, "full-parallel", 10, RiskLevel.LOW),
            (11, "large-batches", 15, RiskLevel.MEDIUM),
            (25, "large-batches", 15, RiskLevel.MEDIUM),
            (30, "large-batches", 15, RiskLevel.MEDIUM),
            (31, "medium-batches", 10, RiskLevel.MEDIUM),
            (60, "medium-batches", 10, RiskLevel.MEDIUM),
            (100, "medium-batches", 10, RiskLevel.MEDIUM),
            (101, "safe-batches", 5, RiskLevel.HIGH),
            (150, "safe-batches", 5, RiskLevel.HIGH),
        ],
    )
    def test_boundaries(self, n, name, size, risk):
        strategy = select_strategy(n)
        assert (strategy.name, strategy.batch_size, strategy.risk_level) == (name, size, risk)

    def test_zero_documents(self):
        assert select_strategy(0).batch_size == 1

    def test_custom_table(self):
        table = [(2, full_parallel), (float("inf"), safe_batches)]
        assert select_strategy(2, table).name == "full-parallel"
        assert select_strategy(3, table).name == "safe-batches"

    def test_pauses_read_from_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "pause_long", 0.3)
        assert select_strategy(500).pause_seconds == 0.3
        assert full_parallel(4).pause_seconds == 0.0

    def test_fixed_batches(self):
        strategy = fixed_batches(7)
        assert strategy.name == "fixed-batches"
        assert strategy.batch_size == 7
        with pytest.raises(ValueError):
            fixed_batches(0)


# ---------------------------------------------------------------------------
# migrate_all
# ---------------------------------------------------------------------------

class TestMigrateAll:
    @pytest.mark.parametrize("n, batch_size", [(5, 5), (25, 15), (60, 10), (150, 5)])
    async def test_batches_are_barriers(self, n, batch_size):
        stub = _StubOrchestrator()
        summary = await AdaptiveBatchScheduler(stub).migrate_all(_ids(n))

        assert summary.total == n
        assert summary.successful == n
        assert stub.peak == min(n, batch_size)

        # Every document of batch k ends before any document of batch k+1 starts.
        ids = _ids(n)
        batches = [ids[i : i + batch_size] for i in range(0, n, batch_size)]
        position = {event: i for i, event in enumerate(stub.events)}
        for current, following in zip(batches, batches[1:]):
            last_end = max(position[("end", d)] for d in current)
            first_start = min(position[("start", d)] for d in following)
            assert last_end < first_start

    async def test_results_keep_input_order(self):
        summary = await AdaptiveBatchScheduler(_StubOrchestrator()).migrate_all(_ids(12))
        assert [r.source_id for r in summary.per_document_results] == _ids(12)

    async def test_failures_do_not_stop_the_run(self):
        ids = _ids(25)
        stub = _StubOrchestrator(failing={ids[3]}, raising={ids[20]})
        summary = await AdaptiveBatchScheduler(stub).migrate_all(ids)

        assert summary.total == 25
        assert summary.successful == 23
        assert summary.failed == 2
        assert summary.successful + summary.failed == summary.total
        assert summary.total_nodes == 46
        assert summary.total_chunks == 23

        by_id = {f.document_id: f for f in summary.failures}
        assert by_id[ids[3]].category == FailureCategory.RATE_LIMITED
        assert by_id[ids[20]].message == f"crash in {ids[20]}"
        assert by_id[ids[20]].category == FailureCategory.OTHER
        assert summary.failure_buckets == {
            FailureCategory.RATE_LIMITED: 1,
            FailureCategory.OTHER: 1,
        }

    async def test_batch_size_override(self):
        stub = _StubOrchestrator()
        summary = await AdaptiveBatchScheduler(stub).migrate_all(_ids(7), batch_size=3)
        assert summary.strategy.name == "fixed-batches"
        assert stub.peak == 3

    async def test_strategy_fn_override(self):
        summary = await AdaptiveBatchScheduler(_StubOrchestrator()).migrate_all(
            _ids(4), strategy_fn=safe_batches
        )
        assert summary.strategy.name == "safe-batches"

    async def test_pause_only_between_batches(self, monkeypatch):
        monkeypatch.setattr(settings, "pause_long", 0.3)
        stub = _StubOrchestrator(yield_control=False)
        with patch("docmirror.migration.scheduler.asyncio.sleep", new=AsyncMock()) as sleep:
            await AdaptiveBatchScheduler(stub).migrate_all(_ids(12), strategy_fn=safe_batches)

        # 12 documents in batches of 5 -> 3 batches -> 2 pauses.
        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.3)

    async def test_empty_input(self):
        lines: list[str] = []
        summary = await AdaptiveBatchScheduler(_StubOrchestrator()).migrate_all(
            [], on_progress=lines.append
        )
        assert summary.total == 0
        assert lines == ["No documents to migrate"]

    async def test_progress_lines(self):
        ids = _ids(3)
        lines: list[str] = []
        stub = _StubOrchestrator(failing={ids[1]})
        titles = {ids[1]: "A very long document title that will not fit in the line"}

        await AdaptiveBatchScheduler(stub).migrate_all(ids, on_progress=lines.append, titles=titles)

        assert lines[0] == "Strategy: full-parallel (All documents at once)"
        assert lines[1] == "Risk level: low"
        assert lines[2] == "Batch 1/1: 3 document(s) in parallel"
        assert lines[3] == f'[1/3] OK "Title {ids[0]}": 2 nodes, 1 chunks'
        assert lines[4] == f'[2/3] FAILED "Title {ids[1]}": 429 Too Many Requests'
        assert "Batch 1/1: 2 succeeded, 1 failed" in lines
        assert any(line.startswith("Done: 2/3 succeeded, 1 failed") for line in lines)
        assert any(line.startswith("rate_limited: 1 failure(s).") for line in lines)

    async def test_long_titles_are_shortened(self):
        ids = _ids(1)
        lines: list[str] = []
        stub = _StubOrchestrator(raising={ids[0]})
        title = "A very long document title that will not fit in the line"

        await AdaptiveBatchScheduler(stub).migrate_all(
            ids, on_progress=lines.append, titles={ids[0]: title}
        )

        failed = next(line for line in lines if "FAILED" in line)
        assert f'"{title[:39]}…"' in failed

    async def test_end_to_end_with_orchestrator(self, store):
        notion = sample_client()
        orchestrator = MigrationOrchestrator(
            notion, store, pipeline=EmbeddingPipeline(store, embed_fn=fake_embed_batch)
        )
        summary = await AdaptiveBatchScheduler(orchestrator, notion).migrate_all(
            ["page-apollo", "page-gemini", "page-empty", "missing"]
        )

        assert summary.successful == 3
        assert summary.failed == 1
        assert summary.failures[0].category == FailureCategory.NOT_FOUND
        assert (await store.storage_stats()).total_documents == 3


# ---------------------------------------------------------------------------
# sync_databases
# ---------------------------------------------------------------------------

class TestSyncDatabases:
    def _scheduler(self, notion, store):
        orchestrator = MigrationOrchestrator(
            notion, store, pipeline=EmbeddingPipeline(store, embed_fn=fake_embed_batch)
        )
        return AdaptiveBatchScheduler(orchestrator, notion)

    async def test_sync_migrates_every_listed_document(self, store):
        notion = sample_client()
        lines: list[str] = []
        report = await self._scheduler(notion, store).sync_databases(
            ["db-missions"], on_progress=lines.append
        )

        assert report.total_processed == 2
        assert report.total_errors == 0
        assert report.groups[0].ok
        assert any(line.startswith("[DB 1/1] Strategy: full-parallel") for line in lines)
        assert lines[-1].startswith("DB 1 (db-missi): full-parallel, 2 document(s)")

    async def test_listing_failure_is_isolated(self, store):
        notion = sample_client()
        notion.databases["db-broken"] = []
        notion.failing_databases["db-broken"] = RuntimeError("403 Forbidden")

        report = await self._scheduler(notion, store).sync_databases(["db-broken", "db-missions"])

        broken, missions = report.groups
        assert broken.ok is False
        assert broken.error == "403 Forbidden"
        assert broken.processed == 0
        assert broken.summary.total == 0
        assert missions.processed == 2
        assert report.total_errors == 1

    async def test_archived_documents_are_archived_locally(self, store):
        notion = sample_client()
        scheduler = self._scheduler(notion, store)
        await scheduler.sync_databases(["db-missions"])

        notion.documents["page-gemini"] = document("page-gemini", "Gemini notes", archived=True)
        report = await scheduler.sync_databases(["db-missions"])

        assert report.total_processed == 1
        row = await store.get_document_by_external_id("page-gemini")
        assert row.archived is True

    async def test_without_client_reports_failed_groups(self):
        scheduler = AdaptiveBatchScheduler(_StubOrchestrator())
        report = await scheduler.sync_databases(["db-a", "db-b"])

        assert [g.database_id for g in report.groups] == ["db-a", "db-b"]
        assert all(g.error == "No remote client configured" for g in report.groups)
        assert report.total_processed == 0
        assert report.total_errors == 2

    async def test_empty_database(self, store):
        notion = FakeNotionClient(databases={"db-empty": []})
        report = await self._scheduler(notion, store).sync_databases(["db-empty"])
        assert report.total_processed == 0
        assert report.total_errors == 0
