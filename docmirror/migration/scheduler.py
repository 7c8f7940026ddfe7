"""Adaptive batch scheduling of many document migrations.

The scheduler picks a :class:`BatchStrategy` from the number of documents,
splits the ids into batches of ``strategy.batch_size`` and runs each batch
with ``asyncio.gather``.  A batch is a barrier: the next one only starts
after every document of the current one has settled, and the strategy's
pause is applied between batches.

Per-document failures, whether raised or returned as ``success=False``, are
recorded and never stop the run.  Progress is reported as human-readable
lines through an optional ``on_progress`` callback.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Iterable, Optional

from docmirror.migration.errors import classify_failure, remediation
from docmirror.migration.models import (
    BatchStrategy,
    BatchSummary,
    FailureDetail,
    GroupReport,
    MigrationResult,
    SyncReport,
)
from docmirror.migration.orchestrator import MigrationOrchestrator
from docmirror.migration.strategy import fixed_batches, select_strategy

logger = logging.getLogger(__name__)

ProgressFn = Callable[[str], None]

_TITLE_WIDTH = 40


def _noop(_line: str) -> None:
    pass


def _short_title(title: str) -> str:
    if len(title) <= _TITLE_WIDTH:
        return title
    return title[: _TITLE_WIDTH - 1] + "…"


def _settle(document_id: str, outcome: Any, title: Optional[str]) -> MigrationResult:
    """Turn a gathered outcome into a :class:`MigrationResult`."""
    if isinstance(outcome, MigrationResult):
        return outcome
    message = str(outcome) or type(outcome).__name__
    return MigrationResult(
        success=False,
        errors=(message,),
        title=title,
        source_id=document_id,
    )


class AdaptiveBatchScheduler:
    """Run :meth:`MigrationOrchestrator.migrate_document` over many ids.

    Args:
        orchestrator: Migrates a single document.
        client: Remote client exposing ``query_database``; only needed by
            :meth:`sync_databases`.
    """

    def __init__(self, orchestrator: MigrationOrchestrator, client: Any = None) -> None:
        self._orchestrator = orchestrator
        self._client = client

    # ------------------------------------------------------------------
    # migrate_all
    # ------------------------------------------------------------------

    async def migrate_all(
        self,
        document_ids: Iterable[str],
        strategy_fn: Optional[Callable[[int], BatchStrategy]] = None,
        batch_size: Optional[int] = None,
        on_progress: Optional[ProgressFn] = None,
        titles: Optional[dict[str, str]] = None,
    ) -> BatchSummary:
        """Migrate every id and return the aggregated :class:`BatchSummary`.

        Args:
            document_ids: Remote document ids.
            strategy_fn: Replaces the default count-based strategy selection.
            batch_size: Forces a ``fixed-batches`` strategy of this size.
            on_progress: Receives one status line per event.
            titles: Known titles by id, used in failure reports.
        """
        emit = on_progress or _noop
        titles = titles or {}
        ids = list(document_ids)
        started = time.monotonic()

        if batch_size is not None:
            strategy = fixed_batches(batch_size)
        elif strategy_fn is not None:
            strategy = strategy_fn(len(ids))
        else:
            strategy = select_strategy(len(ids))

        summary = BatchSummary(strategy=strategy)
        if not ids:
            emit("No documents to migrate")
            return summary

        emit(f"Strategy: {strategy.name} ({strategy.description})")
        emit(f"Risk level: {strategy.risk_level.value}")
        logger.info(
            "Migrating %d document(s) with strategy %s (batch size %d)",
            len(ids),
            strategy.name,
            strategy.batch_size,
        )

        size = strategy.batch_size
        batches = [ids[i : i + size] for i in range(0, len(ids), size)]
        done = 0

        for number, batch in enumerate(batches, start=1):
            label = f"Batch {number}/{len(batches)}"
            emit(f"{label}: {len(batch)} document(s) in parallel")

            outcomes = await asyncio.gather(
                *(self._orchestrator.migrate_document(doc_id) for doc_id in batch),
                return_exceptions=True,
            )

            succeeded = 0
            for doc_id, outcome in zip(batch, outcomes):
                done += 1
                result = _settle(doc_id, outcome, titles.get(doc_id))
                summary.per_document_results.append(result)
                name = _short_title(result.title or titles.get(doc_id) or doc_id)
                if result.success:
                    succeeded += 1
                    emit(
                        f"[{done}/{len(ids)}] OK \"{name}\": "
                        f"{result.nodes_processed} nodes, {result.chunks_embedded} chunks"
                    )
                    continue

                message = "; ".join(result.errors) or "unknown error"
                summary.failures.append(
                    FailureDetail(
                        document_id=doc_id,
                        title=name,
                        source_id=result.source_id or doc_id,
                        message=message,
                        category=classify_failure(message),
                    )
                )
                emit(f"[{done}/{len(ids)}] FAILED \"{name}\": {message}")

            emit(f"{label}: {succeeded} succeeded, {len(batch) - succeeded} failed")
            logger.info("%s: %d succeeded, %d failed", label, succeeded, len(batch) - succeeded)

            if number < len(batches) and strategy.pause_seconds > 0:
                await asyncio.sleep(strategy.pause_seconds)

        summary.duration_seconds = time.monotonic() - started
        self._report(summary, emit)
        return summary

    def _report(self, summary: BatchSummary, emit: ProgressFn) -> None:
        emit(
            f"Done: {summary.successful}/{summary.total} succeeded, "
            f"{summary.failed} failed in {summary.duration_seconds:.1f}s"
        )
        emit(f"Nodes: {summary.total_nodes}, chunks: {summary.total_chunks}")
        for category, count in summary.failure_buckets.items():
            emit(f"{category.value}: {count} failure(s). {remediation(category)}")
        logger.info(
            "Run finished: %d/%d succeeded, %d failed",
            summary.successful,
            summary.total,
            summary.failed,
        )

    # ------------------------------------------------------------------
    # sync_databases
    # ------------------------------------------------------------------

    async def sync_databases(
        self,
        database_ids: Iterable[str],
        on_progress: Optional[ProgressFn] = None,
    ) -> SyncReport:
        """List each database and migrate its documents, all databases concurrently.

        A database whose listing fails, or that cannot be listed because no
        remote client is wired, is reported as a failed group with an empty
        summary; it never raises.  Documents the remote reports as
        archived are archived locally instead of migrated.
        """
        emit = on_progress or _noop
        ids = list(database_ids)
        started = time.monotonic()
        emit(f"Syncing {len(ids)} database(s)")

        groups = await asyncio.gather(
            *(self._sync_one(db_id, i, len(ids), emit) for i, db_id in enumerate(ids, start=1))
        )

        report = SyncReport(groups=list(groups), duration_seconds=time.monotonic() - started)
        emit(
            f"Sync finished in {report.duration_seconds:.1f}s: "
            f"{report.total_processed} document(s) processed, {report.total_errors} error(s)"
        )
        for index, group in enumerate(report.groups, start=1):
            strategy = group.summary.strategy.name if group.summary.strategy else "error"
            emit(f"DB {index} ({group.database_id[:8]}): {strategy}, {group.processed} document(s)")
        return report

    async def _sync_one(
        self, database_id: str, index: int, total: int, emit: ProgressFn
    ) -> GroupReport:
        prefix = f"[DB {index}/{total}]"
        emit(f"{prefix} Listing database {database_id}")
        if self._client is None:
            message = "No remote client configured"
            logger.error("Cannot list database %s: %s", database_id, message)
            emit(f"{prefix} Listing failed: {message}")
            return GroupReport(database_id=database_id, error=message)
        try:
            documents = await self._client.query_database(database_id)
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            logger.error("Listing database %s failed: %s", database_id, message)
            emit(f"{prefix} Listing failed: {message}")
            return GroupReport(database_id=database_id, error=message)

        archived = [d.id for d in documents if d.archived]
        live = [d for d in documents if not d.archived]
        emit(f"{prefix} Found {len(live)} document(s)")
        if archived:
            count = await self._orchestrator.store.archive_documents(archived)
            emit(f"{prefix} Archived {count} document(s) removed upstream")

        summary = await self.migrate_all(
            [d.id for d in live],
            on_progress=lambda line: emit(f"{prefix} {line}"),
            titles={d.id: d.title for d in live},
        )
        return GroupReport(database_id=database_id, summary=summary)
