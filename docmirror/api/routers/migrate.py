"""Migration endpoints.

Routes
------
POST /migrate/{document_id}   Migrate one document, return its result
POST /migrate                 Body: {"document_ids": [...], "batch_size": 10}
POST /migrate/sync            Body: {"database_ids": [...]} (defaults to
                              ``NOTION_DATABASE_ID``)

The two batch routes stream progress as Server-Sent Events.  Every status
line is one event::

    data: Batch 1/3: 15 document(s) in parallel

The stream ends with a ``summary`` event whose data is a JSON object::

    event: summary
    data: {"total": 40, "successful": 39, "failed": 1, ...}
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import asdict
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from docmirror.config import settings
from docmirror.migration.models import BatchSummary, SyncReport

logger = logging.getLogger(__name__)

router = APIRouter()

_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",  # disable nginx proxy buffering
}


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class MigrateAllRequest(BaseModel):
    document_ids: list[str] = Field(min_length=1)
    batch_size: Optional[int] = Field(default=None, gt=0)


class SyncRequest(BaseModel):
    database_ids: Optional[list[str]] = None


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def summary_dict(summary: BatchSummary) -> dict[str, Any]:
    return {
        "strategy": summary.strategy.name if summary.strategy else None,
        "total": summary.total,
        "successful": summary.successful,
        "failed": summary.failed,
        "total_nodes": summary.total_nodes,
        "total_chunks": summary.total_chunks,
        "duration_seconds": round(summary.duration_seconds, 3),
        "failure_buckets": {k.value: v for k, v in summary.failure_buckets.items()},
        "failures": [
            {**asdict(f), "category": f.category.value} for f in summary.failures
        ],
        "results": [asdict(r) for r in summary.per_document_results],
    }


def report_dict(report: SyncReport) -> dict[str, Any]:
    return {
        "total_processed": report.total_processed,
        "total_errors": report.total_errors,
        "duration_seconds": round(report.duration_seconds, 3),
        "groups": [
            {
                "database_id": g.database_id,
                "error": g.error,
                "summary": summary_dict(g.summary),
            }
            for g in report.groups
        ],
    }


def _sse_line(line: str) -> str:
    # SSE data fields cannot contain bare newlines.
    return "".join(f"data: {part}\n" for part in line.splitlines() or [""]) + "\n"


async def _progress_stream(
    run: Callable[[Callable[[str], None]], Awaitable[dict[str, Any]]],
) -> AsyncIterator[str]:
    """Run *run(on_progress)* in a task and yield its progress as SSE."""
    queue: asyncio.Queue[str | None] = asyncio.Queue()

    async def _runner() -> None:
        try:
            payload = await run(lambda line: queue.put_nowait(_sse_line(line)))
            queue.put_nowait(f"event: summary\ndata: {json.dumps(payload)}\n\n")
        except Exception as exc:  # noqa: BLE001
            logger.exception("Batch run failed")
            queue.put_nowait(f"event: error\ndata: {json.dumps({'detail': str(exc)})}\n\n")
        finally:
            queue.put_nowait(None)  # sentinel

    task = asyncio.create_task(_runner())
    try:
        while True:
            item = await queue.get()
            if item is None:
                break
            yield item
    finally:
        await task


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.post("")
async def migrate_all(request: Request, body: MigrateAllRequest) -> StreamingResponse:
    """Migrate many documents with an adaptive batch strategy (SSE)."""
    scheduler = request.app.state.service.scheduler

    async def run(on_progress: Callable[[str], None]) -> dict[str, Any]:
        summary = await scheduler.migrate_all(
            body.document_ids, batch_size=body.batch_size, on_progress=on_progress
        )
        return summary_dict(summary)

    return StreamingResponse(
        _progress_stream(run), media_type="text/event-stream", headers=_SSE_HEADERS
    )


@router.post("/sync")
async def sync(request: Request, body: Optional[SyncRequest] = None) -> StreamingResponse:
    """List the configured databases and migrate every document in them (SSE)."""
    database_ids = (body.database_ids if body else None) or settings.notion_database_ids
    if not database_ids:
        raise HTTPException(
            status_code=422,
            detail="No database ids given and NOTION_DATABASE_ID is not set.",
        )
    scheduler = request.app.state.service.scheduler

    async def run(on_progress: Callable[[str], None]) -> dict[str, Any]:
        report = await scheduler.sync_databases(database_ids, on_progress=on_progress)
        return report_dict(report)

    return StreamingResponse(
        _progress_stream(run), media_type="text/event-stream", headers=_SSE_HEADERS
    )


@router.post("/{document_id}")
async def migrate_document(
    request: Request, document_id: str, force: bool = False
) -> dict[str, Any]:
    """Migrate a single document.  Failures come back as ``success: false``."""
    orchestrator = request.app.state.service.orchestrator
    result = await orchestrator.migrate_document(document_id, force=force)
    return asdict(result)
