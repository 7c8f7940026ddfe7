"""Wire settings into a ready-to-use set of collaborators.

Both the CLI and the HTTP app go through :func:`build_service` so they share
one construction path::

    service = build_service()
    try:
        result = await service.orchestrator.migrate_document(page_id)
    finally:
        await service.aclose()
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from docmirror.db.store import DocumentStore, SqliteDocumentStore
from docmirror.migration.orchestrator import MigrationOrchestrator
from docmirror.migration.scheduler import AdaptiveBatchScheduler
from docmirror.rag.pipeline import EmbedFn, EmbeddingPipeline
from docmirror.remote.client import NotionClient
from docmirror.retrieval.ranker import HybridRanker


@dataclass
class Service:
    client: Any
    store: DocumentStore
    orchestrator: MigrationOrchestrator
    scheduler: AdaptiveBatchScheduler
    ranker: HybridRanker

    async def aclose(self) -> None:
        await self.client.aclose()
        await self.store.close()


def build_service(
    db_path: Optional[Path | str] = None,
    client: Any = None,
    store: Optional[DocumentStore] = None,
    embed_fn: Optional[EmbedFn] = None,
    query_embed_fn: Any = None,
) -> Service:
    """Build a :class:`Service` from ``settings``.

    Every collaborator can be injected, which is how the tests swap in fakes
    for the remote API and the embedding model.
    """
    client = client or NotionClient()
    store = store or SqliteDocumentStore.open(db_path)
    pipeline = EmbeddingPipeline(store, embed_fn=embed_fn)
    orchestrator = MigrationOrchestrator(client, store, pipeline=pipeline)
    return Service(
        client=client,
        store=store,
        orchestrator=orchestrator,
        scheduler=AdaptiveBatchScheduler(orchestrator, client),
        ranker=HybridRanker(store, embed_fn=query_embed_fn),
    )
