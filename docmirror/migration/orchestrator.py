"""Single-document migration: remote tree → store rows → embeddings.

``MigrationOrchestrator.migrate_document`` runs the steps strictly in order:

1. Fetch the document's metadata.
2. Recursively fetch its block tree.
3. Extract the linear content (text, sections, hash).
4. Upsert the document row by external id.
5. Replace the document's stored nodes.
6. Chunk, embed and replace the document's embeddings.

Any exception raised along the way is converted into a failed
:class:`MigrationResult`; the caller never sees it.
"""

from __future__ import annotations

import logging
from typing import Any

from docmirror.config import settings
from docmirror.db.models import StorageStats
from docmirror.db.store import DocumentStore
from docmirror.migration.models import MigrationResult
from docmirror.rag import render
from docmirror.rag.chunker import chunk
from docmirror.rag.extractor import extract
from docmirror.rag.pipeline import EmbeddingPipeline
from docmirror.remote.fetcher import RecursiveFetcher
from docmirror.remote.models import ChildrenStatus, FetchOptions, FetchResult, flatten

logger = logging.getLogger(__name__)


def _fetch_warnings(fetched: FetchResult, max_depth: int) -> list[str]:
    warnings: list[str] = []
    if fetched.truncated:
        warnings.append(f"Tree truncated at max depth {max_depth}")
    failed = [n for n in flatten(fetched.nodes) if n.children_status is ChildrenStatus.FAILED]
    if failed:
        warnings.append(f"{len(failed)} node(s) could not fetch their children")
    return warnings


class MigrationOrchestrator:
    """Migrate documents from the remote API into a :class:`DocumentStore`.

    Args:
        client: Remote client exposing ``get_document`` and ``get_children``.
        store: Target store.
        pipeline: Embedding pipeline.  Defaults to one writing into *store*.
        fetch_options: Overrides the settings-derived fetch options.
        chunk_size: Overrides ``settings.chunk_size``.
        chunk_overlap: Overrides ``settings.chunk_overlap``.
    """

    def __init__(
        self,
        client: Any,
        store: DocumentStore,
        pipeline: EmbeddingPipeline | None = None,
        fetch_options: FetchOptions | None = None,
        chunk_size: int | None = None,
        chunk_overlap: int | None = None,
    ) -> None:
        self._client = client
        self._store = store
        self._fetcher = RecursiveFetcher(client)
        self._pipeline = pipeline or EmbeddingPipeline(store)
        self._fetch_options = fetch_options or FetchOptions(
            max_depth=settings.fetch_max_depth,
            include_empty_nodes=settings.include_empty_nodes,
            delay_between_requests=settings.fetch_delay,
        )
        self._chunk_size = chunk_size or settings.chunk_size
        self._chunk_overlap = chunk_overlap or settings.chunk_overlap

    @property
    def store(self) -> DocumentStore:
        return self._store

    # ------------------------------------------------------------------
    # Migration
    # ------------------------------------------------------------------

    async def migrate_document(self, document_id: str, force: bool = False) -> MigrationResult:
        """Migrate one remote document.  Never raises.

        When the extracted content hash matches the stored one and every
        chunk already has an embedding, the embedding step is skipped unless
        *force* is set.
        """
        logger.info("Migrating document %s", document_id)
        title: str | None = None
        try:
            if not document_id:
                raise ValueError("document_id is required")

            remote = await self._client.get_document(document_id)
            title = remote.title

            fetched = await self._fetcher.execute(document_id, self._fetch_options)
            content = extract(fetched.nodes)
            warnings = _fetch_warnings(fetched, self._fetch_options.max_depth)

            previous = await self._store.get_document_by_external_id(remote.id)
            row = await self._store.upsert_document(remote, content.word_count)
            await self._store.replace_nodes(row.id, fetched.nodes)

            chunks = chunk(content, self._chunk_size, self._chunk_overlap)
            stored = await self._store.count_embeddings(row.id)
            unchanged = (
                previous is not None
                and previous.content_hash == content.content_hash
                and bool(chunks)
                and stored == len(chunks)
            )
            if unchanged and not force:
                logger.info("Content of %s unchanged; keeping %d embedding(s)", document_id, stored)
                embedded = stored
            else:
                embedded = await self._pipeline.embed_and_store(
                    row.id, chunks, content.content_hash
                )
                await self._store.mark_indexed(row.id, content.content_hash)

            if not chunks:
                warnings.append("Document has no text content; 0 chunks embedded")
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            logger.error("Migration of %s failed: %s", document_id, message)
            return MigrationResult(
                success=False,
                errors=(message,),
                title=title,
                source_id=document_id,
            )

        logger.info(
            "Migrated %s: %d node(s), %d chunk(s)",
            document_id,
            fetched.total_nodes,
            embedded,
        )
        return MigrationResult(
            success=True,
            document_id=row.id,
            nodes_processed=fetched.total_nodes,
            chunks_embedded=embedded,
            warnings=tuple(warnings),
            title=title,
            source_id=document_id,
        )

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    async def content_in_format(self, document_id: str, fmt: str) -> str:
        """Render a stored document as ``markdown``, ``plain``, ``html`` or ``json``.

        *document_id* may be the remote id or the internal id.

        Raises:
            ValueError: Unknown format.
            LookupError: No such document in the store.
        """
        if fmt not in render.FORMATS:
            raise ValueError(
                f"Unsupported format {fmt!r}; expected one of {', '.join(render.FORMATS)}"
            )
        row = await self._store.get_document_by_external_id(document_id)
        if row is None:
            row = await self._store.get_document(document_id)
        if row is None:
            raise LookupError(f"Document not found: {document_id}")
        nodes = await self._store.list_nodes(row.id)
        return render.render(row, nodes, fmt)

    async def stats(self) -> StorageStats:
        return await self._store.storage_stats()
