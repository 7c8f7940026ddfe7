"""docmirror CLI: entry-point for all mirror operations.

Usage:
    python cli/main.py --help

Commands:
    db init       create the SQLite schema
    migrate       migrate one document
    migrate-all   migrate many documents with an adaptive batch strategy
    sync          list configured databases and migrate their documents
    search        hybrid keyword / semantic search
    stats         storage statistics
    export        render a stored document (markdown, plain, html, json)
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that
# `from docmirror.xxx import ...` works when the CLI is invoked as
# `python cli/main.py` from any working directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

import typer

from docmirror.config import settings
from docmirror.db import connection, init_db
from docmirror.migration.errors import remediation
from docmirror.retrieval.models import SearchOptions
from docmirror.retrieval.prompt import build_system_prompt
from docmirror.service import Service, build_service

T = TypeVar("T")

app = typer.Typer(
    name="docmirror",
    help="Mirror Notion-style documents into a local vector store.",
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _run(action: Callable[[Service], Awaitable[T]]) -> T:
    """Build a service, run *action* with it and always close it."""

    async def _wrapped() -> T:
        service = build_service()
        try:
            return await action(service)
        finally:
            await service.aclose()

    return asyncio.run(_wrapped())


# ---------------------------------------------------------------------------
# db
# ---------------------------------------------------------------------------
db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite database (create tables if they do not exist)."""
    with connection() as conn:
        init_db(conn)
    typer.echo(f"[db init] Database ready at {settings.db_path}")


# ---------------------------------------------------------------------------
# Migration
# ---------------------------------------------------------------------------

@app.command("migrate")
def migrate(
    document_id: str = typer.Argument(..., help="Remote document (page) id."),
    force: bool = typer.Option(False, "--force", help="Re-embed even if content is unchanged."),
) -> None:
    """Migrate a single document."""
    typer.echo(f"[migrate] {document_id} …")
    result = _run(lambda s: s.orchestrator.migrate_document(document_id, force=force))

    if not result.success:
        for error in result.errors:
            typer.echo(f"[migrate] Error: {error}", err=True)
        raise typer.Exit(1)

    typer.echo(
        f"[migrate] {result.title!r}: {result.nodes_processed} nodes, "
        f"{result.chunks_embedded} chunks  (id={result.document_id})"
    )
    for warning in result.warnings:
        typer.echo(f"[migrate] Warning: {warning}")


def _print_failures(summary: Any) -> None:
    for category, count in summary.failure_buckets.items():
        typer.echo(f"  {category.value}: {count}  {remediation(category)}")


@app.command("migrate-all")
def migrate_all(
    document_ids: List[str] = typer.Argument(..., help="Remote document ids."),
    batch_size: Optional[int] = typer.Option(
        None, "--batch-size", min=1, help="Force a fixed batch size."
    ),
) -> None:
    """Migrate many documents, choosing the batch strategy from their count."""
    summary = _run(
        lambda s: s.scheduler.migrate_all(
            document_ids, batch_size=batch_size, on_progress=typer.echo
        )
    )
    if summary.failed:
        _print_failures(summary)
        raise typer.Exit(1)


@app.command("sync")
def sync(
    database_ids: Optional[List[str]] = typer.Argument(
        None, help="Database ids (defaults to NOTION_DATABASE_ID)."
    ),
) -> None:
    """List each database and migrate every document in it."""
    ids = database_ids or settings.notion_database_ids
    if not ids:
        typer.echo("[sync] No database ids given and NOTION_DATABASE_ID is not set.", err=True)
        raise typer.Exit(1)

    report = _run(lambda s: s.scheduler.sync_databases(ids, on_progress=typer.echo))
    if report.total_errors:
        for group in report.groups:
            if group.error:
                typer.echo(f"  {group.database_id}: {group.error}")
            _print_failures(group.summary)
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Read side
# ---------------------------------------------------------------------------

@app.command("search")
def search(
    query: str = typer.Argument(..., help="Search query."),
    limit: int = typer.Option(settings.search_limit, "--limit", "-n"),
    threshold: float = typer.Option(settings.search_threshold, "--threshold"),
    embeddings: bool = typer.Option(True, "--embeddings/--no-embeddings"),
    keywords: bool = typer.Option(True, "--keywords/--no-keywords"),
    prompt: bool = typer.Option(False, "--prompt", help="Print the chat system prompt."),
) -> None:
    """Hybrid search over the mirrored documents."""
    options = SearchOptions(
        use_embeddings=embeddings,
        use_keywords=keywords,
        limit=limit,
        threshold=threshold,
    )
    ranked = _run(lambda s: s.ranker.search(query, options))

    if prompt:
        typer.echo(build_system_prompt(query, ranked))
        return
    if not ranked:
        typer.echo(f"[search] No results for {query!r}.")
        return
    for doc in ranked:
        typer.echo(f"  {doc.max_score:.3f}  {doc.title!r}  ({doc.hit_count} hits)")
        if doc.url:
            typer.echo(f"         {doc.url}")


@app.command("stats")
def stats() -> None:
    """Show storage statistics."""
    result = _run(lambda s: s.orchestrator.stats())
    typer.echo(f"Documents : {result.total_documents} ({result.archived_documents} archived)")
    typer.echo(f"Nodes     : {result.total_nodes}")
    typer.echo(f"Embeddings: {result.total_embeddings}")
    typer.echo(f"Words     : {result.total_words} (avg {result.average_words_per_document}/doc)")
    if result.top_node_types:
        typer.echo("Top node types:")
        for node_type, count in result.top_node_types:
            typer.echo(f"  {node_type:<24} {count}")


@app.command("export")
def export(
    document_id: str = typer.Argument(..., help="Remote or internal document id."),
    fmt: str = typer.Option("markdown", "--format", "-f", help="markdown | plain | html | json"),
) -> None:
    """Print a stored document in the chosen format."""
    try:
        body = _run(lambda s: s.orchestrator.content_in_format(document_id, fmt))
    except (LookupError, ValueError) as exc:
        typer.echo(f"[export] {exc}", err=True)
        raise typer.Exit(1) from exc
    typer.echo(body)


if __name__ == "__main__":
    app()
