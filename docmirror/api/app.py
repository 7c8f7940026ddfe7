"""FastAPI application factory.

Lifespan
--------
On startup the app configures logging and builds one :class:`Service`
(remote client, SQLite store, orchestrator, scheduler, ranker) shared by all
requests via ``request.app.state.service``.  On shutdown it closes the HTTP
client and the database connection.

Routers
-------
    /migrate    single-document migration, batch migration and database
                sync (batch routes stream progress as SSE)
    /search     hybrid document search and node text search
    /documents  rendered document content
    /stats      storage statistics
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from docmirror.config import settings
from docmirror.service import build_service

from docmirror.api.routers import documents as documents_router
from docmirror.api.routers import migrate as migrate_router
from docmirror.api.routers import search as search_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the service on startup and close it on shutdown."""
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # Tests pre-populate app.state.service with fakes.
    if getattr(app.state, "service", None) is None:
        app.state.service = build_service()
    try:
        yield
    finally:
        await app.state.service.aclose()
        app.state.service = None


def create_app() -> FastAPI:
    """Return a fully-configured FastAPI application instance."""
    app = FastAPI(
        title="docmirror API",
        description=(
            "Mirror Notion-style documents into a local SQLite + sqlite-vec "
            "store and serve hybrid keyword / semantic retrieval over them."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    # Allow browser frontends on any origin (tighten for production).
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(migrate_router.router, prefix="/migrate", tags=["migrate"])
    app.include_router(search_router.router, prefix="/search", tags=["search"])
    app.include_router(documents_router.router, tags=["documents"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn docmirror.api.app:app --reload
app = create_app()
