"""Shared fixtures.

Nothing here touches the network or the on-disk workspace: ``store`` is a
:class:`SqliteDocumentStore` over an in-memory database with sqlite-vec
loaded, and ``service`` wires it to the fakes in :mod:`helpers`.
"""

from __future__ import annotations

from typing import Generator

import pytest

from docmirror.db.store import SqliteDocumentStore
from docmirror.service import Service, build_service
from helpers import FakeNotionClient, fake_embed_batch, fake_embed_text, sample_client


@pytest.fixture()
def store() -> Generator[SqliteDocumentStore, None, None]:
    """In-memory store with sqlite-vec loaded and schema initialised."""
    s = SqliteDocumentStore.open(":memory:")
    yield s
    s.conn.close()


@pytest.fixture()
def notion() -> FakeNotionClient:
    return sample_client()


@pytest.fixture()
def service(notion: FakeNotionClient, store: SqliteDocumentStore) -> Service:
    return build_service(
        client=notion,
        store=store,
        embed_fn=fake_embed_batch,
        query_embed_fn=fake_embed_text,
    )
