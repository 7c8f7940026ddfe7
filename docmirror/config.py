"""Centralised settings for docmirror.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str) -> list[str]:
    raw = os.environ.get(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("DOCMIRROR_WORKSPACE", Path.home() / ".docmirror")
        )
    )

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite database file."""
        return self.workspace_dir / "mirror.db"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    # ------------------------------------------------------------------
    # Remote content API
    # ------------------------------------------------------------------
    notion_api_key: str = field(
        default_factory=lambda: os.environ.get("NOTION_API_KEY", "")
    )
    notion_base_url: str = field(
        default_factory=lambda: os.environ.get("NOTION_BASE_URL", "https://api.notion.com/v1")
    )
    notion_version: str = field(
        default_factory=lambda: os.environ.get("NOTION_VERSION", "2022-06-28")
    )
    notion_database_ids: list[str] = field(
        default_factory=lambda: _env_list("NOTION_DATABASE_ID")
    )
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("REQUEST_TIMEOUT", "30.0"))
    )

    # ------------------------------------------------------------------
    # Recursive fetch
    # ------------------------------------------------------------------
    fetch_max_depth: int = field(
        default_factory=lambda: int(os.environ.get("FETCH_MAX_DEPTH", "10"))
    )
    fetch_delay: float = field(
        default_factory=lambda: float(os.environ.get("FETCH_DELAY", "0.0"))
    )
    include_empty_nodes: bool = field(
        default_factory=lambda: _env_bool("INCLUDE_EMPTY_NODES", "true")
    )

    # ------------------------------------------------------------------
    # Chunking
    # ------------------------------------------------------------------
    chunk_size: int = field(
        default_factory=lambda: int(os.environ.get("CHUNK_SIZE", "1000"))
    )
    chunk_overlap: int = field(
        default_factory=lambda: int(os.environ.get("CHUNK_OVERLAP", "100"))
    )

    # ------------------------------------------------------------------
    # Embedding model
    # ------------------------------------------------------------------
    embedding_provider: str = field(
        default_factory=lambda: os.environ.get("EMBEDDING_PROVIDER", "ollama")
    )
    ollama_base_url: str = field(
        default_factory=lambda: os.environ.get("OLLAMA_BASE_URL", "http://localhost:11434")
    )
    ollama_embed_model: str = field(
        default_factory=lambda: os.environ.get("OLLAMA_EMBED_MODEL", "embeddinggemma:latest")
    )
    openai_embed_model: str = field(
        default_factory=lambda: os.environ.get(
            "OPENAI_EMBED_MODEL", "text-embedding-3-small"
        )
    )
    embedding_dim: int = field(
        default_factory=lambda: int(os.environ.get("EMBEDDING_DIM", "768"))
    )

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------
    search_threshold: float = field(
        default_factory=lambda: float(os.environ.get("SEARCH_THRESHOLD", "0.78"))
    )
    search_limit: int = field(
        default_factory=lambda: int(os.environ.get("SEARCH_LIMIT", "5"))
    )

    # ------------------------------------------------------------------
    # Batch scheduling (seconds paused between batches)
    # ------------------------------------------------------------------
    pause_short: float = field(
        default_factory=lambda: float(os.environ.get("PAUSE_SHORT", "0.10"))
    )
    pause_medium: float = field(
        default_factory=lambda: float(os.environ.get("PAUSE_MEDIUM", "0.15"))
    )
    pause_long: float = field(
        default_factory=lambda: float(os.environ.get("PAUSE_LONG", "0.30"))
    )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: str = field(
        default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO").upper()
    )


# Module-level singleton, import this everywhere:
#   from docmirror.config import settings
settings = Settings()
