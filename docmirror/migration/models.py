"""Result and summary models for document migrations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from docmirror.migration.errors import FailureCategory, bucket_failures


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class MigrationResult:
    """Outcome of one ``migrate_document`` call.  Never mutated after return."""

    success: bool
    document_id: str | None = None
    nodes_processed: int = 0
    chunks_embedded: int = 0
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    title: str | None = None
    source_id: str | None = None


@dataclass(frozen=True)
class BatchStrategy:
    name: str
    batch_size: int
    risk_level: RiskLevel
    pause_seconds: float = 0.0
    description: str = ""


@dataclass(frozen=True)
class FailureDetail:
    document_id: str
    title: str
    source_id: str
    message: str
    category: FailureCategory


@dataclass
class BatchSummary:
    """Aggregate of one ``migrate_all`` run.

    ``failed`` is derived, so ``successful + failed == total`` holds by
    construction.
    """

    strategy: BatchStrategy | None = None
    per_document_results: list[MigrationResult] = field(default_factory=list)
    failures: list[FailureDetail] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def total(self) -> int:
        return len(self.per_document_results)

    @property
    def successful(self) -> int:
        return sum(1 for r in self.per_document_results if r.success)

    @property
    def failed(self) -> int:
        return self.total - self.successful

    @property
    def total_nodes(self) -> int:
        return sum(r.nodes_processed for r in self.per_document_results)

    @property
    def total_chunks(self) -> int:
        return sum(r.chunks_embedded for r in self.per_document_results)

    @property
    def failure_buckets(self) -> dict[FailureCategory, int]:
        return bucket_failures(self.failures)


@dataclass
class GroupReport:
    """Result of syncing one database.

    ``error`` is set when listing the database failed; the group then counts
    as one failure with zero processed documents.
    """

    database_id: str
    summary: BatchSummary = field(default_factory=BatchSummary)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def processed(self) -> int:
        return self.summary.successful

    @property
    def errors(self) -> int:
        return 1 if self.error else self.summary.failed


@dataclass
class SyncReport:
    groups: list[GroupReport] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def total_processed(self) -> int:
        return sum(g.processed for g in self.groups)

    @property
    def total_errors(self) -> int:
        return sum(g.errors for g in self.groups)
