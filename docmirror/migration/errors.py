"""Failure classification for migration summaries.

Failures are bucketed by matching their message against known patterns so
an operator gets actionable guidance.  Classification is advisory only; it
never changes success or failure counts.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable


class FailureCategory(str, Enum):
    RATE_LIMITED = "rate_limited"
    PERMISSION = "permission"
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    OTHER = "other"


# First match wins.
_PATTERNS: list[tuple[FailureCategory, tuple[str, ...]]] = [
    (FailureCategory.RATE_LIMITED, ("429", "rate limit", "rate_limited", "too many requests")),
    (FailureCategory.PERMISSION, ("401", "403", "unauthorized", "forbidden", "permission")),
    (FailureCategory.NOT_FOUND, ("404", "not found", "could not find", "object_not_found")),
    (FailureCategory.TIMEOUT, ("timeout", "timed out", "connection", "network")),
]

_REMEDIATION: dict[FailureCategory, str] = {
    FailureCategory.RATE_LIMITED: (
        "The remote API is throttling requests. Re-run with a smaller batch "
        "size or raise FETCH_DELAY."
    ),
    FailureCategory.PERMISSION: (
        "The integration token cannot read these documents. Check "
        "NOTION_API_KEY and share the pages with the integration."
    ),
    FailureCategory.NOT_FOUND: (
        "The documents no longer exist or were moved. Verify the ids or "
        "archive them locally."
    ),
    FailureCategory.TIMEOUT: (
        "Network or timeout errors. Check connectivity and consider raising "
        "REQUEST_TIMEOUT, then re-run the failed documents."
    ),
    FailureCategory.OTHER: "Inspect the error messages and the log for details.",
}


def classify_failure(message: str) -> FailureCategory:
    """Map an error message to a :class:`FailureCategory`."""
    lowered = (message or "").lower()
    for category, needles in _PATTERNS:
        if any(needle in lowered for needle in needles):
            return category
    return FailureCategory.OTHER


def remediation(category: FailureCategory) -> str:
    """Return operator guidance for *category*."""
    return _REMEDIATION[category]


def bucket_failures(failures: Iterable) -> dict[FailureCategory, int]:
    """Count failures per category.  Accepts anything with a ``category``."""
    buckets: dict[FailureCategory, int] = {}
    for failure in failures:
        buckets[failure.category] = buckets.get(failure.category, 0) + 1
    return buckets
