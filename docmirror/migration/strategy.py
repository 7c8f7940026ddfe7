"""Batch strategy selection.

The strategy is a step function of the number of documents.  The steps are
kept as an ordered list of ``(upper_bound, factory)`` pairs; the first pair
whose bound is ``>= n`` wins and the last bound is open-ended.
"""

from __future__ import annotations

import math
from typing import Callable

from docmirror.config import settings
from docmirror.migration.models import BatchStrategy, RiskLevel

StrategyFactory = Callable[[int], BatchStrategy]
StrategyTable = list[tuple[float, StrategyFactory]]


def full_parallel(n: int) -> BatchStrategy:
    return BatchStrategy(
        name="full-parallel",
        batch_size=max(n, 1),
        risk_level=RiskLevel.LOW,
        pause_seconds=0.0,
        description="All documents at once",
    )


def large_batches(n: int) -> BatchStrategy:
    return BatchStrategy(
        name="large-batches",
        batch_size=15,
        risk_level=RiskLevel.MEDIUM,
        pause_seconds=settings.pause_short,
        description="Batches of 15 with a short pause",
    )


def medium_batches(n: int) -> BatchStrategy:
    return BatchStrategy(
        name="medium-batches",
        batch_size=10,
        risk_level=RiskLevel.MEDIUM,
        pause_seconds=settings.pause_medium,
        description="Batches of 10 with a longer pause",
    )


def safe_batches(n: int) -> BatchStrategy:
    return BatchStrategy(
        name="safe-batches",
        batch_size=5,
        risk_level=RiskLevel.HIGH,
        pause_seconds=settings.pause_long,
        description="Batches of 5 with the longest pause",
    )


def fixed_batches(batch_size: int) -> BatchStrategy:
    """Caller-chosen batch size, paced like the medium tier."""
    if batch_size <= 0:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    return BatchStrategy(
        name="fixed-batches",
        batch_size=batch_size,
        risk_level=RiskLevel.MEDIUM,
        pause_seconds=settings.pause_medium,
        description=f"Batches of {batch_size} (caller override)",
    )


DEFAULT_TABLE: StrategyTable = [
    (10, full_parallel),
    (30, large_batches),
    (100, medium_batches),
    (math.inf, safe_batches),
]


def select_strategy(n: int, table: StrategyTable | None = None) -> BatchStrategy:
    """Return the strategy for *n* documents from *table* (default steps)."""
    for upper_bound, factory in table or DEFAULT_TABLE:
        if n <= upper_bound:
            return factory(n)
    raise ValueError(f"No strategy covers {n} document(s)")
