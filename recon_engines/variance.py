"""
recon_engines.variance -- Budget versus actual, per canonical category.

Responsibility:
    Merge budget lines from both sources by canonical category and compute
    the variance once on the merged totals.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Budgeted and actual are summed separately per category; variance is
      never summed across lines.
    - ``variance = actual - budgeted`` in exact integer minor units.
    - ``variance_percentage`` is a Decimal, unrounded, and 0 when nothing
      was budgeted.

Usage:
    from recon_engines.variance import merge_budget_lines

    comparisons = merge_budget_lines(lines, period=ReportingPeriod.parse("2025"))
"""

from __future__ import annotations

import time
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from recon_engines.staleness import annotate
from recon_engines.tracer import traced_engine
from recon_kernel.domain.values import (
    BudgetLine,
    ReportingPeriod,
    SyncStatus,
    safe_percentage,
)
from recon_kernel.logging_config import get_logger

logger = get_logger("engines.variance")


@dataclass(frozen=True)
class BudgetComparison:
    """Budget against actual for one category, across both sources."""

    category: str
    budgeted: int
    actual: int
    variance: int
    variance_percentage: Decimal
    is_external: bool = False
    last_synced: datetime | None = None
    sync_status: SyncStatus | None = None

    @property
    def is_over_budget(self) -> bool:
        return self.variance > 0


@traced_engine("variance", "1.0", fingerprint_fields=("lines", "period"))
def merge_budget_lines(
    lines: Sequence[BudgetLine],
    period: ReportingPeriod | None = None,
) -> tuple[BudgetComparison, ...]:
    """
    Merge budget lines by category.

    Args:
        lines: Budget lines from either source.
        period: When given, only lines budgeted for the period's year are
            merged.

    Returns:
        One comparison per category, ordered by category name.
    """
    t0 = time.monotonic()
    groups: dict[str, list[BudgetLine]] = defaultdict(list)
    excluded = 0
    for line in lines:
        if period is not None and line.period != str(period.year):
            excluded += 1
            continue
        groups[line.category].append(line)

    comparisons = []
    for category in sorted(groups):
        members = groups[category]
        budgeted = sum(m.budgeted_minor_units for m in members)
        actual = sum(m.actual_minor_units for m in members)
        variance = actual - budgeted
        provenance = annotate(members)
        comparisons.append(BudgetComparison(
            category=category,
            budgeted=budgeted,
            actual=actual,
            variance=variance,
            variance_percentage=safe_percentage(variance, budgeted),
            is_external=provenance.is_external,
            last_synced=provenance.last_synced,
            sync_status=provenance.sync_status,
        ))

    duration_ms = round((time.monotonic() - t0) * 1000, 2)
    logger.info("budget_lines_merged", extra={
        "line_count": len(lines),
        "excluded_count": excluded,
        "category_count": len(comparisons),
        "duration_ms": duration_ms,
    })
    return tuple(comparisons)
