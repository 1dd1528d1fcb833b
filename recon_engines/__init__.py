"""
Module: recon_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines. This is the import surface for recon_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import recon_kernel/domain (and sibling engine modules).
    MUST NOT import recon_services.

Invariants enforced:
    - Purity: engines never call ``datetime.now()`` or ``date.today()``.
      Times are passed in by the caller.
    - Integer minor units for money, Decimal for percentages; no floats.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every engine invocation is traced via ``@traced_engine`` (see
    ``recon_engines.tracer``), emitting RECON_ENGINE_TRACE records with
    engine name, version, input fingerprint and duration.
"""

from recon_engines.aggregation import (
    DEFAULT_RECENT_LIMIT,
    Aggregator,
    CollectionMetrics,
    FinancialSummary,
    RecentTransaction,
    collection_metrics,
    recent_transactions,
    within_period,
)
from recon_engines.reconciliation import (
    OUT_OF_PERIOD,
    InvoiceReconciliationResult,
    MatchKey,
    ReconciliationEngine,
    ReconciliationResult,
    canonical_order,
)
from recon_engines.staleness import (
    LOCAL_ONLY,
    ProvenanceAnnotation,
    annotate,
    combine,
    staleness_seconds,
)
from recon_engines.tracer import compute_input_fingerprint, traced_engine
from recon_engines.variance import BudgetComparison, merge_budget_lines

__all__ = [
    "DEFAULT_RECENT_LIMIT",
    "Aggregator",
    "CollectionMetrics",
    "FinancialSummary",
    "RecentTransaction",
    "collection_metrics",
    "recent_transactions",
    "within_period",
    "OUT_OF_PERIOD",
    "InvoiceReconciliationResult",
    "MatchKey",
    "ReconciliationEngine",
    "ReconciliationResult",
    "canonical_order",
    "LOCAL_ONLY",
    "ProvenanceAnnotation",
    "annotate",
    "combine",
    "staleness_seconds",
    "compute_input_fingerprint",
    "traced_engine",
    "BudgetComparison",
    "merge_budget_lines",
]
