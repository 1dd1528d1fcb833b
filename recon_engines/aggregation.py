"""
recon_engines.aggregation -- Dashboard metrics over the unified record set.

Responsibility:
    Computes income and expense totals, net position, invoice exposure,
    service-charge collection and arrears, the share of externally sourced
    records, and the ranked recent-transaction feed.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumes the output of ``ReconciliationEngine``; knows nothing about
    stores or presentation.

Invariants enforced:
    - ``net_position == total_income - total_expense`` exactly; all money
      is integer minor units.
    - Percentages are Decimal and never rounded here. A zero denominator
      yields 0 (external share) or None (collection rate, meaning "no
      demands issued").
    - Recomputed on demand from its inputs; nothing is cached or stored.

Failure modes:
    - None raised for data content; empty inputs give a zero summary.

Audit relevance:
    Every figure is a plain sum over records the reconciliation result
    lists, so each can be re-derived from the diagnostics and the unified
    set. Invocations are traced via ``@traced_engine``.
"""

from __future__ import annotations

import time
from collections import defaultdict
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from recon_engines.staleness import annotate
from recon_engines.tracer import traced_engine
from recon_kernel.domain.values import (
    BudgetLine,
    FinancialRecord,
    Invoice,
    InvoiceStatus,
    Provenance,
    RecordKind,
    RecordStatus,
    ReportingPeriod,
    ServiceChargeDemand,
    ServiceChargePayment,
    SourceName,
    SourceState,
    SyncStatus,
    safe_percentage,
)
from recon_kernel.logging_config import get_logger

logger = get_logger("engines.aggregation")

DEFAULT_RECENT_LIMIT = 10

_OUTSTANDING = (InvoiceStatus.PENDING, InvoiceStatus.APPROVED)


@dataclass(frozen=True)
class FinancialSummary:
    """
    Headline figures for one building and period.

    Derived and ephemeral: recomputed on every request, never persisted.
    """

    total_income: int = 0
    total_expense: int = 0
    net_position: int = 0
    outstanding_invoices: int = 0
    overdue_payments: int = 0
    collection_rate: Decimal | None = None
    total_arrears: int = 0
    arrears_count: int = 0
    external_data_percentage: Decimal = Decimal("0")
    last_external_sync: datetime | None = None
    sync_status: SyncStatus | None = None
    partial: bool = False
    source_availability: dict[SourceName, SourceState] = field(default_factory=dict)
    conflict_count: int = 0


@dataclass(frozen=True)
class RecentTransaction:
    """One row of the recent-transaction feed."""

    id: str
    description: str
    amount: int
    kind: RecordKind
    date: date
    category: str
    status: RecordStatus
    is_external: bool
    last_synced: datetime | None = None
    sync_status: SyncStatus | None = None
    conflict: bool = False

    @classmethod
    def from_record(cls, record: FinancialRecord) -> RecentTransaction:
        return cls(
            id=record.id,
            description=record.description,
            amount=record.amount_minor_units,
            kind=record.kind,
            date=record.date,
            category=record.category,
            status=record.status,
            is_external=record.is_external,
            last_synced=record.synced_at,
            sync_status=record.sync_status,
            conflict=record.conflict,
        )


@dataclass(frozen=True)
class CollectionMetrics:
    """Service-charge collection and arrears."""

    demanded: int = 0
    received: int = 0
    collection_rate: Decimal | None = None
    total_arrears: int = 0
    arrears_count: int = 0


def feed_order(record: FinancialRecord) -> tuple:
    """Recent-feed sort key: newest first, then local before external, then id."""
    return (
        -record.date.toordinal(),
        record.provenance is Provenance.EXTERNAL,
        record.id,
    )


def recent_transactions(
    records: Sequence[FinancialRecord], limit: int = DEFAULT_RECENT_LIMIT,
) -> tuple[RecentTransaction, ...]:
    """The ``limit`` newest records of the unified set."""
    if limit < 0:
        raise ValueError(f"limit cannot be negative: {limit}")
    ordered = sorted(records, key=feed_order)[:limit]
    return tuple(RecentTransaction.from_record(r) for r in ordered)


def collection_metrics(
    demands: Sequence[ServiceChargeDemand],
    payments: Sequence[ServiceChargePayment],
) -> CollectionMetrics:
    """
    Collection rate and arrears.

    ``collection_rate`` is received-or-partial payments over demands issued,
    as a percentage, or None when no demands were issued. Arrears are
    counted per demand against the payments that name it; a unit is in
    arrears when any of its demands is not fully paid.
    """
    demanded = sum(d.amount_minor_units for d in demands)
    received_payments = [p for p in payments if p.is_received]
    received = sum(p.amount_minor_units for p in received_payments)

    paid_by_demand: dict[str, int] = defaultdict(int)
    for p in received_payments:
        if p.demand_id is not None:
            paid_by_demand[p.demand_id] += p.amount_minor_units

    total_arrears = 0
    units_in_arrears: set[str] = set()
    for d in demands:
        owed = max(0, d.amount_minor_units - paid_by_demand.get(d.id, 0))
        if owed:
            total_arrears += owed
            units_in_arrears.add(d.unit_id)

    return CollectionMetrics(
        demanded=demanded,
        received=received,
        collection_rate=safe_percentage(received, demanded, default=None),
        total_arrears=total_arrears,
        arrears_count=len(units_in_arrears),
    )


def within_period(
    demands: Sequence[ServiceChargeDemand],
    payments: Sequence[ServiceChargePayment],
    period: ReportingPeriod,
) -> tuple[tuple[ServiceChargeDemand, ...], tuple[ServiceChargePayment, ...]]:
    """Demands due, and payments made, inside ``period``."""
    return (
        tuple(d for d in demands if period.contains(d.due_date)),
        tuple(p for p in payments if period.contains(p.payment_date)),
    )


class Aggregator:
    """
    Single-pass metric computation over the unified set.

    Contract:
        No I/O, no clock access, fully deterministic.

    Guarantees:
        - Conflicting records (``conflict=True``) are counted in totals;
          the conflict is surfaced through ``conflict_count`` instead of
          being resolved by guessing.
        - ``partial`` is True whenever any source is marked unavailable.

    Non-goals:
        - Does not round. Presentation rounds at the boundary.
        - Does not decide which source is authoritative; reconciliation
          already did.
    """

    @traced_engine(
        "aggregation", "1.0",
        fingerprint_fields=("records", "invoices", "demands", "payments"),
    )
    def summarize(
        self,
        records: Sequence[FinancialRecord],
        invoices: Sequence[Invoice] = (),
        demands: Sequence[ServiceChargeDemand] = (),
        payments: Sequence[ServiceChargePayment] = (),
        budget_lines: Sequence[BudgetLine] = (),
        source_availability: Mapping[SourceName, SourceState] | None = None,
    ) -> FinancialSummary:
        """
        Compute the headline summary.

        Args:
            records: The reconciled transaction set.
            invoices: Reconciled unpaid invoices.
            demands: Service-charge demands for the period.
            payments: Service-charge payments for the period.
            budget_lines: Budget lines; only their sync metadata is used.
            source_availability: Per-source fetch outcome. Missing sources
                are treated as available.
        """
        t0 = time.monotonic()
        total_income = 0
        total_expense = 0
        external_count = 0
        conflict_count = 0
        for record in records:
            if record.kind is RecordKind.INCOME:
                total_income += record.amount_minor_units
            else:
                total_expense += record.amount_minor_units
            if record.is_external:
                external_count += 1
            elif record.conflict:
                conflict_count += 1

        outstanding = sum(
            i.amount_minor_units for i in invoices if i.status in _OUTSTANDING
        )
        overdue = sum(
            i.amount_minor_units for i in invoices
            if i.status is InvoiceStatus.OVERDUE
        )
        collection = collection_metrics(demands, payments)

        availability = {
            source: SourceState.AVAILABLE for source in SourceName
        }
        availability.update(source_availability or {})
        partial = any(
            state is SourceState.UNAVAILABLE for state in availability.values()
        )
        provenance = annotate([*records, *invoices, *budget_lines])

        summary = FinancialSummary(
            total_income=total_income,
            total_expense=total_expense,
            net_position=total_income - total_expense,
            outstanding_invoices=outstanding,
            overdue_payments=overdue,
            collection_rate=collection.collection_rate,
            total_arrears=collection.total_arrears,
            arrears_count=collection.arrears_count,
            external_data_percentage=safe_percentage(external_count, len(records)),
            last_external_sync=provenance.last_synced,
            sync_status=provenance.sync_status,
            partial=partial,
            source_availability=availability,
            conflict_count=conflict_count,
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("summary_computed", extra={
            "record_count": len(records),
            "invoice_count": len(invoices),
            "total_income": total_income,
            "total_expense": total_expense,
            "conflict_count": conflict_count,
            "partial": partial,
            "duration_ms": duration_ms,
        })
        return summary
