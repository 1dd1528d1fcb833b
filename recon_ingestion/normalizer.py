"""
Record Normalizer -- raw source rows to canonical domain records.

Responsibility:
    Converts ``LocalRecord`` / ``ExternalRecord`` rows into
    ``FinancialRecord``, ``BudgetLine``, ``Invoice``,
    ``ServiceChargeDemand`` and ``ServiceChargePayment`` values, applying
    the per-source field-mapping tables and the configured vocabulary.

Architecture position:
    Ingestion -- pure, zero I/O. Sits between the stores (which return raw
    rows) and the engines (which only accept canonical records).

Invariants enforced:
    - Dispatch is on the variant type and entity, never on which fields a
      row happens to carry.
    - Amounts are converted to integer minor units exactly; a value that
      does not fit the currency's minor unit is rejected, not rounded.
    - Sync metadata is attached to external records only.

Failure modes:
    - Single-record functions raise ``MalformedRecordError`` for rows that
      cannot be normalized and ``RecordSkipped`` for rows that describe no
      economic event (rejected, failed, cancelled, paid invoices).
    - ``normalize_batch`` never raises for bad rows; it records them as
      diagnostics and carries on.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from recon_config import UNCATEGORISED, ReconConfig, SourceMappingDef
from recon_ingestion.domain.types import (
    EntitySyncState,
    EntityType,
    ExternalRecord,
    LocalRecord,
    RawRecord,
)
from recon_ingestion.mapping.engine import apply_mapping, apply_transform
from recon_ingestion.mapping.tables import field_mappings_for
from recon_kernel.domain.dtos import Diagnostic, ReconciliationDiagnostics
from recon_kernel.domain.values import (
    BudgetLine,
    FinancialRecord,
    Invoice,
    InvoiceStatus,
    PaymentStatus,
    Provenance,
    RecordKind,
    RecordStatus,
    ServiceChargeDemand,
    ServiceChargePayment,
    SyncStatus,
    to_minor_units,
)
from recon_kernel.exceptions import MalformedRecordError
from recon_kernel.logging_config import get_logger

logger = get_logger("ingestion.normalizer")

NOT_AN_ECONOMIC_EVENT = "NOT_AN_ECONOMIC_EVENT"
SETTLED_INVOICE = "SETTLED_INVOICE"
UNKNOWN_CATEGORY = "UNKNOWN_CATEGORY"
UNKNOWN_SYNC_STATUS = "UNKNOWN_SYNC_STATUS"

CanonicalItem = (
    FinancialRecord | BudgetLine | Invoice | ServiceChargeDemand | ServiceChargePayment
)
SyncStates = Mapping[EntityType, EntitySyncState]


class RecordSkipped(Exception):
    """
    Signal that a well-formed row describes no economic event.

    Not a data-quality error: the row is known and valid, it simply does
    not contribute to any aggregate.
    """

    def __init__(self, code: str, reason: str, record_id: str | None = None):
        self.code = code
        self.reason = reason
        self.record_id = record_id
        super().__init__(reason)


@dataclass(frozen=True)
class NormalizationResult:
    """Canonical items plus everything ``normalize_batch`` absorbed."""

    items: tuple[CanonicalItem, ...] = ()
    diagnostics: ReconciliationDiagnostics = field(default_factory=ReconciliationDiagnostics)

    def _of(self, item_type: type) -> tuple[Any, ...]:
        return tuple(i for i in self.items if isinstance(i, item_type))

    @property
    def transactions(self) -> tuple[FinancialRecord, ...]:
        return self._of(FinancialRecord)

    @property
    def budget_lines(self) -> tuple[BudgetLine, ...]:
        return self._of(BudgetLine)

    @property
    def invoices(self) -> tuple[Invoice, ...]:
        return self._of(Invoice)

    @property
    def demands(self) -> tuple[ServiceChargeDemand, ...]:
        return self._of(ServiceChargeDemand)

    @property
    def payments(self) -> tuple[ServiceChargePayment, ...]:
        return self._of(ServiceChargePayment)


# ---------------------------------------------------------------------------
# Per-row context
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _Row:
    record: RawRecord
    provenance: Provenance
    config: ReconConfig
    source: SourceMappingDef
    sync_states: SyncStates

    @property
    def record_id(self) -> str | None:
        raw = self.record.data.get("id")
        return str(raw) if raw is not None else None

    def malformed(self, *reasons: str) -> MalformedRecordError:
        return MalformedRecordError(
            self.provenance.value, self.record.entity.value, self.record_id, list(reasons),
        )

    def warning(self, code: str, message: str, **details: Any) -> Diagnostic:
        return Diagnostic(
            code=code,
            message=message,
            provenance=self.provenance,
            record_id=self.record_id,
            details={"entity": self.record.entity.value, **details},
        )


def _provenance_of(record: RawRecord) -> Provenance:
    if isinstance(record, ExternalRecord):
        return Provenance.EXTERNAL
    if isinstance(record, LocalRecord):
        return Provenance.LOCAL
    raise TypeError(
        f"Expected LocalRecord or ExternalRecord, got {type(record).__name__}"
    )


def _row(
    record: RawRecord, config: ReconConfig, sync_states: SyncStates | None,
) -> _Row:
    provenance = _provenance_of(record)
    return _Row(
        record=record,
        provenance=provenance,
        config=config,
        source=config.source(provenance.value),
        sync_states=sync_states or {},
    )


# ---------------------------------------------------------------------------
# Shared steps
# ---------------------------------------------------------------------------


def _map(row: _Row) -> dict[str, Any]:
    mappings = field_mappings_for(row.provenance, row.record.entity)
    if mappings is None:
        raise row.malformed(
            f"{row.provenance.value} source does not supply {row.record.entity.value} rows"
        )
    result = apply_mapping(row.record.data, mappings)
    if not result.success:
        raise row.malformed(*(e.message for e in result.errors))
    return result.mapped_data


def _minor_units(row: _Row, mapped: dict[str, Any], key: str) -> int:
    try:
        return to_minor_units(mapped[key], row.config.minor_unit_exponent)
    except ValueError as e:
        raise row.malformed(str(e)) from e


def _check_currency(row: _Row, mapped: dict[str, Any]) -> None:
    currency = mapped.get("currency")
    if currency is not None and currency != row.config.currency:
        raise row.malformed(
            f"currency {currency} does not match configured {row.config.currency}"
        )


def _category(row: _Row, mapped: dict[str, Any], warnings: list[Diagnostic]) -> str:
    raw = mapped.get("category")
    category, recognised = row.config.resolve_category(row.source.name, raw)
    if not recognised:
        warnings.append(row.warning(
            UNKNOWN_CATEGORY,
            f"Unknown category {raw!r} filed under {UNCATEGORISED}",
            raw_category=raw,
        ))
    return category


def _sync_metadata(
    row: _Row, mapped: dict[str, Any], warnings: list[Diagnostic],
) -> tuple[datetime | None, SyncStatus | None]:
    """
    Resolve ``(synced_at, sync_status)`` for an external row.

    Row value first, then the entity-level sync state, then derived from
    whether the row has ever been synced.
    """
    if row.provenance is Provenance.LOCAL:
        return None, None

    state = row.sync_states.get(row.record.entity)
    synced_at = mapped.get("synced_at")
    if synced_at is None and state is not None:
        synced_at = apply_transform(state.last_sync_date, "to_utc")

    candidates = [("row", mapped.get("sync_status"))]
    if state is not None:
        candidates.append(("entity", apply_transform(state.status, "key")))
    for origin, raw in candidates:
        if not raw:
            continue
        value = row.source.sync_status_values.get(raw)
        if value is not None:
            return synced_at, SyncStatus(value)
        warnings.append(row.warning(
            UNKNOWN_SYNC_STATUS,
            f"Unknown {origin} sync status {raw!r} ignored",
            raw_sync_status=raw,
        ))

    return synced_at, SyncStatus.SUCCESS if synced_at is not None else SyncStatus.PENDING


# ---------------------------------------------------------------------------
# Entity handlers
# ---------------------------------------------------------------------------


def _transaction(row: _Row) -> tuple[FinancialRecord, list[Diagnostic]]:
    mapped = _map(row)
    warnings: list[Diagnostic] = []

    kind = row.source.kind_values.get(mapped["kind"])
    if kind is None:
        raise row.malformed(f"unknown transaction kind {mapped['kind']!r}")

    raw_status = mapped["status"]
    if raw_status not in row.source.transaction_status_values:
        raise row.malformed(f"unknown transaction status {raw_status!r}")
    status = row.source.transaction_status_values[raw_status]
    if status is None:
        raise RecordSkipped(
            NOT_AN_ECONOMIC_EVENT,
            f"{row.provenance.value} transaction with status {raw_status!r} "
            "is not an economic event",
            row.record_id,
        )

    _check_currency(row, mapped)
    amount = _minor_units(row, mapped, "amount")
    category = _category(row, mapped, warnings)
    synced_at, sync_status = _sync_metadata(row, mapped, warnings)

    external_id = (
        mapped["id"] if row.provenance is Provenance.EXTERNAL
        else mapped.get("external_id")
    )
    record = FinancialRecord(
        id=mapped["id"],
        building_id=mapped["building_id"],
        kind=RecordKind(kind),
        category=category,
        amount_minor_units=amount,
        date=mapped["date"],
        provenance=row.provenance,
        status=RecordStatus(status),
        description=mapped.get("description", ""),
        reference=mapped.get("reference") or None,
        external_id=external_id or None,
        synced_at=synced_at,
        sync_status=sync_status,
    )
    return record, warnings


def _budget_line(row: _Row) -> tuple[BudgetLine, list[Diagnostic]]:
    mapped = _map(row)
    warnings: list[Diagnostic] = []
    synced_at, sync_status = _sync_metadata(row, mapped, warnings)
    line = BudgetLine(
        category=_category(row, mapped, warnings),
        period=str(mapped["year"]),
        budgeted_minor_units=_minor_units(row, mapped, "budgeted"),
        actual_minor_units=_minor_units(row, mapped, "actual"),
        provenance=row.provenance,
        synced_at=synced_at,
        sync_status=sync_status,
    )
    return line, warnings


def _invoice(row: _Row) -> tuple[Invoice, list[Diagnostic]]:
    mapped = _map(row)
    warnings: list[Diagnostic] = []

    raw_status = mapped["status"]
    if raw_status not in row.source.invoice_status_values:
        raise row.malformed(f"unknown invoice status {raw_status!r}")
    status = row.source.invoice_status_values[raw_status]
    if status is None:
        raise RecordSkipped(
            SETTLED_INVOICE,
            f"{row.provenance.value} invoice with status {raw_status!r} is settled",
            row.record_id,
        )

    _check_currency(row, mapped)
    synced_at, sync_status = _sync_metadata(row, mapped, warnings)
    external_id = (
        mapped["id"] if row.provenance is Provenance.EXTERNAL
        else mapped.get("external_id")
    )
    invoice = Invoice(
        id=mapped["id"],
        amount_minor_units=_minor_units(row, mapped, "amount"),
        status=InvoiceStatus(status),
        due_date=mapped["due_date"],
        provenance=row.provenance,
        external_id=external_id or None,
        synced_at=synced_at,
        sync_status=sync_status,
    )
    return invoice, warnings


def _demand(row: _Row) -> tuple[ServiceChargeDemand, list[Diagnostic]]:
    mapped = _map(row)
    demand = ServiceChargeDemand(
        id=mapped["id"],
        unit_id=mapped["unit_id"],
        amount_minor_units=_minor_units(row, mapped, "amount"),
        due_date=mapped["due_date"],
    )
    return demand, []


def _payment(row: _Row) -> tuple[ServiceChargePayment, list[Diagnostic]]:
    mapped = _map(row)
    status = row.source.payment_status_values.get(mapped["status"])
    if status is None:
        raise row.malformed(f"unknown payment status {mapped['status']!r}")
    payment = ServiceChargePayment(
        id=mapped["id"],
        amount_minor_units=_minor_units(row, mapped, "amount"),
        payment_date=mapped["payment_date"],
        status=PaymentStatus(status),
        demand_id=mapped.get("demand_id"),
        unit_id=mapped.get("unit_id"),
    )
    return payment, []


_HANDLERS: dict[EntityType, Callable[[_Row], tuple[Any, list[Diagnostic]]]] = {
    EntityType.TRANSACTION: _transaction,
    EntityType.BUDGET_LINE: _budget_line,
    EntityType.INVOICE: _invoice,
    EntityType.SERVICE_CHARGE_DEMAND: _demand,
    EntityType.SERVICE_CHARGE_PAYMENT: _payment,
}


def _expect(record: RawRecord, entity: EntityType) -> None:
    if record.entity is not entity:
        raise ValueError(
            f"Expected a {entity.value} record, got {record.entity.value}"
        )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def normalize_transaction(
    record: RawRecord, config: ReconConfig, sync_states: SyncStates | None = None,
) -> FinancialRecord:
    """
    Normalize one transaction row.

    Raises:
        MalformedRecordError: Missing amount or date, unknown kind or status,
            currency mismatch, or an amount that is not exact in minor units.
        RecordSkipped: The status maps to no economic event.
    """
    _expect(record, EntityType.TRANSACTION)
    return _transaction(_row(record, config, sync_states))[0]


def normalize_budget_line(
    record: RawRecord, config: ReconConfig, sync_states: SyncStates | None = None,
) -> BudgetLine:
    _expect(record, EntityType.BUDGET_LINE)
    return _budget_line(_row(record, config, sync_states))[0]


def normalize_invoice(
    record: RawRecord, config: ReconConfig, sync_states: SyncStates | None = None,
) -> Invoice:
    """Normalize one invoice row. Paid invoices raise ``RecordSkipped``."""
    _expect(record, EntityType.INVOICE)
    return _invoice(_row(record, config, sync_states))[0]


def normalize_demand(record: RawRecord, config: ReconConfig) -> ServiceChargeDemand:
    _expect(record, EntityType.SERVICE_CHARGE_DEMAND)
    return _demand(_row(record, config, None))[0]


def normalize_payment(record: RawRecord, config: ReconConfig) -> ServiceChargePayment:
    _expect(record, EntityType.SERVICE_CHARGE_PAYMENT)
    return _payment(_row(record, config, None))[0]


def normalize_batch(
    records: Iterable[RawRecord],
    config: ReconConfig,
    sync_states: SyncStates | None = None,
) -> NormalizationResult:
    """
    Normalize a mixed batch of raw rows, absorbing every data-quality problem.

    Malformed rows land in ``diagnostics.dropped``, non-events in
    ``diagnostics.skipped`` and recoverable oddities (unknown category or
    sync status) in ``diagnostics.warnings``. Output order follows input
    order.
    """
    t0 = time.monotonic()
    items: list[CanonicalItem] = []
    dropped: list[Diagnostic] = []
    skipped: list[Diagnostic] = []
    warnings: list[Diagnostic] = []

    for record in records:
        row = _row(record, config, sync_states)
        handler = _HANDLERS[record.entity]
        try:
            item, row_warnings = handler(row)
        except MalformedRecordError as e:
            logger.warning("record_dropped", extra={
                "provenance": row.provenance.value,
                "entity": record.entity.value,
                "record_id": e.record_id,
                "reasons": e.reasons,
            })
            dropped.append(Diagnostic.from_error(
                e,
                provenance=row.provenance,
                record_id=e.record_id,
                entity=record.entity.value,
                reasons=tuple(e.reasons),
            ))
            continue
        except RecordSkipped as s:
            skipped.append(Diagnostic(
                code=s.code,
                message=s.reason,
                provenance=row.provenance,
                record_id=s.record_id,
                details={"entity": record.entity.value},
            ))
            continue
        items.append(item)
        warnings.extend(row_warnings)

    duration_ms = round((time.monotonic() - t0) * 1000, 2)
    logger.info("normalization_completed", extra={
        "item_count": len(items),
        "dropped_count": len(dropped),
        "skipped_count": len(skipped),
        "warning_count": len(warnings),
        "duration_ms": duration_ms,
    })

    return NormalizationResult(
        items=tuple(items),
        diagnostics=ReconciliationDiagnostics(
            dropped=tuple(dropped),
            skipped=tuple(skipped),
            warnings=tuple(warnings),
        ),
    )
