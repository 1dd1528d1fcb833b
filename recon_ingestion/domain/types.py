"""
recon_ingestion.domain.types -- Pure frozen dataclasses for raw input.

ZERO I/O. A raw row is always wrapped in exactly one of two tagged
variants, ``LocalRecord`` or ``ExternalRecord``, so its provenance is
known from its type rather than guessed from which fields it carries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


# =============================================================================
# Entities and raw variants
# =============================================================================


class EntityType(str, Enum):
    """Kinds of row the stores hand to the normalizer."""

    TRANSACTION = "transaction"
    BUDGET_LINE = "budget_line"
    INVOICE = "invoice"
    SERVICE_CHARGE_DEMAND = "service_charge_demand"
    SERVICE_CHARGE_PAYMENT = "service_charge_payment"


@dataclass(frozen=True)
class LocalRecord:
    """A row from the local ledger, keyed by its source column names."""

    entity: EntityType
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ExternalRecord:
    """A row from the external sync mirror, keyed by its source column names."""

    entity: EntityType
    data: dict[str, Any] = field(default_factory=dict)


RawRecord = LocalRecord | ExternalRecord


@dataclass(frozen=True)
class EntitySyncState:
    """Latest sync-run outcome for one entity type, as the sync job reported it."""

    status: str
    last_sync_date: datetime | None = None


@dataclass(frozen=True)
class LocalSnapshot:
    """Everything the local store returned for one building and period."""

    transactions: tuple[LocalRecord, ...] = ()
    budget_lines: tuple[LocalRecord, ...] = ()
    invoices: tuple[LocalRecord, ...] = ()
    service_charge_demands: tuple[LocalRecord, ...] = ()
    service_charge_payments: tuple[LocalRecord, ...] = ()

    def all_records(self) -> tuple[LocalRecord, ...]:
        return (
            self.transactions
            + self.budget_lines
            + self.invoices
            + self.service_charge_demands
            + self.service_charge_payments
        )


@dataclass(frozen=True)
class ExternalSnapshot:
    """Everything the external sync store returned for one building and period."""

    transactions: tuple[ExternalRecord, ...] = ()
    invoices: tuple[ExternalRecord, ...] = ()
    budget_lines: tuple[ExternalRecord, ...] = ()
    sync_status_by_entity: dict[EntityType, EntitySyncState] = field(
        default_factory=dict
    )

    def all_records(self) -> tuple[ExternalRecord, ...]:
        return self.transactions + self.invoices + self.budget_lines


# =============================================================================
# Field mapping
# =============================================================================


class FieldType(str, Enum):
    """Target types the mapping engine coerces to."""

    STRING = "string"
    INTEGER = "integer"
    DECIMAL = "decimal"
    DATE = "date"
    DATETIME = "datetime"
    BOOLEAN = "boolean"


@dataclass(frozen=True)
class FieldMapping:
    """Single field mapping: source column -> target field with type and transform."""

    source: str  # Source column name
    target: str  # Canonical field name
    field_type: FieldType
    required: bool = False
    default: Any = None
    format: str | None = None  # e.g. date format "%d/%m/%Y"
    transform: str | None = None  # e.g. "key", "to_decimal", "to_utc"


@dataclass(frozen=True)
class ValidationError:
    """One field-level mapping failure."""

    code: str
    message: str
    field: str = ""
