"""
Field-mapping tables, one per (provenance, entity) pair.

Each table names the source columns the store returns and the canonical
field they fill. Vocabulary (kinds, statuses, category aliases) is not
mapped here; it comes from configuration and is applied by the normalizer.
"""

from __future__ import annotations

from decimal import Decimal

from recon_ingestion.domain.types import EntityType, FieldMapping, FieldType
from recon_kernel.domain.values import Provenance

_ID = FieldMapping("id", "id", FieldType.STRING, required=True, transform="strip")
_DESCRIPTION = FieldMapping("description", "description", FieldType.STRING, default="", transform="strip")
_CATEGORY = FieldMapping("category", "category", FieldType.STRING, transform="strip")
_SYNCED_AT = FieldMapping("synced_at", "synced_at", FieldType.DATETIME, transform="to_utc")
_SYNC_STATUS = FieldMapping("sync_status", "sync_status", FieldType.STRING, transform="key")
_CURRENCY = FieldMapping("currency", "currency", FieldType.STRING, transform="upper")


def _amount(source: str, target: str = "amount", required: bool = True) -> FieldMapping:
    return FieldMapping(
        source, target, FieldType.DECIMAL,
        required=required,
        default=None if required else Decimal("0"),
        transform="to_decimal",
    )


def _day(source: str, target: str) -> FieldMapping:
    return FieldMapping(source, target, FieldType.DATE, required=True, transform="to_date")


def _status(source: str = "status", default: str = "pending") -> FieldMapping:
    return FieldMapping(source, "status", FieldType.STRING, default=default, transform="key")


LOCAL_TRANSACTION = (
    _ID,
    FieldMapping("building_id", "building_id", FieldType.STRING, required=True),
    FieldMapping("type", "kind", FieldType.STRING, required=True, transform="key"),
    _CATEGORY,
    _amount("amount"),
    _day("transaction_date", "date"),
    _status(),
    _DESCRIPTION,
    FieldMapping("reference_number", "reference", FieldType.STRING, transform="strip"),
    FieldMapping("external_id", "external_id", FieldType.STRING, transform="strip"),
)

EXTERNAL_TRANSACTION = (
    _ID,
    FieldMapping("building_id", "building_id", FieldType.STRING, required=True),
    FieldMapping("transaction_type", "kind", FieldType.STRING, required=True, transform="key"),
    _CATEGORY,
    _amount("amount"),
    _CURRENCY,
    _day("transaction_date", "date"),
    _status(),
    _DESCRIPTION,
    FieldMapping("reference", "reference", FieldType.STRING, transform="strip"),
    _SYNCED_AT,
    _SYNC_STATUS,
)

LOCAL_BUDGET_LINE = (
    _ID,
    _CATEGORY,
    FieldMapping("year", "year", FieldType.INTEGER, required=True),
    _amount("annual_estimate", "budgeted"),
    _amount("actual_spent", "actual", required=False),
)

EXTERNAL_BUDGET_LINE = (
    _ID,
    _CATEGORY,
    FieldMapping("year", "year", FieldType.INTEGER, required=True),
    _amount("budget_amount", "budgeted"),
    _amount("actual_amount", "actual", required=False),
    _SYNCED_AT,
    _SYNC_STATUS,
)

LOCAL_INVOICE = (
    _ID,
    _amount("amount"),
    _status(),
    _day("due_date", "due_date"),
    FieldMapping("external_id", "external_id", FieldType.STRING, transform="strip"),
)

EXTERNAL_INVOICE = (
    _ID,
    _amount("amount"),
    _CURRENCY,
    _status(),
    _day("due_date", "due_date"),
    _SYNCED_AT,
    _SYNC_STATUS,
)

LOCAL_DEMAND = (
    _ID,
    FieldMapping("unit_id", "unit_id", FieldType.STRING, required=True),
    _amount("amount"),
    _day("due_date", "due_date"),
)

LOCAL_PAYMENT = (
    _ID,
    FieldMapping("demand_id", "demand_id", FieldType.STRING),
    FieldMapping("unit_id", "unit_id", FieldType.STRING),
    _amount("amount"),
    _day("payment_date", "payment_date"),
    _status(),
)

_TABLES: dict[tuple[Provenance, EntityType], tuple[FieldMapping, ...]] = {
    (Provenance.LOCAL, EntityType.TRANSACTION): LOCAL_TRANSACTION,
    (Provenance.LOCAL, EntityType.BUDGET_LINE): LOCAL_BUDGET_LINE,
    (Provenance.LOCAL, EntityType.INVOICE): LOCAL_INVOICE,
    (Provenance.LOCAL, EntityType.SERVICE_CHARGE_DEMAND): LOCAL_DEMAND,
    (Provenance.LOCAL, EntityType.SERVICE_CHARGE_PAYMENT): LOCAL_PAYMENT,
    (Provenance.EXTERNAL, EntityType.TRANSACTION): EXTERNAL_TRANSACTION,
    (Provenance.EXTERNAL, EntityType.BUDGET_LINE): EXTERNAL_BUDGET_LINE,
    (Provenance.EXTERNAL, EntityType.INVOICE): EXTERNAL_INVOICE,
}


def field_mappings_for(
    provenance: Provenance, entity: EntityType,
) -> tuple[FieldMapping, ...] | None:
    """Mapping table for a source/entity pair, or None if the source never supplies it."""
    return _TABLES.get((provenance, entity))
