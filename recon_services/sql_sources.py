"""
SQLAlchemy store adapters.

Contract:
    ``SqlLocalStore`` and ``SqlExternalSyncStore`` read the application's
    tables through a session factory and return tagged raw records keyed by
    the source column names. They never write.

Architecture: recon_services. Uses recon_kernel.models for the table
    mappings; the normalizer downstream owns every interpretation of the
    values.

Query rules:
    - Transactions: this building, dated inside the period.
    - Budget lines: this building, the period's year.
    - Invoices: this building, any date (outstanding is an as-of figure).
    - Service-charge demands and payments: this building, due or paid
      inside the period.
    - Sync status: latest run per entity type for this building.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from recon_ingestion.domain.types import (
    EntitySyncState,
    EntityType,
    ExternalRecord,
    ExternalSnapshot,
    LocalRecord,
    LocalSnapshot,
)
from recon_kernel.db.base import Base
from recon_kernel.domain.values import ReportingPeriod
from recon_kernel.logging_config import get_logger
from recon_kernel.models import (
    BudgetItemModel,
    InvoiceModel,
    MRIBudgetModel,
    MRIInvoiceModel,
    MRISyncStatusModel,
    MRITransactionModel,
    ServiceChargeDemandModel,
    ServiceChargePaymentModel,
    TransactionModel,
)

logger = get_logger("services.sql_sources")

# Entity names as written by the sync job
_SYNC_ENTITY_NAMES: dict[str, EntityType] = {
    "transaction": EntityType.TRANSACTION,
    "transactions": EntityType.TRANSACTION,
    "budget": EntityType.BUDGET_LINE,
    "budgets": EntityType.BUDGET_LINE,
    "budget_line": EntityType.BUDGET_LINE,
    "invoice": EntityType.INVOICE,
    "invoices": EntityType.INVOICE,
}


def row_to_dict(obj: Base) -> dict[str, Any]:
    """Column values of an ORM row keyed by column name."""
    return {c.key: getattr(obj, c.key) for c in obj.__table__.columns}


class SqlLocalStore:
    """Local ledger store backed by SQLAlchemy.

    Contract:
        - ``query()`` opens one session per call and closes it.
        - Rows come back ordered by id so snapshots are reproducible.

    Non-goals:
        - Does NOT normalize or validate; malformed rows pass through.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def query(self, building_id: str, period: ReportingPeriod) -> LocalSnapshot:
        session = self._session_factory()
        try:
            transactions = session.execute(
                select(TransactionModel)
                .where(
                    TransactionModel.building_id == building_id,
                    TransactionModel.transaction_date >= period.start,
                    TransactionModel.transaction_date <= period.end,
                )
                .order_by(TransactionModel.id)
            ).scalars().all()
            budgets = session.execute(
                select(BudgetItemModel)
                .where(
                    BudgetItemModel.building_id == building_id,
                    BudgetItemModel.year == period.year,
                )
                .order_by(BudgetItemModel.id)
            ).scalars().all()
            invoices = session.execute(
                select(InvoiceModel)
                .where(InvoiceModel.building_id == building_id)
                .order_by(InvoiceModel.id)
            ).scalars().all()
            demands = session.execute(
                select(ServiceChargeDemandModel)
                .where(
                    ServiceChargeDemandModel.building_id == building_id,
                    ServiceChargeDemandModel.due_date >= period.start,
                    ServiceChargeDemandModel.due_date <= period.end,
                )
                .order_by(ServiceChargeDemandModel.id)
            ).scalars().all()
            payments = session.execute(
                select(ServiceChargePaymentModel)
                .where(
                    ServiceChargePaymentModel.building_id == building_id,
                    ServiceChargePaymentModel.payment_date >= period.start,
                    ServiceChargePaymentModel.payment_date <= period.end,
                )
                .order_by(ServiceChargePaymentModel.id)
            ).scalars().all()

            snapshot = LocalSnapshot(
                transactions=_wrap(LocalRecord, EntityType.TRANSACTION, transactions),
                budget_lines=_wrap(LocalRecord, EntityType.BUDGET_LINE, budgets),
                invoices=_wrap(LocalRecord, EntityType.INVOICE, invoices),
                service_charge_demands=_wrap(
                    LocalRecord, EntityType.SERVICE_CHARGE_DEMAND, demands,
                ),
                service_charge_payments=_wrap(
                    LocalRecord, EntityType.SERVICE_CHARGE_PAYMENT, payments,
                ),
            )
        finally:
            session.close()

        logger.debug("local_store_queried", extra={
            "building_id": building_id,
            "period_code": period.code,
            "row_count": len(snapshot.all_records()),
        })
        return snapshot


class SqlExternalSyncStore:
    """External sync mirror store backed by SQLAlchemy.

    Contract:
        - ``query()`` opens one session per call and closes it.
        - ``sync_status_by_entity`` holds the latest run per entity type;
          unknown entity names are ignored.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def query(self, building_id: str, period: ReportingPeriod) -> ExternalSnapshot:
        session = self._session_factory()
        try:
            transactions = session.execute(
                select(MRITransactionModel)
                .where(
                    MRITransactionModel.building_id == building_id,
                    MRITransactionModel.transaction_date >= period.start,
                    MRITransactionModel.transaction_date <= period.end,
                )
                .order_by(MRITransactionModel.id)
            ).scalars().all()
            budgets = session.execute(
                select(MRIBudgetModel)
                .where(
                    MRIBudgetModel.building_id == building_id,
                    MRIBudgetModel.year == period.year,
                )
                .order_by(MRIBudgetModel.id)
            ).scalars().all()
            invoices = session.execute(
                select(MRIInvoiceModel)
                .where(MRIInvoiceModel.building_id == building_id)
                .order_by(MRIInvoiceModel.id)
            ).scalars().all()
            runs = session.execute(
                select(MRISyncStatusModel)
                .where(MRISyncStatusModel.building_id == building_id)
                .order_by(
                    MRISyncStatusModel.last_sync_date.asc().nulls_first(),
                    MRISyncStatusModel.id,
                )
            ).scalars().all()

            sync_states: dict[EntityType, EntitySyncState] = {}
            for run in runs:
                entity = _SYNC_ENTITY_NAMES.get(run.entity_type.strip().lower())
                if entity is None:
                    continue
                # Later rows overwrite earlier ones
                sync_states[entity] = EntitySyncState(
                    status=run.status, last_sync_date=run.last_sync_date,
                )

            snapshot = ExternalSnapshot(
                transactions=_wrap(ExternalRecord, EntityType.TRANSACTION, transactions),
                invoices=_wrap(ExternalRecord, EntityType.INVOICE, invoices),
                budget_lines=_wrap(ExternalRecord, EntityType.BUDGET_LINE, budgets),
                sync_status_by_entity=sync_states,
            )
        finally:
            session.close()

        logger.debug("external_store_queried", extra={
            "building_id": building_id,
            "period_code": period.code,
            "row_count": len(snapshot.all_records()),
            "sync_entity_count": len(sync_states),
        })
        return snapshot


def _wrap(variant: type, entity: EntityType, rows: list[Base]) -> tuple:
    return tuple(variant(entity=entity, data=row_to_dict(row)) for row in rows)
