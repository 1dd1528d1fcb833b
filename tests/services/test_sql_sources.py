"""
Tests for the SQLAlchemy store adapters against an in-memory SQLite database.

Covers:
- Query rules per entity (building, period, year)
- Latest sync run per entity type
- End-to-end dashboard build from the database
"""

import asyncio
from datetime import date, datetime
from decimal import Decimal

import pytest

from recon_ingestion.domain.types import EntityType, ExternalRecord, LocalRecord
from recon_kernel.domain.values import ReportingPeriod, SyncStatus
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
from recon_services import FinancialDashboardService
from recon_services.sql_sources import SqlExternalSyncStore, SqlLocalStore, row_to_dict

Q2 = ReportingPeriod.parse("2025-Q2")


@pytest.fixture
def seeded(sqlite_session_factory):
    session = sqlite_session_factory()
    session.add_all([
        TransactionModel(
            id="loc-1", building_id="bldg-1", type="income", category="Service Charges",
            amount=Decimal("1000.00"), transaction_date=date(2025, 4, 1), status="completed",
            description="Flat 1 Q2 service charge",
        ),
        TransactionModel(
            id="loc-2", building_id="bldg-1", type="expense", category="Cleaning",
            amount=Decimal("120.00"), transaction_date=date(2025, 3, 15), status="completed",
        ),
        TransactionModel(
            id="loc-other", building_id="bldg-2", type="income", category="Service Charges",
            amount=Decimal("5.00"), transaction_date=date(2025, 4, 1), status="completed",
        ),
        BudgetItemModel(
            id="b-2025", building_id="bldg-1", year=2025, category="Cleaning",
            annual_estimate=Decimal("1000.00"), actual_spent=Decimal("1100.00"),
        ),
        BudgetItemModel(
            id="b-2024", building_id="bldg-1", year=2024, category="Cleaning",
            annual_estimate=Decimal("900.00"), actual_spent=Decimal("900.00"),
        ),
        InvoiceModel(
            id="inv-1", building_id="bldg-1", amount=Decimal("500.00"), status="overdue",
            due_date=date(2024, 12, 1),
        ),
        ServiceChargeDemandModel(
            id="d1", building_id="bldg-1", unit_id="flat-1", amount=Decimal("1000.00"),
            due_date=date(2025, 4, 1),
        ),
        ServiceChargeDemandModel(
            id="d0", building_id="bldg-1", unit_id="flat-1", amount=Decimal("1000.00"),
            due_date=date(2025, 1, 1),
        ),
        ServiceChargePaymentModel(
            id="p1", building_id="bldg-1", unit_id="flat-1", demand_id="d1",
            amount=Decimal("400.00"), payment_date=date(2025, 4, 5), status="partial",
        ),
        MRITransactionModel(
            id="X", building_id="bldg-1", transaction_type="payment", category="SVC CHG",
            amount=Decimal("1000.00"), currency="GBP", transaction_date=date(2025, 4, 1),
            status="posted", synced_at=datetime(2025, 4, 29, 6, 0),
        ),
        MRIBudgetModel(
            id="mb-1", building_id="bldg-1", year=2025, category="Cleaning",
            budget_amount=Decimal("200.00"), actual_amount=Decimal("100.00"),
            synced_at=datetime(2025, 4, 29, 6, 0),
        ),
        MRIInvoiceModel(
            id="mri-inv-1", building_id="bldg-1", amount=Decimal("250.00"), currency="GBP",
            due_date=date(2025, 4, 20), status="overdue", synced_at=datetime(2025, 4, 29, 6, 0),
        ),
        MRISyncStatusModel(
            id="run-1", building_id="bldg-1", entity_type="transactions", status="success",
            last_sync_date=datetime(2025, 4, 28, 6, 0),
        ),
        MRISyncStatusModel(
            id="run-2", building_id="bldg-1", entity_type="transactions", status="failed",
            last_sync_date=datetime(2025, 4, 29, 6, 0), error_message="timeout",
        ),
        MRISyncStatusModel(
            id="run-3", building_id="bldg-1", entity_type="documents", status="success",
            last_sync_date=datetime(2025, 4, 29, 6, 0),
        ),
    ])
    session.commit()
    session.close()
    return sqlite_session_factory


class TestSqlLocalStore:
    def test_transactions_filtered_by_building_and_period(self, seeded):
        snapshot = SqlLocalStore(seeded).query("bldg-1", Q2)
        assert [r.data["id"] for r in snapshot.transactions] == ["loc-1"]
        assert all(isinstance(r, LocalRecord) for r in snapshot.all_records())
        assert snapshot.transactions[0].entity is EntityType.TRANSACTION

    def test_rows_keyed_by_column_name(self, seeded):
        row = SqlLocalStore(seeded).query("bldg-1", Q2).transactions[0].data
        assert row["type"] == "income"
        assert row["transaction_date"] == date(2025, 4, 1)
        assert Decimal(row["amount"]) == Decimal("1000.00")

    def test_budget_by_year(self, seeded):
        snapshot = SqlLocalStore(seeded).query("bldg-1", Q2)
        assert [r.data["id"] for r in snapshot.budget_lines] == ["b-2025"]

    def test_invoices_not_period_filtered(self, seeded):
        snapshot = SqlLocalStore(seeded).query("bldg-1", Q2)
        assert [r.data["id"] for r in snapshot.invoices] == ["inv-1"]

    def test_service_charges_by_period(self, seeded):
        snapshot = SqlLocalStore(seeded).query("bldg-1", Q2)
        assert [r.data["id"] for r in snapshot.service_charge_demands] == ["d1"]
        assert [r.data["id"] for r in snapshot.service_charge_payments] == ["p1"]

    def test_unknown_building_empty(self, seeded):
        assert SqlLocalStore(seeded).query("bldg-404", Q2).all_records() == ()


class TestSqlExternalSyncStore:
    def test_rows(self, seeded):
        snapshot = SqlExternalSyncStore(seeded).query("bldg-1", Q2)
        assert [r.data["id"] for r in snapshot.transactions] == ["X"]
        assert [r.data["id"] for r in snapshot.invoices] == ["mri-inv-1"]
        assert [r.data["id"] for r in snapshot.budget_lines] == ["mb-1"]
        assert all(isinstance(r, ExternalRecord) for r in snapshot.all_records())

    def test_latest_run_per_entity(self, seeded):
        states = SqlExternalSyncStore(seeded).query("bldg-1", Q2).sync_status_by_entity
        assert set(states) == {EntityType.TRANSACTION}
        assert states[EntityType.TRANSACTION].status == "failed"


class TestRowToDict:
    def test_all_columns(self, seeded):
        session = seeded()
        try:
            model = session.get(InvoiceModel, "inv-1")
            data = row_to_dict(model)
        finally:
            session.close()
        assert data["id"] == "inv-1"
        assert data["status"] == "overdue"
        assert "external_id" in data


class TestDashboardFromDatabase:
    def test_end_to_end(self, seeded, config, clock):
        service = FinancialDashboardService(
            SqlLocalStore(seeded), SqlExternalSyncStore(seeded), config=config, clock=clock,
        )

        dashboard = asyncio.run(service.build_dashboard("bldg-1", "2025-Q2"))
        summary = dashboard.summary

        # loc-1 and X are the same service charge
        assert summary.total_income == 100000
        assert summary.total_expense == 0
        assert summary.overdue_payments == 75000
        assert summary.collection_rate == Decimal("40")
        assert summary.total_arrears == 60000
        assert summary.arrears_count == 1
        # latest transactions run failed
        assert summary.sync_status is SyncStatus.ERROR
        assert dashboard.diagnostics.dropped == ()

        (cleaning,) = dashboard.budget_comparisons
        assert cleaning.budgeted == 120000
        assert cleaning.actual == 120000
        assert cleaning.is_external
