"""
Module: recon_kernel.models.local
Responsibility: ORM mapping of the application's own ledger tables, as
    written by the submission and approval workflows.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Read-only from the engine's perspective; rows are created and mutated
      by user actions outside this package.
    - Amounts are stored in major units; ``external_id`` is the explicit link
      a user sets when a local entry is known to correspond to an external
      transaction or invoice.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from recon_kernel.db.base import Base


class TransactionModel(Base):
    """Income or expense entered in the local ledger."""

    __tablename__ = "transactions"

    __table_args__ = (
        Index("idx_transactions_building_date", "building_id", "transaction_date"),
    )

    building_id: Mapped[str] = mapped_column(String(64), nullable=False)
    description: Mapped[str] = mapped_column(String(500), default="")
    amount: Mapped[Decimal | None]
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    category: Mapped[str | None] = mapped_column(String(100))
    transaction_date: Mapped[date | None] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(20), default="pending")
    reference_number: Mapped[str | None] = mapped_column(String(100))
    external_id: Mapped[str | None] = mapped_column(String(64))


class BudgetItemModel(Base):
    """Annual budget estimate and spend for one category."""

    __tablename__ = "budget_items"

    building_id: Mapped[str] = mapped_column(String(64), nullable=False)
    year: Mapped[int]
    category: Mapped[str | None] = mapped_column(String(100))
    description: Mapped[str] = mapped_column(String(500), default="")
    annual_estimate: Mapped[Decimal | None]
    actual_spent: Mapped[Decimal | None]


class InvoiceModel(Base):
    """Supplier invoice recorded locally."""

    __tablename__ = "invoices"

    building_id: Mapped[str] = mapped_column(String(64), nullable=False)
    invoice_number: Mapped[str | None] = mapped_column(String(100))
    amount: Mapped[Decimal | None]
    status: Mapped[str] = mapped_column(String(20), default="pending")
    due_date: Mapped[date | None] = mapped_column(Date)
    external_id: Mapped[str | None] = mapped_column(String(64))


class ServiceChargeDemandModel(Base):
    """Service-charge demand issued to a unit."""

    __tablename__ = "service_charge_demands"

    building_id: Mapped[str] = mapped_column(String(64), nullable=False)
    unit_id: Mapped[str | None] = mapped_column(String(64))
    amount: Mapped[Decimal | None]
    due_date: Mapped[date | None] = mapped_column(Date)


class ServiceChargePaymentModel(Base):
    """Payment received against a service-charge demand."""

    __tablename__ = "service_charge_payments"

    building_id: Mapped[str] = mapped_column(String(64), nullable=False)
    unit_id: Mapped[str | None] = mapped_column(String(64))
    demand_id: Mapped[str | None] = mapped_column(String(64))
    amount: Mapped[Decimal | None]
    payment_date: Mapped[date | None] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(20), default="pending")
