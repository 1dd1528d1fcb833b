"""
Module: recon_kernel.models.external
Responsibility: ORM mapping of the tables the periodic MRI sync job fills.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only from the engine's perspective: the sync job supersedes
      rows, the engine never writes them.
    - ``id`` is the identifier assigned by the external system.
    - ``synced_at`` records when the sync job last wrote the row.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from recon_kernel.db.base import Base


class MRITransactionModel(Base):
    """Payment, charge or refund as reported by the external system."""

    __tablename__ = "mri_transactions"

    __table_args__ = (
        Index("idx_mri_transactions_building_date", "building_id", "transaction_date"),
    )

    building_id: Mapped[str] = mapped_column(String(64), nullable=False)
    mri_property_id: Mapped[str | None] = mapped_column(String(64))
    transaction_type: Mapped[str] = mapped_column(String(20), nullable=False)
    category: Mapped[str | None] = mapped_column(String(100))
    description: Mapped[str] = mapped_column(String(500), default="")
    amount: Mapped[Decimal | None]
    currency: Mapped[str] = mapped_column(String(3), default="GBP")
    transaction_date: Mapped[date | None] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(20), default="pending")
    reference: Mapped[str | None] = mapped_column(String(100))
    synced_at: Mapped[datetime | None]


class MRIBudgetModel(Base):
    """Budget line as reported by the external system."""

    __tablename__ = "mri_budgets"

    building_id: Mapped[str] = mapped_column(String(64), nullable=False)
    year: Mapped[int]
    category: Mapped[str | None] = mapped_column(String(100))
    budget_amount: Mapped[Decimal | None]
    actual_amount: Mapped[Decimal | None]
    status: Mapped[str] = mapped_column(String(20), default="active")
    synced_at: Mapped[datetime | None]


class MRIInvoiceModel(Base):
    """Supplier invoice as reported by the external system."""

    __tablename__ = "mri_invoices"

    building_id: Mapped[str] = mapped_column(String(64), nullable=False)
    invoice_number: Mapped[str | None] = mapped_column(String(100))
    amount: Mapped[Decimal | None]
    currency: Mapped[str] = mapped_column(String(3), default="GBP")
    due_date: Mapped[date | None] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(20), default="pending")
    synced_at: Mapped[datetime | None]


class MRISyncStatusModel(Base):
    """Outcome of the latest sync run per entity type."""

    __tablename__ = "mri_sync_status"

    building_id: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(30), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    last_sync_date: Mapped[datetime | None]
    error_message: Mapped[str | None] = mapped_column(Text)
