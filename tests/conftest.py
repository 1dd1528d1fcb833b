"""
Pytest fixtures for the reconciliation test suite.

Provides:
- Structured logging configured for every test, and a ``captured_logs``
  fixture that returns emitted records as parsed JSON dicts
- The default configuration and a deterministic clock
- Factories for canonical records and raw source rows
- An in-memory SQLite database for the store adapters
"""

import json
import logging
from datetime import UTC, date, datetime
from io import StringIO

import pytest

from recon_config import get_active_config
from recon_ingestion.domain.types import (
    EntityType,
    ExternalRecord,
    ExternalSnapshot,
    LocalRecord,
    LocalSnapshot,
)
from recon_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from recon_kernel.domain.clock import DeterministicClock
from recon_kernel.domain.values import (
    FinancialRecord,
    Provenance,
    RecordKind,
    RecordStatus,
    SyncStatus,
)
from recon_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

SYNCED_AT = datetime(2025, 4, 29, 6, 0, tzinfo=UTC)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture recon_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            engine.reconcile(...)
            logs = captured_logs()
            assert any(r["message"] == "reconciliation_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("recon_kernel")
    root.addHandler(handler)
    previous_level = root.level
    root.setLevel(logging.DEBUG)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Configuration and time
# =============================================================================


@pytest.fixture(scope="session")
def config():
    """The shipped building_finance configuration."""
    return get_active_config()


@pytest.fixture
def clock():
    """Clock fixed at 2025-04-30 12:00 UTC."""
    return DeterministicClock()


# =============================================================================
# Record factories
# =============================================================================


@pytest.fixture
def make_record():
    """
    Factory for canonical FinancialRecords.

    External records get sync metadata unless it is overridden.
    """

    def _make(
        id: str,
        *,
        provenance: Provenance = Provenance.LOCAL,
        kind: RecordKind = RecordKind.INCOME,
        amount: int = 10000,
        day: date = date(2025, 4, 1),
        category: str = "Service Charges",
        status: RecordStatus = RecordStatus.COMPLETED,
        **overrides,
    ) -> FinancialRecord:
        fields = dict(
            id=id,
            building_id="bldg-1",
            kind=kind,
            category=category,
            amount_minor_units=amount,
            date=day,
            provenance=provenance,
            status=status,
            description=f"Record {id}",
        )
        if provenance is Provenance.EXTERNAL:
            fields.update(
                external_id=id,
                synced_at=SYNCED_AT,
                sync_status=SyncStatus.SUCCESS,
            )
        fields.update(overrides)
        return FinancialRecord(**fields)

    return _make


@pytest.fixture
def local_row():
    """Factory for raw local rows, keyed by the ledger's column names."""

    def _make(entity: EntityType = EntityType.TRANSACTION, **data) -> LocalRecord:
        if entity is EntityType.TRANSACTION:
            base = {
                "id": "loc-1",
                "building_id": "bldg-1",
                "type": "income",
                "category": "Service Charges",
                "amount": "100.00",
                "transaction_date": "2025-04-01",
                "status": "completed",
                "description": "Quarterly service charge",
            }
        else:
            base = {}
        base.update(data)
        return LocalRecord(entity=entity, data=base)

    return _make


@pytest.fixture
def external_row():
    """Factory for raw external rows, keyed by the sync mirror's column names."""

    def _make(entity: EntityType = EntityType.TRANSACTION, **data) -> ExternalRecord:
        if entity is EntityType.TRANSACTION:
            base = {
                "id": "mri-1",
                "building_id": "bldg-1",
                "transaction_type": "payment",
                "category": "Service Charges",
                "amount": "100.00",
                "currency": "GBP",
                "transaction_date": "2025-04-01",
                "status": "completed",
                "description": "Quarterly service charge",
                "synced_at": "2025-04-29T06:00:00+00:00",
            }
        else:
            base = {}
        base.update(data)
        return ExternalRecord(entity=entity, data=base)

    return _make


# =============================================================================
# Stores
# =============================================================================


class StaticLocalStore:
    """Blocking local store returning a fixed snapshot."""

    def __init__(self, snapshot: LocalSnapshot | None = None, error: Exception | None = None):
        self.snapshot = snapshot or LocalSnapshot()
        self.error = error
        self.calls: list[tuple] = []

    def query(self, building_id, period):
        self.calls.append((building_id, period))
        if self.error is not None:
            raise self.error
        return self.snapshot


class StaticExternalStore:
    """Async external store returning a fixed snapshot, optionally after a delay."""

    def __init__(
        self,
        snapshot: ExternalSnapshot | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
    ):
        self.snapshot = snapshot or ExternalSnapshot()
        self.error = error
        self.delay = delay
        self.calls: list[tuple] = []

    async def query(self, building_id, period):
        import asyncio

        self.calls.append((building_id, period))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.snapshot


@pytest.fixture
def static_stores():
    """The fake store classes, for tests that build their own snapshots."""
    return StaticLocalStore, StaticExternalStore


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def sqlite_session_factory():
    """In-memory SQLite database with every read-model table created."""
    init_engine_from_url("sqlite:///:memory:")
    create_tables()
    yield get_session_factory()
    drop_tables()
    reset_engine()
