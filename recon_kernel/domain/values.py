"""
Values -- Immutable, self-validating domain value objects.

Responsibility:
    Provides the canonical types every engine works on: the reporting
    period, the canonical ``FinancialRecord`` and its sibling shapes
    (``BudgetLine``, ``Invoice``, service-charge demands and payments), the
    provenance and status enums, and the minor-unit / percentage helpers.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every other layer. No outward dependencies except
    recon_kernel.exceptions.

Invariants enforced:
    - Amounts are non-negative ``int`` minor units; direction is carried by
      ``RecordKind``, never by sign.
    - Exactly one provenance per record; ``synced_at`` / ``sync_status``
      are only populated for external records.
    - Percentages are ``Decimal`` and never rounded here.

Failure modes:
    - ValueError on construction with a negative or non-integer amount, or
      with sync metadata on a local record.
    - InvalidRequestError from ``ReportingPeriod.parse`` on an empty or
      unparseable period code.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum

from recon_kernel.exceptions import InvalidRequestError


class Provenance(str, Enum):
    """Which source a record or aggregate derives from."""

    LOCAL = "local"
    EXTERNAL = "external"


class RecordKind(str, Enum):
    """Direction of an economic event."""

    INCOME = "income"
    EXPENSE = "expense"


class RecordStatus(str, Enum):
    """Canonical lifecycle status of a transaction."""

    PENDING = "pending"
    APPROVED = "approved"
    COMPLETED = "completed"
    OVERDUE = "overdue"


class InvoiceStatus(str, Enum):
    """Canonical status of an unpaid invoice."""

    PENDING = "pending"
    APPROVED = "approved"
    OVERDUE = "overdue"


class PaymentStatus(str, Enum):
    """Status of a service-charge payment."""

    RECEIVED = "received"
    PARTIAL = "partial"
    PENDING = "pending"
    OVERDUE = "overdue"


class SyncStatus(str, Enum):
    """Outcome of the most recent external sync for an entity."""

    SUCCESS = "success"
    IN_PROGRESS = "in_progress"
    PENDING = "pending"
    ERROR = "error"

    @property
    def severity(self) -> int:
        """Fixed ordering: error > pending > in_progress > success."""
        return _SYNC_SEVERITY[self]


_SYNC_SEVERITY = {
    SyncStatus.SUCCESS: 0,
    SyncStatus.IN_PROGRESS: 1,
    SyncStatus.PENDING: 2,
    SyncStatus.ERROR: 3,
}


class SourceName(str, Enum):
    """The two collaborators the engine reads from."""

    LOCAL = "local"
    EXTERNAL = "external"


class SourceState(str, Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


# ---------------------------------------------------------------------------
# Reporting period
# ---------------------------------------------------------------------------

_YEAR_RE = re.compile(r"^(\d{4})$")
_QUARTER_RE = re.compile(r"^(\d{4})-Q([1-4])$", re.IGNORECASE)
_MONTH_RE = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


def _year(match: re.Match, code: str) -> int:
    year = int(match.group(1))
    if year < 1:
        raise InvalidRequestError("period", "year must be 0001 or later", code)
    return year


@dataclass(frozen=True, slots=True)
class ReportingPeriod:
    """
    Inclusive date range a reconciliation call covers.

    Contract:
        Built from a period code: ``"2025"`` (calendar year), ``"2025-Q2"``
        (quarter) or ``"2025-04"`` (month).

    Guarantees:
        - start <= end, both inclusive.
        - ``code`` is normalized (quarter letter uppercased).
    """

    code: str
    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"Period {self.code} starts after it ends")

    @classmethod
    def parse(cls, code: str | None) -> ReportingPeriod:
        """
        Parse a period code.

        Raises:
            InvalidRequestError: If the code is missing or not one of the
                supported shapes.
        """
        if code is None or not str(code).strip():
            raise InvalidRequestError("period", "is required", code)
        text = str(code).strip()

        m = _MONTH_RE.match(text)
        if m:
            year, month = _year(m, code), int(m.group(2))
            last = calendar.monthrange(year, month)[1]
            return cls(text, date(year, month, 1), date(year, month, last))

        m = _QUARTER_RE.match(text)
        if m:
            year, quarter = _year(m, code), int(m.group(2))
            first_month = 3 * (quarter - 1) + 1
            last_month = first_month + 2
            last = calendar.monthrange(year, last_month)[1]
            return cls(
                f"{m.group(1)}-Q{quarter}",
                date(year, first_month, 1),
                date(year, last_month, last),
            )

        m = _YEAR_RE.match(text)
        if m:
            year = _year(m, code)
            return cls(text, date(year, 1, 1), date(year, 12, 31))

        raise InvalidRequestError(
            "period", "must look like YYYY, YYYY-Qn or YYYY-MM", code,
        )

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    @property
    def year(self) -> int:
        return self.start.year

    def __str__(self) -> str:
        return self.code


# ---------------------------------------------------------------------------
# Minor units and percentages
# ---------------------------------------------------------------------------


def to_minor_units(amount: Decimal | int | str, exponent: int = 2) -> int:
    """
    Convert a major-unit amount to integer minor units, exactly.

    Raises:
        ValueError: If the amount is not a number, is negative, or carries
            more decimal places than ``exponent`` allows.
    """
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e
    if not value.is_finite():
        raise ValueError(f"Invalid amount: {amount!r}")
    if value < 0:
        raise ValueError(f"Negative amount: {amount!r}")

    scaled = value.scaleb(exponent)
    if scaled != scaled.to_integral_value():
        raise ValueError(
            f"Amount {amount!r} has more than {exponent} decimal places"
        )
    return int(scaled)


def safe_percentage(
    numerator: int | Decimal,
    denominator: int | Decimal,
    default: Decimal | None = Decimal("0"),
) -> Decimal | None:
    """
    ``numerator / denominator * 100`` without ever raising.

    A zero denominator returns ``default`` instead of a division error; the
    result is never NaN or infinite and is not rounded.
    """
    if denominator == 0:
        return default
    return Decimal(numerator) * Decimal(100) / Decimal(denominator)


# ---------------------------------------------------------------------------
# Canonical records
# ---------------------------------------------------------------------------


def _check_amount(value: int, field: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field} must be int minor units, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{field} cannot be negative: {value}")


def _check_sync_metadata(
    provenance: Provenance,
    synced_at: datetime | None,
    sync_status: SyncStatus | None,
) -> None:
    if provenance is Provenance.LOCAL and (
        synced_at is not None or sync_status is not None
    ):
        raise ValueError("Local records cannot carry sync metadata")


@dataclass(frozen=True, slots=True)
class FinancialRecord:
    """
    A transaction normalized to a single schema regardless of source.

    Contract:
        Produced only by the normalizer. ``conflict`` is set by the
        reconciliation engine when the record was linked to a counterpart
        that disagrees with it.
    """

    id: str
    building_id: str
    kind: RecordKind
    category: str
    amount_minor_units: int
    date: date
    provenance: Provenance
    status: RecordStatus
    description: str = ""
    reference: str | None = None
    external_id: str | None = None
    synced_at: datetime | None = None
    sync_status: SyncStatus | None = None
    conflict: bool = False

    def __post_init__(self) -> None:
        _check_amount(self.amount_minor_units, "amount_minor_units")
        _check_sync_metadata(self.provenance, self.synced_at, self.sync_status)

    @property
    def is_external(self) -> bool:
        return self.provenance is Provenance.EXTERNAL


@dataclass(frozen=True, slots=True)
class BudgetLine:
    """Budgeted and actual amounts for one category in one period."""

    category: str
    period: str
    budgeted_minor_units: int
    actual_minor_units: int
    provenance: Provenance
    synced_at: datetime | None = None
    sync_status: SyncStatus | None = None

    def __post_init__(self) -> None:
        _check_amount(self.budgeted_minor_units, "budgeted_minor_units")
        _check_amount(self.actual_minor_units, "actual_minor_units")
        _check_sync_metadata(self.provenance, self.synced_at, self.sync_status)

    @property
    def is_external(self) -> bool:
        return self.provenance is Provenance.EXTERNAL


@dataclass(frozen=True, slots=True)
class Invoice:
    """An unpaid supplier invoice."""

    id: str
    amount_minor_units: int
    status: InvoiceStatus
    due_date: date
    provenance: Provenance
    external_id: str | None = None
    synced_at: datetime | None = None
    sync_status: SyncStatus | None = None

    def __post_init__(self) -> None:
        _check_amount(self.amount_minor_units, "amount_minor_units")
        _check_sync_metadata(self.provenance, self.synced_at, self.sync_status)

    @property
    def is_external(self) -> bool:
        return self.provenance is Provenance.EXTERNAL


@dataclass(frozen=True, slots=True)
class ServiceChargeDemand:
    """A service-charge demand issued to a unit."""

    id: str
    unit_id: str
    amount_minor_units: int
    due_date: date

    def __post_init__(self) -> None:
        _check_amount(self.amount_minor_units, "amount_minor_units")


@dataclass(frozen=True, slots=True)
class ServiceChargePayment:
    """A payment received (or expected) against a service-charge demand."""

    id: str
    amount_minor_units: int
    payment_date: date
    status: PaymentStatus
    demand_id: str | None = None
    unit_id: str | None = None

    def __post_init__(self) -> None:
        _check_amount(self.amount_minor_units, "amount_minor_units")

    @property
    def is_received(self) -> bool:
        return self.status in (PaymentStatus.RECEIVED, PaymentStatus.PARTIAL)
