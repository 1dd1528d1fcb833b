"""
Tests for the canonical domain values.

Covers:
- Reporting period parsing and containment
- Exact minor-unit conversion
- Zero-safe percentages
- Construction invariants of the canonical records
"""

from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from recon_kernel.domain.values import (
    BudgetLine,
    FinancialRecord,
    Invoice,
    InvoiceStatus,
    PaymentStatus,
    Provenance,
    RecordKind,
    RecordStatus,
    ReportingPeriod,
    ServiceChargePayment,
    SyncStatus,
    safe_percentage,
    to_minor_units,
)
from recon_kernel.exceptions import InvalidRequestError


class TestReportingPeriod:
    """Tests for period code parsing."""

    def test_quarter(self):
        """A quarter code covers three whole months."""
        period = ReportingPeriod.parse("2025-Q2")
        assert period.start == date(2025, 4, 1)
        assert period.end == date(2025, 6, 30)
        assert period.code == "2025-Q2"

    def test_quarter_code_normalized(self):
        """Lowercase quarter letters are accepted and normalized."""
        assert ReportingPeriod.parse(" 2025-q4 ").code == "2025-Q4"

    def test_month_handles_leap_year(self):
        """February in a leap year ends on the 29th."""
        period = ReportingPeriod.parse("2024-02")
        assert period.start == date(2024, 2, 1)
        assert period.end == date(2024, 2, 29)

    def test_year(self):
        """A bare year covers the calendar year."""
        period = ReportingPeriod.parse("2025")
        assert period.start == date(2025, 1, 1)
        assert period.end == date(2025, 12, 31)
        assert period.year == 2025

    def test_contains_is_inclusive(self):
        """Both boundary days are inside the period."""
        period = ReportingPeriod.parse("2025-04")
        assert period.contains(date(2025, 4, 1))
        assert period.contains(date(2025, 4, 30))
        assert not period.contains(date(2025, 3, 31))
        assert not period.contains(date(2025, 5, 1))

    @pytest.mark.parametrize("code", [None, "", "   "])
    def test_missing_code_rejected(self, code):
        """A missing period is a caller error."""
        with pytest.raises(InvalidRequestError) as exc_info:
            ReportingPeriod.parse(code)
        assert exc_info.value.field == "period"

    @pytest.mark.parametrize("code", ["2025-Q5", "2025-13", "Q2-2025", "last month"])
    def test_unparseable_code_rejected(self, code):
        """Codes outside the supported shapes are rejected."""
        with pytest.raises(InvalidRequestError):
            ReportingPeriod.parse(code)

    @pytest.mark.parametrize("code", ["0000", "0000-Q1", "0000-01"])
    def test_year_zero_rejected(self, code):
        """Year zero matches the shape but has no calendar dates."""
        with pytest.raises(InvalidRequestError) as exc_info:
            ReportingPeriod.parse(code)
        assert exc_info.value.field == "period"

    def test_early_year_keeps_padded_code(self):
        assert ReportingPeriod.parse("0001-Q1").code == "0001-Q1"

    def test_start_after_end_rejected(self):
        """Direct construction with an inverted range fails."""
        with pytest.raises(ValueError):
            ReportingPeriod("bad", date(2025, 2, 1), date(2025, 1, 1))

    def test_str_is_code(self):
        assert str(ReportingPeriod.parse("2025-Q1")) == "2025-Q1"


class TestToMinorUnits:
    """Tests for exact major-to-minor unit conversion."""

    def test_decimal_string(self):
        assert to_minor_units("1000.00") == 100000

    def test_integer_amount(self):
        assert to_minor_units(250) == 25000

    def test_decimal_with_trailing_zeros(self):
        """Database Numeric columns carry extra trailing zeros."""
        assert to_minor_units(Decimal("123.4500")) == 12345

    def test_zero_exponent(self):
        assert to_minor_units("1500", exponent=0) == 1500

    def test_excess_precision_rejected(self):
        """Amounts are never rounded into the minor unit."""
        with pytest.raises(ValueError, match="decimal places"):
            to_minor_units("10.005")

    def test_negative_rejected(self):
        with pytest.raises(ValueError, match="Negative"):
            to_minor_units("-1.00")

    @pytest.mark.parametrize("amount", ["abc", "NaN", "Infinity"])
    def test_non_numeric_rejected(self, amount):
        with pytest.raises(ValueError, match="Invalid amount"):
            to_minor_units(amount)


class TestSafePercentage:
    """Tests for the zero-denominator-safe percentage."""

    def test_simple_ratio(self):
        assert safe_percentage(1, 4) == Decimal("25")

    def test_zero_denominator_defaults_to_zero(self):
        assert safe_percentage(5, 0) == Decimal("0")

    def test_zero_denominator_custom_default(self):
        assert safe_percentage(5, 0, default=None) is None

    def test_not_rounded(self):
        """Repeating fractions keep full Decimal precision."""
        result = safe_percentage(1, 3)
        assert result > Decimal("33.333333")
        assert result < Decimal("33.333334")

    def test_negative_numerator(self):
        """Under-budget variances give negative percentages."""
        assert safe_percentage(-50, 200) == Decimal("-25")


class TestSyncStatusSeverity:
    """Tests for the fixed sync severity order."""

    def test_order(self):
        ordered = sorted(SyncStatus, key=lambda s: s.severity)
        assert ordered == [
            SyncStatus.SUCCESS,
            SyncStatus.IN_PROGRESS,
            SyncStatus.PENDING,
            SyncStatus.ERROR,
        ]


class TestCanonicalRecords:
    """Tests for record construction invariants."""

    def _record(self, **overrides) -> FinancialRecord:
        fields = dict(
            id="r1",
            building_id="bldg-1",
            kind=RecordKind.INCOME,
            category="Service Charges",
            amount_minor_units=100000,
            date=date(2025, 4, 1),
            provenance=Provenance.LOCAL,
            status=RecordStatus.COMPLETED,
        )
        fields.update(overrides)
        return FinancialRecord(**fields)

    def test_valid_local_record(self):
        record = self._record()
        assert not record.is_external
        assert record.conflict is False

    def test_negative_amount_rejected(self):
        """Direction is carried by kind, never by sign."""
        with pytest.raises(ValueError, match="negative"):
            self._record(amount_minor_units=-1)

    def test_non_integer_amount_rejected(self):
        with pytest.raises(ValueError, match="int minor units"):
            self._record(amount_minor_units=Decimal("100.00"))

    def test_bool_amount_rejected(self):
        with pytest.raises(ValueError):
            self._record(amount_minor_units=True)

    def test_local_record_cannot_carry_sync_metadata(self):
        with pytest.raises(ValueError, match="sync metadata"):
            self._record(sync_status=SyncStatus.SUCCESS)

    def test_external_record_carries_sync_metadata(self):
        synced = datetime(2025, 4, 29, tzinfo=UTC)
        record = self._record(
            provenance=Provenance.EXTERNAL,
            synced_at=synced,
            sync_status=SyncStatus.SUCCESS,
        )
        assert record.is_external
        assert record.synced_at == synced

    def test_records_are_immutable(self):
        record = self._record()
        with pytest.raises(AttributeError):
            record.amount_minor_units = 1

    def test_budget_line_amounts_checked(self):
        with pytest.raises(ValueError):
            BudgetLine(
                category="Repairs",
                period="2025",
                budgeted_minor_units=-5,
                actual_minor_units=0,
                provenance=Provenance.LOCAL,
            )

    def test_invoice_sync_metadata_local_rejected(self):
        with pytest.raises(ValueError):
            Invoice(
                id="inv-1",
                amount_minor_units=100,
                status=InvoiceStatus.PENDING,
                due_date=date(2025, 4, 1),
                provenance=Provenance.LOCAL,
                synced_at=datetime(2025, 4, 1, tzinfo=UTC),
            )

    @pytest.mark.parametrize(
        "status, received",
        [
            (PaymentStatus.RECEIVED, True),
            (PaymentStatus.PARTIAL, True),
            (PaymentStatus.PENDING, False),
            (PaymentStatus.OVERDUE, False),
        ],
    )
    def test_payment_is_received(self, status, received):
        payment = ServiceChargePayment(
            id="p1",
            amount_minor_units=100,
            payment_date=date(2025, 4, 1),
            status=status,
        )
        assert payment.is_received is received
