"""
Presentation boundary: ``FinancialDashboard`` to the UI's camelCase shape.

This is the only place figures are rounded. Money leaves as major-unit
Decimals at the currency's precision; percentages are rounded to two
decimal places, half-up. Dates and timestamps leave as ISO strings and
enums as their values.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from recon_engines.aggregation import FinancialSummary, RecentTransaction
from recon_engines.variance import BudgetComparison
from recon_kernel.domain.dtos import Diagnostic, ReconciliationDiagnostics
from recon_services.dashboard_service import FinancialDashboard

_PERCENT = Decimal("0.01")


def round_percentage(value: Decimal | None) -> Decimal | None:
    """Round a percentage to 2 decimal places, half-up."""
    if value is None:
        return None
    return value.quantize(_PERCENT, rounding=ROUND_HALF_UP)


def to_major_units(amount: int, exponent: int = 2) -> Decimal:
    """Integer minor units to an exact major-unit Decimal (12345 -> 123.45)."""
    return Decimal(amount).scaleb(-exponent).quantize(Decimal(1).scaleb(-exponent))


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _enum(value: Any) -> Any:
    return value.value if value is not None else None


def summary_to_dict(summary: FinancialSummary, exponent: int = 2) -> dict[str, Any]:
    return {
        "totalIncome": to_major_units(summary.total_income, exponent),
        "totalExpense": to_major_units(summary.total_expense, exponent),
        "netPosition": to_major_units(summary.net_position, exponent),
        "outstandingInvoices": to_major_units(summary.outstanding_invoices, exponent),
        "overduePayments": to_major_units(summary.overdue_payments, exponent),
        "collectionRate": round_percentage(summary.collection_rate),
        "totalArrears": to_major_units(summary.total_arrears, exponent),
        "arrearsCount": summary.arrears_count,
        "externalDataPercentage": round_percentage(summary.external_data_percentage),
        "lastExternalSync": _iso(summary.last_external_sync),
        "syncStatus": _enum(summary.sync_status),
        "partial": summary.partial,
        "sourceAvailability": {
            source.value: state.value
            for source, state in sorted(
                summary.source_availability.items(), key=lambda kv: kv[0].value,
            )
        },
        "conflictCount": summary.conflict_count,
    }


def budget_comparison_to_dict(
    comparison: BudgetComparison, exponent: int = 2,
) -> dict[str, Any]:
    return {
        "category": comparison.category,
        "budgeted": to_major_units(comparison.budgeted, exponent),
        "actual": to_major_units(comparison.actual, exponent),
        "variance": to_major_units(comparison.variance, exponent),
        "variancePercentage": round_percentage(comparison.variance_percentage),
        "isExternal": comparison.is_external,
        "lastSynced": _iso(comparison.last_synced),
        "syncStatus": _enum(comparison.sync_status),
    }


def recent_transaction_to_dict(
    transaction: RecentTransaction, exponent: int = 2,
) -> dict[str, Any]:
    return {
        "id": transaction.id,
        "description": transaction.description,
        "amount": to_major_units(transaction.amount, exponent),
        "type": transaction.kind.value,
        "date": transaction.date.isoformat(),
        "category": transaction.category,
        "status": transaction.status.value,
        "isExternal": transaction.is_external,
        "lastSynced": _iso(transaction.last_synced),
        "syncStatus": _enum(transaction.sync_status),
        "conflict": transaction.conflict,
    }


def _diagnostic_to_dict(diagnostic: Diagnostic) -> dict[str, Any]:
    return {
        "code": diagnostic.code,
        "message": diagnostic.message,
        "provenance": _enum(diagnostic.provenance),
        "recordId": diagnostic.record_id,
    }


def diagnostics_to_dict(diagnostics: ReconciliationDiagnostics) -> dict[str, Any]:
    return {
        "dropped": [_diagnostic_to_dict(d) for d in diagnostics.dropped],
        "skipped": [_diagnostic_to_dict(d) for d in diagnostics.skipped],
        "warnings": [_diagnostic_to_dict(d) for d in diagnostics.warnings],
        "outOfPeriod": [_diagnostic_to_dict(d) for d in diagnostics.out_of_period],
        "sourceFailures": [_diagnostic_to_dict(d) for d in diagnostics.source_failures],
        "superseded": [
            {
                "recordId": s.record_id,
                "supersededBy": s.superseded_by,
                "matchKey": s.match_key,
                "provenance": s.provenance.value,
            }
            for s in diagnostics.superseded
        ],
        "conflicts": [
            {
                "localId": c.local_id,
                "externalId": c.external_id,
                "matchKey": c.match_key,
            }
            for c in diagnostics.conflicts
        ],
    }


def dashboard_to_dict(
    dashboard: FinancialDashboard, exponent: int = 2,
) -> dict[str, Any]:
    """
    Render a dashboard for the UI.

    Args:
        dashboard: The engine output.
        exponent: Minor-unit exponent of the reporting currency.
    """
    return {
        "buildingId": dashboard.building_id,
        "period": dashboard.period.code,
        "generatedAt": _iso(dashboard.generated_at),
        "externalStalenessSeconds": dashboard.external_staleness_seconds,
        "summary": summary_to_dict(dashboard.summary, exponent),
        "budgetComparisons": [
            budget_comparison_to_dict(c, exponent) for c in dashboard.budget_comparisons
        ],
        "recentTransactions": [
            recent_transaction_to_dict(t, exponent) for t in dashboard.recent_transactions
        ],
        "diagnostics": diagnostics_to_dict(dashboard.diagnostics),
    }


def dashboard_to_json(dashboard: FinancialDashboard, exponent: int = 2) -> str:
    """JSON text of ``dashboard_to_dict``; Decimals are written as strings."""
    return json.dumps(dashboard_to_dict(dashboard, exponent), default=str, sort_keys=True)
