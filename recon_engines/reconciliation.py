"""
recon_engines.reconciliation -- Merge local and external records into one set.

Responsibility:
    Given normalized local and external transactions for one reporting
    period, produce the unified canonical set in which every real economic
    event appears once. Also reconciles invoices by explicit link.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import recon_kernel/domain and sibling engine modules.

Invariants enforced:
    - Pure and idempotent: identical inputs give identical outputs; no
      internal state, no clock access.
    - One-to-one matching: an external record absorbs at most one local
      record. Matching runs one key tier at a time over every local (in id
      order, candidates in id order), so the outcome never depends on
      input order and a weaker key never takes a record a stronger key names.
    - When a local and an external record are the same event, the external
      record wins and the local is listed as superseded.
    - Linked records that disagree on amount or kind are both kept,
      flagged ``conflict=True`` and reported; they are never resolved
      silently.
    - External rows are append-only: several rows for one external id
      collapse to the latest ``synced_at`` (ties to the greatest row id).

Failure modes:
    - None raised for data problems. Out-of-period records, superseded
      rows and conflicts are returned in ``ReconciliationDiagnostics``.

Audit relevance:
    Every superseded record names the record that replaced it and the key
    tier that matched them, so a reviewer can trace each dropped entry.
    Invocations are traced via ``@traced_engine``.
"""

from __future__ import annotations

import time
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum

from recon_engines.tracer import traced_engine
from recon_kernel.domain.dtos import (
    ConflictPair,
    Diagnostic,
    ReconciliationDiagnostics,
    SupersededRecord,
)
from recon_kernel.domain.values import (
    FinancialRecord,
    Invoice,
    Provenance,
    ReportingPeriod,
)
from recon_kernel.exceptions import AmbiguousDuplicateError
from recon_kernel.logging_config import get_logger

logger = get_logger("engines.reconciliation")

OUT_OF_PERIOD = "OUT_OF_PERIOD"

_EPOCH = datetime.min.replace(tzinfo=UTC)


class MatchKey(str, Enum):
    """Reconciliation key tiers, strongest first."""

    EXPLICIT_LINK = "explicit_link"
    REFERENCE = "reference"
    EXACT = "exact"
    SYNC_REVISION = "sync_revision"  # external row replaced by a later sync


@dataclass(frozen=True)
class ReconciliationResult:
    """
    The unified transaction set plus everything absorbed on the way.

    Guarantees:
        - ``unified`` is in canonical order: date, then local before
          external, then id.
        - Every input record is either in ``unified`` or named in exactly
          one of ``diagnostics.superseded`` / ``diagnostics.out_of_period``.
    """

    unified: tuple[FinancialRecord, ...] = ()
    diagnostics: ReconciliationDiagnostics = field(
        default_factory=ReconciliationDiagnostics
    )

    @property
    def conflict_count(self) -> int:
        return len(self.diagnostics.conflicts)


@dataclass(frozen=True)
class InvoiceReconciliationResult:
    """Invoices with locally recorded copies of external invoices removed."""

    invoices: tuple[Invoice, ...] = ()
    diagnostics: ReconciliationDiagnostics = field(
        default_factory=ReconciliationDiagnostics
    )


def canonical_order(record: FinancialRecord) -> tuple:
    """Sort key: date, local before external, then id."""
    return (record.date, record.provenance is Provenance.EXTERNAL, record.id)


def _sync_order(item: FinancialRecord | Invoice) -> tuple:
    return (item.synced_at or _EPOCH, item.id)


def latest_revisions(
    rows: Iterable[FinancialRecord | Invoice],
) -> tuple[list, list[SupersededRecord]]:
    """
    Collapse external rows that share an external id.

    The row with the latest ``synced_at`` wins; ties go to the greatest row
    id. Returns the surviving rows sorted by id and the superseded ones.
    """
    groups: dict[str, list] = defaultdict(list)
    for row in rows:
        groups[row.external_id or row.id].append(row)

    survivors = []
    superseded: list[SupersededRecord] = []
    for key in sorted(groups):
        revisions = sorted(groups[key], key=_sync_order)
        winner = revisions[-1]
        survivors.append(winner)
        for older in revisions[:-1]:
            superseded.append(SupersededRecord(
                record_id=older.id,
                superseded_by=winner.id,
                match_key=MatchKey.SYNC_REVISION.value,
                provenance=Provenance.EXTERNAL,
            ))
    survivors.sort(key=lambda r: r.id)
    return survivors, superseded


class ReconciliationEngine:
    """
    Pure merge-and-dedup of local and external transactions.

    Contract:
        No I/O, no database access, fully deterministic.

    Guarantees:
        - Key tiers are resolved across the whole batch in order:
          explicit link (the local record's ``external_id`` names the
          external record), shared non-empty reference, then exact
          equality of kind, amount, date and category.
        - An exact-tier match can never conflict, since it requires equal
          amounts and kinds; only explicit-link and reference matches can.

    Non-goals:
        - Does not fuzzy-match (no amount tolerance, no date window).
        - Does not write back or mutate either source.
    """

    @traced_engine(
        "reconciliation", "1.0",
        fingerprint_fields=("local_records", "external_records", "period"),
    )
    def reconcile(
        self,
        local_records: Sequence[FinancialRecord],
        external_records: Sequence[FinancialRecord],
        period: ReportingPeriod,
    ) -> ReconciliationResult:
        """
        Merge both sources for one reporting period.

        Args:
            local_records: Normalized local transactions.
            external_records: Normalized external transactions, possibly
                with several sync revisions per external id.
            period: Records dated outside this period are excluded.

        Returns:
            ReconciliationResult with the unified set and diagnostics.
        """
        t0 = time.monotonic()
        logger.info("reconciliation_started", extra={
            "period_code": period.code,
            "local_count": len(local_records),
            "external_count": len(external_records),
        })

        externals, revision_superseded = latest_revisions(
            r for r in external_records if r.provenance is Provenance.EXTERNAL
        )
        out_of_period: list[Diagnostic] = []
        externals = self._within(externals, period, out_of_period)
        locals_ = self._within(
            sorted(
                (r for r in local_records if r.provenance is Provenance.LOCAL),
                key=lambda r: r.id,
            ),
            period,
            out_of_period,
        )

        by_external_id = {e.external_id or e.id: e for e in externals}
        by_reference: dict[str, list[FinancialRecord]] = defaultdict(list)
        by_exact: dict[tuple, list[FinancialRecord]] = defaultdict(list)
        for ext in externals:
            if ext.reference:
                by_reference[ext.reference].append(ext)
            by_exact[self._exact_key(ext)].append(ext)

        conflicted: set[str] = set()
        kept_locals: list[FinancialRecord] = []
        superseded: list[SupersededRecord] = []
        conflicts: list[ConflictPair] = []
        warnings: list[Diagnostic] = []

        matches = self._match_in_tiers(
            locals_, by_external_id, by_reference, by_exact,
        )

        for local in locals_:
            match, tier = matches.get(local.id, (None, None))
            if match is None:
                kept_locals.append(local)
                continue

            agrees = (
                local.amount_minor_units == match.amount_minor_units
                and local.kind is match.kind
            )
            if agrees:
                superseded.append(SupersededRecord(
                    record_id=local.id,
                    superseded_by=match.id,
                    match_key=tier.value,
                ))
                continue

            error = AmbiguousDuplicateError(
                local_id=local.id,
                external_id=match.id,
                match_key=tier.value,
                local_amount=local.amount_minor_units,
                external_amount=match.amount_minor_units,
            )
            logger.warning("reconciliation_conflict", extra={
                "local_id": local.id,
                "external_id": match.id,
                "match_key": tier.value,
                "local_amount": local.amount_minor_units,
                "external_amount": match.amount_minor_units,
                "local_kind": local.kind.value,
                "external_kind": match.kind.value,
            })
            conflicts.append(ConflictPair(
                local_id=local.id,
                external_id=match.id,
                match_key=tier.value,
                local_amount=local.amount_minor_units,
                external_amount=match.amount_minor_units,
            ))
            warnings.append(Diagnostic.from_error(
                error, provenance=Provenance.LOCAL, record_id=local.id,
                external_id=match.id, match_key=tier.value,
            ))
            conflicted.add(match.id)
            kept_locals.append(replace(local, conflict=True))

        unified = [
            replace(e, conflict=True) if e.id in conflicted else e
            for e in externals
        ] + kept_locals
        unified.sort(key=canonical_order)

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("reconciliation_completed", extra={
            "period_code": period.code,
            "unified_count": len(unified),
            "superseded_count": len(superseded) + len(revision_superseded),
            "conflict_count": len(conflicts),
            "out_of_period_count": len(out_of_period),
            "duration_ms": duration_ms,
        })

        return ReconciliationResult(
            unified=tuple(unified),
            diagnostics=ReconciliationDiagnostics(
                warnings=tuple(warnings),
                superseded=tuple(revision_superseded + superseded),
                conflicts=tuple(conflicts),
                out_of_period=tuple(out_of_period),
            ),
        )

    @traced_engine(
        "reconciliation.invoices", "1.0",
        fingerprint_fields=("local_invoices", "external_invoices"),
    )
    def reconcile_invoices(
        self,
        local_invoices: Sequence[Invoice],
        external_invoices: Sequence[Invoice],
    ) -> InvoiceReconciliationResult:
        """
        Drop local invoices that are copies of external ones.

        A local invoice whose ``external_id`` names a present external
        invoice is superseded by it. Invoices are not filtered by period:
        what is outstanding is outstanding regardless of when it was raised.
        """
        externals, superseded = latest_revisions(external_invoices)
        external_ids = {inv.external_id or inv.id: inv for inv in externals}

        kept: list[Invoice] = []
        for local in sorted(local_invoices, key=lambda i: i.id):
            target = external_ids.get(local.external_id) if local.external_id else None
            if target is None:
                kept.append(local)
                continue
            superseded.append(SupersededRecord(
                record_id=local.id,
                superseded_by=target.id,
                match_key=MatchKey.EXPLICIT_LINK.value,
            ))

        invoices = sorted(
            externals + kept,
            key=lambda i: (i.due_date, i.provenance is Provenance.EXTERNAL, i.id),
        )
        return InvoiceReconciliationResult(
            invoices=tuple(invoices),
            diagnostics=ReconciliationDiagnostics(superseded=tuple(superseded)),
        )

    # -----------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------

    @staticmethod
    def _within(
        records: Iterable[FinancialRecord],
        period: ReportingPeriod,
        out_of_period: list[Diagnostic],
    ) -> list[FinancialRecord]:
        kept = []
        for record in records:
            if period.contains(record.date):
                kept.append(record)
                continue
            out_of_period.append(Diagnostic(
                code=OUT_OF_PERIOD,
                message=f"Dated {record.date.isoformat()}, outside {period.code}",
                provenance=record.provenance,
                record_id=record.id,
            ))
        return kept

    @staticmethod
    def _exact_key(record: FinancialRecord) -> tuple:
        return (
            record.kind, record.amount_minor_units, record.date, record.category,
        )

    def _match_in_tiers(
        self,
        locals_: Sequence[FinancialRecord],
        by_external_id: dict[str, FinancialRecord],
        by_reference: dict[str, list[FinancialRecord]],
        by_exact: dict[tuple, list[FinancialRecord]],
    ) -> dict[str, tuple[FinancialRecord, MatchKey]]:
        """
        Pair locals with externals one tier at a time across the whole batch.

        Every explicit link is resolved before any reference match, and every
        reference match before the exact heuristic, so a weaker match can
        never take an external record that a stronger key names.
        """
        matches: dict[str, tuple[FinancialRecord, MatchKey]] = {}
        claimed: set[str] = set()

        def candidates_for(local: FinancialRecord, tier: MatchKey):
            if tier is MatchKey.EXPLICIT_LINK:
                linked = by_external_id.get(local.external_id) if local.external_id else None
                return (linked,) if linked is not None else ()
            if tier is MatchKey.REFERENCE:
                return by_reference.get(local.reference, ()) if local.reference else ()
            return by_exact.get(self._exact_key(local), ())

        for tier in (MatchKey.EXPLICIT_LINK, MatchKey.REFERENCE, MatchKey.EXACT):
            for local in locals_:
                if local.id in matches:
                    continue
                for candidate in candidates_for(local, tier):
                    if candidate.id not in claimed:
                        claimed.add(candidate.id)
                        matches[local.id] = (candidate, tier)
                        break
        return matches
