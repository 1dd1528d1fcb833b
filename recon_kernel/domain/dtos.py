"""
Diagnostics DTOs shared by the normalizer, the engines and the service.

Data-quality problems never raise out of a reconciliation call; they are
recorded here instead and rendered by the UI as "partial data" or
"sync error" badges.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from recon_kernel.domain.values import Provenance
from recon_kernel.exceptions import ReconKernelError


@dataclass(frozen=True)
class Diagnostic:
    """
    A single data-quality finding.

    Contract:
        Carries a machine-readable code, a human-readable message, and
        optionally the offending record's provenance and id.

    Non-goals:
        - Does NOT raise exceptions -- it IS the error representation.
    """

    code: str
    message: str
    provenance: Provenance | None = None
    record_id: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_error(
        cls,
        error: ReconKernelError,
        provenance: Provenance | None = None,
        record_id: str | None = None,
        **details: Any,
    ) -> Diagnostic:
        """Build a diagnostic from a typed exception, keeping its code."""
        return cls(
            code=error.code,
            message=str(error),
            provenance=provenance,
            record_id=record_id,
            details=details,
        )


@dataclass(frozen=True)
class SupersededRecord:
    """
    A record replaced by another one for the same economic event.

    Local records are superseded by their external counterpart; external
    rows are superseded by a later sync of the same external id.
    """

    record_id: str
    superseded_by: str
    match_key: str  # "explicit_link", "reference", "exact" or "sync_revision"
    provenance: Provenance = Provenance.LOCAL


@dataclass(frozen=True)
class ConflictPair:
    """A linked local/external pair that disagrees; both are kept and flagged."""

    local_id: str
    external_id: str
    match_key: str
    local_amount: int
    external_amount: int


@dataclass(frozen=True)
class ReconciliationDiagnostics:
    """
    Everything the engine absorbed instead of failing.

    Guarantees:
        - Immutable; ``merge`` returns a new instance.
        - Ordering inside each tuple follows processing order, which is
          deterministic for identical inputs.
    """

    dropped: tuple[Diagnostic, ...] = ()
    skipped: tuple[Diagnostic, ...] = ()
    warnings: tuple[Diagnostic, ...] = ()
    superseded: tuple[SupersededRecord, ...] = ()
    conflicts: tuple[ConflictPair, ...] = ()
    out_of_period: tuple[Diagnostic, ...] = ()
    source_failures: tuple[Diagnostic, ...] = ()

    def merge(self, other: ReconciliationDiagnostics) -> ReconciliationDiagnostics:
        return ReconciliationDiagnostics(
            dropped=self.dropped + other.dropped,
            skipped=self.skipped + other.skipped,
            warnings=self.warnings + other.warnings,
            superseded=self.superseded + other.superseded,
            conflicts=self.conflicts + other.conflicts,
            out_of_period=self.out_of_period + other.out_of_period,
            source_failures=self.source_failures + other.source_failures,
        )

    @property
    def dropped_count(self) -> int:
        return len(self.dropped)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    @property
    def is_clean(self) -> bool:
        """True when nothing was dropped, conflicted or unavailable."""
        return not (self.dropped or self.conflicts or self.source_failures)
