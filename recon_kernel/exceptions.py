"""
Typed exception hierarchy for the recon kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The reconciliation engine merges data it does not own. Most of what goes
wrong is a data-quality problem in one source (a row without a date, a
synced record whose amount disagrees with the ledger, a store that timed
out) and must never take the dashboard down. A small number of problems are
caller mistakes (no building id, an unparseable period) and must fail fast.

Every error therefore has:
  1. a TYPED exception class (catch by type, not by message),
  2. a CODE class attribute (machine-readable, stable across releases),
  3. structured DATA attributes (record id, provenance, source name, ...).

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ReconKernelError (base)
    |
    +-- DataQualityError              absorbed into diagnostics, never raised
    |   |                             out of the engine
    |   +-- MalformedRecordError
    |   +-- AmbiguousDuplicateError
    |   +-- SourceUnavailableError
    |
    +-- RequestError                  raised to the caller
        +-- InvalidRequestError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                 | When
--------------|----------------------|------------------------------------------
Data quality  | MALFORMED_RECORD     | Raw record lacks amount/date or is invalid
              | AMBIGUOUS_DUPLICATE  | Linked records disagree on amount or kind
              | SOURCE_UNAVAILABLE   | A collaborator fetch failed or timed out
--------------|----------------------|------------------------------------------
Request       | INVALID_REQUEST      | Missing building id or period on the call

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        dashboard = await service.build_dashboard(building_id, period)
    except InvalidRequestError as e:
        return {"error": e.code, "field": e.field}

Data-quality errors are converted with ``Diagnostic.from_error`` and show up
on ``ReconciliationDiagnostics``; the UI renders them as "partial data" or
"sync error" badges.
"""

from __future__ import annotations

from typing import Any


class ReconKernelError(Exception):
    """
    Base exception for all recon kernel errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "RECON_KERNEL_ERROR"


# Data-quality exceptions


class DataQualityError(ReconKernelError):
    """Base for problems in source data. Non-fatal to a reconciliation call."""

    code: str = "DATA_QUALITY_ERROR"


class MalformedRecordError(DataQualityError):
    """A raw record is missing required fields or carries invalid values."""

    code: str = "MALFORMED_RECORD"

    def __init__(
        self,
        provenance: str,
        entity: str,
        record_id: str | None,
        reasons: list[str],
    ):
        self.provenance = provenance
        self.entity = entity
        self.record_id = record_id
        self.reasons = reasons
        super().__init__(
            f"Malformed {provenance} {entity} {record_id or '<no id>'}: "
            + "; ".join(reasons)
        )


class AmbiguousDuplicateError(DataQualityError):
    """
    A local and an external record were linked as the same event but disagree.

    Both records are retained and flagged; the conflict is surfaced to the
    caller instead of being resolved.
    """

    code: str = "AMBIGUOUS_DUPLICATE"

    def __init__(
        self,
        local_id: str,
        external_id: str,
        match_key: str,
        local_amount: int,
        external_amount: int,
    ):
        self.local_id = local_id
        self.external_id = external_id
        self.match_key = match_key
        self.local_amount = local_amount
        self.external_amount = external_amount
        super().__init__(
            f"Local record {local_id} and external record {external_id} "
            f"share a {match_key} key but differ: "
            f"{local_amount} vs {external_amount}"
        )


class SourceUnavailableError(DataQualityError):
    """A collaborator fetch failed. The summary is built from the other source."""

    code: str = "SOURCE_UNAVAILABLE"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Source {source} unavailable: {reason}")


# Request exceptions


class RequestError(ReconKernelError):
    """Base for caller-contract violations."""

    code: str = "REQUEST_ERROR"


class InvalidRequestError(RequestError):
    """The call itself is invalid (programmer error, not a data problem)."""

    code: str = "INVALID_REQUEST"

    def __init__(self, field: str, reason: str, value: Any = None):
        self.field = field
        self.reason = reason
        self.value = value
        super().__init__(f"Invalid request: {field} {reason}")
