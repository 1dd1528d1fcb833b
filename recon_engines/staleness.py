"""
recon_engines.staleness -- Provenance and freshness annotation.

Responsibility:
    Derives, for any aggregate, whether external data contributed to it,
    when that data was last synced, and the worst sync status among the
    contributors. Also reports how old the last sync is relative to a
    caller-supplied time.

Architecture position:
    Engines -- pure calculation layer, zero I/O, no clock access. The
    service passes ``as_of`` from its injected ``Clock``.

Invariants enforced:
    - Local-only aggregates carry no sync metadata (all fields None/False).
    - ``sync_status`` is the worst contributor status under the fixed
      severity order error > pending > in_progress > success.
    - Never mutates sync state; annotations are derived on demand.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from recon_kernel.domain.values import Provenance, SyncStatus


@dataclass(frozen=True)
class ProvenanceAnnotation:
    """Freshness metadata for one aggregate."""

    is_external: bool = False
    last_synced: datetime | None = None
    sync_status: SyncStatus | None = None


LOCAL_ONLY = ProvenanceAnnotation()


def annotate(contributors: Iterable[Any]) -> ProvenanceAnnotation:
    """
    Annotate an aggregate from the records, lines or invoices behind it.

    Each contributor needs ``provenance``, ``synced_at`` and
    ``sync_status`` attributes; all canonical record types have them.
    """
    is_external = False
    last_synced: datetime | None = None
    worst: SyncStatus | None = None

    for item in contributors:
        if item.provenance is not Provenance.EXTERNAL:
            continue
        is_external = True
        if item.synced_at is not None and (
            last_synced is None or item.synced_at > last_synced
        ):
            last_synced = item.synced_at
        status = item.sync_status or SyncStatus.PENDING
        if worst is None or status.severity > worst.severity:
            worst = status

    if not is_external:
        return LOCAL_ONLY
    return ProvenanceAnnotation(
        is_external=True, last_synced=last_synced, sync_status=worst,
    )


def combine(*annotations: ProvenanceAnnotation) -> ProvenanceAnnotation:
    """Merge annotations of several aggregates into one."""
    external = [a for a in annotations if a.is_external]
    if not external:
        return LOCAL_ONLY
    synced = [a.last_synced for a in external if a.last_synced is not None]
    statuses = [a.sync_status for a in external if a.sync_status is not None]
    return ProvenanceAnnotation(
        is_external=True,
        last_synced=max(synced) if synced else None,
        sync_status=max(statuses, key=lambda s: s.severity) if statuses else None,
    )


def staleness_seconds(
    annotation: ProvenanceAnnotation, as_of: datetime,
) -> float | None:
    """
    Age of the last sync at ``as_of``, in seconds.

    None when nothing external contributed or nothing was ever synced. A
    sync timestamp later than ``as_of`` counts as zero age.
    """
    if annotation.last_synced is None:
        return None
    return max(0.0, (as_of - annotation.last_synced).total_seconds())
