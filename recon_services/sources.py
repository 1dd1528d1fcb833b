"""
Collaborator protocols for the two data sources.

A store may implement ``query`` either as a coroutine or as a blocking
function; the dashboard service awaits the former and runs the latter in a
worker thread.
"""

from __future__ import annotations

from collections.abc import Awaitable
from typing import Protocol, runtime_checkable

from recon_ingestion.domain.types import ExternalSnapshot, LocalSnapshot
from recon_kernel.domain.values import ReportingPeriod


@runtime_checkable
class LocalStore(Protocol):
    """Read access to the local ledger for one building and period."""

    def query(
        self, building_id: str, period: ReportingPeriod,
    ) -> LocalSnapshot | Awaitable[LocalSnapshot]:
        ...


@runtime_checkable
class ExternalSyncStore(Protocol):
    """Read access to the external sync mirror for one building and period."""

    def query(
        self, building_id: str, period: ReportingPeriod,
    ) -> ExternalSnapshot | Awaitable[ExternalSnapshot]:
        ...
