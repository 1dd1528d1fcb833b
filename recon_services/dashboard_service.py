"""
FinancialDashboardService -- fan-out to both stores, fan-in through the engines.

Responsibility:
    Queries the local store and the external sync store concurrently,
    normalizes what came back, reconciles it, aggregates it and returns a
    ``FinancialDashboard`` for one building and reporting period.

Architecture position:
    Services -- the only async layer. Engines run synchronously once both
    fetches have resolved; they never suspend.

Invariants enforced:
    - Only ``InvalidRequestError`` propagates to the caller. A store that
      fails or times out becomes a ``SourceUnavailableError`` diagnostic
      and the dashboard is marked ``partial``.
    - ``asyncio.CancelledError`` is never swallowed: cancelling the caller
      cancels both in-flight fetches.
    - All timestamps come from the injected Clock.
    - Stateless between calls; memoization belongs to the caller, keyed by
      ``cache_key``.

Failure modes:
    - InvalidRequestError: blank building id, missing or unparseable period.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from recon_config import ReconConfig, get_active_config
from recon_engines.aggregation import (
    Aggregator,
    FinancialSummary,
    RecentTransaction,
    recent_transactions,
    within_period,
)
from recon_engines.reconciliation import ReconciliationEngine
from recon_engines.staleness import ProvenanceAnnotation, staleness_seconds
from recon_engines.variance import BudgetComparison, merge_budget_lines
from recon_ingestion.domain.types import ExternalSnapshot, LocalSnapshot
from recon_ingestion.normalizer import normalize_batch
from recon_kernel.domain.clock import Clock, SystemClock
from recon_kernel.domain.dtos import Diagnostic, ReconciliationDiagnostics
from recon_kernel.domain.values import (
    Provenance,
    ReportingPeriod,
    SourceName,
    SourceState,
)
from recon_kernel.exceptions import InvalidRequestError, SourceUnavailableError
from recon_kernel.logging_config import LogContext, get_logger
from recon_services.sources import ExternalSyncStore, LocalStore

logger = get_logger("services.dashboard")


@dataclass(frozen=True)
class FinancialDashboard:
    """Everything the financial overview screen renders."""

    building_id: str
    period: ReportingPeriod
    summary: FinancialSummary
    budget_comparisons: tuple[BudgetComparison, ...] = ()
    recent_transactions: tuple[RecentTransaction, ...] = ()
    diagnostics: ReconciliationDiagnostics = field(
        default_factory=ReconciliationDiagnostics
    )
    generated_at: datetime | None = None
    external_staleness_seconds: float | None = None

    @property
    def partial(self) -> bool:
        return self.summary.partial


def cache_key(
    building_id: str, period: ReportingPeriod | str, source_version: Any,
) -> tuple[str, str, str]:
    """
    Memoization key for a dashboard.

    ``source_version`` is whatever the caller uses to detect source changes
    (a sync run id, a max ``updated_at``); the service never caches.
    """
    code = period.code if isinstance(period, ReportingPeriod) else ReportingPeriod.parse(period).code
    return (building_id, code, str(source_version))


class FinancialDashboardService:
    """
    Builds dashboards from two independently updated sources.

    Contract:
        ``build_dashboard`` is a coroutine. Stores may expose either
        ``async def query`` or a blocking ``def query``; blocking queries
        run in a worker thread.

    Guarantees:
        - Both fetches run concurrently.
        - With ``fetch_timeout_seconds`` configured, a fetch that takes
          longer counts as the source being unavailable.
        - If both sources fail the result is still a dashboard, with zero
          totals and both sources marked unavailable.

    Non-goals:
        - Does NOT cache results or retry failed fetches.
        - Does NOT write to either source.
    """

    def __init__(
        self,
        local_store: LocalStore,
        external_store: ExternalSyncStore,
        config: ReconConfig | None = None,
        clock: Clock | None = None,
        engine: ReconciliationEngine | None = None,
        aggregator: Aggregator | None = None,
    ):
        self._local_store = local_store
        self._external_store = external_store
        self._config = config or get_active_config()
        self._clock = clock or SystemClock()
        self._engine = engine or ReconciliationEngine()
        self._aggregator = aggregator or Aggregator()

    @property
    def config(self) -> ReconConfig:
        return self._config

    cache_key = staticmethod(cache_key)

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def build_dashboard(
        self, building_id: str, period: ReportingPeriod | str,
    ) -> FinancialDashboard:
        """
        Build the dashboard for one building and reporting period.

        Args:
            building_id: Building to report on.
            period: A ``ReportingPeriod`` or a code such as ``"2025-Q2"``.

        Raises:
            InvalidRequestError: If the building id is blank or the period
                is missing or unparseable.
        """
        if not isinstance(building_id, str) or not building_id.strip():
            raise InvalidRequestError("building_id", "is required", building_id)
        if not isinstance(period, ReportingPeriod):
            period = ReportingPeriod.parse(period)

        with LogContext.bind(
            correlation_id=str(uuid4()),
            building_id=building_id,
            period_code=period.code,
        ):
            t0 = time.monotonic()
            logger.info("dashboard_build_started", extra={
                "fetch_timeout_seconds": self._config.fetch_timeout_seconds,
            })

            (local, local_failure), (external, external_failure) = await asyncio.gather(
                self._guarded_fetch(SourceName.LOCAL, self._local_store, LocalSnapshot, building_id, period),
                self._guarded_fetch(SourceName.EXTERNAL, self._external_store, ExternalSnapshot, building_id, period),
            )

            failures = tuple(f for f in (local_failure, external_failure) if f is not None)
            availability = {
                SourceName.LOCAL: SourceState.AVAILABLE if local is not None else SourceState.UNAVAILABLE,
                SourceName.EXTERNAL: SourceState.AVAILABLE if external is not None else SourceState.UNAVAILABLE,
            }
            dashboard = self._assemble(
                building_id, period, local, external, availability, failures,
            )

            duration_ms = round((time.monotonic() - t0) * 1000, 2)
            logger.info("dashboard_build_completed", extra={
                "partial": dashboard.partial,
                "recent_count": len(dashboard.recent_transactions),
                "dropped_count": dashboard.diagnostics.dropped_count,
                "conflict_count": dashboard.summary.conflict_count,
                "duration_ms": duration_ms,
            })
            return dashboard

    # -------------------------------------------------------------------------
    # Fan-out
    # -------------------------------------------------------------------------

    async def _query(self, store: Any, building_id: str, period: ReportingPeriod) -> Any:
        if inspect.iscoroutinefunction(store.query):
            pending = store.query(building_id, period)
        else:
            pending = asyncio.to_thread(store.query, building_id, period)

        timeout = self._config.fetch_timeout_seconds
        if timeout is not None:
            result = await asyncio.wait_for(pending, timeout=timeout)
        else:
            result = await pending
        # A plain ``def query`` may still hand back an awaitable
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _guarded_fetch(
        self,
        source: SourceName,
        store: Any,
        expected: type,
        building_id: str,
        period: ReportingPeriod,
    ) -> tuple[Any, Diagnostic | None]:
        """Fetch one snapshot; any failure other than cancellation becomes a diagnostic."""
        with LogContext.bind(source=source.value):
            t0 = time.monotonic()
            try:
                snapshot = await self._query(store, building_id, period)
                if not isinstance(snapshot, expected):
                    raise TypeError(
                        f"{source.value} store returned {type(snapshot).__name__}, "
                        f"expected {expected.__name__}"
                    )
            except TimeoutError:
                reason = f"timed out after {self._config.fetch_timeout_seconds}s"
                logger.warning("source_fetch_timed_out", extra={"reason": reason})
            except Exception as exc:
                reason = f"{type(exc).__name__}: {exc}"
                logger.warning("source_fetch_failed", extra={"reason": reason}, exc_info=True)
            else:
                logger.debug("source_fetch_completed", extra={
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                })
                return snapshot, None

        error = SourceUnavailableError(source.value, reason)
        return None, Diagnostic.from_error(
            error,
            provenance=Provenance(source.value),
            source=source.value,
            reason=reason,
        )

    # -------------------------------------------------------------------------
    # Fan-in
    # -------------------------------------------------------------------------

    def _assemble(
        self,
        building_id: str,
        period: ReportingPeriod,
        local: LocalSnapshot | None,
        external: ExternalSnapshot | None,
        availability: dict[SourceName, SourceState],
        failures: tuple[Diagnostic, ...],
    ) -> FinancialDashboard:
        raw = (local.all_records() if local else ()) + (
            external.all_records() if external else ()
        )
        sync_states = external.sync_status_by_entity if external else None
        normalized = normalize_batch(raw, self._config, sync_states)

        local_tx = [r for r in normalized.transactions if not r.is_external]
        external_tx = [r for r in normalized.transactions if r.is_external]
        reconciled = self._engine.reconcile(local_tx, external_tx, period)

        local_inv = [i for i in normalized.invoices if not i.is_external]
        external_inv = [i for i in normalized.invoices if i.is_external]
        invoices = self._engine.reconcile_invoices(local_inv, external_inv)

        demands, payments = within_period(normalized.demands, normalized.payments, period)
        comparisons = merge_budget_lines(normalized.budget_lines, period)

        summary = self._aggregator.summarize(
            reconciled.unified,
            invoices=invoices.invoices,
            demands=demands,
            payments=payments,
            budget_lines=normalized.budget_lines,
            source_availability=availability,
        )

        now = self._clock.now()
        freshness = ProvenanceAnnotation(
            is_external=summary.last_external_sync is not None,
            last_synced=summary.last_external_sync,
            sync_status=summary.sync_status,
        )
        diagnostics = (
            normalized.diagnostics
            .merge(reconciled.diagnostics)
            .merge(invoices.diagnostics)
            .merge(ReconciliationDiagnostics(source_failures=failures))
        )
        return FinancialDashboard(
            building_id=building_id,
            period=period,
            summary=summary,
            budget_comparisons=comparisons,
            recent_transactions=recent_transactions(
                reconciled.unified, limit=self._config.recent_transactions_limit,
            ),
            diagnostics=diagnostics,
            generated_at=now,
            external_staleness_seconds=staleness_seconds(freshness, now),
        )
