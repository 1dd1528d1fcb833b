"""
DashboardRefresher -- explicit, cancellable periodic rebuild of a dashboard.

Contract:
    Re-runs ``FinancialDashboardService.build_dashboard`` on an interval and
    hands every result to a callback. Stops when the caller sets the
    ``asyncio.Event`` it passed in, or when the task is cancelled.

Architecture: recon_services. Owns no timers beyond its own loop; nothing
    refreshes unless a caller starts one of these.

Invariants enforced:
    - The stop event is checked before every rebuild and interrupts the
      wait between rebuilds.
    - A failing rebuild or callback is logged and the loop carries on.
    - Cancellation is propagated, never swallowed.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable

from recon_kernel.domain.values import ReportingPeriod
from recon_kernel.exceptions import InvalidRequestError
from recon_kernel.logging_config import get_logger
from recon_services.dashboard_service import FinancialDashboard, FinancialDashboardService

logger = get_logger("services.refresher")

DashboardCallback = Callable[[FinancialDashboard], None | Awaitable[None]]


class DashboardRefresher:
    """Periodic dashboard rebuild loop.

    Contract:
        - ``tick()`` rebuilds once and delivers the result.
        - ``run(stop)`` loops until ``stop`` is set; returns the number of
          dashboards delivered.
        - ``start(stop)`` schedules ``run`` as a task on the running loop.

    Non-goals:
        - NOT a distributed scheduler.
        - Does NOT cache or diff dashboards between ticks.
    """

    def __init__(
        self,
        service: FinancialDashboardService,
        building_id: str,
        period: ReportingPeriod | str,
        callback: DashboardCallback,
        interval_seconds: float | None = None,
    ):
        if not isinstance(period, ReportingPeriod):
            period = ReportingPeriod.parse(period)
        interval = (
            interval_seconds if interval_seconds is not None
            else service.config.refresh_interval_seconds
        )
        if interval <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval}")
        self._service = service
        self._building_id = building_id
        self._period = period
        self._callback = callback
        self._interval = interval

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def tick(self) -> FinancialDashboard:
        """Rebuild once and deliver the result (public for testing)."""
        dashboard = await self._service.build_dashboard(self._building_id, self._period)
        outcome = self._callback(dashboard)
        if inspect.isawaitable(outcome):
            await outcome
        return dashboard

    async def run(self, stop: asyncio.Event) -> int:
        """Refresh until ``stop`` is set. Returns the number of deliveries."""
        delivered = 0
        logger.info("refresher_started", extra={
            "building_id": self._building_id,
            "period_code": self._period.code,
            "interval_seconds": self._interval,
        })
        while not stop.is_set():
            try:
                await self.tick()
                delivered += 1
            except InvalidRequestError:
                raise
            except Exception:
                logger.exception("refresher_tick_failed", extra={
                    "building_id": self._building_id,
                })
            # Wait for interval or until stopped
            try:
                await asyncio.wait_for(stop.wait(), timeout=self._interval)
            except TimeoutError:
                continue
        logger.info("refresher_stopped", extra={
            "building_id": self._building_id,
            "delivered": delivered,
        })
        return delivered

    def start(self, stop: asyncio.Event) -> asyncio.Task[int]:
        """Schedule ``run`` on the running event loop."""
        return asyncio.create_task(
            self.run(stop), name=f"dashboard-refresher-{self._building_id}",
        )
