"""Tests for the periodic DashboardRefresher."""

import asyncio

import pytest

from recon_kernel.exceptions import InvalidRequestError
from recon_services import DashboardRefresher, FinancialDashboardService


@pytest.fixture
def service(static_stores, config, clock):
    local_cls, external_cls = static_stores
    return FinancialDashboardService(local_cls(), external_cls(), config=config, clock=clock)


class TestConstruction:
    def test_interval_defaults_to_config(self, service):
        refresher = DashboardRefresher(service, "bldg-1", "2025-Q2", lambda d: None)
        assert refresher._interval == service.config.refresh_interval_seconds

    @pytest.mark.parametrize("interval", [0, -1.5])
    def test_non_positive_interval_rejected(self, service, interval):
        with pytest.raises(ValueError, match="interval_seconds"):
            DashboardRefresher(service, "bldg-1", "2025", lambda d: None, interval_seconds=interval)

    def test_bad_period_rejected_up_front(self, service):
        with pytest.raises(InvalidRequestError):
            DashboardRefresher(service, "bldg-1", "someday", lambda d: None)


class TestTick:
    def test_delivers_dashboard(self, service):
        delivered = []
        refresher = DashboardRefresher(service, "bldg-1", "2025", delivered.append)
        dashboard = asyncio.run(refresher.tick())
        assert delivered == [dashboard]
        assert dashboard.building_id == "bldg-1"

    def test_async_callback_awaited(self, service):
        delivered = []

        async def callback(dashboard):
            await asyncio.sleep(0)
            delivered.append(dashboard.period.code)

        refresher = DashboardRefresher(service, "bldg-1", "2025-Q1", callback)
        asyncio.run(refresher.tick())
        assert delivered == ["2025-Q1"]


class TestRun:
    def test_stops_when_event_set(self, service):
        async def scenario():
            stop = asyncio.Event()
            refresher = DashboardRefresher(
                service, "bldg-1", "2025", lambda d: stop.set(), interval_seconds=60,
            )
            return await asyncio.wait_for(refresher.run(stop), timeout=5)

        assert asyncio.run(scenario()) == 1

    def test_refreshes_on_interval(self, service):
        async def scenario():
            stop = asyncio.Event()
            seen = []

            def callback(dashboard):
                seen.append(dashboard)
                if len(seen) == 3:
                    stop.set()

            refresher = DashboardRefresher(
                service, "bldg-1", "2025", callback, interval_seconds=0.01,
            )
            return await asyncio.wait_for(refresher.run(stop), timeout=5)

        assert asyncio.run(scenario()) == 3

    def test_failed_tick_logged_and_loop_continues(self, service, captured_logs):
        async def scenario():
            stop = asyncio.Event()
            calls = []

            def callback(dashboard):
                calls.append(dashboard)
                if len(calls) == 1:
                    raise RuntimeError("renderer crashed")
                stop.set()

            refresher = DashboardRefresher(
                service, "bldg-1", "2025", callback, interval_seconds=0.01,
            )
            return await asyncio.wait_for(refresher.run(stop), timeout=5)

        assert asyncio.run(scenario()) == 1
        failures = [r for r in captured_logs() if r["message"] == "refresher_tick_failed"]
        assert len(failures) == 1
        assert failures[0]["exc_type"] == "RuntimeError"

    def test_invalid_request_propagates(self, service):
        async def scenario():
            refresher = DashboardRefresher(service, " ", "2025", lambda d: None)
            await refresher.run(asyncio.Event())

        with pytest.raises(InvalidRequestError):
            asyncio.run(scenario())

    def test_start_returns_task(self, service, captured_logs):
        async def scenario():
            stop = asyncio.Event()
            refresher = DashboardRefresher(
                service, "bldg-1", "2025", lambda d: None, interval_seconds=60,
            )
            task = refresher.start(stop)
            await asyncio.sleep(0.05)
            stop.set()
            return await asyncio.wait_for(task, timeout=5)

        assert asyncio.run(scenario()) == 1
        messages = [r["message"] for r in captured_logs()]
        assert "refresher_started" in messages
        assert "refresher_stopped" in messages
