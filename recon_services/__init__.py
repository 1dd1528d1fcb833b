"""
recon_services -- orchestration around the pure engines.

Owns the collaborator protocols, the SQLAlchemy store adapters, the async
fan-out/fan-in dashboard service, the scheduled refresher and the
presentation boundary. Engines never import from here.
"""

from recon_services.dashboard_service import (
    FinancialDashboard,
    FinancialDashboardService,
    cache_key,
)
from recon_services.presentation import dashboard_to_dict, dashboard_to_json
from recon_services.refresher import DashboardRefresher
from recon_services.sources import ExternalSyncStore, LocalStore

__all__ = [
    "DashboardRefresher",
    "ExternalSyncStore",
    "FinancialDashboard",
    "FinancialDashboardService",
    "LocalStore",
    "cache_key",
    "dashboard_to_dict",
    "dashboard_to_json",
]
