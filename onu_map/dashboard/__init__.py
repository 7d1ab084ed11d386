"""
OnuStatusMap - Dashboard Package

Dash/Plotly map, the sync-to-async data provider and the JSON API routes.
"""

from onu_map.dashboard.app import OnuMapDashboard
from onu_map.dashboard.data_provider import DashboardDataProvider, describe_error
from onu_map.dashboard.api_routes import register_api_routes

__all__ = [
    "OnuMapDashboard",
    "DashboardDataProvider",
    "describe_error",
    "register_api_routes"
]
