"""
RouteDesk client reconciliation layer: an optimistically edited working copy
of routes and locations, and the save protocol that pushes it to the API.
"""

from routedesk.client.gateway import GatewayClient
from routedesk.client.identifiers import PendingId, PersistedId, RowId
from routedesk.client.sync import SyncSession, SyncState
from routedesk.client.working_copy import LocationRow, RouteRow, WorkingCopy

__all__ = [
    "GatewayClient",
    "LocationRow",
    "PendingId",
    "PersistedId",
    "RouteRow",
    "RowId",
    "SyncSession",
    "SyncState",
    "WorkingCopy",
]
