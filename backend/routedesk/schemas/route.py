"""
RouteDesk Backend — Route Request/Response Schemas
====================================================

Wire names follow the admin UI: the route's name travels as `route`.
Required-field checks for creation live in RouteService (so a 400 can list
every missing field at once), not in these models.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import Field

from routedesk.schemas.common import BatchFailure, CamelModel
from routedesk.schemas.location import LocationResponse


class RouteCreate(CamelModel):
    name: Optional[str] = Field(default=None, alias="route")
    shift: Optional[str] = None
    warehouse: Optional[str] = None
    description: Optional[str] = None


class RouteUpdate(CamelModel):
    """Sparse update: only fields present in the JSON body are written."""
    name: Optional[str] = Field(default=None, alias="route")
    shift: Optional[str] = None
    warehouse: Optional[str] = None
    description: Optional[str] = None


class RouteBatchItem(RouteUpdate):
    id: int


class RouteBatchUpdate(CamelModel):
    # Entries stay raw so RouteService can reject a malformed one on its own
    routes: List[Any]


class RouteResponse(CamelModel):
    id: int
    name: str = Field(alias="route")
    shift: str
    warehouse: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RouteDetailResponse(CamelModel):
    """GET /api/routes?id= — the route plus its locations, newest first."""
    route: RouteResponse
    locations: List[LocationResponse]


class RouteBatchResult(CamelModel):
    updated: int = Field(description="Number of routes updated")
    failed: int = Field(description="Number of entries that could not be applied")
    routes: List[RouteResponse] = Field(default_factory=list)
    failures: List[BatchFailure] = Field(default_factory=list)
