# Models package init
from routedesk.models.location import Location
from routedesk.models.route import Route

__all__ = ["Location", "Route"]
