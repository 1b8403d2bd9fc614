"""
RouteDesk Backend — Services Layer
====================================

What:  Business logic between the route handlers (HTTP) and the database.

Service Inventory:
    - RouteService:     route CRUD, sparse/batch updates, cascade delete
    - LocationService:  location CRUD, sparse/batch updates, image list edits

Services take an AsyncSession and schema objects, raise RouteDeskError
subclasses, and never build HTTP responses themselves.
"""
