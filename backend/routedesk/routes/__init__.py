"""
RouteDesk Backend — API Routes Package
========================================

What:  HTTP route handlers that accept requests and return responses.

Route Inventory:
    - routes.py:     GET/POST/PUT/DELETE /api/routes
    - locations.py:  GET/POST/PUT/DELETE /api/locations (incl. image add/remove)
    - health.py:     GET /health
    - params.py:     body/id helpers shared by the two resources

Routes stay thin: read query and body, call the service, return the model.
Errors are raised as RouteDeskError subclasses and rendered by the handlers
registered in main.py.
"""
