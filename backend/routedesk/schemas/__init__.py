"""
RouteDesk Backend — Pydantic Schemas
======================================

Wire models for /api/routes and /api/locations. Attribute names are
snake_case; JSON uses the camelCase aliases the admin UI expects.
"""
