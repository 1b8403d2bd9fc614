"""
RouteDesk Backend — Application Package Initializer
=====================================================

What: Marks the `routedesk` directory as a Python package.
Why:  Enables module imports like `from routedesk.config import settings`.
Who:  Used implicitly by Python's import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    The package has two halves that share schemas and the power-schedule rules:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │      Services (Gateway Logic)       │  ← Validation, partial updates
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    ┌─────────────────────────────────────┐
    │   client.sync (save state machine)  │  ← Dirty tracking, batch save
    ├─────────────────────────────────────┤
    │   client.working_copy (local rows)  │  ← Optimistic edits, staging
    ├─────────────────────────────────────┤
    │   client.gateway (HTTP client)      │  ← httpx calls to the API above
    └─────────────────────────────────────┘

    The server half can be deployed and tested without the client half,
    and the client half can be tested against a fake gateway.
"""

__version__ = "1.0.0"
