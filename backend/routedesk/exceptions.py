"""
RouteDesk Backend — Custom Exception Hierarchy
================================================

What:  Defines application-specific exceptions for different error scenarios.
Why:   Custom exceptions enable targeted error handling with appropriate HTTP
       status codes and messages.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch the server-side
       ones and return structured JSON error responses.
Who:   Raised by services and the client reconciliation layer.

Exception Hierarchy:
    RouteDeskError (base)
    ├── ValidationError            → 400 Bad Request (client can fix)
    ├── NotFoundError              → 404 Not Found
    ├── DatabaseNotConnectedError  → 500 (engine never initialized)
    ├── DatabaseError              → 500 Internal Server Error
    └── client side (never reach the HTTP handlers):
        ├── GatewayError           HTTP call to the API failed
        ├── SaveValidationError    route rows incomplete, save refused
        ├── SaveBlockedError       location references an unsaved route
        └── SaveFailedError        a save phase raised; working copy kept
"""

from typing import Any, Dict, Optional


class RouteDeskError(Exception):
    """
    Base exception for all RouteDesk application errors.

    Attributes:
        message:  Human-readable error description (returned in API responses)
        context:  Additional detail (missing fields, ids) for logs and clients
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(RouteDeskError):
    """
    Raised when client input fails validation.

    When:    Missing/blank required fields, unparseable routeId, unknown power mode.
    HTTP:    400 Bad Request

    Example response:
        {
            "error": "Missing or empty required fields",
            "code": "validation_error",
            "details": {"missing": ["shift"], "required": ["route", "shift", "warehouse"]}
        }
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class NotFoundError(RouteDeskError):
    """
    Raised when a requested resource does not exist.

    SQLAlchemy returns None for missing records (not an exception); the
    services convert None → NotFoundError so the handler can answer 404.
    The default message matches what the admin UI expects ("Route not found").
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"{resource.capitalize()} not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id is not None:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)
        self.resource_id = resource_id


class DatabaseNotConnectedError(RouteDeskError):
    """
    Raised for every database-backed request when the engine failed to start.

    HTTP:    500 with a fixed message and a configuration hint.
    Recovery: Fix DATABASE_URL / VITE_DATABASE_URL and restart the process.
    """

    hint = "Check DATABASE_URL environment variable"

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(message="Database not connected", context=context)


class DatabaseError(RouteDeskError):
    """
    Raised when a database statement fails unexpectedly.

    HTTP:    500 Internal Server Error
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


# ══════════════════════════════════════════════════════════════════════════
# Client-side errors (reconciliation layer)
# ══════════════════════════════════════════════════════════════════════════


class GatewayError(RouteDeskError):
    """Raised by GatewayClient when the API answers with a non-2xx status."""

    def __init__(
        self,
        message: str = "Gateway request failed",
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if status_code is not None:
            ctx["status_code"] = status_code
        super().__init__(message=message, context=ctx)
        self.status_code = status_code


class SaveValidationError(RouteDeskError):
    """A route row has some fields filled but is missing name, shift, or warehouse."""


class SaveBlockedError(RouteDeskError):
    """A location points at a route that has not been saved yet."""

    def __init__(
        self,
        message: str = "Cannot save location with unsaved route. Please save the route first.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class SaveFailedError(RouteDeskError):
    """A phase of the batch save raised; dirty flags are kept so the user can retry."""


class SaveInProgressError(RouteDeskError):
    """save() was called while a previous save is still running."""

    def __init__(
        self,
        message: str = "A save is already in progress",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
