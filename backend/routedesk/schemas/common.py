"""
RouteDesk Backend — Shared Pydantic Schemas
=============================================

What:  Base model configuration and response models shared by both resources.
Why:   The admin UI speaks camelCase JSON (`routeId`, `createdAt`), while the
       Python side uses snake_case. One base class does the translation.

Partial Updates:
    Update schemas declare every mutable field as Optional with a default.
    Pydantic records which fields the client actually sent in
    `model_fields_set`; the services apply exactly those fields. A field that
    is sent as null is therefore "clear this value", and a field that is not
    sent is "leave it alone".
"""

from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from routedesk.exceptions import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


class CamelModel(BaseModel):
    """Base for all wire models: camelCase aliases, snake_case attribute names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def changes(self, exclude: tuple = ("id",)) -> Dict[str, Any]:
        """Fields explicitly present in the request, keyed by attribute name."""
        return {
            name: getattr(self, name)
            for name in self.model_fields_set
            if name not in exclude
        }


def parse_payload(model: Type[ModelT], payload: Any) -> ModelT:
    """
    Validate a raw JSON body against `model`, raising our 400-mapped error.

    Used where one endpoint accepts more than one body shape (single vs batch),
    so FastAPI cannot pick the model from the signature.
    """
    try:
        return model.model_validate(payload if payload is not None else {})
    except PydanticValidationError as e:
        errors = e.errors(include_url=False, include_context=False, include_input=False)
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = f"Invalid field '{location}': {first.get('msg')}" if location else "Invalid request body"
        raise ValidationError(message=message, context={"errors": errors})


def entry_id(raw: Any) -> Any:
    """The id a batch entry claims to have, reported even when the entry is malformed."""
    if isinstance(raw, dict):
        return raw.get("id")
    return getattr(raw, "id", None)


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class BatchFailure(BaseModel):
    """One entry of a batch update that could not be applied."""
    id: Any = Field(description="The id the client sent for this entry")
    error: str = Field(description="Why the entry failed")


class DeleteResponse(BaseModel):
    success: bool = True
    id: int


class ErrorResponse(BaseModel):
    """
    Standardized error body for all API errors.

    Example:
        {
            "error": "Route not found",
            "code": "not_found",
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Human-readable error description")
    code: str = Field(description="Machine-readable error code")
    details: Optional[Dict[str, Any]] = Field(default=None, description="Additional error context")
    hint: Optional[str] = Field(default=None, description="How to fix a configuration problem")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected, not_configured")
    uptime_seconds: float = Field(description="Seconds since service started")
