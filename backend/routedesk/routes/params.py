"""
RouteDesk Backend — Request Parameter Helpers
===============================================

The /api handlers accept more than one body shape per verb (single object
vs. `{routes: [...]}` batch), and DELETE accepts the id from the query string
or from a JSON body. These helpers read the raw body and resolve ids so the
handlers stay declarative.
"""

import json
from typing import Any, Optional

from fastapi import Request

from routedesk.exceptions import ValidationError


async def read_json_body(request: Request) -> Any:
    """Return the decoded JSON body, or {} when the body is empty."""
    raw = await request.body()
    if not raw or not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except ValueError:
        raise ValidationError(message="Request body must be valid JSON")


def coerce_id(value: Any, field: str = "id") -> int:
    if isinstance(value, bool):
        value = None
    try:
        parsed = int(str(value).strip()) if value is not None else None
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(message=f"Invalid {field}: must be an integer", field=field)
    return parsed


def resolve_id(query_id: Optional[int], body: Any, resource: str) -> int:
    """Id from the query string, falling back to `id` in the JSON body."""
    if query_id is not None:
        return query_id
    if isinstance(body, dict) and body.get("id") is not None:
        return coerce_id(body["id"])
    raise ValidationError(message=f"{resource.capitalize()} id is required", field="id")
