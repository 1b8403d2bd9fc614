"""
RouteDesk Backend — Location Resource Handlers
================================================

What:  GET/POST/PUT/DELETE/OPTIONS on /api/locations.
Who:   Called by the admin UI table, the image gallery, and GatewayClient.

Endpoint Summary:
    GET     /api/locations                 all locations, newest first
    GET     /api/locations?routeId=N       locations of one route
    GET     /api/locations?id=N            one location
    POST    /api/locations                 create (201)
    POST    /api/locations?id=N            {imageUrl} append an image
    PUT     /api/locations                 {locations: [...]} batch update
    PUT     /api/locations?id=N            single sparse update
    DELETE  /api/locations?id=N&imageUrl=  remove one image
    DELETE  /api/locations?id=N            delete the row (id may be in the body)
"""

import logging
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from routedesk.database import get_db_session
from routedesk.exceptions import ValidationError
from routedesk.routes.params import read_json_body, resolve_id
from routedesk.schemas.common import DeleteResponse, ErrorResponse, parse_payload
from routedesk.schemas.location import (
    ImageRequest,
    LocationBatchResult,
    LocationBatchUpdate,
    LocationCreate,
    LocationResponse,
    LocationUpdate,
)
from routedesk.services.location_service import location_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Locations"])

_ERRORS = {
    400: {"description": "Invalid input", "model": ErrorResponse},
    404: {"description": "Location (or route) not found", "model": ErrorResponse},
    500: {"description": "Server or database error", "model": ErrorResponse},
}


@router.get(
    "/locations",
    response_model=None,
    responses=_ERRORS,
    summary="List locations (optionally by route) or fetch one",
)
async def get_locations(
    id: Optional[int] = Query(default=None),
    route_id: Optional[int] = Query(default=None, alias="routeId"),
    db: AsyncSession = Depends(get_db_session),
) -> Union[List[LocationResponse], LocationResponse]:
    if id is not None:
        return await location_service.get_location(db, id)
    return await location_service.list_locations(db, route_id=route_id)


@router.post(
    "/locations",
    response_model=LocationResponse,
    responses=_ERRORS,
    summary="Create a location, or append an image with ?id=",
)
async def create_location(
    request: Request,
    response: Response,
    id: Optional[int] = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> LocationResponse:
    body = await read_json_body(request)

    if id is not None:
        image = parse_payload(ImageRequest, body)
        return await location_service.add_image(db, id, image.image_url)

    payload = parse_payload(LocationCreate, body)
    location = await location_service.create_location(db, payload)
    response.status_code = status.HTTP_201_CREATED
    return location


@router.put(
    "/locations",
    response_model=None,
    responses=_ERRORS,
    summary="Batch update locations, or update one location by id",
)
async def update_locations(
    request: Request,
    id: Optional[int] = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> Union[LocationBatchResult, LocationResponse]:
    body = await read_json_body(request)

    if isinstance(body, dict) and isinstance(body.get("locations"), list):
        batch = parse_payload(LocationBatchUpdate, body)
        return await location_service.batch_update(db, batch.locations)

    if id is None:
        raise ValidationError(
            message="Location id is required for a single update",
            field="id",
            context={"hint": "Pass ?id= or send {locations: [...]}"},
        )
    payload = parse_payload(LocationUpdate, body)
    return await location_service.update_location(db, id, payload)


@router.delete(
    "/locations",
    response_model=None,
    responses=_ERRORS,
    summary="Remove an image (with imageUrl) or delete the location",
)
async def delete_location(
    request: Request,
    id: Optional[int] = Query(default=None),
    image_url: Optional[str] = Query(default=None, alias="imageUrl"),
    db: AsyncSession = Depends(get_db_session),
) -> Union[LocationResponse, DeleteResponse]:
    body = await read_json_body(request)
    location_id = resolve_id(id, body, "location")

    if image_url is None and isinstance(body, dict):
        image_url = body.get("imageUrl")
    if image_url:
        return await location_service.remove_image(db, location_id, image_url)
    return await location_service.delete_location(db, location_id)


@router.options("/locations", include_in_schema=False)
async def locations_options() -> Response:
    return Response(status_code=status.HTTP_200_OK)
