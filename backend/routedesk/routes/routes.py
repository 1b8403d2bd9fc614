"""
RouteDesk Backend — Route Resource Handlers
=============================================

What:  GET/POST/PUT/DELETE/OPTIONS on /api/routes.
How:   Extracts query/body, delegates to RouteService, returns camelCase JSON.
Who:   Called by the admin UI table and the client GatewayClient.

Endpoint Summary:
    GET     /api/routes            all routes, newest first
    GET     /api/routes?id=N       {route, locations}
    POST    /api/routes            create (201)
    PUT     /api/routes            {routes: [...]} batch update
    PUT     /api/routes?id=N       single sparse update
    DELETE  /api/routes?id=N       delete with its locations (id may be in the body)
"""

import logging
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from routedesk.database import get_db_session
from routedesk.exceptions import ValidationError
from routedesk.routes.params import read_json_body, resolve_id
from routedesk.schemas.common import DeleteResponse, ErrorResponse, parse_payload
from routedesk.schemas.route import (
    RouteBatchResult,
    RouteBatchUpdate,
    RouteCreate,
    RouteDetailResponse,
    RouteResponse,
    RouteUpdate,
)
from routedesk.services.route_service import route_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Routes"])

_ERRORS = {
    400: {"description": "Invalid input", "model": ErrorResponse},
    404: {"description": "Route not found", "model": ErrorResponse},
    500: {"description": "Server or database error", "model": ErrorResponse},
}


@router.get(
    "/routes",
    response_model=None,
    responses=_ERRORS,
    summary="List routes, or fetch one route with its locations",
)
async def get_routes(
    id: Optional[int] = Query(default=None, description="Route id; omit to list all routes"),
    db: AsyncSession = Depends(get_db_session),
) -> Union[List[RouteResponse], RouteDetailResponse]:
    if id is not None:
        return await route_service.get_route(db, id)
    return await route_service.list_routes(db)


@router.post(
    "/routes",
    response_model=RouteResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_ERRORS,
    summary="Create a route",
)
async def create_route(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> RouteResponse:
    payload = parse_payload(RouteCreate, await read_json_body(request))
    return await route_service.create_route(db, payload)


@router.put(
    "/routes",
    response_model=None,
    responses=_ERRORS,
    summary="Batch update routes, or update one route by id",
    description=(
        "A body of the form {routes: [...]} is applied as a batch, each entry in "
        "isolation. Otherwise the body is a sparse update for the route in ?id=. "
        "Only fields present in the body are written."
    ),
)
async def update_routes(
    request: Request,
    id: Optional[int] = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> Union[RouteBatchResult, RouteResponse]:
    body = await read_json_body(request)

    if isinstance(body, dict) and isinstance(body.get("routes"), list):
        batch = parse_payload(RouteBatchUpdate, body)
        return await route_service.batch_update(db, batch.routes)

    if id is None:
        raise ValidationError(
            message="Route id is required for a single update",
            field="id",
            context={"hint": "Pass ?id= or send {routes: [...]}"},
        )
    payload = parse_payload(RouteUpdate, body)
    return await route_service.update_route(db, id, payload)


@router.delete(
    "/routes",
    response_model=DeleteResponse,
    responses=_ERRORS,
    summary="Delete a route and all of its locations",
)
async def delete_route(
    request: Request,
    id: Optional[int] = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> DeleteResponse:
    body = await read_json_body(request) if id is None else None
    route_id = resolve_id(id, body, "route")
    return await route_service.delete_route(db, route_id)


@router.options("/routes", include_in_schema=False)
async def routes_options() -> Response:
    return Response(status_code=status.HTTP_200_OK)
