"""
RouteDesk Backend — Route Service
===================================

What:  Validation and persistence for the Route resource.
Who:   Called by the /api/routes handlers; owns no HTTP concerns.

Partial Update Policy:
    Only fields present in the request are written (see schemas/common.py).
    name/shift/warehouse are NOT NULL and must stay non-blank, so an explicit
    null or whitespace-only value for them is rejected instead of stored.

Batch Policy:
    Each batch entry runs inside its own SAVEPOINT. A missing id, a validation
    failure, or a database error rolls back that entry only and is reported in
    `failures`; the remaining entries still commit with the request.

Cascade:
    Deleting a route first deletes its locations, then the route. The location
    delete is harmless when the route does not exist, so the 404 for a missing
    route is decided by the second statement alone.
"""

import logging
from typing import Any, Dict, List

from sqlalchemy import delete, desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from routedesk.exceptions import DatabaseError, NotFoundError, RouteDeskError, ValidationError
from routedesk.models import Location, Route
from routedesk.models.route import utcnow
from routedesk.schemas.common import BatchFailure, DeleteResponse, entry_id, parse_payload
from routedesk.schemas.location import LocationResponse
from routedesk.schemas.route import (
    RouteBatchItem,
    RouteBatchResult,
    RouteCreate,
    RouteDetailResponse,
    RouteResponse,
    RouteUpdate,
)

logger = logging.getLogger(__name__)

# Attribute name → wire name, for error messages the UI can show verbatim
REQUIRED_FIELDS = {"name": "route", "shift": "shift", "warehouse": "warehouse"}


def _is_blank(value: Any) -> bool:
    return value is None or not isinstance(value, str) or value.strip() == ""


def route_response(route: Route) -> RouteResponse:
    return RouteResponse(**{field: getattr(route, field) for field in RouteResponse.model_fields})


def location_response(location: Location) -> LocationResponse:
    return LocationResponse(
        **{field: getattr(location, field) for field in LocationResponse.model_fields}
    )


class RouteService:
    """
    Business logic layer for route operations.

    Error Handling Strategy:
        ValidationError / NotFoundError propagate unchanged. SQLAlchemy errors
        are wrapped in DatabaseError carrying the driver's message, which the
        handler echoes back (internal admin tool).
    """

    async def list_routes(self, db: AsyncSession) -> List[RouteResponse]:
        """All routes, newest first."""
        try:
            result = await db.execute(
                select(Route).order_by(desc(Route.created_at), desc(Route.id))
            )
            return [route_response(route) for route in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.error("Database error listing routes: %s", str(e), exc_info=True)
            raise DatabaseError(message=f"Failed to fetch routes: {e}")

    async def get_route(self, db: AsyncSession, route_id: int) -> RouteDetailResponse:
        """
        One route plus its locations (newest first).

        Raises:
            NotFoundError: no route has this id (→ 404)
        """
        try:
            route = await db.get(Route, route_id)
            if route is None:
                raise NotFoundError(resource="route", resource_id=route_id)

            result = await db.execute(
                select(Location)
                .where(Location.route_id == route_id)
                .order_by(desc(Location.created_at), desc(Location.id))
            )
            return RouteDetailResponse(
                route=route_response(route),
                locations=[location_response(loc) for loc in result.scalars().all()],
            )
        except SQLAlchemyError as e:
            logger.error("Database error fetching route %s: %s", route_id, str(e))
            raise DatabaseError(message=str(e), context={"route_id": route_id})

    async def create_route(self, db: AsyncSession, payload: RouteCreate) -> RouteResponse:
        """
        Insert a route after checking the required fields.

        Raises:
            ValidationError: name, shift, or warehouse missing or blank; nothing is inserted
        """
        missing = [
            wire for attr, wire in REQUIRED_FIELDS.items() if _is_blank(getattr(payload, attr))
        ]
        if missing:
            raise ValidationError(
                message="Missing or empty required fields",
                context={
                    "required": list(REQUIRED_FIELDS.values()),
                    "missing": missing,
                    "hint": "All fields must have non-empty values",
                },
            )

        route = Route(
            name=payload.name,
            shift=payload.shift,
            warehouse=payload.warehouse,
            description=payload.description or None,
        )
        try:
            db.add(route)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error creating route: %s", str(e), exc_info=True)
            raise DatabaseError(message=str(e))

        logger.info("Route created: id=%s name=%s", route.id, route.name)
        return route_response(route)

    async def _apply_update(
        self, db: AsyncSession, route_id: int, changes: Dict[str, Any]
    ) -> Route:
        for attr, value in changes.items():
            if attr in REQUIRED_FIELDS and _is_blank(value):
                raise ValidationError(
                    message=f"'{REQUIRED_FIELDS[attr]}' cannot be empty",
                    field=REQUIRED_FIELDS[attr],
                )

        route = await db.get(Route, route_id)
        if route is None:
            raise NotFoundError(resource="route", resource_id=route_id)

        for attr, value in changes.items():
            setattr(route, attr, value)
        route.updated_at = utcnow()
        await db.flush()
        return route

    async def update_route(
        self, db: AsyncSession, route_id: int, payload: RouteUpdate
    ) -> RouteResponse:
        """
        Apply a sparse update to one route.

        Raises:
            ValidationError: a required field was sent as null/blank
            NotFoundError: no route has this id
        """
        try:
            route = await self._apply_update(db, route_id, payload.changes())
        except SQLAlchemyError as e:
            logger.error("Database error updating route %s: %s", route_id, str(e))
            raise DatabaseError(message=str(e), context={"route_id": route_id})
        return route_response(route)

    async def batch_update(
        self, db: AsyncSession, items: List[Any]
    ) -> RouteBatchResult:
        """
        Apply each sparse update independently; never aborts on the first failure.

        Entries may be raw dicts. Each is validated on its own, so a malformed
        entry (no id, wrong types) is reported in `failures` like any other.

        Returns:
            RouteBatchResult with counts, the updated rows, and {id, error} per failure
        """
        updated: List[RouteResponse] = []
        failures: List[BatchFailure] = []

        for raw in items:
            try:
                item = parse_payload(RouteBatchItem, raw)
                async with db.begin_nested():
                    route = await self._apply_update(db, item.id, item.changes())
                    updated.append(route_response(route))
            except RouteDeskError as e:
                failures.append(BatchFailure(id=entry_id(raw), error=e.message))
            except SQLAlchemyError as e:
                logger.error("Error updating route %s: %s", entry_id(raw), str(e))
                failures.append(BatchFailure(id=entry_id(raw), error=str(e)))

        if failures:
            logger.warning(
                "Route batch update: %d updated, %d failed", len(updated), len(failures)
            )
        return RouteBatchResult(
            updated=len(updated),
            failed=len(failures),
            routes=updated,
            failures=failures,
        )

    async def delete_route(self, db: AsyncSession, route_id: int) -> DeleteResponse:
        """
        Delete a route and, first, all of its locations.

        Raises:
            NotFoundError: the route did not exist (a repeat delete also lands here)
        """
        try:
            removed = await db.execute(
                delete(Location).where(Location.route_id == route_id)
            )
            result = await db.execute(delete(Route).where(Route.id == route_id))
        except SQLAlchemyError as e:
            logger.error("Database error deleting route %s: %s", route_id, str(e))
            raise DatabaseError(message=str(e), context={"route_id": route_id})

        if result.rowcount == 0:
            raise NotFoundError(resource="route", resource_id=route_id)

        logger.info("Route %s deleted with %d locations", route_id, removed.rowcount)
        return DeleteResponse(success=True, id=route_id)


# ── Singleton Instance ────────────────────────────────────────────────────
route_service = RouteService()
