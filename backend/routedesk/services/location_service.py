"""
RouteDesk Backend — Location Service
======================================

What:  Validation and persistence for the Location resource, including the
       image-list append/remove operations.
Who:   Called by the /api/locations handlers.

Image List:
    Images are not part of the partial-update path. add_image appends to the
    stored list (a NULL list counts as empty) and remove_image drops the first
    exact match. The row is read with SELECT ... FOR UPDATE so two concurrent
    appends to the same location cannot lose one another on Postgres.

routeId Parsing:
    The admin UI has historically sent routeId as a number or as a numeric
    string. Anything that is not a non-negative whole number is a 400.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from routedesk.exceptions import DatabaseError, NotFoundError, RouteDeskError, ValidationError
from routedesk.models import Location, Route
from routedesk.models.route import utcnow
from routedesk.schemas.common import BatchFailure, DeleteResponse, entry_id, parse_payload
from routedesk.schemas.location import (
    LocationBatchItem,
    LocationBatchResult,
    LocationCreate,
    LocationResponse,
    LocationUpdate,
)
from routedesk.services.route_service import location_response

logger = logging.getLogger(__name__)

_DIGITS = re.compile(r"^\d+$")


def parse_route_id(value: Any) -> int:
    """
    Parse a routeId sent by a client into a non-negative integer.

    Raises:
        ValidationError: value is a bool, negative, fractional, or not numeric
    """
    if isinstance(value, bool):
        parsed = None
    elif isinstance(value, int):
        parsed = value
    elif isinstance(value, float) and value.is_integer():
        parsed = int(value)
    elif isinstance(value, str) and _DIGITS.match(value.strip()):
        parsed = int(value.strip())
    else:
        parsed = None

    if parsed is None or parsed < 0:
        raise ValidationError(
            message="Invalid routeId: must be a valid positive number",
            field="routeId",
            context={"received": value},
        )
    return parsed


class LocationService:
    """Business logic layer for location operations."""

    async def list_locations(
        self, db: AsyncSession, route_id: Optional[int] = None
    ) -> List[LocationResponse]:
        """All locations, or those of one route; newest first."""
        query = select(Location)
        if route_id is not None:
            query = query.where(Location.route_id == route_id)
        query = query.order_by(desc(Location.created_at), desc(Location.id))
        try:
            result = await db.execute(query)
        except SQLAlchemyError as e:
            logger.error("Database error listing locations: %s", str(e), exc_info=True)
            raise DatabaseError(message=f"Failed to fetch locations: {e}")
        return [location_response(loc) for loc in result.scalars().all()]

    async def _load(self, db: AsyncSession, location_id: int, for_update: bool = False) -> Location:
        query = select(Location).where(Location.id == location_id)
        if for_update:
            query = query.with_for_update()
        result = await db.execute(query)
        location = result.scalar_one_or_none()
        if location is None:
            raise NotFoundError(resource="location", resource_id=location_id)
        return location

    async def get_location(self, db: AsyncSession, location_id: int) -> LocationResponse:
        try:
            return location_response(await self._load(db, location_id))
        except SQLAlchemyError as e:
            raise DatabaseError(message=str(e), context={"location_id": location_id})

    async def create_location(
        self, db: AsyncSession, payload: LocationCreate
    ) -> LocationResponse:
        """
        Insert a location for an existing route.

        Raises:
            ValidationError: routeId or location missing, or routeId not a non-negative integer
            NotFoundError: routeId does not reference an existing route
        """
        name_missing = payload.name is None or payload.name.strip() == ""
        route_missing = payload.route_id is None or (
            isinstance(payload.route_id, str) and payload.route_id.strip() == ""
        )
        if name_missing or route_missing:
            raise ValidationError(
                message="routeId and location are required",
                context={
                    "missing": [
                        wire
                        for wire, absent in (("routeId", route_missing), ("location", name_missing))
                        if absent
                    ]
                },
            )

        route_id = parse_route_id(payload.route_id)

        try:
            if await db.get(Route, route_id) is None:
                raise NotFoundError(resource="route", resource_id=route_id)

            fields = payload.model_dump(exclude={"route_id"})
            location = Location(route_id=route_id, images=[], **fields)
            db.add(location)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error creating location: %s", str(e), exc_info=True)
            raise DatabaseError(message=str(e))

        logger.info("Location created: id=%s route_id=%s", location.id, route_id)
        return location_response(location)

    async def _apply_update(
        self, db: AsyncSession, location_id: int, changes: Dict[str, Any]
    ) -> Location:
        if "name" in changes and (changes["name"] is None or not changes["name"].strip()):
            raise ValidationError(message="'location' cannot be empty", field="location")

        location = await self._load(db, location_id)
        for attr, value in changes.items():
            setattr(location, attr, value)
        location.updated_at = utcnow()
        await db.flush()
        return location

    async def update_location(
        self, db: AsyncSession, location_id: int, payload: LocationUpdate
    ) -> LocationResponse:
        """Apply a sparse update to one location (images untouched)."""
        try:
            location = await self._apply_update(db, location_id, payload.changes())
        except SQLAlchemyError as e:
            logger.error("Database error updating location %s: %s", location_id, str(e))
            raise DatabaseError(message=str(e), context={"location_id": location_id})
        return location_response(location)

    async def batch_update(
        self, db: AsyncSession, items: List[Any]
    ) -> LocationBatchResult:
        """
        Apply each sparse update in its own SAVEPOINT; collect failures.

        Entries may be raw dicts; each one is validated on its own, so a
        malformed entry becomes a failure instead of rejecting the batch.
        """
        updated: List[LocationResponse] = []
        failures: List[BatchFailure] = []

        for raw in items:
            try:
                item = parse_payload(LocationBatchItem, raw)
                async with db.begin_nested():
                    location = await self._apply_update(db, item.id, item.changes())
                    updated.append(location_response(location))
            except RouteDeskError as e:
                failures.append(BatchFailure(id=entry_id(raw), error=e.message))
            except SQLAlchemyError as e:
                logger.error("Error updating location %s: %s", entry_id(raw), str(e))
                failures.append(BatchFailure(id=entry_id(raw), error=str(e)))

        if failures:
            logger.warning(
                "Location batch update: %d updated, %d failed", len(updated), len(failures)
            )
        return LocationBatchResult(
            updated=len(updated),
            failed=len(failures),
            locations=updated,
            failures=failures,
        )

    async def add_image(
        self, db: AsyncSession, location_id: int, image_url: str
    ) -> LocationResponse:
        """Append `image_url` to the location's image list."""
        try:
            location = await self._load(db, location_id, for_update=True)
            location.images = list(location.images or []) + [image_url]
            location.updated_at = utcnow()
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error adding image to %s: %s", location_id, str(e))
            raise DatabaseError(message=str(e), context={"location_id": location_id})
        return location_response(location)

    async def remove_image(
        self, db: AsyncSession, location_id: int, image_url: str
    ) -> LocationResponse:
        """Remove the first exact match of `image_url`; unknown URLs are a no-op."""
        try:
            location = await self._load(db, location_id, for_update=True)
            images = list(location.images or [])
            if image_url in images:
                images.remove(image_url)
            location.images = images
            location.updated_at = utcnow()
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error removing image from %s: %s", location_id, str(e))
            raise DatabaseError(message=str(e), context={"location_id": location_id})
        return location_response(location)

    async def delete_location(self, db: AsyncSession, location_id: int) -> DeleteResponse:
        try:
            result = await db.execute(delete(Location).where(Location.id == location_id))
        except SQLAlchemyError as e:
            logger.error("Database error deleting location %s: %s", location_id, str(e))
            raise DatabaseError(message=str(e), context={"location_id": location_id})

        if result.rowcount == 0:
            raise NotFoundError(resource="location", resource_id=location_id)
        return DeleteResponse(success=True, id=location_id)


# ── Singleton Instance ────────────────────────────────────────────────────
location_service = LocationService()
