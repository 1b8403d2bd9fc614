"""
RouteDesk Client — Working Copy Store
=======================================

What:  The client's in-memory, optimistically edited mirror of the server's
       routes and locations.
Who:   Mutated by the admin UI through the action methods below; read and
       cleared by SyncSession when saving.

Store Layout:
    routes      {RowId: RouteRow}     in display order (new rows on top)
    locations   {RowId: LocationRow}  each row knows its owning route id
    dirty       {route RowId: bool}   unsaved-change flag per route
    deleted_routes / deleted_locations
                Persisted ids removed from view, deleted on the next save.

Change Sets:
    A persisted row records every edited field in `changes` ({field: value}).
    The key being present is the intent to write, so a value of None clears
    the column on save. Pending rows have no change set: they are created
    from their full field dict.

Marker colors are a per-location display preference. They survive reloads
for rows that still exist, follow a new location to its server id,
mark the owning route dirty like any other edit, and are never sent to the
server.
"""

import copy
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from routedesk.client.identifiers import (
    PendingId,
    PersistedId,
    RowId,
    as_row_id,
    is_pending,
    new_pending_id,
)
from routedesk.exceptions import NotFoundError, ValidationError
from routedesk.power import POWER_MODES, get_power_status, sort_for_display
from routedesk.schemas.common import parse_payload
from routedesk.schemas.location import (
    LocationBatchItem,
    LocationCreate,
    LocationFields,
    LocationResponse,
    LocationUpdate,
)
from routedesk.schemas.route import (
    RouteBatchItem,
    RouteCreate,
    RouteResponse,
    RouteUpdate,
)

logger = logging.getLogger(__name__)

ROUTE_FIELDS = tuple(RouteUpdate.model_fields)
LOCATION_FIELDS = tuple(LocationFields.model_fields)
REQUIRED_ROUTE_FIELDS = ("name", "shift", "warehouse")


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


@dataclass
class RouteRow:
    id: RowId
    fields: Dict[str, Any]
    changes: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_new(self) -> bool:
        return is_pending(self.id)

    @property
    def is_populated(self) -> bool:
        return any(not _blank(self.fields.get(name)) for name in ROUTE_FIELDS)

    @property
    def missing_required(self) -> List[str]:
        return [name for name in REQUIRED_ROUTE_FIELDS if _blank(self.fields.get(name))]


@dataclass
class LocationRow:
    id: RowId
    route_id: RowId
    fields: Dict[str, Any]
    changes: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_new(self) -> bool:
        return is_pending(self.id)

    @property
    def is_populated(self) -> bool:
        return any(not _blank(self.fields.get(name)) for name in LOCATION_FIELDS)

    # sort_for_display reads these two attributes
    @property
    def power_mode(self) -> Optional[str]:
        return self.fields.get("power_mode")

    @property
    def code(self) -> Optional[str]:
        return self.fields.get("code")


class WorkingCopy:
    """Normalized working-copy store with explicit mutation actions."""

    def __init__(self) -> None:
        self.routes: Dict[RowId, RouteRow] = {}
        self.locations: Dict[RowId, LocationRow] = {}
        self.dirty: Dict[RowId, bool] = {}
        self.deleted_routes: List[PersistedId] = []
        self.deleted_locations: List[PersistedId] = []
        self.marker_colors: Dict[RowId, str] = {}
        self._snapshot: Optional[tuple] = None

    # ── Loading & Snapshots ───────────────────────────────────────────────

    def load(self, routes: Iterable[Dict[str, Any]], locations: Iterable[Dict[str, Any]]) -> None:
        """
        Replace the store with server rows (camelCase wire dicts).

        Clears all tracking state and takes a fresh snapshot. Marker colors
        are kept for the locations that are still present and dropped for
        the rest.
        """
        self.routes = {}
        for wire in routes:
            response = RouteResponse.model_validate(wire)
            row_id = PersistedId(response.id)
            self.routes[row_id] = RouteRow(id=row_id, fields=response.model_dump(exclude={"id"}))

        self.locations = {}
        for wire in locations:
            response = LocationResponse.model_validate(wire)
            row_id = PersistedId(response.id)
            self.locations[row_id] = LocationRow(
                id=row_id,
                route_id=PersistedId(response.route_id),
                fields=response.model_dump(exclude={"id", "route_id"}),
            )

        self.marker_colors = {
            row_id: color for row_id, color in self.marker_colors.items() if row_id in self.locations
        }
        self.clear_tracking()
        self.take_snapshot()
        logger.debug("Working copy loaded: %d routes, %d locations", len(self.routes), len(self.locations))

    def adopt_location_ids(self, created: Dict[PendingId, PersistedId]) -> None:
        """Move marker colors of newly created locations to their server ids."""
        for pending_id, persisted_id in created.items():
            color = self.marker_colors.pop(pending_id, None)
            if color is not None:
                self.marker_colors[persisted_id] = color

    def take_snapshot(self) -> None:
        self._snapshot = copy.deepcopy((self.routes, self.locations, self.marker_colors))

    def restore_snapshot(self) -> None:
        """Return to the last snapshot, dropping staged deletions and dirty flags."""
        if self._snapshot is not None:
            routes, locations, colors = copy.deepcopy(self._snapshot)
            self.routes, self.locations, self.marker_colors = routes, locations, colors
        self.clear_tracking()

    def clear_tracking(self) -> None:
        self.dirty.clear()
        self.deleted_routes.clear()
        self.deleted_locations.clear()
        for row in list(self.routes.values()) + list(self.locations.values()):
            row.changes.clear()

    # ── Derived State ─────────────────────────────────────────────────────

    @property
    def has_unsaved_changes(self) -> bool:
        return any(self.dirty.values())

    def mark_dirty(self, route_id: RowId) -> None:
        self.dirty[route_id] = True

    def location_counts(self) -> Dict[RowId, int]:
        counts = {route_id: 0 for route_id in self.routes}
        for row in self.locations.values():
            counts[row.route_id] = counts.get(row.route_id, 0) + 1
        return counts

    def locations_for(self, route_id: Any, today: Optional[date] = None) -> List[LocationRow]:
        """A route's locations in display order (powered first, then by code)."""
        route_id = as_row_id(route_id)
        rows = [row for row in self.locations.values() if row.route_id == route_id]
        return sort_for_display(rows, today)

    def power_status(self, location_id: Any, today: Optional[date] = None) -> str:
        return get_power_status(self._location(location_id).power_mode, today)

    def duplicate_codes(self, route_id: Any) -> Dict[str, List[RowId]]:
        """Codes used by more than one location of the route (trimmed, non-empty)."""
        route_id = as_row_id(route_id)
        seen: Dict[str, List[RowId]] = {}
        for row in self.locations.values():
            if row.route_id != route_id or _blank(row.code):
                continue
            seen.setdefault(str(row.code).strip(), []).append(row.id)
        return {code: ids for code, ids in seen.items() if len(ids) > 1}

    # ── Route Actions ─────────────────────────────────────────────────────

    def _route(self, route_id: Any) -> RouteRow:
        row = self.routes.get(as_row_id(route_id))
        if row is None:
            raise NotFoundError(resource="route", resource_id=route_id)
        return row

    def add_route(self, **fields: Any) -> PendingId:
        """Insert a blank (or prefilled) route row at the top; returns its pending id."""
        values = self._validated(RouteUpdate, ROUTE_FIELDS, fields, "route")
        row_id = new_pending_id()
        row = RouteRow(id=row_id, fields={name: values.get(name) for name in ROUTE_FIELDS})
        self.routes = {row_id: row, **self.routes}
        self.mark_dirty(row_id)
        return row_id

    def edit_route(self, route_id: Any, **changes: Any) -> RouteRow:
        row = self._route(route_id)
        values = self._validated(RouteUpdate, ROUTE_FIELDS, changes, "route")
        row.fields.update(values)
        if not row.is_new:
            row.changes.update(values)
        self.mark_dirty(row.id)
        return row

    def stage_route_deletion(self, route_id: Any) -> None:
        """Remove a route and its locations from view; persisted ids are staged."""
        row = self._route(route_id)
        del self.routes[row.id]

        for location in [loc for loc in self.locations.values() if loc.route_id == row.id]:
            del self.locations[location.id]
            self.marker_colors.pop(location.id, None)
            if not location.is_new:
                self.deleted_locations.append(location.id)

        if row.is_new:
            self.dirty.pop(row.id, None)
        else:
            self.deleted_routes.append(row.id)
            self.mark_dirty(row.id)

    # ── Location Actions ──────────────────────────────────────────────────

    def _location(self, location_id: Any) -> LocationRow:
        row = self.locations.get(as_row_id(location_id))
        if row is None:
            raise NotFoundError(resource="location", resource_id=location_id)
        return row

    def add_location(self, route_id: Any, **fields: Any) -> PendingId:
        route = self._route(route_id)
        values = self._validated(LocationUpdate, LOCATION_FIELDS, fields, "location")
        row_id = new_pending_id()
        self.locations[row_id] = LocationRow(
            id=row_id,
            route_id=route.id,
            fields={name: values.get(name) for name in LOCATION_FIELDS},
        )
        self.mark_dirty(route.id)
        return row_id

    def edit_location(self, location_id: Any, **changes: Any) -> LocationRow:
        """
        Record edits on a location row.

        Editing `code` to a value another location of the same route already
        uses only logs a warning; codes are not enforced unique.
        """
        row = self._location(location_id)
        values = self._validated(LocationUpdate, LOCATION_FIELDS, changes, "location")
        row.fields.update(values)
        if not row.is_new:
            row.changes.update(values)
        self.mark_dirty(row.route_id)

        if "code" in values:
            duplicates = self.duplicate_codes(row.route_id)
            code = None if _blank(row.code) else str(row.code).strip()
            if code in duplicates:
                logger.warning(
                    "Duplicate location code '%s' on route %s (%d locations)",
                    code,
                    row.route_id,
                    len(duplicates[code]),
                )
        return row

    def set_power_mode(self, location_id: Any, mode: Optional[str]) -> LocationRow:
        if mode is not None and mode not in POWER_MODES:
            raise ValidationError(
                message=f"Invalid powerMode '{mode}'. Must be one of: {', '.join(POWER_MODES)}",
                field="powerMode",
            )
        return self.edit_location(location_id, power_mode=mode)

    def set_marker_color(self, location_id: Any, color: Optional[str]) -> None:
        row = self._location(location_id)
        if color is None:
            self.marker_colors.pop(row.id, None)
        else:
            self.marker_colors[row.id] = color
        self.mark_dirty(row.route_id)

    def stage_location_deletion(self, location_id: Any) -> None:
        row = self._location(location_id)
        del self.locations[row.id]
        self.marker_colors.pop(row.id, None)
        if not row.is_new:
            self.deleted_locations.append(row.id)
        self.mark_dirty(row.route_id)

    # ── Save Payloads ─────────────────────────────────────────────────────

    def pending_routes(self) -> List[RouteRow]:
        """New route rows worth creating; untouched blank rows are skipped."""
        return [row for row in self.routes.values() if row.is_new and row.is_populated]

    def pending_locations(self) -> List[LocationRow]:
        return [row for row in self.locations.values() if row.is_new and row.is_populated]

    @staticmethod
    def route_create_payload(row: RouteRow) -> Dict[str, Any]:
        body = RouteCreate(**{name: row.fields.get(name) for name in ROUTE_FIELDS})
        return body.model_dump(mode="json", by_alias=True, exclude_none=True)

    @staticmethod
    def location_create_payload(row: LocationRow) -> Dict[str, Any]:
        if not isinstance(row.route_id, PersistedId):
            raise ValidationError(
                message="Location references a route that has not been saved",
                field="routeId",
            )
        body = LocationCreate(
            route_id=row.route_id.value,
            **{name: row.fields.get(name) for name in LOCATION_FIELDS},
        )
        return body.model_dump(mode="json", by_alias=True, exclude_none=True)

    def route_updates(self) -> List[Dict[str, Any]]:
        """Sparse batch entries for persisted routes with a non-empty change set."""
        return [
            RouteBatchItem(id=row.id.value, **row.changes).model_dump(
                mode="json", by_alias=True, exclude_unset=True
            )
            for row in self.routes.values()
            if not row.is_new and row.changes
        ]

    def location_updates(self) -> List[Dict[str, Any]]:
        return [
            LocationBatchItem(id=row.id.value, **row.changes).model_dump(
                mode="json", by_alias=True, exclude_unset=True
            )
            for row in self.locations.values()
            if not row.is_new and row.changes
        ]

    # ── Helpers ───────────────────────────────────────────────────────────

    @staticmethod
    def _validated(model, allowed, values: Dict[str, Any], resource: str) -> Dict[str, Any]:
        unknown = sorted(set(values) - set(allowed))
        if unknown:
            raise ValidationError(
                message=f"Unknown {resource} field(s): {', '.join(unknown)}",
                context={"allowed": list(allowed)},
            )
        return parse_payload(model, values).changes()
