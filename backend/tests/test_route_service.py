"""
RouteDesk Backend — Route Service Tests
=========================================

What:  RouteService against a real (in-memory SQLite) database.

What we test:
    ✅ Create stores trimmed-valid rows; blank required fields insert nothing
    ✅ Sparse update touches only the fields sent, and can clear description
    ✅ Batch update applies good entries and reports missing ids
    ✅ A malformed batch entry is a failure, not a rejected batch
    ✅ Delete cascades to locations and a repeat delete is NotFound
"""

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from routedesk.exceptions import NotFoundError, ValidationError
from routedesk.models import Location, Route
from routedesk.models.route import utcnow
from routedesk.schemas.route import RouteBatchItem, RouteCreate, RouteUpdate
from routedesk.services.route_service import RouteService


async def _count(db, model, *where) -> int:
    result = await db.execute(select(func.count()).select_from(model).where(*where))
    return result.scalar_one()


class TestRouteServiceCreate:

    def setup_method(self):
        self.service = RouteService()

    @pytest.mark.asyncio
    async def test_create_route_returns_inputs(self, db_session):
        payload = RouteCreate(route="South", shift="PM", warehouse="WH-2", description="Late run")

        result = await self.service.create_route(db_session, payload)

        assert result.id is not None
        assert (result.name, result.shift, result.warehouse) == ("South", "PM", "WH-2")
        assert result.description == "Late run"
        assert result.created_at is not None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "fields, missing",
        [
            ({"route": "", "shift": "AM", "warehouse": "W"}, ["route"]),
            ({"route": "R", "shift": "   ", "warehouse": "W"}, ["shift"]),
            ({"route": "R", "shift": "AM"}, ["warehouse"]),
            ({}, ["route", "shift", "warehouse"]),
        ],
    )
    async def test_create_route_rejects_blank_required_fields(self, db_session, fields, missing):
        with pytest.raises(ValidationError) as exc_info:
            await self.service.create_route(db_session, RouteCreate(**fields))

        assert exc_info.value.message == "Missing or empty required fields"
        assert exc_info.value.context["missing"] == missing
        assert exc_info.value.context["required"] == ["route", "shift", "warehouse"]
        assert await _count(db_session, Route) == 0


class TestRouteServiceRead:

    def setup_method(self):
        self.service = RouteService()

    @pytest.mark.asyncio
    async def test_list_routes_newest_first(self, db_session):
        for name in ("first", "second", "third"):
            await self.service.create_route(
                db_session, RouteCreate(route=name, shift="AM", warehouse="W")
            )

        routes = await self.service.list_routes(db_session)

        assert [r.name for r in routes] == ["third", "second", "first"]

    @pytest.mark.asyncio
    async def test_get_route_includes_locations(self, db_session, saved_route, saved_locations):
        detail = await self.service.get_route(db_session, saved_route.id)

        assert detail.route.id == saved_route.id
        assert [loc.name for loc in detail.locations] == ["Depot", "Clinic", "Bakery"]

    @pytest.mark.asyncio
    async def test_get_route_not_found(self, db_session):
        with pytest.raises(NotFoundError) as exc_info:
            await self.service.get_route(db_session, 999)
        assert exc_info.value.message == "Route not found"


class TestRouteServiceUpdate:

    def setup_method(self):
        self.service = RouteService()

    @pytest.mark.asyncio
    async def test_update_description_keeps_other_fields(self, db_session, saved_route):
        result = await self.service.update_route(
            db_session, saved_route.id, RouteUpdate(description="x")
        )

        assert result.description == "x"
        assert (result.name, result.shift, result.warehouse) == ("North Loop", "AM", "WH-1")

    @pytest.mark.asyncio
    async def test_explicit_null_clears_description(self, db_session, saved_route):
        payload = RouteUpdate.model_validate({"description": None})

        result = await self.service.update_route(db_session, saved_route.id, payload)

        assert result.description is None
        assert result.name == "North Loop"

    @pytest.mark.asyncio
    async def test_blank_required_field_is_rejected(self, db_session, saved_route):
        with pytest.raises(ValidationError):
            await self.service.update_route(
                db_session, saved_route.id, RouteUpdate.model_validate({"shift": " "})
            )
        assert saved_route.shift == "AM"

    @pytest.mark.asyncio
    async def test_update_missing_route(self, db_session):
        with pytest.raises(NotFoundError):
            await self.service.update_route(db_session, 404, RouteUpdate(description="x"))

    @pytest.mark.asyncio
    async def test_batch_update_reports_missing_id(self, db_session):
        first = await self.service.create_route(db_session, RouteCreate(route="A", shift="AM", warehouse="W"))
        second = await self.service.create_route(db_session, RouteCreate(route="B", shift="AM", warehouse="W"))

        result = await self.service.batch_update(
            db_session,
            [
                RouteBatchItem(id=first.id, shift="PM"),
                RouteBatchItem(id=987654, shift="PM"),
                RouteBatchItem(id=second.id, warehouse="W2"),
            ],
        )

        assert result.updated == 2
        assert result.failed == 1
        assert result.failures[0].id == 987654
        assert result.failures[0].error == "Route not found"
        assert {r.id for r in result.routes} == {first.id, second.id}

        stored = await self.service.get_route(db_session, second.id)
        assert stored.route.warehouse == "W2"

    @pytest.mark.asyncio
    async def test_batch_validation_failure_does_not_block_others(self, db_session, saved_route):
        other = await self.service.create_route(db_session, RouteCreate(route="B", shift="AM", warehouse="W"))

        result = await self.service.batch_update(
            db_session,
            [
                RouteBatchItem.model_validate({"id": saved_route.id, "route": ""}),
                RouteBatchItem(id=other.id, description="kept"),
            ],
        )

        assert (result.updated, result.failed) == (1, 1)
        assert result.failures[0].id == saved_route.id
        assert result.routes[0].description == "kept"

    @pytest.mark.asyncio
    async def test_batch_malformed_entries_are_failures(self, db_session, saved_route):
        result = await self.service.batch_update(
            db_session,
            [
                {"id": saved_route.id, "description": "ok"},
                {"id": "abc"},
                {"shift": "PM"},
                "not an object",
            ],
        )

        assert (result.updated, result.failed) == (1, 3)
        assert [f.id for f in result.failures] == ["abc", None, None]
        assert result.failures[0].error.startswith("Invalid field 'id'")
        assert result.routes[0].description == "ok"



class TestRouteServiceDelete:

    def setup_method(self):
        self.service = RouteService()

    @pytest.mark.asyncio
    async def test_delete_cascades_to_locations(self, db_session, saved_route, saved_locations):
        route_id = saved_route.id

        result = await self.service.delete_route(db_session, route_id)

        assert result.success is True
        assert result.id == route_id
        assert await _count(db_session, Location, Location.route_id == route_id) == 0
        assert await _count(db_session, Route, Route.id == route_id) == 0

    @pytest.mark.asyncio
    async def test_second_delete_is_not_found(self, db_session, saved_route):
        route_id = saved_route.id
        await self.service.delete_route(db_session, route_id)

        with pytest.raises(NotFoundError):
            await self.service.delete_route(db_session, route_id)


class TestRouteTimestamps:

    def test_timestamp_columns_are_timezone_aware(self):
        for column in ("createdAt", "updatedAt"):
            assert Route.__table__.c[column].type.timezone is True
            assert Location.__table__.c[column].type.timezone is True

    def test_utcnow_is_aware(self):
        assert utcnow().utcoffset() == timedelta(0)
