"""
RouteDesk Backend — Location Service Tests
============================================

What:  LocationService against the in-memory SQLite database, plus the
       routeId parser.
"""

import pytest

from routedesk.exceptions import NotFoundError, ValidationError
from routedesk.schemas.location import LocationBatchItem, LocationCreate, LocationUpdate
from routedesk.services.location_service import LocationService, parse_route_id


class TestParseRouteId:

    @pytest.mark.parametrize("value, expected", [(7, 7), ("12", 12), (" 3 ", 3), (5.0, 5), (0, 0)])
    def test_accepts_non_negative_integers(self, value, expected):
        assert parse_route_id(value) == expected

    @pytest.mark.parametrize("value", [-1, "-4", "abc", "1.5", 2.5, True, None, [1]])
    def test_rejects_everything_else(self, value):
        with pytest.raises(ValidationError) as exc_info:
            parse_route_id(value)
        assert exc_info.value.message == "Invalid routeId: must be a valid positive number"
        assert exc_info.value.context["received"] == value


class TestLocationServiceCreate:

    def setup_method(self):
        self.service = LocationService()

    @pytest.mark.asyncio
    async def test_create_location(self, db_session, saved_route):
        payload = LocationCreate.model_validate(
            {
                "routeId": str(saved_route.id),
                "location": "Harbor Cafe",
                "code": 42,
                "no": "",
                "powerMode": "Alt 2",
                "latitude": 3.139,
                "longitude": 101.686,
            }
        )

        result = await self.service.create_location(db_session, payload)

        assert result.route_id == saved_route.id
        assert result.name == "Harbor Cafe"
        assert result.code == "42"
        assert result.sequence is None
        assert result.power_mode == "Alt 2"
        assert result.images == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [{"location": "No route"}, {"routeId": 1}, {"routeId": 1, "location": "  "}],
    )
    async def test_create_requires_route_id_and_name(self, db_session, body):
        with pytest.raises(ValidationError) as exc_info:
            await self.service.create_location(db_session, LocationCreate.model_validate(body))
        assert exc_info.value.message == "routeId and location are required"

    @pytest.mark.asyncio
    async def test_create_rejects_invalid_route_id(self, db_session):
        payload = LocationCreate.model_validate({"routeId": "route-7", "location": "X"})
        with pytest.raises(ValidationError) as exc_info:
            await self.service.create_location(db_session, payload)
        assert exc_info.value.field == "routeId"

    @pytest.mark.asyncio
    async def test_create_for_unknown_route(self, db_session):
        payload = LocationCreate.model_validate({"routeId": 5555, "location": "X"})
        with pytest.raises(NotFoundError) as exc_info:
            await self.service.create_location(db_session, payload)
        assert exc_info.value.message == "Route not found"


class TestLocationServiceRead:

    def setup_method(self):
        self.service = LocationService()

    @pytest.mark.asyncio
    async def test_list_by_route(self, db_session, saved_route, saved_locations, route_data):
        from routedesk.models import Location, Route

        other = Route(**route_data)
        db_session.add(other)
        await db_session.flush()
        db_session.add(Location(route_id=other.id, name="Elsewhere"))
        await db_session.flush()

        mine = await self.service.list_locations(db_session, route_id=saved_route.id)
        everything = await self.service.list_locations(db_session)

        assert [loc.name for loc in mine] == ["Depot", "Clinic", "Bakery"]
        assert len(everything) == 4
        assert everything[0].name == "Elsewhere"

    @pytest.mark.asyncio
    async def test_get_location_null_images_read_as_empty(self, db_session, saved_locations):
        depot = saved_locations[2]
        result = await self.service.get_location(db_session, depot.id)
        assert result.images == []

    @pytest.mark.asyncio
    async def test_get_missing_location(self, db_session):
        with pytest.raises(NotFoundError) as exc_info:
            await self.service.get_location(db_session, 31337)
        assert exc_info.value.message == "Location not found"


class TestLocationServiceUpdate:

    def setup_method(self):
        self.service = LocationService()

    @pytest.mark.asyncio
    async def test_sparse_update(self, db_session, saved_locations):
        bakery = saved_locations[0]

        result = await self.service.update_location(
            db_session, bakery.id, LocationUpdate.model_validate({"delivery": "Daily", "code": None})
        )

        assert result.delivery == "Daily"
        assert result.code is None
        assert result.name == "Bakery"
        assert result.power_mode == "Daily"

    @pytest.mark.asyncio
    async def test_update_cannot_blank_the_name(self, db_session, saved_locations):
        with pytest.raises(ValidationError):
            await self.service.update_location(
                db_session, saved_locations[0].id, LocationUpdate.model_validate({"location": ""})
            )

    @pytest.mark.asyncio
    async def test_batch_update_partial_failure(self, db_session, saved_locations):
        bakery, clinic, _ = saved_locations

        result = await self.service.batch_update(
            db_session,
            [
                LocationBatchItem(id=bakery.id, sequence=1),
                LocationBatchItem(id=424242, sequence=2),
                LocationBatchItem(id=clinic.id, sequence=3),
            ],
        )

        assert (result.updated, result.failed) == (2, 1)
        assert result.failures[0].id == 424242
        assert [loc.sequence for loc in result.locations] == [1, 3]

    @pytest.mark.asyncio
    async def test_batch_wrong_type_fails_only_that_entry(self, db_session, saved_locations):
        bakery, clinic, _ = saved_locations

        result = await self.service.batch_update(
            db_session,
            [
                {"id": bakery.id, "no": "seven"},
                {"id": clinic.id, "powerMode": "Hourly"},
                {"id": clinic.id, "code": "12"},
            ],
        )

        assert (result.updated, result.failed) == (1, 2)
        assert [f.id for f in result.failures] == [bakery.id, clinic.id]
        assert result.locations[0].code == "12"



class TestLocationServiceImages:

    def setup_method(self):
        self.service = LocationService()

    @pytest.mark.asyncio
    async def test_add_then_remove_restores_empty_list(self, db_session, saved_locations):
        bakery = saved_locations[0]

        added = await self.service.add_image(db_session, bakery.id, "https://img/a.jpg")
        removed = await self.service.remove_image(db_session, bakery.id, "https://img/a.jpg")

        assert added.images == ["https://img/a.jpg"]
        assert removed.images == []

    @pytest.mark.asyncio
    async def test_add_image_to_null_list(self, db_session, saved_locations):
        depot = saved_locations[2]
        result = await self.service.add_image(db_session, depot.id, "https://img/b.jpg")
        assert result.images == ["https://img/b.jpg"]

    @pytest.mark.asyncio
    async def test_remove_only_first_match(self, db_session, saved_locations):
        bakery = saved_locations[0]
        for url in ("a", "b", "a"):
            await self.service.add_image(db_session, bakery.id, url)

        result = await self.service.remove_image(db_session, bakery.id, "a")

        assert result.images == ["b", "a"]

    @pytest.mark.asyncio
    async def test_remove_unknown_url_is_noop(self, db_session, saved_locations):
        bakery = saved_locations[0]
        await self.service.add_image(db_session, bakery.id, "a")
        result = await self.service.remove_image(db_session, bakery.id, "zzz")
        assert result.images == ["a"]

    @pytest.mark.asyncio
    async def test_image_on_missing_location(self, db_session):
        with pytest.raises(NotFoundError):
            await self.service.add_image(db_session, 999, "a")
        with pytest.raises(NotFoundError):
            await self.service.remove_image(db_session, 999, "a")


class TestLocationServiceDelete:

    def setup_method(self):
        self.service = LocationService()

    @pytest.mark.asyncio
    async def test_delete_then_not_found(self, db_session, saved_locations):
        location_id = saved_locations[0].id

        result = await self.service.delete_location(db_session, location_id)

        assert result.id == location_id
        with pytest.raises(NotFoundError):
            await self.service.get_location(db_session, location_id)
        with pytest.raises(NotFoundError):
            await self.service.delete_location(db_session, location_id)
