"""
RouteDesk Client — Gateway Tests
==================================

What:  GatewayClient request shapes, error mapping, the GET-only retry
       policy, and the read cache, using httpx.MockTransport (no server
       involved).
"""

import asyncio
import json

import httpx
import pytest
from tenacity import wait_none

from routedesk.client.gateway import GatewayClient
from routedesk.exceptions import GatewayError


def _gateway(handler) -> GatewayClient:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="http://api.test/api"
    )
    return GatewayClient(client=client)


@pytest.fixture(autouse=True)
def no_retry_wait(monkeypatch):
    monkeypatch.setattr(GatewayClient._get_with_retry.retry, "wait", wait_none())


class TestRequests:

    @pytest.mark.asyncio
    async def test_batch_update_sends_wrapped_body(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"updated": 1, "failed": 0, "routes": [], "failures": []})

        gateway = _gateway(handler)
        result = await gateway.update_routes([{"id": 3, "shift": "PM"}])

        assert seen == {"method": "PUT", "path": "/api/routes", "body": {"routes": [{"id": 3, "shift": "PM"}]}}
        assert result["updated"] == 1

    @pytest.mark.asyncio
    async def test_remove_image_uses_query_params(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"id": 4, "images": []})

        await _gateway(handler).remove_image(4, "https://img/x.png")

        assert seen["params"] == {"id": "4", "imageUrl": "https://img/x.png"}

    @pytest.mark.asyncio
    async def test_list_locations_by_route(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            return httpx.Response(200, json=[])

        await _gateway(handler).list_locations(route_id=9)

        assert seen["url"] == "http://api.test/api/locations?routeId=9"


class TestErrors:

    @pytest.mark.asyncio
    async def test_error_status_raises_gateway_error_with_message(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"error": "Route not found", "code": "not_found"})

        with pytest.raises(GatewayError) as exc_info:
            await _gateway(handler).delete_route(1)

        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "Route not found"

    @pytest.mark.asyncio
    async def test_non_json_error_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="Bad gateway")

        with pytest.raises(GatewayError) as exc_info:
            await _gateway(handler).list_routes()

        assert exc_info.value.status_code == 502
        assert exc_info.value.message == "Bad gateway"


class TestRetryPolicy:

    @pytest.mark.asyncio
    async def test_get_retries_transport_errors(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.method)
            if len(calls) < 3:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json=[])

        result = await _gateway(handler).list_routes()

        assert result == []
        assert calls == ["GET", "GET", "GET"]

    @pytest.mark.asyncio
    async def test_get_gives_up_after_configured_attempts(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.method)
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(GatewayError) as exc_info:
            await _gateway(handler).list_routes()

        assert exc_info.value.status_code is None
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_writes_are_not_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.method)
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(GatewayError):
            await _gateway(handler).create_route({"route": "R", "shift": "AM", "warehouse": "W"})

        assert calls == ["POST"]

    @pytest.mark.asyncio
    async def test_http_errors_are_not_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.method)
            return httpx.Response(500, json={"error": "boom"})

        with pytest.raises(GatewayError):
            await _gateway(handler).list_routes()

        assert calls == ["GET"]


class TestReadCache:

    @staticmethod
    def _counting(calls, body=None, delay=0.0):
        async def handler(request: httpx.Request) -> httpx.Response:
            calls.append((request.method, str(request.url.params)))
            if delay:
                await asyncio.sleep(delay)
            if request.method == "GET":
                return httpx.Response(200, json=body if body is not None else [])
            return httpx.Response(201, json={"id": 1})

        return handler

    @pytest.mark.asyncio
    async def test_repeat_list_is_served_from_cache(self):
        calls = []
        gateway = _gateway(self._counting(calls, body=[{"id": 1}]))

        first = await gateway.list_routes()
        second = await gateway.list_routes()

        assert first == second == [{"id": 1}]
        assert len(calls) == 1
        stats = gateway.cache_stats()
        assert (stats["hits"], stats["misses"]) == (1, 1)
        assert list(stats["entries"]) == ["/routes"]

    @pytest.mark.asyncio
    async def test_each_read_has_its_own_ttl(self):
        calls = []
        now = [1000.0]
        gateway = _gateway(self._counting(calls))
        gateway._clock = lambda: now[0]

        await gateway.list_routes()
        await gateway.list_locations()
        now[0] += 301
        await gateway.list_routes()
        await gateway.list_locations()

        # locations (5 min) expired, routes (10 min) did not
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_route_locations_are_keyed_by_route(self):
        calls = []
        gateway = _gateway(self._counting(calls))

        await gateway.list_locations(route_id=1)
        await gateway.list_locations(route_id=2)
        await gateway.list_locations(route_id=1)

        assert calls == [("GET", "routeId=1"), ("GET", "routeId=2")]
        assert set(gateway.cache_stats()["entries"]) == {"/locations?routeId=1", "/locations?routeId=2"}

    @pytest.mark.asyncio
    async def test_concurrent_reads_share_one_request(self):
        calls = []
        gateway = _gateway(self._counting(calls, body=[{"id": 5}], delay=0.02))

        results = await asyncio.gather(*(gateway.list_routes() for _ in range(3)))

        assert results == [[{"id": 5}]] * 3
        assert len(calls) == 1
        assert gateway.cache_stats()["shared"] == 2

    @pytest.mark.asyncio
    async def test_writes_clear_the_cache(self):
        calls = []
        gateway = _gateway(self._counting(calls))

        await gateway.list_routes()
        await gateway.create_route({"route": "R", "shift": "AM", "warehouse": "W"})
        await gateway.list_routes()

        assert [method for method, _ in calls] == ["GET", "POST", "GET"]

    @pytest.mark.asyncio
    async def test_failed_write_still_clears_the_cache(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.method)
            if request.method == "GET":
                return httpx.Response(200, json=[])
            return httpx.Response(500, json={"error": "boom"})

        gateway = _gateway(handler)
        await gateway.list_routes()
        with pytest.raises(GatewayError):
            await gateway.delete_route(1)
        await gateway.list_routes()

        assert calls == ["GET", "DELETE", "GET"]

    @pytest.mark.asyncio
    async def test_read_in_flight_during_write_is_not_stored(self):
        calls = []

        async def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.method)
            if request.method == "GET":
                await asyncio.sleep(0.02)
                return httpx.Response(200, json=[])
            return httpx.Response(201, json={"id": 1})

        gateway = _gateway(handler)
        read = asyncio.ensure_future(gateway.list_routes())
        await asyncio.sleep(0)
        await gateway.create_route({"route": "R", "shift": "AM", "warehouse": "W"})
        await read
        await gateway.list_routes()

        assert calls.count("GET") == 2

    @pytest.mark.asyncio
    async def test_stale_answer_is_served_when_refresh_fails(self):
        now = [0.0]
        healthy = [True]

        def handler(request: httpx.Request) -> httpx.Response:
            if healthy[0]:
                return httpx.Response(200, json=[{"id": 1}])
            return httpx.Response(503, json={"error": "down"})

        gateway = _gateway(handler)
        gateway._clock = lambda: now[0]
        await gateway.list_routes()
        now[0] += 601
        healthy[0] = False

        assert await gateway.list_routes() == [{"id": 1}]
        assert gateway.cache_stats()["stale"] == 1

    @pytest.mark.asyncio
    async def test_force_refresh_skips_cache_and_never_serves_stale(self):
        calls = []
        healthy = [True]

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.method)
            if healthy[0]:
                return httpx.Response(200, json=[])
            return httpx.Response(503, json={"error": "down"})

        gateway = _gateway(handler)
        await gateway.list_routes()
        await gateway.list_routes(force_refresh=True)
        assert len(calls) == 2

        healthy[0] = False
        with pytest.raises(GatewayError) as exc_info:
            await gateway.list_routes(force_refresh=True)
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_single_row_reads_are_not_cached(self):
        calls = []
        gateway = _gateway(self._counting(calls, body={"route": {}, "locations": []}))

        await gateway.get_route(3)
        await gateway.get_route(3)

        assert len(calls) == 2
