"""
RouteDesk Client — HTTP Gateway
=================================

What:  Async client for the /api/routes and /api/locations endpoints.
Who:   Used by SyncSession; tests hand it an httpx client bound to the ASGI
       app or an httpx.MockTransport.

Retry Policy:
    Only GET requests are retried, and only on transport errors (connection
    refused, timeouts). Writes are never retried automatically: a POST that
    timed out may still have been applied, and the user decides whether to
    save again.

Read Cache:
    The three list reads (all routes, all locations, one route's locations)
    are cached in memory, each with its own TTL from settings. On top of the
    cache:
        - concurrent identical reads share one in-flight request
        - a failed read falls back to the last cached answer when there is one,
          unless the caller asked for `force_refresh`
        - every write (POST / PUT / DELETE) clears the whole cache, whether
          or not it succeeded, and a read that was in flight during the write
          is not stored
        - `force_refresh=True` skips the cache lookup (SyncSession uses it to
          re-fetch after a save)
    Single-row reads (`get_route`, `get_location`) are never cached.

Errors:
    Any non-2xx answer raises GatewayError carrying the status code and the
    server's `error` message. Transport failures that outlast the retries are
    raised as GatewayError with no status code.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from routedesk.config import settings
from routedesk.exceptions import GatewayError

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, Tuple[Tuple[str, str], ...]]


@dataclass
class CacheEntry:
    data: Any
    stored_at: float


class GatewayClient:
    """
    Thin wrapper over httpx.AsyncClient speaking the RouteDesk wire format.

    Usage:
        async with GatewayClient() as gateway:
            routes = await gateway.list_routes()
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=timeout if timeout is not None else settings.client_timeout,
        )
        self._clock = time.monotonic
        self._cache: Dict[CacheKey, CacheEntry] = {}
        self._inflight: Dict[CacheKey, "asyncio.Task[Any]"] = {}
        self._generation = 0
        self._stats = {"hits": 0, "misses": 0, "shared": 0, "stale": 0, "invalidations": 0}

    async def __aenter__(self) -> "GatewayClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ── Transport ─────────────────────────────────────────────────────────

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(settings.client_retry_attempts),
        wait=wait_exponential_jitter(
            initial=settings.client_retry_min_wait,
            max=settings.client_retry_max_wait,
            jitter=0.5,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _get_with_retry(self, path: str, params: Optional[Dict[str, Any]]) -> httpx.Response:
        return await self._client.get(path, params=params)

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        try:
            if method == "GET":
                response = await self._get_with_retry(path, params)
            else:
                try:
                    response = await self._client.request(method, path, params=params, json=json)
                finally:
                    self.clear_cache()
        except httpx.TransportError as e:
            logger.error("%s %s failed: %s", method, path, str(e))
            raise GatewayError(
                message=f"{method} {path} failed: {e}",
                context={"method": method, "path": path},
            ) from e

        if response.is_success:
            return response.json()

        try:
            message = response.json().get("error") or response.reason_phrase
        except (ValueError, AttributeError):
            message = response.text or response.reason_phrase
        raise GatewayError(
            message=message,
            status_code=response.status_code,
            context={"method": method, "path": path, "params": params},
        )

    # ── Read Cache ────────────────────────────────────────────────────────

    @staticmethod
    def _cache_key(path: str, params: Optional[Dict[str, Any]]) -> CacheKey:
        return path, tuple(sorted((name, str(value)) for name, value in (params or {}).items()))

    async def _cached_get(
        self,
        path: str,
        params: Optional[Dict[str, Any]],
        ttl: float,
        force_refresh: bool,
    ) -> Any:
        key = self._cache_key(path, params)
        entry = self._cache.get(key)
        if not force_refresh and entry is not None and self._clock() - entry.stored_at < ttl:
            self._stats["hits"] += 1
            logger.debug("Cache hit for %s", key)
            return entry.data

        task = self._inflight.get(key)
        if task is None:
            self._stats["misses"] += 1
            task = asyncio.ensure_future(self._request("GET", path, params=params))
            self._inflight[key] = task
            task.add_done_callback(lambda done: self._forget_inflight(key, done))
        else:
            self._stats["shared"] += 1
            logger.debug("Sharing in-flight request for %s", key)

        generation = self._generation
        try:
            data = await asyncio.shield(task)
        except GatewayError as e:
            stale = self._cache.get(key)
            if stale is None or force_refresh:
                raise
            self._stats["stale"] += 1
            logger.warning("Serving stale cache for %s after error: %s", key, e.message)
            return stale.data

        if ttl > 0 and generation == self._generation:
            self._cache[key] = CacheEntry(data=data, stored_at=self._clock())
        return data

    def _forget_inflight(self, key: CacheKey, task: "asyncio.Task[Any]") -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled():
            # Marks the exception retrieved even when every awaiter was cancelled
            task.exception()

    def clear_cache(self) -> None:
        """Drop every cached read and detach reads that are still in flight."""
        self._generation += 1
        self._stats["invalidations"] += 1
        self._cache.clear()
        self._inflight.clear()

    def cache_stats(self) -> Dict[str, Any]:
        """Counters plus the age in seconds of every cached read."""
        now = self._clock()
        return {
            **self._stats,
            "entries": {
                (str(httpx.URL(path, params=dict(params))) if params else path): round(
                    now - entry.stored_at, 3
                )
                for (path, params), entry in self._cache.items()
            },
            "in_flight": len(self._inflight),
        }

    # ── Routes ────────────────────────────────────────────────────────────

    async def list_routes(self, force_refresh: bool = False) -> List[Dict[str, Any]]:
        return await self._cached_get(
            "/routes", None, settings.client_cache_routes_ttl, force_refresh
        )

    async def get_route(self, route_id: int) -> Dict[str, Any]:
        """Returns {"route": {...}, "locations": [...]}."""
        return await self._request("GET", "/routes", params={"id": route_id})

    async def create_route(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/routes", json=payload)

    async def update_route(self, route_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("PUT", "/routes", params={"id": route_id}, json=changes)

    async def update_routes(self, items: List[Dict[str, Any]]) -> Dict[str, Any]:
        return await self._request("PUT", "/routes", json={"routes": items})

    async def delete_route(self, route_id: int) -> Dict[str, Any]:
        return await self._request("DELETE", "/routes", params={"id": route_id})

    # ── Locations ─────────────────────────────────────────────────────────

    async def list_locations(
        self, route_id: Optional[int] = None, force_refresh: bool = False
    ) -> List[Dict[str, Any]]:
        if route_id is None:
            return await self._cached_get(
                "/locations", None, settings.client_cache_locations_ttl, force_refresh
            )
        return await self._cached_get(
            "/locations",
            {"routeId": route_id},
            settings.client_cache_route_locations_ttl,
            force_refresh,
        )

    async def get_location(self, location_id: int) -> Dict[str, Any]:
        return await self._request("GET", "/locations", params={"id": location_id})

    async def create_location(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/locations", json=payload)

    async def update_location(self, location_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("PUT", "/locations", params={"id": location_id}, json=changes)

    async def update_locations(self, items: List[Dict[str, Any]]) -> Dict[str, Any]:
        return await self._request("PUT", "/locations", json={"locations": items})

    async def delete_location(self, location_id: int) -> Dict[str, Any]:
        return await self._request("DELETE", "/locations", params={"id": location_id})

    async def add_image(self, location_id: int, image_url: str) -> Dict[str, Any]:
        return await self._request(
            "POST", "/locations", params={"id": location_id}, json={"imageUrl": image_url}
        )

    async def remove_image(self, location_id: int, image_url: str) -> Dict[str, Any]:
        return await self._request(
            "DELETE", "/locations", params={"id": location_id, "imageUrl": image_url}
        )
