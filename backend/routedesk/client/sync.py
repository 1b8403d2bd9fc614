"""
RouteDesk Client — Save / Cancel State Machine
================================================

What:  Reconciles the working copy with the server: the batch save protocol,
       cancel-to-snapshot, and the session state shown by the UI.
Who:   Driven by the admin UI's Save / Cancel / Edit buttons.

States:
    CLEAN        no dirty flag set
    DIRTY        at least one route has unsaved changes
    SAVING       a save is in flight
    SAVE_FAILED  the last save raised; the working copy and dirty flags were
                 kept so the user can save again

Save Protocol:
    0. Validation gate (no network call when it fails):
       - every populated route row needs non-blank name, shift, and warehouse
       - no location may belong to a route that has not been saved
    1. Delete staged routes concurrently, then staged locations concurrently.
       Per-item failures are logged and tolerated; a 404 means the row is
       already gone (a route delete also removes its locations).
    2. Upsert routes and locations concurrently. Pending rows are POSTed;
       persisted rows with a change set go out in one batch PUT per resource.
       A failed create or a batch reporting `failed > 0` fails the save, and
       the writes still running are cancelled before the failure is raised.
    3. Re-fetch all routes and locations, bypassing the read cache, and
       reload the working copy. Marker colors of created locations move to
       their new ids; the reload recomputes per-route counts, clears
       tracking, and takes a new snapshot.

save() refuses to start while another save is running.

A failed save is not retried automatically. Deletes that already went
through stay applied; the user saves again to push the remaining changes.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from routedesk.client.gateway import GatewayClient
from routedesk.client.identifiers import PendingId, PersistedId
from routedesk.client.working_copy import WorkingCopy
from routedesk.exceptions import (
    GatewayError,
    SaveBlockedError,
    SaveFailedError,
    SaveInProgressError,
    SaveValidationError,
)

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    CLEAN = "clean"
    DIRTY = "dirty"
    SAVING = "saving"
    SAVE_FAILED = "save_failed"


class SyncSession:
    """Owns one WorkingCopy and the gateway used to persist it."""

    def __init__(self, gateway: GatewayClient, working_copy: Optional[WorkingCopy] = None):
        self.gateway = gateway
        self.working_copy = working_copy or WorkingCopy()
        self._phase: Optional[SyncState] = None

    @property
    def state(self) -> SyncState:
        if self._phase is not None:
            return self._phase
        return SyncState.DIRTY if self.working_copy.has_unsaved_changes else SyncState.CLEAN

    # ── Loading & Edit Mode ───────────────────────────────────────────────

    async def load(self) -> None:
        """Fetch all routes, then all locations, into a fresh working copy."""
        routes = await self.gateway.list_routes()
        locations = await self.gateway.list_locations()
        self.working_copy.load(routes, locations)
        self._phase = None

    def enter_edit_mode(self) -> None:
        self.working_copy.take_snapshot()

    def cancel(self, confirm: Optional[Callable[[], bool]] = None) -> bool:
        """
        Discard unsaved edits by restoring the last snapshot.

        `confirm` is only asked when something is dirty; returning False
        leaves everything untouched. Returns whether the cancel happened.
        """
        if self.working_copy.has_unsaved_changes and confirm is not None and not confirm():
            return False
        self.working_copy.restore_snapshot()
        self._phase = None
        return True

    # ── Validation Gate ───────────────────────────────────────────────────

    def validate(self) -> None:
        """
        Raises:
            SaveValidationError: a populated route row misses a required field
            SaveBlockedError: a location belongs to a route that is not saved yet
        """
        incomplete = {
            str(row.id): row.missing_required
            for row in self.working_copy.routes.values()
            if row.is_populated and row.missing_required
        }
        if incomplete:
            raise SaveValidationError(
                message="Route, shift, and warehouse are required for every route",
                context={"routes": incomplete},
            )

        blocked = [
            str(row.id)
            for row in self.working_copy.locations.values()
            if isinstance(row.route_id, PendingId)
        ]
        if blocked:
            raise SaveBlockedError(context={"locations": blocked})

    # ── Save ──────────────────────────────────────────────────────────────

    async def save(self) -> None:
        """
        Run the full save protocol.

        Raises:
            SaveInProgressError: another save() has not finished yet
            SaveValidationError / SaveBlockedError: the gate refused; nothing was sent
            SaveFailedError: a phase raised; state is SAVE_FAILED
        """
        if self._phase is SyncState.SAVING:
            raise SaveInProgressError()
        self.validate()

        wc = self.working_copy
        self._phase = SyncState.SAVING
        logger.info(
            "Saving: %d route deletions, %d location deletions",
            len(wc.deleted_routes),
            len(wc.deleted_locations),
        )
        created: Dict[PendingId, PersistedId] = {}
        try:
            await self._delete_all(wc.deleted_routes, self.gateway.delete_route, "route")
            await self._delete_all(wc.deleted_locations, self.gateway.delete_location, "location")

            await run_all([self._upsert_routes(), self._upsert_locations(created)])

            routes = await self.gateway.list_routes(force_refresh=True)
            locations = await self.gateway.list_locations(force_refresh=True)
        except SaveFailedError:
            self._phase = SyncState.SAVE_FAILED
            raise
        except Exception as e:
            self._phase = SyncState.SAVE_FAILED
            logger.error("Save failed: %s", str(e), exc_info=True)
            raise SaveFailedError(
                message=f"Failed to save changes: {e}",
                context={"error_type": type(e).__name__},
            ) from e
        except BaseException:
            # Cancelled from outside; the unfinished writes were cancelled with it
            self._phase = SyncState.SAVE_FAILED
            raise

        wc.adopt_location_ids(created)
        wc.load(routes, locations)
        self._phase = None
        logger.info("Save complete: %d routes, %d locations", len(wc.routes), len(wc.locations))

    async def _delete_all(
        self,
        ids: List[PersistedId],
        delete: Callable[[int], Awaitable[Any]],
        resource: str,
    ) -> None:
        if not ids:
            return
        results = await asyncio.gather(*(delete(row_id.value) for row_id in ids), return_exceptions=True)
        for row_id, result in zip(ids, results):
            if isinstance(result, GatewayError) and result.status_code == 404:
                logger.info("%s %s already deleted", resource.capitalize(), row_id)
            elif isinstance(result, Exception):
                logger.warning("Failed to delete %s %s: %s", resource, row_id, result)

    async def _upsert_routes(self) -> None:
        wc = self.working_copy
        await run_all([self.gateway.create_route(wc.route_create_payload(row)) for row in wc.pending_routes()])

        updates = wc.route_updates()
        if updates:
            result = await self.gateway.update_routes(updates)
            self._check_batch(result, "route")

    async def _upsert_locations(self, created: Dict[PendingId, PersistedId]) -> None:
        wc = self.working_copy
        pending = wc.pending_locations()
        results = await run_all(
            [self.gateway.create_location(wc.location_create_payload(row)) for row in pending]
        )
        for row, result in zip(pending, results):
            if isinstance(result, dict) and result.get("id") is not None:
                created[row.id] = PersistedId(int(result["id"]))

        updates = wc.location_updates()
        if updates:
            result = await self.gateway.update_locations(updates)
            self._check_batch(result, "location")

    @staticmethod
    def _check_batch(result: Dict[str, Any], resource: str) -> None:
        failed = result.get("failed", 0)
        if failed:
            raise SaveFailedError(
                message=f"{failed} {resource} update(s) failed",
                context={"failures": result.get("failures", [])},
            )


async def run_all(aws: List[Awaitable[Any]]) -> List[Any]:
    """
    Run awaitables concurrently and return their results in order.

    On the first exception every sibling still running is cancelled and
    awaited before the exception is re-raised, so nothing keeps writing after
    the caller has seen the failure. Cancelling run_all cancels all of them.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    if not tasks:
        return []
    try:
        await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    finally:
        unfinished = [task for task in tasks if not task.done()]
        for task in unfinished:
            task.cancel()
        if unfinished:
            await asyncio.wait(unfinished)

    for task in tasks:
        if not task.cancelled() and task.exception() is not None:
            raise task.exception()
    return [task.result() for task in tasks]
