"""
Live query subscriptions.

A subscription yields the current snapshot of its query, then a fresh
snapshot whenever the change feed reports a write to one of the
collections the query reads. Snapshots are always re-read from the store.
"""
import logging
from typing import Any, AsyncIterator, Callable, Dict, FrozenSet, List, Optional

from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from app import crud, schemas
from app.core import events
from app.core.config import settings
from app.core.errors import PermissionDenied
from app.models.vehicle import VehicleState
from app.models.vehicle_request import RequestStatus
from app.schemas.session import SessionContext

logger = logging.getLogger(__name__)

Snapshot = List[Dict[str, Any]]
Fetch = Callable[[Session], Snapshot]


def _dump(schema, rows) -> Snapshot:
    return [schema.model_validate(row).model_dump(mode="json") for row in rows]


def vehicles_query(status: Optional[VehicleState] = None, limit: Optional[int] = None) -> Fetch:
    def fetch(db: Session) -> Snapshot:
        rows = crud.vehicle.get_multi_by_status(
            db, status=status, limit=limit or settings.VEHICLES_LIST_LIMIT
        )
        return _dump(schemas.Vehicle, rows)
    return fetch


def driver_vehicle_query(driver_id: str) -> Fetch:
    def fetch(db: Session) -> Snapshot:
        row = crud.vehicle.get_by_driver(db, driver_id=driver_id)
        return _dump(schemas.Vehicle, [row] if row else [])
    return fetch


def requests_query(ctx: SessionContext, status: Optional[RequestStatus] = None) -> Fetch:
    def fetch(db: Session) -> Snapshot:
        if ctx.is_master:
            rows = crud.vehicle_request.get_multi_by_status(
                db, status=status, limit=settings.REQUESTS_LIST_LIMIT
            )
        else:
            rows = crud.vehicle_request.get_multi_by_driver(
                db, driver_id=ctx.uid, status=status, limit=settings.REQUESTS_LIST_LIMIT
            )
        return _dump(schemas.VehicleRequest, rows)
    return fetch


def trip_history_query(driver_id: str, limit: Optional[int] = None) -> Fetch:
    def fetch(db: Session) -> Snapshot:
        rows = crud.trip_history.get_multi_by_driver(
            db, driver_id=driver_id, limit=limit or settings.TRIP_HISTORY_LIMIT
        )
        return _dump(schemas.TripHistory, rows)
    return fetch


class Subscription:
    """A cancelable stream of snapshots for one query.

    `close()` must be called when the consumer goes away; events that arrive
    afterwards are dropped.
    """

    def __init__(
        self,
        feed: events.ChangeFeed,
        session_factory: sessionmaker,
        collections: FrozenSet[str],
        fetch: Fetch,
    ):
        self._feed = feed
        self._session_factory = session_factory
        self.collections = collections
        self._fetch = fetch
        self._listener: Optional[events.Listener] = None
        self.closed = False

    def _read(self) -> Snapshot:
        db = self._session_factory()
        try:
            return self._fetch(db)
        finally:
            db.close()

    async def snapshots(self) -> AsyncIterator[Snapshot]:
        # Listen before the first read so no write falls in between
        self._listener = await self._feed.subscribe()
        yield await run_in_threadpool(self._read)
        async for event in self._listener:
            if self.closed:
                return
            if event.collection in self.collections:
                yield await run_in_threadpool(self._read)

    async def close(self) -> None:
        self.closed = True
        if self._listener is not None:
            await self._listener.close()
            self._listener = None

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


def open_subscription(
    ctx: SessionContext,
    feed: events.ChangeFeed,
    session_factory: sessionmaker,
    collection: str,
    *,
    status: Optional[str] = None,
    driver_id: Optional[str] = None,
) -> Subscription:
    """Build the subscription a client asked for, enforcing who may see what.

    Collections: `vehicles`, `driver_vehicle`, `vehicle_requests`,
    `trip_history`.
    """
    if collection == "vehicles":
        fetch = vehicles_query(VehicleState(status) if status else None)
        watched = {events.VEHICLES}
    elif collection == "driver_vehicle":
        target = driver_id or ctx.uid
        if target != ctx.uid and not ctx.is_master:
            raise PermissionDenied("Cannot watch another driver's vehicle")
        fetch = driver_vehicle_query(target)
        watched = {events.VEHICLES}
    elif collection == "vehicle_requests":
        fetch = requests_query(ctx, RequestStatus(status) if status else None)
        watched = {events.VEHICLE_REQUESTS}
    elif collection == "trip_history":
        target = driver_id or ctx.uid
        if target != ctx.uid and not ctx.is_master:
            raise PermissionDenied("Cannot watch another driver's history")
        fetch = trip_history_query(target)
        watched = {events.TRIP_HISTORY}
    else:
        raise ValueError(f"Unknown collection: {collection}")

    logger.debug("Opening %s subscription for %s", collection, ctx.uid)
    return Subscription(feed, session_factory, frozenset(watched), fetch)
