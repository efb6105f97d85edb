import asyncio
import logging
from typing import Optional
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status

from app import schemas
from app.api import deps
from app.core import events
from app.core.errors import FleetError
from app.services.subscriptions import Subscription, open_subscription

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subscribe", tags=["subscribe"])

async def _push_snapshots(websocket: WebSocket, subscription: Subscription, collection: str):
    async for snapshot in subscription.snapshots():
        await websocket.send_json({"collection": collection, "documents": snapshot})

async def _wait_for_disconnect(websocket: WebSocket):
    # Clients only listen; anything they send is ignored
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        return

@router.websocket("/{collection}")
async def subscribe(
    websocket: WebSocket,
    collection: str,
    status_filter: Optional[str] = None,
    driver_id: Optional[str] = None,
    ctx: schemas.SessionContext = Depends(deps.get_ws_session_context),
    feed: events.ChangeFeed = Depends(deps.get_change_feed),
    session_factory=Depends(deps.get_session_factory),
):
    """
    Stream snapshots of a collection: one on connect, then one per change.
    The subscription is torn down as soon as either side goes away.
    """
    try:
        subscription = open_subscription(
            ctx, feed, session_factory, collection, status=status_filter, driver_id=driver_id
        )
    except (FleetError, ValueError) as e:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=str(e))
        return

    await websocket.accept()
    async with subscription:
        pusher = asyncio.create_task(_push_snapshots(websocket, subscription, collection))
        watcher = asyncio.create_task(_wait_for_disconnect(websocket))
        try:
            await asyncio.wait({pusher, watcher}, return_when=asyncio.FIRST_COMPLETED)
            client_left = watcher.done()
        finally:
            for task in (pusher, watcher):
                task.cancel()
            await asyncio.gather(pusher, watcher, return_exceptions=True)
        if not pusher.cancelled() and pusher.exception() is not None:
            logger.error(f"Subscription to {collection} failed: {pusher.exception()}")
        elif not client_left:
            # The feed stopped; let the client reconnect
            await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
    logger.debug("Subscriber %s left %s", ctx.uid, collection)
