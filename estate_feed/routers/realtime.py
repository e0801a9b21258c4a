"""
WebSocket streams of reconciled view state.

Each connection owns one view state and one reconciler. The reconciler
subscribes before the snapshot is loaded so nothing committed in between is
missed. A full snapshot is sent on connect and after every applied batch;
disconnecting releases the subscription.
"""

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from fastapi.encoders import jsonable_encoder
from uuid import UUID
import logging

from estate_feed.core.reconciler import comment_reconciler, owner_listings_reconciler
from estate_feed.core.state import CommentThreadState, OwnerListingsState
from estate_feed.schemas.property import OwnerSort, RentFilter
from estate_feed.services.realtime import ChangeHub
from estate_feed.store import ListingStore
from estate_feed.utils.dependencies import get_hub, get_store

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


async def _hold_open(websocket: WebSocket) -> None:
    # Incoming frames are ignored; the loop only ends on disconnect
    while True:
        await websocket.receive_text()


@router.websocket("/ws/properties/{property_id}/comments")
async def comment_stream(
    websocket: WebSocket,
    property_id: UUID,
    store: ListingStore = Depends(get_store),
    hub: ChangeHub = Depends(get_hub)
):
    if await store.get_property(property_id) is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    thread = CommentThreadState(property_id)

    async def push(applied: int = 0) -> None:
        await websocket.send_json(jsonable_encoder({
            "property_id": property_id,
            "comments": thread.comments
        }))

    try:
        async with comment_reconciler(hub, store, thread, on_flush=push) as reconciler:
            await reconciler.sync(lambda: store.list_comments(property_id))
            await _hold_open(websocket)
    except WebSocketDisconnect:
        logger.debug(f"Comment stream for property {property_id} disconnected")
    finally:
        thread.close()


@router.websocket("/ws/profiles/{user_id}/listings")
async def listings_stream(
    websocket: WebSocket,
    user_id: UUID,
    sort: OwnerSort = OwnerSort.CREATED_AT_DESC,
    rent: RentFilter = RentFilter.ALL,
    store: ListingStore = Depends(get_store),
    hub: ChangeHub = Depends(get_hub)
):
    if await store.get_profile(user_id) is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    listings = OwnerListingsState(user_id, sort=sort, rent_filter=rent)

    async def push(applied: int = 0) -> None:
        await websocket.send_json(jsonable_encoder({
            "owner_id": user_id,
            "listings": listings.visible
        }))

    try:
        async with owner_listings_reconciler(hub, store, listings, on_flush=push) as reconciler:
            await reconciler.sync(lambda: store.list_owner_properties(user_id))
            await _hold_open(websocket)
    except WebSocketDisconnect:
        logger.debug(f"Listings stream for user {user_id} disconnected")
    finally:
        listings.close()
