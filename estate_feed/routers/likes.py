"""
Like toggle endpoint.
"""

from fastapi import APIRouter, Depends, Path
from uuid import UUID

from estate_feed.core.mutations import MutationCoordinator
from estate_feed.core.state import FeedState
from estate_feed.schemas.auth import AuthSession
from estate_feed.schemas.comment import LikeStateResponse
from estate_feed.services.error_handler import ERROR_RESPONSES
from estate_feed.store import ListingStore
from estate_feed.utils.dependencies import get_coordinator, get_required_session, get_store
from estate_feed.utils.exceptions import NotFoundError


router = APIRouter(prefix="/properties", tags=["Likes"])


@router.post(
    "/{property_id}/like",
    response_model=LikeStateResponse,
    summary="Toggle like",
    description="Like the listing if the caller has not liked it yet, otherwise remove the like. "
                "Toggles by the same user on the same listing are applied one at a time.",
    responses={401: ERROR_RESPONSES[401], 404: ERROR_RESPONSES[404], 502: ERROR_RESPONSES[502]}
)
async def toggle_like(
    property_id: UUID = Path(..., description="Property ID"),
    session: AuthSession = Depends(get_required_session),
    store: ListingStore = Depends(get_store),
    coordinator: MutationCoordinator = Depends(get_coordinator)
) -> LikeStateResponse:
    if await store.get_property(property_id) is None:
        raise NotFoundError("Property", str(property_id))

    # Each request starts from the stored like state rather than a client view
    state = FeedState()
    result = await coordinator.toggle_like(state, property_id, session.user_id, reload=True)
    return LikeStateResponse(property_id=property_id, like_count=result.count, liked=result.liked)
