"""
Comment endpoints for a property.
"""

from fastapi import APIRouter, Depends, Path, Query, status
from typing import List
from uuid import UUID

from estate_feed.core.mutations import MutationCoordinator
from estate_feed.core.state import CommentThreadState
from estate_feed.schemas.auth import AuthSession
from estate_feed.schemas.comment import CommentCreate, CommentRecord
from estate_feed.services.error_handler import ERROR_RESPONSES
from estate_feed.store import ListingStore
from estate_feed.utils.dependencies import get_coordinator, get_required_session, get_store
from estate_feed.utils.exceptions import ConfirmationRequiredError, NotFoundError


router = APIRouter(prefix="/properties/{property_id}/comments", tags=["Comments"])


async def _require_property(store: ListingStore, property_id: UUID) -> None:
    if await store.get_property(property_id) is None:
        raise NotFoundError("Property", str(property_id))


@router.get(
    "",
    response_model=List[CommentRecord],
    summary="List comments",
    description="Comments in ascending creation order with author name and username",
    responses={404: ERROR_RESPONSES[404]}
)
async def list_comments(
    property_id: UUID = Path(..., description="Property ID"),
    store: ListingStore = Depends(get_store)
) -> List[CommentRecord]:
    await _require_property(store, property_id)
    return await store.list_comments(property_id)


@router.post(
    "",
    response_model=CommentRecord,
    status_code=status.HTTP_201_CREATED,
    summary="Add a comment",
    responses={401: ERROR_RESPONSES[401], 404: ERROR_RESPONSES[404], 422: ERROR_RESPONSES[422]}
)
async def add_comment(
    data: CommentCreate,
    property_id: UUID = Path(..., description="Property ID"),
    session: AuthSession = Depends(get_required_session),
    store: ListingStore = Depends(get_store),
    coordinator: MutationCoordinator = Depends(get_coordinator)
) -> CommentRecord:
    await _require_property(store, property_id)
    thread = CommentThreadState(property_id)
    return await coordinator.add_comment(thread, session.user_id, data.content)


@router.delete(
    "/{comment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a comment",
    description="Author only. Requires confirm=true.",
    responses={
        400: ERROR_RESPONSES[400],
        401: ERROR_RESPONSES[401],
        403: ERROR_RESPONSES[403],
        404: ERROR_RESPONSES[404]
    }
)
async def delete_comment(
    property_id: UUID = Path(..., description="Property ID"),
    comment_id: UUID = Path(..., description="Comment ID"),
    confirm: bool = Query(False, description="Explicit confirmation of the deletion"),
    session: AuthSession = Depends(get_required_session),
    store: ListingStore = Depends(get_store),
    coordinator: MutationCoordinator = Depends(get_coordinator)
) -> None:
    comment = await store.get_comment(comment_id)
    if comment is None or comment.property_id != property_id:
        raise NotFoundError("Comment", str(comment_id))

    thread = CommentThreadState(property_id, [comment])
    deleted = await coordinator.delete_comment(thread, session.user_id, comment_id, confirm)
    if not deleted:
        raise ConfirmationRequiredError("Comment deletion")
