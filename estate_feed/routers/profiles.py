"""
Profile endpoints: public profile, owner-only edits and the owner's listings.
"""

from fastapi import APIRouter, Depends, Path, Query
from typing import List
from uuid import UUID

from estate_feed.core.state import OwnerListingsState
from estate_feed.schemas.auth import AuthSession
from estate_feed.schemas.property import OwnerSort, PropertyRecord, RentFilter
from estate_feed.schemas.user import ProfileRecord, ProfileUpdate
from estate_feed.services.error_handler import ERROR_RESPONSES
from estate_feed.store import ListingStore
from estate_feed.utils.dependencies import get_required_session, get_store
from estate_feed.utils.exceptions import NotFoundError, OwnershipError


router = APIRouter(prefix="/profiles", tags=["Profiles"])


@router.get(
    "/{user_id}",
    response_model=ProfileRecord,
    summary="Get a profile",
    responses={404: ERROR_RESPONSES[404]}
)
async def get_profile(
    user_id: UUID = Path(..., description="User ID"),
    store: ListingStore = Depends(get_store)
) -> ProfileRecord:
    profile = await store.get_profile(user_id)
    if profile is None:
        raise NotFoundError("Profile", str(user_id))
    return profile


@router.patch(
    "/{user_id}",
    response_model=ProfileRecord,
    summary="Edit your profile",
    description="Only the profile owner may edit it. Omitted fields are left unchanged; null clears username, bio or profile picture.",
    responses={401: ERROR_RESPONSES[401], 403: ERROR_RESPONSES[403], 404: ERROR_RESPONSES[404]}
)
async def update_profile(
    changes: ProfileUpdate,
    user_id: UUID = Path(..., description="User ID"),
    session: AuthSession = Depends(get_required_session),
    store: ListingStore = Depends(get_store)
) -> ProfileRecord:
    if session.user_id != user_id:
        raise OwnershipError("Profile")

    profile = await store.update_profile(user_id, changes.changes())
    if profile is None:
        raise NotFoundError("Profile", str(user_id))
    return profile


@router.get(
    "/{user_id}/listings",
    response_model=List[PropertyRecord],
    summary="A user's listings",
    description="All listings posted by the user, sorted and filtered by rent/sale",
    responses={404: ERROR_RESPONSES[404]}
)
async def list_profile_listings(
    user_id: UUID = Path(..., description="User ID"),
    sort: OwnerSort = Query(OwnerSort.CREATED_AT_DESC, description="Sort order"),
    rent: RentFilter = Query(RentFilter.ALL, description="all, rent or sale"),
    store: ListingStore = Depends(get_store)
) -> List[PropertyRecord]:
    if await store.get_profile(user_id) is None:
        raise NotFoundError("Profile", str(user_id))

    listings = OwnerListingsState(
        user_id,
        await store.list_owner_properties(user_id),
        sort=sort,
        rent_filter=rent
    )
    return listings.visible
