"""
Property API endpoints: the filtered feed, single listings, posting and deletion.
"""

from decimal import Decimal
from fastapi import APIRouter, Depends, Query, Path, status
from pydantic import ValidationError as PydanticValidationError
from typing import Optional
from uuid import UUID

from estate_feed.core.feed import ListingFeedAggregator
from estate_feed.core.mutations import MutationCoordinator
from estate_feed.core.state import OwnerListingsState
from estate_feed.schemas.auth import AuthSession
from estate_feed.schemas.property import (
    FeedItem,
    FeedResult,
    FilterCriteria,
    PropertyCreate,
    PropertyRecord
)
from estate_feed.services.error_handler import ERROR_RESPONSES
from estate_feed.store import ListingStore
from estate_feed.utils.dependencies import (
    get_coordinator,
    get_feed_aggregator,
    get_optional_session,
    get_required_session,
    get_store
)
from estate_feed.utils.exceptions import (
    ConfirmationRequiredError,
    NotFoundError,
    ValidationError
)


router = APIRouter(prefix="/properties", tags=["Properties"])


def get_filter_criteria(
    location: Optional[str] = Query(None, description="Exact location"),
    min_price: Optional[Decimal] = Query(None, ge=0, description="Minimum price, inclusive"),
    max_price: Optional[Decimal] = Query(None, ge=0, description="Maximum price, inclusive"),
    bedrooms: Optional[int] = Query(None, ge=0, description="Exact number of bedrooms"),
    bathrooms: Optional[int] = Query(None, ge=0, description="Exact number of bathrooms"),
    is_for_rent: Optional[bool] = Query(None, description="true for rentals, false for sales"),
    min_square_feet: Optional[int] = Query(None, ge=0),
    max_square_feet: Optional[int] = Query(None, ge=0),
    posted_within_days: Optional[int] = Query(None, ge=1, description="Posted within the last N days"),
    currency: Optional[str] = Query(None, description="Currency code")
) -> FilterCriteria:
    """Build FilterCriteria from query parameters."""
    try:
        return FilterCriteria(
            location=location,
            min_price=min_price,
            max_price=max_price,
            bedrooms=bedrooms,
            bathrooms=bathrooms,
            is_for_rent=is_for_rent,
            min_square_feet=min_square_feet,
            max_square_feet=max_square_feet,
            posted_within_days=posted_within_days,
            currency=currency
        )
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid filter criteria",
            field_errors=[
                {"field": ".".join(str(loc) for loc in err["loc"]) or "criteria", "message": err["msg"]}
                for err in e.errors()
            ]
        )


@router.get(
    "",
    response_model=FeedResult,
    summary="Browse the listing feed",
    description="Newest listings first, filtered and paginated, annotated with like counts "
                "and whether the caller liked each one.",
    responses={422: ERROR_RESPONSES[422]}
)
async def list_properties(
    criteria: FilterCriteria = Depends(get_filter_criteria),
    page: int = Query(1, ge=1, description="Page number (starts from 1)"),
    page_size: Optional[int] = Query(None, ge=1, description="Listings per page, capped by configuration"),
    session: Optional[AuthSession] = Depends(get_optional_session),
    aggregator: ListingFeedAggregator = Depends(get_feed_aggregator)
) -> FeedResult:
    return await aggregator.load(
        criteria,
        user_id=session.user_id if session else None,
        page=page,
        page_size=page_size
    )


@router.post(
    "",
    response_model=PropertyRecord,
    status_code=status.HTTP_201_CREATED,
    summary="Post a listing",
    description="Create a listing from uploaded image URLs. The first image is the primary image.",
    responses={401: ERROR_RESPONSES[401], 422: ERROR_RESPONSES[422]}
)
async def create_property(
    data: PropertyCreate,
    session: AuthSession = Depends(get_required_session),
    coordinator: MutationCoordinator = Depends(get_coordinator)
) -> PropertyRecord:
    return await coordinator.create_property(session.user_id, data)


@router.get(
    "/{property_id}",
    response_model=FeedItem,
    summary="Get a listing",
    responses={404: ERROR_RESPONSES[404]}
)
async def get_property(
    property_id: UUID = Path(..., description="Property ID"),
    session: Optional[AuthSession] = Depends(get_optional_session),
    aggregator: ListingFeedAggregator = Depends(get_feed_aggregator)
) -> FeedItem:
    return await aggregator.load_one(property_id, session.user_id if session else None)


@router.delete(
    "/{property_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a listing",
    description="Owner only. Requires confirm=true. Images, likes and comments are removed with it.",
    responses={
        400: ERROR_RESPONSES[400],
        401: ERROR_RESPONSES[401],
        403: ERROR_RESPONSES[403],
        404: ERROR_RESPONSES[404]
    }
)
async def delete_property(
    property_id: UUID = Path(..., description="Property ID"),
    confirm: bool = Query(False, description="Explicit confirmation of the deletion"),
    session: AuthSession = Depends(get_required_session),
    store: ListingStore = Depends(get_store),
    coordinator: MutationCoordinator = Depends(get_coordinator)
) -> None:
    record = await store.get_property(property_id)
    if record is None:
        raise NotFoundError("Property", str(property_id))

    listings = OwnerListingsState(record.owner_id, [record])
    deleted = await coordinator.delete_property(listings, session.user_id, property_id, confirm)
    if not deleted:
        raise ConfirmationRequiredError("Property deletion")
