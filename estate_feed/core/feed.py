"""
Listing feed aggregation.

A feed page is built from two independent store queries run concurrently:
the filtered property page with its images, and the like rows for that same
page. Like failures degrade the page instead of failing it.
"""

from collections import Counter
from typing import Any, Iterable, Optional, Set, Tuple, Dict
import asyncio
import logging
import uuid

from estate_feed.config import settings
from estate_feed.core.notify import Notifier
from estate_feed.core.state import FeedState
from estate_feed.schemas.comment import LikeRow
from estate_feed.schemas.property import FeedItem, FeedResult, FilterCriteria
from estate_feed.utils.exceptions import RemoteError, ValidationError, NotFoundError

logger = logging.getLogger(__name__)

# Default for refresh(): reuse the filters already on the view state
KEEP_CRITERIA = object()


def summarize_likes(
    likes: Iterable[LikeRow],
    user_id: Optional[uuid.UUID],
    property_ids: Optional[Set[uuid.UUID]] = None
) -> Tuple[Dict[uuid.UUID, int], Set[uuid.UUID]]:
    """
    Count likes per property and collect the properties liked by user_id.
    Rows for properties outside property_ids are ignored.
    """
    counts: Counter = Counter()
    liked: Set[uuid.UUID] = set()
    for like in likes:
        if property_ids is not None and like.property_id not in property_ids:
            continue
        counts[like.property_id] += 1
        if user_id is not None and like.user_id == user_id:
            liked.add(like.property_id)
    return dict(counts), liked


class ListingFeedAggregator:
    """
    Loads feed pages annotated with like counts and the caller's like state.
    """

    def __init__(self, store, notifier: Optional[Notifier] = None, max_page_size: Optional[int] = None):
        self.store = store
        self.notifier = notifier
        self.max_page_size = max_page_size or settings.max_page_size

    def _page_size(self, page_size: Optional[int]) -> int:
        if page_size is None:
            page_size = settings.default_page_size
        if page_size < 1:
            raise ValidationError("page_size must be at least 1")
        return min(page_size, self.max_page_size)

    async def load(
        self,
        criteria: Optional[FilterCriteria] = None,
        user_id: Optional[uuid.UUID] = None,
        page: int = 1,
        page_size: Optional[int] = None
    ) -> FeedResult:
        """
        Load one feed page.

        Raises:
            ValidationError: If the page arguments are invalid
        """
        if page < 1:
            raise ValidationError("page must be at least 1")
        size = self._page_size(page_size)
        offset = (page - 1) * size

        properties_outcome, likes_outcome = await asyncio.gather(
            self.store.search_properties(criteria, offset=offset, limit=size),
            self.store.fetch_likes(criteria=criteria, offset=offset, limit=size),
            return_exceptions=True
        )

        for outcome in (properties_outcome, likes_outcome):
            if isinstance(outcome, BaseException) and not isinstance(outcome, RemoteError):
                raise outcome

        if isinstance(properties_outcome, RemoteError):
            logger.error(f"Feed property query failed: {properties_outcome.detail}")
            if self.notifier:
                self.notifier.error("Could not load listings")
            return FeedResult(page=page, page_size=size, error=str(properties_outcome.detail))

        properties, total = properties_outcome
        property_ids = {p.id for p in properties}

        likes_degraded = isinstance(likes_outcome, RemoteError)
        if likes_degraded:
            logger.warning(f"Feed like query failed, showing zero likes: {likes_outcome.detail}")
            counts, liked = {}, set()
        else:
            counts, liked = summarize_likes(likes_outcome, user_id, property_ids)

        items = [
            FeedItem(property=p, like_count=counts.get(p.id, 0), liked=p.id in liked)
            for p in properties
        ]
        logger.debug(f"Loaded feed page {page} with {len(items)} of {total} properties")
        return FeedResult(
            items=items,
            page=page,
            page_size=size,
            total=total,
            has_next=offset + len(items) < total,
            likes_degraded=likes_degraded
        )

    async def load_one(self, property_id: uuid.UUID, user_id: Optional[uuid.UUID] = None) -> FeedItem:
        """
        Load a single property with its like annotations.

        Raises:
            NotFoundError: If the property does not exist
            RemoteError: If the property query fails
        """
        record, likes = await asyncio.gather(
            self.store.get_property(property_id),
            self.store.fetch_likes(property_ids=[property_id]),
            return_exceptions=True
        )
        if isinstance(record, BaseException):
            raise record
        if record is None:
            raise NotFoundError("Property", str(property_id))

        if isinstance(likes, RemoteError):
            logger.warning(f"Like query for property {property_id} failed: {likes.detail}")
            return FeedItem(property=record)
        if isinstance(likes, BaseException):
            raise likes

        counts, liked = summarize_likes(likes, user_id, {property_id})
        return FeedItem(
            property=record,
            like_count=counts.get(property_id, 0),
            liked=property_id in liked
        )

    async def refresh(
        self,
        state: FeedState,
        criteria: Any = KEEP_CRITERIA,
        user_id: Optional[uuid.UUID] = None,
        page: int = 1,
        page_size: Optional[int] = None
    ) -> Optional[FeedResult]:
        """
        Discard the current page and reload it into the view state.

        Omitting ``criteria`` keeps the filters already on the state; passing
        None clears them.

        Returns the applied result, or None when the view closed or a newer
        refresh started before this one finished.
        """
        if criteria is None:
            state.criteria = FilterCriteria()
        elif criteria is not KEEP_CRITERIA:
            state.criteria = criteria
        state.generation += 1
        generation = state.generation
        state.loading = True

        try:
            result = await self.load(state.criteria, user_id, page, page_size)
        finally:
            if state.generation == generation:
                state.loading = False

        if not state.alive or state.generation != generation:
            logger.debug(f"Discarding stale feed result (generation {generation})")
            return None

        state.apply(result)
        return result
