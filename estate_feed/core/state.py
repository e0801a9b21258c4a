"""
View-owned state for the feed, comment threads and owner listings.

Each state object belongs to one view. Results that arrive after the view
closed are discarded by checking ``alive``.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Set
import uuid

from estate_feed.schemas.comment import CommentRecord
from estate_feed.schemas.property import (
    FeedItem,
    FeedResult,
    FilterCriteria,
    OwnerSort,
    PropertyRecord,
    RentFilter
)


@dataclass(frozen=True)
class LikeState:
    count: int = 0
    liked: bool = False

    def toggled(self) -> "LikeState":
        if self.liked:
            return LikeState(count=max(self.count - 1, 0), liked=False)
        return LikeState(count=self.count + 1, liked=True)


class ViewState:
    """Liveness flag shared by every view state."""

    def __init__(self):
        self._alive = True

    @property
    def alive(self) -> bool:
        return self._alive

    def close(self) -> None:
        """Mark the owning view as torn down."""
        self._alive = False


class FeedState(ViewState):
    """
    Feed view: the current page of properties and their like annotations.
    """

    def __init__(self, criteria: Optional[FilterCriteria] = None):
        super().__init__()
        self.criteria = criteria or FilterCriteria()
        self.properties: List[PropertyRecord] = []
        self.likes: Dict[uuid.UUID, LikeState] = {}
        self.page = 1
        self.page_size = 0
        self.total = 0
        self.has_next = False
        self.likes_degraded = False
        self.error: Optional[str] = None
        self.loading = False
        self.generation = 0
        self.deleting: Set[uuid.UUID] = set()

    def apply(self, result: FeedResult) -> None:
        """Replace the current page with a freshly loaded one."""
        self.properties = [item.property for item in result.items]
        self.likes = {
            item.property.id: LikeState(count=item.like_count, liked=item.liked)
            for item in result.items
        }
        self.page = result.page
        self.page_size = result.page_size
        self.total = result.total
        self.has_next = result.has_next
        self.likes_degraded = result.likes_degraded
        self.error = result.error

    @property
    def items(self) -> List[FeedItem]:
        return [
            FeedItem(
                property=record,
                like_count=self.like_state(record.id).count,
                liked=self.like_state(record.id).liked
            )
            for record in self.properties
        ]

    def like_state(self, property_id: uuid.UUID) -> LikeState:
        return self.likes.get(property_id, LikeState())

    def set_like_state(self, property_id: uuid.UUID, state: LikeState) -> None:
        self.likes[property_id] = state

    def get(self, property_id: uuid.UUID) -> Optional[PropertyRecord]:
        for record in self.properties:
            if record.id == property_id:
                return record
        return None

    def remove(self, property_id: uuid.UUID) -> bool:
        before = len(self.properties)
        self.properties = [p for p in self.properties if p.id != property_id]
        self.likes.pop(property_id, None)
        removed = len(self.properties) != before
        if removed:
            self.total = max(self.total - 1, 0)
        return removed


class CommentThreadState(ViewState):
    """
    Comments under one property in ascending creation order, plus the
    comment draft and per-comment pending flags.
    """

    def __init__(self, property_id: uuid.UUID, comments: Optional[List[CommentRecord]] = None):
        super().__init__()
        self.property_id = property_id
        self.comments: List[CommentRecord] = []
        self.draft = ""
        self.posting = False
        self.deleting: Set[uuid.UUID] = set()
        for comment in comments or []:
            self.merge(comment)

    @property
    def ids(self) -> List[uuid.UUID]:
        return [c.id for c in self.comments]

    def get(self, comment_id: uuid.UUID) -> Optional[CommentRecord]:
        for comment in self.comments:
            if comment.id == comment_id:
                return comment
        return None

    def merge(self, comment: CommentRecord) -> bool:
        """
        Insert or replace by id. Returns True if the comment was new.
        """
        for index, existing in enumerate(self.comments):
            if existing.id == comment.id:
                self.comments[index] = comment
                return False

        # New comments are normally the latest, so check the tail first
        if not self.comments or self.comments[-1].created_at <= comment.created_at:
            self.comments.append(comment)
            return True

        position = next(
            i for i, existing in enumerate(self.comments)
            if existing.created_at > comment.created_at
        )
        self.comments.insert(position, comment)
        return True

    def remove(self, comment_id: uuid.UUID) -> bool:
        before = len(self.comments)
        self.comments = [c for c in self.comments if c.id != comment_id]
        return len(self.comments) != before


class OwnerListingsState(ViewState):
    """
    One owner's listings with a local sort and rent/sale filter.
    """

    def __init__(
        self,
        owner_id: uuid.UUID,
        listings: Optional[List[PropertyRecord]] = None,
        sort: OwnerSort = OwnerSort.CREATED_AT_DESC,
        rent_filter: RentFilter = RentFilter.ALL
    ):
        super().__init__()
        self.owner_id = owner_id
        self.listings: List[PropertyRecord] = list(listings or [])
        self.sort = sort
        self.rent_filter = rent_filter
        self.deleting: Set[uuid.UUID] = set()

    def get(self, property_id: uuid.UUID) -> Optional[PropertyRecord]:
        for record in self.listings:
            if record.id == property_id:
                return record
        return None

    def merge(self, record: PropertyRecord) -> bool:
        """Insert or replace by id. Returns True if the listing was new."""
        for index, existing in enumerate(self.listings):
            if existing.id == record.id:
                self.listings[index] = record
                return False
        self.listings.append(record)
        return True

    def remove(self, property_id: uuid.UUID) -> bool:
        before = len(self.listings)
        self.listings = [p for p in self.listings if p.id != property_id]
        return len(self.listings) != before

    @property
    def visible(self) -> List[PropertyRecord]:
        """Listings after the rent filter and sort are applied."""
        if self.rent_filter == RentFilter.RENT:
            listings = [p for p in self.listings if p.is_for_rent]
        elif self.rent_filter == RentFilter.SALE:
            listings = [p for p in self.listings if not p.is_for_rent]
        else:
            listings = list(self.listings)

        if self.sort == OwnerSort.CREATED_AT_ASC:
            return sorted(listings, key=lambda p: p.created_at)
        if self.sort == OwnerSort.PRICE_ASC:
            return sorted(listings, key=lambda p: p.price)
        if self.sort == OwnerSort.PRICE_DESC:
            return sorted(listings, key=lambda p: p.price, reverse=True)
        return sorted(listings, key=lambda p: p.created_at, reverse=True)
