"""
In-memory stand-in for ListingStore with failure injection and call counting.
Operation names match the ones ListingStore reports in RemoteError.
"""

import asyncio
import uuid
from collections import Counter
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Set, Tuple

from estate_feed.schemas.comment import CommentRecord, LikeRow
from estate_feed.schemas.property import FilterCriteria, ImageRecord, PropertyCreate, PropertyRecord
from estate_feed.schemas.user import AuthorRecord, ProfileRecord
from estate_feed.services.realtime import ChangeEvent, ChangeHub, ChangeType
from estate_feed.store import COMMENTS_CHANNEL, LIKES_CHANNEL, PROPERTIES_CHANNEL
from estate_feed.utils.exceptions import RemoteError

BASE_TIME = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_property(
    owner_id: uuid.UUID,
    price: str = "100000",
    minutes: int = 0,
    **fields
) -> PropertyRecord:
    property_id = fields.pop("id", None) or uuid.uuid4()
    created_at = fields.pop("created_at", None) or BASE_TIME + timedelta(minutes=minutes)
    return PropertyRecord(
        id=property_id,
        owner_id=owner_id,
        title=fields.pop("title", "Listing"),
        price=Decimal(price),
        created_at=created_at,
        images=[ImageRecord(
            id=uuid.uuid4(),
            image_url=f"http://test/media/property-images/{property_id}.jpg",
            is_primary=True,
            created_at=created_at
        )],
        **fields
    )


def make_comment(
    property_id: uuid.UUID,
    user_id: uuid.UUID,
    content: str = "Nice place",
    minutes: int = 0,
    comment_id: Optional[uuid.UUID] = None
) -> CommentRecord:
    return CommentRecord(
        id=comment_id or uuid.uuid4(),
        property_id=property_id,
        user_id=user_id,
        content=content,
        created_at=BASE_TIME + timedelta(minutes=minutes),
        author=AuthorRecord(id=user_id, full_name="Test User", username=None)
    )


class FakeListingStore:
    """
    Dict-backed store. ``fail`` holds operation names that raise RemoteError,
    ``delays`` holds per-operation sleeps and ``calls`` counts every call.
    """

    def __init__(self, hub: Optional[ChangeHub] = None):
        self.hub = hub
        self.properties: Dict[uuid.UUID, PropertyRecord] = {}
        self.likes: Set[Tuple[uuid.UUID, uuid.UUID]] = set()
        self.comments: Dict[uuid.UUID, CommentRecord] = {}
        self.profiles: Dict[uuid.UUID, ProfileRecord] = {}
        self.fail: Set[str] = set()
        self.delays: Dict[str, float] = {}
        self.calls: Counter = Counter()

    async def _enter(self, operation: str) -> None:
        self.calls[operation] += 1
        delay = self.delays.get(operation)
        if delay:
            await asyncio.sleep(delay)
        if operation in self.fail:
            raise RemoteError(operation, "injected failure")

    def _publish(self, channel: str, event_type: ChangeType, record_id: uuid.UUID, **payload) -> None:
        if self.hub is not None:
            self.hub.publish(channel, ChangeEvent(
                table=channel,
                event_type=event_type,
                record_id=record_id,
                new=payload.get("new", {}),
                old=payload.get("old", {})
            ))

    # Seeding helpers

    def add_property(self, record: PropertyRecord) -> PropertyRecord:
        self.properties[record.id] = record
        return record

    def add_comment(self, record: CommentRecord) -> CommentRecord:
        self.comments[record.id] = record
        return record

    def add_profile(self, user_id: uuid.UUID, full_name: str = "Test User") -> ProfileRecord:
        profile = ProfileRecord(
            id=user_id,
            email=f"{user_id.hex[:8]}@example.com",
            full_name=full_name,
            created_at=BASE_TIME
        )
        self.profiles[user_id] = profile
        return profile

    # Properties

    def _matching(self, criteria: Optional[FilterCriteria]) -> List[PropertyRecord]:
        records = [
            p for p in self.properties.values()
            if criteria is None or criteria.matches(p)
        ]
        return sorted(records, key=lambda p: (p.created_at, p.id), reverse=True)

    async def search_properties(self, criteria=None, offset=0, limit=None):
        await self._enter("search properties")
        records = self._matching(criteria)
        end = None if limit is None else offset + limit
        return records[offset:end], len(records)

    async def get_property(self, property_id):
        await self._enter("get property")
        return self.properties.get(property_id)

    async def list_owner_properties(self, owner_id):
        await self._enter("list owner properties")
        return [p for p in self._matching(None) if p.owner_id == owner_id]

    async def create_property(self, owner_id, data: PropertyCreate):
        await self._enter("create property")
        record = make_property(
            owner_id,
            price=str(data.price),
            minutes=len(self.properties),
            title=data.title,
            is_for_rent=data.is_for_rent
        )
        self.properties[record.id] = record
        self._publish(PROPERTIES_CHANNEL, ChangeType.INSERT, record.id, new={"owner_id": owner_id})
        return record

    async def delete_property(self, property_id, owner_id):
        await self._enter("delete property")
        record = self.properties.get(property_id)
        if record is None or record.owner_id != owner_id:
            return False
        del self.properties[property_id]
        self._publish(PROPERTIES_CHANNEL, ChangeType.DELETE, property_id, old={"owner_id": owner_id})
        return True

    # Likes

    async def fetch_likes(self, property_ids: Optional[Sequence[uuid.UUID]] = None, criteria=None, offset=0, limit=None):
        await self._enter("fetch likes")
        if property_ids is None:
            records = self._matching(criteria)
            end = None if limit is None else offset + limit
            property_ids = [p.id for p in records[offset:end]]
        wanted = set(property_ids)
        return [
            LikeRow(user_id=user_id, property_id=property_id)
            for user_id, property_id in sorted(self.likes)
            if property_id in wanted
        ]

    async def get_like_state(self, property_id, user_id):
        await self._enter("get like state")
        count = sum(1 for _, pid in self.likes if pid == property_id)
        return count, (user_id, property_id) in self.likes

    async def insert_like(self, user_id, property_id):
        await self._enter("like property")
        created = (user_id, property_id) not in self.likes
        self.likes.add((user_id, property_id))
        if created:
            self._publish(LIKES_CHANNEL, ChangeType.INSERT, uuid.uuid4(), new={"property_id": property_id})
        return LikeRow(user_id=user_id, property_id=property_id)

    async def delete_like(self, user_id, property_id):
        await self._enter("unlike property")
        if (user_id, property_id) not in self.likes:
            return False
        self.likes.discard((user_id, property_id))
        return True

    # Comments

    async def list_comments(self, property_id):
        await self._enter("list comments")
        return sorted(
            (c for c in self.comments.values() if c.property_id == property_id),
            key=lambda c: (c.created_at, c.id)
        )

    async def get_comment(self, comment_id):
        await self._enter("get comment")
        return self.comments.get(comment_id)

    async def insert_comment(self, property_id, user_id, content):
        await self._enter("add comment")
        record = make_comment(property_id, user_id, content, minutes=len(self.comments))
        self.comments[record.id] = record
        self._publish(
            COMMENTS_CHANNEL,
            ChangeType.INSERT,
            record.id,
            new={"property_id": property_id, "user_id": user_id}
        )
        return record

    async def delete_comment(self, comment_id, user_id):
        await self._enter("delete comment")
        record = self.comments.get(comment_id)
        if record is None or record.user_id != user_id:
            return False
        del self.comments[comment_id]
        self._publish(
            COMMENTS_CHANNEL,
            ChangeType.DELETE,
            comment_id,
            old={"property_id": record.property_id, "user_id": user_id}
        )
        return True

    # Profiles

    async def get_profile(self, user_id):
        await self._enter("get profile")
        return self.profiles.get(user_id)


class ConcurrentWriterStore(FakeListingStore):
    """
    Fake store where another writer races the comment snapshot: one comment
    is committed right after the snapshot is read and one more shortly after.
    """

    def __init__(self, hub: Optional[ChangeHub] = None, later_delay: float = 0.05):
        super().__init__(hub)
        self.writer_id = uuid.uuid4()
        self.later_delay = later_delay
        self.writer_task: Optional[asyncio.Task] = None

    async def list_comments(self, property_id):
        snapshot = await super().list_comments(property_id)
        await self.insert_comment(property_id, self.writer_id, "during snapshot")
        self.writer_task = asyncio.get_running_loop().create_task(self._write_later(property_id))
        return snapshot

    async def _write_later(self, property_id):
        await asyncio.sleep(self.later_delay)
        await self.insert_comment(property_id, self.writer_id, "later")
