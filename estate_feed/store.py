"""
Relational store used by the core layer.

Each call opens its own database session, so independent queries may run
concurrently. Rows leave this module as typed records, database failures leave
it as RemoteError, and every successful write is published on the change hub.
"""

from sqlalchemy.ext.asyncio import async_sessionmaker
from estate_feed.database import remote_session
from estate_feed.repositories import (
    PropertyRepository,
    LikeRepository,
    CommentRepository,
    UserRepository
)
from estate_feed.schemas.property import PropertyRecord, PropertyCreate, FilterCriteria
from estate_feed.schemas.comment import CommentRecord, LikeRow
from estate_feed.schemas.user import ProfileRecord
from estate_feed.services.realtime import ChangeHub, ChangeEvent, ChangeType
from estate_feed.utils.exceptions import ValidationError, ConflictError
from typing import Dict, List, Optional, Sequence, Tuple, Any
import uuid
import logging

logger = logging.getLogger(__name__)

PROPERTIES_CHANNEL = "properties"
COMMENTS_CHANNEL = "comments"
LIKES_CHANNEL = "likes"


class ListingStore:
    """Listings, likes, comments and profiles over async SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker, hub: Optional[ChangeHub] = None):
        self._session_factory = session_factory
        self._hub = hub

    def _session(self, operation: str):
        return remote_session(self._session_factory, operation)

    def _publish(
        self,
        channel: str,
        event_type: ChangeType,
        record_id: uuid.UUID,
        new: Optional[Dict[str, Any]] = None,
        old: Optional[Dict[str, Any]] = None
    ) -> None:
        if self._hub is None:
            return
        self._hub.publish(channel, ChangeEvent(
            table=channel,
            event_type=event_type,
            record_id=record_id,
            new=new or {},
            old=old or {}
        ))

    # Properties

    async def search_properties(
        self,
        criteria: Optional[FilterCriteria] = None,
        offset: int = 0,
        limit: Optional[int] = None
    ) -> Tuple[List[PropertyRecord], int]:
        """One page of properties matching the criteria, newest first, with the total."""
        async with self._session("search properties") as db:
            properties, total = await PropertyRepository(db).search(criteria, skip=offset, limit=limit)
            return [PropertyRecord.model_validate(p) for p in properties], total

    async def get_property(self, property_id: uuid.UUID) -> Optional[PropertyRecord]:
        async with self._session("get property") as db:
            property_obj = await PropertyRepository(db).get_with_images(property_id)
            return PropertyRecord.model_validate(property_obj) if property_obj else None

    async def list_owner_properties(self, owner_id: uuid.UUID) -> List[PropertyRecord]:
        async with self._session("list owner properties") as db:
            properties = await PropertyRepository(db).get_by_owner(owner_id)
            return [PropertyRecord.model_validate(p) for p in properties]

    async def create_property(self, owner_id: uuid.UUID, data: PropertyCreate) -> PropertyRecord:
        """
        Insert a listing with its images, returning the joined record.

        Raises:
            ValidationError: If the listing fails model validation
            RemoteError: If the database call fails
        """
        property_data = data.model_dump(exclude={"images"})
        property_data["owner_id"] = owner_id
        images = [{"image_url": url, "storage_path": None} for url in data.images]

        async with self._session("create property") as db:
            try:
                property_obj = await PropertyRepository(db).create_with_images(property_data, images)
            except ValueError as e:
                raise ValidationError(str(e))
            record = PropertyRecord.model_validate(property_obj)

        self._publish(
            PROPERTIES_CHANNEL,
            ChangeType.INSERT,
            record.id,
            new={"owner_id": record.owner_id, "title": record.title}
        )
        return record

    async def delete_property(self, property_id: uuid.UUID, owner_id: uuid.UUID) -> bool:
        """Delete scoped by id and owner id. Returns False when nothing matched."""
        async with self._session("delete property") as db:
            deleted = await PropertyRepository(db).delete_owned(property_id, owner_id)

        if deleted:
            self._publish(
                PROPERTIES_CHANNEL,
                ChangeType.DELETE,
                property_id,
                old={"id": property_id, "owner_id": owner_id}
            )
        return deleted

    # Likes

    async def fetch_likes(
        self,
        property_ids: Optional[Sequence[uuid.UUID]] = None,
        criteria: Optional[FilterCriteria] = None,
        offset: int = 0,
        limit: Optional[int] = None
    ) -> List[LikeRow]:
        """
        Like rows for the given property ids, or for the feed page selected by
        criteria/offset/limit when no ids are given.
        """
        async with self._session("fetch likes") as db:
            if property_ids is None:
                ids = PropertyRepository(db).feed_id_query(criteria, skip=offset, limit=limit)
                # Some backends reject LIMIT directly inside IN
                ids = ids.subquery().select()
            else:
                ids = list(property_ids)
            likes = await LikeRepository(db).get_for_properties(ids)
            return [LikeRow.model_validate(like) for like in likes]

    async def get_like_state(self, property_id: uuid.UUID, user_id: Optional[uuid.UUID]) -> Tuple[int, bool]:
        """Authoritative (count, liked by user) for one property."""
        async with self._session("get like state") as db:
            repo = LikeRepository(db)
            count = await repo.count({"property_id": property_id})
            liked = False
            if user_id is not None:
                liked = await repo.exists(user_id=user_id, property_id=property_id)
            return count, liked

    async def insert_like(self, user_id: uuid.UUID, property_id: uuid.UUID) -> LikeRow:
        """Insert a like. An existing like for the pair is returned unchanged."""
        async with self._session("like property") as db:
            like, created = await LikeRepository(db).add(user_id, property_id)
            row = LikeRow.model_validate(like)
            like_id = like.id

        if created:
            self._publish(
                LIKES_CHANNEL,
                ChangeType.INSERT,
                like_id,
                new={"user_id": user_id, "property_id": property_id}
            )
        return row

    async def delete_like(self, user_id: uuid.UUID, property_id: uuid.UUID) -> bool:
        async with self._session("unlike property") as db:
            repo = LikeRepository(db)
            like = await repo.find(user_id, property_id)
            if like is None:
                return False
            like_id = like.id
            deleted = await repo.remove(user_id, property_id)

        if deleted:
            self._publish(
                LIKES_CHANNEL,
                ChangeType.DELETE,
                like_id,
                old={"user_id": user_id, "property_id": property_id}
            )
        return deleted

    # Comments

    async def list_comments(self, property_id: uuid.UUID) -> List[CommentRecord]:
        async with self._session("list comments") as db:
            comments = await CommentRepository(db).get_for_property(property_id)
            return [CommentRecord.model_validate(c) for c in comments]

    async def get_comment(self, comment_id: uuid.UUID) -> Optional[CommentRecord]:
        async with self._session("get comment") as db:
            comment = await CommentRepository(db).get_with_author(comment_id)
            return CommentRecord.model_validate(comment) if comment else None

    async def insert_comment(self, property_id: uuid.UUID, user_id: uuid.UUID, content: str) -> CommentRecord:
        """Insert a comment and return it joined with its author."""
        async with self._session("add comment") as db:
            comment = await CommentRepository(db).add(property_id, user_id, content)
            record = CommentRecord.model_validate(comment)

        self._publish(
            COMMENTS_CHANNEL,
            ChangeType.INSERT,
            record.id,
            new={"property_id": property_id, "user_id": user_id}
        )
        return record

    async def delete_comment(self, comment_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        """Delete scoped by id and author id. Returns False when nothing matched."""
        async with self._session("delete comment") as db:
            repo = CommentRepository(db)
            comment = await repo.get_by_id(comment_id)
            if comment is None or comment.user_id != user_id:
                return False
            property_id = comment.property_id
            deleted = await repo.delete_owned(comment_id, user_id)

        if deleted:
            self._publish(
                COMMENTS_CHANNEL,
                ChangeType.DELETE,
                comment_id,
                old={"id": comment_id, "property_id": property_id, "user_id": user_id}
            )
        return deleted

    # Profiles

    async def get_profile(self, user_id: uuid.UUID) -> Optional[ProfileRecord]:
        async with self._session("get profile") as db:
            user = await UserRepository(db).get_by_id(user_id)
            return ProfileRecord.model_validate(user) if user else None

    async def update_profile(self, user_id: uuid.UUID, changes: Dict[str, Any]) -> Optional[ProfileRecord]:
        """
        Raises:
            ConflictError: If the requested username is taken
        """
        async with self._session("update profile") as db:
            try:
                user = await UserRepository(db).update_profile(user_id, changes)
            except ValueError as e:
                raise ConflictError(str(e))
            return ProfileRecord.model_validate(user) if user else None
