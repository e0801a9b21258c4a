"""
Like repository.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from estate_feed.repositories.base import BaseRepository
from estate_feed.models.like import Like
from typing import List, Optional, Tuple
import uuid
import logging

logger = logging.getLogger(__name__)


class LikeRepository(BaseRepository[Like]):

    def __init__(self, db: AsyncSession):
        super().__init__(Like, db)

    async def get_for_properties(self, property_ids) -> List[Like]:
        """
        Get like rows for a set of properties.

        Args:
            property_ids: A list of ids or a select() of ids
        """
        try:
            query = select(Like).where(Like.property_id.in_(property_ids))
            result = await self.db.execute(query)
            likes = result.scalars().all()
            logger.debug(f"Retrieved {len(likes)} likes")
            return list(likes)
        except Exception as e:
            logger.error(f"Failed to get likes: {e}")
            raise

    async def find(self, user_id: uuid.UUID, property_id: uuid.UUID) -> Optional[Like]:
        result = await self.db.execute(
            select(Like).where(Like.user_id == user_id, Like.property_id == property_id)
        )
        return result.scalar_one_or_none()

    async def add(self, user_id: uuid.UUID, property_id: uuid.UUID) -> Tuple[Like, bool]:
        """
        Insert a like, treating an existing row as success.

        Returns:
            Tuple of (like row, whether a new row was created)
        """
        try:
            like = await self.create({"user_id": user_id, "property_id": property_id})
            return like, True
        except IntegrityError:
            # The unique constraint already holds this pair, or the property is gone
            existing = await self.find(user_id, property_id)
            if existing is None:
                raise
            logger.debug(f"Like by {user_id} on {property_id} already exists")
            return existing, False

    async def remove(self, user_id: uuid.UUID, property_id: uuid.UUID) -> bool:
        return await self.delete_where(user_id=user_id, property_id=property_id) > 0
