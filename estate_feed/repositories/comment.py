"""
Comment repository. Comments are always returned with their author loaded.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, asc
from sqlalchemy.orm import selectinload
from estate_feed.repositories.base import BaseRepository
from estate_feed.models.comment import Comment
from typing import List, Optional
import uuid
import logging

logger = logging.getLogger(__name__)


class CommentRepository(BaseRepository[Comment]):

    def __init__(self, db: AsyncSession):
        super().__init__(Comment, db)

    async def get_with_author(self, comment_id: uuid.UUID) -> Optional[Comment]:
        result = await self.db.execute(
            select(Comment)
            .options(selectinload(Comment.author))
            .where(Comment.id == comment_id)
        )
        return result.scalar_one_or_none()

    async def get_for_property(self, property_id: uuid.UUID) -> List[Comment]:
        """Comments on a property in ascending creation order."""
        try:
            result = await self.db.execute(
                select(Comment)
                .options(selectinload(Comment.author))
                .where(Comment.property_id == property_id)
                .order_by(asc(Comment.created_at), asc(Comment.id))
            )
            comments = result.scalars().all()
            logger.debug(f"Retrieved {len(comments)} comments for property {property_id}")
            return list(comments)
        except Exception as e:
            logger.error(f"Failed to get comments for property {property_id}: {e}")
            raise

    async def add(self, property_id: uuid.UUID, user_id: uuid.UUID, content: str) -> Comment:
        """Insert a comment and return it joined with its author."""
        comment = await self.create({
            "property_id": property_id,
            "user_id": user_id,
            "content": content
        })
        logger.info(f"User {user_id} commented on property {property_id}")
        return await self.get_with_author(comment.id)

    async def delete_owned(self, comment_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        """Delete a comment only if user_id wrote it."""
        return await self.delete_where(id=comment_id, user_id=user_id) > 0
