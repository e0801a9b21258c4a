"""
Property repository for the listing feed and owner listings.
Provides filtered, ordered and paginated property queries with images loaded inline.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, func, desc, delete
from sqlalchemy.orm import selectinload
from estate_feed.repositories.base import BaseRepository
from estate_feed.models.property import Property
from estate_feed.models.image import PropertyImage
from estate_feed.schemas.property import FilterCriteria
from typing import Optional, List, Dict, Any, Tuple
from datetime import datetime
import uuid
import logging

logger = logging.getLogger(__name__)


class PropertyRepository(BaseRepository[Property]):
    """
    Repository for property listings and their images.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(Property, db)

    async def create_with_images(
        self,
        property_data: Dict[str, Any],
        images: List[Dict[str, Any]]
    ) -> Property:
        """
        Create a property and its images in one transaction.
        The first image is flagged primary.

        Raises:
            ValueError: If validation fails
        """
        try:
            property_obj = Property(**property_data)
            property_obj.validate_all()
            if not images:
                raise ValueError("At least one image is required")

            self.db.add(property_obj)
            await self.db.flush()

            for index, image in enumerate(images):
                self.db.add(PropertyImage(
                    property_id=property_obj.id,
                    image_url=image["image_url"],
                    storage_path=image.get("storage_path"),
                    is_primary=index == 0
                ))

            await self.db.commit()
            created = await self.get_with_images(property_obj.id)
            logger.info(f"Created property: {created.title} (ID: {created.id})")
            return created
        except ValueError as e:
            await self.db.rollback()
            logger.error(f"Property validation failed: {e}")
            raise
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to create property: {e}")
            raise

    async def get_with_images(self, property_id: uuid.UUID) -> Optional[Property]:
        """Get a property with its ordered images, or None."""
        try:
            query = (
                select(Property)
                .options(selectinload(Property.images))
                .where(Property.id == property_id)
                .execution_options(populate_existing=True)
            )
            result = await self.db.execute(query)
            property_obj = result.scalar_one_or_none()

            if property_obj:
                logger.debug(f"Retrieved property with images: {property_id}")

            return property_obj
        except Exception as e:
            logger.error(f"Failed to get property {property_id}: {e}")
            raise

    def build_filter_conditions(
        self,
        criteria: Optional[FilterCriteria],
        now: Optional[datetime] = None
    ) -> List:
        """
        Build SQLAlchemy conditions for every present criterion.
        """
        conditions = []
        if criteria is None:
            return conditions

        # Exact matches
        if criteria.location is not None:
            conditions.append(Property.location == criteria.location)
        if criteria.bedrooms is not None:
            conditions.append(Property.bedrooms == criteria.bedrooms)
        if criteria.bathrooms is not None:
            conditions.append(Property.bathrooms == criteria.bathrooms)
        if criteria.is_for_rent is not None:
            conditions.append(Property.is_for_rent == criteria.is_for_rent)
        if criteria.currency is not None:
            conditions.append(Property.currency == criteria.currency)

        # Inclusive ranges
        if criteria.min_price is not None:
            conditions.append(Property.price >= criteria.min_price)
        if criteria.max_price is not None:
            conditions.append(Property.price <= criteria.max_price)
        if criteria.min_square_feet is not None:
            conditions.append(Property.square_feet >= criteria.min_square_feet)
        if criteria.max_square_feet is not None:
            conditions.append(Property.square_feet <= criteria.max_square_feet)

        cutoff = criteria.posted_after(now)
        if cutoff is not None:
            conditions.append(Property.created_at >= cutoff)

        return conditions

    def feed_id_query(
        self,
        criteria: Optional[FilterCriteria],
        skip: int = 0,
        limit: Optional[int] = None,
        now: Optional[datetime] = None
    ):
        """
        Select the ids of one feed page.
        Used as a subquery so likes can be fetched for the same page concurrently.
        """
        query = select(Property.id)
        conditions = self.build_filter_conditions(criteria, now)
        if conditions:
            query = query.where(and_(*conditions))
        query = query.order_by(desc(Property.created_at), desc(Property.id)).offset(skip)
        if limit is not None:
            query = query.limit(limit)
        return query

    async def search(
        self,
        criteria: Optional[FilterCriteria],
        skip: int = 0,
        limit: Optional[int] = 20,
        now: Optional[datetime] = None
    ) -> Tuple[List[Property], int]:
        """
        Search properties, newest first.

        Returns:
            Tuple of (properties list, total count)
        """
        try:
            query = select(Property).options(selectinload(Property.images))
            count_query = select(func.count(Property.id))

            conditions = self.build_filter_conditions(criteria, now)
            if conditions:
                query = query.where(and_(*conditions))
                count_query = count_query.where(and_(*conditions))

            count_result = await self.db.execute(count_query)
            total_count = count_result.scalar() or 0

            query = query.order_by(desc(Property.created_at), desc(Property.id)).offset(skip)
            if limit is not None:
                query = query.limit(limit)

            result = await self.db.execute(query)
            properties = result.scalars().all()

            logger.debug(f"Property search returned {len(properties)} of {total_count} total results")
            return list(properties), total_count
        except Exception as e:
            logger.error(f"Failed to search properties: {e}")
            raise

    async def get_by_owner(self, owner_id: uuid.UUID) -> List[Property]:
        """Get every property posted by an owner, newest first."""
        try:
            query = (
                select(Property)
                .options(selectinload(Property.images))
                .where(Property.owner_id == owner_id)
                .order_by(desc(Property.created_at))
            )
            result = await self.db.execute(query)
            properties = result.scalars().all()

            logger.debug(f"Retrieved {len(properties)} properties for owner {owner_id}")
            return list(properties)
        except Exception as e:
            logger.error(f"Failed to get properties by owner {owner_id}: {e}")
            raise

    async def delete_owned(self, property_id: uuid.UUID, owner_id: uuid.UUID) -> bool:
        """
        Delete a property only if it belongs to owner_id.
        Images, likes and comments go with it through the foreign key cascade.
        """
        try:
            stmt = delete(Property).where(
                Property.id == property_id,
                Property.owner_id == owner_id
            )
            result = await self.db.execute(stmt)
            await self.db.commit()

            deleted = result.rowcount > 0
            if deleted:
                logger.info(f"Deleted property {property_id} owned by {owner_id}")
            else:
                logger.debug(f"Property {property_id} not found for owner {owner_id}")
            return deleted
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to delete property {property_id}: {e}")
            raise
