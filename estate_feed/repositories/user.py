"""
User repository for authentication and profile operations.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from estate_feed.repositories.base import BaseRepository
from estate_feed.models.user import User
from typing import Optional, Dict, Any
import uuid
import logging

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    """
    Repository for users, handling password hashing and unique identifiers.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(User, db)

    async def create_user(self, user_data: Dict[str, Any]) -> User:
        """
        Create a new user with email validation and password hashing.

        Args:
            user_data: Must include email, password, full_name; may include username

        Raises:
            ValueError: If validation fails or the email/username is taken
        """
        try:
            email = User.validate_email_format(user_data["email"])

            if await self.get_by_email(email):
                raise ValueError(f"User with email {email} already exists")

            username = user_data.get("username")
            if username and await self.get_by_username(username):
                raise ValueError(f"Username {username} is already taken")

            create_data = {
                "email": email,
                "hashed_password": User.hash_password(user_data["password"]),
                "full_name": user_data["full_name"],
                "username": username,
                "bio": user_data.get("bio"),
                "profile_picture": user_data.get("profile_picture"),
                "is_active": user_data.get("is_active", True)
            }

            created_user = await self.create(create_data)
            logger.info(f"Created user: {created_user.email} (ID: {created_user.id})")
            return created_user
        except ValueError as e:
            logger.error(f"User validation failed: {e}")
            raise
        except Exception as e:
            logger.error(f"Failed to create user: {e}")
            raise

    async def get_by_email(self, email: str) -> Optional[User]:
        """Get user by normalized email address."""
        try:
            result = await self.db.execute(select(User).where(User.email == email.lower().strip()))
            user = result.scalar_one_or_none()

            if user:
                logger.debug(f"Retrieved user by email: {email}")
            else:
                logger.debug(f"User with email {email} not found")

            return user
        except Exception as e:
            logger.error(f"Failed to get user by email {email}: {e}")
            raise

    async def get_by_username(self, username: str) -> Optional[User]:
        return await self.get_by_field("username", username.lower())

    async def authenticate_user(self, email: str, password: str) -> Optional[User]:
        """
        Authenticate user with email and password.

        Returns:
            User instance if authentication successful, None otherwise
        """
        try:
            user = await self.get_by_email(email)

            if not user:
                logger.debug(f"Authentication failed: user {email} not found")
                return None

            if not user.verify_password(password):
                logger.debug(f"Authentication failed: invalid password for {email}")
                return None

            logger.info(f"User authenticated successfully: {email}")
            return user
        except Exception as e:
            logger.error(f"Failed to authenticate user {email}: {e}")
            raise

    async def update_profile(self, user_id: uuid.UUID, changes: Dict[str, Any]) -> Optional[User]:
        """
        Apply profile changes.

        Raises:
            ValueError: If the new username belongs to someone else
        """
        username = changes.get("username")
        if username:
            holder = await self.get_by_username(username)
            if holder is not None and holder.id != user_id:
                raise ValueError(f"Username {username} is already taken")

        allowed = {"full_name", "username", "bio", "profile_picture"}
        updated = await self.update(user_id, {k: v for k, v in changes.items() if k in allowed})
        if updated:
            logger.info(f"Updated profile for user {user_id}")
        return updated
