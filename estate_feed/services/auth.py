"""
Authentication service for sign-up, login, token management and session lookup.
AuthService works on one database session; AuthGateway is the long-lived
collaborator that opens its own sessions and announces sign-in and sign-out.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from estate_feed.config import settings
from estate_feed.database import remote_session
from estate_feed.repositories.user import UserRepository
from estate_feed.models.user import User
from estate_feed.schemas.auth import AuthSession, SignUpRequest, TokenResponse
from estate_feed.schemas.user import ProfileRecord
from estate_feed.services.realtime import ChangeHub
from estate_feed.utils.auth import (
    create_access_token,
    create_refresh_token,
    verify_token
)
from estate_feed.utils.exceptions import (
    InvalidCredentialsError,
    InvalidTokenError,
    InactiveUserError,
    ValidationError,
    ConflictError
)
from jose import JWTError
import uuid
import logging

logger = logging.getLogger(__name__)

AUTH_CHANNEL = "auth"


class SessionEventType(str, Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"


@dataclass(frozen=True)
class SessionEvent:
    event_type: SessionEventType
    session: Optional[AuthSession] = None


class AuthService:
    """
    Authentication service for managing users and tokens within one DB session.
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.user_repo = UserRepository(db_session)

    async def register(self, data: SignUpRequest) -> User:
        """
        Create an account.

        Raises:
            ConflictError: If the email or username is taken
            ValidationError: If the account data is invalid
        """
        try:
            user = await self.user_repo.create_user(data.model_dump())
        except ValueError as e:
            message = str(e)
            if "already" in message:
                raise ConflictError(message)
            raise ValidationError(message)

        logger.info(f"Registered user {user.email}")
        return user

    async def authenticate_user(self, email: str, password: str) -> User:
        """
        Authenticate user with email and password.

        Raises:
            InvalidCredentialsError: If credentials are invalid
            InactiveUserError: If user account is inactive
            ValidationError: If input validation fails
        """
        if not email or not email.strip():
            raise ValidationError("Email is required")

        if not password or not password.strip():
            raise ValidationError("Password is required")

        user = await self.user_repo.authenticate_user(email, password)

        if not user:
            logger.warning(f"Failed authentication attempt for email: {email}")
            raise InvalidCredentialsError()

        if not user.is_active:
            logger.warning(f"Inactive user attempted login: {email}")
            raise InactiveUserError()

        return user

    def create_tokens(self, user: User) -> Tuple[str, str]:
        """Create (access_token, refresh_token) for a user."""
        return (
            create_access_token(user_id=user.id, email=user.email),
            create_refresh_token(user_id=user.id, email=user.email)
        )

    def issue(self, user: User) -> TokenResponse:
        access_token, refresh_token = self.create_tokens(user)
        return TokenResponse(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=settings.access_token_expire_minutes * 60,
            user=ProfileRecord.model_validate(user)
        )

    async def _user_from_token(self, token: str, token_type: str) -> User:
        try:
            payload = verify_token(token, token_type=token_type)
            user_id = uuid.UUID(payload.user_id)
        except (JWTError, ValueError) as e:
            raise InvalidTokenError(str(e))

        user = await self.user_repo.get_by_id(user_id)
        if user is None:
            raise InvalidTokenError("User no longer exists")
        if not user.is_active:
            raise InactiveUserError()
        return user

    async def get_current_user(self, token: str) -> User:
        """
        Get current user from access token.

        Raises:
            InvalidTokenError: If the token is invalid, expired or its user is gone
            InactiveUserError: If user account is inactive
        """
        return await self._user_from_token(token, "access")

    async def refresh(self, refresh_token: str) -> User:
        """Resolve the user behind a refresh token."""
        return await self._user_from_token(refresh_token, "refresh")


def session_from_tokens(tokens: TokenResponse) -> AuthSession:
    return AuthSession(
        user_id=tokens.user.id,
        email=tokens.user.email,
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_at=datetime.now(timezone.utc) + timedelta(seconds=tokens.expires_in)
    )


class AuthGateway:
    """
    Auth collaborator for the core layer.

    Opens a database session per call. Database failures surface as
    RemoteError; sign-in and sign-out are published on the ``auth`` channel.
    """

    def __init__(self, session_factory: async_sessionmaker, hub: Optional[ChangeHub] = None):
        self._session_factory = session_factory
        self._hub = hub

    def _announce(self, event: SessionEvent) -> None:
        if self._hub is not None:
            self._hub.publish(AUTH_CHANNEL, event)

    async def sign_up(self, data: SignUpRequest) -> TokenResponse:
        async with remote_session(self._session_factory, "sign up") as db:
            service = AuthService(db)
            user = await service.register(data)
            tokens = service.issue(user)

        self._announce(SessionEvent(SessionEventType.SIGNED_IN, session_from_tokens(tokens)))
        return tokens

    async def sign_in(self, email: str, password: str) -> TokenResponse:
        async with remote_session(self._session_factory, "sign in") as db:
            service = AuthService(db)
            user = await service.authenticate_user(email, password)
            tokens = service.issue(user)

        self._announce(SessionEvent(SessionEventType.SIGNED_IN, session_from_tokens(tokens)))
        return tokens

    async def refresh(self, refresh_token: str) -> TokenResponse:
        async with remote_session(self._session_factory, "refresh session") as db:
            service = AuthService(db)
            user = await service.refresh(refresh_token)
            return service.issue(user)

    async def get_current_session(self, access_token: str) -> Optional[AuthSession]:
        """
        Session for an access token, or None when the token does not identify
        an active user.

        Raises:
            RemoteError: If the user lookup fails
        """
        async with remote_session(self._session_factory, "get session") as db:
            try:
                user = await AuthService(db).get_current_user(access_token)
            except (InvalidTokenError, InactiveUserError) as e:
                logger.debug(f"Access token rejected: {e.detail}")
                return None
            return AuthSession(
                user_id=user.id,
                email=user.email,
                access_token=access_token
            )

    async def sign_out(self, session: Optional[AuthSession] = None) -> None:
        """
        End a session. Tokens are stateless, so this only notifies listeners.
        """
        if session is not None:
            logger.info(f"User {session.user_id} signed out")
        self._announce(SessionEvent(SessionEventType.SIGNED_OUT, session))
