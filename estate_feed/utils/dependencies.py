"""
FastAPI dependency injection utilities.
Wires the store, auth gateway, core components and the caller's session into routes.
"""

from functools import lru_cache
from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import async_sessionmaker
from estate_feed.database import get_session_factory
from estate_feed.core.feed import ListingFeedAggregator
from estate_feed.core.mutations import MutationCoordinator
from estate_feed.core.notify import LogNotifier
from estate_feed.core.session import SessionResolver
from estate_feed.schemas.auth import AuthSession
from estate_feed.services.auth import AuthGateway
from estate_feed.services.realtime import ChangeHub, change_hub
from estate_feed.services.storage import ObjectStorage
from estate_feed.store import ListingStore
from estate_feed.utils.exceptions import UnauthenticatedError


# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)

# Notifications raised while serving requests end up in the application log
notifier = LogNotifier()


def get_hub() -> ChangeHub:
    return change_hub


def get_store(
    session_factory: async_sessionmaker = Depends(get_session_factory),
    hub: ChangeHub = Depends(get_hub)
) -> ListingStore:
    return ListingStore(session_factory, hub)


def get_auth_gateway(
    session_factory: async_sessionmaker = Depends(get_session_factory),
    hub: ChangeHub = Depends(get_hub)
) -> AuthGateway:
    return AuthGateway(session_factory, hub)


def get_feed_aggregator(store: ListingStore = Depends(get_store)) -> ListingFeedAggregator:
    return ListingFeedAggregator(store, notifier)


@lru_cache(maxsize=8)
def _shared_coordinator(session_factory: async_sessionmaker, hub: ChangeHub) -> MutationCoordinator:
    return MutationCoordinator(ListingStore(session_factory, hub), notifier)


def get_coordinator(
    session_factory: async_sessionmaker = Depends(get_session_factory),
    hub: ChangeHub = Depends(get_hub)
) -> MutationCoordinator:
    """
    Coordinator shared across requests, so like toggles for the same
    user and property are serialized process-wide.
    """
    return _shared_coordinator(session_factory, hub)


@lru_cache()
def get_storage() -> ObjectStorage:
    return ObjectStorage()


def get_session_resolver(gateway: AuthGateway = Depends(get_auth_gateway)) -> SessionResolver:
    return SessionResolver(gateway)


async def get_optional_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    resolver: SessionResolver = Depends(get_session_resolver)
) -> Optional[AuthSession]:
    """
    Session of the caller, or None for anonymous callers and unusable tokens.
    """
    token = credentials.credentials if credentials else None
    return await resolver.resolve(token)


async def get_required_session(
    session: Optional[AuthSession] = Depends(get_optional_session)
) -> AuthSession:
    """
    Raises:
        UnauthenticatedError: If the caller has no valid session
    """
    if session is None:
        raise UnauthenticatedError()
    return session
