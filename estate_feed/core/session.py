"""
Current-session resolution.

SessionResolver asks the auth collaborator who the caller is and never fails:
any problem resolves to anonymous. SessionStore is the single process-wide
holder of the current identity for long-lived clients.
"""

from typing import Callable, Dict, Optional, Protocol
import itertools
import logging
import uuid

from estate_feed.schemas.auth import AuthSession
from estate_feed.services.auth import AUTH_CHANNEL, SessionEvent, SessionEventType
from estate_feed.services.realtime import ChangeHub, Subscription

logger = logging.getLogger(__name__)

SessionListener = Callable[[Optional[AuthSession]], None]


class SessionSource(Protocol):
    async def get_current_session(self, access_token: str) -> Optional[AuthSession]:
        ...


class SessionStore:
    """
    Holds the current session. Consumers read ``current`` and subscribe to
    changes; only the resolver and auth events write it.
    """

    def __init__(self):
        self._current: Optional[AuthSession] = None
        self._listeners: Dict[int, SessionListener] = {}
        self._ids = itertools.count(1)
        self._hub: Optional[ChangeHub] = None
        self._subscription: Optional[Subscription] = None

    @property
    def current(self) -> Optional[AuthSession]:
        return self._current

    @property
    def user_id(self) -> Optional[uuid.UUID]:
        return self._current.user_id if self._current else None

    @property
    def is_authenticated(self) -> bool:
        return self._current is not None

    def set(self, session: Optional[AuthSession]) -> None:
        if session == self._current:
            return
        self._current = session
        for handle, listener in list(self._listeners.items()):
            try:
                listener(session)
            except Exception:
                logger.exception(f"Session listener {handle} failed")

    def clear(self) -> None:
        self.set(None)

    def subscribe(self, listener: SessionListener) -> int:
        handle = next(self._ids)
        self._listeners[handle] = listener
        return handle

    def unsubscribe(self, handle: int) -> bool:
        return self._listeners.pop(handle, None) is not None

    def bind(self, hub: ChangeHub) -> None:
        """Follow sign-in and sign-out events published by the auth gateway."""
        if self._subscription is not None:
            self._hub.unsubscribe(self._subscription)
        self._hub = hub
        self._subscription = hub.subscribe(AUTH_CHANNEL, None, self._on_auth_event)

    def _on_auth_event(self, event: SessionEvent) -> None:
        if event.event_type == SessionEventType.SIGNED_IN:
            self.set(event.session)
        elif event.event_type == SessionEventType.SIGNED_OUT:
            # Another identity signing out does not end ours
            if event.session is None or event.session.user_id == self.user_id:
                self.clear()

    def close(self) -> None:
        if self._hub is not None and self._subscription is not None:
            self._hub.unsubscribe(self._subscription)
        self._subscription = None
        self._hub = None
        self._listeners.clear()


class SessionResolver:
    """
    Resolves the session for a page load or request.
    """

    def __init__(self, auth: SessionSource, store: Optional[SessionStore] = None):
        self.auth = auth
        self.store = store

    async def resolve(self, access_token: Optional[str]) -> Optional[AuthSession]:
        """
        Returns the authenticated session, or None for anonymous.
        Failures are logged and treated as anonymous.
        """
        session: Optional[AuthSession] = None
        if access_token:
            try:
                session = await self.auth.get_current_session(access_token)
            except Exception as e:
                logger.warning(f"Session lookup failed, continuing anonymously: {e}")
                session = None

        if self.store is not None:
            self.store.set(session)
        return session
