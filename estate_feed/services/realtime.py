"""
In-process change notifications.
The store publishes row changes after commit; views subscribe per channel with
a predicate that scopes them to one property or one owner.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
import itertools
import logging
import uuid

logger = logging.getLogger(__name__)


class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class ChangeEvent:
    """
    A committed row change.
    ``new`` is a partial payload for inserts and updates; ``old`` carries the
    identifying columns of a deleted row.
    """

    table: str
    event_type: ChangeType
    record_id: uuid.UUID
    new: Dict[str, Any] = field(default_factory=dict)
    old: Dict[str, Any] = field(default_factory=dict)
    committed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def value(self, column: str) -> Any:
        """Column value from the new payload, falling back to the old one."""
        if column in self.new:
            return self.new[column]
        return self.old.get(column)


Predicate = Callable[[Any], bool]
Callback = Callable[[Any], Any]


def column_equals(column: str, expected: Any) -> Predicate:
    """Predicate matching change events whose column equals a value."""
    def _matches(event: ChangeEvent) -> bool:
        return event.value(column) == expected
    return _matches


@dataclass(eq=False)
class Subscription:
    id: int
    channel: str
    predicate: Optional[Predicate]
    callback: Callback
    active: bool = True


class ChangeHub:
    """
    Channel based publish/subscribe.

    Callbacks run synchronously inside ``publish``; a failing subscriber is
    logged and does not affect the others.
    """

    def __init__(self):
        self._channels: Dict[str, List[Subscription]] = {}
        self._ids = itertools.count(1)

    def subscribe(
        self,
        channel: str,
        predicate: Optional[Predicate],
        on_event: Callback
    ) -> Subscription:
        subscription = Subscription(
            id=next(self._ids),
            channel=channel,
            predicate=predicate,
            callback=on_event
        )
        self._channels.setdefault(channel, []).append(subscription)
        logger.debug(f"Subscription {subscription.id} opened on channel '{channel}'")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> bool:
        """Release a subscription. Returns False if it was already released."""
        subscribers = self._channels.get(subscription.channel, [])
        subscription.active = False
        if subscription in subscribers:
            subscribers.remove(subscription)
            logger.debug(f"Subscription {subscription.id} closed on channel '{subscription.channel}'")
            return True
        return False

    def subscriber_count(self, channel: Optional[str] = None) -> int:
        if channel is not None:
            return len(self._channels.get(channel, []))
        return sum(len(subs) for subs in self._channels.values())

    def publish(self, channel: str, event: Any) -> int:
        """
        Deliver an event to every matching subscriber on a channel.

        Returns:
            Number of subscribers the event was delivered to
        """
        delivered = 0
        # Copy so callbacks may unsubscribe while we iterate
        for subscription in list(self._channels.get(channel, [])):
            if not subscription.active:
                continue
            try:
                if subscription.predicate is not None and not subscription.predicate(event):
                    continue
                subscription.callback(event)
                delivered += 1
            except Exception:
                logger.exception(
                    f"Subscriber {subscription.id} on channel '{channel}' failed to handle event"
                )
        return delivered


# Process-wide hub shared by the store, the auth gateway and the API
change_hub = ChangeHub()
