"""
Transient user notifications for mutation outcomes.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Deque, List
import logging

logger = logging.getLogger(__name__)


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


@dataclass(frozen=True)
class Notification:
    level: NotificationLevel
    message: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Notifier:
    """Base notifier. Subclasses decide where notifications are shown."""

    def notify(self, notification: Notification) -> None:
        raise NotImplementedError

    def success(self, message: str) -> None:
        self.notify(Notification(NotificationLevel.SUCCESS, message))

    def error(self, message: str) -> None:
        self.notify(Notification(NotificationLevel.ERROR, message))

    def info(self, message: str) -> None:
        self.notify(Notification(NotificationLevel.INFO, message))


class LogNotifier(Notifier):
    """Logs notifications and keeps the most recent ones."""

    def __init__(self, maxlen: int = 50):
        self.history: Deque[Notification] = deque(maxlen=maxlen)

    def notify(self, notification: Notification) -> None:
        self.history.append(notification)
        if notification.level == NotificationLevel.ERROR:
            logger.warning(f"Notification: {notification.message}")
        else:
            logger.info(f"Notification: {notification.message}")

    @property
    def errors(self) -> List[str]:
        return [n.message for n in self.history if n.level == NotificationLevel.ERROR]

    @property
    def successes(self) -> List[str]:
        return [n.message for n in self.history if n.level == NotificationLevel.SUCCESS]
