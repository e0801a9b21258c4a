"""
Client data layer: session resolution, feed aggregation, optimistic
mutations and realtime reconciliation.
"""

from .state import LikeState, ViewState, FeedState, CommentThreadState, OwnerListingsState
from .notify import Notifier, LogNotifier, Notification, NotificationLevel
from .session import SessionResolver, SessionStore
from .feed import ListingFeedAggregator
from .mutations import MutationCoordinator
from .reconciler import RealtimeReconciler, comment_reconciler, owner_listings_reconciler

__all__ = [
    "LikeState",
    "ViewState",
    "FeedState",
    "CommentThreadState",
    "OwnerListingsState",
    "Notifier",
    "LogNotifier",
    "Notification",
    "NotificationLevel",
    "SessionResolver",
    "SessionStore",
    "ListingFeedAggregator",
    "MutationCoordinator",
    "RealtimeReconciler",
    "comment_reconciler",
    "owner_listings_reconciler",
]
