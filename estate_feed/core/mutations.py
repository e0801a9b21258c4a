"""
Mutation coordination for likes, comments and listings.

Likes are optimistic: local state flips first, the remote write follows and a
failure restores the previous state. Comments are written first and merged on
success. Deletes are owner-gated, confirmed, and scoped by owner id in the
store call as well.
"""

from typing import Awaitable, Callable, Optional, Tuple, Union
from weakref import WeakValueDictionary
import asyncio
import inspect
import logging
import uuid

from estate_feed.core.notify import Notifier, LogNotifier
from estate_feed.core.state import CommentThreadState, FeedState, LikeState, OwnerListingsState
from estate_feed.schemas.comment import CommentRecord
from estate_feed.schemas.property import PropertyCreate, PropertyRecord
from estate_feed.utils.exceptions import (
    UnauthenticatedError,
    ValidationError,
    NotFoundError,
    OwnershipError,
    RemoteError
)

logger = logging.getLogger(__name__)

Confirm = Union[bool, Callable[[str], Union[bool, Awaitable[bool]]]]


async def _confirmed(confirm: Confirm, prompt: str) -> bool:
    if callable(confirm):
        answer = confirm(prompt)
        if inspect.isawaitable(answer):
            answer = await answer
        return bool(answer)
    return bool(confirm)


class MutationCoordinator:
    """
    Applies user mutations against view state and the store.
    One coordinator should be shared by every view of a client so like
    toggles for the same (user, property) are serialized.
    """

    def __init__(self, store, notifier: Optional[Notifier] = None):
        self.store = store
        self.notifier = notifier or LogNotifier()
        self._like_locks: "WeakValueDictionary[Tuple[uuid.UUID, uuid.UUID], asyncio.Lock]" = WeakValueDictionary()

    def _like_lock(self, user_id: uuid.UUID, property_id: uuid.UUID) -> asyncio.Lock:
        key = (user_id, property_id)
        lock = self._like_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._like_locks[key] = lock
        return lock

    def is_toggling(self, user_id: uuid.UUID, property_id: uuid.UUID) -> bool:
        """Whether a toggle for this key is in flight, for disabling its control."""
        lock = self._like_locks.get((user_id, property_id))
        return lock is not None and lock.locked()

    async def toggle_like(
        self,
        state: FeedState,
        property_id: uuid.UUID,
        user_id: Optional[uuid.UUID],
        reload: bool = False
    ) -> LikeState:
        """
        Flip the caller's like on a property.

        Toggles for the same (user, property) run one at a time. With
        ``reload`` the authoritative like state is read from the store first.

        Raises:
            UnauthenticatedError: Without a user; state is untouched
            RemoteError: The write failed; state is restored
        """
        if user_id is None:
            raise UnauthenticatedError("Sign in to like listings")

        async with self._like_lock(user_id, property_id):
            if reload:
                count, liked = await self.store.get_like_state(property_id, user_id)
                state.set_like_state(property_id, LikeState(count=count, liked=liked))

            previous = state.like_state(property_id)
            optimistic = previous.toggled()
            state.set_like_state(property_id, optimistic)

            try:
                if previous.liked:
                    await self.store.delete_like(user_id, property_id)
                else:
                    await self.store.insert_like(user_id, property_id)
            except RemoteError:
                if state.alive:
                    state.set_like_state(property_id, previous)
                self.notifier.error("Could not update like. Please try again.")
                raise

            logger.info(
                f"User {user_id} {'liked' if optimistic.liked else 'unliked'} property {property_id}"
            )
            return optimistic

    async def add_comment(
        self,
        thread: CommentThreadState,
        user_id: Optional[uuid.UUID],
        content: Optional[str] = None
    ) -> CommentRecord:
        """
        Post a comment. ``content`` defaults to the thread draft.

        The draft is cleared only after the store accepts the comment.

        Raises:
            UnauthenticatedError: Without a user; no store call is made
            ValidationError: Blank content; no store call is made
            RemoteError: The insert failed; the draft is kept
        """
        if user_id is None:
            raise UnauthenticatedError("Sign in to comment")

        text = (thread.draft if content is None else content).strip()
        if not text:
            raise ValidationError("Comment cannot be empty")

        thread.posting = True
        try:
            record = await self.store.insert_comment(thread.property_id, user_id, text)
        except RemoteError:
            self.notifier.error("Could not post comment. Please try again.")
            raise
        finally:
            thread.posting = False

        if thread.alive:
            thread.merge(record)
            thread.draft = ""
        self.notifier.success("Comment added")
        return record

    async def delete_comment(
        self,
        thread: CommentThreadState,
        user_id: Optional[uuid.UUID],
        comment_id: uuid.UUID,
        confirm: Confirm
    ) -> bool:
        """
        Delete the caller's own comment after confirmation.

        Returns False when the user declined the confirmation.

        Raises:
            UnauthenticatedError: Without a user
            NotFoundError: The comment is not in the thread or no longer in the store
            OwnershipError: The caller did not write the comment
            RemoteError: The delete failed; the thread is unchanged
        """
        if user_id is None:
            raise UnauthenticatedError("Sign in to delete comments")

        comment = thread.get(comment_id)
        if comment is None:
            raise NotFoundError("Comment", str(comment_id))
        if comment.user_id != user_id:
            logger.warning(f"User {user_id} attempted to delete comment {comment_id} they do not own")
            raise OwnershipError("Comment")

        if not await _confirmed(confirm, "Delete this comment?"):
            logger.debug(f"Deletion of comment {comment_id} not confirmed")
            return False

        thread.deleting.add(comment_id)
        try:
            deleted = await self.store.delete_comment(comment_id, user_id)
        except RemoteError:
            self.notifier.error("Could not delete comment. Please try again.")
            raise
        finally:
            thread.deleting.discard(comment_id)

        if not deleted:
            self.notifier.error("Comment no longer exists")
            raise NotFoundError("Comment", str(comment_id))

        if thread.alive:
            thread.remove(comment_id)
        self.notifier.success("Comment deleted")
        return True

    async def delete_property(
        self,
        listings: Union[OwnerListingsState, FeedState],
        user_id: Optional[uuid.UUID],
        property_id: uuid.UUID,
        confirm: Confirm
    ) -> bool:
        """
        Delete the caller's own listing after confirmation.

        Returns False when the user declined the confirmation.

        Raises:
            UnauthenticatedError: Without a user
            NotFoundError: The listing is not in view or no longer in the store
            OwnershipError: The caller does not own the listing
            RemoteError: The delete failed; the listings are unchanged
        """
        if user_id is None:
            raise UnauthenticatedError("Sign in to delete listings")

        record = listings.get(property_id)
        if record is None:
            raise NotFoundError("Property", str(property_id))
        if record.owner_id != user_id:
            logger.warning(f"User {user_id} attempted to delete property {property_id} they do not own")
            raise OwnershipError("Property")

        if not await _confirmed(confirm, "Delete this listing? This cannot be undone."):
            logger.debug(f"Deletion of property {property_id} not confirmed")
            return False

        listings.deleting.add(property_id)
        try:
            deleted = await self.store.delete_property(property_id, user_id)
        except RemoteError:
            self.notifier.error("Could not delete listing. Please try again.")
            raise
        finally:
            listings.deleting.discard(property_id)

        if not deleted:
            self.notifier.error("Listing no longer exists")
            raise NotFoundError("Property", str(property_id))

        if listings.alive:
            listings.remove(property_id)
        self.notifier.success("Listing deleted")
        return True

    async def create_property(
        self,
        user_id: Optional[uuid.UUID],
        data: PropertyCreate,
        listings: Optional[OwnerListingsState] = None
    ) -> PropertyRecord:
        """
        Publish a listing and merge it into the owner's listings on success.

        Raises:
            UnauthenticatedError: Without a user
            RemoteError: The insert failed
        """
        if user_id is None:
            raise UnauthenticatedError("Sign in to post listings")

        try:
            record = await self.store.create_property(user_id, data)
        except RemoteError:
            self.notifier.error("Could not publish listing. Please try again.")
            raise

        if listings is not None and listings.alive and listings.owner_id == user_id:
            listings.merge(record)
        self.notifier.success("Listing published")
        return record
