"""
Tests for the mutation coordinator: optimistic likes, comment posting and
owner-gated, confirmed deletes.
"""

import asyncio
import uuid
from decimal import Decimal

import pytest

from estate_feed.core.mutations import MutationCoordinator
from estate_feed.core.notify import LogNotifier
from estate_feed.core.state import CommentThreadState, FeedState, LikeState, OwnerListingsState
from estate_feed.schemas.property import PropertyCreate
from estate_feed.utils.exceptions import (
    NotFoundError,
    OwnershipError,
    RemoteError,
    UnauthenticatedError,
    ValidationError
)
from tests.conftest import PropertyFactory, UserFactory
from tests.fakes import FakeListingStore, make_comment, make_property


@pytest.fixture
def fake_store() -> FakeListingStore:
    return FakeListingStore()


@pytest.fixture
def notifier() -> LogNotifier:
    return LogNotifier()


@pytest.fixture
def coordinator(fake_store, notifier) -> MutationCoordinator:
    return MutationCoordinator(fake_store, notifier)


class TestToggleLike:

    async def test_requires_session(self, fake_store, coordinator):
        state = FeedState()
        property_id = uuid.uuid4()

        with pytest.raises(UnauthenticatedError):
            await coordinator.toggle_like(state, property_id, None)

        assert state.like_state(property_id) == LikeState()
        assert sum(fake_store.calls.values()) == 0

    async def test_like_then_unlike(self, fake_store, coordinator):
        user, property_id = uuid.uuid4(), uuid.uuid4()
        state = FeedState()

        liked = await coordinator.toggle_like(state, property_id, user)
        assert liked == LikeState(count=1, liked=True)
        assert (user, property_id) in fake_store.likes

        unliked = await coordinator.toggle_like(state, property_id, user)
        assert unliked == LikeState(count=0, liked=False)
        assert fake_store.likes == set()

    async def test_failure_restores_previous_state(self, fake_store, coordinator, notifier):
        user, property_id = uuid.uuid4(), uuid.uuid4()
        state = FeedState()
        state.set_like_state(property_id, LikeState(count=4, liked=False))
        fake_store.fail.add("like property")

        with pytest.raises(RemoteError):
            await coordinator.toggle_like(state, property_id, user)

        assert state.like_state(property_id) == LikeState(count=4, liked=False)
        assert notifier.errors == ["Could not update like. Please try again."]

    async def test_optimistic_state_visible_while_write_in_flight(self, fake_store, coordinator):
        user, property_id = uuid.uuid4(), uuid.uuid4()
        state = FeedState()
        fake_store.delays["like property"] = 0.05

        task = asyncio.create_task(coordinator.toggle_like(state, property_id, user))
        await asyncio.sleep(0.01)

        assert state.like_state(property_id) == LikeState(count=1, liked=True)
        assert coordinator.is_toggling(user, property_id)
        await task
        assert not coordinator.is_toggling(user, property_id)

    async def test_rapid_double_toggle_is_serialized(self, fake_store, coordinator):
        user, property_id = uuid.uuid4(), uuid.uuid4()
        state = FeedState()
        fake_store.delays["like property"] = 0.02
        fake_store.delays["unlike property"] = 0.02

        first, second = await asyncio.gather(
            coordinator.toggle_like(state, property_id, user),
            coordinator.toggle_like(state, property_id, user)
        )

        assert first == LikeState(count=1, liked=True)
        assert second == LikeState(count=0, liked=False)
        assert fake_store.calls["like property"] == 1
        assert fake_store.calls["unlike property"] == 1
        assert fake_store.likes == set()

    async def test_reload_reads_stored_state(self, fake_store, coordinator):
        user, other, property_id = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        fake_store.likes.update({(user, property_id), (other, property_id)})

        result = await coordinator.toggle_like(FeedState(), property_id, user, reload=True)

        assert result == LikeState(count=1, liked=False)
        assert fake_store.likes == {(other, property_id)}

    async def test_count_never_negative(self):
        assert LikeState(count=0, liked=True).toggled() == LikeState(count=0, liked=False)

    async def test_concurrent_toggles_against_database(self, session_factory, store):
        owner = await UserFactory.create_user(session_factory)
        fan = await UserFactory.create_user(session_factory)
        record = await PropertyFactory.create_property(session_factory, owner.id)
        coordinator = MutationCoordinator(store)

        await asyncio.gather(*[
            coordinator.toggle_like(FeedState(), record.id, fan.id, reload=True)
            for _ in range(3)
        ])

        # Three serialized toggles from the stored state: like, unlike, like
        assert await store.get_like_state(record.id, fan.id) == (1, True)


class TestAddComment:

    async def test_blank_content_makes_no_store_call(self, fake_store, coordinator):
        thread = CommentThreadState(uuid.uuid4())

        with pytest.raises(ValidationError):
            await coordinator.add_comment(thread, uuid.uuid4(), "   \n\t ")

        assert fake_store.calls["add comment"] == 0
        assert thread.comments == []

    async def test_requires_session(self, fake_store, coordinator):
        with pytest.raises(UnauthenticatedError):
            await coordinator.add_comment(CommentThreadState(uuid.uuid4()), None, "Hello")
        assert fake_store.calls["add comment"] == 0

    async def test_posts_draft_and_clears_it(self, fake_store, coordinator, notifier):
        user = uuid.uuid4()
        thread = CommentThreadState(uuid.uuid4())
        thread.draft = "  Is the price negotiable?  "

        record = await coordinator.add_comment(thread, user)

        assert record.content == "Is the price negotiable?"
        assert thread.ids == [record.id]
        assert thread.draft == ""
        assert thread.posting is False
        assert notifier.successes == ["Comment added"]

    async def test_failure_keeps_draft(self, fake_store, coordinator, notifier):
        thread = CommentThreadState(uuid.uuid4())
        thread.draft = "Still available?"
        fake_store.fail.add("add comment")

        with pytest.raises(RemoteError):
            await coordinator.add_comment(thread, uuid.uuid4())

        assert thread.draft == "Still available?"
        assert thread.comments == []
        assert thread.posting is False
        assert notifier.errors == ["Could not post comment. Please try again."]


class TestDeleteComment:

    def _thread_with(self, fake_store, author):
        property_id = uuid.uuid4()
        comment = fake_store.add_comment(make_comment(property_id, author))
        return CommentThreadState(property_id, [comment]), comment

    async def test_non_author_is_rejected_without_store_call(self, fake_store, coordinator):
        thread, comment = self._thread_with(fake_store, uuid.uuid4())

        with pytest.raises(OwnershipError):
            await coordinator.delete_comment(thread, uuid.uuid4(), comment.id, True)

        assert fake_store.calls["delete comment"] == 0
        assert thread.ids == [comment.id]

    async def test_declined_confirmation_keeps_comment(self, fake_store, coordinator):
        author = uuid.uuid4()
        thread, comment = self._thread_with(fake_store, author)
        prompts = []

        def decline(prompt):
            prompts.append(prompt)
            return False

        assert await coordinator.delete_comment(thread, author, comment.id, decline) is False
        assert prompts == ["Delete this comment?"]
        assert fake_store.calls["delete comment"] == 0
        assert thread.ids == [comment.id]

    async def test_confirmed_delete_removes_comment(self, fake_store, coordinator, notifier):
        author = uuid.uuid4()
        thread, comment = self._thread_with(fake_store, author)

        async def accept(prompt):
            return True

        assert await coordinator.delete_comment(thread, author, comment.id, accept) is True
        assert thread.comments == []
        assert comment.id not in fake_store.comments
        assert thread.deleting == set()
        assert notifier.successes == ["Comment deleted"]

    async def test_failure_keeps_comment(self, fake_store, coordinator):
        author = uuid.uuid4()
        thread, comment = self._thread_with(fake_store, author)
        fake_store.fail.add("delete comment")

        with pytest.raises(RemoteError):
            await coordinator.delete_comment(thread, author, comment.id, True)

        assert thread.ids == [comment.id]
        assert thread.deleting == set()

    async def test_already_deleted_comment(self, fake_store, coordinator):
        author = uuid.uuid4()
        thread, comment = self._thread_with(fake_store, author)
        del fake_store.comments[comment.id]

        with pytest.raises(NotFoundError):
            await coordinator.delete_comment(thread, author, comment.id, True)

    async def test_unknown_comment(self, coordinator):
        with pytest.raises(NotFoundError):
            await coordinator.delete_comment(CommentThreadState(uuid.uuid4()), uuid.uuid4(), uuid.uuid4(), True)


class TestPropertyMutations:

    async def test_non_owner_cannot_delete(self, fake_store, coordinator):
        owner = uuid.uuid4()
        record = fake_store.add_property(make_property(owner))
        listings = OwnerListingsState(owner, [record])

        with pytest.raises(OwnershipError):
            await coordinator.delete_property(listings, uuid.uuid4(), record.id, True)

        assert fake_store.calls["delete property"] == 0
        assert listings.get(record.id) is not None

    async def test_declined_confirmation(self, fake_store, coordinator):
        owner = uuid.uuid4()
        record = fake_store.add_property(make_property(owner))
        listings = OwnerListingsState(owner, [record])

        assert await coordinator.delete_property(listings, owner, record.id, False) is False
        assert record.id in fake_store.properties

    async def test_owner_delete(self, fake_store, coordinator, notifier):
        owner = uuid.uuid4()
        record = fake_store.add_property(make_property(owner))
        listings = OwnerListingsState(owner, [record])

        assert await coordinator.delete_property(listings, owner, record.id, True) is True
        assert listings.listings == []
        assert record.id not in fake_store.properties
        assert notifier.successes == ["Listing deleted"]

    async def test_delete_from_feed_state(self, fake_store, coordinator):
        owner = uuid.uuid4()
        record = fake_store.add_property(make_property(owner))
        feed = FeedState()
        feed.properties = [record]
        feed.total = 1

        await coordinator.delete_property(feed, owner, record.id, True)

        assert feed.properties == []
        assert feed.total == 0

    async def test_create_merges_into_own_listings(self, fake_store, coordinator):
        owner = uuid.uuid4()
        listings = OwnerListingsState(owner)
        data = PropertyCreate(
            title="Duplex in Ikoyi",
            price=Decimal("250000000"),
            images=["http://test/media/property-images/x.jpg"]
        )

        record = await coordinator.create_property(owner, data, listings)

        assert listings.get(record.id) == record

    async def test_create_requires_session(self, coordinator):
        data = PropertyCreate(title="Flat", price=Decimal("1"), images=["http://test/a.jpg"])
        with pytest.raises(UnauthenticatedError):
            await coordinator.create_property(None, data)
