"""
Tests for feed aggregation: filtering, like annotation, degraded likes and
stale refresh handling.
"""

import asyncio
import uuid
from decimal import Decimal

import pytest

from estate_feed.core.feed import ListingFeedAggregator, summarize_likes
from estate_feed.core.notify import LogNotifier
from estate_feed.core.state import FeedState
from estate_feed.schemas.comment import LikeRow
from estate_feed.schemas.property import FilterCriteria
from estate_feed.utils.exceptions import NotFoundError, ValidationError
from tests.conftest import PropertyFactory, UserFactory
from tests.fakes import FakeListingStore, make_property


@pytest.fixture
def fake_store() -> FakeListingStore:
    return FakeListingStore()


@pytest.fixture
def notifier() -> LogNotifier:
    return LogNotifier()


@pytest.fixture
def aggregator(fake_store, notifier) -> ListingFeedAggregator:
    return ListingFeedAggregator(fake_store, notifier)


class TestSummarizeLikes:

    def test_counts_and_liked_by_user(self):
        me, other = uuid.uuid4(), uuid.uuid4()
        p1, p2 = uuid.uuid4(), uuid.uuid4()
        likes = [
            LikeRow(user_id=me, property_id=p1),
            LikeRow(user_id=other, property_id=p1),
            LikeRow(user_id=other, property_id=p2),
        ]

        counts, liked = summarize_likes(likes, me)

        assert counts == {p1: 2, p2: 1}
        assert liked == {p1}

    def test_rows_outside_page_are_ignored(self):
        me = uuid.uuid4()
        on_page, off_page = uuid.uuid4(), uuid.uuid4()
        likes = [LikeRow(user_id=me, property_id=off_page)]

        counts, liked = summarize_likes(likes, me, {on_page})

        assert counts == {}
        assert liked == set()

    def test_anonymous_user_likes_nothing(self):
        p1 = uuid.uuid4()
        counts, liked = summarize_likes([LikeRow(user_id=uuid.uuid4(), property_id=p1)], None)
        assert counts == {p1: 1}
        assert liked == set()


class TestFeedLoad:

    async def test_min_price_filter(self, fake_store, aggregator):
        owner = uuid.uuid4()
        fake_store.add_property(make_property(owner, price="100000", minutes=1))
        p2 = fake_store.add_property(make_property(owner, price="200000", minutes=2))

        result = await aggregator.load(FilterCriteria(min_price=Decimal("150000")))

        assert [item.property.id for item in result.items] == [p2.id]
        assert result.total == 1
        assert result.has_next is False

    async def test_newest_first_with_like_annotations(self, fake_store, aggregator):
        owner, me, other = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        older = fake_store.add_property(make_property(owner, minutes=1))
        newer = fake_store.add_property(make_property(owner, minutes=5))
        fake_store.likes.update({(me, older.id), (other, older.id), (other, newer.id)})

        result = await aggregator.load(user_id=me)

        assert [item.property.id for item in result.items] == [newer.id, older.id]
        assert (result.items[0].like_count, result.items[0].liked) == (1, False)
        assert (result.items[1].like_count, result.items[1].liked) == (2, True)
        assert result.likes_degraded is False

    async def test_pagination(self, fake_store, aggregator):
        owner = uuid.uuid4()
        for minute in range(5):
            fake_store.add_property(make_property(owner, minutes=minute))

        first = await aggregator.load(page=1, page_size=2)
        last = await aggregator.load(page=3, page_size=2)

        assert len(first.items) == 2 and first.has_next is True
        assert len(last.items) == 1 and last.has_next is False
        assert first.total == last.total == 5

    async def test_page_size_is_capped(self, fake_store):
        aggregator = ListingFeedAggregator(fake_store, max_page_size=3)
        result = await aggregator.load(page_size=50)
        assert result.page_size == 3

    async def test_invalid_page_rejected_before_store_call(self, fake_store, aggregator):
        with pytest.raises(ValidationError):
            await aggregator.load(page=0)
        assert fake_store.calls["search properties"] == 0

    async def test_like_failure_degrades_page(self, fake_store, aggregator):
        owner = uuid.uuid4()
        record = fake_store.add_property(make_property(owner))
        fake_store.likes.add((uuid.uuid4(), record.id))
        fake_store.fail.add("fetch likes")

        result = await aggregator.load()

        assert [item.property.id for item in result.items] == [record.id]
        assert result.items[0].like_count == 0
        assert result.likes_degraded is True
        assert result.error is None

    async def test_property_failure_returns_empty_page_with_error(self, fake_store, aggregator, notifier):
        fake_store.add_property(make_property(uuid.uuid4()))
        fake_store.fail.add("search properties")

        result = await aggregator.load()

        assert result.items == []
        assert "search properties failed" in result.error
        assert notifier.errors == ["Could not load listings"]

    async def test_queries_run_concurrently(self, fake_store, aggregator):
        fake_store.delays["search properties"] = 0.05
        fake_store.delays["fetch likes"] = 0.05

        loop = asyncio.get_running_loop()
        started = loop.time()
        await aggregator.load()

        assert loop.time() - started < 0.095


class TestFeedLoadOne:

    async def test_missing_property(self, aggregator):
        with pytest.raises(NotFoundError):
            await aggregator.load_one(uuid.uuid4())

    async def test_single_listing_with_likes(self, fake_store, aggregator):
        me = uuid.uuid4()
        record = fake_store.add_property(make_property(uuid.uuid4()))
        fake_store.likes.add((me, record.id))

        item = await aggregator.load_one(record.id, me)

        assert item.like_count == 1
        assert item.liked is True


class TestFeedRefresh:

    async def test_refresh_applies_result(self, fake_store, aggregator):
        record = fake_store.add_property(make_property(uuid.uuid4()))
        state = FeedState()

        result = await aggregator.refresh(state)

        assert result is not None
        assert [p.id for p in state.properties] == [record.id]
        assert state.loading is False

    async def test_stale_refresh_is_discarded(self, fake_store, aggregator):
        owner = uuid.uuid4()
        fake_store.add_property(make_property(owner, price="100000", minutes=1))
        expensive = fake_store.add_property(make_property(owner, price="900000", minutes=2))
        state = FeedState()

        fake_store.delays["search properties"] = 0.05
        slow = asyncio.create_task(aggregator.refresh(state, FilterCriteria()))
        await asyncio.sleep(0)

        fake_store.delays.clear()
        fresh = await aggregator.refresh(state, FilterCriteria(min_price=Decimal("500000")))

        assert fresh is not None
        assert await slow is None
        assert [p.id for p in state.properties] == [expensive.id]
        assert state.criteria.min_price == Decimal("500000")
        assert state.loading is False

    async def test_omitted_criteria_keeps_filters_and_none_clears_them(self, fake_store, aggregator):
        owner = uuid.uuid4()
        cheap = fake_store.add_property(make_property(owner, price="100000", minutes=1))
        expensive = fake_store.add_property(make_property(owner, price="900000", minutes=2))
        state = FeedState()

        await aggregator.refresh(state, FilterCriteria(min_price=Decimal("500000")))
        await aggregator.refresh(state)
        assert [p.id for p in state.properties] == [expensive.id]

        await aggregator.refresh(state, None)
        assert state.criteria.is_empty
        assert [p.id for p in state.properties] == [expensive.id, cheap.id]

    async def test_refresh_after_view_closed_is_discarded(self, fake_store, aggregator):
        fake_store.add_property(make_property(uuid.uuid4()))
        state = FeedState()
        state.close()

        assert await aggregator.refresh(state) is None
        assert state.properties == []


class TestFeedAgainstDatabase:

    async def test_min_price_filter_and_like_counts(self, session_factory, store):
        owner = await UserFactory.create_user(session_factory)
        fan = await UserFactory.create_user(session_factory)
        await PropertyFactory.create_property(session_factory, owner.id, title="P1", price=Decimal("100000"))
        p2 = await PropertyFactory.create_property(session_factory, owner.id, title="P2", price=Decimal("200000"))
        await store.insert_like(fan.id, p2.id)

        result = await ListingFeedAggregator(store).load(
            FilterCriteria(min_price=Decimal("150000")),
            user_id=fan.id
        )

        assert [item.property.title for item in result.items] == ["P2"]
        assert result.items[0].like_count == 1
        assert result.items[0].liked is True
        assert result.items[0].property.primary_image is not None

    async def test_likes_are_fetched_for_the_same_page(self, session_factory, store):
        owner = await UserFactory.create_user(session_factory)
        fan = await UserFactory.create_user(session_factory)
        records = []
        for index in range(3):
            records.append(await PropertyFactory.create_property(
                session_factory, owner.id, title=f"P{index}"
            ))
        for record in records:
            await store.insert_like(fan.id, record.id)

        result = await ListingFeedAggregator(store).load(user_id=fan.id, page=2, page_size=2)

        assert len(result.items) == 1
        assert result.items[0].like_count == 1
        assert result.total == 3
