"""
Realtime reconciliation of view state with committed store changes.

Change events are buffered and applied in batches after a short debounce
window. Inserts and updates fetch the full joined record by id because the
event payload is partial; merges are keyed by id so a locally merged row and
its realtime echo never produce two entries.
"""

from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, Protocol
import asyncio
import inspect
import logging
import uuid

from estate_feed.config import settings
from estate_feed.core.state import CommentThreadState, OwnerListingsState
from estate_feed.services.realtime import ChangeEvent, ChangeHub, ChangeType, Subscription, column_equals
from estate_feed.store import COMMENTS_CHANNEL, PROPERTIES_CHANNEL
from estate_feed.utils.exceptions import RemoteError

logger = logging.getLogger(__name__)


class MergeTarget(Protocol):
    alive: bool

    def merge(self, record: Any) -> bool:
        ...

    def remove(self, record_id: uuid.UUID) -> bool:
        ...


Fetch = Callable[[uuid.UUID], Awaitable[Optional[Any]]]
Snapshot = Callable[[], Awaitable[Iterable[Any]]]
FlushCallback = Callable[[int], Any]


class RealtimeReconciler:
    """
    Scoped subscription that keeps one view state in step with a channel.

    Use as an async context manager, or call ``start()`` and ``aclose()``.
    Closing unsubscribes, cancels the pending flush and drops buffered
    events; a flush already running finishes but its results are discarded.
    """

    def __init__(
        self,
        hub: ChangeHub,
        channel: str,
        predicate: Optional[Callable[[ChangeEvent], bool]],
        fetch: Fetch,
        target: MergeTarget,
        debounce: Optional[float] = None,
        on_flush: Optional[FlushCallback] = None
    ):
        self.hub = hub
        self.channel = channel
        self.predicate = predicate
        self.fetch = fetch
        self.target = target
        self.debounce = settings.realtime_debounce_seconds if debounce is None else debounce
        self.on_flush = on_flush

        self._pending: Dict[uuid.UUID, ChangeEvent] = {}
        self._timer: Optional[asyncio.TimerHandle] = None
        self._flush_task: Optional[asyncio.Task] = None
        self._subscription: Optional[Subscription] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._holding = False
        self._closed = False

    @property
    def active(self) -> bool:
        return self._subscription is not None and not self._closed

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def start(self) -> "RealtimeReconciler":
        if self._closed:
            raise RuntimeError("Reconciler has been closed")
        if self._subscription is None:
            self._loop = asyncio.get_running_loop()
            self._subscription = self.hub.subscribe(self.channel, self.predicate, self._on_event)
            logger.debug(f"Reconciler subscribed to '{self.channel}'")
        return self

    async def __aenter__(self) -> "RealtimeReconciler":
        return self.start()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def _on_event(self, event: ChangeEvent) -> None:
        if self._closed:
            return
        # Later events for the same row replace earlier ones
        self._pending[event.record_id] = event
        if self._timer is None:
            self._timer = self._loop.call_later(self.debounce, self._schedule_flush)

    def _schedule_flush(self) -> None:
        self._timer = None
        if self._closed or not self._pending or self._holding:
            # A held batch is re-armed once the snapshot is merged
            return
        if self._flush_task is not None and not self._flush_task.done():
            # Events that arrive mid-flush wait for the next window
            self._timer = self._loop.call_later(self.debounce, self._schedule_flush)
            return
        self._flush_task = self._loop.create_task(self.flush())
        self._flush_task.add_done_callback(self._flush_done)

    def _flush_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Reconciler flush on '{self.channel}' failed: {error!r}")

    def _discarding(self) -> bool:
        return self._closed or not self.target.alive

    async def _notify(self, applied: int) -> None:
        if self.on_flush is None or self._discarding():
            return
        try:
            outcome = self.on_flush(applied)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.error(f"Reconciler callback on '{self.channel}' failed: {e!r}")

    async def sync(self, load: Snapshot) -> int:
        """
        Load a snapshot into the target while the subscription is live.

        Subscribes first if needed. Events that arrive while the snapshot
        loads are held and applied after it, so a row committed mid-load
        is merged by id instead of being missed. ``on_flush`` is called with
        the snapshot size once it is in place.

        Returns:
            Number of snapshot rows merged
        """
        self.start()
        self._holding = True
        merged = 0
        try:
            records = await load()
            if not self._discarding():
                for record in records:
                    self.target.merge(record)
                    merged += 1
            await self._notify(merged)
        finally:
            self._holding = False
            if self._pending and self._timer is None and not self._closed:
                self._timer = self._loop.call_later(self.debounce, self._schedule_flush)
        return merged

    async def _apply(self, record_id: uuid.UUID, event: ChangeEvent) -> Optional[bool]:
        """Apply one event. Returns None when the view closed mid-fetch."""
        if event.event_type == ChangeType.DELETE:
            return self.target.remove(record_id)

        record = await self.fetch(record_id)
        if self._discarding():
            return None
        if record is None:
            # Deleted again before we could fetch it
            return self.target.remove(record_id)
        self.target.merge(record)
        return True

    async def flush(self) -> int:
        """
        Apply every buffered event now.

        A failure on one row is logged and skipped; the rest of the batch
        is still applied.

        Returns:
            Number of rows merged or removed
        """
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        batch, self._pending = self._pending, {}
        if not batch or self._discarding():
            return 0

        applied = 0
        for record_id, event in batch.items():
            try:
                changed = await self._apply(record_id, event)
            except RemoteError as e:
                logger.warning(f"Could not fetch {self.channel} row {record_id} for merge: {e.detail}")
                continue
            except Exception as e:
                logger.error(f"Could not apply {self.channel} row {record_id}: {e!r}")
                continue

            if changed is None:
                logger.debug(f"Discarding {self.channel} merge after view closed")
                return applied
            if changed:
                applied += 1

        if applied:
            await self._notify(applied)

        logger.debug(f"Reconciler applied {applied} of {len(batch)} '{self.channel}' events")
        return applied

    async def aclose(self) -> None:
        """Release the subscription and drop anything not yet applied."""
        if self._closed:
            return
        self._closed = True
        if self._subscription is not None:
            self.hub.unsubscribe(self._subscription)
            self._subscription = None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending.clear()

        task = self._flush_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            await task
        logger.debug(f"Reconciler on '{self.channel}' closed")


def comment_reconciler(
    hub: ChangeHub,
    store,
    thread: CommentThreadState,
    debounce: Optional[float] = None,
    on_flush: Optional[FlushCallback] = None
) -> RealtimeReconciler:
    """Reconciler for the comments under one property."""
    return RealtimeReconciler(
        hub,
        COMMENTS_CHANNEL,
        column_equals("property_id", thread.property_id),
        store.get_comment,
        thread,
        debounce=debounce,
        on_flush=on_flush
    )


def owner_listings_reconciler(
    hub: ChangeHub,
    store,
    listings: OwnerListingsState,
    debounce: Optional[float] = None,
    on_flush: Optional[FlushCallback] = None
) -> RealtimeReconciler:
    """Reconciler for one owner's listings."""
    return RealtimeReconciler(
        hub,
        PROPERTIES_CHANNEL,
        column_equals("owner_id", listings.owner_id),
        store.get_property,
        listings,
        debounce=debounce,
        on_flush=on_flush
    )
