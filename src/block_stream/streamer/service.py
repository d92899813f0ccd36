"""
Block and log streamer.

This is the main entry point for following a chain.

The Core Problem
----------------
Reconciling one block can announce many changes: a reorg removes several
blocks and their logs before adding new ones, and a backfill adds a run of
blocks it had to fetch first. Any step may fail halfway, on a fetch that
raises or an ancestor that cannot be found. Subscribers must never see the
first half of a reconciliation that was then rejected.

How It Works
------------
- Reconciliation runs against a working copy of the last checkpoint
- Every announcement is queued rather than delivered
- On success the working copy becomes the checkpoint and the queue is flushed
- On failure the working copy and the queue are dropped

Ordering
--------
Submissions are processed one at a time, in submission order, by a single
worker task. A submission made while an earlier one is still unfinished
builds on that earlier one's result. If the earlier one fails, the later one
fails with it, even when its own block was fine. Callers who want each block
judged on its own must await each submission before making the next.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import Any, Self

from block_stream import metrics
from block_stream.config import StreamerConfig
from block_stream.containers import Block, BlockAndLogHistory, Filter, Log
from block_stream.reconcile import (
    BlockFetcher,
    LogFetcher,
    reconcile_block_history,
    reconcile_log_history_with_added_block,
    reconcile_log_history_with_removed_block,
)
from block_stream.types import (
    Bytes32,
    ChainedReconciliationError,
    SubscriberCallbackError,
)

from .adapters import (
    BlockingBlockFetcher,
    BlockingLogFetcher,
    wrap_blocking_block_fetcher,
    wrap_blocking_log_fetcher,
)
from .subscriptions import SubscriptionKind, SubscriptionRegistry

logger = logging.getLogger(__name__)

BlockSubscriber = Callable[[Block], Any]
"""Called with a block. May return an awaitable, which is awaited."""

LogsSubscriber = Callable[[Bytes32, list[Log]], Any]
"""Called with a block hash and that block's logs. May return an awaitable."""

ErrorSink = Callable[[Exception], None]
"""Receives every exception raised by a subscriber."""


@dataclass(frozen=True, slots=True)
class _Notification:
    """An announcement waiting for its reconciliation to commit."""

    kind: SubscriptionKind
    args: tuple[Any, ...]


@dataclass(slots=True)
class _Job:
    """One submitted block, waiting in or running through the worker queue."""

    block: Block
    """The block to reconcile."""

    future: asyncio.Future[None]
    """Resolved once the block is committed or rejected."""

    predecessor: _Job | None
    """The unfinished submission this one builds on, cleared once processing starts."""

    finished: bool = False
    """Whether the worker is done with this job."""

    error: Exception | None = None
    """Why the job was rejected, if it was."""


@dataclass(slots=True)
class BlockAndLogStreamer:
    """
    Maintains a checkpointed view of recent blocks and logs.

    The streamer owns exactly one chain view. Feed it every block observed on
    the chain via `reconcile_new_block()`; it works out which blocks and logs
    entered or left the chain and notifies subscribers once the whole
    reconciliation has succeeded.

    Collaborators
    -------------
    The streamer does not talk to a node. It uses injected fetchers:

    - `fetch_block_by_hash` resolves missing ancestors during backfill
    - `fetch_logs` fetches one block's logs for one filter
    - `on_error` receives exceptions raised by subscribers

    Subscribers
    -----------
    A subscriber must not await `reconcile_new_block()` itself. Its own
    notification is delivered by the single worker that would process the new
    submission, so the await never completes. Submitting without awaiting is
    fine.

    Subscriber exceptions never affect reconciliation. They are wrapped in a
    `SubscriberCallbackError` and handed to `on_error`, and delivery carries
    on with the next subscriber.
    """

    fetch_block_by_hash: BlockFetcher
    """Resolves a block by hash, or returns None if it is unknown."""

    fetch_logs: LogFetcher
    """Fetches logs matching a filter within one block."""

    on_error: ErrorSink
    """Receives exceptions raised by subscribers."""

    config: StreamerConfig = field(default_factory=StreamerConfig)
    """Retention and other tunables."""

    _checkpoint: BlockAndLogHistory = field(default_factory=BlockAndLogHistory.empty)
    """Last committed history. The only state readers ever see."""

    _working: BlockAndLogHistory = field(default_factory=BlockAndLogHistory.empty)
    """History being built by the running reconciliation."""

    _pending_notifications: list[_Notification] = field(default_factory=list)
    """Announcements of the running reconciliation, in order."""

    _log_filters: SubscriptionRegistry[Filter] = field(
        default_factory=lambda: SubscriptionRegistry(SubscriptionKind.LOG_FILTER)
    )
    """Filters selecting which logs are tracked."""

    _block_added_subscribers: SubscriptionRegistry[BlockSubscriber] = field(
        default_factory=lambda: SubscriptionRegistry(SubscriptionKind.BLOCK_ADDED)
    )
    """Subscribers to added blocks."""

    _block_removed_subscribers: SubscriptionRegistry[BlockSubscriber] = field(
        default_factory=lambda: SubscriptionRegistry(SubscriptionKind.BLOCK_REMOVED)
    )
    """Subscribers to removed blocks."""

    _logs_added_subscribers: SubscriptionRegistry[LogsSubscriber] = field(
        default_factory=lambda: SubscriptionRegistry(SubscriptionKind.LOGS_ADDED)
    )
    """Subscribers to added logs."""

    _logs_removed_subscribers: SubscriptionRegistry[LogsSubscriber] = field(
        default_factory=lambda: SubscriptionRegistry(SubscriptionKind.LOGS_REMOVED)
    )
    """Subscribers to removed logs."""

    _queue: asyncio.Queue[_Job] = field(default_factory=asyncio.Queue)
    """Submitted jobs not yet picked up by the worker."""

    _last_job: _Job | None = None
    """The most recent submission."""

    _worker: asyncio.Task[None] | None = None
    """Task draining the queue, started on demand."""

    @classmethod
    def create_blocking(
        cls,
        get_block_by_hash: BlockingBlockFetcher,
        get_logs: BlockingLogFetcher,
        on_error: ErrorSink,
        config: StreamerConfig | None = None,
    ) -> Self:
        """
        Build a streamer on top of synchronous fetchers.

        Each fetch runs on a worker thread.
        """
        return cls(
            fetch_block_by_hash=wrap_blocking_block_fetcher(get_block_by_hash),
            fetch_logs=wrap_blocking_log_fetcher(get_logs),
            on_error=on_error,
            config=config or StreamerConfig(),
        )

    # -------------------------------------------------------------------------
    # Reconciliation
    # -------------------------------------------------------------------------

    def reconcile_new_block(self, block: Block) -> asyncio.Future[None]:
        """
        Submit a newly observed block.

        Must be called from within a running event loop. The block is queued
        immediately, so the order of calls is the order of processing.

        Args:
            block: The newly observed block.

        Returns:
            A future resolving to None once the block is committed and its
            notifications delivered, or failing with the reason it was
            rejected. A rejection leaves the last checkpoint in place.
        """
        loop = asyncio.get_running_loop()

        predecessor = self._last_job
        if predecessor is not None and predecessor.finished:
            predecessor = None

        job = _Job(block=block, future=loop.create_future(), predecessor=predecessor)
        self._last_job = job
        self._queue.put_nowait(job)

        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._drain())

        return job.future

    async def wait_idle(self) -> None:
        """
        Wait until every submitted block has been processed.

        Rejections are reported through each submission's own future, not here.
        """
        while self._worker is not None and not self._worker.done():
            await self._worker

    def get_latest_reconciled_block(self) -> Block | None:
        """Return the head of the last committed block history."""
        return self._checkpoint.latest_block

    def get_reconciled_history(self) -> BlockAndLogHistory:
        """Return the last committed block and log history."""
        return self._checkpoint

    async def _drain(self) -> None:
        """Process queued jobs one at a time until the queue is empty."""
        while not self._queue.empty():
            job = self._queue.get_nowait()
            try:
                await self._process(job)
            except Exception as error:
                job.error = error
                if not job.future.done():
                    job.future.set_exception(error)
            else:
                if not job.future.done():
                    job.future.set_result(None)
            finally:
                job.finished = True
                self._queue.task_done()

    async def _process(self, job: _Job) -> None:
        """Reconcile one block, then commit and notify, or roll back."""
        started = time.perf_counter()

        # Only the predecessor's outcome matters from here on. Dropping the
        # link keeps a continuous overlapping feed from retaining every job.
        predecessor, job.predecessor = job.predecessor, None
        try:
            # Built on a reconciliation that was rejected: fail along with it.
            if predecessor is not None and predecessor.error is not None:
                root: BaseException = predecessor.error
                if isinstance(root, ChainedReconciliationError) and root.__cause__ is not None:
                    root = root.__cause__
                raise ChainedReconciliationError() from root

            block_history = await reconcile_block_history(
                self.fetch_block_by_hash,
                self._working.block_history,
                job.block,
                self._on_block_added,
                self._on_block_removed,
                self.config.block_retention,
            )
        except Exception as error:
            logger.warning("Rejected %s, rolling back to checkpoint: %s", job.block, error)
            metrics.reconciliations_failed.inc()
            self._rollback()
            raise

        self._commit(replace(self._working, block_history=block_history))
        metrics.reconcile_time.observe(time.perf_counter() - started)

        notifications, self._pending_notifications = self._pending_notifications, []
        for notification in notifications:
            await self._notify(notification)

    def _commit(self, history: BlockAndLogHistory) -> None:
        self._working = history
        self._checkpoint = history

        head = history.latest_block
        if head is not None:
            metrics.head_number.set(head.number)

    def _rollback(self) -> None:
        self._working = self._checkpoint
        self._pending_notifications = []

    # -------------------------------------------------------------------------
    # Reconciler callbacks
    #
    # These only record what happened. Nothing reaches subscribers until the
    # whole reconciliation has committed.
    # -------------------------------------------------------------------------

    async def _on_block_added(self, block: Block) -> None:
        self._pending_notifications.append(_Notification(SubscriptionKind.BLOCK_ADDED, (block,)))

        # Filters are read per block, so a filter added mid-backfill applies
        # to the remaining blocks.
        log_history = await reconcile_log_history_with_added_block(
            self.fetch_logs,
            self._working.log_history,
            block,
            self._on_logs_added,
            self._log_filters.snapshot(),
            self.config.block_retention,
        )
        self._working = replace(self._working, log_history=log_history)

    async def _on_block_removed(self, block: Block) -> None:
        # Logs go before their block.
        log_history = await reconcile_log_history_with_removed_block(
            self._working.log_history,
            block,
            self._on_logs_removed,
        )
        self._working = replace(self._working, log_history=log_history)

        self._pending_notifications.append(
            _Notification(SubscriptionKind.BLOCK_REMOVED, (block,))
        )

    async def _on_logs_added(self, block_hash: Bytes32, logs: list[Log]) -> None:
        self._pending_notifications.append(
            _Notification(SubscriptionKind.LOGS_ADDED, (block_hash, logs))
        )

    async def _on_logs_removed(self, block_hash: Bytes32, logs: list[Log]) -> None:
        self._pending_notifications.append(
            _Notification(SubscriptionKind.LOGS_REMOVED, (block_hash, logs))
        )

    # -------------------------------------------------------------------------
    # Delivery
    # -------------------------------------------------------------------------

    async def _notify(self, notification: _Notification) -> None:
        """Deliver one announcement to the subscribers registered right now."""
        kind = notification.kind
        if kind is SubscriptionKind.BLOCK_ADDED:
            metrics.blocks_added.inc()
        elif kind is SubscriptionKind.BLOCK_REMOVED:
            metrics.blocks_removed.inc()
        elif kind is SubscriptionKind.LOGS_ADDED:
            metrics.logs_added.inc(len(notification.args[1]))
        else:
            metrics.logs_removed.inc(len(notification.args[1]))

        for callback in self._subscribers(kind).snapshot():
            try:
                result = callback(*notification.args)
                if inspect.isawaitable(result):
                    await result
            except Exception as error:
                metrics.subscriber_errors.inc()
                wrapped = SubscriberCallbackError(kind.value)
                wrapped.__cause__ = error
                self._report(wrapped)

    def _report(self, error: SubscriberCallbackError) -> None:
        try:
            self.on_error(error)
        except Exception:
            logger.exception("Error sink raised while handling %r", error)

    def _subscribers(self, kind: SubscriptionKind) -> SubscriptionRegistry[Any]:
        if kind is SubscriptionKind.BLOCK_ADDED:
            return self._block_added_subscribers
        if kind is SubscriptionKind.BLOCK_REMOVED:
            return self._block_removed_subscribers
        if kind is SubscriptionKind.LOGS_ADDED:
            return self._logs_added_subscribers
        if kind is SubscriptionKind.LOGS_REMOVED:
            return self._logs_removed_subscribers
        raise ValueError(f"{kind} has no subscribers")

    # -------------------------------------------------------------------------
    # Filters and subscriptions
    # -------------------------------------------------------------------------

    def add_log_filter(self, log_filter: Filter) -> str:
        """Track logs matching `log_filter` from the next added block on."""
        return self._log_filters.add(log_filter)

    def remove_log_filter(self, token: str) -> None:
        """Stop tracking the filter behind `token`."""
        self._log_filters.remove(token)

    def subscribe_to_block_added(self, callback: BlockSubscriber) -> str:
        """Call `callback(block)` for every block added to history."""
        return self._block_added_subscribers.add(callback)

    def unsubscribe_from_block_added(self, token: str) -> None:
        """Remove a block-added subscription."""
        self._block_added_subscribers.remove(token)

    def subscribe_to_block_removed(self, callback: BlockSubscriber) -> str:
        """Call `callback(block)` for every block removed from history."""
        return self._block_removed_subscribers.add(callback)

    def unsubscribe_from_block_removed(self, token: str) -> None:
        """Remove a block-removed subscription."""
        self._block_removed_subscribers.remove(token)

    def subscribe_to_logs_added(self, callback: LogsSubscriber) -> str:
        """Call `callback(block_hash, logs)` once per added block."""
        return self._logs_added_subscribers.add(callback)

    def unsubscribe_from_logs_added(self, token: str) -> None:
        """Remove a logs-added subscription."""
        self._logs_added_subscribers.remove(token)

    def subscribe_to_logs_removed(self, callback: LogsSubscriber) -> str:
        """Call `callback(block_hash, logs)` once per removed block, newest log first."""
        return self._logs_removed_subscribers.add(callback)

    def unsubscribe_from_logs_removed(self, token: str) -> None:
        """Remove a logs-removed subscription."""
        self._logs_removed_subscribers.remove(token)
