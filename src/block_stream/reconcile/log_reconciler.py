"""
Log history reconciliation.

Log history follows block history one block event at a time:

- **Block added**: fetch the block's logs for every active filter and append
  them to the tail
- **Block removed**: pop that block's logs off the tail

Since blocks are only ever added at the head and removed from the head, the
logs of the block being removed must be the newest logs retained. Anything
else means log history and block history have diverged.

Ordering
--------
Logs are kept sorted by `(block_number, log_index)`. A fetched log that
would not land strictly after the current tail is rejected rather than
inserted out of place: it means a newer block's logs were never retracted.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence

from block_stream.containers import Block, Filter, Log, LogHistory
from block_stream.types import Bytes32, InvariantViolationError, LogOrderingViolationError

from .config import DEFAULT_BLOCK_RETENTION
from .types import LogFetcher, LogsCallback

logger = logging.getLogger(__name__)


async def reconcile_log_history_with_added_block(
    fetch_logs: LogFetcher,
    log_history: LogHistory,
    new_block: Block,
    on_logs_added: LogsCallback,
    filters: Sequence[Filter] = (),
    history_block_length: int = DEFAULT_BLOCK_RETENTION,
) -> LogHistory:
    """
    Append the logs of a newly added block.

    Args:
        fetch_logs: Fetches logs for one filter within one block.
        log_history: Current log history. Never modified.
        new_block: The block that was just added to block history.
        on_logs_added: Awaited once with the block hash and the appended logs.
        filters: Active filters. No filters means no fetch at all.
        history_block_length: Age in blocks past which logs are pruned.

    Returns:
        The new log history.

    Raises:
        LogOrderingViolationError: A fetched log does not sort after the tail.
        ValueError: If `history_block_length` is below 1.
    """
    if history_block_length < 1:
        raise ValueError(f"history_block_length must be at least 1, got {history_block_length}")

    logs = await _fetch_block_logs(fetch_logs, new_block, filters)

    added: list[Log] = []
    head_log = log_history[-1] if log_history else None
    for log in sorted(_dedupe(logs), key=lambda log: log.log_index):
        _ensure_order(head_log, log)
        added.append(log)
        head_log = log

    log_history = _prune_old_logs((*log_history, *added), new_block, history_block_length)

    logger.debug("logs: %d added for %s", len(added), new_block)
    await on_logs_added(new_block.hash, added)
    return log_history


async def reconcile_log_history_with_removed_block(
    log_history: LogHistory,
    removed_block: Block,
    on_logs_removed: LogsCallback,
) -> LogHistory:
    """
    Retract the logs of a block removed from the head.

    The removed logs are announced newest first, in a single batch, even when
    there are none.

    Args:
        log_history: Current log history. Never modified.
        removed_block: The block that was just removed from block history.
        on_logs_removed: Awaited once with the block hash and the removed logs.

    Returns:
        The new log history.

    Raises:
        InvariantViolationError: Logs of the removed block remain after the tail
            was stripped. The announced removals are not taken back.
    """
    cut = len(log_history)
    while cut > 0 and log_history[cut - 1].block_hash == removed_block.hash:
        cut -= 1

    removed = list(reversed(log_history[cut:]))
    log_history = log_history[:cut]

    logger.debug("logs: %d removed for %s", len(removed), removed_block)
    await on_logs_removed(removed_block.hash, removed)

    if any(log.block_hash == removed_block.hash for log in log_history):
        raise InvariantViolationError(
            f"logs for removed block {removed_block} found not at head of log history"
        )

    return log_history


async def _fetch_block_logs(
    fetch_logs: LogFetcher,
    block: Block,
    filters: Sequence[Filter],
) -> list[Log]:
    """Fetch one block's logs for every filter concurrently and concatenate them."""
    if not filters:
        return []

    results = await asyncio.gather(*(fetch_logs(f.scoped_to(block.hash)) for f in filters))
    return [log for logs in results for log in logs]


def _dedupe(logs: Iterable[Log]) -> list[Log]:
    """Drop logs returned by more than one filter, keeping the first copy."""
    unique: dict[tuple[Bytes32, int], Log] = {}
    for log in logs:
        unique.setdefault(log.identity, log)
    return list(unique.values())


def _ensure_order(head_log: Log | None, new_log: Log) -> None:
    if head_log is None:
        return
    if head_log.block_number > new_log.block_number:
        raise LogOrderingViolationError(
            head_log, new_log, "received log for a block older than current head log's block"
        )
    if head_log.block_number == new_log.block_number and head_log.log_index >= new_log.log_index:
        raise LogOrderingViolationError(
            head_log, new_log, "received log with non-increasing index within the same block"
        )


def _prune_old_logs(
    log_history: LogHistory,
    new_block: Block,
    history_block_length: int,
) -> LogHistory:
    """Drop leading logs that are `history_block_length` or more blocks old."""
    for index, log in enumerate(log_history):
        if new_block.number - log.block_number < history_block_length:
            return log_history[index:]
    return ()
