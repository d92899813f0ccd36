"""
Stateless block and log reconciliation.

Runs block reconciliation and threads log reconciliation through each block
event, for callers that keep their own history between calls. Logs follow
the dependency direction of their block: a block's logs are reconciled after
the block is added and before it is removed.
"""

from __future__ import annotations

from collections.abc import Sequence

from block_stream.containers import Block, BlockAndLogHistory, Filter

from .block_reconciler import reconcile_block_history
from .config import DEFAULT_BLOCK_RETENTION
from .log_reconciler import (
    reconcile_log_history_with_added_block,
    reconcile_log_history_with_removed_block,
)
from .types import BlockFetcher, LogFetcher, LogsCallback


async def reconcile_blocks_and_logs(
    fetch_block_by_hash: BlockFetcher,
    fetch_logs: LogFetcher,
    history: BlockAndLogHistory | None,
    new_block: Block,
    on_logs_added: LogsCallback,
    on_logs_removed: LogsCallback,
    filters: Sequence[Filter] = (),
    block_retention: int = DEFAULT_BLOCK_RETENTION,
) -> BlockAndLogHistory:
    """
    Reconcile a new block into a combined block and log history.

    Args:
        fetch_block_by_hash: Resolves missing ancestors during backfill.
        fetch_logs: Fetches logs for one filter within one block.
        history: Current history, or None to start from nothing.
        new_block: The newly observed block.
        on_logs_added: Awaited with each added block's logs.
        on_logs_removed: Awaited with each removed block's logs.
        filters: Filters selecting which logs to track.
        block_retention: Blocks to retain, also the log age limit.

    Returns:
        The new combined history. `history` itself is left untouched, also
        when an exception propagates.
    """
    if history is None:
        history = BlockAndLogHistory.empty()
    log_history = history.log_history

    async def on_block_added(block: Block) -> None:
        nonlocal log_history
        log_history = await reconcile_log_history_with_added_block(
            fetch_logs, log_history, block, on_logs_added, filters, block_retention
        )

    async def on_block_removed(block: Block) -> None:
        nonlocal log_history
        log_history = await reconcile_log_history_with_removed_block(
            log_history, block, on_logs_removed
        )

    block_history = await reconcile_block_history(
        fetch_block_by_hash,
        history.block_history,
        new_block,
        on_block_added,
        on_block_removed,
        block_retention,
    )
    return BlockAndLogHistory(block_history=block_history, log_history=log_history)
