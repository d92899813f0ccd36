"""
Block history reconciliation.

Given the retained block history and one newly observed block, work out the
new history and announce every block that enters or leaves it.

The Cases
---------
A new block relates to history in one of a handful of ways:

1. **History is empty**: the block becomes the only block
2. **Block is older than everything retained**: it cannot be attached; reset
3. **Block already in history**: nothing to do
4. **Parent is the head**: plain extension
5. **Parent is deeper in history**: reorg; unwind to the parent, then extend
6. **Parent is unknown**: backfill the parent first, then retry

Backfill
--------
When the parent is unknown it is fetched by hash and reconciled first, which
may in turn fetch its own parent. Each step is preceded by a bound check: if
the fetched ancestor is further behind the head than the retention window,
the fork is too deep to reconcile block by block. History is reset around the
new block instead, which also stops the recursion.

Announcements
-------------
Removals are announced head first, one block at a time, before the block that
replaces them is announced. Blocks that fall off the tail of the retention
window are not announced: they age out rather than becoming invalid.
"""

from __future__ import annotations

import logging

from block_stream.containers import Block, BlockHistory
from block_stream.types import Bytes32, InvariantViolationError, UnknownParentBlockError

from .config import DEFAULT_BLOCK_RETENTION
from .types import BlockCallback, BlockFetcher

logger = logging.getLogger(__name__)


async def reconcile_block_history(
    fetch_block_by_hash: BlockFetcher,
    block_history: BlockHistory,
    new_block: Block,
    on_block_added: BlockCallback,
    on_block_removed: BlockCallback,
    block_retention: int = DEFAULT_BLOCK_RETENTION,
) -> BlockHistory:
    """
    Reconcile a newly observed block into block history.

    Args:
        fetch_block_by_hash: Resolves missing ancestors during backfill.
        block_history: Current history, oldest first. Never modified.
        new_block: The newly observed block.
        on_block_added: Awaited for each block entering history, oldest first.
        on_block_removed: Awaited for each block leaving history, newest first.
        block_retention: Maximum number of blocks to retain.

    Returns:
        The new block history.

    Raises:
        UnknownParentBlockError: An ancestor needed for backfill is unknown.
        InvariantViolationError: History was inconsistent on entry.
        ValueError: If `block_retention` is below 1.
    """
    if block_retention < 1:
        raise ValueError(f"block_retention must be at least 1, got {block_retention}")

    if not block_history:
        logger.debug("reconcile: first block %s", new_block)
        return await _add_new_head_block(block_history, new_block, on_block_added, block_retention)

    if new_block.number < block_history[0].number:
        # Predates the whole window, so there is nothing to attach it to.
        logger.info(
            "reconcile: block %s older than oldest retained %s, resetting history",
            new_block,
            block_history[0],
        )
        block_history = await _rollback(block_history, on_block_removed)
        return await _add_new_head_block(block_history, new_block, on_block_added, block_retention)

    if _contains_hash(block_history, new_block.hash):
        logger.debug("reconcile: skipping %s - already in history", new_block)
        return block_history

    if block_history[-1].hash == new_block.parent_hash:
        logger.debug("reconcile: extending head with %s", new_block)
        return await _add_new_head_block(block_history, new_block, on_block_added, block_retention)

    if _contains_hash(block_history, new_block.parent_hash):
        logger.debug(
            "reconcile: reorg, unwinding to parent %s of %s",
            new_block.parent_hash.short(),
            new_block,
        )
        while block_history[-1].hash != new_block.parent_hash:
            block_history = await _remove_head_block(block_history, on_block_removed)
        return await _add_new_head_block(block_history, new_block, on_block_added, block_retention)

    return await _backfill(
        fetch_block_by_hash,
        block_history,
        new_block,
        on_block_added,
        on_block_removed,
        block_retention,
    )


async def _backfill(
    fetch_block_by_hash: BlockFetcher,
    block_history: BlockHistory,
    new_block: Block,
    on_block_added: BlockCallback,
    on_block_removed: BlockCallback,
    block_retention: int,
) -> BlockHistory:
    """Connect a block with an unknown parent by reconciling the parent first."""
    if not new_block.has_parent:
        # Nothing exists before a parentless block.
        logger.info("reconcile: parentless block %s, resetting history", new_block)
        block_history = await _rollback(block_history, on_block_removed)
        return await _add_new_head_block(block_history, new_block, on_block_added, block_retention)

    logger.debug(
        "reconcile: backfilling parent %s of %s",
        new_block.parent_hash.short(),
        new_block,
    )
    parent_block = await fetch_block_by_hash(new_block.parent_hash)
    if parent_block is None:
        raise UnknownParentBlockError(new_block.parent_hash)

    # Bound check before recursing.
    #
    # An ancestor this far behind the head means the fork point, if there is
    # one, has already left the window.
    if parent_block.number + block_retention < block_history[-1].number:
        logger.info(
            "reconcile: parent %s of %s is beyond the retention window, resetting history",
            parent_block,
            new_block,
        )
        block_history = await _rollback(block_history, on_block_removed)
        return await _add_new_head_block(block_history, new_block, on_block_added, block_retention)

    block_history = await reconcile_block_history(
        fetch_block_by_hash,
        block_history,
        parent_block,
        on_block_added,
        on_block_removed,
        block_retention,
    )
    return await reconcile_block_history(
        fetch_block_by_hash,
        block_history,
        new_block,
        on_block_added,
        on_block_removed,
        block_retention,
    )


async def _rollback(block_history: BlockHistory, on_block_removed: BlockCallback) -> BlockHistory:
    """Remove every block, newest first."""
    while block_history:
        block_history = await _remove_head_block(block_history, on_block_removed)
    return block_history


async def _add_new_head_block(
    block_history: BlockHistory,
    new_block: Block,
    on_block_added: BlockCallback,
    block_retention: int,
) -> BlockHistory:
    """Append a block whose parent is the current head, then trim the window."""
    # Every path above only appends onto the parent. Reaching this with any
    # other head means history was already broken.
    if block_history and block_history[-1].hash != new_block.parent_hash:
        raise InvariantViolationError(
            f"new head block {new_block} does not build on current head {block_history[-1]}"
        )

    await on_block_added(new_block)
    return (*block_history, new_block)[-block_retention:]


async def _remove_head_block(
    block_history: BlockHistory,
    on_block_removed: BlockCallback,
) -> BlockHistory:
    """Drop the head block and announce it."""
    removed_block = block_history[-1]
    block_history = block_history[:-1]
    await on_block_removed(removed_block)
    return block_history


def _contains_hash(block_history: BlockHistory, block_hash: Bytes32) -> bool:
    return any(block.hash == block_hash for block in block_history)
