"""
Reconciliation of block and log history.

What Is Reconciliation?
-----------------------
A chain feed delivers blocks one at a time. Most extend the current head, but
some repeat a block already seen, skip ahead past blocks never delivered, or
fork off from an older block. Reconciliation turns each delivered block into
the exact list of changes to announce:

- Blocks and logs that are no longer part of the chain (removed, newest first)
- Blocks and logs that now are (added, oldest first)

How It Works
------------
- Block history is reconciled first, one block event at a time
- Each added block has its logs fetched and appended to log history
- Each removed block has its logs popped from log history
- Both histories only keep a bounded window of recent blocks
"""

from __future__ import annotations

__all__ = [
    # Reconcilers
    "reconcile_block_history",
    "reconcile_log_history_with_added_block",
    "reconcile_log_history_with_removed_block",
    "reconcile_blocks_and_logs",
    # Collaborators
    "BlockFetcher",
    "LogFetcher",
    "BlockCallback",
    "LogsCallback",
    # Configuration constants
    "DEFAULT_BLOCK_RETENTION",
]

from .block_reconciler import reconcile_block_history
from .combined import reconcile_blocks_and_logs
from .config import DEFAULT_BLOCK_RETENTION
from .log_reconciler import (
    reconcile_log_history_with_added_block,
    reconcile_log_history_with_removed_block,
)
from .types import BlockCallback, BlockFetcher, LogFetcher, LogsCallback
