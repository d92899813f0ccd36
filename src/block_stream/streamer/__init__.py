"""
Checkpointed block and log streaming.

What Is a Streamer?
-------------------
A streamer is fed every block observed on a chain and turns that feed into
an ordered stream of changes: blocks and logs added, blocks and logs removed.
Consumers subscribe to those changes instead of tracking reorgs themselves.

Guarantees
----------
1. **All or nothing**: a rejected block announces nothing
2. **Ordered**: blocks are processed in submission order, one at a time
3. **Paired**: a block's logs are announced right after it is added, and
   right before it is removed
"""

from __future__ import annotations

__all__ = [
    # Main service
    "BlockAndLogStreamer",
    "BlockSubscriber",
    "LogsSubscriber",
    "ErrorSink",
    # Subscriptions
    "SubscriptionKind",
    "SubscriptionRegistry",
    # Blocking adapters
    "BlockingBlockFetcher",
    "BlockingLogFetcher",
    "wrap_blocking_block_fetcher",
    "wrap_blocking_log_fetcher",
]

from .adapters import (
    BlockingBlockFetcher,
    BlockingLogFetcher,
    wrap_blocking_block_fetcher,
    wrap_blocking_log_fetcher,
)
from .service import BlockAndLogStreamer, BlockSubscriber, ErrorSink, LogsSubscriber
from .subscriptions import SubscriptionKind, SubscriptionRegistry
