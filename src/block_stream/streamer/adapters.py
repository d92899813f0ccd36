"""
Adapters for blocking fetchers.

Many chain clients are synchronous. These wrappers move each call onto a
worker thread so a blocking client can back a streamer without stalling the
event loop.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable

from block_stream.containers import Block, FilterOptions, Log
from block_stream.reconcile import BlockFetcher, LogFetcher
from block_stream.types import Bytes32

BlockingBlockFetcher = Callable[[Bytes32], Block | None]
"""Synchronous `get_block_by_hash(block_hash) -> Block | None`."""

BlockingLogFetcher = Callable[[FilterOptions], Iterable[Log] | None]
"""Synchronous `get_logs(options) -> logs`."""


def wrap_blocking_block_fetcher(get_block_by_hash: BlockingBlockFetcher) -> BlockFetcher:
    """Expose a blocking block lookup as an async `BlockFetcher`."""

    async def fetch_block_by_hash(block_hash: Bytes32) -> Block | None:
        return await asyncio.to_thread(get_block_by_hash, block_hash)

    return fetch_block_by_hash


def wrap_blocking_log_fetcher(get_logs: BlockingLogFetcher) -> LogFetcher:
    """
    Expose a blocking log query as an async `LogFetcher`.

    A query that returns None instead of a (possibly empty) collection is
    treated as a failed fetch.
    """

    async def fetch_logs(options: FilterOptions) -> list[Log]:
        logs = await asyncio.to_thread(get_logs, options)
        if logs is None:
            raise ValueError(f"get_logs returned None for block {options.block_hash.to_hex()}")
        return list(logs)

    return fetch_logs
