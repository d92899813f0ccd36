"""Collaborator and callback signatures used by the reconcilers."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Protocol

from block_stream.containers import Block, FilterOptions, Log
from block_stream.types import Bytes32


class BlockFetcher(Protocol):
    """
    Resolves a block by its hash.

    Backfill calls this once per missing ancestor. Implementations return
    None when no block with that hash exists. Any exception they raise
    rejects the enclosing reconciliation.
    """

    def __call__(self, block_hash: Bytes32) -> Awaitable[Block | None]:
        """
        Fetch a block.

        Args:
            block_hash: Hash of the requested block.

        Returns:
            The block, or None if it is unknown.
        """
        ...


class LogFetcher(Protocol):
    """
    Fetches all logs matching a filter within one block.

    Any exception raised rejects the enclosing reconciliation.
    """

    def __call__(self, options: FilterOptions) -> Awaitable[list[Log]]:
        """
        Fetch logs.

        Args:
            options: Filter narrowed to a single block hash.

        Returns:
            Every matching log of that block, in any order.
        """
        ...


BlockCallback = Callable[[Block], Awaitable[None]]
"""Notified with a block added to or removed from block history."""

LogsCallback = Callable[[Bytes32, list[Log]], Awaitable[None]]
"""Notified with a block hash and the logs of that block added or removed."""
