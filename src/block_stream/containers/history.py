"""
Block and log history.

Histories are tuples: every reconciliation step builds a new tuple instead of
mutating the old one. A rejected reconciliation can then be rolled back by
simply keeping the previous tuples around. The retention window bounds their
size, so the copies stay cheap.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Self

from .block import Block
from .log import Log

BlockHistory = tuple[Block, ...]
"""
Retained blocks, oldest first, head last.

Each block's parent hash is the hash of the block before it and no hash
appears twice.
"""

LogHistory = tuple[Log, ...]
"""
Retained logs, ordered by `(block_number, log_index)`.

Logs of the same block are contiguous.
"""


@dataclass(frozen=True, slots=True)
class BlockAndLogHistory:
    """A block history and the log history derived from it."""

    block_history: BlockHistory = ()
    """Retained blocks."""

    log_history: LogHistory = ()
    """Retained logs of the retained blocks."""

    @classmethod
    def empty(cls) -> Self:
        """Return a history with no blocks and no logs."""
        return cls()

    @property
    def latest_block(self) -> Block | None:
        """The head block, or None when no block has been reconciled."""
        return self.block_history[-1] if self.block_history else None
