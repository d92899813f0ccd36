"""
Block Container.

Reconciliation only ever looks at three things on a block: its height, its
hash and its parent's hash. The parent hash is what links blocks into a chain;
two blocks sharing a parent are competing forks.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Self

from pydantic import Field

from block_stream.types import ZERO_HASH, Bytes32, StrictBaseModel, parse_hex_int


class Block(StrictBaseModel):
    """A block header as seen by the streamer."""

    number: int = Field(ge=0)
    """Height of the block. Genesis is block 0."""

    hash: Bytes32
    """Unique identifier of the block."""

    parent_hash: Bytes32
    """
    Hash of the preceding block.

    `ZERO_HASH` means the block has no parent.
    """

    @property
    def has_parent(self) -> bool:
        """Whether the block links to a parent block at all."""
        return self.parent_hash != ZERO_HASH

    @classmethod
    def from_rpc(cls, payload: Mapping[str, Any]) -> Self:
        """
        Build a block from an `eth_getBlockBy*` JSON-RPC result.

        Only `number`, `hash` and `parentHash` are read; every other key of
        the payload is ignored.

        Raises:
            ValueError: If `number` is not a hex quantity.
            KeyError: If a required key is missing.
        """
        return cls(
            number=parse_hex_int(payload["number"]),
            hash=Bytes32(payload["hash"]),
            parent_hash=Bytes32(payload["parentHash"]),
        )

    def __str__(self) -> str:
        return f"Block(number={self.number}, hash={self.hash.short()})"
