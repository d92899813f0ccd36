"""
Log filter Containers.

A `Filter` is what a subscriber registers: which contract and which topics it
cares about. Each time a block is added, every registered filter is narrowed
to that single block, producing the `FilterOptions` handed to the log fetcher.
"""

from __future__ import annotations

from typing import Any

from block_stream.types import Bytes20, Bytes32, StrictBaseModel

TopicSelector = Bytes32 | tuple[Bytes32, ...] | None
"""
Match rule for one topic position.

A single topic must match exactly, a tuple matches any of its members, and
`None` matches anything.
"""


class Filter(StrictBaseModel):
    """Address and topic matching rules for logs."""

    address: Bytes20 | None = None
    """Only match logs emitted by this contract. `None` matches any contract."""

    topics: tuple[TopicSelector, ...] = ()
    """Positional topic selectors. Positions past the end match anything."""

    def scoped_to(self, block_hash: Bytes32) -> FilterOptions:
        """Narrow this filter to the logs of a single block."""
        return FilterOptions(block_hash=block_hash, address=self.address, topics=self.topics)


class FilterOptions(Filter):
    """A filter narrowed to the logs of one block."""

    block_hash: Bytes32
    """Hash of the block whose logs are requested."""

    def to_rpc(self) -> dict[str, Any]:
        """Render as an `eth_getLogs` JSON-RPC filter object."""
        params: dict[str, Any] = {"blockHash": self.block_hash.to_hex()}
        if self.address is not None:
            params["address"] = self.address.to_hex()
        if self.topics:
            params["topics"] = [_topic_to_rpc(selector) for selector in self.topics]
        return params


def _topic_to_rpc(selector: TopicSelector) -> str | list[str] | None:
    if selector is None:
        return None
    if isinstance(selector, tuple):
        return [topic.to_hex() for topic in selector]
    return selector.to_hex()
