"""
Log Container.

A log is an event emitted while executing a block. Reconciliation orders and
retracts logs by their position, `(block_number, log_index)`, and by the hash
of the block that produced them. The remaining fields are payload carried
through untouched.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Self

from pydantic import Field

from block_stream.types import Bytes20, Bytes32, StrictBaseModel, parse_hex_int


class Log(StrictBaseModel):
    """An event log emitted by a block."""

    block_number: int = Field(ge=0)
    """Height of the block that emitted the log."""

    block_hash: Bytes32
    """Hash of the block that emitted the log."""

    log_index: int = Field(ge=0)
    """Position of the log within its block."""

    transaction_index: int = Field(default=0, ge=0)
    """Position of the emitting transaction within its block."""

    transaction_hash: Bytes32 | None = None
    """Hash of the emitting transaction, when known."""

    address: Bytes20 = Field(default_factory=Bytes20.zero)
    """Address of the contract that emitted the log."""

    topics: tuple[Bytes32, ...] = ()
    """Indexed event topics."""

    data: bytes = b""
    """Non-indexed event data."""

    @property
    def position(self) -> tuple[int, int]:
        """Sort key of the log across the whole chain."""
        return (self.block_number, self.log_index)

    @property
    def identity(self) -> tuple[Bytes32, int]:
        """Key identifying the same log returned by different filters."""
        return (self.block_hash, self.log_index)

    @classmethod
    def from_rpc(cls, payload: Mapping[str, Any]) -> Self:
        """
        Build a log from one entry of an `eth_getLogs` JSON-RPC result.

        Raises:
            ValueError: If a quantity or byte field is malformed.
            KeyError: If `blockNumber`, `blockHash` or `logIndex` is missing.
        """
        transaction_hash = payload.get("transactionHash")
        address = payload.get("address")
        return cls(
            block_number=parse_hex_int(payload["blockNumber"]),
            block_hash=Bytes32(payload["blockHash"]),
            log_index=parse_hex_int(payload["logIndex"]),
            transaction_index=parse_hex_int(payload.get("transactionIndex", "0x0")),
            transaction_hash=Bytes32(transaction_hash) if transaction_hash is not None else None,
            address=Bytes20(address) if address is not None else Bytes20.zero(),
            topics=tuple(Bytes32(topic) for topic in payload.get("topics", ())),
            data=bytes.fromhex(payload.get("data", "0x").removeprefix("0x")),
        )

    def __str__(self) -> str:
        return (
            f"Log(block={self.block_number}:{self.block_hash.short()}, index={self.log_index})"
        )
