"""
Fixed-width byte strings.

Block hashes, log topics and contract addresses travel over JSON-RPC as `0x`
hex strings of a known width. Here they are `bytes` subclasses: they compare
and hash like the raw bytes they hold, and a value of the wrong width never
gets past construction.
"""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic.annotated_handlers import GetCoreSchemaHandler
from pydantic_core import core_schema
from typing_extensions import Self


def _to_raw_bytes(value: Any) -> bytes:
    """
    Convert a wire or in-memory value to raw bytes.

    Strings are read as hex, with or without the `0x` prefix. Anything else
    goes through the `bytes` constructor, so buffers and iterables of
    integers in [0, 255] are accepted too.

    Raises:
        ValueError: On malformed hex or out-of-range integers.
        TypeError: If the value cannot be turned into bytes at all.
    """
    if isinstance(value, str):
        return bytes.fromhex(value[2:] if value.startswith("0x") else value)
    return bytes(value)


class BaseBytes(bytes):
    """
    Base class for byte strings of one exact width.

    Subclasses declare the width in `LENGTH`.
    """

    LENGTH: ClassVar[int]
    """Number of bytes every instance holds."""

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if not isinstance(cls.__dict__.get("LENGTH"), int):
            raise TypeError(f"{cls.__name__} must set an integer LENGTH")

    def __new__(cls, value: Any = b"") -> Self:
        """
        Build an instance from hex, a buffer or an iterable of byte values.

        Raises:
            ValueError: If the value does not decode to exactly `LENGTH` bytes.
        """
        raw = _to_raw_bytes(value)
        if len(raw) != cls.LENGTH:
            raise ValueError(f"{cls.__name__} expects exactly {cls.LENGTH} bytes, got {len(raw)}")
        return super().__new__(cls, raw)

    @classmethod
    def zero(cls) -> Self:
        """Return the all-zero value of this width."""
        return cls(bytes(cls.LENGTH))

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        """
        Validate model fields of this type.

        Existing instances are kept as they are. Raw bytes of the exact width
        and `0x` hex strings are converted. Dumps render as `0x` hex, the form
        JSON-RPC expects.
        """
        convert = core_schema.no_info_plain_validator_function(cls)
        return core_schema.union_schema(
            [
                core_schema.is_instance_schema(cls),
                core_schema.chain_schema(
                    [core_schema.bytes_schema(min_length=cls.LENGTH, max_length=cls.LENGTH), convert]
                ),
                core_schema.chain_schema(
                    [core_schema.str_schema(pattern=r"^0x[0-9a-fA-F]*$"), convert]
                ),
            ],
            serialization=core_schema.plain_serializer_function_ser_schema(cls.to_hex),
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.to_hex()})"

    def to_hex(self) -> str:
        """Return the `0x` prefixed hex form used by JSON-RPC."""
        return "0x" + self.hex()

    def short(self) -> str:
        """Return the first 8 hex characters, for log lines."""
        return self.hex()[:8]


class Bytes20(BaseBytes):
    """An account or contract address."""

    LENGTH = 20


class Bytes32(BaseBytes):
    """A block hash, transaction hash or log topic."""

    LENGTH = 32


ZERO_HASH: Bytes32 = Bytes32.zero()
"""
The all-zero hash.

A block whose parent hash is `ZERO_HASH` has no parent: there is nothing to
backfill before it.
"""
