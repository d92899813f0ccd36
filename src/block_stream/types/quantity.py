"""Hex-encoded integer quantities as used by Ethereum JSON-RPC."""

from __future__ import annotations

import re

_HEX_QUANTITY = re.compile(r"0x[0-9a-fA-F]+")


def parse_hex_int(value: str) -> int:
    """
    Decode a `0x` prefixed hex quantity such as `"0x1a"`.

    Args:
        value: The encoded quantity.

    Returns:
        The decoded non-negative integer.

    Raises:
        ValueError: If `value` is not a `0x` prefixed hex integer.
    """
    if not isinstance(value, str) or _HEX_QUANTITY.fullmatch(value) is None:
        raise ValueError(f"{value!r} is not a hex encoded integer")
    return int(value, 16)

