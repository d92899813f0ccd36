"""Reusable type definitions for block and log streaming."""

from .base import StrictBaseModel
from .byte_arrays import ZERO_HASH, BaseBytes, Bytes20, Bytes32
from .exceptions import (
    ChainedReconciliationError,
    InvalidTokenError,
    InvariantViolationError,
    LogOrderingViolationError,
    ReconciliationError,
    SubscriberCallbackError,
    UnknownParentBlockError,
)
from .quantity import parse_hex_int

__all__ = [
    # Core types
    "BaseBytes",
    "Bytes20",
    "Bytes32",
    "ZERO_HASH",
    "StrictBaseModel",
    "parse_hex_int",
    # Exceptions
    "ReconciliationError",
    "UnknownParentBlockError",
    "InvariantViolationError",
    "LogOrderingViolationError",
    "ChainedReconciliationError",
    "SubscriberCallbackError",
    "InvalidTokenError",
]
