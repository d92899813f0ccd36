"""Test helpers for block_stream unit tests."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import TypeVar

from .builders import make_address, make_block, make_chain, make_hash, make_log, make_topic
from .mocks import EventRecorder, MockChain

_T = TypeVar("_T")


def run_async(coro: Coroutine[object, object, _T]) -> _T:
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


__all__ = [
    # Builders
    "make_address",
    "make_block",
    "make_chain",
    "make_hash",
    "make_log",
    "make_topic",
    # Mocks
    "EventRecorder",
    "MockChain",
    # Utilities
    "run_async",
]
