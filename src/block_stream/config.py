"""
Global configuration for block streaming.

Environment-specific settings plus the streamer's own tunables.
"""

from __future__ import annotations

import os
from typing import Self

from pydantic import PositiveInt

from block_stream.reconcile.config import DEFAULT_BLOCK_RETENTION
from block_stream.types import StrictBaseModel

_SUPPORTED_BLOCK_STREAM_ENVS: list[str] = ["prod", "test"]

BLOCK_STREAM_ENV = os.environ.get("BLOCK_STREAM_ENV", "prod").lower()
"""The environment flag ('prod' or 'test'). Defaults to 'prod'."""

if BLOCK_STREAM_ENV not in _SUPPORTED_BLOCK_STREAM_ENVS:
    raise ValueError(
        f"Invalid BLOCK_STREAM_ENV environment variable: '{BLOCK_STREAM_ENV}'. "
        f"Supported values: {_SUPPORTED_BLOCK_STREAM_ENVS}"
    )

BLOCK_RETENTION_ENV_VAR = "BLOCK_STREAM_BLOCK_RETENTION"
"""Environment variable overriding the block retention of `StreamerConfig.from_env`."""


class StreamerConfig(StrictBaseModel):
    """Configuration for a `BlockAndLogStreamer`."""

    block_retention: PositiveInt = DEFAULT_BLOCK_RETENTION
    """
    Number of most recent blocks to retain.

    Also bounds the age of retained logs and the depth of reorgs that can be
    reconciled without resetting history.
    """

    @classmethod
    def from_env(cls) -> Self:
        """
        Build a configuration from the process environment.

        Raises:
            ValueError: If the retention variable is set but not a positive integer.
        """
        raw = os.environ.get(BLOCK_RETENTION_ENV_VAR)
        if raw is None:
            return cls()
        try:
            retention = int(raw)
        except ValueError:
            raise ValueError(f"{BLOCK_RETENTION_ENV_VAR} must be an integer, got {raw!r}") from None
        return cls(block_retention=retention)
