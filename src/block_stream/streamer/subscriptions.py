"""
Token-keyed registries for subscribers and log filters.

Every registration hands back an opaque token. The token embeds the kind of
registry that issued it, so passing a block-added token to the logs-removed
unsubscribe call is caught instead of silently doing nothing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar
from uuid import uuid4

from block_stream.types import InvalidTokenError

T = TypeVar("T")


class SubscriptionKind(Enum):
    """The kinds of registration a streamer accepts."""

    LOG_FILTER = "log filter"
    """Filters selecting which logs are fetched for each added block."""

    BLOCK_ADDED = "block added"
    """Callbacks notified with each block added to history."""

    BLOCK_REMOVED = "block removed"
    """Callbacks notified with each block removed from history."""

    LOGS_ADDED = "logs added"
    """Callbacks notified with the logs of each added block."""

    LOGS_REMOVED = "logs removed"
    """Callbacks notified with the logs of each removed block."""

    @property
    def token_prefix(self) -> str:
        """Prefix shared by every token of this kind."""
        return f"{self.value} token "


@dataclass(slots=True)
class SubscriptionRegistry(Generic[T]):
    """
    Entries of one kind, keyed by token, in registration order.

    Reads go through `snapshot()`, so callers can iterate while entries are
    added or removed underneath them.
    """

    kind: SubscriptionKind
    """The kind of token this registry issues and accepts."""

    _entries: dict[str, T] = field(default_factory=dict)
    """Registered entries keyed by token."""

    def __len__(self) -> int:
        """Return the number of registered entries."""
        return len(self._entries)

    def add(self, entry: T) -> str:
        """
        Register an entry.

        Returns:
            A fresh token identifying the entry.
        """
        token = f"{self.kind.token_prefix}{uuid4()}"
        self._entries[token] = entry
        return token

    def remove(self, token: str) -> None:
        """
        Unregister the entry behind `token`.

        Raises:
            InvalidTokenError: If the token is of another kind or unknown.
        """
        if not token.startswith(self.kind.token_prefix) or token not in self._entries:
            raise InvalidTokenError(self.kind.value, token)
        del self._entries[token]

    def snapshot(self) -> list[T]:
        """Return the entries registered right now."""
        return list(self._entries.values())
