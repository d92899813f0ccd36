"""Exception hierarchy for block and log reconciliation."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from block_stream.containers import Log

    from .byte_arrays import Bytes32


class ReconciliationError(Exception):
    """
    Base exception for every failure that rejects a reconciliation.

    When one of these escapes, the streamer discards all in-flight work and
    keeps the last checkpoint.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


class UnknownParentBlockError(ReconciliationError):
    """
    Raised when backfill cannot fetch the parent of a block.

    Attributes:
        parent_hash: Hash of the ancestor the fetcher could not resolve.
    """

    def __init__(self, parent_hash: Bytes32) -> None:
        self.parent_hash = parent_hash
        super().__init__(f"Failed to fetch parent block {parent_hash.to_hex()}")


class InvariantViolationError(ReconciliationError):
    """
    Raised when a check that no valid input can trip fails anyway.

    This is a broken programming contract, not a recoverable condition:
    either history was corrupted before this call or a collaborator returned
    data inconsistent with what it returned earlier.

    Attributes:
        detail: What was found to be inconsistent.
    """

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Invariant violated: {detail}")


class LogOrderingViolationError(ReconciliationError):
    """
    Raised when an incoming log does not sort after the current head log.

    Attributes:
        head_log: The newest log already in history.
        new_log: The log that was rejected.
        detail: Which ordering rule was broken.
    """

    def __init__(self, head_log: Log, new_log: Log, detail: str) -> None:
        self.head_log = head_log
        self.new_log = new_log
        self.detail = detail
        super().__init__(
            f"{detail}: head log at ({head_log.block_number}, {head_log.log_index}), "
            f"new log at ({new_log.block_number}, {new_log.log_index})"
        )


class ChainedReconciliationError(ReconciliationError):
    """
    Raised for a submission that was queued behind a reconciliation which failed.

    The submission was built on top of the failed call's in-flight state, so
    it fails as well. The root failure is available as `__cause__`.
    """

    def __init__(self) -> None:
        super().__init__("An earlier reconciliation this one depended on failed")


class SubscriberCallbackError(Exception):
    """
    Wraps an exception raised by a subscriber callback.

    These never reject a reconciliation. They are handed to the error sink
    with the original exception as `__cause__`.

    Attributes:
        kind: The subscription kind whose callback failed.
    """

    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"Subscriber for {kind} raised")


class InvalidTokenError(ValueError):
    """
    Raised when unsubscribing with an unknown token or a token of another kind.

    Attributes:
        expected_kind: The kind of token the call accepts.
        token: The token that was passed.
    """

    def __init__(self, expected_kind: str, token: str) -> None:
        self.expected_kind = expected_kind
        self.token = token
        super().__init__(f"Expected a {expected_kind} token. Actual: {token!r}")
