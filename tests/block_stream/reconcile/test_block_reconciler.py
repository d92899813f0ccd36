"""Tests for block history reconciliation."""

from __future__ import annotations

import pytest

from block_stream.containers import Block, BlockHistory
from block_stream.reconcile import reconcile_block_history
from block_stream.types import ZERO_HASH, UnknownParentBlockError
from tests.block_stream.helpers import (
    EventRecorder,
    MockChain,
    make_block,
    make_chain,
    make_hash,
    run_async,
)


def reconcile(
    chain: MockChain,
    recorder: EventRecorder,
    block_history: BlockHistory,
    new_block: Block,
    block_retention: int = 100,
) -> BlockHistory:
    """Run one block reconciliation against the mock chain."""
    return run_async(
        reconcile_block_history(
            chain.fetch_block_by_hash,
            block_history,
            new_block,
            recorder.on_block_added,
            recorder.on_block_removed,
            block_retention,
        )
    )


@pytest.fixture
def chain() -> MockChain:
    """Provide an empty mock chain."""
    return MockChain()


@pytest.fixture
def recorder() -> EventRecorder:
    """Provide an empty event recorder."""
    return EventRecorder()


class TestExtension:
    """Tests for blocks that build on the current head."""

    def test_first_block_becomes_history(self, chain: MockChain, recorder: EventRecorder) -> None:
        """The first block seen is the whole history."""
        block = make_block(7)

        history = reconcile(chain, recorder, (), block)

        assert history == (block,)
        assert recorder.events == [("block added", block)]
        assert chain.block_requests == []

    def test_child_of_head_is_appended(self, chain: MockChain, recorder: EventRecorder) -> None:
        """A child of the head extends history without fetching anything."""
        history = make_chain(1, 3)
        new_block = make_block(4)

        result = reconcile(chain, recorder, history, new_block)

        assert result == (*history, new_block)
        assert recorder.events == [("block added", new_block)]
        assert chain.block_requests == []

    def test_oldest_block_ages_out_silently(
        self, chain: MockChain, recorder: EventRecorder
    ) -> None:
        """Blocks beyond the retention window are dropped without a removal."""
        history = make_chain(1, 3)
        new_block = make_block(4)

        result = reconcile(chain, recorder, history, new_block, block_retention=3)

        assert result == make_chain(2, 4)
        assert recorder.removed_blocks == []
        assert recorder.added_blocks == [new_block]


class TestDuplicates:
    """Tests for blocks already present in history."""

    @pytest.mark.parametrize("number", [1, 2, 3])
    def test_known_block_is_a_no_op(
        self, chain: MockChain, recorder: EventRecorder, number: int
    ) -> None:
        """Re-delivering any retained block changes nothing."""
        history = make_chain(1, 3)

        result = reconcile(chain, recorder, history, make_block(number))

        assert result == history
        assert recorder.events == []
        assert chain.block_requests == []


class TestReorg:
    """Tests for blocks forking off a retained ancestor."""

    def test_fork_from_deep_ancestor(self, chain: MockChain, recorder: EventRecorder) -> None:
        """A1..A4 plus B3 on A2 removes A4 and A3, then adds B3."""
        history = make_chain(1, 4)
        fork_block = make_block(3, fork="B", parent_fork="A")

        result = reconcile(chain, recorder, history, fork_block)

        a1, a2, a3, a4 = history
        assert result == (a1, a2, fork_block)
        assert recorder.events == [
            ("block removed", a4),
            ("block removed", a3),
            ("block added", fork_block),
        ]
        assert chain.block_requests == []

    def test_sibling_of_head_replaces_it(self, chain: MockChain, recorder: EventRecorder) -> None:
        """A block sharing the head's parent swaps out the head."""
        history = make_chain(7, 10)
        sibling = make_block(10, fork="B", parent_fork="A")

        result = reconcile(chain, recorder, history, sibling)

        assert result == (*history[:-1], sibling)
        assert recorder.events == [("block removed", history[-1]), ("block added", sibling)]

    def test_fork_below_head_with_shorter_chain(
        self, chain: MockChain, recorder: EventRecorder
    ) -> None:
        """A fork one below the head removes the head and its parent."""
        history = make_chain(7, 10)
        fork_block = make_block(9, fork="B", parent_fork="A")

        result = reconcile(chain, recorder, history, fork_block)

        assert result == (*history[:2], fork_block)
        assert recorder.removed_blocks == [history[3], history[2]]
        assert recorder.added_blocks == [fork_block]


class TestBackfill:
    """Tests for blocks whose parent is not yet known."""

    def test_fills_gap_in_order(self, chain: MockChain, recorder: EventRecorder) -> None:
        """A1, A2 plus A5 fetches A4 and A3, then adds A3, A4, A5."""
        a3, a4, a5 = make_chain(3, 5)
        chain.add_blocks(a3, a4)
        history = make_chain(1, 2)

        result = reconcile(chain, recorder, history, a5)

        assert result == (*history, a3, a4, a5)
        assert recorder.events == [
            ("block added", a3),
            ("block added", a4),
            ("block added", a5),
        ]
        assert chain.block_requests == [a4.hash, a3.hash]

    def test_backfilled_fork_reorgs_history(
        self, chain: MockChain, recorder: EventRecorder
    ) -> None:
        """A fork whose parents are missing is backfilled, then reorged in."""
        history = make_chain(1, 4)
        b3 = make_block(3, fork="B", parent_fork="A")
        b4 = make_block(4, fork="B")
        b5 = make_block(5, fork="B")
        chain.add_blocks(b3, b4)

        result = reconcile(chain, recorder, history, b5)

        assert result == (*history[:2], b3, b4, b5)
        assert recorder.events == [
            ("block removed", history[3]),
            ("block removed", history[2]),
            ("block added", b3),
            ("block added", b4),
            ("block added", b5),
        ]

    def test_unknown_parent_is_rejected(self, chain: MockChain, recorder: EventRecorder) -> None:
        """A parent the fetcher cannot resolve fails without announcing anything."""
        history = make_chain(1, 2)
        orphan = make_block(4)

        with pytest.raises(UnknownParentBlockError) as exc_info:
            reconcile(chain, recorder, history, orphan)

        assert exc_info.value.parent_hash == make_hash(3)
        assert recorder.events == []

    def test_fetch_exception_propagates(self, chain: MockChain, recorder: EventRecorder) -> None:
        """Exceptions raised by the block fetcher escape unchanged."""
        chain.fail_blocks = True

        with pytest.raises(ConnectionError):
            reconcile(chain, recorder, make_chain(1, 2), make_block(4))

        assert recorder.events == []

    def test_missing_ancestor_fails_after_partial_walk(
        self, chain: MockChain, recorder: EventRecorder
    ) -> None:
        """An unresolvable grandparent fails the whole reconciliation."""
        chain.add_blocks(make_block(4))

        with pytest.raises(UnknownParentBlockError) as exc_info:
            reconcile(chain, recorder, make_chain(1, 2), make_block(5))

        assert exc_info.value.parent_hash == make_hash(3)
        assert recorder.events == []


class TestReset:
    """Tests for blocks that cannot be attached to history."""

    def test_block_older_than_history(self, chain: MockChain, recorder: EventRecorder) -> None:
        """A block below the oldest retained one wipes history and stands alone."""
        history = make_chain(5, 7)
        old_block = make_block(3, fork="B")

        result = reconcile(chain, recorder, history, old_block)

        assert result == (old_block,)
        assert recorder.events == [
            ("block removed", history[2]),
            ("block removed", history[1]),
            ("block removed", history[0]),
            ("block added", old_block),
        ]
        assert chain.block_requests == []

    def test_parentless_block(self, chain: MockChain, recorder: EventRecorder) -> None:
        """A block with the zero parent hash cannot be backfilled and resets history."""
        history = make_chain(1, 3)
        genesis = Block(number=5, hash=make_hash(5, fork="G"), parent_hash=ZERO_HASH)

        result = reconcile(chain, recorder, history, genesis)

        assert result == (genesis,)
        assert recorder.removed_blocks == list(reversed(history))
        assert recorder.added_blocks == [genesis]
        assert chain.block_requests == []

    def test_ancestor_beyond_retention(self, chain: MockChain, recorder: EventRecorder) -> None:
        """A fetched parent further behind the head than the window resets history."""
        history = make_chain(8, 10)
        parent = make_block(2, fork="X")
        new_block = Block(number=9, hash=make_hash(9, fork="X"), parent_hash=parent.hash)
        chain.add_blocks(parent)

        result = reconcile(chain, recorder, history, new_block, block_retention=3)

        assert result == (new_block,)
        assert recorder.removed_blocks == list(reversed(history))
        assert recorder.added_blocks == [new_block]
        assert chain.block_requests == [parent.hash]

    def test_deep_fork_rebuilds_from_reachable_ancestor(
        self, chain: MockChain, recorder: EventRecorder
    ) -> None:
        """A fork rooted below the window resets, then replays the fork forward."""
        history = make_chain(6, 10)
        fork = (make_block(3, fork="B", parent_fork="A"), *make_chain(4, 12, fork="B"))
        chain.add_blocks(*fork)

        result = reconcile(chain, recorder, history, fork[-1], block_retention=5)

        assert result == make_chain(8, 12, fork="B")
        assert recorder.removed_blocks == list(reversed(history))
        assert recorder.added_blocks == list(make_chain(5, 12, fork="B"))


class TestRetentionBounds:
    """Tests for the retention argument itself."""

    @pytest.mark.parametrize("block_retention", [0, -1])
    def test_non_positive_retention_is_rejected(
        self, chain: MockChain, recorder: EventRecorder, block_retention: int
    ) -> None:
        """A window that cannot hold the head is refused before anything happens."""
        with pytest.raises(ValueError, match="block_retention must be at least 1"):
            reconcile(chain, recorder, make_chain(1, 4), make_block(5), block_retention)

        assert recorder.events == []

    def test_retention_of_one_keeps_only_head(
        self, chain: MockChain, recorder: EventRecorder
    ) -> None:
        """The smallest window holds just the newest block."""
        history: BlockHistory = ()
        for block in make_chain(1, 5):
            history = reconcile(chain, recorder, history, block, block_retention=1)

        assert history == (make_block(5),)
