"""Property tests feeding random block trees through reconciliation."""

from __future__ import annotations

from hypothesis import given
from hypothesis import strategies as st

from block_stream.containers import Block, BlockAndLogHistory, BlockHistory, Filter, Log
from block_stream.reconcile import reconcile_block_history, reconcile_blocks_and_logs
from block_stream.types import ZERO_HASH
from tests.block_stream.helpers import EventRecorder, MockChain, make_hash, make_log, run_async


@st.composite
def block_trees(draw: st.DrawFn, max_blocks: int = 24) -> list[Block]:
    """Draw a random tree of blocks rooted at a parentless block."""
    blocks = [Block(number=0, hash=make_hash(0, fork="root"), parent_hash=ZERO_HASH)]
    size = draw(st.integers(min_value=1, max_value=max_blocks))
    for index in range(1, size):
        parent = blocks[draw(st.integers(min_value=0, max_value=len(blocks) - 1))]
        blocks.append(
            Block(number=parent.number + 1, hash=make_hash(index, fork="T"), parent_hash=parent.hash)
        )
    return blocks


def logs_of(block: Block) -> list[Log]:
    """Logs deterministically attached to each tree block."""
    return [make_log(block, index) for index in range(block.number % 3)]


def assert_linked(block_history: BlockHistory) -> None:
    """Each block's parent is the block before it and no hash repeats."""
    for parent, child in zip(block_history, block_history[1:], strict=False):
        assert child.parent_hash == parent.hash
        assert child.number == parent.number + 1
    assert len({block.hash for block in block_history}) == len(block_history)


class TestBlockHistoryProperties:
    """Invariants of block reconciliation over arbitrary feeds."""

    @given(data=st.data(), block_retention=st.integers(min_value=1, max_value=6))
    def test_every_feed_keeps_history_consistent(
        self, data: st.DataObject, block_retention: int
    ) -> None:
        """History stays linked, bounded, and replayable from the announcements."""
        blocks = data.draw(block_trees())
        feed = data.draw(st.lists(st.sampled_from(blocks), min_size=1, max_size=30))
        chain = MockChain(blocks=blocks)

        history: BlockHistory = ()
        for block in feed:
            recorder = EventRecorder()
            new_history = run_async(
                reconcile_block_history(
                    chain.fetch_block_by_hash,
                    history,
                    block,
                    recorder.on_block_added,
                    recorder.on_block_removed,
                    block_retention,
                )
            )

            assert_linked(new_history)
            assert len(new_history) <= block_retention
            assert block in new_history

            # Replaying the announcements onto the previous history, trimming
            # on each add, reproduces the new history.
            replay = list(history)
            for kind, announced in recorder.events:
                if kind == "block removed":
                    assert replay[-1] == announced
                    replay.pop()
                else:
                    replay = [*replay, announced][-block_retention:]
            assert tuple(replay) == new_history

            history = new_history

    @given(data=st.data(), block_retention=st.integers(min_value=1, max_value=6))
    def test_redelivering_head_is_idempotent(
        self, data: st.DataObject, block_retention: int
    ) -> None:
        """Feeding the same block twice changes nothing the second time."""
        blocks = data.draw(block_trees())
        feed = data.draw(st.lists(st.sampled_from(blocks), min_size=1, max_size=20))
        chain = MockChain(blocks=blocks)

        history: BlockHistory = ()
        for block in feed:
            history = run_async(
                reconcile_block_history(
                    chain.fetch_block_by_hash,
                    history,
                    block,
                    EventRecorder().on_block_added,
                    EventRecorder().on_block_removed,
                    block_retention,
                )
            )

        recorder = EventRecorder()
        again = run_async(
            reconcile_block_history(
                chain.fetch_block_by_hash,
                history,
                feed[-1],
                recorder.on_block_added,
                recorder.on_block_removed,
                block_retention,
            )
        )

        assert again == history
        assert recorder.events == []


class TestLogHistoryProperties:
    """Invariants of log history over arbitrary feeds."""

    @given(data=st.data(), block_retention=st.integers(min_value=1, max_value=6))
    def test_logs_track_retained_blocks_in_order(
        self, data: st.DataObject, block_retention: int
    ) -> None:
        """Log history holds exactly the logs of retained blocks, strictly ordered."""
        blocks = data.draw(block_trees())
        feed = data.draw(st.lists(st.sampled_from(blocks), min_size=1, max_size=30))
        chain = MockChain(blocks=blocks, logs=[log for block in blocks for log in logs_of(block)])
        recorder = EventRecorder()

        history = BlockAndLogHistory.empty()
        for block in feed:
            history = run_async(
                reconcile_blocks_and_logs(
                    chain.fetch_block_by_hash,
                    chain.fetch_logs,
                    history,
                    block,
                    recorder.on_logs_added,
                    recorder.on_logs_removed,
                    filters=(Filter(),),
                    block_retention=block_retention,
                )
            )

            positions = [log.position for log in history.log_history]
            assert positions == sorted(set(positions))
            assert history.log_history == tuple(
                log for retained in history.block_history for log in logs_of(retained)
            )
