# tests/test_aggregator.py
import asyncio
from typing import AsyncIterator, List, Sequence

import pytest

from llm_relay.providers.base import MalformedResponseError
from llm_relay.services.aggregator import (
    CANCEL_CHECK_STRIDE,
    CURSOR_ICON,
    AggregatorState,
    ChunkAggregator,
)
from llm_relay.services.status import CancellationToken


class Source:
    """Async fragment source that counts what it has produced and whether it was closed."""

    def __init__(self, fragments: Sequence[object]):
        self.fragments = list(fragments)
        self.produced = 0
        self.closed = False

    def __aiter__(self):
        return self._gen()

    async def _gen(self) -> AsyncIterator[object]:
        try:
            for f in self.fragments:
                await asyncio.sleep(0)
                self.produced += 1
                yield f
        finally:
            self.closed = True


async def _gen(fragments: Sequence[object]) -> AsyncIterator[object]:
    for f in fragments:
        await asyncio.sleep(0)
        yield f


@pytest.mark.asyncio
async def test_append_snapshots_grow_monotonically():
    agg = ChunkAggregator(_gen(["he", "llo", " wor", "ld"]))
    snaps: List[str] = [s async for s in agg.snapshots()]
    assert snaps == ["he", "hello", "hello wor", "hello world"]
    assert agg.state is AggregatorState.COMPLETED
    assert agg.text == "hello world"
    assert agg.consumed == 4

@pytest.mark.asyncio
async def test_replace_semantics():
    # providers that send the whole response each time: snapshot = fragment
    agg = ChunkAggregator(_gen(["He", "Hello", "Hello there"]), replace=True)
    snaps = [s async for s in agg.snapshots()]
    assert snaps == ["He", "Hello", "Hello there"]
    assert agg.text == "Hello there"

@pytest.mark.asyncio
async def test_cursor_marker_added_and_removed_at_the_end():
    agg = ChunkAggregator(_gen(["a", "b"]), use_cursor=True)
    snaps = [s async for s in agg.snapshots()]
    assert snaps == ["a" + CURSOR_ICON, "ab" + CURSOR_ICON, "ab"]
    assert CURSOR_ICON not in agg.text

@pytest.mark.asyncio
async def test_cursor_never_leaks_into_merged_text():
    agg = ChunkAggregator(_gen(["x", "y", "z"]), use_cursor=True)
    async for _ in agg.snapshots():
        assert CURSOR_ICON not in agg.text
    assert agg.text == "xyz"

@pytest.mark.asyncio
async def test_drain_invokes_callback_per_snapshot():
    seen: List[str] = []
    agg = ChunkAggregator(_gen(["1", "2", "3"]))
    final = await agg.drain(seen.append)
    assert seen == ["1", "12", "123"]
    assert final == "123"

@pytest.mark.asyncio
async def test_cancel_before_start_emits_nothing():
    token = CancellationToken(stop_requested=True)
    source = Source(["a", "b"])
    agg = ChunkAggregator(source.__aiter__(), cancel=token)
    snaps = [s async for s in agg.snapshots()]
    assert snaps == []
    assert agg.state is AggregatorState.CANCELLED
    assert agg.text == ""

@pytest.mark.asyncio
@pytest.mark.parametrize("stop_after", [0, 5, 15, 16, 17, 500])
async def test_cancellation_stops_within_stride(stop_after):
    fragments = [f"<{i}>" for i in range(1000)]
    token = CancellationToken()
    source = Source(fragments)
    agg = ChunkAggregator(source.__aiter__(), cancel=token)

    emitted: List[str] = []

    def on_snapshot(snapshot: str) -> None:
        emitted.append(snapshot)
        if len(emitted) == stop_after + 1:
            token.cancel()

    final = await agg.drain(on_snapshot)

    assert agg.state is AggregatorState.CANCELLED
    after_flag = len(emitted) - (stop_after + 1)
    assert 0 <= after_flag < CANCEL_CHECK_STRIDE
    # last snapshot is exactly the merge of what was consumed
    assert final == emitted[-1] == "".join(fragments[: agg.consumed])
    assert source.closed

@pytest.mark.asyncio
async def test_cancellation_with_cursor_still_emits_clean_final():
    token = CancellationToken()
    agg = ChunkAggregator(_gen(["a"] * 40), cancel=token, use_cursor=True)
    snaps: List[str] = []
    async for s in agg.snapshots():
        snaps.append(s)
        token.cancel()
    assert snaps[-1] == agg.text
    assert not snaps[-1].endswith(CURSOR_ICON)
    assert agg.state is AggregatorState.CANCELLED

@pytest.mark.asyncio
async def test_non_text_fragment_is_malformed():
    agg = ChunkAggregator(_gen(["ok", 42]))
    with pytest.raises(MalformedResponseError):
        await agg.drain()
    assert agg.state is AggregatorState.FAILED
    assert agg.text == "ok"

@pytest.mark.asyncio
async def test_source_error_marks_failed():
    async def broken() -> AsyncIterator[str]:
        yield "partial "
        raise RuntimeError("network dropped")

    agg = ChunkAggregator(broken())
    with pytest.raises(RuntimeError):
        await agg.drain()
    assert agg.state is AggregatorState.FAILED

@pytest.mark.asyncio
async def test_aggregator_is_single_use():
    agg = ChunkAggregator(_gen(["a"]))
    await agg.drain()
    with pytest.raises(RuntimeError):
        await agg.drain()
