"""
Turns a provider's fragment stream into a growing sequence of full-text snapshots.

Instead of yielding fragments, the aggregator yields the entire response so
far each time, which lets it decorate the snapshot (cursor icon) and lets
callers do ``response = snapshot`` instead of ``response += fragment``.

The stop flag is only consulted every ``CANCEL_CHECK_STRIDE`` fragments to
keep the per-fragment overhead low, so a stop can lag by up to 15 fragments.
"""
import logging
from enum import Enum
from typing import Any, AsyncIterator, Callable, Optional

from llm_relay.providers.base import MalformedResponseError
from llm_relay.services.status import CancellationToken

logger = logging.getLogger(__name__)

CURSOR_ICON = " ●"
CANCEL_CHECK_STRIDE = 16


class AggregatorState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class ChunkAggregator:
    def __init__(
        self,
        fragments: AsyncIterator[str],
        *,
        replace: bool = False,
        cancel: Optional[CancellationToken] = None,
        use_cursor: bool = False,
    ) -> None:
        self._fragments = fragments
        self._replace = replace
        self._cancel = cancel
        self._use_cursor = use_cursor
        self.state = AggregatorState.IDLE
        self.text = ""
        self.consumed = 0

    def _should_stop(self, index: int) -> bool:
        return index % CANCEL_CHECK_STRIDE == 0 and self._cancel is not None and self._cancel.stop_requested

    async def _incremental(self) -> AsyncIterator[str]:
        i = 0
        async for chunk in self._fragments:
            if self._should_stop(i):
                self.state = AggregatorState.CANCELLED
                logger.info("stop requested, ending stream after %d fragments", i)
                break
            yield chunk
            i += 1

    async def _close_source(self) -> None:
        aclose = getattr(self._fragments, "aclose", None)
        if aclose is not None:
            await aclose()

    async def snapshots(self) -> AsyncIterator[str]:
        if self.state is not AggregatorState.IDLE:
            raise RuntimeError("aggregator can only be consumed once")
        self.state = AggregatorState.STREAMING
        incremental = self._incremental()
        try:
            async for chunk in incremental:
                if not isinstance(chunk, str):
                    raise MalformedResponseError(f"expected a text fragment, got {type(chunk).__name__}")
                self.text = chunk if self._replace else self.text + chunk
                self.consumed += 1
                yield self.text + CURSOR_ICON if self._use_cursor else self.text
        except Exception:
            self.state = AggregatorState.FAILED
            raise
        finally:
            await incremental.aclose()
            await self._close_source()

        if self._use_cursor:
            yield self.text
        if self.state is AggregatorState.STREAMING:
            self.state = AggregatorState.COMPLETED

    async def drain(self, on_snapshot: Optional[Callable[[str], Any]] = None) -> str:
        """Consume every snapshot, calling on_snapshot for each. Returns the final text."""
        async for snapshot in self.snapshots():
            if on_snapshot is not None:
                on_snapshot(snapshot)
        return self.text
