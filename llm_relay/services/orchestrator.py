# builds the context, calls the provider and aggregates/normalizes what comes back
# generate() is the gated entry point (one generation per process, failures returned not raised)
# chat_completion / get_chat_response(_sync) skip the gate and let provider errors propagate

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Iterable, Mapping, Optional, Sequence, Tuple, Union

from llm_relay.core import config
from llm_relay.providers import registry
from llm_relay.providers.base import (
    Callbacks,
    GenerateReturn,
    MalformedResponseError,
    ProviderError,
    ProviderInfo,
    StreamUpdate,
    TransportError,
    UnknownProviderError,
)
from llm_relay.schemas.message import Message, MessagePair, Preset
from llm_relay.services import context, web_search
from llm_relay.services.aggregator import AggregatorState, ChunkAggregator
from llm_relay.services.normalizer import normalize
from llm_relay.services.prompt import with_default_language
from llm_relay.services.status import CancellationToken, GenerationStatus, generation_status

logger = logging.getLogger(__name__)

Augmenter = Callable[[str], Awaitable[str]]


class Outcome(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"
    REJECTED = "rejected"


@dataclass(frozen=True)
class GenerationMetrics:
    elapsed: float
    chars: int

    @property
    def chars_per_sec(self) -> float:
        return self.chars / max(self.elapsed, 0.001)

    def summary(self) -> str:
        return f"{self.chars} chars ({self.chars_per_sec:.1f} / sec) | {self.elapsed:.1f} sec"


@dataclass
class GenerationResult:
    outcome: Outcome
    text: str = ""
    error: Optional[str] = None
    metrics: Optional[GenerationMetrics] = None
    provider: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome in (Outcome.COMPLETED, Outcome.CANCELLED)


class _SnapshotRelay:
    """Normalizes each snapshot, remembers the latest one and forwards it."""

    def __init__(self, provider_name: str, stream_update: Optional[StreamUpdate]) -> None:
        self._provider_name = provider_name
        self._stream_update = stream_update
        self.text = ""

    def __call__(self, raw: str) -> None:
        self.text = normalize(raw, self._provider_name)
        if self._stream_update is not None:
            self._stream_update(self.text)


async def _from_iterable(items: Iterable[Any]) -> AsyncIterator[Any]:
    for item in items:
        yield item


def _check_shape(info: ProviderInfo, response: Any) -> Optional[GenerateReturn]:
    if isinstance(response, str):
        return response
    if response is None:
        if info.custom_stream:
            return None
        raise MalformedResponseError(f"{info.name} returned no response")
    if hasattr(response, "__aiter__"):
        return response
    if isinstance(response, Iterable) and not isinstance(response, (bytes, bytearray, Mapping)):
        return _from_iterable(response)
    raise MalformedResponseError(f"{info.name} returned {type(response).__name__}, expected text or a fragment stream")


async def _invoke(
    info: ProviderInfo,
    messages: Sequence[Message],
    options: Mapping[str, Any],
    relay: _SnapshotRelay,
    cancel: Optional[CancellationToken],
) -> Optional[GenerateReturn]:
    callbacks = Callbacks(
        stream_update=relay if info.custom_stream else None,
        cancel=cancel,
    )
    try:
        response = await info.provider.invoke(messages, {**options, "stream": info.stream}, callbacks)
    except ProviderError:
        raise
    except Exception as e:
        raise TransportError(f"{info.name} request failed: {e}") from e
    return _check_shape(info, response)


async def _aggregate(
    info: ProviderInfo,
    fragments: AsyncIterator[str],
    relay: _SnapshotRelay,
    cancel: Optional[CancellationToken],
    use_cursor: Optional[bool],
) -> Tuple[str, Outcome]:
    aggregator = ChunkAggregator(
        fragments,
        replace=info.replaces_fragments,
        cancel=cancel,
        use_cursor=config.USE_CURSOR_ICON if use_cursor is None else use_cursor,
    )
    await aggregator.drain(relay)
    outcome = Outcome.CANCELLED if aggregator.state is AggregatorState.CANCELLED else Outcome.COMPLETED
    return normalize(aggregator.text, info.name), outcome


async def chat_completion(
    info: ProviderInfo,
    messages: Sequence[Message],
    options: Optional[Mapping[str, Any]] = None,
    stream_update: Optional[StreamUpdate] = None,
    cancel: Optional[CancellationToken] = None,
    *,
    use_cursor: Optional[bool] = None,
) -> Union[str, AsyncIterator[str]]:
    """
    Generate a response for a list of Messages (pairs must be flattened first).

    If stream_update is passed it is called with every snapshot and the final
    text is returned. Otherwise a streaming provider's raw fragment iterator is
    returned as is, and a non-streaming provider's text is returned.
    """
    options = registry.merge_options(info, options)
    relay = _SnapshotRelay(info.name, stream_update)
    response = await _invoke(info, messages, options, relay, cancel)

    if isinstance(response, str):
        return normalize(response, info.name)
    if response is None:
        # custom stream, handled in the provider
        return relay.text
    if stream_update is None:
        return response
    text, _ = await _aggregate(info, response, relay, cancel, use_cursor)
    return text


async def get_chat_response(
    pairs: Sequence[MessagePair],
    provider: registry.Selector = None,
    query: Optional[str] = None,
    options: Optional[Mapping[str, Any]] = None,
    stream_update: Optional[StreamUpdate] = None,
    cancel: Optional[CancellationToken] = None,
) -> Union[str, AsyncIterator[str]]:
    info = registry.resolve(provider)
    chat = context.truncate(context.build_context(pairs, query), info)
    return await chat_completion(info, chat, options, stream_update, cancel)


async def get_chat_response_sync(
    pairs: Sequence[MessagePair],
    provider: registry.Selector = None,
    query: Optional[str] = None,
    options: Optional[Mapping[str, Any]] = None,
) -> str:
    """Same as get_chat_response, but always waits for the full text."""
    info = registry.resolve(provider)
    r = await get_chat_response(pairs, info, query, options)
    if isinstance(r, str):
        return r
    text, _ = await _aggregate(info, r, _SnapshotRelay(info.name, None), None, use_cursor=False)
    return text


async def _prepare_messages(
    pairs: Sequence[MessagePair],
    info: ProviderInfo,
    system_prompt: str,
    web_mode: str,
    fetch_augmentation: Augmenter,
    language: Optional[str],
) -> list[Message]:
    if not any(p.prompt for p in pairs):
        raise ValueError("conversation has no prompt to answer")

    formatted = context.format_chat(pairs, system_prompt, info, web_mode)
    messages = context.build_context(formatted)

    query = next(m.content for m in reversed(messages) if m.role == "user")
    content = with_default_language(query, language)
    if web_search.web_search_enabled(web_mode, info):
        content += await fetch_augmentation(query)
    context.replace_last_user_content(messages, content)

    return context.truncate(messages, info)


async def generate(
    pairs: Sequence[MessagePair],
    provider: registry.Selector = None,
    system_prompt: str = "",
    web_mode: str = "off",
    options: Optional[Mapping[str, Any]] = None,
    on_stream_update: Optional[StreamUpdate] = None,
    cancel: Optional[CancellationToken] = None,
    *,
    status: GenerationStatus = generation_status,
    fetch_augmentation: Augmenter = web_search.fetch_augmentation,
    language: Optional[str] = None,
    use_cursor: Optional[bool] = None,
    clock: Callable[[], float] = time.perf_counter,
) -> GenerationResult:
    try:
        info = registry.resolve(provider)
    except UnknownProviderError as e:
        logger.warning("%s", e)
        return GenerationResult(Outcome.FAILED, error=str(e))

    if not status.try_acquire():
        logger.info("generation already in progress, rejecting request for %s", info.name)
        return GenerationResult(
            Outcome.REJECTED, error="A response is already being generated.", provider=info.identifier
        )

    cancel = cancel if cancel is not None else status.cancel
    if not system_prompt and isinstance(provider, Preset):
        system_prompt = provider.system_prompt
    try:
        merged = registry.merge_options(info, options)
        messages = await _prepare_messages(pairs, info, system_prompt, web_mode, fetch_augmentation, language)

        start = clock()
        relay = _SnapshotRelay(info.name, on_stream_update)
        response = await _invoke(info, messages, merged, relay, cancel)
        if isinstance(response, str):
            text, outcome = normalize(response, info.name), Outcome.COMPLETED
        elif response is None:
            text = relay.text
            outcome = Outcome.CANCELLED if cancel.stop_requested else Outcome.COMPLETED
        else:
            text, outcome = await _aggregate(info, response, relay, cancel, use_cursor)

        metrics = GenerationMetrics(elapsed=clock() - start, chars=len(text))
        logger.info("response %s (%s): %s", outcome.value, info.name, metrics.summary())
        return GenerationResult(outcome, text=text, metrics=metrics, provider=info.identifier)
    except Exception as e:
        logger.exception("response failed (%s): %s", info.name, e)
        return GenerationResult(Outcome.FAILED, error=str(e), provider=info.identifier)
    finally:
        status.release()
