# lets us swap/add providers without touching the orchestrator (ollama/openai/echo...)
# declares the provider contract (invoke(...)) every provider must satisfy,
# the error taxonomy, and the resolved per-request ProviderInfo

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, AsyncIterator, Callable, Mapping, Optional, Protocol, Sequence, Union

from llm_relay.schemas.message import Message
from llm_relay.services.status import CancellationToken


class ProviderError(Exception):
    pass


class UnknownProviderError(ProviderError):
    """Selector does not match any registered provider."""


class TransportError(ProviderError):
    """The provider call itself failed (network, auth, quota...)."""


class MalformedResponseError(ProviderError):
    """The provider returned something that is neither text nor a fragment stream."""


GenerateReturn = Union[str, AsyncIterator[str]]
StreamUpdate = Callable[[str], Any]


@dataclass
class Callbacks:
    # custom-stream providers push full snapshots through stream_update themselves
    stream_update: Optional[StreamUpdate] = None
    cancel: Optional[CancellationToken] = None


class Provider(Protocol):
    name: str

    async def invoke(
        self,
        messages: Sequence[Message],
        options: Mapping[str, Any],
        callbacks: Callbacks,
    ) -> Optional[GenerateReturn]:
        ...


@dataclass(frozen=True)
class ProviderInfo:
    identifier: str
    name: str
    provider: Provider
    stream: bool = False
    custom_stream: bool = False
    replaces_fragments: bool = False
    native_web_search: bool = False
    context_chars: int = 16000
    options: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    preset_options: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
