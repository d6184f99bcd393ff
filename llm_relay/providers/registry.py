# static provider descriptors, looked up by identifier (or a Preset)
# a fresh ProviderInfo is resolved for every request; tests register stubs with register()/unregister()

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Union

from llm_relay.core import config
from llm_relay.providers.base import Provider, ProviderInfo, UnknownProviderError
from llm_relay.providers.echo import EchoProvider
from llm_relay.providers.ollama import OllamaProvider
from llm_relay.providers.openai import OpenAIProvider
from llm_relay.schemas.message import Preset

logger = logging.getLogger(__name__)

Selector = Union[str, Preset, ProviderInfo, None]


@dataclass(frozen=True)
class ProviderSpec:
    identifier: str
    provider: Provider
    display_name: str = ""
    stream: bool = False
    custom_stream: bool = False
    # fragments are full snapshots to replace the response with, not deltas to append
    replaces_fragments: bool = False
    native_web_search: bool = False
    context_chars: Optional[int] = None
    default_options: Mapping[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.display_name or self.provider.name


_REGISTRY: Dict[str, ProviderSpec] = {}


def register(spec: ProviderSpec) -> None:
    if spec.identifier in _REGISTRY:
        logger.debug("replacing provider '%s'", spec.identifier)
    _REGISTRY[spec.identifier] = spec


def unregister(identifier: str) -> None:
    _REGISTRY.pop(identifier, None)


def list_providers() -> List[ProviderSpec]:
    return list(_REGISTRY.values())


def _spec(identifier: str) -> ProviderSpec:
    try:
        return _REGISTRY[identifier]
    except KeyError:
        raise UnknownProviderError(f"Unknown provider: {identifier}") from None


def resolve(selector: Selector = None) -> ProviderInfo:
    """Build the ProviderInfo for one request from an identifier, a preset, or None (default provider)."""
    if isinstance(selector, ProviderInfo):
        return selector
    preset_options: Dict[str, Any] = {}
    if isinstance(selector, Preset):
        preset_options = {"creativity": selector.creativity, **selector.options}
        identifier = selector.provider
    else:
        identifier = selector or config.DEFAULT_PROVIDER

    spec = _spec(identifier)
    return ProviderInfo(
        identifier=spec.identifier,
        name=spec.name,
        provider=spec.provider,
        stream=spec.stream,
        custom_stream=spec.custom_stream,
        replaces_fragments=spec.replaces_fragments,
        native_web_search=spec.native_web_search,
        context_chars=spec.context_chars or config.CTX_CHARS,
        options=MappingProxyType(dict(spec.default_options)),
        preset_options=MappingProxyType(preset_options),
    )


def merge_options(info: ProviderInfo, options: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    # provider defaults < preset options < per-call options
    merged: Dict[str, Any] = dict(info.options)
    merged.update(info.preset_options)
    merged.update(options or {})
    return merged


def _lookup(provider: Union[str, ProviderInfo]) -> Union[ProviderSpec, ProviderInfo]:
    if isinstance(provider, ProviderInfo):
        return provider
    return _spec(provider)


def supports_native_web_search(provider: Union[str, ProviderInfo]) -> bool:
    return _lookup(provider).native_web_search


def is_streaming(provider: Union[str, ProviderInfo]) -> bool:
    return _lookup(provider).stream


def _register_builtins() -> None:
    ollama = OllamaProvider()
    openai = OpenAIProvider()
    register(ProviderSpec(identifier="ollama", provider=ollama, stream=True))
    register(ProviderSpec(identifier="ollama_sync", provider=ollama, display_name="Ollama (no stream)"))
    register(ProviderSpec(identifier="openai", provider=openai, stream=True))
    register(ProviderSpec(identifier="openai_sync", provider=openai, display_name="OpenAI (no stream)"))
    register(ProviderSpec(identifier="echo", provider=EchoProvider(), stream=True))


_register_builtins()
