# tests/conftest.py
import os
import asyncio
import logging
from typing import Any, AsyncIterator, List, Mapping, Optional, Sequence
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# Ensure test-friendly env before the config module is imported
os.environ.setdefault("DEFAULT_PROVIDER", "echo")
os.environ.setdefault("USE_CURSOR_ICON", "false")
os.environ.setdefault("WEB_SEARCH_MODE", "off")

# IMPORTANT: import the app after envs are set
from llm_relay.main import create_app
from llm_relay.providers import registry
from llm_relay.providers.base import Callbacks
from llm_relay.providers.registry import ProviderSpec
from llm_relay.schemas.message import Message
from llm_relay.services.status import GenerationStatus, generation_status


class FakeProvider:
    """Scriptable provider: returns `reply` (str, list of fragments, or anything else) and records calls."""

    def __init__(self, reply: Any = "hello", name: str = "Fake", delay: float = 0.0, error: Optional[Exception] = None):
        self.name = name
        self.reply = reply
        self.delay = delay
        self.error = error
        self.calls: List[dict] = []
        self.gate: Optional[asyncio.Event] = None

    async def _fragments(self, fragments: Sequence[str]) -> AsyncIterator[str]:
        for f in fragments:
            await asyncio.sleep(0)
            yield f

    async def invoke(self, messages: Sequence[Message], options: Mapping[str, Any], callbacks: Callbacks):
        self.calls.append({"messages": list(messages), "options": dict(options)})
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if isinstance(self.reply, list):
            return self._fragments(self.reply)
        return self.reply


@pytest.fixture
def register_fake():
    registered: List[str] = []

    def _register(identifier: str = "fake", provider: Optional[FakeProvider] = None, **spec_kwargs) -> FakeProvider:
        provider = provider or FakeProvider()
        registry.register(ProviderSpec(identifier=identifier, provider=provider, **spec_kwargs))
        registered.append(identifier)
        return provider

    yield _register
    for identifier in registered:
        registry.unregister(identifier)


@pytest.fixture
def status():
    return GenerationStatus()


@pytest.fixture(autouse=True)
def reset_global_status():
    generation_status.release()
    generation_status.cancel.reset()
    yield
    generation_status.release()
    generation_status.cancel.reset()


@pytest_asyncio.fixture
async def app():
    return create_app()

@pytest_asyncio.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

@pytest.fixture
def caplog_info(caplog):
    caplog.set_level(logging.INFO)
    return caplog

@pytest.fixture
def caplog_debug(caplog):
    caplog.set_level(logging.DEBUG)
    return caplog
