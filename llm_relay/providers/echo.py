# dummy provider for local dev and testing without API calls.
# echoes the last user message back, word by word when streaming.

import asyncio
from typing import Any, AsyncIterator, Mapping, Sequence

from llm_relay.providers.base import Callbacks, GenerateReturn
from llm_relay.schemas.message import Message


class EchoProvider:
    name = "Echo"

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay

    def _reply(self, messages: Sequence[Message]) -> str:
        user_inputs = [m.content for m in messages if m.role == "user"]
        return f"[ECHO RESPONSE]\n{user_inputs[-1] if user_inputs else '(no user input)'}"

    async def _words(self, text: str) -> AsyncIterator[str]:
        for i, word in enumerate(text.split(" ")):
            await asyncio.sleep(self.delay)
            yield word if i == 0 else f" {word}"

    async def invoke(
        self,
        messages: Sequence[Message],
        options: Mapping[str, Any],
        callbacks: Callbacks,
    ) -> GenerateReturn:
        text = self._reply(messages)
        if options.get("stream"):
            return self._words(text)
        return text
