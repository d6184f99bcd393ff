import json
import httpx
from typing import Optional, Dict, Any, AsyncIterator, Mapping, Sequence
from llm_relay.providers.base import Callbacks, GenerateReturn, MalformedResponseError, TransportError
from llm_relay.schemas.message import Message
from llm_relay.core import config


def _apply_defaults(options: Mapping[str, Any]) -> Dict[str, Any]:
    # map generic options (creativity, max_tokens) to ollama's option names
    opts: Dict[str, Any] = {}
    temperature = options.get("temperature", options.get("creativity", config.TEMPERATURE))
    opts["temperature"] = float(temperature)
    opts["num_predict"] = int(options.get("max_tokens", config.MAX_TOKENS))
    if "num_ctx" in options:
        opts["num_ctx"] = int(options["num_ctx"])
    return opts


def _to_wire(messages: Sequence[Message]) -> list[Dict[str, str]]:
    return [{"role": m.role, "content": m.content} for m in messages]


async def _generate_streaming(host: str, payload: Dict[str, Any]) -> AsyncIterator[str]:
    timeout = httpx.Timeout(120.0, connect=10.0)
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            async with client.stream("POST", f"{host}/api/chat", json=payload) as r:
                r.raise_for_status()
                async for line in r.aiter_lines():
                    if not line:
                        continue
                    try:
                        data = json.loads(line)
                    except json.JSONDecodeError:
                        continue
                    if data.get("error"):
                        raise TransportError(f"Ollama error: {data['error']}")
                    content = (data.get("message") or {}).get("content")
                    if isinstance(content, str) and content:
                        yield content
    except httpx.HTTPError as e:
        raise TransportError(f"Ollama HTTP error: {e}") from e


class OllamaProvider:
    name = "Ollama"

    def __init__(self, host: Optional[str] = None, model: Optional[str] = None) -> None:
        self._host = host
        self._model = model

    @property
    def host(self) -> str:
        return self._host or config.OLLAMA_HOST

    async def invoke(
        self,
        messages: Sequence[Message],
        options: Mapping[str, Any],
        callbacks: Callbacks,
    ) -> GenerateReturn:
        stream = bool(options.get("stream", False))
        payload = {
            "model": options.get("model") or self._model or config.OLLAMA_MODEL,
            "messages": _to_wire(messages),
            "stream": stream,
            "options": _apply_defaults(options),
        }
        if stream:
            return _generate_streaming(self.host, payload)
        try:
            timeout = httpx.Timeout(60.0, connect=10.0)
            async with httpx.AsyncClient(timeout=timeout) as client:
                r = await client.post(f"{self.host}/api/chat", json=payload)
                r.raise_for_status()
                data = r.json()
        except httpx.HTTPError as e:
            raise TransportError(f"Ollama HTTP error: {e}") from e
        err = data.get("error")
        if isinstance(err, str) and err:
            raise TransportError(f"Ollama error: {err}")
        reply = (data.get("message") or {}).get("content", "")
        if not isinstance(reply, str):
            raise MalformedResponseError("Unexpected response type from Ollama.")
        return reply
