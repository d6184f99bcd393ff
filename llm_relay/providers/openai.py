"""
OpenAI-compatible chat completions provider (api.openai.com, vLLM, LM Studio...).

Streams server-sent events and yields the content delta of every
``data:`` line until ``[DONE]``.
"""
import json
from typing import Any, AsyncIterator, Dict, Mapping, Optional, Sequence

import httpx

from llm_relay.core import config
from llm_relay.providers.base import Callbacks, GenerateReturn, MalformedResponseError, TransportError
from llm_relay.schemas.message import Message


def _headers(api_key: str) -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


def _parse_sse_line(line: str) -> Optional[str]:
    """Content delta of one SSE line, or None for keep-alives, [DONE] and empty deltas."""
    if not line.startswith("data: "):
        return None
    data_str = line[6:]
    if data_str == "[DONE]":
        return None
    try:
        data = json.loads(data_str)
    except json.JSONDecodeError:
        return None
    if data.get("error"):
        raise TransportError(f"OpenAI error: {data['error']}")
    choices = data.get("choices") or []
    if not choices:
        return None
    delta = choices[0].get("delta") or {}
    return delta.get("content") or None


def _parse_completion(data: Dict[str, Any]) -> str:
    choices = data.get("choices") or []
    if choices:
        message = choices[0].get("message") or {}
        content = message.get("content")
        if isinstance(content, str):
            return content
    raise MalformedResponseError("No valid response from OpenAI-compatible API")


class OpenAIProvider:
    name = "OpenAI"

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None, model: Optional[str] = None) -> None:
        self._base_url = base_url
        self._api_key = api_key
        self._model = model

    @property
    def url(self) -> str:
        return f"{(self._base_url or config.OPENAI_BASE_URL).rstrip('/')}/chat/completions"

    def _payload(self, messages: Sequence[Message], options: Mapping[str, Any], stream: bool) -> Dict[str, Any]:
        temperature = options.get("temperature", options.get("creativity", config.TEMPERATURE))
        return {
            "model": options.get("model") or self._model or config.OPENAI_MODEL,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": float(temperature),
            "max_tokens": int(options.get("max_tokens", config.MAX_TOKENS)),
            "stream": stream,
        }

    async def _stream(self, payload: Dict[str, Any], headers: Dict[str, str]) -> AsyncIterator[str]:
        timeout = httpx.Timeout(120.0, connect=10.0)
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                async with client.stream("POST", self.url, json=payload, headers=headers) as r:
                    r.raise_for_status()
                    async for line in r.aiter_lines():
                        content = _parse_sse_line(line.strip())
                        if content:
                            yield content
        except httpx.HTTPError as e:
            raise TransportError(f"OpenAI HTTP error: {e}") from e

    async def invoke(
        self,
        messages: Sequence[Message],
        options: Mapping[str, Any],
        callbacks: Callbacks,
    ) -> GenerateReturn:
        stream = bool(options.get("stream", False))
        payload = self._payload(messages, options, stream)
        headers = _headers(self._api_key if self._api_key is not None else config.OPENAI_API_KEY)
        if stream:
            return self._stream(payload, headers)
        try:
            timeout = httpx.Timeout(60.0, connect=10.0)
            async with httpx.AsyncClient(timeout=timeout) as client:
                r = await client.post(self.url, json=payload, headers=headers)
                r.raise_for_status()
                data = r.json()
        except httpx.HTTPError as e:
            raise TransportError(f"OpenAI HTTP error: {e}") from e
        return _parse_completion(data)
