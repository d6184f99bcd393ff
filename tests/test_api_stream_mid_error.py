# tests/test_api_stream_mid_error.py
import asyncio
import json
import pytest
from typing import AsyncIterator

from conftest import FakeProvider


class DroppingProvider(FakeProvider):
    # yields one fragment, then the connection drops
    async def invoke(self, messages, options, callbacks):
        async def gen() -> AsyncIterator[str]:
            yield "partial "
            await asyncio.sleep(0)
            raise RuntimeError("network dropped")
        return gen()


@pytest.mark.asyncio
async def test_stream_mid_exception_is_logged_and_reported(client, register_fake, caplog_info):
    # Tests what happens if the provider stream raises mid-way:
    # - The first snapshot is still streamed to the client
    # - The error is logged once with logger.exception()
    # - The stream ends with an error event instead of crashing (status stays 200).
    register_fake("drop", DroppingProvider(), stream=True)

    r = await client.post("/chat", json={"messages": [{"prompt": "stream please"}], "provider": "drop", "stream": True})
    assert r.status_code == 200
    events = [json.loads(line) for line in r.text.splitlines() if line.strip()]
    assert events[0]["type"] == "snapshot"
    assert events[0]["text"] == "partial "
    assert events[-1]["type"] == "error"
    assert events[-1]["outcome"] == "failed"
    assert "network dropped" in events[-1]["error"]

    log_text = "\n".join(rec.getMessage() for rec in caplog_info.records)
    assert "network dropped" in log_text
