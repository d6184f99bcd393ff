import asyncio
import logging
from typing import AsyncIterator, Optional
from fastapi import APIRouter, HTTPException, Request, Depends
from fastapi.responses import StreamingResponse
from llm_relay.schemas.chat import ChatMetrics, ChatRequest, ChatResponse, StreamEvent, TranslateRequest
from llm_relay.schemas.message import MessagePair
from llm_relay.api.deps import get_generation_status
from llm_relay.core import config
from llm_relay.providers import registry
from llm_relay.providers.base import UnknownProviderError
from llm_relay.services import orchestrator
from llm_relay.services.orchestrator import GenerationResult, Outcome
from llm_relay.services.prompt import translate_prompt
from llm_relay.services.status import GenerationStatus

router = APIRouter(tags=["chat"])
logger = logging.getLogger(__name__)


def _check_admissible(provider: Optional[str], status: GenerationStatus) -> None:
    try:
        registry.resolve(provider)
    except UnknownProviderError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if status.loading:
        raise HTTPException(status_code=409, detail="a response is already being generated")
    # clearing the stop flag between requests is the caller's job, not the orchestrator's
    status.cancel.reset()


def _metrics(result: GenerationResult) -> Optional[ChatMetrics]:
    m = result.metrics
    if m is None:
        return None
    return ChatMetrics(elapsed=m.elapsed, chars=m.chars, chars_per_sec=round(m.chars_per_sec, 1), summary=m.summary())


def _to_response(result: GenerationResult) -> ChatResponse:
    if result.outcome is Outcome.REJECTED:
        raise HTTPException(status_code=409, detail=result.error)
    if result.outcome is Outcome.FAILED:
        raise HTTPException(status_code=502, detail=result.error)
    return ChatResponse(
        reply=result.text,
        outcome=result.outcome.value,
        provider=result.provider,
        metrics=_metrics(result),
    )


@router.post("/chat", response_model=ChatResponse)
async def chat(req: ChatRequest, request: Request, status: GenerationStatus = Depends(get_generation_status)):
    _check_admissible(req.provider, status)
    kwargs = dict(
        system_prompt=req.system_prompt,
        web_mode=req.web_search or config.WEB_SEARCH_MODE,
        options=req.options,
        status=status,
        language=config.DEFAULT_LANGUAGE,
    )

    # Non-stream path
    if not req.stream:
        result = await orchestrator.generate(req.messages, req.provider, **kwargs)
        return _to_response(result)

    # Stream path: snapshots are pushed by the orchestrator, drained here as NDJSON
    queue: "asyncio.Queue[Optional[str]]" = asyncio.Queue()
    task = asyncio.create_task(
        orchestrator.generate(req.messages, req.provider, on_stream_update=queue.put_nowait, **kwargs)
    )
    task.add_done_callback(lambda _: queue.put_nowait(None))

    async def streamer() -> AsyncIterator[bytes]:
        try:
            while True:
                snapshot = await queue.get()
                if snapshot is None:
                    break
                if await request.is_disconnected():
                    logger.info("client disconnected, stopping stream")
                    status.request_stop()
                    break
                yield (StreamEvent(type="snapshot", text=snapshot).model_dump_json() + "\n").encode("utf-8")

            result = await task
            if result.ok:
                event = StreamEvent(type="done", text=result.text, outcome=result.outcome.value, metrics=_metrics(result))
            else:
                event = StreamEvent(type="error", outcome=result.outcome.value, error=result.error)
            yield (event.model_dump_json() + "\n").encode("utf-8")
        finally:
            if not task.done():
                status.request_stop()
                await task

    return StreamingResponse(streamer(), media_type="application/x-ndjson")


@router.post("/chat/stop")
async def stop(status: GenerationStatus = Depends(get_generation_status)):
    status.request_stop()
    return {"stopping": status.loading}


@router.post("/translate", response_model=ChatResponse)
async def translate(req: TranslateRequest, status: GenerationStatus = Depends(get_generation_status)):
    _check_admissible(req.provider, status)
    prompt = translate_prompt(req.text, req.language or config.DEFAULT_LANGUAGE)
    result = await orchestrator.generate([MessagePair(prompt=prompt)], req.provider, status=status)
    return _to_response(result)
