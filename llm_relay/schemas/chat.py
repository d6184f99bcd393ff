from pydantic import BaseModel, Field
from typing import Any, Dict, List, Literal, Optional

from llm_relay.schemas.message import MessagePair

WebSearchMode = Literal["off", "auto", "always"]


class ChatRequest(BaseModel):
    messages: List[MessagePair] = Field(min_length=1)
    provider: Optional[str] = None
    system_prompt: str = ""
    web_search: Optional[WebSearchMode] = None
    options: Dict[str, Any] = Field(default_factory=dict)
    stream: bool = Field(default=False)


class ChatMetrics(BaseModel):
    elapsed: float
    chars: int
    chars_per_sec: float
    summary: str


class ChatResponse(BaseModel):
    reply: str
    outcome: str
    provider: Optional[str] = None
    metrics: Optional[ChatMetrics] = None


class StreamEvent(BaseModel):
    """One NDJSON line of a streamed reply."""

    type: Literal["snapshot", "done", "error"]
    text: Optional[str] = None
    outcome: Optional[str] = None
    metrics: Optional[ChatMetrics] = None
    error: Optional[str] = None


class TranslateRequest(BaseModel):
    text: str = Field(min_length=1, max_length=20000)
    language: Optional[str] = None
    provider: Optional[str] = None


class ProviderDescription(BaseModel):
    id: str
    name: str
    stream: bool
    native_web_search: bool
    options: Dict[str, Any] = Field(default_factory=dict)
