"""
conversation records shared by the orchestrator, the providers and the API.

a MessagePair is how a conversation is stored (one prompt + its answer),
a Message is what actually goes over the wire to a provider.
"""
from typing import Any, Dict, Literal, Tuple

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant", "system"]


class Message(BaseModel):
    """Single chat turn sent to a provider."""
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str
    files: Tuple[str, ...] = ()


class MessagePair(BaseModel):
    """Prompt/answer unit of stored history. Invisible pairs are still sent, just not rendered."""
    model_config = ConfigDict(frozen=True)

    prompt: str
    answer: str = ""
    visible: bool = True
    files: Tuple[str, ...] = ()
    meta: Dict[str, Any] = Field(default_factory=dict)

    def to_messages(self) -> list[Message]:
        if not self.prompt:
            return []
        out = [Message(role="user", content=self.prompt, files=self.files)]
        if self.answer:
            out.append(Message(role="assistant", content=self.answer))
        return out


class Preset(BaseModel):
    """Named bundle of provider + creativity + system prompt."""
    model_config = ConfigDict(frozen=True)

    name: str
    provider: str
    creativity: str = "0.7"
    system_prompt: str = ""
    options: Dict[str, Any] = Field(default_factory=dict)
