# Context window = (system priming pair) + conversation history + trailing user message
# everything here is pure: pairs in, messages out

from typing import Iterable, List, Optional, Sequence, Union

from llm_relay.providers.base import ProviderInfo
from llm_relay.schemas.message import Message, MessagePair
from llm_relay.services.web_search import SYSTEM_RESPONSE, WEB_SYSTEM_PROMPT, web_search_enabled


def build_context(
    pairs: Iterable[MessagePair],
    trailing_query: Optional[str] = None,
    files: Sequence[str] = (),
) -> List[Message]:
    """
    Flatten pairs (oldest first) into messages, prompt before answer.
    An unanswered pair contributes only its prompt. trailing_query, when given,
    is appended as a final user message (used when regenerating).
    """
    messages: List[Message] = []
    for pair in pairs:
        messages.extend(pair.to_messages())
    if trailing_query:
        messages.append(Message(role="user", content=trailing_query, files=tuple(files)))
    return messages


def truncate(messages: Sequence[Message], info: ProviderInfo) -> List[Message]:
    # drop the oldest messages until the total fits; the last message always stays
    budget = info.context_chars
    kept = list(messages)
    total = sum(len(m.content) for m in kept)
    while len(kept) > 1 and total > budget:
        total -= len(kept.pop(0).content)
    return kept


def format_chat(
    pairs: Sequence[MessagePair],
    system_prompt: str,
    provider: Union[str, ProviderInfo],
    web_search: str = "off",
) -> List[MessagePair]:
    if web_search_enabled(web_search, provider):
        system_prompt = f"{system_prompt}\n\n{WEB_SYSTEM_PROMPT}" if system_prompt else WEB_SYSTEM_PROMPT

    formatted: List[MessagePair] = []
    if system_prompt:
        formatted.append(
            MessagePair(prompt=system_prompt, answer=SYSTEM_RESPONSE, visible=False, meta={"system": True})
        )
    formatted.extend(pairs)
    return formatted


def replace_last_user_content(messages: List[Message], content: str) -> List[Message]:
    for i in range(len(messages) - 1, -1, -1):
        if messages[i].role == "user":
            messages[i] = messages[i].model_copy(update={"content": content})
            break
    return messages
