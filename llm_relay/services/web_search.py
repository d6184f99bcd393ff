"""
Web-search augmentation: a priming prompt telling the model that search
results may follow, and a fetch that turns a query into a text block appended
to the user's message.

Results come from the DuckDuckGo Instant Answer API (abstract + related topics).
"""
import logging
from typing import Any, Dict, List, Union

import httpx

from llm_relay.core import config
from llm_relay.providers import registry
from llm_relay.providers.base import ProviderInfo, TransportError

logger = logging.getLogger(__name__)

WEB_TOKEN = "<|web_search_results|>"
WEB_TOKEN_END = "<|end_web_search_results|>"

WEB_SYSTEM_PROMPT = (
    "You are given access to the web. Some user messages end with search results, "
    f"enclosed between {WEB_TOKEN} and {WEB_TOKEN_END}. Use them to answer the question "
    "when relevant, cite the URLs you rely on, and never mention that results were provided "
    "if they are not useful."
)

SYSTEM_RESPONSE = "Understood. I will follow these instructions."

MODES = ("off", "auto", "always")


def web_search_enabled(mode: str, provider: Union[str, ProviderInfo]) -> bool:
    if mode == "always":
        return True
    if mode == "auto":
        return not registry.supports_native_web_search(provider)
    return False


def _collect(data: Dict[str, Any], limit: int) -> List[Dict[str, str]]:
    results: List[Dict[str, str]] = []
    if data.get("AbstractText"):
        results.append({
            "title": data.get("Heading") or "",
            "body": data["AbstractText"],
            "url": data.get("AbstractURL") or "",
        })
    topics = list(data.get("RelatedTopics") or [])
    while topics and len(results) < limit:
        topic = topics.pop(0)
        if "Topics" in topic:
            # grouped topics, e.g. disambiguation categories
            topics[:0] = topic["Topics"]
            continue
        if topic.get("Text"):
            results.append({"title": "", "body": topic["Text"], "url": topic.get("FirstURL") or ""})
    return results[:limit]


def format_web_result(results: List[Dict[str, str]], query: str) -> str:
    if not results:
        return ""
    lines = [f"\n\n{WEB_TOKEN}", f"Search results for: {query}"]
    for i, r in enumerate(results, start=1):
        title = f"{r['title']}: " if r.get("title") else ""
        url = f" ({r['url']})" if r.get("url") else ""
        lines.append(f"{i}. {title}{r['body']}{url}")
    lines.append(WEB_TOKEN_END)
    return "\n".join(lines)


async def get_web_result(query: str) -> List[Dict[str, str]]:
    params = {"q": query, "format": "json", "no_html": "1", "skip_disambig": "1"}
    timeout = httpx.Timeout(15.0, connect=5.0)
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            r = await client.get(config.SEARCH_URL, params=params)
            r.raise_for_status()
            data = r.json()
    except httpx.HTTPError as e:
        raise TransportError(f"web search failed: {e}") from e
    except ValueError as e:
        raise TransportError(f"web search returned invalid JSON: {e}") from e
    results = _collect(data, config.SEARCH_MAX_RESULTS)
    logger.debug("web search for %r returned %d results", query, len(results))
    return results


async def fetch_augmentation(query: str) -> str:
    return format_web_result(await get_web_result(query), query)
