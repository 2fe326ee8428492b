"""DuckDuckGo web search results attached to an agent's prompt (free, no API key)."""

from __future__ import annotations

import asyncio
import logging

from duckduckgo_search import DDGS

_log = logging.getLogger(__name__)


def _search(query: str, max_results: int) -> list[dict]:
    with DDGS() as ddgs:
        return list(ddgs.text(query, max_results=max_results) or [])


async def search_web(query: str, max_results: int = 5) -> list[dict]:
    """Return ``{"title", "url", "snippet"}`` dicts; an empty list when the search fails."""
    try:
        raw = await asyncio.to_thread(_search, query, max_results)
    except Exception as e:
        _log.warning("Web search failed for %r: %s", query[:80], e)
        return []

    return [
        {
            "title": r.get("title", "No title"),
            "url": r.get("href", r.get("link", "")),
            "snippet": r.get("body", r.get("snippet", "")),
        }
        for r in raw
    ]


def format_search_results(results: list[dict]) -> str:
    formatted = []
    for i, r in enumerate(results, 1):
        title = r.get("title", "No title")
        url = r.get("url", "No URL")
        snippet = r.get("snippet", "No description")
        formatted.append(f"{i}. {title}\n   {url}\n   {snippet}")
    return "\n\n".join(formatted)
