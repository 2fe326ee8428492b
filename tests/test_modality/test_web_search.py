"""Tests for web search attachments."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from agentchain.modality.web_search import format_search_results, search_web


def _ddgs(results=None, error=None):
    ddgs = MagicMock()
    ddgs.__enter__.return_value = ddgs
    if error is not None:
        ddgs.text.side_effect = error
    else:
        ddgs.text.return_value = results
    return MagicMock(return_value=ddgs)


class TestSearchWeb:
    @pytest.mark.asyncio
    async def test_normalizes_results(self):
        raw = [{"title": "Otters", "href": "https://otters.test", "body": "Sea otters hold hands."}]
        with patch("agentchain.modality.web_search.DDGS", _ddgs(raw)):
            results = await search_web("otters", max_results=1)
        assert results == [{"title": "Otters", "url": "https://otters.test", "snippet": "Sea otters hold hands."}]

    @pytest.mark.asyncio
    async def test_failure_returns_empty(self, caplog):
        with patch("agentchain.modality.web_search.DDGS", _ddgs(error=RuntimeError("blocked"))):
            with caplog.at_level("WARNING", logger="agentchain"):
                assert await search_web("otters") == []
        assert "Web search failed" in caplog.text

    @pytest.mark.asyncio
    async def test_attached_before_invocation(self, service, recorder, make_agent):
        from agentchain.core.executors import RunContext
        from agentchain.core.streaming import StreamingResponseConsumer

        agent = make_agent("a")
        agent.attachments.web_search = True
        context = RunContext(session_id="s", recorder=recorder, consumer=StreamingResponseConsumer(service, recorder))
        raw = [{"title": "T", "href": "https://t.test", "body": "B"}]
        with patch("agentchain.modality.web_search.DDGS", _ddgs(raw)):
            await context.attach_search_results(agent)
        assert agent.attachments.web_search_results[0]["url"] == "https://t.test"


class TestFormatSearchResults:
    def test_numbered(self):
        text = format_search_results([
            {"title": "A", "url": "https://a.test", "snippet": "first"},
            {"title": "B", "url": "https://b.test", "snippet": "second"},
        ])
        assert text == "1. A\n   https://a.test\n   first\n\n2. B\n   https://b.test\n   second"

    def test_empty(self):
        assert format_search_results([]) == ""
