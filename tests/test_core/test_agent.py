"""Tests for agent definitions and step records."""

from __future__ import annotations

from agentchain.core.agent import Agent, Attachments, Connection, ConnectionType
from agentchain.core.result import AgentStep, StepStatus


class TestAgent:
    def test_defaults_to_direct(self):
        agent = Agent(id="a", model="fake/a", prompt="p")
        assert agent.connection_type == ConnectionType.DIRECT
        assert agent.attachments.is_empty()

    def test_display_name(self):
        assert Agent(id="a", model="m/x", prompt="p", name="Critic").display_name(4) == "Critic"
        assert Agent(id="a", model="m/x", prompt="p").display_name(4) == "Agent 5"

    def test_from_config(self):
        agent = Agent.from_config(
            {
                "id": "b",
                "prompt": "Review.",
                "model": None,
                "name": "Reviewer",
                "connection": {"type": "conditional", "condition": "length > 3", "source_agent_id": "a"},
                "images": [{"url": "https://x.test/a.png", "description": ""}],
                "audio_transcription": None,
                "web_search": True,
            },
            default_model="openai/gpt-4o-mini",
        )
        assert agent.model == "openai/gpt-4o-mini"
        assert agent.connection == Connection(
            type=ConnectionType.CONDITIONAL, condition="length > 3", source_agent_id="a"
        )
        assert agent.attachments.web_search is True
        assert not agent.attachments.is_empty()

    def test_collaborative_is_accepted(self):
        agent = Agent.from_config({"id": "c", "prompt": "p", "connection": {"type": "collaborative"}})
        assert agent.connection_type == ConnectionType.COLLABORATIVE

    def test_attachments_empty(self):
        assert Attachments(web_search=True).is_empty()
        assert not Attachments(audio_transcription="words").is_empty()


class TestAgentStepStatus:
    def _step(self, **kwargs):
        return AgentStep(id="s", session_id="sess", index=0, model="m/x", prompt="p", **kwargs)

    def test_status_derivation(self):
        assert self._step().status == StepStatus.PENDING
        assert self._step(is_streaming=True).status == StepStatus.STREAMING
        assert self._step(is_complete=True).status == StepStatus.COMPLETE
        assert self._step(error="x").status == StepStatus.ERROR
        assert self._step(was_skipped=True).status == StepStatus.SKIPPED

    def test_terminal(self):
        assert not self._step(is_streaming=True).is_terminal
        assert self._step(error="x").is_terminal

    def test_output_prefers_response(self):
        assert self._step(response="final", streamed_content="partial").output == "final"
        assert self._step(streamed_content="partial").output == "partial"
        assert self._step().output == ""
