"""Tests for chain definition schema validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from agentchain.config.schema import (
    AgentConfig,
    ChainConfig,
    ChainSettings,
    ConnectionConfig,
    ControlConfig,
    ObserveConfig,
    RecorderConfig,
)


class TestChainSettings:
    def test_valid(self):
        settings = ChainSettings(name="Chain", llm="openai/gpt-4o")
        assert settings.temperature == 0.7
        assert settings.control.max_attempts == 3

    def test_invalid_llm_format(self):
        with pytest.raises(ValidationError, match="provider/model"):
            ChainSettings(name="Chain", llm="gpt-4o")

    def test_invalid_temperature(self):
        with pytest.raises(ValidationError):
            ChainSettings(name="Chain", temperature=3.0)

    def test_name_required(self):
        with pytest.raises(ValidationError):
            ChainSettings()


class TestSectionConfigs:
    def test_recorder_backend(self):
        assert RecorderConfig(backend="sqlite").backend == "sqlite"
        with pytest.raises(ValidationError):
            RecorderConfig(backend="redis")

    def test_observe_levels(self):
        with pytest.raises(ValidationError):
            ObserveConfig(log_level="verbose")
        with pytest.raises(ValidationError):
            ObserveConfig(log_format="xml")

    def test_control_bounds(self):
        with pytest.raises(ValidationError):
            ControlConfig(max_attempts=0)
        with pytest.raises(ValidationError):
            ControlConfig(read_delay=-1)


class TestConnectionConfig:
    def test_defaults_to_direct(self):
        assert ConnectionConfig().type == "direct"

    def test_unknown_type(self):
        with pytest.raises(ValidationError):
            ConnectionConfig(type="broadcast")

    def test_conditional_requires_valid_condition(self):
        assert ConnectionConfig(type="conditional", condition="length > 5").condition == "length > 5"
        with pytest.raises(ValidationError, match="Condition cannot be empty"):
            ConnectionConfig(type="conditional")
        with pytest.raises(ValidationError, match="Unsupported condition format"):
            ConnectionConfig(type="conditional", condition="bogus(")


class TestAgentConfig:
    def test_integer_id_is_coerced(self):
        assert AgentConfig(id=3, prompt="p").id == "3"

    def test_model_format(self):
        with pytest.raises(ValidationError):
            AgentConfig(id="a", prompt="p", model="gpt-4o")

    def test_attachments(self):
        agent = AgentConfig(
            id="a",
            prompt="p",
            images=[{"url": "https://example.com/cat.png"}],
            audio_transcription="hello",
            web_search=True,
        )
        assert agent.images[0].url == "https://example.com/cat.png"
        assert agent.web_search is True


class TestChainConfig:
    def _agents(self, *agents):
        return {"chain": {"name": "C"}, "agents": list(agents)}

    def test_requires_agents(self):
        with pytest.raises(ValidationError):
            ChainConfig(**self._agents())

    def test_duplicate_ids(self):
        with pytest.raises(ValidationError, match="Duplicate agent id"):
            ChainConfig(**self._agents({"id": "a", "prompt": "p"}, {"id": "a", "prompt": "q"}))

    def test_source_must_be_earlier(self):
        with pytest.raises(ValidationError, match="not an earlier agent"):
            ChainConfig(
                **self._agents(
                    {"id": "a", "prompt": "p", "connection": {"source_agent_id": "b"}},
                    {"id": "b", "prompt": "q"},
                )
            )

    def test_valid_source(self):
        config = ChainConfig(
            **self._agents(
                {"id": "a", "prompt": "p"},
                {"id": "b", "prompt": "q", "connection": {"type": "direct", "source_agent_id": "a"}},
            )
        )
        assert config.agents[1].connection.source_agent_id == "a"
