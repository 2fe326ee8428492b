"""Tests for the Chain runner."""

from __future__ import annotations

import pytest
import yaml

from agentchain.config.loader import ConfigError
from agentchain.core.chain import Chain
from agentchain.core.grouping import GroupType
from agentchain.llm.router import LLMRouter
from agentchain.recorder.memory import InMemoryStepRecorder
from agentchain.recorder.sqlite import SQLiteStepRecorder


@pytest.fixture
def chain_yaml(tmp_path, sample_config):
    path = tmp_path / "chain.yaml"
    path.write_text(yaml.dump(sample_config))
    return str(path)


class TestChainInit:
    def test_from_yaml(self, chain_yaml):
        chain = Chain.from_yaml(chain_yaml)
        assert chain.name == "Test Chain"
        assert [a.id for a in chain.agents] == ["research", "write"]

    def test_from_dict_uses_default_model(self, sample_config):
        chain = Chain.from_dict(sample_config)
        assert all(a.model == "openai/gpt-4o-mini" for a in chain.agents)
        assert isinstance(chain.service, LLMRouter)
        assert isinstance(chain.recorder, InMemoryStepRecorder)

    def test_agent_model_override(self, sample_config):
        sample_config["agents"][1]["model"] = "anthropic/claude-3-5-haiku-20241022"
        chain = Chain.from_dict(sample_config)
        assert chain.agents[1].model == "anthropic/claude-3-5-haiku-20241022"

    def test_sqlite_recorder_from_config(self, sample_config, tmp_path):
        sample_config["chain"]["recorder"] = {"backend": "sqlite", "path": str(tmp_path / "steps.db")}
        chain = Chain.from_dict(sample_config)
        assert isinstance(chain.recorder, SQLiteStepRecorder)
        chain.recorder.close()

    def test_from_yaml_nonexistent(self):
        with pytest.raises(ConfigError):
            Chain.from_yaml("/nonexistent.yaml")

    def test_construction_leaves_logging_alone(self, sample_config, service, package_logger):
        before = (list(package_logger.handlers), package_logger.propagate, package_logger.level)
        chain = Chain.from_dict(sample_config, service=service)
        assert (list(package_logger.handlers), package_logger.propagate, package_logger.level) == before
        assert chain.observe["log_level"] == "info"

    def test_plan(self, sample_config):
        sample_config["agents"].append({"id": "x", "prompt": "p", "connection": {"type": "parallel"}})
        groups = Chain.from_dict(sample_config).plan()
        assert [g.type for g in groups] == [GroupType.SEQUENTIAL, GroupType.SEQUENTIAL, GroupType.PARALLEL]


class TestChainRun:
    def test_run_with_fake_service(self, sample_config, service):
        service.script("openai/gpt-4o-mini", "otters hold hands", "Otters are social.")
        chain = Chain.from_dict(sample_config, service=service)

        result = chain.run(session_id="s-1")

        assert result.session_id == "s-1"
        assert result.output == "Otters are social."
        assert len(result.completed_steps) == 2
        assert result.cost.total_cost == pytest.approx(0.002)
        assert result.cost.total_tokens.total == 30
        assert set(result.cost.by_agent) == {"Researcher", "Writer"}
        assert result.trace

    def test_generated_session_id(self, sample_config, service):
        result = Chain.from_dict(sample_config, service=service).run()
        assert result.session_id

    def test_trace_disabled(self, sample_config, service):
        sample_config["chain"]["observe"]["trace"] = False
        result = Chain.from_dict(sample_config, service=service).run()
        assert result.trace == []

    @pytest.mark.asyncio
    async def test_arun(self, sample_config, service):
        result = await Chain.from_dict(sample_config, service=service).arun("async-session")
        assert result.session_id == "async-session"
        assert len(result.steps) == 2

    @pytest.mark.asyncio
    async def test_run_inside_event_loop(self, sample_config, service):
        result = Chain.from_dict(sample_config, service=service).run("nested")
        assert len(result.steps) == 2

    def test_result_json(self, sample_config, service):
        result = Chain.from_dict(sample_config, service=service).run("json")
        data = result.to_dict()
        assert data["session_id"] == "json"
        assert [s["status"] for s in data["steps"]] == ["complete", "complete"]
        assert '"output": "ok"' in result.to_json()
