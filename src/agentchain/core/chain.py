"""Main entry point tying config, model router, recorder and observability together."""

from __future__ import annotations

import asyncio
import concurrent.futures
import uuid
from pathlib import Path
from typing import Union

from agentchain.config.loader import ConfigLoader
from agentchain.core.agent import Agent
from agentchain.core.grouping import ExecutionGroup, group_agents
from agentchain.core.orchestrator import ChainOrchestrator
from agentchain.core.result import ChainResult, CostSummary, TokenUsage
from agentchain.llm.provider import ModelInvocationService
from agentchain.llm.router import LLMRouter
from agentchain.observe.events import EventBus
from agentchain.observe.tracer import Tracer
from agentchain.recorder.base import StepRecorder
from agentchain.recorder.factory import create_recorder


class Chain:
    """
    Usage::

        chain = Chain.from_yaml("chain.yaml")
        result = chain.run()
        for step in result.steps:
            print(step.index, step.status.value, step.output[:80])
    """

    def __init__(
        self,
        agents: list[Agent],
        config: dict | None = None,
        recorder: StepRecorder | None = None,
        service: ModelInvocationService | None = None,
    ):
        self.agents = agents
        self.config = config or {}
        self.tracer = Tracer()
        self.event_bus = EventBus()

        chain_config = self.config.get("chain", {})
        observe_config = chain_config.get("observe", {})

        self.name = chain_config.get("name", "AgentChain")
        self.observe = observe_config
        self.trace_enabled = observe_config.get("trace", True)
        self.control = chain_config.get("control", {})
        self.service = service or LLMRouter(
            default_model=chain_config.get("llm", "openai/gpt-4o-mini"),
            cost_tracking=observe_config.get("cost_tracking", True),
            temperature=chain_config.get("temperature", 0.7),
            max_tokens=chain_config.get("max_tokens", 4096),
        )
        self.recorder = recorder or create_recorder(chain_config.get("recorder", {}))

    @classmethod
    def from_yaml(cls, path: Union[str, Path], **kwargs) -> "Chain":
        config = ConfigLoader.load(path)
        return cls(agents=cls._agents_from_config(config), config=config, **kwargs)

    @classmethod
    def from_dict(cls, config: dict, **kwargs) -> "Chain":
        config = ConfigLoader.validate(config)
        return cls(agents=cls._agents_from_config(config), config=config, **kwargs)

    @staticmethod
    def _agents_from_config(config: dict) -> list[Agent]:
        default_model = config.get("chain", {}).get("llm")
        return [Agent.from_config(a, default_model=default_model) for a in config.get("agents", [])]

    def plan(self) -> list[ExecutionGroup]:
        return group_agents(self.agents)

    def run(self, session_id: str | None = None) -> ChainResult:
        """Synchronous entry point. Wraps the async `arun()` method."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop and loop.is_running():
            with concurrent.futures.ThreadPoolExecutor() as pool:
                future = pool.submit(asyncio.run, self.arun(session_id))
                return future.result()
        return asyncio.run(self.arun(session_id))

    async def arun(self, session_id: str | None = None) -> ChainResult:
        """Async entry point, for callers already inside an event loop."""
        session_id = session_id or str(uuid.uuid4())

        self.tracer = Tracer()
        self.tracer.start()

        orchestrator = ChainOrchestrator(
            service=self.service,
            recorder=self.recorder,
            tracer=self.tracer,
            event_bus=self.event_bus,
            control=self.control,
        )
        result = await orchestrator.run(self.agents, session_id)

        cost_breakdown = self.tracer.get_cost_breakdown()
        result.cost = CostSummary(
            total_cost=cost_breakdown["total_cost"],
            total_tokens=TokenUsage(
                input_tokens=cost_breakdown["total_tokens"]["input"],
                output_tokens=cost_breakdown["total_tokens"]["output"],
            ),
            by_agent=cost_breakdown["by_agent"],
            by_model=cost_breakdown["by_model"],
            by_step=cost_breakdown["by_step"],
        )
        result.trace = self.tracer.get_timeline() if self.trace_enabled else []
        return result
