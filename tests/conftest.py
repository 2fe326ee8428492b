"""Shared fixtures for AgentChain tests."""

from __future__ import annotations

import asyncio
import logging

import pytest

from agentchain.core.agent import Agent, Connection, ConnectionType
from agentchain.core.result import TokenUsage
from agentchain.llm.provider import ModelInvocationService, StreamEvent
from agentchain.observe.events import EventBus
from agentchain.observe.tracer import Tracer
from agentchain.recorder.memory import InMemoryStepRecorder


class FakeInvocationService(ModelInvocationService):
    """Scripted model service.

    Each model has a queue of responses consumed one per call. A response is
    a string (streamed as two token fragments then a completion), a list of
    StreamEvents (yielded as-is) or an exception (raised when the channel is
    first read). Models with an empty queue answer with ``default``.
    """

    def __init__(self, default: str = "ok", delay: float = 0.0):
        self.default = default
        self.delay = delay
        self.scripts: dict[str, list] = {}
        self.calls: list[tuple[str, str]] = []
        self.active = 0
        self.max_active = 0
        self.closed = 0

    def script(self, model: str, *responses):
        self.scripts.setdefault(model, []).extend(responses)
        return self

    def prompts_for(self, model: str) -> list[str]:
        return [prompt for m, prompt in self.calls if m == model]

    async def invoke(self, model, prompt, attachments=None):
        self.calls.append((model, prompt))
        queue = self.scripts.get(model)
        response = queue.pop(0) if queue else self.default

        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if isinstance(response, BaseException):
                raise response
            if isinstance(response, str):
                half = len(response) // 2
                for fragment in (response[:half], response[half:]):
                    if fragment:
                        yield StreamEvent.token(fragment)
                yield StreamEvent.complete(usage=TokenUsage(input_tokens=10, output_tokens=5), cost=0.001)
            else:
                for event in response:
                    yield event
        finally:
            self.active -= 1
            self.closed += 1


@pytest.fixture
def package_logger():
    """The ``agentchain`` logger, restored afterwards for tests that configure it."""
    logger = logging.getLogger("agentchain")
    saved = (list(logger.handlers), logger.propagate, logger.level)
    yield logger
    logger.handlers[:] = saved[0]
    logger.propagate = saved[1]
    logger.setLevel(saved[2])


@pytest.fixture
def service():
    return FakeInvocationService()


@pytest.fixture
def recorder():
    return InMemoryStepRecorder()


@pytest.fixture
def tracer():
    """A fresh tracer instance."""
    return Tracer()


@pytest.fixture
def event_bus():
    """A fresh event bus instance."""
    return EventBus()


@pytest.fixture
def fast_control():
    """Control settings with every wait set to zero."""
    return {
        "max_attempts": 3,
        "base_delay": 0.0,
        "max_delay": 0.0,
        "jitter": 0.0,
        "read_attempts": 3,
        "read_delay": 0.0,
    }


@pytest.fixture
def make_agent():
    def _make(
        agent_id: str,
        prompt: str = "do the thing",
        model: str = "fake/a",
        connection: str | None = None,
        condition: str | None = None,
        name: str | None = None,
    ) -> Agent:
        return Agent(
            id=agent_id,
            model=model,
            prompt=prompt,
            name=name,
            connection=Connection(type=ConnectionType(connection), condition=condition) if connection else None,
        )

    return _make


@pytest.fixture
def sample_config():
    """Minimal valid chain definition dict."""
    return {
        "chain": {
            "name": "Test Chain",
            "llm": "openai/gpt-4o-mini",
            "temperature": 0.7,
            "max_tokens": 4096,
            "recorder": {"backend": "memory"},
            "observe": {
                "trace": True,
                "cost_tracking": True,
                "log_level": "info",
                "log_format": "pretty",
            },
            "control": {
                "max_attempts": 3,
                "base_delay": 0.0,
                "max_delay": 0.0,
                "jitter": 0.0,
                "read_attempts": 3,
                "read_delay": 0.0,
            },
        },
        "agents": [
            {"id": "research", "name": "Researcher", "prompt": "Find facts about otters."},
            {"id": "write", "name": "Writer", "prompt": "Write a summary."},
        ],
    }
