"""Run records and result data classes for chain execution."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from agentchain.core.agent import Agent


class StepStatus(str, Enum):
    PENDING = "pending"
    STREAMING = "streaming"
    COMPLETE = "complete"
    ERROR = "error"
    SKIPPED = "skipped"


TERMINAL_STATUSES = frozenset({StepStatus.COMPLETE, StepStatus.ERROR, StepStatus.SKIPPED})


@dataclass
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class CostSummary:
    total_cost: float = 0.0
    total_tokens: TokenUsage = field(default_factory=TokenUsage)
    by_agent: dict = field(default_factory=dict)
    by_model: dict = field(default_factory=dict)
    by_step: dict = field(default_factory=dict)


@dataclass
class AgentStep:
    """Persisted record of one agent invocation, keyed by (session_id, index)."""

    id: str
    session_id: str
    index: int
    model: str
    prompt: str
    name: str | None = None
    connection_type: str = "direct"
    connection_condition: str | None = None
    source_agent_index: int | None = None
    execution_group: int | None = None
    response: str | None = None
    streamed_content: str | None = None
    thinking: str | None = None
    is_thinking: bool = False
    is_streaming: bool = False
    is_complete: bool = False
    was_skipped: bool = False
    skip_reason: str | None = None
    error: str | None = None
    tokens: TokenUsage = field(default_factory=TokenUsage)
    cost: float = 0.0
    created_at: float = field(default_factory=time.time)
    completed_at: float | None = None

    @property
    def status(self) -> StepStatus:
        if self.was_skipped:
            return StepStatus.SKIPPED
        if self.error is not None:
            return StepStatus.ERROR
        if self.is_complete:
            return StepStatus.COMPLETE
        if self.is_streaming:
            return StepStatus.STREAMING
        return StepStatus.PENDING

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def output(self) -> str:
        return self.response or self.streamed_content or ""

    @property
    def duration(self) -> float:
        if self.completed_at is None:
            return 0.0
        return self.completed_at - self.created_at

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "index": self.index,
            "status": self.status.value,
            "model": self.model,
            "name": self.name,
            "prompt": self.prompt,
            "connection_type": self.connection_type,
            "connection_condition": self.connection_condition,
            "source_agent_index": self.source_agent_index,
            "execution_group": self.execution_group,
            "response": self.response,
            "streamed_content": self.streamed_content,
            "thinking": self.thinking,
            "skip_reason": self.skip_reason,
            "error": self.error,
            "tokens": {"input": self.tokens.input_tokens, "output": self.tokens.output_tokens},
            "cost": self.cost,
            "duration": self.duration,
        }


@dataclass
class ParallelResult:
    """Outcome of one agent in a parallel group. Lives only until the next group's context is built."""

    agent: Agent
    index: int
    step_id: str | None
    result: str = ""
    success: bool = True
    error: str | None = None
    completed_at: float = field(default_factory=time.time)
    attempts: int = 1
    duration: float = 0.0


@dataclass
class ChainResult:
    session_id: str
    steps: list[AgentStep] = field(default_factory=list)
    output: str = ""
    trace: list[dict] = field(default_factory=list)
    cost: CostSummary = field(default_factory=CostSummary)
    duration: float = 0.0

    @property
    def failed_steps(self) -> list[AgentStep]:
        return [s for s in self.steps if s.status == StepStatus.ERROR]

    @property
    def skipped_steps(self) -> list[AgentStep]:
        return [s for s in self.steps if s.status == StepStatus.SKIPPED]

    @property
    def completed_steps(self) -> list[AgentStep]:
        return [s for s in self.steps if s.status == StepStatus.COMPLETE]

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "output": self.output,
            "duration": self.duration,
            "cost": {
                "total_cost": self.cost.total_cost,
                "total_tokens": {
                    "input": self.cost.total_tokens.input_tokens,
                    "output": self.cost.total_tokens.output_tokens,
                    "total": self.cost.total_tokens.total,
                },
                "by_agent": self.cost.by_agent,
                "by_model": self.cost.by_model,
                "by_step": self.cost.by_step,
            },
            "steps": [s.to_dict() for s in self.steps],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)
