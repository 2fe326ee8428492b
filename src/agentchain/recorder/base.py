"""Abstract base for step recorders, the persistence boundary of a chain run."""

from __future__ import annotations

from abc import ABC, abstractmethod

from agentchain.core.result import AgentStep, TokenUsage


class StepStateError(Exception):
    """A step was created twice or moved out of a terminal state."""


class StepRecorder(ABC):
    """Records one AgentStep per executed agent.

    ``read_steps`` may be eventually consistent: callers that need data they
    just wrote must poll.
    """

    @abstractmethod
    async def create_step(
        self,
        session_id: str,
        index: int,
        model: str,
        prompt: str,
        name: str | None,
        connection_type: str,
        connection_condition: str | None = None,
        source_agent_index: int | None = None,
        execution_group: int | None = None,
    ) -> str:
        ...

    @abstractmethod
    async def mark_skipped(self, step_id: str, reason: str):
        ...

    @abstractmethod
    async def update_streaming(self, step_id: str, content: str):
        ...

    @abstractmethod
    async def update_thinking(self, step_id: str, thinking: str, is_thinking: bool = True):
        ...

    @abstractmethod
    async def mark_complete(
        self,
        step_id: str,
        content: str,
        usage: TokenUsage | None = None,
        cost: float = 0.0,
        thinking: str | None = None,
    ):
        ...

    @abstractmethod
    async def mark_error(self, step_id: str, message: str):
        ...

    @abstractmethod
    async def read_steps(self, session_id: str) -> list[AgentStep]:
        """All steps of a session, ordered by index."""

    @abstractmethod
    async def get_step(self, step_id: str) -> AgentStep | None:
        ...
