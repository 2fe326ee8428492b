"""In-process step recorder with optional simulated replication lag."""

from __future__ import annotations

import copy
import threading
import time
import uuid
from typing import Callable

from agentchain.core.result import AgentStep, TokenUsage
from agentchain.recorder.base import StepRecorder, StepStateError

_Key = tuple[str, int]


class InMemoryStepRecorder(StepRecorder):
    """Thread-safe store keyed by ``(session_id, index)`` with atomic per-key updates.

    With ``visibility_delay > 0`` a write only shows up in ``read_steps`` once it
    is that many seconds old, which is how a replicated backend behaves right
    after a write. ``get_step`` always sees the latest write.
    """

    def __init__(self, visibility_delay: float = 0.0):
        self.visibility_delay = visibility_delay
        self._steps: dict[_Key, AgentStep] = {}
        self._ids: dict[str, _Key] = {}
        self._versions: dict[_Key, list[tuple[float, AgentStep]]] = {}
        self._lock = threading.Lock()

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
        key = (session_id, index)
        step = AgentStep(
            id=str(uuid.uuid4()),
            session_id=session_id,
            index=index,
            model=model,
            prompt=prompt,
            name=name,
            connection_type=connection_type,
            connection_condition=connection_condition,
            source_agent_index=source_agent_index,
            execution_group=execution_group,
        )
        with self._lock:
            if key in self._steps:
                raise StepStateError(f"Step {index} already exists in session '{session_id}'")
            self._steps[key] = step
            self._ids[step.id] = key
            self._publish(key, step)
        return step.id

    async def mark_skipped(self, step_id: str, reason: str):
        def _apply(step: AgentStep):
            step.was_skipped = True
            step.skip_reason = reason
            step.is_streaming = False
            step.completed_at = time.time()

        self._update(step_id, _apply)

    async def update_streaming(self, step_id: str, content: str):
        def _apply(step: AgentStep):
            step.streamed_content = content
            step.is_streaming = True

        self._update(step_id, _apply)

    async def update_thinking(self, step_id: str, thinking: str, is_thinking: bool = True):
        def _apply(step: AgentStep):
            step.thinking = thinking
            step.is_thinking = is_thinking
            step.is_streaming = True

        self._update(step_id, _apply)

    async def mark_complete(
        self,
        step_id: str,
        content: str,
        usage: TokenUsage | None = None,
        cost: float = 0.0,
        thinking: str | None = None,
    ):
        def _apply(step: AgentStep):
            step.response = content
            step.is_complete = True
            step.is_streaming = False
            step.is_thinking = False
            step.tokens = copy.copy(usage) if usage else TokenUsage()
            step.cost = cost
            if thinking:
                step.thinking = thinking
            step.completed_at = time.time()

        self._update(step_id, _apply)

    async def mark_error(self, step_id: str, message: str):
        def _apply(step: AgentStep):
            step.error = message
            step.is_streaming = False
            step.is_thinking = False
            step.completed_at = time.time()

        self._update(step_id, _apply)

    async def read_steps(self, session_id: str) -> list[AgentStep]:
        cutoff = time.monotonic() - self.visibility_delay
        visible: list[AgentStep] = []
        with self._lock:
            for key, versions in self._versions.items():
                if key[0] != session_id:
                    continue
                step = self._visible_version(versions, cutoff)
                if step is not None:
                    visible.append(copy.deepcopy(step))
        return sorted(visible, key=lambda s: s.index)

    async def get_step(self, step_id: str) -> AgentStep | None:
        with self._lock:
            key = self._ids.get(step_id)
            if key is None:
                return None
            return copy.deepcopy(self._steps[key])

    def _update(self, step_id: str, apply: Callable[[AgentStep], None]):
        with self._lock:
            key = self._ids.get(step_id)
            if key is None:
                raise KeyError(f"Unknown step '{step_id}'")
            step = self._steps[key]
            if step.is_terminal:
                raise StepStateError(
                    f"Step {step.index} of session '{step.session_id}' is already {step.status.value}"
                )
            apply(step)
            self._publish(key, step)

    def _publish(self, key: _Key, step: AgentStep):
        # caller holds the lock
        versions = self._versions.setdefault(key, [])
        versions.append((time.monotonic(), copy.deepcopy(step)))

        # Versions older than the newest visible one can never be read again
        cutoff = time.monotonic() - self.visibility_delay
        newest_visible = 0
        for i, (written_at, _) in enumerate(versions):
            if written_at <= cutoff:
                newest_visible = i
        del versions[:newest_visible]

    @staticmethod
    def _visible_version(versions: list[tuple[float, AgentStep]], cutoff: float) -> AgentStep | None:
        visible = None
        for written_at, step in versions:
            if written_at <= cutoff:
                visible = step
        return visible
