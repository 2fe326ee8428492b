"""Prompt context propagated between steps of a chain."""

from __future__ import annotations

import logging

from agentchain.control.retry import poll
from agentchain.core.result import AgentStep, ParallelResult
from agentchain.recorder.base import StepRecorder

_log = logging.getLogger(__name__)

PARALLEL_HEADER = "--- Parallel Analysis Results ---"
PARALLEL_FOOTER = "--- End Parallel Results ---"


def build_prompt(prompt: str, previous_output: str) -> str:
    if not previous_output:
        return prompt
    return f"Previous agent's output:\n{previous_output}\n\nNow, based on that output: {prompt}"


def build_parallel_prompt(prompt: str, shared_context: str) -> str:
    if not shared_context:
        return prompt
    return f"{shared_context}\n\nNow, based on that context: {prompt}"


def format_parallel_results(results: list[ParallelResult]) -> str:
    """Collapse a settled parallel group into one block for the next step."""
    parts = [f"{PARALLEL_HEADER}\n\n"]

    for position, result in enumerate(results):
        agent_name = result.agent.name or f"Agent {position + 1}"
        model_name = result.agent.model
        if result.success:
            parts.append(f"**{agent_name} ({model_name}):**\n{result.result}\n\n")
        else:
            parts.append(f"**{agent_name} ({model_name}) - FAILED:**\n{result.error or 'Unknown error'}\n\n")

    parts.append(PARALLEL_FOOTER)
    return "".join(parts)


def latest_output(steps: list[AgentStep], before_index: int) -> str | None:
    """Output of the nearest step before *before_index* that completed with text.

    Returns None while that answer is not yet knowable: the step right before
    *before_index* is not visible, or a step on the way back has not reached a
    terminal state.
    """
    by_index = {step.index: step for step in steps}
    if before_index - 1 not in by_index:
        return None

    for index in range(before_index - 1, -1, -1):
        step = by_index.get(index)
        if step is None:
            continue
        if not step.is_terminal:
            return None
        if step.was_skipped or step.error is not None:
            continue
        if step.output:
            return step.output
    return None


async def get_previous_output(
    recorder: StepRecorder,
    session_id: str,
    before_index: int,
    attempts: int = 3,
    delay: float = 0.5,
) -> str:
    async def _fetch() -> str | None:
        steps = await recorder.read_steps(session_id)
        return latest_output(steps, before_index)

    output = await poll(_fetch, attempts=attempts, delay=delay)
    if output is None:
        _log.warning(
            "No completed output before step %d of session %s after %d reads; continuing with empty context",
            before_index, session_id, attempts,
        )
        return ""
    return output
