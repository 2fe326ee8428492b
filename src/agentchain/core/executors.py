"""Sequential and parallel execution of one execution group."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from agentchain.control.retry import RetryHandler, poll
from agentchain.core.agent import Agent, ConnectionType
from agentchain.core.condition import evaluate_condition
from agentchain.core.context import build_parallel_prompt, build_prompt, get_previous_output
from agentchain.core.grouping import ExecutionGroup
from agentchain.core.result import AgentStep, ParallelResult
from agentchain.core.streaming import StreamingResponseConsumer, StreamOutcome
from agentchain.llm.provider import InvocationError, RateLimitError
from agentchain.modality.web_search import search_web
from agentchain.observe.events import EventBus
from agentchain.observe.tracer import EventType, TraceEvent, Tracer
from agentchain.recorder.base import StepRecorder

_log = logging.getLogger(__name__)

SKIP_REASON = "Condition not met"


@dataclass
class RunContext:
    """Collaborators and settings shared by every executor of one chain run."""

    session_id: str
    recorder: StepRecorder
    consumer: StreamingResponseConsumer
    tracer: Tracer = field(default_factory=Tracer)
    event_bus: EventBus = field(default_factory=EventBus)
    control: dict = field(default_factory=dict)
    agent_positions: dict[str, int] = field(default_factory=dict)
    created_steps: int = 0

    @property
    def read_attempts(self) -> int:
        return self.control.get("read_attempts", 3)

    @property
    def read_delay(self) -> float:
        return self.control.get("read_delay", 0.5)

    async def publish(self, event: TraceEvent):
        self.tracer.record(event)
        await self.event_bus.emit(event)

    def source_agent_index(self, agent: Agent) -> int | None:
        if agent.connection is None or agent.connection.source_agent_id is None:
            return None
        source = agent.connection.source_agent_id
        if source in self.agent_positions:
            return self.agent_positions[source]
        try:
            return int(source)
        except ValueError:
            return None

    async def create_step(
        self,
        agent: Agent,
        index: int,
        prompt: str,
        execution_group: int | None = None,
    ) -> str:
        step_id = await self.recorder.create_step(
            session_id=self.session_id,
            index=index,
            model=agent.model,
            prompt=prompt,
            name=agent.name,
            connection_type=agent.connection_type.value,
            connection_condition=agent.connection.condition if agent.connection else None,
            source_agent_index=self.source_agent_index(agent),
            execution_group=execution_group,
        )
        self.created_steps += 1
        return step_id

    async def attach_search_results(self, agent: Agent):
        attachments = agent.attachments
        if attachments.web_search and not attachments.web_search_results:
            attachments.web_search_results = await search_web(agent.prompt)

    async def step_end(self, step_id: str, agent: Agent, index: int, outcome: StreamOutcome, **data: Any):
        await self.publish(
            TraceEvent(
                event_type=EventType.STEP_END,
                step_id=step_id,
                agent_name=agent.display_name(index),
                data={
                    "index": index,
                    "success": True,
                    "model": agent.model,
                    "output_preview": outcome.content[:200],
                    "first_token_latency": outcome.first_token_latency,
                    **data,
                },
                tokens={"input": outcome.usage.input_tokens, "output": outcome.usage.output_tokens},
                cost=outcome.cost,
                duration_ms=outcome.duration * 1000,
            )
        )

    async def step_failed(self, step_id: str | None, agent: Agent, index: int, error: str, **data: Any):
        await self.publish(
            TraceEvent(
                event_type=EventType.STEP_END,
                step_id=step_id or "",
                agent_name=agent.display_name(index),
                data={"index": index, "success": False, "model": agent.model, "error": error, **data},
            )
        )


class SequentialExecutor:
    """Runs a group's agents one at a time; step i+1 starts only after step i returned."""

    def __init__(self, context: RunContext):
        self.context = context

    async def execute(self, group: ExecutionGroup, last_output: str) -> str:
        for offset, agent in enumerate(group.agents):
            index = group.start_index + offset

            if agent.connection_type == ConnectionType.CONDITIONAL:
                condition = agent.connection.condition or ""
                if not evaluate_condition(condition, last_output):
                    await self._skip(agent, index, condition)
                    continue

            prompt = build_prompt(agent.prompt, last_output) if index > 0 else agent.prompt
            last_output = await self._run_step(agent, index, prompt)

        return last_output

    async def _skip(self, agent: Agent, index: int, condition: str):
        ctx = self.context
        try:
            step_id = await ctx.create_step(agent, index, agent.prompt)
            await ctx.recorder.mark_skipped(step_id, SKIP_REASON)
        except Exception as e:
            _log.error("Could not record skip of step %d: %s", index, e)
            return
        _log.info("Skipping step %d (%s): condition %r not met", index, agent.display_name(index), condition)
        await ctx.publish(
            TraceEvent(
                event_type=EventType.STEP_SKIPPED,
                step_id=step_id,
                agent_name=agent.display_name(index),
                data={"index": index, "condition": condition, "reason": SKIP_REASON},
            )
        )

    async def _run_step(self, agent: Agent, index: int, prompt: str) -> str:
        """Run one agent to a terminal state and return the output the next step should see."""
        ctx = self.context
        try:
            step_id = await ctx.create_step(agent, index, prompt)
        except Exception as e:
            _log.error("Could not create step %d: %s", index, e)
            await ctx.step_failed(None, agent, index, str(e))
            return ""

        await ctx.publish(
            TraceEvent(
                event_type=EventType.STEP_START,
                step_id=step_id,
                agent_name=agent.display_name(index),
                data={"index": index, "model": agent.model, "task": prompt[:200], "parallel": False},
            )
        )

        await ctx.attach_search_results(agent)
        try:
            outcome = await ctx.consumer.consume(step_id, agent, prompt, index)
        except RateLimitError as e:
            # No retries outside parallel groups: a rate limit here is an invocation failure
            await self._mark_error(step_id, index, str(e))
            await ctx.step_failed(step_id, agent, index, str(e))
            return ""
        except InvocationError as e:
            await ctx.step_failed(step_id, agent, index, str(e))
            return ""

        await ctx.step_end(step_id, agent, index, outcome, parallel=False)
        return await get_previous_output(
            ctx.recorder,
            ctx.session_id,
            before_index=index + 1,
            attempts=ctx.read_attempts,
            delay=ctx.read_delay,
        )

    async def _mark_error(self, step_id: str, index: int, message: str):
        try:
            await self.context.recorder.mark_error(step_id, message)
        except Exception as e:
            _log.error("Could not record failure of step %d: %s", index, e)


class ParallelExecutor:
    """Runs every agent of a group concurrently, each with its own rate-limit retry loop."""

    def __init__(self, context: RunContext, retry: RetryHandler | None = None):
        self.context = context
        control = context.control
        self.retry = retry or RetryHandler(
            max_attempts=control.get("max_attempts", 3),
            base_delay=control.get("base_delay", 1.0),
            max_delay=control.get("max_delay", 10.0),
            jitter=control.get("jitter", 1.0),
        )

    async def execute(self, group: ExecutionGroup, shared_context: str) -> list[ParallelResult]:
        """Wait for every agent to settle, then return results in definition order."""
        execution_group = group.start_index
        started = time.time()

        settled = await asyncio.gather(
            *[
                self._run_agent(agent, group.start_index + offset, shared_context, execution_group)
                for offset, agent in enumerate(group.agents)
            ],
            return_exceptions=True,
        )

        results = []
        for offset, (agent, outcome) in enumerate(zip(group.agents, settled)):
            if isinstance(outcome, ParallelResult):
                results.append(outcome)
                continue
            if not isinstance(outcome, Exception):
                raise outcome
            index = group.start_index + offset
            _log.error("Step %d raised unexpectedly: %s", index, outcome)
            await self._fail_stray_step(index, str(outcome))
            results.append(
                ParallelResult(agent=agent, index=index, step_id=None, success=False, error=str(outcome), attempts=0)
            )

        succeeded = sum(1 for r in results if r.success)
        _log.info(
            "Parallel group at %d settled in %.2fs: %d succeeded, %d failed",
            group.start_index, time.time() - started, succeeded, len(results) - succeeded,
        )
        return await self._reconcile(list(results))

    async def _run_agent(
        self,
        agent: Agent,
        index: int,
        shared_context: str,
        execution_group: int,
    ) -> ParallelResult:
        ctx = self.context
        start = time.time()
        prompt = build_parallel_prompt(agent.prompt, shared_context)

        try:
            step_id = await ctx.create_step(agent, index, prompt, execution_group=execution_group)
        except Exception as e:
            _log.error("Could not create step %d: %s", index, e)
            await ctx.step_failed(None, agent, index, str(e), parallel=True)
            return ParallelResult(
                agent=agent, index=index, step_id=None, success=False,
                error=str(e), attempts=0, duration=time.time() - start,
            )

        await ctx.publish(
            TraceEvent(
                event_type=EventType.STEP_START,
                step_id=step_id,
                agent_name=agent.display_name(index),
                data={"index": index, "model": agent.model, "task": prompt[:200], "parallel": True},
            )
        )
        await ctx.attach_search_results(agent)

        attempts = 1

        async def _on_retry(attempt: int, error: Exception, delay: float):
            nonlocal attempts
            attempts = attempt + 1
            _log.warning(
                "Step %d hit a rate limit (attempt %d/%d), retrying in %.2fs",
                index, attempt, self.retry.max_attempts, delay,
            )
            await ctx.publish(
                TraceEvent(
                    event_type=EventType.RETRY,
                    step_id=step_id,
                    agent_name=agent.display_name(index),
                    data={"index": index, "retry_number": attempt, "delay": delay, "error": str(error)},
                )
            )

        try:
            outcome = await self.retry.execute_with_retry(
                ctx.consumer.consume, step_id, agent, prompt, index, on_retry=_on_retry,
            )
        except RateLimitError as e:
            message = f"Rate limit persisted after {attempts} attempts: {e}"
            _log.error("Step %d failed: %s", index, message)
            try:
                await ctx.recorder.mark_error(step_id, message)
            except Exception as record_error:
                _log.error("Could not record failure of step %d: %s", index, record_error)
            await ctx.step_failed(step_id, agent, index, message, parallel=True)
            return ParallelResult(
                agent=agent, index=index, step_id=step_id, success=False,
                error=message, attempts=attempts, duration=time.time() - start,
            )
        except InvocationError as e:
            await ctx.step_failed(step_id, agent, index, str(e), parallel=True)
            return ParallelResult(
                agent=agent, index=index, step_id=step_id, success=False,
                error=str(e), attempts=attempts, duration=time.time() - start,
            )

        await ctx.step_end(step_id, agent, index, outcome, parallel=True, attempts=attempts)
        return ParallelResult(
            agent=agent,
            index=index,
            step_id=step_id,
            result=outcome.content,
            success=True,
            attempts=attempts,
            duration=time.time() - start,
        )

    async def _fail_stray_step(self, index: int, message: str):
        """Close out a step left open by an agent that raised outside the retry loop."""
        ctx = self.context
        try:
            for step in await ctx.recorder.read_steps(ctx.session_id):
                if step.index == index and not step.is_terminal:
                    await ctx.recorder.mark_error(step.id, message)
        except Exception as e:
            _log.error("Could not record failure of step %d: %s", index, e)

    async def _reconcile(self, results: list[ParallelResult]) -> list[ParallelResult]:
        """Replace in-memory text with the persisted response of each successful step."""
        ctx = self.context
        wanted = {r.index for r in results if r.success}
        if not wanted:
            return results

        async def _fetch() -> dict[int, AgentStep] | None:
            steps = await ctx.recorder.read_steps(ctx.session_id)
            by_index = {s.index: s for s in steps if s.index in wanted}
            if all(i in by_index and by_index[i].is_complete for i in wanted):
                return by_index
            return None

        persisted = await poll(_fetch, attempts=ctx.read_attempts, delay=ctx.read_delay) or {}

        for result in results:
            if not result.success:
                continue
            step = persisted.get(result.index)
            if step is not None and step.is_complete and not step.was_skipped:
                result.result = step.output
            else:
                _log.warning(
                    "Step %d not yet persisted as complete; using streamed text", result.index,
                )
        return results
