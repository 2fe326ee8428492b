"""Chain orchestrator: group the agent list, then run the groups in order."""

from __future__ import annotations

import copy
import logging
import time

from agentchain.control.retry import RetryHandler, poll
from agentchain.core.agent import Agent
from agentchain.core.context import format_parallel_results
from agentchain.core.executors import ParallelExecutor, RunContext, SequentialExecutor
from agentchain.core.grouping import ExecutionGroup, group_agents
from agentchain.core.result import AgentStep, ChainResult
from agentchain.core.streaming import StreamingResponseConsumer
from agentchain.llm.provider import ModelInvocationService
from agentchain.observe.events import EventBus
from agentchain.observe.tracer import EventType, TraceEvent, Tracer
from agentchain.recorder.base import StepRecorder

_log = logging.getLogger(__name__)


class ChainOrchestrator:
    """Runs an agent list as one chain within a session.

    Groups always run strictly one after another and the output of a settled
    group is what the next group sees. A failing agent or group never stops
    the chain; outcomes are reported per step.

    Callers must not run two orchestrators on the same session at once.
    """

    def __init__(
        self,
        service: ModelInvocationService,
        recorder: StepRecorder,
        tracer: Tracer | None = None,
        event_bus: EventBus | None = None,
        control: dict | None = None,
        retry: RetryHandler | None = None,
    ):
        self.service = service
        self.recorder = recorder
        self.tracer = tracer or Tracer()
        self.event_bus = event_bus or EventBus()
        self.control = control or {}
        self.retry = retry

    async def run(self, agents: list[Agent], session_id: str) -> ChainResult:
        # Snapshot: edits to the caller's list do not reach a running chain
        agents = copy.deepcopy(list(agents))
        groups = group_agents(agents)
        start_time = time.time()

        context = RunContext(
            session_id=session_id,
            recorder=self.recorder,
            consumer=StreamingResponseConsumer(self.service, self.recorder, event_bus=self.event_bus),
            tracer=self.tracer,
            event_bus=self.event_bus,
            control=self.control,
            agent_positions={agent.id: i for i, agent in enumerate(agents)},
        )
        sequential = SequentialExecutor(context)
        parallel = ParallelExecutor(context, retry=self.retry)

        await context.publish(
            TraceEvent(
                event_type=EventType.CHAIN_START,
                data={
                    "session_id": session_id,
                    "agent_count": len(agents),
                    "groups": [{"type": g.type.value, "size": len(g.agents), "start_index": g.start_index} for g in groups],
                },
            )
        )

        last_output = ""
        for group_number, group in enumerate(groups):
            await context.publish(
                TraceEvent(
                    event_type=EventType.GROUP_START,
                    data={"group": group_number, "type": group.type.value, "start_index": group.start_index,
                          "size": len(group.agents)},
                )
            )
            group_start = time.time()
            try:
                last_output = await self._run_group(group, last_output, sequential, parallel)
            except Exception as e:
                _log.exception("Group %d starting at step %d failed", group_number, group.start_index)
                await context.publish(
                    TraceEvent(
                        event_type=EventType.ERROR,
                        data={"group": group_number, "start_index": group.start_index, "error": str(e)},
                    )
                )
                last_output = ""

            await context.publish(
                TraceEvent(
                    event_type=EventType.GROUP_END,
                    data={"group": group_number, "type": group.type.value, "output_length": len(last_output)},
                    duration_ms=(time.time() - group_start) * 1000,
                )
            )

        steps = await self._settled_steps(context)
        duration = time.time() - start_time
        await context.publish(
            TraceEvent(
                event_type=EventType.CHAIN_END,
                data={
                    "session_id": session_id,
                    "completed": sum(1 for s in steps if s.is_complete),
                    "failed": sum(1 for s in steps if s.error is not None),
                    "skipped": sum(1 for s in steps if s.was_skipped),
                },
                duration_ms=duration * 1000,
            )
        )

        return ChainResult(session_id=session_id, steps=steps, output=last_output, duration=duration)

    async def _run_group(
        self,
        group: ExecutionGroup,
        last_output: str,
        sequential: SequentialExecutor,
        parallel: ParallelExecutor,
    ) -> str:
        if not group.is_parallel:
            return await sequential.execute(group, last_output)

        _log.info("Running %d agents in parallel from step %d", len(group.agents), group.start_index)
        results = await parallel.execute(group, last_output)
        return format_parallel_results(results)

    async def _settled_steps(self, context: RunContext) -> list[AgentStep]:
        async def _fetch() -> list[AgentStep] | None:
            steps = await self.recorder.read_steps(context.session_id)
            if len(steps) >= context.created_steps and all(s.is_terminal for s in steps):
                return steps
            return None

        steps = await poll(_fetch, attempts=context.read_attempts, delay=context.read_delay)
        if steps is None:
            _log.warning("Recorded steps of session %s did not settle; reporting latest read", context.session_id)
            steps = await self.recorder.read_steps(context.session_id)
        return steps
