"""Drive one agent invocation from dispatch to a terminal step state."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

from agentchain.core.agent import Agent
from agentchain.core.result import TokenUsage
from agentchain.llm.pricing import calculate_cost
from agentchain.llm.provider import (
    InvocationError,
    LLMError,
    ModelInvocationService,
    RateLimitError,
    StreamEventType,
    TransportError,
    is_rate_limit,
)
from agentchain.observe.tracer import EventType, TraceEvent
from agentchain.recorder.base import StepRecorder

_log = logging.getLogger(__name__)


@dataclass
class StreamOutcome:
    step_id: str
    content: str = ""
    thinking: str = ""
    usage: TokenUsage = field(default_factory=TokenUsage)
    cost: float = 0.0
    duration: float = 0.0
    first_token_latency: float | None = None


class StreamingResponseConsumer:
    """Consumes an incremental response channel and forwards its state to the recorder.

    Lifecycle per call: ``dispatched -> token* -> complete | error``.

    Rate-limit failures raise :class:`RateLimitError` and leave the step
    untouched so the caller may retry it. Every other failure marks the step
    errored before raising :class:`InvocationError` (or its
    :class:`TransportError` subclass).
    """

    def __init__(
        self,
        service: ModelInvocationService,
        recorder: StepRecorder,
        event_bus: Any = None,
    ):
        self.service = service
        self.recorder = recorder
        self.event_bus = event_bus

    async def consume(self, step_id: str, agent: Agent, prompt: str, index: int = 0) -> StreamOutcome:
        start = time.time()
        content = ""
        thinking = ""
        usage: TokenUsage | None = None
        cost: float | None = None
        first_token_latency: float | None = None
        channel = None

        try:
            channel = self.service.invoke(agent.model, prompt, agent.attachments)
            if channel is None:
                raise TransportError(f"No response channel available for {agent.model}")

            async for event in channel:
                if event.type == StreamEventType.TOKEN:
                    if not event.content:
                        continue
                    if first_token_latency is None:
                        first_token_latency = time.time() - start
                    content += event.content
                    await self.recorder.update_streaming(step_id, content)
                    await self._emit(EventType.TOKEN, step_id, agent, index, {"content": event.content})

                elif event.type == StreamEventType.THINKING:
                    thinking += event.thinking or ""
                    await self.recorder.update_thinking(step_id, thinking, event.is_thinking)
                    await self._emit(
                        EventType.THINKING, step_id, agent, index,
                        {"thinking": event.thinking or "", "is_thinking": event.is_thinking},
                    )

                elif event.type == StreamEventType.COMPLETE:
                    # Final text is authoritative over the token accumulation
                    if event.content is not None:
                        content = event.content
                    usage = event.usage
                    cost = event.cost
                    break

                elif event.type == StreamEventType.ERROR:
                    message = event.error or "Unknown streaming error"
                    if is_rate_limit(message, event.status_code):
                        raise RateLimitError(message, status_code=event.status_code or 429)
                    raise InvocationError(message, status_code=event.status_code)

        except RateLimitError:
            raise
        except Exception as e:
            if is_rate_limit(e):
                raise RateLimitError(str(e)) from e
            error = _as_invocation_error(e)
            await self._record_error(step_id, agent, index, str(error))
            if error is e:
                raise
            raise error from e
        finally:
            aclose = getattr(channel, "aclose", None)
            if aclose is not None:
                await aclose()

        usage = usage or TokenUsage()
        if cost is None:
            cost = calculate_cost(agent.model, usage.input_tokens, usage.output_tokens) if usage.total else 0.0

        try:
            await self.recorder.mark_complete(step_id, content, usage=usage, cost=cost, thinking=thinking or None)
        except Exception as e:
            message = f"Failed to record completion: {e}"
            await self._record_error(step_id, agent, index, message)
            raise InvocationError(message) from e

        return StreamOutcome(
            step_id=step_id,
            content=content,
            thinking=thinking,
            usage=usage,
            cost=cost,
            duration=time.time() - start,
            first_token_latency=first_token_latency,
        )

    async def _record_error(self, step_id: str, agent: Agent, index: int, message: str):
        _log.error("Step %d (%s) failed: %s", index, agent.model, message)
        try:
            await self.recorder.mark_error(step_id, message)
        except Exception as e:
            _log.error("Could not record failure of step %d: %s", index, e)
        await self._emit(EventType.ERROR, step_id, agent, index, {"error": message})

    async def _emit(self, event_type: EventType, step_id: str, agent: Agent, index: int, data: dict):
        if self.event_bus is None:
            return
        await self.event_bus.emit(
            TraceEvent(
                event_type=event_type,
                step_id=step_id,
                agent_name=agent.display_name(index),
                data={"index": index, **data},
            )
        )


def _as_invocation_error(error: Exception) -> InvocationError:
    if isinstance(error, InvocationError):
        return error
    if isinstance(error, LLMError):
        return InvocationError(str(error), status_code=error.status_code)
    return TransportError(f"{type(error).__name__}: {error}")
