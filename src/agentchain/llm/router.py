"""Streaming model invocation and cost tracking via litellm."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, AsyncIterator

import litellm
from litellm import acompletion

from agentchain.core.agent import Attachments
from agentchain.core.result import TokenUsage
from agentchain.llm.pricing import calculate_cost
from agentchain.llm.provider import (
    InvocationError,
    ModelInvocationService,
    RateLimitError,
    StreamEvent,
    is_rate_limit,
)
from agentchain.modality.web_search import format_search_results

# Suppress litellm's verbose logging
litellm.suppress_debug_info = True


@dataclass
class CallRecord:
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    cost: float = 0.0
    latency_ms: float = 0.0
    success: bool = True
    error: str | None = None


def build_messages(prompt: str, attachments: Attachments | None = None) -> list[dict]:
    """Single user message; images become image_url parts, other payloads are appended as text."""
    text = prompt
    if attachments is not None:
        if attachments.audio_transcription:
            text += f"\n\nAudio transcription:\n{attachments.audio_transcription}"
        if attachments.web_search_results:
            text += f"\n\nWeb search results:\n{format_search_results(attachments.web_search_results)}"

    if attachments is None or not attachments.images:
        return [{"role": "user", "content": text}]

    content: list[dict[str, Any]] = [{"type": "text", "text": text}]
    for image in attachments.images:
        content.append({"type": "image_url", "image_url": {"url": image["url"]}})
    return [{"role": "user", "content": content}]


class LLMRouter(ModelInvocationService):

    def __init__(
        self,
        default_model: str = "openai/gpt-4o-mini",
        cost_tracking: bool = True,
        temperature: float = 0.7,
        max_tokens: int = 4096,
    ):
        self.default_model = default_model
        self.cost_tracking = cost_tracking
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.total_tokens = {"input": 0, "output": 0}
        self.total_cost = 0.0
        self.call_log: list[CallRecord] = []

    async def invoke(
        self,
        model: str,
        prompt: str,
        attachments: Attachments | None = None,
    ) -> AsyncIterator[StreamEvent]:
        current_model = model or self.default_model
        start_ms = time.time() * 1000

        try:
            response = await acompletion(
                model=current_model,
                messages=build_messages(prompt, attachments),
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                stream=True,
                stream_options={"include_usage": True},
            )
        except Exception as e:
            error_str = f"{current_model}: {type(e).__name__}: {e}"
            self._record_failure(current_model, start_ms, error_str)
            status_code = getattr(e, "status_code", None)
            if is_rate_limit(e, status_code if isinstance(status_code, int) else None):
                raise RateLimitError(error_str) from e
            raise InvocationError(
                error_str,
                status_code=status_code if isinstance(status_code, int) else None,
            ) from e

        content_parts: list[str] = []
        usage: TokenUsage | None = None

        try:
            async for chunk in response:
                choices = getattr(chunk, "choices", None) or []
                if choices:
                    delta = choices[0].delta
                    reasoning = getattr(delta, "reasoning_content", None)
                    if reasoning:
                        yield StreamEvent.thinking_fragment(reasoning)
                    text = getattr(delta, "content", None)
                    if text:
                        content_parts.append(text)
                        yield StreamEvent.token(text)

                chunk_usage = getattr(chunk, "usage", None)
                if chunk_usage:
                    usage = TokenUsage(
                        input_tokens=getattr(chunk_usage, "prompt_tokens", 0) or 0,
                        output_tokens=getattr(chunk_usage, "completion_tokens", 0) or 0,
                    )
        except Exception as e:
            error_str = f"{current_model}: {type(e).__name__}: {e}"
            self._record_failure(current_model, start_ms, error_str)
            status_code = getattr(e, "status_code", None)
            yield StreamEvent.failure(
                error_str,
                status_code=status_code if isinstance(status_code, int) else None,
            )
            return

        usage = usage or TokenUsage()
        cost = self._compute_cost(current_model, usage)

        self.total_tokens["input"] += usage.input_tokens
        self.total_tokens["output"] += usage.output_tokens
        self.total_cost += cost
        self.call_log.append(
            CallRecord(
                model=current_model,
                input_tokens=usage.input_tokens,
                output_tokens=usage.output_tokens,
                cost=cost,
                latency_ms=time.time() * 1000 - start_ms,
                success=True,
            )
        )

        yield StreamEvent.complete("".join(content_parts), usage=usage, cost=cost)

    def _compute_cost(self, model: str, usage: TokenUsage) -> float:
        if not self.cost_tracking or usage.total == 0:
            return 0.0
        try:
            prompt_cost, completion_cost = litellm.cost_per_token(
                model=model,
                prompt_tokens=usage.input_tokens,
                completion_tokens=usage.output_tokens,
            )
            return float(prompt_cost) + float(completion_cost)
        except Exception:
            # litellm raises for models missing from its cost map
            return calculate_cost(model, usage.input_tokens, usage.output_tokens)

    def _record_failure(self, model: str, start_ms: float, error: str):
        self.call_log.append(
            CallRecord(
                model=model,
                latency_ms=time.time() * 1000 - start_ms,
                success=False,
                error=error,
            )
        )

    def get_cost_summary(self) -> dict:
        by_model: dict[str, dict] = {}
        for record in self.call_log:
            if record.model not in by_model:
                by_model[record.model] = {"cost": 0.0, "tokens": {"input": 0, "output": 0}, "calls": 0}
            by_model[record.model]["cost"] += record.cost
            by_model[record.model]["tokens"]["input"] += record.input_tokens
            by_model[record.model]["tokens"]["output"] += record.output_tokens
            by_model[record.model]["calls"] += 1

        return {
            "total_cost": self.total_cost,
            "total_tokens": self.total_tokens.copy(),
            "by_model": by_model,
            "call_count": len(self.call_log),
        }
