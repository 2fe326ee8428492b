"""Static per-1K-token pricing used when litellm has no cost data for a model."""

from __future__ import annotations

import logging
import re

_log = logging.getLogger(__name__)

MODEL_PRICING = {
    "gpt-4o": {"input": 0.0025, "output": 0.01},
    "gpt-4o-mini": {"input": 0.00015, "output": 0.0006},
    "gpt-4-turbo": {"input": 0.01, "output": 0.03},
    "gpt-4": {"input": 0.03, "output": 0.06},
    "gpt-3.5-turbo": {"input": 0.0005, "output": 0.0015},
    "claude-3-5-sonnet-20241022": {"input": 0.003, "output": 0.015},
    "claude-3-5-haiku-20241022": {"input": 0.00025, "output": 0.00125},
    "claude-3-opus-20240229": {"input": 0.015, "output": 0.075},
    "grok-beta": {"input": 0.005, "output": 0.015},
}

DEFAULT_PRICING = {"input": 0.001, "output": 0.002}

_PROVIDER_PREFIX = re.compile(r"^(openai|anthropic|xai)[-/]")


def normalize_model(model: str) -> str:
    return _PROVIDER_PREFIX.sub("", model.lower())


def calculate_cost(model: str, prompt_tokens: int, completion_tokens: int) -> float:
    pricing = MODEL_PRICING.get(normalize_model(model))
    if pricing is None:
        _log.warning("Unknown model pricing for %s, using default rates", model)
        pricing = DEFAULT_PRICING

    input_cost = prompt_tokens / 1000 * pricing["input"]
    output_cost = completion_tokens / 1000 * pricing["output"]
    return round(input_cost + output_cost, 5)
