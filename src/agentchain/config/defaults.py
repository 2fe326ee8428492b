"""Default configuration values."""

from __future__ import annotations

import copy

DEFAULTS = {
    "chain": {
        "name": "AgentChain",
        "description": "",
        "llm": "openai/gpt-4o-mini",
        "temperature": 0.7,
        "max_tokens": 4096,
        "recorder": {
            "backend": "memory",
            "path": ".agentchain/steps.db",
        },
        "observe": {
            "trace": True,
            "cost_tracking": True,
            "log_level": "info",
            "log_format": "pretty",
        },
        "control": {
            "max_attempts": 3,
            "base_delay": 1.0,
            "max_delay": 10.0,
            "jitter": 1.0,
            "read_attempts": 3,
            "read_delay": 0.5,
        },
    },
}


def merge_with_defaults(config: dict) -> dict:
    return _deep_merge(copy.deepcopy(DEFAULTS), config)


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base. Returns a new dict."""
    merged = {}
    for key in set(base) | set(override):
        if key in base and key in override:
            bv, ov = base[key], override[key]
            if isinstance(bv, dict) and isinstance(ov, dict):
                merged[key] = _deep_merge(bv, ov)
            else:
                merged[key] = copy.deepcopy(ov)
        elif key in override:
            merged[key] = copy.deepcopy(override[key])
        else:
            merged[key] = copy.deepcopy(base[key])
    return merged
