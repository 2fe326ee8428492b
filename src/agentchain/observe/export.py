"""Trace and run export utilities."""

from __future__ import annotations

import json
from pathlib import Path

from agentchain.core.result import ChainResult
from agentchain.observe.tracer import Tracer


def export_run_dict(result: ChainResult, tracer: Tracer) -> dict:
    return {
        "session_id": result.session_id,
        "start_time": tracer.start_time,
        "duration": result.duration,
        "steps": [s.to_dict() for s in result.steps],
        "events": tracer.get_timeline(),
        "cost_breakdown": tracer.get_cost_breakdown(),
    }


def export_run_json(result: ChainResult, tracer: Tracer, path: str | Path):
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(json.dumps(export_run_dict(result, tracer), indent=2, default=str))
