"""Execution tracing for observability and replay."""

from __future__ import annotations

import json
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class EventType(str, Enum):
    CHAIN_START = "chain_start"
    CHAIN_END = "chain_end"
    GROUP_START = "group_start"
    GROUP_END = "group_end"
    STEP_START = "step_start"
    STEP_END = "step_end"
    STEP_SKIPPED = "step_skipped"
    TOKEN = "token"
    THINKING = "thinking"
    RETRY = "retry"
    ERROR = "error"


@dataclass
class TraceEvent:
    event_type: EventType
    timestamp: float = field(default_factory=time.time)
    step_id: str = ""
    agent_name: str = ""
    data: dict = field(default_factory=dict)
    tokens: dict = field(default_factory=dict)
    cost: float = 0.0
    duration_ms: float = 0.0

    def to_dict(self) -> dict:
        return {
            "event_type": self.event_type.value,
            "timestamp": self.timestamp,
            "step_id": self.step_id,
            "agent_name": self.agent_name,
            "data": self.data,
            "tokens": self.tokens,
            "cost": self.cost,
            "duration_ms": self.duration_ms,
        }


class Tracer:

    def __init__(self):
        self.events: list[TraceEvent] = []
        self.start_time: float = 0.0
        self._lock = threading.Lock()

    def record(self, event: TraceEvent):
        with self._lock:
            self.events.append(event)

    def start(self):
        self.start_time = time.time()

    def elapsed(self) -> float:
        if self.start_time:
            return time.time() - self.start_time
        return 0.0

    def get_timeline(self) -> list[dict]:
        with self._lock:
            return [e.to_dict() for e in self.events]

    def events_of(self, event_type: EventType) -> list[TraceEvent]:
        with self._lock:
            return [e for e in self.events if e.event_type == event_type]

    def get_cost_breakdown(self) -> dict:
        total_cost = 0.0
        total_input = 0
        total_output = 0
        by_agent: dict[str, dict] = {}
        by_model: dict[str, dict] = {}
        by_step: dict[str, dict] = {}

        with self._lock:
            events = list(self.events)

        for e in events:
            if e.cost <= 0 and not e.tokens:
                continue

            total_cost += e.cost
            inp = e.tokens.get("input", 0)
            out = e.tokens.get("output", 0)
            total_input += inp
            total_output += out

            for key, bucket in ((e.agent_name, by_agent), (e.data.get("model", ""), by_model), (e.step_id, by_step)):
                if not key:
                    continue
                if key not in bucket:
                    bucket[key] = {"cost": 0.0, "tokens": {"input": 0, "output": 0}}
                bucket[key]["cost"] += e.cost
                bucket[key]["tokens"]["input"] += inp
                bucket[key]["tokens"]["output"] += out

        return {
            "total_cost": total_cost,
            "total_tokens": {"input": total_input, "output": total_output},
            "by_agent": by_agent,
            "by_model": by_model,
            "by_step": by_step,
        }

    def export_json(self, path: str):
        data = {
            "start_time": self.start_time,
            "duration": self.elapsed(),
            "events": self.get_timeline(),
            "cost_breakdown": self.get_cost_breakdown(),
        }
        out_path = Path(path)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(json.dumps(data, indent=2, default=str))
