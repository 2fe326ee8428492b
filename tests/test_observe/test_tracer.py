"""Tests for tracing and cost breakdown."""

from __future__ import annotations

import json

from agentchain.observe.tracer import EventType, TraceEvent, Tracer


class TestTracer:
    def test_record_event(self, tracer):
        tracer.record(TraceEvent(event_type=EventType.CHAIN_START))
        assert len(tracer.events) == 1

    def test_get_timeline(self, tracer):
        tracer.record(TraceEvent(event_type=EventType.STEP_START, step_id="s1", agent_name="Writer"))
        timeline = tracer.get_timeline()
        assert timeline[0]["event_type"] == "step_start"
        assert timeline[0]["agent_name"] == "Writer"

    def test_events_of(self, tracer):
        tracer.record(TraceEvent(event_type=EventType.RETRY))
        tracer.record(TraceEvent(event_type=EventType.STEP_END))
        tracer.record(TraceEvent(event_type=EventType.RETRY))
        assert len(tracer.events_of(EventType.RETRY)) == 2

    def test_elapsed(self):
        tracer = Tracer()
        assert tracer.elapsed() == 0.0
        tracer.start()
        assert tracer.elapsed() >= 0.0

    def test_cost_breakdown(self, tracer):
        tracer.record(
            TraceEvent(
                event_type=EventType.STEP_END,
                step_id="s1",
                agent_name="Researcher",
                data={"model": "openai/gpt-4o"},
                tokens={"input": 100, "output": 50},
                cost=0.01,
            )
        )
        tracer.record(
            TraceEvent(
                event_type=EventType.STEP_END,
                step_id="s2",
                agent_name="Writer",
                data={"model": "openai/gpt-4o"},
                tokens={"input": 10, "output": 5},
                cost=0.002,
            )
        )
        tracer.record(TraceEvent(event_type=EventType.STEP_SKIPPED, step_id="s3"))

        breakdown = tracer.get_cost_breakdown()
        assert abs(breakdown["total_cost"] - 0.012) < 1e-9
        assert breakdown["total_tokens"] == {"input": 110, "output": 55}
        assert set(breakdown["by_agent"]) == {"Researcher", "Writer"}
        assert breakdown["by_model"]["openai/gpt-4o"]["tokens"]["input"] == 110
        assert "s3" not in breakdown["by_step"]

    def test_export_json(self, tracer, tmp_path):
        tracer.start()
        tracer.record(TraceEvent(event_type=EventType.CHAIN_END))
        out = tmp_path / "traces" / "run.json"
        tracer.export_json(str(out))
        data = json.loads(out.read_text())
        assert data["events"][0]["event_type"] == "chain_end"
        assert "cost_breakdown" in data
