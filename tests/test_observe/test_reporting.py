"""Tests for the event bus, logging setup, run export and cost tables."""

from __future__ import annotations

import json
import logging

import pytest
from rich.console import Console

from agentchain.core.result import AgentStep, ChainResult, TokenUsage
from agentchain.observe.cost_report import print_cost_report, steps_table
from agentchain.observe.events import EventBus
from agentchain.observe.export import export_run_dict, export_run_json
from agentchain.observe.logs import JsonFormatter, configure_logging
from agentchain.observe.tracer import EventType, TraceEvent


def _result():
    done = AgentStep(id="s1", session_id="sess", index=0, model="fake/a", prompt="p", name="Writer",
                     response="text", is_complete=True, tokens=TokenUsage(10, 5), cost=0.001)
    skipped = AgentStep(id="s2", session_id="sess", index=1, model="fake/b", prompt="p",
                        was_skipped=True, skip_reason="Condition not met")
    failed = AgentStep(id="s3", session_id="sess", index=2, model="fake/c", prompt="p",
                       error="boom", execution_group=2)
    return ChainResult(session_id="sess", steps=[done, skipped, failed], output="text", duration=1.5)


class TestEventBus:
    @pytest.mark.asyncio
    async def test_sync_and_async_subscribers(self, event_bus):
        seen = []

        async def on_async(event):
            seen.append(("async", event.event_type))

        event_bus.subscribe_sync(lambda e: seen.append(("sync", e.event_type)))
        event_bus.subscribe(on_async)
        await event_bus.emit(TraceEvent(event_type=EventType.STEP_START))

        assert seen == [("sync", EventType.STEP_START), ("async", EventType.STEP_START)]

    @pytest.mark.asyncio
    async def test_subscriber_errors_are_logged(self, event_bus, caplog):
        def broken(event):
            raise ValueError("subscriber bug")

        seen = []
        event_bus.subscribe_sync(broken)
        event_bus.subscribe_sync(seen.append)
        with caplog.at_level("ERROR", logger="agentchain"):
            await event_bus.emit(TraceEvent(event_type=EventType.TOKEN))

        assert len(seen) == 1
        assert "Event subscriber failed" in caplog.text

    @pytest.mark.asyncio
    async def test_clear(self, event_bus):
        seen = []
        event_bus.subscribe_sync(seen.append)
        event_bus.clear()
        await event_bus.emit(TraceEvent(event_type=EventType.TOKEN))
        assert seen == []


@pytest.mark.usefixtures("package_logger")
class TestLogging:
    def test_configure_pretty(self):
        logger = configure_logging("debug", "pretty", console=Console(file=None))
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert logger.propagate is False

    def test_reconfigure_replaces_handler(self):
        configure_logging("info", "pretty")
        logger = configure_logging("warning", "json")
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JsonFormatter)
        assert logger.level == logging.WARNING

    def test_json_formatter(self):
        record = logging.LogRecord("agentchain.core", logging.WARNING, __file__, 1, "step %d slow", (3,), None)
        payload = json.loads(JsonFormatter().format(record))
        assert payload["level"] == "warning"
        assert payload["message"] == "step 3 slow"
        assert payload["logger"] == "agentchain.core"


class TestExport:
    def test_export_run_dict(self, tracer):
        tracer.start()
        tracer.record(TraceEvent(event_type=EventType.CHAIN_START))
        data = export_run_dict(_result(), tracer)
        assert data["session_id"] == "sess"
        assert [s["status"] for s in data["steps"]] == ["complete", "skipped", "error"]
        assert data["events"][0]["event_type"] == "chain_start"

    def test_export_run_json(self, tracer, tmp_path):
        out = tmp_path / "out" / "run.json"
        export_run_json(_result(), tracer, out)
        assert json.loads(out.read_text())["duration"] == 1.5


class TestCostReport:
    def test_steps_table(self):
        console = Console(record=True, width=200)
        console.print(steps_table(_result().steps))
        text = console.export_text()
        assert "Writer" in text
        assert "Agent 2" in text
        assert "Condition not met" in text
        assert "boom" in text
        assert "direct #2" in text

    def test_print_cost_report_totals(self):
        console = Console(record=True, width=200)
        print_cost_report(_result(), console=console)
        text = console.export_text()
        assert "Cost Summary" in text
        assert "Total" in text
        assert "$0.0010" in text
