#!/usr/bin/env python3
"""
Live demo of AgentChain: runs a chain with a parallel review group
against a scripted model service (no API key needed).
"""
import asyncio

from rich.console import Console

from agentchain import Chain
from agentchain.core.result import TokenUsage
from agentchain.llm.provider import ModelInvocationService, RateLimitError, StreamEvent
from agentchain.observe.cost_report import print_cost_report
from agentchain.observe.logs import configure_logging
from agentchain.observe.tracer import EventType, TraceEvent

SCRIPTED_RESPONSES = {
    "Drafter": [
        "Meet Margin, the notes app that works everywhere, even on a plane. "
        "Everything syncs the moment you're back online."
    ],
    "Legal Reviewer": [
        "'Works everywhere' is too broad; say 'works offline on desktop and mobile'."
    ],
    # First call is rate limited to show the retry path
    "Tone Reviewer": [
        RateLimitError("429 Too Many Requests"),
        "Open with the reader's problem: 'Lost your notes when the Wi-Fi dropped?'",
    ],
    "Editor": [
        "Lost your notes when the Wi-Fi dropped? Meet Margin, the notes app that works "
        "offline on desktop and mobile and syncs the moment you're back online."
    ],
}


class ScriptedService(ModelInvocationService):
    """Streams canned answers word by word, keyed by the agent named in the prompt."""

    def __init__(self, responses: dict):
        self.responses = {name: list(answers) for name, answers in responses.items()}
        self.by_prompt: dict[str, str] = {}

    async def invoke(self, model, prompt, attachments=None):
        name = next(n for p, n in self.by_prompt.items() if prompt.endswith(p))
        answer = self.responses[name].pop(0)
        if isinstance(answer, Exception):
            raise answer
        for word in answer.split(" "):
            await asyncio.sleep(0.02)
            yield StreamEvent.token(word + " ")
        yield StreamEvent.complete(answer, usage=TokenUsage(input_tokens=350, output_tokens=120), cost=0.0004)


CONFIG = {
    "chain": {
        "name": "Parallel Review Demo",
        "llm": "openai/gpt-4o-mini",
        "control": {"base_delay": 0.2, "jitter": 0.1, "read_delay": 0.05},
    },
    "agents": [
        {"id": "draft", "name": "Drafter", "prompt": "Draft a short product announcement."},
        {"id": "legal", "name": "Legal Reviewer", "prompt": "Flag misleading claims.",
         "connection": {"type": "parallel"}},
        {"id": "tone", "name": "Tone Reviewer", "prompt": "Make the tone friendlier.",
         "connection": {"type": "parallel"}},
        {"id": "final", "name": "Editor", "prompt": "Apply the feedback.",
         "connection": {"type": "conditional", "condition": "contains('parallel analysis')"}},
    ],
}


def main():
    console = Console()
    console.print("=" * 60)
    console.print("  ⛓ AgentChain: Live Demo (scripted model, no API key)")
    console.print("=" * 60)
    console.print()

    service = ScriptedService(SCRIPTED_RESPONSES)
    chain = Chain.from_dict(CONFIG, service=service)
    configure_logging("error")
    service.by_prompt = {agent.prompt: agent.name for agent in chain.agents}

    def on_event(event: TraceEvent):
        if event.event_type == EventType.STEP_START:
            console.print(f"  [bold]▸[/bold] [cyan]{event.agent_name}[/cyan] started")
        elif event.event_type == EventType.STEP_END and event.data.get("success"):
            console.print(f"    [green]✓[/green] {event.agent_name} ({event.duration_ms / 1000:.1f}s)")
        elif event.event_type == EventType.STEP_SKIPPED:
            console.print(f"  [yellow]↷[/yellow] {event.agent_name} skipped")
        elif event.event_type == EventType.RETRY:
            console.print(f"    [yellow]⟳[/yellow] {event.agent_name} rate limited, retrying")

    chain.event_bus.subscribe_sync(on_event)
    result = chain.run()

    console.print()
    console.print("[bold]━━━ FINAL OUTPUT ━━━[/bold]")
    console.print(result.output)
    console.print()
    print_cost_report(result, console=console)
    console.print(f"  Duration: {result.duration:.2f}s")


if __name__ == "__main__":
    main()
