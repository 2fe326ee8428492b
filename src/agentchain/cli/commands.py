"""CLI entry points for agentchain."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from agentchain._version import __version__

app = typer.Typer(
    name="agentchain",
    help="AgentChain: run a list of model-backed agents as one chain.",
    no_args_is_help=True,
)
console = Console()

SCAFFOLD_YAML = """\
chain:
  name: "{name}"
  llm: "openai/gpt-4o-mini"
  recorder:
    backend: sqlite
    path: .agentchain/steps.db

agents:
  - id: outline
    name: Outliner
    prompt: "Outline the key points of a short article about tide pools."

  - id: check
    name: Fact Checker
    prompt: "List any claims in the outline that need a source."
    connection:
      type: parallel

  - id: style
    name: Style Reviewer
    prompt: "Suggest a tone and audience for the article."
    connection:
      type: parallel

  - id: draft
    name: Writer
    prompt: "Write the article using the outline and reviews."
    connection:
      type: conditional
      condition: "length > 50"
"""


@app.command()
def init(
    path: str = typer.Argument("chain.yaml", help="Where to write the chain definition"),
    name: str = typer.Option("My Chain", "--name", "-n", help="Chain name"),
):
    """Create a starter chain definition."""
    target = Path(path)
    if target.exists():
        console.print(f"[red]Error:[/red] '{path}' already exists.")
        raise typer.Exit(code=1)

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(SCAFFOLD_YAML.format(name=name), encoding="utf-8")

    console.print(
        Panel(
            f"[bold green]✅ Chain '{name}' created at {path}[/bold green]\n\n"
            f"[bold]Next steps:[/bold]\n"
            f"  export OPENAI_API_KEY=your-key  [dim]# or point llm at ollama/...[/dim]\n"
            f"  agentchain run --yaml {path}",
            title="⛓ AgentChain",
            border_style="green",
        )
    )


@app.command()
def run(
    yaml_path: str = typer.Option("chain.yaml", "--yaml", "-y", help="Path to the chain definition"),
    session_id: str = typer.Option(None, "--session", "-s", help="Session id (generated when omitted)"),
    db: str = typer.Option(None, "--db", help="Record steps to this SQLite file"),
    trace_path: str = typer.Option(None, "--trace", "-t", help="Export the run and its trace as JSON"),
):
    """Run the chain defined in a YAML file."""
    from agentchain.config.loader import ConfigError
    from agentchain.core.chain import Chain
    from agentchain.observe.cost_report import print_cost_report
    from agentchain.observe.export import export_run_json
    from agentchain.observe.logs import configure_logging
    from agentchain.observe.tracer import EventType, TraceEvent
    from agentchain.recorder.sqlite import SQLiteStepRecorder

    recorder = SQLiteStepRecorder(db_path=db) if db else None
    try:
        chain = Chain.from_yaml(yaml_path, recorder=recorder)
    except ConfigError as e:
        console.print(f"[red]Configuration Error:[/red] {e}")
        raise typer.Exit(code=1)
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    configure_logging(chain.observe.get("log_level", "info"), chain.observe.get("log_format", "pretty"))
    groups = chain.plan()
    console.print(f"\n[bold]⛓ AgentChain[/bold] v{__version__}")
    console.print(
        f"[dim]Chain:[/dim] {chain.name} "
        f"[dim]|[/dim] [dim]Agents:[/dim] {len(chain.agents)} "
        f"[dim]|[/dim] [dim]Groups:[/dim] {len(groups)}"
    )
    console.print()

    total = len(chain.agents)

    def on_event(event: TraceEvent):
        index = event.data.get("index")
        if event.event_type == EventType.STEP_START:
            mode = " [magenta]parallel[/magenta]" if event.data.get("parallel") else ""
            console.print(
                f"  [bold]▸[/bold] Step {index + 1}/{total}: "
                f"[cyan]{event.agent_name}[/cyan] [dim][{event.data.get('model', '?')}][/dim]{mode}"
            )
        elif event.event_type == EventType.STEP_END:
            if event.data.get("success"):
                duration = event.duration_ms / 1000 if event.duration_ms else 0
                tokens = event.tokens.get("input", 0) + event.tokens.get("output", 0)
                console.print(
                    f"    [green]✓[/green] {event.agent_name} done "
                    f"({duration:.1f}s, {tokens:,} tokens, ${event.cost:.4f})"
                )
            else:
                console.print(f"    [red]✗[/red] {event.agent_name}: {event.data.get('error', 'Unknown')}")
        elif event.event_type == EventType.STEP_SKIPPED:
            console.print(
                f"  [yellow]↷[/yellow] Step {index + 1}/{total}: {event.agent_name} skipped "
                f"[dim]({event.data.get('condition')})[/dim]"
            )
        elif event.event_type == EventType.RETRY:
            console.print(f"    [yellow]⟳ Retry {event.data.get('retry_number')} for {event.agent_name}[/yellow]")

    chain.event_bus.subscribe_sync(on_event)

    try:
        result = chain.run(session_id=session_id)
    except Exception as e:
        console.print(f"\n[red]Execution Error:[/red] {e}")
        raise typer.Exit(code=1)

    if result.output:
        console.print()
        console.print(
            Panel(
                result.output,
                title="[bold]Output[/bold]",
                border_style="red" if result.failed_steps else "green",
                expand=True,
            )
        )

    console.print()
    print_cost_report(result, console=console)

    if trace_path:
        export_run_json(result, chain.tracer, trace_path)
        console.print(f"[dim]Trace written to {trace_path}[/dim]")

    console.print(f"\n[dim]Session {result.session_id} finished in {result.duration:.1f} seconds[/dim]")

    if result.failed_steps:
        failed = ", ".join(str(s.index) for s in result.failed_steps)
        console.print(f"\n[red]Chain completed with failed steps: {failed}[/red]")
        raise typer.Exit(code=1)


@app.command()
def validate(
    yaml_path: str = typer.Option("chain.yaml", "--yaml", "-y"),
):
    """Validate a chain definition without executing it."""
    from agentchain.config.loader import ConfigError, ConfigLoader

    try:
        config = ConfigLoader.load(yaml_path)
    except ConfigError as e:
        console.print(f"[red]❌ Validation failed:[/red]\n{e}")
        raise typer.Exit(code=1)

    chain_config = config["chain"]
    agents = config["agents"]
    console.print(f"[green]✅ {yaml_path} is valid![/green]")
    console.print(f"  Chain: {chain_config['name']}")
    console.print(f"  Default model: {chain_config['llm']}")
    console.print(f"  Agents: {', '.join(a['name'] or a['id'] for a in agents)}")

    conditions = [a["connection"]["condition"] for a in agents if a["connection"] and a["connection"]["condition"]]
    if conditions:
        console.print(f"  Conditions: {', '.join(conditions)}")


@app.command()
def plan(
    yaml_path: str = typer.Option("chain.yaml", "--yaml", "-y"),
):
    """Show how the chain's agents are grouped for execution."""
    from agentchain.config.loader import ConfigError, ConfigLoader
    from agentchain.core.agent import Agent
    from agentchain.core.grouping import group_agents

    try:
        config = ConfigLoader.load(yaml_path)
    except ConfigError as e:
        console.print(f"[red]Configuration Error:[/red] {e}")
        raise typer.Exit(code=1)

    default_model = config["chain"]["llm"]
    agents = [Agent.from_config(a, default_model=default_model) for a in config["agents"]]

    table = Table(title="Execution Plan", show_header=True, header_style="bold cyan")
    table.add_column("Group", justify="right", style="dim")
    table.add_column("Mode", style="white")
    table.add_column("Steps", justify="right", style="dim")
    table.add_column("Agents", style="white")

    for number, group in enumerate(group_agents(agents)):
        names = ", ".join(
            agent.display_name(group.start_index + offset) for offset, agent in enumerate(group.agents)
        )
        table.add_row(
            str(number),
            group.type.value,
            f"{group.start_index}-{group.end_index - 1}",
            names,
        )
    console.print(table)


@app.command(name="check-condition")
def check_condition(
    condition: str = typer.Argument(..., help="e.g. \"contains('error')\" or \"length > 100\""),
    text: str = typer.Argument(..., help="Text to evaluate the condition against"),
):
    """Evaluate a condition against a piece of text."""
    from agentchain.core.condition import evaluate_condition, validate_condition

    validation = validate_condition(condition)
    if not validation.is_valid:
        console.print(f"[red]❌ Invalid condition:[/red] {validation.error}")
        raise typer.Exit(code=1)

    if evaluate_condition(condition, text):
        console.print("[green]✓ Condition met[/green]")
    else:
        console.print("[yellow]✗ Condition not met[/yellow]")


@app.command()
def steps(
    session_id: str = typer.Argument(None, help="Session to show; lists sessions when omitted"),
    db: str = typer.Option(".agentchain/steps.db", "--db", help="SQLite step database"),
):
    """Show recorded steps from a SQLite recorder."""
    from agentchain.observe.cost_report import steps_table
    from agentchain.recorder.sqlite import SQLiteStepRecorder

    if not Path(db).exists():
        console.print(f"[red]Error:[/red] No step database at '{db}'.")
        raise typer.Exit(code=1)

    recorder = SQLiteStepRecorder(db_path=db)
    try:
        if session_id is None:
            sessions = asyncio.run(recorder.list_sessions())
            table = Table(title="Sessions", show_header=True, header_style="bold cyan")
            table.add_column("Session", style="white")
            table.add_column("Steps", justify="right", style="yellow")
            for session in sessions:
                table.add_row(session["session_id"], str(session["steps"]))
            console.print(table)
            return

        recorded = asyncio.run(recorder.read_steps(session_id))
    finally:
        recorder.close()

    if not recorded:
        console.print(f"[red]Error:[/red] No steps recorded for session '{session_id}'.")
        raise typer.Exit(code=1)
    console.print(steps_table(recorded, title=f"Session {session_id}"))


@app.command()
def version():
    """Show AgentChain version."""
    console.print(f"⛓ AgentChain v{__version__}")


if __name__ == "__main__":
    app()
