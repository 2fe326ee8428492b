"""Rich tables for recorded steps and their cost."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from agentchain.core.result import AgentStep, ChainResult, StepStatus

_STATUS_STYLE = {
    StepStatus.COMPLETE: "[green]✓ complete[/green]",
    StepStatus.ERROR: "[red]✗ error[/red]",
    StepStatus.SKIPPED: "[yellow]↷ skipped[/yellow]",
    StepStatus.STREAMING: "[blue]… streaming[/blue]",
    StepStatus.PENDING: "[dim]pending[/dim]",
}


def steps_table(steps: list[AgentStep], title: str = "Steps") -> Table:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Agent", style="white")
    table.add_column("Model", style="dim")
    table.add_column("Connection", style="dim")
    table.add_column("Status")
    table.add_column("Tokens", justify="right", style="yellow")
    table.add_column("Cost", justify="right", style="green")

    for step in steps:
        detail = _STATUS_STYLE[step.status]
        if step.status == StepStatus.SKIPPED and step.skip_reason:
            detail += f" [dim]({step.skip_reason})[/dim]"
        elif step.status == StepStatus.ERROR and step.error:
            detail += f" [dim]({step.error[:60]})[/dim]"
        connection = step.connection_type
        if step.execution_group is not None:
            connection += f" #{step.execution_group}"
        table.add_row(
            str(step.index),
            step.name or f"Agent {step.index + 1}",
            step.model,
            connection,
            detail,
            f"{step.tokens.total:,}",
            f"${step.cost:.4f}",
        )
    return table


def print_cost_report(result: ChainResult, console: Console | None = None):
    if console is None:
        console = Console()

    table = steps_table(result.steps, title="Cost Summary")
    table.add_section()
    total_tokens = sum(s.tokens.total for s in result.steps)
    total_cost = sum(s.cost for s in result.steps)
    table.add_row(
        "", "[bold]Total[/bold]", "", "", "",
        f"[bold]{total_tokens:,}[/bold]",
        f"[bold]${total_cost:.4f}[/bold]",
    )
    console.print(table)
