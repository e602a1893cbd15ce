"""Rule file CLI commands."""

from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from sentinel.alerting import format_alert_message
from sentinel.models import GaugeCondition, RuleSet

app = typer.Typer(no_args_is_help=True)
console = Console()


@app.command()
def validate(
    path: Annotated[Path, typer.Argument(help="JSON rules file", exists=True, dir_okay=False)],
) -> None:
    """Validate a rules file and list each rule with its key."""
    try:
        rule_set = RuleSet.model_validate_json(path.read_text())
    except ValidationError as e:
        console.print(f"[red]Invalid rules file:[/red] {path}")
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"])
            console.print(f"  [yellow]{location}[/yellow]: {error['msg']}")
        raise typer.Exit(1) from None

    table = Table(title=f"Rules in {path.name}")
    table.add_column("Agent", style="cyan")
    table.add_column("Key", style="dim")
    table.add_column("Metric")
    table.add_column("Severity")
    table.add_column("Alert text")

    count = 0
    for agent in rule_set.agents:
        for rule in agent.rules:
            condition = rule.condition
            metric = condition.metric
            if not isinstance(condition, GaugeCondition):
                metric += f" ({condition.transaction_type})"
            table.add_row(
                agent.agent_id,
                rule.key(agent.agent_id),
                metric,
                rule.severity.value,
                format_alert_message(condition),
            )
            count += 1

    console.print(table)
    console.print(f"[green]✓[/green] {count} rule(s) across {len(rule_set.agents)} agent(s)")
