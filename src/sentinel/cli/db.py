"""Database CLI commands."""

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel

from sentinel.store import connect

app = typer.Typer(no_args_is_help=True)
console = Console()

SCHEMA_PATH = Path(__file__).parent.parent / "db" / "schema.sql"


def split_statements(schema_sql: str) -> list[str]:
    """Split a schema into individual statements, dropping comment-only chunks.

    DSQL runs each DDL statement in its own transaction.
    """
    statements = []
    for stmt in schema_sql.split(";"):
        lines = stmt.strip().splitlines()
        while lines and (not lines[0].strip() or lines[0].strip().startswith("--")):
            lines.pop(0)
        cleaned = "\n".join(lines).strip()
        if cleaned:
            statements.append(cleaned)
    return statements


async def execute_schema(endpoint: str, database: str, region: str, schema_sql: str) -> int:
    """Execute schema SQL against DSQL, one statement at a time."""
    conn = await connect(endpoint, database, region)
    try:
        statements = split_statements(schema_sql)
        for stmt in statements:
            await conn.execute(stmt)
        return len(statements)
    finally:
        await conn.close()


@app.command()
def setup_schema(
    endpoint: Annotated[str, typer.Option("--endpoint", "-e", help="DSQL cluster endpoint")],
    database: Annotated[str, typer.Option("--database", "-d", help="Database name")] = "postgres",
    region: Annotated[str, typer.Option("--region", "-r", help="AWS region")] = "eu-west-1",
) -> None:
    """Apply the alerting schema to Aurora DSQL.

    Creates the incident tables (open_incident, resolved_incident) and the
    aggregate tables (aggregate_histogram, aggregate_throughput, gauge_value).
    """
    console.print(Panel.fit("Setting up Sentinel DSQL Schema", style="bold blue"))

    console.print(f"  Endpoint: [cyan]{endpoint}[/cyan]")
    console.print(f"  Database: [cyan]{database}[/cyan]")
    console.print(f"  Region:   [cyan]{region}[/cyan]")
    console.print()

    if not SCHEMA_PATH.exists():
        console.print(f"[red]Error:[/red] Schema file not found: {SCHEMA_PATH}")
        raise typer.Exit(1)

    schema_sql = SCHEMA_PATH.read_text()

    with console.status("[bold green]Applying schema..."):
        try:
            count = asyncio.run(execute_schema(endpoint, database, region, schema_sql))
        except Exception as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1) from None

    console.print(f"[green]✓[/green] Schema setup complete ({count} statements)")


@app.command()
def check_connection(
    endpoint: Annotated[str, typer.Option("--endpoint", "-e", help="DSQL cluster endpoint")],
    database: Annotated[str, typer.Option("--database", "-d", help="Database name")] = "postgres",
    region: Annotated[str, typer.Option("--region", "-r", help="AWS region")] = "eu-west-1",
) -> None:
    """Test connection to Aurora DSQL."""
    console.print(Panel.fit("Testing DSQL Connection", style="bold blue"))

    async def test_connection() -> str:
        conn = await connect(endpoint, database, region)
        try:
            return await conn.fetchval("SELECT version()")
        finally:
            await conn.close()

    with console.status("[bold green]Connecting..."):
        try:
            version = asyncio.run(test_connection())
        except Exception as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1) from None

    console.print("[green]✓[/green] Connected successfully!")
    console.print(f"  Version: [dim]{version}[/dim]")
