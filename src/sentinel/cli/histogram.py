"""Histogram inspection CLI commands."""

from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table
from sentinel_core import Histogram, percentile_with_suffix

app = typer.Typer(no_args_is_help=True)
console = Console()

STANDARD_PERCENTILES = (50.0, 95.0, 99.0, 99.9, 99.99)


@app.command()
def inspect(
    encoded: Annotated[str, typer.Argument(help="Encoded histogram as hex")],
) -> None:
    """Decode a histogram and print its standard percentiles."""
    try:
        histogram = Histogram.decode(bytes.fromhex(encoded))
    except ValueError as e:  # bad hex or HistogramDecodeError
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    kind = "exact" if histogram.is_exact else "bucketed"
    console.print(f"  Samples:        [cyan]{histogram.total_count}[/cyan]")
    console.print(f"  Representation: [cyan]{kind}[/cyan]")
    if histogram.total_count == 0:
        return

    table = Table()
    table.add_column("Percentile")
    table.add_column("Value", justify="right")
    for p in STANDARD_PERCENTILES:
        table.add_row(percentile_with_suffix(p), str(histogram.percentile(p)))
    console.print(table)
