"""Sentinel CLI."""

import typer

from sentinel.cli.db import app as db_app
from sentinel.cli.histogram import app as histogram_app
from sentinel.cli.rules import app as rules_app

app = typer.Typer(
    name="sentinel",
    help="Sentinel - metric alerting for APM aggregates",
    no_args_is_help=True,
)

app.add_typer(db_app, name="db", help="Database operations")
app.add_typer(rules_app, name="rules", help="Alert rule files")
app.add_typer(histogram_app, name="histogram", help="Encoded histograms")


@app.callback()
def main() -> None:
    """Sentinel CLI."""
    pass


if __name__ == "__main__":
    app()
