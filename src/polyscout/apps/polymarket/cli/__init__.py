"""CLI subpackage for the Polymarket opportunity scanner.

Create the Typer application and register all command modules.
"""

import typer

from polyscout.apps.polymarket.cli.book_cmd import book
from polyscout.apps.polymarket.cli.monitor_cmd import monitor
from polyscout.apps.polymarket.cli.report_closed_cmd import report_closed
from polyscout.apps.polymarket.cli.scan_cmd import scan
from polyscout.apps.polymarket.cli.status_cmd import status

app = typer.Typer(help="Polymarket opportunity scanner and paper position monitor")

app.command()(scan)
app.command()(monitor)
app.command(name="report-closed")(report_closed)
app.command()(status)
app.command()(book)

__all__ = ["app"]
