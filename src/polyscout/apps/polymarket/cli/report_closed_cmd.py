"""CLI command that prints the newest closed trade once.

Meant to be run on a schedule next to the monitor: it prints nothing when
no trade has closed since the previous invocation.
"""

import asyncio
from typing import Annotated

import typer
from sqlalchemy.exc import SQLAlchemyError

from polyscout.apps.polymarket.cli._helpers import open_repository
from polyscout.apps.polymarket.cli._output import print_closed_trade
from polyscout.apps.scanner.models import ClosedTrade
from polyscout.apps.scanner.notifier import pop_unseen_closed_trade


def report_closed(
    db_url: Annotated[str | None, typer.Option(help="SQLAlchemy database URL")] = None,
) -> None:
    """Print the last closed trade if it has not been reported yet."""
    closed = asyncio.run(_report_closed(db_url=db_url))
    if closed is not None:
        print_closed_trade(closed)


async def _report_closed(*, db_url: str | None) -> ClosedTrade | None:
    """Pop the unseen closed trade from the state store."""
    try:
        repo = await open_repository(db_url)
        try:
            return await pop_unseen_closed_trade(repo)
        finally:
            await repo.close()
    except SQLAlchemyError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
