"""CLI command for inspecting the persisted monitor state.

Show the last scan time, number of tracked token snapshots, the open
position with its exits, and optionally the event log of the position.
"""

import asyncio
from typing import Annotated

import typer
from sqlalchemy.exc import SQLAlchemyError

from polyscout.apps.polymarket.cli._helpers import open_repository
from polyscout.apps.polymarket.cli._output import print_status
from polyscout.apps.scanner.models import RunState, TradeEvent
from polyscout.core.timestamps import format_ms, now_ms


def status(
    events: Annotated[  # noqa: FBT002
        bool, typer.Option("--events", help="Also print the open position's event log")
    ] = False,
    db_url: Annotated[str | None, typer.Option(help="SQLAlchemy database URL")] = None,
) -> None:
    """Show the monitor's run state."""
    state, log = asyncio.run(_status(db_url=db_url, events=events))
    print_status(state, now_ms())
    for event in log:
        fields = " ".join(f"{k}={v}" for k, v in event.payload.items() if not isinstance(v, dict))
        typer.echo(f"  {format_ms(event.time)} {event.event_type.value:<5} {fields}")


async def _status(*, db_url: str | None, events: bool) -> tuple[RunState, list[TradeEvent]]:
    """Load the run state and, if requested, the open position's events."""
    try:
        repo = await open_repository(db_url)
        try:
            state = await repo.load_state()
            log: list[TradeEvent] = []
            if events and state.open_position is not None:
                log = await repo.get_trade_events(state.open_position.position_id)
            return state, log
        finally:
            await repo.close()
    except SQLAlchemyError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
