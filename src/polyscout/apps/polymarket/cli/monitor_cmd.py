"""CLI command for the continuous single-position paper monitor.

Poll the market catalog until a qualifying move appears, open one
simulated position, mark it every cycle, and close it on take-profit,
stop-loss, or time stop. Stop with Ctrl+C or SIGTERM.
"""

import asyncio
from typing import Annotated

import typer
from sqlalchemy.exc import SQLAlchemyError

from polyscout.apps.polymarket.cli._helpers import (
    configure_verbose_logging,
    load_scanner_config,
    load_score_weights,
    open_repository,
)
from polyscout.apps.scanner.driver import ScanDriver
from polyscout.apps.scanner.models import ScannerConfig, ScoreWeights
from polyscout.clients.polymarket.client import PolymarketClient


def monitor(  # noqa: PLR0913
    notional: Annotated[float | None, typer.Option(help="Entry size in USD")] = None,
    min_volume: Annotated[float | None, typer.Option(help="Minimum 24h volume in USD")] = None,
    min_liquidity: Annotated[float | None, typer.Option(help="Minimum liquidity in USD")] = None,
    max_spread: Annotated[float | None, typer.Option(help="Maximum bid/ask spread")] = None,
    min_move: Annotated[
        float | None, typer.Option(help="Minimum mid move since the last snapshot")
    ] = None,
    take_profit: Annotated[float | None, typer.Option(help="Take-profit offset")] = None,
    stop_loss: Annotated[float | None, typer.Option(help="Stop-loss offset")] = None,
    max_hold_minutes: Annotated[
        float | None, typer.Option(help="Close after this many minutes")
    ] = None,
    poll_interval: Annotated[
        int | None, typer.Option(help="Seconds between cycles")
    ] = None,
    max_cycles: Annotated[
        int | None, typer.Option(help="Stop after N cycles (None = unlimited)")
    ] = None,
    db_url: Annotated[str | None, typer.Option(help="SQLAlchemy database URL")] = None,
    verbose: Annotated[  # noqa: FBT002
        bool, typer.Option("--verbose", "-v", help="Enable cycle-by-cycle logging")
    ] = False,
) -> None:
    """Run the paper position monitor.

    Unset options fall back to the ``monitor`` section of the settings.
    """
    if verbose:
        configure_verbose_logging()
    config = load_scanner_config(
        "monitor",
        {
            "notional": notional,
            "min_volume_24h": min_volume,
            "min_liquidity": min_liquidity,
            "max_spread": max_spread,
            "min_move": min_move,
            "take_profit": take_profit,
            "stop_loss": stop_loss,
            "max_hold_minutes": max_hold_minutes,
            "poll_interval_seconds": poll_interval,
        },
    )
    weights = load_score_weights()

    typer.echo(
        f"Monitoring: notional=${config.notional} tp=+{config.take_profit} "
        f"sl=-{config.stop_loss} poll={config.poll_interval_seconds}s"
    )
    if max_cycles is not None:
        typer.echo(f"Max cycles: {max_cycles}")
    typer.echo("Press Ctrl+C to stop.\n")

    cycles = asyncio.run(
        _monitor(config=config, weights=weights, db_url=db_url, max_cycles=max_cycles)
    )
    typer.echo(f"Stopped after {cycles} cycles")


async def _monitor(
    *,
    config: ScannerConfig,
    weights: ScoreWeights,
    db_url: str | None,
    max_cycles: int | None,
) -> int:
    """Run monitor cycles against the live APIs.

    Args:
        config: Monitor configuration.
        weights: Score weights.
        db_url: Optional database URL override.
        max_cycles: Optional cycle limit.

    Returns:
        Number of cycles completed.

    """
    try:
        repo = await open_repository(db_url)
        try:
            async with PolymarketClient() as client:
                driver = ScanDriver(client, repo, config, weights)
                return await driver.run(max_cycles=max_cycles)
        finally:
            await repo.close()
    except SQLAlchemyError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
