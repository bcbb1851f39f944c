"""CLI command for a single-shot opportunity report.

Fetch the top markets by 24h volume, rank tradable outcome tokens by
opportunity score, and print the best few as alerts. Snapshots observed
during the scan are persisted so the next report can measure moves.
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
from polyscout.apps.polymarket.cli._output import print_opportunities
from polyscout.apps.scanner.driver import ScanDriver
from polyscout.apps.scanner.models import Opportunity, ScannerConfig, ScoreWeights
from polyscout.clients.polymarket.client import PolymarketClient
from polyscout.clients.polymarket.exceptions import PolymarketAPIError
from polyscout.core.timestamps import now_ms


def scan(  # noqa: PLR0913
    limit: Annotated[
        int | None, typer.Option(help="Markets to request from the catalog")
    ] = None,
    max_alerts: Annotated[int | None, typer.Option(help="Alerts to print")] = None,
    min_volume: Annotated[float | None, typer.Option(help="Minimum 24h volume in USD")] = None,
    min_liquidity: Annotated[float | None, typer.Option(help="Minimum liquidity in USD")] = None,
    max_spread: Annotated[float | None, typer.Option(help="Maximum bid/ask spread")] = None,
    notional: Annotated[
        float | None, typer.Option(help="Order size in USD for slippage estimates")
    ] = None,
    max_end_hours: Annotated[
        int | None, typer.Option(help="Only markets ending within this many hours")
    ] = None,
    db_url: Annotated[str | None, typer.Option(help="SQLAlchemy database URL")] = None,
    verbose: Annotated[  # noqa: FBT002
        bool, typer.Option("--verbose", "-v", help="Enable scan logging")
    ] = False,
) -> None:
    """Scan Polymarket once and print the best opportunities.

    Unset options fall back to the ``report`` section of the settings.
    """
    if verbose:
        configure_verbose_logging()
    config = load_scanner_config(
        "report",
        {
            "scan_limit": limit,
            "max_alerts": max_alerts,
            "min_volume_24h": min_volume,
            "min_liquidity": min_liquidity,
            "max_spread": max_spread,
            "notional": notional,
            "max_end_hours": max_end_hours,
        },
    )
    weights = load_score_weights()
    opportunities = asyncio.run(_scan(config=config, weights=weights, db_url=db_url))
    print_opportunities(opportunities, config.notional, now_ms())


async def _scan(
    *,
    config: ScannerConfig,
    weights: ScoreWeights,
    db_url: str | None,
) -> list[Opportunity]:
    """Run the report scan against the live APIs.

    Args:
        config: Report configuration.
        weights: Score weights.
        db_url: Optional database URL override.

    Returns:
        Ranked opportunities.

    """
    try:
        repo = await open_repository(db_url)
        try:
            async with PolymarketClient() as client:
                return await ScanDriver(client, repo, config, weights).run_report()
        finally:
            await repo.close()
    except (PolymarketAPIError, SQLAlchemyError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
