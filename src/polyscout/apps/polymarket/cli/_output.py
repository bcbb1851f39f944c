"""Terminal output formatters for the scanner CLI.

Keep all printing here so the command modules stay focused on
orchestration.
"""

from decimal import Decimal

import typer

from polyscout.apps.scanner.models import ClosedTrade, Opportunity, Position, RunState
from polyscout.apps.scanner.notifier import format_closed_trade
from polyscout.core.formatting import fmt_cents, fmt_usd
from polyscout.core.timestamps import MS_PER_HOUR, MS_PER_MINUTE, format_ms

_RULE_WIDTH = 60


def _optional_cents(value: Decimal | None) -> str:
    return fmt_cents(value) if value is not None else "n/a"


def print_opportunities(opportunities: list[Opportunity], notional: Decimal, now: int) -> None:
    """Print report-mode alerts, best first."""
    typer.echo(f"Polymarket opportunity scan - {format_ms(now)}\n")
    if not opportunities:
        typer.echo(
            "No candidates matched the current filters. Try lowering "
            "--min-volume/--min-liquidity or raising --max-end-hours."
        )
        return

    for opp in opportunities:
        market = opp.market
        hours_left = (market.end_ms - now) / MS_PER_HOUR if market.end_ms is not None else 0.0
        typer.echo(f"Score {opp.score}/100 - {market.question}")
        typer.echo(f"URL: {market.url}")
        typer.echo(f"Outcome: {opp.outcome or opp.token_id}")
        typer.echo(
            f"Mid {fmt_cents(opp.mid)} | Bid {fmt_cents(opp.bid)} / Ask {fmt_cents(opp.ask)}"
            f" | Spread {fmt_cents(opp.spread)}"
        )
        typer.echo(
            f"Vol24h {fmt_usd(market.volume_24h)} | Liq {fmt_usd(market.liquidity)}"
            f" | Ends in {hours_left:.1f}h"
        )
        typer.echo(
            f"Move since last scan: {fmt_cents(opp.abs_move)} | Slippage({fmt_usd(notional)})"
            f" buy:{_optional_cents(opp.slippage_buy)} sell:{_optional_cents(opp.slippage_sell)}"
        )
        typer.echo("-" * _RULE_WIDTH)


def print_position(position: Position, now: int) -> None:
    """Print the open position with its exits and unrealised PnL."""
    age_minutes = position.age_ms(now) / MS_PER_MINUTE
    typer.echo(f"Open position {position.position_id}")
    typer.echo(f"  {position.question}")
    typer.echo(f"  {position.url}")
    typer.echo(
        f"  entry {fmt_cents(position.entry.avg_price)} x {position.entry.shares:.2f} shares"
        f" | notional {fmt_usd(position.notional)}"
    )
    typer.echo(
        f"  tp {fmt_cents(position.exits.take_profit_price)}"
        f" | sl {fmt_cents(position.exits.stop_loss_price)}"
        f" | held {age_minutes:.1f}m of {position.exits.max_hold_ms / MS_PER_MINUTE:.0f}m"
    )
    typer.echo(
        f"  last mark {fmt_cents(position.last_mark.mid)}"
        f" (bid {fmt_cents(position.last_mark.bid)}) | uPnL ${position.unrealized_pnl():.2f}"
    )


def print_status(state: RunState, now: int) -> None:
    """Print a summary of the persisted run state."""
    typer.echo(f"\n{'=' * _RULE_WIDTH}")
    typer.echo(f"Created:        {format_ms(state.created_at)}")
    last_scan = format_ms(state.last_scan_at) if state.last_scan_at is not None else "never"
    typer.echo(f"Last scan:      {last_scan}")
    typer.echo(f"Tracked tokens: {len(state.snapshots)}")
    typer.echo(f"Last closed:    {state.last_closed_id or 'none'}")
    typer.echo(f"{'=' * _RULE_WIDTH}")
    if state.open_position is None:
        typer.echo("No open position")
    else:
        print_position(state.open_position, now)


def print_closed_trade(closed: ClosedTrade) -> None:
    """Print a closed-trade notification."""
    typer.echo(format_closed_trade(closed))
