"""CLI command for displaying a Polymarket token order book.

Show the best bids and asks with sizes, the spread and midpoint, and the
simulated fill for a market-like buy and sell of a given notional.
"""

import asyncio
from decimal import Decimal
from typing import Annotated

import typer

from polyscout.apps.scanner.fill import estimate_slippage, sorted_levels
from polyscout.clients.polymarket.client import PolymarketClient
from polyscout.clients.polymarket.exceptions import PolymarketAPIError
from polyscout.clients.polymarket.models import OrderBook
from polyscout.core.formatting import fmt_cents
from polyscout.core.models import Side

_DEFAULT_DEPTH = 10
_DEFAULT_NOTIONAL = 100.0


def book(
    token_id: str,
    depth: Annotated[int, typer.Option(help="Number of price levels to display")] = _DEFAULT_DEPTH,
    notional: Annotated[
        float, typer.Option(help="Order size in USD for the fill estimate")
    ] = _DEFAULT_NOTIONAL,
) -> None:
    """Display the order book for a token.

    Args:
        token_id: CLOB token identifier.
        depth: Number of price levels to show on each side.
        notional: Dollar size of the simulated fills.

    """
    order_book = asyncio.run(_fetch_book(token_id=token_id))
    _print_book(order_book, depth=depth, notional=Decimal(str(notional)))


async def _fetch_book(*, token_id: str) -> OrderBook:
    """Fetch the order book for a token, exiting on API errors."""
    try:
        async with PolymarketClient() as client:
            return await client.get_order_book(token_id)
    except PolymarketAPIError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _print_book(order_book: OrderBook, *, depth: int, notional: Decimal) -> None:
    """Print the top of each side and the fill estimates."""
    typer.echo(f"\nOrder Book: {order_book.token_id}")
    spread, midpoint = order_book.spread, order_book.midpoint
    if spread is None or midpoint is None:
        typer.echo("One-sided book: no spread or midpoint")
    else:
        typer.echo(f"Spread: {spread:.4f}  |  Midpoint: {midpoint:.4f}")
    typer.echo("")

    typer.echo(f"{'BIDS':<30} {'ASKS':>30}")
    typer.echo(f"{'Price':>8} {'Size':>10}{'':>12}{'Price':>8} {'Size':>10}")
    typer.echo("-" * 60)

    bids = sorted_levels(order_book, Side.SELL)[:depth]
    asks = sorted_levels(order_book, Side.BUY)[:depth]
    for i in range(max(len(bids), len(asks))):
        bid_str = f"{bids[i].price:>8.4f} {bids[i].size:>10.2f}" if i < len(bids) else " " * 19
        ask_str = f"{asks[i].price:>8.4f} {asks[i].size:>10.2f}" if i < len(asks) else ""
        typer.echo(f"{bid_str}{'':>12}{ask_str}")

    typer.echo("")
    for side in (Side.BUY, Side.SELL):
        estimate = estimate_slippage(order_book, side, notional)
        label = f"{side.value.upper()} ${notional}"
        if estimate is None:
            typer.echo(f"{label}: insufficient depth")
        else:
            typer.echo(
                f"{label}: avg {fmt_cents(estimate.fill.avg_price)}"
                f" for {estimate.fill.shares:.2f} shares"
                f" | slippage {fmt_cents(estimate.slippage)}"
            )
