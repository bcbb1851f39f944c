"""Order book fill simulation.

Walk the resting levels of an order book to estimate what a market-like
order of a given dollar size would pay. Prices are probabilities in
``[0, 1]`` dollars per share and sizes are in shares, so a level offers
``price * size`` dollars of liquidity.
"""

from decimal import Decimal

from polyscout.apps.scanner.models import FillEstimate, SlippageEstimate
from polyscout.clients.polymarket.models import OrderBook, OrderLevel
from polyscout.core.models import ZERO, Side

# A fill is complete once the unspent notional drops below this.
_DONE_EPSILON = Decimal("1e-9")
# More than this left unspent means the book is too thin.
_DEPTH_EPSILON = Decimal("1e-6")


def sorted_levels(book: OrderBook, side: Side) -> list[OrderLevel]:
    """Return the levels a ``side`` order would consume, best price first.

    Buys consume asks from the lowest price up; sells consume bids from
    the highest price down. Levels with non-finite or non-positive price
    or size are dropped.

    Args:
        book: Order book with levels in arbitrary order.
        side: ``Side.BUY`` or ``Side.SELL``.

    Returns:
        Valid levels sorted best-to-worst for the given side.

    """
    raw = book.asks if side == Side.BUY else book.bids
    levels = [level for level in raw if level.is_valid]
    return sorted(levels, key=lambda lvl: lvl.price, reverse=side == Side.SELL)


def simulate_fill(book: OrderBook, side: Side, target_notional: Decimal) -> FillEstimate | None:
    """Simulate filling ``target_notional`` dollars against the book.

    Consume each level up to its dollar value until the target is spent,
    allowing partial fills of the last level touched.

    Args:
        book: Order book to walk.
        side: ``Side.BUY`` consumes asks, ``Side.SELL`` consumes bids.
        target_notional: Dollar amount to fill.

    Returns:
        The fill estimate, or None if the book lacks the depth to absorb
        the full notional.

    """
    remaining = target_notional
    shares = ZERO
    cost = ZERO
    best_price: Decimal | None = None
    worst_price: Decimal | None = None

    for level in sorted_levels(book, side):
        take_usd = min(remaining, level.price * level.size)
        shares += take_usd / level.price
        cost += take_usd
        remaining -= take_usd
        if best_price is None:
            best_price = level.price
        worst_price = level.price
        if remaining <= _DONE_EPSILON:
            break

    if cost <= ZERO or shares <= ZERO or remaining > _DEPTH_EPSILON:
        return None
    if best_price is None or worst_price is None:
        return None

    return FillEstimate(
        avg_price=cost / shares,
        shares=shares,
        notional_filled=cost,
        best_price=best_price,
        worst_price=worst_price,
    )


def estimate_slippage(book: OrderBook, side: Side, notional: Decimal) -> SlippageEstimate | None:
    """Measure a simulated fill against the top of book.

    Args:
        book: Order book to walk.
        side: Order side; the reference is the best ask for buys and the
            best bid for sells.
        notional: Dollar amount to fill.

    Returns:
        The slippage estimate, or None when the fill fails or the
        reference side is empty.

    """
    fill = simulate_fill(book, side, notional)
    if fill is None:
        return None
    reference = book.best_ask if side == Side.BUY else book.best_bid
    if reference is None:
        return None
    return SlippageEstimate(
        fill=fill,
        reference_price=reference,
        slippage=abs(fill.avg_price - reference),
    )
