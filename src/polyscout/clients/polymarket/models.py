"""Typed data models for Polymarket market metadata and order books.

Provide frozen dataclasses that insulate the rest of the codebase from the
untyped dictionaries returned by the Gamma and CLOB APIs. All prices and
monetary values use ``Decimal``.
"""

from dataclasses import dataclass
from decimal import Decimal

from polyscout.clients.polymarket._constants import MARKET_URL_PREFIX
from polyscout.core.models import TWO, ZERO


@dataclass(frozen=True)
class OrderLevel:
    """Single price level in an order book.

    Args:
        price: Price of the level as a probability between 0 and 1.
        size: Resting size in shares.

    """

    price: Decimal
    size: Decimal

    @property
    def is_valid(self) -> bool:
        """Return True when both price and size are finite and positive."""
        return (
            self.price.is_finite()
            and self.size.is_finite()
            and self.price > ZERO
            and self.size > ZERO
        )


@dataclass(frozen=True)
class OrderBook:
    """Order book snapshot for one outcome token.

    The CLOB gives no ordering guarantee, so bids and asks are kept in
    source order and the best prices are computed on demand.

    Args:
        token_id: CLOB token identifier.
        bids: Resting buy levels, unordered.
        asks: Resting sell levels, unordered.

    """

    token_id: str
    bids: tuple[OrderLevel, ...] = ()
    asks: tuple[OrderLevel, ...] = ()

    @property
    def best_bid(self) -> Decimal | None:
        """Return the highest valid bid price, or None if there is none."""
        prices = [level.price for level in self.bids if level.is_valid]
        return max(prices) if prices else None

    @property
    def best_ask(self) -> Decimal | None:
        """Return the lowest valid ask price, or None if there is none."""
        prices = [level.price for level in self.asks if level.is_valid]
        return min(prices) if prices else None

    @property
    def midpoint(self) -> Decimal | None:
        """Return the mid price, or None unless both sides are quoted."""
        bid, ask = self.best_bid, self.best_ask
        if bid is None or ask is None:
            return None
        return (bid + ask) / TWO

    @property
    def spread(self) -> Decimal | None:
        """Return best ask minus best bid, or None unless both sides are quoted."""
        bid, ask = self.best_bid, self.best_ask
        if bid is None or ask is None:
            return None
        return ask - bid


@dataclass(frozen=True)
class Market:
    """Typed representation of a Gamma API market record.

    Outcome labels, reference prices, and token ids are parallel tuples
    in the order published by the catalog.

    Args:
        market_id: Gamma market identifier.
        question: The prediction question text.
        slug: URL slug used to build the public market link.
        end_date: ISO 8601 end date string as published.
        end_ms: End date in epoch milliseconds, or None if unparseable.
        volume_24h: Trading volume over the last 24 hours in USD.
        liquidity: Current available liquidity in USD.
        outcomes: Outcome labels (e.g. ``("Yes", "No")``).
        outcome_prices: Reference price per outcome; None where malformed.
        token_ids: CLOB token identifier per outcome.
        closed: Whether the market has closed.
        enable_order_book: Whether the market trades on the CLOB.
        accepting_orders: Whether the CLOB accepts orders; None when unknown.

    """

    market_id: str
    question: str
    slug: str
    end_date: str
    end_ms: int | None
    volume_24h: Decimal
    liquidity: Decimal
    outcomes: tuple[str, ...]
    outcome_prices: tuple[Decimal | None, ...]
    token_ids: tuple[str, ...]
    closed: bool
    enable_order_book: bool
    accepting_orders: bool | None = None

    @property
    def url(self) -> str:
        """Return the public Polymarket URL for this market."""
        return f"{MARKET_URL_PREFIX}{self.slug}"
