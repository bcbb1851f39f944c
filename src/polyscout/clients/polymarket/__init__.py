"""Read-only Polymarket client for market metadata and order books."""

from polyscout.clients.polymarket.client import PolymarketClient
from polyscout.clients.polymarket.exceptions import (
    PolymarketAPIError,
    PolymarketError,
)
from polyscout.clients.polymarket.models import (
    Market,
    OrderBook,
    OrderLevel,
)

__all__ = [
    "Market",
    "OrderBook",
    "OrderLevel",
    "PolymarketAPIError",
    "PolymarketClient",
    "PolymarketError",
]
