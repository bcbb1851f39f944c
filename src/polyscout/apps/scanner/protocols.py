"""Structural protocols for the scanner's external collaborators.

Define the market catalog, order book source, and state store interfaces
so the scanner, lifecycle, and driver can run against the live Polymarket
client and the SQL repository, or against test doubles.
"""

from typing import Protocol, runtime_checkable

from polyscout.apps.scanner.models import ClosedTrade, LastClosed, RunState, TradeEvent
from polyscout.clients.polymarket.models import Market, OrderBook


@runtime_checkable
class OrderBookSource(Protocol):
    """Async provider of order books keyed by token id."""

    async def get_order_book(self, token_id: str) -> OrderBook:
        """Return the current order book for a token."""
        ...


@runtime_checkable
class MarketSource(Protocol):
    """Async provider of open markets ordered by descending 24h volume."""

    async def get_markets(self, limit: int) -> list[Market]:
        """Return up to ``limit`` open markets."""
        ...


@runtime_checkable
class StateStore(Protocol):
    """Persistence for run state, snapshots, trade logs, and closed summaries."""

    async def load_state(self) -> RunState:
        """Return the persisted run state, or a fresh one if none exists."""
        ...

    async def save_state(self, state: RunState) -> None:
        """Persist the run state and any snapshots recorded since the last save."""
        ...

    async def append_trade_event(self, event: TradeEvent) -> None:
        """Append one record to a trade's event log."""
        ...

    async def get_trade_events(self, trade_id: str) -> list[TradeEvent]:
        """Return a trade's events in the order they were appended."""
        ...

    async def record_close(
        self, state: RunState, closed: ClosedTrade, event: TradeEvent | None = None
    ) -> None:
        """Atomically write a closed summary, its pointer, and the cleared run state."""
        ...

    async def get_closed_trade(self, trade_id: str) -> ClosedTrade | None:
        """Return a closed-trade summary by id."""
        ...

    async def get_last_closed(self) -> LastClosed | None:
        """Return the last-closed pointer, if any trade has closed."""
        ...


@runtime_checkable
class MarketDataSource(MarketSource, OrderBookSource, Protocol):
    """Catalog and order book access from a single client."""
