"""Single paper position lifecycle.

Open at most one simulated position from a scanner opportunity, mark it
against fresh order books, decide when to exit, and summarise it on
close. All mutation goes through the ``RunState`` passed in, so the
caller controls when state is persisted.
"""

import logging
from decimal import Decimal

from polyscout.apps.scanner.exceptions import NoOpenPositionError, PositionAlreadyOpenError
from polyscout.apps.scanner.fill import simulate_fill
from polyscout.apps.scanner.models import (
    ClosedTrade,
    EntryFill,
    ExitReason,
    ExitRules,
    Mark,
    Opportunity,
    Position,
    PositionStatus,
    RunState,
    ScannerConfig,
)
from polyscout.clients.polymarket.models import OrderBook
from polyscout.core.models import TWO, Side

logger = logging.getLogger(__name__)

_MAX_TAKE_PROFIT = Decimal("0.999")
_MIN_STOP_LOSS = Decimal("0.001")


class PositionLifecycle:
    """Manage the ``NONE -> OPEN -> CLOSED`` transitions of the paper position.

    Args:
        config: Supplies the notional, take-profit and stop-loss offsets,
            and the maximum holding time.

    """

    def __init__(self, config: ScannerConfig) -> None:
        """Initialize with the monitor configuration."""
        self._config = config

    def open_position(self, state: RunState, opportunity: Opportunity, now: int) -> Position:
        """Open a position at the opportunity's simulated buy fill.

        Args:
            state: Run state; must not already hold an open position.
            opportunity: Scanner pick to enter.
            now: Entry time in epoch milliseconds.

        Returns:
            The new position, also stored in ``state.open_position``.

        Raises:
            PositionAlreadyOpenError: If a position is already open.

        """
        if state.open_position is not None:
            raise PositionAlreadyOpenError(state.open_position.position_id)

        entry_price = opportunity.entry.avg_price
        position = Position(
            position_id=f"t{now}-{opportunity.market.market_id}-{opportunity.token_id}",
            opened_at=now,
            market_id=opportunity.market.market_id,
            question=opportunity.market.question,
            url=opportunity.market.url,
            token_id=opportunity.token_id,
            notional=self._config.notional,
            entry=EntryFill(
                avg_price=entry_price,
                shares=opportunity.entry.shares,
                book_bid=opportunity.bid,
                book_ask=opportunity.ask,
                spread=opportunity.spread,
                reason=opportunity.reason,
            ),
            exits=ExitRules(
                take_profit_price=min(_MAX_TAKE_PROFIT, entry_price + self._config.take_profit),
                stop_loss_price=max(_MIN_STOP_LOSS, entry_price - self._config.stop_loss),
                max_hold_ms=self._config.max_hold_ms,
            ),
            last_mark=Mark(
                time=now,
                mid=opportunity.mid,
                bid=opportunity.bid,
                ask=opportunity.ask,
            ),
        )
        state.open_position = position
        state.snapshots.record(
            position.token_id,
            mid=opportunity.mid,
            bid=opportunity.bid,
            ask=opportunity.ask,
            observed_at=now,
        )
        logger.info(
            "Opened %s at %s (tp=%s sl=%s)",
            position.position_id,
            entry_price,
            position.exits.take_profit_price,
            position.exits.stop_loss_price,
        )
        return position

    def mark(self, state: RunState, book: OrderBook, now: int) -> Mark | None:
        """Mark the open position to the current top of book.

        A one-sided book leaves the position untouched.

        Args:
            state: Run state holding the open position.
            book: Fresh order book for the position's token.
            now: Observation time in epoch milliseconds.

        Returns:
            The new mark, or None if the book lacks a bid or an ask.

        Raises:
            NoOpenPositionError: If no position is open.

        """
        position = _require_open(state)
        bid, ask = book.best_bid, book.best_ask
        if bid is None or ask is None:
            logger.warning("One-sided book for %s; skipping mark", position.token_id)
            return None

        mark = Mark(time=now, mid=(bid + ask) / TWO, bid=bid, ask=ask)
        position.last_mark = mark
        state.snapshots.record(position.token_id, mid=mark.mid, bid=bid, ask=ask, observed_at=now)
        return mark

    @staticmethod
    def check_exit(position: Position, bid: Decimal | None, now: int) -> ExitReason | None:
        """Return the exit rule triggered at the current best bid.

        The time stop takes priority over price targets and fires even
        when the book has no bids.

        Args:
            position: Open position.
            bid: Current best bid for the position's token, or None if the
                book has no bids.
            now: Current time in epoch milliseconds.

        Returns:
            The triggered ``ExitReason``, or None to keep holding.

        """
        if position.age_ms(now) >= position.exits.max_hold_ms:
            return ExitReason.TIME_STOP
        if bid is None:
            return None
        if bid >= position.exits.take_profit_price:
            return ExitReason.TAKE_PROFIT
        if bid <= position.exits.stop_loss_price:
            return ExitReason.STOP_LOSS
        return None

    def close_position(
        self,
        state: RunState,
        book: OrderBook,
        reason: ExitReason,
        now: int,
    ) -> ClosedTrade:
        """Close the open position with a simulated sell and summarise it.

        Sell ``min(notional, cost basis)`` into the bids. When the bids
        cannot absorb it, fall back to the best bid (or the last marked
        bid) and flag the summary as degraded.

        Args:
            state: Run state holding the open position; the slot is
                cleared and ``last_closed_id`` updated.
            book: Order book used for the exit fill.
            reason: Exit rule that fired.
            now: Exit time in epoch milliseconds.

        Returns:
            The immutable closed-trade summary.

        Raises:
            NoOpenPositionError: If no position is open.

        """
        position = _require_open(state)
        sell_notional = min(position.notional, position.cost_basis)
        fill = simulate_fill(book, Side.SELL, sell_notional)

        degraded = fill is None
        if fill is not None:
            exit_avg = fill.avg_price
        else:
            best_bid = book.best_bid
            exit_avg = best_bid if best_bid is not None else position.last_mark.bid
            logger.warning(
                "Insufficient bid depth to sell $%s of %s; using best bid %s",
                sell_notional,
                position.token_id,
                exit_avg,
            )

        pnl = (exit_avg - position.entry.avg_price) * position.entry.shares
        closed = ClosedTrade(
            trade_id=position.position_id,
            opened_at=position.opened_at,
            closed_at=now,
            market_id=position.market_id,
            question=position.question,
            url=position.url,
            token_id=position.token_id,
            notional=position.notional,
            entry_avg=position.entry.avg_price,
            exit_avg=exit_avg,
            shares=position.entry.shares,
            pnl=pnl,
            exit_reason=reason,
            exits=position.exits,
            last_mark=position.last_mark,
            exit_fill_degraded=degraded,
        )

        position.status = PositionStatus.CLOSED
        state.open_position = None
        state.last_closed_id = position.position_id
        logger.info("Closed %s: %s pnl=%s", position.position_id, reason.value, pnl)
        return closed


def _require_open(state: RunState) -> Position:
    """Return the open position or raise ``NoOpenPositionError``."""
    if state.open_position is None:
        raise NoOpenPositionError
    return state.open_position
