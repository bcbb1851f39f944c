"""Tests for the single paper position lifecycle."""

from decimal import Decimal

import pytest

from polyscout.apps.scanner.exceptions import NoOpenPositionError, PositionAlreadyOpenError
from polyscout.apps.scanner.lifecycle import PositionLifecycle
from polyscout.apps.scanner.models import (
    ExitReason,
    FillEstimate,
    Opportunity,
    PositionStatus,
    RunState,
    ScannerConfig,
)
from polyscout.clients.polymarket.models import Market, OrderBook, OrderLevel

_D = Decimal
_NOW = 1_700_000_000_000
_MINUTE_MS = 60_000

_CONFIG = ScannerConfig(
    notional=_D(50),
    take_profit=_D("0.02"),
    stop_loss=_D("0.02"),
    max_hold_ms=60 * _MINUTE_MS,
)

_MARKET = Market(
    market_id="m1",
    question="Will it rain?",
    slug="will-it-rain",
    end_date="",
    end_ms=_NOW + 86_400_000,
    volume_24h=_D(80_000),
    liquidity=_D(20_000),
    outcomes=("Yes", "No"),
    outcome_prices=(_D("0.40"), _D("0.60")),
    token_ids=("tok-yes", "tok-no"),
    closed=False,
    enable_order_book=True,
    accepting_orders=True,
)


def _opportunity(entry: str = "0.40", bid: str = "0.39", ask: str = "0.40") -> Opportunity:
    """Build a scanner pick filled entirely at ``entry``."""
    price = _D(entry)
    return Opportunity(
        market=_MARKET,
        token_id="tok-yes",
        outcome="Yes",
        bid=_D(bid),
        ask=_D(ask),
        mid=(_D(bid) + _D(ask)) / 2,
        spread=_D(ask) - _D(bid),
        prev_mid=_D("0.37"),
        move=_D("0.025"),
        reference_price=_D("0.40"),
        entry=FillEstimate(
            avg_price=price,
            shares=_D(50) / price,
            notional_filled=_D(50),
            best_price=price,
            worst_price=price,
        ),
        slippage_buy=_D(0),
        slippage_sell=_D(0),
        score=72,
        reason="absMove=2.50c, spread=1.00c, vol24h=$80,000",
    )


def _book(bids: list[tuple[str, str]], asks: list[tuple[str, str]]) -> OrderBook:
    """Build an order book from ``(price, size)`` string pairs."""
    return OrderBook(
        token_id="tok-yes",
        bids=tuple(OrderLevel(_D(p), _D(s)) for p, s in bids),
        asks=tuple(OrderLevel(_D(p), _D(s)) for p, s in asks),
    )


@pytest.fixture
def lifecycle() -> PositionLifecycle:
    """Lifecycle with 2c exits and a one hour time stop."""
    return PositionLifecycle(_CONFIG)


@pytest.fixture
def state() -> RunState:
    """Empty run state."""
    return RunState(created_at=_NOW)


class TestOpenPosition:
    """Tests for opening the paper position."""

    def test_sets_exits_from_entry(self, lifecycle: PositionLifecycle, state: RunState) -> None:
        """Take-profit and stop-loss are offset from the average entry."""
        position = lifecycle.open_position(state, _opportunity(), _NOW)

        assert state.open_position is position
        assert position.position_id == f"t{_NOW}-m1-tok-yes"
        assert position.exits.take_profit_price == _D("0.42")
        assert position.exits.stop_loss_price == _D("0.38")
        assert position.exits.max_hold_ms == 60 * _MINUTE_MS
        assert position.notional == _D(50)
        assert position.entry.shares == _D(125)
        assert position.entry.book_bid == _D("0.39")
        assert position.status is PositionStatus.OPEN
        assert position.url == _MARKET.url

    def test_records_entry_snapshot(self, lifecycle: PositionLifecycle, state: RunState) -> None:
        """Opening a position writes the entry quote to the snapshot store."""
        lifecycle.open_position(state, _opportunity(), _NOW)

        snap = state.snapshots.get("tok-yes")
        assert snap is not None
        assert snap.mid == _D("0.395")
        assert snap.observed_at == _NOW

    def test_exits_clamped_to_price_range(
        self, lifecycle: PositionLifecycle, state: RunState
    ) -> None:
        """Exit prices never leave the tradable ``(0, 1)`` range."""
        position = lifecycle.open_position(
            state, _opportunity(entry="0.99", bid="0.98", ask="0.99"), _NOW
        )
        assert position.exits.take_profit_price == _D("0.999")

        other = RunState(created_at=_NOW)
        position = lifecycle.open_position(
            other, _opportunity(entry="0.015", bid="0.01", ask="0.015"), _NOW
        )
        assert position.exits.stop_loss_price == _D("0.001")

    def test_second_open_rejected(self, lifecycle: PositionLifecycle, state: RunState) -> None:
        """Only one position may be open at a time."""
        first = lifecycle.open_position(state, _opportunity(), _NOW)

        with pytest.raises(PositionAlreadyOpenError) as exc_info:
            lifecycle.open_position(state, _opportunity(), _NOW + 1)

        assert exc_info.value.position_id == first.position_id
        assert state.open_position is first


class TestMark:
    """Tests for marking the open position."""

    def test_updates_last_mark(self, lifecycle: PositionLifecycle, state: RunState) -> None:
        """A two-sided book updates the mark and the snapshot."""
        position = lifecycle.open_position(state, _opportunity(), _NOW)
        book = _book([("0.41", "100"), ("0.43", "100")], [("0.45", "100"), ("0.44", "100")])

        mark = lifecycle.mark(state, book, _NOW + _MINUTE_MS)

        assert mark is not None
        assert mark.bid == _D("0.43")
        assert mark.ask == _D("0.44")
        assert mark.mid == _D("0.435")
        assert position.last_mark == mark
        snap = state.snapshots.get("tok-yes")
        assert snap is not None and snap.observed_at == _NOW + _MINUTE_MS

    def test_one_sided_book_skipped(self, lifecycle: PositionLifecycle, state: RunState) -> None:
        """A book without asks leaves the previous mark in place."""
        position = lifecycle.open_position(state, _opportunity(), _NOW)
        before = position.last_mark

        assert lifecycle.mark(state, _book([("0.41", "100")], []), _NOW + 1) is None
        assert position.last_mark == before

    def test_requires_open_position(self, lifecycle: PositionLifecycle, state: RunState) -> None:
        """Marking with no position open is an error."""
        with pytest.raises(NoOpenPositionError):
            lifecycle.mark(state, _book([("0.41", "100")], [("0.42", "100")]), _NOW)


class TestCheckExit:
    """Tests for exit rule evaluation."""

    @pytest.mark.parametrize(
        ("bid", "elapsed", "expected"),
        [
            ("0.425", 5 * _MINUTE_MS, ExitReason.TAKE_PROFIT),
            ("0.42", 5 * _MINUTE_MS, ExitReason.TAKE_PROFIT),
            ("0.37", 5 * _MINUTE_MS, ExitReason.STOP_LOSS),
            ("0.38", 5 * _MINUTE_MS, ExitReason.STOP_LOSS),
            ("0.40", 60 * _MINUTE_MS, ExitReason.TIME_STOP),
            ("0.40", 5 * _MINUTE_MS, None),
            ("0.419", 59 * _MINUTE_MS, None),
        ],
    )
    def test_exit_rules(
        self,
        lifecycle: PositionLifecycle,
        state: RunState,
        bid: str,
        elapsed: int,
        expected: ExitReason | None,
    ) -> None:
        """Each rule fires at its threshold."""
        position = lifecycle.open_position(state, _opportunity(), _NOW)

        assert PositionLifecycle.check_exit(position, _D(bid), _NOW + elapsed) is expected

    def test_time_stop_takes_priority(
        self, lifecycle: PositionLifecycle, state: RunState
    ) -> None:
        """An expired hold closes on the time stop even above take-profit."""
        position = lifecycle.open_position(state, _opportunity(), _NOW)

        reason = PositionLifecycle.check_exit(position, _D("0.50"), _NOW + 61 * _MINUTE_MS)

        assert reason is ExitReason.TIME_STOP

    @pytest.mark.parametrize(
        ("elapsed", "expected"),
        [(180 * _MINUTE_MS, ExitReason.TIME_STOP), (5 * _MINUTE_MS, None)],
    )
    def test_no_bid_only_time_stop(
        self,
        lifecycle: PositionLifecycle,
        state: RunState,
        elapsed: int,
        expected: ExitReason | None,
    ) -> None:
        """Without a bid only the time stop can fire."""
        position = lifecycle.open_position(state, _opportunity(), _NOW)

        assert PositionLifecycle.check_exit(position, None, _NOW + elapsed) is expected


class TestClosePosition:
    """Tests for closing the paper position."""

    def test_take_profit_close(self, lifecycle: PositionLifecycle, state: RunState) -> None:
        """A deep bid book fills the exit and realises the gain."""
        lifecycle.open_position(state, _opportunity(), _NOW)
        book = _book([("0.50", "1000")], [("0.51", "1000")])

        closed = lifecycle.close_position(
            state, book, ExitReason.TAKE_PROFIT, _NOW + 10 * _MINUTE_MS
        )

        assert closed.trade_id == f"t{_NOW}-m1-tok-yes"
        assert closed.exit_avg == _D("0.50")
        assert closed.entry_avg == _D("0.40")
        assert closed.shares == _D(125)
        assert closed.pnl == _D("12.5")
        assert closed.exit_reason is ExitReason.TAKE_PROFIT
        assert closed.duration_ms == 10 * _MINUTE_MS
        assert not closed.exit_fill_degraded

    def test_clears_slot(self, lifecycle: PositionLifecycle, state: RunState) -> None:
        """Closing frees the slot and records the last closed id."""
        position = lifecycle.open_position(state, _opportunity(), _NOW)

        lifecycle.close_position(state, _book([("0.37", "1000")], []), ExitReason.STOP_LOSS, _NOW)

        assert state.open_position is None
        assert state.last_closed_id == position.position_id
        assert position.status is PositionStatus.CLOSED

    def test_stop_loss_close(self, lifecycle: PositionLifecycle, state: RunState) -> None:
        """Selling below entry realises a loss."""
        lifecycle.open_position(state, _opportunity(), _NOW)

        closed = lifecycle.close_position(
            state, _book([("0.25", "1000")], []), ExitReason.STOP_LOSS, _NOW + _MINUTE_MS
        )

        assert closed.pnl == _D("-18.75")
        assert closed.pnl_cents == _D("-1875.00")

    def test_thin_book_falls_back_to_best_bid(
        self, lifecycle: PositionLifecycle, state: RunState
    ) -> None:
        """When bids cannot absorb the sell, exit at the best bid and flag it."""
        lifecycle.open_position(state, _opportunity(), _NOW)
        book = _book([("0.36", "10")], [])

        closed = lifecycle.close_position(state, book, ExitReason.STOP_LOSS, _NOW + _MINUTE_MS)

        assert closed.exit_fill_degraded
        assert closed.exit_avg == _D("0.36")

    def test_empty_book_falls_back_to_last_mark(
        self, lifecycle: PositionLifecycle, state: RunState
    ) -> None:
        """With no bids at all the last marked bid is used."""
        lifecycle.open_position(state, _opportunity(), _NOW)

        closed = lifecycle.close_position(state, _book([], []), ExitReason.TIME_STOP, _NOW)

        assert closed.exit_fill_degraded
        assert closed.exit_avg == _D("0.39")

    def test_requires_open_position(self, lifecycle: PositionLifecycle, state: RunState) -> None:
        """Closing with no position open is an error."""
        with pytest.raises(NoOpenPositionError):
            lifecycle.close_position(state, _book([], []), ExitReason.TIME_STOP, _NOW)
