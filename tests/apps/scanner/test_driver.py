"""Tests for the scan driver and the monitor loop."""

from decimal import Decimal
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio

from polyscout.apps.scanner.driver import ScanDriver
from polyscout.apps.scanner.models import EventType, ExitReason, RunState, ScannerConfig
from polyscout.apps.scanner.repository import StateRepository
from polyscout.clients.polymarket.exceptions import PolymarketAPIError
from polyscout.clients.polymarket.models import Market, OrderBook, OrderLevel

_D = Decimal
_NOW = 1_700_000_000_000
_STEP_MS = 30_000
_MINUTE_MS = 60_000

_CONFIG = ScannerConfig(
    min_volume_24h=_D(1_000),
    min_liquidity=_D(500),
    max_spread=_D("0.05"),
    min_move=_D("0.02"),
    notional=_D(50),
    take_profit=_D("0.02"),
    stop_loss=_D("0.02"),
    max_hold_ms=60 * _MINUTE_MS,
    poll_interval_seconds=0,
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
    outcome_prices=(_D("0.37"), _D("0.63")),
    token_ids=("a", "b"),
    closed=False,
    enable_order_book=True,
    accepting_orders=True,
)


def _book(token_id: str, bid: str, ask: str) -> OrderBook:
    return OrderBook(
        token_id=token_id,
        bids=(OrderLevel(_D(bid), _D(1_000)),),
        asks=(OrderLevel(_D(ask), _D(1_000)),),
    )


class _FakeClient:
    """Serve one market and whatever books the test sets."""

    def __init__(self) -> None:
        self.books: dict[str, OrderBook | Exception] = {}
        self.get_markets = AsyncMock(return_value=[_MARKET])
        self.get_order_book = AsyncMock(side_effect=self._book)

    def _book(self, token_id: str) -> OrderBook:
        result = self.books[token_id]
        if isinstance(result, Exception):
            raise result
        return result

    def quote(self, a: tuple[str, str], b: tuple[str, str]) -> None:
        self.books = {"a": _book("a", *a), "b": _book("b", *b)}


@pytest.fixture
def client() -> _FakeClient:
    """Fake market data client."""
    return _FakeClient()


@pytest_asyncio.fixture
async def repo() -> StateRepository:
    """Create an in-memory SQLite repository.

    Returns:
        Initialised StateRepository with an in-memory database.

    """
    repository = StateRepository("sqlite+aiosqlite:///:memory:", clock=lambda: _NOW)
    await repository.init_db()
    return repository


@pytest.fixture
def driver(client: _FakeClient, repo: StateRepository) -> ScanDriver:
    """Driver wired to the fake client, in-memory store, and a fixed clock."""
    return ScanDriver(client, repo, _CONFIG, clock=lambda: _NOW)


async def _open_position(client: _FakeClient, driver: ScanDriver) -> RunState:
    """Run two scan cycles that end with a position open on token ``a`` at 0.40."""
    state = RunState(created_at=_NOW)
    client.quote(a=("0.36", "0.37"), b=("0.63", "0.64"))
    await driver.run_cycle(state, _NOW)
    client.quote(a=("0.39", "0.40"), b=("0.61", "0.62"))
    await driver.run_cycle(state, _NOW + _STEP_MS)
    return state


class TestScanCycle:
    """Tests for cycles with no open position."""

    @pytest.mark.asyncio
    async def test_first_cycle_only_records(self, client: _FakeClient, driver: ScanDriver) -> None:
        """The first sighting has no move, so nothing opens."""
        state = RunState(created_at=_NOW)
        client.quote(a=("0.36", "0.37"), b=("0.63", "0.64"))

        await driver.run_cycle(state, _NOW)

        assert state.open_position is None
        assert state.last_scan_at == _NOW
        assert "a" in state.snapshots
        assert "b" in state.snapshots

    @pytest.mark.asyncio
    async def test_move_opens_position(
        self, client: _FakeClient, driver: ScanDriver, repo: StateRepository
    ) -> None:
        """A qualifying move opens one position and logs an OPEN event."""
        state = await _open_position(client, driver)

        position = state.open_position
        assert position is not None
        assert position.token_id == "a"
        assert position.entry.avg_price == _D("0.40")
        assert position.exits.take_profit_price == _D("0.42")
        assert position.exits.stop_loss_price == _D("0.38")
        events = await repo.get_trade_events(position.position_id)
        assert [e.event_type for e in events] == [EventType.OPEN]
        assert events[0].payload["tokenId"] == "a"
        assert events[0].payload["entry"]["avgPrice"] == "0.4"

    @pytest.mark.asyncio
    async def test_catalog_failure_skips_cycle(
        self, client: _FakeClient, driver: ScanDriver
    ) -> None:
        """A failed catalog fetch leaves the state untouched."""
        client.get_markets.side_effect = PolymarketAPIError(msg="down", status_code=502)
        state = RunState(created_at=_NOW)

        await driver.run_cycle(state, _NOW)

        assert state.last_scan_at is None
        assert len(state.snapshots) == 0
        client.get_order_book.assert_not_awaited()


class TestMonitorCycle:
    """Tests for cycles with an open position."""

    @pytest.mark.asyncio
    async def test_hold_logs_mark(
        self, client: _FakeClient, driver: ScanDriver, repo: StateRepository
    ) -> None:
        """Inside both thresholds the position stays open and is marked."""
        state = await _open_position(client, driver)
        client.quote(a=("0.40", "0.41"), b=("0.59", "0.60"))

        await driver.run_cycle(state, _NOW + 2 * _STEP_MS)

        position = state.open_position
        assert position is not None
        assert position.last_mark.bid == _D("0.40")
        events = await repo.get_trade_events(position.position_id)
        assert [e.event_type for e in events] == [EventType.OPEN, EventType.MARK]
        assert events[1].payload == {"bid": "0.40", "ask": "0.41", "mid": "0.405"}

    @pytest.mark.asyncio
    async def test_take_profit_closes(
        self, client: _FakeClient, driver: ScanDriver, repo: StateRepository
    ) -> None:
        """Crossing take-profit closes the position and writes the summary."""
        state = await _open_position(client, driver)
        position = state.open_position
        assert position is not None
        client.quote(a=("0.50", "0.51"), b=("0.49", "0.50"))

        await driver.run_cycle(state, _NOW + 2 * _STEP_MS)

        assert state.open_position is None
        assert state.last_closed_id == position.position_id
        closed = await repo.get_closed_trade(position.position_id)
        assert closed is not None
        assert closed.exit_reason is ExitReason.TAKE_PROFIT
        assert closed.exit_avg == _D("0.50")
        assert closed.pnl == _D("12.5")
        pointer = await repo.get_last_closed()
        assert pointer is not None and pointer.trade_id == position.position_id
        events = await repo.get_trade_events(position.position_id)
        assert [e.event_type for e in events] == [
            EventType.OPEN,
            EventType.MARK,
            EventType.CLOSE,
        ]
        assert events[2].payload["exitReason"] == "TAKE_PROFIT"

    @pytest.mark.asyncio
    async def test_time_stop_closes(
        self, client: _FakeClient, driver: ScanDriver, repo: StateRepository
    ) -> None:
        """Holding past the limit closes on the time stop."""
        state = await _open_position(client, driver)
        position = state.open_position
        assert position is not None
        client.quote(a=("0.40", "0.41"), b=("0.59", "0.60"))

        await driver.run_cycle(state, position.opened_at + 60 * _MINUTE_MS)

        closed = await repo.get_closed_trade(position.position_id)
        assert closed is not None
        assert closed.exit_reason is ExitReason.TIME_STOP

    @pytest.mark.asyncio
    async def test_bid_only_book_time_stop(
        self, client: _FakeClient, driver: ScanDriver, repo: StateRepository
    ) -> None:
        """A book with bids but no asks still lets the time stop fire."""
        state = await _open_position(client, driver)
        position = state.open_position
        assert position is not None
        client.books["a"] = OrderBook(token_id="a", bids=(OrderLevel(_D("0.40"), _D(1_000)),))

        await driver.run_cycle(state, position.opened_at + 180 * _MINUTE_MS)

        assert state.open_position is None
        closed = await repo.get_closed_trade(position.position_id)
        assert closed is not None
        assert closed.exit_reason is ExitReason.TIME_STOP
        assert closed.exit_avg == _D("0.40")
        assert not closed.exit_fill_degraded
        events = await repo.get_trade_events(position.position_id)
        assert [e.event_type for e in events] == [EventType.OPEN, EventType.CLOSE]

    @pytest.mark.asyncio
    async def test_bid_only_book_take_profit(
        self, client: _FakeClient, driver: ScanDriver, repo: StateRepository
    ) -> None:
        """A bid above take-profit closes even without an ask to mark against."""
        state = await _open_position(client, driver)
        position = state.open_position
        assert position is not None
        before = position.last_mark
        client.books["a"] = OrderBook(token_id="a", bids=(OrderLevel(_D("0.50"), _D(1_000)),))

        await driver.run_cycle(state, _NOW + 2 * _STEP_MS)

        closed = await repo.get_closed_trade(position.position_id)
        assert closed is not None
        assert closed.exit_reason is ExitReason.TAKE_PROFIT
        assert closed.pnl == _D("12.5")
        assert closed.last_mark == before

    @pytest.mark.asyncio
    async def test_empty_book_time_stop_uses_last_mark(
        self, client: _FakeClient, driver: ScanDriver, repo: StateRepository
    ) -> None:
        """With no bids at all the time stop exits at the last marked bid."""
        state = await _open_position(client, driver)
        position = state.open_position
        assert position is not None
        client.books["a"] = OrderBook(token_id="a")

        await driver.run_cycle(state, position.opened_at + 60 * _MINUTE_MS)

        closed = await repo.get_closed_trade(position.position_id)
        assert closed is not None
        assert closed.exit_reason is ExitReason.TIME_STOP
        assert closed.exit_avg == _D("0.39")
        assert closed.exit_fill_degraded

    @pytest.mark.asyncio
    async def test_empty_book_holds_before_time_stop(
        self, client: _FakeClient, driver: ScanDriver
    ) -> None:
        """Without bids the price targets cannot fire, so the position is held."""
        state = await _open_position(client, driver)
        client.books["a"] = OrderBook(token_id="a")

        await driver.run_cycle(state, _NOW + 2 * _STEP_MS)

        assert state.open_position is not None

    @pytest.mark.asyncio
    async def test_book_failure_keeps_position(
        self, client: _FakeClient, driver: ScanDriver, repo: StateRepository
    ) -> None:
        """A failed book fetch leaves the position and its log unchanged."""
        state = await _open_position(client, driver)
        position = state.open_position
        assert position is not None
        before = position.last_mark
        client.books["a"] = httpx.ConnectError("refused")

        await driver.run_cycle(state, _NOW + 2 * _STEP_MS)

        assert state.open_position is position
        assert position.last_mark == before
        events = await repo.get_trade_events(position.position_id)
        assert [e.event_type for e in events] == [EventType.OPEN]

    @pytest.mark.asyncio
    async def test_no_scan_while_holding(self, client: _FakeClient, driver: ScanDriver) -> None:
        """The catalog is not consulted while a position is open."""
        state = await _open_position(client, driver)
        client.get_markets.reset_mock()

        await driver.run_cycle(state, _NOW + 2 * _STEP_MS)

        client.get_markets.assert_not_awaited()


class TestRun:
    """Tests for the monitor loop and report runs."""

    @pytest.mark.asyncio
    async def test_run_persists_each_cycle(
        self, client: _FakeClient, driver: ScanDriver, repo: StateRepository
    ) -> None:
        """Each cycle loads and saves the state."""
        client.quote(a=("0.36", "0.37"), b=("0.63", "0.64"))

        cycles = await driver.run(max_cycles=2, install_signal_handlers=False)

        assert cycles == 2
        state = await repo.load_state()
        assert state.last_scan_at == _NOW
        snap = state.snapshots.get("a")
        assert snap is not None and snap.mid == _D("0.365")
        assert client.get_markets.await_count == 2

    @pytest.mark.asyncio
    async def test_stop_before_run(self, driver: ScanDriver) -> None:
        """A stop request before the first cycle runs nothing."""
        driver.stop()

        assert await driver.run(install_signal_handlers=False) == 0

    @pytest.mark.asyncio
    async def test_run_report(
        self, client: _FakeClient, driver: ScanDriver, repo: StateRepository
    ) -> None:
        """A report run returns the ranked picks and saves the snapshots."""
        client.quote(a=("0.36", "0.38"), b=("0.62", "0.64"))

        opportunities = await driver.run_report()

        assert [o.token_id for o in opportunities] == ["a"]
        state = await repo.load_state()
        assert "a" in state.snapshots
        assert "b" in state.snapshots

    @pytest.mark.asyncio
    async def test_run_report_propagates_catalog_error(
        self, client: _FakeClient, driver: ScanDriver
    ) -> None:
        """A report cannot run without the catalog."""
        client.get_markets.side_effect = PolymarketAPIError(msg="down", status_code=500)

        with pytest.raises(PolymarketAPIError):
            await driver.run_report()

    @pytest.mark.asyncio
    async def test_close_is_durable_without_state_save(
        self, client: _FakeClient, driver: ScanDriver, repo: StateRepository
    ) -> None:
        """A close survives a stop before the cycle's state save, and the loop resumes."""
        state = await repo.load_state()
        client.quote(a=("0.36", "0.37"), b=("0.63", "0.64"))
        await driver.run_cycle(state, _NOW)
        client.quote(a=("0.39", "0.40"), b=("0.61", "0.62"))
        await driver.run_cycle(state, _NOW + _STEP_MS)
        await repo.save_state(state)
        position = state.open_position
        assert position is not None

        state = await repo.load_state()
        client.quote(a=("0.50", "0.51"), b=("0.49", "0.50"))
        await driver.run_cycle(state, _NOW + 2 * _STEP_MS)
        reloaded = await repo.load_state()

        assert reloaded.open_position is None
        assert reloaded.last_closed_id == position.position_id
        assert await repo.get_closed_trade(position.position_id) is not None
        assert await driver.run(max_cycles=1, install_signal_handlers=False) == 1
