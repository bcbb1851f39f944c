"""Scan driver: one-shot reports and the continuous paper position monitor.

Each monitor cycle loads the run state, either scans for an entry (no
position open) or marks and possibly exits the open position, then saves
the state. Cycles are separated by an interruptible sleep so SIGINT and
SIGTERM stop the loop promptly between cycles.
"""

import asyncio
import contextlib
import logging
import signal
from collections.abc import Callable

import httpx

from polyscout.apps.scanner.lifecycle import PositionLifecycle
from polyscout.apps.scanner.models import (
    EventType,
    Opportunity,
    RunState,
    ScanMode,
    ScannerConfig,
    ScoreWeights,
    TradeEvent,
)
from polyscout.apps.scanner.protocols import MarketDataSource, StateStore
from polyscout.apps.scanner.scanner import OpportunityScanner
from polyscout.apps.scanner.scoring import DEFAULT_WEIGHTS
from polyscout.clients.polymarket.exceptions import PolymarketAPIError
from polyscout.core.formatting import fmt_cents
from polyscout.core.timestamps import now_ms

logger = logging.getLogger(__name__)

_STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)
_OPEN_EVENT_KEYS = ("marketId", "tokenId", "question", "url", "notional", "entry", "exits")


class ScanDriver:
    """Drive report scans and the single-position monitor loop.

    Args:
        client: Market catalog and order book source.
        store: Persistence for run state and trade history.
        config: Thresholds for the mode being driven (the ``report`` or
            ``monitor`` settings section).
        weights: Score weights shared by both modes.
        clock: Returns the current time in epoch milliseconds.

    """

    def __init__(
        self,
        client: MarketDataSource,
        store: StateStore,
        config: ScannerConfig,
        weights: ScoreWeights = DEFAULT_WEIGHTS,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """Initialize the driver and its scanners."""
        self._client = client
        self._store = store
        self._config = config
        self._clock = clock
        self._report_scanner = OpportunityScanner(client, config, ScanMode.REPORT, weights)
        self._monitor_scanner = OpportunityScanner(client, config, ScanMode.MONITOR, weights)
        self._lifecycle = PositionLifecycle(config)
        self._stop_event = asyncio.Event()

    async def run_report(self) -> list[Opportunity]:
        """Run a single report-mode scan and persist the observed snapshots.

        Returns:
            Up to ``max_alerts`` opportunities, best first.

        Raises:
            PolymarketAPIError: If the market catalog cannot be fetched.

        """
        state = await self._store.load_state()
        markets = await self._client.get_markets(self._config.scan_limit)
        opportunities = await self._report_scanner.scan(markets, state.snapshots, self._clock())
        await self._store.save_state(state)
        return opportunities

    async def run_cycle(self, state: RunState, now: int | None = None) -> RunState:
        """Advance the monitor by one cycle.

        Transient fetch failures leave the state unchanged apart from any
        snapshots already recorded; the next cycle retries. A close is
        written to the store together with the updated state before this
        returns.

        Args:
            state: Run state loaded for this cycle; mutated in place.
            now: Cycle time in epoch milliseconds (defaults to the clock).

        Returns:
            The same ``state`` object, for chaining.

        """
        now = self._clock() if now is None else now
        if state.open_position is None:
            await self._scan_and_open(state, now)
        else:
            await self._monitor_position(state, now)
        return state

    async def run(
        self,
        *,
        max_cycles: int | None = None,
        install_signal_handlers: bool = True,
    ) -> int:
        """Run monitor cycles until stopped or ``max_cycles`` is reached.

        Args:
            max_cycles: Stop after this many cycles (``None`` for unlimited).
            install_signal_handlers: Stop gracefully on SIGINT and SIGTERM.

        Returns:
            Number of cycles completed.

        """
        loop = asyncio.get_running_loop()
        if install_signal_handlers:
            for sig in _STOP_SIGNALS:
                loop.add_signal_handler(sig, self.stop)

        cycles = 0
        try:
            while not self._stop_event.is_set():
                state = await self._store.load_state()
                await self.run_cycle(state)
                await self._store.save_state(state)
                cycles += 1
                if max_cycles is not None and cycles >= max_cycles:
                    break
                await self._sleep()
        finally:
            if install_signal_handlers:
                for sig in _STOP_SIGNALS:
                    loop.remove_signal_handler(sig)

        logger.info("Monitor stopped after %d cycles", cycles)
        return cycles

    def stop(self) -> None:
        """Ask the monitor loop to exit after the current cycle."""
        logger.info("Stop requested")
        self._stop_event.set()

    async def _sleep(self) -> None:
        """Wait one poll interval or until ``stop`` is called."""
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(
                self._stop_event.wait(), timeout=self._config.poll_interval_seconds
            )

    async def _scan_and_open(self, state: RunState, now: int) -> None:
        """Scan for an entry and open a position from the best opportunity."""
        try:
            markets = await self._client.get_markets(self._config.scan_limit)
        except (PolymarketAPIError, httpx.HTTPError):
            logger.warning("Failed to fetch market catalog; skipping cycle", exc_info=True)
            return

        opportunities = await self._monitor_scanner.scan(markets, state.snapshots, now)
        state.last_scan_at = now
        if not opportunities:
            logger.info("No opportunity this cycle")
            return

        position = self._lifecycle.open_position(state, opportunities[0], now)
        data = position.to_dict()
        await self._store.append_trade_event(
            TradeEvent(
                trade_id=position.position_id,
                time=now,
                event_type=EventType.OPEN,
                payload={key: data[key] for key in _OPEN_EVENT_KEYS},
            )
        )

    async def _monitor_position(self, state: RunState, now: int) -> None:
        """Mark the open position and close it if an exit rule fires."""
        position = state.open_position
        if position is None:
            return
        try:
            book = await self._client.get_order_book(position.token_id)
        except (PolymarketAPIError, httpx.HTTPError):
            logger.warning("Failed to fetch order book for %s", position.token_id, exc_info=True)
            return

        mark = self._lifecycle.mark(state, book, now)
        if mark is not None:
            await self._store.append_trade_event(
                TradeEvent(
                    trade_id=position.position_id,
                    time=now,
                    event_type=EventType.MARK,
                    payload={"bid": str(mark.bid), "ask": str(mark.ask), "mid": str(mark.mid)},
                )
            )

        reason = self._lifecycle.check_exit(position, book.best_bid, now)
        if reason is None:
            return

        closed = self._lifecycle.close_position(state, book, reason, now)
        await self._store.record_close(
            state,
            closed,
            TradeEvent(
                trade_id=closed.trade_id,
                time=now,
                event_type=EventType.CLOSE,
                payload={
                    "exitReason": reason.value,
                    "exitAvg": str(closed.exit_avg),
                    "pnl": str(closed.pnl),
                },
            ),
        )
        logger.info(
            "[CLOSED] %s | entry %s -> exit %s | PnL $%.2f | %s",
            closed.question,
            fmt_cents(closed.entry_avg),
            fmt_cents(closed.exit_avg),
            closed.pnl,
            reason.value,
        )
