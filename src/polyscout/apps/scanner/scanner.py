"""Opportunity scanner.

Filter catalog markets cheaply, fetch order books only for the survivors,
pick one outcome token per market, apply hard execution filters, score,
and rank. Every token quote observed along the way is written to the
snapshot store, including tokens of markets that end up rejected, so the
next cycle measures moves against a continuous series of observations.
"""

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal

import httpx

from polyscout.apps.scanner.fill import estimate_slippage
from polyscout.apps.scanner.models import Opportunity, ScanMode, ScannerConfig, ScoreWeights
from polyscout.apps.scanner.protocols import OrderBookSource
from polyscout.apps.scanner.scoring import DEFAULT_WEIGHTS, opportunity_score
from polyscout.apps.scanner.snapshots import SnapshotStore
from polyscout.clients.polymarket.exceptions import PolymarketAPIError
from polyscout.clients.polymarket.models import Market, OrderBook
from polyscout.core.formatting import fmt_cents, fmt_usd
from polyscout.core.models import TWO, ZERO, Side

logger = logging.getLogger(__name__)

_MIN_OUTCOMES = 2
_BINARY_OUTCOMES = 2


@dataclass(frozen=True)
class TokenQuote:
    """Top of book for one outcome token, with its move since the last snapshot."""

    token_id: str
    outcome: str
    book: OrderBook
    bid: Decimal
    ask: Decimal
    mid: Decimal
    spread: Decimal
    reference_price: Decimal | None
    prev_mid: Decimal | None
    move: Decimal


class OpportunityScanner:
    """Turn a page of catalog markets into ranked opportunities.

    Args:
        books: Order book source (usually the ``PolymarketClient``).
        config: Scan thresholds and sizing.
        mode: ``REPORT`` for the single-shot alert list or ``MONITOR``
            for the continuous single-position loop.
        weights: Score weights and thresholds.

    """

    def __init__(
        self,
        books: OrderBookSource,
        config: ScannerConfig,
        mode: ScanMode,
        weights: ScoreWeights = DEFAULT_WEIGHTS,
    ) -> None:
        """Initialize the scanner."""
        self._books = books
        self._config = config
        self._mode = mode
        self._weights = weights

    @property
    def mode(self) -> ScanMode:
        """Return the token selection mode."""
        return self._mode

    def is_eligible(self, market: Market, now: int) -> bool:  # noqa: PLR0911
        """Return True if a market passes every pre-fetch filter.

        Args:
            market: Catalog market.
            now: Current time in epoch milliseconds.

        Returns:
            Whether the market is worth fetching order books for.

        """
        cfg = self._config
        if market.closed or not market.enable_order_book:
            return False
        if self._mode is ScanMode.MONITOR and market.accepting_orders is False:
            return False
        if market.volume_24h < cfg.min_volume_24h or market.liquidity < cfg.min_liquidity:
            return False
        if (
            len(market.outcomes) < _MIN_OUTCOMES
            or len(market.outcome_prices) < _MIN_OUTCOMES
            or len(market.token_ids) < _MIN_OUTCOMES
        ):
            return False
        if self._mode is ScanMode.MONITOR and len(market.outcomes) != _BINARY_OUTCOMES:
            return False
        if market.end_ms is None:
            return False
        return now < market.end_ms < now + cfg.lookahead_ms

    def candidates(self, markets: list[Market], now: int) -> list[Market]:
        """Return eligible markets in catalog order, capped at ``max_candidates``."""
        eligible = [m for m in markets if self.is_eligible(m, now)]
        return eligible[: self._config.max_candidates]

    async def scan(
        self,
        markets: list[Market],
        snapshots: SnapshotStore,
        now: int,
    ) -> list[Opportunity]:
        """Scan markets and return the ranked opportunities.

        Args:
            markets: Catalog markets, typically sorted by 24h volume.
            snapshots: Snapshot store; read for moves and updated in place.
            now: Observation time in epoch milliseconds.

        Returns:
            Opportunities sorted by descending score (ties keep catalog
            order): at most ``max_alerts`` in report mode, at most one in
            monitor mode.

        """
        candidates = self.candidates(markets, now)
        logger.info(
            "Scanning %d of %d markets (%s mode)",
            len(candidates),
            len(markets),
            self._mode.value,
        )

        opportunities: list[Opportunity] = []
        for market in candidates:
            quotes = await self._observe(market, snapshots, now)
            chosen = self._select(quotes)
            if chosen is None:
                continue
            opportunity = self._evaluate(market, chosen)
            if opportunity is not None:
                opportunities.append(opportunity)

        ranked = sorted(opportunities, key=lambda o: o.score, reverse=True)
        limit = self._config.max_alerts if self._mode is ScanMode.REPORT else 1
        logger.info("Found %d opportunities", len(ranked))
        return ranked[:limit]

    async def _observe(
        self,
        market: Market,
        snapshots: SnapshotStore,
        now: int,
    ) -> list[TokenQuote]:
        """Fetch books for a market's tokens and record their snapshots."""
        if self._mode is ScanMode.REPORT:
            indices = [
                i
                for i in range(min(len(market.token_ids), len(market.outcome_prices)))
                if market.outcome_prices[i] is not None
            ]
            books = [await self._fetch_book(market.token_ids[i]) for i in indices]
        else:
            indices = list(range(_BINARY_OUTCOMES))
            books = await self._fetch_books_concurrently(
                [market.token_ids[i] for i in indices]
            )

        quotes: list[TokenQuote] = []
        for i, book in zip(indices, books, strict=True):
            if book is None:
                continue
            quote = _quote(market, i, book, snapshots, now)
            if quote is not None:
                quotes.append(quote)
        return quotes

    async def _fetch_book(self, token_id: str) -> OrderBook | None:
        """Fetch one order book, returning None on a transient failure."""
        try:
            return await self._books.get_order_book(token_id)
        except (PolymarketAPIError, httpx.HTTPError):
            logger.warning("Failed to fetch order book for %s", token_id, exc_info=True)
            return None

    async def _fetch_books_concurrently(self, token_ids: list[str]) -> list[OrderBook | None]:
        """Fetch several order books at once; failed tokens come back as None."""
        results = await asyncio.gather(
            *(self._books.get_order_book(token_id) for token_id in token_ids),
            return_exceptions=True,
        )
        books: list[OrderBook | None] = []
        for token_id, result in zip(token_ids, results, strict=True):
            if isinstance(result, (PolymarketAPIError, httpx.HTTPError)):
                logger.warning("Failed to fetch order book for %s: %s", token_id, result)
                books.append(None)
            elif isinstance(result, BaseException):
                raise result
            else:
                books.append(result)
        return books

    def _select(self, quotes: list[TokenQuote]) -> TokenQuote | None:
        """Pick the token to trade; the first quote wins ties."""
        if not quotes:
            return None
        if self._mode is ScanMode.REPORT:
            return min(quotes, key=_reference_error)
        return max(quotes, key=lambda q: abs(q.move))

    def _evaluate(self, market: Market, quote: TokenQuote) -> Opportunity | None:
        """Apply hard filters to the chosen token and score it."""
        cfg = self._config
        if quote.spread > cfg.max_spread:
            logger.debug("Skip %s: spread %s > %s", market.market_id, quote.spread, cfg.max_spread)
            return None

        buy = estimate_slippage(quote.book, Side.BUY, cfg.notional)
        if buy is None:
            logger.debug("Skip %s: not enough depth for $%s", market.market_id, cfg.notional)
            return None

        abs_move = abs(quote.move)
        if self._mode is ScanMode.MONITOR and abs_move < cfg.min_move:
            logger.debug("Skip %s: move %s < %s", market.market_id, abs_move, cfg.min_move)
            return None

        sell = estimate_slippage(quote.book, Side.SELL, cfg.notional)
        score = opportunity_score(
            spread=quote.spread,
            volume_24h=market.volume_24h,
            liquidity=market.liquidity,
            abs_move=abs_move,
            slippage_buy=buy.slippage,
            slippage_sell=sell.slippage if sell is not None else None,
            weights=self._weights,
        )
        reason = (
            f"absMove={fmt_cents(abs_move)}, spread={fmt_cents(quote.spread)}, "
            f"vol24h={fmt_usd(market.volume_24h)}"
        )
        return Opportunity(
            market=market,
            token_id=quote.token_id,
            outcome=quote.outcome,
            bid=quote.bid,
            ask=quote.ask,
            mid=quote.mid,
            spread=quote.spread,
            prev_mid=quote.prev_mid,
            move=quote.move,
            reference_price=quote.reference_price,
            entry=buy.fill,
            slippage_buy=buy.slippage,
            slippage_sell=sell.slippage if sell is not None else None,
            score=score,
            reason=reason,
        )


def _quote(
    market: Market,
    index: int,
    book: OrderBook,
    snapshots: SnapshotStore,
    now: int,
) -> TokenQuote | None:
    """Build a quote from a book and record it in the snapshot store.

    The move is measured against the snapshot from before this
    observation; a token seen for the first time has a zero move.
    """
    token_id = market.token_ids[index]
    bid, ask = book.best_bid, book.best_ask
    if bid is None or ask is None:
        logger.debug("Skip token %s: one-sided book", token_id)
        return None

    mid = (bid + ask) / TWO
    previous = snapshots.get(token_id)
    prev_mid = previous.mid if previous is not None else None
    move = mid - prev_mid if prev_mid is not None else ZERO
    snapshots.record(token_id, mid=mid, bid=bid, ask=ask, observed_at=now)

    return TokenQuote(
        token_id=token_id,
        outcome=market.outcomes[index] if index < len(market.outcomes) else "",
        book=book,
        bid=bid,
        ask=ask,
        mid=mid,
        spread=ask - bid,
        reference_price=(
            market.outcome_prices[index] if index < len(market.outcome_prices) else None
        ),
        prev_mid=prev_mid,
        move=move,
    )


def _reference_error(quote: TokenQuote) -> Decimal:
    """Return how far a token's mid sits from its catalog reference price."""
    if quote.reference_price is None:
        return Decimal("Infinity")
    return abs(quote.mid - quote.reference_price)
