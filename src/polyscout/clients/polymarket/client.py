"""Typed async facade for Polymarket market data.

Compose the Gamma (catalog) and CLOB (order book) clients into a single
async interface and coerce their loosely typed JSON into the frozen
dataclasses in ``models``. Malformed fields become defaults or ``None``
rather than errors so one bad record never aborts a scan.
"""

import json
import logging
from typing import Any

from polyscout.clients.polymarket._clob_client import ClobClient
from polyscout.clients.polymarket._constants import DEFAULT_TIMEOUT
from polyscout.clients.polymarket._gamma_client import GammaClient
from polyscout.clients.polymarket.models import Market, OrderBook, OrderLevel
from polyscout.core.models import ZERO, parse_decimal
from polyscout.core.timestamps import parse_iso_ms

logger = logging.getLogger(__name__)


class PolymarketClient:
    """Read-only client for Polymarket markets and order books.

    Args:
        clob_host: Base URL for the CLOB API.
        gamma_base_url: Base URL for the Gamma metadata API.
        timeout: Request timeout in seconds for both APIs.

    """

    CLOB_HOST = ClobClient.BASE_URL
    GAMMA_URL = GammaClient.BASE_URL

    def __init__(
        self,
        clob_host: str = CLOB_HOST,
        gamma_base_url: str = GAMMA_URL,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize both underlying HTTP clients.

        Args:
            clob_host: Base URL for the CLOB API.
            gamma_base_url: Base URL for the Gamma metadata API.
            timeout: Request timeout in seconds.

        """
        self._gamma = GammaClient(base_url=gamma_base_url, timeout=timeout)
        self._clob = ClobClient(base_url=clob_host, timeout=timeout)

    async def get_markets(self, limit: int) -> list[Market]:
        """Fetch open markets ordered by descending 24h volume.

        Args:
            limit: Maximum number of markets to request.

        Returns:
            Typed markets in catalog order.

        Raises:
            PolymarketAPIError: When the Gamma API call fails.

        """
        raw_markets = await self._gamma.get_markets(
            closed=False, limit=limit, order="volume24hr", ascending=False
        )
        return [parse_market(raw) for raw in raw_markets]

    async def get_order_book(self, token_id: str) -> OrderBook:
        """Fetch a typed order book for a token.

        Args:
            token_id: CLOB token identifier.

        Returns:
            Order book with levels in source order.

        Raises:
            PolymarketAPIError: When the CLOB API call fails.

        """
        raw = await self._clob.get_book(token_id)
        return parse_order_book(token_id, raw)

    async def close(self) -> None:
        """Close underlying HTTP clients."""
        await self._gamma.close()
        await self._clob.close()

    async def __aenter__(self) -> "PolymarketClient":
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager."""
        await self.close()


def parse_market(raw: dict[str, Any]) -> Market:
    """Convert a raw Gamma API market dict into a typed Market.

    Liquidity prefers ``liquidityNum`` and falls back to ``liquidity``.
    Missing numeric fields become zero; missing flags become False, except
    ``acceptingOrders`` which stays None when the catalog omits it.

    Args:
        raw: Market dictionary from the Gamma API.

    Returns:
        Typed Market dataclass.

    """
    end_date = str(raw.get("endDate") or "")
    liquidity = parse_decimal(raw.get("liquidityNum"))
    if liquidity is None:
        liquidity = parse_decimal(raw.get("liquidity"))
    accepting = raw.get("acceptingOrders")
    return Market(
        market_id=str(raw.get("id", "")),
        question=str(raw.get("question") or ""),
        slug=str(raw.get("slug") or ""),
        end_date=end_date,
        end_ms=parse_iso_ms(end_date),
        volume_24h=parse_decimal(raw.get("volume24hr")) or ZERO,
        liquidity=liquidity or ZERO,
        outcomes=tuple(str(o) for o in _parse_json_array(raw.get("outcomes"))),
        outcome_prices=tuple(
            parse_decimal(p) for p in _parse_json_array(raw.get("outcomePrices"))
        ),
        token_ids=tuple(str(t) for t in _parse_json_array(raw.get("clobTokenIds"))),
        closed=raw.get("closed") is True,
        enable_order_book=bool(raw.get("enableOrderBook", False)),
        accepting_orders=None if accepting is None else bool(accepting),
    )


def parse_order_book(token_id: str, raw: dict[str, Any]) -> OrderBook:
    """Convert a raw CLOB ``/book`` response into a typed OrderBook.

    Levels whose price or size is missing, malformed, or non-finite are
    dropped here. Non-positive values are kept and ignored downstream.

    Args:
        token_id: CLOB token identifier.
        raw: Raw order book dictionary with ``bids`` and ``asks``.

    Returns:
        Typed OrderBook dataclass.

    """
    return OrderBook(
        token_id=token_id,
        bids=_parse_levels(raw.get("bids")),
        asks=_parse_levels(raw.get("asks")),
    )


def _parse_levels(raw_levels: Any) -> tuple[OrderLevel, ...]:
    """Parse a list of ``{price, size}`` dicts, skipping malformed entries."""
    if not isinstance(raw_levels, list):
        return ()
    levels: list[OrderLevel] = []
    for level in raw_levels:
        if not isinstance(level, dict):
            continue
        price = parse_decimal(level.get("price"))
        size = parse_decimal(level.get("size"))
        if price is None or size is None:
            logger.debug("Dropping malformed level: %s", level)
            continue
        levels.append(OrderLevel(price=price, size=size))
    return tuple(levels)


def _parse_json_array(value: Any) -> list[Any]:
    """Decode a Gamma JSON-encoded array field.

    Args:
        value: A JSON string, an already-decoded list, or anything else.

    Returns:
        The decoded list, or ``[]`` when the value is not a JSON array.

    """
    if isinstance(value, list):
        return list(value)
    if not isinstance(value, str):
        return []
    try:
        decoded = json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return []
    return decoded if isinstance(decoded, list) else []

