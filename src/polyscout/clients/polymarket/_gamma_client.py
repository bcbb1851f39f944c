r"""Async HTTP client for the Polymarket Gamma API.

The Gamma API (``https://gamma-api.polymarket.com``) provides market
metadata: questions, end dates, 24h volume, liquidity, and outcome tokens.

Note:
    The Gamma API returns ``outcomes``, ``outcomePrices`` and
    ``clobTokenIds`` as JSON-encoded strings (e.g. ``"[\"0.72\",\"0.28\"]"``).
    The typed facade decodes them; this client returns raw dictionaries.

"""

from typing import Any

from polyscout.clients.polymarket._http import JsonHttpClient


class GammaClient(JsonHttpClient):
    """Async client for Polymarket Gamma market metadata.

    Args:
        base_url: Base URL for the Gamma API.
        timeout: Request timeout in seconds.

    """

    BASE_URL = "https://gamma-api.polymarket.com"

    def __init__(self, base_url: str = BASE_URL, timeout: float = 30.0) -> None:
        """Initialize the Gamma API client.

        Args:
            base_url: Base URL for the Gamma API.
            timeout: Request timeout in seconds.

        """
        super().__init__(base_url, timeout=timeout)

    async def get_markets(
        self,
        *,
        closed: bool = False,
        limit: int = 200,
        order: str = "volume24hr",
        ascending: bool = False,
    ) -> list[dict[str, Any]]:
        """Fetch a page of markets ordered by a Gamma sort field.

        Args:
            closed: Include closed (resolved) markets.
            limit: Maximum number of markets to return.
            order: Gamma field to sort on.
            ascending: Sort direction.

        Returns:
            List of raw market dictionaries. A non-list body yields ``[]``.

        Raises:
            PolymarketAPIError: When the API returns an error response.

        """
        params: dict[str, str | int | bool] = {
            "closed": closed,
            "limit": limit,
            "order": order,
            "ascending": ascending,
        }
        result = await self._get("/markets", params=params)
        if not isinstance(result, list):
            return []
        return [m for m in result if isinstance(m, dict)]
