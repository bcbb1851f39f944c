"""Async HTTP client for the public Polymarket CLOB order book endpoint."""

from typing import Any

from polyscout.clients.polymarket._http import JsonHttpClient


class ClobClient(JsonHttpClient):
    """Read-only client for ``GET /book`` on the Polymarket CLOB.

    Args:
        base_url: Base URL for the CLOB API.
        timeout: Request timeout in seconds.

    """

    BASE_URL = "https://clob.polymarket.com"

    def __init__(self, base_url: str = BASE_URL, timeout: float = 30.0) -> None:
        """Initialize the CLOB client.

        Args:
            base_url: Base URL for the CLOB API.
            timeout: Request timeout in seconds.

        """
        super().__init__(base_url, timeout=timeout)

    async def get_book(self, token_id: str) -> dict[str, Any]:
        """Fetch the raw order book for a token.

        Args:
            token_id: CLOB token identifier.

        Returns:
            Raw dictionary with ``bids`` and ``asks`` level lists. A
            non-object body yields an empty dictionary.

        Raises:
            PolymarketAPIError: When the API returns an error response.

        """
        result = await self._get("/book", params={"token_id": token_id})
        if not isinstance(result, dict):
            return {}
        return result
