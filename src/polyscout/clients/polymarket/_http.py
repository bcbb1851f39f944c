"""Shared async JSON-over-HTTP plumbing for the Polymarket clients."""

from typing import Any, Self

import httpx

from polyscout.clients.polymarket._constants import DEFAULT_TIMEOUT, HTTP_BAD_REQUEST, USER_AGENT
from polyscout.clients.polymarket.exceptions import PolymarketAPIError


class JsonHttpClient:
    """Async HTTP client that returns parsed JSON or raises ``PolymarketAPIError``.

    Args:
        base_url: Base URL of the API.
        timeout: Request timeout in seconds.

    """

    def __init__(self, base_url: str, timeout: float = DEFAULT_TIMEOUT) -> None:
        """Initialize the client.

        Args:
            base_url: Base URL of the API; a trailing slash is stripped.
            timeout: Request timeout in seconds.

        """
        self.base_url = base_url.rstrip("/")
        self._http_client = httpx.AsyncClient(
            timeout=timeout,
            headers={"user-agent": USER_AGENT},
        )

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Send a GET request and return parsed JSON.

        Args:
            path: Request path relative to ``base_url``.
            params: Query parameters.

        Returns:
            Parsed JSON response.

        Raises:
            PolymarketAPIError: On transport failure or an error response.

        """
        url = f"{self.base_url}{path}"
        try:
            response = await self._http_client.request("GET", url, params=params)
        except httpx.HTTPError as exc:
            raise PolymarketAPIError(
                msg=f"HTTP request failed: {exc}",
                status_code=HTTP_BAD_REQUEST,
            ) from exc

        if response.status_code >= HTTP_BAD_REQUEST:
            self._handle_error(response)

        try:
            result: Any = response.json()
        except ValueError as exc:
            raise PolymarketAPIError(
                msg=f"Invalid JSON from {url}",
                status_code=response.status_code,
            ) from exc
        return result

    @staticmethod
    def _handle_error(response: httpx.Response) -> None:
        """Raise a PolymarketAPIError from an error response.

        Args:
            response: HTTP response with a non-2xx status code.

        Raises:
            PolymarketAPIError: Always raised with status code and message.

        """
        try:
            data = response.json()
            msg: str = data.get("message") or data.get("error") or f"HTTP {response.status_code}"
        except (ValueError, AttributeError):
            msg = f"HTTP {response.status_code}"
        raise PolymarketAPIError(msg=msg, status_code=response.status_code)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http_client.aclose()

    async def __aenter__(self) -> Self:
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager."""
        await self.close()
