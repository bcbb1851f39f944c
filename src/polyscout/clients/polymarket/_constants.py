"""Shared constants for the Polymarket HTTP clients."""

HTTP_BAD_REQUEST = 400
DEFAULT_TIMEOUT = 30.0
USER_AGENT = "polyscout/0.1"
MARKET_URL_PREFIX = "https://polymarket.com/market/"
