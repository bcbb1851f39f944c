"""Applications built on top of the market data clients."""
