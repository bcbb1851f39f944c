"""HTTP clients for external market data sources."""
