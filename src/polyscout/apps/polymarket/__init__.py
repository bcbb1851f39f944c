"""Command-line entry points for the Polymarket scanner."""
