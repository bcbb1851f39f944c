"""Intraday opportunity scanner and paper position monitor for Polymarket."""

__version__ = "0.1.0"
