"""Shared models, configuration, and time helpers."""
