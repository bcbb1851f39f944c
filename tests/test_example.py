"""Smoke test that the package imports and exposes its version."""

from polyscout import __version__


def test_version() -> None:
    """Test that version is defined."""
    assert __version__ == "0.1.0"
