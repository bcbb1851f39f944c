"""Shared test configuration and fixtures."""

from collections.abc import Iterator

import pytest

import polyscout.core.config as config_module


@pytest.fixture(autouse=True)
def _reset_config_singleton() -> Iterator[None]:  # pyright: ignore[reportUnusedFunction]
    """Drop the cached ``get_config`` loader around every test.

    CLI tests patch the loader; a cached instance from an earlier test
    would otherwise leak settings between tests.
    """
    config_module._config = None
    yield
    config_module._config = None
