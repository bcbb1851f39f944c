"""Shared helpers for scanner CLI commands.

Centralise verbose logging setup, building validated configuration from
settings plus command-line overrides, and opening the state repository.
"""

import logging
from pathlib import Path
from typing import Any

import typer

from polyscout.apps.scanner.models import ScannerConfig, ScoreWeights
from polyscout.apps.scanner.repository import StateRepository
from polyscout.core.config import ConfigError, get_config

_SQLITE_PREFIXES = ("sqlite+aiosqlite:///", "sqlite:///")
_MEMORY_DB = ":memory:"


def configure_verbose_logging() -> None:
    """Enable INFO-level logging for cycle-by-cycle scanner output."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(message)s",
        datefmt="%H:%M:%S",
    )


def load_scanner_config(section: str, overrides: dict[str, Any]) -> ScannerConfig:
    """Build a ``ScannerConfig`` from a settings section and CLI overrides.

    Options left unset on the command line (``None``) keep the file value.
    Abort with exit code 1 when the result is invalid.

    Args:
        section: Settings section name, ``report`` or ``monitor``.
        overrides: Setting names mapped to command-line values.

    Returns:
        Validated scanner configuration.

    """
    try:
        values = dict(get_config().get_section(section))
        values.update({k: v for k, v in overrides.items() if v is not None})
        return ScannerConfig.from_mapping(values)
    except (ConfigError, ValueError, ArithmeticError) as exc:
        typer.echo(f"Error: invalid {section} configuration: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def load_score_weights() -> ScoreWeights:
    """Build ``ScoreWeights`` from the ``scoring`` settings section."""
    try:
        return ScoreWeights.from_mapping(get_config().get_section("scoring"))
    except (ConfigError, ValueError, ArithmeticError) as exc:
        typer.echo(f"Error: invalid scoring configuration: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def resolve_db_url(db_url: str | None) -> str:
    """Return the database URL from the option or ``storage.db_url``.

    For file-backed SQLite URLs, create the parent directory so the first
    run works from a clean checkout.

    Args:
        db_url: Value of the ``--db-url`` option, if given.

    Returns:
        SQLAlchemy async connection string.

    """
    url = db_url or str(get_config().get("storage.db_url", "sqlite+aiosqlite:///polyscout.db"))
    for prefix in _SQLITE_PREFIXES:
        if url.startswith(prefix):
            path = url.removeprefix(prefix)
            if path and path != _MEMORY_DB:
                Path(path).parent.mkdir(parents=True, exist_ok=True)
            break
    return url


async def open_repository(db_url: str | None) -> StateRepository:
    """Create a repository for the resolved URL and ensure its tables exist."""
    repo = StateRepository(resolve_db_url(db_url))
    await repo.init_db()
    return repo
