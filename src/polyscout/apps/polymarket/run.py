"""CLI entry point for the Polymarket opportunity scanner.

All command logic lives in the cli subpackage.
"""

from polyscout.apps.polymarket.cli import app

__all__ = ["app", "main"]


def main() -> None:
    """Run the scanner CLI application."""
    app()


if __name__ == "__main__":
    main()
