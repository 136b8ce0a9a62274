"""Command-line interface for deskrank."""

from deskrank.cli.main import app

__all__ = ["app", "main"]


def main() -> None:
    """Entry point for the CLI."""
    app()
