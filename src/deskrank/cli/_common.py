"""Helpers shared by CLI commands."""

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from deskrank.config import load_deskrank_config
from deskrank.config.settings import CONFIG_DIR_NAME
from deskrank.context import RankingContext
from deskrank.exceptions import ConfigError

console = Console()

SiteRoot = Annotated[
    Path,
    typer.Argument(help="Site root directory containing .deskrank/deskrank.toml"),
]


def open_context(site_root: Path) -> RankingContext:
    """Load config and open the ranking database of an initialized site."""
    site_root = site_root.expanduser().resolve()

    if not (site_root / CONFIG_DIR_NAME).exists():
        console.print(f"[red]No {CONFIG_DIR_NAME} directory found in {site_root}[/red]")
        console.print("Run 'deskrank init' first to create a site")
        raise typer.Exit(1)

    try:
        config = load_deskrank_config(site_root)
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e

    return RankingContext.open(config, site_root)
