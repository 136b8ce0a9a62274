"""Main Typer application for deskrank."""

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.logging import RichHandler
from rich.table import Table

from deskrank.cli._common import SiteRoot, console, open_context
from deskrank.cli.items import items_app
from deskrank.config import create_default_config, load_deskrank_config
from deskrank.config.settings import CONFIG_DIR_NAME, CONFIG_FILE_NAME
from deskrank.exceptions import ConfigError, RankingError
from deskrank.ranking.models import PairExhausted

app = typer.Typer(
    name="deskrank",
    help="Rank workstation setups through pairwise votes and Elo ratings",
    add_completion=False,
)
app.add_typer(items_app)

logger = logging.getLogger(__name__)


def configure_logging(level: int = logging.INFO) -> None:
    """Route log records through rich."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[
            RichHandler(
                console=console,
                rich_tracebacks=True,
                show_path=False,
                log_time_format="[%Y-%m-%d %H:%M:%S]",
            )
        ],
        force=True,
    )


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging"),
    ] = False,
) -> None:
    """Initialize CLI logging."""
    configure_logging(logging.DEBUG if verbose else logging.WARNING)


@app.command()
def init(
    site_root: Annotated[
        Path,
        typer.Argument(help="Directory to initialize"),
    ],
) -> None:
    """Create .deskrank/deskrank.toml and the ranking database.

    Examples:
        deskrank init my-site/

    """
    site_root = site_root.expanduser().resolve()
    site_root.mkdir(parents=True, exist_ok=True)
    config_path = site_root / CONFIG_DIR_NAME / CONFIG_FILE_NAME

    try:
        if not config_path.exists():
            # A config further up the tree belongs to another site.
            create_default_config(site_root)
        config = load_deskrank_config(site_root)
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e

    with open_context(site_root) as ctx:
        console.print(f"[bold]Config:[/bold] {config_path}")
        console.print(f"[bold]Database:[/bold] {config.database.resolve(site_root) or ':memory:'}")
        console.print(f"[bold]Items:[/bold] {ctx.store.count_items()}")


@app.command()
def pair(
    site_root: SiteRoot,
    voter: Annotated[str, typer.Option("--voter", help="Voter id")],
) -> None:
    """Draw one unseen pair for a voter."""
    with open_context(site_root) as ctx:
        try:
            result = ctx.selector.select_pair(voter)
            remaining = ctx.selector.remaining_pairs(voter)
        except RankingError as e:
            console.print(f"[red]{e.kind}: {e.message}[/red]")
            raise typer.Exit(1) from e

        if isinstance(result, PairExhausted):
            console.print(f"[yellow]{voter} has voted on all available items[/yellow]")
            return

        table = Table(title=f"Pair for {voter}")
        table.add_column("Side", style="cyan", justify="center")
        table.add_column("Item", style="green")
        table.add_column("Title")
        table.add_column("Rating", style="magenta", justify="right")
        for side, item in (("A", result.item_a), ("B", result.item_b)):
            table.add_row(side, item.item_id, item.title or "-", f"{item.rating:.0f}")
        console.print(table)
        console.print(f"[dim]{remaining} unseen pair(s) left for {voter}[/dim]")


@app.command()
def vote(
    site_root: SiteRoot,
    voter: Annotated[str, typer.Option("--voter", help="Voter id")],
    winner: Annotated[str, typer.Option("--winner", "-w", help="Preferred item")],
    loser: Annotated[str, typer.Option("--loser", "-l", help="Other item of the pair")],
) -> None:
    """Record a vote and print the new ratings."""
    with open_context(site_root) as ctx:
        try:
            outcome = ctx.engine.record_vote(voter, winner, loser)
        except RankingError as e:
            console.print(f"[red]{e.kind}: {e.message}[/red]")
            raise typer.Exit(1) from e

        console.print(f"winner: {outcome.winner_rating:.1f} ({outcome.winner_delta:+.1f})")
        console.print(f"loser: {outcome.loser_rating:.1f} ({outcome.loser_delta:+.1f})")


@app.command()
def top(
    site_root: SiteRoot,
    limit: Annotated[
        int | None,
        typer.Option(
            "--limit",
            "-n",
            help="Number of items to show (default: api.leaderboard_limit)",
        ),
    ] = None,
    rated_only: Annotated[
        bool,
        typer.Option("--rated-only", help="Hide items nobody has voted on yet"),
    ] = False,
) -> None:
    """Show the leaderboard.

    Examples:
        deskrank top my-site/
        deskrank top my-site/ --limit 20

    """
    with open_context(site_root) as ctx:
        limit = limit or ctx.config.api.leaderboard_limit
        leaderboard = ctx.store.leaderboard_table(limit, include_unrated=not rated_only).execute()

        if leaderboard.empty:
            console.print("[yellow]No rankings found[/yellow]")
            raise typer.Exit(0)

        table = Table(title=f"🏆 Top {limit} Workstations")
        table.add_column("Rank", style="cyan", justify="right")
        table.add_column("Item", style="green")
        table.add_column("Title")
        table.add_column("Elo Rating", style="magenta", justify="right")
        table.add_column("Votes", justify="right")

        for rank, row in enumerate(leaderboard.itertuples(index=False), 1):
            table.add_row(
                str(rank),
                row.item_id,
                row.title if isinstance(row.title, str) else "-",
                f"{row.rating:.0f}",
                str(row.vote_count),
            )

        console.print(table)


@app.command()
def history(
    site_root: SiteRoot,
    voter: Annotated[
        str | None,
        typer.Option("--voter", help="Show votes cast by one voter"),
    ] = None,
    item: Annotated[
        str | None,
        typer.Option("--item", "-i", help="Show votes involving one item"),
    ] = None,
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", help="Number of votes to show"),
    ] = 20,
) -> None:
    """Show vote history with rating changes."""
    with open_context(site_root) as ctx:
        votes = ctx.store.vote_history_table(voter_id=voter, item_id=item, limit=limit).execute()

        if votes.empty:
            console.print("[yellow]No vote history found[/yellow]")
            return

        table = Table(title="🔍 Vote History")
        table.add_column("Timestamp", style="dim")
        table.add_column("Voter", style="cyan")
        table.add_column("Winner", style="green")
        table.add_column("Loser", style="red")
        table.add_column("Rating Change", style="magenta")

        for row in votes.itertuples(index=False):
            change = row.winner_rating_after - row.winner_rating_before
            table.add_row(
                str(row.created_at)[:19],
                row.voter_id,
                row.winner_id,
                row.loser_id,
                f"{change:+.1f}",
            )

        console.print(table)
        console.print(f"\n[dim]Showing {len(votes)} vote(s)[/dim]")


@app.command()
def serve(
    site_root: SiteRoot,
    host: Annotated[str | None, typer.Option("--host", help="Interface to bind")] = None,
    port: Annotated[int | None, typer.Option("--port", "-p", help="Port to bind")] = None,
) -> None:
    """Serve the HTTP API with uvicorn."""
    import uvicorn

    from deskrank.api import create_app

    ctx = open_context(site_root)
    api = create_app(ctx, close_on_shutdown=True)
    uvicorn.run(api, host=host or ctx.config.api.host, port=port or ctx.config.api.port)


if __name__ == "__main__":
    app()
