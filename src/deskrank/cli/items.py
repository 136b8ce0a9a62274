"""CLI commands for the item lifecycle (upload, flags, deletion)."""

import logging
from typing import Annotated

import typer
from rich.table import Table

from deskrank.cli._common import SiteRoot, console, open_context
from deskrank.exceptions import RankingError

logger = logging.getLogger(__name__)

items_app = typer.Typer(
    name="items",
    help="Add, list, flag and delete ranked items",
)


@items_app.command(name="add")
def add_item(
    site_root: SiteRoot,
    title: Annotated[
        str | None,
        typer.Option("--title", "-t", help="Display title of the item"),
    ] = None,
    owner: Annotated[
        str | None,
        typer.Option("--owner", "-o", help="Owner id (omit for a showcase item)"),
    ] = None,
    count: Annotated[
        int,
        typer.Option("--count", "-c", min=1, help="Number of items to create"),
    ] = 1,
) -> None:
    """Add items at the baseline rating.

    Examples:
        deskrank items add my-site/ --title "Walnut desk" --owner alice
        deskrank items add my-site/ --count 10

    """
    with open_context(site_root) as ctx:
        for index in range(count):
            item_title = title if count == 1 or title is None else f"{title} #{index + 1}"
            item = ctx.store.create_item(item_title, owner)
            console.print(f"[green]Created[/green] {item.item_id} ({item.rating:.0f})")


@items_app.command(name="list")
def list_items(
    site_root: SiteRoot,
    owner: Annotated[
        str,
        typer.Option("--owner", "-o", help="Owner whose items to list"),
    ],
) -> None:
    """List an owner's items, newest first, including inactive ones."""
    with open_context(site_root) as ctx:
        items = ctx.store.list_owner_items(owner)

        if not items:
            console.print(f"[yellow]No items found for {owner}[/yellow]")
            return

        table = Table(title=f"Items of {owner}")
        table.add_column("Item", style="cyan")
        table.add_column("Title", style="green")
        table.add_column("Rating", style="magenta", justify="right")
        table.add_column("Votes", justify="right")
        table.add_column("Active", justify="center")
        table.add_column("Opted out", justify="center")

        for item in items:
            table.add_row(
                item.item_id,
                item.title or "-",
                f"{item.rating:.0f}",
                str(item.vote_count),
                "yes" if item.active else "no",
                "yes" if item.voting_opt_out else "no",
            )

        console.print(table)


@items_app.command(name="set")
def set_flags(
    site_root: SiteRoot,
    item_id: Annotated[str, typer.Argument(help="Item to update")],
    active: Annotated[
        bool | None,
        typer.Option("--active/--inactive", help="Include or exclude the item from ranking"),
    ] = None,
    opt_out: Annotated[
        bool | None,
        typer.Option("--opt-out/--opt-in", help="Hide the item from voting pairs"),
    ] = None,
) -> None:
    """Change an item's active and voting opt-out flags."""
    with open_context(site_root) as ctx:
        try:
            with ctx.locks.hold(item_id):
                item = ctx.store.set_item_flags(item_id, active=active, voting_opt_out=opt_out)
        except RankingError as e:
            console.print(f"[red]{e.kind}: {e.message}[/red]")
            raise typer.Exit(1) from e

        console.print(f"active={item.active} voting_opt_out={item.voting_opt_out}")


@items_app.command(name="owner-opt-out")
def owner_opt_out(
    site_root: SiteRoot,
    owner: Annotated[str, typer.Argument(help="Owner id")],
    opt_in: Annotated[
        bool,
        typer.Option("--opt-in", help="Reverse a previous opt-out"),
    ] = False,
) -> None:
    """Opt every item of an owner, including later uploads, out of (or back into) voting."""
    with open_context(site_root) as ctx:
        updated = ctx.store.set_owner_opt_out(owner, opt_out=not opt_in)
        console.print(f"Updated {updated} item(s) of {owner}")


@items_app.command(name="delete")
def delete_item(
    site_root: SiteRoot,
    item_id: Annotated[str, typer.Argument(help="Item to delete")],
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip the confirmation prompt"),
    ] = False,
) -> None:
    """Delete an item. Vote history is kept or purged per pairing.purge_history_on_delete."""
    if not yes:
        typer.confirm(f"Delete item {item_id}?", abort=True)

    with open_context(site_root) as ctx:
        try:
            purged = ctx.delete_item(item_id)
        except RankingError as e:
            console.print(f"[red]{e.kind}: {e.message}[/red]")
            raise typer.Exit(1) from e

        console.print(f"[green]Deleted[/green] {item_id} (purged {purged} vote(s))")
