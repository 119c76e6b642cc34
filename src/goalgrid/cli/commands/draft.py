"""Local draft commands.

The draft lives in a JSON file until ``goalgrid draft sync`` imports it into
an account.
"""

from __future__ import annotations

import asyncio
from datetime import date
from typing import Annotated

import typer

from ...grid.errors import ConflictError, GoalGridError, ImportFailedError
from ...grid.models import CATEGORY_NAMES, Card
from ...local.cache import LocalDraftCache
from ...local.storage import FileDraftStorage
from ...merge.models import KeepExisting, Replace, Resolution, SaveAsNew
from ...merge.resolver import MergeResolver
from ...store.sqlite import SqliteCardStore
from ..config import CliConfig
from ..output import (
    console,
    print_card,
    print_error,
    print_existing_card,
    print_info,
    print_success,
    print_warning,
)

app = typer.Typer(help="Edit the local goal card")


def get_cache() -> LocalDraftCache:
    """Get the local draft cache for the configured draft file."""
    return LocalDraftCache(FileDraftStorage(CliConfig.load().draft_path))


def _fail(e: GoalGridError) -> typer.Exit:
    print_error(e.message)
    return typer.Exit(1)


def _show(card: Card, message: str | None = None) -> None:
    if message:
        print_success(message)
    print_card(card)


@app.command("new")
def new_draft(
    year: Annotated[
        int | None,
        typer.Option("--year", "-y", help="Card year (defaults to the current year)"),
    ] = None,
    title: Annotated[str | None, typer.Option("--title", "-t", help="Card title")] = None,
    category: Annotated[
        str | None,
        typer.Option("--category", "-c", help=f"One of: {', '.join(CATEGORY_NAMES)}"),
    ] = None,
    grid_size: Annotated[
        int, typer.Option("--size", "-s", help="Grid size (2-5)")
    ] = 5,
    header: Annotated[
        str | None, typer.Option("--header", help="Header letters above the columns")
    ] = None,
    no_free: Annotated[
        bool, typer.Option("--no-free", help="Start without a FREE space")
    ] = False,
):
    """Start a new local card."""
    try:
        card = get_cache().create(
            year or date.today().year,
            title=title,
            category=category,
            grid_size=grid_size,
            header_text=header,
            has_free_space=not no_free,
        )
    except GoalGridError as e:
        raise _fail(e) from None
    _show(card, f"Started a {card.grid_size}x{card.grid_size} card for {card.year}")


@app.command("show")
def show_draft():
    """Show the local card."""
    try:
        card = get_cache().get()
    except GoalGridError as e:
        raise _fail(e) from None
    print_card(card)


@app.command("add")
def add_item(
    content: Annotated[str, typer.Argument(help="Goal text")],
    position: Annotated[
        int | None,
        typer.Option("--position", "-p", help="Grid position (random empty cell if omitted)"),
    ] = None,
):
    """Add a goal to the card."""
    try:
        card, placed = get_cache().add_item(content, position)
    except GoalGridError as e:
        raise _fail(e) from None
    _show(card, f"Added goal at position {placed}")
    if card.item_count == card.capacity:
        print_info("Card is full. Run 'goalgrid draft finalize' to lock it in.")


@app.command("remove")
def remove_item(position: Annotated[int, typer.Argument(help="Grid position")]):
    """Remove the goal at a position."""
    try:
        card = get_cache().remove_item(position)
    except GoalGridError as e:
        raise _fail(e) from None
    _show(card, f"Removed goal at position {position}")


@app.command("edit")
def edit_item(
    position: Annotated[int, typer.Argument(help="Grid position")],
    content: Annotated[str, typer.Argument(help="New goal text")],
):
    """Change the text of a goal."""
    try:
        card = get_cache().update_item(position, content)
    except GoalGridError as e:
        raise _fail(e) from None
    _show(card, f"Updated goal at position {position}")


@app.command("swap")
def swap_items(
    position_a: Annotated[int, typer.Argument(help="First position")],
    position_b: Annotated[int, typer.Argument(help="Second position")],
):
    """Exchange two cells."""
    try:
        card = get_cache().swap_items(position_a, position_b)
    except GoalGridError as e:
        raise _fail(e) from None
    _show(card)


@app.command("shuffle")
def shuffle():
    """Randomly rearrange the goals. FREE stays put."""
    try:
        card = get_cache().shuffle()
    except GoalGridError as e:
        raise _fail(e) from None
    _show(card, "Shuffled")


@app.command("header")
def set_header(text: Annotated[str, typer.Argument(help="Header letters")]):
    """Set the header letters shown above the columns."""
    try:
        card = get_cache().update_config(header_text=text)
    except GoalGridError as e:
        raise _fail(e) from None
    _show(card)


@app.command("free")
def toggle_free(
    enable: Annotated[bool, typer.Argument(help="on or off")],
):
    """Turn the FREE space on or off."""
    try:
        card = get_cache().update_config(has_free_space=enable)
    except GoalGridError as e:
        raise _fail(e) from None
    _show(card, "FREE space on" if enable else "FREE space off")


@app.command("meta")
def set_meta(
    title: Annotated[str | None, typer.Option("--title", "-t", help="Card title")] = None,
    category: Annotated[
        str | None,
        typer.Option("--category", "-c", help=f"One of: {', '.join(CATEGORY_NAMES)}"),
    ] = None,
    clear_title: Annotated[bool, typer.Option("--clear-title", help="Remove the title")] = False,
    clear_category: Annotated[
        bool, typer.Option("--clear-category", help="Remove the category")
    ] = False,
):
    """Change the card's title or category."""
    changes: dict[str, str | None] = {}
    if title is not None or clear_title:
        changes["title"] = None if clear_title else title
    if category is not None or clear_category:
        changes["category"] = None if clear_category else category
    if not changes:
        print_warning("Nothing to change")
        return
    try:
        card = get_cache().set_meta(**changes)
    except GoalGridError as e:
        raise _fail(e) from None
    _show(card)


@app.command("finalize")
def finalize(
    private: Annotated[
        bool, typer.Option("--private", help="Hide the card from friends")
    ] = False,
):
    """Lock the layout. The card becomes permanent once synced."""
    try:
        card = get_cache().finalize(visible_to_friends=not private)
    except GoalGridError as e:
        raise _fail(e) from None
    _show(card, "Card finalized")


@app.command("delete")
def delete_draft(
    force: Annotated[bool, typer.Option("--force", "-f", help="Skip confirmation")] = False,
):
    """Discard the local card."""
    cache = get_cache()
    if not cache.exists():
        print_info("No local card")
        return
    if not force and not typer.confirm("Discard the local card?"):
        raise typer.Abort()
    cache.delete()
    print_success("Local card discarded")


def _prompt_resolution(year: int) -> Resolution:
    choice = typer.prompt(
        "Keep the existing card, save yours as a new card, or replace it? [keep/new/replace]",
        default="keep",
    ).strip().lower()
    if choice == "new":
        return SaveAsNew(title=typer.prompt(f"Title for your new {year} card"))
    if choice == "replace":
        return Replace(confirmed=typer.confirm("Permanently delete the existing card?"))
    return KeepExisting()


async def _sync(
    db_path: str, owner: str, cache: LocalDraftCache, resolution: Resolution | None
) -> Card:
    store = await SqliteCardStore.open(db_path)
    try:
        resolver = MergeResolver(store)
        if resolution is None:
            try:
                return await resolver.import_local(owner, cache)
            except ConflictError as e:
                if e.existing is None:
                    raise
                print_existing_card(e.existing)
                resolution = _prompt_resolution(e.existing.year)
                while True:
                    try:
                        return await resolver.resolve(owner, cache, resolution, e.existing.id)
                    except ConflictError as taken:
                        if taken.code != "title_taken":
                            raise
                        print_error(taken.message)
                        resolution = SaveAsNew(
                            title=typer.prompt(f"Another title for your new {e.existing.year} card")
                        )
        existing = await store.get_by_key(owner, cache.get().year)
        if existing is None:
            return await resolver.import_local(owner, cache)
        return await resolver.resolve(owner, cache, resolution, existing.id)
    finally:
        await store.close()


@app.command("sync")
def sync(
    owner: Annotated[
        str | None, typer.Option("--owner", "-o", help="Account to sync into")
    ] = None,
    keep: Annotated[
        bool, typer.Option("--keep", help="On conflict, keep the stored card")
    ] = False,
    save_as: Annotated[
        str | None,
        typer.Option("--save-as", help="On conflict, save the local card under this title"),
    ] = None,
    replace: Annotated[
        bool, typer.Option("--replace", help="On conflict, replace the stored card")
    ] = False,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Confirm --replace")] = False,
):
    """Import the local card into an account."""
    config = CliConfig.load()
    owner = owner or config.owner
    if not owner:
        print_error("No account set. Use --owner or set GOALGRID_OWNER.")
        raise typer.Exit(1)
    if sum([keep, save_as is not None, replace]) > 1:
        raise typer.BadParameter("Choose at most one of --keep, --save-as, --replace")

    resolution: Resolution | None = None
    if keep:
        resolution = KeepExisting()
    elif save_as is not None:
        resolution = SaveAsNew(title=save_as)
    elif replace:
        resolution = Replace(
            confirmed=yes or typer.confirm("Permanently delete the stored card if there is one?")
        )

    cache = LocalDraftCache(FileDraftStorage(config.draft_path))
    try:
        card = asyncio.run(_sync(str(config.db_path), owner, cache, resolution))
    except ImportFailedError as e:
        print_error(e.message)
        if not e.rolled_back:
            print_warning(f"Cleanup also failed: {e.rollback_error}")
        print_info("Your local card was kept. Try again later.")
        raise typer.Exit(1) from None
    except GoalGridError as e:
        raise _fail(e) from None

    print_success(f"Synced card {card.id} ({card.year}) to {owner}")
    state = "Finalized" if card.is_finalized else "Draft"
    console.print(f"[dim]{state}, {card.item_count}/{card.capacity} goals[/dim]")
