"""Rich console output helpers."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table
from rich.text import Text

from ..grid.models import Card, FreeCell, ItemCell
from ..merge.models import ExistingCardSummary

# Shared console instance
console = Console()
error_console = Console(stderr=True)

CELL_WIDTH = 14


def print_error(message: str) -> None:
    """Print an error message."""
    error_console.print(f"[red]Error:[/red] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]Warning:[/yellow] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]{message}[/green]")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[dim]{message}[/dim]")


def create_table(title: str, columns: list[tuple[str, str]]) -> Table:
    """Create a styled table.

    Args:
        title: Table title
        columns: List of (name, style) tuples
    """
    table = Table(title=title, show_header=True, header_style="bold")
    for name, style in columns:
        table.add_column(name, style=style)
    return table


def _cell_text(card: Card, position: int) -> Text:
    cell = card.cells[position]
    if isinstance(cell, FreeCell):
        return Text("FREE", style="bold magenta", justify="center")
    if isinstance(cell, ItemCell):
        content = cell.item.content
        if len(content) > CELL_WIDTH * 2:
            content = content[: CELL_WIDTH * 2 - 3] + "..."
        text = Text(f"{position}. ", style="dim")
        text.append(content, style="green strike" if cell.item.is_completed else "")
        return text
    return Text(f"{position}. ·", style="dim")


def print_card(card: Card) -> None:
    """Print a card as a grid under its header letters."""
    state = "finalized" if card.is_finalized else "draft"
    title = f"{card.display_name} ({card.year}, {state}, {card.item_count}/{card.capacity})"
    header = card.header_text.ljust(card.grid_size)
    table = create_table(title, [(letter, "") for letter in header])
    for column in table.columns:
        column.justify = "center"
        column.width = CELL_WIDTH
    for row in range(card.grid_size):
        start = row * card.grid_size
        table.add_row(*(_cell_text(card, pos) for pos in range(start, start + card.grid_size)))
    console.print(table)
    if card.category:
        print_info(f"Category: {card.category}")


def print_existing_card(existing: ExistingCardSummary) -> None:
    """Print what is already stored when a sync conflicts."""
    table = create_table(
        f"You already have a card for {existing.year}",
        [("Title", "cyan"), ("Items", "yellow"), ("State", "magenta"), ("ID", "dim")],
    )
    table.add_row(
        existing.title or "(untitled)",
        str(existing.item_count),
        "finalized" if existing.is_finalized else "draft",
        existing.id,
    )
    console.print(table)
