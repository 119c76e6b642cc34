"""Main CLI application using Typer."""

from __future__ import annotations

import logging
from typing import Annotated

import typer

from .commands import draft
from .output import console

app = typer.Typer(
    name="goalgrid",
    help="Yearly goal bingo cards",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.add_typer(draft.app, name="draft")


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Verbose output"),
    ] = False,
):
    """Plan a year of goals on a bingo card.

    Examples:
        goalgrid draft new --year 2026 --title "Big year"
        goalgrid draft add "Run a half marathon"
        goalgrid draft finalize
        goalgrid draft sync --owner alice
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )


@app.command("version")
def version():
    """Show version information."""
    from .. import __version__

    console.print(f"goalgrid version: {__version__}")
