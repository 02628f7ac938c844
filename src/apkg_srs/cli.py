"""Command-line interface for apkg-srs."""

from __future__ import annotations

import typer

from .cli_commands import package_commands

app = typer.Typer(
    name="apkg-srs",
    help="Convert Anki .apkg exports to and from the universal SRS package format.",
    no_args_is_help=True,
)

package_commands.register(app)


def cli() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    cli()
