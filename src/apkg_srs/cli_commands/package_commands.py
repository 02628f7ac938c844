"""Package-related CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from .package_handler import run_inspect, run_repack, run_to_json
from .shared import load_or_exit, resolve_options

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", help="Path to apkg-srs.yaml", exists=True),
]
LogLevelOption = Annotated[
    str | None,
    typer.Option("--log-level", help="Log level (DEBUG, INFO, WARN, ERROR)"),
]
StrictOption = Annotated[
    bool | None,
    typer.Option(
        "--strict/--best-effort",
        help="Fail on any issue instead of returning partial results (default from config)",
    ),
]
LimitOption = Annotated[
    int | None,
    typer.Option("--max-issues", help="Show at most N issues per step", min=0),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Show all log messages on terminal"),
]


def register(app: typer.Typer) -> None:
    """Register package commands on the given Typer app."""

    @app.command(name="inspect")
    def inspect_package(
        path: Annotated[Path, typer.Argument(help="Anki export (.apkg) to inspect")],
        config_path: ConfigOption = None,
        log_level: LogLevelOption = None,
        strict: StrictOption = None,
        max_issues: LimitOption = 20,
        verbose: VerboseOption = False,
    ) -> None:
        """Show what an Anki export contains and what is wrong with it."""
        settings, logger = load_or_exit(config_path, log_level, verbose)
        run_inspect(logger, path, resolve_options(settings, strict), max_issues)

    @app.command(name="to-json")
    def to_json(
        path: Annotated[Path, typer.Argument(help="Anki export (.apkg) to convert")],
        output: Annotated[
            Path | None,
            typer.Option("--output", "-o", help="Output JSON file (stdout if omitted)"),
        ] = None,
        config_path: ConfigOption = None,
        log_level: LogLevelOption = None,
        strict: StrictOption = None,
        max_issues: LimitOption = 20,
        verbose: VerboseOption = False,
    ) -> None:
        """Convert an Anki export to the universal package format as JSON."""
        settings, logger = load_or_exit(config_path, log_level, verbose)
        run_to_json(logger, path, output, resolve_options(settings, strict), max_issues)

    @app.command()
    def repack(
        path: Annotated[Path, typer.Argument(help="Anki export (.apkg) to read")],
        output: Annotated[Path, typer.Argument(help="Anki export (.apkg) to write")],
        config_path: ConfigOption = None,
        log_level: LogLevelOption = None,
        strict: StrictOption = None,
        max_issues: LimitOption = 20,
        verbose: VerboseOption = False,
    ) -> None:
        """Rebuild an export by converting it to the universal format and back."""
        settings, logger = load_or_exit(config_path, log_level, verbose)
        run_repack(logger, path, output, resolve_options(settings, strict), max_issues)
