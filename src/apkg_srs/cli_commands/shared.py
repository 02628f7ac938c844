"""Shared utilities for CLI commands."""

from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError
from rich.console import Console

from apkg_srs.config import Settings, load_config, set_config
from apkg_srs.exceptions import ConfigurationError
from apkg_srs.issues import ConversionOptions
from apkg_srs.utils.logging import configure_logging, get_logger

# Shared console for all commands
console = Console()


def get_config_and_logger(
    config_path: Path | None = None,
    log_level: str | None = None,
    verbose: bool = False,
) -> tuple[Settings, Any]:
    """Load configuration, configure logging and return both.

    Args:
        config_path: Optional path to a YAML config file
        log_level: Overrides the configured log level when given
        verbose: Show all log messages on terminal (for debugging)

    Returns:
        Tuple of (Settings, Logger)

    Raises:
        ConfigurationError: If the config file is missing or invalid
    """
    settings = load_config(config_path)
    if log_level:
        try:
            settings.log_level = log_level
        except ValidationError as e:
            msg = f"Invalid log level: {log_level}"
            raise ConfigurationError(msg, suggestion="Use DEBUG, INFO, WARNING or ERROR.") from e
    set_config(settings)

    configure_logging(settings.log_level, log_file=settings.log_file, verbose=verbose)
    return settings, get_logger("cli")


def resolve_options(settings: Settings, strict: bool | None) -> ConversionOptions:
    """``--strict/--best-effort`` wins over the configured default."""
    if strict is None:
        return ConversionOptions(settings.error_handling)
    return ConversionOptions.strict() if strict else ConversionOptions.best_effort()


def load_or_exit(
    config_path: Path | None, log_level: str | None, verbose: bool
) -> tuple[Settings, Any]:
    """Like ``get_config_and_logger`` but reports config errors and exits."""
    try:
        return get_config_and_logger(config_path, log_level, verbose)
    except ConfigurationError as e:
        console.print(f"\n[bold red]Configuration error:[/bold red] {e.message}")
        if e.suggestion:
            console.print(f"  [dim]{e.suggestion}[/dim]")
        raise typer.Exit(code=2) from e
