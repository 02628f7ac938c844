"""Implementation of the package commands."""

import dataclasses
import json
from pathlib import Path
from typing import Any

import typer
from rich.table import Table

from apkg_srs.anki.package import AnkiPackage
from apkg_srs.exceptions import MediaFileError
from apkg_srs.issues import ConversionIssue, ConversionOptions, ConversionResult, Severity
from apkg_srs.universal import SrsPackage
from apkg_srs.utils.io import atomic_write

from .shared import console

_SEVERITY_STYLE = {
    Severity.WARNING: "[yellow]WARN[/yellow]",
    Severity.ERROR: "[red]ERROR[/red]",
    Severity.CRITICAL: "[bold red]CRITICAL[/bold red]",
}
_STATUS_STYLE = {
    "success": "[bold green]success[/bold green]",
    "partial": "[bold yellow]partial[/bold yellow]",
    "failure": "[bold red]failure[/bold red]",
}


def _print_issues(issues: list[ConversionIssue], limit: int | None = None) -> None:
    shown = issues if limit is None else issues[:limit]
    for issue in shown:
        kind = f" [dim]({issue.item_type.value})[/dim]" if issue.item_type else ""
        console.print(f"{_SEVERITY_STYLE[issue.severity]}{kind} {issue.message}")
    if len(shown) < len(issues):
        console.print(f"[dim]... and {len(issues) - len(shown)} more issue(s)[/dim]")


def _report(step: str, result: ConversionResult[Any], limit: int | None) -> None:
    console.print(f"{step}: {_STATUS_STYLE[result.status.value]}")
    if result.issues:
        _print_issues(result.issues, limit)


def _open(path: Path, options: ConversionOptions, limit: int | None) -> AnkiPackage:
    result = AnkiPackage.from_anki_export(path, options)
    _report("Read", result, limit)
    if result.data is None:
        raise typer.Exit(code=1)
    return result.data


def srs_package_to_dict(srs: SrsPackage) -> dict[str, Any]:
    """Plain JSON-friendly view of a universal package."""
    return {
        "decks": [dataclasses.asdict(d) for d in srs.get_decks()],
        "noteTypes": [dataclasses.asdict(t) for t in srs.get_note_types()],
        "notes": [dataclasses.asdict(n) for n in srs.get_notes()],
        "cards": [dataclasses.asdict(c) for c in srs.get_cards()],
        "reviews": [dataclasses.asdict(r) for r in srs.get_reviews()],
    }


def run_inspect(logger: Any, path: Path, options: ConversionOptions, limit: int | None) -> None:
    """Summarize an export's contents and any issues found while reading it.

    Raises:
        typer.Exit: If the export cannot be read
    """
    logger.info("inspect_started", path=str(path))
    with _open(path, options, limit) as package:
        table = Table(title=str(path.name))
        table.add_column("Entity", style="cyan")
        table.add_column("Count", justify="right")
        table.add_row("Decks", str(len(package.get_decks())))
        table.add_row("Note types", str(len(package.get_note_types())))
        table.add_row("Notes", str(len(package.get_notes())))
        table.add_row("Cards", str(len(package.get_cards())))
        table.add_row("Reviews", str(len(package.get_reviews())))
        table.add_row("Media files", str(len(package.list_media_files())))
        console.print()
        console.print(table)

        console.print("\n[bold]Decks:[/bold]")
        for deck in package.get_decks():
            console.print(f"  [cyan]• {deck.name}[/cyan] [dim](ID {deck.id})[/dim]")


def run_to_json(
    logger: Any,
    path: Path,
    output: Path | None,
    options: ConversionOptions,
    limit: int | None,
) -> None:
    """Convert an export to the universal model and write it as JSON.

    Raises:
        typer.Exit: If reading or conversion fails
    """
    with _open(path, options, limit) as package:
        result = package.to_srs_package(options)
        _report("Convert", result, limit)
        if result.data is None:
            raise typer.Exit(code=1)
        payload = json.dumps(srs_package_to_dict(result.data), indent=2, ensure_ascii=False)

    if output is None:
        console.print_json(payload)
        return

    with atomic_write(output) as f:
        f.write(payload)
    logger.info("srs_json_written", path=str(output))
    console.print(f"\n[bold green]Wrote[/bold green] {output}")


def run_repack(
    logger: Any,
    path: Path,
    output: Path,
    options: ConversionOptions,
    limit: int | None,
) -> None:
    """Round-trip an export through the universal model and write a new export.

    Raises:
        typer.Exit: If any step fails
    """
    with _open(path, options, limit) as source:
        srs_result = source.to_srs_package(options)
        _report("Convert to universal", srs_result, limit)
        if srs_result.data is None:
            raise typer.Exit(code=1)

        anki_result = AnkiPackage.from_srs_package(srs_result.data, options)
        _report("Convert to Anki", anki_result, limit)
        if anki_result.data is None:
            raise typer.Exit(code=1)

        with anki_result.data as target:
            for filename in source.list_media_files():
                try:
                    data = source.read_media_file(filename)
                except MediaFileError:
                    # Reported as a missing payload while reading
                    continue
                target.add_media_file(filename, data)
            export_result = target.to_anki_export(output, options)
            _report("Export", export_result, limit)
            if export_result.data is None:
                raise typer.Exit(code=1)

    logger.info("repack_completed", source=str(path), output=str(output))
    console.print(f"\n[bold green]Wrote[/bold green] {output}")
