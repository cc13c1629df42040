"""
CLI: ``distpack formats`` and ``distpack runtimes`` — registry listings.
"""

from __future__ import annotations

import json

import typer
from rich.console import Console
from rich.table import Table

console = Console()


def list_formats(
    json_out: bool = typer.Option(False, "--json", help="Output as JSON."),
) -> None:
    """List supported package formats."""
    from distpack.build.formats import FORMATS

    if json_out:
        out = {
            name: {
                "extension": spec.extension,
                "manifest": spec.manifest_name,
                "image": spec.image,
                "strict": spec.strict_command,
                "relaxed": spec.relaxed_command,
            }
            for name, spec in FORMATS.items()
        }
        typer.echo(json.dumps(out, indent=2))
        return

    table = Table(title="Package Formats")
    table.add_column("Name", style="bold cyan")
    table.add_column("Extension")
    table.add_column("Manifest")
    table.add_column("Image")
    table.add_column("Strict")
    table.add_column("Relaxed")

    for name, spec in FORMATS.items():
        table.add_row(
            name,
            spec.extension,
            spec.manifest_name,
            spec.image,
            spec.strict_command,
            spec.relaxed_command,
        )

    console.print(table)


def list_runtimes(
    json_out: bool = typer.Option(False, "--json", help="Output as JSON."),
) -> None:
    """List container runtimes and whether they are usable here."""
    from distpack.build.runtimes import RUNTIMES, CliRuntime

    available = {name: CliRuntime(spec).is_available() for name, spec in RUNTIMES.items()}

    if json_out:
        out = {
            name: {"executable": spec.executable, "available": available[name]}
            for name, spec in RUNTIMES.items()
        }
        typer.echo(json.dumps(out, indent=2))
        return

    table = Table(title="Container Runtimes")
    table.add_column("Name", style="bold cyan")
    table.add_column("Executable")
    table.add_column("Available")

    for name, spec in RUNTIMES.items():
        table.add_row(
            name,
            spec.executable,
            "[green]yes[/green]" if available[name] else "[red]no[/red]",
        )

    console.print(table)
