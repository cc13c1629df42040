"""
CLI: ``distpack rpm`` — RPM spec rendering and rpmbuild tree staging.

The spec metadata comes from a YAML file whose keys mirror
:class:`~distpack.build.rpmspec.RpmSpecTemplate`; the version is resolved
like ``distpack build`` does unless given explicitly.

Usage::

    distpack rpm render --template rpm.yaml
    distpack rpm stage --template rpm.yaml --include Cargo.toml --include src
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console

app = typer.Typer(no_args_is_help=True)
console = Console()
err_console = Console(stderr=True)


def _load_template(
    template_file: Path,
    workspace: Path,
    version: str | None,
    release_ref: str | None,
) -> Any:
    from distpack.build.rpmspec import RpmSpecTemplate
    from distpack.build.version import resolve_version

    try:
        data = yaml.safe_load(template_file.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        err_console.print(f"[bold red]Error[/bold red]: cannot load {template_file}: {exc}")
        raise typer.Exit(code=1) from exc
    if not isinstance(data, dict):
        err_console.print(f"[bold red]Error[/bold red]: {template_file} must contain a mapping")
        raise typer.Exit(code=1)

    data["version"] = version or data.get("version") or resolve_version(
        release_ref, workspace / "Cargo.toml"
    )
    try:
        return RpmSpecTemplate(**data)
    except ValidationError as exc:
        err_console.print(f"[bold red]Invalid template[/bold red]: {exc}")
        raise typer.Exit(code=1) from exc


@app.command("render")
def render(
    template_file: Path = typer.Option(..., "--template", "-t", help="YAML spec metadata."),
    workspace: Path = typer.Option(Path("."), "--workspace", "-w", help="Project workspace root."),
    version: str | None = typer.Option(None, "--set-version", help="Version (default: resolved)."),
    release_ref: str | None = typer.Option(
        None, "--release-ref", envvar="GITHUB_REF", help="Release ref, e.g. refs/tags/v1.2.3."
    ),
) -> None:
    """Print the rendered RPM spec."""
    from distpack.build.rpmspec import render_spec

    template = _load_template(template_file, workspace, version, release_ref)
    typer.echo(render_spec(template), nl=False)


@app.command("stage")
def stage(
    template_file: Path = typer.Option(..., "--template", "-t", help="YAML spec metadata."),
    workspace: Path = typer.Option(Path("."), "--workspace", "-w", help="Project workspace root."),
    include: list[str] | None = typer.Option(
        None, "--include", "-i", help="Workspace path packed into the source tarball. Repeatable."
    ),
    version: str | None = typer.Option(None, "--set-version", help="Version (default: resolved)."),
    release_ref: str | None = typer.Option(
        None, "--release-ref", envvar="GITHUB_REF", help="Release ref, e.g. refs/tags/v1.2.3."
    ),
) -> None:
    """Create rpmbuild/ with the spec and the source tarball."""
    from distpack.build.rpmspec import stage_rpm_tree

    template = _load_template(template_file, workspace, version, release_ref)
    try:
        topdir = stage_rpm_tree(workspace, template, include or [])
    except OSError as exc:
        err_console.print(f"[bold red]Error[/bold red]: cannot stage rpmbuild tree: {exc}")
        raise typer.Exit(code=1) from exc

    console.print(f"[bold green]✓[/] staged {topdir}")
    console.print(f"  spec:    {topdir / 'SPECS' / (template.name + '.spec')}", highlight=False)
    console.print(f"  sources: {topdir / 'SOURCES' / (template.source_name + '.tar.gz')}", highlight=False)
