"""
CLI: ``distpack build`` and the stage commands it is made of.

Usage::

    distpack build --format arch --project Winetricks.rs --package-name winetricks \\
        --strip-dependency wine --strip-source
    distpack build --format rpm --config distpack.yaml --json

    distpack version                       # resolved version (GITHUB_REF aware)
    distpack patch PKGBUILD --set-version 1.2.3 --dry-run --show
    distpack find --format rpm --package-name winetricks --root target

Exit codes: 0 on success, 1 on a fatal failure.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

console = Console()
err_console = Console(stderr=True)


# ── Helpers ──────────────────────────────────────────────────────────────


def _load_config(config_file: Path | None, **options: Any) -> Any:
    """Build a PackagingConfig; only options actually given override."""
    from distpack.build.config import PackagingConfig
    from distpack.core.errors import ConfigError

    overrides = {k: v for k, v in options.items() if v is not None}
    try:
        if config_file is not None:
            return PackagingConfig.from_file(config_file, **overrides)
        return PackagingConfig.from_env(**overrides)
    except ConfigError as exc:
        err_console.print(f"[bold red]Config error[/bold red]: {exc.message}")
        raise typer.Exit(code=1) from exc
    except (ValidationError, ValueError) as exc:
        err_console.print(f"[bold red]Invalid configuration[/bold red]: {exc}")
        raise typer.Exit(code=1) from exc


def _human_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if value < 1024 or unit == "GiB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


def _print_attempts(result: Any) -> None:
    if not result.attempts:
        return
    table = Table(title="Build Attempts")
    table.add_column("#", justify="right")
    table.add_column("Strategy", style="bold")
    table.add_column("Runtime")
    table.add_column("Status")
    table.add_column("Exit")
    table.add_column("Time")
    table.add_column("Error")

    for index, attempt in enumerate(result.attempts, start=1):
        style = {
            "SUCCEEDED": "green",
            "RECOVERABLE": "yellow",
            "FATAL": "red bold",
        }.get(attempt.status.value, "white")
        table.add_row(
            str(index),
            attempt.strategy,
            attempt.runtime,
            f"[{style}]{attempt.status.value}[/{style}]",
            "—" if attempt.exit_code is None else str(attempt.exit_code),
            f"{attempt.duration_seconds:.1f}s",
            attempt.error or "—",
        )
    console.print(table)


def _print_failure(result: Any) -> None:
    err_console.print(f"[bold red]✗ packaging failed[/] — run_id: {result.run_id}")
    err_console.print("[bold]Diagnostics:[/]")
    for line in result.diagnostics:
        err_console.print(f"  - {line}", markup=False)

    if result.search_roots:
        err_console.print("[bold]Search roots:[/]")
        for root in result.search_roots:
            err_console.print(f"  {root}", markup=False)
        err_console.print("[bold]Search patterns:[/]")
        for pattern in result.search_patterns:
            err_console.print(f"  {pattern}", markup=False)

    for root, listing in result.directory_listing.items():
        err_console.print(f"[bold]Contents of {root}:[/]")
        for line in listing:
            err_console.print(f"  {line}", markup=False)


# ── build ────────────────────────────────────────────────────────────────


def build_package(
    package_format: str | None = typer.Option(None, "--format", "-f", help="Package format: arch or rpm."),
    workspace: Path | None = typer.Option(None, "--workspace", "-w", help="Project workspace root."),
    project: str | None = typer.Option(None, "--project", "-p", help="Project name for the artifact."),
    package_name: str | None = typer.Option(None, "--package-name", help="Package name in the manifest."),
    manifest: Path | None = typer.Option(None, "--manifest", "-m", help="Manifest path (workspace-relative)."),
    release_ref: str | None = typer.Option(
        None, "--release-ref", envvar="GITHUB_REF", help="Release ref, e.g. refs/tags/v1.2.3."
    ),
    strip_dependency: str | None = typer.Option(
        None, "--strip-dependency", help="Dependency removed from the manifest."
    ),
    strip_source: bool | None = typer.Option(
        None, "--strip-source/--keep-source", help="Clear source and checksum lists."
    ),
    in_place: bool | None = typer.Option(
        None, "--in-place/--no-in-place", help="Also write the patched manifest to disk."
    ),
    primary: str | None = typer.Option(None, "--primary", help="Primary container runtime."),
    secondary: str | None = typer.Option(None, "--secondary", help="Secondary container runtime."),
    no_secondary: bool = typer.Option(False, "--no-secondary", help="Disable the secondary runtime."),
    image: str | None = typer.Option(None, "--image", help="Build image."),
    build_command: str | None = typer.Option(
        None, "--build-command", help="Command building missing binaries."
    ),
    expected_binary: list[str] | None = typer.Option(
        None, "--expect-binary", help="Binary the package needs. Repeatable."
    ),
    timeout: int | None = typer.Option(None, "--timeout", "-t", help="Per-attempt timeout in seconds."),
    output_dir: Path | None = typer.Option(None, "--output", "-o", help="Output directory."),
    log_dir: Path | None = typer.Option(None, "--log-dir", help="Directory for run logs."),
    policy: str | None = typer.Option(None, "--policy", help="Artifact selection: first_match or newest."),
    config_file: Path | None = typer.Option(None, "--config", "-c", help="YAML configuration file."),
    json_out: bool = typer.Option(False, "--json", help="Output the result as JSON."),
) -> None:
    """Build, locate and publish a distribution package.

    Runs the fallback chain (primary-strict, primary-relaxed,
    secondary-strict, secondary-relaxed) and publishes the artifact as
    ``<Project>-<version>.<ext>``.
    """
    from distpack.build.pipeline import PackagingPipeline

    config = _load_config(
        config_file,
        package_format=package_format,
        workspace=workspace,
        project_name=project,
        package_name=package_name,
        manifest_path=manifest,
        release_ref=release_ref,
        strip_dependency=strip_dependency,
        strip_source=strip_source,
        patch_in_place=in_place,
        primary_runtime=primary,
        secondary_runtime="" if no_secondary else secondary,
        image=image,
        build_command=build_command,
        expected_binaries=expected_binary or None,
        attempt_timeout_seconds=timeout,
        output_dir=output_dir,
        log_dir=log_dir,
        selection_policy=policy,
    )

    if not json_out:
        console.print(f"[bold]distpack build[/] — run_id: {config.run_id}")
        console.print(f"  project: {config.project_name}  format: {config.package_format}")

    result = PackagingPipeline(config).run()

    if json_out:
        typer.echo(result.model_dump_json(indent=2, exclude={"attempts": {"__all__": {"logs"}}}))
        if not result.succeeded:
            raise typer.Exit(code=1)
        return

    _print_attempts(result)
    if not result.succeeded:
        _print_failure(result)
        raise typer.Exit(code=1)

    for line in result.diagnostics:
        console.print(f"  [dim]{line}[/]", highlight=False)
    size = result.artifact_size_bytes or 0
    console.print(f"[bold green]✓[/] {result.final_artifact_path} ({_human_size(size)})")


# ── Stage commands ───────────────────────────────────────────────────────


def show_version(
    workspace: Path = typer.Option(Path("."), "--workspace", "-w", help="Project workspace root."),
    manifest: Path = typer.Option(Path("Cargo.toml"), "--manifest", "-m", help="Version manifest."),
    fallback: list[str] | None = typer.Option(
        None, "--fallback", help="Further manifest consulted in order. Repeatable."
    ),
    release_ref: str | None = typer.Option(
        None, "--release-ref", envvar="GITHUB_REF", help="Release ref, e.g. refs/tags/v1.2.3."
    ),
    show_source: bool = typer.Option(False, "--source", help="Also print where the version came from."),
) -> None:
    """Print the version a build would use."""
    from distpack.build.version import resolve_version_with_source

    resolved, source = resolve_version_with_source(
        release_ref,
        workspace / manifest,
        [workspace / f for f in fallback or []],
    )
    typer.echo(f"{resolved}\t{source}" if show_source else resolved)


def patch_manifest(
    manifest: Path = typer.Argument(..., help="PKGBUILD or .spec file."),
    set_version: str = typer.Option(..., "--set-version", help="Version to write."),
    strip_dependency: str | None = typer.Option(
        None, "--strip-dependency", help="Dependency removed from the manifest."
    ),
    strip_source: bool = typer.Option(False, "--strip-source", help="Clear source and checksum lists."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Do not write the file."),
    show: bool = typer.Option(False, "--show", help="Print the patched manifest."),
) -> None:
    """Patch a manifest's version, dependency and source fields."""
    from distpack.build.manifest import ManifestPatcher, PatchOptions
    from distpack.core.errors import ManifestError

    try:
        outcome = ManifestPatcher().patch(
            manifest,
            set_version,
            PatchOptions(strip_dependency=strip_dependency, strip_source=strip_source),
            dry_run=dry_run,
        )
    except ManifestError as exc:
        err_console.print(f"[bold red]Error[/bold red]: {exc.message}")
        raise typer.Exit(code=1) from exc

    for warning in outcome.warnings:
        err_console.print(f"[yellow]warning[/yellow]: {warning}", markup=True, highlight=False)
    if show:
        typer.echo(outcome.document.text, nl=False)
        return
    verb = "would change" if dry_run else "changed"
    state = verb if outcome.changed else "unchanged"
    console.print(f"{manifest}: {state}", highlight=False)


def find_artifact(
    package_format: str = typer.Option("arch", "--format", "-f", help="Package format: arch or rpm."),
    package_name: str | None = typer.Option(None, "--package-name", help="Package name prefix."),
    root: list[Path] | None = typer.Option(None, "--root", "-r", help="Search root. Repeatable."),
    policy: str = typer.Option("first_match", "--policy", help="first_match or newest."),
) -> None:
    """Locate a built package without building anything."""
    from distpack.build.config import SelectionPolicy
    from distpack.build.formats import get_format
    from distpack.build.locator import ArtifactLocator

    try:
        fmt = get_format(package_format)
        selection = SelectionPolicy(policy)
    except ValueError as exc:
        err_console.print(f"[bold red]Error[/bold red]: {exc}")
        raise typer.Exit(code=1) from exc

    roots = root or [Path(".")]
    patterns = [fmt.generic_pattern()]
    if package_name:
        patterns.insert(0, fmt.project_pattern(package_name))

    locator = ArtifactLocator(kind=fmt.kind, policy=selection)
    artifact = locator.find(roots, patterns, scan_root=roots[0], scan_patterns=[fmt.broad_glob])
    if artifact is None:
        err_console.print("[bold red]No artifact found.[/] Searched:")
        for attempt in locator.attempts:
            err_console.print(f"  {attempt.describe()}", markup=False)
        raise typer.Exit(code=1)
    typer.echo(f"{artifact.path}\t{artifact.size_bytes}")
