"""
Root Typer application for the distpack CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

app = Typer(
    name="distpack",
    help="distpack — build distribution packages inside containers.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from distpack import __version__

        typer.echo(f"distpack {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str = typer.Option(
        "WARNING", "--log-level", "-l", envvar="DISTPACK_LOG_LEVEL", help="Log level."
    ),
    log_json: bool | None = typer.Option(
        None, "--log-json/--log-console", help="Force JSON or console log output."
    ),
) -> None:
    """distpack CLI — resolve versions, patch manifests, build and publish packages."""
    from distpack.core.logging import configure_logging

    configure_logging(level=log_level, json_format=log_json)


# ── Command registration ─────────────────────────────────────────────────

from distpack.cli.build import build_package, find_artifact, patch_manifest, show_version  # noqa: E402
from distpack.cli.info import list_formats, list_runtimes  # noqa: E402
from distpack.cli.rpm import app as rpm_app  # noqa: E402

app.command("build")(build_package)
app.command("version")(show_version)
app.command("patch")(patch_manifest)
app.command("find")(find_artifact)
app.command("formats")(list_formats)
app.command("runtimes")(list_runtimes)
app.add_typer(rpm_app, name="rpm", help="RPM spec rendering and rpmbuild staging.")
