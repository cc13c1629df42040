"""RPM spec rendering and rpmbuild tree staging.

An RPM build needs more than a manifest: ``rpmbuild`` expects a topdir with
its six standard subdirectories, the spec under ``SPECS/`` and a source
tarball under ``SOURCES/`` whose top-level directory matches what
``%setup -q`` unpacks (``<name>-<version>/``).

Example::

    template = RpmSpecTemplate(
        name="winetricks",
        version="1.2.3",
        summary="A fast, modern package manager for Wine",
        license="LGPL-2.1-or-later",
        build_requires=["cargo", "openssl-devel"],
        requires=["wine"],
        build_commands=["cargo build --release --bin winetricks"],
        install_commands=[
            "mkdir -p %{buildroot}/usr/bin",
            "install -m 755 target/release/winetricks %{buildroot}/usr/bin/",
        ],
        files=["/usr/bin/winetricks"],
    )
    topdir = stage_rpm_tree(Path("."), template, ["Cargo.toml", "src"])
"""

from __future__ import annotations

import tarfile
from collections.abc import Iterable
from datetime import date
from pathlib import Path

from pydantic import BaseModel, Field

from distpack.core.logging import get_logger

logger = get_logger(__name__)

RPM_TREE_DIRS = ("BUILD", "BUILDROOT", "RPMS", "SOURCES", "SPECS", "SRPMS")


class RpmSpecTemplate(BaseModel):
    """Project metadata rendered into an RPM ``.spec`` file."""

    name: str
    version: str
    release: str = "1"
    summary: str = ""
    license: str = "Unknown"
    url: str | None = None
    description: str | None = None
    build_requires: list[str] = Field(default_factory=list)
    requires: list[str] = Field(default_factory=list)
    build_commands: list[str] = Field(default_factory=list)
    install_commands: list[str] = Field(default_factory=list)
    files: list[str] = Field(default_factory=list)
    changelog_author: str = "Packager <packager@localhost>"
    changelog_entry: str = "Initial RPM package"

    @property
    def source_name(self) -> str:
        """Directory and tarball stem: ``<name>-<version>``."""
        return f"{self.name}-{self.version}"


def _field(label: str, value: str) -> str:
    return f"{label + ':':<16}{value}"


def render_spec(template: RpmSpecTemplate, today: date | None = None) -> str:
    """Render ``template`` as the text of an RPM spec."""
    today = today or date.today()
    lines = [
        _field("Name", template.name),
        _field("Version", template.version),
        _field("Release", f"{template.release}%{{?dist}}"),
        _field("Summary", template.summary or template.name),
        _field("License", template.license),
    ]
    if template.url:
        lines.append(_field("URL", template.url))
    lines.append(_field("Source0", "%{name}-%{version}.tar.gz"))
    lines.append("")
    lines.extend(_field("BuildRequires", req) for req in template.build_requires)
    lines.extend(_field("Requires", req) for req in template.requires)
    lines += [
        "",
        "%description",
        template.description or template.summary or template.name,
        "",
        "%prep",
        "%setup -q",
        "",
        "%build",
        *template.build_commands,
        "",
        "%install",
        *template.install_commands,
        "",
        "%files",
        *template.files,
        "",
        "%changelog",
        f"* {today.strftime('%a %b %d %Y')} {template.changelog_author} "
        f"- {template.version}-{template.release}",
        f"- {template.changelog_entry}",
    ]
    return "\n".join(lines) + "\n"


def stage_rpm_tree(
    workspace: str | Path,
    template: RpmSpecTemplate,
    include: Iterable[str],
    *,
    today: date | None = None,
) -> Path:
    """Create ``<workspace>/rpmbuild`` with spec and source tarball.

    Paths in ``include`` are relative to the workspace; absent ones are
    skipped. Returns the topdir.
    """
    workspace = Path(workspace)
    topdir = workspace / "rpmbuild"
    for name in RPM_TREE_DIRS:
        (topdir / name).mkdir(parents=True, exist_ok=True)

    spec_path = topdir / "SPECS" / f"{template.name}.spec"
    spec_path.write_text(render_spec(template, today), encoding="utf-8")

    tarball = topdir / "SOURCES" / f"{template.source_name}.tar.gz"
    packed = []
    with tarfile.open(tarball, "w:gz") as tar:
        for rel in include:
            source = workspace / rel
            if not source.exists():
                logger.debug("rpm.source_skipped", path=rel)
                continue
            tar.add(source, arcname=f"{template.source_name}/{Path(rel).as_posix()}")
            packed.append(rel)

    logger.info(
        "rpm.tree_staged",
        topdir=str(topdir),
        spec=str(spec_path),
        tarball=str(tarball),
        packed=packed,
    )
    return topdir
