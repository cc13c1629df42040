"""Package format specifications for distpack.

Provides an immutable registry of the package formats distpack can produce.
Each ``PackageFormatSpec`` carries everything the runner, locator and
publisher need to know about a format: the artifact extension chain, the
default manifest file, the build image, the toolchain to install, the
packaging tool's strict and relaxed flag sets, and where the tool leaves
its output.

Key Concepts:
    PackageFormatSpec: Frozen dataclass, one per format.
    ArtifactKind: Enum naming the produced artifact type.
    FORMATS: Registry dict mapping name → PackageFormatSpec.

Architecture Decisions:
    - Frozen dataclasses (not Pydantic): specs are constants, not user input.
    - Case-insensitive lookup: ``get_format("RPM")`` works.

Tags:
    formats, arch, rpm, makepkg, rpmbuild, registry
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ArtifactKind(str, Enum):
    """Kind of installable artifact."""

    ARCH_PACKAGE = "arch_package"
    RPM_PACKAGE = "rpm_package"


@dataclass(frozen=True)
class PackageFormatSpec:
    """Specification for a distribution package format."""

    name: str
    """Short name (e.g., 'arch')."""

    kind: ArtifactKind
    """Artifact kind produced by this format."""

    extension: str
    """Extension chain without the leading dot (e.g., 'pkg.tar.zst')."""

    manifest_name: str
    """Default manifest path relative to the workspace; ``{package}`` is the package name."""

    image: str
    """Default container image for the build."""

    install_command: str
    """Package manager command prefix used to install the toolchain."""

    toolchain: list[str]
    """Packages always installed before the build."""

    strict_command: str
    """Packaging tool invocation with all checks enabled."""

    relaxed_command: str
    """Packaging tool invocation skipping integrity/dependency/arch checks."""

    output_glob: str
    """Glob (relative to the build copy) of files the tool produces."""

    broad_glob: str
    """Last-resort glob used when scanning the whole workspace."""

    output_dirs: list[str] = field(default_factory=list)
    """Known workspace-relative directories where artifacts may land."""

    env: dict[str, str] = field(default_factory=dict)
    """Environment variables passed to the container."""

    @property
    def suffix(self) -> str:
        """Extension chain with its leading dot."""
        return f".{self.extension}"

    def default_manifest(self, package_name: str) -> str:
        """Default manifest path for ``package_name``."""
        return self.manifest_name.format(package=package_name)

    def project_pattern(self, package_name: str) -> str:
        """Glob for an artifact named after the package."""
        return f"{package_name}-*{self.suffix}"

    def generic_pattern(self) -> str:
        """Glob for any artifact of this format."""
        return f"*{self.suffix}"


ARCH = PackageFormatSpec(
    name="arch",
    kind=ArtifactKind.ARCH_PACKAGE,
    extension="pkg.tar.zst",
    manifest_name="PKGBUILD",
    image="archlinux:latest",
    install_command="pacman -Syu --noconfirm --needed",
    toolchain=["base-devel"],
    strict_command="makepkg --noconfirm",
    relaxed_command="makepkg --noconfirm --nodeps --skipinteg --ignorearch",
    output_glob="*.pkg.tar.zst",
    broad_glob="*.pkg.tar.*",
    env={"PKGEXT": ".pkg.tar.zst"},
)

RPM = PackageFormatSpec(
    name="rpm",
    kind=ArtifactKind.RPM_PACKAGE,
    extension="rpm",
    manifest_name="rpmbuild/SPECS/{package}.spec",
    image="fedora:latest",
    install_command="dnf install -y",
    toolchain=["rpm-build", "rpmdevtools"],
    strict_command="rpmbuild -bb",
    relaxed_command="rpmbuild -bb --nodeps",
    output_glob="rpmbuild/RPMS/*/*.rpm",
    broad_glob="*.rpm",
    output_dirs=["rpmbuild/RPMS", "target/release/rpmbuild/RPMS"],
)


# Registry of all supported formats
FORMATS: dict[str, PackageFormatSpec] = {
    "arch": ARCH,
    "rpm": RPM,
}


def get_format(name: str) -> PackageFormatSpec:
    """Look up a format spec by name.

    Raises
    ------
    ValueError
        If the format name is not recognized.
    """
    key = name.lower().strip()
    if key not in FORMATS:
        available = ", ".join(sorted(FORMATS.keys()))
        raise ValueError(f"Unknown package format: {name!r}. Available: {available}")
    return FORMATS[key]


def format_for_kind(kind: ArtifactKind) -> PackageFormatSpec:
    """Return the format spec that produces ``kind``."""
    for spec in FORMATS.values():
        if spec.kind == kind:
            return spec
    raise ValueError(f"No package format produces {kind.value!r}")
