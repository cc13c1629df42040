"""Build script composition.

Every fallback strategy hands its runtime a single ``bash -c`` script. The
script is composed here from the :class:`BuildSpec`, the invocation mode and
the patched manifest text:

1. install toolchain packages (best-effort: the image may already have them)
2. create the unprivileged ``builder`` user (makepkg refuses to run as root)
3. copy the read-only ``/src`` mount to a writable build directory
4. write the patched manifest into the copy
5. build expected-but-missing binaries with the configured build command
6. run the packaging tool with the strict or relaxed flag set
7. export the produced packages to ``/out``

Steps 1-2 never fail the script; from step 3 on, any failing command makes
the script exit non-zero, which advances the fallback chain.
"""

from __future__ import annotations

import base64
import posixpath
import shlex

from distpack.build.config import BuildSpec
from distpack.build.formats import ArtifactKind
from distpack.build.results import InvocationMode
from distpack.build.runtimes import OUTPUT_MOUNT, SOURCE_MOUNT

BUILD_USER = "builder"
BUILD_DIR = f"/home/{BUILD_USER}/build"


def _as_builder(command: str) -> str:
    return f"su {BUILD_USER} -c {shlex.quote(command)}"


def tool_command(spec: BuildSpec, mode: InvocationMode) -> str:
    """Packaging tool invocation for ``mode``, run from the build copy."""
    fmt = spec.format_spec
    base = fmt.strict_command if mode is InvocationMode.STRICT else fmt.relaxed_command
    manifest = posixpath.join(BUILD_DIR, spec.manifest_path)
    if fmt.kind is ArtifactKind.ARCH_PACKAGE:
        manifest_dir, manifest_name = posixpath.split(manifest)
        command = f"cd {shlex.quote(manifest_dir)} && {base}"
        if manifest_name != "PKGBUILD":
            command += f" -p {shlex.quote(manifest_name)}"
        return command
    topdir = posixpath.join(BUILD_DIR, "rpmbuild")
    return (
        f"cd {BUILD_DIR} && {base} "
        f"--define {shlex.quote('_topdir ' + topdir)} {shlex.quote(manifest)}"
    )


def export_command(spec: BuildSpec) -> str:
    """Copy produced packages to the output mount; fails when none exist."""
    fmt = spec.format_spec
    if fmt.kind is ArtifactKind.ARCH_PACKAGE:
        base = posixpath.dirname(posixpath.join(BUILD_DIR, spec.manifest_path))
    else:
        base = BUILD_DIR
    return f"cp {shlex.quote(base)}/{fmt.output_glob} {OUTPUT_MOUNT}/"


def _write_manifest(spec: BuildSpec, manifest_text: str) -> list[str]:
    # base64 keeps the patched bytes exact, whatever the manifest contains
    target = shlex.quote(posixpath.join(BUILD_DIR, spec.manifest_path))
    encoded = base64.b64encode(manifest_text.encode("utf-8")).decode("ascii")
    return [
        f"mkdir -p $(dirname {target})",
        f"printf '%s' {encoded} | base64 -d > {target}",
    ]


def _ensure_binaries(spec: BuildSpec) -> list[str]:
    if not spec.expected_binaries:
        return []
    paths = " ".join(shlex.quote(b) for b in spec.expected_binaries)
    lines = [
        "missing=0",
        f"for bin in {paths}; do [ -e \"{BUILD_DIR}/$bin\" ] || missing=1; done",
    ]
    if spec.build_command:
        build = _as_builder(f"cd {BUILD_DIR} && {spec.build_command}")
        lines.append(f"if [ \"$missing\" = 1 ]; then {build}; fi")
        lines.append(
            f"for bin in {paths}; do [ -e \"{BUILD_DIR}/$bin\" ] "
            "|| { echo \"error: expected binary $bin still missing after build\" >&2; exit 1; }; done"
        )
    else:
        lines.append(
            "if [ \"$missing\" = 1 ]; then "
            "echo 'warning: expected binaries missing and no build command configured' >&2; fi"
        )
    return lines


def compose_build_script(
    spec: BuildSpec,
    mode: InvocationMode,
    manifest_text: str | None = None,
) -> str:
    """Compose the full build script for one fallback strategy."""
    fmt = spec.format_spec
    packages = " ".join(shlex.quote(p) for p in (*fmt.toolchain, *spec.toolchain_packages))
    lines = [
        "set -o pipefail",
        f"{fmt.install_command} {packages} "
        "|| echo 'warning: toolchain installation failed, continuing anyway' >&2",
        f"id -u {BUILD_USER} >/dev/null 2>&1 || useradd -m -s /bin/bash {BUILD_USER} "
        "|| echo 'warning: could not create build user' >&2",
        "set -e",
        f"mkdir -p {BUILD_DIR}",
        f"cp -a {SOURCE_MOUNT}/. {BUILD_DIR}/",
    ]
    if manifest_text is not None:
        lines.extend(_write_manifest(spec, manifest_text))
    lines.append(f"chown -R {BUILD_USER}:{BUILD_USER} {BUILD_DIR}")
    lines.extend(_ensure_binaries(spec))
    lines.append(_as_builder(tool_command(spec, mode)))
    lines.append(export_command(spec))
    return "\n".join(lines) + "\n"
