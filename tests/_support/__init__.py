"""
Test support utilities for distpack tests.

Manifest fixtures, an in-memory container runtime and small file helpers
that don't fit as pytest fixtures but are useful across test files.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml

from distpack.build.results import InvocationResult
from distpack.core.errors import RuntimeInvocationError

PKGBUILD_TEXT = """\
# Maintainer: Test <test@example.com>
pkgname=winetricks
pkgver=0.0.1
pkgrel=1
pkgdesc="A fast, modern package manager for Wine"
arch=('x86_64')
license=('LGPL')
depends=('wine')
makedepends=('cargo')
source=("winetricks-$pkgver.tar.gz::https://example.com/winetricks.tar.gz")
sha256sums=('SKIP')

package() {
    install -Dm755 target/release/winetricks "$pkgdir/usr/bin/winetricks"
}
"""

RPM_SPEC_TEXT = """\
Name:           winetricks
Version:        0.0.1
Release:        1%{?dist}
Summary:        A fast, modern package manager for Wine
License:        LGPL-2.1-or-later
Source0:        %{name}-%{version}.tar.gz

BuildRequires:  cargo
Requires:       wine

%description
Winetricks.

%files
/usr/bin/winetricks
"""

CARGO_TOML_TEXT = """\
[workspace]
members = ["winetricks-cli"]

[workspace.package]
version = "1.2.3"
"""


class FakeRuntime:
    """ContainerRuntime that returns scripted exit codes.

    Parameters
    ----------
    identifier
        Runtime name reported in attempt results.
    exit_codes
        Exit code per call, in order; the last one repeats.
    produce
        Path, relative to ``output_dir``, written when an invocation succeeds.
    error
        If set, every invocation raises ``RuntimeInvocationError(error)``.
    """

    def __init__(
        self,
        identifier: str = "fake",
        exit_codes: list[int] | None = None,
        produce: str | None = None,
        error: str | None = None,
    ) -> None:
        self.identifier = identifier
        self.exit_codes = list(exit_codes or [0])
        self.produce = produce
        self.error = error
        self.calls: list[dict[str, Any]] = []

    def invoke(self, script, *, image, workspace, output_dir, env=None, timeout=None):
        self.calls.append(
            {
                "script": script,
                "image": image,
                "workspace": workspace,
                "output_dir": output_dir,
                "env": env,
                "timeout": timeout,
            }
        )
        if self.error:
            raise RuntimeInvocationError(self.error)
        index = min(len(self.calls) - 1, len(self.exit_codes) - 1)
        code = self.exit_codes[index]
        if code == 0 and self.produce:
            write_file(output_dir / self.produce, b"package-bytes")
        return InvocationResult(exit_code=code, stdout=f"{self.identifier} call {len(self.calls)}\n")


def write_file(path: Path, content: bytes = b"x", mtime: float | None = None) -> Path:
    """Create ``path`` (and parents) with ``content``; optionally set its mtime."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


def write_temp_yaml(temp_dir: Path, name: str, content: dict[str, Any]) -> Path:
    """Write a dictionary to ``<temp_dir>/<name>.yaml``."""
    file_path = temp_dir / f"{name}.yaml"
    with open(file_path, "w", encoding="utf-8") as f:
        yaml.dump(content, f, default_flow_style=False)
    return file_path
