"""Tests for distpack.build.scripts — build script composition."""

from __future__ import annotations

import base64
import re
import subprocess
import sys
from pathlib import Path

import pytest

from _support import write_file
from distpack.build.config import BuildSpec
from distpack.build.results import InvocationMode
from distpack.build.scripts import (
    BUILD_DIR,
    compose_build_script,
    export_command,
    tool_command,
)


@pytest.fixture
def arch_spec() -> BuildSpec:
    return BuildSpec(version="1.2.3", project_name="Winetricks.rs", package_name="winetricks")


@pytest.fixture
def rpm_spec() -> BuildSpec:
    return BuildSpec(
        version="1.2.3",
        project_name="Winetricks.rs",
        package_name="winetricks",
        package_format="rpm",
        manifest_path="rpmbuild/SPECS/winetricks.spec",
    )


class TestToolCommand:
    def test_arch_strict(self, arch_spec):
        assert tool_command(arch_spec, InvocationMode.STRICT) == f"cd {BUILD_DIR} && makepkg --noconfirm"

    def test_arch_relaxed(self, arch_spec):
        cmd = tool_command(arch_spec, InvocationMode.RELAXED)
        assert cmd.endswith("makepkg --noconfirm --nodeps --skipinteg --ignorearch")

    def test_arch_nested_manifest(self):
        spec = BuildSpec(
            version="1", project_name="p", package_name="p", manifest_path="pkg/arch/PKGBUILD.custom"
        )
        cmd = tool_command(spec, InvocationMode.STRICT)
        assert cmd == f"cd {BUILD_DIR}/pkg/arch && makepkg --noconfirm -p PKGBUILD.custom"

    def test_rpm_strict(self, rpm_spec):
        cmd = tool_command(rpm_spec, InvocationMode.STRICT)
        assert cmd == (
            f"cd {BUILD_DIR} && rpmbuild -bb --define '_topdir {BUILD_DIR}/rpmbuild' "
            f"{BUILD_DIR}/rpmbuild/SPECS/winetricks.spec"
        )

    def test_rpm_relaxed(self, rpm_spec):
        assert "rpmbuild -bb --nodeps" in tool_command(rpm_spec, InvocationMode.RELAXED)


class TestExportCommand:
    def test_arch(self, arch_spec):
        assert export_command(arch_spec) == f"cp {BUILD_DIR}/*.pkg.tar.zst /out/"

    def test_rpm(self, rpm_spec):
        assert export_command(rpm_spec) == f"cp {BUILD_DIR}/rpmbuild/RPMS/*/*.rpm /out/"


class TestComposeBuildScript:
    def test_step_order(self, arch_spec):
        script = compose_build_script(arch_spec, InvocationMode.STRICT, "pkgver=1.2.3\n")
        lines = script.splitlines()
        assert lines[0] == "set -o pipefail"
        assert lines[1].startswith("pacman -Syu --noconfirm --needed base-devel")
        assert "useradd -m -s /bin/bash builder" in lines[2]
        assert lines[3] == "set -e"
        copy = lines.index(f"cp -a /src/. {BUILD_DIR}/")
        write = next(i for i, line in enumerate(lines) if "base64 -d" in line)
        tool = next(i for i, line in enumerate(lines) if "makepkg" in line)
        export = next(i for i, line in enumerate(lines) if line.startswith("cp ") and "/out/" in line)
        assert copy < write < tool < export

    def test_toolchain_install_is_best_effort(self, arch_spec):
        script = compose_build_script(arch_spec, InvocationMode.STRICT)
        install = script.splitlines()[1]
        assert "|| echo 'warning: toolchain installation failed" in install

    def test_extra_toolchain_packages(self):
        spec = BuildSpec(
            version="1",
            project_name="p",
            package_name="p",
            package_format="rpm",
            toolchain_packages=("cargo", "openssl-devel"),
        )
        script = compose_build_script(spec, InvocationMode.STRICT)
        assert "dnf install -y rpm-build rpmdevtools cargo openssl-devel" in script

    def test_manifest_written_exactly(self, arch_spec):
        text = "pkgver=1.2.3\ndepends=()\n# quote ' and $var\n"
        script = compose_build_script(arch_spec, InvocationMode.STRICT, text)
        encoded = re.search(r"printf '%s' (\S+) \| base64 -d", script).group(1)
        assert base64.b64decode(encoded).decode() == text

    def test_no_manifest_write_without_text(self, arch_spec):
        assert "base64" not in compose_build_script(arch_spec, InvocationMode.STRICT)

    def test_packaging_runs_as_builder(self, arch_spec):
        script = compose_build_script(arch_spec, InvocationMode.RELAXED)
        assert f"su builder -c 'cd {BUILD_DIR} && makepkg --noconfirm --nodeps" in script

    def test_missing_binaries_built(self):
        spec = BuildSpec(
            version="1",
            project_name="p",
            package_name="p",
            expected_binaries=("target/release/winetricks",),
            build_command="cargo build --release",
        )
        script = compose_build_script(spec, InvocationMode.STRICT)
        assert "target/release/winetricks" in script
        assert "cargo build --release" in script
        assert 'if [ "$missing" = 1 ]' in script

    @pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")
    def test_binaries_rechecked_after_build(self, tmp_path: Path):
        spec = BuildSpec(
            version="1",
            project_name="p",
            package_name="p",
            expected_binaries=("target/release/winetricks",),
            build_command="cargo build --release",
        )
        lines = compose_build_script(spec, InvocationMode.STRICT).splitlines()
        build_at = next(i for i, line in enumerate(lines) if "cargo build --release" in line)
        check = lines[build_at + 1]
        assert "makepkg" in lines[build_at + 2]

        check = check.replace(BUILD_DIR, str(tmp_path))
        failed = subprocess.run(["sh", "-c", check], capture_output=True, text=True)
        assert failed.returncode == 1
        assert "target/release/winetricks still missing after build" in failed.stderr

        write_file(tmp_path / "target" / "release" / "winetricks")
        assert subprocess.run(["sh", "-c", check]).returncode == 0

    def test_missing_binaries_without_command_warns(self):
        spec = BuildSpec(
            version="1", project_name="p", package_name="p", expected_binaries=("bin/app",)
        )
        script = compose_build_script(spec, InvocationMode.STRICT)
        assert "no build command configured" in script
