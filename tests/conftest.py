"""
Shared pytest fixtures for distpack tests.

This module provides:
- Temporary workspaces with a PKGBUILD / RPM spec and a Cargo.toml
- Environment cleanup so CI variables (GITHUB_REF, DISTPACK_*) never leak in

No container runtime is ever invoked: build tests use
``_support.FakeRuntime``.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

# Ensure distpack package and test support are importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))

from _support import CARGO_TOML_TEXT, PKGBUILD_TEXT, RPM_SPEC_TEXT  # noqa: E402


@pytest.fixture
def arch_workspace(tmp_path: Path) -> Path:
    """Workspace with a PKGBUILD and a workspace Cargo.toml."""
    ws = tmp_path / "Winetricks.rs"
    ws.mkdir()
    (ws / "PKGBUILD").write_text(PKGBUILD_TEXT)
    (ws / "Cargo.toml").write_text(CARGO_TOML_TEXT)
    return ws


@pytest.fixture
def rpm_workspace(tmp_path: Path) -> Path:
    """Workspace with rpmbuild/SPECS/winetricks.spec and a Cargo.toml."""
    ws = tmp_path / "Winetricks.rs"
    specs = ws / "rpmbuild" / "SPECS"
    specs.mkdir(parents=True)
    (specs / "winetricks.spec").write_text(RPM_SPEC_TEXT)
    (ws / "Cargo.toml").write_text(CARGO_TOML_TEXT)
    return ws


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Remove environment variables that leak CI or user configuration."""
    monkeypatch.delenv("GITHUB_REF", raising=False)
    for key in list(os.environ):
        if key.startswith("DISTPACK_"):
            monkeypatch.delenv(key, raising=False)
    return monkeypatch
