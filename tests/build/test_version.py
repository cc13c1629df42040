"""Tests for distpack.build.version."""

from __future__ import annotations

from pathlib import Path

from distpack.build.version import (
    DEFAULT_VERSION,
    resolve_version,
    resolve_version_with_source,
    version_from_manifest,
    version_from_ref,
)


class TestVersionFromRef:
    def test_tag_ref(self):
        assert version_from_ref("refs/tags/v1.4.2") == "1.4.2"

    def test_suffix_taken_verbatim(self):
        assert version_from_ref("refs/tags/v2.0.0-rc.1+build.5") == "2.0.0-rc.1+build.5"

    def test_branch_ref_is_a_miss(self):
        assert version_from_ref("refs/heads/main") is None

    def test_tag_without_v_prefix_is_a_miss(self):
        assert version_from_ref("refs/tags/1.4.2") is None

    def test_empty_and_none(self):
        assert version_from_ref("") is None
        assert version_from_ref(None) is None


class TestVersionFromManifest:
    def test_first_version_line(self, tmp_path: Path):
        manifest = tmp_path / "Cargo.toml"
        manifest.write_text('[package]\nname = "x"\nversion = "0.9.1"\n\n[dep]\nversion = "5.0"\n')
        assert version_from_manifest(manifest) == "0.9.1"

    def test_whitespace_around_equals(self, tmp_path: Path):
        manifest = tmp_path / "Cargo.toml"
        manifest.write_text('version   =   " 3.1.4 "\n')
        assert version_from_manifest(manifest) == "3.1.4"

    def test_indented_line_is_ignored(self, tmp_path: Path):
        manifest = tmp_path / "Cargo.toml"
        manifest.write_text('[dependencies]\nfoo = { version = "1.0" }\n    version = "2.0"\n')
        assert version_from_manifest(manifest) is None

    def test_workspace_inheritance_is_a_miss(self, tmp_path: Path):
        manifest = tmp_path / "Cargo.toml"
        manifest.write_text("[package]\nversion.workspace = true\n")
        assert version_from_manifest(manifest) is None

    def test_empty_value_is_a_miss(self, tmp_path: Path):
        manifest = tmp_path / "Cargo.toml"
        manifest.write_text('version = ""\n')
        assert version_from_manifest(manifest) is None

    def test_missing_file(self, tmp_path: Path):
        assert version_from_manifest(tmp_path / "nope.toml") is None

    def test_undecodable_file(self, tmp_path: Path):
        manifest = tmp_path / "Cargo.toml"
        manifest.write_bytes(b"\xff\xfe\x00version")
        assert version_from_manifest(manifest) is None


class TestResolveVersion:
    def test_release_ref_wins(self, arch_workspace: Path):
        assert resolve_version("refs/tags/v9.9.9", arch_workspace / "Cargo.toml") == "9.9.9"

    def test_manifest_when_not_a_tag(self, arch_workspace: Path):
        assert resolve_version("refs/heads/main", arch_workspace / "Cargo.toml") == "1.2.3"

    def test_default_when_nothing_found(self, tmp_path: Path):
        assert resolve_version(None, tmp_path / "Cargo.toml") == DEFAULT_VERSION == "0.1.0"

    def test_fallback_manifest(self, tmp_path: Path):
        (tmp_path / "Cargo.toml").write_text("[workspace]\n")
        member = tmp_path / "cli"
        member.mkdir()
        (member / "Cargo.toml").write_text('version = "4.5.6"\n')
        version, source = resolve_version_with_source(
            None, tmp_path / "Cargo.toml", [member / "Cargo.toml"]
        )
        assert version == "4.5.6"
        assert source == str(member / "Cargo.toml")

    def test_source_reporting(self, arch_workspace: Path, tmp_path: Path):
        assert resolve_version_with_source("refs/tags/v1.0", arch_workspace / "Cargo.toml") == (
            "1.0",
            "release_ref",
        )
        assert resolve_version_with_source(None, tmp_path / "missing.toml") == (
            DEFAULT_VERSION,
            "default",
        )

    def test_resolver_ignores_environment(self, arch_workspace: Path, monkeypatch):
        monkeypatch.setenv("GITHUB_REF", "refs/tags/v7.7.7")
        assert resolve_version(None, arch_workspace / "Cargo.toml") == "1.2.3"
