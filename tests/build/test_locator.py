"""Tests for distpack.build.locator."""

from __future__ import annotations

from pathlib import Path

from _support import write_file
from distpack.build.config import SelectionPolicy
from distpack.build.formats import ArtifactKind
from distpack.build.locator import ArtifactLocator, directory_listing, infer_kind


class TestFind:
    def test_project_pattern_before_generic(self, tmp_path: Path):
        write_file(tmp_path / "aaa-debug-1.0.pkg.tar.zst")
        write_file(tmp_path / "winetricks-1.0-1-x86_64.pkg.tar.zst", b"pkg")
        locator = ArtifactLocator(kind=ArtifactKind.ARCH_PACKAGE)
        artifact = locator.find([tmp_path], ["winetricks-*.pkg.tar.zst", "*.pkg.tar.zst"])
        assert Path(artifact.path).name == "winetricks-1.0-1-x86_64.pkg.tar.zst"
        assert artifact.kind is ArtifactKind.ARCH_PACKAGE
        assert artifact.size_bytes == 3

    def test_roots_in_order(self, tmp_path: Path):
        first, second = tmp_path / "dist", tmp_path / "other"
        write_file(second / "winetricks-1.0.rpm")
        write_file(first / "winetricks-2.0.rpm")
        artifact = ArtifactLocator().find([first, second], ["winetricks-*.rpm"])
        assert Path(artifact.path).parent == first

    def test_recursive_search(self, tmp_path: Path):
        write_file(tmp_path / "rpmbuild" / "RPMS" / "x86_64" / "winetricks-1.0-1.x86_64.rpm")
        artifact = ArtifactLocator().find([tmp_path], ["*.rpm"])
        assert artifact.path.endswith("x86_64/winetricks-1.0-1.x86_64.rpm")
        assert artifact.kind is ArtifactKind.RPM_PACKAGE

    def test_vcs_directories_skipped(self, tmp_path: Path):
        write_file(tmp_path / ".git" / "objects" / "stale-1.0.rpm")
        locator = ArtifactLocator()
        assert locator.find([tmp_path], ["*.rpm"]) is None

    def test_matches_sorted_by_path(self, tmp_path: Path):
        write_file(tmp_path / "b" / "pkg-2.rpm")
        write_file(tmp_path / "a" / "pkg-1.rpm")
        write_file(tmp_path / "pkg-0.rpm")
        artifact = ArtifactLocator().find([tmp_path], ["*.rpm"])
        assert Path(artifact.path).name == "pkg-0.rpm"

    def test_newest_policy(self, tmp_path: Path):
        write_file(tmp_path / "pkg-1.rpm", mtime=1_000_000)
        write_file(tmp_path / "pkg-2.rpm", mtime=3_000_000)
        write_file(tmp_path / "pkg-3.rpm", mtime=2_000_000)
        artifact = ArtifactLocator(policy=SelectionPolicy.NEWEST).find([tmp_path], ["*.rpm"])
        assert Path(artifact.path).name == "pkg-2.rpm"

    def test_last_resort_scan(self, tmp_path: Path):
        write_file(tmp_path / "deep" / "winetricks-1.0.pkg.tar.xz")
        locator = ArtifactLocator()
        artifact = locator.find(
            [tmp_path / "missing"],
            ["*.pkg.tar.zst"],
            scan_root=tmp_path,
            scan_patterns=["*.pkg.tar.*"],
        )
        assert artifact.path.endswith("winetricks-1.0.pkg.tar.xz")
        assert artifact.kind is ArtifactKind.ARCH_PACKAGE
        assert [a.pattern for a in locator.attempts] == ["*.pkg.tar.zst", "*.pkg.tar.*"]

    def test_nothing_found_records_attempts(self, tmp_path: Path):
        write_file(tmp_path / "README.md")
        locator = ArtifactLocator()
        artifact = locator.find(
            [tmp_path, tmp_path / "dist"],
            ["winetricks-*.rpm", "*.rpm"],
            scan_root=tmp_path,
            scan_patterns=["*.rpm"],
        )
        assert artifact is None
        assert len(locator.attempts) == 5
        assert locator.attempts[0].describe() == f"{tmp_path} :: winetricks-*.rpm (0 matches)"

    def test_attempts_reset_between_searches(self, tmp_path: Path):
        locator = ArtifactLocator()
        locator.find([tmp_path], ["*.rpm", "*.zst"])
        locator.find([tmp_path], ["*.rpm"])
        assert len(locator.attempts) == 1

    def test_directories_never_match(self, tmp_path: Path):
        (tmp_path / "fake.rpm").mkdir()
        assert ArtifactLocator().find([tmp_path], ["*.rpm"]) is None

    def test_files_older_than_cutoff_skipped(self, tmp_path: Path):
        write_file(tmp_path / "winetricks-1.2.2.pkg.tar.zst", mtime=1_000_000)
        write_file(tmp_path / "winetricks-1.2.3-1-x86_64.pkg.tar.zst", mtime=5_000_000)
        locator = ArtifactLocator()
        artifact = locator.find([tmp_path], ["winetricks-*.pkg.tar.zst"], modified_since=4_000_000)
        assert Path(artifact.path).name == "winetricks-1.2.3-1-x86_64.pkg.tar.zst"
        assert locator.attempts[0].stale == 1

    def test_only_stale_matches(self, tmp_path: Path):
        write_file(tmp_path / "winetricks-1.2.2.pkg.tar.zst", mtime=1_000_000)
        locator = ArtifactLocator()
        assert locator.find([tmp_path], ["winetricks-*.pkg.tar.zst"], modified_since=4_000_000) is None
        assert locator.attempts[0].describe() == (
            f"{tmp_path} :: winetricks-*.pkg.tar.zst (0 matches, 1 stale skipped)"
        )

    def test_no_cutoff_keeps_old_files(self, tmp_path: Path):
        write_file(tmp_path / "winetricks-1.2.2.pkg.tar.zst", mtime=1_000_000)
        assert ArtifactLocator().find([tmp_path], ["*.pkg.tar.zst"]) is not None


class TestInferKind:
    def test_kinds(self):
        assert infer_kind(Path("a-1.rpm")) is ArtifactKind.RPM_PACKAGE
        assert infer_kind(Path("a-1.pkg.tar.zst")) is ArtifactKind.ARCH_PACKAGE
        assert infer_kind(Path("a.txt")) is None


class TestDirectoryListing:
    def test_listing(self, tmp_path: Path):
        write_file(tmp_path / "a.txt", b"abc")
        write_file(tmp_path / "sub" / "b.txt")
        lines = directory_listing(tmp_path)
        assert lines[0] == f"{tmp_path}/"
        assert "  a.txt (3 bytes)" in lines
        assert "  sub/" in lines
        assert "    b.txt (1 bytes)" in lines

    def test_depth_bound(self, tmp_path: Path):
        write_file(tmp_path / "l1" / "l2" / "l3" / "deep.txt")
        lines = directory_listing(tmp_path, max_depth=2)
        assert "    l2/" in lines
        assert not any("l3" in line for line in lines)

    def test_entry_bound(self, tmp_path: Path):
        for i in range(20):
            write_file(tmp_path / f"f{i:02d}.txt")
        lines = directory_listing(tmp_path, max_entries=5)
        assert lines[-1] == "... (listing truncated)"
        assert len(lines) == 6

    def test_missing_root(self, tmp_path: Path):
        assert directory_listing(tmp_path / "nope") == [f"{tmp_path / 'nope'} (missing)"]
