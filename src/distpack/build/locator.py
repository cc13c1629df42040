"""Artifact discovery.

After a build claims success, the produced package has to be found. The
locator searches each root recursively, in order, applying the patterns in
priority order within a root (a project-named pattern before a generic
extension pattern). If nothing matches, a last-resort recursive scan of the
whole workspace runs with broader patterns. Version-control metadata
directories are never descended into.

Every root/pattern pair tried is kept in :attr:`ArtifactLocator.attempts`,
so a failed search can tell the operator exactly where it looked.

Example::

    locator = ArtifactLocator(kind=ArtifactKind.ARCH_PACKAGE)
    artifact = locator.find(
        [Path("dist"), Path(".")],
        ["winetricks-*.pkg.tar.zst", "*.pkg.tar.zst"],
        scan_root=Path("."),
        scan_patterns=["*.pkg.tar.*"],
    )
"""

from __future__ import annotations

import fnmatch
import os
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from distpack.build.config import SelectionPolicy
from distpack.build.formats import ArtifactKind
from distpack.build.results import Artifact
from distpack.core.logging import get_logger

logger = get_logger(__name__)

VCS_DIRS = frozenset({".git", ".hg", ".svn", ".bzr"})


@dataclass(frozen=True)
class SearchAttempt:
    """One root/pattern combination tried by the locator."""

    root: str
    pattern: str
    matches: int
    stale: int = 0

    def describe(self) -> str:
        found = f"{self.matches} match{'es' if self.matches != 1 else ''}"
        if self.stale:
            found += f", {self.stale} stale skipped"
        return f"{self.root} :: {self.pattern} ({found})"


def infer_kind(path: Path) -> ArtifactKind | None:
    """Guess the artifact kind from a file name."""
    name = path.name
    if name.endswith(".rpm"):
        return ArtifactKind.RPM_PACKAGE
    if ".pkg.tar" in name:
        return ArtifactKind.ARCH_PACKAGE
    return None


class ArtifactLocator:
    """Find a produced package file.

    Parameters
    ----------
    kind
        Artifact kind to report; inferred from the file name when None.
    policy
        Selection policy when one root/pattern pair yields several files.
    exclude_dirs
        Directory names never descended into.
    """

    def __init__(
        self,
        kind: ArtifactKind | None = None,
        policy: SelectionPolicy = SelectionPolicy.FIRST_MATCH,
        exclude_dirs: frozenset[str] = VCS_DIRS,
    ) -> None:
        self.kind = kind
        self.policy = policy
        self.exclude_dirs = exclude_dirs
        self.attempts: list[SearchAttempt] = []

    def find(
        self,
        search_roots: Sequence[str | Path],
        patterns: Sequence[str],
        *,
        scan_root: str | Path | None = None,
        scan_patterns: Sequence[str] = (),
        modified_since: float | None = None,
    ) -> Artifact | None:
        """Return the selected artifact, or None if nothing matches anywhere.

        With ``modified_since`` (a POSIX timestamp), files last modified
        before it are stale leftovers of an earlier run: they are skipped
        and counted in the attempt record instead of being selected.
        """
        self.attempts = []
        plan = [(Path(root), pattern) for root in search_roots for pattern in patterns]
        if scan_root is not None:
            plan.extend((Path(scan_root), pattern) for pattern in scan_patterns)

        for root, pattern in plan:
            matches = self._match(root, pattern)
            stale = 0
            if modified_since is not None:
                fresh = [p for p in matches if p.stat().st_mtime >= modified_since]
                stale = len(matches) - len(fresh)
                matches = fresh
            self.attempts.append(SearchAttempt(str(root), pattern, len(matches), stale))
            if matches:
                chosen = self._select(matches)
                logger.info(
                    "artifact.found",
                    path=str(chosen),
                    root=str(root),
                    pattern=pattern,
                    candidates=len(matches),
                )
                return self._to_artifact(chosen)

        logger.warning("artifact.not_found", tried=len(self.attempts))
        return None

    def _match(self, root: Path, pattern: str) -> list[Path]:
        if not root.is_dir():
            return []
        found: list[Path] = []
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(d for d in dirnames if d not in self.exclude_dirs)
            for name in sorted(filenames):
                if fnmatch.fnmatchcase(name, pattern):
                    path = Path(dirpath) / name
                    if path.is_file():
                        found.append(path)
        return found

    def _select(self, matches: list[Path]) -> Path:
        if self.policy is SelectionPolicy.NEWEST:
            return max(matches, key=lambda p: p.stat().st_mtime)
        return matches[0]

    def _to_artifact(self, path: Path) -> Artifact:
        kind = self.kind or infer_kind(path) or ArtifactKind.ARCH_PACKAGE
        return Artifact(path=str(path), kind=kind, size_bytes=path.stat().st_size)


def directory_listing(
    root: str | Path,
    max_depth: int = 2,
    max_entries: int = 200,
    exclude_dirs: frozenset[str] = VCS_DIRS,
) -> list[str]:
    """Render a depth-bounded recursive listing of ``root`` for diagnostics."""
    root = Path(root)
    if not root.is_dir():
        return [f"{root} (missing)"]
    lines = [f"{root}/"]

    def walk(directory: Path, depth: int) -> None:
        try:
            entries = sorted(directory.iterdir(), key=lambda p: p.name)
        except OSError as exc:
            lines.append(f"{'  ' * depth}<unreadable: {exc.strerror}>")
            return
        for entry in entries:
            if len(lines) >= max_entries:
                return
            indent = "  " * depth
            if entry.is_dir():
                lines.append(f"{indent}{entry.name}/")
                if depth < max_depth and entry.name not in exclude_dirs:
                    walk(entry, depth + 1)
            else:
                lines.append(f"{indent}{entry.name} ({entry.lstat().st_size} bytes)")

    walk(root, 1)
    if len(lines) >= max_entries:
        lines.append("... (listing truncated)")
    return lines
