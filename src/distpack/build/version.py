"""Version resolution for packaging runs.

A release build triggered by a tag (``refs/tags/v1.4.2``) packages exactly
that version. Any other build takes the first ``version = "..."`` line of
the project manifest (typically a workspace ``Cargo.toml``), then of each
fallback manifest, and finally the literal default ``"0.1.0"``.

The resolver is pure: it reads nothing but its explicit arguments. Reading
the CI environment (``GITHUB_REF``) is the CLI's job.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from pathlib import Path

DEFAULT_VERSION = "0.1.0"

_TAG_RE = re.compile(r"^refs/tags/v(.+)$")
_MANIFEST_VERSION_RE = re.compile(r'^version\s*=\s*"([^"]*)"')


def version_from_ref(release_ref: str | None) -> str | None:
    """Return the version encoded in a ``refs/tags/v<version>`` reference."""
    if not release_ref:
        return None
    match = _TAG_RE.match(release_ref)
    if match is None:
        return None
    return match.group(1)


def version_from_manifest(manifest_path: str | Path) -> str | None:
    """Return the value of the first ``version = "..."`` line, or None.

    Unreadable files and empty values count as a miss.
    """
    try:
        text = Path(manifest_path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None
    for line in text.splitlines():
        match = _MANIFEST_VERSION_RE.match(line)
        if match:
            value = match.group(1).strip()
            return value or None
    return None


def resolve_version_with_source(
    release_ref: str | None,
    manifest_path: str | Path,
    fallbacks: Sequence[str | Path] = (),
) -> tuple[str, str]:
    """Resolve a version and report where it came from.

    Returns
    -------
    tuple[str, str]
        ``(version, source)`` where source is ``"release_ref"``, the manifest
        path that supplied the value, or ``"default"``.
    """
    tagged = version_from_ref(release_ref)
    if tagged:
        return tagged, "release_ref"
    for candidate in (manifest_path, *fallbacks):
        value = version_from_manifest(candidate)
        if value:
            return value, str(candidate)
    return DEFAULT_VERSION, "default"


def resolve_version(
    release_ref: str | None,
    manifest_path: str | Path,
    fallbacks: Sequence[str | Path] = (),
) -> str:
    """Resolve the package version. Never returns an empty string."""
    return resolve_version_with_source(release_ref, manifest_path, fallbacks)[0]
