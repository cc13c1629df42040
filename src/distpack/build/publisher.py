"""Artifact publishing under the canonical name.

The canonical name is ``<ProjectName>-<version>.<extension-chain>``, e.g.
``Winetricks.rs-1.2.3.pkg.tar.zst`` or ``Winetricks.rs-1.2.3.rpm``.
A failed copy or rename is not fatal: the original file still exists and is
usable, so the publisher logs where it is and returns that path instead.
"""

from __future__ import annotations

import shutil
from pathlib import Path

from distpack.build.formats import format_for_kind
from distpack.build.results import Artifact
from distpack.core.logging import get_logger

logger = get_logger(__name__)


def extension_chain(artifact: Artifact) -> str:
    """Extension chain of ``artifact`` without the leading dot."""
    name = Path(artifact.path).name
    suffix = format_for_kind(artifact.kind).suffix
    if name.endswith(suffix):
        return suffix[1:]
    # Unexpected compression (e.g. .pkg.tar.xz): keep what follows ".pkg."
    if ".pkg.tar." in name:
        return name[name.index(".pkg.tar.") + 1:]
    return Path(name).suffix.lstrip(".")


def canonical_name(project_name: str, version: str, artifact: Artifact) -> str:
    return f"{project_name}-{version}.{extension_chain(artifact)}"


class ArtifactPublisher:
    """Copy an artifact to the output directory under its canonical name."""

    def publish(
        self,
        artifact: Artifact,
        output_dir: str | Path,
        project_name: str,
        version: str,
    ) -> Path:
        """Publish ``artifact`` and return the path it can be found at."""
        source = Path(artifact.path)
        output_dir = Path(output_dir)
        target = output_dir / canonical_name(project_name, version, artifact)

        try:
            output_dir.mkdir(parents=True, exist_ok=True)
            if source.resolve() == target.resolve():
                return target
            if source.parent.resolve() == output_dir.resolve():
                copy = source
            else:
                copy = output_dir / source.name
                shutil.copy2(source, copy)
            copy.replace(target)
        except OSError as exc:
            logger.warning(
                "artifact.publish_failed",
                original=str(source),
                target=str(target),
                error=str(exc),
            )
            return source

        logger.info("artifact.published", path=str(target), size=target.stat().st_size)
        return target
