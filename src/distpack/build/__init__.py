"""
distpack.build - containerized distribution packaging.

Stages, in pipeline order:

- :mod:`distpack.build.version` — version from a release ref or manifest
- :mod:`distpack.build.manifest` — PKGBUILD / RPM spec patching
- :mod:`distpack.build.runner` — build with runtime and flag fallback
- :mod:`distpack.build.locator` — artifact discovery
- :mod:`distpack.build.publisher` — canonical naming
- :mod:`distpack.build.pipeline` — the wiring of all of the above
"""

from distpack.build.config import BuildSpec, PackagingConfig, SelectionPolicy
from distpack.build.formats import FORMATS, ArtifactKind, PackageFormatSpec, get_format
from distpack.build.locator import ArtifactLocator, directory_listing
from distpack.build.manifest import (
    ManifestDocument,
    ManifestFormat,
    ManifestPatcher,
    PatchOptions,
    PatchOutcome,
    load_manifest,
)
from distpack.build.pipeline import PackagingPipeline
from distpack.build.publisher import ArtifactPublisher, canonical_name
from distpack.build.results import (
    Artifact,
    AttemptResult,
    AttemptStatus,
    BuildOutcome,
    InvocationMode,
    InvocationResult,
    PipelineResult,
)
from distpack.build.rpmspec import RpmSpecTemplate, render_spec, stage_rpm_tree
from distpack.build.runner import (
    BuildStrategy,
    ContainerBuildRunner,
    FallbackPolicy,
    default_strategies,
)
from distpack.build.runtimes import RUNTIMES, CliRuntime, ContainerRuntime, create_runtime
from distpack.build.version import DEFAULT_VERSION, resolve_version

__all__ = [
    "DEFAULT_VERSION",
    "FORMATS",
    "RUNTIMES",
    "Artifact",
    "ArtifactKind",
    "ArtifactLocator",
    "ArtifactPublisher",
    "AttemptResult",
    "AttemptStatus",
    "BuildOutcome",
    "BuildSpec",
    "BuildStrategy",
    "CliRuntime",
    "ContainerBuildRunner",
    "ContainerRuntime",
    "FallbackPolicy",
    "InvocationMode",
    "InvocationResult",
    "ManifestDocument",
    "ManifestFormat",
    "ManifestPatcher",
    "PackageFormatSpec",
    "PackagingConfig",
    "PackagingPipeline",
    "PatchOptions",
    "PatchOutcome",
    "PipelineResult",
    "RpmSpecTemplate",
    "SelectionPolicy",
    "canonical_name",
    "create_runtime",
    "default_strategies",
    "directory_listing",
    "get_format",
    "load_manifest",
    "render_spec",
    "resolve_version",
    "stage_rpm_tree",
]
