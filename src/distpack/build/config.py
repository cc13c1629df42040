"""Configuration models for distpack.

Provides the Pydantic v2 ``PackagingConfig`` controlling a packaging run and
the immutable ``BuildSpec`` derived from it once the version is known.
Every field of ``PackagingConfig`` can be overridden through a
``DISTPACK_*`` environment variable or a YAML file, making the same
configuration usable from a developer shell and from CI.

Key Concepts:
    PackagingConfig: What to package, where, with which runtimes, and how
        long an attempt may take. ``from_env()`` / ``from_file()`` factories.
    BuildSpec: Frozen per-run inputs handed to the build runner.
    SelectionPolicy: How the locator picks among several matching artifacts.

Architecture Decisions:
    - from_env() classmethod: explicit env-var parsing rather than
      ``pydantic-settings``.
    - Override precedence: kwargs > env vars > YAML file > field defaults.
    - ``model_validator(mode="after")`` auto-generates ``run_id`` and
      validates format/runtime names against their registries.

Tags:
    config, settings, pydantic, yaml, environment
"""

from __future__ import annotations

import os
import uuid
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

from distpack.build.formats import PackageFormatSpec, get_format
from distpack.build.runtimes import get_runtime
from distpack.core.errors import ConfigError


class SelectionPolicy(str, Enum):
    """How to choose when several artifacts match."""

    FIRST_MATCH = "first_match"  # first in search-priority order
    NEWEST = "newest"  # most recently modified among the first matching set


_LIST_FIELDS = ("toolchain_packages", "expected_binaries", "version_fallbacks")
_BOOL_FIELDS = ("strip_source", "patch_in_place")
_INT_FIELDS = ("attempt_timeout_seconds",)


class PackagingConfig(BaseModel):
    """Configuration for a packaging run.

    Example::

        config = PackagingConfig(
            project_name="Winetricks.rs",
            package_name="winetricks",
            package_format="arch",
            workspace=Path("."),
            strip_dependency="wine",
            strip_source=True,
        )
    """

    # What to package
    project_name: str = Field(
        default="",
        description="Project name used for the canonical artifact name (default: workspace dir name)",
    )
    package_name: str | None = Field(
        default=None,
        description="Package name inside the manifest (default: lower-cased project name)",
    )
    package_format: str = Field(default="arch", description="Package format: arch or rpm")
    workspace: Path = Field(default=Path("."), description="Project workspace root")
    manifest_path: Path | None = Field(
        default=None,
        description="Packaging manifest, relative to the workspace (format default if unset)",
    )

    # Version
    version_manifest: Path = Field(
        default=Path("Cargo.toml"),
        description="Manifest carrying the project version, relative to the workspace",
    )
    version_fallbacks: list[Path] = Field(
        default_factory=list,
        description="Further manifests consulted in order when the first has no version",
    )
    release_ref: str | None = Field(
        default=None,
        description="Release reference such as refs/tags/v1.2.3",
    )

    # Manifest patching
    strip_dependency: str | None = Field(
        default=None,
        description="Dependency token removed from the manifest's dependency list",
    )
    strip_source: bool = Field(
        default=False,
        description="Clear source and checksum lists (artifacts already built on disk)",
    )
    patch_in_place: bool = Field(
        default=False,
        description="Also commit the patched manifest to the workspace on disk",
    )

    # Execution
    primary_runtime: str = Field(default="docker", description="Primary container runtime")
    secondary_runtime: str | None = Field(
        default="podman",
        description="Secondary container runtime (None disables the fallback runtime)",
    )
    image: str | None = Field(default=None, description="Build image (format default if unset)")
    toolchain_packages: list[str] = Field(
        default_factory=list,
        description="Extra packages installed in the build container (best-effort)",
    )
    expected_binaries: list[str] = Field(
        default_factory=list,
        description="Workspace-relative binaries the package needs; built when missing",
    )
    build_command: str | None = Field(
        default=None,
        description="Command that builds missing binaries (e.g. 'cargo build --release')",
    )
    attempt_timeout_seconds: int = Field(
        default=3600,
        description="Upper bound for a single container invocation",
    )

    # Output
    output_dir: Path | None = Field(
        default=None,
        description="Directory receiving the canonical artifact (default: workspace root)",
    )
    log_dir: Path | None = Field(
        default=None,
        description="Directory for attempt logs and summary.json (default: <workspace>/.distpack/logs)",
    )
    selection_policy: SelectionPolicy = Field(
        default=SelectionPolicy.FIRST_MATCH,
        description="Policy when several artifacts match",
    )

    # Internal
    run_id: str = Field(default="", description="Unique run identifier (auto-generated)")

    @model_validator(mode="after")
    def _set_defaults(self) -> PackagingConfig:
        if not self.run_id:
            self.run_id = uuid.uuid4().hex[:12]
        if not self.project_name:
            self.project_name = self.workspace.resolve().name
        get_format(self.package_format)
        get_runtime(self.primary_runtime)
        if self.secondary_runtime:
            get_runtime(self.secondary_runtime)
        if self.attempt_timeout_seconds <= 0:
            raise ValueError("attempt_timeout_seconds must be positive")
        return self

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def format_spec(self) -> PackageFormatSpec:
        return get_format(self.package_format)

    @property
    def resolved_package_name(self) -> str:
        return self.package_name or self.project_name.lower()

    @property
    def resolved_manifest_path(self) -> Path:
        """Manifest path relative to the workspace."""
        return self.manifest_path or Path(self.format_spec.default_manifest(self.resolved_package_name))

    @property
    def manifest_file(self) -> Path:
        return self.workspace / self.resolved_manifest_path

    @property
    def resolved_image(self) -> str:
        return self.image or self.format_spec.image

    @property
    def resolved_output_dir(self) -> Path:
        return self.output_dir or self.workspace

    @property
    def resolved_log_dir(self) -> Path:
        return self.log_dir or self.workspace / ".distpack" / "logs"

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @staticmethod
    def _env_values() -> dict[str, Any]:
        values: dict[str, Any] = {}
        for field_name in PackagingConfig.model_fields:
            env_val = os.environ.get(f"DISTPACK_{field_name.upper()}")
            if env_val is None:
                continue
            if field_name in _LIST_FIELDS:
                values[field_name] = [v.strip() for v in env_val.split(",") if v.strip()]
            elif field_name in _BOOL_FIELDS:
                values[field_name] = env_val.lower() in ("true", "1", "yes")
            elif field_name in _INT_FIELDS:
                values[field_name] = int(env_val)
            else:
                values[field_name] = env_val
        return values

    @classmethod
    def from_env(cls, **overrides: Any) -> PackagingConfig:
        """Create config from DISTPACK_* environment variables."""
        values = cls._env_values()
        values.update(overrides)
        return cls(**values)

    @classmethod
    def from_file(cls, path: str | Path, **overrides: Any) -> PackagingConfig:
        """Create config from a YAML file, then env vars, then ``overrides``.

        Raises
        ------
        ConfigError
            If the file cannot be read or is not a YAML mapping.
        """
        path = Path(path)
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"Cannot load config file {path}", cause=exc) from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping").with_context(path=str(path))
        values = {k.replace("-", "_"): v for k, v in data.items()}
        values.update(cls._env_values())
        values.update(overrides)
        return cls(**values)


class BuildSpec(BaseModel):
    """Immutable per-run build inputs."""

    model_config = ConfigDict(frozen=True)

    version: str
    project_name: str
    package_name: str
    package_format: str = "arch"
    strip_dependency: str | None = None
    strip_source: bool = False
    manifest_path: str = "PKGBUILD"
    image: str = ""
    toolchain_packages: tuple[str, ...] = ()
    expected_binaries: tuple[str, ...] = ()
    build_command: str | None = None

    @property
    def format_spec(self) -> PackageFormatSpec:
        return get_format(self.package_format)

    @classmethod
    def from_config(cls, config: PackagingConfig, version: str) -> BuildSpec:
        return cls(
            version=version,
            project_name=config.project_name,
            package_name=config.resolved_package_name,
            package_format=config.package_format,
            strip_dependency=config.strip_dependency,
            strip_source=config.strip_source,
            manifest_path=config.resolved_manifest_path.as_posix(),
            image=config.resolved_image,
            toolchain_packages=tuple(config.toolchain_packages),
            expected_binaries=tuple(config.expected_binaries),
            build_command=config.build_command,
        )
