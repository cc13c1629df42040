"""End-to-end packaging pipeline.

Wires the stages of a packaging run and accumulates a ``PipelineResult``::

    resolve version → patch manifest → container build (fallback chain)
        → locate artifact → publish under the canonical name

Failure taxonomy:
    - soft defaults (no version found → ``0.1.0``) add a diagnostic
    - patch warnings (version line not verified) add a diagnostic
    - failed build attempts add one diagnostic each and advance the chain
    - fatal conditions (every strategy failed, no fresh artifact located)
      mark the result failed; they are the only ones that do. A failed run
      also carries depth-bounded listings of the workspace and output dir.

Example::

    config = PackagingConfig(project_name="Winetricks.rs", package_name="winetricks")
    result = PackagingPipeline(config).run()
    if result.succeeded:
        print(result.final_artifact_path)
    else:
        print("\\n".join(result.diagnostics))

Related Modules:
    - :mod:`distpack.build.runner` — fallback chain
    - :mod:`distpack.build.locator` — artifact discovery
    - :mod:`distpack.build.log_collector` — attempt logs and summary.json
"""

from __future__ import annotations

import time
from pathlib import Path

from distpack.build.config import BuildSpec, PackagingConfig
from distpack.build.locator import ArtifactLocator, directory_listing
from distpack.build.log_collector import LogCollector
from distpack.build.manifest import ManifestPatcher, PatchOptions
from distpack.build.publisher import ArtifactPublisher
from distpack.build.results import Artifact, PipelineResult
from distpack.build.runner import ContainerBuildRunner
from distpack.build.runtimes import ContainerRuntime, create_runtime
from distpack.build.version import DEFAULT_VERSION, resolve_version_with_source
from distpack.core.errors import ArtifactNotFoundError, DistpackError, ManifestNotFoundError
from distpack.core.logging import LogContext, get_logger

logger = get_logger(__name__)

# Filesystems with coarse timestamps can stamp a freshly exported file
# slightly before the recorded build start.
MTIME_TOLERANCE_SECONDS = 2.0


class PackagingPipeline:
    """Run one packaging build from configuration to published artifact.

    Parameters
    ----------
    config
        Run configuration.
    runtimes
        ``(primary, secondary)`` runtimes to use instead of the CLI runtimes
        named in the configuration. ``secondary`` may be None.
    """

    def __init__(
        self,
        config: PackagingConfig,
        runtimes: tuple[ContainerRuntime, ContainerRuntime | None] | None = None,
    ) -> None:
        self.config = config
        self._runtimes = runtimes
        self._build_started: float | None = None
        self.patcher = ManifestPatcher()
        self.publisher = ArtifactPublisher()
        self.locator = ArtifactLocator(
            kind=config.format_spec.kind,
            policy=config.selection_policy,
        )

    def run(self) -> PipelineResult:
        """Execute the pipeline; never raises for expected failures."""
        result = PipelineResult(run_id=self.config.run_id)
        with LogContext(run_id=self.config.run_id):
            logger.info(
                "pipeline.started",
                project=self.config.project_name,
                format=self.config.package_format,
                workspace=str(self.config.workspace),
            )
            try:
                succeeded = self._execute(result)
            except DistpackError as exc:
                result.add_diagnostic(f"{exc.category.value}: {exc.message}")
                logger.error("pipeline.failed", **exc.to_dict())
                succeeded = False
            if not succeeded:
                result.directory_listing = self.directory_listing()
            result.mark_complete(succeeded)
            self._collect_logs(result)
            logger.info(
                "pipeline.complete",
                succeeded=result.succeeded,
                artifact=result.final_artifact_path,
                duration_s=round(result.duration_seconds, 1),
            )
        return result

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _execute(self, result: PipelineResult) -> bool:
        config = self.config

        version = self._resolve_version(result)
        spec = BuildSpec.from_config(config, version)

        self._patch_manifest(result, version)

        primary, secondary = self._resolve_runtimes()
        runner = ContainerBuildRunner(
            output_dir=config.resolved_output_dir,
            timeout_seconds=config.attempt_timeout_seconds,
            patcher=self.patcher,
        )
        self._build_started = time.time()
        outcome = runner.run(spec, config.workspace, primary, secondary)
        result.attempts = list(outcome.attempts)
        for attempt in outcome.failed_attempts:
            result.add_diagnostic(attempt.describe())
        if not outcome.succeeded:
            result.add_diagnostic("all build strategies failed")
            return False

        artifact = self._locate(result)
        published = self.publisher.publish(
            artifact,
            config.resolved_output_dir,
            config.project_name,
            version,
        )
        result.final_artifact_path = str(published)
        result.artifact_size_bytes = published.stat().st_size
        return True

    def _resolve_version(self, result: PipelineResult) -> str:
        workspace = self.config.workspace
        version, source = resolve_version_with_source(
            self.config.release_ref,
            workspace / self.config.version_manifest,
            [workspace / p for p in self.config.version_fallbacks],
        )
        result.version = version
        if source == "default":
            result.add_diagnostic(f"no version found; using default {DEFAULT_VERSION}")
        logger.info("version.resolved", version=version, source=source)
        return version

    def _patch_manifest(self, result: PipelineResult, version: str) -> None:
        options = PatchOptions(
            strip_dependency=self.config.strip_dependency,
            strip_source=self.config.strip_source,
        )
        try:
            outcome = self.patcher.patch(
                self.config.manifest_file,
                version,
                options,
                dry_run=not self.config.patch_in_place,
            )
        except ManifestNotFoundError as exc:
            # The runner turns a missing manifest into a fatal attempt.
            result.add_diagnostic(exc.message)
            return
        for warning in outcome.warnings:
            result.add_diagnostic(f"warning: {warning}")

    def _resolve_runtimes(self) -> tuple[ContainerRuntime, ContainerRuntime | None]:
        if self._runtimes is not None:
            return self._runtimes
        secondary_name = self.config.secondary_runtime
        return (
            create_runtime(self.config.primary_runtime),
            create_runtime(secondary_name) if secondary_name else None,
        )

    def search_roots(self) -> list[Path]:
        """Roots searched for the produced artifact, in priority order."""
        config = self.config
        candidates = [config.resolved_output_dir, config.workspace]
        candidates += [config.workspace / d for d in config.format_spec.output_dirs]
        roots: list[Path] = []
        seen: set[Path] = set()
        for root in candidates:
            key = root.resolve()
            if key not in seen:
                seen.add(key)
                roots.append(root)
        return roots

    def search_patterns(self) -> list[str]:
        fmt = self.config.format_spec
        return [fmt.project_pattern(self.config.resolved_package_name), fmt.generic_pattern()]

    def directory_listing(self) -> dict[str, list[str]]:
        """Depth-bounded listings of the workspace and output directory."""
        listings: dict[str, list[str]] = {}
        for root in (self.config.workspace, self.config.resolved_output_dir):
            listings.setdefault(str(root), directory_listing(root, max_depth=2))
        return listings

    def _locate(self, result: PipelineResult) -> Artifact:
        """Find the freshly built artifact.

        Files older than the build start are leftovers of earlier runs and
        are never selected.

        Raises
        ------
        ArtifactNotFoundError
            If no fresh candidate matches any root/pattern combination.
        """
        roots = self.search_roots()
        patterns = self.search_patterns()
        broad = self.config.format_spec.broad_glob
        result.search_roots = [str(r) for r in roots]
        result.search_patterns = [*patterns, broad]
        since = None
        if self._build_started is not None:
            since = self._build_started - MTIME_TOLERANCE_SECONDS

        artifact = self.locator.find(
            roots,
            patterns,
            scan_root=self.config.workspace,
            scan_patterns=[broad],
            modified_since=since,
        )
        if artifact is None:
            for attempt in self.locator.attempts:
                result.add_diagnostic(f"searched {attempt.describe()}")
            raise ArtifactNotFoundError("no artifact located").with_context(
                search_roots=result.search_roots,
                search_patterns=result.search_patterns,
            )
        return artifact

    def _collect_logs(self, result: PipelineResult) -> None:
        try:
            collector = LogCollector(self.config.resolved_log_dir, self.config.run_id)
            for index, attempt in enumerate(result.attempts, start=1):
                collector.save_attempt(index, attempt)
            collector.write_summary(result)
        except OSError as exc:
            logger.warning("logs.write_failed", error=str(exc))
