"""Containerized package build with runtime and flag fallback.

The runner walks an explicit, ordered list of named strategies::

    1. primary-strict      primary runtime,   full checks
    2. primary-relaxed     primary runtime,   skip integrity/deps/arch checks
    3. secondary-strict    secondary runtime, full checks
    4. secondary-relaxed   secondary runtime, skip integrity/deps/arch checks

Each attempt returns a typed :class:`AttemptResult`. A non-zero exit, a
timeout or an unusable runtime is RECOVERABLE and advances to the next
strategy; the first success stops the chain. A condition that no other
strategy can fix (workspace or manifest missing) is FATAL and stops it
immediately. Attempts are strictly serial.

The strategy evaluation lives in :class:`FallbackPolicy` so it can be
exercised with fake runtimes, independently of Docker or Podman.

Example::

    runner = ContainerBuildRunner(output_dir=Path("dist"), timeout_seconds=1800)
    outcome = runner.run(spec, Path("."), create_runtime("docker"), create_runtime("podman"))
    if outcome.succeeded:
        print(outcome.winning_attempt.strategy)
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from distpack.build.config import BuildSpec
from distpack.build.manifest import ManifestPatcher, PatchOptions
from distpack.build.results import (
    AttemptResult,
    AttemptStatus,
    BuildOutcome,
    InvocationMode,
)
from distpack.build.runtimes import ContainerRuntime
from distpack.build.scripts import compose_build_script
from distpack.core.errors import FatalBuildError, ManifestError, RuntimeInvocationError
from distpack.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class BuildStrategy:
    """One (runtime, invocation mode) pair of the fallback chain."""

    name: str
    runtime: ContainerRuntime
    mode: InvocationMode


def default_strategies(
    primary: ContainerRuntime,
    secondary: ContainerRuntime | None = None,
) -> list[BuildStrategy]:
    """The ordered fallback chain for a primary and optional secondary runtime."""
    strategies = []
    for role, runtime in (("primary", primary), ("secondary", secondary)):
        if runtime is None:
            continue
        for mode in (InvocationMode.STRICT, InvocationMode.RELAXED):
            strategies.append(BuildStrategy(f"{role}-{mode.value}", runtime, mode))
    return strategies


class FallbackPolicy:
    """Evaluate strategies in order until one succeeds or one is fatal."""

    def evaluate(
        self,
        strategies: Sequence[BuildStrategy],
        attempt: Callable[[BuildStrategy], AttemptResult],
    ) -> BuildOutcome:
        outcome = BuildOutcome()
        for strategy in strategies:
            result = attempt(strategy)
            outcome.attempts.append(result)
            if result.status is AttemptStatus.SUCCEEDED:
                outcome.succeeded = True
                outcome.logs = result.logs
                return outcome
            if result.status is AttemptStatus.FATAL:
                logger.error("fallback.halted", strategy=strategy.name, error=result.error)
                outcome.fatal = True
                return outcome
        logger.error("fallback.exhausted", attempts=len(outcome.attempts))
        outcome.fatal = True
        return outcome


class ContainerBuildRunner:
    """Runs the packaging build through the fallback chain.

    Parameters
    ----------
    output_dir
        Host directory bound to ``/out``; receives the built packages.
        Defaults to the workspace passed to :meth:`run`.
    timeout_seconds
        Upper bound for each container invocation.
    policy
        Strategy evaluator (default :class:`FallbackPolicy`).
    patcher
        Manifest patcher used to render the manifest written into the
        writable build copy.
    """

    def __init__(
        self,
        *,
        output_dir: Path | None = None,
        timeout_seconds: float = 3600,
        policy: FallbackPolicy | None = None,
        patcher: ManifestPatcher | None = None,
    ) -> None:
        self.output_dir = output_dir
        self.timeout_seconds = timeout_seconds
        self.policy = policy or FallbackPolicy()
        self.patcher = patcher or ManifestPatcher()

    def run(
        self,
        spec: BuildSpec,
        workspace_dir: str | Path,
        primary: ContainerRuntime,
        secondary: ContainerRuntime | None = None,
    ) -> BuildOutcome:
        """Build ``spec`` from ``workspace_dir`` using the fallback chain."""
        workspace = Path(workspace_dir)
        strategies = default_strategies(primary, secondary)
        return self.policy.evaluate(
            strategies,
            lambda strategy: self._attempt(strategy, spec, workspace),
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _prepare_script(self, spec: BuildSpec, workspace: Path, mode: InvocationMode) -> str:
        if not workspace.is_dir():
            raise FatalBuildError(f"Workspace not found: {workspace}")
        try:
            outcome = self.patcher.patch(
                workspace / spec.manifest_path,
                spec.version,
                PatchOptions(
                    strip_dependency=spec.strip_dependency,
                    strip_source=spec.strip_source,
                ),
                dry_run=True,
            )
        except ManifestError as exc:
            raise FatalBuildError(f"Cannot prepare manifest: {exc}", cause=exc) from exc
        return compose_build_script(spec, mode, outcome.document.text)

    def _attempt(self, strategy: BuildStrategy, spec: BuildSpec, workspace: Path) -> AttemptResult:
        runtime_id = strategy.runtime.identifier
        start = time.monotonic()
        logger.info("attempt.started", strategy=strategy.name, runtime=runtime_id)

        def finish(status: AttemptStatus, **fields: object) -> AttemptResult:
            result = AttemptResult(
                strategy=strategy.name,
                runtime=runtime_id,
                mode=strategy.mode,
                status=status,
                duration_seconds=time.monotonic() - start,
                **fields,
            )
            log = logger.info if status is AttemptStatus.SUCCEEDED else logger.warning
            log(
                "attempt.finished",
                strategy=strategy.name,
                status=status.value,
                exit_code=result.exit_code,
                duration_s=round(result.duration_seconds, 1),
            )
            return result

        try:
            script = self._prepare_script(spec, workspace, strategy.mode)
        except FatalBuildError as exc:
            return finish(AttemptStatus.FATAL, error=exc.message)

        try:
            invocation = strategy.runtime.invoke(
                script,
                image=spec.image or spec.format_spec.image,
                workspace=workspace,
                output_dir=self.output_dir or workspace,
                env=dict(spec.format_spec.env),
                timeout=self.timeout_seconds,
            )
        except RuntimeInvocationError as exc:
            return finish(AttemptStatus.RECOVERABLE, error=exc.message)

        status = AttemptStatus.SUCCEEDED if invocation.succeeded else AttemptStatus.RECOVERABLE
        return finish(
            status,
            exit_code=invocation.exit_code,
            logs=invocation.logs,
            error="timed out" if invocation.timed_out else None,
        )
