"""Result models for distpack packaging runs.

Pydantic v2 models capturing structured outcomes of each stage. They form a
composition hierarchy: individual ``AttemptResult`` values roll up into a
``BuildOutcome``, which together with the located ``Artifact`` rolls up into
the terminal ``PipelineResult``.

Key Concepts:
    AttemptStatus: SUCCEEDED / RECOVERABLE / FATAL, the typed outcome of one
        fallback strategy.
    BuildOutcome: All attempts of the fallback chain and the final verdict.
    Artifact: A discovered package file (never created by distpack).
    PipelineResult: ``succeeded``, ``final_artifact_path`` and the ordered
        ``diagnostics`` of a run. ``mark_complete()`` finalises timestamps.

Architecture Decisions:
    - Pydantic v2 BaseModel: ``model_dump_json(indent=2)`` feeds the
      ``summary.json`` written by the log collector and ``--json`` output.
    - Diagnostics are plain ordered strings so a human operator can read
      them without tooling.

Tags:
    results, models, pydantic, pipeline, status
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from distpack.build.formats import ArtifactKind


class AttemptStatus(str, Enum):
    """Outcome of one fallback strategy."""

    SUCCEEDED = "SUCCEEDED"
    RECOVERABLE = "RECOVERABLE"  # advance to the next strategy
    FATAL = "FATAL"  # stop the fallback chain


class InvocationMode(str, Enum):
    """Packaging tool flag set."""

    STRICT = "strict"
    RELAXED = "relaxed"


class InvocationResult(BaseModel):
    """Exit status and captured output of one runtime invocation."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0 and not self.timed_out

    @property
    def logs(self) -> str:
        return self.stdout + self.stderr


class AttemptResult(BaseModel):
    """Result of one strategy in the fallback chain."""

    strategy: str
    runtime: str
    mode: InvocationMode
    status: AttemptStatus
    exit_code: int | None = None
    duration_seconds: float = 0.0
    logs: str = ""
    error: str | None = None

    def describe(self) -> str:
        """One-line human-readable summary used in diagnostics."""
        if self.status is AttemptStatus.SUCCEEDED:
            return f"attempt {self.strategy} succeeded"
        reason = f"exit {self.exit_code}" if self.exit_code is not None else (self.error or "error")
        label = "fatal" if self.status is AttemptStatus.FATAL else "failed"
        return f"attempt {self.strategy} {label} ({reason})"


class BuildOutcome(BaseModel):
    """Result of the container build stage."""

    succeeded: bool = False
    attempts: list[AttemptResult] = Field(default_factory=list)
    logs: str = ""
    fatal: bool = False

    @property
    def failed_attempts(self) -> list[AttemptResult]:
        return [a for a in self.attempts if a.status is not AttemptStatus.SUCCEEDED]

    @property
    def winning_attempt(self) -> AttemptResult | None:
        for attempt in self.attempts:
            if attempt.status is AttemptStatus.SUCCEEDED:
                return attempt
        return None


class Artifact(BaseModel):
    """A package file discovered on disk."""

    model_config = ConfigDict(frozen=True)

    path: str
    kind: ArtifactKind
    size_bytes: int = 0


class PipelineResult(BaseModel):
    """Terminal value of a packaging run."""

    run_id: str
    succeeded: bool = False
    final_artifact_path: str | None = None
    artifact_size_bytes: int | None = None
    version: str | None = None
    diagnostics: list[str] = Field(default_factory=list)
    attempts: list[AttemptResult] = Field(default_factory=list)
    search_roots: list[str] = Field(default_factory=list)
    search_patterns: list[str] = Field(default_factory=list)
    directory_listing: dict[str, list[str]] = Field(default_factory=dict)
    """Depth-bounded listings of the workspace and output dir; set on failure."""
    started_at: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    completed_at: str | None = None
    duration_seconds: float = 0.0

    def add_diagnostic(self, message: str) -> None:
        self.diagnostics.append(message)

    def mark_complete(self, succeeded: bool) -> None:
        """Finalize the run: verdict, completion time and duration."""
        self.succeeded = succeeded
        self.completed_at = datetime.now(UTC).isoformat()
        start = datetime.fromisoformat(self.started_at)
        end = datetime.fromisoformat(self.completed_at)
        self.duration_seconds = (end - start).total_seconds()
